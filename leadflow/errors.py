"""Exception taxonomy for workflow and message processing."""

from __future__ import annotations

from typing import Optional


class LeadflowError(Exception):
    """Base class for all leadflow errors."""

    retryable: bool = True


class ConfigurationError(LeadflowError):
    """Unknown workflow state, unregistered action type or invalid definition."""

    retryable = False


class NotFoundError(LeadflowError):
    """A business, lead or workflow definition does not exist."""

    retryable = False


class ValidationError(LeadflowError):
    """Malformed AI classification payload."""

    retryable = False


class ExpressionError(LeadflowError):
    """Disallowed or malformed condition expression or script."""

    retryable = False


class CircuitOpenError(LeadflowError):
    """Raised when a circuit breaker rejects a call."""

    def __init__(self, circuit_name: str) -> None:
        super().__init__(
            f"Circuit breaker [{circuit_name}] is OPEN. Service temporarily unavailable."
        )
        self.circuit_name = circuit_name


class ActionFailed(LeadflowError):
    """An action handler could not complete its side effect."""

    def __init__(
        self, message: str, retryable: bool = True, action_type: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.action_type = action_type


def is_retryable(error: BaseException) -> bool:
    """Return ``True`` if ``error`` may succeed when the message is redelivered."""
    return getattr(error, "retryable", True)
