"""Named circuit breakers guarding calls to fallible collaborators."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ..config import CircuitBreakerSettings
from ..errors import CircuitOpenError
from ..metrics import observe_circuit_transition

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_ms: int = 60_000
    monitoring_period_ms: int = 120_000

    @classmethod
    def from_settings(cls, settings: CircuitBreakerSettings) -> "CircuitBreakerConfig":
        return cls(**settings.model_dump())


@dataclass
class Circuit:
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float = 0
    next_attempt_time: float = 0


def _iso(ms: float) -> Optional[str]:
    if not ms:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


class CircuitBreakerRegistry:
    """Process-local registry of independent circuits keyed by name.

    ``clock`` returns the current time in milliseconds and can be replaced in
    tests to move time forward without sleeping.
    """

    def __init__(
        self,
        default_config: Optional[CircuitBreakerConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.default_config = default_config or CircuitBreakerConfig()
        self._clock = clock or (lambda: time.time() * 1000)
        self._circuits: Dict[str, Circuit] = {}

    def _circuit(self, name: str) -> Circuit:
        if name not in self._circuits:
            self._circuits[name] = Circuit()
        return self._circuits[name]

    def _config(self, overrides: Optional[Dict[str, Any]]) -> CircuitBreakerConfig:
        if not overrides:
            return self.default_config
        return replace(self.default_config, **overrides)

    async def execute(
        self,
        name: str,
        fn: Callable[[], Awaitable[T]],
        config: Optional[Dict[str, Any]] = None,
    ) -> T:
        """Run ``fn`` through the circuit ``name``.

        Raises :class:`CircuitOpenError` without calling ``fn`` while the
        circuit is open and its timeout has not elapsed.
        """
        cfg = self._config(config)
        circuit = self._circuit(name)

        if circuit.state is CircuitState.OPEN:
            if self._clock() < circuit.next_attempt_time:
                error = CircuitOpenError(name)
                logger.warning(str(error))
                raise error
            self._transition(name, circuit, CircuitState.HALF_OPEN)
            circuit.success_count = 0
            logger.info(f"Circuit breaker [{name}] entering HALF_OPEN state")

        try:
            result = await fn()
        except Exception:
            self._on_failure(name, circuit, cfg)
            raise
        self._on_success(name, circuit, cfg)
        return result

    def is_open(self, name: str) -> bool:
        circuit = self._circuits.get(name)
        if circuit is None:
            return False
        return circuit.state is CircuitState.OPEN and self._clock() < circuit.next_attempt_time

    def get_state(self, name: str) -> CircuitState:
        circuit = self._circuits.get(name)
        return circuit.state if circuit else CircuitState.CLOSED

    def reset(self, name: str) -> None:
        circuit = self._circuits.get(name)
        if circuit is None:
            return
        self._transition(name, circuit, CircuitState.CLOSED)
        circuit.failure_count = 0
        circuit.success_count = 0
        circuit.next_attempt_time = 0
        logger.info(f"Circuit breaker [{name}] manually reset")

    def statuses(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "state": circuit.state.value,
                "failure_count": circuit.failure_count,
                "success_count": circuit.success_count,
                "last_failure_time": _iso(circuit.last_failure_time),
                "next_attempt_time": _iso(circuit.next_attempt_time),
            }
            for name, circuit in self._circuits.items()
        }

    def _transition(self, name: str, circuit: Circuit, state: CircuitState) -> None:
        if circuit.state is not state:
            observe_circuit_transition(name, state.value)
        circuit.state = state

    def _on_success(self, name: str, circuit: Circuit, cfg: CircuitBreakerConfig) -> None:
        if circuit.state is CircuitState.HALF_OPEN:
            circuit.success_count += 1
            if circuit.success_count >= cfg.success_threshold:
                self._transition(name, circuit, CircuitState.CLOSED)
                circuit.failure_count = 0
                circuit.success_count = 0
                logger.info(f"Circuit breaker [{name}] closed after recovery")
        elif circuit.state is CircuitState.CLOSED:
            circuit.failure_count = 0

    def _on_failure(self, name: str, circuit: Circuit, cfg: CircuitBreakerConfig) -> None:
        now = self._clock()
        # failures older than the monitoring window no longer count
        if (
            circuit.last_failure_time
            and now - circuit.last_failure_time > cfg.monitoring_period_ms
        ):
            circuit.failure_count = 0
        circuit.failure_count += 1
        circuit.last_failure_time = now

        if circuit.state is CircuitState.HALF_OPEN:
            self._transition(name, circuit, CircuitState.OPEN)
            circuit.next_attempt_time = now + cfg.timeout_ms
            logger.warning(
                f"Circuit breaker [{name}] reopened after failure in HALF_OPEN state"
            )
        elif circuit.failure_count >= cfg.failure_threshold:
            self._transition(name, circuit, CircuitState.OPEN)
            circuit.next_attempt_time = now + cfg.timeout_ms
            logger.error(
                f"Circuit breaker [{name}] opened after {circuit.failure_count} failures"
            )
