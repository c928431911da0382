"""Resilience primitives: circuit breakers, idempotency ledger, dead letters."""

from __future__ import annotations

from .circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from .dead_letter import DeadLetterQueue
from .ledger import IdempotencyLedger

__all__ = [
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "DeadLetterQueue",
    "IdempotencyLedger",
]
