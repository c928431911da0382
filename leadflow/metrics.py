"""Prometheus counters for message processing."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

messages_total = Counter(
    "leadflow_messages_total",
    "Total processed AI results by outcome",
    ["outcome"],
)

dead_letters_total = Counter(
    "leadflow_dead_letters_total",
    "Total messages sent to the dead-letter store by reason",
    ["reason"],
)

actions_total = Counter(
    "leadflow_actions_total",
    "Total saga actions by type and status",
    ["action", "status"],
)

intents_total = Counter(
    "leadflow_intents_total",
    "Total classified messages by intent",
    ["intent"],
)

ai_processing_seconds = Histogram(
    "leadflow_ai_processing_seconds",
    "AI classification time reported with each result",
    ["intent"],
)

workflow_executions_total = Counter(
    "leadflow_workflow_executions_total",
    "Total workflow executions by terminal status",
    ["status"],
)

circuit_transitions_total = Counter(
    "leadflow_circuit_transitions_total",
    "Circuit breaker state transitions",
    ["circuit", "state"],
)


def observe_message(outcome: str) -> None:
    messages_total.labels(outcome=outcome).inc()


def observe_dead_letter(reason: str) -> None:
    dead_letters_total.labels(reason=reason).inc()


def observe_action(action: str, status: str) -> None:
    actions_total.labels(action=action, status=status).inc()


def observe_intent(intent: str, processing_time_ms: float) -> None:
    intents_total.labels(intent=intent).inc()
    if processing_time_ms > 0:
        ai_processing_seconds.labels(intent=intent).observe(processing_time_ms / 1000)


def observe_workflow_execution(status: str) -> None:
    workflow_executions_total.labels(status=status).inc()


def observe_circuit_transition(circuit: str, state: str) -> None:
    circuit_transitions_total.labels(circuit=circuit, state=state).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
