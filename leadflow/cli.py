"""Command line interface for running leadflow workers and inspecting state."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from leadflow import build_runtime, get_repository, load_config
from leadflow.errors import NotFoundError
from leadflow.otel import setup_otel
from leadflow.resilience import DeadLetterQueue, IdempotencyLedger
from leadflow.runtime import ledger_store

app = typer.Typer(help="CLI for leadflow message processing")

# Command groups
worker_app = typer.Typer(help="Commands for running workers")
dlq_app = typer.Typer(help="Commands for managing dead-lettered messages")
ledger_app = typer.Typer(help="Commands for the idempotency ledger")
executions_app = typer.Typer(help="Commands for inspecting workflow executions")

app.add_typer(worker_app, name="worker")
app.add_typer(dlq_app, name="dlq")
app.add_typer(ledger_app, name="ledger")
app.add_typer(executions_app, name="executions")

_state: dict = {"config_path": None}


def _config():
    return load_config(_state["config_path"])


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to config file (default: LEADFLOW_CONFIG or config.yaml)"
    ),
) -> None:
    """Leadflow CLI entry point."""
    _state["config_path"] = config
    logging.basicConfig(
        level=_config().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@worker_app.command("run")
def worker_run(lifespan: Optional[float] = None) -> None:
    """
    Consume AI results from the configured transport and process them.

    Args:
        lifespan: Worker timeout in seconds (default: run indefinitely)

    Example:
        leadflow worker run
        leadflow --config prod.yaml worker run --lifespan 300
    """
    config = _config()
    setup_otel(config.telemetry.service_name, config.telemetry.otel_enabled)
    runtime = build_runtime(config)
    consumer = runtime.consumer()
    typer.echo(f"Starting worker on topic: {config.transport.topic}")
    asyncio.run(consumer.start(lifespan=lifespan))
    typer.echo(f"Worker stopped after processing {consumer.processed} messages")


@dlq_app.command("list")
def dlq_list(limit: int = typer.Option(100, help="Maximum number of entries")) -> None:
    """
    List dead letters still waiting for an operator.

    Returns:
        Tab-separated id, message id, attempt count and error per dead letter.
    """
    dlq = DeadLetterQueue(get_repository())
    records = asyncio.run(dlq.list_failed(limit=limit))
    if not records:
        typer.echo("No dead letters found")
        return
    for record in records:
        typer.echo(f"{record.id}\t{record.message_id}\t{record.attempt_count}\t{record.error}")


@dlq_app.command("retry")
def dlq_retry(dlq_id: str) -> None:
    """Replay a dead-lettered message through the orchestrator."""
    runtime = build_runtime(_config())
    try:
        outcome = asyncio.run(runtime.orchestrator.replay_dead_letter(dlq_id))
    except NotFoundError:
        typer.echo("Dead letter not found")
        raise typer.Exit(code=1)

    if outcome.success:
        typer.echo(f"Dead letter {dlq_id} resolved")
        return
    typer.secho(f"Replay failed: {outcome.error}", fg=typer.colors.RED)
    raise typer.Exit(code=1)


@dlq_app.command("resolve")
def dlq_resolve(dlq_id: str) -> None:
    """Mark a dead letter as resolved without replaying it."""
    dlq = DeadLetterQueue(get_repository())
    record = asyncio.run(dlq.mark_resolved(dlq_id))
    if record is None:
        typer.echo("Dead letter not found")
        raise typer.Exit(code=1)
    typer.echo(f"Dead letter {dlq_id}: {record.status}")


@ledger_app.command("cleanup")
def ledger_cleanup() -> None:
    """Delete expired idempotency ledger entries."""
    config = _config()
    ledger = IdempotencyLedger(
        ledger_store(config, get_repository()), config.ledger.ttl_hours
    )
    count = asyncio.run(ledger.cleanup_expired())
    typer.echo(f"Removed {count} expired entries")


@executions_app.command("list")
def executions_list(limit: int = typer.Option(100, help="Maximum number of executions")) -> None:
    """
    List recent workflow executions with their status.

    Example:
        leadflow executions list
        # Output: 3f2a...    order_flow    completed    end
    """
    repo = get_repository()
    executions = asyncio.run(repo.list_executions(limit=limit))
    if not executions:
        typer.echo("No executions found")
        return
    for execution in executions:
        typer.echo(
            f"{execution.execution_id}\t{execution.workflow_key}\t"
            f"{execution.status}\t{execution.current_state or '-'}"
        )


@executions_app.command("show")
def executions_show(execution_id: str) -> None:
    """Show detailed information for a workflow execution."""
    repo = get_repository()
    execution = asyncio.run(repo.get_execution(execution_id))
    if execution is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(f"Execution {execution.execution_id}: {execution.status}")
    typer.echo(f"Workflow: {execution.workflow_key} ({execution.intent_name})")
    typer.echo(f"Lead: {execution.lead_id}  Business: {execution.business_id}")
    typer.echo(f"Current state: {execution.current_state}")
    if execution.error_message:
        typer.echo(f"Error: {execution.error_message}")
    typer.echo(
        f"Started: {execution.created_at}"
        + (f"  Completed: {execution.completed_at}" if execution.completed_at else "")
    )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
