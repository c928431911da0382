from datetime import timedelta

import pytest

from leadflow.db import WorkflowDB
from leadflow.persistence.models import (
    DeadLetterRecord,
    ProcessedMessageRecord,
    WorkflowExecutionRecord,
    utcnow,
)


@pytest.fixture
def db(tmp_path):
    return WorkflowDB(f"sqlite+aiosqlite:///{tmp_path / 'leadflow.db'}")


@pytest.mark.asyncio
async def test_execution_lifecycle(db):
    await db.init_db()
    record = WorkflowExecutionRecord(
        workflow_id="wf-1",
        workflow_key="order_flow",
        intent_name="ORDER_REQUEST",
        business_id="biz-1",
        lead_id="lead-1",
        execution_context={"leadName": "Ada"},
    )
    await db.create_execution(record)
    await db.update_execution_state(record.execution_id, "greet")

    stored = await db.get_execution(record.execution_id)
    assert stored.status == "running"
    assert stored.current_state == "greet"
    assert stored.execution_context == {"leadName": "Ada"}

    await db.complete_execution(record.execution_id, "end")
    stored = await db.get_execution(record.execution_id)
    assert stored.status == "completed"
    assert stored.completed_at is not None
    assert stored.completed_at.tzinfo is not None

    executions = await db.list_executions()
    assert [e.execution_id for e in executions] == [record.execution_id]
    await db.close()


@pytest.mark.asyncio
async def test_failed_and_waiting_executions(db):
    first = WorkflowExecutionRecord(
        workflow_id="wf", workflow_key="k", intent_name="X", business_id="b", lead_id="l"
    )
    second = first.model_copy(update={"execution_id": "exec-2"})
    await db.create_execution(first)
    await db.create_execution(second)

    await db.fail_execution(first.execution_id, "boom")
    await db.mark_execution_waiting("exec-2", "await_reply")

    failed = await db.get_execution(first.execution_id)
    assert failed.status == "failed"
    assert failed.error_message == "boom"
    waiting = await db.get_execution("exec-2")
    assert waiting.status == "waiting"
    assert waiting.current_state == "await_reply"
    assert await db.get_execution("missing") is None
    await db.close()


@pytest.mark.asyncio
async def test_ledger_upsert_and_expiry(db):
    await db.save_processed_message(ProcessedMessageRecord.create("m-1", "lead-1", "retrying", 24))
    await db.save_processed_message(ProcessedMessageRecord.create("m-1", "lead-1", "success", 24))
    stored = await db.get_processed_message("m-1")
    assert stored.processing_status == "success"

    past = utcnow() - timedelta(hours=2)
    await db.save_processed_message(
        ProcessedMessageRecord(
            message_id="m-old", processing_status="failed", processed_at=past, expires_at=past
        )
    )
    assert await db.delete_expired_messages(utcnow()) == 1
    assert await db.get_processed_message("m-old") is None

    await db.delete_processed_message("m-1")
    assert await db.get_processed_message("m-1") is None
    await db.close()


@pytest.mark.asyncio
async def test_dead_letters(db):
    now = utcnow()
    record = await db.add_dead_letter(
        DeadLetterRecord(
            message_id="m-1",
            lead_id="lead-1",
            original_payload={"processing_id": "m-1"},
            error="boom",
            error_stack="Traceback...",
            attempt_count=3,
            first_attempt_at=now,
            last_attempt_at=now,
        )
    )
    assert [r.id for r in await db.list_dead_letters(status="failed")] == [record.id]

    updated = await db.update_dead_letter_status(record.id, "resolved")
    assert updated.status == "resolved"
    assert updated.updated_at is not None
    assert await db.list_dead_letters(status="failed") == []
    stored = await db.get_dead_letter(record.id)
    assert stored.original_payload == {"processing_id": "m-1"}
    assert await db.update_dead_letter_status("missing", "resolved") is None

    retried = await db.record_dead_letter_attempt(record.id, "still down", None, utcnow())
    assert retried.status == "failed"
    assert retried.attempt_count == 4
    assert retried.error == "still down"
    assert retried.error_stack is None
    assert retried.last_attempt_at >= now
    assert await db.record_dead_letter_attempt("missing", "boom", None, utcnow()) is None
    await db.close()
