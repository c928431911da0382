import pytest
from prometheus_client import REGISTRY

from leadflow.persistence import InMemoryRecordStore, InMemoryRepository
from leadflow.persistence.models import utcnow
from leadflow.resilience import DeadLetterQueue


def _payload():
    return {"processing_id": "m-1", "lead_id": "lead-1", "business_id": "biz-1"}


@pytest.mark.asyncio
async def test_send_to_dead_letter_persists_and_logs_activity():
    store = InMemoryRepository()
    records = InMemoryRecordStore()
    dlq = DeadLetterQueue(store, records)
    before = REGISTRY.get_sample_value(
        "leadflow_dead_letters_total", {"reason": "max_retries_exceeded"}
    ) or 0

    now = utcnow()
    record = await dlq.send_to_dead_letter(
        message_id="m-1",
        lead_id="lead-1",
        original_payload=_payload(),
        error="CRM unavailable",
        attempt_count=3,
        first_attempt_at=now,
        last_attempt_at=now,
        reason="max_retries_exceeded",
    )

    assert record.status == "failed"
    assert record.attempt_count == 3
    assert [r.id for r in await dlq.list_failed()] == [record.id]

    activity = records.activities[-1]
    assert activity.activity_type == "processing_failed"
    assert activity.channel == "error_handler"
    assert activity.business_id == "biz-1"
    assert activity.metadata == {"messageId": "m-1", "attemptCount": 3, "sentToDLQ": True}

    after = REGISTRY.get_sample_value(
        "leadflow_dead_letters_total", {"reason": "max_retries_exceeded"}
    )
    assert after == before + 1


def test_retry_policy():
    dlq = DeadLetterQueue(InMemoryRepository())
    assert dlq.should_retry(1)
    assert dlq.should_retry(2)
    assert not dlq.should_retry(3)
    assert [dlq.get_retry_delay(n) for n in (1, 2, 3, 7)] == [1000, 5000, 15000, 15000]


@pytest.mark.asyncio
async def test_retry_and_resolve_lifecycle():
    dlq = DeadLetterQueue(InMemoryRepository())
    now = utcnow()
    record = await dlq.send_to_dead_letter(
        "m-1", "lead-1", _payload(), "boom", 1, now, now, reason="non_retryable"
    )

    retrying = await dlq.retry_message(record.id)
    assert retrying.status == "retrying"
    assert await dlq.list_failed() == []

    resolved = await dlq.mark_resolved(record.id)
    assert resolved.status == "resolved"
    assert await dlq.retry_message("missing") is None


@pytest.mark.asyncio
async def test_mark_failed_after_unsuccessful_replay():
    dlq = DeadLetterQueue(InMemoryRepository())
    now = utcnow()
    record = await dlq.send_to_dead_letter(
        "m-1", "lead-1", _payload(), "boom", 3, now, now, reason="max_retries_exceeded"
    )
    await dlq.retry_message(record.id)

    failed = await dlq.mark_failed(record.id, "still down", "Traceback...")

    assert failed.status == "failed"
    assert failed.attempt_count == 4
    assert failed.error == "still down"
    assert failed.error_stack == "Traceback..."
    assert failed.first_attempt_at == now
    assert failed.last_attempt_at >= now
    assert [r.id for r in await dlq.list_failed()] == [record.id]
    assert await dlq.mark_failed("missing", "boom") is None
