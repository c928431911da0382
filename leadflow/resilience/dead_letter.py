"""Dead-letter queue for messages that exhausted their retries."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..constants import DEFAULT_MAX_RETRY_ATTEMPTS, DEFAULT_RETRY_DELAYS_MS
from ..metrics import observe_dead_letter
from ..persistence.models import DeadLetterRecord, LeadActivity, utcnow
from ..persistence.repository import DeadLetterStore, RecordStore
from ..utils.retry import retry_delay_ms

logger = logging.getLogger(__name__)


class DeadLetterQueue:
    """Park failed messages and decide whether a failure is retried."""

    def __init__(
        self,
        store: DeadLetterStore,
        records: Optional[RecordStore] = None,
        max_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
        retry_delays_ms: Sequence[int] = DEFAULT_RETRY_DELAYS_MS,
    ) -> None:
        self._store = store
        self._records = records
        self.max_attempts = max_attempts
        self.retry_delays_ms = list(retry_delays_ms)

    async def send_to_dead_letter(
        self,
        message_id: str,
        lead_id: Optional[str],
        original_payload: Dict[str, Any],
        error: str,
        attempt_count: int,
        first_attempt_at: datetime,
        last_attempt_at: datetime,
        error_stack: Optional[str] = None,
        reason: str = "retries_exhausted",
    ) -> DeadLetterRecord:
        """Persist the failed message and log a ``processing_failed`` activity."""
        record = DeadLetterRecord(
            message_id=message_id,
            lead_id=lead_id,
            original_payload=original_payload,
            error=error,
            error_stack=error_stack,
            attempt_count=attempt_count,
            first_attempt_at=first_attempt_at,
            last_attempt_at=last_attempt_at,
        )
        record = await self._store.add_dead_letter(record)
        observe_dead_letter(reason)
        logger.error(
            f"Message {message_id} sent to DLQ after {attempt_count} attempts: {error}"
        )

        if self._records is not None:
            try:
                await self._records.log_activity(
                    LeadActivity(
                        lead_id=lead_id,
                        business_id=original_payload.get("business_id"),
                        tenant_id=original_payload.get("tenant_id"),
                        activity_type="processing_failed",
                        activity_description=f"Message processing failed: {error}",
                        channel="error_handler",
                        metadata={
                            "messageId": message_id,
                            "attemptCount": attempt_count,
                            "sentToDLQ": True,
                        },
                    )
                )
            except Exception:
                logger.exception(f"Failed to log DLQ activity for message {message_id}")
        return record

    def should_retry(self, attempt_count: int) -> bool:
        return attempt_count < self.max_attempts

    def get_retry_delay(self, attempt_number: int) -> int:
        return retry_delay_ms(attempt_number, self.retry_delays_ms)

    async def get(self, dlq_id: str) -> DeadLetterRecord | None:
        return await self._store.get_dead_letter(dlq_id)

    async def list_failed(self, limit: int = 100) -> list[DeadLetterRecord]:
        return await self._store.list_dead_letters(status="failed", limit=limit)

    async def retry_message(self, dlq_id: str) -> DeadLetterRecord | None:
        """Flag a dead letter as being retried and return it for replay."""
        record = await self._store.update_dead_letter_status(dlq_id, "retrying")
        if record is not None:
            logger.info(f"Retrying message {record.message_id} from DLQ")
        return record

    async def mark_resolved(self, dlq_id: str) -> DeadLetterRecord | None:
        return await self._store.update_dead_letter_status(dlq_id, "resolved")

    async def mark_failed(
        self, dlq_id: str, error: str, error_stack: Optional[str] = None
    ) -> DeadLetterRecord | None:
        """Put a dead letter back in the failed list after a replay did not succeed."""
        record = await self._store.record_dead_letter_attempt(
            dlq_id, error, error_stack, utcnow()
        )
        if record is not None:
            logger.error(
                f"Replay of message {record.message_id} failed "
                f"(attempt {record.attempt_count}): {error}"
            )
        return record
