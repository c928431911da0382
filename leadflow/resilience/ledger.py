"""Idempotency ledger guarding against reprocessing redelivered messages."""

from __future__ import annotations

import logging
from typing import Optional

from ..constants import DEFAULT_DEDUPLICATION_TTL_HOURS
from ..persistence.models import LedgerStatus, ProcessedMessageRecord, utcnow
from ..persistence.repository import LedgerStore

logger = logging.getLogger(__name__)


class IdempotencyLedger:
    """Single source of truth for "this message was already handled".

    Only terminal entries (``success`` / ``failed``) count as duplicates; a
    ``retrying`` entry lets the redelivered message through. Storage errors
    are logged and never raised: a failed lookup treats the message as new.
    """

    def __init__(
        self, store: LedgerStore, ttl_hours: int = DEFAULT_DEDUPLICATION_TTL_HOURS
    ) -> None:
        self._store = store
        self.ttl_hours = ttl_hours

    async def is_duplicate(self, message_id: str, lead_id: Optional[str] = None) -> bool:
        try:
            existing = await self._store.get_processed_message(message_id)
        except Exception:
            logger.exception(f"Error checking duplicate for message {message_id}")
            return False

        if existing is None or not existing.is_terminal:
            return False
        if existing.expires_at < utcnow():
            return False
        logger.warning(f"Duplicate message detected: {message_id} for lead {lead_id}")
        return True

    async def mark_as_processed(
        self, message_id: str, lead_id: Optional[str], status: LedgerStatus
    ) -> None:
        record = ProcessedMessageRecord.create(message_id, lead_id, status, self.ttl_hours)
        try:
            await self._store.save_processed_message(record)
        except Exception:
            logger.exception(f"Error marking message {message_id} as {status}")

    async def get(self, message_id: str) -> ProcessedMessageRecord | None:
        return await self._store.get_processed_message(message_id)

    async def forget(self, message_id: str) -> None:
        """Drop the entry so the message can be processed again."""
        try:
            await self._store.delete_processed_message(message_id)
        except Exception:
            logger.exception(f"Error removing ledger entry for {message_id}")

    async def cleanup_expired(self) -> int:
        try:
            count = await self._store.delete_expired_messages(utcnow())
        except Exception:
            logger.exception("Error cleaning up expired message records")
            return 0
        logger.info(f"Cleaned up {count} expired message records")
        return count
