"""Redis-backed ledger store shared between worker processes."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as redis

from ..persistence.models import ProcessedMessageRecord, utcnow


class RedisLedgerStore:
    """Keep ledger entries as Redis strings that expire with the record."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = "leadflow:processed",
        client: Optional[Any] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self._redis = client

    def _key(self, message_id: str) -> str:
        return f"{self.prefix}:{message_id}"

    async def _client(self) -> Any:
        if self._redis is None:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get_processed_message(self, message_id: str) -> ProcessedMessageRecord | None:
        client = await self._client()
        raw = await client.get(self._key(message_id))
        if raw is None:
            return None
        return ProcessedMessageRecord.model_validate_json(raw)

    async def save_processed_message(self, record: ProcessedMessageRecord) -> None:
        client = await self._client()
        ttl = max(1, math.ceil((record.expires_at - utcnow()).total_seconds()))
        await client.set(self._key(record.message_id), record.model_dump_json(), ex=ttl)

    async def delete_processed_message(self, message_id: str) -> None:
        client = await self._client()
        await client.delete(self._key(message_id))

    async def delete_expired_messages(self, now: datetime) -> int:
        # Redis evicts entries through their TTL.
        return 0
