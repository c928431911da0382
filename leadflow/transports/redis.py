"""Redis transport for cross-process delivery of AI results."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional, Tuple

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError

from ..contracts import QueueEnvelope
from .base import BaseTransport

logger = logging.getLogger(__name__)

# (queue name, envelope JSON)
RedisDelivery = Tuple[str, str]


class RedisTransport(BaseTransport[RedisDelivery]):
    """Redis lists as FIFO queues: LPUSH to publish, BRPOP to consume.

    A popped envelope is already off the list, so ``ack`` has nothing to do
    and ``nack`` pushes the body back onto the tail.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = "leadflow",
        client: Optional[Any] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self._redis: Optional[Any] = client

    def queue_name(self, topic: str) -> str:
        return f"{self.prefix}:{topic}"

    async def _client(self) -> Any:
        if self._redis is None:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
            await self._redis.ping()
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, topic: str, envelope: QueueEnvelope) -> None:
        client = await self._client()
        await client.lpush(self.queue_name(topic), envelope.to_json())

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RedisDelivery, QueueEnvelope]]:
        client = await self._client()
        queue_name = self.queue_name(topic)
        start_time = asyncio.get_running_loop().time() if lifespan else None

        while True:
            if lifespan and start_time is not None:
                elapsed = asyncio.get_running_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            result = await client.brpop(queue_name, timeout=1)
            if result:
                _, body = result
                try:
                    envelope = QueueEnvelope.from_json(body)
                except PydanticValidationError as exc:
                    logger.error(f"Discarding unparseable message on {queue_name}: {exc}")
                    continue
                yield (queue_name, body), envelope

            await asyncio.sleep(0.01)

    async def ack(self, raw_message: RedisDelivery) -> None:
        pass

    async def nack(self, raw_message: RedisDelivery) -> None:
        queue_name, body = raw_message
        client = await self._client()
        await client.lpush(queue_name, body)
