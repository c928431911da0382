"""In-process transport used by tests and single-process deployments."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import AsyncIterator, Deque, Dict, List, NamedTuple, Optional, Tuple

from ..contracts import QueueEnvelope
from .base import BaseTransport


class Delivery(NamedTuple):
    topic: str
    body: str
    envelope: QueueEnvelope


class InMemoryTransport(BaseTransport[Delivery]):
    """Per-topic deques polled every ``poll_interval`` seconds."""

    def __init__(self, poll_interval: float = 0.1) -> None:
        self._queues: Dict[str, Deque[Delivery]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self.poll_interval = poll_interval
        self.acked: List[str] = []
        self.nacked: List[str] = []

    async def publish(self, topic: str, envelope: QueueEnvelope) -> None:
        async with self._lock:
            self._queues[topic].append(Delivery(topic, envelope.to_json(), envelope))

    def pending(self, topic: str) -> int:
        return len(self._queues[topic])

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[Delivery, QueueEnvelope]]:
        start_time = asyncio.get_running_loop().time() if lifespan else None

        while True:
            if lifespan and start_time is not None:
                elapsed = asyncio.get_running_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            async with self._lock:
                delivery = self._queues[topic].popleft() if self._queues[topic] else None
            if delivery is not None:
                yield delivery, delivery.envelope
                continue

            await asyncio.sleep(self.poll_interval)

    async def ack(self, raw_message: Delivery) -> None:
        self.acked.append(raw_message.envelope.envelope_id)

    async def nack(self, raw_message: Delivery) -> None:
        self.nacked.append(raw_message.envelope.envelope_id)
        async with self._lock:
            self._queues[raw_message.topic].append(raw_message)
