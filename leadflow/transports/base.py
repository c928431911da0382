"""Queue interface the worker reads AI classification results from."""

from __future__ import annotations

import abc
from typing import AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import AiProcessResult, QueueEnvelope

RawMessageT = TypeVar("RawMessageT")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Carries ``QueueEnvelope`` deliveries of AI results for one topic at a time.

    ``subscribe`` yields ``(raw_message, envelope)`` pairs. The raw message is
    the backend's handle on the delivery and is handed back to ``ack`` once
    the orchestrator has an outcome, or to ``nack`` when processing blew up
    before one existed.
    """

    async def send_result(self, topic: str, ai_result: AiProcessResult) -> QueueEnvelope:
        """Publish a freshly classified message as its first attempt."""
        envelope = QueueEnvelope(payload=ai_result)
        await self.publish(topic, envelope)
        return envelope

    @abc.abstractmethod
    async def publish(self, topic: str, envelope: QueueEnvelope) -> None:
        """Append an envelope to the topic's queue."""

    @abc.abstractmethod
    def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, QueueEnvelope]]:
        """Yield deliveries until ``lifespan`` seconds pass (forever when ``None``)."""

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Settle a delivery the orchestrator has handled."""

    @abc.abstractmethod
    async def nack(self, raw_message: RawMessageT) -> None:
        """Put an unsettled delivery back at the end of its queue."""

    async def close(self) -> None:
        """Release broker connections."""
