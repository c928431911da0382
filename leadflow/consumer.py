"""Transport consumer feeding AI results into the message orchestrator."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from .contracts import QueueEnvelope
from .orchestrator import MessageOrchestrator
from .transports import BaseTransport
from .utils.retry import schedule_retry

logger = logging.getLogger(__name__)


class AiResultConsumer:
    """Process envelopes from a topic, redelivering transient failures.

    A failed attempt that the orchestrator asks to retry is republished as
    the next attempt after the requested delay. The original delivery is
    acknowledged either way, so the attempt count always travels with the
    envelope rather than with the broker. An envelope whose processing
    raises is nacked back onto its queue.
    """

    def __init__(
        self,
        transport: BaseTransport,
        orchestrator: MessageOrchestrator,
        topic: str = "ai-results",
    ) -> None:
        self._transport = transport
        self._orchestrator = orchestrator
        self._topic = topic
        self._pending_retries: Set[asyncio.Task] = set()
        self.processed = 0

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Consume until ``lifespan`` seconds elapse (forever when ``None``)."""
        logger.info(f"Consuming AI results from topic {self._topic}")
        try:
            async for raw_message, envelope in self._transport.subscribe(
                self._topic, lifespan=lifespan
            ):
                try:
                    await self.handle(envelope)
                except Exception:
                    logger.exception(
                        f"Unhandled error on envelope {envelope.envelope_id}, returning it to the queue"
                    )
                    await self._transport.nack(raw_message)
                    continue
                await self._transport.ack(raw_message)
        finally:
            await self.drain()
            await self._transport.close()

    async def handle(self, envelope: QueueEnvelope) -> None:
        outcome = await self._orchestrator.process(
            envelope.payload,
            attempt=envelope.attempt,
            first_attempt_at=envelope.first_attempt_at,
        )
        self.processed += 1
        if outcome.retry_in_ms is not None:
            task = asyncio.create_task(
                self._redeliver(envelope, outcome.retry_in_ms),
                name=f"redeliver-{envelope.payload.processing_id}",
            )
            self._pending_retries.add(task)
            task.add_done_callback(self._redelivery_done)

    async def _redeliver(self, envelope: QueueEnvelope, delay_ms: int) -> None:
        await schedule_retry(delay_ms)
        retry = envelope.next_attempt()
        await self._transport.publish(self._topic, retry)
        logger.info(
            f"Republished {envelope.payload.processing_id} as attempt {retry.attempt}"
        )

    def _redelivery_done(self, task: asyncio.Task) -> None:
        self._pending_retries.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Redelivery task {task.get_name()} failed: {error!r}")

    async def drain(self) -> None:
        """Wait for scheduled redeliveries; failures are logged, not raised."""
        if self._pending_retries:
            await asyncio.gather(*list(self._pending_retries), return_exceptions=True)
