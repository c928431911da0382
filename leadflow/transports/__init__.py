"""Inbound queues for AI results."""

from __future__ import annotations

from typing import Optional

from ..config import LeadflowConfig, load_config
from .base import BaseTransport
from .inmemory import InMemoryTransport


def get_transport(
    config: Optional[LeadflowConfig] = None, backend: Optional[str] = None
) -> BaseTransport:
    """Build the transport named by ``config.transport``.

    ``backend`` overrides the configured backend; everything else (queue
    prefix, poll interval, Redis connection) still comes from the config.
    """
    config = config or load_config()
    settings = config.transport
    backend = (backend or settings.backend).lower()

    if backend == "inmemory":
        return InMemoryTransport(poll_interval=settings.poll_interval)
    if backend == "redis":
        from .redis import RedisTransport

        return RedisTransport(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            password=settings.redis.password,
            prefix=settings.queue_prefix,
        )
    raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = ["BaseTransport", "InMemoryTransport", "get_transport"]
