"""Outbound channel client interface."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol

from pydantic import BaseModel


class SendReceipt(BaseModel):
    message_id: Optional[str] = None
    status: str = "sent"


class ChannelClient(Protocol):
    """Delivers rendered message content to a recipient on one channel."""

    channel: str

    async def send(
        self, recipient: str, content: Mapping[str, Any], config: Mapping[str, Any]
    ) -> SendReceipt: ...


class ChannelRegistry:
    """Channel clients keyed by channel name (``whatsapp``, ``instagram``...)."""

    def __init__(self) -> None:
        self._clients: Dict[str, ChannelClient] = {}

    def register(self, client: ChannelClient) -> None:
        self._clients[client.channel] = client

    def get(self, channel: str) -> ChannelClient | None:
        return self._clients.get(channel)

    def channels(self) -> list[str]:
        return sorted(self._clients)
