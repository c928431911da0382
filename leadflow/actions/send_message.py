"""Channel-agnostic message sending."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from ..channels.base import ChannelRegistry
from ..contracts import WorkflowExecutionContext
from ..errors import ActionFailed
from ..persistence.models import OutgoingMessage
from ..persistence.repository import Directory, RecordStore
from .base import BaseAction

logger = logging.getLogger(__name__)


def _message_text(content: Mapping[str, Any]) -> str:
    text = content.get("text")
    if isinstance(text, Mapping):
        text = text.get("body")
    if not text:
        body = content.get("body")
        text = body.get("text") if isinstance(body, Mapping) else None
    return str(text) if text else "Interactive message"


class SendMessageAction(BaseAction):
    """Send ``params["content"]`` to the lead on the context's channel.

    The content is sent as given; workflow params arrive already rendered.
    """

    type = "send_message"

    def __init__(
        self, directory: Directory, records: RecordStore, channels: ChannelRegistry
    ) -> None:
        self._directory = directory
        self._records = records
        self._channels = channels

    async def execute(
        self, params: Dict[str, Any], context: WorkflowExecutionContext
    ) -> Dict[str, Any]:
        channel = context.channel
        logger.info(f"Sending message via {channel} to lead {context.lead_id}")
        content = params.get("content") or {}

        lead = await self._directory.get_lead(context.lead_id)
        recipient = (lead.platform_user_id if lead else None) or context.platform_user_id
        if not recipient:
            raise ActionFailed(
                f"Lead {context.lead_id} has no platform_user_id",
                retryable=False,
                action_type=self.type,
            )

        client = self._channels.get(channel)
        if client is None:
            raise ActionFailed(
                f"Unsupported channel: {channel}", retryable=False, action_type=self.type
            )

        receipt = await client.send(recipient, content, context.channel_config)

        if context.conversation_id:
            await self._records.record_outgoing_message(
                OutgoingMessage(
                    conversation_id=context.conversation_id,
                    lead_id=context.lead_id,
                    business_id=context.business_id,
                    tenant_id=context.tenant_id,
                    message_text=_message_text(content),
                    message_type=str(content.get("type") or "text").lower(),
                    platform_message_id=receipt.message_id,
                    delivery_status=receipt.status,
                )
            )
        return {"messageId": receipt.message_id, "status": receipt.status}
