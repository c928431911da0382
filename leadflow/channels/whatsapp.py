"""WhatsApp Cloud API client."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from ..config import ChannelsConfig
from ..errors import ActionFailed, ConfigurationError
from .base import SendReceipt

logger = logging.getLogger(__name__)


def _text_of(value: Any) -> str:
    if isinstance(value, Mapping):
        return str(value.get("body") or value.get("text") or "")
    return "" if value is None else str(value)


def build_whatsapp_payload(recipient: str, content: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert channel-neutral message content into a Graph API payload.

    ``content["type"]`` is ``TEXT`` (default) or ``INTERACTIVE``; interactive
    content carries ``interactive_type`` (``button``, ``list`` or
    ``product_list``), ``body``, optional ``header``/``footer`` and ``action``.
    """
    payload: Dict[str, Any] = {"messaging_product": "whatsapp", "to": recipient}
    message_type = str(content.get("type") or "TEXT").upper()

    if message_type == "TEXT":
        payload["type"] = "text"
        payload["text"] = {
            "body": _text_of(content.get("text")),
            "preview_url": bool(content.get("preview_url", False)),
        }
        return payload

    if message_type != "INTERACTIVE":
        raise ActionFailed(
            f"Unsupported WhatsApp message type: {message_type}", retryable=False
        )

    interactive_type = content.get("interactive_type") or "button"
    body = content.get("body")
    interactive: Dict[str, Any] = {
        "type": interactive_type,
        "body": {"text": _text_of(body) if body else _text_of(content.get("text"))},
    }
    header = content.get("header") or {}
    if header.get("text"):
        interactive["header"] = {"type": "text", "text": header["text"]}
    footer = content.get("footer") or {}
    if footer.get("text"):
        interactive["footer"] = {"text": footer["text"]}

    action = content.get("action") or {}
    if interactive_type == "product_list":
        interactive["action"] = {
            "catalog_id": action.get("catalog_id"),
            "sections": action.get("sections", []),
        }
    elif action.get("buttons"):
        buttons = []
        for idx, button in enumerate(action["buttons"]):
            reply = button.get("reply") or {}
            buttons.append(
                {
                    "type": "reply",
                    "reply": {
                        "id": reply.get("id") or button.get("id") or f"btn_{idx}",
                        "title": reply.get("title")
                        or button.get("title")
                        or f"Option {idx + 1}",
                    },
                }
            )
        interactive["action"] = {"buttons": buttons}
    elif action.get("sections"):
        interactive["action"] = {
            "button": action.get("button") or "View Options",
            "sections": action["sections"],
        }

    payload["type"] = "interactive"
    payload["interactive"] = interactive
    return payload


class WhatsAppClient:
    """Send messages through ``POST /{phone_number_id}/messages``."""

    channel = "whatsapp"

    def __init__(
        self,
        config: Optional[ChannelsConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or ChannelsConfig()
        base_url = f"{self.config.whatsapp_api_url.rstrip('/')}/{self.config.whatsapp_api_version}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=self.config.request_timeout
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def send(
        self, recipient: str, content: Mapping[str, Any], config: Mapping[str, Any]
    ) -> SendReceipt:
        phone_number_id = config.get("phoneNumberId")
        access_token = config.get("accessToken")
        if not phone_number_id or not access_token:
            raise ConfigurationError("WhatsApp channel is not configured for this business")

        payload = build_whatsapp_payload(recipient, content)
        try:
            response = await self._client.post(
                f"/{phone_number_id}/messages",
                json=payload,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error(f"WhatsApp API returned {status}: {exc.response.text}")
            raise ActionFailed(
                f"WhatsApp API error {status}",
                retryable=status >= 500 or status == 429,
                action_type="send_message",
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(f"WhatsApp API request failed: {exc}")
            raise ActionFailed(
                f"WhatsApp API request failed: {exc}", action_type="send_message"
            ) from exc

        data = response.json()
        messages = data.get("messages") or [{}]
        message_id = messages[0].get("id")
        logger.info(f"Message sent successfully: {message_id}")
        return SendReceipt(message_id=message_id, status="sent")
