import json

import httpx
import pytest

from leadflow.channels import WhatsAppClient, build_whatsapp_payload
from leadflow.errors import ActionFailed, ConfigurationError

CONFIG = {"phoneNumberId": "phone-123", "accessToken": "secret-token"}


def _client(handler) -> WhatsAppClient:
    http = httpx.AsyncClient(
        base_url="https://graph.facebook.com/v18.0", transport=httpx.MockTransport(handler)
    )
    return WhatsAppClient(client=http)


def test_text_payload():
    payload = build_whatsapp_payload("15550001", {"type": "TEXT", "text": "Hi Ada"})
    assert payload == {
        "messaging_product": "whatsapp",
        "to": "15550001",
        "type": "text",
        "text": {"body": "Hi Ada", "preview_url": False},
    }
    assert build_whatsapp_payload("1", {"text": {"body": "nested"}})["text"]["body"] == "nested"


def test_interactive_button_and_list_payloads():
    buttons = build_whatsapp_payload(
        "1",
        {
            "type": "INTERACTIVE",
            "interactive_type": "button",
            "body": {"text": "Pick one"},
            "header": {"text": "Menu"},
            "action": {"buttons": [{"id": "yes", "title": "Yes"}, {"reply": {"id": "no", "title": "No"}}]},
        },
    )
    interactive = buttons["interactive"]
    assert buttons["type"] == "interactive"
    assert interactive["header"] == {"type": "text", "text": "Menu"}
    assert [b["reply"]["id"] for b in interactive["action"]["buttons"]] == ["yes", "no"]

    listing = build_whatsapp_payload(
        "1",
        {
            "type": "INTERACTIVE",
            "interactive_type": "list",
            "body": {"text": "Categories"},
            "action": {"sections": [{"title": "All", "rows": []}]},
        },
    )
    assert listing["interactive"]["action"]["button"] == "View Options"


def test_product_list_payload():
    payload = build_whatsapp_payload(
        "1",
        {
            "type": "INTERACTIVE",
            "interactive_type": "product_list",
            "body": {"text": "Desks"},
            "footer": {"text": "Reply with a code"},
            "action": {"catalog_id": "catalog-9", "sections": [{"title": "Desks", "product_items": []}]},
        },
    )
    assert payload["interactive"]["action"]["catalog_id"] == "catalog-9"
    assert payload["interactive"]["footer"] == {"text": "Reply with a code"}


def test_unsupported_type_is_not_retryable():
    with pytest.raises(ActionFailed) as exc_info:
        build_whatsapp_payload("1", {"type": "VIDEO"})
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_send_posts_to_phone_number_endpoint():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.out.1"}]})

    receipt = await _client(handler).send("15550001", {"type": "TEXT", "text": "Hi"}, CONFIG)

    assert receipt.message_id == "wamid.out.1"
    assert receipt.status == "sent"
    assert seen["url"] == "https://graph.facebook.com/v18.0/phone-123/messages"
    assert seen["auth"] == "Bearer secret-token"
    assert seen["body"]["to"] == "15550001"


@pytest.mark.asyncio
@pytest.mark.parametrize("status,retryable", [(500, True), (429, True), (400, False)])
async def test_http_errors_map_to_action_failed(status, retryable):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": {"message": "nope"}})

    with pytest.raises(ActionFailed) as exc_info:
        await _client(handler).send("1", {"type": "TEXT", "text": "Hi"}, CONFIG)
    assert exc_info.value.retryable is retryable


@pytest.mark.asyncio
async def test_transport_errors_are_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ActionFailed) as exc_info:
        await _client(handler).send("1", {"type": "TEXT", "text": "Hi"}, CONFIG)
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_missing_channel_config():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("should not be called")

    with pytest.raises(ConfigurationError):
        await _client(handler).send("1", {"type": "TEXT", "text": "Hi"}, {})
