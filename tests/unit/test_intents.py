import pytest

from leadflow.intents import (
    BaseIntentHandler,
    IntentContext,
    IntentHandlerFactory,
    IntentHandlerResult,
)


def _ctx(intent, confidence=0.9, entities=None, message=""):
    return IntentContext(
        lead_id="lead-1",
        business_id="biz-1",
        tenant_id="tenant-1",
        intent=intent,
        confidence=confidence,
        entities=entities or {},
        original_message=message,
    )


@pytest.mark.asyncio
async def test_confident_order_request():
    factory = IntentHandlerFactory()
    ctx = _ctx("ORDER_REQUEST", 0.95, {"product": "Desk Lamp", "quantity": 4})
    handler = factory.get_handler(ctx)
    assert handler.intent_type == "ORDER_REQUEST"

    result = await handler.handle(ctx)
    assert result.actions == ["create_order", "notify_sales", "check_inventory"]
    assert "4 units of Desk Lamp" in result.response_message
    assert result.should_escalate is False


@pytest.mark.asyncio
async def test_medium_confidence_escalates_and_flags_for_review():
    factory = IntentHandlerFactory()
    ctx = _ctx("ORDER_REQUEST", 0.6)
    result = await factory.get_handler(ctx).handle(ctx)
    assert result.should_escalate is True
    assert result.actions[-1] == "flag_for_review"
    assert "request_clarification" in result.actions


@pytest.mark.asyncio
async def test_low_confidence_falls_back_to_unknown():
    factory = IntentHandlerFactory()
    ctx = _ctx("COMPLAINT", 0.3)
    handler = factory.get_handler(ctx)
    assert handler.intent_type == "UNKNOWN"
    result = await handler.handle(ctx)
    assert result.actions.count("flag_for_review") == 1


@pytest.mark.asyncio
async def test_critical_complaint_from_message_text():
    factory = IntentHandlerFactory()
    ctx = _ctx("COMPLAINT", 0.9, {"orderId": "A-17"}, message="Please fix this immediately")
    result = await factory.get_handler(ctx).handle(ctx)
    assert result.metadata["requiresImmediateAction"] is True
    assert result.actions[0] == "create_support_ticket"
    assert "consider_compensation" in result.actions
    assert "#A-17" in result.response_message


@pytest.mark.asyncio
async def test_general_inquiry_keyword_category():
    factory = IntentHandlerFactory()
    ctx = _ctx("GENERAL_INQUIRY", 0.9, message="What are your opening hours?")
    result = await factory.get_handler(ctx).handle(ctx)
    assert result.metadata["inquiryCategory"] == "business_hours"
    assert "send_business_hours" in result.actions


@pytest.mark.asyncio
async def test_bulk_pricing_inquiry():
    factory = IntentHandlerFactory()
    ctx = _ctx("PRICING_INQUIRY", 0.9, {"product": "Chair", "volume": "250"})
    result = await factory.get_handler(ctx).handle(ctx)
    assert result.metadata["requiresCustomQuote"] is True
    assert "prepare_custom_quote" in result.actions


class VipOrderHandler(BaseIntentHandler):
    intent_type = "ORDER_REQUEST"
    priority = 20

    async def process(self, context):
        return self.create_response(["create_order", "create_order", "notify_sales"], "VIP")


@pytest.mark.asyncio
async def test_register_replaces_handler_of_same_type():
    factory = IntentHandlerFactory()
    factory.register(VipOrderHandler())

    handlers = factory.handlers()
    assert [h.intent_type for h in handlers].count("ORDER_REQUEST") == 1
    assert handlers[0].intent_type == "ORDER_REQUEST"

    result = await factory.get_handler(_ctx("ORDER_REQUEST")).handle(_ctx("ORDER_REQUEST"))
    assert isinstance(result, IntentHandlerResult)
    assert result.actions == ["create_order", "notify_sales"]
    assert factory.get_handler_by_type("PRICING_INQUIRY") is not None
    assert factory.get_handler_by_type("NOPE") is None
