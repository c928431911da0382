"""Default intent strategies."""

from __future__ import annotations

from ..constants import UNKNOWN_INTENT
from .base import (
    HIGH_CONFIDENCE,
    MIN_CONFIDENCE,
    BaseIntentHandler,
    IntentContext,
    IntentHandlerResult,
)


def _mentions(context: IntentContext, *words: str) -> bool:
    text = context.original_message.lower()
    return any(word in text for word in words)


class OrderRequestHandler(BaseIntentHandler):
    intent_type = "ORDER_REQUEST"
    priority = 10

    async def process(self, context: IntentContext) -> IntentHandlerResult:
        actions = ["create_order", "notify_sales"]
        message = "Thank you for your order request! "
        product = context.entities.get("product")
        quantity = context.entities.get("quantity")
        urgency = context.entities.get("urgency")

        if context.confidence > HIGH_CONFIDENCE:
            if product and quantity:
                message += f"We've received your request for {quantity} units of {product}. "
                actions.append("check_inventory")
            message += "Our sales team will contact you shortly with details."
        else:
            message += (
                "We need a few more details to process your order. "
                "Our team will reach out to confirm."
            )
            actions.append("request_clarification")

        if urgency in ("urgent", "immediate"):
            actions.extend(["priority_high", "notify_supervisor"])
            message += " We will prioritize this as urgent."

        needs_confirmation = context.confidence <= HIGH_CONFIDENCE
        return self.create_response(
            actions,
            message,
            needs_confirmation,
            {
                "orderDetails": {"product": product, "quantity": quantity, "urgency": urgency},
                "requiresConfirmation": needs_confirmation,
            },
        )


class ComplaintHandler(BaseIntentHandler):
    intent_type = "COMPLAINT"
    priority = 10

    async def process(self, context: IntentContext) -> IntentHandlerResult:
        actions = ["create_support_ticket", "notify_support_team", "priority_high"]
        severity = context.entities.get("severity")
        category = context.entities.get("category")
        order_id = context.entities.get("orderId")
        message = "I'm sorry to hear about this issue. "

        critical = severity in ("critical", "urgent") or _mentions(
            context, "urgent", "immediately"
        )
        if critical:
            message += (
                "We're escalating this to our support team immediately. "
                "A supervisor will contact you within the next hour."
            )
            actions.extend(["notify_supervisor", "priority_critical", "immediate_followup"])
        else:
            message += (
                "We're creating a support ticket and our team will reach out "
                "shortly to resolve this."
            )
            actions.append("schedule_followup")

        if order_id:
            actions.extend(["fetch_order_details", "notify_fulfillment_team"])
            message += f" We'll review your order #{order_id} and get back to you."
        if critical:
            actions.append("consider_compensation")

        return self.create_response(
            actions,
            message,
            True,
            {
                "severity": "critical" if critical else "normal",
                "category": category,
                "orderId": order_id,
                "requiresImmediateAction": critical,
            },
        )


class PricingInquiryHandler(BaseIntentHandler):
    intent_type = "PRICING_INQUIRY"
    priority = 8

    async def process(self, context: IntentContext) -> IntentHandlerResult:
        actions = ["send_price_list", "assign_to_sales"]
        product = context.entities.get("product")
        category = context.entities.get("category")
        volume = context.entities.get("volume")
        message = "Thanks for your interest in our pricing! "

        if product:
            message += f"I'll share the pricing details for {product}. "
            actions.append("fetch_product_pricing")
        elif category:
            message += f"I'll send you the pricing for our {category} category. "
            actions.append("fetch_category_pricing")
        else:
            message += "I'll share our complete price list with you. "
            actions.append("send_general_price_list")

        try:
            bulk = volume is not None and int(volume) > 100
        except (TypeError, ValueError):
            bulk = False
        if bulk:
            message += (
                "For bulk orders, we offer special pricing. "
                "Our sales team will contact you with a custom quote."
            )
            actions.extend(["prepare_custom_quote", "notify_sales_manager"])
        else:
            message += "A sales representative will follow up if you have any questions."

        return self.create_response(
            actions,
            message,
            False,
            {
                "pricingRequest": {"product": product, "category": category, "volume": volume},
                "requiresCustomQuote": bulk,
            },
        )


# category -> (keywords, opening line, actions, response time)
_INQUIRY_CATEGORIES = {
    "product_information": (
        ("product", "item", "catalog"),
        "Thank you for your interest in our products!",
        ["send_product_catalog", "track_product_interest"],
        "15-30 minutes",
    ),
    "business_hours": (
        ("hours", "open", "close", "timing"),
        "Thanks for asking about our business hours.",
        ["send_business_hours"],
        "immediate",
    ),
    "location_store": (
        ("location", "address", "where", "store"),
        "Let me help you find our location.",
        ["send_location_details", "send_store_locator"],
        "immediate",
    ),
    "return_policy": (
        ("return", "refund", "exchange"),
        "Thank you for inquiring about our return policy.",
        ["send_return_policy", "send_terms_conditions"],
        "30-60 minutes",
    ),
    "shipping_delivery": (
        ("shipping", "delivery", "courier"),
        "I can help you with shipping and delivery information.",
        ["send_shipping_info", "check_delivery_zones"],
        "15-30 minutes",
    ),
    "payment_methods": (
        ("payment", "pay", "credit card", "cash"),
        "Thanks for asking about payment options.",
        ["send_payment_options"],
        "immediate",
    ),
}
_GENERAL_QUESTION = "general_question"
_URGENT_WORDS = ("urgent", "asap", "immediately", "emergency", "right now", "today", "quickly")


class GeneralInquiryHandler(BaseIntentHandler):
    intent_type = "GENERAL_INQUIRY"
    priority = 5

    def _category(self, context: IntentContext) -> str:
        category = context.entities.get("category")
        if category:
            return category
        for name, (keywords, *_rest) in _INQUIRY_CATEGORIES.items():
            if _mentions(context, *keywords):
                return name
        return _GENERAL_QUESTION

    async def process(self, context: IntentContext) -> IntentHandlerResult:
        actions = ["log_inquiry"]
        category = self._category(context)
        known = _INQUIRY_CATEGORIES.get(category)

        if known is not None:
            _keywords, message, extra, response_time = known
            actions.extend(extra)
            if context.confidence <= HIGH_CONFIDENCE:
                actions.append("assign_to_support")
        else:
            message = "Thank you for your inquiry!"
            response_time = "30-60 minutes"
            actions.extend(["assign_to_support", "send_faq"])
            if context.confidence > MIN_CONFIDENCE:
                message += " Our support team will assist you with your question."
            else:
                message += (
                    " Thank you for reaching out. Our team will review your "
                    "inquiry and respond shortly."
                )
                actions.append("flag_for_review")

        if context.entities.get("urgency") in ("urgent", "asap", "immediate") or _mentions(
            context, *_URGENT_WORDS
        ):
            actions.extend(["priority_high", "notify_support_team"])
            message += " We will prioritize your inquiry."

        actions.extend(["schedule_followup", "track_customer_interest"])
        needs_human = context.confidence <= HIGH_CONFIDENCE
        return self.create_response(
            actions,
            message,
            needs_human,
            {
                "inquiryCategory": category,
                "topic": context.entities.get("topic") or "general",
                "requiresHumanResponse": needs_human,
                "estimatedResponseTime": response_time,
            },
        )


class UnknownIntentHandler(BaseIntentHandler):
    """Fallback for ``UNKNOWN`` and low-confidence intents; always escalates."""

    intent_type = UNKNOWN_INTENT
    priority = 1

    def can_handle(self, context: IntentContext) -> bool:
        return context.intent == UNKNOWN_INTENT or context.confidence < MIN_CONFIDENCE

    async def process(self, context: IntentContext) -> IntentHandlerResult:
        actions = ["flag_for_review", "notify_agent", "requires_human_intervention"]
        message = (
            "Thank you for your message. Our team will review this and get back to you soon."
        )
        if _mentions(context, "urgent", "emergency"):
            actions.extend(["priority_high", "notify_supervisor"])
            message = (
                "Thank you for reaching out. We understand this may be urgent. "
                "A team member will contact you as soon as possible."
            )
        return self.create_response(
            actions,
            message,
            True,
            {
                "reason": "low_confidence_or_unknown_intent",
                "originalIntent": context.intent,
                "confidence": context.confidence,
            },
        )
