from __future__ import annotations

import logging
from typing import Iterable, Optional

from .base import IntentContext, IntentHandler
from .handlers import (
    ComplaintHandler,
    GeneralInquiryHandler,
    OrderRequestHandler,
    PricingInquiryHandler,
    UnknownIntentHandler,
)

logger = logging.getLogger(__name__)


def default_handlers() -> list[IntentHandler]:
    return [
        OrderRequestHandler(),
        ComplaintHandler(),
        PricingInquiryHandler(),
        GeneralInquiryHandler(),
        UnknownIntentHandler(),
    ]


class IntentHandlerFactory:
    """Pick the highest-priority handler able to handle a classification."""

    def __init__(self, handlers: Optional[Iterable[IntentHandler]] = None) -> None:
        self._handlers: list[IntentHandler] = list(
            default_handlers() if handlers is None else handlers
        )
        self._sort()
        logger.debug(
            f"Registered {len(self._handlers)} intent handlers: "
            f"{', '.join(h.intent_type for h in self._handlers)}"
        )

    def _sort(self) -> None:
        # stable sort keeps registration order for equal priorities
        self._handlers.sort(key=lambda h: h.priority, reverse=True)

    def register(self, handler: IntentHandler) -> None:
        """Add ``handler``, replacing any handler for the same intent type."""
        self._handlers = [h for h in self._handlers if h.intent_type != handler.intent_type]
        self._handlers.append(handler)
        self._sort()
        logger.info(f"Registered custom handler: {handler.intent_type}")

    def get_handler(self, context: IntentContext) -> IntentHandler:
        for handler in self._handlers:
            if handler.can_handle(context):
                logger.debug(f"Selected {handler.intent_type} handler for {context.intent}")
                return handler
        logger.warning(f"No handler found for intent: {context.intent}, using fallback")
        return self._handlers[-1]

    def get_handler_by_type(self, intent_type: str) -> IntentHandler | None:
        for handler in self._handlers:
            if handler.intent_type == intent_type:
                return handler
        return None

    def handlers(self) -> list[IntentHandler]:
        return list(self._handlers)
