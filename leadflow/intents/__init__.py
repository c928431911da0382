from .base import (
    BaseIntentHandler,
    IntentContext,
    IntentHandler,
    IntentHandlerResult,
)
from .factory import IntentHandlerFactory, default_handlers
from .handlers import (
    ComplaintHandler,
    GeneralInquiryHandler,
    OrderRequestHandler,
    PricingInquiryHandler,
    UnknownIntentHandler,
)

__all__ = [
    "BaseIntentHandler",
    "ComplaintHandler",
    "GeneralInquiryHandler",
    "IntentContext",
    "IntentHandler",
    "IntentHandlerFactory",
    "IntentHandlerResult",
    "OrderRequestHandler",
    "PricingInquiryHandler",
    "UnknownIntentHandler",
    "default_handlers",
]
