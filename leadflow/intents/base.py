"""Intent handler strategy interface."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.5
HIGH_CONFIDENCE = 0.8


class IntentContext(BaseModel):
    lead_id: str
    business_id: str
    tenant_id: str
    intent: str
    confidence: float = 0.0
    entities: Dict[str, Any] = Field(default_factory=dict)
    original_message: str = ""


class IntentHandlerResult(BaseModel):
    actions: List[str] = Field(default_factory=list)
    response_message: str = ""
    should_escalate: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class IntentHandler(Protocol):
    intent_type: str
    priority: int

    def can_handle(self, context: IntentContext) -> bool: ...

    async def handle(self, context: IntentContext) -> IntentHandlerResult: ...


class BaseIntentHandler:
    """Shared confidence gating and escalation for intent strategies.

    Results below ``HIGH_CONFIDENCE`` are escalated and get a trailing
    ``flag_for_review`` action.
    """

    intent_type: str = ""
    priority: int = 0

    def can_handle(self, context: IntentContext) -> bool:
        return context.intent == self.intent_type and context.confidence >= MIN_CONFIDENCE

    async def handle(self, context: IntentContext) -> IntentHandlerResult:
        logger.info(
            f"Handling {context.intent} (confidence: {context.confidence}) "
            f"for lead {context.lead_id}"
        )
        result = await self.process(context)
        if context.confidence < HIGH_CONFIDENCE:
            result.should_escalate = True
            if "flag_for_review" not in result.actions:
                result.actions.append("flag_for_review")
        return result

    async def process(self, context: IntentContext) -> IntentHandlerResult:
        raise NotImplementedError

    def create_response(
        self,
        actions: List[str],
        message: str,
        should_escalate: bool = False,
        metadata: Dict[str, Any] | None = None,
    ) -> IntentHandlerResult:
        return IntentHandlerResult(
            actions=list(dict.fromkeys(actions)),
            response_message=message,
            should_escalate=should_escalate,
            metadata=metadata or {},
        )
