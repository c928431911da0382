"""Message contracts exchanged between the transport, orchestrator and workflows."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import UNKNOWN_INTENT
from .utils.paths import MISSING, lookup_path


class IntentPrediction(BaseModel):
    """Intent detected by the AI classification service."""

    intent: str = UNKNOWN_INTENT
    confidence: float = 0.0
    category: Optional[str] = None


class MessageMetadata(BaseModel):
    """Channel metadata about the inbound customer message."""

    message_id: Optional[str] = None
    channel: Optional[str] = None
    conversation_id: Optional[str] = None
    interactive_selection: Optional[str] = None


class AiProcessResult(BaseModel):
    """Classification result delivered by the AI service for one inbound message.

    ``lead_id`` and ``business_id`` are optional here so that a malformed
    payload still parses and can be rejected (and dead-lettered) by the
    orchestrator's validation step.
    """

    model_config = ConfigDict(extra="allow")

    processing_id: str
    lead_id: Optional[str] = None
    business_id: Optional[str] = None
    tenant_id: Optional[str] = None
    intent: IntentPrediction = Field(default_factory=IntentPrediction)
    entities: Dict[str, Any] = Field(default_factory=dict)
    structured_data: Optional[Dict[str, Any]] = None
    suggested_actions: List[str] = Field(default_factory=list)
    suggested_response: Optional[str] = None
    processing_time_ms: float = 0
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)


class QueueEnvelope(BaseModel):
    """Transport wrapper carrying the delivery attempt across redeliveries."""

    envelope_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    attempt: int = 1
    payload: AiProcessResult
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    first_attempt_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_json(self) -> str:
        """Serialize envelope to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "QueueEnvelope":
        """Deserialize envelope from JSON."""
        return cls.model_validate_json(data)

    def next_attempt(self) -> "QueueEnvelope":
        """Return a copy scheduled as the following delivery attempt."""
        return self.model_copy(
            update={
                "envelope_id": str(uuid.uuid4()),
                "attempt": self.attempt + 1,
                "enqueued_at": datetime.now(timezone.utc),
            }
        )


class ProcessingOutcome(BaseModel):
    """Result of processing one AI classification result."""

    success: bool
    response_message: Optional[str] = None
    actions: List[str] = Field(default_factory=list)
    executed_actions: List[str] = Field(default_factory=list)
    failed_actions: List[str] = Field(default_factory=list)
    duplicate: bool = False
    workflow_status: Optional[str] = None
    retry_in_ms: Optional[int] = None
    dead_lettered: bool = False
    error: Optional[str] = None


class BusinessInfo(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None


class WorkflowExecutionContext(BaseModel):
    """State threaded through one workflow execution or saga invocation.

    Known fields are typed; values produced by actions land in ``variables``.
    Templates and expressions address fields by their camelCase names
    (``leadName``, ``businessId``) or their attribute names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    lead_id: str
    business_id: str
    tenant_id: Optional[str] = None
    lead_name: Optional[str] = None
    lead_phone: Optional[str] = None
    platform_user_id: Optional[str] = None

    conversation_id: Optional[str] = None
    channel: str = "whatsapp"
    message_id: Optional[str] = None
    channel_config: Dict[str, Any] = Field(default_factory=dict)

    intent: Optional[str] = None
    intent_confidence: Optional[float] = None
    entities: Dict[str, Any] = Field(default_factory=dict)
    suggested_actions: List[str] = Field(default_factory=list)
    suggested_response: Optional[str] = None

    business: BusinessInfo = Field(default_factory=BusinessInfo)
    ai_result: Optional[Dict[str, Any]] = None

    variables: Dict[str, Any] = Field(default_factory=dict)

    def set_variable(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def get_variable(self, name: str, default: Any = None) -> Any:
        return self.variables.get(name, default)

    def template_scope(self) -> Dict[str, Any]:
        """Flatten the context into the mapping seen by templates and expressions."""
        scope: Dict[str, Any] = dict(self.variables)
        scope.update(self.model_dump(exclude={"variables"}))
        scope.update(self.model_dump(by_alias=True, exclude={"variables"}))
        return scope

    def lookup(self, path: str) -> Any:
        """Resolve a dotted path, returning ``MISSING`` when it does not exist."""
        parts = [p.strip() for p in path.split(".")]
        if parts and parts[0] == "context":
            parts = parts[1:]
        if not parts:
            return MISSING
        return lookup_path(self.template_scope(), parts)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe copy used when persisting an execution record."""
        return json.loads(json.dumps(self.model_dump(by_alias=True), default=str))
