"""Data models for persisted orchestration state and business records."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

LedgerStatus = Literal["success", "failed", "retrying"]
DeadLetterStatus = Literal["failed", "retrying", "resolved"]

TERMINAL_LEDGER_STATUSES = frozenset({"success", "failed"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# ----------------------------------------------------------------------
# Orchestration state
class WorkflowExecutionRecord(BaseModel):
    """Persisted progress of one workflow execution."""

    execution_id: str = Field(default_factory=new_id)
    workflow_id: str
    workflow_key: str
    intent_name: str
    business_id: str
    lead_id: str
    current_state: Optional[str] = None
    status: str = "running"
    execution_context: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class ProcessedMessageRecord(BaseModel):
    """Idempotency ledger entry; a terminal entry means "do not reprocess"."""

    message_id: str
    lead_id: Optional[str] = None
    processing_status: LedgerStatus
    processed_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    @classmethod
    def create(
        cls,
        message_id: str,
        lead_id: Optional[str],
        status: LedgerStatus,
        ttl_hours: int,
    ) -> "ProcessedMessageRecord":
        now = utcnow()
        return cls(
            message_id=message_id,
            lead_id=lead_id,
            processing_status=status,
            processed_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )

    @property
    def is_terminal(self) -> bool:
        return self.processing_status in TERMINAL_LEDGER_STATUSES


class DeadLetterRecord(BaseModel):
    """Message that exhausted its retries, parked for operator review."""

    id: str = Field(default_factory=new_id)
    message_id: str
    lead_id: Optional[str] = None
    original_payload: Dict[str, Any] = Field(default_factory=dict)
    error: str
    error_stack: Optional[str] = None
    attempt_count: int
    first_attempt_at: datetime
    last_attempt_at: datetime
    status: DeadLetterStatus = "failed"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


# ----------------------------------------------------------------------
# Business configuration (read-only to the orchestration core)
class BusinessRecord(BaseModel):
    business_id: str
    business_name: Optional[str] = None
    business_type: str


class LeadRecord(BaseModel):
    lead_id: str
    business_id: str
    tenant_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    platform_user_id: Optional[str] = None
    status: str = "new"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class ConversationRecord(BaseModel):
    conversation_id: str
    lead_id: str
    channel: str
    status: str = "active"
    updated_at: datetime = Field(default_factory=utcnow)


class ChannelAccount(BaseModel):
    """Connected messaging account; ``access_token`` is stored encrypted."""

    business_id: str
    platform: str
    page_id: Optional[str] = None
    access_token: Optional[str] = None
    catalog_id: Optional[str] = None
    is_active: bool = True


class WorkflowDefinitionRecord(BaseModel):
    """Stored workflow; ``business_type`` is set for business-type defaults."""

    workflow_id: str
    workflow_key: str
    workflow_name: Optional[str] = None
    business_type: Optional[str] = None
    intent_name: Optional[str] = None
    definition: Dict[str, Any]
    is_active: bool = True


class BusinessWorkflowAssignment(BaseModel):
    business_id: str
    intent_name: str
    workflow_id: str
    is_active: bool = True


class CategoryRecord(BaseModel):
    category_id: str
    business_id: str
    name: str
    slug: str
    description: Optional[str] = None
    is_active: bool = True


class ProductRecord(BaseModel):
    product_id: str
    business_id: str
    category_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: float = 0
    currency: str = "USD"
    in_stock: bool = True
    in_whatsapp_catalog: bool = True
    is_active: bool = True


# ----------------------------------------------------------------------
# Records written by action handlers
class TaskRecord(BaseModel):
    task_id: str = Field(default_factory=new_id)
    lead_id: str
    business_id: str
    tenant_id: Optional[str] = None
    task_type: str
    title: str
    description: Optional[str] = None
    status: str = "pending"
    priority: str = "normal"
    assigned_to_type: Optional[str] = None
    assigned_to_id: Optional[str] = None
    due_date: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class LeadActivity(BaseModel):
    activity_id: str = Field(default_factory=new_id)
    lead_id: Optional[str] = None
    business_id: Optional[str] = None
    tenant_id: Optional[str] = None
    activity_type: str
    activity_description: str
    actor_type: str = "system"
    channel: str = "automation"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    activity_timestamp: datetime = Field(default_factory=utcnow)


class OutgoingMessage(BaseModel):
    message_id: str = Field(default_factory=new_id)
    conversation_id: str
    lead_id: str
    business_id: str
    tenant_id: Optional[str] = None
    sender_type: str = "business"
    message_text: str
    message_type: str = "text"
    platform_message_id: Optional[str] = None
    delivery_status: str = "sent"
    is_automated: bool = True
    created_at: datetime = Field(default_factory=utcnow)
