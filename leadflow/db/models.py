from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from ..persistence.models import new_id, utcnow


class WorkflowExecutionRow(SQLModel, table=True):
    """Represents one workflow execution."""

    __tablename__ = "workflow_executions"

    execution_id: str = Field(default_factory=new_id, primary_key=True)
    workflow_id: str
    workflow_key: str
    intent_name: str
    business_id: str = Field(index=True)
    lead_id: str = Field(index=True)
    current_state: Optional[str] = None
    status: str = Field(default="running")
    execution_context: dict = Field(default_factory=dict, sa_column=Column(JSON))
    error_message: Optional[str] = None
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True))
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True))
    )
    completed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )


class ProcessedMessageRow(SQLModel, table=True):
    """Idempotency ledger entry."""

    __tablename__ = "processed_messages"

    message_id: str = Field(primary_key=True)
    lead_id: Optional[str] = None
    processing_status: str
    processed_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True))
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), index=True)
    )


class DeadLetterRow(SQLModel, table=True):
    """Message parked after exhausting its retries."""

    __tablename__ = "dead_letter_queue"

    id: str = Field(default_factory=new_id, primary_key=True)
    message_id: str = Field(index=True)
    lead_id: Optional[str] = None
    original_payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    error: str
    error_stack: Optional[str] = None
    attempt_count: int
    first_attempt_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    last_attempt_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    status: str = Field(default="failed", index=True)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True))
    )
    updated_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
