"""Repository abstractions for orchestration state and business records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol

from .models import (
    BusinessRecord,
    ChannelAccount,
    CategoryRecord,
    ConversationRecord,
    DeadLetterRecord,
    LeadActivity,
    LeadRecord,
    OutgoingMessage,
    ProcessedMessageRecord,
    ProductRecord,
    TaskRecord,
    WorkflowDefinitionRecord,
    WorkflowExecutionRecord,
)


class ExecutionStore(Protocol):
    """Persistence of workflow execution records."""

    async def create_execution(self, record: WorkflowExecutionRecord) -> None:
        """Persist the initial execution record."""

    async def update_execution_state(self, execution_id: str, current_state: str) -> None:
        """Record a state transition."""

    async def complete_execution(self, execution_id: str, final_state: str) -> None:
        """Mark the execution as completed."""

    async def fail_execution(self, execution_id: str, error_message: str) -> None:
        """Mark the execution as failed."""

    async def mark_execution_waiting(self, execution_id: str, current_state: str) -> None:
        """Suspend the execution awaiting an external event."""

    async def get_execution(self, execution_id: str) -> WorkflowExecutionRecord | None:
        """Retrieve an execution by id."""

    async def list_executions(self, limit: int = 100) -> list[WorkflowExecutionRecord]:
        """Return the most recent executions."""


class LedgerStore(Protocol):
    """Storage backend for the idempotency ledger."""

    async def get_processed_message(self, message_id: str) -> ProcessedMessageRecord | None:
        """Return the ledger entry for ``message_id`` if one exists."""

    async def save_processed_message(self, record: ProcessedMessageRecord) -> None:
        """Insert or replace the ledger entry for ``record.message_id``."""

    async def delete_processed_message(self, message_id: str) -> None:
        """Remove the ledger entry for ``message_id``."""

    async def delete_expired_messages(self, now: datetime) -> int:
        """Delete entries whose ``expires_at`` is before ``now``."""


class DeadLetterStore(Protocol):
    """Durable storage for dead-lettered messages."""

    async def add_dead_letter(self, record: DeadLetterRecord) -> DeadLetterRecord:
        """Persist a dead letter."""

    async def get_dead_letter(self, dlq_id: str) -> DeadLetterRecord | None:
        """Retrieve a dead letter by id."""

    async def list_dead_letters(
        self, status: Optional[str] = None, limit: int = 100
    ) -> list[DeadLetterRecord]:
        """Return dead letters, newest first."""

    async def update_dead_letter_status(
        self, dlq_id: str, status: str
    ) -> DeadLetterRecord | None:
        """Change the status of a dead letter."""

    async def record_dead_letter_attempt(
        self, dlq_id: str, error: str, error_stack: Optional[str], attempted_at: datetime
    ) -> DeadLetterRecord | None:
        """Return a dead letter to ``failed`` after another unsuccessful attempt."""


class Repository(ExecutionStore, LedgerStore, DeadLetterStore, Protocol):
    """Everything the orchestration core persists."""


class Directory(Protocol):
    """Read-only lookups against leads and business configuration."""

    async def get_business(self, business_id: str) -> BusinessRecord | None: ...

    async def get_lead(self, lead_id: str) -> LeadRecord | None: ...

    async def get_active_conversation(self, lead_id: str) -> ConversationRecord | None:
        """Return the lead's most recently updated active conversation."""

    async def get_channel_account(
        self, business_id: str, channel: str
    ) -> ChannelAccount | None: ...

    async def find_business_workflow(
        self, business_id: str, intent_name: str
    ) -> WorkflowDefinitionRecord | None:
        """Active workflow explicitly assigned to ``intent_name`` for the business."""

    async def find_default_workflow(
        self, business_type: str, intent_name: str
    ) -> WorkflowDefinitionRecord | None:
        """Active business-type default workflow for ``intent_name``."""

    async def list_business_workflows(
        self, business_id: str
    ) -> list[tuple[str, WorkflowDefinitionRecord]]:
        """Active (intent, workflow) assignments for the business."""

    async def list_categories(self, business_id: str) -> list[CategoryRecord]: ...

    async def find_category(self, business_id: str, slug: str) -> CategoryRecord | None: ...

    async def list_products(
        self,
        business_id: str,
        category_id: Optional[str] = None,
        catalog_only: bool = True,
        limit: int = 10,
    ) -> list[ProductRecord]: ...


class RecordStore(Protocol):
    """Mutations performed by action handlers."""

    async def create_task(self, task: TaskRecord) -> TaskRecord: ...

    async def update_task(self, task_id: str, **changes: Any) -> TaskRecord | None: ...

    async def get_task(self, task_id: str) -> TaskRecord | None: ...

    async def find_tasks(self, **filters: Any) -> list[TaskRecord]: ...

    async def log_activity(self, activity: LeadActivity) -> LeadActivity: ...

    async def list_activities(self, lead_id: Optional[str] = None) -> list[LeadActivity]: ...

    async def update_lead_status(self, lead_id: str, status: str) -> None: ...

    async def record_outgoing_message(self, message: OutgoingMessage) -> OutgoingMessage: ...
