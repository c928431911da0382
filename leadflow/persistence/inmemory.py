"""In-memory implementations of the persistence protocols."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import (
    BusinessRecord,
    BusinessWorkflowAssignment,
    CategoryRecord,
    ChannelAccount,
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
    utcnow,
)
from .repository import Directory, RecordStore, Repository


class InMemoryRepository(Repository):
    """Store executions, ledger entries and dead letters in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, WorkflowExecutionRecord] = {}
        self._ledger: Dict[str, ProcessedMessageRecord] = {}
        self._dead_letters: Dict[str, DeadLetterRecord] = {}

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, record: WorkflowExecutionRecord) -> None:
        self._executions[record.execution_id] = record.model_copy(deep=True)

    def _touch(self, execution_id: str, **changes: Any) -> None:
        record = self._executions.get(execution_id)
        if record is None:
            return
        changes.setdefault("updated_at", utcnow())
        self._executions[execution_id] = record.model_copy(update=changes)

    async def update_execution_state(self, execution_id: str, current_state: str) -> None:
        self._touch(execution_id, current_state=current_state)

    async def complete_execution(self, execution_id: str, final_state: str) -> None:
        self._touch(
            execution_id,
            status="completed",
            current_state=final_state,
            completed_at=utcnow(),
        )

    async def fail_execution(self, execution_id: str, error_message: str) -> None:
        self._touch(
            execution_id,
            status="failed",
            error_message=error_message,
            completed_at=utcnow(),
        )

    async def mark_execution_waiting(self, execution_id: str, current_state: str) -> None:
        self._touch(execution_id, status="waiting", current_state=current_state)

    async def get_execution(self, execution_id: str) -> WorkflowExecutionRecord | None:
        return self._executions.get(execution_id)

    async def list_executions(self, limit: int = 100) -> list[WorkflowExecutionRecord]:
        records = sorted(
            self._executions.values(), key=lambda r: r.created_at, reverse=True
        )
        return records[:limit]

    # ------------------------------------------------------------------
    # Idempotency ledger
    async def get_processed_message(self, message_id: str) -> ProcessedMessageRecord | None:
        return self._ledger.get(message_id)

    async def save_processed_message(self, record: ProcessedMessageRecord) -> None:
        self._ledger[record.message_id] = record

    async def delete_processed_message(self, message_id: str) -> None:
        self._ledger.pop(message_id, None)

    async def delete_expired_messages(self, now: datetime) -> int:
        expired = [mid for mid, rec in self._ledger.items() if rec.expires_at < now]
        for message_id in expired:
            del self._ledger[message_id]
        return len(expired)

    # ------------------------------------------------------------------
    # Dead letters
    async def add_dead_letter(self, record: DeadLetterRecord) -> DeadLetterRecord:
        self._dead_letters[record.id] = record
        return record

    async def get_dead_letter(self, dlq_id: str) -> DeadLetterRecord | None:
        return self._dead_letters.get(dlq_id)

    async def list_dead_letters(
        self, status: Optional[str] = None, limit: int = 100
    ) -> list[DeadLetterRecord]:
        records = [
            r for r in self._dead_letters.values() if status is None or r.status == status
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    async def update_dead_letter_status(
        self, dlq_id: str, status: str
    ) -> DeadLetterRecord | None:
        record = self._dead_letters.get(dlq_id)
        if record is None:
            return None
        updated = record.model_copy(update={"status": status, "updated_at": utcnow()})
        self._dead_letters[dlq_id] = updated
        return updated

    async def record_dead_letter_attempt(
        self, dlq_id: str, error: str, error_stack: Optional[str], attempted_at: datetime
    ) -> DeadLetterRecord | None:
        record = self._dead_letters.get(dlq_id)
        if record is None:
            return None
        updated = record.model_copy(
            update={
                "status": "failed",
                "error": error,
                "error_stack": error_stack,
                "attempt_count": record.attempt_count + 1,
                "last_attempt_at": attempted_at,
                "updated_at": utcnow(),
            }
        )
        self._dead_letters[dlq_id] = updated
        return updated


class InMemoryDirectory(Directory):
    """Business configuration held in memory, optionally loaded from YAML."""

    def __init__(self) -> None:
        self.businesses: Dict[str, BusinessRecord] = {}
        self.leads: Dict[str, LeadRecord] = {}
        self.conversations: List[ConversationRecord] = []
        self.channel_accounts: List[ChannelAccount] = []
        self.workflows: Dict[str, WorkflowDefinitionRecord] = {}
        self.assignments: List[BusinessWorkflowAssignment] = []
        self.categories: List[CategoryRecord] = []
        self.products: List[ProductRecord] = []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryDirectory":
        directory = cls()
        for item in data.get("businesses", []):
            directory.add_business(BusinessRecord(**item))
        for item in data.get("leads", []):
            directory.add_lead(LeadRecord(**item))
        for item in data.get("conversations", []):
            directory.conversations.append(ConversationRecord(**item))
        for item in data.get("channel_accounts", []):
            directory.channel_accounts.append(ChannelAccount(**item))
        for item in data.get("workflows", []):
            directory.add_workflow(WorkflowDefinitionRecord(**item))
        for item in data.get("assignments", []):
            directory.assignments.append(BusinessWorkflowAssignment(**item))
        for item in data.get("categories", []):
            directory.categories.append(CategoryRecord(**item))
        for item in data.get("products", []):
            directory.products.append(ProductRecord(**item))
        return directory

    @classmethod
    def from_yaml(cls, path: str | Path) -> "InMemoryDirectory":
        """Load a business-configuration file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    # ------------------------------------------------------------------
    # Registration helpers
    def add_business(self, business: BusinessRecord) -> None:
        self.businesses[business.business_id] = business

    def add_lead(self, lead: LeadRecord) -> None:
        self.leads[lead.lead_id] = lead

    def add_workflow(self, workflow: WorkflowDefinitionRecord) -> None:
        self.workflows[workflow.workflow_id] = workflow

    def assign_workflow(self, business_id: str, intent_name: str, workflow_id: str) -> None:
        self.assignments.append(
            BusinessWorkflowAssignment(
                business_id=business_id, intent_name=intent_name, workflow_id=workflow_id
            )
        )

    # ------------------------------------------------------------------
    # Directory API
    async def get_business(self, business_id: str) -> BusinessRecord | None:
        return self.businesses.get(business_id)

    async def get_lead(self, lead_id: str) -> LeadRecord | None:
        return self.leads.get(lead_id)

    async def get_active_conversation(self, lead_id: str) -> ConversationRecord | None:
        active = [
            c for c in self.conversations if c.lead_id == lead_id and c.status == "active"
        ]
        if not active:
            return None
        return max(active, key=lambda c: c.updated_at)

    async def get_channel_account(
        self, business_id: str, channel: str
    ) -> ChannelAccount | None:
        for account in self.channel_accounts:
            if (
                account.business_id == business_id
                and account.platform == channel
                and account.is_active
            ):
                return account
        return None

    async def find_business_workflow(
        self, business_id: str, intent_name: str
    ) -> WorkflowDefinitionRecord | None:
        for assignment in self.assignments:
            if (
                assignment.business_id == business_id
                and assignment.intent_name == intent_name
                and assignment.is_active
            ):
                workflow = self.workflows.get(assignment.workflow_id)
                if workflow is not None:
                    return workflow
        return None

    async def find_default_workflow(
        self, business_type: str, intent_name: str
    ) -> WorkflowDefinitionRecord | None:
        for workflow in self.workflows.values():
            if (
                workflow.business_type == business_type
                and workflow.intent_name == intent_name
                and workflow.is_active
            ):
                return workflow
        return None

    async def list_business_workflows(
        self, business_id: str
    ) -> list[tuple[str, WorkflowDefinitionRecord]]:
        pairs = []
        for assignment in self.assignments:
            if assignment.business_id != business_id or not assignment.is_active:
                continue
            workflow = self.workflows.get(assignment.workflow_id)
            if workflow is not None:
                pairs.append((assignment.intent_name, workflow))
        return sorted(pairs, key=lambda pair: pair[0])

    async def list_categories(self, business_id: str) -> list[CategoryRecord]:
        categories = [
            c for c in self.categories if c.business_id == business_id and c.is_active
        ]
        return sorted(categories, key=lambda c: c.name)

    async def find_category(self, business_id: str, slug: str) -> CategoryRecord | None:
        for category in self.categories:
            if category.business_id == business_id and category.slug == slug and category.is_active:
                return category
        return None

    async def list_products(
        self,
        business_id: str,
        category_id: Optional[str] = None,
        catalog_only: bool = True,
        limit: int = 10,
    ) -> list[ProductRecord]:
        products = [
            p
            for p in self.products
            if p.business_id == business_id
            and p.is_active
            and (not catalog_only or p.in_whatsapp_catalog)
            and (category_id is None or p.category_id == category_id)
        ]
        products.sort(key=lambda p: p.name)
        return products[:limit]


class InMemoryRecordStore(RecordStore):
    """Tasks, activities and outgoing messages kept in local memory.

    When constructed with an :class:`InMemoryDirectory`, lead status changes
    are applied to that directory's lead records.
    """

    def __init__(self, directory: Optional[InMemoryDirectory] = None) -> None:
        self._directory = directory
        self.tasks: Dict[str, TaskRecord] = {}
        self.activities: List[LeadActivity] = []
        self.outgoing_messages: List[OutgoingMessage] = []
        self.lead_statuses: Dict[str, str] = {}

    async def create_task(self, task: TaskRecord) -> TaskRecord:
        self.tasks[task.task_id] = task
        return task

    async def update_task(self, task_id: str, **changes: Any) -> TaskRecord | None:
        task = self.tasks.get(task_id)
        if task is None:
            return None
        updated = task.model_copy(update=changes)
        self.tasks[task_id] = updated
        return updated

    async def get_task(self, task_id: str) -> TaskRecord | None:
        return self.tasks.get(task_id)

    async def find_tasks(self, **filters: Any) -> list[TaskRecord]:
        return [
            task
            for task in self.tasks.values()
            if all(getattr(task, key, None) == value for key, value in filters.items())
        ]

    async def log_activity(self, activity: LeadActivity) -> LeadActivity:
        self.activities.append(activity)
        return activity

    async def list_activities(self, lead_id: Optional[str] = None) -> list[LeadActivity]:
        return [a for a in self.activities if lead_id is None or a.lead_id == lead_id]

    async def update_lead_status(self, lead_id: str, status: str) -> None:
        self.lead_statuses[lead_id] = status
        if self._directory is not None and lead_id in self._directory.leads:
            lead = self._directory.leads[lead_id]
            self._directory.leads[lead_id] = lead.model_copy(update={"status": status})

    async def record_outgoing_message(self, message: OutgoingMessage) -> OutgoingMessage:
        self.outgoing_messages.append(message)
        return message
