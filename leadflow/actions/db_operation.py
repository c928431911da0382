"""Database mutations limited to an explicit table of entity operations."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..contracts import WorkflowExecutionContext
from ..errors import ActionFailed, ConfigurationError
from ..persistence.models import LeadActivity, TaskRecord
from ..persistence.repository import Directory, RecordStore
from .base import BaseAction

logger = logging.getLogger(__name__)

# accepted spellings from existing workflow configuration
_OPERATION_ALIASES = {
    "findFirst": "find_first",
    "findMany": "find_many",
    "updateStatus": "update_status",
}


class DbOperationParams(BaseModel):
    table: str
    operation: str
    data: Dict[str, Any] = Field(default_factory=dict)
    where: Dict[str, Any] = Field(default_factory=dict)


class _TaskCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    task_type: str = "general"
    title: str
    description: Optional[str] = None
    status: str = "pending"
    priority: str = "normal"
    assigned_to_type: Optional[str] = None
    assigned_to_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class _TaskUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to_type: Optional[str] = None
    assigned_to_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class _TaskWhere(BaseModel):
    model_config = ConfigDict(extra="forbid")

    task_id: Optional[str] = None
    lead_id: Optional[str] = None
    business_id: Optional[str] = None
    task_type: Optional[str] = None
    status: Optional[str] = None


class _ActivityCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    activity_type: str
    activity_description: str
    actor_type: str = "system"
    channel: str = "automation"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class _LeadWhere(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lead_id: Optional[str] = None


class _LeadStatus(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str


Operation = Callable[[DbOperationParams, WorkflowExecutionContext], Awaitable[Any]]


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


class DbOperationAction(BaseAction):
    """Create, update and query tasks, lead activities and leads.

    ``params`` carries ``table``, ``operation`` and optional ``data`` /
    ``where`` mappings. Only the operations listed in the lookup table are
    reachable; anything else is a configuration error.
    """

    type = "db_operation"

    def __init__(self, directory: Directory, records: RecordStore) -> None:
        self._directory = directory
        self._records = records
        self._operations: Dict[Tuple[str, str], Operation] = {
            ("tasks", "create"): self._create_task,
            ("tasks", "update"): self._update_task,
            ("tasks", "find_first"): self._find_first_task,
            ("tasks", "find_many"): self._find_many_tasks,
            ("lead_activities", "create"): self._create_activity,
            ("lead_activities", "find_many"): self._find_activities,
            ("leads", "find_first"): self._find_lead,
            ("leads", "update_status"): self._update_lead_status,
        }

    def supported_operations(self) -> list[Tuple[str, str]]:
        return sorted(self._operations)

    async def execute(self, params: Dict[str, Any], context: WorkflowExecutionContext) -> Any:
        try:
            op = DbOperationParams.model_validate(params)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid db_operation params: {exc}") from exc

        operation = _OPERATION_ALIASES.get(op.operation, op.operation)
        handler = self._operations.get((op.table, operation))
        if handler is None:
            raise ConfigurationError(
                f"Unsupported db_operation {op.operation!r} on table {op.table!r}"
            )
        logger.debug(f"db_operation {op.table}.{operation} for lead {context.lead_id}")
        try:
            return _dump(await handler(op, context))
        except PydanticValidationError as exc:
            raise ActionFailed(
                f"Invalid data for {op.table}.{operation}: {exc}",
                retryable=False,
                action_type=self.type,
            ) from exc

    # ------------------------------------------------------------------
    # tasks
    async def _create_task(self, op: DbOperationParams, context: WorkflowExecutionContext) -> TaskRecord:
        data = _TaskCreate.model_validate(op.data)
        task = TaskRecord(
            lead_id=context.lead_id,
            business_id=context.business_id,
            tenant_id=context.tenant_id,
            **data.model_dump(),
        )
        return await self._records.create_task(task)

    async def _update_task(self, op: DbOperationParams, context: WorkflowExecutionContext) -> TaskRecord:
        where = _TaskWhere.model_validate(op.where)
        if not where.task_id:
            raise ConfigurationError("tasks.update requires where.task_id")
        changes = _TaskUpdate.model_validate(op.data).model_dump(exclude_none=True)
        task = await self._records.update_task(where.task_id, **changes)
        if task is None:
            raise ActionFailed(
                f"Task {where.task_id} not found", retryable=False, action_type=self.type
            )
        return task

    async def _find_first_task(
        self, op: DbOperationParams, context: WorkflowExecutionContext
    ) -> TaskRecord | None:
        tasks = await self._find_many_tasks(op, context)
        return tasks[0] if tasks else None

    async def _find_many_tasks(
        self, op: DbOperationParams, context: WorkflowExecutionContext
    ) -> list[TaskRecord]:
        where = _TaskWhere.model_validate(op.where)
        return await self._records.find_tasks(**where.model_dump(exclude_none=True))

    # ------------------------------------------------------------------
    # lead activities
    async def _create_activity(
        self, op: DbOperationParams, context: WorkflowExecutionContext
    ) -> LeadActivity:
        data = _ActivityCreate.model_validate(op.data)
        activity = LeadActivity(
            lead_id=context.lead_id,
            business_id=context.business_id,
            tenant_id=context.tenant_id,
            **data.model_dump(),
        )
        return await self._records.log_activity(activity)

    async def _find_activities(
        self, op: DbOperationParams, context: WorkflowExecutionContext
    ) -> list[LeadActivity]:
        where = _LeadWhere.model_validate(op.where)
        return await self._records.list_activities(where.lead_id or context.lead_id)

    # ------------------------------------------------------------------
    # leads
    async def _find_lead(self, op: DbOperationParams, context: WorkflowExecutionContext) -> Any:
        where = _LeadWhere.model_validate(op.where)
        return await self._directory.get_lead(where.lead_id or context.lead_id)

    async def _update_lead_status(
        self, op: DbOperationParams, context: WorkflowExecutionContext
    ) -> Dict[str, Any]:
        where = _LeadWhere.model_validate(op.where)
        data = _LeadStatus.model_validate(op.data)
        lead_id = where.lead_id or context.lead_id
        await self._records.update_lead_status(lead_id, data.status)
        return {"lead_id": lead_id, "status": data.status}
