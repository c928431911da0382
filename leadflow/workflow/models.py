"""Pydantic models describing business-configured workflow definitions."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..contracts import WorkflowExecutionContext
from ..errors import ConfigurationError

ExecutionStatus = Literal["running", "completed", "failed", "waiting"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class WorkflowCondition(_CamelModel):
    """Guard on an action or a transition."""

    type: Literal["always", "expression", "script"] = "always"
    expression: Optional[str] = None
    script: Optional[str] = None


class WorkflowAction(_CamelModel):
    """One side-effecting step inside an ``action`` state."""

    action_id: str
    type: str
    params: Dict[str, Any] = Field(default_factory=dict)
    output_variable: Optional[str] = None
    condition: Optional[WorkflowCondition] = None
    run_async: bool = Field(default=False, alias="async")
    timeout: Optional[int] = None


class WorkflowTransition(_CamelModel):
    to: str
    condition: Optional[WorkflowCondition] = None
    priority: int = 0


class StateTimeout(_CamelModel):
    duration: int
    next_state: str


class RetryPolicy(_CamelModel):
    max_attempts: int = 3
    backoff_multiplier: float = 2.0
    initial_delay: int = 1000


class StateErrorHandler(_CamelModel):
    next_state: str
    retry_policy: Optional[RetryPolicy] = None


class WorkflowState(_CamelModel):
    name: Optional[str] = None
    type: Literal["action", "decision", "wait", "end"]
    actions: List[WorkflowAction] = Field(default_factory=list)
    transitions: List[WorkflowTransition] = Field(default_factory=list)
    timeout: Optional[StateTimeout] = None
    on_error: Optional[StateErrorHandler] = None


class ErrorHandlingConfig(_CamelModel):
    default_handler: str
    handlers: Dict[str, str] = Field(default_factory=dict)


class WorkflowDefinition(_CamelModel):
    """Immutable state machine owned by the business-configuration store."""

    initial_state: str
    states: Dict[str, WorkflowState]
    error_handling: Optional[ErrorHandlingConfig] = None

    @classmethod
    def parse(cls, raw: Any) -> "WorkflowDefinition":
        """Validate a raw definition, reporting problems as configuration errors."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls.model_validate(raw)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid workflow definition: {exc}") from exc


class ResolvedWorkflow(BaseModel):
    """Workflow selected for a (business, intent) pair."""

    workflow_id: str
    workflow_key: str
    workflow_name: Optional[str] = None
    definition: WorkflowDefinition


class WorkflowExecutionResult(BaseModel):
    execution_id: str
    workflow_id: str
    status: ExecutionStatus
    final_state: str
    context: WorkflowExecutionContext
    error: Optional[str] = None
