"""Business-configured workflow resolution and execution."""

from __future__ import annotations

from .executor import WorkflowExecutor, select_transition
from .expressions import evaluate_condition, evaluate_expression, run_script
from .models import (
    ResolvedWorkflow,
    WorkflowAction,
    WorkflowCondition,
    WorkflowDefinition,
    WorkflowExecutionResult,
    WorkflowState,
    WorkflowTransition,
)
from .resolver import WorkflowResolver
from .runner import WorkflowRunner
from .templates import render_template

__all__ = [
    "ResolvedWorkflow",
    "WorkflowAction",
    "WorkflowCondition",
    "WorkflowDefinition",
    "WorkflowExecutionResult",
    "WorkflowExecutor",
    "WorkflowResolver",
    "WorkflowRunner",
    "WorkflowState",
    "WorkflowTransition",
    "evaluate_condition",
    "evaluate_expression",
    "render_template",
    "run_script",
    "select_transition",
]
