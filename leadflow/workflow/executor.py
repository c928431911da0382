"""Interprets workflow definitions as finite-state machines."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from ..constants import DEFAULT_MAX_ITERATIONS, END_STATE, ERROR_STATE
from ..contracts import WorkflowExecutionContext
from ..errors import ConfigurationError
from ..metrics import observe_workflow_execution
from ..persistence.models import WorkflowExecutionRecord
from ..persistence.repository import ExecutionStore
from .expressions import evaluate_condition
from .models import (
    WorkflowCondition,
    WorkflowDefinition,
    WorkflowExecutionResult,
    WorkflowState,
    WorkflowTransition,
)
from .templates import render_template

if TYPE_CHECKING:
    from ..actions.registry import ActionRegistry

logger = logging.getLogger(__name__)

_WAITING = object()


def condition_holds(
    condition: Optional[WorkflowCondition], context: WorkflowExecutionContext
) -> bool:
    if condition is None:
        return True
    source = condition.script if condition.type == "script" else condition.expression
    return evaluate_condition(condition.type, source, context.template_scope())


def select_transition(
    transitions: List[WorkflowTransition], context: WorkflowExecutionContext
) -> str:
    """Return the target of the highest-priority satisfied transition, else ``end``."""
    for transition in sorted(transitions, key=lambda t: t.priority, reverse=True):
        if condition_holds(transition.condition, context):
            return transition.to
    return END_STATE


class WorkflowExecutor:
    """Run a workflow definition against one execution context.

    Individual action failures are logged and skipped so the remaining
    actions still run. Unknown states, unregistered action types and
    exceeding ``max_iterations`` fail the whole execution.
    """

    def __init__(
        self,
        registry: ActionRegistry,
        repository: ExecutionStore,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self._registry = registry
        self._repository = repository
        self.max_iterations = max_iterations

    async def execute(
        self,
        workflow_id: str,
        workflow_key: str,
        intent_name: str,
        definition: WorkflowDefinition,
        context: WorkflowExecutionContext,
    ) -> WorkflowExecutionResult:
        record = WorkflowExecutionRecord(
            workflow_id=workflow_id,
            workflow_key=workflow_key,
            intent_name=intent_name,
            business_id=context.business_id,
            lead_id=context.lead_id,
            execution_context=context.snapshot(),
        )
        await self._repository.create_execution(record)
        execution_id = record.execution_id
        logger.info(f"Starting workflow execution {execution_id} for lead {context.lead_id}")

        try:
            current = definition.initial_state
            iterations = 0
            while current != END_STATE:
                if iterations >= self.max_iterations:
                    raise ConfigurationError(
                        f"Workflow exceeded maximum iterations ({self.max_iterations})"
                    )
                iterations += 1

                state = definition.states.get(current)
                if state is None:
                    raise ConfigurationError(f"State {current} not found in workflow")

                logger.debug(f"Executing state: {current} (iteration {iterations})")
                next_state = await self._execute_state(state, context)
                await self._repository.update_execution_state(execution_id, current)

                if next_state is _WAITING:
                    await self._repository.mark_execution_waiting(execution_id, current)
                    observe_workflow_execution("waiting")
                    logger.info(f"Workflow execution {execution_id} waiting in state {current}")
                    return WorkflowExecutionResult(
                        execution_id=execution_id,
                        workflow_id=workflow_id,
                        status="waiting",
                        final_state=current,
                        context=context,
                    )
                current = next_state
        except Exception as exc:
            logger.error(f"Workflow execution {execution_id} failed: {exc}")
            await self._repository.fail_execution(execution_id, str(exc))
            observe_workflow_execution("failed")
            return WorkflowExecutionResult(
                execution_id=execution_id,
                workflow_id=workflow_id,
                status="failed",
                final_state=ERROR_STATE,
                context=context,
                error=str(exc),
            )

        await self._repository.complete_execution(execution_id, END_STATE)
        observe_workflow_execution("completed")
        logger.info(f"Workflow execution {execution_id} completed successfully")
        return WorkflowExecutionResult(
            execution_id=execution_id,
            workflow_id=workflow_id,
            status="completed",
            final_state=END_STATE,
            context=context,
        )

    async def _execute_state(self, state: WorkflowState, context: WorkflowExecutionContext):
        if state.type == "action":
            await self._run_actions(state, context)
            return select_transition(state.transitions, context)
        if state.type == "decision":
            return select_transition(state.transitions, context)
        if state.type == "wait":
            return _WAITING
        return END_STATE

    async def _run_actions(self, state: WorkflowState, context: WorkflowExecutionContext) -> None:
        for action in state.actions:
            if not condition_holds(action.condition, context):
                logger.debug(f"Skipping action {action.action_id} due to condition")
                continue

            handler = self._registry.get(action.type)
            if handler is None:
                raise ConfigurationError(f"Action handler not found: {action.type}")

            params = render_template(action.params, context)
            logger.debug(f"Executing action: {action.action_id} (type: {action.type})")
            try:
                result = await handler.execute(params, context)
            except Exception:
                logger.exception(f"Action {action.action_id} failed")
                continue

            if action.output_variable:
                context.set_variable(action.output_variable, result)
