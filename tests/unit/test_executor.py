import pytest
from prometheus_client import REGISTRY

from leadflow.actions import ActionRegistry, BaseAction
from leadflow.persistence import InMemoryRepository
from leadflow.workflow import WorkflowDefinition, WorkflowExecutor, select_transition
from leadflow.workflow.models import WorkflowTransition


class Recorder(BaseAction):
    type = "record"

    def __init__(self) -> None:
        self.calls = []

    async def execute(self, params, context):
        self.calls.append(params)
        return {"echo": params}


class Exploding(BaseAction):
    type = "explode"

    async def execute(self, params, context):
        raise RuntimeError("kaboom")


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def executor(recorder, repository):
    registry = ActionRegistry()
    registry.register(recorder)
    registry.register(Exploding())
    return WorkflowExecutor(registry, repository, max_iterations=10)


async def _run(executor, definition, context):
    return await executor.execute(
        "wf-1", "test_flow", context.intent, WorkflowDefinition.parse(definition), context
    )


def test_highest_priority_satisfied_transition_wins(context):
    transitions = [
        WorkflowTransition(to="low", priority=1),
        WorkflowTransition.model_validate(
            {"to": "high", "priority": 5, "condition": {"type": "expression", "expression": "context.intent == 'ORDER_REQUEST'"}}
        ),
        WorkflowTransition.model_validate(
            {"to": "never", "priority": 9, "condition": {"type": "expression", "expression": "false"}}
        ),
    ]
    assert select_transition(transitions, context) == "high"
    assert select_transition([], context) == "end"


@pytest.mark.asyncio
async def test_actions_run_with_rendered_params_and_output_variables(executor, recorder, context, repository):
    definition = {
        "initialState": "start",
        "states": {
            "start": {
                "type": "action",
                "actions": [
                    {"actionId": "a1", "type": "record", "params": {"greeting": "Hi {{leadName}}"}, "outputVariable": "first"},
                    {
                        "actionId": "a2",
                        "type": "record",
                        "params": {"previous": "{{first.echo.greeting}}"},
                        "condition": {"type": "expression", "expression": "context.first != null"},
                    },
                    {
                        "actionId": "skipped",
                        "type": "record",
                        "params": {},
                        "condition": {"type": "expression", "expression": "context.intent == 'COMPLAINT'"},
                    },
                ],
                "transitions": [{"to": "end"}],
            }
        },
    }

    result = await _run(executor, definition, context)

    assert result.status == "completed"
    assert result.final_state == "end"
    assert recorder.calls == [{"greeting": "Hi Ada Lovelace"}, {"previous": "Hi Ada Lovelace"}]
    record = await repository.get_execution(result.execution_id)
    assert record.status == "completed"
    assert record.current_state == "end"
    assert record.completed_at is not None


@pytest.mark.asyncio
async def test_failing_action_does_not_stop_the_state(executor, recorder, context):
    definition = {
        "initialState": "start",
        "states": {
            "start": {
                "type": "action",
                "actions": [
                    {"actionId": "boom", "type": "explode", "outputVariable": "never"},
                    {"actionId": "after", "type": "record", "params": {"ran": True}},
                ],
            }
        },
    }
    result = await _run(executor, definition, context)
    assert result.status == "completed"
    assert recorder.calls == [{"ran": True}]
    assert context.get_variable("never") is None


@pytest.mark.asyncio
async def test_decision_states_route_by_condition(executor, recorder, context):
    context.entities = {"quantity": 500}
    definition = {
        "initialState": "route",
        "states": {
            "route": {
                "type": "decision",
                "transitions": [
                    {"to": "bulk", "priority": 10, "condition": {"type": "script", "script": "return context.entities.quantity > 100"}},
                    {"to": "single", "priority": 0},
                ],
            },
            "bulk": {"type": "action", "actions": [{"actionId": "b", "type": "record", "params": {"tier": "bulk"}}]},
            "single": {"type": "action", "actions": [{"actionId": "s", "type": "record", "params": {"tier": "single"}}]},
        },
    }
    await _run(executor, definition, context)
    assert recorder.calls == [{"tier": "bulk"}]


@pytest.mark.asyncio
async def test_iteration_cap_fails_execution(executor, context, repository):
    before = REGISTRY.get_sample_value("leadflow_workflow_executions_total", {"status": "failed"}) or 0
    definition = {
        "initialState": "ping",
        "states": {
            "ping": {"type": "decision", "transitions": [{"to": "pong"}]},
            "pong": {"type": "decision", "transitions": [{"to": "ping"}]},
        },
    }
    result = await _run(executor, definition, context)

    assert result.status == "failed"
    assert result.final_state == "error"
    assert result.error == "Workflow exceeded maximum iterations (10)"
    record = await repository.get_execution(result.execution_id)
    assert record.status == "failed"
    after = REGISTRY.get_sample_value("leadflow_workflow_executions_total", {"status": "failed"})
    assert after == before + 1


@pytest.mark.asyncio
async def test_unknown_state_and_unregistered_action_fail(executor, context):
    missing_state = {"initialState": "nowhere", "states": {}}
    result = await _run(executor, missing_state, context)
    assert result.status == "failed"
    assert "State nowhere not found" in result.error

    unregistered = {
        "initialState": "start",
        "states": {"start": {"type": "action", "actions": [{"actionId": "x", "type": "teleport"}]}},
    }
    result = await _run(executor, unregistered, context)
    assert result.status == "failed"
    assert "Action handler not found: teleport" in result.error


@pytest.mark.asyncio
async def test_wait_state_suspends_execution(executor, context, repository):
    definition = {
        "initialState": "ask",
        "states": {
            "ask": {"type": "action", "actions": [{"actionId": "q", "type": "record"}], "transitions": [{"to": "await_reply"}]},
            "await_reply": {"type": "wait", "transitions": [{"to": "end"}]},
        },
    }
    result = await _run(executor, definition, context)
    assert result.status == "waiting"
    assert result.final_state == "await_reply"
    record = await repository.get_execution(result.execution_id)
    assert record.status == "waiting"
    assert record.current_state == "await_reply"
