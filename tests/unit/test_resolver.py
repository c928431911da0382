import pytest

from leadflow.errors import NotFoundError
from leadflow.persistence.models import WorkflowDefinitionRecord
from leadflow.workflow import WorkflowResolver

DEFINITION = {"initialState": "end", "states": {"end": {"type": "end"}}}


def _workflow(workflow_id, business_type=None, intent=None):
    return WorkflowDefinitionRecord(
        workflow_id=workflow_id,
        workflow_key=workflow_id.replace("-", "_"),
        business_type=business_type,
        intent_name=intent,
        definition=DEFINITION,
    )


@pytest.fixture
def workflows(directory):
    directory.add_workflow(_workflow("biz-order"))
    directory.add_workflow(_workflow("biz-unknown"))
    directory.add_workflow(_workflow("retail-pricing", "retail", "PRICING_INQUIRY"))
    directory.add_workflow(_workflow("retail-unknown", "retail", "UNKNOWN"))
    directory.assign_workflow("biz-1", "ORDER_REQUEST", "biz-order")
    directory.assign_workflow("biz-1", "UNKNOWN", "biz-unknown")
    return directory


@pytest.mark.asyncio
async def test_business_assignment_wins(workflows):
    resolved = await WorkflowResolver(workflows).resolve("biz-1", "ORDER_REQUEST")
    assert resolved.workflow_id == "biz-order"
    assert resolved.definition.initial_state == "end"


@pytest.mark.asyncio
async def test_business_unknown_before_type_defaults(workflows):
    resolved = await WorkflowResolver(workflows).resolve("biz-1", "PRICING_INQUIRY")
    assert resolved.workflow_id == "biz-unknown"


@pytest.mark.asyncio
async def test_type_default_then_type_unknown(workflows):
    workflows.assignments.clear()
    resolver = WorkflowResolver(workflows)
    assert (await resolver.resolve("biz-1", "PRICING_INQUIRY")).workflow_id == "retail-pricing"
    assert (await resolver.resolve("biz-1", "COMPLAINT")).workflow_id == "retail-unknown"


@pytest.mark.asyncio
async def test_missing_business_or_workflow(directory):
    resolver = WorkflowResolver(directory)
    with pytest.raises(NotFoundError):
        await resolver.resolve("biz-404", "ORDER_REQUEST")
    with pytest.raises(NotFoundError):
        await resolver.resolve("biz-1", "ORDER_REQUEST")


@pytest.mark.asyncio
async def test_inactive_assignments_are_ignored(workflows):
    workflows.assignments = [
        a.model_copy(update={"is_active": False}) for a in workflows.assignments
    ]
    resolved = await WorkflowResolver(workflows).resolve("biz-1", "ORDER_REQUEST")
    assert resolved.workflow_id == "retail-unknown"


@pytest.mark.asyncio
async def test_cache_and_invalidate(workflows):
    resolver = WorkflowResolver(workflows, cache=True)
    assert (await resolver.resolve("biz-1", "ORDER_REQUEST")).workflow_id == "biz-order"

    workflows.assignments.clear()
    assert (await resolver.resolve("biz-1", "ORDER_REQUEST")).workflow_id == "biz-order"

    resolver.invalidate("biz-1")
    assert (await resolver.resolve("biz-1", "ORDER_REQUEST")).workflow_id == "retail-unknown"


@pytest.mark.asyncio
async def test_list_business_workflows_sorted_by_intent(workflows):
    pairs = await WorkflowResolver(workflows).list_business_workflows("biz-1")
    assert [(intent, wf.workflow_id) for intent, wf in pairs] == [
        ("ORDER_REQUEST", "biz-order"),
        ("UNKNOWN", "biz-unknown"),
    ]
