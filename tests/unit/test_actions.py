import pytest

from leadflow.actions import ActionRegistry, BaseAction, build_default_registry
from leadflow.errors import ActionFailed, ConfigurationError
from leadflow.persistence.models import CategoryRecord, ProductRecord

DEFAULT_TYPES = {
    "send_message",
    "db_operation",
    "script",
    "notify_team",
    "fetch_categories",
    "fetch_products",
    "send_catalog",
    "handle_category_selection",
    "create_order",
    "create_support_ticket",
    "notify_sales",
    "flag_for_review",
}


@pytest.fixture
def registry(directory, records, channels):
    return build_default_registry(directory, records, channels)


@pytest.fixture
def catalog(directory):
    directory.categories.append(
        CategoryRecord(category_id="cat-desks", business_id="biz-1", name="Desks", slug="desks")
    )
    for idx, name in enumerate(["Standing Desk", "Corner Desk Extra Large Edition"]):
        directory.products.append(
            ProductRecord(
                product_id=f"sku-{idx}",
                business_id="biz-1",
                category_id="cat-desks",
                name=name,
                price=199.0,
                in_stock=idx == 0,
            )
        )
    return directory


def test_default_registry_contents(registry):
    assert set(registry.list_types()) == DEFAULT_TYPES
    assert registry.has("send_message")
    assert registry.get("missing") is None


def test_register_replaces_existing_type(registry):
    class Custom(BaseAction):
        type = "notify_team"

    custom = Custom()
    registry.register(custom)
    assert registry.get("notify_team") is custom
    assert len(registry.list_types()) == len(DEFAULT_TYPES)


@pytest.mark.asyncio
async def test_send_message_sends_and_records(registry, context, channel, records):
    result = await registry.get("send_message").execute(
        {"content": {"type": "TEXT", "text": "Hi Ada Lovelace"}}, context
    )

    assert result == {"messageId": "wamid.1", "status": "sent"}
    recipient, content, config = channel.sent[0]
    assert recipient == "15550001"
    assert content["text"] == "Hi Ada Lovelace"
    assert config["accessToken"] == "secret-token"
    outgoing = records.outgoing_messages[0]
    assert outgoing.message_text == "Hi Ada Lovelace"
    assert outgoing.platform_message_id == "wamid.1"


@pytest.mark.asyncio
async def test_send_message_does_not_render_placeholders(registry, context, channel):
    await registry.get("send_message").execute(
        {"content": {"type": "TEXT", "text": "Token is {{ channelConfig.accessToken }}"}}, context
    )
    _, content, _ = channel.sent[0]
    assert content["text"] == "Token is {{ channelConfig.accessToken }}"


@pytest.mark.asyncio
async def test_send_message_unsupported_channel(registry, context):
    context.channel = "instagram"
    with pytest.raises(ActionFailed) as exc_info:
        await registry.get("send_message").execute({"content": {"text": "x"}}, context)
    assert "Unsupported channel" in str(exc_info.value)
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_script_and_notify_team(registry, context):
    context.entities = {"quantity": 30}
    value = await registry.get("script").execute(
        {"script": "return context.entities.quantity * 2"}, context
    )
    assert value == 60

    with pytest.raises(ConfigurationError):
        await registry.get("script").execute({}, context)

    notified = await registry.get("notify_team").execute({"team": "sales"}, context)
    assert notified["notified"] is True
    assert notified["team"] == "sales"


@pytest.mark.asyncio
async def test_db_operation_task_lifecycle(registry, context):
    db = registry.get("db_operation")
    created = await db.execute(
        {"table": "tasks", "operation": "create", "data": {"title": "Call back", "priority": "high"}},
        context,
    )
    assert created["lead_id"] == "lead-1"
    assert created["status"] == "pending"

    updated = await db.execute(
        {
            "table": "tasks",
            "operation": "update",
            "where": {"task_id": created["task_id"]},
            "data": {"status": "done"},
        },
        context,
    )
    assert updated["status"] == "done"

    found = await db.execute(
        {"table": "tasks", "operation": "findMany", "where": {"lead_id": "lead-1"}}, context
    )
    assert [t["task_id"] for t in found] == [created["task_id"]]


@pytest.mark.asyncio
async def test_db_operation_leads_and_activities(registry, context, directory):
    db = registry.get("db_operation")
    await db.execute(
        {"table": "leads", "operation": "updateStatus", "data": {"status": "qualified"}}, context
    )
    assert directory.leads["lead-1"].status == "qualified"

    lead = await db.execute({"table": "leads", "operation": "find_first"}, context)
    assert lead["first_name"] == "Ada"

    await db.execute(
        {
            "table": "lead_activities",
            "operation": "create",
            "data": {"activity_type": "note", "activity_description": "Asked about desks"},
        },
        context,
    )
    activities = await db.execute({"table": "lead_activities", "operation": "find_many"}, context)
    assert activities[-1]["activity_type"] == "note"


@pytest.mark.asyncio
async def test_db_operation_rejects_unknown_operations_and_fields(registry, context):
    db = registry.get("db_operation")
    with pytest.raises(ConfigurationError):
        await db.execute({"table": "products", "operation": "delete"}, context)
    with pytest.raises(ConfigurationError):
        await db.execute({"table": "tasks"}, context)
    with pytest.raises(ActionFailed) as exc_info:
        await db.execute(
            {"table": "tasks", "operation": "create", "data": {"title": "x", "drop_table": True}},
            context,
        )
    assert exc_info.value.retryable is False
    assert ("tasks", "create") in db.supported_operations()


@pytest.mark.asyncio
async def test_create_order_and_compensation(registry, context, records):
    context.entities = {"product": "Standing Desk", "quantity": 2, "urgency": "urgent"}
    order = registry.get("create_order")
    assert order.retryable is False

    result = await order.execute({}, context)
    task = records.tasks[result["taskId"]]
    assert task.task_type == "order_processing"
    assert task.priority == "high"
    assert records.activities[-1].activity_type == "order_initiated"

    await order.compensate(context, result)
    cancelled = records.tasks[result["taskId"]]
    assert cancelled.status == "cancelled"
    assert cancelled.metadata["cancelledReason"] == "Compensating transaction"


@pytest.mark.asyncio
async def test_support_ticket_uses_intent_metadata(registry, context, records):
    context.set_variable("intentMetadata", {"requiresImmediateAction": True})
    result = await registry.get("create_support_ticket").execute({}, context)
    assert result["severity"] == "critical"
    assert records.tasks[result["ticketId"]].priority == "critical"


@pytest.mark.asyncio
async def test_flag_for_review_updates_lead(registry, context, directory, records):
    result = await registry.get("flag_for_review").execute({}, context)
    assert directory.leads["lead-1"].status == "needs_review"
    assert records.tasks[result["taskId"]].task_type == "manual_review"


@pytest.mark.asyncio
async def test_fetch_categories_sends_list(registry, context, catalog, channel):
    content = await registry.get("fetch_categories").execute({}, context)
    rows = content["action"]["sections"][0]["rows"]
    assert rows[0]["id"] == "all_products"
    assert rows[1]["id"] == "desks"
    assert channel.sent[0][1]["interactive_type"] == "list"


@pytest.mark.asyncio
async def test_fetch_products_truncates_titles(registry, context, catalog):
    result = await registry.get("fetch_products").execute(
        {"categorySlug": "desks", "sendMessage": False}, context
    )
    titles = [row["title"] for row in result["content"]["action"]["sections"][0]["rows"]]
    assert "Standing Desk" in titles
    assert all(len(title) <= 24 for title in titles)


@pytest.mark.asyncio
async def test_category_selection_sends_catalog(registry, context, catalog, channel):
    context.channel_config["catalogId"] = "catalog-9"
    context.entities = {"category_slug": "desks"}
    result = await registry.get("handle_category_selection").execute({}, context)

    assert result == {"success": True, "category": "Desks", "productCount": 2}
    content = channel.sent[-1][1]
    assert content["interactive_type"] == "product_list"
    assert content["action"]["catalog_id"] == "catalog-9"


@pytest.mark.asyncio
async def test_category_selection_without_slug(registry, context):
    result = await registry.get("handle_category_selection").execute({}, context)
    assert result["success"] is False
