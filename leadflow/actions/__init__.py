"""Action handlers and the registry used by workflows and the message saga."""

from __future__ import annotations

from ..channels.base import ChannelRegistry
from ..persistence.repository import Directory, RecordStore
from .base import ActionHandler, BaseAction
from .catalog import (
    FetchCategoriesAction,
    FetchProductsAction,
    HandleCategorySelectionAction,
    SendCatalogAction,
)
from .db_operation import DbOperationAction
from .notify_team import NotifyTeamAction
from .registry import ActionRegistry
from .script import ScriptAction
from .send_message import SendMessageAction
from .tasks import (
    CreateOrderAction,
    CreateSupportTicketAction,
    FlagForReviewAction,
    NotifySalesAction,
)


def build_default_registry(
    directory: Directory, records: RecordStore, channels: ChannelRegistry
) -> ActionRegistry:
    """Register every built-in handler against the given collaborators."""

    registry = ActionRegistry()
    send_message = SendMessageAction(directory, records, channels)
    send_catalog = SendCatalogAction(directory, send_message)
    fetch_products = FetchProductsAction(directory, send_message)

    for handler in (
        send_message,
        DbOperationAction(directory, records),
        ScriptAction(),
        NotifyTeamAction(),
        FetchCategoriesAction(directory, send_message),
        fetch_products,
        send_catalog,
        HandleCategorySelectionAction(send_catalog, fetch_products),
        CreateOrderAction(records),
        CreateSupportTicketAction(records),
        NotifySalesAction(records),
        FlagForReviewAction(records),
    ):
        registry.register(handler)
    return registry


__all__ = [
    "ActionHandler",
    "ActionRegistry",
    "BaseAction",
    "CreateOrderAction",
    "CreateSupportTicketAction",
    "DbOperationAction",
    "FetchCategoriesAction",
    "FetchProductsAction",
    "FlagForReviewAction",
    "HandleCategorySelectionAction",
    "NotifySalesAction",
    "NotifyTeamAction",
    "ScriptAction",
    "SendCatalogAction",
    "SendMessageAction",
    "build_default_registry",
]
