from __future__ import annotations

import logging
from typing import Dict

from .base import ActionHandler

logger = logging.getLogger(__name__)


class ActionRegistry:
    """Map of action type to handler. Registering an existing type replaces it."""

    def __init__(self) -> None:
        self._handlers: Dict[str, ActionHandler] = {}

    def register(self, handler: ActionHandler) -> None:
        if handler.type in self._handlers:
            logger.warning(f"Replacing action handler for type {handler.type}")
        self._handlers[handler.type] = handler
        logger.debug(f"Registered action handler: {handler.type}")

    def get(self, action_type: str) -> ActionHandler | None:
        return self._handlers.get(action_type)

    def has(self, action_type: str) -> bool:
        return action_type in self._handlers

    def list_types(self) -> list[str]:
        return list(self._handlers)
