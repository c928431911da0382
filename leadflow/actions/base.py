"""Action handler interface shared by workflows and the message saga."""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol, runtime_checkable

from ..contracts import WorkflowExecutionContext

logger = logging.getLogger(__name__)


@runtime_checkable
class ActionHandler(Protocol):
    """Performs one side effect; ``compensate`` is optional."""

    type: str
    retryable: bool

    async def execute(
        self, params: Dict[str, Any], context: WorkflowExecutionContext
    ) -> Any: ...


class BaseAction:
    """Convenience base class for built-in handlers.

    Subclasses set ``type`` and implement :meth:`execute`. Handlers whose side
    effect must not be duplicated set ``retryable = False``; the saga then
    compensates earlier actions when they fail.
    """

    type: str = ""
    retryable: bool = True

    async def execute(
        self, params: Dict[str, Any], context: WorkflowExecutionContext
    ) -> Any:
        raise NotImplementedError

    async def compensate(
        self, context: WorkflowExecutionContext, original_result: Any
    ) -> None:
        logger.info(f"No compensation defined for action {self.type}")
