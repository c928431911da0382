from __future__ import annotations

from typing import Any, Dict

from ..contracts import WorkflowExecutionContext
from ..errors import ConfigurationError
from ..workflow.expressions import run_script
from .base import BaseAction


class ScriptAction(BaseAction):
    """Run an inline script in the restricted evaluator and return its value."""

    type = "script"

    async def execute(self, params: Dict[str, Any], context: WorkflowExecutionContext) -> Any:
        script = params.get("script")
        if not script:
            raise ConfigurationError("script action requires a 'script' parameter")
        return run_script(script, context.template_scope())
