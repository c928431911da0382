"""``{{ path.to.value }}`` placeholder rendering against an execution context."""

from __future__ import annotations

import re
from typing import Any

from ..contracts import WorkflowExecutionContext
from ..utils.paths import MISSING

PLACEHOLDER = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


def render_template(value: Any, context: WorkflowExecutionContext) -> Any:
    """Resolve placeholders inside strings, lists and dicts.

    A string consisting of a single placeholder keeps the resolved value's
    type; placeholders embedded in text are stringified. Unresolved
    placeholders are left verbatim.
    """

    if isinstance(value, str):
        return _render_string(value, context)
    if isinstance(value, list):
        return [render_template(item, context) for item in value]
    if isinstance(value, dict):
        return {key: render_template(item, context) for key, item in value.items()}
    return value


def _render_string(text: str, context: WorkflowExecutionContext) -> Any:
    whole = PLACEHOLDER.fullmatch(text)
    if whole:
        resolved = context.lookup(whole.group(1))
        return text if resolved is MISSING else resolved

    def substitute(match: re.Match[str]) -> str:
        resolved = context.lookup(match.group(1))
        if resolved is MISSING or resolved is None:
            return match.group(0)
        return str(resolved)

    return PLACEHOLDER.sub(substitute, text)
