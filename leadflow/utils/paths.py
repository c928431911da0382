"""Dotted-path lookups over nested mappings, sequences and models."""

from __future__ import annotations

from typing import Any, Iterable

MISSING = object()


def lookup_path(root: Any, path: str | Iterable[str]) -> Any:
    """Walk ``path`` through ``root`` returning ``MISSING`` when any hop fails."""

    parts = path.split(".") if isinstance(path, str) else list(path)
    current = root
    for part in parts:
        part = part.strip()
        if current is None or current is MISSING:
            return MISSING
        if isinstance(current, dict):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return MISSING
        elif hasattr(current, "model_fields") and part in type(current).model_fields:
            current = getattr(current, part)
        else:
            return MISSING
    return current
