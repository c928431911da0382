"""Persistence layer for leadflow orchestration state."""

from __future__ import annotations

import os
from typing import Optional

from ..config import LeadflowConfig, load_config
from .inmemory import InMemoryDirectory, InMemoryRecordStore, InMemoryRepository
from .models import (
    DeadLetterRecord,
    ProcessedMessageRecord,
    WorkflowExecutionRecord,
)
from .repository import (
    DeadLetterStore,
    Directory,
    ExecutionStore,
    LedgerStore,
    RecordStore,
    Repository,
)

_repository_instance: Repository | None = None


def normalize_database_url(database_url: str) -> str:
    """Map plain ``sqlite://`` and ``postgres://`` URLs onto async drivers."""
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def get_repository(
    database_url: Optional[str] = None, config: Optional[LeadflowConfig] = None
) -> Repository:
    """Factory function to obtain the orchestration repository.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via ``LEADFLOW_DATABASE_URL`` / ``DATABASE_URL``, or from the
    loaded configuration. When no database is configured, an in-memory
    repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("LEADFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        _repository_instance = InMemoryRepository()
        return _repository_instance

    url = normalize_database_url(database_url)
    if not (url.startswith("sqlite+aiosqlite://") or url.startswith("postgresql+asyncpg://")):
        raise ValueError(f"Unsupported database backend: {database_url}")

    from ..db import WorkflowDB

    _repository_instance = WorkflowDB(url)
    return _repository_instance


__all__ = [
    "DeadLetterRecord",
    "DeadLetterStore",
    "Directory",
    "ExecutionStore",
    "InMemoryDirectory",
    "InMemoryRecordStore",
    "InMemoryRepository",
    "LedgerStore",
    "ProcessedMessageRecord",
    "RecordStore",
    "Repository",
    "WorkflowExecutionRecord",
    "get_repository",
    "normalize_database_url",
]
