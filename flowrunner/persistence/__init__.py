"""Persistence layer for flowrunner executions."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowRunnerConfig, load_config
from .inmemory import InMemoryExecutionRepository
from .models import ExecutionRecord, StepRecord
from .repository import ExecutionRepository
from .sqlite import SQLiteExecutionRepository

_repository_instance: ExecutionRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[FlowRunnerConfig] = None
) -> ExecutionRepository:
    """Factory function to obtain an execution repository.

    The backend is selected from ``database_url``, which can be provided
    explicitly, via ``FLOWRUNNER_DATABASE_URL`` or ``DATABASE_URL``, or from
    loaded configuration. When no database is configured, an in-memory
    repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("FLOWRUNNER_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        _repository_instance = InMemoryExecutionRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteExecutionRepository(path)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


def reset_repository() -> None:
    """Forget the cached repository instance."""
    global _repository_instance
    _repository_instance = None


__all__ = [
    "ExecutionRecord",
    "StepRecord",
    "ExecutionRepository",
    "InMemoryExecutionRepository",
    "SQLiteExecutionRepository",
    "get_repository",
    "reset_repository",
]
