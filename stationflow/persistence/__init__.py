"""Persistence layer for station workflow records."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StationflowConfig, load_config
from .inmemory import InMemoryWorkflowRepository
from .repository import WorkflowRepository
from .sqlite import SQLiteWorkflowRepository

_repository_instance: WorkflowRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[StationflowConfig] = None
) -> WorkflowRepository:
    """Return the workflow store for this process.

    ``database_url`` wins over ``STATIONFLOW_DATABASE_URL``, then
    ``DATABASE_URL``, then the configured ``database_url``. Only
    ``sqlite://<path>`` URLs are supported; without a URL panels are kept in
    memory. Calls without arguments reuse the last repository built.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("STATIONFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _repository_instance = InMemoryWorkflowRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteWorkflowRepository(path)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "WorkflowRepository",
    "SQLiteWorkflowRepository",
    "InMemoryWorkflowRepository",
    "get_repository",
]
