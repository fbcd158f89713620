"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict

from ..contracts import HistoryEntry, WorkflowRecord
from .repository import WorkflowRepository, check_append_only


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in and
    out so callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowRecord] = {}

    async def exists(self, panel_id: str) -> bool:
        return panel_id in self._workflows

    async def load(self, panel_id: str) -> WorkflowRecord | None:
        wf = self._workflows.get(panel_id)
        return wf.snapshot() if wf else None

    async def save(self, record: WorkflowRecord) -> None:
        stored = self._workflows.get(record.panel_id)
        if stored is not None:
            check_append_only(stored.history, record.history)
        self._workflows[record.panel_id] = record.snapshot()

    async def list_workflows(self) -> list[WorkflowRecord]:
        return [wf.snapshot() for wf in self._workflows.values()]

    async def get_history(self, panel_id: str) -> list[HistoryEntry] | None:
        wf = self._workflows.get(panel_id)
        if wf is None:
            return None
        return [entry.model_copy(deep=True) for entry in wf.history]

    def clear(self) -> None:
        self._workflows.clear()
