"""Repository abstraction for workflow record persistence."""

from __future__ import annotations

from typing import Protocol

from ..contracts import HistoryEntry, WorkflowRecord


class WorkflowRepository(Protocol):
    """Protocol for workflow record storage backends.

    A record owns its history. ``save`` stores the record and appends the
    history entries the store has not seen yet; it must reject a record
    whose history does not extend what is already stored.
    """

    async def exists(self, panel_id: str) -> bool:
        """Return ``True`` when a record for ``panel_id`` is stored."""

    async def load(self, panel_id: str) -> WorkflowRecord | None:
        """Retrieve the record, including its history, by panel id."""

    async def save(self, record: WorkflowRecord) -> None:
        """Insert or update ``record`` and append its new history entries."""

    async def list_workflows(self) -> list[WorkflowRecord]:
        """Return all stored records."""

    async def get_history(self, panel_id: str) -> list[HistoryEntry] | None:
        """Return the ordered history of ``panel_id`` or ``None`` if unknown."""


def check_append_only(stored: list[HistoryEntry], incoming: list[HistoryEntry]) -> None:
    """Raise ``ValueError`` unless ``incoming`` extends ``stored``."""

    if len(incoming) < len(stored) or incoming[: len(stored)] != stored:
        raise ValueError("Workflow history is append-only")
