"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from ..contracts import HistoryEntry, WorkflowRecord
from .repository import WorkflowRepository, check_append_only


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflow records using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                panel_id TEXT PRIMARY KEY,
                barcode TEXT NOT NULL,
                line_number INTEGER NOT NULL,
                current_state TEXT NOT NULL,
                status TEXT NOT NULL,
                record TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                panel_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                timestamp TEXT NOT NULL,
                action TEXT NOT NULL,
                from_state TEXT,
                to_state TEXT,
                details TEXT,
                UNIQUE (panel_id, seq)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> HistoryEntry:
        return HistoryEntry(
            timestamp=row["timestamp"],
            action=row["action"],
            from_state=row["from_state"],
            to_state=row["to_state"],
            details=json.loads(row["details"]) if row["details"] else {},
        )

    def _history_rows(self, panel_id: str) -> list[sqlite3.Row]:
        return self._fetchall(
            "SELECT timestamp, action, from_state, to_state, details FROM workflow_history WHERE panel_id = ? ORDER BY seq",
            panel_id,
        )

    def _save_sync(self, record: WorkflowRecord) -> None:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(
                    "SELECT timestamp, action, from_state, to_state, details FROM workflow_history WHERE panel_id = ? ORDER BY seq",
                    (record.panel_id,),
                )
                stored = [self._row_to_entry(r) for r in cur.fetchall()]
                check_append_only(stored, record.history)
                cur.execute(
                    """
                    INSERT INTO workflows (panel_id, barcode, line_number, current_state, status, record)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(panel_id) DO UPDATE SET
                        current_state = excluded.current_state,
                        status = excluded.status,
                        record = excluded.record
                    """,
                    (
                        record.panel_id,
                        record.barcode,
                        record.line_number,
                        record.current_state.value,
                        record.status.value,
                        record.model_dump_json(exclude={"history"}),
                    ),
                )
                for seq, entry in enumerate(record.history[len(stored) :], start=len(stored)):
                    cur.execute(
                        "INSERT INTO workflow_history (panel_id, seq, timestamp, action, from_state, to_state, details) VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (
                            record.panel_id,
                            seq,
                            entry.timestamp.isoformat(),
                            entry.action.value,
                            entry.from_state.value if entry.from_state else None,
                            entry.to_state.value if entry.to_state else None,
                            json.dumps(entry.details),
                        ),
                    )
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    # ------------------------------------------------------------------
    # Repository API
    async def exists(self, panel_id: str) -> bool:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT 1 FROM workflows WHERE panel_id = ?", panel_id
        )
        return row is not None

    async def load(self, panel_id: str) -> WorkflowRecord | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT record FROM workflows WHERE panel_id = ?", panel_id
        )
        if not row:
            return None
        history_rows = await asyncio.to_thread(self._history_rows, panel_id)
        record = WorkflowRecord.model_validate_json(row["record"])
        record.history = [self._row_to_entry(r) for r in history_rows]
        return record

    async def save(self, record: WorkflowRecord) -> None:
        await asyncio.to_thread(self._save_sync, record)

    async def list_workflows(self) -> list[WorkflowRecord]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT panel_id, record FROM workflows ORDER BY rowid"
        )
        history_rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT panel_id, timestamp, action, from_state, to_state, details FROM workflow_history ORDER BY panel_id, seq",
        )
        history: dict[str, list[HistoryEntry]] = {}
        for r in history_rows:
            history.setdefault(r["panel_id"], []).append(self._row_to_entry(r))
        workflows: list[WorkflowRecord] = []
        for row in rows:
            record = WorkflowRecord.model_validate_json(row["record"])
            record.history = history.get(row["panel_id"], [])
            workflows.append(record)
        return workflows

    async def get_history(self, panel_id: str) -> list[HistoryEntry] | None:
        if not await self.exists(panel_id):
            return None
        rows = await asyncio.to_thread(self._history_rows, panel_id)
        return [self._row_to_entry(r) for r in rows]

    def close(self) -> None:
        self._conn.close()
