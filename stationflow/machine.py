"""Finite-state machine owning panel workflow records."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .contracts import (
    CompletionData,
    HistoryAction,
    HistoryEntry,
    InspectionResult,
    WorkflowRecord,
    utcnow,
)
from .errors import ErrorCode, WorkflowError
from .locks import PanelLocks
from .persistence import WorkflowRepository
from .states import (
    GENERIC_TARGETS,
    TRANSITIONS,
    WorkflowState,
    WorkflowStatus,
    is_station_state,
    is_valid_transition,
    next_state,
    progress_for,
)
from .stations import StationRegistry

logger = logging.getLogger(__name__)


def workflow_error(
    code: ErrorCode,
    message: str,
    record: Optional[WorkflowRecord],
    action: str,
    **details: Any,
) -> WorkflowError:
    """Build a :class:`WorkflowError` describing ``record``."""
    return WorkflowError(
        code,
        message,
        panel_id=record.panel_id if record else details.pop("panel_id", None),
        current_state=record.current_state.value if record else None,
        attempted_action=action,
        details=details,
    )


class WorkflowStateMachine:
    """Owns workflow records and enforces the transition table.

    Public coroutines acquire the panel's lock, load the record, mutate it and
    save it. Collaborators that already hold the lock (inspection, rework)
    use the ``load``/``save`` and ``apply_*`` helpers directly so a single
    operation stays one load-mutate-save cycle.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        stations: StationRegistry,
        locks: Optional[PanelLocks] = None,
    ) -> None:
        self.repository = repository
        self.stations = stations
        self.locks = locks or PanelLocks()

    # ------------------------------------------------------------------
    # Operations
    async def initialize_workflow(
        self, panel_id: str, barcode: str, line_number: int
    ) -> WorkflowRecord:
        """Create the record for a newly scanned panel.

        The barcode has already been validated upstream, so the record moves
        straight from ``INITIALIZED`` to ``VALIDATED``.
        """
        async with self.locks.hold(panel_id):
            if await self.repository.exists(panel_id):
                raise workflow_error(
                    ErrorCode.DUPLICATE_WORKFLOW,
                    "Panel workflow already exists",
                    None,
                    "INITIALIZE",
                    panel_id=panel_id,
                )
            record = WorkflowRecord(
                panel_id=panel_id,
                barcode=barcode,
                line_number=line_number,
                current_state=WorkflowState.INITIALIZED,
                next_state=WorkflowState.VALIDATED,
            )
            self.append_history(
                record,
                HistoryAction.WORKFLOW_INITIALIZED,
                None,
                WorkflowState.INITIALIZED,
                {"barcode": barcode, "line_number": line_number},
            )
            self.apply_transition(
                record, WorkflowState.VALIDATED, {"reason": "Barcode validated"}
            )
            await self.save(record)
        logger.info(
            f"Initialized workflow for panel_id={panel_id} barcode={barcode} line={line_number}"
        )
        return record.snapshot()

    async def transition_workflow(
        self,
        panel_id: str,
        target_state: WorkflowState | str,
        details: Optional[Dict[str, Any]] = None,
    ) -> WorkflowRecord:
        """Advance ``panel_id`` exactly one step along the production sequence."""
        async with self.locks.hold(panel_id):
            record = await self.load(panel_id, "TRANSITION")
            self.apply_transition(record, target_state, details)
            await self.save(record)
        logger.info(
            f"Transitioned panel_id={panel_id} "
            f"{record.previous_state.value} -> {record.current_state.value}"
        )
        return record.snapshot()

    async def complete_workflow(
        self,
        panel_id: str,
        completion: CompletionData | Dict[str, Any] | None = None,
    ) -> WorkflowRecord:
        """Mark a panel that passed final inspection as completed.

        A PASS at the final station already completes the workflow inside
        :meth:`InspectionProcessor.process_inspection`, which calls
        :meth:`apply_completion` with the inspection's score, inspector and
        notes. A stored record therefore never sits at ``PERFORMANCE_FINAL``
        with every station passed, and this coroutine only reports
        ``INCOMPLETE_PREREQUISITE`` to external callers: for a record not yet
        at final inspection, one still awaiting it, or one already completed.
        """
        async with self.locks.hold(panel_id):
            record = await self.load(panel_id, "COMPLETE")
            self.apply_completion(record, completion)
            await self.save(record)
        logger.info(
            f"Completed workflow for panel_id={panel_id} quality_score={record.quality_score}"
        )
        return record.snapshot()

    async def validate_transition(
        self, panel_id: str, target_state: WorkflowState | str
    ) -> bool:
        """Check a transition without performing it; raises when illegal."""
        record = await self.load(panel_id, "VALIDATE_TRANSITION")
        self.check_transition(record, target_state)
        return True

    async def get_workflow_state(self, panel_id: str) -> WorkflowRecord:
        return await self.load(panel_id, "GET_STATE")

    # ------------------------------------------------------------------
    # Record-level helpers (caller holds the panel lock)
    async def load(self, panel_id: str, action: str) -> WorkflowRecord:
        record = await self.repository.load(panel_id)
        if record is None:
            raise workflow_error(
                ErrorCode.PANEL_NOT_FOUND,
                "Panel workflow not found",
                None,
                action,
                panel_id=panel_id,
            )
        return record

    async def save(self, record: WorkflowRecord) -> None:
        record.updated_at = utcnow()
        await self.repository.save(record)

    def check_transition(
        self, record: WorkflowRecord, target_state: WorkflowState | str
    ) -> WorkflowState:
        """Return the validated target or raise :class:`WorkflowError`."""
        action = "TRANSITION"
        current = record.current_state
        try:
            target = WorkflowState(target_state)
        except ValueError:
            raise workflow_error(
                ErrorCode.INVALID_TRANSITION,
                f"Unknown workflow state: {target_state}",
                record,
                action,
                attempted_transition=str(target_state),
            ) from None

        allowed = sorted(s.value for s in TRANSITIONS[current] & GENERIC_TARGETS)
        if target not in GENERIC_TARGETS or not is_valid_transition(current, target):
            raise workflow_error(
                ErrorCode.INVALID_TRANSITION,
                f"Invalid transition from {current.value} to {target.value}",
                record,
                action,
                allowed_transitions=allowed,
                attempted_transition=target.value,
            )
        if record.status in (WorkflowStatus.FAILED, WorkflowStatus.COMPLETED):
            raise workflow_error(
                ErrorCode.INVALID_TRANSITION,
                f"Cannot transition a {record.status.value} workflow",
                record,
                action,
                status=record.status.value,
                attempted_transition=target.value,
            )
        if is_station_state(current):
            station = self.stations.for_state(current)
            if record.station_results.get(station.station_id.value) != InspectionResult.PASS:
                raise workflow_error(
                    ErrorCode.INCOMPLETE_PREREQUISITE,
                    f"{station.name} has not passed inspection",
                    record,
                    action,
                    station_id=station.station_id.value,
                    attempted_transition=target.value,
                )
        return target

    def apply_transition(
        self,
        record: WorkflowRecord,
        target_state: WorkflowState | str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        target = self.check_transition(record, target_state)
        self.move(record, target)
        self.append_history(
            record,
            HistoryAction.STATE_TRANSITION,
            record.previous_state,
            target,
            details,
        )

    def check_completion(self, record: WorkflowRecord) -> None:
        action = "COMPLETE"
        if record.current_state != WorkflowState.PERFORMANCE_FINAL:
            raise workflow_error(
                ErrorCode.INCOMPLETE_PREREQUISITE,
                "Panel must be at final inspection to complete workflow",
                record,
                action,
                required_state=WorkflowState.PERFORMANCE_FINAL.value,
            )
        not_passed = [
            station.station_id.value
            for station in self.stations.all()
            if record.station_results.get(station.station_id.value)
            != InspectionResult.PASS
        ]
        if not_passed:
            raise workflow_error(
                ErrorCode.INCOMPLETE_PREREQUISITE,
                "Every station must pass inspection before completion",
                record,
                action,
                stations_not_passed=not_passed,
            )

    def apply_completion(
        self,
        record: WorkflowRecord,
        completion: CompletionData | Dict[str, Any] | None = None,
    ) -> None:
        if not isinstance(completion, CompletionData):
            completion = CompletionData.model_validate(completion or {})
        self.check_completion(record)
        if completion.quality_score is not None:
            record.quality_score = completion.quality_score
        self.move(record, WorkflowState.COMPLETED)
        record.status = WorkflowStatus.COMPLETED
        record.failed_station_id = None
        self.append_history(
            record,
            HistoryAction.WORKFLOW_COMPLETED,
            record.previous_state,
            WorkflowState.COMPLETED,
            {
                "quality_score": record.quality_score,
                "final_inspector": completion.final_inspector,
                "completion_notes": completion.completion_notes,
            },
        )

    @staticmethod
    def move(record: WorkflowRecord, target: WorkflowState) -> None:
        record.previous_state = record.current_state
        record.current_state = target
        record.next_state = next_state(target)
        record.workflow_progress = progress_for(target)

    @staticmethod
    def append_history(
        record: WorkflowRecord,
        action: HistoryAction,
        from_state: Optional[WorkflowState],
        to_state: Optional[WorkflowState],
        details: Optional[Dict[str, Any]] = None,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            action=action,
            from_state=from_state,
            to_state=to_state,
            details=dict(details or {}),
        )
        record.history.append(entry)
        return entry
