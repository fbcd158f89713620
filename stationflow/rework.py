"""Operator-initiated recovery of failed panels."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .contracts import HistoryAction, ReworkRequest, WorkflowRecord
from .errors import ErrorCode, WorkflowError
from .machine import WorkflowStateMachine, workflow_error
from .states import WorkflowState, WorkflowStatus, is_valid_transition
from .stations import STATION_ORDER, StationConfig, StationId

logger = logging.getLogger(__name__)


class ReworkManager:
    """Return a failed panel to a station's entry state for re-inspection.

    Rework is the only way a record moves backwards, and only a ``FAILED``
    record may do so.
    """

    def __init__(
        self, machine: WorkflowStateMachine, max_rework_attempts: Optional[int] = 3
    ) -> None:
        self.machine = machine
        self.stations = machine.stations
        self.max_rework_attempts = max_rework_attempts

    async def reset_workflow_for_rework(
        self,
        panel_id: str,
        station_id: str,
        request: ReworkRequest | Dict[str, Any],
    ) -> WorkflowRecord:
        if not isinstance(request, ReworkRequest):
            request = ReworkRequest.model_validate(request)

        async with self.machine.locks.hold(panel_id):
            record = await self.machine.load(panel_id, "RESET_FOR_REWORK")
            target = self._check_rework(record, station_id, request)
            failed_station = record.failed_station_id
            origin = record.current_state

            record.status = WorkflowStatus.REWORK
            self.machine.move(record, WorkflowState.REWORK)
            self.machine.move(record, target.workflow_step)
            record.previous_state = origin
            record.status = WorkflowStatus.ACTIVE
            record.rework_count += 1
            record.rework_reason = request.reason
            record.failed_station_id = None
            for station in STATION_ORDER[target.index :]:
                record.station_results.pop(station.value, None)

            self.machine.append_history(
                record,
                HistoryAction.REWORK_RESET,
                origin,
                target.workflow_step,
                {
                    "target_station": target.station_id.value,
                    "failed_station": failed_station,
                    "reason": request.reason,
                    "notes": list(request.notes),
                    "operator_id": request.operator_id,
                    "rework_count": record.rework_count,
                    "via": WorkflowState.REWORK.value,
                },
            )
            await self.machine.save(record)

        logger.info(
            f"Reset panel_id={panel_id} to {target.workflow_step.value} for rework "
            f"(attempt {record.rework_count}): {request.reason}"
        )
        return record.snapshot()

    def _check_rework(
        self, record: WorkflowRecord, station_id: str, request: ReworkRequest
    ) -> StationConfig:
        action = "RESET_FOR_REWORK"
        if record.status != WorkflowStatus.FAILED or record.failed_station_id is None:
            raise workflow_error(
                ErrorCode.INVALID_REWORK,
                "Only a failed workflow can be reset for rework",
                record,
                action,
                status=record.status.value,
            )
        if not request.reason.strip():
            raise workflow_error(
                ErrorCode.INVALID_REWORK,
                "A rework reason is required",
                record,
                action,
            )
        try:
            target = self.stations.get(station_id)
        except WorkflowError:
            raise workflow_error(
                ErrorCode.INVALID_REWORK,
                f"Invalid target station for rework: {station_id}",
                record,
                action,
                station_id=str(station_id),
            ) from None

        failed_index = STATION_ORDER.index(StationId(record.failed_station_id))
        if target.index > failed_index:
            raise workflow_error(
                ErrorCode.INVALID_REWORK,
                "Rework must target the failed station or an earlier one",
                record,
                action,
                station_id=target.station_id.value,
                failed_station=record.failed_station_id,
            )
        if (
            self.max_rework_attempts is not None
            and record.rework_count >= self.max_rework_attempts
        ):
            raise workflow_error(
                ErrorCode.INVALID_REWORK,
                f"Rework limit of {self.max_rework_attempts} attempts reached",
                record,
                action,
                rework_count=record.rework_count,
            )
        if not (
            is_valid_transition(record.current_state, WorkflowState.REWORK)
            and is_valid_transition(WorkflowState.REWORK, target.workflow_step)
        ):
            raise workflow_error(
                ErrorCode.INVALID_REWORK,
                f"Cannot rework from {record.current_state.value}",
                record,
                action,
            )
        return target
