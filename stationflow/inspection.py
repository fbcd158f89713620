"""Processing of a single station inspection event."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .contracts import (
    EvaluationResult,
    HistoryAction,
    InspectionOutcome,
    InspectionResponse,
    InspectionResult,
    InspectionSubmission,
    WorkflowRecord,
)
from .errors import ErrorCode
from .machine import WorkflowStateMachine, workflow_error
from .states import WorkflowState, WorkflowStatus
from .stations import StationConfig
from .validator import StationCriteriaValidator

logger = logging.getLogger(__name__)


class InspectionProcessor:
    """Validate an inspection and apply its consequences to the workflow."""

    def __init__(
        self, machine: WorkflowStateMachine, validator: StationCriteriaValidator
    ) -> None:
        self.machine = machine
        self.validator = validator
        self.stations = machine.stations

    async def process_inspection(
        self,
        panel_id: str,
        station_id: str,
        submission: InspectionSubmission | Dict[str, Any],
    ) -> InspectionResponse:
        """Evaluate ``submission`` for the panel's current station.

        A FAIL is a normal result: the record stays at its station with status
        ``FAILED`` until a corrected re-inspection or a rework reset.

        Raises:
            WorkflowError: for unknown panels, inspections aimed at a station
                the panel is not at, and malformed criteria.
        """
        if not isinstance(submission, InspectionSubmission):
            submission = InspectionSubmission.model_validate(submission)

        async with self.machine.locks.hold(panel_id):
            record = await self.machine.load(panel_id, "PROCESS_INSPECTION")
            station = self._target_station(record, station_id)
            evaluation = self.validator.evaluate(
                station.station_id.value, submission.criteria, submission.notes
            )
            if submission.result is not None and submission.result != evaluation.result:
                logger.warning(
                    f"Submitted result {submission.result.value} for panel_id={panel_id} "
                    f"disagrees with evaluated result {evaluation.result.value}"
                )

            if evaluation.result == InspectionResult.PASS:
                outcome = self._apply_pass(record, station, submission, evaluation)
            else:
                outcome = self._apply_fail(record, station, submission, evaluation)
            await self.machine.save(record)

        logger.info(
            f"Inspection {outcome.result.value} for panel_id={panel_id} at "
            f"{station.station_id.value} (score={evaluation.quality_score})"
        )
        return InspectionResponse(
            workflow=record.snapshot(),
            outcome=outcome,
            next_actions=self._next_actions(outcome),
        )

    # ------------------------------------------------------------------
    def _target_station(self, record: WorkflowRecord, station_id: str) -> StationConfig:
        station = self.stations.get(station_id)
        if record.current_state != station.workflow_step:
            raise workflow_error(
                ErrorCode.INVALID_INSPECTION_TARGET,
                f"Panel is at {record.current_state.value}, not at {station.name}",
                record,
                "PROCESS_INSPECTION",
                station_id=station.station_id.value,
                expected_state=station.workflow_step.value,
            )
        return station

    def _inspection_details(
        self,
        station: StationConfig,
        submission: InspectionSubmission,
        evaluation: EvaluationResult,
    ) -> Dict[str, Any]:
        return {
            "station_id": station.station_id.value,
            "operator_id": submission.operator_id,
            "result": evaluation.result.value,
            "quality_score": evaluation.quality_score,
            "criteria": _plain(submission.criteria),
            "notes": submission.notes,
            "failure_reasons": [f.model_dump(mode="json") for f in evaluation.failure_reasons],
            "required_actions": list(evaluation.required_actions),
        }

    def _apply_pass(
        self,
        record: WorkflowRecord,
        station: StationConfig,
        submission: InspectionSubmission,
        evaluation: EvaluationResult,
    ) -> InspectionOutcome:
        key = station.station_id.value
        record.station_results[key] = InspectionResult.PASS
        record.quality_score = evaluation.quality_score
        record.station_id = key
        record.operator_id = submission.operator_id or record.operator_id
        record.status = WorkflowStatus.ACTIVE
        record.failed_station_id = None
        self.machine.append_history(
            record,
            HistoryAction.INSPECTION_PASS,
            record.current_state,
            record.current_state,
            self._inspection_details(station, submission, evaluation),
        )

        if station.workflow_step == WorkflowState.PERFORMANCE_FINAL:
            self.machine.apply_completion(
                record,
                {
                    "quality_score": evaluation.quality_score,
                    "final_inspector": submission.operator_id,
                    "completion_notes": submission.notes,
                },
            )
            message = "Final inspection passed, workflow completed"
        else:
            self.machine.apply_transition(
                record,
                record.next_state,
                {"station_id": key, "reason": "Inspection passed"},
            )
            message = "Inspection passed, proceeding to next station"

        return InspectionOutcome(
            result=InspectionResult.PASS,
            station_id=key,
            quality_score=evaluation.quality_score,
            next_state=record.current_state,
            message=message,
        )

    def _apply_fail(
        self,
        record: WorkflowRecord,
        station: StationConfig,
        submission: InspectionSubmission,
        evaluation: EvaluationResult,
    ) -> InspectionOutcome:
        key = station.station_id.value
        record.station_results[key] = InspectionResult.FAIL
        record.station_id = key
        record.operator_id = submission.operator_id or record.operator_id
        record.status = WorkflowStatus.FAILED
        record.failed_station_id = key
        self.machine.append_history(
            record,
            HistoryAction.INSPECTION_FAIL,
            record.current_state,
            record.current_state,
            self._inspection_details(station, submission, evaluation),
        )
        return InspectionOutcome(
            result=InspectionResult.FAIL,
            station_id=key,
            quality_score=evaluation.quality_score,
            next_state=record.current_state,
            failure_reasons=evaluation.failure_reasons,
            required_actions=evaluation.required_actions,
            message="Inspection failed, panel requires correction or rework",
        )

    def _next_actions(self, outcome: InspectionOutcome) -> List[str]:
        if outcome.result == InspectionResult.FAIL:
            return [
                "Review failure reasons",
                "Resubmit inspection or initiate rework",
                *outcome.required_actions,
            ]
        if outcome.next_state == WorkflowState.COMPLETED:
            return ["Panel completed successfully", "Ready for packaging and shipping"]
        station = self.stations.for_state(outcome.next_state)
        return [f"Proceed to {station.name}", "Update workflow status"]


def _plain(criteria: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe copy of submitted criteria for the audit trail."""
    plain: Dict[str, Any] = {}
    for name, value in criteria.items():
        if hasattr(value, "model_dump"):
            value = value.model_dump()
        plain[name] = value
    return plain
