"""Pass/fail evaluation of inspection criteria for a station."""

from __future__ import annotations

import logging
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from .catalog import CriterionDefinition, CriterionType
from .contracts import EvaluationResult, FailureReason, InspectionResult, NumericReading
from .errors import ErrorCode, WorkflowError
from .stations import StationConfig, StationRegistry

logger = logging.getLogger(__name__)

# Absorbs float noise when a reading sits exactly on the tolerance edge.
_TOLERANCE_EPSILON = 1e-9

_BOOLEAN_WORDS = {"PASS": True, "FAIL": False}


class BoolCriterion(BaseModel):
    kind: Literal["boolean"] = "boolean"
    name: str
    value: bool


class NumericCriterion(BaseModel):
    kind: Literal["numeric"] = "numeric"
    name: str
    value: float
    expected: float
    tolerance: float

    @property
    def deviation(self) -> float:
        return abs(self.value - self.expected) / abs(self.expected)


Criterion = Union[BoolCriterion, NumericCriterion]


class StationCriteriaValidator:
    """Evaluate submitted criteria against station configuration and catalog."""

    def __init__(self, stations: StationRegistry) -> None:
        self.stations = stations
        self.catalog = stations.catalog

    # ------------------------------------------------------------------
    def evaluate(
        self,
        station_id: str,
        submitted: Mapping[str, Any],
        notes: Optional[str] = None,
    ) -> EvaluationResult:
        """Score ``submitted`` for ``station_id``.

        Raises:
            WorkflowError: ``MISSING_REQUIRED_CRITERIA`` when a required
                criterion is absent, ``INVALID_CRITERIA`` for unknown names or
                malformed values, ``NOTES_REQUIRED`` for a FAIL without notes
                at a station that demands them.
        """
        station = self.stations.get(station_id)
        rules = station.criteria
        present = {name: value for name, value in submitted.items() if value is not None}

        missing = [name for name in rules.required if name not in present]
        if missing:
            raise WorkflowError(
                ErrorCode.MISSING_REQUIRED_CRITERIA,
                f"Missing required criteria for {station.station_id.value}: "
                f"{', '.join(missing)}",
                details={"station_id": station.station_id.value, "missing": missing},
            )

        configured = rules.configured()
        unknown = [name for name in present if name not in configured]
        if unknown:
            raise WorkflowError(
                ErrorCode.INVALID_CRITERIA,
                f"Criteria not configured for {station.station_id.value}: "
                f"{', '.join(unknown)}",
                details={"station_id": station.station_id.value, "unknown": unknown},
            )

        evaluated = [
            self.normalize(station, name, present[name])
            for name in configured
            if name in present
        ]
        if not evaluated:
            raise WorkflowError(
                ErrorCode.INVALID_CRITERIA,
                f"No criteria submitted for {station.station_id.value}",
                details={"station_id": station.station_id.value},
            )

        passed_weight = 0.0
        total_weight = 0.0
        passed_count = 0
        required_ok = True
        failures: List[FailureReason] = []
        for criterion in evaluated:
            definition = self.catalog.get(criterion.name)
            weight = rules.weights.get(criterion.name, definition.weight)
            total_weight += weight
            if self._passes(criterion, definition):
                passed_weight += weight
                passed_count += 1
                continue
            is_required = criterion.name in rules.required
            required_ok = required_ok and not is_required
            failures.append(self._failure_reason(criterion, definition, is_required))

        ratio = passed_weight / total_weight
        # threshold applies to the exact ratio, the score is rounded for display
        quality_score = round(ratio * 100, 2)
        if required_ok and ratio >= rules.pass_threshold:
            result = InspectionResult.PASS
        else:
            result = InspectionResult.FAIL

        if (
            result == InspectionResult.FAIL
            and rules.notes_required
            and not (notes and notes.strip())
        ):
            raise WorkflowError(
                ErrorCode.NOTES_REQUIRED,
                f"Notes are required for FAIL results at {station.station_id.value}",
                details={
                    "station_id": station.station_id.value,
                    "failed_criteria": [f.criterion for f in failures],
                },
            )

        logger.debug(
            f"Evaluated {station.station_id.value}: result={result.value} "
            f"score={quality_score} failures={len(failures)}"
        )
        return EvaluationResult(
            result=result,
            quality_score=quality_score,
            passed_criteria=passed_count,
            total_criteria=len(evaluated),
            failure_reasons=failures,
            required_actions=self.required_actions(failures),
        )

    # ------------------------------------------------------------------
    def normalize(self, station: StationConfig, name: str, raw: Any) -> Criterion:
        """Turn a raw submitted value into a typed criterion."""
        definition = self.catalog.get(name)
        if definition.type == CriterionType.BOOLEAN:
            value = _as_bool(raw)
            if value is None:
                raise _invalid_value(station, name, raw, "expected a boolean")
            return BoolCriterion(name=name, value=value)

        reading = _as_reading(raw)
        if reading is None:
            raise _invalid_value(station, name, raw, "expected a number")
        expected = reading.expected
        if expected is None:
            expected = station.criteria.expected.get(name, definition.expected)
        if expected is None:
            raise _invalid_value(station, name, raw, "no expected value available")
        if expected == 0:
            raise _invalid_value(station, name, raw, "expected value must be non-zero")
        return NumericCriterion(
            name=name,
            value=reading.value,
            expected=expected,
            tolerance=definition.tolerance,
        )

    def required_actions(self, failures: List[FailureReason]) -> List[str]:
        """Remediation hints for ``failures``, in order, without duplicates."""
        actions: List[str] = []
        for failure in failures:
            hint = self.catalog.get(failure.criterion).remediation_hint()
            if hint not in actions:
                actions.append(hint)
        return actions

    # ------------------------------------------------------------------
    @staticmethod
    def _passes(criterion: Criterion, definition: CriterionDefinition) -> bool:
        if isinstance(criterion, BoolCriterion):
            return criterion.value == definition.pass_value
        return criterion.deviation <= criterion.tolerance + _TOLERANCE_EPSILON

    @staticmethod
    def _failure_reason(
        criterion: Criterion, definition: CriterionDefinition, required: bool
    ) -> FailureReason:
        kind = "Required" if required else "Optional"
        if isinstance(criterion, BoolCriterion):
            return FailureReason(
                criterion=criterion.name,
                reason=f"{kind} criterion '{criterion.name}' failed",
                value=criterion.value,
            )
        unit = definition.unit or ""
        return FailureReason(
            criterion=criterion.name,
            reason=(
                f"{kind} criterion '{criterion.name}' measured "
                f"{criterion.value:g}{unit}, expected {criterion.expected:g}{unit} "
                f"(deviation {criterion.deviation:.2%}, tolerance "
                f"{criterion.tolerance:.2%})"
            ),
            value=criterion.value,
        )


def _as_bool(raw: Any) -> Optional[bool]:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return _BOOLEAN_WORDS.get(raw.strip().upper())
    return None


def _as_reading(raw: Any) -> Optional[NumericReading]:
    if isinstance(raw, NumericReading):
        return raw
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return NumericReading(value=raw)
    if isinstance(raw, dict):
        try:
            return NumericReading.model_validate(raw)
        except ValidationError:
            return None
    return None


def _invalid_value(
    station: StationConfig, name: str, raw: Any, problem: str
) -> WorkflowError:
    return WorkflowError(
        ErrorCode.INVALID_CRITERIA,
        f"Invalid value for '{name}' at {station.station_id.value}: {problem}",
        details={"station_id": station.station_id.value, "criterion": name, "value": raw},
    )
