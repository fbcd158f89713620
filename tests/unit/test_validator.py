import pytest

from stationflow import (
    ErrorCode,
    InspectionResult,
    StationId,
    StationRegistry,
    WorkflowError,
    default_catalog,
)
from stationflow.contracts import NumericReading
from stationflow.stations import DEFAULT_STATION_CONFIGS
from stationflow.validator import StationCriteriaValidator
from tests.fixtures.panels import PASSING_CRITERIA


def _validator(**station_changes) -> StationCriteriaValidator:
    configs = [c.model_copy(deep=True) for c in DEFAULT_STATION_CONFIGS.values()]
    for station_id, changes in station_changes.items():
        criteria = configs[list(StationId).index(StationId(station_id))].criteria
        for field, value in changes.items():
            setattr(criteria, field, value)
    return StationCriteriaValidator(StationRegistry(default_catalog(), configs))


def _station_4(**overrides):
    criteria = dict(PASSING_CRITERIA[StationId.STATION_4])
    criteria.update(overrides)
    return criteria


def test_all_boolean_criteria_pass():
    result = _validator().evaluate("STATION_1", PASSING_CRITERIA[StationId.STATION_1])
    assert result.result == InspectionResult.PASS
    assert result.quality_score == 100
    assert result.passed_criteria == result.total_criteria == 3
    assert result.failure_reasons == []
    assert result.required_actions == []


def test_failed_required_criteria_produce_reasons_and_actions():
    result = _validator().evaluate(
        "STATION_1",
        {"cellAlignment": False, "electricalConnection": True, "visualInspection": False},
    )
    assert result.result == InspectionResult.FAIL
    assert result.quality_score == pytest.approx(33.33)
    assert [f.criterion for f in result.failure_reasons] == [
        "cellAlignment",
        "visualInspection",
    ]
    assert result.failure_reasons[0].reason == "Required criterion 'cellAlignment' failed"
    assert result.required_actions == [
        "Realign solar cells within tolerance",
        "Clean or replace defective cells and re-inspect",
    ]


def test_pass_fail_words_accepted_for_boolean_criteria():
    result = _validator().evaluate(
        "STATION_2",
        {"frameAlignment": "PASS", "cornerSeals": "pass", "mountingHoles": "FAIL"},
    )
    assert result.result == InspectionResult.FAIL
    assert [f.criterion for f in result.failure_reasons] == ["mountingHoles"]
    assert result.required_actions == ["Review and correct mountingHoles issue"]


def test_missing_required_criterion():
    with pytest.raises(WorkflowError) as exc:
        _validator().evaluate("STATION_1", {"cellAlignment": True, "visualInspection": True})
    assert exc.value.code == ErrorCode.MISSING_REQUIRED_CRITERIA
    assert exc.value.details["missing"] == ["electricalConnection"]


def test_none_counts_as_missing():
    criteria = dict(PASSING_CRITERIA[StationId.STATION_1], visualInspection=None)
    with pytest.raises(WorkflowError) as exc:
        _validator().evaluate("STATION_1", criteria)
    assert exc.value.code == ErrorCode.MISSING_REQUIRED_CRITERIA


def test_criteria_not_configured_for_station_are_rejected():
    validator = _validator()
    # unknown to the catalog
    with pytest.raises(WorkflowError) as exc:
        validator.evaluate(
            "STATION_1", dict(PASSING_CRITERIA[StationId.STATION_1], glassThickness=3.2)
        )
    assert exc.value.code == ErrorCode.INVALID_CRITERIA
    assert exc.value.details["unknown"] == ["glassThickness"]
    # known, but belongs to another station
    with pytest.raises(WorkflowError) as exc:
        validator.evaluate(
            "STATION_1", dict(PASSING_CRITERIA[StationId.STATION_1], frameAlignment=True)
        )
    assert exc.value.code == ErrorCode.INVALID_CRITERIA


def test_malformed_values_are_rejected():
    validator = _validator()
    with pytest.raises(WorkflowError) as exc:
        validator.evaluate(
            "STATION_1", dict(PASSING_CRITERIA[StationId.STATION_1], cellAlignment=1)
        )
    assert exc.value.code == ErrorCode.INVALID_CRITERIA
    assert exc.value.details["criterion"] == "cellAlignment"

    with pytest.raises(WorkflowError) as exc:
        validator.evaluate("STATION_4", _station_4(powerOutput="lots"))
    assert exc.value.code == ErrorCode.INVALID_CRITERIA


def test_optional_failure_can_pull_score_below_threshold():
    criteria = dict(
        PASSING_CRITERIA[StationId.STATION_1],
        cellCount={"value": 58, "expected": 60},
    )
    result = _validator().evaluate("STATION_1", criteria)
    assert result.result == InspectionResult.FAIL
    assert result.quality_score == 75
    assert [f.criterion for f in result.failure_reasons] == ["cellCount"]
    assert result.failure_reasons[0].reason.startswith("Optional criterion 'cellCount'")


def test_station_weights_override_catalog_weights():
    validator = _validator(STATION_1={"weights": {"cellCount": 0.1}})
    criteria = dict(
        PASSING_CRITERIA[StationId.STATION_1],
        cellCount={"value": 58, "expected": 60},
    )
    result = validator.evaluate("STATION_1", criteria)
    assert result.result == InspectionResult.PASS
    assert result.quality_score == pytest.approx(96.77)


def test_threshold_uses_unrounded_weighted_ratio():
    validator = _validator(
        STATION_2={
            "weights": {
                "frameAlignment": 6.3327,
                "cornerSeals": 6.3327,
                "mountingHoles": 6.3326,
                "frameType": 1.0,
            }
        }
    )
    criteria = dict(PASSING_CRITERIA[StationId.STATION_2], frameType=False)

    result = validator.evaluate("STATION_2", criteria)

    # 18.998 / 19.998 sits just under 0.95 but rounds to 95.0
    assert result.quality_score == 95.0
    assert result.result == InspectionResult.FAIL
    assert [f.criterion for f in result.failure_reasons] == ["frameType"]


def test_numeric_tolerance_boundary_is_inclusive():
    validator = _validator()
    on_edge = validator.evaluate(
        "STATION_4", _station_4(powerOutput={"value": 105, "expected": 100})
    )
    assert on_edge.result == InspectionResult.PASS

    beyond = validator.evaluate(
        "STATION_4",
        _station_4(powerOutput={"value": 106, "expected": 100}),
        notes="Low output, sent to analysis",
    )
    assert beyond.result == InspectionResult.FAIL
    assert beyond.failure_reasons[0].criterion == "powerOutput"
    assert "6.00%" in beyond.failure_reasons[0].reason
    assert beyond.required_actions == ["Investigate power output deviation"]


def test_expected_value_sources():
    validator = _validator(STATION_4={"expected": {"powerOutput": 400, "voltageCheck": 49.8}})
    result = validator.evaluate(
        "STATION_4",
        _station_4(
            powerOutput=398,
            voltageCheck=NumericReading(value=49.9),
            # catalog default expected value for efficiency is 0.18
            efficiencyTest=0.18,
        ),
    )
    assert result.result == InspectionResult.PASS


def test_numeric_without_expected_value_is_rejected():
    with pytest.raises(WorkflowError) as exc:
        _validator().evaluate("STATION_4", _station_4(powerOutput=400))
    assert exc.value.code == ErrorCode.INVALID_CRITERIA
    assert exc.value.details["criterion"] == "powerOutput"


def test_zero_expected_value_is_rejected():
    with pytest.raises(WorkflowError) as exc:
        _validator().evaluate(
            "STATION_4", _station_4(currentCheck={"value": 1, "expected": 0})
        )
    assert exc.value.code == ErrorCode.INVALID_CRITERIA


def test_final_station_requires_notes_on_failure():
    validator = _validator()
    failing = _station_4(powerOutput={"value": 300, "expected": 400})
    with pytest.raises(WorkflowError) as exc:
        validator.evaluate("STATION_4", failing)
    assert exc.value.code == ErrorCode.NOTES_REQUIRED
    with pytest.raises(WorkflowError):
        validator.evaluate("STATION_4", failing, notes="   ")

    result = validator.evaluate("STATION_4", failing, notes="Output 25% low")
    assert result.result == InspectionResult.FAIL
    # notes are not needed for a pass
    assert validator.evaluate("STATION_4", _station_4()).result == InspectionResult.PASS


def test_final_station_threshold_is_stricter():
    # one failing optional out of five criteria gives 80, below 98
    criteria = _station_4(temperatureCoefficient={"value": 0.5, "expected": 0.35})
    result = _validator().evaluate("STATION_4", criteria, notes="Temperature drift")
    assert result.result == InspectionResult.FAIL
    assert result.quality_score == 80


def test_unknown_station():
    with pytest.raises(WorkflowError) as exc:
        _validator().evaluate("STATION_0", {})
    assert exc.value.code == ErrorCode.INVALID_INSPECTION_TARGET
