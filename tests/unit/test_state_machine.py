import pytest

from stationflow import (
    ErrorCode,
    HistoryAction,
    InspectionResult,
    StationId,
    WorkflowError,
    WorkflowState,
    WorkflowStatus,
)
from tests.fixtures.panels import make_engine, new_panel_id, pass_stations, start_panel


@pytest.mark.asyncio
async def test_initialize_workflow_creates_validated_record():
    engine = make_engine()
    panel_id = new_panel_id()

    record = await engine.initialize_workflow(panel_id, "BC-123", 2)

    assert record.panel_id == panel_id
    assert record.barcode == "BC-123"
    assert record.line_number == 2
    assert record.current_state == WorkflowState.VALIDATED
    assert record.previous_state == WorkflowState.INITIALIZED
    assert record.next_state == WorkflowState.ASSEMBLY_EL
    assert record.status == WorkflowStatus.ACTIVE
    assert record.workflow_progress == 0
    assert [e.action for e in record.history] == [
        HistoryAction.WORKFLOW_INITIALIZED,
        HistoryAction.STATE_TRANSITION,
    ]
    assert record.history[0].details == {"barcode": "BC-123", "line_number": 2}


@pytest.mark.asyncio
async def test_initialize_twice_is_rejected():
    engine = make_engine()
    panel_id = new_panel_id()
    await engine.initialize_workflow(panel_id, "BC-1", 1)

    with pytest.raises(WorkflowError) as exc:
        await engine.initialize_workflow(panel_id, "BC-2", 1)
    assert exc.value.code == ErrorCode.DUPLICATE_WORKFLOW
    assert exc.value.panel_id == panel_id

    record = await engine.get_workflow_state(panel_id)
    assert record.barcode == "BC-1"
    assert len(record.history) == 2


@pytest.mark.asyncio
async def test_transition_to_first_station():
    engine = make_engine()
    panel_id = new_panel_id()
    await engine.initialize_workflow(panel_id, "BC-1", 1)

    record = await engine.transition_workflow(
        panel_id, WorkflowState.ASSEMBLY_EL, {"reason": "Loaded on line"}
    )

    assert record.current_state == WorkflowState.ASSEMBLY_EL
    assert record.previous_state == WorkflowState.VALIDATED
    assert record.next_state == WorkflowState.FRAMING
    last = record.history[-1]
    assert last.action == HistoryAction.STATE_TRANSITION
    assert last.from_state == WorkflowState.VALIDATED
    assert last.to_state == WorkflowState.ASSEMBLY_EL
    assert last.details == {"reason": "Loaded on line"}


@pytest.mark.asyncio
async def test_skipping_a_station_is_rejected():
    engine = make_engine()
    panel_id = new_panel_id()
    await engine.initialize_workflow(panel_id, "BC-1", 1)

    with pytest.raises(WorkflowError) as exc:
        await engine.transition_workflow(panel_id, "FRAMING")
    error = exc.value
    assert error.code == ErrorCode.INVALID_TRANSITION
    assert error.current_state == "VALIDATED"
    assert error.attempted_action == "TRANSITION"
    assert error.details["allowed_transitions"] == ["ASSEMBLY_EL"]

    record = await engine.get_workflow_state(panel_id)
    assert record.current_state == WorkflowState.VALIDATED
    assert len(record.history) == 2


@pytest.mark.asyncio
async def test_reserved_and_unknown_targets_are_rejected():
    engine = make_engine()
    panel_id = new_panel_id()
    await start_panel(engine, panel_id)

    for target in ("COMPLETED", "FAILED", "REWORK", "VALIDATED", "PACKAGING"):
        with pytest.raises(WorkflowError) as exc:
            await engine.transition_workflow(panel_id, target)
        assert exc.value.code == ErrorCode.INVALID_TRANSITION, target


@pytest.mark.asyncio
async def test_leaving_a_station_requires_a_pass():
    engine = make_engine()
    panel_id = new_panel_id()
    await start_panel(engine, panel_id)

    with pytest.raises(WorkflowError) as exc:
        await engine.transition_workflow(panel_id, "FRAMING")
    assert exc.value.code == ErrorCode.INCOMPLETE_PREREQUISITE
    assert exc.value.details["station_id"] == "STATION_1"


@pytest.mark.asyncio
async def test_unknown_panel():
    engine = make_engine()
    with pytest.raises(WorkflowError) as exc:
        await engine.transition_workflow("P-missing", "ASSEMBLY_EL")
    assert exc.value.code == ErrorCode.PANEL_NOT_FOUND
    assert exc.value.panel_id == "P-missing"

    with pytest.raises(WorkflowError) as exc:
        await engine.get_workflow_state("P-missing")
    assert exc.value.code == ErrorCode.PANEL_NOT_FOUND


@pytest.mark.asyncio
async def test_validate_transition_does_not_mutate():
    engine = make_engine()
    panel_id = new_panel_id()
    await engine.initialize_workflow(panel_id, "BC-1", 1)

    assert await engine.validate_transition(panel_id, "ASSEMBLY_EL") is True
    with pytest.raises(WorkflowError):
        await engine.validate_transition(panel_id, "JUNCTION_BOX")

    record = await engine.get_workflow_state(panel_id)
    assert record.current_state == WorkflowState.VALIDATED
    assert len(record.history) == 2


@pytest.mark.asyncio
async def test_returned_records_are_copies():
    engine = make_engine()
    panel_id = new_panel_id()
    record = await engine.initialize_workflow(panel_id, "BC-1", 1)

    record.current_state = WorkflowState.COMPLETED
    record.history.clear()

    stored = await engine.get_workflow_state(panel_id)
    assert stored.current_state == WorkflowState.VALIDATED
    assert len(stored.history) == 2


@pytest.mark.asyncio
async def test_complete_requires_final_station():
    engine = make_engine()
    panel_id = new_panel_id()
    await start_panel(engine, panel_id)

    with pytest.raises(WorkflowError) as exc:
        await engine.complete_workflow(panel_id)
    assert exc.value.code == ErrorCode.INCOMPLETE_PREREQUISITE
    assert exc.value.attempted_action == "COMPLETE"


@pytest.mark.asyncio
async def test_complete_requires_final_inspection_pass():
    engine = make_engine()
    panel_id = new_panel_id()
    await start_panel(engine, panel_id)
    await pass_stations(
        engine, panel_id, [StationId.STATION_1, StationId.STATION_2, StationId.STATION_3]
    )

    record = await engine.get_workflow_state(panel_id)
    assert record.current_state == WorkflowState.PERFORMANCE_FINAL
    assert record.workflow_progress == 75

    with pytest.raises(WorkflowError) as exc:
        await engine.complete_workflow(
            panel_id, {"quality_score": 99.0, "final_inspector": "qa-7"}
        )
    assert exc.value.code == ErrorCode.INCOMPLETE_PREREQUISITE
    assert exc.value.details["stations_not_passed"] == ["STATION_4"]


@pytest.mark.asyncio
async def test_apply_completion_records_overrides():
    engine = make_engine()
    panel_id = new_panel_id()
    await start_panel(engine, panel_id)
    await pass_stations(
        engine, panel_id, [StationId.STATION_1, StationId.STATION_2, StationId.STATION_3]
    )
    record = await engine.get_workflow_state(panel_id)
    record.station_results["STATION_4"] = InspectionResult.PASS

    engine.machine.apply_completion(
        record,
        {"quality_score": 98.5, "final_inspector": "qa-7", "completion_notes": "Boxed"},
    )

    assert record.current_state == WorkflowState.COMPLETED
    assert record.status == WorkflowStatus.COMPLETED
    assert record.workflow_progress == 100
    assert record.quality_score == 98.5
    entry = record.history[-1]
    assert entry.action == HistoryAction.WORKFLOW_COMPLETED
    assert entry.from_state == WorkflowState.PERFORMANCE_FINAL
    assert entry.details == {
        "quality_score": 98.5,
        "final_inspector": "qa-7",
        "completion_notes": "Boxed",
    }


@pytest.mark.asyncio
async def test_complete_after_final_pass_is_rejected():
    engine = make_engine()
    panel_id = new_panel_id()
    await start_panel(engine, panel_id)
    await pass_stations(engine, panel_id, list(StationId))

    with pytest.raises(WorkflowError) as exc:
        await engine.complete_workflow(panel_id, {"final_inspector": "qa-7"})
    assert exc.value.code == ErrorCode.INCOMPLETE_PREREQUISITE
    assert exc.value.current_state == "COMPLETED"

    history = await engine.get_workflow_history(panel_id)
    completions = [e for e in history if e.action == HistoryAction.WORKFLOW_COMPLETED]
    assert len(completions) == 1


@pytest.mark.asyncio
async def test_error_serializes_for_transport():
    engine = make_engine()
    panel_id = new_panel_id()
    await engine.initialize_workflow(panel_id, "BC-1", 1)

    with pytest.raises(WorkflowError) as exc:
        await engine.transition_workflow(panel_id, "PERFORMANCE_FINAL")
    payload = exc.value.to_dict()
    assert payload["code"] == "INVALID_TRANSITION"
    assert payload["panel_id"] == panel_id
    assert payload["current_state"] == "VALIDATED"
    assert payload["details"]["attempted_transition"] == "PERFORMANCE_FINAL"
