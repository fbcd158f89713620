"""Workflow states, lifecycle statuses and the transition table."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class WorkflowState(str, Enum):
    """Position of a panel in the production sequence."""

    INITIALIZED = "INITIALIZED"
    VALIDATED = "VALIDATED"
    ASSEMBLY_EL = "ASSEMBLY_EL"
    FRAMING = "FRAMING"
    JUNCTION_BOX = "JUNCTION_BOX"
    PERFORMANCE_FINAL = "PERFORMANCE_FINAL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REWORK = "REWORK"


class WorkflowStatus(str, Enum):
    """Lifecycle bucket of a record, orthogonal to its state."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REWORK = "REWORK"


# Ordered station states; index + 1 is the station number.
STATION_STATES: Tuple[WorkflowState, ...] = (
    WorkflowState.ASSEMBLY_EL,
    WorkflowState.FRAMING,
    WorkflowState.JUNCTION_BOX,
    WorkflowState.PERFORMANCE_FINAL,
)

HAPPY_PATH: Tuple[WorkflowState, ...] = (
    WorkflowState.INITIALIZED,
    WorkflowState.VALIDATED,
    *STATION_STATES,
    WorkflowState.COMPLETED,
)

TRANSITIONS: Dict[WorkflowState, FrozenSet[WorkflowState]] = {
    WorkflowState.INITIALIZED: frozenset({WorkflowState.VALIDATED}),
    WorkflowState.VALIDATED: frozenset({WorkflowState.ASSEMBLY_EL}),
    WorkflowState.ASSEMBLY_EL: frozenset(
        {WorkflowState.FRAMING, WorkflowState.FAILED, WorkflowState.REWORK}
    ),
    WorkflowState.FRAMING: frozenset(
        {WorkflowState.JUNCTION_BOX, WorkflowState.FAILED, WorkflowState.REWORK}
    ),
    WorkflowState.JUNCTION_BOX: frozenset(
        {WorkflowState.PERFORMANCE_FINAL, WorkflowState.FAILED, WorkflowState.REWORK}
    ),
    WorkflowState.PERFORMANCE_FINAL: frozenset(
        {WorkflowState.COMPLETED, WorkflowState.FAILED, WorkflowState.REWORK}
    ),
    WorkflowState.FAILED: frozenset({WorkflowState.REWORK}),
    WorkflowState.REWORK: frozenset(STATION_STATES),
    WorkflowState.COMPLETED: frozenset(),
}

# Targets a generic transition request may name. COMPLETED belongs to
# complete_workflow, FAILED and REWORK to inspection and rework handling.
GENERIC_TARGETS: FrozenSet[WorkflowState] = frozenset(
    {WorkflowState.VALIDATED, *STATION_STATES}
)


def is_valid_transition(current: WorkflowState, target: WorkflowState) -> bool:
    """Return ``True`` when ``target`` is adjacent to ``current``."""
    return target in TRANSITIONS.get(current, frozenset())


def next_state(state: WorkflowState) -> Optional[WorkflowState]:
    """Next state on the happy path, ``None`` for terminal or side states."""
    if state not in HAPPY_PATH:
        return None
    index = HAPPY_PATH.index(state)
    if index + 1 >= len(HAPPY_PATH):
        return None
    return HAPPY_PATH[index + 1]


def progress_for(state: WorkflowState) -> int:
    """Percentage of stations already passed when a record sits at ``state``."""
    if state == WorkflowState.COMPLETED:
        return 100
    if state in STATION_STATES:
        return STATION_STATES.index(state) * 100 // len(STATION_STATES)
    return 0


def is_station_state(state: WorkflowState) -> bool:
    return state in STATION_STATES
