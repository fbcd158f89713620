"""Core data contracts for the station workflow engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .states import WorkflowState, WorkflowStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InspectionResult(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class HistoryAction(str, Enum):
    WORKFLOW_INITIALIZED = "WORKFLOW_INITIALIZED"
    STATE_TRANSITION = "STATE_TRANSITION"
    INSPECTION_PASS = "INSPECTION_PASS"
    INSPECTION_FAIL = "INSPECTION_FAIL"
    REWORK_RESET = "REWORK_RESET"
    WORKFLOW_COMPLETED = "WORKFLOW_COMPLETED"


class HistoryEntry(BaseModel):
    """One immutable line of a panel's audit trail."""

    timestamp: datetime = Field(default_factory=utcnow)
    action: HistoryAction
    from_state: Optional[WorkflowState] = None
    to_state: Optional[WorkflowState] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class WorkflowRecord(BaseModel):
    """Workflow state of a single panel, keyed by ``panel_id``."""

    panel_id: str
    barcode: str
    line_number: int
    current_state: WorkflowState = WorkflowState.INITIALIZED
    previous_state: Optional[WorkflowState] = None
    next_state: Optional[WorkflowState] = None
    workflow_progress: int = 0
    quality_score: Optional[float] = None
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    station_id: Optional[str] = None
    operator_id: Optional[str] = None
    rework_count: int = 0
    rework_reason: Optional[str] = None
    failed_station_id: Optional[str] = None
    # Most recent inspection outcome per station id.
    station_results: Dict[str, InspectionResult] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    history: List[HistoryEntry] = Field(default_factory=list)

    def snapshot(self) -> "WorkflowRecord":
        """Deep copy safe to hand to callers."""
        return self.model_copy(deep=True)


class NumericReading(BaseModel):
    """Numeric measurement submitted with an explicit expected value."""

    value: float
    expected: Optional[float] = None


class InspectionSubmission(BaseModel):
    """Inspection data as submitted by a station operator.

    ``result`` is advisory; the engine always recomputes the outcome.
    """

    criteria: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[InspectionResult] = None
    notes: Optional[str] = None
    operator_id: Optional[str] = None


class FailureReason(BaseModel):
    criterion: str
    reason: str
    value: Any = None


class EvaluationResult(BaseModel):
    """Outcome of evaluating one submission against a station."""

    result: InspectionResult
    quality_score: float
    passed_criteria: int
    total_criteria: int
    failure_reasons: List[FailureReason] = Field(default_factory=list)
    required_actions: List[str] = Field(default_factory=list)


class InspectionOutcome(BaseModel):
    result: InspectionResult
    station_id: str
    quality_score: float
    next_state: Optional[WorkflowState] = None
    failure_reasons: List[FailureReason] = Field(default_factory=list)
    required_actions: List[str] = Field(default_factory=list)
    message: str = ""


class InspectionResponse(BaseModel):
    workflow: WorkflowRecord
    outcome: InspectionOutcome
    next_actions: List[str] = Field(default_factory=list)


class ReworkRequest(BaseModel):
    reason: str
    notes: List[str] = Field(default_factory=list)
    operator_id: Optional[str] = None


class CompletionData(BaseModel):
    quality_score: Optional[float] = None
    final_inspector: Optional[str] = None
    completion_notes: Optional[str] = None


class WorkflowStatistics(BaseModel):
    total: int = 0
    by_state: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_station: Dict[str, int] = Field(default_factory=dict)
    average_progress: float = 0.0
    total_rework: int = 0
    generated_at: datetime = Field(default_factory=utcnow)
