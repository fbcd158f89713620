"""Stationflow: station workflow engine for solar panel production."""

from .catalog import CriteriaCatalog, CriterionDefinition, CriterionType, default_catalog
from .contracts import (
    CompletionData,
    HistoryAction,
    HistoryEntry,
    InspectionResponse,
    InspectionResult,
    InspectionSubmission,
    ReworkRequest,
    WorkflowRecord,
)
from .engine import StationWorkflowEngine
from .errors import CriteriaConfigurationError, ErrorCode, WorkflowError
from .persistence import get_repository
from .states import WorkflowState, WorkflowStatus
from .stations import StationId, StationRegistry

__version__ = "0.1.0"
__all__ = [
    "CompletionData",
    "CriteriaCatalog",
    "CriteriaConfigurationError",
    "CriterionDefinition",
    "CriterionType",
    "ErrorCode",
    "HistoryAction",
    "HistoryEntry",
    "InspectionResponse",
    "InspectionResult",
    "InspectionSubmission",
    "ReworkRequest",
    "StationId",
    "StationRegistry",
    "StationWorkflowEngine",
    "WorkflowError",
    "WorkflowRecord",
    "WorkflowState",
    "WorkflowStatus",
    "default_catalog",
    "get_repository",
]
