"""Station workflow engine facade."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .catalog import CriteriaCatalog, default_catalog
from .config import StationflowConfig, build_station_configs, load_config
from .contracts import (
    CompletionData,
    HistoryEntry,
    InspectionResponse,
    InspectionSubmission,
    ReworkRequest,
    WorkflowRecord,
    WorkflowStatistics,
)
from .inspection import InspectionProcessor
from .locks import PanelLocks
from .machine import WorkflowStateMachine
from .persistence import WorkflowRepository, get_repository
from .queries import WorkflowQueryService
from .rework import ReworkManager
from .states import WorkflowState, WorkflowStatus
from .stations import StationRegistry
from .validator import StationCriteriaValidator


class StationWorkflowEngine:
    """Single entry point exposing every workflow operation to collaborators."""

    def __init__(
        self,
        repository: WorkflowRepository,
        stations: Optional[StationRegistry] = None,
        max_rework_attempts: Optional[int] = 3,
    ) -> None:
        self.repository = repository
        self.stations = stations or StationRegistry(default_catalog())
        self.locks = PanelLocks()
        self.machine = WorkflowStateMachine(repository, self.stations, self.locks)
        self.validator = StationCriteriaValidator(self.stations)
        self.inspections = InspectionProcessor(self.machine, self.validator)
        self.rework = ReworkManager(self.machine, max_rework_attempts)
        self.queries = WorkflowQueryService(repository)

    @classmethod
    def from_config(
        cls,
        config: Optional[StationflowConfig] = None,
        repository: Optional[WorkflowRepository] = None,
        catalog: Optional[CriteriaCatalog] = None,
    ) -> "StationWorkflowEngine":
        """Build an engine from configuration; invalid criteria fail here."""
        config = config or load_config()
        stations = StationRegistry(
            catalog or default_catalog(), build_station_configs(config)
        )
        return cls(
            repository or get_repository(config=config),
            stations,
            max_rework_attempts=config.rework.max_rework_attempts,
        )

    # ------------------------------------------------------------------
    # Commands
    async def initialize_workflow(
        self, panel_id: str, barcode: str, line_number: int
    ) -> WorkflowRecord:
        return await self.machine.initialize_workflow(panel_id, barcode, line_number)

    async def transition_workflow(
        self,
        panel_id: str,
        target_state: WorkflowState | str,
        details: Optional[Dict[str, Any]] = None,
    ) -> WorkflowRecord:
        return await self.machine.transition_workflow(panel_id, target_state, details)

    async def process_inspection(
        self,
        panel_id: str,
        station_id: str,
        submission: InspectionSubmission | Dict[str, Any],
    ) -> InspectionResponse:
        return await self.inspections.process_inspection(panel_id, station_id, submission)

    async def reset_workflow_for_rework(
        self,
        panel_id: str,
        station_id: str,
        request: ReworkRequest | Dict[str, Any],
    ) -> WorkflowRecord:
        return await self.rework.reset_workflow_for_rework(panel_id, station_id, request)

    async def complete_workflow(
        self,
        panel_id: str,
        completion: CompletionData | Dict[str, Any] | None = None,
    ) -> WorkflowRecord:
        return await self.machine.complete_workflow(panel_id, completion)

    # ------------------------------------------------------------------
    # Queries
    async def validate_transition(
        self, panel_id: str, target_state: WorkflowState | str
    ) -> bool:
        return await self.machine.validate_transition(panel_id, target_state)

    async def get_workflow_state(self, panel_id: str) -> WorkflowRecord:
        return await self.machine.get_workflow_state(panel_id)

    async def get_workflow_history(self, panel_id: str) -> List[HistoryEntry]:
        return await self.queries.get_workflow_history(panel_id)

    async def get_active_workflows(self) -> List[WorkflowRecord]:
        return await self.queries.get_active_workflows()

    async def get_workflows_by_status(
        self, status: WorkflowStatus | str
    ) -> List[WorkflowRecord]:
        return await self.queries.get_workflows_by_status(status)

    async def get_workflows_by_station(self, station_id: str) -> List[WorkflowRecord]:
        return await self.queries.get_workflows_by_station(station_id)

    async def get_statistics(self) -> WorkflowStatistics:
        return await self.queries.get_statistics()
