"""Read-side queries over workflow records and their history."""

from __future__ import annotations

from collections import Counter
from typing import List, Optional

from .contracts import HistoryEntry, WorkflowRecord, WorkflowStatistics
from .errors import ErrorCode, WorkflowError
from .persistence import WorkflowRepository
from .states import WorkflowStatus


class WorkflowQueryService:
    """Read-only projections. Nothing here mutates a record."""

    ACTIVE_STATUSES = (WorkflowStatus.ACTIVE, WorkflowStatus.REWORK)

    def __init__(self, repository: WorkflowRepository) -> None:
        self.repository = repository

    async def get_workflow_history(self, panel_id: str) -> List[HistoryEntry]:
        history = await self.repository.get_history(panel_id)
        if history is None:
            raise WorkflowError(
                ErrorCode.PANEL_NOT_FOUND,
                "Panel workflow not found",
                panel_id=panel_id,
                attempted_action="GET_HISTORY",
            )
        return history

    async def get_active_workflows(self) -> List[WorkflowRecord]:
        return [
            wf
            for wf in await self.repository.list_workflows()
            if wf.status in self.ACTIVE_STATUSES
        ]

    async def get_workflows_by_status(
        self, status: WorkflowStatus | str
    ) -> List[WorkflowRecord]:
        status = WorkflowStatus(status)
        return [wf for wf in await self.repository.list_workflows() if wf.status == status]

    async def get_workflows_by_station(self, station_id: str) -> List[WorkflowRecord]:
        """Records whose last acting station is ``station_id``."""
        return [
            wf
            for wf in await self.repository.list_workflows()
            if wf.station_id == station_id
        ]

    async def get_workflows_by_line(self, line_number: int) -> List[WorkflowRecord]:
        return [
            wf
            for wf in await self.repository.list_workflows()
            if wf.line_number == line_number
        ]

    async def find_workflows(
        self,
        status: Optional[WorkflowStatus | str] = None,
        station_id: Optional[str] = None,
        line_number: Optional[int] = None,
    ) -> List[WorkflowRecord]:
        workflows = await self.repository.list_workflows()
        if status is not None:
            wanted = WorkflowStatus(status)
            workflows = [wf for wf in workflows if wf.status == wanted]
        if station_id is not None:
            workflows = [wf for wf in workflows if wf.station_id == station_id]
        if line_number is not None:
            workflows = [wf for wf in workflows if wf.line_number == line_number]
        return workflows

    async def get_statistics(self) -> WorkflowStatistics:
        workflows = await self.repository.list_workflows()
        if not workflows:
            return WorkflowStatistics()
        total_progress = sum(wf.workflow_progress for wf in workflows)
        return WorkflowStatistics(
            total=len(workflows),
            by_state=dict(Counter(wf.current_state.value for wf in workflows)),
            by_status=dict(Counter(wf.status.value for wf in workflows)),
            by_station=dict(
                Counter(wf.station_id for wf in workflows if wf.station_id)
            ),
            average_progress=round(total_progress / len(workflows), 2),
            total_rework=sum(wf.rework_count for wf in workflows),
        )
