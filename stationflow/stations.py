"""Station definitions and their acceptance criteria."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .catalog import CriteriaCatalog
from .errors import CriteriaConfigurationError, ErrorCode, WorkflowError
from .states import STATION_STATES, WorkflowState


class StationId(str, Enum):
    STATION_1 = "STATION_1"
    STATION_2 = "STATION_2"
    STATION_3 = "STATION_3"
    STATION_4 = "STATION_4"


STATION_ORDER: List[StationId] = list(StationId)


class StationCriteria(BaseModel):
    """Acceptance rules applied at one station."""

    required: List[str] = Field(default_factory=list)
    optional: List[str] = Field(default_factory=list)
    pass_threshold: float = 0.95
    notes_required: bool = False
    expected: Dict[str, float] = Field(default_factory=dict)
    weights: Dict[str, float] = Field(default_factory=dict)

    def configured(self) -> List[str]:
        return [*self.required, *self.optional]


class StationConfig(BaseModel):
    station_id: StationId
    name: str
    description: str = ""
    workflow_step: WorkflowState
    criteria: StationCriteria

    @property
    def index(self) -> int:
        return STATION_ORDER.index(self.station_id)


DEFAULT_STATION_CONFIGS: Dict[StationId, StationConfig] = {
    StationId.STATION_1: StationConfig(
        station_id=StationId.STATION_1,
        name="Assembly & EL",
        description="Electrical testing and assembly validation",
        workflow_step=WorkflowState.ASSEMBLY_EL,
        criteria=StationCriteria(
            required=["cellAlignment", "electricalConnection", "visualInspection"],
            optional=["cellCount", "stringCount", "voltageCheck"],
            pass_threshold=0.95,
        ),
    ),
    StationId.STATION_2: StationConfig(
        station_id=StationId.STATION_2,
        name="Framing",
        description="Frame assembly and structural validation",
        workflow_step=WorkflowState.FRAMING,
        criteria=StationCriteria(
            required=["frameAlignment", "cornerSeals", "mountingHoles"],
            optional=["frameType", "cornerType", "sealQuality"],
            pass_threshold=0.95,
        ),
    ),
    StationId.STATION_3: StationConfig(
        station_id=StationId.STATION_3,
        name="Junction Box",
        description="Junction box installation and wiring validation",
        workflow_step=WorkflowState.JUNCTION_BOX,
        criteria=StationCriteria(
            required=["boxAlignment", "cableRouting", "sealIntegrity"],
            optional=["boxType", "cableType", "connectorType"],
            pass_threshold=0.95,
        ),
    ),
    StationId.STATION_4: StationConfig(
        station_id=StationId.STATION_4,
        name="Performance & Final Inspection",
        description="Final performance testing and quality validation",
        workflow_step=WorkflowState.PERFORMANCE_FINAL,
        criteria=StationCriteria(
            required=["powerOutput", "voltageCheck", "currentCheck", "efficiencyTest"],
            optional=[
                "temperatureCoefficient",
                "irradianceResponse",
                "spectralResponse",
            ],
            pass_threshold=0.98,
            notes_required=True,
        ),
    ),
}


class StationRegistry:
    """Station configurations validated against a criteria catalog.

    Construction fails with :class:`CriteriaConfigurationError` when any
    station references a criterion the catalog does not define.
    """

    def __init__(
        self,
        catalog: CriteriaCatalog,
        configs: Optional[Iterable[StationConfig]] = None,
    ) -> None:
        self.catalog = catalog
        self._stations: Dict[StationId, StationConfig] = {}
        for config in configs if configs is not None else DEFAULT_STATION_CONFIGS.values():
            self._register(config)
        missing = [s.value for s in STATION_ORDER if s not in self._stations]
        if missing:
            raise CriteriaConfigurationError(
                f"Missing station configuration: {', '.join(missing)}"
            )

    def _register(self, config: StationConfig) -> None:
        criteria = config.criteria
        context = config.station_id.value
        self.catalog.require(criteria.configured(), context)
        self.catalog.require(criteria.expected, f"{context} expected values")
        self.catalog.require(criteria.weights, f"{context} weights")
        overlap = set(criteria.required) & set(criteria.optional)
        if overlap:
            raise CriteriaConfigurationError(
                f"Criteria both required and optional in {context}: "
                f"{', '.join(sorted(overlap))}"
            )
        if not 0 <= criteria.pass_threshold <= 1:
            raise CriteriaConfigurationError(
                f"pass_threshold for {context} must be between 0 and 1"
            )
        if any(weight <= 0 for weight in criteria.weights.values()):
            raise CriteriaConfigurationError(f"Weights for {context} must be positive")
        expected_step = STATION_STATES[config.index]
        if config.workflow_step != expected_step:
            raise CriteriaConfigurationError(
                f"{context} must map to {expected_step.value}, "
                f"got {config.workflow_step.value}"
            )
        self._stations[config.station_id] = config

    def get(self, station_id: str | StationId) -> StationConfig:
        try:
            return self._stations[StationId(station_id)]
        except (ValueError, KeyError):
            raise WorkflowError(
                ErrorCode.INVALID_INSPECTION_TARGET,
                f"Unknown station: {station_id}",
                details={"station_id": str(station_id)},
            ) from None

    def for_state(self, state: WorkflowState) -> Optional[StationConfig]:
        for config in self._stations.values():
            if config.workflow_step == state:
                return config
        return None

    def all(self) -> List[StationConfig]:
        return [self._stations[s] for s in STATION_ORDER]
