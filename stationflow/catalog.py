"""Catalog of inspectable panel properties."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, model_validator

from .errors import CriteriaConfigurationError


class CriterionType(str, Enum):
    BOOLEAN = "boolean"
    NUMERIC = "numeric"


class CriterionDefinition(BaseModel):
    """Definition of a single quality criterion, independent of any station."""

    name: str
    label: str
    description: str = ""
    type: CriterionType
    required: bool = False
    pass_value: Optional[bool] = None
    unit: Optional[str] = None
    tolerance: Optional[float] = Field(default=None, ge=0)
    expected: Optional[float] = None
    weight: float = Field(default=1.0, gt=0)
    remediation: Optional[str] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "CriterionDefinition":
        if self.type == CriterionType.BOOLEAN and self.pass_value is None:
            raise ValueError(f"boolean criterion '{self.name}' needs a pass_value")
        if self.type == CriterionType.NUMERIC and self.tolerance is None:
            raise ValueError(f"numeric criterion '{self.name}' needs a tolerance")
        return self

    def remediation_hint(self) -> str:
        return self.remediation or f"Review and correct {self.name} issue"


class CriteriaCatalog:
    """Lookup of criterion definitions by name.

    Unknown names are configuration errors: they surface when stations are
    registered against the catalog, never at inspection time.
    """

    def __init__(self, definitions: Iterable[CriterionDefinition] = ()) -> None:
        self._definitions: Dict[str, CriterionDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: CriterionDefinition) -> None:
        if definition.name in self._definitions:
            raise CriteriaConfigurationError(
                f"Criterion '{definition.name}' is already registered"
            )
        self._definitions[definition.name] = definition

    def get(self, name: str) -> CriterionDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise CriteriaConfigurationError(f"Unknown criterion: {name}") from None

    def require(self, names: Iterable[str], context: str = "") -> None:
        """Raise if any of ``names`` is not in the catalog."""
        missing = [name for name in names if name not in self._definitions]
        if missing:
            where = f" in {context}" if context else ""
            raise CriteriaConfigurationError(
                f"Unknown criteria{where}: {', '.join(missing)}"
            )

    def names(self) -> List[str]:
        return list(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


def _boolean(name: str, label: str, description: str, **kwargs) -> CriterionDefinition:
    return CriterionDefinition(
        name=name,
        label=label,
        description=description,
        type=CriterionType.BOOLEAN,
        pass_value=True,
        **kwargs,
    )


def _numeric(
    name: str, label: str, description: str, unit: str, tolerance: float, **kwargs
) -> CriterionDefinition:
    return CriterionDefinition(
        name=name,
        label=label,
        description=description,
        type=CriterionType.NUMERIC,
        unit=unit,
        tolerance=tolerance,
        **kwargs,
    )


DEFAULT_CRITERIA: List[CriterionDefinition] = [
    # Assembly & EL
    _boolean(
        "cellAlignment",
        "Cell Alignment",
        "Solar cells are properly aligned within tolerance",
        required=True,
        remediation="Realign solar cells within tolerance",
    ),
    _boolean(
        "electricalConnection",
        "Electrical Connection",
        "Electrical connections are secure and properly soldered",
        required=True,
        remediation="Re-solder electrical connections",
    ),
    _boolean(
        "visualInspection",
        "Visual Inspection",
        "No visible defects, cracks, or contamination",
        required=True,
        remediation="Clean or replace defective cells and re-inspect",
    ),
    _numeric(
        "cellCount", "Cell Count", "Correct number of cells for panel type", "cells", 0.0
    ),
    _numeric(
        "stringCount", "String Count", "Correct number of cell strings", "strings", 0.0
    ),
    # Framing
    _boolean(
        "frameAlignment",
        "Frame Alignment",
        "Frame is properly aligned with panel edges",
        required=True,
        remediation="Realign frame with panel edges",
    ),
    _boolean(
        "cornerSeals",
        "Corner Seals",
        "Corner seals are properly applied and sealed",
        required=True,
        remediation="Reapply corner sealant",
    ),
    _boolean(
        "mountingHoles",
        "Mounting Holes",
        "Mounting holes are properly drilled and positioned",
        required=True,
    ),
    _boolean("frameType", "Frame Type", "Frame profile matches the panel type"),
    _boolean("cornerType", "Corner Type", "Corner keys match the frame profile"),
    _boolean("sealQuality", "Seal Quality", "Sealant bead is continuous and even"),
    # Junction Box
    _boolean(
        "boxAlignment",
        "Box Alignment",
        "Junction box is properly positioned and aligned",
        required=True,
    ),
    _boolean(
        "cableRouting",
        "Cable Routing",
        "Cables are properly routed and secured",
        required=True,
        remediation="Re-route and secure cables",
    ),
    _boolean(
        "sealIntegrity",
        "Seal Integrity",
        "Junction box seal is intact and waterproof",
        required=True,
        remediation="Reseal junction box",
    ),
    _boolean("boxType", "Box Type", "Junction box model matches the panel type"),
    _boolean("cableType", "Cable Type", "Cable gauge matches the specification"),
    _boolean("connectorType", "Connector Type", "Connectors match the specification"),
    # Performance & Final Inspection
    _numeric(
        "powerOutput",
        "Power Output",
        "Power output meets specification requirements",
        "W",
        0.05,
        required=True,
        remediation="Investigate power output deviation",
    ),
    _numeric(
        "voltageCheck",
        "Voltage Check",
        "Open circuit voltage within specification",
        "V",
        0.03,
        required=True,
    ),
    _numeric(
        "currentCheck",
        "Current Check",
        "Short circuit current within specification",
        "A",
        0.05,
        required=True,
    ),
    _numeric(
        "efficiencyTest",
        "Efficiency Test",
        "Panel efficiency meets minimum requirements",
        "%",
        0.01,
        required=True,
        expected=0.18,
    ),
    _numeric(
        "temperatureCoefficient",
        "Temperature Coefficient",
        "Power temperature coefficient within specification",
        "%/C",
        0.10,
    ),
    _numeric(
        "irradianceResponse",
        "Irradiance Response",
        "Low-irradiance performance within specification",
        "%",
        0.05,
    ),
    _numeric(
        "spectralResponse",
        "Spectral Response",
        "Spectral response within specification",
        "%",
        0.05,
    ),
]


def default_catalog() -> CriteriaCatalog:
    """Catalog with the standard solar panel criteria."""
    return CriteriaCatalog(d.model_copy() for d in DEFAULT_CRITERIA)
