from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .errors import CriteriaConfigurationError
from .stations import DEFAULT_STATION_CONFIGS, StationConfig, StationId


class StationOverride(BaseModel):
    """Per-station changes applied on top of the default configuration."""

    required: Optional[List[str]] = None
    optional: Optional[List[str]] = None
    pass_threshold: Optional[float] = None
    notes_required: Optional[bool] = None
    expected: Dict[str, float] = Field(default_factory=dict)
    weights: Dict[str, float] = Field(default_factory=dict)


class ReworkConfig(BaseModel):
    """Rework policy settings."""

    max_rework_attempts: Optional[int] = 3


class StationflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    log_level: str = "INFO"
    rework: ReworkConfig = ReworkConfig()
    stations: Dict[str, StationOverride] = Field(default_factory=dict)


def load_config(path: Optional[str] = None) -> StationflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STATIONFLOW_CONFIG
            env variable or 'stationflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("STATIONFLOW_CONFIG", "stationflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StationflowConfig(**data)
    else:
        config = StationflowConfig()

    env_db_url = os.getenv("STATIONFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config


def build_station_configs(config: StationflowConfig) -> List[StationConfig]:
    """Apply configured overrides to the default station table."""

    overrides = dict(config.stations)
    unknown = [key for key in overrides if key not in StationId.__members__]
    if unknown:
        raise CriteriaConfigurationError(
            f"Overrides for unknown stations: {', '.join(unknown)}"
        )

    stations: List[StationConfig] = []
    for station_id, default in DEFAULT_STATION_CONFIGS.items():
        station = default.model_copy(deep=True)
        override = overrides.get(station_id.value)
        if override is not None:
            criteria = station.criteria
            if override.required is not None:
                criteria.required = list(override.required)
            if override.optional is not None:
                criteria.optional = list(override.optional)
            if override.pass_threshold is not None:
                criteria.pass_threshold = override.pass_threshold
            if override.notes_required is not None:
                criteria.notes_required = override.notes_required
            criteria.expected.update(override.expected)
            criteria.weights.update(override.weights)
        stations.append(station)
    return stations


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
