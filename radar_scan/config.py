"""
Pipeline configuration loaded from YAML.
"""
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional, Union
import numpy as np
import yaml

from radar_scan.paths_internal import DEFAULT_CONFIG_PATH


@dataclass
class SensorConfig:
    az_beamwidth_rad: float = 0.0349
    el_beamwidth_rad: float = 0.0873
    range_resolution_m: float = 0.2
    azimuth_shift_deg: float = 0.0


@dataclass
class SceneConfig:
    x_limits: List[float] = field(default_factory=lambda: [-20.0, 20.0])
    y_limits: List[float] = field(default_factory=lambda: [0.0, 70.0])


@dataclass
class RegionConfig:
    down_range_limits: List = field(default_factory=lambda: [1.0, 30.0])
    cross_range_limits: List[float] = field(default_factory=lambda: [-2.5, 2.5])
    min_down_range: Optional[float] = None


@dataclass
class IngestConfig:
    capacity_ceiling: int = 308680
    status_label: str = "Status"
    near_label: str = "NEAR"
    far_label: str = "FAR"
    has_header: bool = True
    on_overflow: str = "truncate"
    strict: bool = False


def _section(cls, values: Optional[Dict], name: str):
    values = values or {}
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {sorted(unknown)}")
    return cls(**values)


@dataclass
class PipelineConfig:
    """
    Settings for ingestion, projection and region filtering.

    Sections mirror the YAML file: sensor, scene, region and ingest.
    """
    sensor: SensorConfig = field(default_factory=SensorConfig)
    scene: SceneConfig = field(default_factory=SceneConfig)
    region: RegionConfig = field(default_factory=RegionConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)

    @property
    def azimuth_shift_rad(self) -> float:
        return float(np.deg2rad(self.sensor.azimuth_shift_deg))

    @classmethod
    def from_dict(cls, config: Optional[Dict]) -> "PipelineConfig":
        config = config or {}
        sections = {
            'sensor': SensorConfig,
            'scene': SceneConfig,
            'region': RegionConfig,
            'ingest': IngestConfig,
        }
        unknown = set(config) - set(sections)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")
        return cls(**{name: _section(section, config.get(name), name)
                      for name, section in sections.items()})


def load_config(path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """
    Load a pipeline configuration.

    Args:
        path: YAML file; the bundled ARS430 defaults when None

    Returns:
        PipelineConfig
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    with open(path, 'r') as fp:
        config = yaml.load(fp, yaml.FullLoader)
    return PipelineConfig.from_dict(config)
