"""
Radar Scan Detection Processing

Turns multi-hypothesis ARS radar exports into filtered Cartesian detections.

Key Components:
- Raw table ingestion into per-snapshot near/far scan arrays
- Hypothesis selection and polar -> Cartesian projection
- Reflectivity density (eta) from RCS and resolution cell volume
- Area-of-observation regions and inclusive region filtering
- Eta histograms and filter statistics

Usage:
    from radar_scan import ScanPipeline, read_raw_table

    pipeline = ScanPipeline()
    result = pipeline.run(read_raw_table("measurement.csv"))

    # (N, M) matrices for the visualization layer
    result.near.x, result.near.y, result.near.eta, result.near.timestamps()
"""

from .data_structures import (
    SCAN_FIELDS,
    BoundingRegion,
    CapacityOverflow,
    DetectionGrid,
    IngestReport,
    ProjectionResult,
    ScanArrays,
    ScanType,
    SnapshotSeries
)
from .errors import (
    CapacityOverflowError,
    MalformedInputError,
    RadarScanError,
    ScanParseError
)
from .coordinate_transforms import polar_to_cartesian
from .limits import validate_limits
from .ingest import RawScanIngestor, ingest, read_raw_table
from .projection import (
    project,
    project_series,
    reflectivity_density,
    resolution_cell_volume,
    select_hypothesis,
    snapshot_timestamps,
    timestamps_to_datetime
)
from .region import filter_by_regions, make_regions, points_in_polygon
from .metrics import BinningOption, HistogramResult, eta_histogram, filter_summary
from .config import PipelineConfig, load_config
from .pipeline import FilteredScan, PipelineResult, ScanPipeline

__version__ = "1.0.0"

__all__ = [
    # Data structures
    'SCAN_FIELDS',
    'BoundingRegion',
    'CapacityOverflow',
    'DetectionGrid',
    'IngestReport',
    'ProjectionResult',
    'ScanArrays',
    'ScanType',
    'SnapshotSeries',

    # Errors
    'CapacityOverflowError',
    'MalformedInputError',
    'RadarScanError',
    'ScanParseError',

    # Ingestion
    'RawScanIngestor',
    'ingest',
    'read_raw_table',

    # Projection
    'polar_to_cartesian',
    'project',
    'project_series',
    'reflectivity_density',
    'resolution_cell_volume',
    'select_hypothesis',
    'snapshot_timestamps',
    'timestamps_to_datetime',

    # Regions
    'validate_limits',
    'filter_by_regions',
    'make_regions',
    'points_in_polygon',

    # Statistics
    'BinningOption',
    'HistogramResult',
    'eta_histogram',
    'filter_summary',

    # Pipeline
    'PipelineConfig',
    'load_config',
    'FilteredScan',
    'PipelineResult',
    'ScanPipeline',
]
