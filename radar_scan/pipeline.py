# pipeline.py

"""
End-to-end processing of a raw ARS table:
ingestion -> hypothesis selection / projection -> region filtering.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union
import numpy as np
import pandas as pd

from radar_scan.config import PipelineConfig, load_config
from radar_scan.data_structures import BoundingRegion, DetectionGrid, ScanType, SnapshotSeries
from radar_scan.ingest import RawScanIngestor, RawTable, read_raw_table
from radar_scan.projection import project_series, timestamps_to_datetime
from radar_scan.region import filter_by_regions, make_regions

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class FilteredScan:
    """
    Detections of one scan type after projection and region filtering.

    Attributes:
        projected: All valid detections before region filtering
        x, y, eta: (N, M) detections inside the region, NaN elsewhere
    """
    projected: DetectionGrid
    x: np.ndarray
    y: np.ndarray
    eta: np.ndarray

    @property
    def timestamps_ms(self) -> np.ndarray:
        return self.projected.timestamps_ms

    def timestamps(self) -> pd.DatetimeIndex:
        return timestamps_to_datetime(self.timestamps_ms)

    def kept_counts(self) -> np.ndarray:
        """Number of detections inside the region per snapshot."""
        return np.count_nonzero(np.isfinite(self.x), axis=1)


@dataclass(eq=False)
class PipelineResult:
    """Everything produced from one raw table."""
    series: SnapshotSeries
    regions: List[BoundingRegion]
    scans: Dict[ScanType, FilteredScan]

    @property
    def near(self) -> FilteredScan:
        return self.scans[ScanType.NEAR]

    @property
    def far(self) -> FilteredScan:
        return self.scans[ScanType.FAR]

    @property
    def num_snapshots(self) -> int:
        return self.series.num_snapshots


class ScanPipeline:
    """
    Runs ingestion, projection and region filtering with one configuration.
    """

    def __init__(self, config: Optional[PipelineConfig] = None, show_progress: bool = False):
        """
        Initialize pipeline.

        Args:
            config: Pipeline settings; bundled defaults when None
            show_progress: Display progress bars for long series
        """
        self.config = config if config is not None else load_config()
        self.show_progress = show_progress
        ingest_cfg = self.config.ingest
        self.ingestor = RawScanIngestor(
            capacity_ceiling=ingest_cfg.capacity_ceiling,
            status_label=ingest_cfg.status_label,
            near_label=ingest_cfg.near_label,
            far_label=ingest_cfg.far_label,
            has_header=ingest_cfg.has_header,
            on_overflow=ingest_cfg.on_overflow,
            strict=ingest_cfg.strict,
            show_progress=show_progress
        )

    def run(self, raw_table: RawTable) -> PipelineResult:
        """Process a raw table held in memory."""
        series = self.ingestor.ingest(raw_table)
        if not series.report.clean:
            logger.info("Ingest report: %d overflows, %d failed snapshots, %d orphaned rows",
                        len(series.report.overflows), len(series.report.failed_snapshots),
                        series.report.orphaned_rows)

        region_cfg = self.config.region
        regions = make_regions(series.num_snapshots,
                               region_cfg.down_range_limits,
                               cross_range_limits=region_cfg.cross_range_limits,
                               min_down_range=region_cfg.min_down_range)

        scans = {scan_type: self.process_scan(series, scan_type, regions) for scan_type in ScanType}
        logger.info("Processed %d snapshots: %d near and %d far detections in region",
                    series.num_snapshots,
                    int(scans[ScanType.NEAR].kept_counts().sum()),
                    int(scans[ScanType.FAR].kept_counts().sum()))

        return PipelineResult(series=series, regions=regions, scans=scans)

    def run_file(self, path: Union[str, Path]) -> PipelineResult:
        """Read an ARS CSV export and process it."""
        logger.info("Processing %s", path)
        return self.run(read_raw_table(path))

    def process_scan(self, series: SnapshotSeries, scan_type: ScanType,
                     regions: List[BoundingRegion]) -> FilteredScan:
        """Project one scan type and filter it against the regions."""
        sensor = self.config.sensor
        grid = project_series(series.scan(scan_type),
                              az_beamwidth=sensor.az_beamwidth_rad,
                              el_beamwidth=sensor.el_beamwidth_rad,
                              range_resolution=sensor.range_resolution_m,
                              x_limits=self.config.scene.x_limits,
                              y_limits=self.config.scene.y_limits,
                              azimuth_shift=self.config.azimuth_shift_rad,
                              show_progress=self.show_progress)
        x, y, eta = filter_by_regions(grid.x, grid.y, grid.eta, regions)
        return FilteredScan(projected=grid, x=x, y=y, eta=eta)
