"""
Hypothesis selection and Cartesian projection of radar detections.

The sensor reports two angle/RCS hypotheses per detection, each with a
probability. The more probable one is projected into the scene and its RCS
is normalised by the volume of the resolution cell to give the reflectivity
density eta.
"""
import logging
from typing import Mapping, Sequence
import numpy as np
import pandas as pd
from tqdm import tqdm

from radar_scan.coordinate_transforms import polar_to_cartesian
from radar_scan.data_structures import DetectionGrid, ProjectionResult, ScanArrays
from radar_scan.limits import (
    DEFAULT_CROSS_RANGE_LIMITS,
    DEFAULT_DOWN_RANGE_LIMITS,
    validate_limits
)

logger = logging.getLogger(__name__)

MIN_RANGE_M = 1e-3
MIN_CELL_VOLUME = 1e-6
RCS_CLIP_DBSM = 5000.0


def select_hypothesis(prob0, prob1) -> np.ndarray:
    """
    Choose between the two detection hypotheses.

    Args:
        prob0: Probability of hypothesis 0
        prob1: Probability of hypothesis 1

    Returns:
        Boolean array, True where hypothesis 0 is selected. Ties and NaN
        probabilities select hypothesis 1.
    """
    with np.errstate(invalid='ignore'):
        return np.asarray(prob0, dtype=float) > np.asarray(prob1, dtype=float)


def resolution_cell_volume(range_m, az_beamwidth: float, el_beamwidth: float,
                           range_resolution: float) -> np.ndarray:
    """Volume of the resolution cell at the given range(s), floored at 1e-6."""
    range_clipped = np.maximum(np.asarray(range_m, dtype=float), MIN_RANGE_M)
    volume = range_clipped ** 2 * az_beamwidth * el_beamwidth * range_resolution
    return np.where(volume < MIN_CELL_VOLUME, MIN_CELL_VOLUME, volume)


def reflectivity_density(rcs_dbsm, volume) -> np.ndarray:
    """Convert RCS (dBsm) to linear scale and divide by the cell volume."""
    rcs_clipped = np.clip(np.asarray(rcs_dbsm, dtype=float), -RCS_CLIP_DBSM, RCS_CLIP_DBSM)
    with np.errstate(over='ignore', invalid='ignore'):
        return 10.0 ** (rcs_clipped / 10.0) / volume


def project(scan_row: Mapping[str, np.ndarray],
            az_beamwidth: float,
            el_beamwidth: float,
            range_resolution: float,
            x_limits: Sequence[float],
            y_limits: Sequence[float],
            azimuth_shift: float = 0.0) -> ProjectionResult:
    """
    Project one snapshot's detections into the scene.

    Args:
        scan_row: Field key -> 1D array over the snapshot's detection slots;
            needs prob0, prob1, rcs0, azimuth0_rad, azimuth1_rad and range_m.
            rcs1 falls back to rcs0 when missing.
        az_beamwidth: Horizontal beamwidth (radians)
        el_beamwidth: Vertical beamwidth (radians)
        range_resolution: Range resolution (meters)
        x_limits: [xmin, xmax] cross-range window (meters)
        y_limits: [ymin, ymax] down-range window (meters)
        azimuth_shift: Offset added to the azimuth before projection (radians)

    Returns:
        ProjectionResult with the valid detections only and the validity
        mask over the input slots
    """
    x_min, x_max = validate_limits(x_limits, DEFAULT_CROSS_RANGE_LIMITS, "x limits")
    y_min, y_max = validate_limits(y_limits, DEFAULT_DOWN_RANGE_LIMITS, "y limits")

    rcs0 = np.asarray(scan_row["rcs0"], dtype=float)
    rcs1 = np.asarray(scan_row.get("rcs1", rcs0), dtype=float)
    range_m = np.asarray(scan_row["range_m"], dtype=float)

    use0 = select_hypothesis(scan_row["prob0"], scan_row["prob1"])
    azimuth = np.where(use0, scan_row["azimuth0_rad"], scan_row["azimuth1_rad"])
    rcs = np.where(use0, rcs0, rcs1)

    x_full, y_full = polar_to_cartesian(range_m, azimuth, azimuth_shift)
    volume = resolution_cell_volume(range_m, az_beamwidth, el_beamwidth, range_resolution)
    eta_full = reflectivity_density(rcs, volume)

    with np.errstate(invalid='ignore'):
        valid_mask = (np.isfinite(eta_full) &
                      (x_full >= x_min) & (x_full <= x_max) &
                      (y_full >= y_min) & (y_full <= y_max))

    return ProjectionResult(
        x=x_full[valid_mask],
        y=y_full[valid_mask],
        eta=eta_full[valid_mask],
        valid_mask=valid_mask
    )


def snapshot_timestamps(scan: ScanArrays) -> np.ndarray:
    """
    Timestamp of each snapshot in milliseconds.

    Takes the first populated slot of the utc_time_ms field; snapshots
    without detections get NaN.
    """
    timestamps = np.full(scan.num_snapshots, np.nan)
    if scan.capacity == 0:
        return timestamps
    times = scan["utc_time_ms"]
    populated = scan.counts > 0
    timestamps[populated] = times[populated, 0]
    return timestamps


def timestamps_to_datetime(timestamps_ms) -> pd.DatetimeIndex:
    """Convert millisecond UTC timestamps to timezone-aware datetimes (NaT for NaN)."""
    return pd.to_datetime(np.asarray(timestamps_ms, dtype=float), unit='ms', utc=True)


def project_series(scan: ScanArrays,
                   az_beamwidth: float,
                   el_beamwidth: float,
                   range_resolution: float,
                   x_limits: Sequence[float],
                   y_limits: Sequence[float],
                   azimuth_shift: float = 0.0,
                   show_progress: bool = False) -> DetectionGrid:
    """
    Project every snapshot of a scan and assemble a [snapshot][slot] grid.

    Args:
        scan: Ingested near or far scan
        show_progress: Display a progress bar over the snapshots
        (remaining arguments as for :func:`project`)

    Returns:
        DetectionGrid with NaN outside the validity mask
    """
    # Validate once so a bad pair is reported once, not per snapshot
    x_limits = validate_limits(x_limits, DEFAULT_CROSS_RANGE_LIMITS, "x limits")
    y_limits = validate_limits(y_limits, DEFAULT_DOWN_RANGE_LIMITS, "y limits")

    shape = (scan.num_snapshots, scan.capacity)
    x = np.full(shape, np.nan)
    y = np.full(shape, np.nan)
    eta = np.full(shape, np.nan)
    valid = np.zeros(shape, dtype=bool)

    snapshots = range(scan.num_snapshots)
    if show_progress:
        snapshots = tqdm(snapshots, desc=f"Projecting {scan.scan_type.value} scan")

    for k in snapshots:
        result = project(scan.row(k), az_beamwidth, el_beamwidth, range_resolution,
                         x_limits, y_limits, azimuth_shift)
        mask = result.valid_mask
        x[k, mask] = result.x
        y[k, mask] = result.y
        eta[k, mask] = result.eta
        valid[k] = mask

    logger.debug("Projected %s scan: %d of %d slots valid",
                 scan.scan_type.value, int(valid.sum()), valid.size)

    return DetectionGrid(
        x=x,
        y=y,
        eta=eta,
        valid=valid,
        timestamps_ms=snapshot_timestamps(scan)
    )
