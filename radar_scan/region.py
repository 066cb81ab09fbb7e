"""
Area-of-observation regions and filtering of detections against them.
"""
import logging
from typing import List, Optional, Sequence, Tuple
import numpy as np
import shapely
from shapely.geometry import Polygon

from radar_scan.data_structures import BoundingRegion
from radar_scan.limits import DEFAULT_DOWN_RANGE_LIMITS, validate_limits

logger = logging.getLogger(__name__)

CROSS_RANGE_LIMITS: Tuple[float, float] = (-2.5, 2.5)


def _region_corners(x_limits: Tuple[float, float], y_limits: Tuple[float, float]) -> np.ndarray:
    x_min, x_max = x_limits
    y_min, y_max = y_limits
    return np.array([
        [x_min, y_min],  # bottom-left
        [x_max, y_min],  # bottom-right
        [x_max, y_max],  # top-right
        [x_min, y_max],  # top-left
    ])


def make_regions(num_snapshots: int,
                 down_range_limits,
                 cross_range_limits: Sequence[float] = CROSS_RANGE_LIMITS,
                 min_down_range: Optional[float] = None) -> List[BoundingRegion]:
    """
    Build one rectangular region of interest per snapshot.

    Args:
        num_snapshots: Number of snapshots N
        down_range_limits: Either a single [ymin, ymax] pair, giving N
            identical regions, or an (N, 2) sequence with one pair per snapshot
        cross_range_limits: [xmin, xmax] shared by all regions (meters)
        min_down_range: Optional floor applied to every ymin

    Returns:
        List of N BoundingRegions with corners bottom-left, bottom-right,
        top-right, top-left
    """
    if num_snapshots < 0:
        raise ValueError(f"num_snapshots must be non-negative, got {num_snapshots}")

    x_limits = validate_limits(cross_range_limits, CROSS_RANGE_LIMITS, "cross-range limits")

    limits = np.asarray(down_range_limits, dtype=float)
    time_variant = limits.ndim == 2
    if time_variant:
        if limits.shape != (num_snapshots, 2):
            raise ValueError(
                f"Expected ({num_snapshots}, 2) down-range limits, got shape {limits.shape}"
            )
        pairs = limits.copy()
    else:
        pairs = limits.reshape(1, -1).copy()

    if min_down_range is not None and pairs.shape[1] == 2:
        pairs[:, 0] = np.maximum(pairs[:, 0], min_down_range)

    y_limits = [validate_limits(pair, DEFAULT_DOWN_RANGE_LIMITS, "down-range limits") for pair in pairs]
    if not time_variant:
        y_limits = y_limits * num_snapshots

    regions = [
        BoundingRegion(corners=_region_corners(x_limits, pair), snapshot=k)
        for k, pair in enumerate(y_limits)
    ]
    logger.debug("Built %d bounding regions (time-variant: %s)", len(regions), time_variant)
    return regions


def points_in_polygon(x, y, poly_x, poly_y) -> np.ndarray:
    """
    Inclusive point-in-polygon test.

    Points on an edge or vertex count as inside. Non-finite points are
    outside, and a zero-area polygon contains nothing.

    Args:
        x, y: Point coordinates, any matching shape
        poly_x, poly_y: Polygon vertex coordinates in winding order

    Returns:
        Boolean array with the shape of ``x``
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    polygon = Polygon(np.column_stack([np.asarray(poly_x, dtype=float),
                                       np.asarray(poly_y, dtype=float)]))

    inside = np.zeros(x.shape, dtype=bool)
    if not polygon.is_valid or not polygon.area > 0.0:
        return inside

    finite = np.isfinite(x) & np.isfinite(y)
    inside[finite] = shapely.intersects_xy(polygon, x[finite], y[finite])
    return inside


def filter_by_regions(x, y, values, regions: Sequence[BoundingRegion]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Keep only the detections inside their snapshot's region.

    Args:
        x, y: (N, M) detection coordinates
        values: (N, M) per-detection values carried along (e.g. eta)
        regions: N regions, one per snapshot

    Returns:
        Tuple of filtered (x, y, values), same shape as the input, with NaN
        wherever the detection lies outside the region
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    values = np.asarray(values, dtype=float)
    if x.shape != y.shape or x.shape != values.shape:
        raise ValueError(f"Shape mismatch: x {x.shape}, y {y.shape}, values {values.shape}")
    if x.ndim != 2:
        raise ValueError(f"Expected [snapshot][slot] matrices, got {x.ndim} dimensions")
    if len(regions) != x.shape[0]:
        raise ValueError(f"Got {len(regions)} regions for {x.shape[0]} snapshots")

    x_filtered = np.full(x.shape, np.nan)
    y_filtered = np.full(y.shape, np.nan)
    values_filtered = np.full(values.shape, np.nan)

    for i, region in enumerate(regions):
        inside = region.contains(x[i], y[i])
        x_filtered[i, inside] = x[i, inside]
        y_filtered[i, inside] = y[i, inside]
        values_filtered[i, inside] = values[i, inside]

    logger.debug("Region filter kept %d of %d detections",
                 int(np.isfinite(x_filtered).sum()), int(np.isfinite(x).sum()))
    return x_filtered, y_filtered, values_filtered
