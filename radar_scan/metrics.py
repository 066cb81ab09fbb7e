"""
Statistics of projected detections: eta distribution and filter yield.
"""
import logging
from dataclasses import dataclass
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

BINNING_KINDS = ("num_bins", "fixed_width")

# Used when a fixed bin width would leave fewer than MIN_FIXED_WIDTH_BINS bins
FALLBACK_NUM_BINS = 500
MIN_FIXED_WIDTH_BINS = 10


@dataclass(frozen=True)
class BinningOption:
    """
    How to bin eta values.

    Attributes:
        kind: 'num_bins' for a fixed number of bins, 'fixed_width' for a
            fixed bin width
        value: Number of bins or bin width
    """
    kind: str
    value: float


@dataclass(eq=False)
class HistogramResult:
    """
    Attributes:
        counts: Number of values per bin
        edges: Bin edges, one more than counts
        centers: Bin centers
        total_points: Number of non-NaN values binned
        bin_width: Width of the bins actually used
    """
    counts: np.ndarray
    edges: np.ndarray
    centers: np.ndarray
    total_points: int
    bin_width: float


def _fixed_width_edges(data: np.ndarray, width: float) -> np.ndarray:
    """Edges aligned to multiples of the width, covering the data."""
    start = np.floor(data.min() / width) * width
    num_bins = int(np.floor((data.max() - start) / width)) + 1
    return start + width * np.arange(num_bins + 1)


def eta_histogram(values, binning: BinningOption) -> HistogramResult:
    """
    Histogram of eta values, ignoring NaN.

    Args:
        values: Eta values of any shape, NaN for absent detections
        binning: Binning option

    Returns:
        HistogramResult; empty counts and NaN bin width when no value is left
    """
    if binning.kind not in BINNING_KINDS:
        raise ValueError(f"Invalid binning option {binning.kind!r}. Supported: {BINNING_KINDS}")

    data = np.asarray(values, dtype=float).ravel()
    data = data[~np.isnan(data)]
    total_points = int(data.size)

    if total_points == 0:
        logger.warning("No valid data to bin")
        return HistogramResult(
            counts=np.zeros(0, dtype=np.int64),
            edges=np.zeros(0),
            centers=np.zeros(0),
            total_points=0,
            bin_width=float('nan')
        )

    if binning.kind == 'num_bins':
        num_bins = max(1, min(int(binning.value), total_points // 2))
        counts, edges = np.histogram(data, bins=num_bins)
    else:
        width = float(binning.value)
        if width <= 0:
            raise ValueError("bin width must be a positive number for fixed_width binning")
        estimated_bins = (data.max() - data.min()) / width
        if 0 < estimated_bins < MIN_FIXED_WIDTH_BINS:
            logger.warning("Bin width %g leaves %.1f bins, falling back to %d bins",
                           width, estimated_bins, FALLBACK_NUM_BINS)
            counts, edges = np.histogram(data, bins=FALLBACK_NUM_BINS)
        else:
            counts, edges = np.histogram(data, bins=_fixed_width_edges(data, width))

    return HistogramResult(
        counts=counts,
        edges=edges,
        centers=(edges[:-1] + edges[1:]) / 2,
        total_points=total_points,
        bin_width=float(edges[1] - edges[0])
    )


def filter_summary(scan) -> pd.DataFrame:
    """
    Per-snapshot detection counts before and after region filtering.

    Args:
        scan: FilteredScan from the pipeline

    Returns:
        DataFrame with columns snapshot, timestamp_ms, projected, in_region
        and rejected
    """
    projected = scan.projected.valid_counts()
    in_region = scan.kept_counts()
    return pd.DataFrame({
        'snapshot': np.arange(1, len(projected) + 1),
        'timestamp_ms': scan.timestamps_ms,
        'projected': projected,
        'in_region': in_region,
        'rejected': projected - in_region,
    })
