"""
Data structures for radar scan ingestion, projection and region filtering.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
import numpy as np


class ScanType(Enum):
    """Concurrently operating sensor modes with separate detection lists."""
    NEAR = "near"
    FAR = "far"


# Detection field key -> 1-based column of the raw table
SCAN_FIELDS: Dict[str, int] = {
    "utc_time_ms": 4,
    "num_detections": 6,
    "range_m": 7,
    "rel_radial_velocity_m_s": 8,
    "azimuth0_rad": 9,
    "azimuth1_rad": 10,
    "elevation_rad": 11,
    "rcs0": 12,
    "rcs1": 13,
    "prob0": 14,
    "prob1": 15,
    "range_variance": 16,
    "rel_radial_velocity_variance": 17,
    "azimuth0_variance": 18,
    "azimuth1_variance": 19,
    "elevation_variance": 20,
    "pdh0": 21,
    "snr": 22,
    "int_power_log": 24,
}

MIN_DETECTION_COLUMNS = 24


def _freeze(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class ScanArrays:
    """
    Per-field detection arrays of one scan type over a whole series.

    Every field is a dense (N, M) float array where N is the number of
    snapshots and M the capacity of this scan type. Slots at or beyond
    ``counts[k]`` are padding and hold NaN; ``counts`` is the explicit number
    of populated slots per snapshot.

    Attributes:
        scan_type: Near or far scan
        fields: Field key -> (N, M) array
        counts: Number of populated slots per snapshot, shape (N,)
    """
    scan_type: ScanType
    fields: Dict[str, np.ndarray]
    counts: np.ndarray

    def __post_init__(self):
        for values in self.fields.values():
            _freeze(values)
        _freeze(self.counts)

    def __getitem__(self, key: str) -> np.ndarray:
        return self.fields[key]

    def __contains__(self, key: str) -> bool:
        return key in self.fields

    def keys(self):
        return self.fields.keys()

    def get(self, key: str, default=None):
        return self.fields.get(key, default)

    @property
    def num_snapshots(self) -> int:
        return int(self.counts.shape[0])

    @property
    def capacity(self) -> int:
        """Number of detection slots per snapshot."""
        if not self.fields:
            return 0
        return int(next(iter(self.fields.values())).shape[1])

    def snapshot(self, index: int) -> Dict[str, np.ndarray]:
        """
        Get the populated slots of one snapshot.

        Args:
            index: 0-based snapshot index

        Returns:
            Field key -> 1D array of length ``counts[index]``
        """
        n = int(self.counts[index])
        return {key: values[index, :n] for key, values in self.fields.items()}

    def row(self, index: int) -> Dict[str, np.ndarray]:
        """Get all M slots of one snapshot, padding included."""
        return {key: values[index] for key, values in self.fields.items()}


@dataclass(frozen=True)
class CapacityOverflow:
    """
    A snapshot whose detections did not fit into the scan capacity.

    Attributes:
        scan_type: Scan type the snapshot overflowed in
        snapshot: 1-based snapshot index
        reported: Detection count reported (or found) for the snapshot
        capacity: Number of slots available
    """
    scan_type: ScanType
    snapshot: int
    reported: int
    capacity: int


@dataclass
class IngestReport:
    """
    Recoverable conditions met while ingesting a raw table.

    Attributes:
        overflows: Snapshots truncated to the scan capacity
        failed_snapshots: 1-based indices of snapshots with a row that failed
            to parse. Only the scan type holding that row is emitted as an
            all-NaN row with count 0; the other scan type keeps its detections.
        orphaned_rows: Detection rows whose snapshot index has no status row
    """
    overflows: List[CapacityOverflow] = field(default_factory=list)
    failed_snapshots: List[int] = field(default_factory=list)
    orphaned_rows: int = 0

    @property
    def clean(self) -> bool:
        """True when nothing was truncated, dropped or skipped."""
        return not (self.overflows or self.failed_snapshots or self.orphaned_rows)


@dataclass(frozen=True, eq=False)
class SnapshotSeries:
    """
    Ingested measurement series.

    Attributes:
        header: Header row of the raw table (empty when the table had none)
        status_rows: (N, C) array of the status rows as text
        near: Near scan detection arrays
        far: Far scan detection arrays
        report: Recoverable conditions met while ingesting
    """
    header: List[str]
    status_rows: np.ndarray
    near: ScanArrays
    far: ScanArrays
    report: IngestReport = field(default_factory=IngestReport)

    @property
    def num_snapshots(self) -> int:
        return int(self.status_rows.shape[0])

    def scan(self, scan_type: ScanType) -> ScanArrays:
        return self.near if scan_type is ScanType.NEAR else self.far

    def to_dict(self) -> Dict:
        """Export as the record consumed by visualization and persistence."""
        return {
            "header": list(self.header),
            "status_rows": self.status_rows,
            "near_scan": dict(self.near.fields),
            "far_scan": dict(self.far.fields),
        }


@dataclass(frozen=True, eq=False)
class ProjectionResult:
    """
    Projected detections of one snapshot.

    Attributes:
        x: Cross-range of the valid detections (m)
        y: Down-range of the valid detections (m)
        eta: Reflectivity density of the valid detections (1/m)
        valid_mask: Which of the input slots passed, same length as the input
    """
    x: np.ndarray
    y: np.ndarray
    eta: np.ndarray
    valid_mask: np.ndarray

    def __iter__(self):
        return iter((self.x, self.y, self.eta, self.valid_mask))

    @property
    def num_valid(self) -> int:
        return int(np.count_nonzero(self.valid_mask))


@dataclass(frozen=True, eq=False)
class DetectionGrid:
    """
    Projected detections of a whole series, shaped [snapshot][slot].

    x, y and eta hold NaN wherever ``valid`` is False; valid values stay at
    their original slot index.

    Attributes:
        x: (N, M) cross-range (m)
        y: (N, M) down-range (m)
        eta: (N, M) reflectivity density (1/m)
        valid: (N, M) validity mask
        timestamps_ms: (N,) snapshot timestamps in milliseconds, NaN if unknown
    """
    x: np.ndarray
    y: np.ndarray
    eta: np.ndarray
    valid: np.ndarray
    timestamps_ms: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return tuple(self.x.shape)

    @property
    def num_snapshots(self) -> int:
        return int(self.x.shape[0])

    def points(self, index: int) -> ProjectionResult:
        """Get the valid detections of one snapshot (0-based index)."""
        mask = self.valid[index]
        return ProjectionResult(
            x=self.x[index, mask],
            y=self.y[index, mask],
            eta=self.eta[index, mask],
            valid_mask=mask.copy()
        )

    def valid_counts(self) -> np.ndarray:
        """Number of valid detections per snapshot."""
        return np.count_nonzero(self.valid, axis=1)


@dataclass(frozen=True, eq=False)
class BoundingRegion:
    """
    Rectangular area of interest of one snapshot.

    Attributes:
        corners: (4, 2) array of (x, y) corners in the order
            bottom-left, bottom-right, top-right, top-left
        snapshot: Optional 0-based snapshot index the region belongs to
    """
    corners: np.ndarray
    snapshot: Optional[int] = None

    def __post_init__(self):
        corners = np.asarray(self.corners, dtype=float)
        if corners.shape != (4, 2):
            raise ValueError(f"A bounding region needs 4 (x, y) corners, got shape {corners.shape}")
        object.__setattr__(self, "corners", _freeze(corners))

    @property
    def x(self) -> np.ndarray:
        return self.corners[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.corners[:, 1]

    @property
    def area(self) -> float:
        """Polygon area (shoelace formula)."""
        x, y = self.x, self.y
        return 0.5 * abs(float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))

    def as_complex(self) -> np.ndarray:
        """Corners as complex numbers x + iy."""
        return self.x + 1j * self.y

    def contains(self, x, y) -> np.ndarray:
        """Inclusive containment test for points (x, y)."""
        from radar_scan.region import points_in_polygon
        return points_in_polygon(x, y, self.x, self.y)
