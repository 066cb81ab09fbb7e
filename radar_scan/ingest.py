"""
Ingestion of raw ARS measurement tables.

A raw table holds one status row per snapshot followed (or interleaved) by the
near and far scan detection rows of that snapshot. Column 1 is the 1-based
snapshot index and column 3 the row label. Detection rows are collected per
snapshot into fixed-capacity arrays, padded with NaN.
"""
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Union
import numpy as np
import pandas as pd
from tqdm import tqdm

from radar_scan.data_structures import (
    MIN_DETECTION_COLUMNS,
    SCAN_FIELDS,
    CapacityOverflow,
    IngestReport,
    ScanArrays,
    ScanType,
    SnapshotSeries
)
from radar_scan.errors import CapacityOverflowError, MalformedInputError, ScanParseError

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY_CEILING = 308680

FIELD_KEYS: List[str] = list(SCAN_FIELDS.keys())
FIELD_COLUMNS: List[int] = [SCAN_FIELDS[key] - 1 for key in FIELD_KEYS]
COUNT_COLUMN = SCAN_FIELDS["num_detections"] - 1

OVERFLOW_POLICIES = ("truncate", "raise")

RawTable = Union[pd.DataFrame, np.ndarray, Sequence[Sequence[str]]]


def read_raw_table(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read an ARS CSV export as a table of text fields.

    The first line (the header) sets the number of columns.

    Args:
        path: CSV file path

    Returns:
        DataFrame of strings, empty strings for empty fields

    Raises:
        MalformedInputError: If any line has more or fewer fields than the
            first line
    """
    long_lines: List[List[str]] = []
    try:
        frame = pd.read_csv(path, header=None, dtype=str, engine="python",
                            keep_default_na=False, skip_blank_lines=True,
                            on_bad_lines=long_lines.append)
    except pd.errors.ParserError as e:
        raise MalformedInputError(f"Cannot parse {path}: {e}") from e

    if long_lines:
        raise MalformedInputError(
            f"{path}: {len(long_lines)} lines have more than {frame.shape[1]} fields "
            f"(first has {len(long_lines[0])})"
        )

    # Missing trailing fields are the only source of NaN with keep_default_na=False
    short = frame.isna().any(axis=1).to_numpy()
    if short.any():
        position = int(np.flatnonzero(short)[0])
        raise MalformedInputError(
            f"{path}: row {position + 1} has {int(frame.iloc[position].notna().sum())} "
            f"fields, expected {frame.shape[1]}"
        )
    return frame


def _as_frame(raw_table: RawTable) -> pd.DataFrame:
    """Normalise any rectangular table to a DataFrame of stripped strings."""
    if isinstance(raw_table, pd.DataFrame):
        frame = raw_table.copy()
    else:
        rows = [list(row) for row in raw_table]
        widths = {len(row) for row in rows}
        if len(widths) > 1:
            raise MalformedInputError(
                f"Raw table is not rectangular: row lengths {sorted(widths)}"
            )
        frame = pd.DataFrame(rows, dtype=object)

    frame.columns = range(frame.shape[1])
    frame = frame.fillna("").astype(str)
    for column in frame.columns:
        frame[column] = frame[column].str.strip()
    return frame


def _parse_numeric(block: pd.DataFrame, snapshot: int) -> np.ndarray:
    """
    Parse the detection fields of one snapshot's rows.

    Empty fields and the literal 'nan' become NaN; any other non-numeric
    text raises ScanParseError.

    Returns:
        (rows, fields) float array in FIELD_KEYS order
    """
    if block.empty:
        return np.empty((0, len(FIELD_COLUMNS)))

    text = block[FIELD_COLUMNS]
    values = text.apply(pd.to_numeric, errors="coerce")
    blank = text.eq("") | text.apply(lambda column: column.str.lower()).eq("nan")
    bad = values.isna() & ~blank
    if bad.to_numpy().any():
        row, col = np.argwhere(bad.to_numpy())[0]
        raise ScanParseError(snapshot, FIELD_COLUMNS[col] + 1, text.iat[row, col])
    return values.to_numpy(dtype=float)


class RawScanIngestor:
    """
    Splits a raw measurement table into per-snapshot near and far scan arrays.
    """

    def __init__(self,
                 capacity_ceiling: int = DEFAULT_CAPACITY_CEILING,
                 status_label: str = "Status",
                 near_label: str = "NEAR",
                 far_label: str = "FAR",
                 has_header: bool = True,
                 on_overflow: str = "truncate",
                 strict: bool = False,
                 show_progress: bool = False):
        """
        Initialize ingestor.

        Args:
            capacity_ceiling: Upper bound on detection slots per snapshot
            status_label: Label of status rows (one per snapshot)
            near_label: Label of near scan detection rows
            far_label: Label of far scan detection rows
            has_header: Whether the first table row is a header
            on_overflow: 'truncate' to keep the first rows of an overflowing
                snapshot, 'raise' to raise CapacityOverflowError
            strict: Raise ScanParseError instead of emitting an all-NaN
                snapshot when a row fails to parse
            show_progress: Display a progress bar over the snapshots
        """
        if capacity_ceiling < 0:
            raise ValueError(f"capacity_ceiling must be non-negative, got {capacity_ceiling}")
        if on_overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"on_overflow must be one of {OVERFLOW_POLICIES}, got {on_overflow!r}")

        self.capacity_ceiling = int(capacity_ceiling)
        self.labels = {
            ScanType.NEAR: near_label,
            ScanType.FAR: far_label,
        }
        self.status_label = status_label
        self.has_header = has_header
        self.on_overflow = on_overflow
        self.strict = strict
        self.show_progress = show_progress

    def ingest(self, raw_table: RawTable) -> SnapshotSeries:
        """
        Ingest a raw table.

        Args:
            raw_table: Rectangular table of text fields (DataFrame, array or
                list of rows)

        Returns:
            SnapshotSeries with status rows, near and far scan arrays and a
            report of recoverable conditions
        """
        frame = _as_frame(raw_table)
        header: List[str] = []
        if self.has_header and len(frame) > 0:
            header = frame.iloc[0].tolist()
            frame = frame.iloc[1:].reset_index(drop=True)

        if len(frame) == 0:
            frame = pd.DataFrame(columns=range(max(frame.shape[1], MIN_DETECTION_COLUMNS)), dtype=object)
        elif frame.shape[1] < MIN_DETECTION_COLUMNS:
            raise MalformedInputError(
                f"Expected at least {MIN_DETECTION_COLUMNS} columns, got {frame.shape[1]}"
            )

        labels = frame[2]
        self._check_labels(labels)

        status_mask = (labels == self.status_label).to_numpy()
        status_rows = frame[status_mask].to_numpy(dtype=object)
        num_snapshots = int(status_mask.sum())
        logger.debug("Ingesting %d rows, %d snapshots", len(frame), num_snapshots)

        report = IngestReport()
        failed = set()
        scans = {}
        for scan_type, label in self.labels.items():
            rows = frame[(labels == label).to_numpy()]
            scans[scan_type] = self._collect_scan(scan_type, rows, num_snapshots, report, failed)

        report.failed_snapshots = sorted(failed)
        if report.orphaned_rows:
            logger.warning("Ignored %d detection rows without a matching status row", report.orphaned_rows)

        return SnapshotSeries(
            header=header,
            status_rows=status_rows,
            near=scans[ScanType.NEAR],
            far=scans[ScanType.FAR],
            report=report
        )

    def _check_labels(self, labels: pd.Series):
        known = {self.status_label, *self.labels.values()}
        unknown = ~labels.isin(known)
        if unknown.any():
            position = int(np.flatnonzero(unknown.to_numpy())[0])
            raise MalformedInputError(
                f"Row {position + 1 + int(self.has_header)}: unrecognised label {labels.iloc[position]!r}"
            )

    def _snapshot_indices(self, rows: pd.DataFrame) -> pd.Series:
        indices = pd.to_numeric(rows[0], errors="coerce").astype(float)
        integral = indices.notna() & np.isfinite(indices) & (indices == np.round(indices))
        if not integral.all():
            bad = rows[0][~integral].iloc[0]
            raise MalformedInputError(f"Snapshot index {bad!r} is not an integer")
        return indices.astype(np.int64)

    def _capacity(self, scan_type: ScanType, counts: pd.Series) -> int:
        max_reported = counts.max() if counts.notna().any() else 0
        capacity = int(min(max(max_reported, 0), self.capacity_ceiling))
        if max_reported > self.capacity_ceiling:
            logger.warning("%s scan reports up to %g detections, clamped to %d",
                           scan_type.value, max_reported, self.capacity_ceiling)
        return capacity

    def _collect_scan(self, scan_type: ScanType, rows: pd.DataFrame, num_snapshots: int,
                      report: IngestReport, failed: set) -> ScanArrays:
        indices = self._snapshot_indices(rows)
        reported_counts = pd.to_numeric(rows[COUNT_COLUMN], errors="coerce").astype(float)
        capacity = self._capacity(scan_type, reported_counts)

        in_range = (indices >= 1) & (indices <= num_snapshots)
        report.orphaned_rows += int((~in_range).sum())
        groups: Dict[int, pd.DataFrame] = {
            int(k): group for k, group in rows[in_range.to_numpy()].groupby(indices[in_range], sort=False)
        }

        data = np.full((num_snapshots, capacity, len(FIELD_KEYS)), np.nan)
        counts = np.zeros(num_snapshots, dtype=np.int64)

        snapshots = range(1, num_snapshots + 1)
        if self.show_progress:
            snapshots = tqdm(snapshots, desc=f"Ingesting {scan_type.value} scan")

        for k in snapshots:
            group = groups.get(k)
            if group is None:
                continue

            reported = reported_counts.loc[group.index].max()
            demand = max(len(group), int(reported) if np.isfinite(reported) else 0)
            if demand > capacity:
                overflow = CapacityOverflow(scan_type, k, demand, capacity)
                report.overflows.append(overflow)
                if self.on_overflow == "raise":
                    raise CapacityOverflowError(overflow)
                logger.warning("%s scan, snapshot %d: %d detections truncated to %d",
                               scan_type.value, k, demand, capacity)
                group = group.iloc[:capacity]

            try:
                values = _parse_numeric(group, k)
            except ScanParseError as e:
                if self.strict:
                    raise
                logger.warning("%s scan: %s; snapshot left empty", scan_type.value, e)
                failed.add(k)
                continue

            data[k - 1, :len(values)] = values
            counts[k - 1] = len(values)

        fields = {key: np.ascontiguousarray(data[:, :, j]) for j, key in enumerate(FIELD_KEYS)}
        return ScanArrays(scan_type=scan_type, fields=fields, counts=counts)


def ingest(raw_table: RawTable, **kwargs) -> SnapshotSeries:
    """
    Ingest a raw table with a one-off RawScanIngestor.

    Args:
        raw_table: Rectangular table of text fields
        **kwargs: Forwarded to RawScanIngestor

    Returns:
        SnapshotSeries
    """
    return RawScanIngestor(**kwargs).ingest(raw_table)
