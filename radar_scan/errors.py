"""
Exceptions raised by the radar scan pipeline.
"""


class RadarScanError(Exception):
    """Base class for all radar scan pipeline errors."""


class MalformedInputError(RadarScanError, ValueError):
    """
    Raised when a raw table is structurally invalid.

    Covers a wrong column count, a ragged table, a missing or unrecognised
    row label and a snapshot index that is not an integer. Aborts ingestion
    of the whole table.
    """


class ScanParseError(RadarScanError, ValueError):
    """
    Raised when a numeric field of a detection row cannot be parsed.

    Attributes:
        snapshot: 1-based snapshot index the failing row belongs to
        column: 1-based column of the failing field
        value: Offending text
    """

    def __init__(self, snapshot: int, column: int, value: str):
        self.snapshot = snapshot
        self.column = column
        self.value = value
        super().__init__(
            f"Snapshot {snapshot}: non-numeric value {value!r} in column {column}"
        )


class CapacityOverflowError(RadarScanError):
    """Raised when a snapshot holds more detections than the capacity ceiling allows."""

    def __init__(self, overflow):
        self.overflow = overflow
        super().__init__(
            f"{overflow.scan_type.value} scan, snapshot {overflow.snapshot}: "
            f"{overflow.reported} detections exceed capacity {overflow.capacity}"
        )
