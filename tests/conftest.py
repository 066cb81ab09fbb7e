import numpy as np
import pytest

from radar_scan.config import PipelineConfig, RegionConfig, SceneConfig, SensorConfig
from radar_scan.data_structures import SCAN_FIELDS

NUM_COLUMNS = 32
HEADER = [f"col{i}" for i in range(1, NUM_COLUMNS + 1)]

DETECTION_DEFAULTS = {key: 0.0 for key in SCAN_FIELDS}
DETECTION_DEFAULTS.update({
    "range_m": 10.0,
    "prob0": 0.9,
    "prob1": 0.1,
})


class TableBuilder:
    """Builds raw ARS tables of text fields for tests."""

    def __init__(self):
        self.rows = []
        self.timestamps = {}

    def status(self, snapshot, timestamp=0):
        self.timestamps[snapshot] = timestamp
        self.rows.append(("Status", snapshot, None, {}))
        return self

    def detection(self, snapshot, label, num_detections=None, **fields):
        unknown = set(fields) - set(SCAN_FIELDS)
        assert not unknown, f"unknown detection fields {unknown}"
        self.rows.append((label, snapshot, num_detections, fields))
        return self

    def build(self, header=True):
        per_snapshot = {}
        for label, snapshot, _, _ in self.rows:
            per_snapshot[(snapshot, label)] = per_snapshot.get((snapshot, label), 0) + 1

        table = [list(HEADER)] if header else []
        for label, snapshot, num_detections, fields in self.rows:
            row = [""] * NUM_COLUMNS
            row[0] = str(snapshot)
            row[2] = label
            row[3] = str(self.timestamps.get(snapshot, 0))
            if label != "Status":
                values = dict(DETECTION_DEFAULTS)
                values["utc_time_ms"] = self.timestamps.get(snapshot, 0)
                values["num_detections"] = (num_detections if num_detections is not None
                                            else per_snapshot[(snapshot, label)])
                values.update(fields)
                for key, value in values.items():
                    row[SCAN_FIELDS[key] - 1] = str(value)
            table.append(row)
        return table


@pytest.fixture
def builder():
    return TableBuilder()


@pytest.fixture
def sample_builder():
    """
    Three snapshots.

    Snapshot 1: near A (in region), near B (beyond region), far C (beside region)
    Snapshot 2: no near; far D (in region), far E (beyond the scene)
    Snapshot 3: near F (in region), near G (short of region), near H (in region)
    """
    b = TableBuilder()
    b.status(1, timestamp=1000)
    b.detection(1, "NEAR", range_m=10.0, azimuth0_rad=0.2, azimuth1_rad=-0.3,
                rcs0=20.0, rcs1=5.0, prob0=0.9, prob1=0.1)
    b.detection(1, "NEAR", range_m=50.0, rcs0=10.0, rcs1=10.0, prob0=0.5, prob1=0.5)
    b.detection(1, "FAR", range_m=20.0, azimuth0_rad=0.0, azimuth1_rad=0.5,
                prob0=0.3, prob1=0.7)
    b.status(2, timestamp=1066)
    b.detection(2, "FAR", range_m=5.0, azimuth0_rad=0.1, prob0=0.8, prob1=0.2)
    b.detection(2, "FAR", range_m=100.0)
    b.status(3, timestamp=1132)
    b.detection(3, "NEAR", range_m=15.0)
    b.detection(3, "NEAR", range_m=0.5)
    b.detection(3, "NEAR", range_m=25.0, azimuth0_rad=-0.05)
    return b


@pytest.fixture
def sample_table(sample_builder):
    return sample_builder.build()


@pytest.fixture
def test_config():
    return PipelineConfig(
        sensor=SensorConfig(az_beamwidth_rad=0.05, el_beamwidth_rad=0.05,
                            range_resolution_m=1.0, azimuth_shift_deg=0.0),
        scene=SceneConfig(x_limits=[-20.0, 20.0], y_limits=[0.0, 70.0]),
        region=RegionConfig(down_range_limits=[1.0, 30.0], cross_range_limits=[-2.5, 2.5]),
    )


@pytest.fixture
def make_row():
    """Factory for one-slot scan rows as consumed by project()."""
    def detection_row(**fields):
        values = {key: np.array([float(DETECTION_DEFAULTS[key])]) for key in SCAN_FIELDS}
        for key, value in fields.items():
            values[key] = np.atleast_1d(np.asarray(value, dtype=float))
        return values
    return detection_row
