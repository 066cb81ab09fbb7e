import logging

import numpy as np
import pandas as pd
import pytest

from radar_scan.data_structures import CapacityOverflow, ScanType
from radar_scan.errors import CapacityOverflowError, MalformedInputError, ScanParseError
from radar_scan.ingest import RawScanIngestor, ingest, read_raw_table
from conftest import HEADER, NUM_COLUMNS


def test_snapshot_count_and_capacity(sample_table):
    series = ingest(sample_table)
    assert series.num_snapshots == 3
    assert series.near.capacity == 3
    assert series.far.capacity == 2
    np.testing.assert_array_equal(series.near.counts, [2, 0, 3])
    np.testing.assert_array_equal(series.far.counts, [1, 2, 0])
    assert series.report.clean


def test_rows_are_left_aligned_and_padded(sample_table):
    series = ingest(sample_table)
    np.testing.assert_array_equal(series.near["range_m"][0], [10.0, 50.0, np.nan])
    np.testing.assert_array_equal(series.near["range_m"][1], [np.nan, np.nan, np.nan])
    np.testing.assert_array_equal(series.far["range_m"][1], [5.0, 100.0])
    assert series.near["rcs0"][0, 0] == 20.0
    assert series.near["prob1"][0, 0] == 0.1


def test_every_field_has_the_same_shape(sample_table):
    series = ingest(sample_table)
    assert len(series.near.keys()) == 19
    for key in series.near.keys():
        assert series.near[key].shape == (3, 3)
        assert series.far[key].shape == (3, 2)


def test_header_and_status_rows(sample_table):
    series = ingest(sample_table)
    assert series.header == HEADER
    assert series.status_rows.shape == (3, NUM_COLUMNS)
    assert [row[0] for row in series.status_rows] == ["1", "2", "3"]
    assert all(row[2] == "Status" for row in series.status_rows)


def test_snapshot_view_holds_populated_slots_only(sample_table):
    series = ingest(sample_table)
    snapshot = series.near.snapshot(2)
    np.testing.assert_array_equal(snapshot["range_m"], [15.0, 0.5, 25.0])
    assert series.near.snapshot(1)["range_m"].size == 0


def test_series_is_read_only(sample_table):
    series = ingest(sample_table)
    with pytest.raises(ValueError):
        series.near["range_m"][0, 0] = 1.0
    with pytest.raises(ValueError):
        series.near.counts[0] = 7


def test_blank_and_nan_fields_parse_to_nan(builder):
    builder.status(1)
    builder.detection(1, "NEAR", snr="", rcs1="NaN", pdh0="nan")
    series = ingest(builder.build())
    assert np.isnan(series.near["snr"][0, 0])
    assert np.isnan(series.near["rcs1"][0, 0])
    assert np.isnan(series.near["pdh0"][0, 0])
    assert series.near.counts[0] == 1


def test_parse_failure_empties_only_that_snapshot(sample_builder, caplog):
    sample_builder.detection(2, "FAR", rcs0="abc")
    with caplog.at_level(logging.WARNING, logger="radar_scan.ingest"):
        series = ingest(sample_builder.build())

    assert series.num_snapshots == 3
    assert series.report.failed_snapshots == [2]
    assert series.far.counts[1] == 0
    assert np.all(np.isnan(series.far["range_m"][1]))
    # other snapshots untouched
    np.testing.assert_array_equal(series.far.counts[[0, 2]], [1, 0])
    np.testing.assert_array_equal(series.near.counts, [2, 0, 3])
    assert "non-numeric" in caplog.text


def test_parse_failure_raises_in_strict_mode(sample_builder):
    sample_builder.detection(2, "FAR", rcs0="abc")
    with pytest.raises(ScanParseError) as excinfo:
        ingest(sample_builder.build(), strict=True)
    assert excinfo.value.snapshot == 2
    assert excinfo.value.column == 12
    assert excinfo.value.value == "abc"


def test_unrecognised_label_is_fatal(sample_table):
    sample_table[3][2] = "MID"
    with pytest.raises(MalformedInputError, match="MID"):
        ingest(sample_table)


def test_missing_label_is_fatal(sample_table):
    sample_table[2][2] = ""
    with pytest.raises(MalformedInputError):
        ingest(sample_table)


def test_ragged_table_is_fatal(sample_table):
    sample_table[2] = sample_table[2][:20]
    with pytest.raises(MalformedInputError, match="rectangular"):
        ingest(sample_table)


def test_too_few_columns_is_fatal():
    table = [["1", "", "Status"] + [""] * 10]
    with pytest.raises(MalformedInputError, match="columns"):
        ingest(table, has_header=False)


def test_non_integer_snapshot_index_is_fatal(sample_table):
    sample_table[2][0] = "1.5"
    with pytest.raises(MalformedInputError, match="1.5"):
        ingest(sample_table)


def test_capacity_overflow_is_reported_and_truncated(sample_table, caplog):
    with caplog.at_level(logging.WARNING, logger="radar_scan.ingest"):
        series = ingest(sample_table, capacity_ceiling=2)

    assert series.near.capacity == 2
    np.testing.assert_array_equal(series.near.counts, [2, 0, 2])
    np.testing.assert_array_equal(series.near["range_m"][2], [15.0, 0.5])
    assert series.report.overflows == [CapacityOverflow(ScanType.NEAR, 3, 3, 2)]
    assert not series.report.clean
    assert "truncated" in caplog.text


def test_capacity_overflow_can_raise(sample_table):
    with pytest.raises(CapacityOverflowError) as excinfo:
        ingest(sample_table, capacity_ceiling=2, on_overflow="raise")
    assert excinfo.value.overflow.snapshot == 3
    assert excinfo.value.overflow.scan_type is ScanType.NEAR


def test_more_rows_than_reported_count_overflows(builder):
    builder.status(1)
    builder.detection(1, "NEAR", num_detections=1, range_m=3.0)
    builder.detection(1, "NEAR", num_detections=1, range_m=4.0)
    series = ingest(builder.build())
    assert series.near.capacity == 1
    assert series.report.overflows == [CapacityOverflow(ScanType.NEAR, 1, 2, 1)]
    np.testing.assert_array_equal(series.near["range_m"][0], [3.0])


def test_rows_without_status_row_are_orphaned(sample_builder):
    sample_builder.detection(7, "NEAR", range_m=12.0)
    series = ingest(sample_builder.build())
    assert series.num_snapshots == 3
    assert series.report.orphaned_rows == 1
    np.testing.assert_array_equal(series.near.counts, [2, 0, 3])


def test_header_only_table_gives_empty_series():
    series = ingest([list(HEADER)])
    assert series.num_snapshots == 0
    assert series.near.capacity == 0
    assert series.far["range_m"].shape == (0, 0)


def test_custom_labels(builder):
    builder.status(1)
    builder.detection(1, "N", range_m=7.0)
    table = builder.build()
    for row in table[1:]:
        row[2] = {"Status": "STAT", "N": "N"}[row[2]]

    ingestor = RawScanIngestor(status_label="STAT", near_label="N", far_label="F")
    series = ingestor.ingest(table)
    assert series.num_snapshots == 1
    np.testing.assert_array_equal(series.near["range_m"][0], [7.0])


def test_dataframe_input(sample_table):
    series = ingest(pd.DataFrame(sample_table))
    np.testing.assert_array_equal(series.near.counts, [2, 0, 3])


def test_read_raw_table_from_csv(tmp_path, sample_table):
    path = tmp_path / "measurement.csv"
    path.write_text("\n".join(",".join(row) for row in sample_table) + "\n")

    table = read_raw_table(path)
    assert table.shape == (len(sample_table), NUM_COLUMNS)

    series = ingest(table)
    np.testing.assert_array_equal(series.far.counts, [1, 2, 0])
    assert series.far["utc_time_ms"][1, 0] == 1066


def write_csv(path, table):
    path.write_text("\n".join(",".join(row) for row in table) + "\n")
    return path


def test_read_raw_table_rejects_long_rows(tmp_path, sample_table):
    sample_table[2] = sample_table[2] + ["1", "2"]
    path = write_csv(tmp_path / "long.csv", sample_table)
    with pytest.raises(MalformedInputError, match="34"):
        read_raw_table(path)


def test_read_raw_table_rejects_short_rows(tmp_path, sample_table):
    sample_table[2] = sample_table[2][:20]
    path = write_csv(tmp_path / "short.csv", sample_table)
    with pytest.raises(MalformedInputError, match="row 3 has 20 fields"):
        read_raw_table(path)


def test_read_raw_table_keeps_empty_trailing_fields(tmp_path, sample_table):
    for row in sample_table[1:]:
        row[-1] = ""
    table = read_raw_table(write_csv(tmp_path / "trailing.csv", sample_table))
    assert table.shape == (len(sample_table), NUM_COLUMNS)
    assert (table.iloc[1:, -1] == "").all()


def test_to_dict_exports_field_arrays(sample_table):
    record = ingest(sample_table).to_dict()
    assert set(record) == {"header", "status_rows", "near_scan", "far_scan"}
    assert record["near_scan"]["range_m"].shape == (3, 3)
