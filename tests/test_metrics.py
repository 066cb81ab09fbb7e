import numpy as np
import pytest

from radar_scan.metrics import FALLBACK_NUM_BINS, BinningOption, eta_histogram, filter_summary
from radar_scan.pipeline import ScanPipeline


def test_num_bins_is_capped_at_half_the_points():
    result = eta_histogram(np.arange(10.0), BinningOption('num_bins', 20))
    assert len(result.counts) == 5
    assert len(result.edges) == 6
    assert result.counts.sum() == 10
    assert result.total_points == 10
    assert result.bin_width == pytest.approx(1.8)


def test_num_bins_at_least_one():
    result = eta_histogram([3.0], BinningOption('num_bins', 20))
    assert len(result.counts) == 1
    assert result.counts[0] == 1


def test_nan_values_are_ignored():
    values = np.array([[1.0, np.nan], [2.0, np.nan]])
    result = eta_histogram(values, BinningOption('num_bins', 1))
    assert result.total_points == 2
    assert result.counts.sum() == 2


def test_fixed_width_edges_are_aligned():
    values = [0.3, 1.1, 2.6, 9.9, 15.2]
    result = eta_histogram(values, BinningOption('fixed_width', 1.0))
    np.testing.assert_allclose(result.edges, np.arange(17.0))
    assert result.bin_width == pytest.approx(1.0)
    assert result.counts.sum() == 5
    assert result.counts[0] == 1 and result.counts[15] == 1
    np.testing.assert_allclose(result.centers[:2], [0.5, 1.5])


def test_fixed_width_too_coarse_falls_back(caplog):
    result = eta_histogram([0.0, 1.0, 2.0, 3.0], BinningOption('fixed_width', 1.0))
    assert len(result.counts) == FALLBACK_NUM_BINS
    assert result.counts.sum() == 4
    assert "falling back" in caplog.text


def test_fixed_width_must_be_positive():
    with pytest.raises(ValueError):
        eta_histogram([1.0, 2.0], BinningOption('fixed_width', 0.0))
    with pytest.raises(ValueError):
        eta_histogram([1.0, 2.0], BinningOption('fixed_width', -1.0))


def test_unknown_binning_option():
    with pytest.raises(ValueError, match="Invalid binning option"):
        eta_histogram([1.0, 2.0], BinningOption('log', 10))


def test_histogram_of_nothing(caplog):
    result = eta_histogram([np.nan, np.nan], BinningOption('num_bins', 10))
    assert result.total_points == 0
    assert result.counts.size == 0
    assert result.edges.size == 0
    assert np.isnan(result.bin_width)
    assert "No valid data" in caplog.text


def test_filter_summary(sample_table, test_config):
    result = ScanPipeline(test_config).run(sample_table)

    near = filter_summary(result.near)
    assert list(near.columns) == ['snapshot', 'timestamp_ms', 'projected', 'in_region', 'rejected']
    assert near['snapshot'].tolist() == [1, 2, 3]
    assert near['projected'].tolist() == [2, 0, 3]
    assert near['in_region'].tolist() == [1, 0, 2]
    assert near['rejected'].tolist() == [1, 0, 1]

    far = filter_summary(result.far)
    assert far['projected'].tolist() == [1, 1, 0]
    assert far['in_region'].tolist() == [0, 1, 0]
    assert far['timestamp_ms'].tolist()[:2] == [1000.0, 1066.0]
