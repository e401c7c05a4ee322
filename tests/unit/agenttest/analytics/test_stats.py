"""Tests for analytics statistics helpers."""

from __future__ import annotations

import pytest

from src.agenttest.analytics.stats import mean, metric_stats, percentile, rate


class TestPercentile:
    """Tests for nearest-rank percentiles."""

    def test_nearest_rank(self):
        values = [15, 20, 35, 40, 50]

        assert percentile(values, 30) == 20
        assert percentile(values, 40) == 20
        assert percentile(values, 50) == 35
        assert percentile(values, 100) == 50

    def test_p90_is_a_sample_value(self):
        values = list(range(1, 11))

        assert percentile(values, 90) == 9

    def test_unsorted_input(self):
        assert percentile([50, 15, 40, 20, 35], 50) == 35

    def test_zero_percentile_is_minimum(self):
        assert percentile([3, 1, 2], 0) == 1

    def test_empty(self):
        assert percentile([], 90) == 0.0

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            percentile([1, 2], 101)


class TestMetricStats:
    def test_summary(self):
        stats = metric_stats([100, 200, 300, 400])

        assert stats.min == 100
        assert stats.max == 400
        assert stats.avg == 250
        assert stats.p90 == 400

    def test_empty_is_zeros(self):
        stats = metric_stats([])

        assert (stats.min, stats.max, stats.avg, stats.p90) == (0.0, 0.0, 0.0, 0.0)


def test_mean_and_rate():
    assert mean([1, 2, 3]) == 2
    assert mean([]) is None
    assert rate(1, 4) == 25.0
    assert rate(0, 0) == 0.0
