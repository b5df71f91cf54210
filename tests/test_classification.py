from datetime import date

import pytest

from capacity_forecast.classification import (
    UtilizationBand,
    band_counts,
    classify,
    count_overallocated,
    group_utilization,
    most_available,
    most_utilized,
    order_buckets,
    overallocated_groups,
    top_k,
    utilization,
)
from capacity_forecast.models import AllocationBucket, TimeWindow

W1 = TimeWindow(date(2024, 1, 1), date(2024, 1, 7), "Jan 01 - Jan 07")
W2 = TimeWindow(date(2024, 1, 8), date(2024, 1, 14), "Jan 08 - Jan 14")


def _bucket(key, allocated, capacity, window=W1, name=None):
    return AllocationBucket(key, name or key.title(), window, allocated, capacity)


class TestUtilization:
    def test_ratio(self):
        assert utilization(20, 40) == 0.5

    @pytest.mark.parametrize("capacity", [0, -10, float("inf"), float("nan")])
    def test_unusable_capacity_is_zero(self, capacity):
        assert utilization(10, capacity) == 0.0

    def test_never_negative(self):
        assert utilization(-5, 40) == 0.0


class TestClassify:
    @pytest.mark.parametrize(
        "value, band",
        [
            (0.0, UtilizationBand.LOW),
            (0.4999, UtilizationBand.LOW),
            (0.5, UtilizationBand.MODERATE),
            (0.7499, UtilizationBand.MODERATE),
            (0.75, UtilizationBand.HIGH),
            (0.8999, UtilizationBand.HIGH),
            (0.9, UtilizationBand.OVERALLOCATED),
            (1.5, UtilizationBand.OVERALLOCATED),
        ],
    )
    def test_band_boundaries(self, value, band):
        assert classify(value) is band

    def test_bucket_band(self):
        assert _bucket("a", 50, 60).band is UtilizationBand.HIGH


class TestRanking:
    """Ranking works on horizon-wide utilization, not a single window."""

    def test_group_utilization_sums_windows(self):
        buckets = [_bucket("a", 40, 40, W1), _bucket("a", 0, 40, W2)]
        assert group_utilization(buckets) == {"a": 0.5}

    def test_descending_with_name_tie_break(self):
        buckets = [
            _bucket("z", 30, 40, name="Zed"),
            _bucket("b", 30, 40, name="Bea"),
            _bucket("a", 10, 40, name="Al"),
        ]
        assert most_utilized(buckets) == ["b", "z", "a"]
        assert most_available(buckets) == ["a", "b", "z"]

    def test_top_k(self):
        assert top_k(["a", "b", "c"], 2) == ["a", "b"]
        assert top_k(["a", "b"], 5) == ["a", "b"]
        assert top_k(["a", "b"], 0) == []
        assert top_k(["a", "b"], None) == ["a", "b"]

    def test_negative_top_k(self):
        with pytest.raises(ValueError):
            top_k(["a"], -1)


class TestOverallocation:
    def test_counts_and_groups(self):
        buckets = [_bucket("a", 36, 40, W1), _bucket("a", 10, 40, W2), _bucket("b", 35, 40, W1)]
        assert count_overallocated(buckets) == 1
        assert overallocated_groups(buckets) == ["a"]

    def test_band_counts(self):
        buckets = [_bucket("a", 0, 40), _bucket("b", 20, 40), _bucket("c", 40, 40), _bucket("d", 5, 0)]
        assert band_counts(buckets) == {"low": 2, "moderate": 1, "high": 0, "overallocated": 1}


def test_order_buckets_follows_group_order_then_window():
    buckets = [_bucket("a", 1, 1, W2), _bucket("b", 1, 1, W1), _bucket("a", 1, 1, W1), _bucket("c", 1, 1, W1)]
    ordered = order_buckets(buckets, ["b", "a"])
    assert [(b.group_key, b.window) for b in ordered] == [("b", W1), ("a", W1), ("a", W2)]
