from datetime import date

import pytest

from capacity_forecast.models import Horizon, InvalidConfigurationError, WindowGranularity
from capacity_forecast.windows import (
    build_series,
    custom_window,
    day_windows,
    iter_days,
    month_windows,
    series_span,
    week_start_for,
    week_windows,
)


class TestWeekWindows:
    def test_series_starts_at_week_containing_reference(self):
        series = week_windows(date(2024, 1, 3), 2)
        assert [(w.start, w.end) for w in series] == [
            (date(2024, 1, 1), date(2024, 1, 7)),
            (date(2024, 1, 8), date(2024, 1, 14)),
        ]

    def test_sunday_convention(self):
        series = week_windows(date(2024, 1, 3), 1, week_start="sunday")
        assert series[0].start == date(2023, 12, 31)
        assert series[0].end == date(2024, 1, 6)

    def test_sunday_reference_is_its_own_week_start(self):
        assert week_start_for(date(2023, 12, 31), "sunday") == date(2023, 12, 31)
        assert week_start_for(date(2023, 12, 31), "monday") == date(2023, 12, 25)

    def test_zero_count_is_empty(self):
        assert week_windows(date(2024, 1, 1), 0) == ()

    def test_negative_count_is_a_configuration_error(self):
        with pytest.raises(InvalidConfigurationError):
            week_windows(date(2024, 1, 1), -1)

    def test_unknown_week_start(self):
        with pytest.raises(InvalidConfigurationError):
            week_start_for(date(2024, 1, 1), "wednesday")

    def test_windows_do_not_overlap(self):
        series = week_windows(date(2024, 1, 1), 8)
        for previous, current in zip(series, series[1:]):
            assert (current.start - previous.end).days == 1

    def test_label(self):
        assert week_windows(date(2024, 1, 1), 1)[0].label == "Jan 01 - Jan 07"


class TestOtherGranularities:
    def test_month_windows_cover_whole_months(self):
        series = month_windows(date(2024, 1, 15), 3)
        assert [(w.start, w.end) for w in series] == [
            (date(2024, 1, 1), date(2024, 1, 31)),
            (date(2024, 2, 1), date(2024, 2, 29)),
            (date(2024, 3, 1), date(2024, 3, 31)),
        ]
        assert series[1].label == "2024-02"

    def test_month_windows_cross_year(self):
        series = month_windows(date(2023, 12, 5), 2)
        assert series[1].start == date(2024, 1, 1)

    def test_day_windows(self):
        series = day_windows(date(2024, 1, 30), 3)
        assert [w.start for w in series] == [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1)]
        assert all(w.start == w.end for w in series)

    def test_custom_window(self):
        (window,) = custom_window(date(2024, 1, 1), date(2024, 1, 14))
        assert window.days == 14

    def test_inverted_custom_window(self):
        with pytest.raises(InvalidConfigurationError):
            custom_window(date(2024, 1, 14), date(2024, 1, 1))


class TestBuildSeries:
    def test_dispatches_on_granularity(self):
        horizon = Horizon(reference_date=date(2024, 1, 1), window_count=2, granularity=WindowGranularity.MONTH)
        assert len(build_series(horizon)) == 2

    def test_custom_requires_bounds(self):
        with pytest.raises(InvalidConfigurationError):
            build_series(Horizon(granularity=WindowGranularity.CUSTOM, start=date(2024, 1, 1)))

    def test_rolling_requires_reference_date(self):
        with pytest.raises(InvalidConfigurationError):
            build_series(Horizon(reference_date=None))

    def test_span(self):
        span = series_span(week_windows(date(2024, 1, 1), 3))
        assert (span.start, span.end) == (date(2024, 1, 1), date(2024, 1, 21))


def test_iter_days_is_inclusive():
    assert list(iter_days(date(2024, 2, 28), date(2024, 3, 1))) == [
        date(2024, 2, 28),
        date(2024, 2, 29),
        date(2024, 3, 1),
    ]
    assert list(iter_days(date(2024, 3, 1), date(2024, 2, 28))) == []
    assert list(iter_days(date(9999, 12, 31), date.max)) == [date.max]
