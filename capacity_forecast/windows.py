from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator, List

from dateutil.relativedelta import relativedelta

from .models import (
    Horizon,
    InvalidConfigurationError,
    TimeWindow,
    TimeWindowSeries,
    WindowGranularity,
)

MONTH_FMT = "%Y-%m"
WEEK_LABEL_FMT = "%b %d"

WEEK_START_OFFSETS = {"monday": 0, "sunday": 6}


def _first_of_month(value: date) -> date:
    return date(value.year, value.month, 1)


def _last_of_month(value: date) -> date:
    return _first_of_month(value) + relativedelta(months=1, days=-1)


def _range_label(start: date, end: date) -> str:
    return f"{start.strftime(WEEK_LABEL_FMT)} - {end.strftime(WEEK_LABEL_FMT)}"


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in ``[start, end]``; nothing when inverted."""
    current = start
    while current <= end:
        yield current
        if current == end:
            break
        current += timedelta(days=1)


def week_start_for(day: date, week_start: str = "monday") -> date:
    try:
        first_weekday = WEEK_START_OFFSETS[week_start.lower()]
    except KeyError as exc:
        raise InvalidConfigurationError(
            f"week_start must be one of {', '.join(sorted(WEEK_START_OFFSETS))}"
        ) from exc
    # weekday(): Monday == 0 ... Sunday == 6
    delta = (day.weekday() - first_weekday) % 7
    return day - timedelta(days=delta)


def week_windows(reference_date: date, count: int, week_start: str = "monday") -> TimeWindowSeries:
    if count < 0:
        raise InvalidConfigurationError("window_count must not be negative")
    start = week_start_for(reference_date, week_start)
    windows: List[TimeWindow] = []
    for offset in range(count):
        window_start = start + timedelta(weeks=offset)
        window_end = window_start + timedelta(days=6)
        windows.append(TimeWindow(window_start, window_end, _range_label(window_start, window_end)))
    return tuple(windows)


def month_windows(reference_date: date, count: int) -> TimeWindowSeries:
    if count < 0:
        raise InvalidConfigurationError("window_count must not be negative")
    start = _first_of_month(reference_date)
    windows: List[TimeWindow] = []
    for offset in range(count):
        month_start = start + relativedelta(months=offset)
        windows.append(
            TimeWindow(month_start, _last_of_month(month_start), month_start.strftime(MONTH_FMT))
        )
    return tuple(windows)


def day_windows(reference_date: date, count: int) -> TimeWindowSeries:
    if count < 0:
        raise InvalidConfigurationError("window_count must not be negative")
    return tuple(
        TimeWindow(day, day, day.isoformat())
        for day in (reference_date + timedelta(days=offset) for offset in range(count))
    )


def custom_window(start: date, end: date) -> TimeWindowSeries:
    if start > end:
        raise InvalidConfigurationError(
            f"custom window start {start.isoformat()} is after end {end.isoformat()}"
        )
    return (TimeWindow(start, end, _range_label(start, end)),)


def build_series(horizon: Horizon, week_start: str = "monday") -> TimeWindowSeries:
    if horizon.granularity is WindowGranularity.CUSTOM:
        if horizon.start is None or horizon.end is None:
            raise InvalidConfigurationError("custom granularity requires both start and end")
        return custom_window(horizon.start, horizon.end)
    if horizon.reference_date is None:
        raise InvalidConfigurationError("reference_date is required for rolling windows")
    if horizon.granularity is WindowGranularity.WEEK:
        return week_windows(horizon.reference_date, horizon.window_count, week_start)
    if horizon.granularity is WindowGranularity.MONTH:
        return month_windows(horizon.reference_date, horizon.window_count)
    if horizon.granularity is WindowGranularity.DAY:
        return day_windows(horizon.reference_date, horizon.window_count)
    raise InvalidConfigurationError(f"unsupported window granularity '{horizon.granularity}'")


def series_span(series: TimeWindowSeries) -> TimeWindow:
    """Single window covering the whole series, used for horizon totals."""
    if not series:
        raise ValueError("cannot span an empty window series")
    start = series[0].start
    end = series[-1].end
    return TimeWindow(start, end, _range_label(start, end))
