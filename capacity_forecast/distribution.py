from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Collection, Iterable, List, Optional, Tuple, Union

from dateutil import parser as dateparser

from .models import (
    DailyAllocation,
    DataQualityWarning,
    EngineConfig,
    Task,
    TimeWindow,
)
from .windows import iter_days

logger = logging.getLogger(__name__)

MISSING_DATE = "missing_date"
INVALID_DATE = "invalid_date"
INVERTED_RANGE = "inverted_range"
INVALID_HOURS = "invalid_hours"
NEGATIVE_HOURS = "negative_hours"
UNKNOWN_RESOURCE = "unknown_resource"


class _BadDate(ValueError):
    pass


@dataclass(frozen=True)
class TaskSpan:
    """A task that passed validation, reduced to what distribution needs.

    ``resource_id`` is None for tasks nobody is assigned to.
    """

    task_id: str
    resource_id: Optional[str]
    start: date
    end: date
    hours: float

    @property
    def duration_days(self) -> int:
        return max((self.end - self.start).days + 1, 1)


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def _coerce_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return dateparser.isoparse(str(value).strip()).date()
    except (ValueError, TypeError, OverflowError) as exc:
        raise _BadDate(str(value)) from exc


def _coerce_hours(value: object) -> float:
    if _is_missing(value):
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"boolean is not an hour value: {value!r}")
    hours = float(value)  # may raise ValueError/TypeError
    if not math.isfinite(hours):
        raise ValueError(f"non-finite hour value: {value!r}")
    return hours


def validate_task(
    task: Task, known_resource_ids: Optional[Collection[str]] = None
) -> Union[TaskSpan, DataQualityWarning]:
    """Return the usable span of ``task`` or the first data-quality problem found."""
    for field_name in ("start_date", "due_date"):
        if _is_missing(getattr(task, field_name)):
            return DataQualityWarning(task.id, MISSING_DATE, f"task {task.id} has no {field_name}")
    try:
        start = _coerce_date(task.start_date)
        end = _coerce_date(task.due_date)
    except _BadDate as exc:
        return DataQualityWarning(task.id, INVALID_DATE, f"task {task.id} has an unparseable date: {exc}")
    if start > end:
        return DataQualityWarning(
            task.id,
            INVERTED_RANGE,
            f"task {task.id} starts {start.isoformat()} after its due date {end.isoformat()}",
        )
    try:
        hours = _coerce_hours(task.estimated_hours)
    except (ValueError, TypeError):
        return DataQualityWarning(
            task.id, INVALID_HOURS, f"task {task.id} has invalid estimated hours: {task.estimated_hours!r}"
        )
    if hours < 0:
        return DataQualityWarning(task.id, NEGATIVE_HOURS, f"task {task.id} has negative estimated hours: {hours}")
    resource_id = task.resource_id if not _is_missing(task.resource_id) else None
    if resource_id is not None and known_resource_ids is not None and resource_id not in known_resource_ids:
        return DataQualityWarning(
            task.id, UNKNOWN_RESOURCE, f"task {task.id} references unknown resource {resource_id}"
        )
    return TaskSpan(
        task_id=task.id,
        resource_id=None if resource_id is None else str(resource_id),
        start=start,
        end=end,
        hours=hours,
    )


def distribute_effort(span: TaskSpan, within: Optional[TimeWindow] = None) -> List[DailyAllocation]:
    """Spread ``span.hours`` evenly over every day of the inclusive range.

    With ``within`` only the days inside that window are produced; the daily
    share is still taken over the whole range.
    """
    per_day = span.hours / span.duration_days
    start, end = span.start, span.end
    if within is not None:
        start, end = max(start, within.start), min(end, within.end)
    return [
        DailyAllocation(span.task_id, span.resource_id, day, per_day)
        for day in iter_days(start, end)
    ]


def collect_spans(
    tasks: Iterable[Task],
    config: EngineConfig,
    known_resource_ids: Optional[Collection[str]] = None,
) -> Tuple[List[TaskSpan], List[DataQualityWarning]]:
    spans: List[TaskSpan] = []
    warnings: List[DataQualityWarning] = []
    for task in tasks:
        if config.is_excluded_status(task.status):
            logger.debug("Skipping task %s with status %s", task.id, task.status)
            continue
        outcome = validate_task(task, known_resource_ids)
        if isinstance(outcome, DataQualityWarning):
            logger.warning("Skipping task: %s", outcome.message)
            warnings.append(outcome)
            continue
        spans.append(outcome)
    return spans, warnings


def distribute_tasks(
    tasks: Iterable[Task],
    config: Optional[EngineConfig] = None,
    known_resource_ids: Optional[Collection[str]] = None,
) -> Tuple[List[DailyAllocation], List[DataQualityWarning]]:
    cfg = config or EngineConfig()
    spans, warnings = collect_spans(tasks, cfg, known_resource_ids)
    allocations: List[DailyAllocation] = []
    for span in spans:
        allocations.extend(distribute_effort(span))
    return allocations, warnings
