from __future__ import annotations

import math
from collections import defaultdict
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import (
    GLOBAL_GROUP_KEY,
    GLOBAL_GROUP_NAME,
    UNASSIGNED_KEY,
    UNASSIGNED_TEAM_NAME,
    AllocationBucket,
    DailyAllocation,
    EngineConfig,
    GroupBy,
    Resource,
    Team,
    TimeWindow,
    TimeWindowSeries,
)
from .windows import iter_days, series_span

UNASSIGNED_WORK_KEY = "unassigned-work"
UNASSIGNED_WORK_NAME = "Unassigned work"

DAYS_PER_WEEK = 7.0


def _day_index(series: TimeWindowSeries) -> Dict[object, int]:
    index: Dict[object, int] = {}
    for idx, window in enumerate(series):
        for day in iter_days(window.start, window.end):
            index.setdefault(day, idx)
    return index


def aggregate_windows(
    allocations: Iterable[DailyAllocation],
    series: TimeWindowSeries,
    resource_ids: Sequence[str],
) -> Dict[str, List[float]]:
    """Sum daily hours per resource per window.

    Every requested resource gets an entry for every window, zero-filled.
    Days outside the series are dropped, which truncates tasks that run past
    either end of the horizon.
    """
    day_to_window = _day_index(series)
    wanted = set(resource_ids)
    parts: Dict[str, List[List[float]]] = {
        resource_id: [[] for _ in series] for resource_id in resource_ids
    }
    for allocation in allocations:
        if allocation.resource_id not in wanted:
            continue
        idx = day_to_window.get(allocation.day)
        if idx is None:
            continue
        parts[allocation.resource_id][idx].append(allocation.hours)
    return {
        resource_id: [math.fsum(values) for values in per_window]
        for resource_id, per_window in parts.items()
    }


def window_totals(allocations: Iterable[DailyAllocation], series: TimeWindowSeries) -> List[float]:
    """Sum daily hours per window regardless of resource."""
    day_to_window = _day_index(series)
    parts: List[List[float]] = [[] for _ in series]
    for allocation in allocations:
        idx = day_to_window.get(allocation.day)
        if idx is not None:
            parts[idx].append(allocation.hours)
    return [math.fsum(values) for values in parts]


def team_key_for(resource: Resource, team_ids: Collection[str]) -> str:
    if resource.team_id and resource.team_id in team_ids:
        return resource.team_id
    return UNASSIGNED_KEY


def group_key_for(
    resource: Resource,
    group_by: GroupBy,
    teams_by_id: Mapping[str, Team],
    config: EngineConfig,
) -> Tuple[str, str]:
    if group_by is GroupBy.NONE:
        return GLOBAL_GROUP_KEY, GLOBAL_GROUP_NAME
    if group_by is GroupBy.RESOURCE:
        return resource.id, resource.display_name
    if group_by is GroupBy.TEAM:
        key = team_key_for(resource, teams_by_id)
        if key == UNASSIGNED_KEY:
            return UNASSIGNED_KEY, UNASSIGNED_TEAM_NAME
        return key, teams_by_id[key].name
    if group_by is GroupBy.MEDIA_TYPE:
        label = config.normalize_media_type(resource.media_type)
        return label, label
    raise ValueError(f"unsupported group_by '{group_by}'")


def window_capacity(weekly_hours: float, window: TimeWindow) -> float:
    return weekly_hours * window.days / DAYS_PER_WEEK


def group_allocations(
    per_resource: Mapping[str, Sequence[float]],
    resources: Sequence[Resource],
    teams: Sequence[Team],
    series: TimeWindowSeries,
    group_by: GroupBy,
    config: Optional[EngineConfig] = None,
    *,
    horizon_total: bool = False,
    unassigned_hours: Optional[Sequence[float]] = None,
) -> List[AllocationBucket]:
    cfg = config or EngineConfig()
    if not series:
        return []
    teams_by_id = {team.id: team for team in teams}
    members: Dict[str, List[Resource]] = defaultdict(list)
    names: Dict[str, str] = {}
    for resource in resources:
        key, name = group_key_for(resource, group_by, teams_by_id, cfg)
        members[key].append(resource)
        names.setdefault(key, name)

    buckets: List[AllocationBucket] = []
    for key in sorted(members, key=lambda item: (names[item], item)):
        group = members[key]
        allocated = [
            math.fsum(per_resource.get(resource.id, [0.0] * len(series))[idx] for resource in group)
            for idx in range(len(series))
        ]
        weekly = math.fsum(resource.weekly_capacity(cfg.default_weekly_capacity_hours) for resource in group)
        capacity = [window_capacity(weekly, window) for window in series]
        buckets.extend(_emit(key, names[key], series, allocated, capacity, len(group)))

    if unassigned_hours is not None:
        buckets.extend(
            _emit(
                UNASSIGNED_WORK_KEY,
                UNASSIGNED_WORK_NAME,
                series,
                list(unassigned_hours),
                [0.0] * len(series),
                0,
            )
        )
    if horizon_total:
        return horizon_totals(buckets, series)
    return buckets


def _emit(
    key: str,
    name: str,
    series: TimeWindowSeries,
    allocated: Sequence[float],
    capacity: Sequence[float],
    resource_count: int,
) -> List[AllocationBucket]:
    return [
        AllocationBucket(
            group_key=key,
            group_name=name,
            window=window,
            allocated_hours=allocated[idx],
            capacity_hours=capacity[idx],
            resource_count=resource_count,
        )
        for idx, window in enumerate(series)
    ]


def horizon_totals(buckets: Sequence[AllocationBucket], series: TimeWindowSeries) -> List[AllocationBucket]:
    """Collapse per-window buckets into one bucket per group spanning the series.

    Group order is preserved.
    """
    if not series:
        return []
    span = series_span(series)
    rows: Dict[str, List[AllocationBucket]] = {}
    for bucket in buckets:
        rows.setdefault(bucket.group_key, []).append(bucket)
    return [
        AllocationBucket(
            group_key=key,
            group_name=group[0].group_name,
            window=span,
            allocated_hours=math.fsum(bucket.allocated_hours for bucket in group),
            capacity_hours=math.fsum(bucket.capacity_hours for bucket in group),
            resource_count=group[0].resource_count,
        )
        for key, group in rows.items()
    ]
