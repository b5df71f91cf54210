"""Dashboard widgets expressed as presets over ``compute_allocations``.

Each widget picks a grouping, a horizon, filters and a ranking; none of them
does its own arithmetic.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from .aggregation import team_key_for
from .classification import band_counts, overallocated_groups
from .engine import compute_allocations
from .models import (
    AllocationFilters,
    AllocationOptions,
    AllocationResult,
    EngineConfig,
    GroupBy,
    Horizon,
    RankBy,
    Resource,
    ResourceType,
    Task,
    Team,
    WindowGranularity,
)

FORECAST_WEEKS = 8
OVERVIEW_TOP_K = 5


def _weeks(reference_date: date, weeks: int) -> Horizon:
    return Horizon(reference_date=reference_date, window_count=weeks, granularity=WindowGranularity.WEEK)


def forecast_options(
    reference_date: date,
    weeks: int = FORECAST_WEEKS,
    *,
    resource_type: Optional[ResourceType] = None,
    media_type: Optional[str] = None,
    overallocated_only: bool = False,
) -> AllocationOptions:
    return AllocationOptions(
        group_by=GroupBy.RESOURCE,
        horizon=_weeks(reference_date, weeks),
        filters=AllocationFilters(
            resource_type=resource_type,
            media_type=media_type,
            overallocated_only=overallocated_only,
        ),
        rank_by=RankBy.UTILIZATION_DESC,
    )


def resource_forecast(
    resources: Sequence[Resource],
    tasks: Sequence[Task],
    teams: Sequence[Team],
    reference_date: date,
    weeks: int = FORECAST_WEEKS,
    config: Optional[EngineConfig] = None,
    **filters,
) -> AllocationResult:
    """Week-by-week grid per resource, most utilized first."""
    options = forecast_options(reference_date, weeks, **filters)
    return compute_allocations(resources, tasks, teams, options, config)


def capacity_planning(
    resources: Sequence[Resource],
    tasks: Sequence[Task],
    teams: Sequence[Team],
    reference_date: date,
    weeks: int = FORECAST_WEEKS,
    config: Optional[EngineConfig] = None,
    *,
    resource_type: Optional[ResourceType] = None,
    most_available_first: bool = False,
) -> AllocationResult:
    options = AllocationOptions(
        group_by=GroupBy.RESOURCE,
        horizon=_weeks(reference_date, weeks),
        filters=AllocationFilters(resource_type=resource_type),
        rank_by=RankBy.UTILIZATION_ASC if most_available_first else RankBy.UTILIZATION_DESC,
        horizon_total=True,
    )
    return compute_allocations(resources, tasks, teams, options, config)


def team_utilization(
    resources: Sequence[Resource],
    tasks: Sequence[Task],
    teams: Sequence[Team],
    reference_date: date,
    weeks: int = FORECAST_WEEKS,
    config: Optional[EngineConfig] = None,
    *,
    team_id: Optional[str] = None,
) -> AllocationResult:
    options = AllocationOptions(
        group_by=GroupBy.TEAM,
        horizon=_weeks(reference_date, weeks),
        filters=AllocationFilters(team_id=team_id),
        rank_by=RankBy.UTILIZATION_DESC,
        horizon_total=True,
    )
    return compute_allocations(resources, tasks, teams, options, config)


def team_breakdown(
    resources: Sequence[Resource],
    tasks: Sequence[Task],
    teams: Sequence[Team],
    reference_date: date,
    weeks: int = FORECAST_WEEKS,
    config: Optional[EngineConfig] = None,
    *,
    team_id: Optional[str] = None,
) -> Dict[str, object]:
    """Team totals with each team's members and their allocation underneath."""
    totals = team_utilization(resources, tasks, teams, reference_date, weeks, config, team_id=team_id)
    members = compute_allocations(
        resources,
        tasks,
        teams,
        AllocationOptions(
            group_by=GroupBy.RESOURCE,
            horizon=_weeks(reference_date, weeks),
            filters=AllocationFilters(team_id=team_id),
            rank_by=RankBy.UTILIZATION_DESC,
            horizon_total=True,
        ),
        config,
    )
    team_ids = {team.id for team in teams}
    resources_by_id = {resource.id: resource for resource in resources}
    by_team: Dict[str, List[Dict[str, object]]] = defaultdict(list)
    for bucket in members.buckets:
        by_team[team_key_for(resources_by_id[bucket.group_key], team_ids)].append(bucket.to_dict())
    return {
        "teams": [
            dict(bucket.to_dict(), members=by_team.get(bucket.group_key, []))
            for bucket in totals.buckets
        ],
        "warnings": [warning.to_dict() for warning in totals.warnings],
    }


def media_type_utilization(
    resources: Sequence[Resource],
    tasks: Sequence[Task],
    teams: Sequence[Team],
    reference_date: date,
    weeks: int = FORECAST_WEEKS,
    config: Optional[EngineConfig] = None,
    *,
    media_type: Optional[str] = None,
) -> AllocationResult:
    options = AllocationOptions(
        group_by=GroupBy.MEDIA_TYPE,
        horizon=_weeks(reference_date, weeks),
        filters=AllocationFilters(media_type=media_type),
        rank_by=RankBy.UTILIZATION_DESC,
        horizon_total=True,
    )
    return compute_allocations(resources, tasks, teams, options, config)


def resource_overview(
    resources: Sequence[Resource],
    tasks: Sequence[Task],
    teams: Sequence[Team],
    reference_date: date,
    weeks: int = FORECAST_WEEKS,
    config: Optional[EngineConfig] = None,
    *,
    top: int = OVERVIEW_TOP_K,
) -> Dict[str, object]:
    """Headline figures: totals, overallocated resources, top utilized and media types."""
    horizon = _weeks(reference_date, weeks)
    totals = compute_allocations(
        resources,
        tasks,
        teams,
        AllocationOptions(group_by=GroupBy.NONE, horizon=horizon, horizon_total=True),
        config,
    )
    per_resource = compute_allocations(
        resources,
        tasks,
        teams,
        AllocationOptions(group_by=GroupBy.RESOURCE, horizon=horizon),
        config,
    )
    ranked = compute_allocations(
        resources,
        tasks,
        teams,
        AllocationOptions(
            group_by=GroupBy.RESOURCE,
            horizon=horizon,
            rank_by=RankBy.UTILIZATION_DESC,
            top_k=top,
            horizon_total=True,
        ),
        config,
    )
    by_media = media_type_utilization(resources, tasks, teams, reference_date, weeks, config)

    type_counts = {member.value: 0 for member in ResourceType}
    for resource in resources:
        type_counts[ResourceType(resource.type).value] += 1

    total_bucket = totals.buckets[0] if totals.buckets else None
    return {
        "total_resources": len(resources),
        "resources_by_type": type_counts,
        "capacity_hours": total_bucket.capacity_hours if total_bucket else 0.0,
        "allocated_hours": total_bucket.allocated_hours if total_bucket else 0.0,
        "utilization": total_bucket.utilization if total_bucket else 0.0,
        "overallocated_resources": len(overallocated_groups(per_resource.buckets)),
        "band_counts": band_counts(per_resource.buckets),
        "top_utilized": [bucket.to_dict() for bucket in ranked.buckets],
        "media_types": [bucket.to_dict() for bucket in by_media.buckets],
        "warnings": [warning.to_dict() for warning in totals.warnings],
    }


ViewFn = Callable[..., object]

VIEWS: Dict[str, ViewFn] = {
    "forecast": resource_forecast,
    "capacity-planning": capacity_planning,
    "team-utilization": team_utilization,
    "team-breakdown": team_breakdown,
    "media-type-utilization": media_type_utilization,
    "resource-overview": resource_overview,
}


def available_views() -> List[str]:
    return sorted(VIEWS)

