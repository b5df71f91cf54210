from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from dateutil import parser as dateparser

from .aggregation import aggregate_windows, group_allocations, horizon_totals, window_totals
from .classification import order_buckets, rank_groups, top_k
from .distribution import collect_spans, distribute_effort
from .filters import filter_overallocated, filter_resources
from .io_utils import parse_bool
from .models import (
    AllocationFilters,
    AllocationOptions,
    AllocationResult,
    DailyAllocation,
    EngineConfig,
    GroupBy,
    Horizon,
    InvalidConfigurationError,
    RankBy,
    Resource,
    ResourceType,
    Task,
    Team,
    WindowGranularity,
)
from .windows import WEEK_START_OFFSETS, build_series, series_span

logger = logging.getLogger(__name__)

E = TypeVar("E", GroupBy, WindowGranularity, RankBy, ResourceType)

OptionsInput = Union[AllocationOptions, Mapping[str, object], None]

OPTION_ALIASES = {
    "group_by": "groupBy",
    "rank_by": "rankBy",
    "top_k": "topK",
    "horizon_total": "horizonTotal",
    "include_unassigned": "includeUnassigned",
}
HORIZON_ALIASES = {
    "reference_date": "referenceDate",
    "window_count": "windowCount",
    "window_granularity": "windowGranularity",
    "granularity": "windowGranularity",
    "startDate": "start",
    "start_date": "start",
    "endDate": "end",
    "end_date": "end",
}
FILTER_ALIASES = {
    "resource_type": "resourceType",
    "media_type": "mediaType",
    "team_id": "teamId",
    "overallocated_only": "overallocatedOnly",
}


def _normalize_token(value: str) -> str:
    return value.strip().lower().replace("_", "").replace("-", "").replace(" ", "")


def _parse_enum(enum_cls: Type[E], raw: object, label: str) -> E:
    if isinstance(raw, enum_cls):
        return raw
    if isinstance(raw, str):
        token = _normalize_token(raw)
        for member in enum_cls:
            if _normalize_token(member.value) == token:
                return member
    allowed = ", ".join(member.value for member in enum_cls)
    raise InvalidConfigurationError(f"{label} must be one of {allowed}; got {raw!r}")


def _parse_date(raw: object, label: str) -> Optional[date]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return dateparser.isoparse(str(raw).strip()).date()
    except (ValueError, TypeError, OverflowError) as exc:
        raise InvalidConfigurationError(f"{label} must be an ISO date; got {raw!r}") from exc


def _parse_int(raw: object, label: str, *, allow_none: bool = False) -> Optional[int]:
    if raw is None and allow_none:
        return None
    if isinstance(raw, bool) or raw is None:
        raise InvalidConfigurationError(f"{label} must be an integer; got {raw!r}")
    if isinstance(raw, float) and not raw.is_integer():
        raise InvalidConfigurationError(f"{label} must be an integer; got {raw!r}")
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"{label} must be an integer; got {raw!r}") from exc
    if value < 0:
        raise InvalidConfigurationError(f"{label} must not be negative; got {value}")
    return value


def _parse_flag(raw: object, label: str) -> bool:
    if raw is None:
        return False
    try:
        return parse_bool(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(f"{label} must be a boolean; got {raw!r}") from exc


def _canonical_keys(data: Mapping[str, object], aliases: Mapping[str, str]) -> Dict[str, object]:
    """Rename alias keys to their camelCase form; a camelCase key wins over its alias."""
    canonical: Dict[str, object] = {key: value for key, value in data.items() if key not in aliases}
    for key, value in data.items():
        if key in aliases:
            canonical.setdefault(aliases[key], value)
    return canonical


def _canonical_options(data: Mapping[str, object]) -> Dict[str, object]:
    options = _canonical_keys(data, OPTION_ALIASES)
    for name, aliases in (("horizon", HORIZON_ALIASES), ("filters", FILTER_ALIASES)):
        nested = options.get(name)
        if isinstance(nested, Mapping):
            options[name] = _canonical_keys(nested, aliases)
    return options


def _merge_defaults(defaults: Mapping[str, object], data: Mapping[str, object]) -> Dict[str, object]:
    merged: Dict[str, object] = dict(defaults)
    for key, value in data.items():
        base = merged.get(key)
        if isinstance(base, Mapping) and isinstance(value, Mapping):
            merged[key] = {**base, **value}
        else:
            merged[key] = value
    return merged


def parse_options(
    data: Optional[Mapping[str, object]],
    config: Optional[EngineConfig] = None,
    *,
    today: Optional[date] = None,
) -> AllocationOptions:
    """Build validated options from a camelCase or snake_case mapping.

    ``today`` fills in a missing reference date; callers that want a
    repeatable result pass the reference date explicitly instead.
    """
    cfg = config or EngineConfig()
    if data is not None and not isinstance(data, Mapping):
        raise InvalidConfigurationError("options must be an object")
    merged = _merge_defaults(_canonical_options(cfg.defaults), _canonical_options(data or {}))

    horizon_raw = merged.get("horizon") or {}
    if not isinstance(horizon_raw, Mapping):
        raise InvalidConfigurationError("horizon must be an object")
    granularity_raw = horizon_raw.get("windowGranularity")
    window_count_raw = horizon_raw.get("windowCount")
    reference_date = _parse_date(horizon_raw.get("referenceDate"), "referenceDate")
    horizon = Horizon(
        reference_date=reference_date if reference_date is not None else today,
        window_count=8 if window_count_raw is None else _parse_int(window_count_raw, "windowCount"),
        granularity=(
            WindowGranularity.WEEK
            if granularity_raw is None
            else _parse_enum(WindowGranularity, granularity_raw, "windowGranularity")
        ),
        start=_parse_date(horizon_raw.get("start"), "horizon.start"),
        end=_parse_date(horizon_raw.get("end"), "horizon.end"),
    )

    filters_raw = merged.get("filters") or {}
    if not isinstance(filters_raw, Mapping):
        raise InvalidConfigurationError("filters must be an object")
    resource_type_raw = filters_raw.get("resourceType")
    media_type_raw = filters_raw.get("mediaType")
    team_id_raw = filters_raw.get("teamId")
    filters = AllocationFilters(
        resource_type=(
            None if resource_type_raw in (None, "") else _parse_enum(ResourceType, resource_type_raw, "resourceType")
        ),
        media_type=None if media_type_raw in (None, "") else str(media_type_raw),
        team_id=None if team_id_raw in (None, "") else str(team_id_raw),
        overallocated_only=_parse_flag(
            filters_raw.get("overallocatedOnly"), "overallocatedOnly"
        ),
    )

    group_by_raw = merged.get("groupBy")
    rank_by_raw = merged.get("rankBy")
    options = AllocationOptions(
        group_by=GroupBy.RESOURCE if group_by_raw is None else _parse_enum(GroupBy, group_by_raw, "groupBy"),
        horizon=horizon,
        filters=filters,
        rank_by=None if rank_by_raw in (None, "") else _parse_enum(RankBy, rank_by_raw, "rankBy"),
        top_k=_parse_int(merged.get("topK"), "topK", allow_none=True),
        horizon_total=_parse_flag(merged.get("horizonTotal"), "horizonTotal"),
        include_unassigned=_parse_flag(
            merged.get("includeUnassigned"), "includeUnassigned"
        ),
    )
    return validate_options(options, cfg)


def validate_options(options: AllocationOptions, config: Optional[EngineConfig] = None) -> AllocationOptions:
    """Fail fast on anything the pipeline cannot honour; returns a normalised copy."""
    cfg = config or EngineConfig()
    if cfg.week_start.lower() not in WEEK_START_OFFSETS:
        raise InvalidConfigurationError(f"unsupported week_start '{cfg.week_start}'")
    horizon = replace(
        options.horizon,
        granularity=_parse_enum(WindowGranularity, options.horizon.granularity, "windowGranularity"),
        window_count=_parse_int(options.horizon.window_count, "windowCount"),
    )
    filters = options.filters
    if filters.resource_type is not None:
        filters = replace(
            filters, resource_type=_parse_enum(ResourceType, filters.resource_type, "resourceType")
        )
    normalized = replace(
        options,
        group_by=_parse_enum(GroupBy, options.group_by, "groupBy"),
        horizon=horizon,
        filters=filters,
        rank_by=None if options.rank_by is None else _parse_enum(RankBy, options.rank_by, "rankBy"),
        top_k=_parse_int(options.top_k, "topK", allow_none=True),
    )
    if horizon.granularity is WindowGranularity.CUSTOM:
        if horizon.start is None or horizon.end is None:
            raise InvalidConfigurationError("custom granularity requires both start and end")
        if horizon.start > horizon.end:
            raise InvalidConfigurationError("custom window start must not be after its end")
    elif horizon.reference_date is None:
        raise InvalidConfigurationError("referenceDate is required for rolling windows")
    return normalized


def _coerce_options(options: OptionsInput, config: EngineConfig) -> AllocationOptions:
    if options is None:
        return parse_options({}, config)
    if isinstance(options, AllocationOptions):
        return validate_options(options, config)
    return parse_options(options, config)


def compute_allocations(
    resources: Sequence[Resource],
    tasks: Iterable[Task],
    teams: Sequence[Team],
    options: OptionsInput = None,
    config: Optional[EngineConfig] = None,
) -> AllocationResult:
    """Allocation buckets for one snapshot of resources, tasks and teams.

    Configuration problems raise ``InvalidConfigurationError`` before any
    aggregation; bad task data is skipped and reported in ``warnings``.
    """
    cfg = config or EngineConfig()
    opts = _coerce_options(options, cfg)
    series = build_series(opts.horizon, cfg.week_start)

    resources = tuple(resources)
    teams = tuple(teams)
    team_ids = {team.id for team in teams}
    selected = filter_resources(resources, opts.filters, team_ids, cfg)
    resource_filters_set = (
        opts.filters.resource_type is not None
        or opts.filters.media_type is not None
        or opts.filters.team_id is not None
    )
    track_unassigned = opts.include_unassigned and not resource_filters_set

    spans, warnings = collect_spans(tasks, cfg, {resource.id for resource in resources})
    wanted_ids: List[str] = [resource.id for resource in selected]
    wanted = set(wanted_ids)
    span_window = series_span(series) if series else None
    assigned: List[DailyAllocation] = []
    unassigned: List[DailyAllocation] = []
    if span_window is not None:
        for span in spans:
            if span.resource_id is None:
                if track_unassigned:
                    unassigned.extend(distribute_effort(span, span_window))
            elif span.resource_id in wanted:
                assigned.extend(distribute_effort(span, span_window))
    logger.debug(
        "Distributed %d tasks into %d daily allocations across %d windows",
        len(spans),
        len(assigned) + len(unassigned),
        len(series),
    )

    buckets = group_allocations(
        aggregate_windows(assigned, series, wanted_ids),
        selected,
        teams,
        series,
        opts.group_by,
        cfg,
        unassigned_hours=window_totals(unassigned, series) if track_unassigned else None,
    )

    # Overallocation is judged per window, so filter before collapsing to totals.
    if opts.filters.overallocated_only:
        buckets = list(filter_overallocated(buckets))
    if opts.horizon_total:
        buckets = horizon_totals(buckets, series)

    if opts.rank_by is not None:
        order = rank_groups(buckets, descending=opts.rank_by is RankBy.UTILIZATION_DESC)
    else:
        order = list(AllocationResult(tuple(buckets)).group_keys())
    try:
        order = top_k(order, opts.top_k)
    except ValueError as exc:
        raise InvalidConfigurationError(str(exc)) from exc
    ranked = order_buckets(buckets, order)
    logger.debug("Produced %d buckets for %d groups", len(ranked), len(order))
    return AllocationResult(buckets=tuple(ranked), warnings=tuple(warnings))

