from __future__ import annotations

from typing import Collection, List, Optional, Sequence, Tuple

from .aggregation import team_key_for
from .classification import overallocated_groups
from .models import (
    OTHER_MEDIA_TYPE,
    AllocationBucket,
    AllocationFilters,
    EngineConfig,
    Resource,
)


def matches(
    resource: Resource,
    filters: AllocationFilters,
    team_ids: Collection[str] = (),
    config: Optional[EngineConfig] = None,
) -> bool:
    """AND of every resource-level predicate that is set."""
    cfg = config or EngineConfig()
    if filters.resource_type is not None and resource.type != filters.resource_type:
        return False
    if filters.media_type is not None and not media_type_matches(resource.media_type, filters.media_type, cfg):
        return False
    if filters.team_id is not None and team_key_for(resource, team_ids) != filters.team_id:
        return False
    return True


def media_type_matches(label: Optional[str], wanted: str, config: EngineConfig) -> bool:
    """Known labels, "Other" and "Unspecified" match by bucket; any other value matches the raw label."""
    cleaned = wanted.strip()
    bucket = config.normalize_media_type(cleaned)
    if bucket != OTHER_MEDIA_TYPE or cleaned.lower() == OTHER_MEDIA_TYPE.lower():
        return config.normalize_media_type(label) == bucket
    if label is None:
        return False
    return str(label).strip().lower() == cleaned.lower()


def filter_resources(
    resources: Sequence[Resource],
    filters: Optional[AllocationFilters],
    team_ids: Collection[str] = (),
    config: Optional[EngineConfig] = None,
) -> List[Resource]:
    if filters is None or filters.is_empty():
        return list(resources)
    return [resource for resource in resources if matches(resource, filters, team_ids, config)]


def filter_overallocated(buckets: Sequence[AllocationBucket]) -> Tuple[AllocationBucket, ...]:
    """Keep every window of the groups that are overallocated in at least one window."""
    flagged = set(overallocated_groups(buckets))
    return tuple(bucket for bucket in buckets if bucket.group_key in flagged)
