from __future__ import annotations

import math
from collections import defaultdict
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .models import AllocationBucket

MODERATE_THRESHOLD = 0.50
HIGH_THRESHOLD = 0.75
OVERALLOCATED_THRESHOLD = 0.90


class UtilizationBand(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    OVERALLOCATED = "overallocated"


def utilization(allocated_hours: float, capacity_hours: float) -> float:
    if capacity_hours <= 0 or not math.isfinite(capacity_hours):
        return 0.0
    ratio = allocated_hours / capacity_hours
    if not math.isfinite(ratio):
        return 0.0
    return max(ratio, 0.0)


def classify(value: float) -> UtilizationBand:
    if value >= OVERALLOCATED_THRESHOLD:
        return UtilizationBand.OVERALLOCATED
    if value >= HIGH_THRESHOLD:
        return UtilizationBand.HIGH
    if value >= MODERATE_THRESHOLD:
        return UtilizationBand.MODERATE
    return UtilizationBand.LOW


def is_overallocated(bucket: "AllocationBucket") -> bool:
    """True when this single window is at or beyond the overallocation band."""
    return classify(bucket.utilization) is UtilizationBand.OVERALLOCATED


def count_overallocated(buckets: Iterable["AllocationBucket"]) -> int:
    return sum(1 for bucket in buckets if is_overallocated(bucket))


def overallocated_groups(buckets: Iterable["AllocationBucket"]) -> List[str]:
    flagged: Dict[str, None] = {}
    for bucket in buckets:
        if is_overallocated(bucket):
            flagged.setdefault(bucket.group_key, None)
    return list(flagged)


def group_utilization(buckets: Iterable["AllocationBucket"]) -> Dict[str, float]:
    """Horizon-wide utilization per group: summed allocation over summed capacity."""
    allocated: Dict[str, List[float]] = defaultdict(list)
    capacity: Dict[str, List[float]] = defaultdict(list)
    for bucket in buckets:
        allocated[bucket.group_key].append(bucket.allocated_hours)
        capacity[bucket.group_key].append(bucket.capacity_hours)
    return {
        key: utilization(math.fsum(allocated[key]), math.fsum(capacity[key]))
        for key in allocated
    }


def _group_names(buckets: Iterable["AllocationBucket"]) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for bucket in buckets:
        names.setdefault(bucket.group_key, bucket.group_name)
    return names


def rank_groups(buckets: Sequence["AllocationBucket"], *, descending: bool = True) -> List[str]:
    """Order group keys by horizon utilization, ties broken by group name then key."""
    ratios = group_utilization(buckets)
    names = _group_names(buckets)
    by_name = sorted(ratios, key=lambda key: (names.get(key, key), key))
    # sorted() is stable, so equal ratios keep the name order from above.
    return sorted(by_name, key=lambda key: ratios[key], reverse=descending)


def most_utilized(buckets: Sequence["AllocationBucket"]) -> List[str]:
    return rank_groups(buckets, descending=True)


def most_available(buckets: Sequence["AllocationBucket"]) -> List[str]:
    return rank_groups(buckets, descending=False)


def top_k(keys: Sequence[str], k: Optional[int]) -> List[str]:
    if k is None:
        return list(keys)
    if k < 0:
        raise ValueError("top_k must be zero or a positive integer")
    return list(keys[:k])


def band_counts(buckets: Iterable["AllocationBucket"]) -> Dict[str, int]:
    counts = {band.value: 0 for band in UtilizationBand}
    for bucket in buckets:
        counts[classify(bucket.utilization).value] += 1
    return counts


def order_buckets(
    buckets: Sequence["AllocationBucket"], group_order: Sequence[str]
) -> Tuple["AllocationBucket", ...]:
    position = {key: idx for idx, key in enumerate(group_order)}
    kept = [bucket for bucket in buckets if bucket.group_key in position]
    return tuple(sorted(kept, key=lambda bucket: (position[bucket.group_key], bucket.window.start)))
