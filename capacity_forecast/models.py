from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Optional, Tuple

import pandas as pd

from .classification import UtilizationBand, classify, count_overallocated, utilization


UNASSIGNED_KEY = "unassigned"
UNASSIGNED_TEAM_NAME = "Unassigned"
GLOBAL_GROUP_KEY = "all"
GLOBAL_GROUP_NAME = "All resources"
UNSPECIFIED_MEDIA_TYPE = "Unspecified"
OTHER_MEDIA_TYPE = "Other"

DEFAULT_WEEKLY_CAPACITY_HOURS = 40.0
DEFAULT_MEDIA_TYPES: Tuple[str, ...] = (
    "Photography",
    "Graphic Design",
    "Social Media",
    "Video",
    "Copywriting",
    "Web",
    "Print",
)


class InvalidConfigurationError(ValueError):
    """Raised when a caller supplies options the engine cannot honour."""


class ResourceType(str, Enum):
    INTERNAL = "internal"
    AGENCY = "agency"
    FREELANCER = "freelancer"


class GroupBy(str, Enum):
    NONE = "none"
    RESOURCE = "resource"
    TEAM = "team"
    MEDIA_TYPE = "mediaType"


class WindowGranularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"


class RankBy(str, Enum):
    UTILIZATION_ASC = "utilization-asc"
    UTILIZATION_DESC = "utilization-desc"


@dataclass(frozen=True)
class Resource:
    """Assignable worker, agency or freelancer."""

    id: str
    type: ResourceType = ResourceType.INTERNAL
    name: str = ""
    capacity_hours_per_week: Optional[float] = None
    media_type: Optional[str] = None
    team_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def weekly_capacity(self, default: float = DEFAULT_WEEKLY_CAPACITY_HOURS) -> float:
        if self.capacity_hours_per_week is None:
            return default
        return max(float(self.capacity_hours_per_week), 0.0)


@dataclass(frozen=True)
class Task:
    """A brief as read from the snapshot.

    Dates and hours are kept as supplied; the distributor decides whether
    they are usable and reports the ones that are not.
    """

    id: str
    start_date: object = None
    due_date: object = None
    estimated_hours: object = None
    resource_id: Optional[str] = None
    status: str = "draft"
    title: str = ""


@dataclass(frozen=True)
class Team:
    id: str
    name: str


@dataclass(frozen=True)
class TimeWindow:
    start: date
    end: date
    label: str

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


TimeWindowSeries = Tuple[TimeWindow, ...]


@dataclass(frozen=True)
class DailyAllocation:
    task_id: str
    resource_id: Optional[str]
    day: date
    hours: float


@dataclass(frozen=True)
class DataQualityWarning:
    task_id: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"task_id": self.task_id, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class AllocationBucket:
    group_key: str
    group_name: str
    window: TimeWindow
    allocated_hours: float
    capacity_hours: float
    resource_count: int = 0

    @property
    def utilization(self) -> float:
        return utilization(self.allocated_hours, self.capacity_hours)

    @property
    def band(self) -> UtilizationBand:
        return classify(self.utilization)

    def to_dict(self) -> Dict[str, object]:
        return {
            "group_key": self.group_key,
            "group_name": self.group_name,
            "window_start": self.window.start.isoformat(),
            "window_end": self.window.end.isoformat(),
            "window_label": self.window.label,
            "allocated_hours": round(self.allocated_hours, 4),
            "capacity_hours": round(self.capacity_hours, 4),
            "resource_count": self.resource_count,
            "utilization": round(self.utilization, 4),
            "band": self.band.value,
        }


@dataclass(frozen=True)
class Horizon:
    reference_date: Optional[date] = None
    window_count: int = 8
    granularity: WindowGranularity = WindowGranularity.WEEK
    start: Optional[date] = None
    end: Optional[date] = None


@dataclass(frozen=True)
class AllocationFilters:
    resource_type: Optional[ResourceType] = None
    media_type: Optional[str] = None
    team_id: Optional[str] = None
    overallocated_only: bool = False

    def is_empty(self) -> bool:
        return (
            self.resource_type is None
            and self.media_type is None
            and self.team_id is None
            and not self.overallocated_only
        )


@dataclass(frozen=True)
class AllocationOptions:
    group_by: GroupBy = GroupBy.RESOURCE
    horizon: Horizon = field(default_factory=Horizon)
    filters: AllocationFilters = field(default_factory=AllocationFilters)
    rank_by: Optional[RankBy] = None
    top_k: Optional[int] = None
    horizon_total: bool = False
    include_unassigned: bool = False


@dataclass(frozen=True)
class EngineConfig:
    default_weekly_capacity_hours: float = DEFAULT_WEEKLY_CAPACITY_HOURS
    week_start: str = "monday"
    excluded_statuses: Tuple[str, ...] = ("cancelled",)
    media_types: Tuple[str, ...] = DEFAULT_MEDIA_TYPES
    logging_level: str = "INFO"
    defaults: Dict[str, object] = field(default_factory=dict)

    def is_excluded_status(self, status: Optional[str]) -> bool:
        if not status:
            return False
        return str(status).strip().lower() in {value.lower() for value in self.excluded_statuses}

    def normalize_media_type(self, label: Optional[str]) -> str:
        if label is None:
            return UNSPECIFIED_MEDIA_TYPE
        cleaned = str(label).strip()
        if not cleaned:
            return UNSPECIFIED_MEDIA_TYPE
        for known in self.media_types:
            if known.lower() == cleaned.lower():
                return known
        if cleaned.lower() == UNSPECIFIED_MEDIA_TYPE.lower():
            return UNSPECIFIED_MEDIA_TYPE
        return OTHER_MEDIA_TYPE


@dataclass(frozen=True)
class AllocationResult:
    buckets: Tuple[AllocationBucket, ...]
    warnings: Tuple[DataQualityWarning, ...] = ()

    def group_keys(self) -> Tuple[str, ...]:
        seen: Dict[str, None] = {}
        for bucket in self.buckets:
            seen.setdefault(bucket.group_key, None)
        return tuple(seen)

    def buckets_for(self, group_key: str) -> Tuple[AllocationBucket, ...]:
        return tuple(bucket for bucket in self.buckets if bucket.group_key == group_key)

    def total_allocated_hours(self) -> float:
        return sum(bucket.allocated_hours for bucket in self.buckets)

    def overallocated_count(self) -> int:
        return count_overallocated(self.buckets)

    def to_dict(self) -> Dict[str, object]:
        return {
            "buckets": [bucket.to_dict() for bucket in self.buckets],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [bucket.to_dict() for bucket in self.buckets],
            columns=[
                "group_key",
                "group_name",
                "window_start",
                "window_end",
                "window_label",
                "allocated_hours",
                "capacity_hours",
                "resource_count",
                "utilization",
                "band",
            ],
        )

