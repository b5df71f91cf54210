from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .models import (
    DEFAULT_MEDIA_TYPES,
    DEFAULT_WEEKLY_CAPACITY_HOURS,
    EngineConfig,
    Resource,
    ResourceType,
    Task,
    Team,
)

_TASK_REQUIRED_COLUMNS = {"id", "start_date", "due_date"}
_TASK_OPTIONAL_COLUMNS = ("estimated_hours", "resource_id", "status", "title")
_VALID_WEEK_STARTS = {"monday", "sunday"}


def _require_columns(df: pd.DataFrame, required: Iterable[str], source: str) -> None:
    missing = [col for col in sorted(required) if col not in df.columns]
    if missing:
        raise ValueError(f"{source} missing required columns: {', '.join(missing)}")


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None or (isinstance(value, float) and pd.isna(value)):
        raise ValueError("boolean value is missing")
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "t", "1", "yes", "y"}:
            return True
        if lowered in {"false", "f", "0", "no", "n"}:
            return False
    raise ValueError(f"cannot interpret boolean value '{value}'")


def _optional_str(entry: Dict[str, object], *keys: str) -> Optional[str]:
    for key in keys:
        if key in entry and not _is_blank(entry[key]):
            return str(entry[key]).strip()
    return None


def _read_json_array(path: str | Path, label: str) -> List[Dict[str, object]]:
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"{label} file is not valid JSON") from exc
    if not isinstance(data, list):
        raise ValueError(f"{label} file must be a JSON array")
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError(f"{label} entries must be objects")
    return data


def _parse_capacity(entry: Dict[str, object], name: str) -> Optional[float]:
    raw = None
    for key in ("capacity_hours_per_week", "capacityHoursPerWeek", "capacity_hours"):
        if key in entry and not _is_blank(entry[key]):
            raw = entry[key]
            break
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(f"capacity for {name} must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"capacity for {name} must be a number") from exc
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"capacity for {name} must be a non-negative number")
    return value


def load_resources(path: str | Path) -> pd.DataFrame:
    rows = []
    valid_types = {member.value for member in ResourceType}
    seen: set = set()
    for entry in _read_json_array(path, "resources"):
        resource_id = _optional_str(entry, "id")
        if not resource_id:
            raise ValueError("resource id is required")
        if resource_id in seen:
            raise ValueError(f"duplicate resource id '{resource_id}'")
        seen.add(resource_id)
        resource_type = str(entry.get("type") or ResourceType.INTERNAL.value).strip().lower()
        if resource_type not in valid_types:
            raise ValueError(f"unsupported resource type '{resource_type}' for {resource_id}")
        rows.append(
            {
                "id": resource_id,
                "name": _optional_str(entry, "name") or "",
                "type": resource_type,
                "capacity_hours_per_week": _parse_capacity(entry, resource_id),
                "media_type": _optional_str(entry, "media_type", "mediaType"),
                "team_id": _optional_str(entry, "team_id", "teamId"),
            }
        )
    return pd.DataFrame(
        rows,
        columns=["id", "name", "type", "capacity_hours_per_week", "media_type", "team_id"],
    )


def load_teams(path: str | Path) -> pd.DataFrame:
    rows = []
    for entry in _read_json_array(path, "teams"):
        team_id = _optional_str(entry, "id")
        if not team_id:
            raise ValueError("team id is required")
        rows.append({"id": team_id, "name": _optional_str(entry, "name") or team_id})
    return pd.DataFrame(rows, columns=["id", "name"])


def load_tasks(path: str | Path) -> pd.DataFrame:
    """Read briefs from CSV.

    Values are kept as text: bad dates and hours are data-quality issues the
    engine reports per task, not reasons to reject the whole file.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    _require_columns(df, _TASK_REQUIRED_COLUMNS, "tasks.csv")
    for column in _TASK_OPTIONAL_COLUMNS:
        if column not in df.columns:
            df[column] = ""
    df["input_row"] = df.index + 1
    return df


def _none_if_blank(value: object) -> Optional[object]:
    return None if _is_blank(value) else value


def resources_from_df(df: pd.DataFrame) -> List[Resource]:
    resources: List[Resource] = []
    for row in df.itertuples(index=False):
        capacity = _none_if_blank(row.capacity_hours_per_week)
        resources.append(
            Resource(
                id=str(row.id),
                type=ResourceType(str(row.type)),
                name="" if _is_blank(row.name) else str(row.name),
                capacity_hours_per_week=None if capacity is None else float(capacity),
                media_type=_none_if_blank(row.media_type),
                team_id=_none_if_blank(row.team_id),
            )
        )
    return resources


def teams_from_df(df: pd.DataFrame) -> List[Team]:
    return [Team(id=str(row.id), name=str(row.name)) for row in df.itertuples(index=False)]


def tasks_from_df(df: pd.DataFrame) -> List[Task]:
    tasks: List[Task] = []
    for row in df.itertuples(index=False):
        tasks.append(
            Task(
                id=str(row.id) if not _is_blank(row.id) else f"row-{row.input_row}",
                start_date=_none_if_blank(row.start_date),
                due_date=_none_if_blank(row.due_date),
                estimated_hours=_none_if_blank(row.estimated_hours),
                resource_id=_none_if_blank(row.resource_id),
                status=str(row.status).strip() or "draft",
                title=str(row.title),
            )
        )
    return tasks


def _string_tuple(value: object, field_name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return default
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{field_name} must be an array of strings")
    return tuple(item.strip() for item in value if item.strip())


def load_config(path: str | Path) -> EngineConfig:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("config file must be a JSON object")
    return config_from_dict(data)


def config_from_dict(data: Dict[str, object]) -> EngineConfig:
    capacity = data.get("default_weekly_capacity_hours", DEFAULT_WEEKLY_CAPACITY_HOURS)
    if isinstance(capacity, bool) or not isinstance(capacity, (int, float)):
        raise ValueError("default_weekly_capacity_hours must be a number")
    capacity = float(capacity)
    if not capacity > 0:
        raise ValueError("default_weekly_capacity_hours must be positive")

    week_start = data.get("week_start", "monday")
    if not isinstance(week_start, str) or week_start.strip().lower() not in _VALID_WEEK_STARTS:
        raise ValueError(f"week_start must be one of {', '.join(sorted(_VALID_WEEK_STARTS))}")

    excluded = _string_tuple(data.get("excluded_statuses"), "excluded_statuses", ("cancelled",))
    media_types = _string_tuple(data.get("media_types"), "media_types", DEFAULT_MEDIA_TYPES)

    logging_level = data.get("logging_level", "INFO")
    if not isinstance(logging_level, str):
        raise ValueError("logging_level must be a string")

    defaults = data.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ValueError("defaults must be an object")

    return EngineConfig(
        default_weekly_capacity_hours=capacity,
        week_start=week_start.strip().lower(),
        excluded_statuses=excluded,
        media_types=media_types,
        logging_level=logging_level,
        defaults=defaults,
    )


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
