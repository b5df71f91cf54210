from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Dict, List, Tuple

from dateutil import parser as dateparser
from flask import Flask, abort, jsonify, request

from capacity_forecast.engine import compute_allocations, parse_options
from capacity_forecast.io_utils import (
    load_config,
    load_resources,
    load_tasks,
    load_teams,
    parse_bool,
    resources_from_df,
    tasks_from_df,
    teams_from_df,
)
from capacity_forecast.models import (
    EngineConfig,
    InvalidConfigurationError,
    Resource,
    ResourceType,
    Task,
    Team,
)
from capacity_forecast.views import VIEWS, available_views

REQUIRED_INPUT_FILES = ("resources.json", "tasks.csv", "teams.json")

VIEW_PARAMS: Dict[str, Tuple[str, ...]] = {
    "forecast": ("resource_type", "media_type", "overallocated_only"),
    "capacity-planning": ("resource_type", "most_available_first"),
    "team-utilization": ("team_id",),
    "team-breakdown": ("team_id",),
    "media-type-utilization": ("media_type",),
    "resource-overview": ("top",),
}

Snapshot = Tuple[List[Resource], List[Task], List[Team], EngineConfig]


def _default_snapshots_root() -> Path:
    return (Path(__file__).resolve().parent.parent / "snapshots").resolve()


def _resolve_snapshots_root() -> Path:
    env_value = os.getenv("SNAPSHOTS_ROOT")
    if env_value:
        return Path(env_value).expanduser().resolve()
    return _default_snapshots_root()


def _validate_within_root(path: Path, root: Path) -> None:
    try:
        path.relative_to(root)
    except ValueError as exc:
        raise ValueError(f"Snapshot directory must be inside {root}") from exc


def _check_input_dir(snapshot_dir: Path) -> Tuple[Path, List[str]]:
    input_dir = snapshot_dir / "input"
    missing: List[str] = []
    if not input_dir.is_dir():
        missing.extend(list(REQUIRED_INPUT_FILES))
        return input_dir, missing
    for name in REQUIRED_INPUT_FILES:
        if not (input_dir / name).is_file():
            missing.append(name)
    return input_dir, missing


def _resolve_snapshot_dir(name: str, root: Path) -> Path:
    snapshot_dir = (root / name).resolve()
    _validate_within_root(snapshot_dir, root)
    if not snapshot_dir.is_dir():
        raise FileNotFoundError(f"Snapshot not found: {name}")
    input_dir, missing = _check_input_dir(snapshot_dir)
    if missing:
        raise FileNotFoundError(
            f"Snapshot must contain input files at {input_dir}: missing {', '.join(missing)}"
        )
    return snapshot_dir


def _list_snapshot_dirs(root: Path) -> List[Dict[str, object]]:
    entries: List[Dict[str, object]] = []
    if not root.exists():
        return entries
    for child in sorted(root.iterdir()):
        if not child.is_dir():
            continue
        input_dir, missing = _check_input_dir(child)
        entries.append(
            {
                "name": child.relative_to(root).as_posix(),
                "input_dir": input_dir.as_posix(),
                "is_valid": not missing,
            }
        )
    return entries


def _load_snapshot(snapshot_dir: Path) -> Snapshot:
    input_dir = snapshot_dir / "input"
    config_path = input_dir / "config.json"
    cfg = load_config(config_path) if config_path.is_file() else EngineConfig()
    return (
        resources_from_df(load_resources(input_dir / "resources.json")),
        tasks_from_df(load_tasks(input_dir / "tasks.csv")),
        teams_from_df(load_teams(input_dir / "teams.json")),
        cfg,
    )


def _view_kwargs(view: str, args) -> Dict[str, object]:
    kwargs: Dict[str, object] = {}
    for name in VIEW_PARAMS.get(view, ()):
        raw = args.get(name)
        if raw in (None, ""):
            continue
        if name == "resource_type":
            try:
                kwargs[name] = ResourceType(raw.strip().lower())
            except ValueError as exc:
                raise InvalidConfigurationError(f"unsupported resource_type '{raw}'") from exc
        elif name in ("overallocated_only", "most_available_first"):
            try:
                kwargs[name] = parse_bool(raw)
            except ValueError as exc:
                raise InvalidConfigurationError(str(exc)) from exc
        elif name == "top":
            if not raw.isdigit():
                raise InvalidConfigurationError("top must be a non-negative integer")
            kwargs[name] = int(raw)
        else:
            kwargs[name] = raw
    return kwargs


def _reference_date(args) -> date:
    raw = args.get("reference_date")
    if not raw:
        return date.today()
    try:
        return dateparser.isoparse(raw).date()
    except (ValueError, TypeError) as exc:
        raise InvalidConfigurationError(f"reference_date must be an ISO date; got {raw!r}") from exc


def _weeks(args) -> int:
    raw = args.get("weeks")
    if raw in (None, ""):
        return 8
    if not raw.isdigit():
        raise InvalidConfigurationError("weeks must be a non-negative integer")
    return int(raw)


def create_app() -> Flask:
    app = Flask(__name__)
    snapshots_root = _resolve_snapshots_root()
    app.config["SNAPSHOTS_ROOT"] = snapshots_root

    def _snapshot_or_404(name: str) -> Snapshot:
        try:
            snapshot_dir = _resolve_snapshot_dir(name, snapshots_root)
        except (ValueError, FileNotFoundError):
            abort(404)
        return _load_snapshot(snapshot_dir)

    @app.errorhandler(InvalidConfigurationError)
    def invalid_configuration(exc: InvalidConfigurationError):
        return jsonify({"error": str(exc)}), 400

    @app.get("/snapshots")
    def snapshots():
        return jsonify({"snapshots": _list_snapshot_dirs(snapshots_root)})

    @app.get("/views")
    def views():
        return jsonify({"views": available_views()})

    @app.post("/api/<snapshot_name>/allocations")
    def allocations(snapshot_name: str):
        resources, tasks, teams, cfg = _snapshot_or_404(snapshot_name)
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return jsonify({"error": "options must be a JSON object"}), 400
        options = parse_options(data, cfg, today=date.today())
        result = compute_allocations(resources, tasks, teams, options, cfg)
        return jsonify(result.to_dict())

    @app.get("/api/<snapshot_name>/views/<view>")
    def view(snapshot_name: str, view: str):
        view_fn = VIEWS.get(view)
        if view_fn is None:
            return jsonify({"error": f"unknown view '{view}'", "views": available_views()}), 404
        resources, tasks, teams, cfg = _snapshot_or_404(snapshot_name)
        payload = view_fn(
            resources,
            tasks,
            teams,
            _reference_date(request.args),
            _weeks(request.args),
            cfg,
            **_view_kwargs(view, request.args),
        )
        if isinstance(payload, dict):
            return jsonify(payload)
        return jsonify(payload.to_dict())

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
