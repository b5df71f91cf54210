from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from . import engine
from .io_utils import (
    ensure_directory,
    load_config,
    load_resources,
    load_tasks,
    load_teams,
    resources_from_df,
    tasks_from_df,
    teams_from_df,
    write_csv,
)
from .models import AllocationResult, DataQualityWarning, EngineConfig, InvalidConfigurationError


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resource allocation and capacity forecast (JSON/CSV in, CSV out)."
    )
    parser.add_argument(
        "--snapshot-dir",
        help="Snapshot directory containing input/ and output/ subfolders",
    )
    parser.add_argument("--resources", help="Path to resources JSON (overrides snapshot-dir default)")
    parser.add_argument("--tasks", help="Path to tasks CSV (overrides snapshot-dir default)")
    parser.add_argument("--teams", help="Path to teams JSON (overrides snapshot-dir default)")
    parser.add_argument("--config", help="Path to configuration JSON (optional)")
    parser.add_argument(
        "--outdir",
        default=None,
        help="Output directory for generated files (default: <snapshot-dir>/output or ./out)",
    )
    parser.add_argument("--group-by", help="none, resource, team or mediaType")
    parser.add_argument("--granularity", help="day, week, month or custom")
    parser.add_argument("--windows", type=int, help="Number of windows in the horizon")
    parser.add_argument("--reference-date", help="ISO date the horizon starts from (default: today)")
    parser.add_argument("--start", help="Custom window start (with --granularity custom)")
    parser.add_argument("--end", help="Custom window end (with --granularity custom)")
    parser.add_argument("--resource-type", help="Only internal, agency or freelancer resources")
    parser.add_argument("--media-type", help="Only resources with this media type")
    parser.add_argument("--team", help="Only resources in this team id ('unassigned' for none)")
    parser.add_argument("--rank-by", help="utilization-desc or utilization-asc")
    parser.add_argument("--top-k", type=int, help="Keep only the first K groups")
    parser.add_argument(
        "--overallocated-only",
        action="store_true",
        help="Keep only groups that are overallocated in at least one window",
    )
    parser.add_argument(
        "--horizon-total",
        action="store_true",
        help="One bucket per group spanning the whole horizon",
    )
    parser.add_argument(
        "--include-unassigned",
        action="store_true",
        help="Report hours of tasks without a resource as their own group",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and print a summary without writing output files",
    )
    return parser.parse_args(argv)


def _resolve_io_paths(args: argparse.Namespace) -> Tuple[Path, Path, Path, Optional[Path], Path]:
    snapshot_dir = Path(args.snapshot_dir).resolve() if args.snapshot_dir else None
    if snapshot_dir and not snapshot_dir.exists():
        raise ValueError(f"snapshot directory not found: {snapshot_dir}")
    input_dir = snapshot_dir / "input" if snapshot_dir else None

    def _pick(path_value: Optional[str], default_name: str) -> Optional[Path]:
        if path_value:
            return Path(path_value)
        if input_dir:
            return input_dir / default_name
        return None

    resources_path = _pick(args.resources, "resources.json")
    tasks_path = _pick(args.tasks, "tasks.csv")
    teams_path = _pick(args.teams, "teams.json")
    config_path = _pick(args.config, "config.json")

    missing = [
        name
        for name, value in (("resources", resources_path), ("tasks", tasks_path), ("teams", teams_path))
        if value is None
    ]
    if missing:
        joined = ", ".join(f"--{name}" for name in missing)
        raise ValueError(f"missing required input paths: {joined} (or provide --snapshot-dir)")

    for label, path in (("resources", resources_path), ("tasks", tasks_path), ("teams", teams_path)):
        if not path.exists():
            raise ValueError(f"{label} file not found at {path}")
    if config_path is not None and not config_path.exists():
        if args.config:
            raise ValueError(f"config file not found at {config_path}")
        config_path = None

    if args.outdir:
        outdir = Path(args.outdir)
    elif snapshot_dir:
        outdir = snapshot_dir / "output"
    else:
        outdir = Path("out")

    return resources_path, tasks_path, teams_path, config_path, outdir


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _options_from_args(args: argparse.Namespace) -> Dict[str, object]:
    horizon: Dict[str, object] = {}
    if args.granularity:
        horizon["windowGranularity"] = args.granularity
    if args.windows is not None:
        horizon["windowCount"] = args.windows
    if args.reference_date:
        horizon["referenceDate"] = args.reference_date
    if args.start:
        horizon["start"] = args.start
    if args.end:
        horizon["end"] = args.end

    filters: Dict[str, object] = {}
    if args.resource_type:
        filters["resourceType"] = args.resource_type
    if args.media_type:
        filters["mediaType"] = args.media_type
    if args.team:
        filters["teamId"] = args.team
    if args.overallocated_only:
        filters["overallocatedOnly"] = True

    options: Dict[str, object] = {}
    if horizon:
        options["horizon"] = horizon
    if filters:
        options["filters"] = filters
    if args.group_by:
        options["groupBy"] = args.group_by
    if args.rank_by:
        options["rankBy"] = args.rank_by
    if args.top_k is not None:
        options["topK"] = args.top_k
    if args.horizon_total:
        options["horizonTotal"] = True
    if args.include_unassigned:
        options["includeUnassigned"] = True
    return options


def _print_summary(result: AllocationResult) -> None:
    if not result.buckets:
        print("No allocation buckets.")
    else:
        print("Allocation buckets:")
        for bucket in result.buckets:
            print(
                f"- {bucket.group_name} [{bucket.window.label}]: "
                f"{bucket.allocated_hours:.1f} / {bucket.capacity_hours:.1f} h "
                f"({bucket.utilization:.0%}, {bucket.band.value})"
            )
    _print_warnings(result.warnings)


def _print_warnings(warnings: Sequence[DataQualityWarning]) -> None:
    if warnings:
        print("\nSkipped tasks:")
        for warning in warnings:
            print(f"- {warning.task_id} ({warning.code}): {warning.message}")
    else:
        print("\nSkipped tasks: none")


def _write_warnings_markdown(warnings: Sequence[DataQualityWarning], outdir: Path) -> Path:
    path = outdir / "data_quality.md"
    lines: List[str] = ["# Data Quality", ""]
    if not warnings:
        lines.append("All tasks were usable.")
    else:
        for warning in warnings:
            lines.append(f"- **{warning.task_id}**")
            lines.append(f"  - Code: {warning.code}")
            lines.append(f"  - Detail: {warning.message}")
            lines.append("")
    path.write_text("\n".join(lines).strip() + "\n")
    return path


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        resources_path, tasks_path, teams_path, config_path, outdir = _resolve_io_paths(args)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)

    cfg = load_config(config_path) if config_path else EngineConfig()
    _configure_logging(cfg.logging_level)
    resources = resources_from_df(load_resources(resources_path))
    tasks = tasks_from_df(load_tasks(tasks_path))
    teams = teams_from_df(load_teams(teams_path))
    try:
        options = engine.parse_options(_options_from_args(args), cfg, today=date.today())
        result = engine.compute_allocations(resources, tasks, teams, options, cfg)
    except InvalidConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    if args.dry_run:
        _print_summary(result)
        return

    outdir_path = ensure_directory(outdir)
    buckets_path = outdir_path / "allocation_buckets.csv"
    write_csv(result.to_frame(), buckets_path)
    warnings_path = _write_warnings_markdown(result.warnings, outdir_path)
    print(f"Wrote {buckets_path}")
    print(f"Wrote {warnings_path}")
    if result.warnings:
        _print_warnings(result.warnings)


if __name__ == "__main__":
    main()
