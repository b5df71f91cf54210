import json
from datetime import date

import pytest

from capacity_forecast.models import (
    EngineConfig,
    Resource,
    ResourceType,
    Task,
    Team,
)


@pytest.fixture
def reference_date():
    """Monday 2024-01-01, so the first week window is Jan 01 - Jan 07."""
    return date(2024, 1, 1)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def teams():
    return [
        Team(id="t-creative", name="Creative"),
        Team(id="t-media", name="Media"),
        Team(id="t-empty", name="Empty Team"),
    ]


@pytest.fixture
def resources():
    """Four resources across two teams plus one without a team."""
    return [
        Resource(
            id="r-alice",
            name="Alice",
            type=ResourceType.INTERNAL,
            capacity_hours_per_week=40,
            media_type="Photography",
            team_id="t-creative",
        ),
        Resource(
            id="r-bob",
            name="Bob",
            type=ResourceType.INTERNAL,
            capacity_hours_per_week=20,
            media_type="graphic design",
            team_id="t-creative",
        ),
        Resource(
            id="r-agency",
            name="Agency Co",
            type=ResourceType.AGENCY,
            capacity_hours_per_week=40,
            media_type="Video",
            team_id="t-media",
        ),
        Resource(id="r-free", name="Freya", type=ResourceType.FREELANCER),
    ]


@pytest.fixture
def tasks():
    """Briefs over the first two weeks of 2024.

    alice: 20h in week 1, 40h in week 2
    bob:   3h/day Jan 03 - Jan 12, so 15h in each week
    agency: 2h/day Dec 25 - Jan 02, only Jan 01-02 inside the horizon
    """
    return [
        Task(id="T1", start_date="2024-01-01", due_date="2024-01-05", estimated_hours=20, resource_id="r-alice", status="approved"),
        Task(id="T3", start_date="2024-01-08", due_date="2024-01-09", estimated_hours=40, resource_id="r-alice", status="in_progress"),
        Task(id="T4", start_date="2024-01-03", due_date="2024-01-12", estimated_hours=30, resource_id="r-bob", status="in_progress"),
        Task(id="T5", start_date="2024-01-01", due_date="2024-01-14", estimated_hours=100, resource_id="r-agency", status="cancelled"),
        Task(id="T6", start_date="2023-12-25", due_date="2024-01-02", estimated_hours=18, resource_id="r-agency", status="review"),
        Task(id="T7", start_date="2024-01-01", due_date="2024-01-02", estimated_hours=10, resource_id=None, status="draft"),
        Task(id="T8", start_date="2024-02-10", due_date="2024-02-05", estimated_hours=8, resource_id="r-alice", status="approved"),
        Task(id="T9", start_date="2024-13-01", due_date="2024-13-04", estimated_hours=8, resource_id="r-bob", status="approved"),
        Task(id="T10", start_date="2024-01-01", due_date="2024-01-02", estimated_hours=8, resource_id="r-ghost", status="approved"),
    ]


@pytest.fixture
def two_weeks(reference_date):
    return {
        "horizon": {
            "referenceDate": reference_date.isoformat(),
            "windowCount": 2,
            "windowGranularity": "week",
        }
    }


@pytest.fixture
def snapshot_dir(tmp_path):
    """A snapshot directory laid out the way the CLI and web app expect."""
    root = tmp_path / "snapshots"
    input_dir = root / "demo" / "input"
    input_dir.mkdir(parents=True)
    (input_dir / "resources.json").write_text(
        json.dumps(
            [
                {"id": "r-alice", "name": "Alice", "type": "internal", "capacity_hours": 40,
                 "media_type": "Photography", "team_id": "t-creative"},
                {"id": "r-bob", "name": "Bob", "type": "internal", "capacity_hours": 20,
                 "media_type": "Graphic Design", "team_id": "t-creative"},
                {"id": "r-agency", "name": "Agency Co", "type": "agency", "capacity_hours": 40,
                 "media_type": "Video"},
            ]
        )
    )
    (input_dir / "teams.json").write_text(json.dumps([{"id": "t-creative", "name": "Creative"}]))
    (input_dir / "tasks.csv").write_text(
        "id,title,status,start_date,due_date,estimated_hours,resource_id\n"
        "T1,Lookbook,approved,2024-01-01,2024-01-05,20,r-alice\n"
        "T2,Banners,in_progress,2024-01-01,2024-01-05,30,r-bob\n"
        "T3,Teaser,cancelled,2024-01-01,2024-01-05,99,r-agency\n"
        "T4,Broken,approved,2024-02-10,2024-02-05,8,r-alice\n"
    )
    (input_dir / "config.json").write_text(
        json.dumps({"default_weekly_capacity_hours": 40, "week_start": "monday", "logging_level": "WARNING"})
    )
    return root / "demo"
