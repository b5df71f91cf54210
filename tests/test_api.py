import pytest

from webapp.app import _resolve_snapshot_dir, create_app


@pytest.fixture
def client(snapshot_dir, monkeypatch):
    monkeypatch.setenv("SNAPSHOTS_ROOT", str(snapshot_dir.parent))
    app = create_app()
    app.testing = True
    return app.test_client()


class TestSnapshots:
    def test_lists_snapshots(self, client, snapshot_dir):
        (snapshot_dir.parent / "incomplete").mkdir()
        response = client.get("/snapshots")
        assert response.status_code == 200
        entries = {entry["name"]: entry["is_valid"] for entry in response.get_json()["snapshots"]}
        assert entries == {"demo": True, "incomplete": False}

    def test_lists_views(self, client):
        views = client.get("/views").get_json()["views"]
        assert "forecast" in views
        assert views == sorted(views)

    def test_paths_outside_root_are_rejected(self, snapshot_dir):
        with pytest.raises(ValueError):
            _resolve_snapshot_dir("../..", snapshot_dir.parent.resolve())


class TestAllocationsEndpoint:
    """POST /api/<snapshot>/allocations takes the same options as the engine."""

    def test_team_allocation(self, client):
        response = client.post(
            "/api/demo/allocations",
            json={"groupBy": "team", "horizon": {"referenceDate": "2024-01-01", "windowCount": 1}},
        )
        assert response.status_code == 200
        data = response.get_json()
        creative = data["buckets"][0]
        assert creative["group_key"] == "t-creative"
        assert creative["allocated_hours"] == pytest.approx(50.0)
        assert creative["capacity_hours"] == pytest.approx(60.0)
        assert creative["utilization"] == pytest.approx(0.8333)
        assert creative["band"] == "high"
        assert [w["task_id"] for w in data["warnings"]] == ["T4"]

    def test_invalid_options_are_400(self, client):
        response = client.post(
            "/api/demo/allocations",
            json={"groupBy": "project", "horizon": {"referenceDate": "2024-01-01"}},
        )
        assert response.status_code == 400
        assert "groupBy" in response.get_json()["error"]

    def test_options_must_be_an_object(self, client):
        response = client.post("/api/demo/allocations", json=[1, 2])
        assert response.status_code == 400

    def test_unknown_snapshot_is_404(self, client):
        response = client.post("/api/missing/allocations", json={})
        assert response.status_code == 404


class TestViewEndpoint:
    def test_forecast(self, client):
        response = client.get("/api/demo/views/forecast?reference_date=2024-01-01&weeks=1")
        assert response.status_code == 200
        keys = [bucket["group_key"] for bucket in response.get_json()["buckets"]]
        assert keys == ["r-bob", "r-alice", "r-agency"]

    def test_forecast_overallocated_only(self, client):
        response = client.get("/api/demo/views/forecast?reference_date=2024-01-01&weeks=1&overallocated_only=true")
        keys = [bucket["group_key"] for bucket in response.get_json()["buckets"]]
        assert keys == ["r-bob"]

    def test_resource_overview(self, client):
        response = client.get("/api/demo/views/resource-overview?reference_date=2024-01-01&weeks=1&top=1")
        data = response.get_json()
        assert data["total_resources"] == 3
        assert [row["group_key"] for row in data["top_utilized"]] == ["r-bob"]

    def test_team_breakdown(self, client):
        response = client.get("/api/demo/views/team-breakdown?reference_date=2024-01-01&weeks=1&team_id=t-creative")
        (team,) = response.get_json()["teams"]
        assert team["group_key"] == "t-creative"
        assert [member["group_key"] for member in team["members"]] == ["r-bob", "r-alice"]

    def test_unknown_view_is_404(self, client):
        response = client.get("/api/demo/views/gantt")
        assert response.status_code == 404
        assert "forecast" in response.get_json()["views"]

    @pytest.mark.parametrize(
        "query",
        ["weeks=many", "top=x", "reference_date=soon", "resource_type=robot"],
    )
    def test_bad_query_is_400(self, client, query):
        view = "resource-overview" if query.startswith("top") else "forecast"
        response = client.get(f"/api/demo/views/{view}?{query}")
        assert response.status_code == 400
