from datetime import datetime, time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.app.main import create_app
from src.app.models.domain import StaffMember, Visit, VisitLocation, WorkingHours


def _visit(vid: str, lat: float, lng: float) -> Visit:
    return Visit(
        id=vid,
        patient_name=f"Patient {vid}",
        status="in_progress",
        location=VisitLocation(latitude=lat, longitude=lng, source="patient_live_location"),
        scheduled_time=datetime(2024, 3, 4, 9, 0),
        duration=45,
    )


VISITS = [_visit("A", 42.0, -83.0), _visit("B", 42.01, -83.0), _visit("C", 42.0, -83.02)]


@pytest.fixture
def api_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    app = create_app()
    client = TestClient(app)

    from src.app.persistence.filesystem import FileStorage
    from src.app.services.routing import service as routing_service

    monkeypatch.setattr(routing_service, "FileStorage", lambda: FileStorage(root=tmp_path))
    monkeypatch.setattr(routing_service, "attach_addresses", lambda waypoints: None)
    monkeypatch.setattr(
        routing_service,
        "list_active_staff",
        lambda staff_id=None: [] if staff_id == "ghost" else [StaffMember(id="s1", name="Sam", cost_per_mile=0.5)],
    )
    monkeypatch.setattr(routing_service, "get_recent_visits", lambda staff_id, since: list(VISITS))
    monkeypatch.setattr(routing_service, "get_visits_by_ids", lambda staff_id, ids: list(VISITS))
    monkeypatch.setattr(routing_service, "get_all_visits", lambda staff_id: list(VISITS))
    monkeypatch.setattr(
        routing_service,
        "find_staff",
        lambda staff_id=None, staff_name=None: [] if staff_id == "ghost" else [StaffMember(id="s1", name="Sam")],
    )
    monkeypatch.setattr(
        routing_service,
        "get_working_hours",
        lambda staff_id, day: WorkingHours(day=day, start=time(8, 0), end=time(17, 0)),
    )
    monkeypatch.setattr(routing_service, "get_existing_tasks", lambda *args, **kwargs: [])
    return client


def test_health(api_client: TestClient):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_routes_endpoint_optimizes_and_persists(api_client: TestClient, tmp_path: Path):
    response = api_client.post(
        "/api/route-optimization/routes",
        json={"staff_id": "s1", "seed": 1, "persist": True, "settings": {"minimize_fuel_costs": True}},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["routes"][0]["cost_per_mile"] == 0.5
    assert payload["routes"][0]["optimized_order"][0] == "A"
    assert payload["summary"]["routes_optimized"] == 1

    run_dirs = list((tmp_path / "outputs").glob("routes_*"))
    assert run_dirs
    assert (run_dirs[0] / "summary.json").exists()
    assert (run_dirs[0] / "routes.csv").exists()


def test_routes_endpoint_maps_value_errors_to_400(api_client: TestClient):
    response = api_client.post("/api/route-optimization/routes", json={"staff_id": "ghost"})
    assert response.status_code == 400
    assert "ghost" in response.json()["detail"]


def test_routes_endpoint_maps_unexpected_errors_to_500(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from src.app.services.routing import service as routing_service

    def explode(staff_id=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(routing_service, "list_active_staff", explode)

    response = api_client.post("/api/route-optimization/routes", json={})
    assert response.status_code == 500
    assert "database unavailable" in response.json()["detail"]


def test_schedule_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/route-optimization/schedule",
        json={"staff_id": "s1", "optimized_order": ["A", "B", "C"]},
    )

    assert response.status_code == 200
    payload = response.json()
    assert [slot["visit_id"] for slot in payload["schedule"]] == ["A", "B", "C"]
    assert payload["schedule"][0]["suggested_time"].startswith("2024-03-04T08:05")
    assert payload["metrics"]["efficiency_score"] in {"Excellent", "Good", "Needs Review", "Fair"}


def test_schedule_endpoint_validates_payload(api_client: TestClient):
    response = api_client.post("/api/route-optimization/schedule", json={"staff_id": "s1", "optimized_order": []})
    assert response.status_code == 422


def test_apply_endpoint_without_database_is_400(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    from src.app.persistence import database

    monkeypatch.setattr(database, "get_supabase_client", lambda: None)

    response = api_client.post(
        "/api/route-optimization/apply",
        json={"staff_id": "s1", "optimized_order": ["A", "B"]},
    )
    assert response.status_code == 400


def test_debug_visits_endpoint(api_client: TestClient):
    response = api_client.get("/api/route-optimization/debug-visits", params={"staff_name": "sam"})
    assert response.status_code == 200
    assert response.json()["staff"][0]["eligible_visits"] == 3


def test_debug_visits_endpoint_errors(api_client: TestClient):
    assert api_client.get("/api/route-optimization/debug-visits").status_code == 400
    missing = api_client.get("/api/route-optimization/debug-visits", params={"staff_id": "ghost"})
    assert missing.status_code == 404

