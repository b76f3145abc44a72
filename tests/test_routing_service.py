import json
from datetime import date, datetime, time
from pathlib import Path

import pytest

from src.app.models.domain import ExistingTask, StaffMember, Visit, VisitLocation, WorkingHours
from src.app.persistence.filesystem import FileStorage
from src.app.schemas.routing import (
    ApplyOrderRequest,
    OptimizationSettingsModel,
    RouteOptimizationRequest,
    ScheduleRequest,
)
from src.app.services.routing import service as routing_service


def _visit(vid: str, lat: float, lng: float, scheduled: datetime | None = None, source="patient_live_location") -> Visit:
    return Visit(
        id=vid,
        patient_name=f"Patient {vid}",
        status="completed",
        location=VisitLocation(latitude=lat, longitude=lng, source=source),
        scheduled_time=scheduled,
        duration=30,
    )


VISITS = [
    _visit("A", 42.0, -83.0, datetime(2024, 3, 4, 9, 0)),
    _visit("C", 42.0, -83.02, datetime(2024, 3, 4, 10, 0)),
    _visit("B", 42.01, -83.0, datetime(2024, 3, 4, 11, 0)),
    _visit("G", 42.02, -83.01, datetime(2024, 3, 4, 12, 0), source="geocoded_address"),
]


@pytest.fixture
def stores(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    staff = [StaffMember(id="s1", name="Sam Nurse", department="Home Health", cost_per_mile=None)]
    monkeypatch.setattr(
        routing_service,
        "list_active_staff",
        lambda staff_id=None: [member for member in staff if staff_id in (None, member.id)],
    )
    monkeypatch.setattr(routing_service, "get_recent_visits", lambda staff_id, since: list(VISITS))
    monkeypatch.setattr(routing_service, "attach_addresses", lambda waypoints: None)
    monkeypatch.setattr(
        routing_service,
        "get_working_hours",
        lambda staff_id, day: WorkingHours(day=day, start=time(8, 0), end=time(17, 0)),
    )
    monkeypatch.setattr(routing_service, "get_existing_tasks", lambda *args, **kwargs: [])
    monkeypatch.setattr(routing_service, "FileStorage", lambda: FileStorage(root=tmp_path))
    return tmp_path


def test_optimize_routes_reports_savings_and_persists(stores: Path):
    request = RouteOptimizationRequest(
        staff_id="s1",
        seed=11,
        geocode=False,
        persist=True,
        run_label="monday",
        start_time=datetime(2024, 3, 4, 8, 0),
    )

    response = routing_service.optimize_routes(request)

    assert len(response.routes) == 1
    route = response.routes[0]
    assert route.current_order == ["A", "C", "B"]
    assert route.optimized_order == ["A", "B", "C"]
    assert route.cost_per_mile == 0.67
    assert route.distance_saved > 0
    assert route.selected_algorithm == "nearest_neighbor"
    # A, B, C packed into 08:00-17:00: 35 + 37 + 38 of 540 minutes
    assert route.utilization == pytest.approx(20.4)
    assert set(route.algorithm_comparison) == {"nearest_neighbor", "2_opt", "simulated_annealing"}
    assert response.summary.routes_optimized == 1
    assert response.metadata["objective"] == "distance"

    run_dirs = list((stores / "outputs").glob("routes_monday_*"))
    assert len(run_dirs) == 1
    summary = json.loads((run_dirs[0] / "summary.json").read_text(encoding="utf-8"))
    assert summary["routes"][0]["staff_id"] == "s1"
    assert (run_dirs[0] / "routes.csv").read_text(encoding="utf-8").startswith("staff_id,staff_name,sequence")


def test_optimize_routes_skips_staff_without_enough_waypoints(stores: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(routing_service, "get_recent_visits", lambda staff_id, since: VISITS[:1])

    response = routing_service.optimize_routes(RouteOptimizationRequest(geocode=False))

    assert response.routes == []
    assert response.summary.routes_optimized == 0
    assert response.metadata["staff_considered"] == 1


def test_optimize_routes_rejects_unknown_staff(stores: Path):
    with pytest.raises(ValueError):
        routing_service.optimize_routes(RouteOptimizationRequest(staff_id="missing"))


def test_optimize_routes_uses_cost_objective(stores: Path):
    request = RouteOptimizationRequest(
        settings=OptimizationSettingsModel(minimize_fuel_costs=True, prioritize_time_savings=True),
        geocode=False,
        seed=3,
    )

    response = routing_service.optimize_routes(request)

    assert response.metadata["objective"] == "cost"


def test_apply_optimized_order_spaces_visits(monkeypatch: pytest.MonkeyPatch):
    written = {}

    def fake_update(staff_id, times):
        written.update(times)
        return len(times)

    monkeypatch.setattr(routing_service, "update_visit_times", fake_update)

    response = routing_service.apply_optimized_order(
        ApplyOrderRequest(staff_id="s1", optimized_order=["B", "A"], day=datetime(2024, 3, 4, 15, 0))
    )

    assert response.success is True
    assert response.updated == 2
    assert written == {"B": datetime(2024, 3, 4, 8, 0), "A": datetime(2024, 3, 4, 8, 30)}


def test_schedule_visits_packs_in_requested_order(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    requested_days = []

    def fake_hours(staff_id, day):
        requested_days.append(day)
        return WorkingHours(day=day, start=time(8, 0), end=time(17, 0))

    blocking = ExistingTask(
        title="Training: CPR",
        type="training",
        start_time=datetime(2024, 3, 4, 8, 0),
        end_time=datetime(2024, 3, 4, 9, 0),
    )
    monkeypatch.setattr(routing_service, "get_visits_by_ids", lambda staff_id, ids: list(VISITS))
    monkeypatch.setattr(routing_service, "get_working_hours", fake_hours)
    monkeypatch.setattr(routing_service, "get_existing_tasks", lambda *args, **kwargs: [blocking])
    monkeypatch.setattr(routing_service, "FileStorage", lambda: FileStorage(root=tmp_path))

    response = routing_service.schedule_visits(
        ScheduleRequest(staff_id="s1", optimized_order=["B", "A", "G", "missing"], persist=True)
    )

    assert [slot.visit_id for slot in response.schedule] == ["B", "A"]
    assert response.schedule[0].suggested_time == datetime(2024, 3, 4, 9, 5)
    assert requested_days == [date(2024, 3, 4)]
    assert response.metrics.total_visits == 2
    assert response.metrics.working_hours.start == "08:00"
    assert response.metrics.existing_tasks[0].title == "Training: CPR"
    assert list((tmp_path / "outputs").glob("schedule_s1_*"))


def test_schedule_visits_without_locations_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(routing_service, "get_visits_by_ids", lambda staff_id, ids: [VISITS[3]])

    with pytest.raises(ValueError):
        routing_service.schedule_visits(ScheduleRequest(staff_id="s1", optimized_order=["G"]))


def test_debug_visits_counts_eligible(monkeypatch: pytest.MonkeyPatch):
    looked_up = {}

    def fake_find(staff_id=None, staff_name=None):
        looked_up.update(staff_id=staff_id, staff_name=staff_name)
        return [StaffMember(id="s1", name="Sam Nurse")]

    monkeypatch.setattr(routing_service, "find_staff", fake_find)
    monkeypatch.setattr(routing_service, "get_all_visits", lambda staff_id: list(VISITS))

    response = routing_service.debug_visits(staff_name="sam")

    assert looked_up == {"staff_id": None, "staff_name": "sam"}
    report = response.staff[0]
    assert report.staff_name == "Sam Nurse"
    assert report.total_visits == 4
    assert report.eligible_visits == 3
    assert report.visits[3].eligible is False


def test_debug_visits_requires_a_staff_filter():
    with pytest.raises(ValueError):
        routing_service.debug_visits()


def test_debug_visits_reports_unknown_staff(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(routing_service, "find_staff", lambda staff_id=None, staff_name=None: [])

    with pytest.raises(LookupError):
        routing_service.debug_visits(staff_name="nobody")



def test_optimize_routes_packs_around_other_commitments(stores: Path, monkeypatch: pytest.MonkeyPatch):
    requested = {}

    def fake_tasks(staff_id, window_start, window_end, exclude_ids=()):
        requested["window"] = (window_start, window_end)
        requested["exclude_ids"] = list(exclude_ids)
        return [
            ExistingTask(
                title="Training: CPR",
                type="training",
                start_time=datetime(2024, 3, 4, 8, 0),
                end_time=datetime(2024, 3, 4, 12, 0),
            )
        ]

    monkeypatch.setattr(routing_service, "get_existing_tasks", fake_tasks)

    response = routing_service.optimize_routes(
        RouteOptimizationRequest(staff_id="s1", geocode=False, seed=2, start_time=datetime(2024, 3, 4, 7, 0))
    )

    assert requested["window"] == (datetime(2024, 3, 4, 8, 0), datetime(2024, 3, 4, 17, 0))
    assert sorted(requested["exclude_ids"]) == ["A", "B", "C"]
    # the training only shifts the visits, the packed minutes stay the same
    assert response.routes[0].utilization == pytest.approx(20.4)
