from datetime import date, datetime, time, timedelta

from src.app.models.domain import ExistingTask, Waypoint, WorkingHours
from src.app.services.routing.models import ScheduleSlot
from src.app.services.routing.scheduler import (
    GAP_DETECTED,
    OPTIMAL,
    TIGHT_SCHEDULE,
    PackerParams,
    adaptive_buffer,
    classify_efficiency,
    detect_overlaps,
    find_available_start,
    pack_schedule,
)

DAY = date(2024, 3, 4)


def _waypoint(wid: str, lat: float = 42.0, lng: float = -83.0, duration: int = 30) -> Waypoint:
    return Waypoint(id=wid, name=f"Patient {wid}", latitude=lat, longitude=lng, duration=duration)


def _task(start: datetime, minutes: int, title: str = "Patient Visit: Other") -> ExistingTask:
    return ExistingTask(title=title, type="patient_visit", start_time=start, end_time=start + timedelta(minutes=minutes))


def _slot(wid: str, start: datetime, duration: int = 30, travel: int = 0) -> ScheduleSlot:
    return ScheduleSlot(
        waypoint_id=wid,
        patient_name=f"Patient {wid}",
        suggested_time=start,
        travel_time=travel,
        visit_duration=duration,
        efficiency=OPTIMAL,
    )


def test_single_waypoint_starts_after_prep_buffer():
    hours = WorkingHours(day=DAY, start=time(8, 0), end=time(17, 0))

    result = pack_schedule([_waypoint("A")], hours)

    assert len(result.slots) == 1
    slot = result.slots[0]
    assert slot.suggested_time == datetime(2024, 3, 4, 8, 5)
    assert slot.travel_time == 0
    assert slot.efficiency == OPTIMAL
    assert result.conflicts == []
    assert result.working_minutes == 540


def test_consecutive_visits_account_for_travel_and_buffer():
    hours = WorkingHours(day=DAY, start=time(8, 0), end=time(17, 0))

    result = pack_schedule([_waypoint("A"), _waypoint("B", lat=42.01)], hours)

    first, second = result.slots
    assert first.suggested_time == datetime(2024, 3, 4, 8, 5)
    assert second.travel_time == 2
    # 08:05 + 30 min visit + 5 min buffer + 2 min drive
    assert second.suggested_time == datetime(2024, 3, 4, 8, 42)
    assert second.efficiency == OPTIMAL
    assert result.total_travel_minutes == 2
    assert result.total_visit_minutes == 60


def test_visit_is_pushed_past_existing_task():
    hours = WorkingHours(day=DAY, start=time(8, 55), end=time(17, 0))
    tasks = [_task(datetime(2024, 3, 4, 9, 15), 30)]

    result = pack_schedule([_waypoint("A", duration=60)], hours, tasks)

    assert result.slots[0].suggested_time == datetime(2024, 3, 4, 9, 50)
    assert result.diagnostics == []


def test_conflict_resolution_is_bounded():
    params = PackerParams(max_conflict_attempts=2)
    tasks = [
        _task(datetime(2024, 3, 4, 8, 0), 30),
        _task(datetime(2024, 3, 4, 8, 35), 30),
        _task(datetime(2024, 3, 4, 9, 10), 30),
    ]

    start, resolved = find_available_start(datetime(2024, 3, 4, 8, 5), 30, tasks, params)
    assert not resolved
    assert start == datetime(2024, 3, 4, 9, 10)

    hours = WorkingHours(day=DAY, start=time(8, 0), end=time(17, 0))
    result = pack_schedule([_waypoint("A")], hours, tasks, params=params)
    assert result.diagnostics == ["could not fully resolve scheduling conflicts for Patient A"]


def test_overflow_rolls_to_next_day_window():
    hours = WorkingHours(day=DAY, start=time(8, 0), end=time(9, 0))
    waypoints = [_waypoint(f"V{index}", duration=60) for index in range(3)]

    result = pack_schedule(waypoints, hours, hours_for_day=lambda day: WorkingHours(day, time(8, 0), time(9, 0)))

    starts = [slot.suggested_time for slot in result.slots]
    assert starts == [
        datetime(2024, 3, 4, 8, 5),
        datetime(2024, 3, 5, 8, 5),
        datetime(2024, 3, 6, 8, 5),
    ]


def test_missing_hours_for_next_day_use_default_shift():
    hours = WorkingHours(day=DAY, start=time(8, 0), end=time(9, 0))
    waypoints = [_waypoint("A", duration=60), _waypoint("B", duration=60)]

    result = pack_schedule(waypoints, hours, hours_for_day=lambda day: None)

    assert result.slots[1].suggested_time == datetime(2024, 3, 5, 8, 5)


def test_suggested_times_stay_inside_working_windows():
    hours = WorkingHours(day=DAY, start=time(8, 0), end=time(12, 0))
    waypoints = [_waypoint(f"V{index}", lat=42.0 + index * 0.05, duration=45) for index in range(8)]
    tasks = [_task(datetime(2024, 3, 4, 10, 0), 60)]

    result = pack_schedule(waypoints, hours, tasks)

    for slot in result.slots:
        assert time(8, 0) <= slot.suggested_time.time() <= time(12, 0)
        assert not any(task.overlaps(slot.suggested_time, slot.end_time) for task in tasks)
    assert [slot.waypoint_id for slot in result.slots] == [waypoint.id for waypoint in waypoints]


def test_slots_never_overlap_existing_tasks():
    hours = WorkingHours(day=DAY, start=time(8, 0), end=time(17, 0))
    waypoints = [_waypoint(f"V{index}", lat=42.0 + index * 0.05, duration=45) for index in range(6)]
    tasks = [
        _task(datetime(2024, 3, 4, 9, 0), 30, "Training: CPR"),
        _task(datetime(2024, 3, 4, 9, 30), 30, "Training: Wound care"),
        _task(datetime(2024, 3, 4, 10, 45), 30),
        _task(datetime(2024, 3, 4, 13, 0), 60),
        _task(datetime(2024, 3, 4, 14, 5), 30),
    ]

    result = pack_schedule(waypoints, hours, tasks)

    # 09:04 is pushed past both back-to-back trainings and then the 10:45 visit
    assert result.slots[1].suggested_time == datetime(2024, 3, 4, 11, 20)
    for slot in result.slots:
        for task in tasks:
            assert not task.overlaps(slot.suggested_time, slot.end_time), (slot.waypoint_id, task.title)
    assert result.diagnostics == []
    assert result.conflicts == []


def test_missing_working_hours_default_to_local_today(monkeypatch):
    from src.app.services.routing import scheduler

    monkeypatch.setattr(scheduler, "local_today", lambda: date(2024, 7, 1))

    result = pack_schedule([_waypoint("A")], None)

    assert result.slots[0].suggested_time == datetime(2024, 7, 1, 8, 5)
    assert result.working_minutes == 540


def test_adaptive_buffer():
    assert adaptive_buffer(0) == 5
    assert adaptive_buffer(10) == 5
    assert adaptive_buffer(11) == 10
    assert adaptive_buffer(30) == 10
    assert adaptive_buffer(31) == 15


def test_classify_efficiency():
    params = PackerParams()
    previous = _slot("A", datetime(2024, 3, 4, 8, 5))

    assert classify_efficiency(None, datetime(2024, 3, 4, 8, 5), 0, params) == OPTIMAL
    assert classify_efficiency(previous, datetime(2024, 3, 4, 8, 40), 0, params) == OPTIMAL
    assert classify_efficiency(previous, datetime(2024, 3, 4, 9, 30), 0, params) == GAP_DETECTED
    assert classify_efficiency(previous, datetime(2024, 3, 4, 8, 25), 0, params) == TIGHT_SCHEDULE


def test_detect_overlaps_reports_each_pair():
    slots = [
        _slot("A", datetime(2024, 3, 4, 8, 0), duration=60),
        _slot("B", datetime(2024, 3, 4, 8, 30)),
        _slot("C", datetime(2024, 3, 4, 10, 0)),
    ]

    assert detect_overlaps(slots) == ["Patient A overlaps with Patient B"]
