"""Pack an ordered visit list into a staff member's working hours."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Sequence

from ...config import settings
from ...models.domain import ExistingTask, Waypoint, WorkingHours
from ..clock import local_today
from ..geospatial import travel_time_minutes
from .models import ScheduleResult, ScheduleSlot
from .waypoints import clamp_duration

logger = logging.getLogger(__name__)

OPTIMAL = "Optimal"
GAP_DETECTED = "Gap Detected"
TIGHT_SCHEDULE = "Tight Schedule"

HoursLookup = Callable[[date], Optional[WorkingHours]]


@dataclass(slots=True)
class PackerParams:
    prep_buffer_minutes: int = settings.prep_buffer_minutes
    conflict_buffer_minutes: int = settings.conflict_buffer_minutes
    max_conflict_attempts: int = settings.max_conflict_attempts
    max_rollover_days: int = settings.max_rollover_days
    gap_threshold_minutes: int = settings.gap_threshold_minutes
    tight_threshold_minutes: int = settings.tight_threshold_minutes
    same_location_miles: float = settings.same_location_miles
    default_start: time = settings.default_shift_start
    default_end: time = settings.default_shift_end


def adaptive_buffer(travel_minutes: int) -> int:
    """Longer drives get more slack for parking and transition."""
    if travel_minutes > 30:
        return 15
    if travel_minutes > 10:
        return 10
    return 5


def default_working_hours(day: date, params: PackerParams | None = None) -> WorkingHours:
    params = params or PackerParams()
    return WorkingHours(day=day, start=params.default_start, end=params.default_end)


def _first_conflict(tasks: Sequence[ExistingTask], start: datetime, minutes: int) -> ExistingTask | None:
    end = start + timedelta(minutes=minutes)
    for task in tasks:
        if task.overlaps(start, end):
            return task
    return None


def find_available_start(
    candidate: datetime,
    duration: int,
    tasks: Sequence[ExistingTask],
    params: PackerParams,
) -> tuple[datetime, bool]:
    """Push ``candidate`` past conflicting tasks; returns (start, fully_resolved)."""

    attempts = 0
    conflict = _first_conflict(tasks, candidate, duration)
    while conflict is not None and attempts < params.max_conflict_attempts:
        logger.debug("Conflict with %s at %s", conflict.title, candidate.isoformat())
        candidate = conflict.end_time + timedelta(minutes=params.conflict_buffer_minutes)
        attempts += 1
        conflict = _first_conflict(tasks, candidate, duration)
    return candidate, conflict is None


def classify_efficiency(
    previous: ScheduleSlot | None,
    suggested_time: datetime,
    travel_time: int,
    params: PackerParams,
) -> str:
    if previous is None:
        return OPTIMAL
    actual = (suggested_time - previous.suggested_time).total_seconds() / 60
    expected = previous.visit_duration + previous.travel_time + travel_time + 5
    if actual > expected + params.gap_threshold_minutes:
        return GAP_DETECTED
    if actual < expected - params.tight_threshold_minutes:
        return TIGHT_SCHEDULE
    return OPTIMAL


def detect_overlaps(slots: Sequence[ScheduleSlot]) -> list[str]:
    conflicts = []
    for previous, current in zip(slots, slots[1:]):
        if current.suggested_time < previous.end_time:
            conflicts.append(f"{previous.patient_name} overlaps with {current.patient_name}")
    return conflicts


def pack_schedule(
    order: Sequence[Waypoint],
    working_hours: WorkingHours | None,
    existing_tasks: Sequence[ExistingTask] | None = None,
    consider_traffic: bool = False,
    *,
    hours_for_day: HoursLookup | None = None,
    params: PackerParams | None = None,
) -> ScheduleResult:
    """Assign each waypoint a concrete start time, in order, avoiding existing tasks.

    ``hours_for_day`` is consulted when the day runs out; by default the same
    clock window is reused on the following day. Missing hours fall back to
    the default shift.
    """

    params = params or PackerParams()
    tasks = sorted(existing_tasks or (), key=lambda task: task.start_time)
    window = working_hours or default_working_hours(local_today(), params)
    working_minutes = window.minutes

    def next_window(current: WorkingHours) -> WorkingHours:
        following = current.day + timedelta(days=1)
        if hours_for_day is not None:
            hours = hours_for_day(following)
        else:
            hours = WorkingHours(day=following, start=current.start, end=current.end)
        return hours or default_working_hours(following, params)

    prep = timedelta(minutes=params.prep_buffer_minutes)
    cursor = window.window_start + prep

    slots: list[ScheduleSlot] = []
    diagnostics: list[str] = []
    total_scheduled = total_travel = total_visit = 0
    previous_waypoint: Waypoint | None = None

    for waypoint in order:
        travel = 0
        if previous_waypoint is not None:
            travel = travel_time_minutes(
                previous_waypoint.coordinates,
                waypoint.coordinates,
                consider_traffic=consider_traffic,
                at=cursor,
                same_location_miles=params.same_location_miles,
            )
        cursor += timedelta(minutes=travel)
        duration = clamp_duration(waypoint.duration)

        for _ in range(params.max_rollover_days + 1):
            if cursor > window.window_end:
                window = next_window(window)
                cursor = window.window_start + prep
                logger.info("Rolling %s over to %s", waypoint.name, window.day.isoformat())
            cursor, resolved = find_available_start(cursor, duration, tasks, params)
            if not resolved:
                message = f"could not fully resolve scheduling conflicts for {waypoint.name}"
                logger.warning(message)
                diagnostics.append(message)
                break
            if cursor <= window.window_end:
                break
        else:
            diagnostics.append(f"no working window found for {waypoint.name}")

        slot = ScheduleSlot(
            waypoint_id=waypoint.id,
            patient_name=waypoint.name,
            suggested_time=cursor,
            travel_time=travel,
            visit_duration=duration,
            efficiency=classify_efficiency(slots[-1] if slots else None, cursor, travel, params),
            current_time=waypoint.scheduled_time,
        )
        slots.append(slot)

        buffer = adaptive_buffer(travel)
        cursor += timedelta(minutes=duration + buffer)
        total_travel += travel
        total_visit += duration
        total_scheduled += travel + duration + buffer
        previous_waypoint = waypoint

    return ScheduleResult(
        slots=slots,
        conflicts=detect_overlaps(slots),
        diagnostics=diagnostics,
        total_scheduled_minutes=total_scheduled,
        total_travel_minutes=total_travel,
        total_visit_minutes=total_visit,
        working_minutes=working_minutes,
    )
