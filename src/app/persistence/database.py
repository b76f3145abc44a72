"""Supabase-backed stores for staff, visits, shifts and competing commitments."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional, Sequence

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import ExistingTask, StaffMember, Visit, VisitLocation, WorkingHours
from ..services.clock import local_zone, parse_timestamp

logger = logging.getLogger(__name__)

VISIT_COLUMNS = "id, patient_name, patient_address, visit_location, scheduled_time, start_time, status, duration"
DEFAULT_TASK_MINUTES = 30
DEFAULT_TRAINING_MINUTES = 60


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", ""))
    except ValueError:
        return None


def _coerce_int(value: Any) -> Optional[int]:
    number = _coerce_float(value)
    return int(number) if number is not None else None


def _parse_clock(value: Any) -> Optional[time]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    try:
        parts = [int(part) for part in str(value).split(":")[:2]]
    except ValueError:
        return None
    if len(parts) != 2:
        return None
    hours, minutes = parts
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return time(hours, minutes)


def location_from_value(value: Any) -> Optional[VisitLocation]:
    """Accept ``{lat, lng, source}`` objects; bare ``[lat, lng]`` pairs carry no provenance."""
    if not value:
        return None
    if isinstance(value, dict):
        return VisitLocation(
            latitude=value.get("lat", value.get("latitude")),
            longitude=value.get("lng", value.get("longitude")),
            source=value.get("source") or value.get("location_source") or value.get("provenance"),
        )
    if isinstance(value, (list, tuple)) and len(value) >= 2:
        return VisitLocation(latitude=value[0], longitude=value[1], source=None)
    return None


def visit_from_row(row: dict[str, Any]) -> Visit:
    return Visit(
        id=str(row.get("id")),
        patient_name=row.get("patient_name"),
        status=row.get("status"),
        location=location_from_value(row.get("visit_location")),
        scheduled_time=parse_timestamp(row.get("scheduled_time")),
        start_time=parse_timestamp(row.get("start_time")),
        duration=_coerce_int(row.get("duration")),
        patient_address=row.get("patient_address"),
    )


def staff_from_row(row: dict[str, Any]) -> StaffMember:
    return StaffMember(
        id=str(row.get("id")),
        name=row.get("name") or "",
        department=row.get("department"),
        cost_per_mile=_coerce_float(row.get("cost_per_mile")),
    )


def list_active_staff(staff_id: str | None = None) -> list[StaffMember]:
    supabase = get_supabase_client()
    if not supabase:
        logger.info("Supabase not configured - no staff available")
        return []
    try:
        query = supabase.table("staff").select("id, name, email, department, cost_per_mile").eq("is_active", True)
        if staff_id:
            query = query.eq("id", staff_id)
        response = query.execute()
    except Exception as exc:
        logger.error("Failed to fetch staff: %s", exc)
        raise
    return [staff_from_row(row) for row in (response.data or [])]


def find_staff(staff_id: str | None = None, staff_name: str | None = None) -> list[StaffMember]:
    """Staff by exact id, or by a case-insensitive partial name match."""
    supabase = get_supabase_client()
    if not supabase:
        logger.info("Supabase not configured - no staff available")
        return []
    try:
        query = supabase.table("staff").select("id, name, email, department, cost_per_mile")
        if staff_id:
            query = query.eq("id", staff_id)
        else:
            query = query.ilike("name", f"%{staff_name or ''}%")
        response = query.execute()
    except Exception as exc:
        logger.error("Failed to look up staff (id=%s, name=%s): %s", staff_id, staff_name, exc)
        raise
    return [staff_from_row(row) for row in (response.data or [])]


def get_recent_visits(staff_id: str, since: datetime, statuses: Sequence[str] = ("in_progress", "completed")) -> list[Visit]:
    """Visits that started or were scheduled on or after ``since``."""
    supabase = get_supabase_client()
    if not supabase:
        return []
    since_iso = since.replace(tzinfo=local_zone()).isoformat() if since.tzinfo is None else since.isoformat()
    try:
        response = (
            supabase.table("staff_visits")
            .select(VISIT_COLUMNS)
            .eq("staff_id", staff_id)
            .in_("status", list(statuses))
            .or_(f"start_time.gte.{since_iso},scheduled_time.gte.{since_iso}")
            .execute()
        )
    except Exception as exc:
        logger.warning("Failed to fetch visits for staff %s: %s", staff_id, exc)
        return []
    return [visit_from_row(row) for row in (response.data or [])]


def get_all_visits(staff_id: str) -> list[Visit]:
    supabase = get_supabase_client()
    if not supabase:
        return []
    try:
        response = (
            supabase.table("staff_visits")
            .select(VISIT_COLUMNS)
            .eq("staff_id", staff_id)
            .order("scheduled_time", desc=False)
            .execute()
        )
    except Exception as exc:
        logger.warning("Failed to fetch visits for staff %s: %s", staff_id, exc)
        return []
    return [visit_from_row(row) for row in (response.data or [])]


def get_visits_by_ids(staff_id: str, visit_ids: Sequence[str]) -> list[Visit]:
    supabase = get_supabase_client()
    if not supabase or not visit_ids:
        return []
    try:
        response = (
            supabase.table("staff_visits")
            .select(VISIT_COLUMNS)
            .eq("staff_id", staff_id)
            .in_("id", list(visit_ids))
            .neq("status", "cancelled")
            .execute()
        )
    except Exception as exc:
        logger.warning("Failed to fetch visits %s for staff %s: %s", list(visit_ids), staff_id, exc)
        return []
    return [visit_from_row(row) for row in (response.data or [])]


def get_working_hours(staff_id: str, day: date) -> WorkingHours:
    """Shift for ``day``; falls back to the default window when missing or unreadable.

    The shifts table numbers days from Monday = 0.
    """
    fallback = WorkingHours(day=day, start=settings.default_shift_start, end=settings.default_shift_end)
    supabase = get_supabase_client()
    if not supabase:
        return fallback
    try:
        response = (
            supabase.table("staff_shifts")
            .select("start_time, end_time")
            .eq("staff_id", staff_id)
            .eq("day_of_week", day.weekday())
            .limit(1)
            .execute()
        )
    except Exception as exc:
        logger.warning("Error fetching shift for staff %s on %s: %s", staff_id, day.isoformat(), exc)
        return fallback

    rows = response.data or []
    if not rows:
        logger.info("No shift found for staff %s on %s, using default hours", staff_id, day.isoformat())
        return fallback
    start = _parse_clock(rows[0].get("start_time"))
    end = _parse_clock(rows[0].get("end_time"))
    if start is None or end is None or end <= start:
        logger.warning("Unusable shift %s for staff %s, using default hours", rows[0], staff_id)
        return fallback
    return WorkingHours(day=day, start=start, end=end)


def _visit_tasks(rows: Iterable[dict[str, Any]], exclude_ids: set[str]) -> list[ExistingTask]:
    tasks = []
    for row in rows:
        if str(row.get("id")) in exclude_ids:
            continue
        start = parse_timestamp(row.get("scheduled_time"))
        if start is None:
            continue
        minutes = _coerce_int(row.get("duration")) or DEFAULT_TASK_MINUTES
        tasks.append(
            ExistingTask(
                title=f"Patient Visit: {row.get('patient_name')}",
                type="patient_visit",
                start_time=start,
                end_time=start + timedelta(minutes=minutes),
            )
        )
    return tasks


def _training_tasks(rows: Iterable[dict[str, Any]], day: date) -> list[ExistingTask]:
    tasks = []
    for row in rows:
        start = parse_timestamp(row.get("start_date"))
        if start is None or start.date() != day:
            continue
        training = row.get("in_service_trainings") or {}
        minutes = _coerce_int(training.get("duration")) or DEFAULT_TRAINING_MINUTES
        tasks.append(
            ExistingTask(
                title=f"Training: {training.get('title') or 'Training Session'}",
                type="training",
                start_time=start,
                end_time=start + timedelta(minutes=minutes),
            )
        )
    return tasks


def get_existing_tasks(
    staff_id: str,
    window_start: datetime,
    window_end: datetime,
    exclude_ids: Sequence[str] = (),
) -> list[ExistingTask]:
    """Other scheduled visits and training sessions that block time on the window's date."""
    supabase = get_supabase_client()
    if not supabase:
        return []

    zone = local_zone()
    start_iso = window_start.replace(tzinfo=zone).isoformat()
    end_iso = window_end.replace(tzinfo=zone).isoformat()
    tasks: list[ExistingTask] = []

    try:
        visits = (
            supabase.table("staff_visits")
            .select("id, patient_name, scheduled_time, duration, status")
            .eq("staff_id", staff_id)
            .neq("status", "cancelled")
            .gte("scheduled_time", start_iso)
            .lte("scheduled_time", end_iso)
            .execute()
        )
        tasks.extend(_visit_tasks(visits.data or [], {str(item) for item in exclude_ids}))
    except Exception as exc:
        logger.warning("Failed to fetch existing visits for staff %s: %s", staff_id, exc)

    try:
        trainings = (
            supabase.table("in_service_enrollments")
            .select("id, start_date, status, in_service_trainings (id, title, duration)")
            .eq("employee_id", staff_id)
            .in_("status", ["enrolled", "in_progress"])
            .execute()
        )
        tasks.extend(_training_tasks(trainings.data or [], window_start.date()))
    except Exception as exc:
        logger.warning("Failed to fetch training sessions for staff %s: %s", staff_id, exc)

    tasks.sort(key=lambda task: task.start_time)
    return tasks


def update_visit_times(staff_id: str, times: dict[str, datetime]) -> int:
    """Write new scheduled times; returns how many visits were updated."""
    supabase = get_supabase_client()
    if not supabase:
        raise ValueError("Database is not configured; cannot apply visit times.")
    zone = local_zone()
    updated = 0
    for visit_id, scheduled in times.items():
        stamp = scheduled.replace(tzinfo=zone) if scheduled.tzinfo is None else scheduled
        supabase.table("staff_visits").update({"scheduled_time": stamp.isoformat()}).eq("id", visit_id).eq(
            "staff_id", staff_id
        ).execute()
        updated += 1
    return updated
