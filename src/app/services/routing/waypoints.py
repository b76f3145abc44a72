"""Turn staff visits into optimizable waypoints.

Only visits that have actually started (``in_progress`` or ``completed``) and
carry a live, patient-shared GPS location are routed. Street addresses that
were geocoded or copied from the patient record are never trusted for
coordinates; they may only be shown to the user.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ...models.domain import Visit, VisitLocation, Waypoint

logger = logging.getLogger(__name__)

ROUTABLE_STATUSES = frozenset({"in_progress", "completed"})
LIVE_LOCATION_SOURCE = "patient_live_location"

DEFAULT_VISIT_MINUTES = 30
MIN_VISIT_MINUTES = 15
MAX_VISIT_MINUTES = 240
CAPPED_VISIT_MINUTES = 120


def clamp_duration(minutes: Optional[float]) -> int:
    """Absorb bad duration data: short visits become 30 min, runaway ones 120."""

    if minutes is None:
        return DEFAULT_VISIT_MINUTES
    try:
        value = int(minutes)
    except (TypeError, ValueError):
        return DEFAULT_VISIT_MINUTES
    if value < MIN_VISIT_MINUTES:
        return DEFAULT_VISIT_MINUTES
    if value > MAX_VISIT_MINUTES:
        return CAPPED_VISIT_MINUTES
    return value


def _normalize_source(source: Optional[str]) -> str:
    return (source or "").strip().lower().replace(" ", "_").replace("-", "_")


def _coerce_coordinate(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_coordinates(location: Optional[VisitLocation]) -> Optional[tuple[float, float]]:
    if location is None:
        return None
    lat = _coerce_coordinate(location.latitude)
    lng = _coerce_coordinate(location.longitude)
    if lat is None or lng is None:
        return None
    if lat == 0 or lng == 0:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return (lat, lng)


def live_coordinates(visit: Visit) -> Optional[tuple[float, float]]:
    """Coordinates of a patient-shared live location, or None for any other source."""

    if visit.location is None or _normalize_source(visit.location.source) != LIVE_LOCATION_SOURCE:
        return None
    return parse_coordinates(visit.location)


def rejection_reason(visit: Visit) -> Optional[str]:
    """Why a visit cannot become a waypoint, or None if it can."""

    status = (visit.status or "").strip().lower()
    if status not in ROUTABLE_STATUSES:
        return f"status '{visit.status}' has not started"
    if visit.location is None:
        return "no visit location"
    if _normalize_source(visit.location.source) != LIVE_LOCATION_SOURCE:
        return f"location source '{visit.location.source}' is not a patient live location"
    if parse_coordinates(visit.location) is None:
        return "missing or invalid coordinates"
    return None


def _timestamp(value: Optional[datetime]) -> float:
    return value.timestamp() if value is not None else 0.0


def schedule_sort_key(item: Visit | Waypoint) -> tuple[bool, float, bool, float]:
    """Scheduled items first by time, then the rest by start time."""

    return (
        item.scheduled_time is None,
        _timestamp(item.scheduled_time),
        item.start_time is None,
        _timestamp(item.start_time),
    )


def build_waypoints(visits: Iterable[Visit]) -> list[Waypoint]:
    eligible: list[Visit] = []
    for visit in visits:
        reason = rejection_reason(visit)
        if reason:
            logger.info("Excluding visit %s (%s): %s", visit.id, visit.patient_name, reason)
            continue
        eligible.append(visit)

    eligible.sort(key=schedule_sort_key)

    waypoints: list[Waypoint] = []
    for visit in eligible:
        lat, lng = parse_coordinates(visit.location)  # type: ignore[misc]
        waypoints.append(
            Waypoint(
                id=visit.id,
                name=visit.patient_name or f"Visit {len(waypoints) + 1}",
                latitude=lat,
                longitude=lng,
                duration=clamp_duration(visit.duration),
                scheduled_time=visit.scheduled_time,
                start_time=visit.start_time,
                address=f"{lat:.6f}, {lng:.6f}",
            )
        )

    logger.info("Built %d waypoints from %d eligible visits", len(waypoints), len(eligible))
    return waypoints


def current_order(waypoints: Sequence[Waypoint]) -> list[str]:
    return [waypoint.id for waypoint in sorted(waypoints, key=schedule_sort_key)]


def explain_visits(visits: Iterable[Visit]) -> list[dict]:
    report = []
    for visit in visits:
        reason = rejection_reason(visit)
        report.append(
            {
                "id": visit.id,
                "patient_name": visit.patient_name,
                "status": visit.status,
                "location_source": visit.location.source if visit.location else None,
                "eligible": reason is None,
                "reason": reason,
            }
        )
    return report
