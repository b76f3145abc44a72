"""Domain models for visits, waypoints and calendar commitments."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

Coordinates = tuple[float, float]


@dataclass(slots=True)
class VisitLocation:
    """Raw location attached to a visit, tagged with where it came from."""

    latitude: Any
    longitude: Any
    source: Optional[str] = None


@dataclass(slots=True)
class Visit:
    """A staff visit as read from the visit store."""

    id: str
    patient_name: Optional[str]
    status: Optional[str]
    location: Optional[VisitLocation] = None
    scheduled_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    duration: Optional[int] = None
    patient_address: Optional[str] = None


@dataclass(slots=True)
class Waypoint:
    """An optimizable stop built from a visit with a live patient location."""

    id: str
    name: str
    latitude: float
    longitude: float
    duration: int
    scheduled_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    address: Optional[str] = None

    @property
    def coordinates(self) -> Coordinates:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class ExistingTask:
    """A commitment already occupying the staff calendar."""

    title: str
    type: str
    start_time: datetime
    end_time: datetime

    @property
    def duration(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end_time and end > self.start_time


@dataclass(frozen=True, slots=True)
class WorkingHours:
    """A staff shift window on a specific date."""

    day: date
    start: time
    end: time

    @property
    def window_start(self) -> datetime:
        return datetime.combine(self.day, self.start)

    @property
    def window_end(self) -> datetime:
        return datetime.combine(self.day, self.end)

    @property
    def minutes(self) -> int:
        return int((self.window_end - self.window_start) / timedelta(minutes=1))


@dataclass(slots=True)
class StaffMember:
    """Represents a field clinician whose visits can be routed."""

    id: str
    name: str
    department: Optional[str] = None
    cost_per_mile: Optional[float] = None
