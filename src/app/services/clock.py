"""Wall-clock helpers.

The optimizer works in naive local time so that shift windows, appointment
times and hour-of-day traffic buckets compare directly.
"""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ..config import settings


@lru_cache(maxsize=None)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_zone() -> ZoneInfo:
    return _zone(settings.local_timezone)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """Convert aware datetimes to naive local time; naive ones are assumed local already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(local_zone()).replace(tzinfo=None)


def local_now() -> datetime:
    return datetime.now(local_zone()).replace(tzinfo=None)


def local_today() -> date:
    return local_now().date()


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return to_local(parsed)
