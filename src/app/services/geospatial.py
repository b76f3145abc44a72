"""Geospatial helper functions."""

from __future__ import annotations

import math
from datetime import datetime

from ..config import settings
from ..models.domain import Coordinates

EARTH_RADIUS_MILES = 3959.0

BASE_SPEED_MPH = 25.0
RUSH_HOUR_SPEED_MPH = 15.0
MIDDAY_SPEED_MPH = 30.0
OFF_PEAK_SPEED_MPH = 35.0


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def distance_miles(p1: Coordinates, p2: Coordinates) -> float:
    return haversine_miles(p1[0], p1[1], p2[0], p2[1])


def is_same_location(p1: Coordinates, p2: Coordinates, threshold_miles: float | None = None) -> bool:
    """True when two points are close enough to be the same building."""

    limit = settings.same_location_miles if threshold_miles is None else threshold_miles
    return distance_miles(p1, p2) < limit


def speed_mph(consider_traffic: bool = False, at: datetime | None = None) -> float:
    """Average driving speed, optionally bucketed by hour of day."""

    if not consider_traffic or at is None:
        return BASE_SPEED_MPH
    hour = at.hour
    if 7 <= hour < 9 or 17 <= hour < 19:
        return RUSH_HOUR_SPEED_MPH
    if 9 <= hour < 17:
        return MIDDAY_SPEED_MPH
    return OFF_PEAK_SPEED_MPH


def travel_time_minutes(
    p1: Coordinates,
    p2: Coordinates,
    consider_traffic: bool = False,
    at: datetime | None = None,
    *,
    same_location_miles: float | None = None,
) -> int:
    """Estimated drive time in whole minutes, rounded up."""

    distance = distance_miles(p1, p2)
    limit = settings.same_location_miles if same_location_miles is None else same_location_miles
    if distance < limit:
        return 0
    return math.ceil(distance / speed_mph(consider_traffic, at) * 60)


def cost_dollars(p1: Coordinates, p2: Coordinates, cost_per_mile: float) -> float:
    return distance_miles(p1, p2) * cost_per_mile
