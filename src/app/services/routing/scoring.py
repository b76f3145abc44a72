"""Per-hop and per-route scoring shared by the route heuristics."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Mapping, Sequence

from ...models.domain import Waypoint
from ..geospatial import cost_dollars, distance_miles, travel_time_minutes
from .models import Objective, OptimizationSettings

APPOINTMENT_TOLERANCE_MINUTES = 30
APPOINTMENT_PENALTY_PER_MINUTE = 0.1
DWELL_MINUTES = 15


def raw_score(
    a: Waypoint,
    b: Waypoint,
    objective: Objective,
    settings: OptimizationSettings,
    clock: datetime | None,
    cost_per_mile: float,
) -> float:
    if objective is Objective.COST:
        return cost_dollars(a.coordinates, b.coordinates, cost_per_mile)
    if objective is Objective.TIME:
        return travel_time_minutes(
            a.coordinates,
            b.coordinates,
            consider_traffic=settings.consider_traffic_patterns,
            at=clock,
        )
    return distance_miles(a.coordinates, b.coordinates)


def step_score(
    a: Waypoint,
    b: Waypoint,
    objective: Objective,
    settings: OptimizationSettings,
    clock: datetime | None,
    cost_per_mile: float,
) -> float:
    """Score moving from ``a`` to ``b``, penalising arrivals far from ``b``'s appointment."""

    score = raw_score(a, b, objective, settings, clock, cost_per_mile)
    if settings.respect_appointment_windows and b.scheduled_time is not None and clock is not None:
        arrival = clock + timedelta(minutes=score)
        deviation = abs((arrival - b.scheduled_time).total_seconds()) / 60
        if deviation > APPOINTMENT_TOLERANCE_MINUTES:
            score += APPOINTMENT_PENALTY_PER_MINUTE * deviation
    return score


def route_cost(
    order: Sequence[str],
    lookup: Mapping[str, Waypoint],
    settings: OptimizationSettings,
    objective: Objective,
    clock: datetime | None,
    cost_per_mile: float,
) -> float:
    """Walk the route edge by edge; time-prioritised runs advance a simulated clock."""

    total = 0.0
    current_clock = clock
    for previous_id, next_id in zip(order, order[1:]):
        previous, following = lookup[previous_id], lookup[next_id]
        total += step_score(previous, following, objective, settings, current_clock, cost_per_mile)
        if settings.prioritize_time_savings and current_clock is not None:
            travel = travel_time_minutes(
                previous.coordinates,
                following.coordinates,
                consider_traffic=settings.consider_traffic_patterns,
                at=current_clock,
            )
            current_clock = current_clock + timedelta(minutes=travel + DWELL_MINUTES)
    return total


def route_distance(order: Sequence[str], lookup: Mapping[str, Waypoint]) -> float:
    return sum(
        distance_miles(lookup[a].coordinates, lookup[b].coordinates)
        for a, b in zip(order, order[1:])
    )


def route_travel_minutes(
    order: Sequence[str],
    lookup: Mapping[str, Waypoint],
    consider_traffic: bool,
    clock: datetime | None,
) -> int:
    """Total drive time along ``order`` with the clock advancing per stop."""

    total = 0
    current_clock = clock
    for a, b in zip(order, order[1:]):
        travel = travel_time_minutes(
            lookup[a].coordinates,
            lookup[b].coordinates,
            consider_traffic=consider_traffic,
            at=current_clock,
        )
        total += travel
        if current_clock is not None:
            current_clock = current_clock + timedelta(minutes=travel + DWELL_MINUTES)
    return total
