"""Savings and utilisation figures for optimized routes and packed schedules."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from ...models.domain import Waypoint
from ..geospatial import BASE_SPEED_MPH
from .models import OptimizationSettings, RouteSavings, ScheduleResult
from .scoring import route_distance, route_travel_minutes


def _check_same_stops(current_order: Sequence[str], optimized_order: Sequence[str], lookup: dict) -> None:
    if sorted(current_order) != sorted(optimized_order):
        raise ValueError("Current and optimized orders must cover the same waypoints.")
    missing = [waypoint_id for waypoint_id in current_order if waypoint_id not in lookup]
    if missing:
        raise ValueError(f"Unknown waypoint ids: {', '.join(missing)}")


def utilization_percent(schedule: ScheduleResult) -> float:
    if schedule.working_minutes <= 0:
        return 0.0
    return schedule.total_scheduled_minutes / schedule.working_minutes * 100


def compute_savings(
    current_order: Sequence[str],
    optimized_order: Sequence[str],
    waypoints: Sequence[Waypoint],
    cost_per_mile: float,
    settings: OptimizationSettings | None = None,
    clock: datetime | None = None,
    schedule: ScheduleResult | None = None,
) -> RouteSavings:
    """Compare the schedule-sorted route with the optimized one.

    Time saved re-walks both routes with traffic-aware travel times when time
    savings are prioritised; otherwise it is the distance delta at 25 mph.
    """

    lookup = {waypoint.id: waypoint for waypoint in waypoints}
    _check_same_stops(current_order, optimized_order, lookup)

    current_distance = route_distance(current_order, lookup)
    optimized_distance = route_distance(optimized_order, lookup)
    distance_saved = current_distance - optimized_distance

    if settings is not None and settings.prioritize_time_savings:
        traffic = settings.consider_traffic_patterns
        time_saved = route_travel_minutes(current_order, lookup, traffic, clock) - route_travel_minutes(
            optimized_order, lookup, traffic, clock
        )
    else:
        time_saved = round(distance_saved / BASE_SPEED_MPH * 60)

    improvement = (distance_saved / current_distance * 100) if current_distance > 0 else 0.0
    return RouteSavings(
        current_distance=current_distance,
        optimized_distance=optimized_distance,
        distance_saved=distance_saved,
        time_saved=time_saved,
        cost_saved=distance_saved * cost_per_mile,
        improvement_percent=improvement,
        utilization=utilization_percent(schedule) if schedule is not None else None,
    )


def efficiency_score(conflict_count: int, utilization: float) -> str:
    if conflict_count == 0 and utilization > 70:
        return "Excellent"
    if conflict_count == 0 and utilization > 50:
        return "Good"
    if conflict_count > 0:
        return "Needs Review"
    return "Fair"


def schedule_metrics(schedule: ScheduleResult) -> dict:
    visits = len(schedule.slots)
    utilization = utilization_percent(schedule)
    if schedule.total_travel_minutes > 0:
        time_efficiency = schedule.total_visit_minutes / schedule.total_travel_minutes * 100
    else:
        time_efficiency = 100.0
    return {
        "total_visits": visits,
        "total_time": schedule.total_scheduled_minutes,
        "total_travel_time": schedule.total_travel_minutes,
        "total_visit_time": schedule.total_visit_minutes,
        "avg_time_between_visits": round(schedule.total_travel_minutes / (visits - 1)) if visits > 1 else 0,
        "avg_visit_duration": round(schedule.total_visit_minutes / visits) if visits else 0,
        "utilization_rate": round(utilization, 1),
        "time_efficiency": round(time_efficiency, 1),
        "efficiency_score": efficiency_score(len(schedule.conflicts), utilization),
    }


def summarize_routes(savings: Iterable[RouteSavings]) -> dict:
    items = list(savings)
    if not items:
        return {
            "total_savings": 0.0,
            "total_time_saved": 0,
            "total_distance_saved": 0.0,
            "avg_efficiency_gain": 0.0,
            "routes_optimized": 0,
        }
    return {
        "total_savings": round(sum(item.cost_saved for item in items), 2),
        "total_time_saved": sum(item.time_saved for item in items),
        "total_distance_saved": round(sum(item.distance_saved for item in items), 2),
        "avg_efficiency_gain": round(sum(item.improvement_percent for item in items) / len(items), 1),
        "routes_optimized": len(items),
    }
