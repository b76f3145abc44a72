"""Serializers for route optimization outputs."""

from __future__ import annotations

import csv
import io
from typing import Sequence

from ...schemas.routing import RouteOptimizationResponse, ScheduleResponse


def routes_to_json(response: RouteOptimizationResponse) -> dict:
    return response.model_dump(mode="json")


def routes_to_csv(response: RouteOptimizationResponse) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "staff_id",
        "staff_name",
        "sequence",
        "visit_id",
        "patient_name",
        "lat",
        "lng",
        "selected_algorithm",
        "optimized_distance",
        "distance_saved",
        "cost_saved",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames, lineterminator="\n")
    writer.writeheader()
    for route in response.routes:
        by_id = {waypoint.id: waypoint for waypoint in route.waypoints}
        for sequence, visit_id in enumerate(route.optimized_order, start=1):
            waypoint = by_id[visit_id]
            writer.writerow(
                {
                    "staff_id": route.staff_id,
                    "staff_name": route.staff_name,
                    "sequence": sequence,
                    "visit_id": visit_id,
                    "patient_name": waypoint.name,
                    "lat": waypoint.lat,
                    "lng": waypoint.lng,
                    "selected_algorithm": route.selected_algorithm,
                    "optimized_distance": route.optimized_distance,
                    "distance_saved": route.distance_saved,
                    "cost_saved": route.cost_saved,
                }
            )
    return buffer.getvalue()


def schedule_to_csv(response: ScheduleResponse) -> str:
    buffer = io.StringIO()
    fieldnames: Sequence[str] = [
        "sequence",
        "visit_id",
        "patient_name",
        "suggested_time",
        "travel_time",
        "visit_duration",
        "efficiency",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames, lineterminator="\n")
    writer.writeheader()
    for sequence, slot in enumerate(response.schedule, start=1):
        writer.writerow(
            {
                "sequence": sequence,
                "visit_id": slot.visit_id,
                "patient_name": slot.patient_name,
                "suggested_time": slot.suggested_time.isoformat(),
                "travel_time": slot.travel_time,
                "visit_duration": slot.visit_duration,
                "efficiency": slot.efficiency,
            }
        )
    return buffer.getvalue()
