"""Route optimization orchestration service."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Sequence

from ...config import settings
from ...models.domain import StaffMember, Waypoint, WorkingHours
from ...persistence.database import (
    find_staff,
    get_all_visits,
    get_existing_tasks,
    get_recent_visits,
    get_visits_by_ids,
    get_working_hours,
    list_active_staff,
    update_visit_times,
)
from ...persistence.filesystem import FileStorage
from ...schemas.routing import (
    ApplyOrderRequest,
    ApplyOrderResponse,
    DebugVisitsResponse,
    ExistingTaskModel,
    RouteOptimizationRequest,
    RouteOptimizationResponse,
    RouteSummaryModel,
    ScheduleMetricsModel,
    ScheduleRequest,
    ScheduleResponse,
    ScheduleSlotModel,
    StaffRouteModel,
    StaffVisitReportModel,
    VisitEligibilityModel,
    WaypointModel,
    WorkingHoursModel,
)
from ..clock import local_now, local_today, to_local
from ..outputs.routing_formatter import routes_to_csv, routes_to_json, schedule_to_csv
from .geocoding import attach_addresses
from .metrics import compute_savings, schedule_metrics, summarize_routes
from .models import OptimizationResult, OptimizationSettings, RouteSavings, ScheduleResult
from .scheduler import pack_schedule
from .solver import optimize
from .waypoints import build_waypoints, clamp_duration, current_order, explain_visits, live_coordinates

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StaffRouteReport:
    staff: StaffMember
    cost_per_mile: float
    waypoints: list[Waypoint]
    current_order: list[str]
    result: OptimizationResult
    savings: RouteSavings


def _cost_per_mile(staff: StaffMember) -> float:
    if staff.cost_per_mile is None or staff.cost_per_mile < 0:
        return settings.default_cost_per_mile
    return staff.cost_per_mile


def _pack_route(
    staff_id: str,
    waypoints: Sequence[Waypoint],
    order: Sequence[str],
    day: date,
    consider_traffic: bool,
) -> ScheduleResult:
    """Pack the optimized order into the day's shift so utilization can be reported."""

    by_id = {waypoint.id: waypoint for waypoint in waypoints}
    hours = get_working_hours(staff_id, day)
    tasks = get_existing_tasks(staff_id, hours.window_start, hours.window_end, exclude_ids=order)
    return pack_schedule(
        [by_id[waypoint_id] for waypoint_id in order],
        hours,
        tasks,
        consider_traffic,
        hours_for_day=lambda following: get_working_hours(staff_id, following),
    )


def optimize_staff_route(
    staff: StaffMember,
    options: OptimizationSettings,
    clock: datetime,
    *,
    rng: random.Random | None = None,
    geocode: bool = True,
) -> StaffRouteReport | None:
    """Optimize one staff member's route; None when there is nothing to optimize."""

    since = clock - timedelta(days=settings.visit_lookback_days)
    visits = get_recent_visits(staff.id, since)
    waypoints = build_waypoints(visits)
    if len(waypoints) < 2:
        logger.info(
            "Staff %s (%s): %d usable waypoints from %d visits, nothing to optimize",
            staff.id,
            staff.name,
            len(waypoints),
            len(visits),
        )
        return None

    if geocode:
        attach_addresses(waypoints)

    cost_per_mile = _cost_per_mile(staff)
    baseline = current_order(waypoints)
    result = optimize(waypoints, options, cost_per_mile, clock, rng=rng)
    schedule = _pack_route(staff.id, waypoints, result.order, clock.date(), options.consider_traffic_patterns)
    savings = compute_savings(
        baseline,
        result.order,
        waypoints,
        cost_per_mile,
        settings=options,
        clock=clock,
        schedule=schedule,
    )
    logger.info(
        "Staff %s (%s): %s saves %.2f mi over the scheduled order",
        staff.id,
        staff.name,
        result.algorithm.value,
        savings.distance_saved,
    )
    return StaffRouteReport(
        staff=staff,
        cost_per_mile=cost_per_mile,
        waypoints=waypoints,
        current_order=baseline,
        result=result,
        savings=savings,
    )


def _report_to_model(report: StaffRouteReport) -> StaffRouteModel:
    by_id = {waypoint.id: waypoint for waypoint in report.waypoints}
    savings = report.savings
    return StaffRouteModel(
        staff_id=report.staff.id,
        staff_name=report.staff.name,
        staff_department=report.staff.department,
        cost_per_mile=report.cost_per_mile,
        current_order=report.current_order,
        optimized_order=report.result.order,
        current_route=[by_id[waypoint_id].name for waypoint_id in report.current_order],
        optimized_route=[by_id[waypoint_id].name for waypoint_id in report.result.order],
        current_distance=round(savings.current_distance, 2),
        optimized_distance=round(savings.optimized_distance, 2),
        distance_saved=round(savings.distance_saved, 2),
        time_saved=savings.time_saved,
        cost_saved=round(savings.cost_saved, 2),
        improvement_percent=round(savings.improvement_percent, 1),
        utilization=round(savings.utilization, 1) if savings.utilization is not None else None,
        selected_algorithm=report.result.algorithm.value,
        algorithm_comparison={name: round(value, 2) for name, value in report.result.comparison.items()},
        waypoints=[
            WaypointModel(
                id=waypoint.id,
                name=waypoint.name,
                address=waypoint.address,
                lat=waypoint.latitude,
                lng=waypoint.longitude,
                duration=waypoint.duration,
                scheduled_time=waypoint.scheduled_time,
            )
            for waypoint in report.waypoints
        ],
    )


def optimize_routes(payload: RouteOptimizationRequest) -> RouteOptimizationResponse:
    staff_members = list_active_staff(payload.staff_id)
    if payload.staff_id and not staff_members:
        raise ValueError(f"Active staff member '{payload.staff_id}' not found.")

    options = OptimizationSettings(**payload.settings.model_dump())
    clock = to_local(payload.start_time) or local_now()
    rng = random.Random(payload.seed) if payload.seed is not None else None

    reports: list[StaffRouteReport] = []
    for staff in staff_members:
        report = optimize_staff_route(staff, options, clock, rng=rng, geocode=payload.geocode)
        if report is not None:
            reports.append(report)

    logger.info("Optimized %d of %d staff routes", len(reports), len(staff_members))
    response = RouteOptimizationResponse(
        routes=[_report_to_model(report) for report in reports],
        summary=RouteSummaryModel(**summarize_routes(report.savings for report in reports)),
        metadata={
            "objective": options.objective.value,
            "clock": clock.isoformat(),
            "staff_considered": len(staff_members),
        },
    )

    if payload.persist:
        storage = FileStorage()
        prefix = f"routes_{payload.run_label}" if payload.run_label else "routes"
        run_dir = storage.make_run_directory(prefix=prefix)
        storage.write_json(run_dir / "summary.json", routes_to_json(response))
        storage.write_csv(run_dir / "routes.csv", routes_to_csv(response))
        response.metadata["output_dir"] = str(run_dir)

    return response


def apply_optimized_order(payload: ApplyOrderRequest) -> ApplyOrderResponse:
    """Rewrite scheduled times so visits follow the optimized order at a fixed spacing."""

    day = (to_local(payload.day) or local_now()).date()
    start = datetime.combine(day, settings.applied_order_start)
    spacing = timedelta(minutes=settings.applied_order_spacing_minutes)
    times = {visit_id: start + spacing * index for index, visit_id in enumerate(payload.optimized_order)}
    updated = update_visit_times(payload.staff_id, times)
    return ApplyOrderResponse(
        success=True,
        updated=updated,
        message="Route optimized and applied successfully",
    )


def _schedule_waypoints(staff_id: str, order: Sequence[str]) -> list[Waypoint]:
    """Waypoints in the requested order; visits without usable coordinates are skipped."""

    visits = {visit.id: visit for visit in get_visits_by_ids(staff_id, order)}
    waypoints: list[Waypoint] = []
    for visit_id in order:
        visit = visits.get(visit_id)
        if visit is None:
            logger.info("Visit %s not found for staff %s", visit_id, staff_id)
            continue
        coordinates = live_coordinates(visit)
        if coordinates is None:
            logger.info("Visit %s has no usable live location, skipping", visit_id)
            continue
        waypoints.append(
            Waypoint(
                id=visit.id,
                name=visit.patient_name or f"Visit {len(waypoints) + 1}",
                latitude=coordinates[0],
                longitude=coordinates[1],
                duration=clamp_duration(visit.duration),
                scheduled_time=visit.scheduled_time,
                start_time=visit.start_time,
            )
        )
    return waypoints


def _schedule_date(waypoints: Sequence[Waypoint]) -> date:
    for waypoint in waypoints:
        if waypoint.scheduled_time is not None:
            return waypoint.scheduled_time.date()
    return local_today()


def schedule_visits(payload: ScheduleRequest) -> ScheduleResponse:
    waypoints = _schedule_waypoints(payload.staff_id, payload.optimized_order)
    if not waypoints:
        raise ValueError("No valid waypoints with location data.")

    day = _schedule_date(waypoints)
    hours: WorkingHours = get_working_hours(payload.staff_id, day)
    tasks = get_existing_tasks(
        payload.staff_id,
        hours.window_start,
        hours.window_end,
        exclude_ids=payload.optimized_order,
    )
    logger.info(
        "Packing %d visits for staff %s on %s around %d existing tasks",
        len(waypoints),
        payload.staff_id,
        day.isoformat(),
        len(tasks),
    )

    result = pack_schedule(
        waypoints,
        hours,
        tasks,
        payload.consider_traffic,
        hours_for_day=lambda following: get_working_hours(payload.staff_id, following),
    )
    metrics = schedule_metrics(result)
    response = ScheduleResponse(
        staff_id=payload.staff_id,
        schedule=[
            ScheduleSlotModel(
                visit_id=slot.waypoint_id,
                patient_name=slot.patient_name,
                suggested_time=slot.suggested_time,
                travel_time=slot.travel_time,
                visit_duration=slot.visit_duration,
                current_time=slot.current_time,
                efficiency=slot.efficiency,
            )
            for slot in result.slots
        ],
        metrics=ScheduleMetricsModel(
            **metrics,
            conflicts=result.conflicts or None,
            diagnostics=result.diagnostics,
            working_hours=WorkingHoursModel(
                start=hours.start.strftime("%H:%M"),
                end=hours.end.strftime("%H:%M"),
                duration=hours.minutes,
            ),
            existing_tasks=[
                ExistingTaskModel(
                    type=task.type,
                    title=task.title,
                    start_time=task.start_time,
                    end_time=task.end_time,
                    duration=task.duration,
                )
                for task in tasks
            ],
        ),
    )

    if payload.persist:
        storage = FileStorage()
        run_dir = storage.make_run_directory(prefix=f"schedule_{payload.staff_id}")
        storage.write_json(run_dir / "summary.json", response.model_dump(mode="json"))
        storage.write_csv(run_dir / "schedule.csv", schedule_to_csv(response))

    return response


def debug_visits(staff_id: str | None = None, staff_name: str | None = None) -> DebugVisitsResponse:
    """Eligibility report for every visit of the matching staff members."""

    if not staff_id and not staff_name:
        raise ValueError("Please provide either staff_name or staff_id.")
    staff_members = find_staff(staff_id=staff_id, staff_name=staff_name)
    if not staff_members:
        raise LookupError(f"No staff found with name '{staff_name or ''}' or id '{staff_id or ''}'.")

    reports = []
    for staff in staff_members:
        report = explain_visits(get_all_visits(staff.id))
        reports.append(
            StaffVisitReportModel(
                staff_id=staff.id,
                staff_name=staff.name,
                total_visits=len(report),
                eligible_visits=sum(1 for item in report if item["eligible"]),
                visits=[VisitEligibilityModel(**item) for item in report],
            )
        )
    return DebugVisitsResponse(staff=reports)
