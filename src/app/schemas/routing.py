"""Route optimization request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class OptimizationSettingsModel(BaseModel):
    prioritize_time_savings: bool = False
    consider_traffic_patterns: bool = False
    respect_appointment_windows: bool = False
    minimize_fuel_costs: bool = False


class RouteOptimizationRequest(BaseModel):
    staff_id: Optional[str] = Field(default=None, description="Limit optimization to one staff member.")
    settings: OptimizationSettingsModel = Field(default_factory=OptimizationSettingsModel)
    start_time: Optional[datetime] = Field(
        default=None,
        description="Clock used for traffic and appointment scoring. Defaults to now.",
    )
    seed: Optional[int] = Field(default=None, description="Seed for the simulated annealing random source.")
    geocode: bool = Field(default=True, description="Resolve display addresses for waypoints.")
    persist: bool = False
    run_label: Optional[str] = Field(default=None, description="Friendly name for persisted outputs.")


class WaypointModel(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    lat: float
    lng: float
    duration: int
    scheduled_time: Optional[datetime] = None


class StaffRouteModel(BaseModel):
    staff_id: str
    staff_name: str
    staff_department: Optional[str] = None
    cost_per_mile: float
    current_order: List[str]
    optimized_order: List[str]
    current_route: List[str]
    optimized_route: List[str]
    current_distance: float
    optimized_distance: float
    distance_saved: float
    time_saved: int
    cost_saved: float
    improvement_percent: float
    utilization: Optional[float] = Field(default=None, description="Percent of the shift the packed route occupies.")
    selected_algorithm: str
    algorithm_comparison: Dict[str, float]
    waypoints: List[WaypointModel]


class RouteSummaryModel(BaseModel):
    total_savings: float = 0.0
    total_time_saved: int = 0
    total_distance_saved: float = 0.0
    avg_efficiency_gain: float = 0.0
    routes_optimized: int = 0


class RouteOptimizationResponse(BaseModel):
    routes: List[StaffRouteModel]
    summary: RouteSummaryModel
    metadata: dict = Field(default_factory=dict)


class ApplyOrderRequest(BaseModel):
    staff_id: str
    optimized_order: List[str] = Field(..., min_length=1)
    day: Optional[datetime] = Field(default=None, description="Date to apply the order on. Defaults to today.")


class ApplyOrderResponse(BaseModel):
    success: bool
    updated: int
    message: str


class ScheduleRequest(BaseModel):
    staff_id: str
    optimized_order: List[str] = Field(..., min_length=1)
    consider_traffic: bool = False
    persist: bool = False


class ScheduleSlotModel(BaseModel):
    visit_id: str
    patient_name: str
    suggested_time: datetime
    travel_time: int
    visit_duration: int
    current_time: Optional[datetime] = None
    efficiency: str


class ExistingTaskModel(BaseModel):
    type: str
    title: str
    start_time: datetime
    end_time: datetime
    duration: int


class WorkingHoursModel(BaseModel):
    start: str
    end: str
    duration: int


class ScheduleMetricsModel(BaseModel):
    total_visits: int
    total_time: int
    total_travel_time: int
    total_visit_time: int
    avg_time_between_visits: int
    avg_visit_duration: int
    utilization_rate: float
    time_efficiency: float
    efficiency_score: str
    conflicts: Optional[List[str]] = None
    diagnostics: List[str] = Field(default_factory=list)
    working_hours: WorkingHoursModel
    existing_tasks: List[ExistingTaskModel] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    staff_id: str
    schedule: List[ScheduleSlotModel]
    metrics: ScheduleMetricsModel


class VisitEligibilityModel(BaseModel):
    id: str
    patient_name: Optional[str] = None
    status: Optional[str] = None
    location_source: Optional[str] = None
    eligible: bool
    reason: Optional[str] = None


class StaffVisitReportModel(BaseModel):
    staff_id: str
    staff_name: str
    total_visits: int
    eligible_visits: int
    visits: List[VisitEligibilityModel]


class DebugVisitsResponse(BaseModel):
    staff: List[StaffVisitReportModel]
