"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional


class Objective(str, Enum):
    COST = "cost"
    TIME = "time"
    DISTANCE = "distance"


class Algorithm(str, Enum):
    NEAREST_NEIGHBOR = "nearest_neighbor"
    TWO_OPT = "2_opt"
    SIMULATED_ANNEALING = "simulated_annealing"


@dataclass(frozen=True, slots=True)
class OptimizationSettings:
    prioritize_time_savings: bool = False
    consider_traffic_patterns: bool = False
    respect_appointment_windows: bool = False
    minimize_fuel_costs: bool = False

    @property
    def objective(self) -> Objective:
        """The quantity scored per hop; cost wins over time, time over distance."""
        if self.minimize_fuel_costs:
            return Objective.COST
        if self.prioritize_time_savings:
            return Objective.TIME
        return Objective.DISTANCE


@dataclass(slots=True)
class OptimizationResult:
    order: List[str]
    algorithm: Algorithm
    distance: float
    comparison: Dict[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class ScheduleSlot:
    waypoint_id: str
    patient_name: str
    suggested_time: datetime
    travel_time: int
    visit_duration: int
    efficiency: str
    current_time: Optional[datetime] = None

    @property
    def end_time(self) -> datetime:
        return self.suggested_time + timedelta(minutes=self.visit_duration)


@dataclass(slots=True)
class ScheduleResult:
    slots: List[ScheduleSlot]
    conflicts: List[str]
    diagnostics: List[str]
    total_scheduled_minutes: int
    total_travel_minutes: int
    total_visit_minutes: int
    working_minutes: int


@dataclass(slots=True)
class RouteSavings:
    current_distance: float
    optimized_distance: float
    distance_saved: float
    time_saved: int
    cost_saved: float
    improvement_percent: float
    utilization: Optional[float] = None
