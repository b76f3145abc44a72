"""Visit-order heuristics and the selector that picks between them."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Sequence

from ...config import settings as app_settings
from ...models.domain import Waypoint
from .models import Algorithm, OptimizationResult, OptimizationSettings
from .scoring import DWELL_MINUTES, route_cost, route_distance, step_score
from .waypoints import schedule_sort_key

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SolverParameters:
    cost_per_mile: float = app_settings.default_cost_per_mile
    two_opt_max_passes: int = app_settings.two_opt_max_passes
    initial_temperature: float = app_settings.annealing_initial_temperature
    cooling_rate: float = app_settings.annealing_cooling_rate
    min_temperature: float = app_settings.annealing_min_temperature


def _resolve(
    settings: OptimizationSettings | None, params: SolverParameters | None
) -> tuple[OptimizationSettings, SolverParameters]:
    settings = settings or OptimizationSettings()
    params = params or SolverParameters()
    if params.cost_per_mile < 0:
        raise ValueError("cost_per_mile must be >= 0")
    return settings, params


def nearest_neighbor(
    waypoints: Sequence[Waypoint],
    settings: OptimizationSettings | None = None,
    *,
    clock: datetime | None = None,
    params: SolverParameters | None = None,
) -> list[str]:
    """Greedy construction: always hop to the best-scoring unvisited stop."""

    settings, params = _resolve(settings, params)
    if len(waypoints) <= 1:
        return [waypoint.id for waypoint in waypoints]

    objective = settings.objective
    remaining = list(waypoints)
    if settings.respect_appointment_windows:
        remaining.sort(key=schedule_sort_key)

    current = remaining.pop(0)
    order = [current.id]
    current_clock = clock
    while remaining:
        best_index = 0
        best_score = math.inf
        for index, candidate in enumerate(remaining):
            score = step_score(current, candidate, objective, settings, current_clock, params.cost_per_mile)
            if score < best_score:
                best_score = score
                best_index = index
        current = remaining.pop(best_index)
        order.append(current.id)
        if current_clock is not None:
            current_clock = current_clock + timedelta(minutes=best_score + DWELL_MINUTES)
    return order


def two_opt(
    waypoints: Sequence[Waypoint],
    settings: OptimizationSettings | None = None,
    *,
    clock: datetime | None = None,
    params: SolverParameters | None = None,
    initial_order: Sequence[str] | None = None,
) -> list[str]:
    """Improve the nearest-neighbour tour by reversing segments while cost strictly drops."""

    settings, params = _resolve(settings, params)
    route = list(initial_order) if initial_order is not None else nearest_neighbor(
        waypoints, settings, clock=clock, params=params
    )
    if len(route) <= 2:
        return route

    lookup = {waypoint.id: waypoint for waypoint in waypoints}
    objective = settings.objective

    def cost(order: Sequence[str]) -> float:
        return route_cost(order, lookup, settings, objective, clock, params.cost_per_mile)

    best_cost = cost(route)
    passes = 0
    improved = True
    while improved and passes < params.two_opt_max_passes:
        improved = False
        passes += 1
        for i in range(1, len(route) - 2):
            for j in range(i + 2, len(route)):
                candidate = route[:i] + route[i : j + 1][::-1] + route[j + 1 :]
                candidate_cost = cost(candidate)
                if candidate_cost < best_cost:
                    route = candidate
                    best_cost = candidate_cost
                    improved = True

    logger.debug("2-opt finished after %d passes with cost %.4f", passes, best_cost)
    return route


def simulated_annealing(
    waypoints: Sequence[Waypoint],
    settings: OptimizationSettings | None = None,
    *,
    clock: datetime | None = None,
    params: SolverParameters | None = None,
    rng: random.Random | None = None,
    initial_order: Sequence[str] | None = None,
) -> list[str]:
    """Random pairwise swaps with Metropolis acceptance over a geometric cooling schedule.

    The start stop never moves. Results depend on ``rng``; pass a seeded
    ``random.Random`` for reproducible runs.
    """

    settings, params = _resolve(settings, params)
    rng = rng or random.Random()
    route = list(initial_order) if initial_order is not None else nearest_neighbor(
        waypoints, settings, clock=clock, params=params
    )
    if len(route) <= 2:
        return route

    lookup = {waypoint.id: waypoint for waypoint in waypoints}
    objective = settings.objective

    def cost(order: Sequence[str]) -> float:
        return route_cost(order, lookup, settings, objective, clock, params.cost_per_mile)

    current_cost = cost(route)
    temperature = params.initial_temperature
    iterations = 0
    while temperature > params.min_temperature:
        i = rng.randrange(1, len(route))
        j = rng.randrange(1, len(route))
        if i != j:
            candidate = list(route)
            candidate[i], candidate[j] = candidate[j], candidate[i]
            candidate_cost = cost(candidate)
            delta = candidate_cost - current_cost
            if delta < 0 or rng.random() < math.exp(-delta / temperature):
                route = candidate
                current_cost = candidate_cost
        temperature *= params.cooling_rate
        iterations += 1

    logger.debug("Simulated annealing finished after %d iterations with cost %.4f", iterations, current_cost)
    return route


def optimize(
    waypoints: Sequence[Waypoint],
    settings: OptimizationSettings | None = None,
    cost_per_mile: float | None = None,
    clock: datetime | None = None,
    *,
    rng: random.Random | None = None,
    params: SolverParameters | None = None,
) -> OptimizationResult:
    """Run all three heuristics and keep the shortest route by plain distance.

    Distance is the comparison currency even when the heuristics scored hops
    by time or cost. Ties go to the earlier algorithm (NN, 2-Opt, SA).
    """

    params = params or SolverParameters()
    if cost_per_mile is not None:
        params = replace(params, cost_per_mile=cost_per_mile)
    settings, params = _resolve(settings, params)

    if len(waypoints) < 2:
        order = [waypoint.id for waypoint in waypoints]
        return OptimizationResult(order=order, algorithm=Algorithm.NEAREST_NEIGHBOR, distance=0.0)

    lookup = {waypoint.id: waypoint for waypoint in waypoints}
    nn_order = nearest_neighbor(waypoints, settings, clock=clock, params=params)
    candidates = [
        (Algorithm.NEAREST_NEIGHBOR, nn_order),
        (Algorithm.TWO_OPT, two_opt(waypoints, settings, clock=clock, params=params, initial_order=nn_order)),
        (
            Algorithm.SIMULATED_ANNEALING,
            simulated_annealing(waypoints, settings, clock=clock, params=params, rng=rng, initial_order=nn_order),
        ),
    ]

    comparison: dict[str, float] = {}
    best_algorithm, best_order = candidates[0]
    best_distance = math.inf
    for algorithm, order in candidates:
        distance = route_distance(order, lookup)
        comparison[algorithm.value] = distance
        logger.info("%s: %.2f mi", algorithm.value, distance)
        if distance < best_distance:
            best_algorithm, best_order, best_distance = algorithm, order, distance

    logger.info("Selected %s with distance %.2f mi", best_algorithm.value, best_distance)
    return OptimizationResult(
        order=list(best_order),
        algorithm=best_algorithm,
        distance=best_distance,
        comparison=comparison,
    )
