"""Route optimization endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from ...schemas.routing import (
    ApplyOrderRequest,
    ApplyOrderResponse,
    DebugVisitsResponse,
    RouteOptimizationRequest,
    RouteOptimizationResponse,
    ScheduleRequest,
    ScheduleResponse,
)
from ...services.routing import service as routing_service

router = APIRouter(prefix="/route-optimization", tags=["route-optimization"])
logger = logging.getLogger(__name__)


@router.post("/routes", response_model=RouteOptimizationResponse, status_code=status.HTTP_200_OK)
def optimize(payload: RouteOptimizationRequest) -> RouteOptimizationResponse:
    try:
        return routing_service.optimize_routes(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error optimizing routes: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize routes: {str(exc)}"
        ) from exc


@router.post("/apply", response_model=ApplyOrderResponse, status_code=status.HTTP_200_OK)
def apply_order(payload: ApplyOrderRequest) -> ApplyOrderResponse:
    """Write the optimized visit order back as scheduled times."""
    try:
        return routing_service.apply_optimized_order(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error applying optimized route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to apply optimized route: {str(exc)}"
        ) from exc


@router.post("/schedule", response_model=ScheduleResponse, status_code=status.HTTP_200_OK)
def schedule(payload: ScheduleRequest) -> ScheduleResponse:
    """Pack the visits into the staff member's working hours around existing commitments."""
    try:
        return routing_service.schedule_visits(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error optimizing schedule: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize schedule: {str(exc)}"
        ) from exc


@router.get("/debug-visits", response_model=DebugVisitsResponse, status_code=status.HTTP_200_OK)
def debug_visits(
    staff_id: Optional[str] = Query(default=None, description="Staff member to inspect"),
    staff_name: Optional[str] = Query(default=None, description="Case-insensitive partial staff name"),
) -> DebugVisitsResponse:
    """List staff visits and whether each would be routed."""
    try:
        return routing_service.debug_visits(staff_id=staff_id, staff_name=staff_name)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error inspecting visits: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to inspect visits: {str(exc)}"
        ) from exc
