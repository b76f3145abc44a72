"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_geocoder_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.geocoding import check_health as geocoder_health_check
    return geocoder_health_check


@router.get("/health/geocoder", status_code=status.HTTP_200_OK)
def health_geocoder() -> dict:
    """Check reverse geocoding service health."""
    try:
        geocoder_health_check = _get_geocoder_health_check()
        return {"service": "geocoder", "healthy": geocoder_health_check()}
    except Exception as e:
        return {"service": "geocoder", "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def health_database() -> dict:
    """Report whether the Supabase client could be created."""
    from ...db.supabase import get_supabase_client

    return {"service": "database", "configured": get_supabase_client() is not None}
