"""Best-effort reverse geocoding for waypoint display addresses."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import httpx

from ...config import settings
from ...models.domain import Waypoint

logger = logging.getLogger(__name__)


def _headers() -> dict[str, str]:
    # Nominatim rejects requests without an identifying user agent.
    return {"User-Agent": settings.geocoder_user_agent}


def coordinate_label(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


async def _fetch_display_name(client: httpx.AsyncClient, lat: float, lng: float) -> str | None:
    response = await client.get(
        f"{settings.geocoder_base_url}/reverse",
        params={"format": "json", "lat": lat, "lon": lng, "addressdetails": 1},
        headers=_headers(),
    )
    response.raise_for_status()
    data = response.json()
    name = data.get("display_name") if isinstance(data, dict) else None
    return name or None


async def reverse_geocode(
    lat: float,
    lng: float,
    *,
    client: httpx.AsyncClient,
    timeout: float | None = None,
) -> str | None:
    """Return a display address for the point, or None on failure or timeout."""

    deadline = timeout if timeout is not None else settings.geocoder_timeout_seconds
    try:
        return await asyncio.wait_for(_fetch_display_name(client, lat, lng), timeout=deadline)
    except asyncio.TimeoutError:
        logger.debug("Reverse geocode timed out for %.6f, %.6f", lat, lng)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Reverse geocode failed for %.6f, %.6f: %s", lat, lng, exc)
    return None


class RequestSpacer:
    """Keeps successive geocoder requests at least ``interval`` seconds apart."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._lock = asyncio.Lock()
        self._last: float | None = None

    async def wait(self) -> None:
        if self.interval <= 0:
            return
        async with self._lock:
            loop = asyncio.get_running_loop()
            if self._last is not None:
                delay = self._last + self.interval - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)
            self._last = loop.time()


async def resolve_addresses(
    waypoints: Sequence[Waypoint],
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
    min_interval: float | None = None,
) -> list[str]:
    """Look up display addresses, falling back to the coordinate label.

    Requests are limited to ``geocoder_max_concurrency`` in flight and spaced
    by ``min_interval`` seconds (``geocoder_min_interval_seconds`` by default).
    The per-lookup deadline does not include the wait for a request slot.
    """

    semaphore = asyncio.Semaphore(settings.geocoder_max_concurrency)
    spacer = RequestSpacer(settings.geocoder_min_interval_seconds if min_interval is None else min_interval)
    owns_client = client is None
    http = client or httpx.AsyncClient()

    async def lookup(waypoint: Waypoint) -> str:
        async with semaphore:
            await spacer.wait()
            address = await reverse_geocode(waypoint.latitude, waypoint.longitude, client=http, timeout=timeout)
        return address or coordinate_label(waypoint.latitude, waypoint.longitude)

    try:
        return list(await asyncio.gather(*(lookup(waypoint) for waypoint in waypoints)))
    finally:
        if owns_client:
            await http.aclose()


def attach_addresses(waypoints: Sequence[Waypoint], *, timeout: float | None = None) -> None:
    """Fill ``waypoint.address`` in place. Never raises for lookup failures."""

    if not waypoints:
        return
    addresses = asyncio.run(resolve_addresses(waypoints, timeout=timeout))
    for waypoint, address in zip(waypoints, addresses):
        waypoint.address = address


def check_health(base_url: str | None = None) -> bool:
    """Check geocoder reachability with a single reverse lookup."""
    base = base_url or settings.geocoder_base_url
    try:
        response = httpx.get(
            f"{base}/reverse",
            params={"format": "json", "lat": 42.3314, "lon": -83.0458},
            headers=_headers(),
            timeout=5.0,
        )
        response.raise_for_status()
        return "display_name" in response.json()
    except httpx.HTTPError:
        return False
    except ValueError:
        return False
