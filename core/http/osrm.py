"""
OSRM HTTP client utilities.

Wraps the OSRM ``route`` service used to align short path windows to the
road network. Each call routes between exactly two points.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import aiohttp

from config import OSRM_MAX_RETRIES, OSRM_REQUEST_TIMEOUT, require_osrm_base_url
from core.exceptions import ExternalServiceException, RoutingLookupError
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import get_session
from geometry_service import GeometryService

logger = logging.getLogger(__name__)

OSRM_PROFILES = frozenset({"foot", "bicycle", "driving"})


class RoutingLookup(Protocol):
    """Two-point route lookup returning ``(lon, lat)`` pairs."""

    async def route(
        self,
        origin_lat: float,
        origin_lng: float,
        dest_lat: float,
        dest_lng: float,
        profile: str,
    ) -> list[tuple[float, float]]: ...


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = OSRM_REQUEST_TIMEOUT,
        max_retries: int = OSRM_MAX_RETRIES,
        retry_delay: float = 0.5,
    ) -> None:
        self._base_url = (base_url or require_osrm_base_url()).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._fetch = retry_async(max_retries=max_retries, retry_delay=retry_delay)(
            self._request_route,
        )

    def route_url(
        self,
        origin_lat: float,
        origin_lng: float,
        dest_lat: float,
        dest_lng: float,
        profile: str,
    ) -> str:
        return (
            f"{self._base_url}/route/v1/{profile}/"
            f"{origin_lng},{origin_lat};{dest_lng},{dest_lat}"
        )

    async def route(
        self,
        origin_lat: float,
        origin_lng: float,
        dest_lat: float,
        dest_lng: float,
        profile: str = "driving",
    ) -> list[tuple[float, float]]:
        """
        Route between two points and return the path geometry.

        Raises:
            RoutingLookupError: On transport failure, non-OK status, or a
                response without usable geometry.
        """
        if profile not in OSRM_PROFILES:
            msg = f"Unsupported OSRM profile: {profile}"
            raise RoutingLookupError(msg, {"profile": profile})

        url = self.route_url(origin_lat, origin_lng, dest_lat, dest_lng, profile)
        try:
            data = await self._fetch(url)
        except RoutingLookupError:
            raise
        except ExternalServiceException as exc:
            raise RoutingLookupError(exc.message, exc.details) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            msg = f"OSRM route request failed: {exc!s}"
            raise RoutingLookupError(msg, {"url": url}) from exc

        return self._extract_route_coordinates(data, url)

    async def _request_route(self, url: str) -> Any:
        session = await get_session()
        return await request_json(
            "GET",
            url,
            session=session,
            params={"overview": "full", "geometries": "geojson"},
            service_name="OSRM route",
            timeout=self._timeout,
        )

    @staticmethod
    def _extract_route_coordinates(
        data: Any,
        url: str,
    ) -> list[tuple[float, float]]:
        if not isinstance(data, dict):
            msg = "OSRM route error: unexpected response"
            raise RoutingLookupError(msg, {"url": url})
        if data.get("code") != "Ok":
            msg = f"OSRM route error: {data.get('code') or 'missing code'}"
            raise RoutingLookupError(
                msg,
                {"url": url, "message": data.get("message")},
            )

        routes = data.get("routes")
        if not isinstance(routes, list) or not routes:
            msg = "OSRM route error: no routes returned"
            raise RoutingLookupError(msg, {"url": url})
        geometry = routes[0].get("geometry") if isinstance(routes[0], dict) else None
        raw_coords = geometry.get("coordinates") if isinstance(geometry, dict) else None
        if not isinstance(raw_coords, list):
            msg = "OSRM route error: missing geometry"
            raise RoutingLookupError(msg, {"url": url})

        coords: list[tuple[float, float]] = []
        for item in raw_coords:
            is_valid, pair = GeometryService.validate_coordinate_pair(item)
            if not is_valid or pair is None:
                continue
            coords.append((pair[0], pair[1]))
        if not coords:
            msg = "OSRM route error: empty geometry"
            raise RoutingLookupError(msg, {"url": url})
        return coords
