"""Road snapping service for aligning recorded paths to the road network."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import aiohttp

from config import MAX_SEGMENT_POINTS
from core.exceptions import ExternalServiceException
from core.http.osrm import OSRMClient, RoutingLookup
from db.models import RouteGeometry, TravelMode
from geo_service.segments import plan_segments
from geometry_service import GeometryService

logger = logging.getLogger(__name__)

_MODE_PROFILES: dict[TravelMode, str] = {
    TravelMode.WALK: "foot",
    TravelMode.BIKE: "bicycle",
}


def profile_for_mode(mode: TravelMode | str) -> str:
    """Map a travel mode to its routing profile. Unlisted modes drive."""
    return _MODE_PROFILES.get(TravelMode(mode), "driving")


@dataclass(frozen=True)
class SnapResult:
    coordinates: list[tuple[float, float]]
    profile: str
    snapped: bool
    matched_segments: int = 0
    fallback_segments: int = 0

    def to_geometry(self) -> RouteGeometry:
        return RouteGeometry(
            coordinates=tuple(self.coordinates),
            profile=self.profile,
            snapped=self.snapped,
        )


class RoadSnapper:
    """
    Best-effort alignment of a path to roads via per-window route lookups.

    Windows are looked up strictly in order. A failed window is filled by
    straight-line interpolation, so snapping itself never raises for a
    routing failure.
    """

    def __init__(
        self,
        routing_lookup: RoutingLookup | None = None,
        max_window: int = MAX_SEGMENT_POINTS,
    ) -> None:
        self._routing_lookup = routing_lookup
        self.max_window = max_window

    @property
    def routing_lookup(self) -> RoutingLookup:
        if self._routing_lookup is None:
            self._routing_lookup = OSRMClient()
        return self._routing_lookup

    async def snap(
        self,
        coords: Sequence[Any],
        mode: TravelMode | str,
    ) -> SnapResult:
        """
        Snap an ordered path to the road network.

        Args:
            coords: Path points as ``(lon, lat)`` pairs or sample-like objects
            mode: Travel mode, which selects the routing profile

        Returns:
            SnapResult whose coordinates are rounded to 6 decimals. When the
            assembled path has fewer than two points the rounded input is
            returned instead.
        """
        profile = profile_for_mode(mode)
        points = [
            GeometryService.round_coordinate(*GeometryService.point_lon_lat(p))
            for p in coords
        ]
        if len(points) < 2:
            return SnapResult(coordinates=points, profile=profile, snapped=False)

        windows = plan_segments(len(points), self.max_window)
        out: list[tuple[float, float]] = []
        matched = 0
        fallback = 0

        for start, end in windows:
            a = points[start]
            b = points[end]
            try:
                route = await self.routing_lookup.route(a[1], a[0], b[1], b[0], profile)
            except (
                ExternalServiceException,
                aiohttp.ClientError,
                asyncio.TimeoutError,
                ValueError,
            ) as exc:
                fallback += 1
                logger.warning(
                    "Route lookup failed for window %d-%d (%s), interpolating: %s",
                    start,
                    end,
                    profile,
                    exc,
                )
                for pt in GeometryService.interpolate_line(a, b, end - start + 1):
                    if out and GeometryService.same_coordinate(out[-1], pt):
                        continue
                    out.append(pt)
                continue

            matched += 1
            seg = [GeometryService.round_coordinate(lon, lat) for lon, lat in route]
            if out and seg and GeometryService.same_coordinate(out[-1], seg[0]):
                seg = seg[1:]
            out.extend(seg)

        if len(out) < 2:
            logger.info("Snapped path too short (%d points), keeping input", len(out))
            return SnapResult(
                coordinates=points,
                profile=profile,
                snapped=False,
                matched_segments=matched,
                fallback_segments=fallback,
            )

        snapped = matched > 0 and out != points
        logger.debug(
            "Snapped %d points into %d (%d matched, %d interpolated windows)",
            len(points),
            len(out),
            matched,
            fallback,
        )
        return SnapResult(
            coordinates=out,
            profile=profile,
            snapped=snapped,
            matched_segments=matched,
            fallback_segments=fallback,
        )

    async def resnap_geometry(
        self,
        geometry: RouteGeometry,
        mode: TravelMode | str,
    ) -> RouteGeometry:
        """Return a display copy of an unsnapped stored route, snapped again.

        Already-snapped geometries are returned unchanged.
        """
        if geometry.snapped:
            return geometry
        result = await self.snap(geometry.coordinates, mode)
        if not result.snapped:
            return geometry
        return result.to_geometry()
