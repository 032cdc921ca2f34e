"""Centralized geometry helpers for distance, rounding, and GeoJSON."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from core.constants import COORDINATE_DECIMALS, COORDINATE_EPSILON


class GeometryService:
    """Authoritative geometry operations for the application."""

    EARTH_RADIUS_KM = 6371.0

    @staticmethod
    def validate_coordinate_pair(
        coord: Sequence[Any],
    ) -> tuple[bool, list[float] | None]:
        """Validate a [lon, lat] coordinate pair."""
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return False, None
        try:
            lon = float(coord[0])
            lat = float(coord[1])
        except (TypeError, ValueError, IndexError):
            return False, None
        if not (-180 <= lon <= 180 and -90 <= lat <= 90):
            return False, None
        return True, [lon, lat]

    @staticmethod
    def haversine_distance(
        lon1: float,
        lat1: float,
        lon2: float,
        lat2: float,
        unit: str = "meters",
    ) -> float:
        """Calculate the great-circle distance using the Haversine formula."""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dphi = math.radians(lat2 - lat1)
        dlmb = math.radians(lon2 - lon1)
        a = (
            math.sin(dphi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
        )
        distance_km = (
            2 * GeometryService.EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
        )
        if unit == "km":
            return distance_km
        if unit == "meters":
            return distance_km * 1000.0
        if unit == "miles":
            return distance_km / 1.609344
        raise ValueError("Invalid unit. Use 'meters', 'miles', or 'km'.")

    @staticmethod
    def point_lon_lat(point: Any) -> tuple[float, float]:
        """Return (lon, lat) for a sample-like object, mapping, or [lon, lat] pair.

        Raises:
            ValueError: If no coordinates can be read from ``point``.
        """
        if hasattr(point, "latitude") and hasattr(point, "longitude"):
            return float(point.longitude), float(point.latitude)
        if isinstance(point, Mapping):
            lat = point.get("lat", point.get("latitude"))
            lon = point.get("lng", point.get("lon", point.get("longitude")))
            if lat is None or lon is None:
                msg = f"Point mapping lacks coordinates: {point!r}"
                raise ValueError(msg)
            return float(lon), float(lat)
        if isinstance(point, (list, tuple)) and len(point) >= 2:
            return float(point[0]), float(point[1])
        msg = f"Unsupported point type: {type(point).__name__}"
        raise ValueError(msg)

    @staticmethod
    def route_distance_km(points: Iterable[Any]) -> float:
        """
        Sum consecutive great-circle distances over an ordered point sequence.

        Accepts samples with ``latitude``/``longitude`` attributes, mappings
        with ``lat``/``lng`` keys, or ``(lon, lat)`` pairs. Zero-length
        segments contribute nothing, so fewer than two points give 0.

        Args:
            points: Ordered points along the route

        Returns:
            Total distance in kilometres
        """
        total = 0.0
        previous: tuple[float, float] | None = None
        for point in points:
            current = GeometryService.point_lon_lat(point)
            if previous is not None:
                total += GeometryService.haversine_distance(
                    previous[0],
                    previous[1],
                    current[0],
                    current[1],
                    unit="km",
                )
            previous = current
        return total

    @staticmethod
    def round_coordinate(
        lon: float,
        lat: float,
        decimals: int = COORDINATE_DECIMALS,
    ) -> tuple[float, float]:
        """Round a coordinate pair to storage precision."""
        return round(float(lon), decimals), round(float(lat), decimals)

    @staticmethod
    def same_coordinate(
        a: Sequence[float],
        b: Sequence[float],
        epsilon: float = COORDINATE_EPSILON,
    ) -> bool:
        """True when both axes differ by less than ``epsilon`` degrees."""
        return abs(a[0] - b[0]) < epsilon and abs(a[1] - b[1]) < epsilon

    @staticmethod
    def interpolate_line(
        start: Sequence[float],
        end: Sequence[float],
        count: int,
    ) -> list[tuple[float, float]]:
        """Return ``count`` evenly spaced points from ``start`` to ``end`` inclusive."""
        if count < 2:
            return [GeometryService.round_coordinate(start[0], start[1])]
        steps = count - 1
        points = []
        for i in range(count):
            frac = i / steps
            lon = start[0] + (end[0] - start[0]) * frac
            lat = start[1] + (end[1] - start[1]) * frac
            points.append(GeometryService.round_coordinate(lon, lat))
        return points

    @staticmethod
    def geometry_from_coordinate_pairs(
        coords: Iterable[Sequence[Any]],
        *,
        allow_point: bool = True,
        validate: bool = True,
    ) -> dict[str, Any] | None:
        """Build a GeoJSON Point/LineString from coordinate pairs."""
        cleaned: list[list[float]] = []
        for coord in coords:
            if validate:
                is_valid, pair = GeometryService.validate_coordinate_pair(coord)
                if not is_valid or pair is None:
                    continue
            else:
                try:
                    pair = [float(coord[0]), float(coord[1])]
                except (TypeError, ValueError, IndexError):
                    continue
            cleaned.append(pair)

        if not cleaned:
            return None
        if len(cleaned) == 1:
            return {"type": "Point", "coordinates": cleaned[0]} if allow_point else None
        return {"type": "LineString", "coordinates": cleaned}

    @staticmethod
    def feature_from_geometry(
        geometry: dict[str, Any] | None,
        properties: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a GeoJSON Feature from geometry and properties."""
        return {
            "type": "Feature",
            "geometry": geometry,
            "properties": properties or {},
        }
