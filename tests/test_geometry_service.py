import math

import pytest

from db.models import LocationSample
from geometry_service import GeometryService

KM_PER_DEGREE = GeometryService.EARTH_RADIUS_KM * math.pi / 180


def test_haversine_one_degree_of_latitude() -> None:
    km = GeometryService.haversine_distance(0.0, 0.0, 0.0, 1.0, unit="km")
    meters = GeometryService.haversine_distance(0.0, 0.0, 0.0, 1.0)

    assert km == pytest.approx(KM_PER_DEGREE)
    assert meters == pytest.approx(KM_PER_DEGREE * 1000)


def test_haversine_rejects_unknown_unit() -> None:
    with pytest.raises(ValueError, match="Invalid unit"):
        GeometryService.haversine_distance(0, 0, 1, 1, unit="furlongs")


def test_route_distance_zero_for_short_paths() -> None:
    assert GeometryService.route_distance_km([]) == 0
    assert GeometryService.route_distance_km([(106.8, -6.2)]) == 0


def test_route_distance_sums_consecutive_pairs() -> None:
    path = [(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)]

    assert GeometryService.route_distance_km(path) == pytest.approx(2 * KM_PER_DEGREE)


def test_route_distance_ignores_repeated_points() -> None:
    path = [(0.0, 0.0), (0.0, 0.0), (0.0, 1.0), (0.0, 1.0)]

    assert GeometryService.route_distance_km(path) == pytest.approx(KM_PER_DEGREE)


def test_route_distance_is_symmetric() -> None:
    path = [(106.8, -6.2), (106.81, -6.21), (106.83, -6.19)]

    forward = GeometryService.route_distance_km(path)
    backward = GeometryService.route_distance_km(list(reversed(path)))

    assert forward == pytest.approx(backward)
    assert forward >= 0


def test_route_distance_accepts_samples_and_mappings() -> None:
    samples = [
        LocationSample(latitude=0.0, longitude=0.0, timestamp=0),
        LocationSample(latitude=1.0, longitude=0.0, timestamp=1000),
    ]
    mappings = [{"lat": 0.0, "lng": 0.0}, {"lat": 1.0, "lng": 0.0}]

    assert GeometryService.route_distance_km(samples) == pytest.approx(KM_PER_DEGREE)
    assert GeometryService.route_distance_km(mappings) == pytest.approx(KM_PER_DEGREE)


def test_point_lon_lat_rejects_unknown_shapes() -> None:
    with pytest.raises(ValueError):
        GeometryService.point_lon_lat({"x": 1})
    with pytest.raises(ValueError):
        GeometryService.point_lon_lat(42)


def test_interpolate_line_emits_requested_count() -> None:
    points = GeometryService.interpolate_line((0.0, 0.0), (1.0, 2.0), 5)

    assert len(points) == 5
    assert points[0] == (0.0, 0.0)
    assert points[2] == (0.5, 1.0)
    assert points[-1] == (1.0, 2.0)


def test_round_and_compare_coordinates() -> None:
    rounded = GeometryService.round_coordinate(106.123456789, -6.987654321)

    assert rounded == (106.123457, -6.987654)
    assert GeometryService.same_coordinate(rounded, (106.1234574, -6.9876544))
    assert not GeometryService.same_coordinate(rounded, (106.123459, -6.987654))


def test_geometry_from_coordinate_pairs_linestring() -> None:
    geometry = GeometryService.geometry_from_coordinate_pairs([(0, 0), (1, 1), (999, 0)])

    assert geometry == {"type": "LineString", "coordinates": [[0.0, 0.0], [1.0, 1.0]]}
