import pytest

from db.models import TripRecord
from trip_processor.emissions import TripImpact, calc_trip, round_half_up, summarize_trips


def test_walking_ten_km() -> None:
    assert calc_trip("walk", 10) == TripImpact(co2_gram=0.0, co2_saved_gram=1500.0, points=100)


@pytest.mark.parametrize(
    ("mode", "distance", "co2", "saved", "points"),
    [
        ("bike", 10, 0.0, 1500.0, 80),
        ("bus", 10, 700.0, 800.0, 50),
        ("krl", 10, 700.0, 800.0, 50),
        ("mrt", 10, 650.0, 850.0, 50),
        ("motorcycle", 2, 200.0, 100.0, 0),
        ("car", 10, 1500.0, 0.0, 0),
    ],
)
def test_mode_factors(
    mode: str,
    distance: float,
    co2: float,
    saved: float,
    points: int,
) -> None:
    impact = calc_trip(mode, distance)

    assert impact.co2_gram == pytest.approx(co2)
    assert impact.co2_saved_gram == pytest.approx(saved)
    assert impact.points == points


def test_savings_never_negative_against_cleaner_baseline() -> None:
    impact = calc_trip("car", 4, baseline_mode="bus")

    assert impact.co2_gram == pytest.approx(600.0)
    assert impact.co2_saved_gram == 0.0


def test_zero_distance_earns_nothing() -> None:
    assert calc_trip("walk", 0) == TripImpact(co2_gram=0.0, co2_saved_gram=0.0, points=0)


def test_points_round_half_up() -> None:
    assert calc_trip("bike", 0.0625).points == 1
    assert calc_trip("mrt", 0.1).points == 1
    assert calc_trip("walk", 0.04).points == 0
    assert round_half_up(2.5) == 3


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        calc_trip("rocket", 1)


def test_summarize_trips_sums_each_field() -> None:
    trips = [
        TripRecord(
            user_id="u1",
            date="2024-05-01",
            mode="walk",
            distance_km=2.5,
            duration_min=30,
            co2_gram=0.0,
            co2_saved_gram=375.0,
            points=25,
        ),
        TripRecord(
            user_id="u1",
            date="2024-05-02",
            mode="bus",
            distance_km=10.0,
            duration_min=40,
            co2_gram=700.0,
            co2_saved_gram=800.0,
            points=50,
        ),
    ]

    totals = summarize_trips(trips)

    assert totals.distance_km == pytest.approx(12.5)
    assert totals.co2_gram == pytest.approx(700.0)
    assert totals.co2_saved_gram == pytest.approx(1175.0)
    assert totals.points == 75


def test_summarize_no_trips() -> None:
    totals = summarize_trips([])

    assert totals.points == 0
    assert totals.distance_km == 0.0
