"""
Trip Emission and Points Module.

Pure functions over the per-mode emission and reward tables. Applied to
every finalized trip, whether GPS-recorded or entered manually.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from config import (
    CO2_FACTORS_G_PER_KM,
    DEFAULT_BASELINE_FACTOR_G_PER_KM,
    DEFAULT_BASELINE_MODE,
    POINTS_PER_KM,
)
from db.models import TravelMode, TripRecord, TripTotals


@dataclass(frozen=True)
class TripImpact:
    co2_gram: float
    co2_saved_gram: float
    points: int


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves rounded up."""
    return int(math.floor(value + 0.5))


def calc_trip(
    mode: TravelMode | str,
    distance_km: float,
    baseline_mode: TravelMode | str = DEFAULT_BASELINE_MODE,
) -> TripImpact:
    """
    Compute emissions, savings against the baseline mode, and reward points.

    Args:
        mode: Declared travel mode
        distance_km: Trip distance in kilometres
        baseline_mode: Mode the trip is compared against (car by default)

    Returns:
        TripImpact with grams of CO2 emitted and saved, and points earned

    Example:
        >>> calc_trip("walk", 10)
        TripImpact(co2_gram=0.0, co2_saved_gram=1500.0, points=100)
    """
    mode_key = TravelMode(mode).value
    baseline_key = TravelMode(baseline_mode).value
    distance = max(0.0, float(distance_km or 0.0))

    co2_gram = distance * CO2_FACTORS_G_PER_KM.get(mode_key, 0.0)
    baseline_gram = distance * CO2_FACTORS_G_PER_KM.get(
        baseline_key,
        DEFAULT_BASELINE_FACTOR_G_PER_KM,
    )
    return TripImpact(
        co2_gram=co2_gram,
        co2_saved_gram=max(0.0, baseline_gram - co2_gram),
        points=round_half_up(distance * POINTS_PER_KM.get(mode_key, 0.0)),
    )


def summarize_trips(trips: Iterable[TripRecord]) -> TripTotals:
    """Sum distance, emissions, savings, and points over ``trips``."""
    totals = TripTotals()
    for trip in trips:
        totals = TripTotals(
            distance_km=totals.distance_km + trip.distance_km,
            co2_gram=totals.co2_gram + trip.co2_gram,
            co2_saved_gram=totals.co2_saved_gram + trip.co2_saved_gram,
            points=totals.points + trip.points,
        )
    return totals
