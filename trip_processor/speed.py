"""
Trip Speed Analysis Module.

Computes the maximum instantaneous speed over a filtered path and flags
trips whose peak speed exceeds the advisory threshold. A flagged trip is
only tagged, never rejected.
"""

from collections.abc import Sequence

from config import SUSPICIOUS_SPEED_KMH
from core.constants import MS_PER_SECOND
from db.models import LocationSample
from geometry_service import GeometryService


def max_speed_kmh(samples: Sequence[LocationSample]) -> float:
    """
    Return the highest speed between consecutive samples, in km/h.

    Elapsed time is floored at one second so duplicate or near-duplicate
    timestamps cannot blow up the estimate.
    """
    fastest = 0.0
    for prev, curr in zip(samples, samples[1:]):
        dist_km = GeometryService.haversine_distance(
            prev.longitude,
            prev.latitude,
            curr.longitude,
            curr.latitude,
            unit="km",
        )
        elapsed_s = max(1.0, (curr.timestamp - prev.timestamp) / MS_PER_SECOND)
        speed = dist_km / (elapsed_s / 3600.0)
        if speed > fastest:
            fastest = speed
    return fastest


def is_suspicious(speed_kmh: float, threshold_kmh: float = SUSPICIOUS_SPEED_KMH) -> bool:
    """True when ``speed_kmh`` is strictly above the threshold."""
    return speed_kmh > threshold_kmh
