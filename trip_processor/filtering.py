"""
Trip Sample Filtering Module.

Removes physically implausible GPS fixes and smooths the remaining path
with a 3-point moving average. Every function returns a new list and leaves
the raw capture untouched.
"""

import logging
from collections.abc import Sequence

from config import GLITCH_DISTANCE_METERS, GLITCH_SPEED_KMH
from core.constants import MS_PER_SECOND
from db.models import LocationSample
from geometry_service import GeometryService

logger = logging.getLogger(__name__)


def _distance_m(a: LocationSample, b: LocationSample) -> float:
    return GeometryService.haversine_distance(
        a.longitude,
        a.latitude,
        b.longitude,
        b.latitude,
        unit="meters",
    )


def reject_glitches(
    samples: Sequence[LocationSample],
    *,
    max_jump_m: float = GLITCH_DISTANCE_METERS,
    max_speed_kmh: float = GLITCH_SPEED_KMH,
) -> list[LocationSample]:
    """
    Drop samples that jump implausibly far from the last retained sample.

    A sample is rejected only when it is more than ``max_jump_m`` away AND
    the implied speed exceeds ``max_speed_kmh``. Rejected samples never
    become the reference for the next comparison. Repeated positions are
    kept so stationary dwell time survives.
    """
    retained: list[LocationSample] = []
    rejected = 0
    for sample in samples:
        if not retained:
            retained.append(sample)
            continue
        last = retained[-1]
        dist_m = _distance_m(last, sample)
        elapsed_s = max(1.0, (sample.timestamp - last.timestamp) / MS_PER_SECOND)
        speed_kmh = (dist_m / 1000.0) / (elapsed_s / 3600.0)
        if dist_m > max_jump_m and speed_kmh > max_speed_kmh:
            rejected += 1
            continue
        retained.append(sample)

    if rejected:
        logger.debug("Rejected %d glitch samples of %d", rejected, len(samples))
    return retained


def smooth_path(samples: Sequence[LocationSample]) -> list[LocationSample]:
    """
    Apply a 3-point moving average to latitude and longitude.

    The window is clamped at both ends by reusing the edge sample. Each
    output keeps the timestamp of its center sample. Paths shorter than
    three samples are returned unsmoothed.
    """
    count = len(samples)
    if count < 3:
        return list(samples)

    smoothed: list[LocationSample] = []
    for i, center in enumerate(samples):
        window = (samples[max(0, i - 1)], center, samples[min(count - 1, i + 1)])
        smoothed.append(
            LocationSample(
                latitude=sum(s.latitude for s in window) / 3,
                longitude=sum(s.longitude for s in window) / 3,
                timestamp=center.timestamp,
            ),
        )
    return smoothed


def filter_and_smooth(samples: Sequence[LocationSample]) -> list[LocationSample]:
    """
    Reject glitch samples, then smooth what remains.

    Args:
        samples: Raw, time-ordered capture

    Returns:
        New filtered path; inputs shorter than two samples are copied as-is
    """
    if len(samples) < 2:
        return list(samples)
    return smooth_path(reject_glitches(samples))
