"""Segment planning for routing lookups.

Long paths are split into bounded windows so each routing request only
carries a start and end point a short distance apart. Consecutive windows
share exactly one point, which lets the snapper stitch results without gaps
or duplicates.
"""

from __future__ import annotations

import math

from config import MAX_SEGMENT_POINTS


def segment_step(point_count: int, max_window: int = MAX_SEGMENT_POINTS) -> int:
    """Return the index stride between window starts."""
    if max_window < 2:
        msg = f"max_window must be at least 2, got {max_window}"
        raise ValueError(msg)
    if point_count < 2:
        return 2
    return max(2, point_count // math.ceil(point_count / max_window))


def plan_segments(
    point_count: int,
    max_window: int = MAX_SEGMENT_POINTS,
) -> list[tuple[int, int]]:
    """
    Partition ``point_count`` points into overlapping index windows.

    Args:
        point_count: Number of points in the path
        max_window: Maximum number of points per window

    Returns:
        Inclusive ``(start, end)`` index pairs. Each window's end equals the
        next window's start, and the last window ends on the final point.

    Example:
        >>> plan_segments(25)
        [(0, 8), (8, 16), (16, 24)]
    """
    step = segment_step(point_count, max_window)
    if point_count < 2:
        return []

    windows: list[tuple[int, int]] = []
    start = 0
    last = point_count - 1
    while start < last:
        end = min(last, start + step)
        windows.append((start, end))
        start += step
    return windows
