"""
Geo Service Package.

Segment planning and road snapping against the OSRM routing service.
"""

from .map_matching import RoadSnapper, SnapResult, profile_for_mode
from .segments import plan_segments, segment_step

__all__ = [
    "RoadSnapper",
    "SnapResult",
    "plan_segments",
    "profile_for_mode",
    "segment_step",
]
