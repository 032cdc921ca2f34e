"""Location sample sources and the location permission check."""

from tracking.permissions import (
    OnceResolver,
    PermissionResult,
    check_location_permission,
)
from tracking.sample_source import (
    PositionError,
    PushSampleSource,
    SampleSource,
    Subscription,
)

__all__ = [
    "OnceResolver",
    "PermissionResult",
    "PositionError",
    "PushSampleSource",
    "SampleSource",
    "Subscription",
    "check_location_permission",
]
