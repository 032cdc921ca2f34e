"""
Trip Processor Package.

Turns a raw capture into a stored trip:
- Glitch rejection and smoothing
- Speed analysis
- Emission and reward points
- Recording state machine and recorder

Usage:
    from trip_processor import TripRecorder

    recorder = TripRecorder("user-1", store, sample_source)
    await recorder.start("walk")
    record = await recorder.stop()
"""

from trip_processor.emissions import TripImpact, calc_trip, summarize_trips
from trip_processor.filtering import filter_and_smooth, reject_glitches, smooth_path
from trip_processor.recorder import TripRecorder
from trip_processor.speed import is_suspicious, max_speed_kmh
from trip_processor.state import RecordingState, RecordingStateMachine

__all__ = [
    "RecordingState",
    "RecordingStateMachine",
    "TripImpact",
    # Main recorder
    "TripRecorder",
    "calc_trip",
    "filter_and_smooth",
    "is_suspicious",
    "max_speed_kmh",
    "reject_glitches",
    "smooth_path",
    "summarize_trips",
]
