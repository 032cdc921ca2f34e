"""
Trip Recorder Module.

Coordinates a single user's capture session: evidence gating, permission
check, sample collection, and finalization into a stored TripRecord.
Manual trip entry shares the emission and storage path but never touches
the capture session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from config import MIN_AUTO_SAVE_METERS
from core.constants import METERS_PER_KM, MS_PER_MINUTE
from core.exceptions import (
    CaptureError,
    EvidenceRequiredError,
    LocationPermissionError,
    RecordingStateError,
    ValidationError,
)
from date_utils import current_epoch_ms, epoch_ms_to_datetime, today_iso
from db.models import EvidenceRef, LocationSample, TravelMode, TripRecord
from geo_service.map_matching import RoadSnapper
from geometry_service import GeometryService
from tracking.permissions import check_location_permission
from trip_processor.emissions import calc_trip, round_half_up
from trip_processor.filtering import filter_and_smooth
from trip_processor.speed import is_suspicious, max_speed_kmh
from trip_processor.state import RecordingState, RecordingStateMachine

if TYPE_CHECKING:
    from tracking.sample_source import SampleSource, Subscription
    from trip_repository import TripStore

logger = logging.getLogger(__name__)

GPS_NOTE = "Recorded via GPS"
MANUAL_NOTE = "Manual input"


def _parse_mode(mode: TravelMode | str) -> TravelMode:
    try:
        return TravelMode(mode)
    except ValueError as e:
        msg = f"Unknown travel mode: {mode}"
        raise ValidationError(msg, {"mode": str(mode)}) from e


def duration_minutes(elapsed_ms: float) -> int:
    """Whole minutes for an elapsed time, never less than one."""
    return max(1, round_half_up(max(0.0, elapsed_ms) / MS_PER_MINUTE))


class TripRecorder:
    """
    Records GPS trips for one user.

    Uses a state machine to track the session and delegates snapping,
    speed analysis and persistence to injected collaborators.
    """

    def __init__(
        self,
        user_id: str,
        store: TripStore,
        sample_source: SampleSource | None = None,
        snapper: RoadSnapper | None = None,
        clock: Callable[[], int] = current_epoch_ms,
        min_save_meters: float = MIN_AUTO_SAVE_METERS,
    ) -> None:
        """
        Initialize the recorder.

        Args:
            user_id: Owner of every trip this recorder produces
            store: User-scoped trip store
            sample_source: Location provider, or None when the device has none
            snapper: Optional road snapper (for testing/DI)
            clock: Returns the current time in epoch milliseconds
            min_save_meters: Shortest filtered distance that is kept
        """
        self.user_id = user_id
        self.store = store
        self.sample_source = sample_source
        self._snapper = snapper
        self._clock = clock
        self.min_save_meters = min_save_meters

        self._state_machine = RecordingStateMachine()
        self._path: list[LocationSample] = []
        self._mode: TravelMode | None = None
        self._started_at: int | None = None
        self._stopped_at: int | None = None
        self._subscription: Subscription | None = None
        self._pending_record: TripRecord | None = None
        self._stop_lock = asyncio.Lock()
        self.pending_evidence: EvidenceRef | None = None
        self.capture_errors: list[str] = []
        self.last_trip: TripRecord | None = None

    @property
    def state(self) -> RecordingState:
        return self._state_machine.state

    @property
    def path(self) -> list[LocationSample]:
        """Copy of the raw samples captured so far."""
        return list(self._path)

    @property
    def snapper(self) -> RoadSnapper:
        """Lazy-initialize the road snapper."""
        if self._snapper is None:
            self._snapper = RoadSnapper()
        return self._snapper

    def attach_evidence(self, evidence: EvidenceRef) -> None:
        self.pending_evidence = evidence

    def clear_pending_evidence(self) -> None:
        self.pending_evidence = None

    async def start(self, mode: TravelMode | str) -> None:
        """
        Begin a capture session.

        Raises:
            RecordingStateError: If a session is already capturing or awaiting
                a finalization retry
            EvidenceRequiredError: If no evidence is attached
            LocationPermissionError: If location access is not available
        """
        if self.state in (RecordingState.CAPTURING, RecordingState.STOPPING):
            msg = f"Recording already in progress ({self.state.value})"
            raise RecordingStateError(msg, {"state": self.state.value})

        travel_mode = _parse_mode(mode)
        if self.pending_evidence is None:
            msg = "Attach a photo or video before starting GPS recording"
            raise EvidenceRequiredError(msg)

        permission = await check_location_permission(self.sample_source)
        if not permission.ok:
            raise LocationPermissionError(
                permission.reason or "Location unavailable",
                code=permission.code or "denied",
            )

        if self._state_machine.is_terminal():
            self._state_machine.reset()

        self._state_machine.transition(RecordingState.CAPTURING)
        self._path = []
        self.capture_errors = []
        self._mode = travel_mode
        self._started_at = self._clock()
        self._stopped_at = None
        self._pending_record = None
        self._subscription = self.sample_source.subscribe(
            self.add_sample,
            self._on_capture_error,
        )
        logger.info("Started %s recording for user %s", travel_mode.value, self.user_id)

    def add_sample(self, sample: LocationSample) -> bool:
        """Append a sample while capturing. Returns False when ignored."""
        if self.state != RecordingState.CAPTURING:
            logger.debug(
                "Ignoring sample for user %s in state %s",
                self.user_id,
                self.state.value,
            )
            return False
        self._path.append(sample)
        return True

    def _on_capture_error(self, error: CaptureError) -> None:
        self.capture_errors.append(error.message)
        self._state_machine.record_error(error.message)
        logger.warning("Capture error for user %s: %s", self.user_id, error.message)

    async def stop(self) -> TripRecord | None:
        """
        Stop capturing and finalize the session.

        Overlapping calls run one at a time. A call that arrives while another
        is finalizing waits for it and then finds no active session.

        Returns:
            The stored TripRecord, or None when the trip was too short or no
            session was active

        Raises:
            Whatever the store raises on append. The session then stays in
            STOPPING with its samples intact, and calling ``stop`` again
            retries the append.
        """
        async with self._stop_lock:
            return await self._finalize()

    async def _finalize(self) -> TripRecord | None:
        if self.state not in (RecordingState.CAPTURING, RecordingState.STOPPING):
            logger.info(
                "Stop requested for user %s with no active recording (%s)",
                self.user_id,
                self.state.value,
            )
            return None

        if self.state == RecordingState.CAPTURING:
            if self._subscription is not None:
                self._subscription.cancel()
                self._subscription = None
            self._stopped_at = self._clock()
            self._state_machine.transition(RecordingState.STOPPING)

        record = self._pending_record
        if record is None:
            filtered = filter_and_smooth(self._path)
            distance_km = GeometryService.route_distance_km(filtered)
            if distance_km * METERS_PER_KM < self.min_save_meters:
                logger.info(
                    "Discarding %.1f m trip for user %s (%d samples)",
                    distance_km * METERS_PER_KM,
                    self.user_id,
                    len(self._path),
                )
                self._finish(RecordingState.DISCARDED)
                return None
            record = await self._build_record(filtered, distance_km)
            self._pending_record = record

        try:
            await self.store.append(self.user_id, record)
        except Exception as e:
            self._state_machine.record_error(f"Store append failed: {e!s}")
            logger.exception("Failed to store trip %s for user %s", record.id, self.user_id)
            raise

        self.last_trip = record
        self._finish(RecordingState.FINALIZED)
        logger.info(
            "Finalized trip %s for user %s: %.3f km, %d pts",
            record.id,
            self.user_id,
            record.distance_km,
            record.points,
        )
        return record

    async def _build_record(
        self,
        filtered: list[LocationSample],
        distance_km: float,
    ) -> TripRecord:
        mode = self._mode or TravelMode.WALK
        snap = await self.snapper.snap([s.waypoint() for s in filtered], mode)
        speed = round(max_speed_kmh(filtered), 2)
        distance = round(distance_km, 3)
        impact = calc_trip(mode, distance)
        started_at = self._started_at if self._started_at is not None else 0
        stopped_at = self._stopped_at if self._stopped_at is not None else started_at
        return TripRecord(
            user_id=self.user_id,
            date=today_iso(epoch_ms_to_datetime(started_at)),
            mode=mode,
            distance_km=distance,
            duration_min=duration_minutes(stopped_at - started_at),
            route=snap.to_geometry(),
            max_speed_kmh=speed,
            suspicious=is_suspicious(speed),
            evidence=self.pending_evidence,
            note=GPS_NOTE,
            source="gps",
            co2_gram=impact.co2_gram,
            co2_saved_gram=impact.co2_saved_gram,
            points=impact.points,
        )

    def _finish(self, state: RecordingState) -> None:
        self._state_machine.transition(state)
        self._path = []
        self._pending_record = None
        self.pending_evidence = None

    async def record_manual(
        self,
        mode: TravelMode | str,
        distance_km: float,
        duration_min: float,
        evidence: EvidenceRef | None = None,
        note: str = MANUAL_NOTE,
    ) -> TripRecord:
        """
        Store a manually entered trip.

        Manual trips carry no route and skip speed analysis.

        Raises:
            ValidationError: On an unknown mode, negative distance, or a
                duration under one minute after rounding
        """
        travel_mode = _parse_mode(mode)
        try:
            distance = float(distance_km)
            minutes = round_half_up(float(duration_min))
        except (TypeError, ValueError) as e:
            msg = "Distance and duration must be numbers"
            raise ValidationError(msg) from e
        if distance < 0:
            msg = "Distance cannot be negative"
            raise ValidationError(msg, {"distance_km": distance})
        if minutes < 1:
            msg = "Duration must be at least one minute"
            raise ValidationError(msg, {"duration_min": duration_min})

        distance = round(distance, 3)
        impact = calc_trip(travel_mode, distance)
        record = TripRecord(
            user_id=self.user_id,
            date=today_iso(epoch_ms_to_datetime(self._clock())),
            mode=travel_mode,
            distance_km=distance,
            duration_min=minutes,
            evidence=evidence,
            note=note,
            source="manual",
            co2_gram=impact.co2_gram,
            co2_saved_gram=impact.co2_saved_gram,
            points=impact.points,
        )
        await self.store.append(self.user_id, record)
        logger.info("Stored manual trip %s for user %s", record.id, self.user_id)
        return record

    def status(self) -> dict[str, Any]:
        """Current session status for display."""
        status = self._state_machine.get_status(self.user_id)
        status.update(
            {
                "mode": self._mode.value if self._mode else None,
                "sample_count": len(self._path),
                "started_at": self._started_at,
                "has_pending_evidence": self.pending_evidence is not None,
                "capture_errors": list(self.capture_errors),
                "last_trip_id": self.last_trip.id if self.last_trip else None,
            },
        )
        return status
