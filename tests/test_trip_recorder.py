from __future__ import annotations

import asyncio
import math

import pytest

from core.exceptions import (
    EvidenceRequiredError,
    LocationPermissionError,
    RecordingStateError,
    RoutingLookupError,
    TripStoreError,
    ValidationError,
)
from db.models import EvidenceRef, LocationSample, TravelMode
from geo_service.map_matching import RoadSnapper
from geometry_service import GeometryService
from tracking.sample_source import PushSampleSource
from trip_processor.recorder import MANUAL_NOTE, TripRecorder, duration_minutes
from trip_processor.state import RecordingState
from trip_repository import InMemoryTripStore

START_MS = 1_700_000_000_000  # 2023-11-14T22:13:20Z
DEGREES_PER_METER = 180 / (math.pi * GeometryService.EARTH_RADIUS_KM * 1000)


class FakeClock:
    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class NoRouteLookup:
    async def route(self, origin_lat, origin_lng, dest_lat, dest_lng, profile):
        raise RoutingLookupError("offline")


class SlowNoRouteLookup:
    def __init__(self) -> None:
        self.calls = 0

    async def route(self, origin_lat, origin_lng, dest_lat, dest_lng, profile):
        self.calls += 1
        await asyncio.sleep(0.05)
        raise RoutingLookupError("offline")


class FlakyStore(InMemoryTripStore):
    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def append(self, user_id, record):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise TripStoreError("database unavailable")
        return await super().append(user_id, record)


def _sample_north_of(meters: float, t_ms: int) -> LocationSample:
    return LocationSample(
        latitude=-6.2 + meters * DEGREES_PER_METER,
        longitude=106.8,
        timestamp=t_ms,
    )


def _make_recorder(store=None, source=None, clock=None) -> TripRecorder:
    return TripRecorder(
        "u1",
        store if store is not None else InMemoryTripStore(),
        sample_source=source if source is not None else PushSampleSource(),
        snapper=RoadSnapper(NoRouteLookup()),
        clock=clock or FakeClock(),
    )


async def _record(recorder: TripRecorder, meters: float, elapsed_ms: int = 10_000):
    source = recorder.sample_source
    recorder.attach_evidence(EvidenceRef(evidence_id="photo-1", content_type="image/jpeg"))
    await recorder.start("walk")
    source.push(_sample_north_of(0, START_MS))
    source.push(_sample_north_of(meters, START_MS + elapsed_ms))
    recorder._clock.now = START_MS + elapsed_ms
    return await recorder.stop()


@pytest.mark.asyncio
async def test_start_requires_evidence() -> None:
    recorder = _make_recorder()

    with pytest.raises(EvidenceRequiredError):
        await recorder.start("walk")

    assert recorder.state is RecordingState.IDLE


@pytest.mark.asyncio
async def test_start_without_location_support_stays_idle() -> None:
    recorder = TripRecorder("u1", InMemoryTripStore(), sample_source=None)
    recorder.attach_evidence(EvidenceRef(evidence_id="e1"))

    with pytest.raises(LocationPermissionError) as raised:
        await recorder.start("bike")

    assert raised.value.code == "unsupported"
    assert "does not support location" in raised.value.message
    assert recorder.state is RecordingState.IDLE


@pytest.mark.asyncio
async def test_start_with_denied_permission() -> None:
    recorder = _make_recorder(source=PushSampleSource(supported=True))

    async def denied() -> str:
        return "denied"

    recorder.sample_source.permission_state = denied
    recorder.attach_evidence(EvidenceRef(evidence_id="e1"))

    with pytest.raises(LocationPermissionError) as raised:
        await recorder.start("walk")

    assert raised.value.code == "denied"
    assert recorder.state is RecordingState.IDLE
    assert recorder.sample_source.subscriber_count == 0


@pytest.mark.asyncio
async def test_start_rejects_unknown_mode() -> None:
    recorder = _make_recorder()
    recorder.attach_evidence(EvidenceRef(evidence_id="e1"))

    with pytest.raises(ValidationError):
        await recorder.start("rocket")


@pytest.mark.asyncio
@pytest.mark.parametrize("meters", [30.0, 30.5])
async def test_trip_at_or_over_threshold_is_finalized(meters: float) -> None:
    store = InMemoryTripStore()
    recorder = _make_recorder(store=store)

    record = await _record(recorder, meters)

    assert record is not None
    assert recorder.state is RecordingState.FINALIZED
    assert record.distance_km == pytest.approx(meters / 1000, abs=0.001)
    assert record.source == "gps"
    assert record.mode is TravelMode.WALK
    assert record.evidence.evidence_id == "photo-1"
    assert record.route is not None
    assert record.route.snapped is False
    assert len(record.route.coordinates) == 2
    assert record.route.profile == "foot"
    assert record.suspicious is False
    assert record.date == "2023-11-14"
    assert await store.list_trips("u1") == [record]
    assert recorder.pending_evidence is None
    assert recorder.path == []


@pytest.mark.asyncio
async def test_trip_under_threshold_is_discarded() -> None:
    store = InMemoryTripStore()
    recorder = _make_recorder(store=store)

    record = await _record(recorder, 29.0)

    assert record is None
    assert recorder.state is RecordingState.DISCARDED
    assert await store.list_trips("u1") == []
    assert recorder.pending_evidence is None
    assert recorder.path == []


@pytest.mark.asyncio
async def test_fast_trip_is_flagged_not_rejected() -> None:
    recorder = _make_recorder()

    record = await _record(recorder, 100.0, elapsed_ms=1000)

    assert record is not None
    assert record.max_speed_kmh == pytest.approx(360.0, abs=0.5)
    assert record.suspicious is True


@pytest.mark.asyncio
async def test_duration_comes_from_clock() -> None:
    recorder = _make_recorder()

    record = await _record(recorder, 200.0, elapsed_ms=150_000)

    assert record.duration_min == 3


@pytest.mark.parametrize(
    ("elapsed_ms", "minutes"),
    [(0, 1), (10_000, 1), (89_999, 1), (90_000, 2), (150_000, 3), (3_600_000, 60)],
)
def test_duration_minutes(elapsed_ms: int, minutes: int) -> None:
    assert duration_minutes(elapsed_ms) == minutes


@pytest.mark.asyncio
async def test_stop_without_session_is_noop() -> None:
    recorder = _make_recorder()

    assert await recorder.stop() is None
    assert recorder.state is RecordingState.IDLE


@pytest.mark.asyncio
async def test_start_twice_is_rejected() -> None:
    recorder = _make_recorder()
    recorder.attach_evidence(EvidenceRef(evidence_id="e1"))
    await recorder.start("walk")

    with pytest.raises(RecordingStateError):
        await recorder.start("walk")

    assert recorder.state is RecordingState.CAPTURING


@pytest.mark.asyncio
async def test_samples_after_stop_are_ignored() -> None:
    recorder = _make_recorder()
    await _record(recorder, 50.0)

    delivered = recorder.sample_source.push(_sample_north_of(80, START_MS + 20_000))

    assert delivered == 0
    assert recorder.add_sample(_sample_north_of(90, START_MS + 30_000)) is False
    assert recorder.path == []


@pytest.mark.asyncio
async def test_capture_errors_do_not_stop_recording() -> None:
    recorder = _make_recorder()
    recorder.attach_evidence(EvidenceRef(evidence_id="e1"))
    await recorder.start("walk")

    recorder.sample_source.push_error("GPS signal lost")
    recorder.sample_source.push(_sample_north_of(0, START_MS))

    assert recorder.state is RecordingState.CAPTURING
    assert recorder.capture_errors == ["GPS signal lost"]
    assert len(recorder.path) == 1
    assert recorder.status()["errors"] == {"capturing": "GPS signal lost"}


@pytest.mark.asyncio
async def test_failed_store_keeps_samples_and_allows_retry() -> None:
    store = FlakyStore(failures=1)
    recorder = _make_recorder(store=store)

    with pytest.raises(TripStoreError):
        await _record(recorder, 60.0)

    assert recorder.state is RecordingState.STOPPING
    assert len(recorder.path) == 2
    assert recorder.pending_evidence is not None

    with pytest.raises(RecordingStateError):
        await recorder.start("walk")

    record = await recorder.stop()

    assert record is not None
    assert store.attempts == 2
    assert recorder.state is RecordingState.FINALIZED
    assert await store.list_trips("u1") == [record]


@pytest.mark.asyncio
async def test_restart_after_finalize_uses_fresh_path() -> None:
    recorder = _make_recorder()
    first = await _record(recorder, 50.0)

    recorder.attach_evidence(EvidenceRef(evidence_id="photo-2", content_type="video/mp4"))
    await recorder.start("bus")

    assert recorder.state is RecordingState.CAPTURING
    assert recorder.path == []
    assert recorder.status()["mode"] == "bus"
    assert recorder.last_trip == first


@pytest.mark.asyncio
async def test_manual_trip_has_no_route_or_anomaly_fields() -> None:
    store = InMemoryTripStore()
    recorder = _make_recorder(store=store)

    record = await recorder.record_manual("bike", 5, 20)

    assert record.source == "manual"
    assert record.note == MANUAL_NOTE
    assert record.route is None
    assert record.max_speed_kmh is None
    assert record.suspicious is None
    assert record.points == 40
    assert record.co2_saved_gram == pytest.approx(750.0)
    assert record.duration_min == 20
    assert recorder.state is RecordingState.IDLE
    assert await store.list_trips("u1") == [record]


@pytest.mark.asyncio
async def test_manual_trip_does_not_touch_capture_session() -> None:
    recorder = _make_recorder()
    recorder.attach_evidence(EvidenceRef(evidence_id="e1"))
    await recorder.start("walk")
    recorder.sample_source.push(_sample_north_of(0, START_MS))

    await recorder.record_manual("walk", 1.2, 15)

    assert recorder.state is RecordingState.CAPTURING
    assert len(recorder.path) == 1
    assert recorder.pending_evidence is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("mode", "distance", "duration"),
    [
        ("walk", -1, 10),
        ("walk", 1, 0.4),
        ("walk", "far", 10),
        ("hovercraft", 1, 10),
    ],
)
async def test_manual_trip_validation(mode, distance, duration) -> None:
    store = InMemoryTripStore()
    recorder = _make_recorder(store=store)

    with pytest.raises(ValidationError):
        await recorder.record_manual(mode, distance, duration)

    assert await store.list_trips("u1") == []


@pytest.mark.asyncio
async def test_overlapping_stops_store_one_trip() -> None:
    store = InMemoryTripStore()
    lookup = SlowNoRouteLookup()
    source = PushSampleSource()
    recorder = TripRecorder(
        "u1",
        store,
        sample_source=source,
        snapper=RoadSnapper(lookup),
        clock=FakeClock(),
    )
    recorder.attach_evidence(EvidenceRef(evidence_id="photo-1"))
    await recorder.start("walk")
    source.push(_sample_north_of(0, START_MS))
    source.push(_sample_north_of(100, START_MS + 60_000))

    results = await asyncio.gather(recorder.stop(), recorder.stop())

    stored = await store.list_trips("u1")
    assert len(stored) == 1
    assert results[0] == stored[0]
    assert results[1] is None
    assert lookup.calls == 1
    assert recorder.state is RecordingState.FINALIZED
    assert recorder.last_trip == stored[0]
