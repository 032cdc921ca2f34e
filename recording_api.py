"""HTTP API for GPS trip recording and manual trip entry."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.api import api_route
from db.models import EvidenceRef, LocationSample, TravelMode
from geo_service.map_matching import RoadSnapper
from tracking.sample_source import PushSampleSource
from trip_processor.recorder import MANUAL_NOTE, TripRecorder
from trip_repository import InMemoryTripStore, TripStore

logger = logging.getLogger(__name__)
router = APIRouter()


class StartRecordingRequest(BaseModel):
    mode: TravelMode


class SamplesRequest(BaseModel):
    samples: list[LocationSample] = Field(default_factory=list)


class ManualTripRequest(BaseModel):
    mode: TravelMode
    distance_km: float
    duration_min: float
    evidence: EvidenceRef | None = None
    note: str = MANUAL_NOTE


class RecorderRegistry:
    """Keeps exactly one recorder, fed by one push source, per user."""

    def __init__(
        self,
        store: TripStore | None = None,
        snapper: RoadSnapper | None = None,
    ) -> None:
        self.store = store or InMemoryTripStore()
        self.snapper = snapper or RoadSnapper()
        self._recorders: dict[str, TripRecorder] = {}
        self._sources: dict[str, PushSampleSource] = {}

    def get(self, user_id: str) -> TripRecorder:
        recorder = self._recorders.get(user_id)
        if recorder is None:
            source = PushSampleSource()
            recorder = TripRecorder(
                user_id,
                self.store,
                sample_source=source,
                snapper=self.snapper,
            )
            self._sources[user_id] = source
            self._recorders[user_id] = recorder
        return recorder

    def find(self, user_id: str) -> TripRecorder | None:
        """Return the user's recorder without creating one."""
        return self._recorders.get(user_id)

    def source(self, user_id: str) -> PushSampleSource:
        self.get(user_id)
        return self._sources[user_id]

    def status(self, user_id: str) -> dict[str, Any]:
        recorder = self.find(user_id)
        if recorder is None:
            recorder = TripRecorder(user_id, self.store, snapper=self.snapper)
        return recorder.status()

    def __len__(self) -> int:
        return len(self._recorders)


registry = RecorderRegistry()


def get_registry() -> RecorderRegistry:
    return registry


Registry = Annotated[RecorderRegistry, Depends(get_registry)]


@router.post("/api/recording/{user_id}/evidence", response_model=dict[str, Any])
@api_route(logger)
async def attach_evidence(
    user_id: str,
    evidence: EvidenceRef,
    recorders: Registry,
) -> dict[str, Any]:
    """Attach the evidence reference required before GPS recording."""
    recorder = recorders.get(user_id)
    recorder.attach_evidence(evidence)
    return recorder.status()


@router.post("/api/recording/{user_id}/start", response_model=dict[str, Any])
@api_route(logger)
async def start_recording(
    user_id: str,
    data: StartRecordingRequest,
    recorders: Registry,
) -> dict[str, Any]:
    recorder = recorders.get(user_id)
    await recorder.start(data.mode)
    return recorder.status()


@router.post("/api/recording/{user_id}/samples", response_model=dict[str, Any])
@api_route(logger)
async def push_samples(
    user_id: str,
    data: SamplesRequest,
    recorders: Registry,
) -> dict[str, Any]:
    """Deliver location samples to the user's active capture session."""
    recorder = recorders.find(user_id)
    if recorder is None:
        return {"accepted": 0, "ignored": len(data.samples), "state": "idle"}
    source = recorders.source(user_id)
    before = len(recorder.path)
    for sample in data.samples:
        source.push(sample)
    accepted = len(recorder.path) - before
    return {
        "accepted": accepted,
        "ignored": len(data.samples) - accepted,
        "state": recorder.state.value,
    }


@router.post("/api/recording/{user_id}/stop", response_model=dict[str, Any])
@api_route(logger)
async def stop_recording(user_id: str, recorders: Registry) -> dict[str, Any]:
    """Stop capture and finalize. ``trip`` is null when nothing was saved."""
    recorder = recorders.find(user_id)
    if recorder is None:
        return {"state": "idle", "trip": None}
    record = await recorder.stop()
    return {
        "state": recorder.state.value,
        "trip": record.model_dump(mode="json") if record else None,
    }


@router.get("/api/recording/{user_id}/status", response_model=dict[str, Any])
@api_route(logger)
async def recording_status(user_id: str, recorders: Registry) -> dict[str, Any]:
    return recorders.status(user_id)


@router.post("/api/trips/{user_id}/manual", response_model=dict[str, Any])
@api_route(logger)
async def create_manual_trip(
    user_id: str,
    data: ManualTripRequest,
    recorders: Registry,
) -> dict[str, Any]:
    record = await recorders.get(user_id).record_manual(
        data.mode,
        data.distance_km,
        data.duration_min,
        evidence=data.evidence,
        note=data.note,
    )
    return record.model_dump(mode="json")


@router.get("/api/trips/{user_id}", response_model=dict[str, Any])
@api_route(logger)
async def list_trips(user_id: str, recorders: Registry) -> dict[str, Any]:
    """List a user's trips, newest first, with their totals."""
    trips = await recorders.store.list_trips(user_id)
    totals = await recorders.store.totals(user_id)
    return {
        "trips": [trip.model_dump(mode="json") for trip in trips],
        "totals": totals.model_dump(),
    }


@router.delete("/api/trips/{user_id}/{trip_id}/evidence", response_model=dict[str, Any])
@api_route(logger)
async def remove_trip_evidence(
    user_id: str,
    trip_id: str,
    recorders: Registry,
) -> dict[str, Any]:
    record = await recorders.store.clear_evidence(user_id, trip_id)
    return record.model_dump(mode="json")


@router.get("/api/trips/{user_id}/{trip_id}", response_model=dict[str, Any])
@api_route(logger)
async def get_trip_detail(
    user_id: str,
    trip_id: str,
    recorders: Registry,
) -> dict[str, Any]:
    """
    Return one trip with its route as a GeoJSON Feature.

    An unsnapped GPS route is snapped again for display. The stored record
    keeps its original geometry.
    """
    record = await recorders.store.get_trip(user_id, trip_id)
    route = None
    if record.route is not None:
        geometry = await recorders.snapper.resnap_geometry(record.route, record.mode)
        route = geometry.to_geojson(record.mode)
    return {"trip": record.model_dump(mode="json"), "route": route}
