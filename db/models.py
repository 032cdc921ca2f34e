"""Pydantic value models and Beanie documents for trip recording.

Value models are frozen: every pipeline stage returns a new value instead of
mutating its input. ``TripDocument`` is the MongoDB representation used by
``BeanieTripStore``.

Usage:
    from db.models import LocationSample, TripRecord, TripDocument

    sample = LocationSample(latitude=-6.2, longitude=106.8, timestamp=0)
    doc = TripDocument.from_record(record)
    await doc.insert()
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from beanie import Document, Indexed
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from config import SUSPICIOUS_SPEED_KMH
from date_utils import get_current_utc_time, to_epoch_ms
from geometry_service import GeometryService

Waypoint = tuple[float, float]
RoutingProfile = Literal["foot", "bicycle", "driving"]


class TravelMode(str, Enum):
    """Declared transport mode of a trip."""

    WALK = "walk"
    BIKE = "bike"
    BUS = "bus"
    KRL = "krl"
    MRT = "mrt"
    MOTORCYCLE = "motorcycle"
    CAR = "car"

    @property
    def label(self) -> str:
        return MODE_LABELS[self]


MODE_LABELS: dict[TravelMode, str] = {
    TravelMode.WALK: "Jalan Kaki",
    TravelMode.BIKE: "Sepeda",
    TravelMode.BUS: "Bus",
    TravelMode.KRL: "KRL/Commuter",
    TravelMode.MRT: "MRT",
    TravelMode.MOTORCYCLE: "Motor",
    TravelMode.CAR: "Mobil",
}


class LocationSample(BaseModel):
    """A single timestamped position fix. Timestamp is epoch milliseconds."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timestamp: int

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp_ms(cls, v: Any) -> int:
        """Accept epoch milliseconds, ISO 8601 strings, or datetimes."""
        parsed = to_epoch_ms(v)
        if parsed is None:
            msg = f"Invalid sample timestamp: {v!r}"
            raise ValueError(msg)
        return parsed

    def waypoint(self) -> Waypoint:
        """Return the sample as a bare (lon, lat) pair."""
        return (self.longitude, self.latitude)


class RouteGeometry(BaseModel):
    """Ordered route points tagged with the routing profile used."""

    model_config = ConfigDict(frozen=True)

    coordinates: tuple[Waypoint, ...] = Field(min_length=2)
    profile: RoutingProfile = "driving"
    snapped: bool = False

    def to_geojson(self, mode: TravelMode | str | None = None) -> dict[str, Any]:
        """Render the route as a GeoJSON Feature."""
        properties: dict[str, Any] = {"snapped": self.snapped, "profile": self.profile}
        if mode is not None:
            properties["mode"] = TravelMode(mode).value
        geometry = GeometryService.geometry_from_coordinate_pairs(
            self.coordinates,
            allow_point=False,
            validate=False,
        )
        return GeometryService.feature_from_geometry(geometry, properties)


class EvidenceRef(BaseModel):
    """Reference to an uploaded photo or video proving the trip."""

    model_config = ConfigDict(frozen=True)

    evidence_id: str = Field(min_length=1)
    content_type: str | None = None
    size_bytes: int | None = Field(default=None, ge=0)

    @field_validator("content_type")
    @classmethod
    def validate_content_type(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.startswith(("image/", "video/")):
            msg = f"Evidence must be an image or video, got {v!r}"
            raise ValueError(msg)
        return v


class TripRecord(BaseModel):
    """
    A finalized trip.

    Immutable once created. The only allowed transition is dropping the
    evidence reference through ``without_evidence``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    date: str
    mode: TravelMode
    distance_km: float = Field(ge=0)
    duration_min: int = Field(ge=1)
    route: RouteGeometry | None = None
    max_speed_kmh: float | None = Field(default=None, ge=0)
    suspicious: bool | None = None
    evidence: EvidenceRef | None = None
    note: str = ""
    source: Literal["gps", "manual"] = "gps"
    baseline_mode: TravelMode = TravelMode.CAR
    co2_gram: float = Field(default=0.0, ge=0)
    co2_saved_gram: float = Field(default=0.0, ge=0)
    points: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=get_current_utc_time)

    @model_validator(mode="after")
    def check_suspicious_flag(self) -> TripRecord:
        if self.max_speed_kmh is not None and self.suspicious is not None:
            expected = self.max_speed_kmh > SUSPICIOUS_SPEED_KMH
            if self.suspicious != expected:
                msg = "suspicious must be true iff max_speed_kmh exceeds the threshold"
                raise ValueError(msg)
        return self

    def without_evidence(self) -> TripRecord:
        """Return a copy of this trip with the evidence reference cleared."""
        return self.model_copy(update={"evidence": None})


class TripTotals(BaseModel):
    """Aggregated distance, emissions, and points over a set of trips."""

    distance_km: float = 0.0
    co2_gram: float = 0.0
    co2_saved_gram: float = 0.0
    points: int = 0


class TripDocument(Document):
    """Stored trip record, one document per finalized trip."""

    trip_id: Indexed(str, unique=True)
    user_id: Indexed(str)
    date: str
    mode: str
    distance_km: float
    duration_min: int
    route: dict[str, Any] | None = None
    max_speed_kmh: float | None = None
    suspicious: bool | None = None
    evidence: dict[str, Any] | None = None
    note: str = ""
    source: str = "gps"
    baseline_mode: str = TravelMode.CAR.value
    co2_gram: float = 0.0
    co2_saved_gram: float = 0.0
    points: int = 0
    created_at: datetime | None = None

    class Settings:
        name = "trips"
        indexes = [
            IndexModel(
                [("user_id", ASCENDING), ("created_at", DESCENDING)],
                name="trips_user_created_idx",
            ),
        ]

    @classmethod
    def from_record(cls, record: TripRecord) -> TripDocument:
        data = record.model_dump(mode="json", exclude={"id", "created_at"})
        return cls(trip_id=record.id, created_at=record.created_at, **data)

    def to_record(self) -> TripRecord:
        return TripRecord(
            id=self.trip_id,
            user_id=self.user_id,
            date=self.date,
            mode=self.mode,
            distance_km=self.distance_km,
            duration_min=self.duration_min,
            route=self.route,
            max_speed_kmh=self.max_speed_kmh,
            suspicious=self.suspicious,
            evidence=self.evidence,
            note=self.note,
            source=self.source,
            baseline_mode=self.baseline_mode,
            co2_gram=self.co2_gram,
            co2_saved_gram=self.co2_saved_gram,
            points=self.points,
            created_at=self.created_at or get_current_utc_time(),
        )


ALL_DOCUMENT_MODELS = [TripDocument]
