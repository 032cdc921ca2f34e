"""Trip Repository Module.

User-scoped persistence for finalized trips. ``InMemoryTripStore`` is the
default store for a single process; ``BeanieTripStore`` keeps trips in
MongoDB through the ``TripDocument`` model.

Records are immutable once stored. The single allowed change is clearing a
trip's evidence reference.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from pymongo.errors import DuplicateKeyError, PyMongoError

from core.exceptions import ResourceNotFoundError, TripStoreError, ValidationError
from db.models import TripDocument, TripRecord, TripTotals
from trip_processor.emissions import summarize_trips

logger = logging.getLogger(__name__)


def _check_owner(user_id: str, record: TripRecord) -> None:
    if record.user_id != user_id:
        msg = "Trip belongs to a different user"
        raise ValidationError(
            msg,
            {"user_id": user_id, "trip_user_id": record.user_id},
        )


class TripStore(Protocol):
    """Append-mostly, user-scoped trip storage."""

    async def append(self, user_id: str, record: TripRecord) -> TripRecord: ...

    async def list_trips(self, user_id: str) -> list[TripRecord]: ...

    async def get_trip(self, user_id: str, trip_id: str) -> TripRecord: ...

    async def clear_evidence(self, user_id: str, trip_id: str) -> TripRecord: ...

    async def totals(self, user_id: str) -> TripTotals: ...


class InMemoryTripStore:
    """Process-local trip store. Newest trips are kept first."""

    def __init__(self) -> None:
        self._trips: dict[str, list[TripRecord]] = {}
        self._lock = asyncio.Lock()

    async def append(self, user_id: str, record: TripRecord) -> TripRecord:
        _check_owner(user_id, record)
        async with self._lock:
            trips = self._trips.setdefault(user_id, [])
            if any(t.id == record.id for t in trips):
                msg = f"Trip {record.id} already stored"
                raise TripStoreError(msg, {"trip_id": record.id})
            trips.insert(0, record)
        logger.debug("Stored trip %s for user %s", record.id, user_id)
        return record

    async def list_trips(self, user_id: str) -> list[TripRecord]:
        async with self._lock:
            return list(self._trips.get(user_id, []))

    async def get_trip(self, user_id: str, trip_id: str) -> TripRecord:
        async with self._lock:
            for trip in self._trips.get(user_id, []):
                if trip.id == trip_id:
                    return trip
        msg = f"Trip {trip_id} not found"
        raise ResourceNotFoundError(msg, {"user_id": user_id, "trip_id": trip_id})

    async def clear_evidence(self, user_id: str, trip_id: str) -> TripRecord:
        async with self._lock:
            trips = self._trips.get(user_id, [])
            for index, trip in enumerate(trips):
                if trip.id == trip_id:
                    updated = trip.without_evidence()
                    trips[index] = updated
                    return updated
        msg = f"Trip {trip_id} not found"
        raise ResourceNotFoundError(msg, {"user_id": user_id, "trip_id": trip_id})

    async def totals(self, user_id: str) -> TripTotals:
        return summarize_trips(await self.list_trips(user_id))


class BeanieTripStore:
    """Trip store backed by the ``trips`` MongoDB collection.

    Requires ``db.init_database`` to have initialized Beanie.
    """

    async def append(self, user_id: str, record: TripRecord) -> TripRecord:
        _check_owner(user_id, record)
        if await TripDocument.find_one(TripDocument.trip_id == record.id):
            msg = f"Trip {record.id} already stored"
            raise TripStoreError(msg, {"trip_id": record.id})
        doc = TripDocument.from_record(record)
        try:
            await doc.insert()
        except DuplicateKeyError as e:
            msg = f"Trip {record.id} already stored"
            raise TripStoreError(msg, {"trip_id": record.id}) from e
        except PyMongoError as e:
            logger.error("Error saving trip %s: %s", record.id, e)
            msg = f"Failed to save trip: {e!s}"
            raise TripStoreError(msg, {"trip_id": record.id}) from e
        logger.debug("Saved trip %s for user %s", record.id, user_id)
        return record

    async def list_trips(self, user_id: str) -> list[TripRecord]:
        docs = (
            await TripDocument.find(TripDocument.user_id == user_id)
            .sort(-TripDocument.created_at)
            .to_list()
        )
        return [doc.to_record() for doc in docs]

    async def _find(self, user_id: str, trip_id: str) -> TripDocument:
        doc = await TripDocument.find_one(
            TripDocument.user_id == user_id,
            TripDocument.trip_id == trip_id,
        )
        if doc is None:
            msg = f"Trip {trip_id} not found"
            raise ResourceNotFoundError(
                msg,
                {"user_id": user_id, "trip_id": trip_id},
            )
        return doc

    async def get_trip(self, user_id: str, trip_id: str) -> TripRecord:
        return (await self._find(user_id, trip_id)).to_record()

    async def clear_evidence(self, user_id: str, trip_id: str) -> TripRecord:
        doc = await self._find(user_id, trip_id)
        doc.evidence = None
        try:
            await doc.save()
        except PyMongoError as e:
            msg = f"Failed to clear evidence: {e!s}"
            raise TripStoreError(msg, {"trip_id": trip_id}) from e
        return doc.to_record()

    async def totals(self, user_id: str) -> TripTotals:
        return summarize_trips(await self.list_trips(user_id))
