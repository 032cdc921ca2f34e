"""Database package for trip storage using Beanie ODM.

Usage:
    from db import init_database
    from db.models import TripDocument

    await init_database()
    docs = await TripDocument.find(TripDocument.user_id == "aiko").to_list()
"""

from __future__ import annotations

import logging
from datetime import UTC
from typing import Any

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from config import MONGODB_DATABASE, MONGODB_URI
from db.models import ALL_DOCUMENT_MODELS

logger = logging.getLogger(__name__)


async def init_database(
    mongo_uri: str | None = None,
    database_name: str | None = None,
    *,
    client: Any | None = None,
) -> Any:
    """Initialize Beanie with all document models and return the database.

    Args:
        mongo_uri: Connection string, defaults to ``MONGODB_URI``
        database_name: Database name, defaults to ``MONGODB_DATABASE``
        client: Optional pre-built Motor-compatible client (for testing)

    Returns:
        The Motor database Beanie was bound to
    """
    if client is None:
        client = AsyncIOMotorClient(
            mongo_uri or MONGODB_URI,
            tz_aware=True,
            tzinfo=UTC,
            appname="GreenMiles",
        )
    database = client[database_name or MONGODB_DATABASE]
    await init_beanie(database=database, document_models=ALL_DOCUMENT_MODELS)
    logger.info("Beanie initialized for database %s", database.name)
    return database


__all__ = ["init_database"]
