"""
Centralized date and time utilities for the application.

Location samples carry epoch-millisecond timestamps, while trip records
store timezone-aware datetimes. This module converts between the two and
parses external timestamps consistently, defaulting to UTC.
"""

import logging
from datetime import UTC, datetime

from dateutil import parser

logger = logging.getLogger(__name__)


def get_current_utc_time() -> datetime:
    """Return the current time as a timezone-aware datetime object in UTC."""
    return datetime.now(UTC)


def current_epoch_ms() -> int:
    """Return the current wall clock time in epoch milliseconds."""
    return int(get_current_utc_time().timestamp() * 1000)


def parse_timestamp(ts: str | datetime) -> datetime | None:
    """
    Parse a timestamp string (or datetime object) and ensure it is
    timezone-aware, defaulting to UTC.

    Args:
        ts: The timestamp to parse, either as an ISO 8601 string or a
            datetime object.

    Returns:
        A timezone-aware datetime object, or None if parsing fails.
    """
    if not ts:
        logger.debug("Received empty timestamp; returning None.")
        return None

    if isinstance(ts, datetime):
        if ts.tzinfo is None:
            return ts.replace(tzinfo=UTC)
        return ts.astimezone(UTC)

    try:
        parsed_time = parser.isoparse(ts)
        if parsed_time.tzinfo is None:
            return parsed_time.replace(tzinfo=UTC)
        return parsed_time.astimezone(UTC)
    except (ValueError, TypeError) as e:
        logger.warning("Failed to parse timestamp '%s': %s", ts, e)
        return None


def to_epoch_ms(value: int | float | str | datetime) -> int | None:
    """Convert epoch milliseconds, ISO strings, or datetimes to epoch ms."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return int(parsed.timestamp() * 1000)


def epoch_ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def today_iso(now: datetime | None = None) -> str:
    """Return the calendar date (YYYY-MM-DD) for ``now`` in UTC."""
    current = now or get_current_utc_time()
    return current.astimezone(UTC).date().isoformat()
