"""Retry helpers for outbound routing requests.

Only transport-level failures are retried. HTTP error statuses and bad
payloads surface immediately so the caller can fall back without waiting.
"""

from __future__ import annotations

import asyncio
import logging

from aiohttp import ClientConnectionError, ClientPayloadError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ClientConnectionError,
    ClientPayloadError,
    asyncio.TimeoutError,
)


def retry_async(
    max_retries: int = 1,
    retry_delay: float = 0.5,
    backoff_factor: float = 2.0,
    retry_exceptions: tuple[type[BaseException], ...] = TRANSIENT_ERRORS,
):
    """Build a tenacity decorator for an async callable.

    Args:
        max_retries: Attempts after the first one
        retry_delay: Multiplier for the exponential wait, in seconds
        backoff_factor: Exponential base for the wait
        retry_exceptions: Exception types that trigger another attempt

    Example:
        @retry_async(max_retries=2, retry_delay=0)
        async def fetch_route():
            ...
    """
    return retry(
        stop=stop_after_attempt(max(0, max_retries) + 1),
        wait=wait_exponential(multiplier=retry_delay, exp_base=backoff_factor),
        retry=retry_if_exception_type(retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
