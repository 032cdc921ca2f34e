"""
Location permission check.

Starting a GPS capture first checks the sample source with a single-shot
position query. The platform may fire its success callback, its error
callback, and our own hard timeout in any order. The check resolves exactly
once with the first of them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from config import PERMISSION_HARD_TIMEOUT_S, PERMISSION_QUERY_TIMEOUT_MS
from tracking.sample_source import PositionError, SampleSource

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "This device does not support location (GPS)."
DENIED_MESSAGE = (
    "Location permission is blocked. Open the browser or site settings "
    "and allow location access."
)
TIMEOUT_MESSAGE = "Timed out while requesting location. Try again."
UNAVAILABLE_MESSAGE = "Location permission was denied or is unavailable."


@dataclass(frozen=True)
class PermissionResult:
    ok: bool
    reason: str | None = None
    code: str | None = None


GRANTED = PermissionResult(ok=True)
UNSUPPORTED = PermissionResult(ok=False, reason=UNSUPPORTED_MESSAGE, code="unsupported")
DENIED = PermissionResult(ok=False, reason=DENIED_MESSAGE, code="denied")
TIMED_OUT = PermissionResult(ok=False, reason=TIMEOUT_MESSAGE, code="timeout")


class OnceResolver:
    """Resolve an asyncio future with the first delivered result only."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[Any] = self._loop.create_future()
        self.ignored = 0

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def resolve(self, result: Any) -> bool:
        """Deliver ``result``. Returns False when a result was already delivered."""
        if self._future.done():
            self.ignored += 1
            logger.debug("Ignoring late permission resolution: %s", result)
            return False
        self._future.set_result(result)
        return True

    def resolve_threadsafe(self, result: Any) -> None:
        """Deliver ``result`` from any thread through the owning loop."""
        self._loop.call_soon_threadsafe(self.resolve, result)

    async def wait(self) -> Any:
        return await self._future


def _result_from_position_error(error: PositionError) -> PermissionResult:
    if error.code == PositionError.PERMISSION_DENIED:
        return DENIED
    if error.code == PositionError.TIMEOUT:
        return TIMED_OUT
    return PermissionResult(
        ok=False,
        reason=error.message or UNAVAILABLE_MESSAGE,
        code="unavailable",
    )


async def check_location_permission(
    source: SampleSource | None,
    *,
    query_timeout_ms: int = PERMISSION_QUERY_TIMEOUT_MS,
    hard_timeout_s: float = PERMISSION_HARD_TIMEOUT_S,
) -> PermissionResult:
    """
    Confirm that location fixes can be obtained from ``source``.

    Args:
        source: The platform sample source, or None when the device has none
        query_timeout_ms: Timeout handed to the platform position query
        hard_timeout_s: Our own timeout in case the platform never answers

    Returns:
        PermissionResult with a human-readable reason on failure
    """
    if source is None or not source.is_supported:
        return UNSUPPORTED

    try:
        state = await source.permission_state()
    except Exception as exc:
        # The state query is advisory; the position query below decides.
        logger.debug("Permission state query failed: %s", exc)
        state = "unknown"
    if state == "denied":
        return DENIED

    loop = asyncio.get_running_loop()
    resolver = OnceResolver(loop)
    timeout_handle = loop.call_later(hard_timeout_s, resolver.resolve, TIMED_OUT)
    try:
        try:
            source.get_current_position(
                lambda _sample: resolver.resolve_threadsafe(GRANTED),
                lambda error: resolver.resolve_threadsafe(
                    _result_from_position_error(error),
                ),
                high_accuracy=True,
                timeout_ms=query_timeout_ms,
            )
        except Exception as exc:
            logger.warning("Position query failed to start: %s", exc)
            resolver.resolve(
                PermissionResult(ok=False, reason=UNAVAILABLE_MESSAGE, code="unavailable"),
            )
        result = await resolver.wait()
    finally:
        timeout_handle.cancel()

    if not result.ok:
        logger.info("Location permission check failed: %s", result.code)
    return result
