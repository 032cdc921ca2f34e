"""
Location sample sources.

A sample source delivers timestamped fixes either as a continuous push
subscription or as a single-shot "current position" query. Platform
adapters implement ``SampleSource``. ``PushSampleSource`` is the in-process
implementation used when fixes arrive over the HTTP API.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from core.exceptions import CaptureError
from db.models import LocationSample

logger = logging.getLogger(__name__)

SampleCallback = Callable[[LocationSample], None]
CaptureErrorCallback = Callable[[CaptureError], None]


@dataclass(frozen=True)
class PositionError:
    """Failure reported by a single-shot position query."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    code: int
    message: str = ""


class Subscription(Protocol):
    def cancel(self) -> None: ...


@runtime_checkable
class SampleSource(Protocol):
    """Platform location provider."""

    @property
    def is_supported(self) -> bool: ...

    async def permission_state(self) -> str:
        """Return ``granted``, ``prompt``, ``denied`` or ``unknown``."""
        ...

    def subscribe(
        self,
        on_sample: SampleCallback,
        on_error: CaptureErrorCallback,
    ) -> Subscription: ...

    def get_current_position(
        self,
        on_success: Callable[[LocationSample | None], None],
        on_error: Callable[[PositionError], None],
        *,
        high_accuracy: bool = True,
        timeout_ms: int = 8000,
    ) -> None: ...


class _PushSubscription:
    def __init__(
        self,
        source: PushSampleSource,
        on_sample: SampleCallback,
        on_error: CaptureErrorCallback,
    ) -> None:
        self._source = source
        self.on_sample = on_sample
        self.on_error = on_error
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._source._subscriptions.remove(self)


class PushSampleSource:
    """
    Sample source fed by explicit ``push`` calls.

    The pushing client already holds location permission, so permission
    checks succeed immediately.
    """

    def __init__(self, *, supported: bool = True) -> None:
        self._supported = supported
        self._subscriptions: list[_PushSubscription] = []
        self.last_sample: LocationSample | None = None

    @property
    def is_supported(self) -> bool:
        return self._supported

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def permission_state(self) -> str:
        return "granted" if self._supported else "denied"

    def subscribe(
        self,
        on_sample: SampleCallback,
        on_error: CaptureErrorCallback,
    ) -> _PushSubscription:
        subscription = _PushSubscription(self, on_sample, on_error)
        self._subscriptions.append(subscription)
        return subscription

    def get_current_position(
        self,
        on_success: Callable[[LocationSample | None], None],
        on_error: Callable[[PositionError], None],
        *,
        high_accuracy: bool = True,
        timeout_ms: int = 8000,
    ) -> None:
        if not self._supported:
            on_error(
                PositionError(
                    PositionError.POSITION_UNAVAILABLE,
                    "Location provider unavailable",
                ),
            )
            return
        on_success(self.last_sample)

    def push(self, sample: LocationSample) -> int:
        """Deliver a sample to every active subscriber. Returns the subscriber count."""
        self.last_sample = sample
        subscribers = list(self._subscriptions)
        for subscription in subscribers:
            subscription.on_sample(sample)
        return len(subscribers)

    def push_error(self, message: str) -> None:
        """Report a transient provider fault to every active subscriber."""
        logger.debug("Pushing capture error to %d subscribers", len(self._subscriptions))
        error = CaptureError(message)
        for subscription in list(self._subscriptions):
            subscription.on_error(error)
