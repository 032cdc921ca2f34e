"""
Centralized exception hierarchy for domain-specific errors.

This module provides custom exception classes that represent specific
error conditions in trip recording, enabling callers and the API layer
to map failures to operator-facing messages.
"""


class GreenMilesError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(GreenMilesError):
    """Exception raised when data validation fails."""


class EvidenceRequiredError(ValidationError):
    """Exception raised when GPS capture starts without an evidence attachment."""


class ExternalServiceError(GreenMilesError):
    """Exception raised when service calls fail."""


class RoutingLookupError(ExternalServiceError):
    """Exception raised when a routing lookup fails for one segment.

    Always recovered locally by the road snapper.
    """


class TripStoreError(ExternalServiceError):
    """Exception raised when the trip store rejects a write."""


class LocationPermissionError(GreenMilesError):
    """Exception raised when location access cannot be obtained.

    ``code`` is one of ``denied``, ``timeout`` or ``unsupported``.
    """

    def __init__(
        self,
        message: str,
        code: str = "denied",
        details: dict | None = None,
    ) -> None:
        self.code = code
        super().__init__(message, {"code": code, **(details or {})})


class CaptureError(GreenMilesError):
    """Transient location provider fault. Reported, never fatal."""


class FinalizationError(GreenMilesError):
    """Exception raised when a recording transition is not allowed."""


class RecordingStateError(FinalizationError):
    """Exception raised when a command conflicts with the session state."""


class ResourceNotFoundError(GreenMilesError):
    """Exception raised when a requested resource is not found."""


GreenMilesException = GreenMilesError
ValidationException = ValidationError
ExternalServiceException = ExternalServiceError
ResourceNotFoundException = ResourceNotFoundError
