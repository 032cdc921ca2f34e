"""HTTP client utilities and session management."""

from core.http.osrm import OSRMClient, RoutingLookup
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import cleanup_session, get_session

__all__ = [
    "OSRMClient",
    "RoutingLookup",
    "cleanup_session",
    "get_session",
    "request_json",
    "retry_async",
]
