"""
JSON request helper shared by outbound HTTP clients.

Non-expected statuses and undecodable bodies become
``ExternalServiceException`` with the status, body, and URL in ``details``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from core.exceptions import ExternalServiceException

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_SUPPORTED_METHODS = frozenset({"GET", "POST"})


async def request_json(
    method: str,
    url: str,
    *,
    session: Any,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    expected_status: int | Iterable[int] = 200,
    service_name: str = "Service",
    timeout: Any | None = None,
) -> Any:
    method_upper = method.upper()
    if method_upper not in _SUPPORTED_METHODS:
        msg = f"{service_name} request error: unsupported method {method_upper}"
        raise ExternalServiceException(msg, {"url": url})
    expected = (
        {expected_status} if isinstance(expected_status, int) else set(expected_status)
    )

    kwargs: dict[str, Any] = {"params": params, "headers": headers}
    if json is not None:
        kwargs["json"] = json
    if timeout is not None:
        kwargs["timeout"] = timeout

    request_fn = session.get if method_upper == "GET" else session.post
    async with request_fn(url, **kwargs) as response:
        response_url = str(getattr(response, "url", url))
        if response.status not in expected:
            details: dict[str, Any] = {"status": response.status, "url": response_url}
            if response.status == 429:
                details["retry_after"] = int(response.headers.get("Retry-After", 5))
            else:
                details["body"] = await response.text()
            logger.debug("%s returned %s for %s", service_name, response.status, url)
            msg = f"{service_name} error: {response.status}"
            raise ExternalServiceException(msg, details)
        try:
            return await response.json()
        except ValueError as exc:
            msg = f"{service_name} error: invalid JSON payload"
            raise ExternalServiceException(msg, {"url": response_url}) from exc
