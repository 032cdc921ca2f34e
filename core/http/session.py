"""Shared aiohttp session for outbound HTTP calls.

One session is kept per process and per event loop. A forked child or a new
event loop gets a fresh session instead of reusing a foreign one.
"""

from __future__ import annotations

import asyncio
import logging
import os

import aiohttp

from core.constants import (
    HTTP_CONNECTION_LIMIT,
    HTTP_TIMEOUT_CONNECT,
    HTTP_TIMEOUT_SOCK_READ,
    HTTP_TIMEOUT_TOTAL,
)

logger = logging.getLogger(__name__)


class SessionState:
    """Holder for the process-wide session."""

    session: aiohttp.ClientSession | None = None
    session_owner_pid: int | None = None


def _build_session() -> aiohttp.ClientSession:
    timeout = aiohttp.ClientTimeout(
        total=HTTP_TIMEOUT_TOTAL,
        connect=HTTP_TIMEOUT_CONNECT,
        sock_read=HTTP_TIMEOUT_SOCK_READ,
    )
    connector = aiohttp.TCPConnector(
        limit=HTTP_CONNECTION_LIMIT,
        enable_cleanup_closed=True,
    )
    return aiohttp.ClientSession(
        timeout=timeout,
        headers={"User-Agent": "GreenMiles/1.0", "Accept": "application/json"},
        connector=connector,
    )


async def get_session() -> aiohttp.ClientSession:
    """Return the shared session, creating it when needed."""
    current_pid = os.getpid()
    session = SessionState.session

    if session is not None and SessionState.session_owner_pid != current_pid:
        # Inherited across fork; the parent still owns the connector.
        logger.debug(
            "Dropping session inherited from process %s",
            SessionState.session_owner_pid,
        )
        session = None

    if session is not None and not session.closed:
        current_loop = asyncio.get_running_loop()
        if session.loop is not current_loop or session.loop.is_closed():
            logger.info("Event loop changed, replacing HTTP session")
            if not session.loop.is_closed():
                try:
                    await session.close()
                except RuntimeError as e:
                    logger.warning("Error closing stale session: %s", e)
            session = None

    if session is None or session.closed:
        session = _build_session()
        SessionState.session_owner_pid = current_pid
        logger.debug("Created new aiohttp session for process %s", current_pid)

    SessionState.session = session
    return session


async def cleanup_session() -> None:
    """Close the shared session for the current process."""
    session = SessionState.session
    if session is not None and not session.closed:
        await session.close()
        logger.info("Closed aiohttp session for process %s", os.getpid())
    SessionState.session = None
    SessionState.session_owner_pid = None
