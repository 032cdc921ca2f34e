"""Centralized configuration for environment variables and external APIs.

This module is the single source of truth for configuration used across the
application. Import constants from here rather than calling os.getenv directly
in multiple places.

Recording thresholds have fixed defaults. Environment overrides exist for
deployments that need to tune them, but the defaults match the published
reward rules.
"""

from __future__ import annotations

import os
from typing import Final
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# --- OSRM Routing Configuration ---
DEFAULT_OSRM_BASE_URL: Final[str] = "https://router.project-osrm.org"
OSRM_REQUEST_TIMEOUT: Final[float] = _env_float("OSRM_REQUEST_TIMEOUT", 10.0)
# Retries per segment lookup on transport errors, before the segment falls
# back to interpolation.
OSRM_MAX_RETRIES: Final[int] = _env_int("OSRM_MAX_RETRIES", 1)


def require_osrm_base_url() -> str:
    """Return the OSRM base URL, validating its scheme and host."""
    url = (os.getenv("OSRM_BASE_URL") or DEFAULT_OSRM_BASE_URL).strip().rstrip("/")
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        msg = f"OSRM_BASE_URL must be an http(s) URL, got {url!r}"
        raise ValueError(msg)
    return url


# --- Recording thresholds ---
MIN_AUTO_SAVE_METERS: Final[float] = _env_float("MIN_AUTO_SAVE_METERS", 30.0)
SUSPICIOUS_SPEED_KMH: Final[float] = _env_float("SUSPICIOUS_SPEED_KMH", 20.0)
MAX_SEGMENT_POINTS: Final[int] = _env_int("MAX_SEGMENT_POINTS", 12)

# A sample is a glitch only when BOTH limits are exceeded.
GLITCH_DISTANCE_METERS: Final[float] = _env_float("GLITCH_DISTANCE_METERS", 200.0)
GLITCH_SPEED_KMH: Final[float] = _env_float("GLITCH_SPEED_KMH", 200.0)

# --- Location permission ---
PERMISSION_QUERY_TIMEOUT_MS: Final[int] = _env_int("PERMISSION_QUERY_TIMEOUT_MS", 8000)
PERMISSION_HARD_TIMEOUT_S: Final[float] = _env_float("PERMISSION_HARD_TIMEOUT_S", 9.0)

# --- Emission and reward tables ---
CO2_FACTORS_G_PER_KM: Final[dict[str, float]] = {
    "walk": 0.0,
    "bike": 0.0,
    "bus": 70.0,
    "krl": 70.0,
    "mrt": 65.0,
    "motorcycle": 100.0,
    "car": 150.0,
}
POINTS_PER_KM: Final[dict[str, float]] = {
    "walk": 10.0,
    "bike": 8.0,
    "bus": 5.0,
    "krl": 5.0,
    "mrt": 5.0,
    "motorcycle": 0.0,
    "car": 0.0,
}
DEFAULT_BASELINE_MODE: Final[str] = "car"
DEFAULT_BASELINE_FACTOR_G_PER_KM: Final[float] = 150.0

# --- MongoDB ---
MONGODB_URI: Final[str] = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DATABASE: Final[str] = os.getenv("MONGODB_DATABASE", "greenmiles")
# "memory" keeps trips in-process; "mongo" stores them through Beanie.
TRIP_STORE_BACKEND: Final[str] = os.getenv("TRIP_STORE_BACKEND", "memory").lower()


__all__ = [
    "CO2_FACTORS_G_PER_KM",
    "DEFAULT_BASELINE_FACTOR_G_PER_KM",
    "DEFAULT_BASELINE_MODE",
    "DEFAULT_OSRM_BASE_URL",
    "GLITCH_DISTANCE_METERS",
    "GLITCH_SPEED_KMH",
    "MAX_SEGMENT_POINTS",
    "MIN_AUTO_SAVE_METERS",
    "MONGODB_DATABASE",
    "MONGODB_URI",
    "OSRM_MAX_RETRIES",
    "OSRM_REQUEST_TIMEOUT",
    "PERMISSION_HARD_TIMEOUT_S",
    "PERMISSION_QUERY_TIMEOUT_MS",
    "POINTS_PER_KM",
    "SUSPICIOUS_SPEED_KMH",
    "TRIP_STORE_BACKEND",
    "require_osrm_base_url",
]
