"""Global constants for the core package.

This module contains shared constants used across the application core.
"""

from typing import Final

# HTTP Client Constants
HTTP_CONNECTION_LIMIT: Final[int] = 10
HTTP_TIMEOUT_CONNECT: Final[float] = 10.0
HTTP_TIMEOUT_SOCK_READ: Final[float] = 30.0
HTTP_TIMEOUT_TOTAL: Final[float] = 60.0

# Coordinate precision applied to stored route points (~0.11 m)
COORDINATE_DECIMALS: Final[int] = 6
COORDINATE_EPSILON: Final[float] = 1e-6

# Distance Conversion
METERS_PER_KM: Final[float] = 1000.0
MS_PER_SECOND: Final[float] = 1000.0
MS_PER_MINUTE: Final[float] = 60000.0
