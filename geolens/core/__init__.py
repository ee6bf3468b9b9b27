"""
geolens core module with exception hierarchy and shared primitives.
"""

from geolens.core.exceptions import (
    CacheMiss,
    ConfigurationError,
    DecompressionError,
    GeolensCoreError,
    InvalidDatasetIdError,
    NetworkError,
    OperationCancelledError,
    ParseError,
)

__all__ = [
    "GeolensCoreError",
    "NetworkError",
    "DecompressionError",
    "ParseError",
    "CacheMiss",
    "OperationCancelledError",
    "InvalidDatasetIdError",
    "ConfigurationError",
]
