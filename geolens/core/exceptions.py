"""
Core exceptions for geolens.

This module provides the exception hierarchy used throughout the
download, decompression, parsing and caching pipeline.
"""

from typing import Any, Dict, Optional


class GeolensCoreError(Exception):
    """Base exception for all geolens core errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        return self.message


class NetworkError(GeolensCoreError):
    """
    Raised when a remote file cannot be fetched.

    Covers both non-success HTTP statuses and transport failures
    (connection refused, DNS, timeouts).

    Attributes:
        details: Contains:
            - url: The URL that was requested
            - status_code: HTTP status, or None for transport failures
    """

    @property
    def status_code(self) -> Optional[int]:
        return self.details.get("status_code")


class DecompressionError(GeolensCoreError):
    """
    Raised when a compressed file is corrupt, truncated or unreadable.

    Attributes:
        details: Contains:
            - path: The compressed input path
    """

    pass


class ParseError(GeolensCoreError):
    """
    Raised when a SOFT or Series Matrix file cannot be read at all.

    Individual malformed lines never raise; they are skipped by the parsers.
    """

    pass


class CacheMiss(GeolensCoreError):
    """Raised when a dataset has not been downloaded yet."""

    pass


class OperationCancelledError(GeolensCoreError):
    """Raised inside a pipeline after its caller requested cancellation."""

    pass


class InvalidDatasetIdError(GeolensCoreError, ValueError):
    """Raised when an identifier is not a GEO series accession (GSE...)."""

    pass


class ConfigurationError(GeolensCoreError):
    """
    Raised when settings hold values the pipeline cannot run with.

    Attributes:
        details: Contains:
            - problems: The validation message from Settings
    """

    pass
