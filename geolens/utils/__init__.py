"""
Utilities module for geolens.

- Logging configuration
"""

from .logger import configure_cli_logging, get_logger

__all__ = [
    "get_logger",
    "configure_cli_logging",
]
