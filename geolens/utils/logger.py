"""
Logging configuration for the application.

This module sets up consistent logging across all components of the application,
making it easier to track events and debug issues.
"""

import logging
import os
import sys

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s - [%(name)s] - %(message)s"


def _level_from_env() -> int:
    name = os.environ.get("GEOLENS_LOG_LEVEL", "WARNING").upper()
    return getattr(logging, name, logging.WARNING)


def setup_logger(name: str, level: int = None) -> logging.Logger:
    """
    Configure a logger with consistent formatting.

    Handles two scenarios:
    1. CLI usage: the CLI installs a RichHandler on the root logger.
       We detect this and let logs propagate to root (single output).
    2. Direct usage: No RichHandler on root. We add our own StreamHandler
       and disable propagation to prevent duplicate output.

    Args:
        name: Name of the logger
        level: Logging level (default: GEOLENS_LOG_LEVEL or WARNING)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(level if level is not None else _level_from_env())

        from rich.logging import RichHandler

        root_logger = logging.getLogger()
        has_rich_handler = any(
            isinstance(handler, RichHandler) for handler in root_logger.handlers
        )

        if not has_rich_handler:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            logger.addHandler(handler)
            # Root may also have a basicConfig handler; avoid printing twice
            logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Name of the logger

    Returns:
        logging.Logger: Logger instance
    """
    return setup_logger(name)


def configure_cli_logging(verbose: bool = False) -> None:
    """
    Route all geolens logging through a RichHandler on the root logger.

    Loggers created before this call keep their own StreamHandler, so the
    handlers are dropped and propagation is re-enabled for them.
    """
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else _level_from_env()
    root_logger = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root_logger.handlers):
        root_logger.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
    root_logger.setLevel(level)

    for name, existing in logging.Logger.manager.loggerDict.items():
        if name.startswith("geolens") and isinstance(existing, logging.Logger):
            for handler in list(existing.handlers):
                existing.removeHandler(handler)
            existing.propagate = True
            existing.setLevel(level)
