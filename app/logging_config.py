"""Logging configuration for the application."""

import logging
import sys

from .config import LOG_LEVEL


def setup_logging() -> None:
    """Configure application-wide logging.

    Level comes from LOG_LEVEL (default INFO). Output goes to stdout.
    """
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name."""
    return logging.getLogger(name)
