"""Logging configuration for hosts embedding the form engine."""

import logging
import os
import sys
from typing import Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(log_level: Optional[str] = None):
    """Configure logging for the form engine.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR). Falls back to
            FORMWIZARD_LOG_LEVEL, then INFO.
    """
    if hasattr(configure_logging, "has_run"):
        return

    log_level = log_level or os.environ.get("FORMWIZARD_LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # Configure encoding for cross-platform compatibility
    if hasattr(handler.stream, "reconfigure"):
        try:
            handler.stream.reconfigure(encoding="utf-8", errors="replace")
        except (AttributeError, ValueError, OSError):
            pass

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        force=True,
        handlers=[handler],
    )

    configure_logging.has_run = True
    logger.info(f"Logging configured at level: {log_level}")
