"""Logging configuration for push-mtr."""

import logging
import os
import sys


def configure_logging() -> None:
    """Configure application-wide logging.

    Respects PUSHMTR_LOG_LEVEL environment variable (default: INFO).
    Logs to stderr with timestamp, level, module name, and message, so
    stdout stays free for reports printed in stdout mode.

    Environment Variables:
        PUSHMTR_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                          Default is INFO.
        PUSHMTR_DEBUG: Any of 1/true/yes/on forces DEBUG.

    Examples:
        # Debug level for troubleshooting
        $ PUSHMTR_LOG_LEVEL=DEBUG python -m pushmtr

        # Quiet mode
        $ PUSHMTR_LOG_LEVEL=WARNING python -m pushmtr
    """
    # Get log level from environment, default to INFO
    log_level_str = os.environ.get("PUSHMTR_LOG_LEVEL", "INFO").upper()

    # Map string to logging constant
    log_level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    log_level = log_level_map.get(log_level_str, logging.INFO)

    # PUSHMTR_DEBUG wins over the named level
    if os.environ.get("PUSHMTR_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}:
        log_level = logging.DEBUG

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,  # Override any existing configuration
    )

    # Log the configuration for visibility
    logger = logging.getLogger(__name__)
    logger.info("Logging configured: level=%s", logging.getLevelName(log_level))
