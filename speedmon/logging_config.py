"""Logging setup for the speedmon service."""

import logging
import os
import sys
from collections.abc import Mapping

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def parse_log_level(value: str | None) -> int | None:
    """Map a SPEEDMON_LOG_LEVEL value to a logging level.

    Names are case-insensitive; numeric levels ("10", "20") are accepted as
    well. Returns None for anything else.
    """
    if value is None:
        return None
    value = value.strip().upper()
    if value.isdigit():
        return int(value)
    return LOG_LEVELS.get(value)


def configure_logging(environ: Mapping[str, str] | None = None) -> int:
    """Send service logs to stderr at the level set by SPEEDMON_LOG_LEVEL.

    stderr is what systemd and docker collect, so lifecycle events, retries
    and the JSON result dumps all end up in the service journal. An unset
    variable means INFO; an unknown value also falls back to INFO but is
    reported, so a typo does not silently hide debug output.

    Examples:
        # Show speedtest command lines and raw output previews
        $ SPEEDMON_LOG_LEVEL=debug python -m speedmon

    Returns:
        The level that was applied
    """
    if environ is None:
        environ = os.environ

    requested = environ.get("SPEEDMON_LOG_LEVEL")
    log_level = parse_log_level(requested)
    unknown = requested is not None and requested.strip() != "" and log_level is None
    if log_level is None:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
        force=True,  # replaces handlers left by an earlier call or a library
    )

    logger = logging.getLogger(__name__)
    if unknown:
        logger.warning(
            "Unknown SPEEDMON_LOG_LEVEL %r, using INFO (choices: %s)",
            requested,
            ", ".join(LOG_LEVELS),
        )
    logger.debug("Logging configured: level=%s", logging.getLevelName(log_level))
    return log_level
