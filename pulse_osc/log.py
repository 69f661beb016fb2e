"""Logging configuration."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

APP_LOGGER = "pulse_osc"

# Chatty at INFO/DEBUG; only surfaced when the transport debug flag is set
TRANSPORT_LOGGERS = ("bleak", "pythonosc", "websockets")


def resolve_level(level: str) -> int | None:
    """Return the numeric level for a name, or None if it is not a known level."""
    name = level.upper()
    if name not in VALID_LEVELS:
        return None
    return getattr(logging, name)


def setup_logging(level: str = "INFO", debug_transport: bool = False) -> None:
    """Configure logging for the application.

    Args:
        level: Level for the pulse_osc loggers (DEBUG, INFO, WARNING, ERROR)
        debug_transport: Also log BLE/OSC/WebSocket library output at DEBUG
    """
    numeric_level = resolve_level(level)

    # stderr keeps stdout free for the device list
    logging.basicConfig(
        level=logging.WARNING,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug_transport else logging.NOTSET)

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(numeric_level if numeric_level is not None else logging.INFO)
    if numeric_level is None:
        app_logger.warning("Unknown log level '%s', defaulting to INFO", level)
