"""
Central logging configuration for plannercal.

Keeps plannercal's own loggers at the requested verbosity while suppressing
debug chatter from third-party libraries, and stamps every record with the
current request's correlation id.
"""

import logging
import os
import sys
from typing import Optional

_LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"
_COLOR_LOG_FORMAT = (
    "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s [%(request_id)s] %(name)s: %(message)s"
)

# Third-party loggers that are noisy at DEBUG
_QUIET_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to all log records for request tracing."""

    def filter(self, record: logging.LogRecord) -> bool:
        from ..api.middleware.correlation_id import get_request_id

        record.request_id = get_request_id()
        return True


def _make_formatter() -> logging.Formatter:
    try:
        from colorlog import ColoredFormatter
    except ImportError:
        return logging.Formatter(_LOG_FORMAT, datefmt="%H:%M:%S")

    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    return ColoredFormatter(_COLOR_LOG_FORMAT, datefmt="%H:%M:%S", log_colors=log_colors)


def configure_logging(debug_mode: bool = False, level_name: Optional[str] = None) -> None:
    """
    Configure logging for plannercal.

    Args:
        debug_mode: Enable DEBUG for plannercal modules
        level_name: Explicit root level name, overrides debug_mode

    Environment Variables:
        PLANNERCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        PLANNERCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("PLANNERCAL_DEBUG", "").lower() in ("1", "true", "yes", "on")
    env_level = os.getenv("PLANNERCAL_LOG_LEVEL", "").upper()

    final_debug = debug_mode or env_debug
    root_level = logging.DEBUG if final_debug else logging.INFO

    requested = (level_name or env_level or "").upper()
    if requested in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        root_level = getattr(logging, requested)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    correlation_filter = CorrelationIdFilter()
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(_make_formatter())
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in existing_handler.filters):
                existing_handler.addFilter(correlation_filter)

    for logger_name, level in _QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)
    logging.getLogger("plannercal").setLevel(logging.DEBUG if final_debug else root_level)

    root_logger.debug(
        "Logging configured: root=%s debug=%s",
        logging.getLevelName(root_level),
        final_debug,
    )


def get_logging_status() -> dict[str, str]:
    """Return current levels of the root, plannercal and quieted loggers."""
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["plannercal", *_QUIET_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
