"""
Central logging configuration for clubfeed.

Suppresses verbose debug logs from third-party libraries while keeping
request-scoped diagnostics, and stamps every record with the correlation ID
of the request being served.
"""

import logging
import os
from typing import Optional


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to all log records for distributed tracing."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to log record.

        Args:
            record: Log record to enhance

        Returns:
            True to allow record to be logged
        """
        # Imported here to avoid pulling aiohttp in at logging setup time
        from clubfeed.api.middleware.correlation_id import get_request_id

        record.request_id = get_request_id()
        return True


# Third-party loggers that are noisy at DEBUG
_QUIET_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for clubfeed.

    Args:
        debug_mode: Whether to enable debug logging for clubfeed modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CLUBFEED_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CLUBFEED_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CLUBFEED_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CLUBFEED_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    correlation_filter = CorrelationIdFilter()

    # Keep the colorized handler installed by clubfeed._init_logging when present
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        formatter = logging.Formatter(
            "[%(asctime)s] [%(request_id)s] %(levelname)s - %(name)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in existing_handler.filters):
                existing_handler.addFilter(correlation_filter)

    for logger_name, level in _QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger("clubfeed").setLevel(logging.DEBUG if final_debug else logging.INFO)

    if final_debug:
        root_logger.info("Debug logging enabled for clubfeed modules")
    else:
        root_logger.info("Production logging configuration applied")

