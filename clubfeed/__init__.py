"""clubfeed - calendar and news feed API for a sports club website.

Fetches an ICS calendar and an RSS news feed, normalizes them to JSON and
serves both normalized and raw forms behind an edge cache. Imports are kept
light so the package can be inspected without starting the server.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors the CLUBFEED_DEBUG environment variable (truthy values: "1", "true",
    "yes", "on"), which forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("CLUBFEED_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message, with only the level colorized
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the clubfeed server.

    Args:
        args: Optional command line arguments namespace containing --port

    Behavior:
    - Initialize console logging early using CLUBFEED_LOG_LEVEL (env) if present.
    - Build the configuration from .env and the environment.
    - Apply command line argument overrides to configuration.
    - Delegate to ``clubfeed.api.server.start_server`` and block until shutdown.
    """
    import os

    _init_logging(os.environ.get("CLUBFEED_LOG_LEVEL"))

    import importlib
    import logging

    logger = logging.getLogger(__name__)

    server = importlib.import_module("clubfeed.api.server")
    config = server._build_default_config_from_env()

    if args is not None:
        port = getattr(args, "port", None)
        if port is not None:
            try:
                port_int = int(port)
                config = config.model_copy(update={"server_port": port_int})
                logger.debug("Applied command line port override: %d", port_int)
            except (ValueError, TypeError) as e:
                logger.warning("Invalid port value from command line '%s': %s", port, e)

    logger.info("Applying configured log_level=%s", config.log_level)
    logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    logger.debug(
        "Resolved configuration (diagnostic): bind=%s port=%d cache_ttl=%d",
        config.server_bind,
        config.server_port,
        config.cache_ttl_seconds,
    )

    server.start_server(config)
