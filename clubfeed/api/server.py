"""aiohttp server for the clubfeed API.

Builds the web application around a ``FeedDispatcher`` and runs it until
SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

from aiohttp import web

from clubfeed.core.config_manager import ConfigManager, ServiceConfig
from clubfeed.core.edge_cache import EdgeCache, MemoryEdgeCache
from clubfeed.core.fetcher import FeedFetcher
from clubfeed.core.http_client import close_all_clients
from clubfeed.core.timezone_utils import TimeProviderFn, now_utc

from .dispatcher import FeedDispatcher
from .middleware.correlation_id import correlation_id_middleware
from .middleware.cors import cors_headers, make_cors_middleware
from .routes import register_feed_routes

logger = logging.getLogger(__name__)

DISPATCHER_KEY: web.AppKey[FeedDispatcher] = web.AppKey("dispatcher", FeedDispatcher)


def _build_default_config_from_env() -> ServiceConfig:
    """Build configuration from .env and environment variables."""
    return ConfigManager().load_full_config()


def create_app(
    config: ServiceConfig,
    *,
    fetcher: Optional[FeedFetcher] = None,
    cache: Optional[EdgeCache] = None,
    time_provider: Optional[TimeProviderFn] = None,
) -> web.Application:
    """Create the aiohttp application.

    Args:
        config: Resolved service configuration
        fetcher: Upstream fetcher (default uses the shared HTTP client)
        cache: Edge cache (default is an in-memory cache sized from config)
        time_provider: Clock override for tests

    Returns:
        Configured web.Application
    """
    if fetcher is None:
        fetcher = FeedFetcher(user_agent=config.user_agent, timeout=config.request_timeout)
    if cache is None:
        cache = MemoryEdgeCache(max_entries=config.cache_max_entries)

    dispatcher = FeedDispatcher(config, fetcher, cache, time_provider or now_utc)

    app = web.Application(
        middlewares=[
            correlation_id_middleware,
            make_cors_middleware(cors_headers(config.cors_origin)),
        ]
    )
    app[DISPATCHER_KEY] = dispatcher
    register_feed_routes(app, dispatcher)

    async def _shutdown(_app: web.Application) -> None:
        logger.info("Application shutdown requested")
        await dispatcher.drain()

    app.on_shutdown.append(_shutdown)
    return app


async def _serve(config: ServiceConfig, external_stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server until signalled to stop.

    Args:
        config: Service configuration
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()

    logger.debug(
        "Creating web application: bind=%s port=%d ics=%s rss=%s",
        config.server_bind,
        config.server_port,
        "set" if config.ical_url else "unset",
        "set" if config.news_rss_url else "unset",
    )
    app = create_app(config)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", config.server_bind, config.server_port)
        await runner.cleanup()
        raise

    logger.info("Server started successfully on %s:%d", config.server_bind, config.server_port)
    if not config.ical_url:
        logger.warning("ICAL_URL is not set; event endpoints will answer 400")
    if not config.news_rss_url:
        logger.warning("NEWS_RSS_URL is not set; news endpoints will answer 400")

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)
    else:
        logger.debug("Using external stop event - skipping signal handler registration")

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    # runner.cleanup() fires on_shutdown, which drains pending cache writes
    await runner.cleanup()

    try:
        await close_all_clients()
        logger.debug("Shared HTTP clients cleaned up")
    except Exception as e:
        logger.warning("Error cleaning up shared HTTP clients: %s", e)

    logger.info("Server shutdown complete")


def start_server(config: ServiceConfig) -> None:
    """Start the asyncio event loop and HTTP server.

    Blocks the calling thread until SIGINT/SIGTERM is received.
    """
    from clubfeed.core.logging_config import configure_logging

    configure_logging(debug_mode=config.debug_logging)
    logger.info("Logging configuration applied: debug_mode=%s", config.debug_logging)

    try:
        logger.debug("Running asyncio event loop for server")
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception:
        logger.exception("Server terminated unexpectedly")
        raise
