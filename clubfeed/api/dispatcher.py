"""Request routing and edge-cache orchestration for the feed endpoints.

Every endpoint follows the same cycle: check configuration, consult the edge
cache, fetch upstream once on a miss, transform, answer, and store the answer
in the cache in the background.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from clubfeed.calendar.ics_datetime import IcsDateNormalizer
from clubfeed.calendar.ics_parser import IcsEventParser
from clubfeed.core.config_manager import ICAL_URL_ENV, NEWS_RSS_URL_ENV, ServiceConfig
from clubfeed.core.edge_cache import EdgeCache, FeedResponse, request_cache_key
from clubfeed.core.exceptions import FeedConfigError, UpstreamFetchError
from clubfeed.core.fetcher import FeedFetcher, FeedKind
from clubfeed.core.timezone_utils import TimeProviderFn, now_utc, resolve_local_timezone
from clubfeed.domain.filters import limit_items, resolve_days, resolve_limit, select_upcoming_events
from clubfeed.domain.models import EventsPayload, NewsPayload
from clubfeed.news.rss_parser import RssItemParser

from .middleware.cors import cors_headers

logger = logging.getLogger(__name__)

STALE_WHILE_REVALIDATE_SECONDS = 86400

CONTENT_TYPE_TEXT = "text/plain; charset=utf-8"
CONTENT_TYPE_JSON = "application/json; charset=utf-8"
CONTENT_TYPE_ICS = "text/calendar; charset=utf-8"
CONTENT_TYPE_RSS = "application/rss+xml; charset=utf-8"

# Checked in order; "/api/events/raw" must win over "/api/events"
ROUTE_SUFFIXES = (
    ("/api/events/raw", "events_raw"),
    ("/api/news/raw", "news_raw"),
    ("/api/events", "events_json"),
    ("/api/news", "news_json"),
)

Query = Mapping[str, list[str]]
Renderer = Callable[[str, Query], tuple[bytes, str]]


def _first(query: Query, name: str) -> Optional[str]:
    values = query.get(name)
    return values[0] if values else None


class FeedDispatcher:
    """Routes requests to the four feed operations and manages the edge cache."""

    def __init__(
        self,
        config: ServiceConfig,
        fetcher: FeedFetcher,
        cache: EdgeCache,
        time_provider: TimeProviderFn = now_utc,
    ) -> None:
        """Initialize dispatcher.

        Args:
            config: Resolved service configuration
            fetcher: Upstream feed fetcher
            cache: Edge cache collaborator
            time_provider: Clock for filtering and ``updatedAt``
        """
        self.config = config
        self.fetcher = fetcher
        self.cache = cache
        self.time_provider = time_provider
        self.cors = cors_headers(config.cors_origin)
        self.cache_control = (
            f"public, max-age={config.cache_ttl_seconds}, "
            f"stale-while-revalidate={STALE_WHILE_REVALIDATE_SECONDS}"
        )

        normalizer = IcsDateNormalizer(time_provider, resolve_local_timezone(config.local_timezone))
        self.ics_parser = IcsEventParser(normalizer, config.calendar_label)
        self.rss_parser = RssItemParser()

        self._pending_writes: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------ routing

    async def dispatch(self, method: str, url: str) -> FeedResponse:
        """Answer one request.

        Args:
            method: HTTP method (all methods are routed alike)
            url: Full request URL including query string

        Returns:
            Complete response with CORS headers
        """
        path = urlsplit(url).path.rstrip("/")

        if not path:
            return self._text_response(200, "OK")

        for suffix, operation in ROUTE_SUFFIXES:
            if path.endswith(suffix):
                handler: Callable[[str, str], Awaitable[FeedResponse]] = getattr(self, operation)
                return await handler(method, url)

        logger.debug("No route for %s %s", method, path)
        return self._text_response(404, "Not found")

    # --------------------------------------------------------------- operations

    async def events_json(self, method: str, url: str) -> FeedResponse:
        """Upcoming events as JSON, honouring ``days`` and ``limit``."""
        return await self._serve(
            method, url, self.config.ical_url, ICAL_URL_ENV, FeedKind.ICS, self._render_events
        )

    async def events_raw(self, method: str, url: str) -> FeedResponse:
        """Upstream ICS text passed through unchanged."""
        return await self._serve(
            method,
            url,
            self.config.ical_url,
            ICAL_URL_ENV,
            FeedKind.ICS,
            lambda text, _query: (text.encode("utf-8"), CONTENT_TYPE_ICS),
        )

    async def news_json(self, method: str, url: str) -> FeedResponse:
        """News items as JSON, newest first, honouring ``limit``."""
        return await self._serve(
            method, url, self.config.news_rss_url, NEWS_RSS_URL_ENV, FeedKind.RSS, self._render_news
        )

    async def news_raw(self, method: str, url: str) -> FeedResponse:
        """Upstream RSS text passed through unchanged."""
        return await self._serve(
            method,
            url,
            self.config.news_rss_url,
            NEWS_RSS_URL_ENV,
            FeedKind.RSS,
            lambda text, _query: (text.encode("utf-8"), CONTENT_TYPE_RSS),
        )

    # ---------------------------------------------------------------- internals

    async def _serve(
        self,
        method: str,
        url: str,
        feed_url: Optional[str],
        setting: str,
        kind: FeedKind,
        render: Renderer,
    ) -> FeedResponse:
        try:
            if not feed_url:
                raise FeedConfigError(setting)

            key = request_cache_key(method, url)
            cached = await self._cache_get(key)
            if cached is not None:
                return cached.with_headers(self.cors)

            text = await self.fetcher.fetch_text(feed_url, kind)
        except FeedConfigError as e:
            logger.warning("Rejecting %s: %s", url, e)
            return self._json_response(400, {"error": str(e)})
        except UpstreamFetchError as e:
            return self._text_response(502, str(e))

        query = parse_qs(urlsplit(url).query, keep_blank_values=True)
        body, content_type = render(text, query)
        response = FeedResponse(
            status=200,
            body=body,
            headers={
                **self.cors,
                "content-type": content_type,
                "cache-control": self.cache_control,
            },
        )
        self._schedule_cache_write(key, response)
        return response

    def _render_events(self, text: str, query: Query) -> tuple[bytes, str]:
        events = self.ics_parser.parse(text).events
        now = self.time_provider()
        upcoming = select_upcoming_events(events, now, resolve_days(_first(query, "days")))
        limit = resolve_limit(_first(query, "limit"), len(upcoming))
        selected = limit_items(upcoming, limit)
        payload = EventsPayload(updated_at=now, count=len(selected), events=selected)
        logger.debug("Serving %d of %d parsed events", len(selected), len(events))
        return payload.model_dump_json(by_alias=True).encode("utf-8"), CONTENT_TYPE_JSON

    def _render_news(self, text: str, query: Query) -> tuple[bytes, str]:
        items = self.rss_parser.parse(text)
        limit = resolve_limit(_first(query, "limit"), len(items))
        selected = limit_items(items, limit)
        payload = NewsPayload(updated_at=self.time_provider(), count=len(selected), items=selected)
        logger.debug("Serving %d of %d parsed news items", len(selected), len(items))
        return payload.model_dump_json(by_alias=True).encode("utf-8"), CONTENT_TYPE_JSON

    def _text_response(self, status: int, text: str) -> FeedResponse:
        return FeedResponse(
            status=status,
            body=text.encode("utf-8"),
            headers={**self.cors, "content-type": CONTENT_TYPE_TEXT},
        )

    def _json_response(self, status: int, obj: object) -> FeedResponse:
        return FeedResponse(
            status=status,
            body=json.dumps(obj, separators=(",", ":")).encode("utf-8"),
            headers={**self.cors, "content-type": CONTENT_TYPE_JSON},
        )

    # ------------------------------------------------------------- edge cache

    async def _cache_get(self, key: str) -> Optional[FeedResponse]:
        try:
            cached = await self.cache.get(key)
        except Exception:
            # An unreadable cache is treated as a miss
            logger.warning("Edge cache read failed for %s", key, exc_info=True)
            return None
        if cached is not None:
            logger.debug("Edge cache hit: %s", key)
        else:
            logger.debug("Edge cache miss: %s", key)
        return cached

    def _schedule_cache_write(self, key: str, response: FeedResponse) -> None:
        task = asyncio.create_task(self._cache_write(key, response))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _cache_write(self, key: str, response: FeedResponse) -> None:
        try:
            await self.cache.put(key, response)
        except Exception:
            logger.warning("Background edge cache write failed for %s", key, exc_info=True)

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def drain(self) -> None:
        """Wait for all scheduled cache writes to finish."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
