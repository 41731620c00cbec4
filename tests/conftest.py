from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import pytest

from clubfeed.api.dispatcher import FeedDispatcher
from clubfeed.core.config_manager import ServiceConfig
from clubfeed.core.edge_cache import MemoryEdgeCache
from clubfeed.core.fetcher import FeedFetcher

ICS_URL = "https://calendar.example.test/club.ics"
RSS_URL = "https://news.example.test/rss"

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic "now" used by every clock-dependent test: 2025-06-15 12:00 UTC."""
    return FIXED_NOW


@pytest.fixture
def fixed_clock(fixed_now: datetime) -> Callable[[], datetime]:
    """Time provider callable that always returns ``fixed_now``."""
    return lambda: fixed_now


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> None:
    """Keep clubfeed environment variables from leaking into tests.

    Each variable is set then deleted through monkeypatch so its original state
    is restored at teardown even when code under test writes os.environ directly.
    """
    for name in (
        "ICAL_URL",
        "NEWS_RSS_URL",
        "CORS_ORIGIN",
        "CLUBFEED_TEST_TIME",
        "CLUBFEED_DEBUG",
        "CLUBFEED_LOG_LEVEL",
        "CLUBFEED_WEB_PORT",
        "CLUBFEED_SERVER_PORT",
        "CLUBFEED_WEB_HOST",
        "CLUBFEED_SERVER_BIND",
        "CLUBFEED_CACHE_TTL",
        "CLUBFEED_CACHE_MAX_ENTRIES",
        "CLUBFEED_LOCAL_TIMEZONE",
        "CLUBFEED_CALENDAR_LABEL",
        "CLUBFEED_USER_AGENT",
        "CLUBFEED_REQUEST_TIMEOUT",
    ):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


# ==================== Feed Test Data Fixtures ====================


@pytest.fixture
def sample_ics() -> str:
    """
    Return an ICS calendar relative to ``fixed_now`` (2025-06-15 12:00 UTC).

    Events, in document order:
      - far-future: 2026-01-10 10:00 UTC (inside the default 365 day window)
      - past: 2025-06-01 10:00 UTC (before today, always filtered)
      - all-day: 2025-06-15 (today, bare date)
      - match: 2025-06-16 18:00-20:00 UTC with a folded SUMMARY
      - floating: 2025-06-17 19:00 Europe/Stockholm via TZID (17:00 UTC)
    """
    return (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "PRODID:-//clubfeed test//EN\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:far-future\r\n"
        "DTSTART:20260110T100000Z\r\n"
        "DTEND:20260110T120000Z\r\n"
        "SUMMARY:Season opener\r\n"
        "END:VEVENT\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:past\r\n"
        "DTSTART:20250601T100000Z\r\n"
        "SUMMARY:Old match\r\n"
        "END:VEVENT\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:all-day\r\n"
        "DTSTART;VALUE=DATE:20250615\r\n"
        "SUMMARY:Club day\r\n"
        "END:VEVENT\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:match\r\n"
        "DTSTART:20250616T180000Z\r\n"
        "DTEND:20250616T200000Z\r\n"
        "SUMMARY:Home match vs \r\n"
        " Rivals\r\n"
        "LOCATION:Sports hall\r\n"
        "URL:https://club.example.test/match\r\n"
        "END:VEVENT\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:floating\r\n"
        "DTSTART;TZID=Europe/Stockholm:20250617T190000\r\n"
        "DTEND;TZID=Europe/Stockholm:20250617T210000\r\n"
        "SUMMARY:Training\r\n"
        "END:VEVENT\r\n"
        "END:VCALENDAR\r\n"
    )


@pytest.fixture
def sample_rss() -> str:
    """
    Return an RSS 2.0 document with three items out of date order.

    Items, in document order:
      - "Older news" (Mon, 02 Jun 2025)
      - "Hello World" (Sun, 15 Jun 2025) with a CDATA title, HTML description,
        an enclosure and two categories
      - "Undated news" (no pubDate)
    """
    return """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Club news</title>
    <item>
      <title>Older news</title>
      <link>https://club.example.test/news/1</link>
      <guid isPermaLink="false">news-1</guid>
      <pubDate>Mon, 02 Jun 2025 08:00:00 +0000</pubDate>
      <description>Plain text</description>
    </item>
    <item>
      <title><![CDATA[Hello <b>World</b>]]></title>
      <link>https://club.example.test/news/2</link>
      <guid>news-2</guid>
      <pubDate>Sun, 15 Jun 2025 09:30:00 +0200</pubDate>
      <description><![CDATA[<p>Fish &amp; Chips</p>
<p>tonight</p>]]></description>
      <enclosure url="https://club.example.test/img/2.jpg" type="image/jpeg" length="100"/>
      <category>Senior</category>
      <category><![CDATA[Youth]]></category>
    </item>
    <item>
      <title>Undated news</title>
      <link>https://club.example.test/news/3</link>
    </item>
  </channel>
</rss>
"""


# ==================== Upstream / Dispatcher Fixtures ====================


class UpstreamStub:
    """httpx MockTransport handler serving canned bodies and counting calls.

    A route whose status is None fails at the transport level.
    """

    def __init__(self, routes: dict[str, tuple[Optional[int], str]]):
        self.routes = routes
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        status, body = self.routes.get(str(request.url), (404, "missing"))
        if status is None:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status, text=body)

    def count(self, url: str) -> int:
        return sum(1 for r in self.calls if str(r.url) == url)


@pytest.fixture
def ics_url() -> str:
    return ICS_URL


@pytest.fixture
def rss_url() -> str:
    return RSS_URL


@pytest.fixture
def upstream(sample_ics: str, sample_rss: str) -> UpstreamStub:
    """Upstream stub answering ICS_URL and RSS_URL with the sample feeds."""
    return UpstreamStub({ICS_URL: (200, sample_ics), RSS_URL: (200, sample_rss)})


@pytest.fixture
async def mock_client(upstream: UpstreamStub) -> AsyncIterator[httpx.AsyncClient]:
    """httpx client routed through ``upstream``."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    yield client
    await client.aclose()


@pytest.fixture
def service_config() -> ServiceConfig:
    """Configuration with both upstream feeds set and a fixed local zone."""
    return ServiceConfig(
        ical_url=ICS_URL,
        news_rss_url=RSS_URL,
        local_timezone="Europe/Stockholm",
    )


@pytest.fixture
def edge_cache() -> MemoryEdgeCache:
    return MemoryEdgeCache(max_entries=16)


@pytest.fixture
def make_dispatcher(
    mock_client: httpx.AsyncClient,
    edge_cache: MemoryEdgeCache,
    fixed_clock: Callable[[], datetime],
    service_config: ServiceConfig,
) -> Callable[..., FeedDispatcher]:
    """Factory building a dispatcher wired to the upstream stub and fixed clock.

    Keyword overrides are applied to ``service_config``; ``cache`` swaps the
    edge cache.
    """

    def factory(cache: Any = None, **overrides: Any) -> FeedDispatcher:
        config = service_config.model_copy(update=overrides)
        return FeedDispatcher(
            config,
            FeedFetcher(client=mock_client),
            cache if cache is not None else edge_cache,
            fixed_clock,
        )

    return factory
