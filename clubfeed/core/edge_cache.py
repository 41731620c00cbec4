"""Edge response cache keyed by request identity.

The dispatcher only decides when to read and write; how entries are stored
and evicted belongs to the cache implementation. ``MemoryEdgeCache`` is the
in-process implementation used by the server: entries live for the
``max-age`` advertised by the response and the oldest entry is evicted when
the cache is full.
"""

from __future__ import annotations

import logging
import re
import time
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

_MAX_AGE_RE = re.compile(r"(?:^|[,\s])max-age\s*=\s*(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class FeedResponse:
    """A complete HTTP response that can be replayed byte for byte."""

    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    def with_headers(self, extra: Mapping[str, str]) -> FeedResponse:
        """Return a copy with ``extra`` headers set (overwriting same-named ones)."""
        merged = {k.lower(): v for k, v in self.headers.items()}
        merged.update({k.lower(): v for k, v in extra.items()})
        return FeedResponse(status=self.status, body=self.body, headers=merged)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def max_age(self) -> Optional[int]:
        """Freshness lifetime from the Cache-Control header, if any."""
        cache_control = self.header("cache-control")
        if not cache_control:
            return None
        match = _MAX_AGE_RE.search(cache_control)
        return int(match.group(1)) if match else None


class EdgeCache(Protocol):
    """Key-value response cache collaborator."""

    async def get(self, key: str) -> Optional[FeedResponse]: ...

    async def put(self, key: str, response: FeedResponse) -> None: ...


def request_cache_key(method: str, url: str) -> str:
    """Cache key for a request: method plus full URL including query string."""
    return f"{method.upper()} {url}"


class MemoryEdgeCache:
    """In-memory edge cache honouring Cache-Control max-age.

    Example:
        cache = MemoryEdgeCache(max_entries=100)

        cached = await cache.get(key)
        if cached:
            return cached

        response = build_response()
        await cache.put(key, response)
    """

    def __init__(
        self,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize edge cache.

        Args:
            max_entries: Maximum number of cached responses (oldest evicted when full)
            clock: Monotonic seconds source, injectable for tests
        """
        self._entries: OrderedDict[str, tuple[FeedResponse, float]] = OrderedDict()
        self.max_entries = max_entries
        self._clock = clock
        self.stats = {
            "hits": 0,
            "misses": 0,
            "stores": 0,
            "evictions": 0,
            "expired": 0,
        }

    async def get(self, key: str) -> Optional[FeedResponse]:
        """Return the cached response for ``key`` if still fresh."""
        entry = self._entries.get(key)
        if entry is not None:
            response, expires_at = entry
            if self._clock() < expires_at:
                self.stats["hits"] += 1
                logger.debug("Edge cache hit for key: %s", key)
                return response
            del self._entries[key]
            self.stats["expired"] += 1
            logger.debug("Edge cache entry expired: %s", key)

        self.stats["misses"] += 1
        logger.debug("Edge cache miss for key: %s", key)
        return None

    async def put(self, key: str, response: FeedResponse) -> None:
        """Store ``response`` under ``key`` for its advertised max-age."""
        max_age = response.max_age
        if not max_age or max_age <= 0:
            logger.debug("Not caching response without max-age: %s", key)
            return

        if key in self._entries:
            del self._entries[key]
        while len(self._entries) >= self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self.stats["evictions"] += 1
            logger.debug("Evicted edge cache entry: %s", evicted_key)

        self._entries[key] = (response, self._clock() + max_age)
        self.stats["stores"] += 1
        logger.debug("Cached response for key: %s (max-age %d)", key, max_age)

    def clear(self) -> int:
        """Drop all entries, returning how many were removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
