"""HTTP fetcher for upstream ICS and RSS feeds."""

import logging
from enum import Enum
from typing import Optional

import httpx

from .exceptions import UpstreamFetchError
from .http_client import (
    DEFAULT_HEADERS,
    DEFAULT_TIMEOUT,
    get_headers_with_correlation_id,
    get_shared_client,
    record_client_error,
    record_client_success,
)

logger = logging.getLogger(__name__)

SHARED_CLIENT_ID = "upstream"


class FeedKind(str, Enum):
    """Upstream feed types served by clubfeed."""

    ICS = "ICS"
    RSS = "RSS"


_ACCEPT_HEADERS: dict[FeedKind, str] = {
    FeedKind.ICS: "text/calendar, text/plain, */*",
    FeedKind.RSS: "application/rss+xml, application/xml, text/xml, */*",
}


class FeedFetcher:
    """Fetches upstream feed text.

    Each call performs exactly one request; failures are raised as
    ``UpstreamFetchError`` and never retried.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            client: HTTP client to use; defaults to the shared pooled client
            user_agent: User-Agent sent upstream
            timeout: Read, write and pool timeout in seconds; connect keeps
                the client default (client default for all when None)
        """
        self._client = client
        self._uses_shared_client = client is None
        self.user_agent = user_agent or DEFAULT_HEADERS["User-Agent"]
        self.timeout: Optional[httpx.Timeout] = None
        if timeout is not None:
            self.timeout = httpx.Timeout(timeout, connect=DEFAULT_TIMEOUT.connect)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = await get_shared_client(SHARED_CLIENT_ID)
        return self._client

    def _build_headers(self, kind: FeedKind) -> dict[str, str]:
        headers = get_headers_with_correlation_id({})
        headers["User-Agent"] = self.user_agent
        headers["Accept"] = _ACCEPT_HEADERS[kind]
        return headers

    async def fetch_text(self, url: str, kind: FeedKind) -> str:
        """Fetch an upstream feed and return its decoded text.

        Args:
            url: Upstream feed URL
            kind: Which feed is being fetched (selects Accept header and messages)

        Returns:
            Response body as text

        Raises:
            UpstreamFetchError: On non-2xx status or transport failure
        """
        client = await self._get_client()
        request_kwargs = {"headers": self._build_headers(kind)}
        if self.timeout is not None:
            request_kwargs["timeout"] = self.timeout

        try:
            response = await client.get(url, **request_kwargs)
        except httpx.HTTPError as e:
            logger.warning("Network error fetching %s feed from %s: %s", kind.value, url, e)
            await self._record(success=False)
            raise UpstreamFetchError(f"Failed to fetch {kind.value}") from e

        if not response.is_success:
            logger.warning(
                "Upstream %s feed returned HTTP %d from %s",
                kind.value,
                response.status_code,
                url,
            )
            await self._record(success=False)
            raise UpstreamFetchError(
                f"Failed to fetch {kind.value}", status_code=response.status_code
            )

        await self._record(success=True)
        logger.debug(
            "Fetched %s feed from %s (%d bytes)", kind.value, url, len(response.content)
        )
        return response.text

    async def _record(self, *, success: bool) -> None:
        if not self._uses_shared_client:
            return
        if success:
            await record_client_success(SHARED_CLIENT_ID)
        else:
            await record_client_error(SHARED_CLIENT_ID)
