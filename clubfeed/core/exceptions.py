"""Exception hierarchy for clubfeed request handling.

The dispatcher maps these to HTTP responses: configuration errors become
400 JSON bodies and upstream failures become 502 plain-text bodies. Malformed
feed content never raises; the parsers degrade to defaulted values instead.
"""

from typing import Optional


class FeedError(Exception):
    """Base exception for all clubfeed errors."""


class FeedConfigError(FeedError):
    """A required upstream setting is not configured.

    Should result in HTTP 400 Bad Request with ``{"error": "Missing <NAME> env"}``.
    """

    def __init__(self, setting: str):
        super().__init__(f"Missing {setting} env")
        self.setting = setting


class UpstreamFetchError(FeedError):
    """Fetching an upstream feed failed.

    Raised when:
    - The upstream answered with a non-2xx status
    - The request failed at the transport level (DNS, connect, timeout)

    Should result in HTTP 502 Bad Gateway. Never retried.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
