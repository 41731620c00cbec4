"""Cross-origin headers middleware.

Every response leaving the service carries the same permissive CORS headers,
including aiohttp-raised HTTP errors and unexpected handler failures.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping

from aiohttp import web

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

ALLOW_METHODS = "GET, HEAD, OPTIONS"
ALLOW_HEADERS = "Content-Type, Cache-Control"


def cors_headers(allowed_origin: str | None = None) -> dict[str, str]:
    """Build the fixed CORS header set.

    Args:
        allowed_origin: Configured origin; empty or None means "*"

    Returns:
        Lower-case header name to value mapping
    """
    return {
        "access-control-allow-origin": allowed_origin or "*",
        "access-control-allow-methods": ALLOW_METHODS,
        "access-control-allow-headers": ALLOW_HEADERS,
    }


def make_cors_middleware(headers: Mapping[str, str]) -> Callable[..., Awaitable[web.StreamResponse]]:
    """Create middleware that stamps ``headers`` onto every response."""

    @web.middleware
    async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(headers)
            raise
        except Exception:
            logger.exception("Unhandled error serving %s %s", request.method, request.path)
            return web.Response(
                status=500, text="Internal Server Error", headers=dict(headers)
            )

        response.headers.update(headers)
        return response

    return cors_middleware
