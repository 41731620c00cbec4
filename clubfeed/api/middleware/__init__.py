"""aiohttp middlewares for the clubfeed server."""

from .correlation_id import correlation_id_middleware, get_request_id
from .cors import cors_headers, make_cors_middleware

__all__ = [
    "correlation_id_middleware",
    "cors_headers",
    "get_request_id",
    "make_cors_middleware",
]
