"""Catch-all HTTP route that hands every request to the feed dispatcher."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    from clubfeed.api.dispatcher import FeedDispatcher
    from clubfeed.core.edge_cache import FeedResponse

logger = logging.getLogger(__name__)


def to_web_response(response: FeedResponse) -> web.Response:
    """Build an aiohttp response from a stored or freshly built FeedResponse."""
    return web.Response(status=response.status, body=response.body, headers=dict(response.headers))


def register_feed_routes(app: web.Application, dispatcher: FeedDispatcher) -> None:
    """Register the feed routes.

    Path matching is suffix based, so a single catch-all route covers every
    method and path and routing is left to the dispatcher.

    Args:
        app: aiohttp web application
        dispatcher: Dispatcher answering every request
    """

    async def feed_handler(request: web.Request) -> web.Response:
        """Dispatch any request to the matching feed operation."""
        logger.debug("Handling %s %s", request.method, request.path_qs)
        response = await dispatcher.dispatch(request.method, str(request.url))
        return to_web_response(response)

    app.router.add_route("*", "/{tail:.*}", feed_handler)
