from collections.abc import AsyncIterator

import pytest

from clubfeed.core.http_client import close_all_clients


@pytest.fixture
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after the test to prevent leaks.

    Not autouse: AioHTTPTestCase-based tests run on their own event loop.
    """
    yield
    await close_all_clients()
