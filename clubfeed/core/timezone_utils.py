"""Clock and local timezone helpers for clubfeed."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "CLUBFEED_TEST_TIME"

# Type alias for injected clocks
TimeProviderFn = Callable[[], datetime.datetime]


class TimeProvider:
    """Provides current time with test time override support."""

    def __init__(self, env_var: str = TEST_TIME_ENV):
        self.env_var = env_var

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the CLUBFEED_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2025-03-01T00:00:00Z")

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get(self.env_var)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                # Assume naive datetime is already UTC
                return dt.replace(tzinfo=datetime.timezone.utc)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", self.env_var, test_time, e)

        return datetime.datetime.now(datetime.timezone.utc)


_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function).

    Returns:
        Current time in UTC
    """
    return _time_provider.now_utc()


def start_of_day_utc(dt: datetime.datetime) -> datetime.datetime:
    """Return midnight UTC of the calendar day containing ``dt``."""
    utc = dt.astimezone(datetime.timezone.utc)
    return datetime.datetime(utc.year, utc.month, utc.day, tzinfo=datetime.timezone.utc)


def resolve_local_timezone(name: Optional[str]) -> Optional[datetime.tzinfo]:
    """Resolve a configured IANA zone name for floating ICS times.

    Args:
        name: IANA timezone identifier such as "Europe/Stockholm", or None

    Returns:
        ZoneInfo for valid names; None when unset or invalid, meaning the
        process local zone is used instead.
    """
    if not name or not name.strip():
        return None
    try:
        return zoneinfo.ZoneInfo(name.strip())
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid local timezone %r, using process local zone", name)
        return None
