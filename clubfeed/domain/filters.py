"""Query parameter parsing and event/item selection for the JSON endpoints."""

from __future__ import annotations

import datetime
import logging
import math
from collections.abc import Sequence
from typing import Optional, TypeVar

from clubfeed.core.timezone_utils import start_of_day_utc

from .models import CalendarEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DAYS = 365
MIN_DAYS = 1
MAX_DAYS = 3650
MIN_LIMIT = 1
MAX_LIMIT = 500


def clamp(value: float, low: float, high: float) -> float:
    """Clamp ``value`` into ``[low, high]``."""
    return min(max(value, low), high)


def parse_number(raw: Optional[str], default: float) -> float:
    """Parse a numeric query parameter.

    Args:
        raw: Query string value, or None when absent
        default: Value used when ``raw`` is missing or not a finite number

    Returns:
        Parsed number (may be fractional) or ``default``; a blank value is 0

    Examples:
        >>> parse_number("5", 365)
        5.0
        >>> parse_number("", 365)
        0.0
        >>> parse_number("abc", 365)
        365
    """
    if raw is None:
        return default
    if not raw.strip():
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric query value %r", raw)
        return default
    if not math.isfinite(value):
        return default
    return value


def resolve_days(raw: Optional[str]) -> float:
    """Look-ahead window in days, clamped to [1, 3650]."""
    return clamp(parse_number(raw, DEFAULT_DAYS), MIN_DAYS, MAX_DAYS)


def resolve_limit(raw: Optional[str], available: int) -> int:
    """Result limit, defaulting to ``available`` and clamped to [1, 500]."""
    return int(clamp(parse_number(raw, available), MIN_LIMIT, MAX_LIMIT))


def select_upcoming_events(
    events: Sequence[CalendarEvent],
    now: datetime.datetime,
    days: float,
) -> list[CalendarEvent]:
    """Events starting between today's UTC midnight and ``now + days``, sorted by start.

    Both bounds are inclusive, so an event that began earlier today is kept.
    """
    window_start = start_of_day_utc(now)
    horizon = now + datetime.timedelta(days=days)
    upcoming = [e for e in events if window_start <= e.start <= horizon]
    upcoming.sort(key=lambda e: e.start)
    return upcoming


def limit_items(items: Sequence[T], limit: int) -> list[T]:
    """First ``limit`` items."""
    return list(items[:limit])
