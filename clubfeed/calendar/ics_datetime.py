"""DATE / DATE-TIME normalization for ICS event properties.

Three encodings are recognized for ``DTSTART`` and ``DTEND`` values:

- bare date ``YYYYMMDD`` (all-day event, midnight UTC of that date)
- UTC date-time ``YYYYMMDDThhmmssZ``
- floating date-time ``YYYYMMDDThhmmss`` (wall time in a local zone)

Anything else normalizes to "now" without raising.
"""

import logging
import re
import zoneinfo
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from clubfeed.core.timezone_utils import TimeProviderFn, now_utc
from clubfeed.domain.models import format_instant

__all__ = [
    "IcsDateNormalizer",
    "NormalizedSpan",
    "format_instant",
    "parse_ics_date",
    "parse_ics_floating",
    "parse_ics_utc",
]

logger = logging.getLogger(__name__)

DATE_ONLY_RE = re.compile(r"^\d{8}$")
DATE_TIME_UTC_RE = re.compile(r"^\d{8}T\d{6}Z$")
DATE_TIME_FLOATING_RE = re.compile(r"^\d{8}T\d{6}$")

ALL_DAY_DURATION = timedelta(hours=24)


@dataclass(frozen=True)
class NormalizedSpan:
    """Start/end instants of one event, both timezone-aware UTC."""

    start: datetime
    end: datetime
    is_all_day: bool


def _date_fields(value: str) -> tuple[int, int, int]:
    return int(value[0:4]), int(value[4:6]), int(value[6:8])


def _time_fields(value: str) -> tuple[int, int, int]:
    return int(value[9:11]), int(value[11:13]), int(value[13:15])


def parse_ics_date(value: str) -> datetime:
    """Parse ``YYYYMMDD`` as midnight UTC of that calendar date.

    Raises:
        ValueError: If the digits do not form a real date
    """
    return datetime(*_date_fields(value), tzinfo=timezone.utc)


def parse_ics_utc(value: str) -> datetime:
    """Parse ``YYYYMMDDThhmmssZ`` as literal UTC fields.

    Raises:
        ValueError: If the digits do not form a real date-time
    """
    return datetime(*_date_fields(value), *_time_fields(value), tzinfo=timezone.utc)


def parse_ics_floating(value: str, local_tz: Optional[tzinfo] = None) -> datetime:
    """Parse ``YYYYMMDDThhmmss`` as wall time in ``local_tz`` and convert to UTC.

    Args:
        value: Floating date-time string
        local_tz: Zone the wall time belongs to; None uses the process local zone

    Raises:
        ValueError: If the digits do not form a real date-time
    """
    naive = datetime(*_date_fields(value), *_time_fields(value))
    if local_tz is None:
        # astimezone() on a naive datetime interprets it in the process local zone
        return naive.astimezone().astimezone(timezone.utc)
    return naive.replace(tzinfo=local_tz).astimezone(timezone.utc)


def _zone_for_tzid(tzid: Optional[str]) -> Optional[tzinfo]:
    if not tzid:
        return None
    try:
        return zoneinfo.ZoneInfo(tzid.strip().strip('"'))
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown TZID %r, using configured local zone", tzid)
        return None


class IcsDateNormalizer:
    """Convert DTSTART/DTEND raw values into a UTC span."""

    def __init__(
        self,
        time_provider: TimeProviderFn = now_utc,
        local_tz: Optional[tzinfo] = None,
    ) -> None:
        """Initialize normalizer.

        Args:
            time_provider: Clock used for the "now" fallback
            local_tz: Zone for floating date-times; None uses the process local zone
        """
        self.time_provider = time_provider
        self.local_tz = local_tz

    def _floating(self, value: str, tzid: Optional[str]) -> datetime:
        return parse_ics_floating(value, _zone_for_tzid(tzid) or self.local_tz)

    def _time_bearing(self, value: Optional[str], tzid: Optional[str]) -> Optional[datetime]:
        """Parse a UTC or floating date-time; None for anything else."""
        if not value:
            return None
        try:
            if DATE_TIME_UTC_RE.match(value):
                return parse_ics_utc(value)
            if DATE_TIME_FLOATING_RE.match(value):
                return self._floating(value, tzid)
        except ValueError:
            logger.debug("Impossible ICS date-time %r", value)
        return None

    def normalize(
        self,
        dtstart: Optional[str],
        dtend: Optional[str] = None,
        *,
        start_tzid: Optional[str] = None,
        end_tzid: Optional[str] = None,
    ) -> NormalizedSpan:
        """Normalize a start/end pair.

        Args:
            dtstart: Raw DTSTART value (may be None)
            dtend: Raw DTEND value (may be None)
            start_tzid: TZID parameter of DTSTART, if any
            end_tzid: TZID parameter of DTEND, if any

        Returns:
            NormalizedSpan with UTC instants
        """
        start_raw = (dtstart or "").strip()
        end_raw = (dtend or "").strip() or None

        if DATE_ONLY_RE.match(start_raw):
            try:
                start = parse_ics_date(start_raw)
            except ValueError:
                logger.debug("Impossible ICS date %r, using now", start_raw)
                return self._now_span()
            end = None
            if end_raw and DATE_ONLY_RE.match(end_raw):
                try:
                    end = parse_ics_date(end_raw)
                except ValueError:
                    logger.debug("Impossible ICS end date %r", end_raw)
            return NormalizedSpan(start, end or start + ALL_DAY_DURATION, True)

        if DATE_TIME_UTC_RE.match(start_raw) or DATE_TIME_FLOATING_RE.match(start_raw):
            start = self._time_bearing(start_raw, start_tzid)
            if start is None:
                return self._now_span()
            end = self._time_bearing(end_raw, end_tzid)
            return NormalizedSpan(start, end or start, False)

        if start_raw:
            logger.debug("Unrecognized DTSTART %r, using now", start_raw)
        return self._now_span()

    def _now_span(self) -> NormalizedSpan:
        now = self.time_provider()
        return NormalizedSpan(now, now, False)
