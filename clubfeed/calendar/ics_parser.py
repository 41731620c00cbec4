"""Line-oriented VEVENT extraction from ICS text.

Only the handful of properties the events endpoint exposes are read.
Recurrence rules, text escaping and VTIMEZONE definitions are not
interpreted.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from clubfeed.core.config_manager import DEFAULT_CALENDAR_LABEL
from clubfeed.domain.models import CalendarEvent

from .ics_datetime import IcsDateNormalizer

logger = logging.getLogger(__name__)

# RFC 5545 folding: CRLF (or bare LF) followed by exactly one space or tab
_FOLD_RE = re.compile(r"\r?\n[ \t]")
_LINE_SPLIT_RE = re.compile(r"\r?\n")

KEPT_PROPERTIES = frozenset({"DTSTART", "DTEND", "SUMMARY", "LOCATION", "URL", "UID"})
TZID_PROPERTIES = frozenset({"DTSTART", "DTEND"})

_BEGIN_EVENT = "BEGIN:VEVENT"
_END_EVENT = "END:VEVENT"


def unfold_lines(text: str) -> str:
    """Join folded continuation lines.

    Examples:
        >>> unfold_lines("SUMMARY:Hel\\r\\n lo")
        'SUMMARY:Hello'
    """
    return _FOLD_RE.sub("", text)


def _split_property(line: str) -> Optional[tuple[str, dict[str, str], str]]:
    """Split ``NAME;PARAM=x:VALUE`` into name, params and value.

    Returns None for lines without a colon.
    """
    head, sep, value = line.partition(":")
    if not sep:
        return None
    name, *raw_params = head.split(";")
    params: dict[str, str] = {}
    for raw in raw_params:
        key, eq, param_value = raw.partition("=")
        if eq:
            params[key.strip().upper()] = param_value
    return name.strip().upper(), params, value


@dataclass
class IcsParseResult:
    """Events extracted from one ICS document plus scan statistics."""

    events: list[CalendarEvent] = field(default_factory=list)
    total_lines: int = 0
    skipped_lines: int = 0
    unclosed_blocks: int = 0

    @property
    def event_count(self) -> int:
        return len(self.events)


class IcsEventParser:
    """Extract ``CalendarEvent`` records from ICS text."""

    def __init__(
        self,
        normalizer: Optional[IcsDateNormalizer] = None,
        calendar_label: str = DEFAULT_CALENDAR_LABEL,
    ) -> None:
        """Initialize parser.

        Args:
            normalizer: DTSTART/DTEND normalizer (default uses the system clock)
            calendar_label: Value stamped into every event's ``calendar`` field
        """
        self.normalizer = normalizer or IcsDateNormalizer()
        self.calendar_label = calendar_label

    def parse(self, text: str) -> IcsParseResult:
        """Parse ICS text into events.

        Args:
            text: Raw ICS document

        Returns:
            IcsParseResult with events in document order

        Raises:
            TypeError: If ``text`` is not a string
        """
        if not isinstance(text, str):
            raise TypeError(f"ICS content must be str, got {type(text).__name__}")

        result = IcsParseResult()
        current: Optional[dict[str, str]] = None
        # Depth of sub-components (VALARM etc.) opened inside the current VEVENT
        nested = 0

        for line in _LINE_SPLIT_RE.split(unfold_lines(text)):
            result.total_lines += 1
            marker = line.strip().upper()

            if marker == _BEGIN_EVENT:
                if current is not None:
                    result.unclosed_blocks += 1
                current = {}
                nested = 0
                continue

            if marker == _END_EVENT:
                if current is not None:
                    result.events.append(self._build_event(current))
                current = None
                nested = 0
                continue

            if current is None:
                continue

            if marker.startswith("BEGIN:"):
                nested += 1
                continue
            if marker.startswith("END:") and nested:
                nested -= 1
                continue
            if nested:
                continue

            prop = _split_property(line)
            if prop is None:
                result.skipped_lines += 1
                continue

            name, params, value = prop
            if name not in KEPT_PROPERTIES:
                continue
            current[name] = value
            if name in TZID_PROPERTIES:
                tzid = params.get("TZID")
                if tzid:
                    current[f"{name};TZID"] = tzid
                else:
                    current.pop(f"{name};TZID", None)

        if current is not None:
            result.unclosed_blocks += 1
            logger.debug("Dropping VEVENT left open at end of input")

        logger.debug(
            "Parsed %d events from %d lines (%d skipped, %d unclosed)",
            result.event_count,
            result.total_lines,
            result.skipped_lines,
            result.unclosed_blocks,
        )
        return result

    def _build_event(self, fields: dict[str, str]) -> CalendarEvent:
        span = self.normalizer.normalize(
            fields.get("DTSTART"),
            fields.get("DTEND"),
            start_tzid=fields.get("DTSTART;TZID"),
            end_tzid=fields.get("DTEND;TZID"),
        )
        return CalendarEvent(
            start=span.start,
            end=span.end,
            is_all_day=span.is_all_day,
            summary=fields.get("SUMMARY", ""),
            location=fields.get("LOCATION", ""),
            url=fields.get("URL", ""),
            uid=fields.get("UID", ""),
            calendar=self.calendar_label,
        )


def parse_ics(
    text: str,
    normalizer: Optional[IcsDateNormalizer] = None,
    calendar_label: str = DEFAULT_CALENDAR_LABEL,
) -> list[CalendarEvent]:
    """Parse ICS text and return just the events (convenience function)."""
    return IcsEventParser(normalizer, calendar_label).parse(text).events
