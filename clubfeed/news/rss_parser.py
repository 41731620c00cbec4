"""Regex-based extraction of RSS 2.0 ``<item>`` elements.

The news feed is small and its tag set is fixed, so items are pulled out with
a narrow tag scanner instead of a full XML parser. Malformed markup yields
empty fields rather than errors.
"""

import email.utils
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser

from clubfeed.domain.models import NewsItem

logger = logging.getLogger(__name__)

_ITEM_RE = re.compile(r"<item\b[\s\S]*?</item>", re.IGNORECASE)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_TAG_RE = re.compile(r"</?[^>]+>")
_LINE_BREAK_RE = re.compile(r"\r?\n|\r")
_WHITESPACE_RE = re.compile(r"\s+")
_ENTITY_RE = re.compile(r"&(amp|lt|gt|quot|#39|apos);")
_ENCLOSURE_RE = re.compile(r"<enclosure\b([^>]*)/?>", re.IGNORECASE)
_URL_ATTR_RE = re.compile(r"""\burl\s*=\s*(?:"([^"]+)"|'([^']+)')""", re.IGNORECASE)

ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "#39": "'",
    "apos": "'",
}

_tag_patterns: dict[str, re.Pattern[str]] = {}


def _tag_pattern(tag: str) -> re.Pattern[str]:
    pattern = _tag_patterns.get(tag)
    if pattern is None:
        escaped = re.escape(tag)
        pattern = re.compile(rf"<{escaped}\b[^>]*>([\s\S]*?)</{escaped}>", re.IGNORECASE)
        _tag_patterns[tag] = pattern
    return pattern


def strip_cdata(value: str) -> str:
    """Replace every CDATA section with its content."""
    return _CDATA_RE.sub(r"\1", value)


def strip_tags(value: str) -> str:
    """Remove markup and collapse whitespace to single spaces."""
    text = _TAG_RE.sub("", value)
    text = _LINE_BREAK_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def decode_entities(value: str) -> str:
    """Decode the fixed entity set in one pass.

    Examples:
        >>> decode_entities("Fish &amp;amp; Chips")
        'Fish &amp; Chips'
    """
    return _ENTITY_RE.sub(lambda m: ENTITIES[m.group(1)], value)


def clean_text(value: str) -> str:
    return decode_entities(strip_tags(value))


def pick_tag(block: str, tag: str) -> str:
    """First ``<tag>`` content in ``block`` with CDATA unwrapped and trimmed."""
    match = _tag_pattern(tag).search(block)
    if not match:
        return ""
    return strip_cdata(match.group(1)).strip()


def pick_all_tags(block: str, tag: str) -> list[str]:
    return [strip_cdata(m.group(1)).strip() for m in _tag_pattern(tag).finditer(block)]


def pick_enclosure_url(block: str) -> Optional[str]:
    """``url`` attribute of the first ``<enclosure>`` tag, if any."""
    enclosure = _ENCLOSURE_RE.search(block)
    if not enclosure:
        return None
    url = _URL_ATTR_RE.search(enclosure.group(1))
    if not url:
        return None
    return url.group(1) if url.group(1) is not None else url.group(2)


def pub_date_timestamp(value: str) -> float:
    """Epoch seconds for an RSS pubDate; 0 when missing or unparseable.

    RFC 822 dates are tried first, then ISO-8601 via python-dateutil.
    Naive results are treated as UTC.
    """
    if not value:
        return 0.0

    parsed: Optional[datetime] = None
    try:
        parsed = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = date_parser.isoparse(value)
        except (ValueError, OverflowError):
            logger.debug("Unparseable pubDate %r", value)
            return 0.0

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.timestamp()
    except (OverflowError, OSError, ValueError):
        return 0.0


class RssItemParser:
    """Turn RSS XML into ``NewsItem`` records, newest first."""

    def parse_item(self, block: str) -> NewsItem:
        """Build a NewsItem from one ``<item>...</item>`` block."""
        categories = [clean_text(c) for c in pick_all_tags(block, "category")]
        return NewsItem(
            title=clean_text(pick_tag(block, "title")),
            link=pick_tag(block, "link"),
            guid=pick_tag(block, "guid"),
            pub_date=pick_tag(block, "pubDate"),
            description=clean_text(pick_tag(block, "description")),
            enclosure=pick_enclosure_url(block),
            categories=[c for c in categories if c],
        )

    def parse(self, xml: str) -> list[NewsItem]:
        """Parse all items from ``xml``.

        Args:
            xml: RSS document text

        Returns:
            Items sorted by pubDate descending; ties keep document order

        Raises:
            TypeError: If ``xml`` is not a string
        """
        if not isinstance(xml, str):
            raise TypeError(f"RSS content must be str, got {type(xml).__name__}")

        items = [self.parse_item(m.group(0)) for m in _ITEM_RE.finditer(xml)]
        # sorted() is stable, so equal dates keep document order
        items = sorted(items, key=lambda item: pub_date_timestamp(item.pub_date), reverse=True)
        logger.debug("Parsed %d RSS items", len(items))
        return items


def parse_rss(xml: str) -> list[NewsItem]:
    """Parse RSS text into items (convenience function)."""
    return RssItemParser().parse(xml)
