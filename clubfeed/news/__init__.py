"""RSS news parsing."""

from .rss_parser import RssItemParser, parse_rss

__all__ = ["RssItemParser", "parse_rss"]
