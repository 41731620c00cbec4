"""ICS calendar parsing."""

from .ics_datetime import IcsDateNormalizer, NormalizedSpan
from .ics_parser import IcsEventParser, IcsParseResult, parse_ics, unfold_lines

__all__ = [
    "IcsDateNormalizer",
    "IcsEventParser",
    "IcsParseResult",
    "NormalizedSpan",
    "parse_ics",
    "unfold_lines",
]
