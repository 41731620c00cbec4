"""Data models for normalized feed content."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def format_instant(dt: datetime) -> str:
    """Serialize an instant as ISO 8601 UTC with milliseconds and a Z suffix.

    Naive datetimes are assumed to already be UTC.

    Examples:
        >>> format_instant(datetime(2025, 6, 15, 18, 0, tzinfo=timezone.utc))
        '2025-06-15T18:00:00.000Z'
    """
    dt_utc = dt.astimezone(timezone.utc) if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CalendarEvent(BaseModel):
    """One normalized VEVENT."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start: datetime
    end: datetime
    is_all_day: bool = Field(default=False, alias="isAllDay")
    summary: str = ""
    location: str = ""
    url: str = ""
    uid: str = ""
    calendar: str = ""

    @field_serializer("start", "end")
    def _serialize_instant(self, value: datetime) -> str:
        return format_instant(value)


class NewsItem(BaseModel):
    """One RSS <item> with markup stripped from its text fields."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = ""
    link: str = ""
    guid: str = ""
    pub_date: str = Field(default="", alias="pubDate")
    description: str = ""
    enclosure: Optional[str] = None
    categories: list[str] = Field(default_factory=list)


class EventsPayload(BaseModel):
    """Body of GET /api/events."""

    model_config = ConfigDict(populate_by_name=True)

    updated_at: datetime = Field(alias="updatedAt")
    count: int
    events: list[CalendarEvent]

    @field_serializer("updated_at")
    def _serialize_updated_at(self, value: datetime) -> str:
        return format_instant(value)


class NewsPayload(BaseModel):
    """Body of GET /api/news."""

    model_config = ConfigDict(populate_by_name=True)

    updated_at: datetime = Field(alias="updatedAt")
    count: int
    items: list[NewsItem]

    @field_serializer("updated_at")
    def _serialize_updated_at(self, value: datetime) -> str:
        return format_instant(value)
