"""Unit tests for clubfeed.domain.models serialization."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from clubfeed.domain.models import CalendarEvent, EventsPayload, NewsItem, NewsPayload, format_instant

pytestmark = pytest.mark.unit


class TestFormatInstant:
    def test_utc_with_milliseconds(self):
        assert format_instant(datetime(2025, 1, 1, tzinfo=timezone.utc)) == "2025-01-01T00:00:00.000Z"

    def test_microseconds_are_truncated_to_milliseconds(self):
        dt = datetime(2025, 1, 1, 8, 30, 5, 123456, tzinfo=timezone.utc)

        assert format_instant(dt) == "2025-01-01T08:30:05.123Z"

    def test_offset_is_converted_to_utc(self):
        dt = datetime(2025, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_instant(dt) == "2025-01-01T00:00:00.000Z"

    def test_naive_is_treated_as_utc(self):
        assert format_instant(datetime(2025, 1, 1)) == "2025-01-01T00:00:00.000Z"


class TestPayloadSerialization:
    def test_events_payload_uses_camel_case(self):
        start = datetime(2025, 6, 16, 18, 0, tzinfo=timezone.utc)
        payload = EventsPayload(
            updated_at=datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc),
            count=1,
            events=[CalendarEvent(start=start, end=start, is_all_day=False, summary="Match", calendar="Laget.se")],
        )

        data = json.loads(payload.model_dump_json(by_alias=True))

        assert data == {
            "updatedAt": "2025-06-15T12:00:00.000Z",
            "count": 1,
            "events": [
                {
                    "start": "2025-06-16T18:00:00.000Z",
                    "end": "2025-06-16T18:00:00.000Z",
                    "isAllDay": False,
                    "summary": "Match",
                    "location": "",
                    "url": "",
                    "uid": "",
                    "calendar": "Laget.se",
                }
            ],
        }

    def test_compact_json(self):
        payload = NewsPayload(updated_at=datetime(2025, 6, 15, tzinfo=timezone.utc), count=0, items=[])

        assert payload.model_dump_json(by_alias=True) == '{"updatedAt":"2025-06-15T00:00:00.000Z","count":0,"items":[]}'

    def test_news_item_null_enclosure_and_pub_date_alias(self):
        item = NewsItem(title="T", pub_date="Sun, 15 Jun 2025 09:30:00 +0200")

        data = json.loads(item.model_dump_json(by_alias=True))

        assert data["pubDate"] == "Sun, 15 Jun 2025 09:30:00 +0200"
        assert data["enclosure"] is None
        assert data["categories"] == []

    def test_models_are_frozen(self):
        item = NewsItem(title="T")

        with pytest.raises(Exception):
            item.title = "changed"  # type: ignore[misc]
