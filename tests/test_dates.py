"""Tests for voice_todos.core.dates — pure due-date helpers."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from voice_todos.core.dates import (
    deserialize_due_date,
    local_zone,
    normalize_due_date,
    parse_due_date,
    serialize_due_date,
    strip_seconds,
)

UTC_9AM = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


class TestStripSeconds:
    def test_drops_seconds_and_micros(self):
        dt = datetime(2025, 6, 1, 9, 15, 42, 123456, tzinfo=timezone.utc)
        assert strip_seconds(dt) == datetime(2025, 6, 1, 9, 15, tzinfo=timezone.utc)

    def test_keeps_timezone(self):
        tz = timezone(timedelta(hours=3))
        assert strip_seconds(datetime(2025, 1, 1, 8, 0, 5, tzinfo=tz)).tzinfo is tz


class TestLocalZone:
    def test_empty_name_means_system_zone(self):
        assert local_zone("") is None

    def test_named_zone(self):
        assert local_zone("Europe/Berlin") == ZoneInfo("Europe/Berlin")


class TestParseDueDate:
    def test_utc_suffix(self):
        assert parse_due_date("2025-06-01T09:00:00Z") == UTC_9AM

    def test_offset(self):
        assert parse_due_date("2025-06-01T11:00:00+02:00") == UTC_9AM

    def test_result_is_in_requested_zone(self):
        berlin = ZoneInfo("Europe/Berlin")
        parsed = parse_due_date("2025-06-01T09:00:00Z", berlin)
        assert parsed.tzinfo == berlin
        assert parsed.hour == 11

    def test_naive_is_local_wall_time(self):
        assert parse_due_date("2025-06-01T09:00:00") == datetime(2025, 6, 1, 9, 0).astimezone()

    @pytest.mark.parametrize("zone", ["Asia/Tokyo", "America/New_York"])
    def test_naive_is_wall_time_in_named_zone(self, zone):
        tz = ZoneInfo(zone)
        parsed = parse_due_date("2025-06-01T09:00:00", tz)
        assert parsed == datetime(2025, 6, 1, 9, 0, tzinfo=tz)
        assert (parsed.hour, parsed.minute) == (9, 0)

    def test_truncated_to_minute(self):
        parsed = parse_due_date("2025-06-01T09:00:59.999Z")
        assert parsed == UTC_9AM

    @pytest.mark.parametrize("raw", ["", "   ", None, "tomorrow at 9", "2025-13-45T99:00"])
    def test_unparsable_returns_none(self, raw):
        assert parse_due_date(raw) is None


class TestNormalize:
    def test_none_passthrough(self):
        assert normalize_due_date(None) is None

    def test_aware_to_local(self):
        result = normalize_due_date(UTC_9AM.replace(second=30))
        assert result == UTC_9AM
        assert result.utcoffset() == UTC_9AM.astimezone().utcoffset()


class TestStorageForm:
    def test_serialize_minute_precision(self):
        assert serialize_due_date(UTC_9AM) == "2025-06-01T09:00+00:00"

    def test_serialize_none(self):
        assert serialize_due_date(None) is None

    def test_deserialize_none(self):
        assert deserialize_due_date(None) is None
        assert deserialize_due_date("") is None

    def test_deserialize_same_instant(self):
        restored = deserialize_due_date("2025-06-01T11:00+02:00")
        assert restored == UTC_9AM
        assert restored.tzinfo is not None
