"""Tests for minute conversions and weekday naming."""

from datetime import datetime, timedelta, timezone

from shopqueue.timemodel import elapsed_minutes, hhmm_to_minutes, parse_timestamp, weekday_name


class TestClockTimes:

    def test_hhmm_to_minutes(self):
        """Test conversion of HH:MM to minutes since midnight."""
        assert hhmm_to_minutes("00:00") == 0
        assert hhmm_to_minutes("09:30") == 570
        assert hhmm_to_minutes("23:59") == 1439

    def test_malformed_clock_time_is_zero(self):
        """Test that unparseable values degrade to midnight instead of raising."""
        assert hhmm_to_minutes("") == 0
        assert hhmm_to_minutes(None) == 0
        assert hhmm_to_minutes("noon") == 0
        assert hhmm_to_minutes("12") == 0
        assert hhmm_to_minutes("-5:00") == 0


class TestElapsed:

    def test_elapsed_is_floored(self, now):
        """Test that partial minutes are dropped."""
        started = now - timedelta(minutes=12, seconds=59)
        assert elapsed_minutes(started, now) == 12

    def test_elapsed_never_negative(self, now):
        """Test that a start time in the future counts as zero elapsed."""
        assert elapsed_minutes(now + timedelta(minutes=5), now) == 0

    def test_missing_start(self, now):
        assert elapsed_minutes(None, now) == 0


class TestDates:

    def test_weekday_name(self):
        """Test lower-case weekday names for ISO dates."""
        assert weekday_name("2024-05-01") == "wednesday"
        assert weekday_name("2024-04-30") == "tuesday"
        assert weekday_name("2024-05-05") == "sunday"

    def test_weekday_name_malformed(self):
        assert weekday_name("2024-13-40") is None
        assert weekday_name(None) is None

    def test_weekday_name_non_string(self):
        """Test that non-string dates are treated as malformed instead of raising."""
        assert weekday_name(20240501) is None
        assert weekday_name(["2024-05-01"]) is None

    def test_parse_timestamp_assumes_utc(self):
        """Test that naive ISO strings are read as UTC."""
        parsed = parse_timestamp("2024-05-01T09:00:00")
        assert parsed == datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        assert parse_timestamp("garbage") is None
