#!/usr/bin/env python3
"""
Tests for datetime_utils module

Tests timestamp parsing across provider formats and the window/elapsed
time helpers used by import scripts and the aggregator.
"""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from engmetrics.utils.datetime_utils import (
    days_between,
    end_of_day,
    ensure_utc,
    format_jql_date,
    hours_between,
    in_window,
    milliseconds_between,
    parse_timestamp,
    start_of_day,
    to_date_key,
)


class TestParseTimestamp:
    """Tests for parse_timestamp function."""

    def test_github_z_suffix(self):
        """Test parsing GitHub timestamp with Z suffix."""
        assert parse_timestamp("2026-02-10T10:00:00Z") == datetime(2026, 2, 10, 10, 0, tzinfo=UTC)

    def test_jira_compact_offset(self):
        """Test parsing Jira timestamp with +0200 style offset."""
        result = parse_timestamp("2026-02-10T12:00:00.000+0200")
        assert result == datetime(2026, 2, 10, 10, 0, tzinfo=UTC)
        assert result.tzinfo == UTC

    def test_sonarqube_offset(self):
        """Test parsing SonarQube timestamp with +0000 offset."""
        assert parse_timestamp("2025-01-05T08:30:00+0000") == datetime(2025, 1, 5, 8, 30, tzinfo=UTC)

    def test_naive_value_taken_as_utc(self):
        """Test that naive timestamps are treated as UTC."""
        assert parse_timestamp("2025-01-05T08:30:00") == datetime(2025, 1, 5, 8, 30, tzinfo=UTC)

    def test_date_only(self):
        """Test that date-only strings parse to midnight UTC."""
        assert parse_timestamp("2025-01-01") == datetime(2025, 1, 1, tzinfo=UTC)

    def test_none_and_empty(self):
        """Test that None and empty input return None."""
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_invalid_format(self):
        """Test that invalid format raises ValueError."""
        with pytest.raises(ValueError, match="Invalid timestamp format"):
            parse_timestamp("not-a-timestamp")

    def test_invalid_type(self):
        """Test that non-string input raises ValueError."""
        with pytest.raises(ValueError, match="Timestamp must be a string"):
            parse_timestamp(12345)  # type: ignore


class TestDayHelpers:
    """Tests for UTC day truncation."""

    def test_to_date_key_uses_utc_day(self):
        """Test that an offset instant is bucketed by its UTC day."""
        value = datetime(2025, 1, 2, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        assert to_date_key(value) == "2025-01-01"

    def test_start_and_end_of_day(self):
        """Test day boundaries for datetimes and dates."""
        assert start_of_day(datetime(2025, 1, 1, 15, tzinfo=UTC)) == datetime(2025, 1, 1, tzinfo=UTC)
        assert end_of_day(date(2025, 1, 1)).hour == 23
        assert end_of_day(date(2025, 1, 1)).microsecond == 999999

    def test_format_jql_date(self):
        """Test JQL date literal formatting."""
        assert format_jql_date(datetime(2025, 1, 31, 23, 59, tzinfo=UTC)) == "2025-01-31"

    def test_ensure_utc_converts_aware(self):
        """Test conversion of aware datetimes to UTC."""
        value = datetime(2025, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(value) == datetime(2025, 1, 1, 10, tzinfo=UTC)


class TestElapsed:
    """Tests for elapsed time helpers."""

    def test_hours_and_days_between(self):
        """Test fractional hours and days."""
        start = datetime(2025, 1, 1, tzinfo=UTC)
        end = datetime(2025, 1, 2, 12, tzinfo=UTC)
        assert hours_between(start, end) == 36
        assert days_between(start, end) == 1.5

    def test_milliseconds_between(self):
        """Test integer milliseconds."""
        start = datetime(2025, 1, 1, tzinfo=UTC)
        assert milliseconds_between(start, start + timedelta(minutes=2)) == 120_000


class TestInWindow:
    """Tests for in_window."""

    def test_boundaries_are_inclusive(self):
        """Test that start and end themselves are inside the window."""
        start = datetime(2025, 1, 1, tzinfo=UTC)
        end = datetime(2025, 1, 31, tzinfo=UTC)
        assert in_window(start, start, end)
        assert in_window(end, start, end)

    def test_outside_and_none(self):
        """Test values outside the window and None."""
        start = datetime(2025, 1, 1, tzinfo=UTC)
        end = datetime(2025, 1, 31, tzinfo=UTC)
        assert not in_window(start - timedelta(seconds=1), start, end)
        assert not in_window(end + timedelta(seconds=1), start, end)
        assert not in_window(None, start, end)
