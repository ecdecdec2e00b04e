#!/usr/bin/env python3
"""
Datetime Utility Functions

Centralized datetime parsing and calculation functions shared by the
mappers, import scripts and metrics aggregator.

Handles common patterns:
- GitHub ISO timestamps with 'Z' suffix
- Jira timestamps with compact '+0000' offsets
- SonarQube date-only and offset timestamps
- UTC day truncation for day-bucketed series
- Elapsed hours/days between two instants
"""

import re
from datetime import UTC, date, datetime, time, timedelta

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


def parse_timestamp(timestamp_str: str | None) -> datetime | None:
    """
    Parse a provider ISO-8601 timestamp into a timezone-aware UTC datetime.

    Accepts the 'Z' suffix (GitHub), compact offsets such as '+0000' (Jira)
    and naive values, which are taken to be UTC.

    Args:
        timestamp_str: ISO timestamp string, or None

    Returns:
        datetime in UTC, or None if input is empty

    Raises:
        ValueError: If timestamp format is invalid or cannot be parsed

    Examples:
        >>> parse_timestamp("2026-02-10T10:00:00Z")
        datetime.datetime(2026, 2, 10, 10, 0, tzinfo=datetime.timezone.utc)

        >>> parse_timestamp("2026-02-10T12:00:00.000+0200")
        datetime.datetime(2026, 2, 10, 10, 0, tzinfo=datetime.timezone.utc)
    """
    if not timestamp_str:
        return None

    if not isinstance(timestamp_str, str):
        raise ValueError(f"Timestamp must be a string, got {type(timestamp_str)}")

    normalized = timestamp_str.strip().replace("Z", "+00:00")
    normalized = _COMPACT_OFFSET.sub(r"\1:\2", normalized)
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise ValueError(f"Invalid timestamp format: {timestamp_str}") from e

    return ensure_utc(parsed)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_date_key(value: datetime) -> str:
    """Truncate an instant to its UTC calendar day as 'YYYY-MM-DD'."""
    return ensure_utc(value).date().isoformat()


def start_of_day(value: datetime | date) -> datetime:
    day = ensure_utc(value).date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.min, tzinfo=UTC)


def end_of_day(value: datetime | date) -> datetime:
    day = ensure_utc(value).date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.max, tzinfo=UTC)


def format_jql_date(value: datetime) -> str:
    """Format an instant as the 'YYYY-MM-DD' date literal JQL expects."""
    return ensure_utc(value).strftime("%Y-%m-%d")


def hours_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / SECONDS_PER_HOUR


def days_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / SECONDS_PER_DAY


def milliseconds_between(start: datetime, end: datetime) -> int:
    return int((ensure_utc(end) - ensure_utc(start)) / timedelta(milliseconds=1))


def in_window(value: datetime | None, start: datetime, end: datetime) -> bool:
    """
    Check whether an instant falls inside the inclusive window [start, end].

    Args:
        value: Instant to check (None is never inside a window)
        start: Window start (inclusive)
        end: Window end (inclusive)

    Returns:
        True when start <= value <= end
    """
    if value is None:
        return False
    return ensure_utc(start) <= ensure_utc(value) <= ensure_utc(end)
