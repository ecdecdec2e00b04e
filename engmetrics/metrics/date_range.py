"""
Dashboard date ranges, previous-period comparison and trend formatting.

Ranges are whole UTC days: start at 00:00:00.000, end at 23:59:59.999.

Usage:
    date_range = parse_date_range({"preset": "30d"})
    previous = previous_period(date_range)
    trend = calculate_trend(current_count, previous_count)
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from engmetrics.domain.constants import dashboard_config
from engmetrics.domain.dashboard import Trend
from engmetrics.domain.enums import TrendType
from engmetrics.utils.datetime_utils import ensure_utc, parse_timestamp, utc_now
from engmetrics.utils.statistics import round_int

PRESET_DAYS = {"7d": 7, "30d": 30, "60d": 60, "90d": 90}
CUSTOM_PRESET = "custom"


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive dashboard range.

    Attributes:
        start: First instant (UTC)
        end: Last instant (UTC)
        preset: "7d", "30d", "60d", "90d", "custom", or None for derived ranges
    """

    start: datetime
    end: datetime
    preset: str | None = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def as_filter(self) -> dict[str, datetime]:
        """Storage filter selecting instants inside the range."""
        return {"gte": self.start, "lte": self.end}


def day_start(value: datetime) -> datetime:
    return ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)


def day_end(value: datetime) -> datetime:
    return ensure_utc(value).replace(hour=23, minute=59, second=59, microsecond=999000)


def preset_range(preset: str, now: datetime | None = None) -> DateRange:
    """
    Range covering the last N days up to the end of today.

    Raises:
        KeyError: If the preset is unknown
    """
    now = ensure_utc(now or utc_now())
    return DateRange(day_start(now - timedelta(days=PRESET_DAYS[preset])), day_end(now), preset)


def parse_date_range(params: Mapping[str, str] | None = None, now: datetime | None = None) -> DateRange:
    """
    Build a range from query parameters.

    A known "preset" wins; otherwise "start" and "end" dates form a custom
    range; anything else (including unparseable dates) falls back to 90d.

    Example:
        >>> parse_date_range({"start": "2025-01-01", "end": "2025-01-31"}).preset
        'custom'
    """
    params = params or {}
    preset = params.get("preset")
    if preset in PRESET_DAYS:
        return preset_range(preset, now)

    start_param, end_param = params.get("start"), params.get("end")
    if start_param and end_param:
        try:
            start = parse_timestamp(start_param)
            end = parse_timestamp(end_param)
        except ValueError:
            start = end = None
        if start is not None and end is not None:
            return DateRange(day_start(start), day_end(end), CUSTOM_PRESET)

    return preset_range(dashboard_config.DEFAULT_PRESET, now)


def previous_period(date_range: DateRange) -> DateRange:
    """
    Equal-length range immediately before date_range.

    The previous end is the day before the range start (23:59:59.999); the
    previous start lies one range duration earlier, truncated to 00:00.
    """
    previous_end = day_end(date_range.start - timedelta(milliseconds=1))
    previous_start = day_start(previous_end - date_range.duration)
    return DateRange(previous_start, previous_end)


def calculate_trend(current: float, previous: float) -> Trend:
    """
    Percentage change from previous to current.

    When previous is 0 the change is undefined: any growth is reported as
    +100% and no activity in both periods as neutral 0%.

    Example:
        >>> calculate_trend(15, 10)
        Trend(value=50, type=<TrendType.POSITIVE: 'positive'>)
    """
    if previous == 0:
        if current > 0:
            return Trend(100, TrendType.POSITIVE)
        return Trend(0, TrendType.NEUTRAL)

    change = (current - previous) / previous * 100
    if change > 0:
        trend_type = TrendType.POSITIVE
    elif change < 0:
        trend_type = TrendType.NEGATIVE
    else:
        trend_type = TrendType.NEUTRAL
    return Trend(round_int(abs(change)), trend_type)


def format_trend(trend: Trend, invert: bool = False) -> str:
    """
    Arrow label for a trend ("↑ 12%", "↓ 5%", "0%").

    Args:
        trend: Trend to format
        invert: Swap arrow direction for metrics where lower is better
    """
    if trend.type == TrendType.NEUTRAL:
        return "0%"

    positive = trend.type == TrendType.POSITIVE
    if invert:
        positive = not positive
    return f"{'↑' if positive else '↓'} {trend.value}%"


def format_date_range(date_range: DateRange) -> str:
    """
    Example:
        "Jan 1, 2025 - Jan 31, 2025"
    """
    start, end = date_range.start, date_range.end
    return f"{start:%b} {start.day}, {start.year} - {end:%b} {end.day}, {end.year}"


def build_search_params(date_range: DateRange) -> dict[str, str]:
    """Query parameters that parse back to the same range."""
    if date_range.preset and date_range.preset != CUSTOM_PRESET:
        return {"preset": date_range.preset}
    return {"start": date_range.start.date().isoformat(), "end": date_range.end.date().isoformat()}


def format_duration_ms(ms: float | None) -> str:
    """
    Example:
        >>> format_duration_ms(5_400_000)
        '1h 30m'
    """
    if ms is None:
        return "N/A"

    minutes = round_int(ms / 60_000)
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def format_hours(hours: float | None) -> str:
    """
    Example:
        >>> format_hours(30)
        '1d 6h'
    """
    if hours is None:
        return "N/A"

    if hours < 24:
        return f"{hours:.1f}h"
    return f"{math.floor(hours / 24)}d {round_int(hours % 24)}h"
