"""
Time series, streak, heatmap and distribution helpers.

Pure functions over timestamps and counts; storage access lives in
engmetrics.metrics.individual and engmetrics.metrics.organization.
"""

from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from engmetrics.domain.dashboard import ChartDataPoint, DistributionItem, HeatmapDay, StreakData
from engmetrics.utils.datetime_utils import ensure_utc, to_date_key


def init_day_map(start: datetime, end: datetime) -> dict[str, float]:
    """
    One zeroed bucket per UTC day, stepping from start in whole days while
    the step is not after end.

    Example:
        >>> start = datetime.fromisoformat("2025-01-01T00:00:00+00:00")
        >>> list(init_day_map(start, start + timedelta(days=2, hours=23)))
        ['2025-01-01', '2025-01-02', '2025-01-03']
    """
    day_map: dict[str, float] = {}
    current, end = ensure_utc(start), ensure_utc(end)
    while current <= end:
        day_map[to_date_key(current)] = 0
        current += timedelta(days=1)
    return day_map


def aggregate_count_by_day(
    timestamps: Iterable[datetime | None], start: datetime, end: datetime
) -> list[ChartDataPoint]:
    """
    Daily counts over [start, end], with a zero point for every empty day.

    Timestamps falling on days outside the range are ignored.
    """
    day_map = init_day_map(start, end)
    for timestamp in timestamps:
        if timestamp is None:
            continue
        key = to_date_key(timestamp)
        if key in day_map:
            day_map[key] += 1
    return to_time_series(day_map)


def to_time_series(day_map: dict[str, float]) -> list[ChartDataPoint]:
    return [ChartDataPoint(date=day, value=value) for day, value in day_map.items()]


# ============================================================
# Streaks
# ============================================================


def _as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def unique_dates_desc(values: Iterable[date | datetime | str]) -> list[date]:
    """Distinct UTC calendar days, newest first."""
    return sorted({_as_date(value) for value in values}, reverse=True)


def calculate_current_streak(dates_desc: list[date], today: date) -> int:
    """
    Consecutive days ending at the most recent contribution, provided that
    contribution was today or yesterday; otherwise 0.
    """
    if not dates_desc:
        return 0
    if dates_desc[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 1
    for newer, older in zip(dates_desc, dates_desc[1:], strict=False):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


def calculate_longest_streak(dates_desc: list[date]) -> int:
    if not dates_desc:
        return 0

    longest = current = 1
    ascending = list(reversed(dates_desc))
    for previous, day in zip(ascending, ascending[1:], strict=False):
        if (day - previous).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def calculate_streaks(values: Iterable[date | datetime | str], today: date) -> StreakData:
    """
    Current and longest contribution streaks.

    Args:
        values: Contribution instants or days (duplicates allowed)
        today: Reference day (UTC)

    Example:
        >>> calculate_streaks(["2025-01-15", "2025-01-14", "2025-01-13", "2025-01-10"], date(2025, 1, 15))
        StreakData(current_streak=3, longest_streak=3)
    """
    dates_desc = unique_dates_desc(values)
    return StreakData(
        current_streak=calculate_current_streak(dates_desc, today),
        longest_streak=calculate_longest_streak(dates_desc),
    )


# ============================================================
# Heatmap and distributions
# ============================================================


def day_of_week(day: date) -> int:
    """Sunday = 0 ... Saturday = 6."""
    return (day.weekday() + 1) % 7


def build_heatmap(day_map: dict[str, float]) -> list[HeatmapDay]:
    """
    Heatmap cells in day order; the week number starts at 0 and advances
    whenever the day of week wraps around (a new Sunday-based week).
    """
    heatmap: list[HeatmapDay] = []
    week_number = 0
    last_day_of_week = -1

    for key, count in day_map.items():
        weekday = day_of_week(date.fromisoformat(key))
        if weekday < last_day_of_week:
            week_number += 1
        last_day_of_week = weekday
        heatmap.append(HeatmapDay(date=key, count=int(count), day_of_week=weekday, week_number=week_number))

    return heatmap


def build_distribution(values: Iterable[str], limit: int | None = None) -> list[DistributionItem]:
    """
    Count occurrences per name, most frequent first (ties keep first-seen
    order), optionally truncated to the top `limit` entries.
    """
    counts = Counter(values)
    items = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        items = items[:limit]
    return [DistributionItem(name=name, value=count) for name, count in items]
