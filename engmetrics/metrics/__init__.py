"""
Metrics aggregator.

Read-only computations over normalized storage, returning the dashboard
data contract objects of engmetrics.domain.dashboard. Absent data yields
zero counts, empty lists and None averages, never an exception.
"""

from engmetrics.metrics.date_range import DateRange, calculate_trend, parse_date_range, previous_period

__all__ = ["DateRange", "calculate_trend", "parse_date_range", "previous_period"]
