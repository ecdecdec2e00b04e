"""
Statistics Utilities

Shared numeric helpers for the metrics aggregator. Rounding is half-up
(away from zero on ties) so that dashboard figures match the presentation
layer's Math.round behaviour rather than Python's banker's rounding.

Usage:
    from engmetrics.utils.statistics import mean_or_none, round1

    avg = mean_or_none([2.0, 3.5])
    display = round1(avg) if avg is not None else None
"""

import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round a value half-up to the given number of decimal places.

    Args:
        value: Number to round
        digits: Decimal places to keep (default: 0)

    Returns:
        Rounded value

    Example:
        >>> round_half_up(2.5)
        3.0
        >>> round_half_up(0.25, 1)
        0.3
    """
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"Cannot round non-finite value: {value}")
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round1(value: float) -> float:
    """Round half-up to one decimal place."""
    return round_half_up(value, 1)


def round_int(value: float) -> int:
    return int(round_half_up(value))


def mean_or_none(values: Iterable[float]) -> float | None:
    """
    Arithmetic mean, or None for an empty collection.

    Args:
        values: Numeric values

    Returns:
        Mean of the values, or None when there are none
    """
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def percentage_or_none(part: float, whole: float) -> float | None:
    """
    Percentage of part in whole rounded to one decimal, None when whole is 0.

    Example:
        >>> percentage_or_none(3, 4)
        75.0
        >>> percentage_or_none(1, 0) is None
        True
    """
    if not whole:
        return None
    return round1(part / whole * 100)
