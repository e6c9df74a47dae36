"""Statistics and formatting helpers for sprint health reporting.

This module provides utilities for:
- Computing medians (mean of the two central values for even-sized samples).
- Computing nearest-rank percentiles.
- Converting timestamp differences to fractional hours.
- Formatting hour-based durations for the health card.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, Optional


def hours_between(start: datetime, end: datetime) -> float:
    """Return the elapsed hours from ``start`` to ``end`` (negative if reversed)."""
    return (end - start).total_seconds() / 3600.0


def calculate_median(values: Iterable[float]) -> Optional[float]:
    """Calculate the median of unsorted samples.

    Returns ``None`` for an empty sample. For an even number of samples the
    two central values are averaged.
    """
    sorted_values = sorted(values)
    if not sorted_values:
        return None

    middle = len(sorted_values) // 2
    if len(sorted_values) % 2 == 0:
        return (sorted_values[middle - 1] + sorted_values[middle]) / 2
    return sorted_values[middle]


def calculate_percentile(values: Iterable[float], p: float) -> Optional[float]:
    """Calculate a percentile using the nearest-rank method.

    Samples are sorted internally. The selected index is
    ``ceil(p / 100 * n) - 1`` clamped to ``0``, so P90 of three values is the
    largest one. No interpolation is performed.

    Args:
        values: Numeric samples in any order.
        p: Percentile in the inclusive range ``[0, 100]``.

    Returns:
        One of the input values, or ``None`` when input is empty.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    sorted_values = sorted(values)
    if not sorted_values:
        return None

    index = math.ceil((p / 100.0) * len(sorted_values)) - 1
    return sorted_values[max(0, index)]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (``2.5 -> 3``)."""
    return int(math.floor(value + 0.5))


def format_duration(hours: Optional[float]) -> str:
    """Format an hour-based duration for display.

    Returns ``"n/a"`` when ``hours`` is ``None``, whole minutes below one hour,
    one-decimal hours below a day, and one-decimal days otherwise.
    """
    if hours is None:
        return "n/a"

    if hours < 1:
        return f"{round_half_up(hours * 60)} min"
    if hours < 24:
        return f"{hours:.1f} hours"
    return f"{hours / 24:.1f} days"
