"""Tests for statistical calculations and duration formatting."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sprint_health.stats import (
    calculate_median,
    calculate_percentile,
    format_duration,
    hours_between,
    round_half_up,
)


def test_calculate_median_empty_returns_none():
    """Verify median of an empty sample is None."""
    assert calculate_median([]) is None


def test_calculate_median_odd_count_returns_center_value():
    """Verify odd-sized samples return the exact central element after sorting."""
    assert calculate_median([48.0, 10.0, 24.0]) == 24.0


def test_calculate_median_even_count_averages_center_values():
    """Verify even-sized samples average the two central elements."""
    assert calculate_median([48.0, 6.0, 24.0, 10.0]) == 17.0


def test_calculate_median_lies_between_min_and_max():
    """Verify the median of an arbitrary sample stays within its range."""
    values = [3.5, 100.0, 0.25, 42.0, 7.0, 7.0]
    median = calculate_median(values)
    assert min(values) <= median <= max(values)


def test_calculate_percentile_empty_returns_none():
    """Verify percentile calculation returns None when sample list is empty."""
    assert calculate_percentile([], 90) is None


def test_calculate_percentile_p90_of_three_values_returns_maximum():
    """Verify nearest-rank P90 of three values selects index 2."""
    assert calculate_percentile([24.0, 48.0, 10.0], 90) == 48.0


def test_calculate_percentile_uses_nearest_rank_without_interpolation():
    """Verify percentiles pick an actual sample value."""
    values = [10.0, 20.0, 30.0, 40.0]
    assert calculate_percentile(values, 50) == 20.0
    assert calculate_percentile(values, 75) == 30.0
    assert calculate_percentile(values, 90) == 40.0


def test_calculate_percentile_p0_clamps_to_first_value():
    """Verify a zero percentile clamps to the smallest sample."""
    assert calculate_percentile([5.0, 1.0, 3.0], 0) == 1.0


def test_calculate_percentile_rejects_out_of_range_p():
    """Verify percentiles outside [0, 100] raise ValueError."""
    with pytest.raises(ValueError):
        calculate_percentile([1.0], 101)


def test_hours_between_returns_fractional_hours():
    """Verify timestamp differences are converted to fractional hours."""
    start = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
    end = datetime(2025, 1, 1, 1, 30, tzinfo=timezone.utc)
    assert hours_between(start, end) == pytest.approx(1.5)


def test_round_half_up_rounds_halves_upward():
    """Verify halves round up rather than to even."""
    assert round_half_up(2.5) == 3
    assert round_half_up(66.666) == 67
    assert round_half_up(66.4) == 66


def test_format_duration_handles_minutes_hours_and_days():
    """Verify duration formatter switches units at one hour and one day."""
    assert format_duration(None) == "n/a"
    assert format_duration(0) == "0 min"
    assert format_duration(0.5) == "30 min"
    assert format_duration(1) == "1.0 hours"
    assert format_duration(23.9) == "23.9 hours"
    assert format_duration(36) == "1.5 days"
    assert format_duration(48) == "2.0 days"
