"""Sprint metric aggregation.

This module reduces already-fetched pull request, review and auxiliary data
into a single :class:`~sprint_health.models.SprintMetrics` record:
- Delivery: cycle time (median/P90), throughput, WIP, PR size, lead time
- Collaboration: review turnaround, collaborator count, concentration, review depth
- Operations: build success rate and ship frequency

All functions are pure. Missing auxiliary datasets produce ``None`` fields
rather than zeros.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .models import (
    FirstCommitDates,
    PRSize,
    PRSizeCategory,
    PullRequest,
    Review,
    ReviewsByPR,
    ShipEvent,
    ShipSource,
    SprintMetrics,
    WorkflowRunSummary,
)
from .stats import calculate_median, calculate_percentile, hours_between, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 14
SMALL_PR_MAX_LINES = 100
MEDIUM_PR_MAX_LINES = 400


@dataclass(slots=True)
class MetricsOptions:
    """Optional auxiliary datasets consumed by :func:`calculate_metrics`."""

    pr_sizes: Optional[Dict[int, PRSize]] = None
    workflow_runs: Optional[WorkflowRunSummary] = None
    ship_events: Optional[List[ShipEvent]] = None
    first_commit_dates: Optional[FirstCommitDates] = None
    period_days: Optional[int] = None


def _external_reviews(pr: PullRequest, reviews_by_pr: ReviewsByPR) -> List[Review]:
    """Return reviews on ``pr`` that were not written by its author."""
    return [review for review in reviews_by_pr.get(pr.number, []) if review.author != pr.author]


def compute_cycle_times(pull_requests: List[PullRequest]) -> List[float]:
    """Return creation-to-merge durations in hours, one per PR."""
    return [hours_between(pr.created_at, pr.merged_at) for pr in pull_requests]


def compute_review_turnarounds(
    pull_requests: List[PullRequest],
    reviews_by_pr: ReviewsByPR,
) -> List[float]:
    """Return hours from PR creation to first non-author review.

    PRs without any non-author review contribute no sample.
    """
    turnarounds: List[float] = []
    for pr in pull_requests:
        external = _external_reviews(pr, reviews_by_pr)
        if not external:
            continue
        first_review_at = min(review.submitted_at for review in external)
        turnarounds.append(hours_between(pr.created_at, first_review_at))
    return turnarounds


def compute_concentration(pull_requests: List[PullRequest]) -> Tuple[int, float]:
    """Return ``(collaborator_count, concentration_ratio)`` for PR authors.

    The ratio is the largest single author's share of all PRs, ``0`` when
    there are no PRs.
    """
    counts = Counter(pr.author for pr in pull_requests)
    if not pull_requests:
        return 0, 0.0
    return len(counts), max(counts.values()) / len(pull_requests)


def compute_review_depth(pull_requests: List[PullRequest], reviews_by_pr: ReviewsByPR) -> float:
    """Average non-author comment weight per PR that received a non-author review."""
    total_comments = 0.0
    reviewed_prs = 0

    for pr in pull_requests:
        external = _external_reviews(pr, reviews_by_pr)
        if not external:
            continue
        total_comments += sum(review.comment_count for review in external)
        reviewed_prs += 1

    if reviewed_prs == 0:
        return 0.0
    return total_comments / reviewed_prs


def categorize_pr_size(median_lines: float) -> PRSizeCategory:
    """Bucket a median PR size into small (<100), medium (<400) or large."""
    if median_lines < SMALL_PR_MAX_LINES:
        return "small"
    if median_lines < MEDIUM_PR_MAX_LINES:
        return "medium"
    return "large"


def compute_pr_size(
    pr_sizes: Optional[Dict[int, PRSize]],
) -> Tuple[Optional[float], Optional[PRSizeCategory]]:
    """Return ``(median_lines, category)``, both ``None`` without size data."""
    if not pr_sizes:
        return None, None

    median_lines = calculate_median(size.total for size in pr_sizes.values())
    if median_lines is None:
        return None, None
    return median_lines, categorize_pr_size(median_lines)


def compute_build_success(
    workflow_runs: Optional[WorkflowRunSummary],
) -> Tuple[Optional[int], Optional[int]]:
    """Return ``(success_rate_percent, total_runs)``, both ``None`` without runs."""
    if workflow_runs is None or workflow_runs.total_runs <= 0:
        return None, None

    rate = round_half_up(workflow_runs.success_count / workflow_runs.total_runs * 100)
    return rate, workflow_runs.total_runs


def compute_ship_frequency(
    ship_events: Optional[List[ShipEvent]],
    period_days: Optional[int],
) -> Tuple[Optional[float], Optional[int], Optional[ShipSource]]:
    """Return ``(ships_per_day, ship_count, source)``, all ``None`` without events.

    The source label is taken from the first event as supplied.
    """
    if not ship_events:
        return None, None, None

    days = period_days or DEFAULT_PERIOD_DAYS
    count = len(ship_events)
    return count / days, count, ship_events[0].source


def _first_ship_at_or_after(sorted_events: List[ShipEvent], moment: datetime) -> Optional[ShipEvent]:
    for event in sorted_events:
        if event.created_at >= moment:
            return event
    return None


def compute_lead_times(
    pull_requests: List[PullRequest],
    ship_events: Optional[List[ShipEvent]],
    first_commit_dates: Optional[FirstCommitDates],
) -> List[float]:
    """Return first-commit-to-ship durations in hours.

    Each PR is matched with the earliest ship event at or after its merge.
    PRs without a first commit date or without a later ship event are skipped,
    and negative durations are dropped.
    """
    if not ship_events or not first_commit_dates:
        return []

    sorted_events = sorted(ship_events, key=lambda event: event.created_at)
    lead_times: List[float] = []
    dropped_negative = 0

    for pr in pull_requests:
        first_commit_at = first_commit_dates.get(pr.number)
        if first_commit_at is None:
            continue

        ship_event = _first_ship_at_or_after(sorted_events, pr.merged_at)
        if ship_event is None:
            continue

        hours = hours_between(first_commit_at, ship_event.created_at)
        if hours < 0:
            dropped_negative += 1
            continue
        lead_times.append(hours)

    if dropped_negative:
        logger.debug(
            "Dropped negative lead time samples",
            extra={"dropped_negative": dropped_negative},
        )

    return lead_times


def calculate_metrics(
    pull_requests: List[PullRequest],
    reviews_by_pr: ReviewsByPR,
    open_pr_count: int,
    options: Optional[MetricsOptions] = None,
) -> SprintMetrics:
    """Aggregate merged PRs and their reviews into sprint metrics.

    Business logic:
    - Cycle time is creation to merge; median and P90 default to ``0`` when
      there are no PRs.
    - Review turnaround and review depth ignore reviews written by the PR
      author; PRs with no other reviewer are excluded from both samples.
    - WIP is ``open_pr_count`` as supplied.
    - PR size, build success, ship frequency and lead time are only
      populated when the corresponding dataset in ``options`` has data.
    - The cycle time trend is always ``"stable"``.
    """
    options = options or MetricsOptions()

    cycle_times = compute_cycle_times(pull_requests)
    review_turnarounds = compute_review_turnarounds(pull_requests, reviews_by_pr)
    collaborator_count, concentration_ratio = compute_concentration(pull_requests)

    pr_size_median, pr_size_category = compute_pr_size(options.pr_sizes)
    build_success_rate, build_total_runs = compute_build_success(options.workflow_runs)
    ship_frequency, ship_count, ship_source = compute_ship_frequency(
        options.ship_events, options.period_days
    )
    lead_times = compute_lead_times(pull_requests, options.ship_events, options.first_commit_dates)

    metrics = SprintMetrics(
        cycle_time_median_hours=calculate_median(cycle_times) or 0.0,
        cycle_time_p90_hours=calculate_percentile(cycle_times, 90) or 0.0,
        throughput_count=len(pull_requests),
        wip_count=open_pr_count,
        review_turnaround_median_hours=calculate_median(review_turnarounds) or 0.0,
        collaborator_count=collaborator_count,
        concentration_ratio=concentration_ratio,
        review_depth_score=compute_review_depth(pull_requests, reviews_by_pr),
        pr_size_median=pr_size_median,
        pr_size_category=pr_size_category,
        build_success_rate=build_success_rate,
        build_total_runs=build_total_runs,
        ship_frequency=ship_frequency,
        ship_count=ship_count,
        ship_source=ship_source,
        lead_time_median_hours=calculate_median(lead_times),
        cycle_time_trend="stable",
        pr_numbers=[pr.number for pr in pull_requests],
    )

    logger.info(
        "Calculated sprint metrics",
        extra={
            "prs_total": len(pull_requests),
            "review_turnaround_samples": len(review_turnarounds),
            "lead_time_samples": len(lead_times),
            "open_prs": open_pr_count,
        },
    )

    return metrics
