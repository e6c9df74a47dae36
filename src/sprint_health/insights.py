"""Insight detection and overall health status.

Rules are evaluated independently against a :class:`SprintMetrics` record and
a :class:`Thresholds` configuration. Selection is a separate stage: the
collected insights are stable-sorted by severity and only the most severe one
is surfaced on the health card.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from .config import Thresholds
from .models import SEVERITY_RANK, HealthStatus, Insight, SprintMetrics
from .stats import round_half_up

SLOW_LEAD_TIME_HOURS = 168.0

InsightRule = Callable[[SprintMetrics, Thresholds], Optional[Insight]]


def _knowledge_silo(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    ratio = metrics.concentration_ratio
    if ratio >= thresholds.concentration_critical:
        return Insight(
            type="knowledge-silo",
            severity="critical",
            message=(
                f"Review patterns show {round_half_up(ratio * 100)}% concentration "
                "— significant knowledge silo risk"
            ),
        )
    if ratio >= thresholds.concentration_warning:
        return Insight(
            type="knowledge-silo",
            severity="warning",
            message=f"Your review patterns suggest a knowledge silo forming ({round_half_up(ratio * 100)}% concentration)",
        )
    return None


def _cycle_time(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    hours = metrics.cycle_time_median_hours
    if hours >= thresholds.cycle_time_critical_hours:
        return Insight(
            type="cycle-time-regression",
            severity="critical",
            message=f"Cycle time at {round_half_up(hours / 24)} days — significant delivery bottleneck",
        )
    if hours >= thresholds.cycle_time_warning_hours:
        return Insight(
            type="cycle-time-regression",
            severity="warning",
            message=f"Cycle time at {round_half_up(hours)} hours — above warning threshold",
        )
    return None


def _wip_overload(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    ratio = metrics.wip_ratio
    if ratio >= thresholds.wip_critical_ratio:
        return Insight(
            type="wip-overload",
            severity="critical",
            message=f"WIP ({metrics.wip_count}) at {ratio:.1f}x team size — severe flow bottleneck",
        )
    if ratio >= thresholds.wip_warning_ratio:
        return Insight(
            type="wip-overload",
            severity="warning",
            message=f"High WIP pressure detected ({ratio:.1f}x team size) — flow bottleneck likely",
        )
    return None


def _review_bottleneck(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    hours = metrics.review_turnaround_median_hours
    if hours >= thresholds.review_critical_hours:
        return Insight(
            type="review-bottleneck",
            severity="critical",
            message=f"Reviews taking {round_half_up(hours)} hours on average — blocking delivery",
        )
    if hours >= thresholds.review_warning_hours:
        return Insight(
            type="review-bottleneck",
            severity="warning",
            message=f"Review turnaround could be faster ({round_half_up(hours)} hours median)",
        )
    return None


def _shallow_reviews(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    if metrics.throughput_count <= 0:
        return None

    score = metrics.review_depth_score
    if score <= thresholds.review_depth_critical:
        return Insight(
            type="shallow-reviews",
            severity="warning",
            message=(
                f"Reviews appear to be rubber-stamps ({score:.1f} comments/PR) "
                "— limited knowledge transfer"
            ),
        )
    if score <= thresholds.review_depth_warning:
        return Insight(
            type="shallow-reviews",
            severity="info",
            message=(
                f"Review comments are light ({score:.1f} comments/PR) "
                "— consider deeper code discussions"
            ),
        )
    return None


def _large_prs(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    median = metrics.pr_size_median
    if median is None:
        return None

    if median >= thresholds.pr_size_critical:
        return Insight(
            type="large-prs",
            severity="warning",
            message=(
                f"Median PR size at {round_half_up(median)} lines "
                "— PRs this large are hard to review effectively"
            ),
        )
    if median >= thresholds.pr_size_warning:
        return Insight(
            type="large-prs",
            severity="info",
            message=f"Median PR size at {round_half_up(median)} lines — consider smaller, focused changes",
        )
    return None


def _build_failures(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    rate = metrics.build_success_rate
    if rate is None:
        return None

    if rate < thresholds.build_success_critical:
        return Insight(
            type="build-failures",
            severity="critical",
            message=f"Build success rate at {rate}% — broken builds are blocking delivery",
        )
    if rate < thresholds.build_success_warning:
        return Insight(
            type="build-failures",
            severity="warning",
            message=f"Build success rate at {rate}% — build reliability is degrading",
        )
    return None


def _slow_lead_time(metrics: SprintMetrics, thresholds: Thresholds) -> Optional[Insight]:
    hours = metrics.lead_time_median_hours
    if hours is None or hours < SLOW_LEAD_TIME_HOURS:
        return None
    return Insight(
        type="slow-lead-time",
        severity="warning",
        message=f"Lead time at {round_half_up(hours / 24)} days — significant deployment lag",
    )


INSIGHT_RULES: List[InsightRule] = [
    _knowledge_silo,
    _cycle_time,
    _wip_overload,
    _review_bottleneck,
    _shallow_reviews,
    _large_prs,
    _build_failures,
    _slow_lead_time,
]


def evaluate_insight_rules(metrics: SprintMetrics, thresholds: Thresholds) -> List[Insight]:
    """Run every rule and return the insights that fired, in rule order."""
    insights: List[Insight] = []
    for rule in INSIGHT_RULES:
        insight = rule(metrics, thresholds)
        if insight is not None:
            insights.append(insight)
    return insights


def select_top_insights(insights: List[Insight], limit: Optional[int] = 1) -> List[Insight]:
    """Stable-sort insights by severity and keep the first ``limit`` (all if ``None``)."""
    ranked = sorted(insights, key=lambda insight: SEVERITY_RANK[insight.severity])
    if limit is None:
        return ranked
    return ranked[:limit]


def detect_insights(metrics: SprintMetrics, thresholds: Thresholds) -> List[Insight]:
    """Return the single most severe insight for the period, or an empty list.

    Critical beats warning beats info; ties keep rule order.
    """
    return select_top_insights(evaluate_insight_rules(metrics, thresholds))


def get_health_status(metrics: SprintMetrics, thresholds: Thresholds) -> HealthStatus:
    """Derive the overall health indicator from cycle time, WIP, concentration and builds."""
    wip_ratio = metrics.wip_ratio
    build_rate = metrics.build_success_rate

    if (
        metrics.cycle_time_median_hours >= thresholds.cycle_time_critical_hours
        or wip_ratio >= thresholds.wip_critical_ratio
        or (build_rate is not None and build_rate < thresholds.build_success_critical)
    ):
        return HealthStatus.CRITICAL

    if (
        metrics.cycle_time_median_hours >= thresholds.cycle_time_warning_hours
        or wip_ratio >= thresholds.wip_warning_ratio
        or metrics.concentration_ratio >= thresholds.concentration_warning
        or (build_rate is not None and build_rate < thresholds.build_success_warning)
    ):
        return HealthStatus.WARNING

    return HealthStatus.HEALTHY


def get_health_emoji(metrics: SprintMetrics, thresholds: Thresholds) -> str:
    """Return the red/yellow/green circle emoji for :func:`get_health_status`."""
    return get_health_status(metrics, thresholds).emoji
