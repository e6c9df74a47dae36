"""Markdown health card rendering.

Builds the sprint health card from computed metrics: a status header, a
metrics table, the top insight, contextual quick wins and a footer.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from .config import Config, Thresholds
from .insights import detect_insights, get_health_emoji
from .models import Insight, SprintMetrics
from .stats import format_duration, round_half_up

FOOTER = (
    "---\n"
    "*Powered by [Aurora Coach](https://aurora-coach.com) "
    "— The AI Coach for Software Engineering Teams*"
)

QUICK_WINS_NOTE = (
    "> *These are general patterns. For coaching based on your team's context → "
    "[aurora-coach.com](https://aurora-coach.com?utm_source=github-action"
    "&utm_medium=health-card&utm_campaign=sprint-health)*"
)

_SEVERITY_ICONS = {"critical": "\U0001F6A8", "warning": "⚠️", "info": "ℹ️"}


def format_date_range(start: datetime, end: datetime) -> str:
    """Format a period as ``Jan 5 – Jan 19``."""
    return f"{start:%b} {start.day} – {end:%b} {end.day}"


def format_cycle_time(median_hours: float, p90_hours: float) -> str:
    return f"{format_duration(median_hours)} (P90: {format_duration(p90_hours)})"


def format_wip(wip_count: int, collaborator_count: int) -> str:
    """Describe WIP relative to team size."""
    if collaborator_count == 0:
        return f"{wip_count} open"

    ratio = wip_count / collaborator_count
    if ratio <= 1.5:
        return f"{wip_count} open (healthy)"
    if ratio <= 2.5:
        return f"{wip_count} open (elevated)"
    return f"{wip_count} open (overloaded)"


def format_collaboration(count: int, concentration: float) -> str:
    """Describe contributor count and how concentrated the work is."""
    if count <= 1:
        return "Solo contributor"
    if concentration >= 0.75:
        return f"{count} contributors (siloed)"
    if concentration >= 0.6:
        return f"{count} contributors (concentrated)"
    return f"{count} contributors (balanced)"


def format_review_depth(score: float) -> str:
    """Describe the average review comment weight per reviewed PR."""
    if score == 0:
        return "—"
    if score < 0.5:
        label = "light"
    elif score < 2:
        label = "moderate"
    elif score < 3:
        label = "thorough"
    else:
        label = "very thorough"
    return f"{score:.1f} comments/PR ({label})"


def format_pr_size(median: Optional[float], category: Optional[str]) -> Optional[str]:
    if median is None:
        return None
    return f"{round_half_up(median)} lines ({category})"


def format_build_success(rate: Optional[int], total_runs: Optional[int]) -> Optional[str]:
    if rate is None:
        return None
    return f"{rate}% of {total_runs} runs"


def format_ship_frequency(
    frequency: Optional[float],
    count: Optional[int],
    source: Optional[str],
) -> Optional[str]:
    if frequency is None:
        return None
    plural = "s" if count != 1 else ""
    return f"{count} {source}{plural} ({frequency * 7:.1f}/week)"


def generate_quick_wins(metrics: SprintMetrics, thresholds: Thresholds) -> List[str]:
    """Generate contextual coaching tips for the metrics that are flagged."""
    tips: List[str] = []

    if metrics.cycle_time_median_hours >= thresholds.cycle_time_critical_hours:
        tips.append(
            "**Cycle time** — Long cycle times usually mean PRs waiting for review, CI, "
            "or decisions. Finding where work stalls is the first step."
        )
    elif metrics.cycle_time_median_hours >= thresholds.cycle_time_warning_hours:
        tips.append(
            "**Cycle time** — Smaller PRs often move faster: one reviewable chunk beats a "
            "sprawling change."
        )

    if (
        metrics.cycle_time_median_hours > 0
        and metrics.cycle_time_p90_hours >= metrics.cycle_time_median_hours * 3
    ):
        tips.append(
            "**P90 outliers** — When P90 is much higher than median, a few PRs are getting "
            "stuck. These outliers often reveal external blockers worth investigating."
        )

    if metrics.review_turnaround_median_hours >= thresholds.review_critical_hours:
        tips.append(
            "**Review speed** — Two-day review waits often signal capacity issues or unclear "
            "ownership. Explicit review assignments can help."
        )
    elif metrics.review_turnaround_median_hours >= thresholds.review_warning_hours:
        tips.append(
            "**Review speed** — Review delays compound: waiting PRs become stale and need "
            "rebasing. Small daily review windows help."
        )

    if metrics.wip_ratio >= thresholds.wip_critical_ratio:
        tips.append(
            "**WIP** — WIP this high usually means too much in flight. Try a \"stop starting, "
            "start finishing\" week to clear the queue."
        )
    elif metrics.wip_ratio >= thresholds.wip_warning_ratio:
        tips.append(
            "**WIP** — High WIP often means context-switching. Finishing one thing before "
            "starting the next improves flow."
        )

    if metrics.concentration_ratio >= thresholds.concentration_critical:
        tips.append(
            "**Concentration** — High concentration creates bus-factor risk. Cross-training "
            "is worth the short-term slowdown."
        )
    elif metrics.concentration_ratio >= thresholds.concentration_warning:
        tips.append(
            "**Concentration** — When one person handles most PRs or reviews, knowledge "
            "concentrates. Rotating reviewers spreads context."
        )

    depth = metrics.review_depth_score
    if 0 < depth <= thresholds.review_depth_critical:
        tips.append(
            "**Review depth** — Very few comments often means approvals, not conversations. "
            "This can signal time pressure or unclear expectations."
        )
    elif 0 < depth <= thresholds.review_depth_warning:
        tips.append(
            "**Review depth** — Light reviews move fast but may miss knowledge-sharing "
            "opportunities. Even one question per PR builds shared understanding."
        )
    elif depth >= 3.0:
        tips.append(
            "**Review depth** — Detailed reviews build quality, but watch for diminishing "
            "returns. Consider calibrating review standards to risk level."
        )

    if metrics.collaborator_count <= 1 and metrics.throughput_count > 0:
        tips.append(
            "**Collaboration** — Solo work is fine for focused sprints. When possible, even "
            "async review from a teammate adds perspective."
        )

    return tips


def _format_insight(insight: Insight) -> str:
    return f"> {_SEVERITY_ICONS[insight.severity]} **{insight.message}**"


def render_health_card(config: Config, metrics: SprintMetrics, thresholds: Thresholds) -> str:
    """Render the full markdown health card for a period with merged PRs."""
    health_emoji = get_health_emoji(metrics, thresholds)
    date_range = format_date_range(config.period_start, config.period_end)

    rows = [
        ("PR Cycle Time", format_cycle_time(metrics.cycle_time_median_hours, metrics.cycle_time_p90_hours)),
        ("Review Speed", format_duration(metrics.review_turnaround_median_hours)),
        ("Review Depth", format_review_depth(metrics.review_depth_score)),
        ("Throughput", f"{metrics.throughput_count} PRs"),
        ("WIP", format_wip(metrics.wip_count, metrics.collaborator_count)),
        ("Collaboration", format_collaboration(metrics.collaborator_count, metrics.concentration_ratio)),
    ]
    optional_rows = [
        ("PR Size", format_pr_size(metrics.pr_size_median, metrics.pr_size_category)),
        ("Build Success", format_build_success(metrics.build_success_rate, metrics.build_total_runs)),
        (
            "Ship Frequency",
            format_ship_frequency(metrics.ship_frequency, metrics.ship_count, metrics.ship_source),
        ),
        (
            "Lead Time",
            None if metrics.lead_time_median_hours is None else format_duration(metrics.lead_time_median_hours),
        ),
    ]
    rows.extend((label, value) for label, value in optional_rows if value is not None)

    lines = [
        f"## {health_emoji} Sprint Health — {date_range}",
        "",
        "| Metric | Value |",
        "|--------|-------|",
    ]
    lines.extend(f"| {label} | {value} |" for label, value in rows)

    insights = detect_insights(metrics, thresholds)
    if insights:
        lines.extend(["", _format_insight(insights[0])])

    quick_wins = generate_quick_wins(metrics, thresholds)
    if quick_wins:
        lines.extend(["", "### \U0001F4A1 Quick Wins", ""])
        lines.extend(f"- {tip}" for tip in quick_wins)
        lines.extend(["", QUICK_WINS_NOTE])

    lines.extend(["", FOOTER])
    return "\n".join(lines)


def render_empty_card(config: Config) -> str:
    """Render the card for a period in which no pull requests were merged."""
    date_range = format_date_range(config.period_start, config.period_end)
    return "\n".join(
        [
            f"## \U0001F4CA Sprint Health — {date_range}",
            "",
            "No pull requests merged during this period.",
            "",
            FOOTER,
        ]
    )
