"""Domain models for sprint health metric computation.

These dataclasses intentionally model only the subset of GitHub API payload
fields that are required for metric computation, plus the aggregated records
produced from them. Optional values use ``None`` to mean "no data", which is
always distinct from a measured zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

ShipSource = Literal["deployment", "release"]
PRSizeCategory = Literal["small", "medium", "large"]
Severity = Literal["critical", "warning", "info"]
Trend = Literal["improving", "stable", "degrading"]

SEVERITY_RANK: Dict[str, int] = {"critical": 0, "warning": 1, "info": 2}


@dataclass(slots=True)
class PullRequest:
    """Represents a pull request merged within the analysis window."""

    number: int
    title: str
    author: str
    created_at: datetime
    merged_at: datetime


@dataclass(slots=True)
class Review:
    """Represents one submitted review on a pull request.

    ``comment_count`` is a weight rather than a raw count: ``1`` when the review
    body has text, plus an even share of the PR's inline review comments.
    """

    pr_number: int
    author: str
    submitted_at: datetime
    state: str
    comment_count: float = 0.0


@dataclass(slots=True)
class PRSize:
    """Represents the changed-line counts for a single pull request."""

    additions: int
    deletions: int

    @property
    def total(self) -> int:
        return self.additions + self.deletions


@dataclass(slots=True)
class WorkflowRunSummary:
    """Completed CI workflow runs in the analysis window (cancelled/skipped excluded)."""

    total_runs: int
    success_count: int
    failure_count: int


@dataclass(slots=True)
class ShipEvent:
    """A deployment or release used as a proxy for shipping to users."""

    id: int
    ref: str
    created_at: datetime
    source: ShipSource
    name: str


ReviewsByPR = Dict[int, List[Review]]
FirstCommitDates = Dict[int, datetime]


@dataclass(slots=True)
class SprintMetrics:
    """Aggregated delivery and collaboration metrics for one analysis period."""

    cycle_time_median_hours: float
    cycle_time_p90_hours: float
    throughput_count: int
    wip_count: int
    review_turnaround_median_hours: float
    collaborator_count: int
    concentration_ratio: float
    review_depth_score: float
    pr_size_median: Optional[float] = None
    pr_size_category: Optional[PRSizeCategory] = None
    build_success_rate: Optional[int] = None
    build_total_runs: Optional[int] = None
    ship_frequency: Optional[float] = None
    ship_count: Optional[int] = None
    ship_source: Optional[ShipSource] = None
    lead_time_median_hours: Optional[float] = None
    cycle_time_trend: Trend = "stable"
    pr_numbers: List[int] = field(default_factory=list)

    @property
    def wip_ratio(self) -> float:
        """Open PRs per collaborator, ``0`` when nobody merged anything."""
        if self.collaborator_count <= 0:
            return 0.0
        return self.wip_count / self.collaborator_count


@dataclass(slots=True)
class Insight:
    """A single coaching callout derived from the metrics."""

    type: str
    severity: Severity
    message: str


class HealthStatus(str, Enum):
    """Overall health indicator shown in the health card header."""

    CRITICAL = "critical"
    WARNING = "warning"
    HEALTHY = "healthy"

    @property
    def emoji(self) -> str:
        return _HEALTH_EMOJI[self]


_HEALTH_EMOJI: Dict[HealthStatus, str] = {
    HealthStatus.CRITICAL: "\U0001F534",
    HealthStatus.WARNING: "\U0001F7E1",
    HealthStatus.HEALTHY: "\U0001F7E2",
}
