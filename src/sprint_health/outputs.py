"""Delivery of the health card and metrics to GitHub Actions and Aurora Coach."""

from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Dict, Mapping, Optional

import requests

from .config import Config
from .models import HealthStatus, SprintMetrics
from .stats import round_half_up

logger = logging.getLogger(__name__)

AURORA_METRICS_URL = "https://app.aurora-coach.com/api/teams/{team_id}/metrics"
AURORA_TIMEOUT_SECONDS = 15


def build_step_outputs(
    health_card: str,
    metrics: Optional[SprintMetrics],
    status: Optional[HealthStatus] = None,
) -> Dict[str, str]:
    """Build the action output values; optional metrics are omitted when absent."""
    outputs: Dict[str, str] = {"health-card": health_card}
    if status is not None:
        outputs["health-status"] = status.value
    if metrics is None:
        return outputs

    outputs["cycle-time-hours"] = f"{metrics.cycle_time_median_hours:.1f}"
    outputs["throughput"] = str(metrics.throughput_count)
    outputs["review-turnaround-hours"] = f"{metrics.review_turnaround_median_hours:.1f}"
    if metrics.pr_size_median is not None:
        outputs["pr-size-median"] = str(round_half_up(metrics.pr_size_median))
    if metrics.build_success_rate is not None:
        outputs["build-success-rate"] = str(metrics.build_success_rate)
    if metrics.ship_frequency is not None:
        outputs["ship-frequency"] = f"{metrics.ship_frequency:.2f}"
    if metrics.lead_time_median_hours is not None:
        outputs["lead-time-hours"] = f"{metrics.lead_time_median_hours:.1f}"
    return outputs


def write_step_outputs(outputs: Mapping[str, str], environ: Optional[Mapping[str, str]] = None) -> bool:
    """Append outputs to ``$GITHUB_OUTPUT`` using the multiline delimiter syntax.

    Returns ``False`` when not running with an output file.
    """
    env = os.environ if environ is None else environ
    output_file = env.get("GITHUB_OUTPUT")
    if not output_file:
        return False

    with open(output_file, "a", encoding="utf-8") as handle:
        for name, value in outputs.items():
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
    return True


def write_step_summary(markdown: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    """Append markdown to the job summary (``$GITHUB_STEP_SUMMARY``)."""
    env = os.environ if environ is None else environ
    step_summary_file = env.get("GITHUB_STEP_SUMMARY")
    if not step_summary_file:
        return False

    with open(step_summary_file, "a", encoding="utf-8") as handle:
        handle.write(markdown + "\n")
    return True


def build_aurora_payload(config: Config, metrics: SprintMetrics) -> Dict[str, Any]:
    """Group metrics the way the Aurora Coach metrics endpoint expects them."""
    return {
        "source": "github",
        "periodStart": config.period_start.strftime("%Y-%m-%d"),
        "periodEnd": config.period_end.strftime("%Y-%m-%d"),
        "delivery": {
            "cycleTimeMedianHours": metrics.cycle_time_median_hours,
            "cycleTimeP90Hours": metrics.cycle_time_p90_hours,
            "throughputCount": metrics.throughput_count,
            "wipCount": metrics.wip_count,
            "prSizeMedian": metrics.pr_size_median,
            "leadTimeMedianHours": metrics.lead_time_median_hours,
        },
        "collaboration": {
            "reviewTurnaroundHours": metrics.review_turnaround_median_hours,
            "collaboratorCount": metrics.collaborator_count,
            "concentrationRatio": metrics.concentration_ratio,
        },
        "operations": {
            "buildSuccessRate": metrics.build_success_rate,
            "buildTotalRuns": metrics.build_total_runs,
            "shipFrequency": metrics.ship_frequency,
            "shipCount": metrics.ship_count,
            "shipSource": metrics.ship_source,
        },
        "raw": {
            "repoName": config.repository,
            "prNumbers": list(metrics.pr_numbers),
        },
    }


def push_to_aurora(config: Config, metrics: SprintMetrics) -> bool:
    """POST metrics to Aurora Coach when an API key and team id are configured.

    Failures are logged as warnings and never abort the run.
    """
    if not config.aurora_api_key or not config.aurora_team_id:
        return False

    url = AURORA_METRICS_URL.format(team_id=config.aurora_team_id)
    try:
        response = requests.post(
            url,
            json=build_aurora_payload(config, metrics),
            headers={"Authorization": f"Bearer {config.aurora_api_key}"},
            timeout=AURORA_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        logger.warning("Failed to push to Aurora: %s", exc)
        return False

    if not response.ok:
        logger.warning("Failed to push to Aurora: %s %s", response.status_code, response.text)
        return False

    logger.info("Metrics pushed to Aurora Coach", extra={"team_id": config.aurora_team_id})
    return True
