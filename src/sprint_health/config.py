"""Configuration parsing and validation for the Sprint Health Card generator.

Values are read from GitHub Action inputs when running as an action
(``INPUT_<NAME-WITH-DASHES>``) and from plain environment variables when
running standalone (``INPUT_<NAME_WITH_UNDERSCORES>``, ``GITHUB_TOKEN``, ...).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

POST_AS_CHOICES = ("summary", "issue-comment")
DEFAULT_SPRINT_LENGTH_DAYS = 14


@dataclass(frozen=True)
class Thresholds:
    """Warning/critical cutoffs used by insight detection and health status."""

    cycle_time_warning_hours: float = 72.0
    cycle_time_critical_hours: float = 168.0
    review_warning_hours: float = 24.0
    review_critical_hours: float = 48.0
    wip_warning_ratio: float = 2.0
    wip_critical_ratio: float = 3.0
    # Fixed cutoffs, not exposed as inputs
    concentration_warning: float = 0.6
    concentration_critical: float = 0.75
    review_depth_warning: float = 0.5
    review_depth_critical: float = 0.2
    pr_size_warning: float = 400.0
    pr_size_critical: float = 1000.0
    build_success_warning: float = 90.0
    build_success_critical: float = 75.0


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the health card generator."""

    token: str
    owner: str
    repo: str
    sprint_length_days: int
    period_start: datetime
    period_end: datetime
    post_as: str = "summary"
    issue_number: Optional[int] = None
    aurora_api_key: Optional[str] = None
    aurora_team_id: Optional[str] = None
    workflow_filter: Optional[str] = None
    deployment_environment: Optional[str] = None
    thresholds: Thresholds = field(default_factory=Thresholds)

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


def is_github_action(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Return ``True`` when running inside a GitHub Actions job."""
    env = os.environ if environ is None else environ
    return bool(env.get("GITHUB_ACTIONS"))


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load a ``.env`` file for standalone runs without overriding existing variables."""
    env_path = path or Path.cwd() / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(env_path, override=False)


def _read_input(name: str, environ: Mapping[str, str], action_mode: bool) -> str:
    """Read an input the way the runner exposes it for the current mode."""
    if action_mode:
        key = f"INPUT_{name.replace(' ', '_').upper()}"
    else:
        key = f"INPUT_{name.replace('-', '_').upper()}"
    return environ.get(key, "").strip()


def _parse_float(name: str, raw: str, default: float) -> float:
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for '{name}': expected a number, got '{raw}'.") from exc


def _parse_positive_int(name: str, raw: str, default: Optional[int]) -> Optional[int]:
    if not raw:
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for '{name}': expected an integer, got '{raw}'.") from exc

    if parsed <= 0:
        raise ConfigurationError(f"Invalid value for '{name}': expected an integer greater than 0.")
    return parsed


def _validate_post_as(value: str) -> str:
    if value in POST_AS_CHOICES:
        return value
    logger.warning("Invalid post-as value: %s. Defaulting to 'summary'", value)
    return "summary"


def load_thresholds(environ: Mapping[str, str], action_mode: bool) -> Thresholds:
    """Build thresholds from configurable inputs, keeping fixed cutoffs at defaults."""
    defaults = Thresholds()

    def read(name: str, default: float) -> float:
        return _parse_float(name, _read_input(name, environ, action_mode), default)

    return Thresholds(
        cycle_time_warning_hours=read("cycle-time-warning-hours", defaults.cycle_time_warning_hours),
        cycle_time_critical_hours=read("cycle-time-critical-hours", defaults.cycle_time_critical_hours),
        review_warning_hours=read("review-warning-hours", defaults.review_warning_hours),
        review_critical_hours=read("review-critical-hours", defaults.review_critical_hours),
        wip_warning_ratio=read("wip-warning-ratio", defaults.wip_warning_ratio),
        wip_critical_ratio=read("wip-critical-ratio", defaults.wip_critical_ratio),
    )


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
    repository: Optional[str] = None,
    sprint_length_days: Optional[int] = None,
    post_as: Optional[str] = None,
    issue_number: Optional[int] = None,
) -> Config:
    """Build and validate application configuration.

    Args:
        environ: Environment mapping to read from; defaults to ``os.environ``.
        now: Period end; defaults to the current UTC time.
        repository: ``owner/repo`` override for ``GITHUB_REPOSITORY``.
        sprint_length_days: Override for the ``sprint-length-days`` input.
        post_as: Override for the ``post-as`` input.
        issue_number: Override for the ``issue-number`` input.

    Returns:
        A validated ``Config`` instance.

    Raises:
        AuthenticationError: If no GitHub token is configured.
        ConfigurationError: If the repository or any numeric input is invalid.
    """
    env = os.environ if environ is None else environ
    action_mode = is_github_action(env)

    token = env.get("GITHUB_TOKEN", "").strip()
    if action_mode:
        token = _read_input("github-token", env, action_mode) or token
    if not token:
        raise AuthenticationError(
            "Missing required GitHub token. "
            "Set the 'GITHUB_TOKEN' environment variable (or the 'github-token' input)."
        )

    repo_full = repository or env.get("GITHUB_REPOSITORY", "")
    owner, _, repo = repo_full.strip().partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigurationError("Could not parse GITHUB_REPOSITORY. Expected format: owner/repo")

    if sprint_length_days is None:
        sprint_length_days = _parse_positive_int(
            "sprint-length-days",
            _read_input("sprint-length-days", env, action_mode),
            DEFAULT_SPRINT_LENGTH_DAYS,
        )
    elif sprint_length_days <= 0:
        raise ConfigurationError(
            "Invalid value for 'sprint-length-days': expected an integer greater than 0."
        )

    period_end = now or datetime.now(timezone.utc)
    period_start = period_end - timedelta(days=sprint_length_days)

    if issue_number is None:
        issue_number = _parse_positive_int(
            "issue-number", _read_input("issue-number", env, action_mode), None
        )

    if action_mode:
        aurora_api_key = _read_input("aurora-api-key", env, action_mode)
        aurora_team_id = _read_input("aurora-team-id", env, action_mode)
    else:
        aurora_api_key = env.get("AURORA_API_KEY", "").strip()
        aurora_team_id = env.get("AURORA_TEAM_ID", "").strip()

    return Config(
        token=token,
        owner=owner,
        repo=repo,
        sprint_length_days=sprint_length_days,
        period_start=period_start,
        period_end=period_end,
        post_as=_validate_post_as(post_as or _read_input("post-as", env, action_mode) or "summary"),
        issue_number=issue_number,
        aurora_api_key=aurora_api_key or None,
        aurora_team_id=aurora_team_id or None,
        workflow_filter=_read_input("workflow-filter", env, action_mode) or None,
        deployment_environment=_read_input("deployment-environment", env, action_mode) or None,
        thresholds=load_thresholds(env, action_mode),
    )
