"""Tests for configuration loading and validation."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sprint_health.config import Thresholds, load_config, load_env_file
from sprint_health.errors import AuthenticationError, ConfigurationError

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def _standalone(**extra) -> dict:
    env = {"GITHUB_TOKEN": "token", "GITHUB_REPOSITORY": "acme/widgets"}
    env.update(extra)
    return env


def test_load_config_standalone_defaults():
    """Verify standalone defaults for period, posting and thresholds."""
    config = load_config(environ=_standalone(), now=NOW)

    assert config.token == "token"
    assert config.owner == "acme"
    assert config.repo == "widgets"
    assert config.repository == "acme/widgets"
    assert config.sprint_length_days == 14
    assert config.period_end == NOW
    assert (config.period_end - config.period_start).days == 14
    assert config.post_as == "summary"
    assert config.issue_number is None
    assert config.aurora_api_key is None
    assert config.aurora_team_id is None
    assert config.thresholds == Thresholds()


def test_default_thresholds_values():
    """Verify configurable and fixed threshold defaults."""
    thresholds = Thresholds()

    assert thresholds.cycle_time_warning_hours == 72
    assert thresholds.cycle_time_critical_hours == 168
    assert thresholds.review_warning_hours == 24
    assert thresholds.review_critical_hours == 48
    assert thresholds.wip_warning_ratio == 2
    assert thresholds.wip_critical_ratio == 3
    assert thresholds.concentration_warning == 0.6
    assert thresholds.concentration_critical == 0.75
    assert thresholds.review_depth_warning == 0.5
    assert thresholds.review_depth_critical == 0.2
    assert thresholds.pr_size_warning == 400
    assert thresholds.pr_size_critical == 1000
    assert thresholds.build_success_warning == 90
    assert thresholds.build_success_critical == 75


def test_load_config_missing_token_raises_authentication_error():
    """Verify a missing token is reported as an authentication error."""
    with pytest.raises(AuthenticationError):
        load_config(environ={"GITHUB_REPOSITORY": "o/r"}, now=NOW)


@pytest.mark.parametrize("repository", ["", "noslash", "/repo", "owner/", "a/b/c"])
def test_load_config_invalid_repository_raises_configuration_error(repository):
    """Verify GITHUB_REPOSITORY must be owner/repo."""
    with pytest.raises(ConfigurationError, match="Could not parse GITHUB_REPOSITORY"):
        load_config(environ=_standalone(GITHUB_REPOSITORY=repository), now=NOW)


def test_load_config_reads_standalone_inputs():
    """Verify underscore-style INPUT_ variables are read outside Actions."""
    env = _standalone(
        INPUT_SPRINT_LENGTH_DAYS="7",
        INPUT_POST_AS="issue-comment",
        INPUT_ISSUE_NUMBER="42",
        AURORA_API_KEY="key",
        AURORA_TEAM_ID="team",
        INPUT_CYCLE_TIME_WARNING_HOURS="48",
        INPUT_CYCLE_TIME_CRITICAL_HOURS="96",
        INPUT_WIP_CRITICAL_RATIO="2.5",
        INPUT_WORKFLOW_FILTER="CI",
    )

    config = load_config(environ=env, now=NOW)

    assert config.sprint_length_days == 7
    assert (config.period_end - config.period_start).days == 7
    assert config.post_as == "issue-comment"
    assert config.issue_number == 42
    assert config.aurora_api_key == "key"
    assert config.aurora_team_id == "team"
    assert config.workflow_filter == "CI"
    assert config.thresholds.cycle_time_warning_hours == 48
    assert config.thresholds.cycle_time_critical_hours == 96
    assert config.thresholds.wip_critical_ratio == 2.5
    assert config.thresholds.concentration_critical == 0.75


def test_load_config_reads_action_inputs():
    """Verify dash-style INPUT_ variables are read in GitHub Actions mode."""
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_REPOSITORY": "o/r",
        "GITHUB_TOKEN": "fallback",
        "INPUT_GITHUB-TOKEN": "input-token",
        "INPUT_SPRINT-LENGTH-DAYS": "10",
        "INPUT_POST-AS": "issue-comment",
        "INPUT_ISSUE-NUMBER": "7",
        "INPUT_AURORA-API-KEY": "key",
        "INPUT_AURORA-TEAM-ID": "team",
        "INPUT_REVIEW-WARNING-HOURS": "4",
        "INPUT_DEPLOYMENT-ENVIRONMENT": "production",
    }

    config = load_config(environ=env, now=NOW)

    assert config.token == "input-token"
    assert config.sprint_length_days == 10
    assert config.post_as == "issue-comment"
    assert config.issue_number == 7
    assert config.aurora_api_key == "key"
    assert config.aurora_team_id == "team"
    assert config.deployment_environment == "production"
    assert config.thresholds.review_warning_hours == 4


def test_load_config_action_mode_falls_back_to_github_token():
    """Verify an empty github-token input falls back to GITHUB_TOKEN."""
    env = {"GITHUB_ACTIONS": "true", "GITHUB_REPOSITORY": "o/r", "GITHUB_TOKEN": "env-token"}

    assert load_config(environ=env, now=NOW).token == "env-token"


def test_load_config_invalid_post_as_falls_back_to_summary(caplog):
    """Verify unknown post-as values log a warning and default to summary."""
    config = load_config(environ=_standalone(INPUT_POST_AS="invalid-value"), now=NOW)

    assert config.post_as == "summary"
    assert "Invalid post-as value" in caplog.text


@pytest.mark.parametrize(
    "extra",
    [
        {"INPUT_SPRINT_LENGTH_DAYS": "0"},
        {"INPUT_SPRINT_LENGTH_DAYS": "abc"},
        {"INPUT_ISSUE_NUMBER": "x"},
        {"INPUT_REVIEW_CRITICAL_HOURS": "soon"},
    ],
)
def test_load_config_invalid_numbers_raise_configuration_error(extra):
    """Verify non-numeric or non-positive inputs are rejected."""
    with pytest.raises(ConfigurationError):
        load_config(environ=_standalone(**extra), now=NOW)


def test_load_config_explicit_overrides_take_precedence():
    """Verify CLI-provided values override environment inputs."""
    env = _standalone(INPUT_SPRINT_LENGTH_DAYS="7", INPUT_POST_AS="summary")

    config = load_config(
        environ=env,
        now=NOW,
        repository="other/project",
        sprint_length_days=30,
        post_as="issue-comment",
        issue_number=3,
    )

    assert config.repository == "other/project"
    assert config.sprint_length_days == 30
    assert config.post_as == "issue-comment"
    assert config.issue_number == 3


def test_load_env_file_does_not_override_existing_variables(tmp_path, monkeypatch):
    """Verify .env values fill gaps without replacing exported variables."""
    env_file = tmp_path / ".env"
    env_file.write_text("SPRINT_HEALTH_TEST_A=from-file\nSPRINT_HEALTH_TEST_B=from-file\n")
    monkeypatch.setenv("SPRINT_HEALTH_TEST_A", "exported")
    monkeypatch.setenv("SPRINT_HEALTH_TEST_B", "placeholder")
    monkeypatch.delenv("SPRINT_HEALTH_TEST_B")

    assert load_env_file(env_file) is True

    assert os.environ["SPRINT_HEALTH_TEST_A"] == "exported"
    assert os.environ["SPRINT_HEALTH_TEST_B"] == "from-file"


def test_load_env_file_missing_file_returns_false(tmp_path):
    """Verify a missing .env file is ignored."""
    assert load_env_file(tmp_path / ".env") is False
