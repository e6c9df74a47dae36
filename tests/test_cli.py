"""Tests for command-line argument parsing."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sprint_health.cli import parse_args


def test_parse_args_with_valid_arguments(monkeypatch):
    """Verify CLI parsing succeeds when every option is provided."""
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "sprint-health-card",
            "--repository",
            "acme/widgets",
            "--days",
            "7",
            "--post-as",
            "issue-comment",
            "--issue-number",
            "42",
            "--log-level",
            "DEBUG",
        ],
    )

    args = parse_args()

    assert args.repository == "acme/widgets"
    assert args.days == 7
    assert args.post_as == "issue-comment"
    assert args.issue_number == 42
    assert args.log_level == "DEBUG"


def test_parse_args_without_options_defers_to_environment(monkeypatch):
    """Verify omitted options are None so environment inputs apply."""
    monkeypatch.setattr(sys, "argv", ["sprint-health-card"])

    args = parse_args()

    assert args.repository is None
    assert args.days is None
    assert args.post_as is None
    assert args.issue_number is None
    assert args.log_level == "WARNING"


@pytest.mark.parametrize(
    "extra",
    [
        ["--days", "-1"],
        ["--days", "0"],
        ["--days", "two"],
        ["--issue-number", "0"],
        ["--repository", "widgets"],
        ["--repository", "acme/widgets/extra"],
        ["--post-as", "slack"],
    ],
)
def test_parse_args_invalid_values_fail_validation(monkeypatch, extra):
    """Verify CLI parsing exits with an error for invalid option values."""
    monkeypatch.setattr(sys, "argv", ["sprint-health-card", *extra])

    with pytest.raises(SystemExit):
        parse_args()
