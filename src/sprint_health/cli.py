"""Command-line argument parsing for the Sprint Health Card generator."""

from __future__ import annotations

import argparse

from .config import POST_AS_CHOICES


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Args:
        value: Raw command-line argument value.

    Returns:
        The validated positive integer.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def _repository(value: str) -> str:
    owner, _, repo = value.strip().partition("/")
    if not owner or not repo or "/" in repo:
        raise argparse.ArgumentTypeError("expected format owner/repo")
    return value.strip()


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for health card generation.

    Every option is optional; values that are not given fall back to the
    environment (``GITHUB_REPOSITORY``, ``INPUT_*`` variables).
    """
    parser = argparse.ArgumentParser(
        prog="sprint-health-card",
        description=(
            "Generate a sprint health card (cycle time, reviews, WIP, builds, "
            "shipping) from a GitHub repository's pull-request activity."
        ),
    )

    parser.add_argument(
        "--repository",
        type=_repository,
        default=None,
        help="Repository as owner/repo (default: $GITHUB_REPOSITORY).",
    )
    parser.add_argument(
        "--days",
        type=_positive_int,
        default=None,
        help="Sprint length in days to analyze (default: 14).",
    )
    parser.add_argument(
        "--post-as",
        choices=POST_AS_CHOICES,
        default=None,
        help="Where to publish the card: job summary or an issue comment.",
    )
    parser.add_argument(
        "--issue-number",
        type=_positive_int,
        default=None,
        help="Issue or PR number to comment on when --post-as=issue-comment.",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="WARNING",
        help="Logging verbosity (default: WARNING).",
    )

    return parser.parse_args()
