"""Sprint Health Card generator entry point."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional

from .card import render_empty_card, render_health_card
from .cli import parse_args
from .config import Config, is_github_action, load_config, load_env_file
from .errors import ApiError, AuthenticationError, ConfigurationError, DataValidationError
from .github_client import GitHubClient
from .insights import get_health_status
from .metrics import MetricsOptions, calculate_metrics
from .models import FirstCommitDates, HealthStatus, ShipEvent, SprintMetrics
from .outputs import build_step_outputs, push_to_aurora, write_step_outputs, write_step_summary

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_API_ERROR = 4


def collect_sprint_metrics(client: GitHubClient, config: Config) -> Optional[SprintMetrics]:
    """Fetch all datasets for the configured period and aggregate them.

    Returns ``None`` when no pull requests were merged in the period.
    """
    print("Fetching pull request data...")
    pull_requests = client.get_merged_prs(config.period_start, config.period_end)
    print(f"   Found {len(pull_requests)} merged PRs in period")

    if not pull_requests:
        return None

    pr_numbers = [pr.number for pr in pull_requests]
    print("Fetching reviews, PR sizes, open PRs, workflow runs and deployments...")
    reviews_by_pr, sizes_by_pr = client.get_reviews_and_sizes(pr_numbers)
    open_pr_count = client.get_open_pr_count()
    workflow_runs = client.get_workflow_runs(
        config.period_start, config.period_end, config.workflow_filter
    )

    # Deployments are preferred; releases are the fallback ship signal.
    ship_events: List[ShipEvent] = client.get_deployments(
        config.period_start, config.period_end, config.deployment_environment
    )
    if not ship_events:
        ship_events = client.get_releases(config.period_start, config.period_end)

    first_commit_dates: FirstCommitDates = {}
    if ship_events:
        print("Fetching first commit dates...")
        first_commit_dates = client.get_first_commit_dates(pr_numbers)

    print("Calculating metrics...")
    return calculate_metrics(
        pull_requests,
        reviews_by_pr,
        open_pr_count,
        MetricsOptions(
            pr_sizes=sizes_by_pr,
            workflow_runs=workflow_runs,
            ship_events=ship_events,
            first_commit_dates=first_commit_dates,
            period_days=config.sprint_length_days,
        ),
    )


def publish_health_card(
    config: Config,
    client: GitHubClient,
    health_card: str,
    metrics: Optional[SprintMetrics],
) -> None:
    """Print the card and deliver it to the configured destinations."""
    separator = "=" * 60
    print(f"\n{separator}\n{health_card}\n{separator}\n")

    action_mode = is_github_action()
    if action_mode:
        status: Optional[HealthStatus] = None
        if metrics is not None:
            status = get_health_status(metrics, config.thresholds)
        write_step_outputs(build_step_outputs(health_card, metrics, status))

    if config.post_as == "summary":
        if action_mode and write_step_summary(health_card):
            print("Posted to job summary")
        else:
            print("Job summary only available in GitHub Actions")
    elif config.post_as == "issue-comment":
        if config.issue_number:
            client.post_issue_comment(config.issue_number, health_card)
            print(f"Posted to issue #{config.issue_number}")
        else:
            logger.warning("post-as is 'issue-comment' but no issue number was configured")

    if metrics is not None and config.aurora_api_key and config.aurora_team_id:
        print("Pushing metrics to Aurora Coach...")
        push_to_aurora(config, metrics)


def orchestrate_sprint_health() -> int:
    """Run the end-to-end health card workflow and return a process exit code.

    Exit codes: ``0`` success, ``1`` unexpected error, ``2`` configuration error,
    ``3`` authentication error, ``4`` GitHub API error.
    """
    try:
        args = parse_args()
        logging.basicConfig(
            level=getattr(logging, args.log_level, logging.WARNING),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        if not is_github_action():
            load_env_file()

        config = load_config(
            repository=args.repository,
            sprint_length_days=args.days,
            post_as=args.post_as,
            issue_number=args.issue_number,
        )

        print("Sprint Health Card")
        print(f"   Repository: {config.repository}")
        print(f"   Sprint length: {config.sprint_length_days} days")
        print(
            f"   Period: {config.period_start:%Y-%m-%d} to {config.period_end:%Y-%m-%d}\n"
        )

        client = GitHubClient(token=config.token, owner=config.owner, repo=config.repo)
        metrics = collect_sprint_metrics(client, config)

        if metrics is None:
            print("No merged PRs found in this period")
            health_card = render_empty_card(config)
        else:
            health_card = render_health_card(config, metrics, config.thresholds)

        publish_health_card(config, client, health_card, metrics)
        return EXIT_SUCCESS
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except AuthenticationError as exc:
        logger.error("Authentication error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION_ERROR
    except (ApiError, DataValidationError) as exc:
        logger.error("GitHub API error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_API_ERROR
    except Exception as exc:
        logger.exception("Unexpected error while generating the health card")
        print(f"ERROR: Unexpected failure: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED_ERROR


def main() -> int:
    return orchestrate_sprint_health()


if __name__ == "__main__":
    raise SystemExit(main())
