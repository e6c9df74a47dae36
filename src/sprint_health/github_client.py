"""GitHub REST API client for sprint health data retrieval."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from .errors import ApiError, DataValidationError
from .models import PRSize, PullRequest, Review, ReviewsByPR, ShipEvent, WorkflowRunSummary

logger = logging.getLogger(__name__)


class GitHubClient:
    """Small, typed client for the GitHub pull request, actions and deployment APIs."""

    _API_URL = "https://api.github.com"
    _API_VERSION = "2022-11-28"
    _PAGE_SIZE = 100
    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30
    _CONCURRENCY_LIMIT = 10
    _EXCLUDED_CONCLUSIONS = ("cancelled", "skipped")

    def __init__(self, token: str, owner: str, repo: str, timeout_seconds: int = 30) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            token: GitHub token with read access to the repository.
            owner: Repository owner (user or organization).
            repo: Repository name.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._owner = owner
        self._repo = repo
        self._timeout_seconds = timeout_seconds
        self._repo_url = f"{self._API_URL}/repos/{owner}/{repo}"

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": self._API_VERSION,
            }
        )

    def _build_url(self, path: str) -> str:
        """Build a fully qualified API URL from a path below the repository root.

        Paths starting with ``/`` are resolved against the API root instead.
        """
        if path.startswith("http"):
            return path
        if path.startswith("/"):
            return f"{self._API_URL}{path}"
        return f"{self._repo_url}/{path}"

    def _format_date(self, value: datetime) -> str:
        """Format a datetime as a UTC ``YYYY-MM-DD`` date for search qualifiers."""
        return value.astimezone(timezone.utc).strftime("%Y-%m-%d")

    def _parse_datetime(self, value: Optional[str]) -> Optional[datetime]:
        """Parse GitHub ISO8601 timestamps into timezone-aware datetimes."""
        if not value:
            return None

        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(normalized)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """Execute a request with retry logic for 429/5xx responses.

        Raises:
            ApiError: If the request repeatedly fails or returns HTTP >= 400.
        """
        url = self._build_url(path)
        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._MAX_RETRIES:
                    raise ApiError(f"GitHub request failed after retries: {method} {url}") from exc
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or 500 <= status_code <= 599

            if is_retryable and attempt < self._MAX_RETRIES:
                logger.debug(
                    "Retrying GitHub request",
                    extra={"url": url, "status_code": status_code, "attempt": attempt},
                )
                time.sleep(self._extract_backoff_seconds(response, attempt))
                continue

            if status_code >= 400:
                raise ApiError(
                    "GitHub API request failed: "
                    f"{method} {url} returned {status_code} - {response.text}"
                )

            return response

        raise ApiError(f"GitHub request failed after retries: {method} {url}") from last_error

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a single resource and decode its JSON body."""
        response = self._request("GET", path, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"GitHub API returned invalid JSON: GET {path}") from exc

    def _iter_pages(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        items_key: Optional[str] = None,
    ) -> Iterator[List[Dict[str, Any]]]:
        """Yield item pages, following ``Link: rel="next"`` headers.

        ``items_key`` selects the list inside object payloads (search results,
        workflow runs); list payloads are yielded as-is.
        """
        query: Optional[Dict[str, Any]] = dict(params or {})
        query.setdefault("per_page", self._PAGE_SIZE)
        next_path: Optional[str] = path

        while next_path:
            response = self._request("GET", next_path, params=query)
            try:
                payload = response.json()
            except ValueError as exc:
                raise ApiError(f"GitHub API returned invalid JSON: GET {next_path}") from exc

            if items_key is not None:
                if not isinstance(payload, dict):
                    raise ApiError(f"GitHub API returned unexpected payload shape: GET {next_path}")
                items = payload.get(items_key) or []
            else:
                if not isinstance(payload, list):
                    raise ApiError(f"GitHub API returned unexpected payload shape: GET {next_path}")
                items = payload

            yield items

            next_link = (response.links or {}).get("next") or {}
            next_path = next_link.get("url")
            # The next URL already carries the query string.
            query = None

    def _collect(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        items_key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for page in self._iter_pages(path, params=params, items_key=items_key):
            items.extend(page)
        return items

    def _to_pull_request(self, item: Dict[str, Any], merged_at: datetime) -> PullRequest:
        created_at = self._parse_datetime(item.get("created_at"))
        if item.get("number") is None or created_at is None:
            raise DataValidationError(f"GitHub pull request payload is missing required fields: payload={item}")

        return PullRequest(
            number=int(item["number"]),
            title=str(item.get("title") or ""),
            author=str((item.get("user") or {}).get("login") or "unknown"),
            created_at=created_at,
            merged_at=merged_at,
        )

    def get_merged_prs(self, start: datetime, end: datetime) -> List[PullRequest]:
        """List pull requests merged between ``start`` and ``end``.

        Uses the search API and falls back to the pull request list API when
        search is unavailable.
        """
        query = (
            f"repo:{self._owner}/{self._repo} is:pr is:merged "
            f"merged:{self._format_date(start)}..{self._format_date(end)}"
        )

        try:
            items = self._collect(
                "/search/issues",
                params={"q": query, "sort": "updated", "order": "desc"},
                items_key="items",
            )
        except ApiError as exc:
            logger.warning("Search API unavailable, falling back to list API: %s", exc)
            return self._get_merged_prs_fallback(start, end)

        pull_requests: List[PullRequest] = []
        for item in items:
            merged_at = self._parse_datetime((item.get("pull_request") or {}).get("merged_at"))
            if merged_at is None:
                continue
            pull_requests.append(self._to_pull_request(item, merged_at))

        return pull_requests

    def _get_merged_prs_fallback(self, start: datetime, end: datetime) -> List[PullRequest]:
        """Walk closed PRs newest-updated first until merges fall before ``start``."""
        pull_requests: List[PullRequest] = []
        params = {"state": "closed", "sort": "updated", "direction": "desc"}

        for page in self._iter_pages("pulls", params=params):
            for item in page:
                merged_at = self._parse_datetime(item.get("merged_at"))
                if merged_at is None:
                    continue
                if merged_at < start:
                    return pull_requests
                if merged_at > end:
                    continue
                pull_requests.append(self._to_pull_request(item, merged_at))

        return pull_requests

    def _fetch_inline_comment_count(self, pr_number: int) -> int:
        try:
            return len(self._collect(f"pulls/{pr_number}/comments"))
        except ApiError as exc:
            logger.warning("Could not fetch inline comments for PR #%s: %s", pr_number, exc)
            return 0

    def _fetch_pr_size(self, pr_number: int) -> Optional[PRSize]:
        """Fetch line counts for one PR; ``None`` when the detail is unavailable."""
        try:
            detail = self._get_json(f"pulls/{pr_number}")
            if not isinstance(detail, dict) or detail.get("additions") is None:
                return None
            return PRSize(
                additions=int(detail.get("additions") or 0),
                deletions=int(detail.get("deletions") or 0),
            )
        except (ApiError, TypeError, ValueError) as exc:
            logger.warning("Could not fetch size for PR #%s: %s", pr_number, exc)
            return None

    def _fetch_reviews_and_size(self, pr_number: int) -> Tuple[List[Review], Optional[PRSize]]:
        """Fetch reviews, inline comment count and line counts for one PR.

        Comment and size failures are isolated so the reviews are kept.
        """
        review_items = self._collect(f"pulls/{pr_number}/reviews")
        inline_comment_count = self._fetch_inline_comment_count(pr_number)

        reviews: List[Review] = []
        for item in review_items:
            submitted_at = self._parse_datetime(item.get("submitted_at"))
            if submitted_at is None:
                continue
            body = item.get("body") or ""
            reviews.append(
                Review(
                    pr_number=pr_number,
                    author=str((item.get("user") or {}).get("login") or "unknown"),
                    submitted_at=submitted_at,
                    state=str(item.get("state") or ""),
                    comment_count=1.0 if body.strip() else 0.0,
                )
            )

        attributable = [review for review in reviews if review.author != "unknown"]
        if attributable and inline_comment_count > 0:
            share = inline_comment_count / len(attributable)
            for review in attributable:
                review.comment_count += share

        return reviews, self._fetch_pr_size(pr_number)

    def get_reviews_and_sizes(
        self, pr_numbers: List[int]
    ) -> Tuple[ReviewsByPR, Dict[int, PRSize]]:
        """Fetch reviews and PR sizes for many PRs with bounded concurrency.

        A PR whose data cannot be fetched is recorded with no reviews and no size.
        """
        reviews_by_pr: ReviewsByPR = {}
        sizes_by_pr: Dict[int, PRSize] = {}

        def fetch(pr_number: int) -> Tuple[int, List[Review], Optional[PRSize]]:
            try:
                reviews, size = self._fetch_reviews_and_size(pr_number)
            except (ApiError, KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Could not fetch reviews for PR #%s: %s",
                    pr_number,
                    exc,
                    extra={"pr_number": pr_number},
                )
                return pr_number, [], None
            return pr_number, reviews, size

        with ThreadPoolExecutor(max_workers=self._CONCURRENCY_LIMIT) as executor:
            for pr_number, reviews, size in executor.map(fetch, pr_numbers):
                reviews_by_pr[pr_number] = reviews
                if size is not None:
                    sizes_by_pr[pr_number] = size

        logger.info(
            "Fetched reviews and sizes",
            extra={
                "prs_total": len(pr_numbers),
                "reviews_total": sum(len(reviews) for reviews in reviews_by_pr.values()),
                "sizes_total": len(sizes_by_pr),
            },
        )

        return reviews_by_pr, sizes_by_pr

    def get_open_pr_count(self) -> int:
        """Count currently open PRs, using search ``total_count`` when available."""
        query = f"repo:{self._owner}/{self._repo} is:pr is:open"
        try:
            payload = self._get_json("/search/issues", params={"q": query, "per_page": 1})
            return int(payload["total_count"])
        except (ApiError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Open PR search unavailable, falling back to list API: %s", exc)
            return len(self._collect("pulls", params={"state": "open"}))

    def get_workflow_runs(
        self,
        start: datetime,
        end: datetime,
        workflow_filter: Optional[str] = None,
    ) -> Optional[WorkflowRunSummary]:
        """Summarize completed workflow runs created in the window.

        Cancelled and skipped runs are excluded. ``workflow_filter`` keeps only
        runs whose workflow name matches case-insensitively. Returns ``None`` when
        runs cannot be fetched or none qualify.
        """
        params = {
            "status": "completed",
            "created": f"{self._format_date(start)}..{self._format_date(end)}",
        }
        try:
            runs = self._collect("actions/runs", params=params, items_key="workflow_runs")
        except ApiError as exc:
            logger.warning("Could not fetch workflow runs: %s", exc)
            return None

        normalized_filter = workflow_filter.strip().lower() if workflow_filter else None
        total = success = failure = 0
        for run in runs:
            if normalized_filter and str(run.get("name") or "").lower() != normalized_filter:
                continue
            conclusion = run.get("conclusion")
            if conclusion in self._EXCLUDED_CONCLUSIONS:
                continue
            total += 1
            if conclusion == "success":
                success += 1
            elif conclusion == "failure":
                failure += 1

        if total == 0:
            return None
        return WorkflowRunSummary(total_runs=total, success_count=success, failure_count=failure)

    def get_deployments(
        self,
        start: datetime,
        end: datetime,
        environment: Optional[str] = None,
    ) -> List[ShipEvent]:
        """List deployments created within the window as ship events."""
        params: Dict[str, Any] = {}
        if environment:
            params["environment"] = environment

        try:
            items = self._collect("deployments", params=params)
        except ApiError as exc:
            logger.warning("Could not fetch deployments: %s", exc)
            return []

        events: List[ShipEvent] = []
        for item in items:
            created_at = self._parse_datetime(item.get("created_at"))
            if created_at is None or created_at < start or created_at > end:
                continue
            events.append(
                ShipEvent(
                    id=int(item.get("id") or 0),
                    ref=str(item.get("sha") or item.get("ref") or ""),
                    created_at=created_at,
                    source="deployment",
                    name=str(item.get("environment") or ""),
                )
            )
        return events

    def get_releases(self, start: datetime, end: datetime) -> List[ShipEvent]:
        """List published (non-draft) releases within the window as ship events."""
        try:
            items = self._collect("releases")
        except ApiError as exc:
            logger.warning("Could not fetch releases: %s", exc)
            return []

        events: List[ShipEvent] = []
        for item in items:
            if item.get("draft"):
                continue
            published_at = self._parse_datetime(item.get("published_at") or item.get("created_at"))
            if published_at is None or published_at < start or published_at > end:
                continue
            events.append(
                ShipEvent(
                    id=int(item.get("id") or 0),
                    ref=str(item.get("tag_name") or ""),
                    created_at=published_at,
                    source="release",
                    name=str(item.get("name") or item.get("tag_name") or ""),
                )
            )
        return events

    def _fetch_first_commit_date(self, pr_number: int) -> Optional[datetime]:
        commits = self._get_json(f"pulls/{pr_number}/commits", params={"per_page": self._PAGE_SIZE})
        earliest: Optional[datetime] = None
        for item in commits if isinstance(commits, list) else []:
            commit = item.get("commit") or {}
            authored = self._parse_datetime((commit.get("author") or {}).get("date"))
            committed = self._parse_datetime((commit.get("committer") or {}).get("date"))
            candidate = authored or committed
            if candidate is not None and (earliest is None or candidate < earliest):
                earliest = candidate
        return earliest

    def get_first_commit_dates(self, pr_numbers: List[int]) -> Dict[int, datetime]:
        """Fetch the earliest commit timestamp of each PR with bounded concurrency."""

        def fetch(pr_number: int) -> Tuple[int, Optional[datetime]]:
            try:
                return pr_number, self._fetch_first_commit_date(pr_number)
            except (ApiError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Could not fetch commits for PR #%s: %s", pr_number, exc)
                return pr_number, None

        first_commit_dates: Dict[int, datetime] = {}
        with ThreadPoolExecutor(max_workers=self._CONCURRENCY_LIMIT) as executor:
            for pr_number, first_commit_at in executor.map(fetch, pr_numbers):
                if first_commit_at is not None:
                    first_commit_dates[pr_number] = first_commit_at
        return first_commit_dates

    def post_issue_comment(self, issue_number: int, body: str) -> None:
        """Post ``body`` as a comment on an issue or pull request."""
        self._request("POST", f"issues/{issue_number}/comments", json_body={"body": body})
