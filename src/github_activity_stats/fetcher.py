"""Collect a user's commits, pull requests, issues and reviews.

Two pagination shapes are involved:

* **flat** (pull requests, issues, repositories, organization members): one
  connection walked with a single cursor until ``hasNextPage`` is false;
* **nested** (commits, reviews): the contributions collection returns, per
  repository, a first page of contributions with its own cursor. Every
  repository whose first page is not exhausted gets a ``RepositoryCursor``
  and is walked on its own afterwards.

A failed continuation for one repository is recorded as a ``FetchWarning``
and skipped; a failed top-level query fails the whole category.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from rich.console import Console

from github_activity_stats.client import (
    GitHubAPIError,
    GitHubGraphQLClient,
    QueryError,
    parse_datetime,
)
from github_activity_stats.models import (
    Activity,
    ActivityType,
    FetchWarning,
    User,
    UserActivityData,
)
from github_activity_stats.queries import (
    COMMIT_CONTRIBUTIONS_QUERY,
    ISSUES_QUERY,
    ORGANIZATION_MEMBERS_QUERY,
    PAGE_SIZE,
    PULL_REQUESTS_QUERY,
    REPOSITORIES_QUERY,
    REVIEW_CONTRIBUTIONS_QUERY,
    USER_INFO_QUERY,
)
from github_activity_stats.ratelimit import Cancelled, CancelToken

console = Console()

COMMITS = "commits"
PULL_REQUESTS = "pull requests"
ISSUES = "issues"
REVIEWS = "reviews"
REPOSITORIES = "repositories"

COMMIT_LOOKBACK_YEARS = 10
REVIEWS_SINCE = datetime(2010, 1, 1, tzinfo=timezone.utc)


class FetchError(GitHubAPIError):
    """One activity category could not be fetched for a user."""

    def __init__(self, category: str, cause: BaseException):
        self.category = category
        self.cause = cause
        super().__init__(f"failed to fetch {category}: {cause}")


class CursorState(Enum):
    FETCHING = "fetching"
    EXHAUSTED = "exhausted"


@dataclass
class RepositoryCursor:
    """Pagination state of one repository inside a contributions collection."""

    repository: str
    cursor: str | None = None
    state: CursorState = CursorState.FETCHING

    @property
    def exhausted(self) -> bool:
        return self.state is CursorState.EXHAUSTED

    def advance(self, page_info: dict[str, Any]) -> None:
        if page_info.get("hasNextPage") and page_info.get("endCursor"):
            self.cursor = page_info["endCursor"]
        else:
            self.exhaust()

    def exhaust(self) -> None:
        self.state = CursorState.EXHAUSTED


@dataclass(frozen=True)
class ContributionCategory:
    name: str
    query: str
    activity_type: ActivityType
    is_review: bool = False


COMMIT_CONTRIBUTIONS = ContributionCategory(
    COMMITS, COMMIT_CONTRIBUTIONS_QUERY, ActivityType.COMMIT
)
REVIEW_CONTRIBUTIONS = ContributionCategory(
    REVIEWS, REVIEW_CONTRIBUTIONS_QUERY, ActivityType.REVIEW, is_review=True
)


def years_ago(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return moment.replace(year=moment.year - years, day=28)


def format_datetime(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def dig(data: dict[str, Any], path: tuple[str, ...], operation: str) -> Any:
    """Walk *path* into a response, failing with ``QueryError`` on gaps."""
    node: Any = data
    for key in path:
        if not isinstance(node, dict) or node.get(key) is None:
            raise QueryError(operation, f"missing '{key}' in response")
        node = node[key]
    return node


def pull_request_activity(node: dict[str, Any]) -> Activity:
    return Activity(
        type=ActivityType.PULL_REQUEST,
        repository=node["repository"]["nameWithOwner"],
        date=parse_datetime(node["createdAt"]),
        additions=node.get("additions") or 0,
        deletions=node.get("deletions") or 0,
        is_merged=node.get("mergedAt") is not None,
    )


def issue_activity(node: dict[str, Any]) -> Activity:
    return Activity(
        type=ActivityType.ISSUE,
        repository=node["repository"]["nameWithOwner"],
        date=parse_datetime(node["createdAt"]),
    )


def contribution_activities(
    category: ContributionCategory, repository: str, nodes: list[dict[str, Any]]
) -> list[Activity]:
    # One activity per contribution node. Line counts are not available from
    # the contributions collection and stay at 0.
    return [
        Activity(
            type=category.activity_type,
            repository=repository,
            date=parse_datetime(node["occurredAt"]),
            is_review=category.is_review,
        )
        for node in nodes
        if node
    ]


def find_repository(
    by_repository: list[dict[str, Any]], repository: str
) -> dict[str, Any] | None:
    for repo_contrib in by_repository:
        if (repo_contrib.get("repository") or {}).get("nameWithOwner") == repository:
            return repo_contrib
    return None


def paginate_connection(
    client: GitHubGraphQLClient,
    query: str,
    variables: dict[str, Any],
    path: tuple[str, ...],
    operation: str,
    cancel: CancelToken | None = None,
    page_size: int = PAGE_SIZE,
) -> Iterator[dict[str, Any]]:
    """Yield every node of a connection, following ``endCursor`` to the end."""
    cursor = None
    while True:
        data = client.execute(
            query,
            {**variables, "first": page_size, "after": cursor},
            cancel=cancel,
            operation=operation,
        )
        connection = dig(data, path, operation)

        for node in connection.get("nodes") or []:
            if node:
                yield node

        page_info = connection.get("pageInfo") or {}
        if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
            break
        cursor = page_info["endCursor"]


def map_nodes(
    nodes: Iterator[dict[str, Any]],
    mapper: Callable[[dict[str, Any]], Activity],
    operation: str,
) -> list[Activity]:
    activities = []
    for node in nodes:
        try:
            activities.append(mapper(node))
        except (KeyError, TypeError, ValueError) as e:
            raise QueryError(operation, f"malformed node {node!r}: {e}") from e
    return activities


class ActivityFetcher:
    """Fetch all activity categories for a user through one GraphQL client."""

    def __init__(
        self,
        client: GitHubGraphQLClient,
        page_size: int = PAGE_SIZE,
        since: datetime | None = None,
        until: datetime | None = None,
        max_workers: int = 4,
    ):
        self.client = client
        self.page_size = page_size
        self.since = since
        self.until = until
        self.max_workers = max_workers

    # -----------------------------------------------------------------------
    # Users, repositories, organizations
    # -----------------------------------------------------------------------

    def fetch_user_info(self, login: str, cancel: CancelToken | None = None) -> User:
        operation = f"user info for {login}"
        data = self.client.execute(
            USER_INFO_QUERY, {"login": login}, cancel=cancel, operation=operation
        )
        user = dig(data, ("user",), operation)
        return User(
            login=user.get("login") or login,
            name=user.get("name") or "",
            created_at=user.get("createdAt") or "",
        )

    def fetch_user_repositories(
        self,
        login: str,
        include_private: bool = False,
        cancel: CancelToken | None = None,
    ) -> list[str]:
        """List repositories visible for *login*.

        This is the only place where ``include_private`` is enforced: the
        contributions collection reflects whatever the token can see.
        """
        repositories = []
        for node in paginate_connection(
            self.client,
            REPOSITORIES_QUERY,
            {"login": login},
            ("user", "repositories"),
            operation=f"repositories for {login}",
            cancel=cancel,
            page_size=self.page_size,
        ):
            if node.get("isPrivate") and not include_private:
                continue
            repositories.append(node["nameWithOwner"])
        return repositories

    def fetch_organization_members(
        self, org: str, cancel: CancelToken | None = None
    ) -> list[str]:
        return [
            node["login"]
            for node in paginate_connection(
                self.client,
                ORGANIZATION_MEMBERS_QUERY,
                {"login": org},
                ("organization", "membersWithRole"),
                operation=f"members of organization {org}",
                cancel=cancel,
                page_size=self.page_size,
            )
            if node.get("login")
        ]

    # -----------------------------------------------------------------------
    # Flat pagination
    # -----------------------------------------------------------------------

    def fetch_pull_requests(
        self, login: str, cancel: CancelToken | None = None
    ) -> list[Activity]:
        operation = f"{PULL_REQUESTS} for {login}"
        nodes = paginate_connection(
            self.client,
            PULL_REQUESTS_QUERY,
            {"login": login},
            ("user", "pullRequests"),
            operation=operation,
            cancel=cancel,
            page_size=self.page_size,
        )
        return map_nodes(nodes, pull_request_activity, operation)

    def fetch_issues(
        self, login: str, cancel: CancelToken | None = None
    ) -> list[Activity]:
        operation = f"{ISSUES} for {login}"
        nodes = paginate_connection(
            self.client,
            ISSUES_QUERY,
            {"login": login},
            ("user", "issues"),
            operation=operation,
            cancel=cancel,
            page_size=self.page_size,
        )
        return map_nodes(nodes, issue_activity, operation)

    # -----------------------------------------------------------------------
    # Nested pagination
    # -----------------------------------------------------------------------

    def contribution_window(
        self, category: ContributionCategory
    ) -> tuple[datetime, datetime]:
        until = self.until or datetime.now(timezone.utc)
        if self.since is not None:
            return self.since, until
        if category.activity_type is ActivityType.REVIEW:
            return REVIEWS_SINCE, until
        return years_ago(until, COMMIT_LOOKBACK_YEARS), until

    def _by_repository(
        self, data: dict[str, Any], operation: str
    ) -> list[dict[str, Any]]:
        collection = dig(data, ("user", "contributionsCollection"), operation)
        return collection.get("byRepository") or []

    def continue_repository(
        self,
        login: str,
        category: ContributionCategory,
        repo_cursor: RepositoryCursor,
        window: dict[str, Any],
        cancel: CancelToken | None = None,
    ) -> list[Activity]:
        """Walk the remaining pages of one repository until it is exhausted."""
        operation = f"{category.name} of {login} in {repo_cursor.repository}"
        activities: list[Activity] = []

        while not repo_cursor.exhausted:
            data = self.client.execute(
                category.query,
                {**window, "after": repo_cursor.cursor},
                cancel=cancel,
                operation=operation,
            )
            repo_contrib = find_repository(
                self._by_repository(data, operation), repo_cursor.repository
            )
            if repo_contrib is None:
                # The repository vanished between the listing and this page.
                repo_cursor.exhaust()
                break

            contributions = repo_contrib.get("contributions") or {}
            try:
                activities.extend(
                    contribution_activities(
                        category,
                        repo_cursor.repository,
                        contributions.get("nodes") or [],
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise QueryError(operation, f"malformed contribution: {e}") from e
            repo_cursor.advance(contributions.get("pageInfo") or {})

        return activities

    def fetch_contributions(
        self,
        login: str,
        category: ContributionCategory,
        cancel: CancelToken | None = None,
        warnings: list[FetchWarning] | None = None,
    ) -> list[Activity]:
        since, until = self.contribution_window(category)
        window = {
            "login": login,
            "from": format_datetime(since),
            "to": format_datetime(until),
            "first": self.page_size,
        }
        operation = f"{category.name} for {login}"
        data = self.client.execute(
            category.query,
            {**window, "after": None},
            cancel=cancel,
            operation=operation,
        )

        activities: list[Activity] = []
        pending: list[RepositoryCursor] = []
        try:
            for repo_contrib in self._by_repository(data, operation):
                repository = repo_contrib["repository"]["nameWithOwner"]
                contributions = repo_contrib.get("contributions") or {}
                activities.extend(
                    contribution_activities(
                        category, repository, contributions.get("nodes") or []
                    )
                )
                repo_cursor = RepositoryCursor(repository)
                repo_cursor.advance(contributions.get("pageInfo") or {})
                if not repo_cursor.exhausted:
                    pending.append(repo_cursor)
        except (KeyError, TypeError, ValueError) as e:
            raise QueryError(operation, f"malformed contribution: {e}") from e

        for repo_cursor in pending:
            try:
                activities.extend(
                    self.continue_repository(
                        login, category, repo_cursor, window, cancel
                    )
                )
            except GitHubAPIError as e:
                warning = FetchWarning(category.name, repo_cursor.repository, e)
                console.print(f"[yellow]Warning: skipped {warning}[/yellow]")
                if warnings is not None:
                    warnings.append(warning)

        return activities

    def fetch_commits(
        self,
        login: str,
        cancel: CancelToken | None = None,
        warnings: list[FetchWarning] | None = None,
    ) -> list[Activity]:
        return self.fetch_contributions(login, COMMIT_CONTRIBUTIONS, cancel, warnings)

    def fetch_reviews(
        self,
        login: str,
        cancel: CancelToken | None = None,
        warnings: list[FetchWarning] | None = None,
    ) -> list[Activity]:
        return self.fetch_contributions(login, REVIEW_CONTRIBUTIONS, cancel, warnings)

    # -----------------------------------------------------------------------
    # Everything for one user
    # -----------------------------------------------------------------------

    def fetch_all_user_activity(
        self,
        login: str,
        include_private: bool = False,
        cancel: CancelToken | None = None,
    ) -> UserActivityData:
        """Fetch the user and the four activity categories concurrently.

        All four categories are joined before returning. If any of them
        failed, the first failure is raised as ``FetchError`` (cancellation
        is raised unchanged).
        """
        user = self.fetch_user_info(login, cancel)
        warnings: list[FetchWarning] = []
        try:
            repositories = self.fetch_user_repositories(
                login, include_private, cancel
            )
        except GitHubAPIError as e:
            # Only the count of visible repositories depends on the listing.
            warning = FetchWarning(REPOSITORIES, login, e)
            console.print(f"[yellow]Warning: skipped {warning}[/yellow]")
            warnings.append(warning)
            repositories = []

        tasks: dict[str, Callable[[], list[Activity]]] = {
            COMMITS: lambda: self.fetch_commits(login, cancel, warnings),
            PULL_REQUESTS: lambda: self.fetch_pull_requests(login, cancel),
            ISSUES: lambda: self.fetch_issues(login, cancel),
            REVIEWS: lambda: self.fetch_reviews(login, cancel, warnings),
        }

        results: dict[str, list[Activity]] = {}
        first_error: tuple[str, Exception] | None = None
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(task): name for name, task in tasks.items()}
            for future in as_completed(futures):
                category = futures[future]
                try:
                    results[category] = future.result()
                except Exception as e:
                    if first_error is None:
                        first_error = (category, e)

        if first_error is not None:
            category, error = first_error
            if isinstance(error, Cancelled):
                raise error
            raise FetchError(category, error) from error

        return UserActivityData(
            user=user,
            commits=results[COMMITS],
            pull_requests=results[PULL_REQUESTS],
            issues=results[ISSUES],
            reviews=results[REVIEWS],
            repositories=repositories,
            warnings=warnings,
        )
