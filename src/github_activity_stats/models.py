"""Data model for a user's GitHub activity and the statistics derived from it.

Every timestamp is a timezone-aware datetime normalized to UTC, so years are
always UTC years.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class ActivityType(str, Enum):
    COMMIT = "commit"
    PULL_REQUEST = "pull_request"
    ISSUE = "issue"
    REVIEW = "review"


@dataclass(frozen=True)
class Activity:
    """A single contribution.

    ``additions``/``deletions`` are only populated for pull requests. Issues,
    reviews and commits from the contributions collection always carry 0
    because the GraphQL API does not expose line counts for them; 0 there
    means "unknown", not "no changes".
    """

    type: ActivityType
    repository: str
    date: datetime
    additions: int = 0
    deletions: int = 0
    is_merged: bool = False  # pull requests only
    is_review: bool = False  # reviews only

    @property
    def year(self) -> int:
        return self.date.year


@dataclass
class User:
    login: str
    name: str = ""
    created_at: str = ""

    def is_valid(self) -> bool:
        return self.login != ""


@dataclass
class FetchWarning:
    """A sub-fetch that failed and was skipped without failing its category."""

    category: str
    repository: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.category} for {self.repository}: {self.error}"


@dataclass
class UserActivityData:
    user: User
    commits: list[Activity] = field(default_factory=list)
    pull_requests: list[Activity] = field(default_factory=list)
    issues: list[Activity] = field(default_factory=list)
    reviews: list[Activity] = field(default_factory=list)
    repositories: list[str] = field(default_factory=list)
    warnings: list[FetchWarning] = field(default_factory=list)

    def all_activities(self) -> list[Activity]:
        return [*self.commits, *self.pull_requests, *self.issues, *self.reviews]


@dataclass
class RepositoryActivity:
    """Per-repository aggregate.

    The first folded activity sets both ``first_activity`` and
    ``last_activity``; later activities only widen the interval, so
    ``first_activity <= last_activity`` holds whatever the folding order.
    """

    repository: str
    commit_count: int = 0
    pr_count: int = 0
    issue_count: int = 0
    review_count: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    first_activity: datetime | None = None
    last_activity: datetime | None = None

    def add(self, activity: Activity) -> None:
        if activity.type is ActivityType.COMMIT:
            self.commit_count += 1
        elif activity.type is ActivityType.PULL_REQUEST:
            self.pr_count += 1
        elif activity.type is ActivityType.ISSUE:
            self.issue_count += 1
        elif activity.type is ActivityType.REVIEW:
            self.review_count += 1

        self.total_additions += activity.additions
        self.total_deletions += activity.deletions

        if self.first_activity is None or activity.date < self.first_activity:
            self.first_activity = activity.date
        if self.last_activity is None or activity.date > self.last_activity:
            self.last_activity = activity.date

    @property
    def tenure(self) -> timedelta:
        if self.first_activity is None or self.last_activity is None:
            return timedelta(0)
        return self.last_activity - self.first_activity


@dataclass
class YearlyStatistics:
    year: int
    commit_count: int = 0
    pr_created: int = 0
    pr_merged: int = 0
    issue_count: int = 0
    review_count: int = 0
    total_additions: int = 0
    total_deletions: int = 0


@dataclass(frozen=True)
class RoleTransitionPoint:
    year: int
    pr_created: int
    review_count: int
    ratio: float
    description: str


@dataclass
class UserStatistics:
    """Aggregate statistics for one user.

    Built once by ``stats.calculate_statistics`` and treated as read-only by
    every consumer afterwards.
    """

    user: User
    total_commits: int = 0
    total_pr_created: int = 0
    total_pr_merged: int = 0
    total_issues: int = 0
    total_reviews: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    first_activity_year: int = 0
    peak_activity_year: int = 0
    peak_activity_commits: int = 0
    yearly_stats: dict[int, YearlyStatistics] = field(default_factory=dict)
    top_repositories: list[RepositoryActivity] = field(default_factory=list)
    long_term_repositories: list[RepositoryActivity] = field(default_factory=list)
    pr_to_review_ratio: float = 0.0
    visible_repositories: int = 0
    role_transition: list[RoleTransitionPoint] = field(default_factory=list)

    def calculate_pr_to_review_ratio(self) -> None:
        """Reviews per created PR, exactly 0.0 when no PR was created."""
        if self.total_pr_created > 0:
            self.pr_to_review_ratio = self.total_reviews / self.total_pr_created
        else:
            self.pr_to_review_ratio = 0.0

    def sorted_years(self) -> list[int]:
        return sorted(self.yearly_stats)
