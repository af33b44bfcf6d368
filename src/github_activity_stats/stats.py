"""Turn a user's raw activity into ``UserStatistics``.

The aggregation runs four passes in order: basic totals, yearly rollup,
repository ranking and role transition. Later passes read fields set by
earlier ones.
"""

from __future__ import annotations

from datetime import timedelta

from github_activity_stats.models import (
    Activity,
    RepositoryActivity,
    RoleTransitionPoint,
    UserActivityData,
    UserStatistics,
    YearlyStatistics,
)

TOP_REPOSITORY_LIMIT = 3
LONG_TERM_THRESHOLD = timedelta(days=365)

# Reviews per created PR separating the role descriptions.
RATIO_THRESHOLD_LOW = 0.5
RATIO_THRESHOLD_MID = 1.0
RATIO_THRESHOLD_HIGH = 2.0

NO_ACTIVITY = "no activity"
REVIEW_ONLY = "review-focused activity"
DEVELOPMENT_ONLY = "development-focused activity"
DEVELOPMENT_WITH_REVIEWS = "development-focused, some reviewing"
BALANCED = "balanced development and review"
REVIEW_WEIGHTED = "review-weighted activity"
REVIEW_FOCUSED = "review-focused, strong quality contribution"


def review_ratio(pr_created: int, review_count: int) -> float:
    if pr_created == 0:
        return 0.0
    return review_count / pr_created


def calculate_basic_statistics(
    stats: UserStatistics, data: UserActivityData, activities: list[Activity]
) -> None:
    stats.total_commits = len(data.commits)
    stats.total_pr_created = len(data.pull_requests)
    stats.total_issues = len(data.issues)
    stats.total_reviews = len(data.reviews)
    stats.visible_repositories = len(data.repositories)

    for pr in data.pull_requests:
        if pr.is_merged:
            stats.total_pr_merged += 1
        stats.total_additions += pr.additions
        stats.total_deletions += pr.deletions

    for commit in data.commits:
        stats.total_additions += commit.additions
        stats.total_deletions += commit.deletions

    if activities:
        first = min(activities, key=lambda activity: activity.date)
        stats.first_activity_year = first.year

    stats.calculate_pr_to_review_ratio()


def calculate_yearly_statistics(
    stats: UserStatistics, data: UserActivityData, activities: list[Activity]
) -> None:
    yearly: dict[int, YearlyStatistics] = {}

    def bucket(activity: Activity) -> YearlyStatistics:
        if activity.year not in yearly:
            yearly[activity.year] = YearlyStatistics(year=activity.year)
        return yearly[activity.year]

    for commit in data.commits:
        bucket(commit).commit_count += 1
    for pr in data.pull_requests:
        year_stats = bucket(pr)
        year_stats.pr_created += 1
        if pr.is_merged:
            year_stats.pr_merged += 1
    for issue in data.issues:
        bucket(issue).issue_count += 1
    for review in data.reviews:
        bucket(review).review_count += 1

    for activity in activities:
        year_stats = bucket(activity)
        year_stats.total_additions += activity.additions
        year_stats.total_deletions += activity.deletions

    stats.yearly_stats = {year: yearly[year] for year in sorted(yearly)}

    # Ascending years with a strict comparison: the earliest year wins ties.
    for year, year_stats in stats.yearly_stats.items():
        if year_stats.commit_count > stats.peak_activity_commits:
            stats.peak_activity_year = year
            stats.peak_activity_commits = year_stats.commit_count


def aggregate_repository_activities(
    activities: list[Activity],
) -> dict[str, RepositoryActivity]:
    """Fold activities per repository, keeping first-encounter order."""
    repositories: dict[str, RepositoryActivity] = {}
    for activity in activities:
        if activity.repository not in repositories:
            repositories[activity.repository] = RepositoryActivity(activity.repository)
        repositories[activity.repository].add(activity)
    return repositories


def select_top_repositories(
    repositories: dict[str, RepositoryActivity],
    limit: int = TOP_REPOSITORY_LIMIT,
) -> list[RepositoryActivity]:
    # sorted() is stable, so equal commit counts keep encounter order
    ranked = sorted(
        repositories.values(), key=lambda repo: repo.commit_count, reverse=True
    )
    return ranked[:limit]


def find_long_term_repositories(
    repositories: list[RepositoryActivity],
    threshold: timedelta = LONG_TERM_THRESHOLD,
) -> list[RepositoryActivity]:
    long_term = [repo for repo in repositories if repo.tenure >= threshold]
    return sorted(long_term, key=lambda repo: repo.tenure, reverse=True)


def calculate_repository_statistics(
    stats: UserStatistics, activities: list[Activity]
) -> None:
    repositories = aggregate_repository_activities(activities)
    stats.top_repositories = select_top_repositories(repositories)
    # Only the top repositories are considered for long-term involvement, so a
    # long-lived repository with few commits is not reported here.
    stats.long_term_repositories = find_long_term_repositories(stats.top_repositories)


def describe_role(pr_created: int, review_count: int, ratio: float) -> str:
    """Classify a year by its balance of created PRs and reviews."""
    if pr_created == 0 and review_count == 0:
        return NO_ACTIVITY
    if pr_created == 0:
        return REVIEW_ONLY
    if review_count == 0:
        return DEVELOPMENT_ONLY
    if ratio < RATIO_THRESHOLD_LOW:
        return DEVELOPMENT_WITH_REVIEWS
    if ratio < RATIO_THRESHOLD_MID:
        return BALANCED
    if ratio < RATIO_THRESHOLD_HIGH:
        return REVIEW_WEIGHTED
    return REVIEW_FOCUSED


def analyze_role_transition(stats: UserStatistics) -> None:
    transitions = []
    for year in stats.sorted_years():
        year_stats = stats.yearly_stats[year]
        ratio = review_ratio(year_stats.pr_created, year_stats.review_count)
        transitions.append(
            RoleTransitionPoint(
                year=year,
                pr_created=year_stats.pr_created,
                review_count=year_stats.review_count,
                ratio=ratio,
                description=describe_role(
                    year_stats.pr_created, year_stats.review_count, ratio
                ),
            )
        )
    stats.role_transition = transitions


def calculate_statistics(data: UserActivityData) -> UserStatistics:
    """Aggregate one user's activity; an empty activity set yields zeros."""
    stats = UserStatistics(user=data.user)
    activities = data.all_activities()

    calculate_basic_statistics(stats, data, activities)
    calculate_yearly_statistics(stats, data, activities)
    calculate_repository_statistics(stats, activities)
    analyze_role_transition(stats)

    return stats
