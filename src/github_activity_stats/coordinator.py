"""Run fetch + aggregation for a batch of users."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from github_activity_stats.fetcher import ActivityFetcher
from github_activity_stats.models import FetchWarning, UserStatistics
from github_activity_stats.ratelimit import CancelToken
from github_activity_stats.stats import calculate_statistics

DEFAULT_MAX_WORKERS = 4


@dataclass
class UserResult:
    login: str
    statistics: UserStatistics | None = None
    error: Exception | None = None
    warnings: list[FetchWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    statistics: dict[str, UserStatistics] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    warnings: dict[str, list[FetchWarning]] = field(default_factory=dict)

    def add(self, result: UserResult) -> None:
        if result.warnings:
            self.warnings[result.login] = result.warnings
        if result.ok and result.statistics is not None:
            self.statistics[result.login] = result.statistics
        else:
            self.failures[result.login] = result.error


def analyze_user(
    login: str,
    fetcher: ActivityFetcher,
    include_private: bool = False,
    cancel: CancelToken | None = None,
) -> UserResult:
    """Fetch and aggregate one user; failures are captured in the result."""
    try:
        data = fetcher.fetch_all_user_activity(login, include_private, cancel)
        statistics = calculate_statistics(data)
    except Exception as e:
        return UserResult(login=login, error=e)
    return UserResult(login=login, statistics=statistics, warnings=data.warnings)


def analyze_users(
    users: list[str],
    fetcher: ActivityFetcher,
    include_private: bool = False,
    cancel: CancelToken | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    on_complete: Callable[[UserResult], None] | None = None,
) -> BatchResult:
    """Analyze *users* on a bounded worker pool.

    Every user is processed independently: a failure is recorded in
    ``BatchResult.failures`` and never stops the other users. Results are
    collected in completion order.
    """
    batch = BatchResult()
    if not users:
        return batch

    workers = max(1, min(max_workers, len(users)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(
                analyze_user, login, fetcher, include_private, cancel
            ): login
            for login in users
        }
        for future in as_completed(futures):
            result = future.result()
            batch.add(result)
            if on_complete is not None:
                on_complete(result)

    return batch
