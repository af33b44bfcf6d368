import threading
from datetime import datetime, timezone
from typing import Any

import requests

from github_activity_stats.models import (
    Activity,
    ActivityType,
    User,
    UserActivityData,
)


def utc(year: int, month: int = 1, day: int = 1, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def make_activity(
    kind: ActivityType,
    repository: str,
    when: datetime,
    additions: int = 0,
    deletions: int = 0,
    merged: bool = False,
) -> Activity:
    return Activity(
        type=kind,
        repository=repository,
        date=when,
        additions=additions,
        deletions=deletions,
        is_merged=merged,
        is_review=kind is ActivityType.REVIEW,
    )


def commit(repository: str, when: datetime) -> Activity:
    return make_activity(ActivityType.COMMIT, repository, when)


def pull_request(
    repository: str,
    when: datetime,
    additions: int = 0,
    deletions: int = 0,
    merged: bool = False,
) -> Activity:
    return make_activity(
        ActivityType.PULL_REQUEST, repository, when, additions, deletions, merged
    )


def review(repository: str, when: datetime) -> Activity:
    return make_activity(ActivityType.REVIEW, repository, when)


def issue(repository: str, when: datetime) -> Activity:
    return make_activity(ActivityType.ISSUE, repository, when)


def user_data(login: str = "alice", **categories: list[Activity]) -> UserActivityData:
    return UserActivityData(user=User(login=login), **categories)


# ---------------------------------------------------------------------------
# GraphQL response builders
# ---------------------------------------------------------------------------


def page_info(end_cursor: str | None = None) -> dict[str, Any]:
    return {"hasNextPage": end_cursor is not None, "endCursor": end_cursor}


def connection(nodes: list[dict[str, Any]], end_cursor: str | None = None):
    return {"pageInfo": page_info(end_cursor), "nodes": nodes}


def by_repository(*repos: tuple[str, list[str], str | None]) -> dict[str, Any]:
    """Contributions collection response: (repository, occurredAt list, cursor)."""
    return {
        "user": {
            "contributionsCollection": {
                "byRepository": [
                    {
                        "repository": {"nameWithOwner": name},
                        "contributions": connection(
                            [{"occurredAt": when} for when in dates], cursor
                        ),
                    }
                    for name, dates, cursor in repos
                ]
            }
        }
    }


class FakeClient:
    """Stands in for ``GitHubGraphQLClient``; *handler* maps a call to data."""

    def __init__(self, handler):
        self.handler = handler
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def execute(self, query, variables=None, cancel=None, operation="graphql query"):
        variables = dict(variables or {})
        with self._lock:
            self.calls.append((query, variables))
        return self.handler(query, variables)


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, *responses):
        self.headers: dict[str, str] = {}
        self.responses = list(responses)
        self.posts: list[dict[str, Any]] = []

    def post(self, url, json=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
