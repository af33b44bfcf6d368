"""Rate-limited GraphQL client for the GitHub API.

Every query goes through one shared ``RateLimiter``. Failures are wrapped
with the name of the logical operation and raised to the caller; the client
never retries on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import requests
from dotenv import load_dotenv

from github_activity_stats.ratelimit import (
    CancelToken,
    RateLimiter,
    RateLimitWaitCancelled,
)
from github_activity_stats.queries import RATE_LIMIT_QUERY

GRAPHQL_URL = "https://api.github.com/graphql"
DEFAULT_TIMEOUT = 60


class GitHubAPIError(RuntimeError):
    """Base class for errors talking to the GitHub API."""


class QueryError(GitHubAPIError):
    """A GraphQL query failed (network, HTTP status, malformed body, errors)."""

    def __init__(self, operation: str, cause: object):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


@dataclass
class RateLimitInfo:
    remaining: int
    reset_at: datetime


def get_github_token() -> str:
    """Return the GitHub token from the environment (``.env`` supported)."""
    load_dotenv()
    token = os.getenv("GITHUB_TOKEN")
    if not token:
        raise RuntimeError("GITHUB_TOKEN not set in environment or .env file")
    return token


def parse_datetime(dt_str: str) -> datetime:
    """Parse an ISO datetime string returned by the API."""
    return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))


class GitHubGraphQLClient:
    """GraphQL client sharing one rate limiter across all callers."""

    def __init__(
        self,
        token: str,
        limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
        endpoint: str = GRAPHQL_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.limiter = limiter or RateLimiter()
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            }
        )

    def _request_timeout(self, cancel: CancelToken) -> float:
        remaining = cancel.remaining()
        if remaining is None:
            return self.timeout
        return max(0.001, min(self.timeout, remaining))

    def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        cancel: CancelToken | None = None,
        operation: str = "graphql query",
    ) -> dict[str, Any]:
        """Execute *query* and return its ``data`` payload.

        Blocks until the limiter grants a slot. Raises
        ``RateLimitWaitCancelled`` if *cancel* fires first (no request is
        sent), and ``QueryError`` for any failure of the request itself.
        """
        cancel = cancel or CancelToken()
        try:
            self.limiter.wait(cancel)
        except RateLimitWaitCancelled as e:
            raise RateLimitWaitCancelled(f"{operation}: {e}") from e

        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                timeout=self._request_timeout(cancel),
            )
            response.raise_for_status()
            result = response.json()
        except requests.RequestException as e:
            raise QueryError(operation, e) from e
        except ValueError as e:
            raise QueryError(operation, f"invalid JSON response: {e}") from e

        if not isinstance(result, dict):
            raise QueryError(operation, f"unexpected response: {result!r}")
        if result.get("errors"):
            raise QueryError(operation, f"GraphQL errors: {result['errors']}")
        data = result.get("data")
        if data is None:
            raise QueryError(operation, "response contained no data")
        return data

    def get_rate_limit_info(self, cancel: CancelToken | None = None) -> RateLimitInfo:
        """Query the current rate limit and share its reset time with all callers."""
        data = self.execute(RATE_LIMIT_QUERY, cancel=cancel, operation="rate limit")
        try:
            rate_limit = data["rateLimit"]
            info = RateLimitInfo(
                remaining=int(rate_limit["remaining"]),
                reset_at=parse_datetime(rate_limit["resetAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise QueryError("rate limit", f"malformed rateLimit payload: {e}") from e

        self.limiter.record_reset(info.reset_at)
        return info
