import pytest
import requests

from helpers import FakeResponse, FakeSession, utc

from github_activity_stats.client import (
    GitHubGraphQLClient,
    QueryError,
    get_github_token,
    parse_datetime,
)
from github_activity_stats.queries import RATE_LIMIT_QUERY, USER_INFO_QUERY
from github_activity_stats.ratelimit import (
    CancelToken,
    RateLimiter,
    RateLimitWaitCancelled,
)


def make_client(*responses):
    session = FakeSession(*responses)
    limiter = RateLimiter(requests_per_hour=10**9)
    return GitHubGraphQLClient("secret", limiter=limiter, session=session), session


def test_execute_returns_data_payload():
    client, session = make_client(FakeResponse({"data": {"user": {"login": "a"}}}))

    data = client.execute(USER_INFO_QUERY, {"login": "a"})

    assert data == {"user": {"login": "a"}}
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.posts[0]["json"] == {
        "query": USER_INFO_QUERY,
        "variables": {"login": "a"},
    }


def test_cancelled_token_sends_no_request():
    client, session = make_client(FakeResponse({"data": {}}))
    token = CancelToken()
    token.cancel()

    with pytest.raises(RateLimitWaitCancelled, match="user info"):
        client.execute(USER_INFO_QUERY, cancel=token, operation="user info")

    assert session.posts == []


def test_graphql_errors_are_wrapped_with_operation():
    client, _ = make_client(
        FakeResponse({"errors": [{"message": "Could not resolve to a User"}]})
    )

    with pytest.raises(QueryError) as exc_info:
        client.execute(USER_INFO_QUERY, operation="user info for ghost")

    assert exc_info.value.operation == "user info for ghost"
    assert "Could not resolve" in str(exc_info.value)


def test_http_error_is_wrapped():
    client, _ = make_client(FakeResponse({"message": "Bad credentials"}, 401))

    with pytest.raises(QueryError) as exc_info:
        client.execute(USER_INFO_QUERY, operation="user info")

    assert isinstance(exc_info.value.__cause__, requests.HTTPError)


def test_transport_error_is_wrapped():
    client, _ = make_client(requests.ConnectionError("connection reset"))

    with pytest.raises(QueryError, match="connection reset"):
        client.execute(USER_INFO_QUERY)


@pytest.mark.parametrize(
    "payload",
    [ValueError("Expecting value"), ["not", "a", "dict"], {"data": None}],
)
def test_malformed_bodies_are_query_errors(payload):
    client, _ = make_client(FakeResponse(payload))

    with pytest.raises(QueryError):
        client.execute(USER_INFO_QUERY)


def test_request_timeout_is_bounded_by_deadline():
    client, session = make_client(FakeResponse({"data": {}}))
    clock = [0.0]
    token = CancelToken(deadline=5.0, clock=lambda: clock[0])

    client.execute(USER_INFO_QUERY, cancel=token)

    assert session.posts[0]["timeout"] == pytest.approx(5.0)


def test_rate_limit_info_records_reset():
    client, session = make_client(
        FakeResponse(
            {"data": {"rateLimit": {"remaining": 0, "resetAt": "2024-06-01T13:00:00Z"}}}
        )
    )

    info = client.get_rate_limit_info()

    assert info.remaining == 0
    assert info.reset_at == utc(2024, 6, 1, 13)
    assert client.limiter.reset_at == utc(2024, 6, 1, 13)
    assert session.posts[0]["json"] == {"query": RATE_LIMIT_QUERY}


def test_rate_limit_info_rejects_malformed_payload():
    client, _ = make_client(FakeResponse({"data": {"rateLimit": {"remaining": 1}}}))

    with pytest.raises(QueryError, match="rate limit"):
        client.get_rate_limit_info()


def test_parse_datetime_handles_zulu():
    assert parse_datetime("2020-02-29T10:00:00Z") == utc(2020, 2, 29, 10)


def test_get_github_token(monkeypatch):
    monkeypatch.setattr("github_activity_stats.client.load_dotenv", lambda: None)
    monkeypatch.setenv("GITHUB_TOKEN", "abc")
    assert get_github_token() == "abc"

    monkeypatch.delenv("GITHUB_TOKEN")
    with pytest.raises(RuntimeError, match="GITHUB_TOKEN"):
        get_github_token()
