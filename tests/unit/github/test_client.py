"""
Unit tests for the GitHub API client.

Why: Ensure the client maps HTTP and GraphQL failures onto the GitHub
     exception family and retries only what is worth retrying.

What: Tests GitHubClient requests, error mapping, retry behaviour,
      rate limit tracking and GraphQL error handling.

How: Uses aioresponses to stub aiohttp responses without network access.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aioresponses import aioresponses

from lgtm_gtfo.auth import PersonalAccessTokenAuth
from lgtm_gtfo.github.client import GitHubClient, GitHubClientConfig
from lgtm_gtfo.github.exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubDecodeError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)

API = "https://api.github.com"
GRAPHQL = f"{API}/graphql"
VIEWER_QUERY = "query { viewer { login } }"
VIEWER = {"data": {"viewer": {"login": "octocat"}}}


@pytest.fixture
def client() -> GitHubClient:
    return GitHubClient(
        PersonalAccessTokenAuth("ghp_test"), GitHubClientConfig(max_retries=2)
    )


@pytest.fixture
def no_sleep():
    with patch("lgtm_gtfo.github.client.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestGitHubClientConfig:
    """Test GitHubClientConfig data class."""

    def test_defaults(self) -> None:
        config = GitHubClientConfig()

        assert config.base_url == "https://api.github.com"
        assert config.timeout == 30
        assert config.max_retries == 3
        assert config.retry_backoff_factor == 2.0
        assert config.max_concurrent_requests == 10


class TestGitHubClientRequests:
    """Test request handling beneath graphql()."""

    @pytest.mark.asyncio
    async def test_sends_token_and_returns_data(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(GRAPHQL, payload=VIEWER)

            async with client:
                assert await client.graphql(VIEWER_QUERY) == {"viewer": {"login": "octocat"}}

            request = next(iter(mocked.requests.values()))[0]
            assert request.kwargs["headers"]["Authorization"] == "token ghp_test"

    @pytest.mark.asyncio
    async def test_url_joins_enterprise_base(self) -> None:
        client = GitHubClient(
            PersonalAccessTokenAuth("t"),
            GitHubClientConfig(base_url="https://ghe.example.com/api/v3/"),
        )

        assert client._url("/graphql") == "https://ghe.example.com/api/v3/graphql"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (401, GitHubAuthenticationError),
            (403, GitHubAuthenticationError),
            (404, GitHubNotFoundError),
            (422, GitHubValidationError),
        ],
    )
    async def test_client_errors_are_not_retried(
        self, client: GitHubClient, no_sleep: AsyncMock, status: int, error: type
    ) -> None:
        with aioresponses() as mocked:
            mocked.post(GRAPHQL, status=status, payload={"message": "nope"})

            with pytest.raises(error, match="nope"):
                async with client:
                    await client.graphql(VIEWER_QUERY)

        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_403(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(
                GRAPHQL,
                status=403,
                payload={"message": "API rate limit exceeded"},
                headers={"X-RateLimit-Reset": "1700000000", "X-RateLimit-Limit": "5000"},
            )

            with pytest.raises(GitHubRateLimitError) as exc_info:
                async with client:
                    await client.graphql(VIEWER_QUERY)

        assert exc_info.value.reset_time == 1700000000
        assert exc_info.value.limit == 5000

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(
        self, client: GitHubClient, no_sleep: AsyncMock
    ) -> None:
        with aioresponses() as mocked:
            mocked.post(GRAPHQL, status=502, payload={"message": "bad gateway"})
            mocked.post(GRAPHQL, payload=VIEWER)

            async with client:
                assert await client.graphql(VIEWER_QUERY) == {"viewer": {"login": "octocat"}}

        no_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(
        self, client: GitHubClient, no_sleep: AsyncMock
    ) -> None:
        with aioresponses() as mocked:
            for _ in range(3):
                mocked.post(GRAPHQL, status=500, payload={"message": "oops"})

            with pytest.raises(GitHubServerError):
                async with client:
                    await client.graphql(VIEWER_QUERY)

        assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeout_maps_to_timeout_error(
        self, client: GitHubClient, no_sleep: AsyncMock
    ) -> None:
        with aioresponses() as mocked:
            for _ in range(3):
                mocked.post(GRAPHQL, exception=asyncio.TimeoutError())

            with pytest.raises(GitHubTimeoutError):
                async with client:
                    await client.graphql(VIEWER_QUERY)

    @pytest.mark.asyncio
    async def test_connection_error(self, client: GitHubClient, no_sleep: AsyncMock) -> None:
        with aioresponses() as mocked:
            for _ in range(3):
                mocked.post(GRAPHQL, exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(GitHubConnectionError, match="refused"):
                async with client:
                    await client.graphql(VIEWER_QUERY)

    @pytest.mark.asyncio
    async def test_non_json_body_is_decode_error(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(GRAPHQL, body="<html></html>", content_type="text/html")

            with pytest.raises(GitHubDecodeError):
                async with client:
                    await client.graphql(VIEWER_QUERY)

    @pytest.mark.asyncio
    async def test_malformed_json_is_decode_error(
        self, client: GitHubClient, no_sleep: AsyncMock
    ) -> None:
        """
        Why: A proxy or outage page served as application/json must not leak
             a bare JSONDecodeError past the GitHub exception family.
        What: Tests that an unparsable JSON body raises GitHubDecodeError
              without retrying.
        How: Stubs a 200 response whose JSON content type carries HTML.
        """
        with aioresponses() as mocked:
            mocked.post(
                GRAPHQL, status=200, body="<html>oops", content_type="application/json"
            )

            with pytest.raises(GitHubDecodeError, match="Non-JSON response"):
                async with client:
                    await client.graphql(VIEWER_QUERY)

        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tracks_rate_limit_headers(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(
                GRAPHQL,
                payload=VIEWER,
                headers={
                    "X-RateLimit-Limit": "5000",
                    "X-RateLimit-Remaining": "4999",
                    "X-RateLimit-Reset": "1700000000",
                    "X-RateLimit-Resource": "graphql",
                },
            )

            async with client:
                await client.graphql(VIEWER_QUERY)

        info = client.rate_limiter.get_rate_limit("graphql")
        assert info is not None
        assert info.remaining == 4999


class TestGitHubClientGraphQL:
    """Test GraphQL handling."""

    @pytest.mark.asyncio
    async def test_sends_query_and_variables(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(GRAPHQL, payload=VIEWER)

            async with client:
                await client.graphql(VIEWER_QUERY, {"a": 1})

            request = next(iter(mocked.requests.values()))[0]

        assert request.kwargs["json"] == {"query": VIEWER_QUERY, "variables": {"a": 1}}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            {"type": "NOT_FOUND", "message": "Not here"},
            {"message": "Could not resolve to a Repository with the name 'x/y'."},
        ],
    )
    async def test_not_found_errors(self, client: GitHubClient, error: dict) -> None:
        with aioresponses() as mocked:
            mocked.post(GRAPHQL, payload={"data": {"repository": None}, "errors": [error]})

            with pytest.raises(GitHubNotFoundError):
                async with client:
                    await client.graphql("query")

    @pytest.mark.asyncio
    async def test_other_errors_are_validation_errors(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(
                GRAPHQL,
                payload={"errors": [{"type": "FORBIDDEN", "message": "Resource not accessible"}]},
            )

            with pytest.raises(GitHubValidationError, match="Resource not accessible"):
                async with client:
                    await client.graphql("query")

    @pytest.mark.asyncio
    async def test_missing_data_is_decode_error(self, client: GitHubClient) -> None:
        with aioresponses() as mocked:
            mocked.post(GRAPHQL, payload={"unexpected": True})

            with pytest.raises(GitHubDecodeError):
                async with client:
                    await client.graphql("query")


class TestCircuitBreakerIntegration:
    """Test the client refuses requests while the breaker is open."""

    @pytest.mark.asyncio
    async def test_open_breaker_blocks_requests(self, client: GitHubClient) -> None:
        for _ in range(client.circuit_breaker.failure_threshold):
            client.circuit_breaker.record_failure()

        with pytest.raises(GitHubConnectionError, match="Circuit breaker open"):
            await client.graphql(VIEWER_QUERY)
