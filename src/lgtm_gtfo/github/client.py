"""GitHub API client with authentication, rate limiting, and retries."""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import aiohttp

from ..auth import AuthProvider
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubDecodeError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubTimeoutError,
    GitHubValidationError,
)
from .rate_limiting import CircuitBreaker, RateLimitManager

logger = logging.getLogger(__name__)

NOT_FOUND_MARKER = "Could not resolve"


@dataclass
class GitHubClientConfig:
    """Configuration for GitHub client."""

    base_url: str = "https://api.github.com"
    timeout: int = 30
    max_retries: int = 3
    retry_backoff_factor: float = 2.0
    rate_limit_buffer: int = 50
    user_agent: str = "lgtm-gtfo/1.0"
    max_concurrent_requests: int = 10


@dataclass
class GitHubResponse:
    """Status, headers and decoded JSON body of a completed request."""

    status: int
    payload: Any
    headers: dict[str, str] = field(default_factory=dict)


class GitHubClient:
    """Async GitHub REST and GraphQL client."""

    def __init__(
        self,
        auth: AuthProvider,
        config: GitHubClientConfig | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            auth: Authentication provider
            config: Client configuration
        """
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = RateLimitManager(buffer=self.config.rate_limit_buffer)
        self.circuit_breaker = CircuitBreaker()

        # HTTP session will be initialized on first use
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self._request_semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

    async def __aenter__(self) -> "GitHubClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    timeout = aiohttp.ClientTimeout(total=self.config.timeout)
                    self._session = aiohttp.ClientSession(
                        timeout=timeout,
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Accept": "application/vnd.github+json",
                        },
                    )

    async def close(self) -> None:
        """Close HTTP session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, path: str) -> str:
        base = self.config.base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    async def _make_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> GitHubResponse:
        """Make HTTP request with retry logic and error handling.

        Connection failures, timeouts and 5xx responses are retried with
        exponential backoff. Other error statuses raise immediately.

        Args:
            method: HTTP method
            url: Request URL
            params: Query parameters
            data: JSON request body

        Returns:
            Completed response with decoded JSON payload

        Raises:
            GitHubError: Various GitHub API errors
        """
        correlation_id = str(uuid.uuid4())[:8]

        if not self.circuit_breaker.can_attempt_request():
            wait_time = self.circuit_breaker.get_wait_time()
            raise GitHubConnectionError(
                f"Circuit breaker open. Wait {wait_time:.1f}s before retry."
            )

        await self.rate_limiter.check_rate_limit(
            "graphql" if url.endswith("/graphql") else "core"
        )

        auth_token = await self.auth.get_token()
        request_headers = auth_token.to_header()

        await self._ensure_session()
        if not self._session:
            raise GitHubConnectionError("Failed to initialize HTTP session")

        request_kwargs: dict[str, Any] = {"params": params, "headers": request_headers}
        if data is not None:
            request_kwargs["json"] = data

        last_exception: GitHubError | None = None
        for attempt in range(self.config.max_retries + 1):
            try:
                async with self._request_semaphore:
                    start_time = time.time()
                    logger.debug(
                        f"GitHub API request [{correlation_id}] {method} {url} "
                        f"(attempt {attempt + 1})"
                    )

                    async with self._session.request(
                        method, url, **request_kwargs
                    ) as response:
                        self.rate_limiter.update_rate_limit(dict(response.headers))
                        logger.debug(
                            f"GitHub API response [{correlation_id}] "
                            f"{response.status} in {time.time() - start_time:.2f}s"
                        )

                        if response.status in (200, 201, 204):
                            self.circuit_breaker.record_success()
                            payload = (
                                None if response.status == 204 else await response.json()
                            )
                            return GitHubResponse(
                                response.status, payload, dict(response.headers)
                            )

                        await self._handle_error_response(response, correlation_id)

            except GitHubServerError as e:
                last_exception = e
            except GitHubError:
                raise
            except TimeoutError:
                last_exception = GitHubTimeoutError(
                    f"Request timeout for {method} {url}"
                )
                self.circuit_breaker.record_failure()
            except (aiohttp.ContentTypeError, json.JSONDecodeError) as e:
                raise GitHubDecodeError(f"Non-JSON response for {method} {url}: {e}") from e
            except aiohttp.ClientError as e:
                last_exception = GitHubConnectionError(
                    f"Connection error for {method} {url}: {e}"
                )
                self.circuit_breaker.record_failure()

            if attempt < self.config.max_retries:
                backoff_time = self.config.retry_backoff_factor**attempt
                logger.warning(
                    f"Request [{correlation_id}] failed (attempt {attempt + 1}), "
                    f"retrying in {backoff_time:.1f}s: {last_exception}"
                )
                await asyncio.sleep(backoff_time)

        if last_exception:
            raise last_exception
        raise GitHubError(f"Request failed after {self.config.max_retries} retries")

    async def _handle_error_response(
        self, response: aiohttp.ClientResponse, correlation_id: str
    ) -> None:
        """Raise the exception matching an error response.

        Raises:
            GitHubError: Appropriate error based on status code
        """
        try:
            error_data = await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError):
            error_data = {"message": await response.text()}
        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}

        error_message = error_data.get("message", f"HTTP {response.status}")

        logger.warning(
            f"GitHub API error [{correlation_id}] {response.status}: {error_message}"
        )

        if response.status == 401:
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status == 403:
            if "rate limit" in error_message.lower():
                reset_time = response.headers.get("X-RateLimit-Reset")
                raise GitHubRateLimitError(
                    error_message,
                    reset_time=int(reset_time) if reset_time else None,
                    remaining=int(response.headers.get("X-RateLimit-Remaining", "0")),
                    limit=int(response.headers.get("X-RateLimit-Limit", "0")),
                )
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status == 404:
            raise GitHubNotFoundError(error_message, response.status, error_data)
        elif response.status == 422:
            raise GitHubValidationError(error_message, response.status, error_data)
        elif 500 <= response.status < 600:
            self.circuit_breaker.record_failure()
            raise GitHubServerError(error_message, response.status, error_data)
        else:
            raise GitHubError(error_message, response.status, error_data)

    async def post(
        self,
        path: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make POST request to GitHub API.

        Args:
            path: API path
            data: Request body data
            params: Query parameters

        Returns:
            JSON response data
        """
        response = await self._make_request("POST", self._url(path), params, data)
        json_data: dict[str, Any] = response.payload or {}
        return json_data

    async def graphql(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        GraphQL reports most failures with HTTP 200 and an ``errors`` array.
        A ``NOT_FOUND`` error (or one GitHub words as "Could not resolve ...")
        becomes GitHubNotFoundError; any other becomes GitHubValidationError.

        Args:
            query: GraphQL document
            variables: Query variables

        Returns:
            The ``data`` member of the response

        Raises:
            GitHubNotFoundError: If a referenced object does not exist
            GitHubValidationError: If GraphQL reported any other error
            GitHubDecodeError: If the response has no ``data`` object
        """
        payload = await self.post(
            "/graphql", data={"query": query, "variables": variables or {}}
        )

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in errors
            )
            not_found = any(
                isinstance(error, dict)
                and (
                    error.get("type") == "NOT_FOUND"
                    or NOT_FOUND_MARKER in str(error.get("message", ""))
                )
                for error in errors
            )
            if not_found:
                raise GitHubNotFoundError(messages, 200, payload)
            raise GitHubValidationError(messages, 200, payload)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise GitHubDecodeError("GraphQL response carried no data object", 200, payload)
        return data
