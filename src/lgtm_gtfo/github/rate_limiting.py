"""GitHub API rate limit tracking and circuit breaking."""

import time
from dataclasses import dataclass, field

from .exceptions import GitHubRateLimitError


@dataclass
class RateLimitInfo:
    """Rate limit snapshot for one GitHub API resource (core, graphql, search)."""

    limit: int
    remaining: int
    reset: int
    used: int = 0
    resource: str = "core"

    @property
    def seconds_until_reset(self) -> float:
        return max(0, self.reset - time.time())


@dataclass
class RateLimitManager:
    """Tracks rate limit headers and refuses requests inside the reserve buffer."""

    buffer: int = 50
    max_retry_wait: int = 3600

    _rate_limits: dict[str, RateLimitInfo] = field(default_factory=dict)

    def get_rate_limit(self, resource: str = "graphql") -> RateLimitInfo | None:
        return self._rate_limits.get(resource)

    def update_rate_limit(self, headers: dict[str, str]) -> None:
        """Update rate limit info from response headers.

        Args:
            headers: HTTP response headers from GitHub API
        """
        if "X-RateLimit-Limit" not in headers:
            return

        try:
            rate_limit = RateLimitInfo(
                limit=int(headers.get("X-RateLimit-Limit", 5000)),
                remaining=int(headers.get("X-RateLimit-Remaining", 0)),
                reset=int(headers.get("X-RateLimit-Reset", 0)),
                used=int(headers.get("X-RateLimit-Used", 0)),
                resource=headers.get("X-RateLimit-Resource", "core"),
            )
        except (ValueError, TypeError):
            return
        self._rate_limits[rate_limit.resource] = rate_limit

    async def check_rate_limit(self, resource: str = "graphql") -> None:
        """Raise if the remaining budget for ``resource`` is inside the buffer.

        Raises:
            GitHubRateLimitError: If rate limit is (nearly) exhausted
        """
        rate_limit = self.get_rate_limit(resource)
        if not rate_limit:
            return

        if rate_limit.remaining <= self.buffer and rate_limit.seconds_until_reset > 0:
            wait_time = min(rate_limit.seconds_until_reset, self.max_retry_wait)
            raise GitHubRateLimitError(
                f"Rate limit approaching for {resource}. "
                f"Remaining: {rate_limit.remaining}, "
                f"Reset in {wait_time:.0f} seconds",
                reset_time=rate_limit.reset,
                remaining=rate_limit.remaining,
                limit=rate_limit.limit,
            )


class CircuitBreaker:
    """Stops issuing requests after repeated consecutive failures."""

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            recovery_timeout: Seconds to wait before attempting recovery
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._state = "closed"  # closed, open, half_open

    @property
    def is_open(self) -> bool:
        return self._state == "open"

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = "closed"

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.time()

        if self._failure_count >= self.failure_threshold:
            self._state = "open"

    def can_attempt_request(self) -> bool:
        if not self.is_open:
            return True

        if (
            self._last_failure_time
            and time.time() - self._last_failure_time >= self.recovery_timeout
        ):
            self._state = "half_open"
            return True

        return False

    def get_wait_time(self) -> float:
        if not self.is_open or not self._last_failure_time:
            return 0
        elapsed = time.time() - self._last_failure_time
        return max(0, self.recovery_timeout - elapsed)
