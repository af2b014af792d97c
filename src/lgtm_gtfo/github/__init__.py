"""GitHub API client package."""

from .client import GitHubClient, GitHubClientConfig, GitHubResponse
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
from .queries import GitHubPullRequestSource, split_repository
from .rate_limiting import CircuitBreaker, RateLimitInfo, RateLimitManager
from .schemas import (
    Actor,
    PullRequestInfo,
    PullRequestSummary,
    Review,
    ReviewRequest,
    ReviewState,
)

__all__ = [
    "Actor",
    "CircuitBreaker",
    "GitHubAuthenticationError",
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubConnectionError",
    "GitHubDecodeError",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubPullRequestSource",
    "GitHubRateLimitError",
    "GitHubResponse",
    "GitHubServerError",
    "GitHubTimeoutError",
    "GitHubValidationError",
    "PullRequestInfo",
    "PullRequestSummary",
    "RateLimitInfo",
    "RateLimitManager",
    "Review",
    "ReviewRequest",
    "ReviewState",
    "split_repository",
]
