"""Pull request and review lookups against the GitHub GraphQL API.

``GitHubPullRequestSource`` is the source of truth the triage core queries:
pull request state, review state, review-requested search and the identity
of the authenticated user.
"""

import logging
from typing import Any

from pydantic import ValidationError

from .client import GitHubClient
from .exceptions import GitHubDecodeError, GitHubNotFoundError, GitHubValidationError
from .schemas import PullRequestInfo, PullRequestSummary, ReviewState

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 100

PULL_REQUEST_QUERY = """
query PullRequestStatus($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      state
      author { login }
      body
      reviewRequests(first: 100) {
        nodes {
          requestedReviewer {
            ... on User { login }
            ... on Mannequin { login }
            ... on Team { name slug }
          }
        }
      }
    }
  }
}
"""

REVIEW_STATE_QUERY = """
query PullRequestReviews($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      reviewDecision
      reviews(first: 100) {
        nodes {
          author { login }
          state
        }
      }
    }
  }
}
"""

REVIEW_REQUESTED_SEARCH_QUERY = """
query ReviewRequested($query: String!, $first: Int!) {
  search(query: $query, type: ISSUE, first: $first) {
    nodes {
      ... on PullRequest {
        number
        title
        url
        repository { nameWithOwner }
        author { login }
      }
    }
  }
}
"""

VIEWER_QUERY = """
query Viewer {
  viewer { login }
}
"""


def split_repository(repository: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts.

    Raises:
        GitHubValidationError: If the string is not ``owner/name``
    """
    owner, sep, name = repository.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise GitHubValidationError(
            f"Repository must be in 'owner/name' form, got {repository!r}"
        )
    return owner, name


class GitHubPullRequestSource:
    """Typed GraphQL lookups used by the resolver and the pending-review aggregator."""

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    async def _pull_request_node(
        self, query: str, repository: str, number: int
    ) -> dict[str, Any]:
        owner, name = split_repository(repository)
        data = await self.client.graphql(
            query, {"owner": owner, "name": name, "number": number}
        )
        repo_node = data.get("repository")
        node = repo_node.get("pullRequest") if isinstance(repo_node, dict) else None
        if not isinstance(node, dict):
            raise GitHubNotFoundError(
                f"Could not resolve pull request {repository}#{number}"
            )
        return node

    async def get_pull_request(self, repository: str, number: int) -> PullRequestInfo:
        """Fetch state, author, body and review requests of one pull request.

        Raises:
            GitHubNotFoundError: If the repository or pull request does not exist
            GitHubDecodeError: If the payload does not match the schema
            GitHubError: On transport or authentication failure
        """
        node = await self._pull_request_node(PULL_REQUEST_QUERY, repository, number)
        try:
            return PullRequestInfo.model_validate(node)
        except ValidationError as e:
            raise GitHubDecodeError(
                f"Unexpected pull request payload for {repository}#{number}: {e}"
            ) from e

    async def get_review_state(self, repository: str, number: int) -> ReviewState:
        """Fetch submitted reviews and the review decision of one pull request."""
        node = await self._pull_request_node(REVIEW_STATE_QUERY, repository, number)
        try:
            return ReviewState.model_validate(node)
        except ValidationError as e:
            raise GitHubDecodeError(
                f"Unexpected review payload for {repository}#{number}: {e}"
            ) from e

    async def search_review_requested(
        self, user: str, limit: int = SEARCH_LIMIT
    ) -> list[PullRequestSummary]:
        """List open pull requests where ``user`` is a requested reviewer."""
        data = await self.client.graphql(
            REVIEW_REQUESTED_SEARCH_QUERY,
            {
                "query": f"is:pr is:open review-requested:{user}",
                "first": min(limit, SEARCH_LIMIT),
            },
        )
        search = data.get("search") or {}
        nodes = [node for node in search.get("nodes") or [] if node]

        try:
            results = [PullRequestSummary.model_validate(node) for node in nodes]
        except ValidationError as e:
            raise GitHubDecodeError(f"Unexpected search payload: {e}") from e

        logger.debug(f"Search returned {len(results)} pull requests for {user}")
        return results

    async def get_viewer_login(self) -> str:
        """Return the login of the authenticated user."""
        data = await self.client.graphql(VIEWER_QUERY)
        viewer = data.get("viewer")
        login = viewer.get("login") if isinstance(viewer, dict) else None
        if not isinstance(login, str) or not login:
            raise GitHubDecodeError("GraphQL viewer query returned no login", 200, data)
        return login
