"""Resolve a single pull request reference into a ``PullRequestStatus``."""

import logging
import re

from ..github.exceptions import GitHubError, GitHubNotFoundError
from ..github.schemas import PullRequestInfo
from .interfaces import PullRequestSource
from .models import PRState, PullRequestReference, PullRequestStatus

logger = logging.getLogger(__name__)

PR_NOT_FOUND = "PR not found"


def is_requested_reviewer(info: PullRequestInfo, handle: str) -> bool:
    """Case-insensitive exact login match against the pending review requests."""
    wanted = handle.lower()
    return any(
        request.login is not None and request.login.lower() == wanted
        for request in info.review_requests
    )


def is_mentioned(body: str | None, handle: str) -> bool:
    """Whether ``@handle`` appears in ``body`` as a whole word, ignoring case."""
    pattern = re.compile(rf"@{re.escape(handle)}\b", re.IGNORECASE)
    return pattern.search(body or "") is not None


class PullRequestStatusResolver:
    """Looks up one pull request and classifies the user's involvement in it.

    Remote failures never escape: they come back as error-carrying statuses
    so one bad reference cannot abort a batch.
    """

    def __init__(self, source: PullRequestSource) -> None:
        self.source = source

    async def resolve(
        self, reference: PullRequestReference, handle: str
    ) -> PullRequestStatus:
        try:
            info = await self.source.get_pull_request(
                reference.repository, reference.number
            )
        except GitHubNotFoundError as e:
            logger.debug(f"{reference} could not be resolved: {e}")
            return PullRequestStatus.failed(reference, PR_NOT_FOUND)
        except GitHubError as e:
            message = str(e).strip() or type(e).__name__
            logger.warning(f"Failed to check {reference}: {message}")
            return PullRequestStatus.failed(reference, message)

        state = PRState(info.state)
        return PullRequestStatus(
            repository=reference.repository,
            number=reference.number,
            state=state,
            merged=state is PRState.MERGED,
            was_requested_reviewer=is_requested_reviewer(info, handle),
            was_mentioned=is_mentioned(info.body, handle),
        )
