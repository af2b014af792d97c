"""Collaborator contracts the triage core depends on.

The GitHub query layer (``lgtm_gtfo.github.GitHubPullRequestSource``)
satisfies ``PullRequestSource``; tests substitute in-memory fakes.
"""

from typing import Protocol

from ..github.schemas import PullRequestInfo, PullRequestSummary, ReviewState


class IdentitySource(Protocol):
    async def get_viewer_login(self) -> str: ...


class PullRequestSource(IdentitySource, Protocol):
    """Source of truth for pull request and review data."""

    async def get_pull_request(self, repository: str, number: int) -> PullRequestInfo: ...

    async def get_review_state(self, repository: str, number: int) -> ReviewState: ...

    async def search_review_requested(
        self, user: str, limit: int = ...
    ) -> list[PullRequestSummary]: ...
