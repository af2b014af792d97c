"""In-memory collaborators and builders shared by the test suite."""

import asyncio
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from lgtm_gtfo.github.exceptions import GitHubError, GitHubNotFoundError
from lgtm_gtfo.github.schemas import PullRequestInfo, PullRequestSummary, ReviewState
from lgtm_gtfo.triage.models import NotificationEmail


class FakePullRequestSource:
    """In-memory ``PullRequestSource``.

    Pull requests are registered per ``"owner/repo#n"`` key; unknown keys
    raise GitHubNotFoundError. Registering an exception instead of a payload
    makes the lookup raise it.
    """

    def __init__(self, viewer: str | None = "octocat", delay: float = 0.0) -> None:
        self.viewer = viewer
        self.delay = delay
        self.pull_requests: dict[str, PullRequestInfo | Exception] = {}
        self.review_states: dict[str, ReviewState | Exception] = {}
        self.search_results: list[PullRequestSummary] = []
        self.calls: Counter[str] = Counter()
        self.viewer_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    def add_pull_request(
        self,
        key: str,
        state: str = "MERGED",
        body: str | None = "",
        reviewers: list[str] | None = None,
        author: str = "someone",
    ) -> None:
        self.pull_requests[key] = PullRequestInfo.model_validate(
            {
                "state": state,
                "author": {"login": author},
                "body": body,
                "reviewRequests": {
                    "nodes": [
                        {"requestedReviewer": {"login": login}}
                        for login in reviewers or []
                    ]
                },
            }
        )

    def add_review_state(
        self, key: str, approvals: int = 0, decision: str | None = None
    ) -> None:
        self.review_states[key] = ReviewState.model_validate(
            {
                "reviewDecision": decision,
                "reviews": {
                    "nodes": [
                        {"author": {"login": f"r{i}"}, "state": "APPROVED"}
                        for i in range(approvals)
                    ]
                },
            }
        )

    async def _enter(self, key: str) -> None:
        self.calls[key] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def get_viewer_login(self) -> str:
        self.viewer_calls += 1
        await asyncio.sleep(0)
        if self.viewer is None:
            raise GitHubError("Bad credentials", 401)
        return self.viewer

    async def get_pull_request(self, repository: str, number: int) -> PullRequestInfo:
        key = f"{repository}#{number}"
        await self._enter(key)
        value = self.pull_requests.get(key)
        if value is None:
            raise GitHubNotFoundError(f"Could not resolve to a PullRequest {key}")
        if isinstance(value, Exception):
            raise value
        return value

    async def get_review_state(self, repository: str, number: int) -> ReviewState:
        key = f"{repository}#{number}"
        await self._enter(f"reviews:{key}")
        value = self.review_states.get(key)
        if value is None:
            raise GitHubNotFoundError(f"Could not resolve to a PullRequest {key}")
        if isinstance(value, Exception):
            raise value
        return value

    async def search_review_requested(
        self, user: str, limit: int = 100
    ) -> list[PullRequestSummary]:
        self.calls[f"search:{user}"] += 1
        return list(self.search_results[:limit])


def make_email(
    email_id: str,
    subject: str,
    received_at: datetime | None = None,
    repository: str | None = None,
    pr_number: int | None = None,
    **extra: Any,
) -> NotificationEmail:
    return NotificationEmail(
        id=email_id,
        subject=subject,
        received_at=received_at or datetime(2024, 1, 1, tzinfo=UTC),
        repository=repository,
        pr_number=pr_number,
        extra=extra,
    )


def make_summary(
    repository: str, number: int, author: str = "someone", title: str | None = None
) -> PullRequestSummary:
    return PullRequestSummary.model_validate(
        {
            "repository": {"nameWithOwner": repository},
            "number": number,
            "title": title or f"Change {number}",
            "url": f"https://github.com/{repository}/pull/{number}",
            "author": {"login": author},
        }
    )
