"""Pending-review aggregation: open pull requests waiting on the user's review."""

import logging
from dataclasses import dataclass, field

from ..github.exceptions import GitHubError
from ..github.schemas import PullRequestSummary
from .concurrency import run_with_concurrency
from .models import PendingPullRequest, ReviewBucket, approvals_needed
from .session import ReconciliationSession

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 100
BOT_AUTHORS = ("dependabot", "es-robot")


def is_bot_author(login: str) -> bool:
    lowered = login.lower()
    return any(bot in lowered for bot in BOT_AUTHORS)


@dataclass
class PendingReviewReport:
    """Pending pull requests plus what was left out along the way."""

    user: str
    pull_requests: list[PendingPullRequest] = field(default_factory=list)
    excluded_bots: int = 0
    failed: int = 0

    def bucket(self, bucket: ReviewBucket) -> list[PendingPullRequest]:
        return [pr for pr in self.pull_requests if pr.bucket is bucket]

    @property
    def needs_one_more(self) -> list[PendingPullRequest]:
        return self.bucket(ReviewBucket.NEEDS_ONE_MORE)

    @property
    def needs_more(self) -> list[PendingPullRequest]:
        return self.bucket(ReviewBucket.NEEDS_MORE)

    @property
    def changes_requested(self) -> list[PendingPullRequest]:
        return self.bucket(ReviewBucket.CHANGES_REQUESTED)

    @property
    def approved(self) -> list[PendingPullRequest]:
        return self.bucket(ReviewBucket.APPROVED)

    @property
    def is_empty(self) -> bool:
        return not self.pull_requests


class PendingReviewAggregator:
    """Builds a ``PendingReviewReport`` for the session's user."""

    def __init__(
        self,
        session: ReconciliationSession,
        exclude_bots: bool = False,
        limit: int = SEARCH_LIMIT,
    ) -> None:
        self.session = session
        self.exclude_bots = exclude_bots
        self.limit = limit

    async def collect(self) -> PendingReviewReport:
        """Search, filter, fetch review state and classify.

        A pull request whose review state cannot be fetched is dropped from
        the report; the rest of the batch continues.

        Raises:
            IdentityResolutionError: If the user handle cannot be determined
            GitHubError: If the review-requested search itself fails
        """
        user = await self.session.user_handle()
        logger.info(f"Fetching PRs awaiting review from {user}...")

        results = await self.session.source.search_review_requested(user, self.limit)
        report = PendingReviewReport(user=user)

        if self.exclude_bots:
            kept = [pr for pr in results if not is_bot_author(pr.author)]
            report.excluded_bots = len(results) - len(kept)
            results = kept
            if report.excluded_bots:
                logger.info(f"Excluded {report.excluded_bots} bot PRs")

        if not results:
            return report

        logger.info(f"Found {len(results)} PRs, fetching details...")
        total = len(results)
        processed = 0

        async def fetch(summary: PullRequestSummary) -> PendingPullRequest | None:
            nonlocal processed
            try:
                review_state = await self.session.source.get_review_state(
                    summary.repository, summary.number
                )
            except GitHubError as e:
                logger.warning(
                    f"Skipping {summary.repository}#{summary.number}: {e}"
                )
                return None
            finally:
                processed += 1
                logger.info(
                    f"[{processed}/{total}] {round(processed / total * 100)}%"
                )

            approvals = review_state.approval_count
            return PendingPullRequest(
                repository=summary.repository,
                number=summary.number,
                title=summary.title,
                url=summary.url,
                author=summary.author,
                approvals=approvals,
                approvals_needed=approvals_needed(
                    review_state.review_decision, approvals
                ),
            )

        pending = await run_with_concurrency(results, fetch, self.session.concurrency)
        report.pull_requests = [pr for pr in pending if pr is not None]
        report.failed = total - len(report.pull_requests)
        return report
