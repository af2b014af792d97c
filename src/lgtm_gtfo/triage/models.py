"""Data models for notification triage.

These types are the only shapes the triage core reads and produces. Mailbox
adapters create ``NotificationEmail`` records; the GitHub query layer feeds
the resolver, which creates ``PullRequestStatus`` values; the policy engine
emits ``DeletionCandidate`` values; the pending-review aggregator emits
``PendingPullRequest`` values.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

REQUIRED_APPROVALS = 2

APPROVED_DECISION = "APPROVED"
CHANGES_REQUESTED_DECISION = "CHANGES_REQUESTED"

# approvals_needed value marking a pull request with changes requested
CHANGES_REQUESTED = -1


class PRState(str, Enum):
    """Pull request lifecycle state."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MERGED = "MERGED"


class ReviewBucket(str, Enum):
    """Pending-review report categories, in report order."""

    NEEDS_ONE_MORE = "needs_one_more"
    NEEDS_MORE = "needs_more"
    CHANGES_REQUESTED = "changes_requested"
    APPROVED = "approved"


@dataclass(frozen=True)
class PullRequestReference:
    """A (repository, number) pair identifying one pull request."""

    repository: str
    number: int

    def __post_init__(self) -> None:
        if not self.repository:
            raise ValueError("repository must not be empty")
        if self.number <= 0:
            raise ValueError(f"pull request number must be positive, got {self.number}")

    @property
    def key(self) -> str:
        return f"{self.repository}#{self.number}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class PullRequestStatus:
    """Reconciled status of one pull request.

    When ``error`` is set the remaining fields hold safe defaults
    (CLOSED, not merged, not requested, not mentioned) and must never be
    treated as grounds for deletion.
    """

    repository: str
    number: int
    state: PRState
    merged: bool
    was_requested_reviewer: bool
    was_mentioned: bool
    error: str | None = None

    @classmethod
    def failed(cls, reference: PullRequestReference, error: str) -> "PullRequestStatus":
        return cls(
            repository=reference.repository,
            number=reference.number,
            state=PRState.CLOSED,
            merged=False,
            was_requested_reviewer=False,
            was_mentioned=False,
            error=error,
        )

    @property
    def key(self) -> str:
        return f"{self.repository}#{self.number}"

    @property
    def has_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class NotificationEmail:
    """A GitHub notification email as read from a mailbox backend.

    ``extra`` carries backend-specific handles (EWS change key, Mail.app
    account and mailbox, Graph web link) that only the owning adapter reads.
    """

    id: str
    subject: str
    received_at: datetime
    repository: str | None = None
    pr_number: int | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_pr_email(self) -> bool:
        return bool(self.repository) and bool(self.pr_number)

    @property
    def reference(self) -> PullRequestReference | None:
        if not self.is_pr_email:
            return None
        assert self.repository is not None and self.pr_number is not None
        return PullRequestReference(self.repository, self.pr_number)


@dataclass(frozen=True)
class DeletionCandidate:
    """An email selected for deletion and the reason it was selected."""

    email: NotificationEmail
    reason: str
    status: PullRequestStatus | None = None


@dataclass(frozen=True)
class PendingPullRequest:
    """An open pull request awaiting review.

    ``approvals_needed`` is 0 when approved and awaiting merge, -1 when
    changes were requested, otherwise the approvals still missing out of
    ``REQUIRED_APPROVALS``.
    """

    repository: str
    number: int
    title: str
    url: str
    author: str
    approvals: int
    approvals_needed: int

    @property
    def key(self) -> str:
        return f"{self.repository}#{self.number}"

    @property
    def bucket(self) -> ReviewBucket:
        if self.approvals_needed == CHANGES_REQUESTED:
            return ReviewBucket.CHANGES_REQUESTED
        if self.approvals_needed == 0:
            return ReviewBucket.APPROVED
        if self.approvals_needed == 1:
            return ReviewBucket.NEEDS_ONE_MORE
        return ReviewBucket.NEEDS_MORE


def approvals_needed(review_decision: str | None, approvals: int) -> int:
    """Distance from merge-ready under the fixed two-approval threshold."""
    if review_decision == APPROVED_DECISION:
        return 0
    if review_decision == CHANGES_REQUESTED_DECISION:
        return CHANGES_REQUESTED
    return max(0, REQUIRED_APPROVALS - approvals)
