"""Notification triage core.

``processor`` is not re-exported here: it depends on the mailbox package,
which itself imports ``triage.models``.
"""

from .concurrency import DEFAULT_CONCURRENCY, run_with_concurrency
from .models import (
    DeletionCandidate,
    NotificationEmail,
    PendingPullRequest,
    PRState,
    PullRequestReference,
    PullRequestStatus,
    ReviewBucket,
    approvals_needed,
)
from .pending import PendingReviewAggregator, PendingReviewReport
from .policy import DeletionPlan, DeletionPolicy, PolicyOptions
from .reconciler import BatchReconciler
from .resolver import PullRequestStatusResolver
from .session import IdentityResolutionError, ReconciliationSession, StatusCache

__all__ = [
    "DEFAULT_CONCURRENCY",
    "BatchReconciler",
    "DeletionCandidate",
    "DeletionPlan",
    "DeletionPolicy",
    "IdentityResolutionError",
    "NotificationEmail",
    "PRState",
    "PendingPullRequest",
    "PendingReviewAggregator",
    "PendingReviewReport",
    "PolicyOptions",
    "PullRequestReference",
    "PullRequestStatus",
    "PullRequestStatusResolver",
    "ReconciliationSession",
    "ReviewBucket",
    "StatusCache",
    "approvals_needed",
    "run_with_concurrency",
]
