"""Deletion policy: which notification emails are safe to discard.

Two independent passes run over the fetched emails:

* PR emails are deleted only when their pull request is CLOSED or MERGED,
  the lookup succeeded, and the user was neither @-mentioned nor a requested
  reviewer (each protection can be switched off).
* CI emails (workflow run notifications without a PR reference) are deleted
  once older than ``ci_days``; this pass runs only when ``ci_days`` is set.

Anything uncertain is kept.
"""

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from .models import DeletionCandidate, NotificationEmail, PRState, PullRequestStatus

logger = logging.getLogger(__name__)

CI_SUBJECT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        "Run failed",
        "Run succeeded",
        "Run cancelled",
        "Run skipped",
        "workflow run",
    )
)


@dataclass(frozen=True)
class PolicyOptions:
    """Overrides for the deletion policy."""

    skip_mentions: bool = False
    skip_review_requests: bool = False
    ci_days: int | None = None

    def __post_init__(self) -> None:
        if self.ci_days is not None and self.ci_days < 0:
            raise ValueError(f"ci_days cannot be negative, got {self.ci_days}")


@dataclass
class DeletionPlan:
    """Emails selected for deletion, PR candidates first."""

    pr_candidates: list[DeletionCandidate] = field(default_factory=list)
    ci_candidates: list[DeletionCandidate] = field(default_factory=list)

    @property
    def candidates(self) -> list[DeletionCandidate]:
        return [*self.pr_candidates, *self.ci_candidates]

    @property
    def emails(self) -> list[NotificationEmail]:
        return [candidate.email for candidate in self.candidates]

    def __len__(self) -> int:
        return len(self.pr_candidates) + len(self.ci_candidates)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0


def is_ci_subject(subject: str) -> bool:
    return any(pattern.search(subject) for pattern in CI_SUBJECT_PATTERNS)


def _as_aware(moment: datetime) -> datetime:
    # naive timestamps are local time (Mail.app reports them that way)
    return moment if moment.tzinfo is not None else moment.astimezone()


class DeletionPolicy:
    """Applies ``PolicyOptions`` to emails and their reconciled statuses."""

    def __init__(
        self,
        options: PolicyOptions | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.options = options or PolicyOptions()
        self._clock = clock or (lambda: datetime.now(UTC))

    def pr_deletion_reason(self, status: PullRequestStatus | None) -> str | None:
        """Reason to delete an email about this pull request, or None to keep it."""
        if status is None or status.has_error:
            return None
        if status.state is PRState.OPEN:
            return None
        if status.was_mentioned and not self.options.skip_mentions:
            return None
        if status.was_requested_reviewer and not self.options.skip_review_requests:
            return None
        return f"{status.state.value.lower()} PR, not specifically mentioned"

    def select_pr_candidates(
        self,
        emails: Iterable[NotificationEmail],
        statuses: Mapping[str, PullRequestStatus],
    ) -> list[DeletionCandidate]:
        candidates = []
        for email in emails:
            reference = email.reference
            if reference is None:
                continue

            status = statuses.get(reference.key)
            reason = self.pr_deletion_reason(status)
            if reason is None:
                continue
            candidates.append(DeletionCandidate(email=email, reason=reason, status=status))
        return candidates

    def select_ci_candidates(
        self, emails: Iterable[NotificationEmail]
    ) -> list[DeletionCandidate]:
        ci_days = self.options.ci_days
        if ci_days is None:
            return []

        cutoff = self._clock() - timedelta(days=ci_days)
        reason = f"CI email older than {ci_days} days"
        return [
            DeletionCandidate(email=email, reason=reason)
            for email in emails
            if not email.is_pr_email
            and is_ci_subject(email.subject)
            and _as_aware(email.received_at) < cutoff
        ]

    def evaluate(
        self,
        emails: Iterable[NotificationEmail],
        statuses: Mapping[str, PullRequestStatus],
    ) -> DeletionPlan:
        emails = list(emails)
        plan = DeletionPlan(
            pr_candidates=self.select_pr_candidates(emails, statuses),
            ci_candidates=self.select_ci_candidates(emails),
        )
        logger.debug(
            f"Policy selected {len(plan.pr_candidates)} PR and "
            f"{len(plan.ci_candidates)} CI emails out of {len(emails)}"
        )
        return plan
