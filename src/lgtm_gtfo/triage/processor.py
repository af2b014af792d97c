"""End-to-end email triage: fetch, reconcile, select, report, move."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..mailbox.base import MailboxAdapter, MoveResult
from .models import NotificationEmail, PullRequestStatus
from .policy import DeletionPlan, DeletionPolicy, PolicyOptions
from .reconciler import BatchReconciler
from .report import render_deletion_plan, render_dry_run
from .session import ReconciliationSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessOptions:
    """Options for a single triage run."""

    folder: str | None = None
    confirm: bool = False
    policy: PolicyOptions = field(default_factory=PolicyOptions)


@dataclass
class TriageResult:
    """What a triage run saw, selected and moved."""

    fetched: int = 0
    pr_emails: int = 0
    statuses: dict[str, PullRequestStatus] = field(default_factory=dict)
    plan: DeletionPlan = field(default_factory=DeletionPlan)
    move_result: MoveResult | None = None

    @property
    def dry_run(self) -> bool:
        return self.move_result is None


class EmailProcessor:
    """Runs one triage pass over a mailbox.

    Nothing is moved unless ``ProcessOptions.confirm`` is set.
    """

    def __init__(
        self,
        mailbox: MailboxAdapter,
        session: ReconciliationSession,
        output: Callable[[str], None] = print,
    ) -> None:
        self.mailbox = mailbox
        self.session = session
        self.reconciler = BatchReconciler(session)
        self._output = output

    async def process(self, options: ProcessOptions) -> TriageResult:
        result = TriageResult()

        logger.info(f"Fetching GitHub emails via {self.mailbox.name}...")
        emails = await self.mailbox.fetch(options.folder)
        result.fetched = len(emails)
        if not emails:
            self._output("No GitHub emails found.")
            return result

        logger.info(f"Found {len(emails)} GitHub emails.")
        result.statuses = await self._reconcile(emails, result)

        policy = DeletionPolicy(options.policy)
        result.plan = policy.evaluate(emails, result.statuses)
        self._output(render_deletion_plan(result.plan))

        if result.plan.is_empty:
            return result

        if not options.confirm:
            self._output(render_dry_run(len(result.plan)))
            return result

        result.move_result = await self._move(result.plan)
        return result

    async def _reconcile(
        self, emails: list[NotificationEmail], result: TriageResult
    ) -> dict[str, PullRequestStatus]:
        references = [email.reference for email in emails if email.reference]
        result.pr_emails = len(references)
        if not references:
            return {}

        logger.info(f"Checking PR status for {len(references)} emails...")
        return await self.reconciler.reconcile(references)

    async def _move(self, plan: DeletionPlan) -> MoveResult:
        self._output(f"\nMoving {len(plan)} emails to trash...")
        move_result = await self.mailbox.move_to_trash(plan.emails)

        if move_result.ok:
            self._output(f"\nDone! Moved {move_result.moved} emails to trash.")
        else:
            self._output(
                f"\nDone with errors: moved {move_result.moved}, "
                f"failed {move_result.failed} of {move_result.requested} emails."
            )
            for failure in move_result.failures:
                self._output(f"  ! {failure.target}: {failure.error}")
        return move_result
