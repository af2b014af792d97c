"""Batch reconciliation of pull request references against live status."""

import logging
from collections.abc import Iterable

from .concurrency import run_with_concurrency
from .models import PullRequestReference, PullRequestStatus
from .resolver import PullRequestStatusResolver
from .session import ReconciliationSession

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 10


def unique_references(
    references: Iterable[PullRequestReference],
) -> list[PullRequestReference]:
    """Drop repeated references, keeping the first occurrence of each key."""
    seen: dict[str, PullRequestReference] = {}
    for reference in references:
        seen.setdefault(reference.key, reference)
    return list(seen.values())


class BatchReconciler:
    """Maps many (possibly repeated) references onto one lookup per pull request.

    Lookups go through the session's status cache, so a pull request is
    resolved at most once per session no matter how many emails refer to it
    or how many batches are reconciled.
    """

    def __init__(
        self,
        session: ReconciliationSession,
        resolver: PullRequestStatusResolver | None = None,
    ) -> None:
        self.session = session
        self.resolver = resolver or PullRequestStatusResolver(session.source)

    async def reconcile(
        self, references: Iterable[PullRequestReference]
    ) -> dict[str, PullRequestStatus]:
        """Resolve every distinct reference.

        Returns:
            Mapping from ``"{repository}#{number}"`` to status, covering every
            distinct input reference, error statuses included

        Raises:
            IdentityResolutionError: If the user handle cannot be determined
        """
        unique = unique_references(references)
        logger.info(f"Checking {len(unique)} unique PRs...")
        if not unique:
            return {}

        handle = await self.session.user_handle()
        total = len(unique)
        checked = 0

        async def resolve(reference: PullRequestReference) -> PullRequestStatus:
            return await self.resolver.resolve(reference, handle)

        async def check(reference: PullRequestReference) -> PullRequestStatus:
            nonlocal checked
            status = await self.session.cache.get_or_resolve(reference, resolve)
            checked += 1
            if checked % PROGRESS_INTERVAL == 0 or checked == total:
                logger.info(f"Checked {checked}/{total} PRs")
            return status

        statuses = await run_with_concurrency(unique, check, self.session.concurrency)
        return {
            reference.key: status
            for reference, status in zip(unique, statuses, strict=True)
        }
