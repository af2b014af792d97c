"""Per-run reconciliation state: status cache and memoized user handle.

A ``ReconciliationSession`` is created once per run and handed to the
reconciler and the pending-review aggregator. Nothing here outlives the
session or is shared between sessions.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..github.exceptions import GitHubError
from .concurrency import DEFAULT_CONCURRENCY
from .interfaces import IdentitySource, PullRequestSource
from .models import PullRequestReference, PullRequestStatus

logger = logging.getLogger(__name__)


class IdentityResolutionError(Exception):
    """Raised when the GitHub handle of the current user cannot be determined."""


class StatusCache:
    """Append-only map from ``"{repository}#{number}"`` to resolved status.

    Error statuses are cached like any other, so a reference that failed
    once is not retried within the same run.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PullRequestStatus] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> PullRequestStatus | None:
        return self._entries.get(key)

    async def get_or_resolve(
        self,
        reference: PullRequestReference,
        resolve: Callable[[PullRequestReference], Awaitable[PullRequestStatus]],
    ) -> PullRequestStatus:
        """Return the cached status for ``reference``, resolving it on first use."""
        cached = self._entries.get(reference.key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        status = await resolve(reference)
        self._entries[reference.key] = status
        return status


class UserHandleResolver:
    """Resolves the configured user's GitHub handle once per run.

    An explicit handle wins; otherwise the authenticated user's login is
    looked up and memoized.
    """

    def __init__(self, source: IdentitySource, explicit_handle: str | None = None):
        self._source = source
        self._handle = (explicit_handle or "").strip() or None
        self._explicit = self._handle is not None
        self._lock = asyncio.Lock()
        self._announced = False

    async def get(self) -> str:
        """Return the user handle.

        Raises:
            IdentityResolutionError: If no handle is configured and the
                identity lookup fails
        """
        if self._handle is None:
            async with self._lock:
                if self._handle is None:
                    try:
                        self._handle = await self._source.get_viewer_login()
                    except GitHubError as e:
                        raise IdentityResolutionError(
                            f"Failed to get current user: {e}. "
                            "Set GITHUB_HANDLE to specify your username."
                        ) from e

        if not self._announced:
            self._announced = True
            logger.info(f"Using GitHub handle: {self._handle}")
        return self._handle


class ReconciliationSession:
    """State owned by a single triage run."""

    def __init__(
        self,
        source: PullRequestSource,
        handle: str | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        """Create a session.

        Args:
            source: Pull request source of truth
            handle: Explicit GitHub handle; looked up via ``source`` if omitted
            concurrency: Maximum in-flight remote lookups per batch
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.source = source
        self.concurrency = concurrency
        self.cache = StatusCache()
        self._identity = UserHandleResolver(source, handle)

    async def user_handle(self) -> str:
        return await self._identity.get()
