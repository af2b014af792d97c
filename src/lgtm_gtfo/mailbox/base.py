"""Mailbox adapter contract shared by all backends."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ..triage.models import NotificationEmail

GITHUB_SENDER = "notifications@github.com"
GITHUB_FOLDER = "github"

F = TypeVar("F")


class MailboxError(Exception):
    """Base exception for mailbox backend errors."""


class MailboxRequestError(MailboxError):
    """Raised when a backend request fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MailboxDecodeError(MailboxError):
    """Raised when a backend response cannot be parsed."""


@dataclass(frozen=True)
class MoveFailure:
    """Emails that could not be moved; ``count`` > 1 when the backend only reports totals."""

    target: str
    error: str
    count: int = 1


@dataclass
class MoveResult:
    """Outcome of a move-to-trash call."""

    requested: int
    moved: int = 0
    failures: list[MoveFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(failure.count for failure in self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures


def select_folders(
    folders: Sequence[F], name_of: Callable[[F], str], folder: str | None
) -> list[F]:
    """Restrict ``folders`` to the one named ``folder`` (case-insensitive), if given."""
    if folder is None:
        return list(folders)
    wanted = folder.lower()
    return [candidate for candidate in folders if name_of(candidate).lower() == wanted]


class MailboxAdapter(ABC):
    """Reads GitHub notification emails and moves them to the trash."""

    name: str = "mailbox"

    def __init__(self, sender: str = GITHUB_SENDER) -> None:
        self.sender = sender

    async def __aenter__(self) -> "MailboxAdapter":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release backend resources."""
        return None

    @abstractmethod
    async def fetch(self, folder: str | None = None) -> list[NotificationEmail]:
        """Fetch notification emails from the ``github`` folder tree.

        Args:
            folder: Only scan the ``github/<folder>`` subfolder
        """

    @abstractmethod
    async def move_to_trash(self, emails: Sequence[NotificationEmail]) -> MoveResult:
        """Move ``emails`` to the trash.

        Per-item failures are collected in the result and never abort the
        remaining items. Emails that are already gone count as moved, so
        retrying a partially failed call is safe.
        """
