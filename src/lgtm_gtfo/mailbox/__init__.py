"""Mailbox backends for GitHub notification emails."""

from .base import (
    GITHUB_FOLDER,
    GITHUB_SENDER,
    MailboxAdapter,
    MailboxDecodeError,
    MailboxError,
    MailboxRequestError,
    MoveFailure,
    MoveResult,
)
from .ews import EwsMailbox
from .graph import GraphMailbox
from .mail_app import AppleScriptError, MailAppAdapter
from .subject import parse_pr_from_subject

__all__ = [
    "GITHUB_FOLDER",
    "GITHUB_SENDER",
    "AppleScriptError",
    "EwsMailbox",
    "GraphMailbox",
    "MailAppAdapter",
    "MailboxAdapter",
    "MailboxDecodeError",
    "MailboxError",
    "MailboxRequestError",
    "MoveFailure",
    "MoveResult",
    "parse_pr_from_subject",
]
