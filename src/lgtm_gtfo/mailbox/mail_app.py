"""macOS Mail.app backend driven through ``osascript``."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from ..triage.models import NotificationEmail
from .base import (
    GITHUB_FOLDER,
    GITHUB_SENDER,
    MailboxAdapter,
    MailboxDecodeError,
    MailboxError,
    MoveFailure,
    MoveResult,
)
from .subject import parse_pr_from_subject

logger = logging.getLogger(__name__)

OSASCRIPT = "osascript"
FIELD_SEPARATOR = "|||"

LIST_MAILBOXES_SCRIPT = """
set output to ""
tell application "Mail"
  repeat with acct in accounts
    set acctName to name of acct
    repeat with mbox in mailboxes of acct
      set mboxName to name of mbox
      if mboxName is "github" or mboxName is "GitHub" then
        set output to output & acctName & "|||" & mboxName & linefeed
        repeat with subMbox in mailboxes of mbox
          set output to output & acctName & "|||" & mboxName & "/" & (name of subMbox) & linefeed
        end repeat
      end if
    end repeat
  end repeat
end tell
return output
"""

LIST_MESSAGES_SCRIPT = """
set output to ""
tell application "Mail"
  set acct to account "{account}"
  set mbox to mailbox "{mailbox}" of acct
  set msgs to messages of mbox whose sender contains "{sender}"
  repeat with msg in msgs
    set msgDate to date received of msg
    set y to year of msgDate
    set m to (month of msgDate as integer)
    set d to day of msgDate
    set h to hours of msgDate
    set mi to minutes of msgDate
    set isoDate to (y as string) & "-" & (text -2 thru -1 of ("0" & m)) & "-" & (text -2 thru -1 of ("0" & d)) & "T" & (text -2 thru -1 of ("0" & h)) & ":" & (text -2 thru -1 of ("0" & mi)) & ":00"
    set output to output & (id of msg) & "|||" & (message id of msg) & "|||" & (subject of msg) & "|||" & isoDate & linefeed
  end repeat
end tell
return output
"""

MOVE_MESSAGES_SCRIPT = """
set movedCount to 0
set missingCount to 0
tell application "Mail"
  set acct to account "{account}"
  set mbox to mailbox "{mailbox}" of acct
  set trashMbox to missing value
  try
    set trashMbox to mailbox "Deleted Items" of acct
  end try
  if trashMbox is missing value then
    try
      set trashMbox to mailbox "Trash" of acct
    end try
  end if
  set targetIds to {{{ids}}}
  repeat with targetId in targetIds
    set msg to missing value
    try
      set msg to (first message of mbox whose id is targetId)
    end try
    if msg is missing value then
      set missingCount to missingCount + 1
    else
      try
        if trashMbox is not missing value then
          move msg to trashMbox
        else
          delete msg
        end if
        set movedCount to movedCount + 1
      end try
    end if
  end repeat
end tell
return (movedCount as string) & "|||" & (missingCount as string)
"""


class AppleScriptError(MailboxError):
    """Raised when ``osascript`` exits with a non-zero status."""


@dataclass(frozen=True)
class MailAppMailbox:
    account: str
    path: str

    @property
    def is_child(self) -> bool:
        return "/" in self.path


def escape_applescript(value: str) -> str:
    r"""Escape a value for use inside an AppleScript string literal.

    >>> escape_applescript('say "hi" \\ bye')
    'say \\"hi\\" \\\\ bye'
    """
    return value.replace("\\", "\\\\").replace('"', '\\"')


def parse_mailboxes(output: str) -> list[MailAppMailbox]:
    mailboxes = []
    for line in output.splitlines():
        if FIELD_SEPARATOR not in line:
            continue
        account, path = line.split(FIELD_SEPARATOR, 1)
        mailboxes.append(MailAppMailbox(account.strip(), path.strip()))
    return mailboxes


def parse_move_counts(output: str) -> tuple[int, int]:
    """Parse the ``moved|||missing`` pair printed by the move script."""
    moved, _, missing = output.strip().partition(FIELD_SEPARATOR)
    try:
        return int(moved or 0), int(missing or 0)
    except ValueError:
        return 0, 0


class MailAppAdapter(MailboxAdapter):
    """Reads and trashes messages in the local macOS Mail.app."""

    name = "mail-app"

    def __init__(self, sender: str = GITHUB_SENDER, executable: str = OSASCRIPT) -> None:
        super().__init__(sender)
        self.executable = executable

    async def run_script(self, script: str) -> str:
        """Run an AppleScript and return its trimmed stdout.

        Raises:
            AppleScriptError: If ``osascript`` fails or cannot be started
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                "-e",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AppleScriptError(f"Cannot run {self.executable}: {e}") from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise AppleScriptError(
                f"AppleScript error: {stderr.decode(errors='replace').strip()}"
            )
        return stdout.decode(errors="replace").strip()

    async def find_github_mailboxes(self) -> list[MailAppMailbox]:
        return parse_mailboxes(await self.run_script(LIST_MAILBOXES_SCRIPT))

    def _select(
        self, mailboxes: list[MailAppMailbox], folder: str | None
    ) -> list[MailAppMailbox]:
        if folder:
            wanted = {folder.lower(), f"{GITHUB_FOLDER}/{folder}".lower()}
            return [m for m in mailboxes if m.path.lower() in wanted]

        children = [m for m in mailboxes if m.is_child]
        if children:
            return children
        parents = [m for m in mailboxes if not m.is_child]
        if parents:
            logger.info(
                "Found 'github' folder but no subfolders. Scanning main github folder..."
            )
        return parents

    async def fetch(self, folder: str | None = None) -> list[NotificationEmail]:
        mailboxes = await self.find_github_mailboxes()
        if not mailboxes:
            logger.info(
                "No 'github' mailbox found in Mail.app. "
                "Make sure you have a folder named 'github'."
            )
            return []

        targets = self._select(mailboxes, folder)
        if not targets:
            if folder:
                logger.info(f"No folder named '{folder}' found under github/")
            return []

        emails: list[NotificationEmail] = []
        for mailbox in targets:
            logger.info(f"Scanning mailbox: {mailbox.path} ({mailbox.account})")
            script = LIST_MESSAGES_SCRIPT.format(
                account=escape_applescript(mailbox.account),
                mailbox=escape_applescript(mailbox.path),
                sender=escape_applescript(self.sender),
            )
            try:
                output = await self.run_script(script)
            except AppleScriptError as e:
                logger.warning(f"Error scanning {mailbox.path}: {e}")
                continue
            emails.extend(self.parse_messages(output, mailbox))
        return emails

    @staticmethod
    def parse_messages(output: str, mailbox: MailAppMailbox) -> list[NotificationEmail]:
        """Parse ``id|||message-id|||subject|||date`` lines.

        Dates carry no offset and are interpreted as local time.
        """
        emails = []
        for line in output.splitlines():
            parts = line.split(FIELD_SEPARATOR)
            if len(parts) < 4:
                continue
            # subjects may themselves contain the separator
            item_id, message_id = parts[0].strip(), parts[1].strip()
            subject = FIELD_SEPARATOR.join(parts[2:-1]).strip()
            try:
                received_at = datetime.fromisoformat(parts[-1].strip())
            except ValueError as e:
                raise MailboxDecodeError(f"Invalid date in Mail.app output: {line!r}") from e

            repository, number = parse_pr_from_subject(subject)
            emails.append(
                NotificationEmail(
                    id=item_id,
                    subject=subject,
                    received_at=received_at,
                    repository=repository,
                    pr_number=number,
                    extra={
                        "message_id": message_id,
                        "account": mailbox.account,
                        "mailbox": mailbox.path,
                    },
                )
            )
        return emails

    async def move_to_trash(self, emails: Sequence[NotificationEmail]) -> MoveResult:
        result = MoveResult(requested=len(emails))
        groups: dict[tuple[str, str], list[NotificationEmail]] = defaultdict(list)
        for email in emails:
            groups[(email.extra.get("account", ""), email.extra.get("mailbox", ""))].append(
                email
            )

        for (account, mailbox), group in groups.items():
            ids = ", ".join(email.id for email in group if email.id.isdigit())
            script = MOVE_MESSAGES_SCRIPT.format(
                account=escape_applescript(account),
                mailbox=escape_applescript(mailbox),
                ids=ids,
            )
            try:
                output = await self.run_script(script)
            except AppleScriptError as e:
                logger.warning(f"Error moving emails from {mailbox}: {e}")
                result.failures.append(MoveFailure(mailbox, str(e), count=len(group)))
                continue

            moved, missing = parse_move_counts(output)
            if missing:
                # Already gone, e.g. trashed by an earlier run.
                logger.warning(
                    f"{missing} emails in {mailbox} were not found; treating as moved"
                )
            result.moved += moved + missing
            shortfall = len(group) - moved - missing
            if shortfall > 0:
                result.failures.append(
                    MoveFailure(
                        mailbox,
                        f"expected {len(group)}, moved {moved}",
                        count=shortfall,
                    )
                )
            logger.info(f"Moved {result.moved}/{len(emails)} emails to trash")

        if result.failures:
            logger.warning(
                f"Warnings: {len(result.failures)} issues occurred during deletion"
            )
        return result
