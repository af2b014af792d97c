"""Exchange Web Services (SOAP) mailbox backend."""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from xml.sax.saxutils import quoteattr

from ..auth import AuthProvider
from ..triage.models import NotificationEmail
from .base import (
    GITHUB_FOLDER,
    GITHUB_SENDER,
    MailboxDecodeError,
    MailboxError,
    MoveFailure,
    MoveResult,
    select_folders,
)
from .http import HttpMailboxAdapter
from .subject import parse_pr_from_subject

logger = logging.getLogger(__name__)

EWS_URL = "https://outlook.office365.com/EWS/Exchange.asmx"
SERVER_VERSION = "Exchange2016"
BATCH_SIZE = 50
MAX_ENTRIES = 1000
ITEM_NOT_FOUND = "ErrorItemNotFound"

NAMESPACES = {
    "soap": "http://schemas.xmlsoap.org/soap/envelope/",
    "t": "http://schemas.microsoft.com/exchange/services/2006/types",
    "m": "http://schemas.microsoft.com/exchange/services/2006/messages",
}

ENVELOPE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="{soap}" xmlns:t="{t}" xmlns:m="{m}">
  <soap:Header>
    <t:RequestServerVersion Version="{version}"/>
  </soap:Header>
  <soap:Body>
    {body}
  </soap:Body>
</soap:Envelope>"""


@dataclass(frozen=True)
class EwsFolder:
    id: str
    change_key: str
    display_name: str


def soap_envelope(body: str) -> str:
    return ENVELOPE.format(version=SERVER_VERSION, body=body, **NAMESPACES)


def find_folder_body(parent: str, deep: bool) -> str:
    """FindFolder request; ``parent`` is a pre-rendered folder id element."""
    traversal = "Deep" if deep else "Shallow"
    return f"""<m:FindFolder Traversal="{traversal}">
      <m:FolderShape><t:BaseShape>Default</t:BaseShape></m:FolderShape>
      <m:ParentFolderIds>{parent}</m:ParentFolderIds>
    </m:FindFolder>"""


def find_item_body(folder_id: str, sender: str) -> str:
    return f"""<m:FindItem Traversal="Shallow">
      <m:ItemShape>
        <t:BaseShape>Default</t:BaseShape>
        <t:AdditionalProperties>
          <t:FieldURI FieldURI="item:Subject"/>
          <t:FieldURI FieldURI="item:DateTimeReceived"/>
          <t:FieldURI FieldURI="message:From"/>
        </t:AdditionalProperties>
      </m:ItemShape>
      <m:IndexedPageItemView MaxEntriesReturned="{MAX_ENTRIES}" Offset="0" BasePoint="Beginning"/>
      <m:Restriction>
        <t:Contains ContainmentMode="Substring" ContainmentComparison="IgnoreCase">
          <t:FieldURI FieldURI="message:From"/>
          <t:Constant Value={quoteattr(sender)}/>
        </t:Contains>
      </m:Restriction>
      <m:ParentFolderIds><t:FolderId Id={quoteattr(folder_id)}/></m:ParentFolderIds>
    </m:FindItem>"""


def move_item_body(emails: Sequence[NotificationEmail]) -> str:
    item_ids = "\n".join(
        f"<t:ItemId Id={quoteattr(email.id)} "
        f"ChangeKey={quoteattr(str(email.extra.get('change_key', '')))}/>"
        for email in emails
    )
    return f"""<m:MoveItem>
      <m:ToFolderId><t:DistinguishedFolderId Id="deleteditems"/></m:ToFolderId>
      <m:ItemIds>{item_ids}</m:ItemIds>
    </m:MoveItem>"""


def parse_folders(root: ET.Element) -> list[EwsFolder]:
    folders = []
    for element in root.iterfind(".//t:Folder", NAMESPACES):
        folder_id = element.find("t:FolderId", NAMESPACES)
        name = element.findtext("t:DisplayName", namespaces=NAMESPACES)
        if folder_id is None or not name:
            continue
        folders.append(
            EwsFolder(
                id=folder_id.get("Id", ""),
                change_key=folder_id.get("ChangeKey", ""),
                display_name=name,
            )
        )
    return folders


class EwsMailbox(HttpMailboxAdapter):
    """Reads and trashes messages through Exchange Web Services."""

    name = "ews"

    def __init__(
        self,
        auth: AuthProvider,
        sender: str = GITHUB_SENDER,
        url: str = EWS_URL,
        timeout: int = 60,
    ) -> None:
        super().__init__(auth, sender, timeout)
        self.url = url

    async def _call(self, body: str) -> ET.Element:
        _, text = await self._send(
            "POST",
            self.url,
            headers={"Content-Type": "text/xml; charset=utf-8"},
            data=soap_envelope(body).encode("utf-8"),
        )
        try:
            return ET.fromstring(text)
        except ET.ParseError as e:
            raise MailboxDecodeError(f"Failed to parse EWS response XML: {e}") from e

    async def find_github_folder(self) -> EwsFolder | None:
        root = await self._call(
            find_folder_body('<t:DistinguishedFolderId Id="msgfolderroot"/>', deep=True)
        )
        for folder in parse_folders(root):
            if folder.display_name.lower() == GITHUB_FOLDER:
                return folder
        return None

    async def find_subfolders(self, parent: EwsFolder) -> list[EwsFolder]:
        root = await self._call(
            find_folder_body(f"<t:FolderId Id={quoteattr(parent.id)}/>", deep=False)
        )
        return parse_folders(root)

    async def fetch(self, folder: str | None = None) -> list[NotificationEmail]:
        github = await self.find_github_folder()
        if github is None:
            logger.info("No 'github' folder found in mailbox.")
            return []

        candidates = await self.find_subfolders(github) or [github]
        folders = select_folders(candidates, lambda f: f.display_name, folder)
        if not folders:
            logger.info(
                f"No folder named '{folder}' found under github/"
                if folder
                else "No github subfolders found."
            )
            return []

        emails: list[NotificationEmail] = []
        for ews_folder in folders:
            logger.info(f"Scanning folder: github/{ews_folder.display_name}")
            root = await self._call(find_item_body(ews_folder.id, self.sender))
            emails.extend(self._parse_messages(root))
        return emails

    def _parse_messages(self, root: ET.Element) -> list[NotificationEmail]:
        emails = []
        for message in root.iterfind(".//t:Message", NAMESPACES):
            item_id = message.find("t:ItemId", NAMESPACES)
            if item_id is None:
                continue

            subject = message.findtext("t:Subject", default="", namespaces=NAMESPACES)
            received = message.findtext("t:DateTimeReceived", namespaces=NAMESPACES)
            try:
                received_at = datetime.fromisoformat(received or "")
            except ValueError as e:
                raise MailboxDecodeError(
                    f"Invalid DateTimeReceived {received!r}"
                ) from e

            repository, number = parse_pr_from_subject(subject)
            emails.append(
                NotificationEmail(
                    id=item_id.get("Id", ""),
                    subject=subject,
                    received_at=received_at,
                    repository=repository,
                    pr_number=number,
                    extra={"change_key": item_id.get("ChangeKey", "")},
                )
            )
        return emails

    async def move_to_trash(self, emails: Sequence[NotificationEmail]) -> MoveResult:
        result = MoveResult(requested=len(emails))
        total = len(emails)

        for start in range(0, total, BATCH_SIZE):
            batch = emails[start : start + BATCH_SIZE]
            try:
                root = await self._call(move_item_body(batch))
            except MailboxError as e:
                logger.warning(f"Batch move failed: {e}")
                result.failures.extend(MoveFailure(email.id, str(e)) for email in batch)
                continue

            self._record_batch(batch, root, result)
            logger.info(f"Moved {min(start + BATCH_SIZE, total)}/{total} emails to trash")

        return result

    def _record_batch(
        self, batch: Sequence[NotificationEmail], root: ET.Element, result: MoveResult
    ) -> None:
        # one response message per requested item, in request order
        messages = root.findall(".//m:MoveItemResponseMessage", NAMESPACES)
        for index, email in enumerate(batch):
            if index >= len(messages):
                result.failures.append(MoveFailure(email.id, "missing response message"))
                continue

            message = messages[index]
            code = message.findtext("m:ResponseCode", default="", namespaces=NAMESPACES)
            if message.get("ResponseClass") != "Error":
                result.moved += 1
            elif code == ITEM_NOT_FOUND:
                logger.debug(f"Item {email.id} already gone")
                result.moved += 1
            else:
                text = message.findtext("m:MessageText", namespaces=NAMESPACES)
                result.failures.append(MoveFailure(email.id, text or code or "Error"))
