"""Microsoft Graph mailbox backend."""

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

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

GRAPH_BASE = "https://graph.microsoft.com/v1.0"
BATCH_SIZE = 20
PAGE_SIZE = 100
TRASH_FOLDER = "deleteditems"


class GraphModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MailFolder(GraphModel):
    id: str
    display_name: str = Field(alias="displayName")
    child_folder_count: int = Field(default=0, alias="childFolderCount")


class GraphMessage(GraphModel):
    id: str
    subject: str | None = None
    received_at: datetime = Field(alias="receivedDateTime")
    web_link: str | None = Field(default=None, alias="webLink")


class GraphMailbox(HttpMailboxAdapter):
    """Reads and trashes messages through the Microsoft Graph REST API."""

    name = "graph"

    def __init__(
        self,
        auth: AuthProvider,
        sender: str = GITHUB_SENDER,
        base_url: str = GRAPH_BASE,
        timeout: int = 60,
    ) -> None:
        super().__init__(auth, sender, timeout)
        self.base_url = base_url.rstrip("/")

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}{endpoint}"

    async def _graph(
        self, method: str, endpoint: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        _, body = await self._send(
            method,
            self._url(endpoint),
            headers={"Content-Type": "application/json"},
            json=payload,
        )
        if not body:
            return {}
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise MailboxDecodeError(f"Invalid Graph response: {e}") from e
        if not isinstance(data, dict):
            raise MailboxDecodeError("Graph response is not a JSON object")
        return data

    async def _folders(self, endpoint: str) -> list[MailFolder]:
        data = await self._graph("GET", endpoint)
        try:
            return [MailFolder.model_validate(item) for item in data.get("value", [])]
        except ValidationError as e:
            raise MailboxDecodeError(f"Unexpected mail folder payload: {e}") from e

    async def find_github_folders(self) -> list[MailFolder]:
        """Children of the top-level ``github`` folder, or the folder itself."""
        top_level = await self._folders(f"/me/mailFolders?$top={PAGE_SIZE}")
        parent = next(
            (f for f in top_level if f.display_name.lower() == GITHUB_FOLDER), None
        )
        if parent is None:
            logger.info("No 'github' folder found in mailbox.")
            return []

        if parent.child_folder_count > 0:
            return await self._folders(
                f"/me/mailFolders/{parent.id}/childFolders?$top={PAGE_SIZE}"
            )
        return [parent]

    def _messages_endpoint(self, folder_id: str) -> str:
        return (
            f"/me/mailFolders/{folder_id}/messages?$top={PAGE_SIZE}"
            "&$select=id,subject,from,receivedDateTime,webLink"
            f"&$filter=from/emailAddress/address eq '{self.sender}'"
        )

    async def fetch(self, folder: str | None = None) -> list[NotificationEmail]:
        folders = select_folders(
            await self.find_github_folders(), lambda f: f.display_name, folder
        )
        if not folders:
            logger.info(
                f"No folder named '{folder}' found under github/"
                if folder
                else "No github subfolders found."
            )
            return []

        emails: list[NotificationEmail] = []
        for mail_folder in folders:
            logger.info(f"Scanning folder: github/{mail_folder.display_name}")
            endpoint: str | None = self._messages_endpoint(mail_folder.id)
            while endpoint:
                page = await self._graph("GET", endpoint)
                emails.extend(self._to_email(item) for item in page.get("value", []))
                endpoint = page.get("@odata.nextLink")
        return emails

    def _to_email(self, item: dict[str, Any]) -> NotificationEmail:
        try:
            message = GraphMessage.model_validate(item)
        except ValidationError as e:
            raise MailboxDecodeError(f"Unexpected message payload: {e}") from e

        subject = message.subject or ""
        repository, number = parse_pr_from_subject(subject)
        return NotificationEmail(
            id=message.id,
            subject=subject,
            received_at=message.received_at,
            repository=repository,
            pr_number=number,
            extra={"web_link": message.web_link},
        )

    async def move_to_trash(self, emails: Sequence[NotificationEmail]) -> MoveResult:
        result = MoveResult(requested=len(emails))
        total = len(emails)

        for start in range(0, total, BATCH_SIZE):
            batch = emails[start : start + BATCH_SIZE]
            requests = [
                {
                    "id": str(index + 1),
                    "method": "POST",
                    "url": f"/me/messages/{email.id}/move",
                    "headers": {"Content-Type": "application/json"},
                    "body": {"destinationId": TRASH_FOLDER},
                }
                for index, email in enumerate(batch)
            ]

            try:
                response = await self._graph("POST", "/$batch", {"requests": requests})
            except MailboxError as e:
                logger.warning(f"Batch move failed: {e}")
                result.failures.extend(MoveFailure(email.id, str(e)) for email in batch)
                continue

            self._record_batch(batch, response, result)
            logger.info(f"Moved {min(start + BATCH_SIZE, total)}/{total} emails to trash")

        return result

    def _record_batch(
        self,
        batch: Sequence[NotificationEmail],
        response: dict[str, Any],
        result: MoveResult,
    ) -> None:
        statuses = {
            str(item.get("id")): item for item in response.get("responses", []) or []
        }
        for index, email in enumerate(batch):
            item = statuses.get(str(index + 1))
            if item is None:
                result.failures.append(MoveFailure(email.id, "missing batch response"))
                continue

            status = int(item.get("status", 0))
            if status < 400:
                result.moved += 1
            elif status == 404:
                # already moved on an earlier attempt
                logger.debug(f"Message {email.id} already gone")
                result.moved += 1
            else:
                body = item.get("body") or {}
                error = body.get("error", {}) if isinstance(body, dict) else {}
                message = error.get("message") if isinstance(error, dict) else None
                result.failures.append(
                    MoveFailure(email.id, message or f"HTTP {status}")
                )
