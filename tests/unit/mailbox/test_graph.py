"""
Unit tests for the Microsoft Graph mailbox backend.

Why: Graph is the default backend; folder discovery, paging and batched
     moves must behave even when individual batch items fail.

What: Tests GraphMailbox.fetch and GraphMailbox.move_to_trash.

How: Uses aioresponses to stub Graph endpoints.
"""

from datetime import UTC, datetime

import pytest
from aioresponses import aioresponses
from helpers import make_email

from lgtm_gtfo.auth import BearerTokenAuth
from lgtm_gtfo.mailbox.base import MailboxDecodeError, MailboxRequestError
from lgtm_gtfo.mailbox.graph import GRAPH_BASE, GraphMailbox

FOLDERS = f"{GRAPH_BASE}/me/mailFolders?$top=100"


def _messages(folder_id: str) -> str:
    return (
        f"{GRAPH_BASE}/me/mailFolders/{folder_id}/messages?$top=100"
        "&$select=id,subject,from,receivedDateTime,webLink"
        "&$filter=from/emailAddress/address eq 'notifications@github.com'"
    )


def _message(message_id: str, subject: str) -> dict:
    return {
        "id": message_id,
        "subject": subject,
        "receivedDateTime": "2024-03-01T12:00:00Z",
        "webLink": f"https://outlook.office.com/{message_id}",
    }


@pytest.fixture
def mailbox() -> GraphMailbox:
    return GraphMailbox(BearerTokenAuth("graph-token"))


def _with_github_children(mocked: aioresponses) -> None:
    mocked.get(
        FOLDERS,
        payload={
            "value": [
                {"id": "inbox", "displayName": "Inbox", "childFolderCount": 0},
                {"id": "gh", "displayName": "GitHub", "childFolderCount": 2},
            ]
        },
    )
    mocked.get(
        f"{GRAPH_BASE}/me/mailFolders/gh/childFolders?$top=100",
        payload={
            "value": [
                {"id": "f1", "displayName": "octo"},
                {"id": "f2", "displayName": "Other"},
            ]
        },
    )


class TestGraphFetch:
    """Test fetching notification emails."""

    @pytest.mark.asyncio
    async def test_fetch_all_subfolders_with_paging(self, mailbox: GraphMailbox) -> None:
        """
        Why: Large folders are paged and every subfolder must be scanned.
        What: Tests fetch follows @odata.nextLink and parses subjects.
        How: Stubs two subfolders, one of them with two pages.
        """
        next_page = f"{GRAPH_BASE}/me/mailFolders/f1/messages?$skip=100"
        with aioresponses() as mocked:
            _with_github_children(mocked)
            mocked.get(
                _messages("f1"),
                payload={
                    "value": [_message("m1", "[octo/repo] Fix it (#1)")],
                    "@odata.nextLink": next_page,
                },
            )
            mocked.get(
                next_page,
                payload={"value": [_message("m2", "[octo/repo] Run failed: CI - main")]},
            )
            mocked.get(
                _messages("f2"),
                payload={"value": [_message("m3", "Re: [octo/other] Tweak (#9)")]},
            )

            async with mailbox:
                emails = await mailbox.fetch()

        assert [e.id for e in emails] == ["m1", "m2", "m3"]
        assert (emails[0].repository, emails[0].pr_number) == ("octo/repo", 1)
        assert not emails[1].is_pr_email
        assert emails[2].reference is not None and emails[2].reference.key == "octo/other#9"
        assert emails[0].received_at == datetime(2024, 3, 1, 12, tzinfo=UTC)
        assert emails[0].extra["web_link"] == "https://outlook.office.com/m1"

    @pytest.mark.asyncio
    async def test_fetch_single_folder(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            _with_github_children(mocked)
            mocked.get(_messages("f2"), payload={"value": [_message("m3", "x")]})

            async with mailbox:
                emails = await mailbox.fetch("other")

        assert [e.id for e in emails] == ["m3"]

    @pytest.mark.asyncio
    async def test_unknown_folder_returns_nothing(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            _with_github_children(mocked)

            async with mailbox:
                assert await mailbox.fetch("missing") == []

    @pytest.mark.asyncio
    async def test_github_folder_without_children(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            mocked.get(
                FOLDERS,
                payload={"value": [{"id": "gh", "displayName": "github"}]},
            )
            mocked.get(_messages("gh"), payload={"value": [_message("m1", "x")]})

            async with mailbox:
                emails = await mailbox.fetch()

        assert [e.id for e in emails] == ["m1"]

    @pytest.mark.asyncio
    async def test_no_github_folder(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            mocked.get(FOLDERS, payload={"value": [{"id": "inbox", "displayName": "Inbox"}]})

            async with mailbox:
                assert await mailbox.fetch() == []

    @pytest.mark.asyncio
    async def test_error_status_raises(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            mocked.get(FOLDERS, status=401, body="InvalidAuthenticationToken")

            with pytest.raises(MailboxRequestError) as exc_info:
                async with mailbox:
                    await mailbox.fetch()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            mocked.get(FOLDERS, body="<html>", content_type="text/html")

            with pytest.raises(MailboxDecodeError):
                async with mailbox:
                    await mailbox.fetch()

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            mocked.get(FOLDERS, payload={"value": []})

            async with mailbox:
                await mailbox.fetch()

            request = next(iter(mocked.requests.values()))[0]

        assert request.kwargs["headers"]["Authorization"] == "Bearer graph-token"


class TestGraphMoveToTrash:
    """Test batched moves to Deleted Items."""

    @pytest.mark.asyncio
    async def test_batch_statuses(self, mailbox: GraphMailbox) -> None:
        """
        Why: One bad message must not abort the rest of the batch, and a
             message that is already gone should not be reported as a failure.
        What: Tests success, 404 and error statuses inside one $batch call.
        How: Stubs a $batch response with mixed per-item statuses.
        """
        emails = [make_email(f"m{i}", "x") for i in range(1, 5)]
        with aioresponses() as mocked:
            mocked.post(
                f"{GRAPH_BASE}/$batch",
                payload={
                    "responses": [
                        {"id": "1", "status": 201},
                        {"id": "2", "status": 404},
                        {
                            "id": "3",
                            "status": 403,
                            "body": {"error": {"message": "Access denied"}},
                        },
                    ]
                },
            )

            async with mailbox:
                result = await mailbox.move_to_trash(emails)

            request = next(iter(mocked.requests.values()))[0]

        assert result.requested == 4
        assert result.moved == 2
        assert [(f.target, f.error) for f in result.failures] == [
            ("m3", "Access denied"),
            ("m4", "missing batch response"),
        ]
        requests = request.kwargs["json"]["requests"]
        assert requests[0] == {
            "id": "1",
            "method": "POST",
            "url": "/me/messages/m1/move",
            "headers": {"Content-Type": "application/json"},
            "body": {"destinationId": "deleteditems"},
        }

    @pytest.mark.asyncio
    async def test_failed_batch_continues(self, mailbox: GraphMailbox) -> None:
        emails = [make_email(f"m{i}", "x") for i in range(25)]
        with aioresponses() as mocked:
            mocked.post(f"{GRAPH_BASE}/$batch", status=503, body="unavailable")
            mocked.post(
                f"{GRAPH_BASE}/$batch",
                payload={"responses": [{"id": str(i), "status": 201} for i in range(1, 6)]},
            )

            async with mailbox:
                result = await mailbox.move_to_trash(emails)

        assert result.moved == 5
        assert result.failed == 20
        assert not result.ok
        assert result.failures[0].target == "m0"

    @pytest.mark.asyncio
    async def test_status_without_message(self, mailbox: GraphMailbox) -> None:
        with aioresponses() as mocked:
            mocked.post(
                f"{GRAPH_BASE}/$batch",
                payload={"responses": [{"id": "1", "status": 500, "body": None}]},
            )

            async with mailbox:
                result = await mailbox.move_to_trash([make_email("m1", "x")])

        assert result.failures[0].error == "HTTP 500"

    @pytest.mark.asyncio
    async def test_empty_move(self, mailbox: GraphMailbox) -> None:
        result = await mailbox.move_to_trash([])

        assert result.requested == 0
        assert result.ok
