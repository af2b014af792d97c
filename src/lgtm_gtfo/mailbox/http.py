"""Shared aiohttp plumbing for HTTP-based mailbox backends."""

import asyncio
import logging
from typing import Any

import aiohttp

from ..auth import AuthProvider
from .base import GITHUB_SENDER, MailboxAdapter, MailboxRequestError

logger = logging.getLogger(__name__)


class HttpMailboxAdapter(MailboxAdapter):
    """Mailbox adapter that talks to its backend over authenticated HTTP."""

    def __init__(
        self,
        auth: AuthProvider,
        sender: str = GITHUB_SENDER,
        timeout: int = 60,
    ) -> None:
        super().__init__(sender)
        self.auth = auth
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(
                        timeout=aiohttp.ClientTimeout(total=self.timeout)
                    )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> tuple[int, str]:
        """Send a request and return ``(status, body text)``.

        Raises:
            MailboxRequestError: On connection failure or an error status
        """
        session = await self._ensure_session()
        token = await self.auth.get_token()
        request_headers = {**token.to_header(), **(headers or {})}

        try:
            async with session.request(
                method, url, headers=request_headers, **kwargs
            ) as response:
                body = await response.text()
                if response.status >= 400:
                    raise MailboxRequestError(
                        f"{self.name} request failed: {response.status} {body[:500]}",
                        response.status,
                    )
                logger.debug(f"{self.name} {method} {url} -> {response.status}")
                return response.status, body
        except TimeoutError as e:
            raise MailboxRequestError(f"{self.name} request timed out: {url}") from e
        except aiohttp.ClientError as e:
            raise MailboxRequestError(f"{self.name} connection error: {e}") from e
