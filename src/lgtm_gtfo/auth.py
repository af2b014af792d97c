"""Token providers for the GitHub and mailbox HTTP clients.

Tokens are plain configuration values; acquiring or refreshing them (OAuth
device or browser flows) happens outside this package.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass


class AuthenticationError(Exception):
    """Raised when a token is missing or no longer usable."""


@dataclass
class AuthToken:
    """Authentication token with metadata."""

    token: str
    token_type: str = "Bearer"
    expires_at: int | None = None

    @property
    def is_expired(self) -> bool:
        """Check if token is expired."""
        if self.expires_at is None:
            return False
        return time.time() >= self.expires_at

    def to_header(self) -> dict[str, str]:
        """Convert to authorization header."""
        return {"Authorization": f"{self.token_type} {self.token}"}


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    async def get_token(self) -> AuthToken:
        """Get authentication token."""
        pass

    @abstractmethod
    async def validate_token(self) -> bool:
        """Validate current token."""
        pass


class PersonalAccessTokenAuth(AuthProvider):
    """GitHub Personal Access Token, sent as ``token <value>``."""

    def __init__(self, token: str):
        if not token:
            raise AuthenticationError("Personal Access Token is required")
        self._token = AuthToken(token=token, token_type="token")  # nosec B106

    async def get_token(self) -> AuthToken:
        return self._token

    async def validate_token(self) -> bool:
        return True


class BearerTokenAuth(AuthProvider):
    """Pre-acquired OAuth bearer token (Microsoft Graph, EWS)."""

    DEFAULT_TOKEN_TYPE = "Bearer"  # nosec B105

    def __init__(
        self,
        token: str,
        token_type: str | None = None,
        expires_at: int | None = None,
    ):
        """Initialize bearer token authentication.

        Args:
            token: Access token
            token_type: Authorization scheme. Uses Bearer by default.
            expires_at: Unix timestamp after which the token is rejected
        """
        if not token:
            raise AuthenticationError("Access token is required")
        self._token = AuthToken(
            token=token,
            token_type=token_type or self.DEFAULT_TOKEN_TYPE,
            expires_at=expires_at,
        )

    async def get_token(self) -> AuthToken:
        if self._token.is_expired:
            raise AuthenticationError(
                "Access token has expired; acquire a new one and update configuration"
            )
        return self._token

    async def validate_token(self) -> bool:
        return not self._token.is_expired
