"""Pydantic configuration models for lgtm-gtfo.

The configuration hierarchy follows this structure:
- AppConfig: Root configuration
- GitHubSettings: API access and identity
- PolicySettings: Deletion policy and pending-review defaults
- MailboxSettings: Mailbox backend selection and credentials

Environment variables are substituted using the format ${VAR_NAME} with
optional defaults: ${VAR_NAME:default_value}
"""

import os
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Backend(str, Enum):
    """Supported mailbox backends."""

    GRAPH = "graph"
    EWS = "ews"
    MAIL_APP = "mail-app"

    @property
    def display_name(self) -> str:
        return {
            Backend.GRAPH: "Microsoft Graph API",
            Backend.EWS: "Exchange Web Services",
            Backend.MAIL_APP: "Mail.app (AppleScript)",
        }[self]


def substitute_env(value: Any) -> Any:
    """Expand ``${VAR}`` and ``${VAR:default}`` in strings, recursively.

    Raises:
        ValueError: If a variable without default is not set
    """
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            var_name, default_value = match.group(1), match.group(2)
            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Required environment variable '{var_name}' not found")

        return ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_env(item) for item in value]
    return value


class BaseConfigModel(BaseModel):
    """Base configuration model with environment variable substitution."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def substitute_env_vars(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: substitute_env(value) for key, value in values.items()}


class GitHubSettings(BaseConfigModel):
    """GitHub API access settings."""

    token: str | None = Field(default=None, description="GitHub API token")

    handle: str | None = Field(
        default=None,
        description="GitHub handle to triage for; looked up from the token if unset",
    )

    api_url: str = Field(
        default="https://api.github.com", description="GitHub API base URL"
    )

    timeout: int = Field(default=30, ge=1, le=300, description="Request timeout")

    max_retries: int = Field(default=3, ge=0, le=10)

    max_concurrency: int = Field(
        default=10, ge=1, le=100, description="Maximum in-flight GitHub lookups"
    )

    @field_validator("token", "handle")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_url must be an http(s) URL")
        return v.rstrip("/")


class PolicySettings(BaseConfigModel):
    """Deletion policy defaults; CLI flags switch these on per run."""

    skip_mentions: bool = False
    skip_review_requests: bool = False
    ci_days: int | None = Field(
        default=None, ge=0, description="Delete CI emails older than this many days"
    )
    exclude_bots: bool = Field(
        default=False, description="Hide bot-authored PRs from the pending report"
    )


class MailboxSettings(BaseConfigModel):
    """Mailbox backend selection and credentials."""

    backend: Backend = Backend.GRAPH

    folder: str | None = Field(
        default=None, description="Only scan this subfolder under github/"
    )

    graph_token: str | None = Field(default=None, description="Microsoft Graph token")

    ews_token: str | None = Field(default=None, description="EWS OAuth token")

    ews_url: str = "https://outlook.office365.com/EWS/Exchange.asmx"

    sender: str = "notifications@github.com"

    @field_validator("graph_token", "ews_token", "folder")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()


class AppConfig(BaseConfigModel):
    """Root configuration."""

    github: GitHubSettings = Field(default_factory=GitHubSettings)

    policy: PolicySettings = Field(default_factory=PolicySettings)

    mailbox: MailboxSettings = Field(default_factory=MailboxSettings)

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
