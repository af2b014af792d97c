"""Configuration management for lgtm-gtfo."""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
)
from .loader import ConfigurationLoader, load_config, validate_runtime
from .models import (
    AppConfig,
    Backend,
    GitHubSettings,
    LogLevel,
    MailboxSettings,
    PolicySettings,
)

__all__ = [
    "AppConfig",
    "Backend",
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationValidationError",
    "GitHubSettings",
    "LogLevel",
    "MailboxSettings",
    "PolicySettings",
    "load_config",
    "validate_runtime",
]
