"""Configuration loading.

The loading hierarchy is:
1. Default values from Pydantic models
2. Configuration file (YAML)
3. Environment variables
4. Command-line overrides
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationFileError, ConfigurationValidationError
from .models import AppConfig, Backend

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "lgtm.yaml"
CONFIG_PATH_ENV = "LGTM_CONFIG_PATH"

# environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "GITHUB_TOKEN": ("github", "token"),
    "GITHUB_HANDLE": ("github", "handle"),
    "LGTM_BACKEND": ("mailbox", "backend"),
    "MS_GRAPH_TOKEN": ("mailbox", "graph_token"),
    "MS_EWS_TOKEN": ("mailbox", "ews_token"),
}


def merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``.

    ``None`` override values are ignored so unset CLI flags never clobber
    file or environment values.
    """
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigurationLoader:
    """Builds an ``AppConfig`` from file, environment and overrides."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ
        self._config_file_path: Path | None = None

    @property
    def config_file_path(self) -> Path | None:
        return self._config_file_path

    def read_file(self, config_path: str | Path) -> dict[str, Any]:
        """Read a YAML configuration file into a dictionary.

        Raises:
            ConfigurationFileError: If file cannot be read or parsed
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigurationFileError(
                f"Configuration file not found: {config_path}", str(config_path)
            )

        if not config_path.is_file():
            raise ConfigurationFileError(
                f"Configuration path is not a file: {config_path}", str(config_path)
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationFileError(
                f"Failed to parse YAML configuration: {e}", str(config_path)
            ) from e
        except OSError as e:
            raise ConfigurationFileError(
                f"Failed to read configuration file: {e}", str(config_path)
            ) from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigurationFileError(
                "Configuration file must contain a mapping", str(config_path)
            )

        self._config_file_path = config_path.resolve()
        return config_data

    def find_config_file(self, filename: str = CONFIG_FILENAME) -> Path | None:
        """Find configuration file in standard locations.

        Search order:
        1. Current working directory
        2. LGTM_CONFIG_PATH environment variable (file or directory)
        3. ~/.lgtm/
        """
        search_paths = [Path.cwd() / filename]

        env_path_str = self._environ.get(CONFIG_PATH_ENV)
        if env_path_str:
            env_path = Path(env_path_str)
            search_paths.append(env_path if env_path.is_file() else env_path / filename)

        search_paths.append(Path.home() / ".lgtm" / filename)

        for path in search_paths:
            if path.exists() and path.is_file():
                return path
        return None

    def env_overrides(self) -> dict[str, Any]:
        overrides: dict[str, dict[str, Any]] = {}
        for var_name, (section, key) in ENV_OVERRIDES.items():
            value = self._environ.get(var_name)
            if value:
                overrides.setdefault(section, {})[key] = value
        return overrides

    def load(
        self,
        config_path: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> AppConfig:
        """Load configuration.

        Args:
            config_path: Explicit YAML file; must exist when given
            overrides: Nested values that win over file and environment

        Raises:
            ConfigurationFileError: If an explicit file is missing or unreadable
            ConfigurationValidationError: If the merged values are invalid
        """
        if config_path is not None:
            data = self.read_file(config_path)
        else:
            found = self.find_config_file()
            data = self.read_file(found) if found else {}

        if self._config_file_path:
            logger.debug(f"Loaded configuration from {self._config_file_path}")

        data = merge(data, self.env_overrides())
        data = merge(data, overrides or {})

        try:
            return AppConfig.model_validate(data)
        except (ValidationError, ValueError) as e:
            raise ConfigurationValidationError(
                f"Configuration validation failed: {e}",
                validation_errors=e.errors() if isinstance(e, ValidationError) else [],
            ) from e


def validate_runtime(config: AppConfig, pending: bool = False) -> None:
    """Check the credentials a run needs before any network traffic.

    Raises:
        ConfigurationValidationError: If a required credential is missing
    """
    if not config.github.token:
        raise ConfigurationValidationError(
            "GitHub token required: set GITHUB_TOKEN or github.token"
        )

    if pending:
        return

    backend = config.mailbox.backend
    if backend is Backend.GRAPH and not config.mailbox.graph_token:
        raise ConfigurationValidationError(
            "Graph backend requires a token: set MS_GRAPH_TOKEN or mailbox.graph_token"
        )
    if backend is Backend.EWS and not config.mailbox.ews_token:
        raise ConfigurationValidationError(
            "EWS backend requires a token: set MS_EWS_TOKEN or mailbox.ews_token"
        )


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """Load configuration from the standard sources."""
    return ConfigurationLoader().load(config_path, overrides)
