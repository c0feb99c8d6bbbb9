"""Config Loader - Loads client configuration.

Handles loading YAML config files with environment variable substitution and
selecting the environment (base URL, default headers, TLS settings) a client
should talk to.

Example config:

    default_environment: production
    environments:
      production:
        base_url: https://kanjiapi.dev/v1/
        headers:
          X-Api-Key: ${KANJI_API_KEY}
      local:
        base_url: http://localhost:8000/
        verify_ssl: false
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from api_relay.errors import RelayError
from api_relay.models import ClientConfig, EnvironmentConfig


class ConfigError(RelayError):
    """Raised when configuration loading fails."""


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_client_config(config_path: Path) -> ClientConfig:
    """Load client configuration from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _substitute_env_vars(raw_config)

    try:
        config = ClientConfig.model_validate(raw_config)
    except Exception as e:
        raise ConfigError(f"Invalid config structure: {e}") from e

    if config.default_environment and config.default_environment not in config.environments:
        raise ConfigError(
            f"default_environment '{config.default_environment}' is not defined. "
            f"Available: {_available(config)}"
        )
    return config


def select_environment(config: ClientConfig, name: str | None = None) -> EnvironmentConfig:
    """Return the named environment, else the default one, else the only one."""
    if name is None:
        name = config.default_environment

    if name is None:
        if len(config.environments) == 1:
            return next(iter(config.environments.values()))
        raise ConfigError(
            f"No environment selected and no default_environment set. "
            f"Available: {_available(config)}"
        )

    if name not in config.environments:
        raise ConfigError(f"Environment '{name}' not found in config. Available: {_available(config)}")

    return config.environments[name]


def _available(config: ClientConfig) -> str:
    return ", ".join(config.environments.keys()) or "(none)"


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)
