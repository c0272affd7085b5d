"""Configuration management for Lifespeed."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .exceptions import ConfigError
from .models import (
    CacheSettings,
    CLIOptions,
    JournalSettings,
    LifespeedConfig,
    LoggingSettings,
    WatchSettings,
)
from .resolver import (
    ENV_PREFIX,
    expand_dotted,
    flatten_for_env,
    merge_layers,
    parse_env,
    resolve_with_precedence,
)

DEFAULT_CONFIG_PATH = Path("~/.lifespeed/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # Lifespeed configuration file
    # Generated automatically; manage via `lifespeed config set` or `lifespeed journal`.
    """
)


class ConfigManager:
    """Read, layer, and persist the YAML configuration file.

    The file only ever holds user overrides; defaults come from the models and
    environment variables are applied on load without being written back.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        return self._config_path

    def ensure_exists(self) -> Path:
        """Write a defaults file on first use and return its path."""
        if not self._config_path.exists():
            self.save(LifespeedConfig().model_dump(mode="python"))
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Optional[Mapping[str, Any]] = None,
        include_env: bool = True,
        env_overrides: Optional[Mapping[str, str]] = None,
    ) -> LifespeedConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Highest-precedence values, dotted keys allowed.
            include_env: Apply ``LIFESPEED__`` variables.
            env_overrides: Variables to use instead of the process environment.

        Raises:
            ConfigError: If the file is malformed or a value is invalid.
        """
        self.ensure_exists()
        env = (env_overrides if env_overrides is not None else self._env) if include_env else {}
        return resolve_with_precedence(
            defaults=LifespeedConfig(),
            file_overrides=self._read_file(),
            env_overrides=parse_env(env),
            cli_overrides=cli_overrides,
        )

    def save(self, data: Mapping[str, Any]) -> None:
        """Replace the file contents with ``data`` under a fresh header."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def update(self, changes: Mapping[str, Any]) -> tuple[str, str]:
        """Merge ``changes`` into the file after validating the result.

        Args:
            changes: Values keyed by dotted path or nested section.

        Returns:
            tuple[str, str]: File text before and after the update.

        Raises:
            ConfigError: If the merged configuration is invalid; the file is
                left untouched.
        """
        self.ensure_exists()
        before = self._config_path.read_text(encoding="utf-8")
        merged = merge_layers(self._read_file(), expand_dotted(changes))
        resolve_with_precedence(defaults=LifespeedConfig(), file_overrides=merged)
        self.save(merged)
        return before, self._config_path.read_text(encoding="utf-8")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}
        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "LifespeedConfig",
    "CacheSettings",
    "JournalSettings",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "expand_dotted",
    "merge_layers",
    "parse_env",
    "resolve_with_precedence",
    "flatten_for_env",
    "ConfigError",
]
