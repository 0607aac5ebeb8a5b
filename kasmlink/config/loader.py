"""
Configuration loader for kasmlink.yml.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from kasmlink.config.models import ClientSettings
from kasmlink.config.settings import DEFAULT_TIMEOUT, get_env
from kasmlink.errors import ConfigError

logger = logging.getLogger("kasmlink")

CONFIG_FILE_NAME = "kasmlink.yml"

# Environment variable (without prefix) -> path in the settings tree
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "endpoint": ("endpoint",),
    "api_key": ("api_key",),
    "api_key_secret": ("api_key_secret",),
    "verify_tls": ("transport", "verify_tls"),
    "skip_tls_confirmed": ("transport", "skip_tls_confirmed"),
    "timeout": ("transport", "timeout"),
    "log_level": ("logging", "level"),
}

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n"}


class ClientConfig:
    """Loads kasmlink settings from YAML plus environment overrides."""

    @classmethod
    def defaults(cls) -> dict:
        return {
            "endpoint": "",
            "api_key": "",
            "api_key_secret": "",
            "transport": {
                "verify_tls": True,
                "skip_tls_confirmed": False,
                "timeout": DEFAULT_TIMEOUT,
            },
            "logging": {"level": "INFO", "json": False},
        }

    @classmethod
    def default_path(cls) -> Path | None:
        """Config file path from ``KASMLINK_CONFIG``, if set."""
        value = get_env("config")
        return Path(value) if value else None

    @classmethod
    def load(cls, path: str | Path | None = None, *, use_env: bool = True) -> ClientSettings:
        """
        Load settings: defaults < YAML file < environment.

        Args:
            path: YAML file; falls back to ``KASMLINK_CONFIG``, then defaults only
            use_env: Whether ``KASMLINK_*`` variables override file values

        Returns:
            Validated ClientSettings

        Raises:
            ConfigError: If the file is unreadable, not a mapping, or holds invalid values
        """
        config = cls.defaults()

        config_path = Path(path) if path is not None else cls.default_path()
        if config_path is not None:
            config = cls._deep_merge(config, cls._read_file(config_path))
        else:
            logger.debug("No config file given, using defaults")

        if use_env:
            config = cls._apply_env(config)

        try:
            return ClientSettings.model_validate(config)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def _read_file(cls, path: Path) -> dict:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")
        logger.info(f"Loaded kasmlink config from {path}")
        return data

    @classmethod
    def _apply_env(cls, config: dict) -> dict:
        overrides: dict[str, Any] = {}
        for env_name, keys in ENV_OVERRIDES.items():
            value = get_env(env_name)
            if value is None:
                continue
            node = overrides
            for key in keys[:-1]:
                node = node.setdefault(key, {})
            node[keys[-1]] = cls._coerce(env_name, value)
        return cls._deep_merge(config, overrides)

    @staticmethod
    def _coerce(name: str, value: str) -> Any:
        if name in ("verify_tls", "skip_tls_confirmed"):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ConfigError(f"Invalid boolean for KASMLINK_{name.upper()}: {value!r}")
        return value

    @classmethod
    def _deep_merge(cls, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = cls._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
