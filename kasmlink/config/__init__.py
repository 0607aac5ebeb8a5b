"""Configuration module for kasmlink."""

from kasmlink.config.settings import (
    API_PREFIX,
    DEFAULT_TIMEOUT,
    SUCCESS_STATUSES,
    URL_PATTERN,
    get_env,
    mask_key,
    normalize_endpoint,
)
from kasmlink.config.models import ClientSettings, LoggingConfig, TransportSettings
from kasmlink.config.loader import ClientConfig, CONFIG_FILE_NAME

__all__ = [
    "API_PREFIX",
    "DEFAULT_TIMEOUT",
    "SUCCESS_STATUSES",
    "URL_PATTERN",
    "get_env",
    "mask_key",
    "normalize_endpoint",
    "ClientSettings",
    "LoggingConfig",
    "TransportSettings",
    "ClientConfig",
    "CONFIG_FILE_NAME",
]
