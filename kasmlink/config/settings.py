"""
Constants and settings for kasmlink.
"""

from __future__ import annotations

import os
import re
from urllib.parse import urlsplit

from kasmlink.errors import ConfigError

# =============================================================================
# Constants
# =============================================================================

API_PREFIX = "/api/public"
DEFAULT_TIMEOUT = 30.0
SUCCESS_STATUSES = frozenset({200, 201})

# Number of API key characters kept when the key is logged
KEY_MASK_VISIBLE = 4

# Endpoint validation (basic)
URL_PATTERN = re.compile(r'^https?://', re.IGNORECASE)

ENV_PREFIX = "KASMLINK_"


def get_env(key: str, default: str | None = None, required: bool = False) -> str | None:
    """
    Retrieve a ``KASMLINK_``-prefixed environment variable.

    Args:
        key: Configuration key (``api_key`` -> ``KASMLINK_API_KEY``)
        default: Default value
        required: Whether the value is required

    Returns:
        Configuration value

    Raises:
        ConfigError: If required value is missing
    """
    env_key = ENV_PREFIX + key.upper().replace("-", "_")
    value = os.environ.get(env_key, default)
    if required and not value:
        raise ConfigError(f"Required configuration missing: {env_key}")
    return value


def mask_key(key: str) -> str:
    """Return an API key with everything past the first few characters hidden."""
    if len(key) <= KEY_MASK_VISIBLE:
        return "*" * len(key)
    return key[:KEY_MASK_VISIBLE] + "*" * (len(key) - KEY_MASK_VISIBLE)


def normalize_endpoint(endpoint: str) -> str:
    """
    Validate a base URL and strip its trailing slash.

    Raises:
        ConfigError: If the URL has no http(s) scheme, no host, or carries
            a query string or fragment
    """
    if not endpoint or not URL_PATTERN.match(endpoint):
        raise ConfigError(f"Endpoint must be an http(s) URL: {endpoint!r}")
    parts = urlsplit(endpoint)
    if not parts.hostname:
        raise ConfigError(f"Endpoint has no host: {endpoint!r}")
    if parts.query or parts.fragment:
        raise ConfigError(f"Endpoint must not carry a query or fragment: {endpoint!r}")
    return endpoint.rstrip("/")
