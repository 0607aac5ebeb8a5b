"""
Factory for building clients from settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from kasmlink.config.loader import ClientConfig
from kasmlink.config.models import ClientSettings
from kasmlink.domain.client import KasmClient
from kasmlink.domain.types import Credentials
from kasmlink.observability import setup_logging
from kasmlink.transport import Transport, TransportConfig

logger = logging.getLogger("kasmlink")


def transport_config_from(settings: ClientSettings) -> TransportConfig:
    """
    Translate transport settings into a TransportConfig.

    ``verify_tls: false`` is only honoured together with
    ``skip_tls_confirmed: true``; otherwise ConfigError is raised.
    """
    ts = settings.transport
    if ts.verify_tls:
        return TransportConfig(timeout=ts.timeout)
    return TransportConfig.skip_verification(confirmed=ts.skip_tls_confirmed, timeout=ts.timeout)


def build_client(settings: ClientSettings) -> KasmClient:
    """
    Build a KasmClient and its Transport from settings.

    Raises:
        ConfigError: On a malformed endpoint, empty credentials or an
            unconfirmed TLS downgrade
    """
    credentials = Credentials(settings.api_key, settings.api_key_secret.get_secret_value())
    transport = Transport(settings.endpoint, transport_config_from(settings))
    return KasmClient(settings.endpoint, credentials, transport=transport)


def client_from_config(path: str | Path | None = None) -> KasmClient:
    """
    Load settings (file + ``KASMLINK_*`` environment), apply the ``logging``
    section to the root logger and build a client.
    """
    settings = ClientConfig.load(path)
    setup_logging(settings.logging.level, settings.logging.json_format)
    logger.debug(f"Building client for {settings.endpoint}")
    return build_client(settings)
