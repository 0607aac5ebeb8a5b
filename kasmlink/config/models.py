"""
Pydantic models for kasmlink configuration.

Mirrors the defaults dict in loader.py, providing typed access
to all kasmlink.yml settings via ClientConfig.load().
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from kasmlink.config.settings import DEFAULT_TIMEOUT


class TransportSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    verify_tls: bool = True
    # Must be set alongside verify_tls: false; see TransportConfig
    skip_tls_confirmed: bool = False
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    level: str = "INFO"
    json_format: bool = Field(default=False, alias="json")


class ClientSettings(BaseModel):
    """Root settings model mirroring kasmlink.yml structure."""

    model_config = ConfigDict(extra="ignore")

    endpoint: str = ""
    api_key: str = ""
    api_key_secret: SecretStr = SecretStr("")
    transport: TransportSettings = TransportSettings()
    logging: LoggingConfig = LoggingConfig()
