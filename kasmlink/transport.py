"""
HTTP transport for the Kasm API.

One Transport owns one ``requests.Session`` and therefore one TLS policy and
one connection pool. It performs exactly one request per ``execute`` call and
never retries.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlsplit

import requests

from kasmlink.config.settings import DEFAULT_TIMEOUT, SUCCESS_STATUSES, normalize_endpoint
from kasmlink.errors import ConfigError, TransportError, TransportTimeout
from kasmlink.observability import record_request

logger = logging.getLogger("kasmlink")


class AuthChannel(enum.Enum):
    """Where an operation carries its credentials."""

    BODY = "body"  # api_key / api_key_secret inside the JSON body
    BEARER = "bearer"  # Authorization: Bearer <api_key>


@dataclass(frozen=True)
class TransportConfig:
    """TLS policy and timeout for a Transport.

    Verification is on by default. Turning it off requires
    ``skip_tls_confirmed=True`` as well; use :meth:`skip_verification`.
    """

    verify_tls: bool = True
    timeout: float = DEFAULT_TIMEOUT
    skip_tls_confirmed: bool = False

    @classmethod
    def skip_verification(cls, *, confirmed: bool, timeout: float = DEFAULT_TIMEOUT) -> TransportConfig:
        """
        Build a config that trusts any server certificate.

        Args:
            confirmed: Explicit confirmation from the caller; must be True
            timeout: Request timeout in seconds

        Raises:
            ConfigError: If ``confirmed`` is not True
        """
        if confirmed is not True:
            raise ConfigError("Skipping TLS verification requires explicit confirmation")
        return cls(verify_tls=False, timeout=timeout, skip_tls_confirmed=True)

    def validate(self) -> None:
        if self.timeout <= 0:
            raise ConfigError(f"Timeout must be positive, got {self.timeout}")
        if not self.verify_tls and not self.skip_tls_confirmed:
            raise ConfigError(
                "TLS verification disabled without confirmation; "
                "use TransportConfig.skip_verification(confirmed=True)"
            )


class Transport:
    """Executes authenticated HTTPS requests against a single endpoint."""

    def __init__(
        self,
        endpoint: str,
        config: TransportConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            endpoint: Base URL of the Kasm deployment
            config: TLS policy and timeout (defaults to verified TLS, 30s)
            session: Optional pre-built requests.Session

        Raises:
            ConfigError: If the endpoint or config is invalid
        """
        self.config = config or TransportConfig()
        self.config.validate()
        self.base_url = normalize_endpoint(endpoint)

        self._session = session or requests.Session()
        self._session.verify = self.config.verify_tls
        if not self.config.verify_tls:
            logger.warning(
                f"TLS certificate verification disabled for {self.base_url}; "
                "any server certificate will be trusted"
            )

    def url_for(self, path: str) -> str:
        """Resolve a relative API path against the endpoint."""
        parts = urlsplit(path)
        if parts.scheme or parts.netloc:
            raise ConfigError(f"Invalid path: must be relative, got {path!r}")
        return f"{self.base_url}/{path.lstrip('/')}"

    def execute(
        self,
        method: str,
        path: str,
        *,
        operation: str | None = None,
        token: str | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> bytes:
        """
        Perform one request and return the raw response body.

        Args:
            method: HTTP method
            path: API path relative to the endpoint
            operation: Operation name used in errors, logs and metrics
            token: Bearer token; sets the Authorization header when given
            body: JSON-serializable request body

        Returns:
            Response body bytes (possibly empty)

        Raises:
            TransportError: On connection failure or a status outside {200, 201}
            TransportTimeout: When the configured timeout elapses
        """
        op = operation or path
        url = self.url_for(path)
        headers = {"Accept": "application/json"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"{method} {url} ({op})")
        start = time.monotonic()
        try:
            resp = self._session.request(
                method,
                url,
                json=body,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.Timeout as e:
            record_request(op, "timeout", time.monotonic() - start)
            logger.warning(f"{method} {url} timed out after {self.config.timeout}s")
            raise TransportTimeout(
                f"Request timed out after {self.config.timeout}s", operation=op
            ) from e
        except requests.RequestException as e:
            record_request(op, "connection_error", time.monotonic() - start)
            logger.warning(f"{method} {url} failed: {e}")
            raise TransportError(f"Request failed: {e}", operation=op) from e

        duration = time.monotonic() - start
        if resp.status_code not in SUCCESS_STATUSES:
            record_request(op, "http_error", duration)
            logger.warning(f"Unexpected response status from {url}: {resp.status_code} {resp.reason}")
            raise TransportError(
                f"Unexpected response status: {resp.status_code} {resp.reason or ''}".rstrip(),
                status=resp.status_code,
                reason=resp.reason,
                operation=op,
            )

        record_request(op, "success", duration)
        logger.debug(f"{method} {url} -> {resp.status_code} in {duration:.3f}s")
        return resp.content or b""

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
