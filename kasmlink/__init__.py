"""
kasmlink - client library for the Kasm Workspaces public API.

- API-key authentication (credentials carried in the JSON body or as a bearer header)
- Single HTTPS execution path with explicit TLS policy and timeouts
- Typed request/response schemas for every remote operation
- Session lifecycle: request, poll, exec, destroy
- User directory operations (create/get/list/update/delete/logout/attributes)
- JSON structured logging and Prometheus request metrics
"""

from kasmlink.errors import (
    ConfigError,
    DecodeError,
    KasmError,
    NotFoundError,
    TransportError,
    TransportTimeout,
    UsageError,
)

__version__ = "1.0.0"

__all__ = [
    "ConfigError",
    "DecodeError",
    "KasmError",
    "NotFoundError",
    "TransportError",
    "TransportTimeout",
    "UsageError",
]
