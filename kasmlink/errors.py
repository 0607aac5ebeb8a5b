"""
Error taxonomy shared by every kasmlink layer.
"""

from __future__ import annotations


class KasmError(Exception):
    """Base error for kasmlink failures.

    ``operation`` and ``target`` carry the remote operation name and the
    identifier it was acting on, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        target: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.target = target

    def with_context(self, operation: str | None = None, target: str | None = None) -> KasmError:
        """Fill in missing operation/target context and return ``self``."""
        if self.operation is None:
            self.operation = operation
        if self.target is None:
            self.target = target
        return self

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(self.operation)
        if self.target:
            parts.append(f"target={self.target}")
        if not parts:
            return self.message
        return f"[{' '.join(parts)}] {self.message}"


class ConfigError(KasmError):
    """Malformed endpoint, credentials or transport settings."""


class TransportError(KasmError):
    """Connection failure or non-success HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        reason: str | None = None,
        operation: str | None = None,
        target: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation, target=target)
        self.status = status
        self.reason = reason


class TransportTimeout(TransportError):
    """The request did not complete within the configured timeout."""


class DecodeError(KasmError):
    """Response body does not match the expected schema."""


class UsageError(KasmError):
    """Operation invoked against a session in an invalid state."""


class NotFoundError(UsageError):
    """Operation invoked against a session that has already been destroyed."""
