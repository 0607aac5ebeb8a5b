"""Domain module: typed client, session lifecycle and user directory."""

from kasmlink.domain.types import (
    Credentials,
    ExecAck,
    ExecRequest,
    Image,
    ImageSpec,
    Session,
    SessionOptions,
    SessionStatus,
    SessionStatusReport,
    UserAttributes,
    UserGroup,
    UserRecord,
)
from kasmlink.domain.client import KasmClient, Operation
from kasmlink.domain.session import SessionLifecycle
from kasmlink.domain.users import UserDirectory

__all__ = [
    "Credentials",
    "ExecAck",
    "ExecRequest",
    "Image",
    "ImageSpec",
    "Session",
    "SessionOptions",
    "SessionStatus",
    "SessionStatusReport",
    "UserAttributes",
    "UserGroup",
    "UserRecord",
    "KasmClient",
    "Operation",
    "SessionLifecycle",
    "UserDirectory",
]
