"""
Typed data structures for the kasmlink domain.

Every value here is a snapshot of remote state at the time it was fetched;
nothing is cached or refreshed behind the caller's back.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any

from kasmlink.config.settings import mask_key
from kasmlink.errors import ConfigError


class SessionStatus(str, enum.Enum):
    """Operational states reported for a session."""

    REQUESTED = "requested"
    PROVISIONING = "provisioning"
    ASSIGNED = "assigned"
    STARTING = "starting"
    RUNNING = "running"
    PAUSED = "paused"
    SAVING = "saving"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DELETING = "deleting"
    DESTROYED = "destroyed"
    ERROR = "error"


READY_STATUSES = frozenset({SessionStatus.RUNNING})
TERMINAL_STATUSES = frozenset({SessionStatus.DESTROYED, SessionStatus.ERROR})


@dataclass(frozen=True)
class Credentials:
    """API key pair attached to every request."""

    key: str
    secret: str = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise ConfigError("API key must be a non-empty string")
        if not isinstance(self.secret, str) or not self.secret.strip():
            raise ConfigError("API key secret must be a non-empty string")

    @property
    def masked_key(self) -> str:
        return mask_key(self.key)

    def __repr__(self) -> str:
        return f"Credentials(key={self.masked_key!r}, secret='***')"


@dataclass
class Session:
    """Snapshot of a remote desktop session."""

    session_id: str
    user_id: str
    image_id: str
    status: SessionStatus = SessionStatus.REQUESTED
    status_message: str = ""
    progress: int = 0
    access_url: str | None = None
    access_token: str | None = field(default=None, repr=False)
    username: str | None = None
    share_id: str | None = None
    # Sticky once a ready status has been seen; cleared on destroy
    ready_observed: bool = field(default=False, compare=False)

    @property
    def is_ready(self) -> bool:
        return self.status in READY_STATUSES

    @property
    def is_destroyed(self) -> bool:
        return self.status == SessionStatus.DESTROYED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class SessionOptions:
    """Optional parameters for a session request; unset values are not sent."""

    enable_sharing: bool | None = None
    environment: dict[str, str] | None = None
    client_language: str | None = None
    client_timezone: str | None = None
    egress_gateway_id: str | None = None
    persistent_profile_mode: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class SessionStatusReport:
    """Result of one status fetch."""

    status: SessionStatus
    message: str = ""
    progress: int = 0
    access_url: str | None = None
    current_time: str | None = None


@dataclass(frozen=True)
class Image:
    """Read-only catalog entry for a launchable session template."""

    image_id: str
    display_name: str
    registry_ref: str | None = None
    available: bool = False
    name: str | None = None
    cores: float | None = None
    memory: int | None = None


@dataclass
class ImageSpec:
    """
    Definition of an image for create and update calls.

    ``image_id`` is assigned by the service and must be set only for updates.
    ``memory`` is in bytes. ``categories``, ``run_config``, ``exec_config`` and
    ``volume_mappings`` are passed through as the service's own string formats.
    """

    name: str
    friendly_name: str
    memory: int
    cores: float = 1.0
    description: str = ""
    enabled: bool = True
    hidden: bool = False
    image_type: str = "Container"
    cpu_allocation_method: str = "Inherit"
    gpu_count: float = 0
    image_id: str | None = None
    docker_registry: str | None = None
    docker_user: str | None = None
    docker_token: str | None = field(default=None, repr=False)
    image_src: str | None = None
    categories: str | None = None
    run_config: str | None = None
    exec_config: str | None = None
    volume_mappings: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class UserGroup:
    name: str
    group_id: str


@dataclass
class UserRecord:
    """Typed representation of a user account."""

    user_id: str | None
    username: str
    first_name: str | None = None
    last_name: str | None = None
    locked: bool = False
    disabled: bool = False
    organization: str | None = None
    phone: str | None = None
    groups: list[UserGroup] = field(default_factory=list)
    realm: str | None = None
    notes: str | None = None
    last_session: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UserAttributes:
    """Preference settings attached to a user."""

    user_id: str
    toggle_control_panel: bool = False
    auto_login_kasm: bool = False
    show_tips: bool = False
    default_image: str | None = None


@dataclass
class ExecRequest:
    """A command to run inside a live session."""

    command: str
    environment: dict[str, str] = field(default_factory=dict)
    working_directory: str | None = None
    privileged: bool = False
    run_as_user: str | None = None


@dataclass(frozen=True)
class ExecAck:
    """Issuance acknowledgment; the command runs asynchronously remotely."""

    session_id: str
    timestamp: str | None = None
