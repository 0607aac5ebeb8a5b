"""
Wire schemas for the Kasm public API.

One request model per operation (unknown keys rejected, so a typo fails at
construction) and one response model per operation (unknown keys ignored,
missing required keys rejected).
"""

from __future__ import annotations

import json
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator

from kasmlink.domain.types import SessionStatus
from kasmlink.errors import DecodeError

M = TypeVar("M", bound=BaseModel)


# =============================================================================
# Requests
# =============================================================================

class RequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> dict[str, Any]:
        """JSON body for this request; unset optional fields are omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class AuthenticatedRequest(RequestModel):
    api_key: str
    api_key_secret: str


class TargetUser(RequestModel):
    user_id: str | None = None
    username: str | None = None


class UserPayload(RequestModel):
    user_id: str | None = None
    username: str
    first_name: str | None = None
    last_name: str | None = None
    locked: bool = False
    disabled: bool = False
    organization: str | None = None
    phone: str | None = None
    password: str | None = None


class GetImagesRequest(AuthenticatedRequest):
    pass


class GetUsersRequest(AuthenticatedRequest):
    pass


class CreateUserRequest(AuthenticatedRequest):
    target_user: UserPayload


class UpdateUserRequest(AuthenticatedRequest):
    target_user: UserPayload


class GetUserRequest(AuthenticatedRequest):
    target_user: TargetUser


class DeleteUserRequest(AuthenticatedRequest):
    target_user: TargetUser
    force: bool = False


class LogoutUserRequest(AuthenticatedRequest):
    target_user: TargetUser


class GetUserAttributesRequest(AuthenticatedRequest):
    target_user: TargetUser


class UpdateUserAttributesRequest(AuthenticatedRequest):
    user_id: str
    toggle_control_panel: bool = False
    auto_login_kasm: bool = False
    show_tips: bool = False
    default_image: str | None = None


class TargetGroup(RequestModel):
    group_id: str


class AddUserGroupRequest(AuthenticatedRequest):
    target_user: TargetUser
    target_group: TargetGroup


class RemoveUserGroupRequest(AuthenticatedRequest):
    target_user: TargetUser
    target_group: TargetGroup


class GetLoginRequest(AuthenticatedRequest):
    target_user: TargetUser


class TargetImage(RequestModel):
    image_id: str | None = None
    name: str
    friendly_name: str
    description: str = ""
    cores: float = Field(gt=0)
    memory: int = Field(gt=0)
    gpu_count: float = Field(default=0, ge=0)
    cpu_allocation_method: str
    image_type: str
    enabled: bool = True
    hidden: bool = False
    docker_registry: str | None = None
    docker_user: str | None = None
    docker_token: str | None = None
    image_src: str | None = None
    categories: str | None = None
    run_config: str | None = None
    exec_config: str | None = None
    volume_mappings: str | None = None
    notes: str | None = None


class CreateImageRequest(AuthenticatedRequest):
    target_image: TargetImage


class UpdateImageRequest(AuthenticatedRequest):
    target_image: TargetImage


class TargetImageId(RequestModel):
    image_id: str


class DeleteImageRequest(AuthenticatedRequest):
    target_image: TargetImageId


class RequestSessionRequest(AuthenticatedRequest):
    user_id: str
    image_id: str
    enable_sharing: bool | None = None
    environment: dict[str, str] | None = None
    client_language: str | None = None
    client_timezone: str | None = None
    egress_gateway_id: str | None = None
    persistent_profile_mode: str | None = None


class GetSessionStatusRequest(AuthenticatedRequest):
    user_id: str
    kasm_id: str


class DestroySessionRequest(AuthenticatedRequest):
    user_id: str
    kasm_id: str


class ExecConfig(RequestModel):
    cmd: str
    environment: dict[str, str] | None = None
    workdir: str | None = None
    privileged: bool | None = None
    user: str | None = None


class ExecCommandRequest(AuthenticatedRequest):
    user_id: str
    kasm_id: str
    exec_config: ExecConfig


# =============================================================================
# Responses
# =============================================================================

class ResponseModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ImageSchema(ResponseModel):
    image_id: str
    friendly_name: str
    docker_registry: str | None = None
    available: bool = False
    name: str | None = None
    cores: float | None = None
    memory: int | None = None


class ImagesResponse(ResponseModel):
    images: list[ImageSchema]


class ImageResponse(ResponseModel):
    image: ImageSchema


class UserGroupSchema(ResponseModel):
    name: str
    group_id: str


class UserSchema(ResponseModel):
    user_id: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    locked: bool = False
    disabled: bool = False
    organization: str | None = None
    phone: str | None = None
    groups: list[UserGroupSchema] = []
    realm: str | None = None
    notes: str | None = None
    last_session: str | None = None

    @field_validator("groups", mode="before")
    @classmethod
    def _null_groups(cls, value: Any) -> Any:
        return [] if value is None else value


class UsersResponse(ResponseModel):
    users: list[UserSchema]


class UserAttributesSchema(ResponseModel):
    user_id: str
    toggle_control_panel: bool = False
    auto_login_kasm: bool = False
    show_tips: bool = False
    default_image: str | None = None


class UserAttributesResponse(ResponseModel):
    user_attributes: UserAttributesSchema


class LoginLinkResponse(ResponseModel):
    url: str = Field(min_length=1)


def _lower_status(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


StatusField = Annotated[SessionStatus, BeforeValidator(_lower_status)]


class RequestSessionResponse(ResponseModel):
    kasm_id: str = Field(min_length=1)
    status: StatusField = SessionStatus.REQUESTED
    username: str | None = None
    session_token: str | None = None
    kasm_url: str | None = None
    share_id: str | None = None


class SessionStatusResponse(ResponseModel):
    operational_status: StatusField
    operational_message: str | None = None
    operational_progress: int = Field(default=0, ge=0, le=100)
    kasm_url: str | None = None
    current_time: str | None = None


class ExecCommandResponse(ResponseModel):
    kasm_id: str
    current_time: str | None = None


# =============================================================================
# Decoding
# =============================================================================

def load_json(raw: bytes, operation: str) -> Any:
    """Parse a response body, raising DecodeError on empty or invalid JSON."""
    if not raw or not raw.strip():
        raise DecodeError("Empty response body", operation=operation)
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(f"Response is not valid JSON: {e}", operation=operation) from e


def validate(schema: type[M], data: Any, operation: str) -> M:
    """Validate parsed data against ``schema``, raising DecodeError on mismatch."""
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise DecodeError(
            f"Response does not match {schema.__name__}: {e}", operation=operation
        ) from e


def decode(schema: type[M], raw: bytes, operation: str) -> M:
    """Parse and validate a response body in one step."""
    return validate(schema, load_json(raw, operation), operation)
