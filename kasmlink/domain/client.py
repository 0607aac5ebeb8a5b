"""
Kasm API client: one typed method per remote operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from kasmlink.config.settings import API_PREFIX, normalize_endpoint
from kasmlink.domain import schemas
from kasmlink.domain.types import (
    Credentials,
    ExecAck,
    ExecRequest,
    Image,
    ImageSpec,
    Session,
    SessionOptions,
    SessionStatusReport,
    UserAttributes,
    UserGroup,
    UserRecord,
)
from kasmlink.errors import ConfigError, KasmError, UsageError
from kasmlink.transport import AuthChannel, Transport, TransportConfig

logger = logging.getLogger("kasmlink")

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R", bound=schemas.AuthenticatedRequest)


@dataclass(frozen=True)
class Operation:
    """A remote operation: its name, HTTP method and credential channel."""

    name: str
    method: str = "POST"
    auth: AuthChannel = AuthChannel.BODY

    @property
    def path(self) -> str:
        return f"{API_PREFIX}/{self.name}"


GET_IMAGES = Operation("get_images")
GET_IMAGES_BEARER = Operation("get_images", method="GET", auth=AuthChannel.BEARER)
CREATE_IMAGE = Operation("create_image")
UPDATE_IMAGE = Operation("update_image")
DELETE_IMAGE = Operation("delete_image")
CREATE_USER = Operation("create_user")
GET_USER = Operation("get_user")
GET_USERS = Operation("get_users")
UPDATE_USER = Operation("update_user")
DELETE_USER = Operation("delete_user")
LOGOUT_USER = Operation("logout_user")
GET_USER_ATTRIBUTES = Operation("get_attributes")
UPDATE_USER_ATTRIBUTES = Operation("update_user_attributes")
ADD_USER_GROUP = Operation("add_user_group")
REMOVE_USER_GROUP = Operation("remove_user_group")
GET_LOGIN = Operation("get_login")
REQUEST_SESSION = Operation("request_kasm")
GET_SESSION_STATUS = Operation("get_kasm_status")
DESTROY_SESSION = Operation("destroy_kasm")
EXEC_COMMAND = Operation("exec_command_kasm")


def _require(value: str | None, name: str, operation: Operation) -> str:
    if not value:
        raise UsageError(f"{name} is required", operation=operation.name)
    return value


class KasmClient:
    """Client for the Kasm public API.

    Endpoint and credentials are fixed at construction; every method is a
    single round trip with no hidden state, so one instance can be shared
    between threads.
    """

    def __init__(
        self,
        endpoint: str,
        credentials: Credentials,
        *,
        transport: Transport | None = None,
        transport_config: TransportConfig | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            endpoint: Base URL of the Kasm deployment
            credentials: API key pair
            transport: Optional pre-built Transport for the same endpoint
            transport_config: TLS policy and timeout when no transport is given

        Raises:
            ConfigError: On a malformed endpoint, missing credentials, or a
                transport bound to another endpoint
        """
        if not isinstance(credentials, Credentials):
            raise ConfigError("credentials must be a Credentials instance")
        self._endpoint = normalize_endpoint(endpoint)
        self._credentials = credentials
        if transport is None:
            transport = Transport(self._endpoint, transport_config)
        elif transport.base_url != self._endpoint:
            raise ConfigError(
                f"Transport endpoint {transport.base_url} does not match {self._endpoint}"
            )
        self._transport = transport
        logger.info(f"Kasm client for {self._endpoint} (key {credentials.masked_key})")

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def transport(self) -> Transport:
        return self._transport

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> KasmClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build(
        self, schema: type[R], operation: Operation, target: str | None = None, **fields: Any
    ) -> R:
        """
        Build an authenticated request body, raising UsageError on invalid input.

        Nested objects may be given as plain dicts; they are validated with the
        outer model.
        """
        try:
            return schema(
                api_key=self._credentials.key,
                api_key_secret=self._credentials.secret,
                **fields,
            )
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise UsageError(
                f"Invalid {operation.name} request: {errors}",
                operation=operation.name,
                target=target,
            ) from e

    def _call(
        self,
        operation: Operation,
        request: schemas.RequestModel | None,
        target: str | None = None,
    ) -> bytes:
        token = self._credentials.key if operation.auth is AuthChannel.BEARER else None
        body = request.to_payload() if request is not None else None
        try:
            return self._transport.execute(
                operation.method,
                operation.path,
                operation=operation.name,
                token=token,
                body=body,
            )
        except KasmError as e:
            e.with_context(operation.name, target)
            logger.error(f"{operation.name} failed: {e}")
            raise

    def _load(self, raw: bytes, operation: Operation, target: str | None = None) -> Any:
        try:
            return schemas.load_json(raw, operation.name)
        except KasmError as e:
            e.with_context(operation.name, target)
            logger.error(f"Failed to decode {operation.name} response: {e}")
            raise

    def _decode(
        self, schema: type[M], raw: bytes, operation: Operation, target: str | None = None
    ) -> M:
        return self._validate(schema, self._load(raw, operation, target), operation, target)

    def _validate(
        self, schema: type[M], data: Any, operation: Operation, target: str | None = None
    ) -> M:
        try:
            return schemas.validate(schema, data, operation.name)
        except KasmError as e:
            e.with_context(operation.name, target)
            logger.error(f"Failed to decode {operation.name} response: {e}")
            raise

    @staticmethod
    def _unwrap(data: Any, key: str) -> Any:
        """Return ``data[key]`` when the service wrapped the payload in an envelope."""
        if isinstance(data, dict) and isinstance(data.get(key), (dict, list)):
            return data[key]
        return data

    @staticmethod
    def _to_image(schema: schemas.ImageSchema) -> Image:
        return Image(
            image_id=schema.image_id,
            display_name=schema.friendly_name,
            registry_ref=schema.docker_registry,
            available=schema.available,
            name=schema.name,
            cores=schema.cores,
            memory=schema.memory,
        )

    @staticmethod
    def _to_user(schema: schemas.UserSchema) -> UserRecord:
        return UserRecord(
            user_id=schema.user_id,
            username=schema.username,
            first_name=schema.first_name,
            last_name=schema.last_name,
            locked=schema.locked,
            disabled=schema.disabled,
            organization=schema.organization,
            phone=schema.phone,
            groups=[UserGroup(name=g.name, group_id=g.group_id) for g in schema.groups],
            realm=schema.realm,
            notes=schema.notes,
            last_session=schema.last_session,
        )

    @staticmethod
    def _user_payload(user: UserRecord, password: str | None) -> dict[str, Any]:
        return {
            "user_id": user.user_id,
            "username": user.username,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "locked": user.locked,
            "disabled": user.disabled,
            "organization": user.organization,
            "phone": user.phone,
            "password": password,
        }

    def _decode_user(self, raw: bytes, operation: Operation, target: str | None) -> UserRecord:
        data = self._unwrap(self._load(raw, operation, target), "user")
        return self._to_user(self._validate(schemas.UserSchema, data, operation, target))

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def list_images(self, *, use_bearer: bool = False) -> list[Image]:
        """
        Fetch the image catalog.

        Args:
            use_bearer: Send a GET with the API key as bearer token instead of
                the default POST with credentials in the body

        Returns:
            List of images
        """
        if use_bearer:
            op, request = GET_IMAGES_BEARER, None
        else:
            op, request = GET_IMAGES, self._build(schemas.GetImagesRequest, GET_IMAGES)
        raw = self._call(op, request)
        images = [self._to_image(i) for i in self._decode(schemas.ImagesResponse, raw, op).images]
        logger.info(f"Fetched {len(images)} images")
        return images

    def create_image(self, spec: ImageSpec) -> Image:
        """
        Register a new image.

        Args:
            spec: Image definition; ``image_id`` must be unset

        Returns:
            The image as stored by the service
        """
        _require(spec.name, "name", CREATE_IMAGE)
        _require(spec.friendly_name, "friendly_name", CREATE_IMAGE)
        if spec.image_id:
            raise UsageError(
                "image_id is assigned by the service", operation=CREATE_IMAGE.name, target=spec.name
            )
        request = self._build(
            schemas.CreateImageRequest, CREATE_IMAGE, spec.name, target_image=spec.to_dict()
        )
        raw = self._call(CREATE_IMAGE, request, target=spec.name)
        image = self._to_image(self._decode(schemas.ImageResponse, raw, CREATE_IMAGE, spec.name).image)
        logger.info(f"Created image {image.display_name} ({image.image_id})")
        return image

    def update_image(self, spec: ImageSpec) -> Image:
        """
        Replace an existing image definition.

        Raises:
            UsageError: If ``spec.image_id`` is not set
        """
        image_id = _require(spec.image_id, "image_id", UPDATE_IMAGE)
        request = self._build(
            schemas.UpdateImageRequest, UPDATE_IMAGE, image_id, target_image=spec.to_dict()
        )
        raw = self._call(UPDATE_IMAGE, request, target=image_id)
        image = self._to_image(self._decode(schemas.ImageResponse, raw, UPDATE_IMAGE, image_id).image)
        logger.info(f"Updated image {image_id}")
        return image

    def delete_image(self, image_id: str) -> None:
        """Remove an image from the catalog."""
        _require(image_id, "image_id", DELETE_IMAGE)
        request = self._build(
            schemas.DeleteImageRequest, DELETE_IMAGE, image_id, target_image={"image_id": image_id}
        )
        self._call(DELETE_IMAGE, request, target=image_id)
        logger.info(f"Deleted image {image_id}")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: UserRecord, password: str | None = None) -> UserRecord:
        """
        Create a user.

        Args:
            user: User fields (user_id is ignored by the service)
            password: Initial password

        Returns:
            The created user record
        """
        _require(user.username, "username", CREATE_USER)
        request = self._build(
            schemas.CreateUserRequest,
            CREATE_USER,
            user.username,
            target_user=self._user_payload(user, password),
        )
        raw = self._call(CREATE_USER, request, target=user.username)
        created = self._decode_user(raw, CREATE_USER, user.username)
        logger.info(f"Created user {created.username} ({created.user_id})")
        return created

    def get_user(self, user_id: str | None = None, username: str | None = None) -> UserRecord:
        """
        Fetch one user by ID or username.

        Raises:
            UsageError: If neither identifier is given
        """
        if not user_id and not username:
            raise UsageError("user_id or username is required", operation=GET_USER.name)
        target = user_id or username
        request = self._build(
            schemas.GetUserRequest,
            GET_USER,
            target,
            target_user={"user_id": user_id, "username": username},
        )
        raw = self._call(GET_USER, request, target=target)
        return self._decode_user(raw, GET_USER, target)

    def list_users(self) -> list[UserRecord]:
        """Fetch every user."""
        raw = self._call(GET_USERS, self._build(schemas.GetUsersRequest, GET_USERS))
        data = self._load(raw, GET_USERS)
        if isinstance(data, list):
            data = {"users": data}
        users = [self._to_user(u) for u in self._validate(schemas.UsersResponse, data, GET_USERS).users]
        logger.info(f"Fetched {len(users)} users")
        return users

    def update_user(self, user: UserRecord, password: str | None = None) -> UserRecord:
        """
        Replace a user's fields with those of ``user``.

        Raises:
            UsageError: If ``user.user_id`` is not set
        """
        user_id = _require(user.user_id, "user_id", UPDATE_USER)
        request = self._build(
            schemas.UpdateUserRequest,
            UPDATE_USER,
            user_id,
            target_user=self._user_payload(user, password),
        )
        raw = self._call(UPDATE_USER, request, target=user_id)
        updated = self._decode_user(raw, UPDATE_USER, user_id)
        logger.info(f"Updated user {user_id}")
        return updated

    def delete_user(self, user_id: str, force: bool = False) -> None:
        """Delete a user; ``force`` also removes users with active sessions."""
        _require(user_id, "user_id", DELETE_USER)
        request = self._build(
            schemas.DeleteUserRequest,
            DELETE_USER,
            user_id,
            target_user={"user_id": user_id},
            force=force,
        )
        self._call(DELETE_USER, request, target=user_id)
        logger.info(f"Deleted user {user_id} (force: {force})")

    def logout_user(self, user_id: str) -> None:
        """Log out every session of a user."""
        _require(user_id, "user_id", LOGOUT_USER)
        request = self._build(
            schemas.LogoutUserRequest, LOGOUT_USER, user_id, target_user={"user_id": user_id}
        )
        self._call(LOGOUT_USER, request, target=user_id)
        logger.info(f"Logged out user {user_id}")

    def get_user_attributes(self, user_id: str) -> UserAttributes:
        """Fetch a user's preference settings."""
        _require(user_id, "user_id", GET_USER_ATTRIBUTES)
        request = self._build(
            schemas.GetUserAttributesRequest,
            GET_USER_ATTRIBUTES,
            user_id,
            target_user={"user_id": user_id},
        )
        raw = self._call(GET_USER_ATTRIBUTES, request, target=user_id)
        attrs = self._decode(
            schemas.UserAttributesResponse, raw, GET_USER_ATTRIBUTES, user_id
        ).user_attributes
        return UserAttributes(
            user_id=attrs.user_id,
            toggle_control_panel=attrs.toggle_control_panel,
            auto_login_kasm=attrs.auto_login_kasm,
            show_tips=attrs.show_tips,
            default_image=attrs.default_image,
        )

    def update_user_attributes(self, attributes: UserAttributes) -> None:
        """Replace a user's preference settings."""
        user_id = _require(attributes.user_id, "user_id", UPDATE_USER_ATTRIBUTES)
        request = self._build(
            schemas.UpdateUserAttributesRequest,
            UPDATE_USER_ATTRIBUTES,
            user_id,
            user_id=user_id,
            toggle_control_panel=attributes.toggle_control_panel,
            auto_login_kasm=attributes.auto_login_kasm,
            show_tips=attributes.show_tips,
            default_image=attributes.default_image,
        )
        self._call(UPDATE_USER_ATTRIBUTES, request, target=user_id)
        logger.info(f"Updated attributes for user {user_id}")

    def add_user_to_group(self, user_id: str, group_id: str) -> None:
        """Add a user to a group."""
        _require(user_id, "user_id", ADD_USER_GROUP)
        _require(group_id, "group_id", ADD_USER_GROUP)
        request = self._build(
            schemas.AddUserGroupRequest,
            ADD_USER_GROUP,
            user_id,
            target_user={"user_id": user_id},
            target_group={"group_id": group_id},
        )
        self._call(ADD_USER_GROUP, request, target=user_id)
        logger.info(f"Added user {user_id} to group {group_id}")

    def remove_user_from_group(self, user_id: str, group_id: str) -> None:
        """Remove a user from a group."""
        _require(user_id, "user_id", REMOVE_USER_GROUP)
        _require(group_id, "group_id", REMOVE_USER_GROUP)
        request = self._build(
            schemas.RemoveUserGroupRequest,
            REMOVE_USER_GROUP,
            user_id,
            target_user={"user_id": user_id},
            target_group={"group_id": group_id},
        )
        self._call(REMOVE_USER_GROUP, request, target=user_id)
        logger.info(f"Removed user {user_id} from group {group_id}")

    def get_login_link(self, user_id: str) -> str:
        """
        Generate a one-time login URL for a user.

        Returns:
            The login URL; it grants access as the user, so do not log it
        """
        _require(user_id, "user_id", GET_LOGIN)
        request = self._build(
            schemas.GetLoginRequest, GET_LOGIN, user_id, target_user={"user_id": user_id}
        )
        raw = self._call(GET_LOGIN, request, target=user_id)
        url = self._decode(schemas.LoginLinkResponse, raw, GET_LOGIN, user_id).url
        logger.info(f"Generated login link for user {user_id}")
        return url

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def request_session(
        self, user_id: str, image_id: str, options: SessionOptions | None = None
    ) -> Session:
        """
        Ask the service to start a session. Does not wait for it to be ready.

        Args:
            user_id: Owner of the session
            image_id: Image to launch
            options: Optional request parameters

        Returns:
            Session with the status reported by the service
        """
        _require(user_id, "user_id", REQUEST_SESSION)
        _require(image_id, "image_id", REQUEST_SESSION)
        request = self._build(
            schemas.RequestSessionRequest,
            REQUEST_SESSION,
            user_id,
            user_id=user_id,
            image_id=image_id,
            **(options.to_dict() if options else {}),
        )
        raw = self._call(REQUEST_SESSION, request, target=user_id)
        resp = self._decode(schemas.RequestSessionResponse, raw, REQUEST_SESSION, user_id)
        logger.info(f"Requested session {resp.kasm_id} for user {user_id} ({resp.status.value})")
        return Session(
            session_id=resp.kasm_id,
            user_id=user_id,
            image_id=image_id,
            status=resp.status,
            access_url=resp.kasm_url,
            access_token=resp.session_token,
            username=resp.username,
            share_id=resp.share_id,
        )

    def get_session_status(self, user_id: str, session_id: str) -> SessionStatusReport:
        """Fetch the current operational status of a session."""
        _require(user_id, "user_id", GET_SESSION_STATUS)
        _require(session_id, "session_id", GET_SESSION_STATUS)
        request = self._build(
            schemas.GetSessionStatusRequest,
            GET_SESSION_STATUS,
            session_id,
            user_id=user_id,
            kasm_id=session_id,
        )
        raw = self._call(GET_SESSION_STATUS, request, target=session_id)
        resp = self._decode(schemas.SessionStatusResponse, raw, GET_SESSION_STATUS, session_id)
        logger.debug(
            f"Session {session_id}: {resp.operational_status.value} ({resp.operational_progress}%)"
        )
        return SessionStatusReport(
            status=resp.operational_status,
            message=resp.operational_message or "",
            progress=resp.operational_progress,
            access_url=resp.kasm_url,
            current_time=resp.current_time,
        )

    def destroy_session(self, user_id: str, session_id: str) -> None:
        """Destroy a session. The response body is ignored."""
        _require(user_id, "user_id", DESTROY_SESSION)
        _require(session_id, "session_id", DESTROY_SESSION)
        request = self._build(
            schemas.DestroySessionRequest,
            DESTROY_SESSION,
            session_id,
            user_id=user_id,
            kasm_id=session_id,
        )
        self._call(DESTROY_SESSION, request, target=session_id)
        logger.info(f"Destroyed session {session_id} for user {user_id}")

    def exec_command(self, user_id: str, session_id: str, exec_request: ExecRequest) -> ExecAck:
        """
        Submit a command for execution inside a session.

        Returns:
            Acknowledgment of issuance; completion is not awaited

        Raises:
            UsageError: On a missing identifier or command, or values of the
                wrong type (environment values must be strings)
        """
        _require(user_id, "user_id", EXEC_COMMAND)
        _require(session_id, "session_id", EXEC_COMMAND)
        _require(exec_request.command, "command", EXEC_COMMAND)
        exec_config = {
            "cmd": exec_request.command,
            "environment": exec_request.environment or None,
            "workdir": exec_request.working_directory,
            "privileged": exec_request.privileged or None,
            "user": exec_request.run_as_user,
        }
        request = self._build(
            schemas.ExecCommandRequest,
            EXEC_COMMAND,
            session_id,
            user_id=user_id,
            kasm_id=session_id,
            exec_config=exec_config,
        )
        raw = self._call(EXEC_COMMAND, request, target=session_id)
        resp = self._decode(schemas.ExecCommandResponse, raw, EXEC_COMMAND, session_id)
        logger.info(f"Issued command in session {session_id}")
        return ExecAck(session_id=resp.kasm_id, timestamp=resp.current_time)
