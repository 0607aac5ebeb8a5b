"""
Tests for kasmlink.domain.client.KasmClient.
"""

import json

import pytest

from kasmlink.domain.client import KasmClient
from kasmlink.domain.types import (
    Credentials,
    ExecRequest,
    ImageSpec,
    SessionOptions,
    SessionStatus,
    UserAttributes,
    UserGroup,
    UserRecord,
)
from kasmlink.errors import ConfigError, DecodeError, TransportError, UsageError
from kasmlink.transport import AuthChannel

from tests.conftest import ENDPOINT, make_response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _body(mock_transport):
    """JSON body passed to the last Transport.execute call."""
    return mock_transport.execute.call_args.kwargs["body"]


def _path(mock_transport):
    return mock_transport.execute.call_args.args[1]


USER_JSON = {
    "user_id": "f2c4",
    "username": "alice@example.com",
    "first_name": "Alice",
    "last_name": "Liddell",
    "locked": False,
    "disabled": False,
    "organization": "Wonderland",
    "phone": "555-0100",
    "groups": [{"name": "All Users", "group_id": "g1"}],
    "realm": "local",
    "notes": None,
    "last_session": "2024-05-01 10:00:00",
    "unknown_future_field": {"nested": True},
}


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:

    def test_rejects_malformed_endpoint(self, credentials, mock_transport):
        with pytest.raises(ConfigError):
            KasmClient("not-a-url", credentials, transport=mock_transport)

    def test_rejects_empty_credentials(self):
        with pytest.raises(ConfigError):
            Credentials("", "secret")
        with pytest.raises(ConfigError):
            Credentials("key", "   ")

    def test_rejects_raw_credentials(self, mock_transport):
        with pytest.raises(ConfigError):
            KasmClient(ENDPOINT, ("key", "secret"), transport=mock_transport)

    def test_rejects_transport_for_other_endpoint(self, credentials, mock_transport):
        mock_transport.base_url = "https://other.example.com"
        with pytest.raises(ConfigError):
            KasmClient(ENDPOINT, credentials, transport=mock_transport)

    def test_secret_not_in_repr(self, credentials):
        text = repr(credentials)
        assert "test-api-secret" not in text
        assert "test-api-key" not in text
        assert text.startswith("Credentials(key='test")


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

class TestListImages:

    def test_list_images_body_auth(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({"images": [{
            "image_id": "img1",
            "friendly_name": "Firefox",
            "docker_registry": "https://registry.example.com",
            "available": True,
            "name": "kasmweb/firefox:1.15.0",
            "cores": 2,
            "memory": 2768000000,
        }]}).encode()

        images = client.list_images()

        assert len(images) == 1
        assert images[0].image_id == "img1"
        assert images[0].display_name == "Firefox"
        assert images[0].registry_ref == "https://registry.example.com"
        assert images[0].available is True
        assert mock_transport.execute.call_args.args[0] == "POST"
        assert _path(mock_transport) == "/api/public/get_images"
        assert _body(mock_transport) == {"api_key": "test-api-key", "api_key_secret": "test-api-secret"}
        assert mock_transport.execute.call_args.kwargs["token"] is None

    def test_list_images_bearer_auth(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"images": []}'

        assert client.list_images(use_bearer=True) == []
        kwargs = mock_transport.execute.call_args.kwargs
        assert mock_transport.execute.call_args.args[0] == "GET"
        assert kwargs["token"] == "test-api-key"
        assert kwargs["body"] is None

    def test_missing_images_key_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"items": []}'
        with pytest.raises(DecodeError):
            client.list_images()


IMAGE_SPEC = dict(
    name="kasmweb/terminal:1.15.0",
    friendly_name="Terminal",
    memory=2768000000,
    cores=2,
    docker_registry="https://index.docker.io/v1/",
)


class TestManageImages:

    def test_create_image_payload(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({"image": {
            "image_id": "img9",
            "friendly_name": "Terminal",
            "name": "kasmweb/terminal:1.15.0",
            "available": False,
        }}).encode()

        image = client.create_image(ImageSpec(**IMAGE_SPEC))

        target = _body(mock_transport)["target_image"]
        assert _path(mock_transport) == "/api/public/create_image"
        assert "image_id" not in target
        assert target["memory"] == 2768000000
        assert target["cpu_allocation_method"] == "Inherit"
        assert target["image_type"] == "Container"
        assert target["enabled"] is True
        assert image.image_id == "img9"
        assert image.display_name == "Terminal"

    def test_create_image_rejects_preset_id(self, client, mock_transport):
        with pytest.raises(UsageError):
            client.create_image(ImageSpec(image_id="img9", **IMAGE_SPEC))
        mock_transport.execute.assert_not_called()

    def test_create_image_invalid_memory(self, client, mock_transport):
        spec = ImageSpec(**{**IMAGE_SPEC, "memory": 0})
        with pytest.raises(UsageError) as exc_info:
            client.create_image(spec)
        assert exc_info.value.operation == "create_image"
        assert "memory" in str(exc_info.value)
        mock_transport.execute.assert_not_called()

    def test_update_image(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps(
            {"image": {"image_id": "img9", "friendly_name": "Terminal 2"}}
        ).encode()

        image = client.update_image(ImageSpec(image_id="img9", **{**IMAGE_SPEC, "friendly_name": "Terminal 2"}))

        assert _path(mock_transport) == "/api/public/update_image"
        assert _body(mock_transport)["target_image"]["image_id"] == "img9"
        assert image.display_name == "Terminal 2"

    def test_update_image_requires_id(self, client, mock_transport):
        with pytest.raises(UsageError):
            client.update_image(ImageSpec(**IMAGE_SPEC))
        mock_transport.execute.assert_not_called()

    def test_image_response_without_image_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"result": "ok"}'
        with pytest.raises(DecodeError):
            client.create_image(ImageSpec(**IMAGE_SPEC))

    def test_delete_image(self, client, mock_transport):
        assert client.delete_image("img9") is None
        assert _path(mock_transport) == "/api/public/delete_image"
        assert _body(mock_transport)["target_image"] == {"image_id": "img9"}

    def test_docker_token_not_in_repr(self):
        assert "s3cret" not in repr(ImageSpec(docker_token="s3cret", **IMAGE_SPEC))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class TestUsers:

    def test_create_user_payload(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({"user": USER_JSON}).encode()
        new_user = UserRecord(user_id=None, username="alice@example.com", first_name="Alice")

        created = client.create_user(new_user, password="s3cret")

        body = _body(mock_transport)
        assert _path(mock_transport) == "/api/public/create_user"
        assert body["target_user"]["username"] == "alice@example.com"
        assert body["target_user"]["password"] == "s3cret"
        assert "user_id" not in body["target_user"]
        assert created.user_id == "f2c4"
        assert created.groups == [UserGroup(name="All Users", group_id="g1")]

    def test_get_user_by_username(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps(USER_JSON).encode()

        user = client.get_user(username="alice@example.com")

        assert _body(mock_transport)["target_user"] == {"username": "alice@example.com"}
        assert user.username == "alice@example.com"

    def test_get_user_requires_identifier(self, client, mock_transport):
        with pytest.raises(UsageError):
            client.get_user()
        mock_transport.execute.assert_not_called()

    def test_user_record_round_trip(self, client, mock_transport):
        """Serialized record echoed back by the service decodes to an equal record."""
        record = UserRecord(
            user_id="u-1",
            username="bob",
            first_name="Bob",
            last_name=None,
            locked=True,
            disabled=False,
            organization="Acme",
            phone=None,
            groups=[UserGroup(name="admins", group_id="g-9")],
            realm="ldap",
            notes="on call",
            last_session=None,
        )
        mock_transport.execute.return_value = json.dumps(record.to_dict()).encode()

        assert client.get_user(user_id="u-1") == record

    def test_list_users_wrapped_and_bare(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({"users": [USER_JSON]}).encode()
        assert [u.user_id for u in client.list_users()] == ["f2c4"]

        mock_transport.execute.return_value = json.dumps([USER_JSON, USER_JSON]).encode()
        assert len(client.list_users()) == 2

    def test_update_user_requires_id(self, client, mock_transport):
        with pytest.raises(UsageError):
            client.update_user(UserRecord(user_id=None, username="x"))
        mock_transport.execute.assert_not_called()

    def test_update_user(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({"user": USER_JSON}).encode()
        record = UserRecord(user_id="f2c4", username="alice@example.com", first_name="Alice")

        updated = client.update_user(record)

        assert _body(mock_transport)["target_user"]["user_id"] == "f2c4"
        assert "password" not in _body(mock_transport)["target_user"]
        assert updated.organization == "Wonderland"

    def test_delete_user_force(self, client, mock_transport):
        client.delete_user("f2c4", force=True)

        body = _body(mock_transport)
        assert _path(mock_transport) == "/api/public/delete_user"
        assert body["target_user"] == {"user_id": "f2c4"}
        assert body["force"] is True

    def test_add_user_to_group(self, client, mock_transport):
        assert client.add_user_to_group("f2c4", "g1") is None

        body = _body(mock_transport)
        assert _path(mock_transport) == "/api/public/add_user_group"
        assert body["target_user"] == {"user_id": "f2c4"}
        assert body["target_group"] == {"group_id": "g1"}

    def test_remove_user_from_group(self, client, mock_transport):
        client.remove_user_from_group("f2c4", "g1")

        assert _path(mock_transport) == "/api/public/remove_user_group"
        assert _body(mock_transport)["target_group"] == {"group_id": "g1"}

    def test_group_membership_requires_group(self, client, mock_transport):
        with pytest.raises(UsageError):
            client.add_user_to_group("f2c4", "")
        mock_transport.execute.assert_not_called()

    def test_get_login_link(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"url": "https://kasm.example.com/#/connect/login/x1"}'

        url = client.get_login_link("f2c4")

        assert url == "https://kasm.example.com/#/connect/login/x1"
        assert _path(mock_transport) == "/api/public/get_login"
        assert _body(mock_transport)["target_user"] == {"user_id": "f2c4"}

    def test_get_login_link_missing_url_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"url": ""}'
        with pytest.raises(DecodeError) as exc_info:
            client.get_login_link("f2c4")
        assert exc_info.value.target == "f2c4"

    def test_logout_user(self, client, mock_transport):
        assert client.logout_user("f2c4") is None
        assert _path(mock_transport) == "/api/public/logout_user"

    def test_get_user_attributes(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({"user_attributes": {
            "user_id": "f2c4",
            "toggle_control_panel": True,
            "auto_login_kasm": False,
            "show_tips": True,
            "default_image": "img1",
        }}).encode()

        attrs = client.get_user_attributes("f2c4")

        assert attrs == UserAttributes(
            user_id="f2c4", toggle_control_panel=True, auto_login_kasm=False,
            show_tips=True, default_image="img1",
        )
        assert _path(mock_transport) == "/api/public/get_attributes"

    def test_update_user_attributes_flat_payload(self, client, mock_transport):
        client.update_user_attributes(UserAttributes(user_id="f2c4", show_tips=True))

        body = _body(mock_transport)
        assert body["user_id"] == "f2c4"
        assert body["show_tips"] is True
        assert "default_image" not in body

    def test_user_missing_username_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"user": {"user_id": "f2c4"}}'
        with pytest.raises(DecodeError) as exc_info:
            client.get_user(user_id="f2c4")
        assert exc_info.value.operation == "get_user"
        assert exc_info.value.target == "f2c4"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessions:

    def test_request_session(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({
            "kasm_id": "abc",
            "status": "starting",
            "username": "alice",
            "session_token": "tok",
            "kasm_url": "/#/connect/kasm/abc",
            "share_id": None,
        }).encode()

        session = client.request_session("u1", "img1")

        assert _path(mock_transport) == "/api/public/request_kasm"
        assert _body(mock_transport) == {
            "api_key": "test-api-key",
            "api_key_secret": "test-api-secret",
            "user_id": "u1",
            "image_id": "img1",
        }
        assert session.session_id == "abc"
        assert session.status is SessionStatus.STARTING
        assert session.access_token == "tok"
        assert session.access_url == "/#/connect/kasm/abc"

    def test_request_session_options(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"kasm_id": "abc"}'
        options = SessionOptions(environment={"LANG": "en_US"}, client_timezone="UTC")

        session = client.request_session("u1", "img1", options)

        body = _body(mock_transport)
        assert body["environment"] == {"LANG": "en_US"}
        assert body["client_timezone"] == "UTC"
        assert "enable_sharing" not in body
        assert session.status is SessionStatus.REQUESTED

    def test_request_session_missing_id_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"status": "running"}'
        with pytest.raises(DecodeError):
            client.request_session("u1", "img1")

    def test_request_session_unknown_status_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"kasm_id": "abc", "status": "exploding"}'
        with pytest.raises(DecodeError):
            client.request_session("u1", "img1")

    def test_get_session_status(self, client, mock_transport):
        mock_transport.execute.return_value = json.dumps({
            "operational_status": "Running",
            "operational_message": "Ready",
            "operational_progress": 100,
            "kasm": {"container_ip": "10.0.0.5"},
        }).encode()

        report = client.get_session_status("u1", "abc")

        assert _body(mock_transport)["kasm_id"] == "abc"
        assert report.status is SessionStatus.RUNNING
        assert report.message == "Ready"
        assert report.progress == 100

    def test_status_missing_status_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"operational_progress": 50}'
        with pytest.raises(DecodeError):
            client.get_session_status("u1", "abc")

    def test_status_progress_out_of_range(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"operational_status": "running", "operational_progress": 150}'
        with pytest.raises(DecodeError):
            client.get_session_status("u1", "abc")

    def test_invalid_json_is_decode_error(self, client, mock_transport):
        mock_transport.execute.return_value = b"<html>gateway</html>"
        with pytest.raises(DecodeError):
            client.get_session_status("u1", "abc")

    def test_empty_body_is_decode_error_for_typed_response(self, client, mock_transport):
        mock_transport.execute.return_value = b""
        with pytest.raises(DecodeError):
            client.get_session_status("u1", "abc")

    def test_destroy_session_ignores_body(self, client, mock_transport):
        mock_transport.execute.return_value = b""
        assert client.destroy_session("u1", "abc") is None
        assert _path(mock_transport) == "/api/public/destroy_kasm"

    def test_exec_command_payload(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"kasm_id": "abc", "current_time": "2024-05-01 10:00:00"}'
        exec_request = ExecRequest(
            command="bash -c 'echo hi'",
            environment={"FOO": "bar"},
            working_directory="/home/kasm-user",
            run_as_user="root",
        )

        ack = client.exec_command("u1", "abc", exec_request)

        exec_config = _body(mock_transport)["exec_config"]
        assert exec_config == {
            "cmd": "bash -c 'echo hi'",
            "environment": {"FOO": "bar"},
            "workdir": "/home/kasm-user",
            "user": "root",
        }
        assert ack.session_id == "abc"
        assert ack.timestamp == "2024-05-01 10:00:00"

    def test_exec_command_privileged_flag(self, client, mock_transport):
        mock_transport.execute.return_value = b'{"kasm_id": "abc"}'
        client.exec_command("u1", "abc", ExecRequest(command="id", privileged=True))
        assert _body(mock_transport)["exec_config"] == {"cmd": "id", "privileged": True}

    def test_exec_command_non_string_environment_is_usage_error(self, client, mock_transport):
        exec_request = ExecRequest(command="id", environment={"PORT": 8080})

        with pytest.raises(UsageError) as exc_info:
            client.exec_command("u1", "abc", exec_request)

        assert exc_info.value.operation == "exec_command_kasm"
        assert exc_info.value.target == "abc"
        assert "environment.PORT" in str(exc_info.value)
        assert "test-api-secret" not in str(exc_info.value)
        mock_transport.execute.assert_not_called()

    def test_request_session_invalid_option_is_usage_error(self, client, mock_transport):
        with pytest.raises(UsageError) as exc_info:
            client.request_session("u1", "img1", SessionOptions(environment={"DEBUG": True}))
        assert exc_info.value.operation == "request_kasm"
        mock_transport.execute.assert_not_called()

    def test_transport_error_gets_target_context(self, client, mock_transport):
        mock_transport.execute.side_effect = TransportError(
            "Unexpected response status: 500", status=500, operation="get_kasm_status"
        )
        with pytest.raises(TransportError) as exc_info:
            client.get_session_status("u1", "abc")
        assert exc_info.value.target == "abc"
        assert "target=abc" in str(exc_info.value)


# ---------------------------------------------------------------------------
# Non-success statuses surface for every operation
# ---------------------------------------------------------------------------

ALL_OPERATIONS = [
    ("get_images", lambda c: c.list_images()),
    ("get_images_bearer", lambda c: c.list_images(use_bearer=True)),
    ("create_image", lambda c: c.create_image(ImageSpec(**IMAGE_SPEC))),
    ("update_image", lambda c: c.update_image(ImageSpec(image_id="img9", **IMAGE_SPEC))),
    ("delete_image", lambda c: c.delete_image("img9")),
    ("add_user_group", lambda c: c.add_user_to_group("u1", "g1")),
    ("remove_user_group", lambda c: c.remove_user_from_group("u1", "g1")),
    ("get_login", lambda c: c.get_login_link("u1")),
    ("create_user", lambda c: c.create_user(UserRecord(user_id=None, username="a"), "pw")),
    ("get_user", lambda c: c.get_user(user_id="u1")),
    ("get_users", lambda c: c.list_users()),
    ("update_user", lambda c: c.update_user(UserRecord(user_id="u1", username="a"))),
    ("delete_user", lambda c: c.delete_user("u1")),
    ("logout_user", lambda c: c.logout_user("u1")),
    ("get_attributes", lambda c: c.get_user_attributes("u1")),
    ("update_user_attributes", lambda c: c.update_user_attributes(UserAttributes(user_id="u1"))),
    ("request_kasm", lambda c: c.request_session("u1", "img1")),
    ("get_kasm_status", lambda c: c.get_session_status("u1", "abc")),
    ("destroy_kasm", lambda c: c.destroy_session("u1", "abc")),
    ("exec_command_kasm", lambda c: c.exec_command("u1", "abc", ExecRequest(command="id"))),
]


@pytest.mark.parametrize("status", [401, 403, 500])
@pytest.mark.parametrize("name,call", ALL_OPERATIONS, ids=[n for n, _ in ALL_OPERATIONS])
def test_non_success_status_is_transport_error(http_client, http_session, name, call, status):
    http_session.request.return_value = make_response(status, b'{"error_message": "denied"}')

    with pytest.raises(TransportError) as exc_info:
        call(http_client)

    assert exc_info.value.status == status
    assert exc_info.value.operation == name.replace("_bearer", "")


def test_operation_auth_channels():
    from kasmlink.domain import client as client_module

    assert client_module.GET_IMAGES_BEARER.auth is AuthChannel.BEARER
    for op in (client_module.REQUEST_SESSION, client_module.DESTROY_SESSION, client_module.CREATE_USER):
        assert op.auth is AuthChannel.BODY
        assert op.method == "POST"
