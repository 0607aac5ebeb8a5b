"""
Shared pytest fixtures for the kasmlink test suite.
"""

import os
from unittest.mock import MagicMock

import pytest

from kasmlink.domain.client import KasmClient
from kasmlink.domain.session import SessionLifecycle
from kasmlink.domain.types import Credentials, Session, SessionStatus
from kasmlink.transport import Transport

ENDPOINT = "https://kasm.example.com"


# ---------------------------------------------------------------------------
# Environment isolation – loader tests must not see the developer's settings
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("KASMLINK_"):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

@pytest.fixture
def credentials():
    return Credentials("test-api-key", "test-api-secret")


# ---------------------------------------------------------------------------
# HTTP response helper
# ---------------------------------------------------------------------------

def make_response(status_code=200, body=b"", reason=None):
    """Build a mock requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = reason if reason is not None else ("OK" if status_code < 400 else "Error")
    resp.content = body
    return resp


# ---------------------------------------------------------------------------
# Stub transport (client / lifecycle tests)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_transport():
    """MagicMock standing in for Transport; set execute.return_value / side_effect."""
    transport = MagicMock(spec=Transport)
    transport.base_url = ENDPOINT
    transport.execute.return_value = b""
    return transport


@pytest.fixture
def client(credentials, mock_transport):
    return KasmClient(ENDPOINT, credentials, transport=mock_transport)


@pytest.fixture
def lifecycle(client):
    return SessionLifecycle(client)


# ---------------------------------------------------------------------------
# Real Transport over a mocked requests.Session (wire-level tests)
# ---------------------------------------------------------------------------

@pytest.fixture
def http_session():
    session = MagicMock()
    session.request.return_value = make_response(200, b"{}")
    return session


@pytest.fixture
def http_transport(http_session):
    return Transport(ENDPOINT, session=http_session)


@pytest.fixture
def http_client(credentials, http_transport):
    return KasmClient(ENDPOINT, credentials, transport=http_transport)


# ---------------------------------------------------------------------------
# Sample session factory
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_session():
    """Factory for a realistic Session instance."""
    def _make(**overrides) -> Session:
        defaults = {
            "session_id": "abc",
            "user_id": "u1",
            "image_id": "img1",
            "status": SessionStatus.RUNNING,
            "progress": 100,
            "ready_observed": True,
        }
        defaults.update(overrides)
        return Session(**defaults)
    return _make
