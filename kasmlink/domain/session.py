"""
Session lifecycle: request -> poll -> (exec) -> destroy.

The lifecycle keeps no session table. The caller owns each Session object
and must pass the same object to every call; state checks (exec before
ready, anything after destroy) are made against that object and fail
before any network call.

There is no polling policy here: ``poll_status`` performs exactly one fetch.
Cadence, backoff and giving up are the caller's decision.
"""

from __future__ import annotations

import logging

from kasmlink.domain.client import DESTROY_SESSION, EXEC_COMMAND, GET_SESSION_STATUS, KasmClient
from kasmlink.domain.types import (
    READY_STATUSES,
    ExecAck,
    ExecRequest,
    Session,
    SessionOptions,
    SessionStatus,
)
from kasmlink.errors import NotFoundError, TransportError, UsageError

logger = logging.getLogger("kasmlink")

HTTP_NOT_FOUND = 404


class SessionLifecycle:
    """Sequences client calls over the life of a remote session."""

    def __init__(self, client: KasmClient) -> None:
        self.client = client

    @staticmethod
    def _ensure_exists(session: Session, operation: str) -> None:
        if session.is_destroyed:
            raise NotFoundError(
                f"Session {session.session_id} has been destroyed",
                operation=operation,
                target=session.session_id,
            )

    def request_session(
        self, user_id: str, image_id: str, options: SessionOptions | None = None
    ) -> Session:
        """
        Request a new session. Returns immediately with the reported status.

        Args:
            user_id: Owner of the session
            image_id: Image to launch
            options: Optional request parameters

        Returns:
            New Session snapshot
        """
        session = self.client.request_session(user_id, image_id, options)
        session.ready_observed = session.status in READY_STATUSES
        return session

    def poll_status(self, session: Session) -> Session:
        """
        Refresh status, message and progress with a single fetch.

        Args:
            session: Session to refresh (mutated in place)

        Returns:
            The same Session object

        Raises:
            NotFoundError: If the session was destroyed
        """
        self._ensure_exists(session, GET_SESSION_STATUS.name)
        report = self.client.get_session_status(session.user_id, session.session_id)
        session.status = report.status
        session.status_message = report.message
        session.progress = report.progress
        if report.access_url:
            session.access_url = report.access_url
        if report.status in READY_STATUSES:
            session.ready_observed = True
        return session

    def exec_command(self, session: Session, exec_request: ExecRequest) -> ExecAck:
        """
        Forward a command to a session that has been observed ready.

        Raises:
            NotFoundError: If the session was destroyed
            UsageError: If no ready status has been observed yet, or the
                last observed status is terminal
        """
        self._ensure_exists(session, EXEC_COMMAND.name)
        if session.is_terminal:
            raise UsageError(
                f"Session {session.session_id} is in terminal state {session.status.value}",
                operation=EXEC_COMMAND.name,
                target=session.session_id,
            )
        if not session.ready_observed:
            raise UsageError(
                f"Session {session.session_id} has not been observed ready "
                f"(last status: {session.status.value}); poll until running first",
                operation=EXEC_COMMAND.name,
                target=session.session_id,
            )
        return self.client.exec_command(session.user_id, session.session_id, exec_request)

    def destroy_session(self, session: Session) -> None:
        """
        Destroy a session and mark it destroyed.

        Destroying an already-destroyed Session is a no-op. A 404 from the
        service means the session is already gone and is treated the same way.
        """
        if session.is_destroyed:
            logger.info(f"Session {session.session_id} already destroyed, nothing to do")
            return
        try:
            self.client.destroy_session(session.user_id, session.session_id)
        except TransportError as e:
            if e.status != HTTP_NOT_FOUND:
                raise
            logger.warning(
                f"Session {session.session_id} not found remotely during {DESTROY_SESSION.name}; "
                "treating as destroyed"
            )
        session.status = SessionStatus.DESTROYED
        session.status_message = ""
        session.ready_observed = False
