"""In-memory session table.

A session is one client's live association with a streaming channel. The
table is the only state shared between sessions; every access goes through a
single lock that is held for the dictionary operation only, so work on one
session never waits behind work on another.
"""

from __future__ import annotations

import logging
from enum import Enum
from uuid import uuid4

import anyio
from anyio.streams.memory import MemoryObjectSendStream

from mcp_time_server.message import SessionMessage

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    CREATED = "created"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class Session:
    """A session and the inbound end of its channel.

    Lifecycle: ``created -> open -> closing -> closed``. Only open sessions
    accept messages. The owner of the stream drives the transitions; anybody
    may ask for the session to close and wait for it with `wait_closed`.
    """

    def __init__(self, session_id: str, channel: MemoryObjectSendStream[SessionMessage]):
        self.session_id = session_id
        self.channel = channel
        self.status = SessionStatus.CREATED
        self._closed = anyio.Event()
        self._close_requested = False
        self._stream_scope: anyio.CancelScope | None = None

    def __repr__(self) -> str:
        return f"Session({self.session_id!r}, status={self.status.value})"

    @property
    def is_open(self) -> bool:
        return self.status is SessionStatus.OPEN

    @property
    def close_requested(self) -> bool:
        return self._close_requested

    def mark_open(self) -> None:
        if self.status is SessionStatus.CREATED and not self._close_requested:
            self.status = SessionStatus.OPEN

    def mark_closing(self) -> None:
        if self.status in (SessionStatus.CREATED, SessionStatus.OPEN):
            self.status = SessionStatus.CLOSING

    def mark_closed(self) -> None:
        self.status = SessionStatus.CLOSED
        self._closed.set()

    def bind_stream_scope(self, scope: anyio.CancelScope) -> None:
        """Attach the cancel scope of the push stream so `request_close` can end it."""
        self._stream_scope = scope
        if self._close_requested:
            scope.cancel()

    def request_close(self) -> None:
        """Ask the stream owner to tear this session down."""
        self._close_requested = True
        self.mark_closing()
        if self._stream_scope is not None:
            self._stream_scope.cancel()

    async def deliver(self, message: SessionMessage) -> None:
        """Forward a message into the channel.

        Raises:
            anyio.ClosedResourceError / anyio.BrokenResourceError: the channel is gone
        """
        await self.channel.send(message)

    async def wait_closed(self) -> None:
        await self._closed.wait()


class SessionTable:
    """Mapping from session id to `Session` with atomic create/get/remove."""

    def __init__(self) -> None:
        self._lock = anyio.Lock()
        self._sessions: dict[str, Session] = {}

    async def create(self, channel: MemoryObjectSendStream[SessionMessage]) -> Session:
        async with self._lock:
            session_id = uuid4().hex
            while session_id in self._sessions:
                session_id = uuid4().hex
            session = Session(session_id, channel)
            self._sessions[session_id] = session
        logger.debug("Created session %s", session_id)
        return session

    async def get(self, session_id: str) -> Session | None:
        async with self._lock:
            return self._sessions.get(session_id)

    async def remove(self, session_id: str) -> None:
        async with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.debug("Removed session %s", session_id)

    async def snapshot(self) -> list[Session]:
        async with self._lock:
            return list(self._sessions.values())

    async def clear(self) -> None:
        async with self._lock:
            self._sessions.clear()

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
