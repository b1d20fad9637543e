"""
SSE Server Transport Module

This module implements the front door of the time server: a Server-Sent Events
(SSE) transport pairing one long-lived server-to-client stream with
client-to-server messages posted over separate HTTP requests.

Example usage:
```
    server = Server("mcp-time-server", "1.0.0")
    sse = SseServerTransport("/mcp", server)

    starlette_app = Starlette(routes=[Route("/mcp", endpoint=sse, methods=["GET", "POST"])])
```

See SseServerTransport class documentation for more details.
"""

import logging
from typing import Any
from urllib.parse import quote

import anyio
from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import Receive, Scope, Send

import mcp_time_server.types as types
from mcp_time_server.exceptions import InvalidSessionError, TransportFailureError
from mcp_time_server.message import SessionMessage
from mcp_time_server.server import Server
from mcp_time_server.sessions import Session, SessionTable

logger = logging.getLogger(__name__)

SESSION_ID_PARAM = "sessionId"


class SseServerTransport:
    """
    SSE server transport for the time server. This class is an ASGI application
    serving two kinds of requests on the same path:

    1. GET opens a session: the response is an SSE stream whose first event
       (``endpoint``) tells the client where to post its messages, followed by
       one ``message`` event per JSON-RPC frame the server emits.
    2. POST delivers one JSON-RPC message to the session named by the
       ``sessionId`` query parameter.

    Each open stream owns a session in the session table. The entry is removed
    exactly once, when the stream ends, after any in-flight request on that
    session has been answered.
    """

    def __init__(
        self,
        endpoint: str,
        server: Server,
        sessions: SessionTable | None = None,
        *,
        shutdown_timeout: float = 5.0,
    ) -> None:
        """
        Creates a new SSE server transport.

        Args:
            endpoint: The relative path announced to clients for posting messages.
            server: The protocol server run on every channel.
            sessions: Session table to register sessions in.
            shutdown_timeout: Upper bound, in seconds, `aclose` waits for sessions to close.
        """
        super().__init__()
        self._endpoint = endpoint
        self.server = server
        self.sessions = sessions if sessions is not None else SessionTable()
        self.shutdown_timeout = shutdown_timeout
        logger.debug(f"SseServerTransport initialized with endpoint: {endpoint}")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        method = scope.get("method", "GET")
        if method == "POST":
            await self.handle_post_message(scope, receive, send)
        elif method == "GET":
            await self.handle_sse(scope, receive, send)
        else:
            response = PlainTextResponse("Method Not Allowed", status_code=405, headers={"Allow": "GET, POST"})
            await response(scope, receive, send)

    def _message_uri(self, scope: Scope, session_id: str) -> str:
        root_path = scope.get("root_path", "")
        full_message_path = root_path.rstrip("/") + self._endpoint
        return f"{quote(full_message_path)}?{SESSION_ID_PARAM}={session_id}"

    async def handle_sse(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Open a session and stream its frames until the client goes away or the session is closed."""
        logger.debug("Setting up SSE connection")
        read_stream_writer, read_stream = anyio.create_memory_object_stream[SessionMessage](0)
        write_stream, write_stream_reader = anyio.create_memory_object_stream[SessionMessage](0)
        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream[dict[str, Any]](0)

        session = await self.sessions.create(read_stream_writer)
        try:
            session_uri = self._message_uri(scope, session.session_id)

            async def sse_writer():
                async with sse_stream_writer, write_stream_reader:
                    session.mark_open()
                    await sse_stream_writer.send({"event": "endpoint", "data": session_uri})
                    logger.info("SSE connection established for session: %s", session.session_id)

                    async for session_message in write_stream_reader:
                        logger.debug(f"Sending message via SSE: {session_message}")
                        await sse_stream_writer.send(
                            {
                                "event": "message",
                                "data": session_message.message.model_dump_json(by_alias=True, exclude_none=True),
                            }
                        )

            response = EventSourceResponse(content=sse_stream_reader, data_sender_callable=sse_writer)

            async with anyio.create_task_group() as tg:
                await tg.start(self.server.run, read_stream, write_stream)
                try:
                    await self._push_events(session, response, scope, receive, send)
                except TransportFailureError as err:
                    logger.warning("%s, forcing session cleanup", err, exc_info=err.__cause__)
                finally:
                    # No further dispatch; the message being handled may still finish.
                    # Closing the receive side also fails posts still waiting to be delivered.
                    session.mark_closing()
                    await read_stream_writer.aclose()
                    await read_stream.aclose()
                    await write_stream_reader.aclose()
        finally:
            with anyio.CancelScope(shield=True):
                await self.sessions.remove(session.session_id)
                session.mark_closed()
            logger.info("Session %s closed", session.session_id)

    async def _push_events(
        self, session: Session, response: EventSourceResponse, scope: Scope, receive: Receive, send: Send
    ) -> None:
        with anyio.CancelScope() as stream_scope:
            session.bind_stream_scope(stream_scope)
            try:
                await response(scope, receive, send)
            except Exception as exc:
                raise TransportFailureError(session.session_id) from exc
        if stream_scope.cancelled_caught:
            logger.debug("Stream for session %s closed by server", session.session_id)
        else:
            logger.debug("Client disconnected from session %s", session.session_id)

    async def _resolve_session(self, session_id: str | None) -> Session:
        if not session_id:
            raise InvalidSessionError(session_id)
        session = await self.sessions.get(session_id)
        if session is None or not session.is_open:
            raise InvalidSessionError(session_id)
        return session

    async def handle_post_message(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Deliver one posted JSON-RPC message into its session's channel."""
        logger.debug("Handling POST message")
        request = Request(scope, receive)
        session_id = request.query_params.get(SESSION_ID_PARAM) or request.query_params.get("session_id")

        try:
            session = await self._resolve_session(session_id)
        except InvalidSessionError as err:
            logger.warning("Rejected message: %s", err)
            response = JSONResponse({"error": InvalidSessionError.message}, status_code=400)
            return await response(scope, receive, send)

        body = await request.body()
        logger.debug(f"Received JSON: {body!r}")

        try:
            message = types.JSONRPCMessageAdapter.validate_json(body)
            logger.debug(f"Validated client message: {message}")
        except ValidationError as err:
            logger.warning(f"Failed to parse message: {err}")
            response = JSONResponse({"error": "Could not parse message"}, status_code=400)
            return await response(scope, receive, send)

        try:
            await session.deliver(SessionMessage(message, session_id=session.session_id))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning("Session %s closed before message could be delivered", session.session_id)
            response = JSONResponse({"error": InvalidSessionError.message}, status_code=400)
            return await response(scope, receive, send)

        logger.debug(f"Sending session message to session {session.session_id}")
        response = Response("Accepted", status_code=202)
        await response(scope, receive, send)

    async def close_session(self, session_id: str) -> bool:
        """Tear down one session and wait until it is gone from the table.

        Returns False when no such session exists.
        """
        session = await self.sessions.get(session_id)
        if session is None:
            return False
        session.request_close()
        await session.wait_closed()
        return True

    async def aclose(self) -> None:
        """Close every open session and clear the table."""
        sessions = await self.sessions.snapshot()
        if sessions:
            logger.info("Closing %d open session(s)", len(sessions))
        for session in sessions:
            session.request_close()
        with anyio.move_on_after(self.shutdown_timeout) as scope:
            for session in sessions:
                await session.wait_closed()
        if scope.cancelled_caught:
            logger.warning("Timed out waiting for sessions to close")
        await self.sessions.clear()
