"""
Protocol server for a single session channel.

The server decodes JSON-RPC frames arriving on a channel, answers the MCP
lifecycle requests (``initialize``, ``ping``) and the tool requests
(``tools/list``, ``tools/call``), and writes responses back to the channel.

Usage:
    server = Server("mcp-time-server", "1.0.0")

    async with anyio.create_task_group() as tg:
        await tg.start(server.run, read_stream, write_stream)
        ...

Messages on one channel are handled strictly in arrival order. A failing
request never stops the loop: it is answered with a JSON-RPC error frame.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import anyio
from anyio.abc import TaskStatus
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from pydantic import BaseModel, ValidationError

import mcp_time_server.types as types
from mcp_time_server.dispatcher import ToolDispatcher, ToolFailure, ToolSuccess
from mcp_time_server.message import SessionMessage

logger = logging.getLogger(__name__)

RequestHandler = Callable[[types.JSONRPCRequest], Awaitable[BaseModel | types.ErrorData]]


class Server:
    def __init__(
        self,
        name: str,
        version: str,
        dispatcher: ToolDispatcher | None = None,
        instructions: str | None = None,
    ):
        self.name = name
        self.version = version
        self.instructions = instructions
        self.dispatcher = dispatcher if dispatcher is not None else ToolDispatcher()
        self.request_handlers: dict[str, RequestHandler] = {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "tools/list": self._handle_list_tools,
            "tools/call": self._handle_call_tool,
        }
        logger.debug("Initializing server %r", name)

    def get_capabilities(self) -> types.ServerCapabilities:
        return types.ServerCapabilities(tools={"listChanged": False})

    async def run(
        self,
        read_stream: MemoryObjectReceiveStream[SessionMessage],
        write_stream: MemoryObjectSendStream[SessionMessage],
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        """Serve one channel until its inbound stream is closed."""
        async with read_stream, write_stream:
            task_status.started()
            try:
                async for session_message in read_stream:
                    logger.debug("Received message: %s", session_message)
                    response = await self.handle_message(session_message.message)
                    if response is None:
                        continue
                    try:
                        await write_stream.send(SessionMessage(response, session_id=session_message.session_id))
                    except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                        logger.debug("Channel for session %s closed, dropping response", session_message.session_id)
            except anyio.ClosedResourceError:
                # the transport closed the inbound stream while a message was being handled
                logger.debug("Inbound stream closed, stopping")

    async def handle_message(self, message: types.JSONRPCMessage) -> types.JSONRPCResponse | None:
        match message:
            case types.JSONRPCRequest():
                return await self.dispatch_request(message)
            case types.JSONRPCNotification(method=method):
                logger.debug("Received notification %s", method)
                return None
            case _:
                # the server never issues requests, so client responses are unsolicited
                logger.debug("Ignoring unsolicited response: %s", message)
                return None

    async def dispatch_request(self, request: types.JSONRPCRequest) -> types.JSONRPCResponse:
        handler = self.request_handlers.get(request.method)
        if handler is None:
            return types.JSONRPCErrorResponse(
                id=request.id,
                error=types.ErrorData(code=types.METHOD_NOT_FOUND, message=f"Method not found: {request.method}"),
            )

        logger.debug("Dispatching request %s (id=%s)", request.method, request.id)
        try:
            result = await handler(request)
        except ValidationError as err:
            return types.JSONRPCErrorResponse(
                id=request.id,
                error=types.ErrorData(code=types.INVALID_PARAMS, message=f"Invalid params: {err.error_count()} error(s)"),
            )
        except Exception:
            logger.exception("Handler error for %s", request.method)
            return types.JSONRPCErrorResponse(
                id=request.id,
                error=types.ErrorData(code=types.INTERNAL_ERROR, message="Internal error"),
            )

        if isinstance(result, types.ErrorData):
            return types.JSONRPCErrorResponse(id=request.id, error=result)
        return types.JSONRPCResultResponse(id=request.id, result=result.model_dump(by_alias=True, exclude_none=True))

    async def _handle_initialize(self, request: types.JSONRPCRequest) -> types.InitializeResult:
        params = types.InitializeRequestParams.model_validate(request.params or {})
        if params.protocol_version in types.SUPPORTED_PROTOCOL_VERSIONS:
            protocol_version = params.protocol_version
        else:
            protocol_version = types.LATEST_PROTOCOL_VERSION
        logger.info(
            "Initializing session for client %s %s (protocol %s)",
            params.client_info.name,
            params.client_info.version,
            protocol_version,
        )
        return types.InitializeResult(
            protocol_version=protocol_version,
            capabilities=self.get_capabilities(),
            server_info=types.Implementation(name=self.name, version=self.version),
            instructions=self.instructions,
        )

    async def _handle_ping(self, request: types.JSONRPCRequest) -> types.EmptyResult:
        return types.EmptyResult()

    async def _handle_list_tools(self, request: types.JSONRPCRequest) -> types.ListToolsResult:
        return types.ListToolsResult(tools=self.dispatcher.list_tools())

    async def _handle_call_tool(self, request: types.JSONRPCRequest) -> types.CallToolResult | types.ErrorData:
        params = types.CallToolRequestParams.model_validate(request.params or {})
        logger.info("Received request for tool: %s %s", params.name, params.arguments or {})

        match self.dispatcher.call_tool(params.name, params.arguments):
            case ToolSuccess(result=result):
                return result
            case ToolFailure(error=error):
                return error.to_error_data()
