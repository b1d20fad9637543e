"""Tests for the per-channel protocol server."""

import anyio
import pytest

import mcp_time_server.types as types
from mcp_time_server.dispatcher import ToolDispatcher
from mcp_time_server.message import SessionMessage
from mcp_time_server.server import Server
from tests.test_helpers import jsonrpc_request

pytestmark = pytest.mark.anyio


def _request(method: str, request_id: int = 1, params: dict | None = None) -> types.JSONRPCRequest:
    return types.JSONRPCMessageAdapter.validate_python(jsonrpc_request(method, request_id, params))


async def test_initialize_handshake(server: Server):
    response = await server.handle_message(
        _request(
            "initialize",
            params={
                "protocolVersion": "2024-11-05",
                "capabilities": {},
                "clientInfo": {"name": "test-client", "version": "1.0"},
            },
        )
    )

    assert isinstance(response, types.JSONRPCResultResponse)
    assert response.result["protocolVersion"] == "2024-11-05"
    assert response.result["serverInfo"] == {"name": "test-time-server", "version": "0.1.0"}
    assert "tools" in response.result["capabilities"]


async def test_initialize_negotiates_latest_for_unknown_version(server: Server):
    response = await server.handle_message(
        _request(
            "initialize",
            params={"protocolVersion": "1999-01-01", "clientInfo": {"name": "old", "version": "0"}},
        )
    )

    assert isinstance(response, types.JSONRPCResultResponse)
    assert response.result["protocolVersion"] == types.LATEST_PROTOCOL_VERSION


async def test_initialize_with_bad_params(server: Server):
    response = await server.handle_message(_request("initialize", params={"capabilities": {}}))

    assert isinstance(response, types.JSONRPCErrorResponse)
    assert response.error.code == types.INVALID_PARAMS


async def test_ping(server: Server):
    response = await server.handle_message(_request("ping", 4))
    assert response == types.JSONRPCResultResponse(id=4, result={})


async def test_unknown_method(server: Server):
    response = await server.handle_message(_request("resources/list"))

    assert isinstance(response, types.JSONRPCErrorResponse)
    assert response.error.code == types.METHOD_NOT_FOUND


async def test_notifications_and_responses_are_not_answered(server: Server):
    notification = types.JSONRPCMessageAdapter.validate_python(
        {"jsonrpc": "2.0", "method": "notifications/initialized"}
    )
    assert isinstance(notification, types.JSONRPCNotification)
    assert await server.handle_message(notification) is None

    stray = types.JSONRPCMessageAdapter.validate_python({"jsonrpc": "2.0", "id": 9, "result": {}})
    assert isinstance(stray, types.JSONRPCResultResponse)
    assert await server.handle_message(stray) is None


async def test_list_tools_is_stable_across_calls(server: Server):
    first = await server.handle_message(_request("tools/list", 1))
    await server.handle_message(_request("tools/call", 2, {"name": "get_current_time", "arguments": {}}))
    await server.handle_message(_request("tools/call", 3, {"name": "nope", "arguments": {}}))
    second = await server.handle_message(_request("tools/list", 4))

    assert isinstance(first, types.JSONRPCResultResponse)
    assert isinstance(second, types.JSONRPCResultResponse)
    assert first.result == second.result
    assert [tool["name"] for tool in first.result["tools"]] == ["get_current_time", "get_timezone_info"]


async def test_call_tool_default_format(server: Server):
    response = await server.handle_message(_request("tools/call", params={"name": "get_current_time"}))

    assert isinstance(response, types.JSONRPCResultResponse)
    assert response.result == {
        "content": [{"type": "text", "text": "2026-10-19T12:00:00.123Z"}],
        "isError": False,
    }


async def test_call_tool_failures_are_typed_errors(server: Server):
    unknown = await server.handle_message(_request("tools/call", 1, {"name": "does_not_exist"}))
    invalid = await server.handle_message(
        _request("tools/call", 2, {"name": "get_current_time", "arguments": {"format": "julian"}})
    )

    assert isinstance(unknown, types.JSONRPCErrorResponse)
    assert unknown.error.code == types.INVALID_PARAMS
    assert unknown.error.message == "Unknown tool: does_not_exist"
    assert unknown.error.data == {"kind": "unknown_tool", "tool": "does_not_exist"}

    assert isinstance(invalid, types.JSONRPCErrorResponse)
    assert invalid.error.code == types.INVALID_PARAMS
    assert invalid.error.data["kind"] == "invalid_arguments"


async def test_call_tool_without_name(server: Server):
    response = await server.handle_message(_request("tools/call", params={"arguments": {}}))

    assert isinstance(response, types.JSONRPCErrorResponse)
    assert response.error.code == types.INVALID_PARAMS


async def test_handler_crash_becomes_internal_error():
    class ExplodingDispatcher(ToolDispatcher):
        def list_tools(self):
            raise RuntimeError("boom")

    server = Server("test", "0.1.0", ExplodingDispatcher())
    response = await server.handle_message(_request("tools/list"))

    assert isinstance(response, types.JSONRPCErrorResponse)
    assert response.error.code == types.INTERNAL_ERROR
    assert response.error.message == "Internal error"


async def test_run_answers_in_order_and_stops_when_channel_closes(server: Server):
    to_server, server_reader = anyio.create_memory_object_stream[SessionMessage](0)
    server_writer, from_server = anyio.create_memory_object_stream[SessionMessage](10)

    async with anyio.create_task_group() as tg:
        await tg.start(server.run, server_reader, server_writer)

        async with to_server:
            for request_id in (1, 2, 3):
                await to_server.send(SessionMessage(_request("ping", request_id), session_id="s1"))

        responses = [message async for message in from_server]

    assert [message.message.id for message in responses] == [1, 2, 3]
    assert {message.session_id for message in responses} == {"s1"}


async def test_run_drops_responses_for_closed_channel(server: Server):
    to_server, server_reader = anyio.create_memory_object_stream[SessionMessage](0)
    server_writer, from_server = anyio.create_memory_object_stream[SessionMessage](0)
    from_server.close()

    async with anyio.create_task_group() as tg:
        await tg.start(server.run, server_reader, server_writer)
        async with to_server:
            await to_server.send(SessionMessage(_request("ping", 1)))
            await to_server.send(SessionMessage(_request("ping", 2)))


async def test_run_stops_when_inbound_stream_closes_mid_request(server: Server):
    started, gate = anyio.Event(), anyio.Event()

    async def slow(request: types.JSONRPCRequest) -> types.EmptyResult:
        started.set()
        await gate.wait()
        return types.EmptyResult()

    server.request_handlers["test/slow"] = slow
    to_server, server_reader = anyio.create_memory_object_stream[SessionMessage](0)
    server_writer, from_server = anyio.create_memory_object_stream[SessionMessage](10)
    outcomes: list[str] = []

    async def send_second() -> None:
        try:
            await to_server.send(SessionMessage(_request("ping", 2)))
        except anyio.BrokenResourceError:
            outcomes.append("rejected")
        else:
            outcomes.append("delivered")

    async with anyio.create_task_group() as tg:
        await tg.start(server.run, server_reader, server_writer)
        await to_server.send(SessionMessage(_request("test/slow", 1)))
        await started.wait()

        tg.start_soon(send_second)
        with anyio.fail_after(5):
            while to_server.statistics().tasks_waiting_send == 0:
                await anyio.sleep(0.01)

        server_reader.close()
        gate.set()

    to_server.close()
    responses = [message async for message in from_server]
    assert [message.message.id for message in responses] == [1]
    assert outcomes == ["rejected"]
