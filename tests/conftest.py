import pytest

from mcp_time_server.dispatcher import ToolDispatcher
from mcp_time_server.server import Server
from mcp_time_server.sse import SseServerTransport
from tests.test_helpers import FIXED_NOW


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def dispatcher() -> ToolDispatcher:
    return ToolDispatcher(clock=lambda: FIXED_NOW)


@pytest.fixture
def server(dispatcher: ToolDispatcher) -> Server:
    return Server("test-time-server", "0.1.0", dispatcher)


@pytest.fixture
def transport(server: Server) -> SseServerTransport:
    return SseServerTransport("/mcp", server, shutdown_timeout=2.0)
