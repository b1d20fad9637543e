"""An MCP server exposing time tools over an SSE session transport."""

__version__ = "1.0.0"

SERVER_NAME = "mcp-time-server"

from mcp_time_server.dispatcher import ToolDispatcher, ToolFailure, ToolSuccess  # noqa: E402
from mcp_time_server.registry import ToolRegistry, create_default_registry  # noqa: E402
from mcp_time_server.server import Server  # noqa: E402
from mcp_time_server.sessions import Session, SessionStatus, SessionTable  # noqa: E402
from mcp_time_server.sse import SseServerTransport  # noqa: E402

__all__ = [
    "SERVER_NAME",
    "Server",
    "Session",
    "SessionStatus",
    "SessionTable",
    "SseServerTransport",
    "ToolDispatcher",
    "ToolFailure",
    "ToolRegistry",
    "ToolSuccess",
    "__version__",
    "create_default_registry",
]
