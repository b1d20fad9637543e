from typing import Any, ClassVar

from mcp_time_server.types import INVALID_PARAMS, ErrorData


class McpTimeServerError(Exception):
    """Base class for errors raised by the time server."""


class InvalidSessionError(McpTimeServerError):
    """A posted message referenced a session that is missing, unknown or no longer open.

    This is caller misuse (or a stream that already closed), so the front door
    answers it with a client error rather than a server fault.
    """

    message: ClassVar[str] = "Invalid session ID"

    def __init__(self, session_id: str | None):
        super().__init__(f"{self.message}: {session_id!r}")
        self.session_id = session_id


class ToolError(McpTimeServerError):
    """A tool invocation that could not produce a result.

    Attributes:
        kind: machine readable failure kind carried in the JSON-RPC error data
        tool_name: name of the tool the caller asked for
    """

    kind: ClassVar[str] = "tool_error"

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name

    def to_error_data(self) -> ErrorData:
        data: dict[str, Any] = {"kind": self.kind, "tool": self.tool_name}
        return ErrorData(code=INVALID_PARAMS, message=str(self), data=data)


class UnknownToolError(ToolError):
    kind: ClassVar[str] = "unknown_tool"

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Unknown tool: {tool_name}")


class InvalidArgumentsError(ToolError):
    kind: ClassVar[str] = "invalid_arguments"

    def __init__(self, tool_name: str, reason: str):
        super().__init__(tool_name, f"Invalid arguments for tool {tool_name}: {reason}")
        self.reason = reason


class TransportFailureError(McpTimeServerError):
    """The server-to-client stream of a session broke unexpectedly."""

    def __init__(self, session_id: str):
        super().__init__(f"Transport failure on session {session_id}")
        self.session_id = session_id
