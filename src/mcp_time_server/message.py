"""Message wrapper carried through a session channel."""

from dataclasses import dataclass

from mcp_time_server.types import JSONRPCMessage


@dataclass
class SessionMessage:
    """A JSON-RPC message tagged with the session it travels on."""

    message: JSONRPCMessage
    session_id: str | None = None
