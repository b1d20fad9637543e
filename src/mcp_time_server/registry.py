"""Static catalog of the tools this server exposes."""

from collections.abc import Iterable, Iterator
from types import MappingProxyType

from mcp_time_server.types import Tool

GET_CURRENT_TIME = Tool(
    name="get_current_time",
    description="Get the current date and time",
    input_schema={
        "type": "object",
        "properties": {
            "format": {
                "type": "string",
                "description": "Time format: 'iso', 'local', or 'unix'",
                "enum": ["iso", "local", "unix"],
                "default": "iso",
            }
        },
        "required": [],
        "additionalProperties": False,
    },
)

GET_TIMEZONE_INFO = Tool(
    name="get_timezone_info",
    description="Get timezone information for the current system",
    input_schema={
        "type": "object",
        "properties": {},
        "required": [],
        "additionalProperties": False,
    },
)


class ToolRegistry:
    """Immutable, declaration-ordered mapping of tool name to descriptor."""

    def __init__(self, tools: Iterable[Tool]):
        by_name: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in by_name:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            by_name[tool.name] = tool
        self._tools = MappingProxyType(by_name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        return list(self._tools.values())

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def create_default_registry() -> ToolRegistry:
    return ToolRegistry([GET_CURRENT_TIME, GET_TIMEZONE_INFO])
