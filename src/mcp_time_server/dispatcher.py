"""Tool dispatch.

The dispatcher validates an invocation against the registry and runs the
matching tool body. Failures come back as values (`ToolFailure`) rather than
exceptions so that the protocol layer is the only place that turns them into
wire-level error frames.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeAlias

import jsonschema

from mcp_time_server.exceptions import InvalidArgumentsError, ToolError, UnknownToolError
from mcp_time_server.registry import ToolRegistry, create_default_registry
from mcp_time_server.tools import DEFAULT_HANDLERS, ToolHandler
from mcp_time_server.types import CallToolResult, Tool

logger = logging.getLogger(__name__)

Clock: TypeAlias = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ToolSuccess:
    result: CallToolResult


@dataclass(frozen=True)
class ToolFailure:
    error: ToolError


DispatchResult: TypeAlias = ToolSuccess | ToolFailure


class ToolDispatcher:
    """Answers tools/list and tools/call against a registry.

    Args:
        registry: tool descriptors; defaults to the built-in time tools
        handlers: tool bodies keyed by name; every registered tool needs one
        clock: source of the current instant handed to tool bodies
        validate_input: validate arguments against each tool's inputSchema
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        handlers: Mapping[str, ToolHandler] | None = None,
        *,
        clock: Clock = utc_now,
        validate_input: bool = True,
    ):
        self.registry = registry if registry is not None else create_default_registry()
        self._handlers = dict(handlers if handlers is not None else DEFAULT_HANDLERS)
        missing = [name for name in self.registry.names if name not in self._handlers]
        if missing:
            raise ValueError(f"No handler registered for tools: {', '.join(missing)}")
        self._clock = clock
        self.validate_input = validate_input

    def list_tools(self) -> list[Tool]:
        return self.registry.list_tools()

    def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> DispatchResult:
        tool = self.registry.get(name)
        if tool is None:
            logger.warning("Call for unknown tool %r", name)
            return ToolFailure(UnknownToolError(name))

        arguments = dict(arguments or {})
        if self.validate_input:
            try:
                jsonschema.validate(instance=arguments, schema=tool.input_schema)
            except jsonschema.ValidationError as e:
                return ToolFailure(InvalidArgumentsError(name, e.message))

        arguments = _apply_defaults(tool, arguments)
        try:
            content = self._handlers[name](arguments, self._clock())
        except ValueError as e:
            return ToolFailure(InvalidArgumentsError(name, str(e)))

        return ToolSuccess(CallToolResult(content=content))


def _apply_defaults(tool: Tool, arguments: dict[str, Any]) -> dict[str, Any]:
    properties: dict[str, Any] = tool.input_schema.get("properties", {})
    for prop, schema in properties.items():
        if prop not in arguments and "default" in schema:
            arguments[prop] = schema["default"]
    return arguments
