"""
MCP Tools System
================

Tools are capabilities the model can call mid-answer to fetch live data.
They follow the Model Context Protocol (MCP) pattern:
- Each tool has a unique name, a description and a JSON parameter schema
- The model decides which tool to call and with which arguments
- Arguments are validated into a typed dataclass before the tool runs
- Results come back as a ToolResult, which is fed to the model verbatim

Tools never raise. Every failure (bad arguments, 404, rate limit, network)
becomes a ToolResult describing the problem, so the conversation keeps
going and the model can explain what happened.

Each tool keeps two representations in sync by hand: the `parameters`
schema shown to the model and the typed arguments built by `parse_args`.

This module provides:
- ToolResult for standardized responses
- MCPTool, the base class for tools
- ToolRegistry for looking tools up by name
"""

import json
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from oss_advisor.utils.errors import ToolArgumentError
from oss_advisor.utils.logger import Logger

logger = Logger("Tools")

ArgsT = TypeVar("ArgsT")


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool did what was asked
        data: Formatted text or a structured record
        error: Descriptive message when success is False
    """
    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_message(self) -> str:
        """Format as tool-message content for the model."""
        if not self.success:
            return self.error or "Error: the tool failed without a message."
        if isinstance(self.data, str):
            return self.data
        return json.dumps(self.data, default=str)


# ==============================================================================
# Argument helpers
# ==============================================================================

def require_str(params: dict, key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolArgumentError(f"'{key}' is required and must be a non-empty string")
    return value.strip()


def optional_str(params: dict, key: str) -> str | None:
    value = params.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolArgumentError(f"'{key}' must be a string")
    return value.strip() or None


def optional_enum(params: dict, key: str, allowed: tuple[str, ...]) -> str | None:
    value = optional_str(params, key)
    if value is not None and value not in allowed:
        raise ToolArgumentError(f"'{key}' must be one of: {', '.join(allowed)}")
    return value


def optional_bool(params: dict, key: str) -> bool | None:
    value = params.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ToolArgumentError(f"'{key}' must be a boolean")
    return value


class MCPTool(Generic[ArgsT]):
    """
    Base class for tools.

    Subclasses set `name`, `description` and `parameters`, and implement
    `parse_args` and `run`.

    Example:
        @dataclass(frozen=True)
        class EchoArgs:
            text: str

        class EchoTool(MCPTool[EchoArgs]):
            name = "echo"
            description = "Repeat the text back"
            parameters = {
                "type": "object",
                "properties": {"text": {"type": "string", "description": "Text to echo"}},
                "required": ["text"],
            }

            def parse_args(self, params: dict) -> EchoArgs:
                return EchoArgs(text=require_str(params, "text"))

            async def run(self, args: EchoArgs) -> ToolResult:
                return ToolResult.ok(args.text)
    """
    name: str = ""
    description: str = ""
    parameters: dict = {"type": "object", "properties": {}, "required": []}

    def parse_args(self, params: dict) -> ArgsT:
        """
        Validate raw model arguments into the tool's typed arguments.

        Raises:
            ToolArgumentError: If the arguments do not fit the schema
        """
        raise NotImplementedError

    async def run(self, args: ArgsT) -> ToolResult:
        raise NotImplementedError

    async def execute(self, params: dict) -> ToolResult:
        """Validate then run. Never raises."""
        try:
            args = self.parse_args(params or {})
        except ToolArgumentError as e:
            return ToolResult.fail(f"Error: Invalid input format for {self.name}: {e}")

        try:
            return await self.run(args)
        except Exception as e:
            logger.error(f"Tool {self.name} raised unexpectedly", e)
            return ToolResult.fail(f"Error: {self.name} failed unexpectedly: {e}")

    def to_openai_function(self) -> dict:
        """Declaration in OpenAI's function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """
    Tools available to the model, looked up by name.

    Tools are registered once at startup and then only read, so one
    registry is shared by all concurrent requests.

    Example:
        registry = ToolRegistry()
        registry.register(RepositorySearchTool(client))

        functions = registry.get_openai_functions()
        result = await registry.execute("github_repo_search", {"query": "gumroad"})
    """

    def __init__(self):
        self._tools: dict[str, MCPTool] = {}

    def register(self, tool: MCPTool) -> None:
        """
        Raises:
            ValueError: If a tool with this name already exists
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> MCPTool | None:
        return self._tools.get(name)

    def get_openai_functions(self) -> list[dict]:
        return [tool.to_openai_function() for tool in self._tools.values()]

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    async def execute(self, name: str, params: dict) -> ToolResult:
        """Run a tool by name; unknown names produce a failed result."""
        tool = self.get(name)
        if not tool:
            return ToolResult.fail(f"Error: Tool '{name}' not found")

        logger.info(f"Executing tool: {name}")
        return await tool.execute(params)


__all__ = [
    "MCPTool",
    "ToolResult",
    "ToolRegistry",
    "require_str",
    "optional_str",
    "optional_enum",
    "optional_bool",
]
