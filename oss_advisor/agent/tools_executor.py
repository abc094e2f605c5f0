"""
Tool Rounds
===========

One "tool round" is everything between a model reply that asks for tools
and the next model call:

    assistant message with tool_calls
        │  ToolCall.from_openai() per call (arguments decoded, bad JSON -> {})
        ▼
    registry.execute() per call, sequentially, in the order requested
        │
        ▼
    one {"role": "tool"} message per call, echoing its tool_call_id

Tools report failures as results, so a round always yields one message per
requested call.
"""

import json
import time
from dataclasses import dataclass
from typing import Any

from oss_advisor.tools import ToolRegistry, ToolResult
from oss_advisor.utils.logger import Logger

logger = Logger("ToolRound")


@dataclass
class ToolCall:
    """
    A tool call requested by the model.

    Attributes:
        id: Echoed back with the result so the model can pair them
        name: Registered tool name
        arguments: Decoded JSON object; empty when the model sent garbage
    """
    id: str
    name: str
    arguments: dict[str, Any]

    @classmethod
    def from_openai(cls, tool_call: Any) -> "ToolCall":
        raw = tool_call.function.arguments or "{}"
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Undecodable arguments for {tool_call.function.name}: {raw[:80]!r}")
            arguments = {}

        if not isinstance(arguments, dict):
            arguments = {}

        return cls(id=tool_call.id, name=tool_call.function.name, arguments=arguments)


@dataclass
class ToolCallResult:
    tool_call_id: str
    name: str
    result: ToolResult
    elapsed_ms: float = 0.0

    def to_openai_message(self) -> dict:
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "content": self.result.to_message(),
        }


class ToolExecutor:
    """
    Runs the tool calls of one assistant message against a registry.

    Example:
        executor = ToolExecutor(registry)
        messages.extend(await executor.run_round(reply.choices[0].message))
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def parse_tool_calls(self, response: Any) -> list[ToolCall]:
        """Tool calls requested by the first choice of a chat completion."""
        return [ToolCall.from_openai(tc) for tc in response.choices[0].message.tool_calls or []]

    async def execute_one(self, call: ToolCall) -> ToolCallResult:
        started = time.perf_counter()
        result = await self.registry.execute(call.name, call.arguments)
        elapsed_ms = (time.perf_counter() - started) * 1000

        if not result.success:
            logger.warning(f"{call.name} returned an error after {elapsed_ms:.0f}ms: {result.error}")
        else:
            logger.debug(f"{call.name} finished in {elapsed_ms:.0f}ms")

        return ToolCallResult(call.id, call.name, result, elapsed_ms)

    async def execute_all(self, calls: list[ToolCall]) -> list[ToolCallResult]:
        """Sequential; results come back in request order."""
        return [await self.execute_one(call) for call in calls]

    async def run_round(self, response: Any) -> list[dict]:
        """Execute every call in `response` and return the tool messages."""
        calls = self.parse_tool_calls(response)
        logger.info(f"Tool round: {', '.join(call.name for call in calls) or 'no calls'}")
        return [r.to_openai_message() for r in await self.execute_all(calls)]
