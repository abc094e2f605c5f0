"""
Tool-Calling Model
==================

The "invoke model with tools" capability the orchestrator depends on.

One invocation:

    messages ──► chat completion (with tool declarations)
                     │
          ┌── tool calls requested? ──┐
          Yes                         No
          │                           │
     execute tools,              final answer
     append results,
     call again (at most max_tool_rounds times)

The orchestrator wraps invoke() in the circuit breaker and retry policy,
so any exception raised here counts as a failed attempt.
"""

from typing import Protocol

from openai import AsyncOpenAI

from oss_advisor.agent.tools_executor import ToolExecutor
from oss_advisor.tools import ToolRegistry
from oss_advisor.utils.errors import EmptyModelResponseError
from oss_advisor.utils.logger import Logger

logger = Logger("Model")

NO_RESPONSE_TEXT = "No response generated"


class ToolCallingModel(Protocol):
    async def invoke(self, messages: list[dict]) -> str:
        ...


class OpenAIToolModel:
    """
    OpenAI chat completions with function calling.

    Example:
        model = OpenAIToolModel(AsyncOpenAI(api_key="sk-..."), "gpt-4o-mini", registry)
        answer = await model.invoke([
            {"role": "system", "content": "..."},
            {"role": "user", "content": "Find beginner-friendly Python repos"},
        ])
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        registry: ToolRegistry,
        max_tool_rounds: int = 3,
        temperature: float = 0.3
    ):
        self.client = client
        self.model = model
        self.registry = registry
        self.executor = ToolExecutor(registry)
        self.max_tool_rounds = max_tool_rounds
        self.temperature = temperature

    async def _complete(self, messages: list[dict], tools: list[dict]):
        kwargs = {}
        if tools:
            kwargs = {"tools": tools, "tool_choice": "auto"}

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            **kwargs
        )
        if not response.choices:
            raise EmptyModelResponseError()
        return response

    async def invoke(self, messages: list[dict]) -> str:
        """
        Run the model, resolving tool calls, and return its final text.

        The input list is not modified.
        """
        messages = list(messages)
        tools = self.registry.get_openai_functions()

        response = await self._complete(messages, tools)

        rounds = 0
        while response.choices[0].message.tool_calls and rounds < self.max_tool_rounds:
            rounds += 1
            logger.debug(f"Tool round {rounds}")

            tool_messages = await self.executor.run_round(response)
            messages.append(response.choices[0].message.model_dump(exclude_none=True))
            messages.extend(tool_messages)

            response = await self._complete(messages, tools)

        if response.choices[0].message.tool_calls:
            logger.warning(f"Reached max tool rounds ({self.max_tool_rounds})")

        content = response.choices[0].message.content or ""
        if not content.strip():
            return NO_RESPONSE_TEXT

        logger.info(f"Generated response ({len(content)} chars, {rounds} tool rounds)")
        return content
