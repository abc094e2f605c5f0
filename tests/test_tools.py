"""Tests for the tool plumbing: registry, executor and the tool-calling model."""

import json
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai.types.chat import ChatCompletion

from oss_advisor.agent.model import NO_RESPONSE_TEXT, OpenAIToolModel
from oss_advisor.agent.tools_executor import ToolCall, ToolExecutor
from oss_advisor.tools import MCPTool, ToolRegistry, ToolResult, require_str
from oss_advisor.utils.errors import EmptyModelResponseError


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

    def __init__(self):
        self.calls = []

    def parse_args(self, params: dict) -> EchoArgs:
        return EchoArgs(text=require_str(params, "text"))

    async def run(self, args: EchoArgs) -> ToolResult:
        self.calls.append(args.text)
        return ToolResult.ok(f"echo: {args.text}")


class ExplodingTool(EchoTool):
    name = "explode"

    async def run(self, args: EchoArgs) -> ToolResult:
        raise RuntimeError("kaboom")


def completion(content=None, tool_calls=None) -> ChatCompletion:
    """Build a real ChatCompletion object from a plain payload."""
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = [
            {
                "id": call_id,
                "type": "function",
                "function": {"name": name, "arguments": arguments},
            }
            for call_id, name, arguments in tool_calls
        ]
    return ChatCompletion.model_validate({
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1714560000,
        "model": "gpt-4o-mini",
        "choices": [{
            "index": 0,
            "finish_reason": "tool_calls" if tool_calls else "stop",
            "message": message,
        }],
    })


def mock_client(*responses) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return client


class TestToolResult:

    def test_text_passes_through(self):
        assert ToolResult.ok("Found 2 repositories").to_message() == "Found 2 repositories"

    def test_structured_data_is_json(self):
        assert json.loads(ToolResult.ok({"a": 1}).to_message()) == {"a": 1}

    def test_failure_uses_error(self):
        assert ToolResult.fail("Error: nope").to_message() == "Error: nope"


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_duplicate_names_rejected(self):
        registry = ToolRegistry()
        registry.register(EchoTool())

        with pytest.raises(ValueError):
            registry.register(EchoTool())

    def test_openai_function_declarations(self):
        registry = ToolRegistry()
        registry.register(EchoTool())

        assert registry.get_openai_functions() == [{
            "type": "function",
            "function": {
                "name": "echo",
                "description": "Repeat the text back",
                "parameters": EchoTool.parameters,
            },
        }]

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = await ToolRegistry().execute("missing", {})

        assert not result.success
        assert result.error == "Error: Tool 'missing' not found"

    @pytest.mark.asyncio
    async def test_tool_exceptions_become_results(self):
        registry = ToolRegistry()
        registry.register(ExplodingTool())

        result = await registry.execute("explode", {"text": "hi"})

        assert not result.success
        assert "kaboom" in result.error


class TestToolExecutor:
    """Tests for parsing and running tool calls."""

    def test_parse_tool_calls(self):
        executor = ToolExecutor(ToolRegistry())
        response = completion(tool_calls=[
            ("call_1", "echo", '{"text": "hi"}'),
            ("call_2", "echo", "{not json"),
            ("call_3", "echo", '["a", "list"]'),
        ])

        calls = executor.parse_tool_calls(response)

        assert calls == [
            ToolCall(id="call_1", name="echo", arguments={"text": "hi"}),
            ToolCall(id="call_2", name="echo", arguments={}),
            ToolCall(id="call_3", name="echo", arguments={}),
        ]

    def test_no_tool_calls(self):
        assert ToolExecutor(ToolRegistry()).parse_tool_calls(completion("hello")) == []

    @pytest.mark.asyncio
    async def test_execute_all_keeps_order(self):
        registry = ToolRegistry()
        registry.register(EchoTool())
        executor = ToolExecutor(registry)

        results = await executor.execute_all([
            ToolCall("a", "echo", {"text": "one"}),
            ToolCall("b", "echo", {}),
        ])

        assert [r.to_openai_message() for r in results] == [
            {"role": "tool", "tool_call_id": "a", "content": "echo: one"},
            {
                "role": "tool",
                "tool_call_id": "b",
                "content": "Error: Invalid input format for echo: "
                           "'text' is required and must be a non-empty string",
            },
        ]


class TestOpenAIToolModel:
    """Tests for the model tool loop."""

    @pytest.mark.asyncio
    async def test_plain_answer(self):
        registry = ToolRegistry()
        registry.register(EchoTool())
        client = mock_client(completion("Hello Dana!"))
        model = OpenAIToolModel(client, "gpt-4o-mini", registry)

        answer = await model.invoke([{"role": "user", "content": "hi"}])

        assert answer == "Hello Dana!"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["tools"][0]["function"]["name"] == "echo"

    @pytest.mark.asyncio
    async def test_tool_round_trip(self):
        registry = ToolRegistry()
        echo = EchoTool()
        registry.register(echo)
        client = mock_client(
            completion(tool_calls=[("call_1", "echo", '{"text": "gumroad"}')]),
            completion("Here is what I found."),
        )
        model = OpenAIToolModel(client, "gpt-4o-mini", registry)
        messages = [{"role": "user", "content": "find gumroad"}]

        answer = await model.invoke(messages)

        assert answer == "Here is what I found."
        assert echo.calls == ["gumroad"]
        assert len(messages) == 1

        second_messages = client.chat.completions.create.call_args_list[1].kwargs["messages"]
        assert second_messages[1]["role"] == "assistant"
        assert second_messages[1]["tool_calls"][0]["id"] == "call_1"
        assert second_messages[2] == {
            "role": "tool", "tool_call_id": "call_1", "content": "echo: gumroad"
        }

    @pytest.mark.asyncio
    async def test_tool_rounds_are_bounded(self):
        registry = ToolRegistry()
        registry.register(EchoTool())
        looping = completion(tool_calls=[("call_x", "echo", '{"text": "again"}')])
        client = mock_client(looping, looping, looping)
        model = OpenAIToolModel(client, "gpt-4o-mini", registry, max_tool_rounds=2)

        answer = await model.invoke([{"role": "user", "content": "loop"}])

        assert answer == NO_RESPONSE_TEXT
        assert client.chat.completions.create.await_count == 3

    @pytest.mark.asyncio
    async def test_no_tools_omits_tool_arguments(self):
        client = mock_client(completion("ok"))
        model = OpenAIToolModel(client, "gpt-4o-mini", ToolRegistry())

        await model.invoke([{"role": "user", "content": "hi"}])

        kwargs = client.chat.completions.create.call_args.kwargs
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs

    @pytest.mark.asyncio
    async def test_blank_content(self):
        model = OpenAIToolModel(mock_client(completion("   ")), "gpt-4o-mini", ToolRegistry())

        assert await model.invoke([{"role": "user", "content": "hi"}]) == NO_RESPONSE_TEXT

    @pytest.mark.asyncio
    async def test_no_choices_raises(self):
        empty = completion("unused").model_copy(update={"choices": []})
        model = OpenAIToolModel(mock_client(empty), "gpt-4o-mini", ToolRegistry())

        with pytest.raises(EmptyModelResponseError):
            await model.invoke([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_client_errors_propagate(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("503 Service Unavailable"))
        model = OpenAIToolModel(client, "gpt-4o-mini", ToolRegistry())

        with pytest.raises(RuntimeError, match="503"):
            await model.invoke([{"role": "user", "content": "hi"}])
