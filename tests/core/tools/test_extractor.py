"""Tests for tool-call extraction from vendor responses."""

from __future__ import annotations

from typing import Any

import pytest

from llm_bridge.core.tools.extractor import (
    NormalizedToolCall,
    extract_tool_calls,
    find_tool_call,
    has_non_prefixed_tools,
)
from llm_bridge.errors import UnsupportedProviderError

ANTHROPIC_RESPONSE: dict[str, Any] = {
    "id": "msg_1",
    "role": "assistant",
    "content": [
        {"type": "text", "text": "Let me check."},
        {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {"city": "Paris"}},
    ],
    "stop_reason": "tool_use",
}

OPENAI_CHAT_RESPONSE: dict[str, Any] = {
    "choices": [
        {
            "message": {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
                    },
                    {"type": "function", "function": {"name": "get_time", "arguments": ""}},
                ],
            },
            "finish_reason": "tool_calls",
        }
    ]
}

OPENAI_RESPONSES_RESPONSE: dict[str, Any] = {
    "output": [
        {"type": "reasoning", "id": "rs_1", "summary": []},
        {
            "type": "function_call",
            "id": "fc_1",
            "call_id": "call_1",
            "name": "get_weather",
            "arguments": '{"city": "Paris"}',
        },
    ]
}

GEMINI_RESPONSE: dict[str, Any] = {
    "candidates": [
        {
            "content": {
                "role": "model",
                "parts": [
                    {"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}},
                    {"functionCall": {"name": "get_weather", "args": {"city": "Lyon"}}},
                ],
            }
        }
    ]
}


class TestExtractToolCalls:
    def test_anthropic(self) -> None:
        result = extract_tool_calls(ANTHROPIC_RESPONSE, "anthropic")
        assert result.has_tool_calls
        assert result.all_tools == [
            NormalizedToolCall(id="toolu_1", name="get_weather", input={"city": "Paris"})
        ]

    def test_openai_chat(self) -> None:
        result = extract_tool_calls(OPENAI_CHAT_RESPONSE, "openai")
        first, second = result.all_tools
        assert first.id == "call_1"
        assert first.input == {"city": "Paris"}
        assert second.id == "call_get_time"
        assert second.input == {}

    def test_openai_responses(self) -> None:
        result = extract_tool_calls(OPENAI_RESPONSES_RESPONSE, "openai")
        assert result.all_tools == [
            NormalizedToolCall(id="call_1", name="get_weather", input={"city": "Paris"})
        ]

    def test_gemini_synthesizes_ids(self) -> None:
        result = extract_tool_calls(GEMINI_RESPONSE, "gemini")
        assert [t.id for t in result.all_tools] == ["call_get_weather", "call_get_weather_1"]
        assert result.all_tools[1].input == {"city": "Lyon"}

    def test_invalid_arguments(self) -> None:
        response = {
            "choices": [
                {"message": {"tool_calls": [{"id": "c", "function": {"name": "f", "arguments": "{nope"}}]}}
            ]
        }
        assert extract_tool_calls(response, "openai").all_tools[0].input == {}

    @pytest.mark.parametrize("provider", ["openai", "anthropic", "google"])
    @pytest.mark.parametrize("response", [None, "text", [], {}, {"choices": "x", "content": 5, "candidates": {}}])
    def test_malformed_responses(self, provider: str, response: Any) -> None:
        result = extract_tool_calls(response, provider)
        assert not result.has_tool_calls

    def test_no_tool_calls(self) -> None:
        response = {"content": [{"type": "text", "text": "done"}]}
        assert extract_tool_calls(response, "anthropic").all_tools == []

    def test_unsupported_provider(self) -> None:
        with pytest.raises(UnsupportedProviderError):
            extract_tool_calls({}, "cohere")


class TestToolHelpers:
    def test_find_tool_call(self) -> None:
        tools = extract_tool_calls(ANTHROPIC_RESPONSE, "anthropic").all_tools
        found = find_tool_call(tools, "get_weather")
        assert found is not None and found.id == "toolu_1"
        assert find_tool_call(tools, "missing") is None

    def test_has_non_prefixed_tools(self) -> None:
        tools = [
            NormalizedToolCall(id="1", name="mcp__search"),
            NormalizedToolCall(id="2", name="local_fetch"),
        ]
        assert has_non_prefixed_tools(tools, "mcp__")
        assert not has_non_prefixed_tools(tools[:1], "mcp__")
        assert not has_non_prefixed_tools([], "mcp__")
