"""Tests for continuation requests that return tool results to the model."""

from __future__ import annotations

import copy

from llm_bridge.core.interface.registry import to_universal
from llm_bridge.core.tools.continuation import (
    build_continuation_headers,
    build_continuation_request,
)
from llm_bridge.core.tools.extractor import NormalizedToolCall, extract_tool_calls

WEATHER_CALL = NormalizedToolCall(id="call_1", name="get_weather", input={"city": "Paris"})


class TestOpenAIContinuation:
    def test_chat(self) -> None:
        original = {
            "model": "gpt-4o",
            "messages": [{"role": "user", "content": "Weather?"}],
            "tools": [{"type": "function", "function": {"name": "get_weather"}}],
            "max_tokens": 100,
            "temperature": None,
        }
        snapshot = copy.deepcopy(original)

        result = build_continuation_request("openai", original, None, WEATHER_CALL, {"temp": 18})

        assert result["messages"][1:] == [
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
                    }
                ],
            },
            {"role": "tool", "content": '{"temp": 18}', "tool_call_id": "call_1"},
        ]
        assert result["tools"] == original["tools"]
        assert result["max_completion_tokens"] == 100
        assert "max_tokens" not in result
        assert "temperature" not in result
        assert original == snapshot

    def test_responses(self) -> None:
        original = {"model": "gpt-4.1", "input": "Weather?", "previous_response_id": "resp_1"}

        result = build_continuation_request("openai", original, None, WEATHER_CALL, "18C")

        assert result["input"] == [
            {"role": "user", "content": "Weather?"},
            {
                "type": "function_call",
                "call_id": "call_1",
                "name": "get_weather",
                "arguments": '{"city": "Paris"}',
            },
            {"type": "function_call_output", "call_id": "call_1", "output": "18C"},
        ]
        assert result["previous_response_id"] == "resp_1"


class TestAnthropicContinuation:
    def test_replays_all_tool_uses(self) -> None:
        original = {
            "model": "claude-3-5-sonnet",
            "max_tokens": 256,
            "messages": [{"role": "user", "content": "Weather and time?"}],
        }
        response = {
            "content": [
                {"type": "text", "text": "Checking."},
                {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {"city": "Paris"}},
                {"type": "tool_use", "id": "toolu_2", "name": "get_time", "input": {}},
            ]
        }
        call = extract_tool_calls(response, "anthropic").all_tools[0]

        result = build_continuation_request(
            "anthropic", original, None, call, {"temp": 18}, response=response
        )

        assert result["model"] == "claude-3-5-sonnet"
        assert result["max_tokens"] == 256
        assert result["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "Weather and time?"}]},
            {
                "role": "assistant",
                "content": [
                    {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {"city": "Paris"}},
                    {"type": "tool_use", "id": "toolu_2", "name": "get_time", "input": {}},
                ],
            },
            {
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": '{"temp": 18}'}],
            },
        ]

    def test_result_is_always_string(self) -> None:
        original = {"model": "claude", "max_tokens": 10, "messages": [{"role": "user", "content": "hi"}]}
        call = NormalizedToolCall(id="toolu_9", name="lookup", input={})
        for value in ({"a": 1}, [1, 2], 42, "plain"):
            result = build_continuation_request("anthropic", original, None, call, value)
            block = result["messages"][-1]["content"][0]
            assert isinstance(block["content"], str)

    def test_uses_parsed_universal(self) -> None:
        original = {"model": "claude", "max_tokens": 10, "messages": [{"role": "user", "content": "hi"}]}
        universal = to_universal("anthropic", original)
        call = NormalizedToolCall(id="toolu_9", name="lookup", input={"k": "v"})
        result = build_continuation_request("anthropic", original, universal, call, "ok")
        assert len(result["messages"]) == 3
        assert len(universal.messages) == 1


class TestGeminiContinuation:
    def test_result_stays_structured(self) -> None:
        original = {"contents": [{"role": "user", "parts": [{"text": "Weather?"}]}]}
        call = extract_tool_calls(
            {"candidates": [{"content": {"parts": [{"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}}]}}]},
            "google",
        ).all_tools[0]

        result = build_continuation_request("google", original, None, call, {"temp": 18})

        assert result["contents"] == [
            {"role": "user", "parts": [{"text": "Weather?"}]},
            {"role": "model", "parts": [{"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}}]},
            {"role": "user", "parts": [{"functionResponse": {"name": "get_weather", "response": {"temp": 18}}}]},
        ]

    def test_string_result_is_wrapped(self) -> None:
        original = {"contents": [{"role": "user", "parts": [{"text": "hi"}]}]}
        call = NormalizedToolCall(id="call_f", name="f", input={})
        result = build_continuation_request("gemini", original, None, call, "sunny")
        response = result["contents"][-1]["parts"][0]["functionResponse"]["response"]
        assert response == {"content": "sunny"}


class TestContinuationHeaders:
    def test_anthropic(self) -> None:
        headers = build_continuation_headers(
            "anthropic",
            {
                "X-API-Key": "sk-ant",
                "Anthropic-Version": "2023-06-01",
                "Host": "api.anthropic.com",
                "Content-Length": "120",
            },
        )
        assert headers == {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-api-key": "sk-ant",
            "anthropic-version": "2023-06-01",
        }

    def test_openai(self) -> None:
        headers = build_continuation_headers(
            "openai", {"authorization": "Bearer sk", "OpenAI-Organization": "org_1", "Cookie": "x"}
        )
        assert headers["Authorization"] == "Bearer sk"
        assert headers["OpenAI-Organization"] == "org_1"
        assert "Cookie" not in headers

    def test_google_alias(self) -> None:
        headers = build_continuation_headers("gemini", {"x-goog-api-key": "g"})
        assert headers["x-goog-api-key"] == "g"
        assert "Authorization" not in headers

    def test_unknown_provider_keeps_authorization(self) -> None:
        headers = build_continuation_headers("mistral", {"Authorization": "Bearer m", "X-Other": "1"})
        assert headers == {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": "Bearer m",
        }
