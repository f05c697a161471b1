"""Tests for codec dispatch and cross-provider translation."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from llm_bridge.config import BridgeSettings
from llm_bridge.core.interface.models import (
    OriginalPayload,
    TextContent,
    UniversalBody,
    UniversalMessage,
)
from llm_bridge.core.interface.registry import (
    from_universal,
    from_universal_with_info,
    get_codec,
    normalize_provider,
    to_universal,
    translate,
)
from llm_bridge.core.interface.transpilers import (
    AnthropicCodec,
    GeminiCodec,
    OpenAIChatCodec,
    OpenAIResponsesCodec,
)
from llm_bridge.errors import InvalidOriginalError, UnsupportedProviderError

_TEXT = "Hello there, how are you?"

_SINGLE_TURN: dict[str, dict[str, Any]] = {
    "openai": {"model": "gpt-4o", "messages": [{"role": "user", "content": _TEXT}]},
    "anthropic": {
        "model": "claude-3-5-haiku",
        "max_tokens": 64,
        "messages": [{"role": "user", "content": _TEXT}],
    },
    "google": {"contents": [{"role": "user", "parts": [{"text": _TEXT}]}]},
}

_RICH_PAYLOADS: dict[str, dict[str, Any]] = {
    "openai": {
        "model": "gpt-4o",
        "messages": [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": [{"type": "text", "text": "hi"}]},
        ],
        "stream": True,
        "logprobs": True,
    },
    "anthropic": {
        "model": "claude-3-5-haiku",
        "max_tokens": 64,
        "system": "Be terse.",
        "messages": [{"role": "user", "content": "hi"}],
        "metadata": {"user_id": "u1"},
    },
    "google": {
        "contents": [{"role": "user", "parts": [{"text": "hi"}]}],
        "generationConfig": {"topK": 3},
        "cachedContent": "cachedContents/abc",
    },
}


class TestNormalizeProvider:
    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("openai", "openai"),
            ("Anthropic", "anthropic"),
            ("gemini", "google"),
            (" vertex_ai ", "google"),
        ],
    )
    def test_known_tags(self, tag: str, expected: str) -> None:
        assert normalize_provider(tag) == expected

    @pytest.mark.parametrize("tag", ["cohere", "", None, 42])
    def test_unknown_tags(self, tag: Any) -> None:
        with pytest.raises(UnsupportedProviderError):
            normalize_provider(tag)


class TestGetCodec:
    def test_dispatch(self) -> None:
        assert isinstance(get_codec("anthropic"), AnthropicCodec)
        assert isinstance(get_codec("gemini"), GeminiCodec)
        assert isinstance(get_codec("openai"), OpenAIChatCodec)
        assert isinstance(get_codec("openai", "responses"), OpenAIResponsesCodec)

    def test_settings_passed(self) -> None:
        settings = BridgeSettings(original_policy="strict")
        codec = get_codec("anthropic", settings=settings)
        assert isinstance(codec, AnthropicCodec)
        assert codec.settings is settings


class TestRoundTripIdentity:
    @pytest.mark.parametrize("provider", sorted(_RICH_PAYLOADS))
    def test_unmodified_round_trip(self, provider: str) -> None:
        payload = _RICH_PAYLOADS[provider]
        snapshot = copy.deepcopy(payload)
        assert from_universal(provider, to_universal(provider, payload)) == snapshot

    def test_responses_round_trip(self) -> None:
        payload = {"model": "gpt-4.1", "input": "hi", "store": False}
        body = to_universal("openai", payload)
        assert body.original is not None and body.original.shape == "responses"
        assert from_universal("openai", body) == payload


class TestOpenAIShapeSelection:
    def test_target_url_selects_responses(self) -> None:
        body = UniversalBody(provider="openai", model="gpt-4.1", messages=[UniversalMessage.user("hi")])
        result = from_universal("openai", body, "https://api.openai.com/v1/responses")
        assert result == {"model": "gpt-4.1", "input": "hi"}

    def test_default_is_chat(self) -> None:
        body = UniversalBody(provider="openai", model="gpt-4o", messages=[UniversalMessage.user("hi")])
        assert from_universal("openai", body)["messages"] == [{"role": "user", "content": "hi"}]

    def test_responses_only_params(self) -> None:
        body = UniversalBody(
            provider="openai",
            messages=[UniversalMessage.user("hi")],
            provider_params={"previous_response_id": "resp_1"},
        )
        result = from_universal("openai", body)
        assert result["input"] == "hi"
        assert result["previous_response_id"] == "resp_1"

    def test_parsed_shape_is_kept(self) -> None:
        body = to_universal("openai", {"model": "gpt-4.1", "input": "hi"})
        body.messages.append(UniversalMessage.user("again"))
        result = from_universal("openai", body)
        assert "input" in result
        assert "messages" not in result

    def test_url_overrides_parsed_shape(self) -> None:
        body = to_universal("openai", {"model": "gpt-4.1", "input": "hi"})
        result = from_universal("openai", body, "https://api.openai.com/v1/chat/completions")
        assert result["messages"] == [{"role": "user", "content": "hi"}]


class TestTranslate:
    def test_openai_to_anthropic_scenario(self) -> None:
        payload = {
            "model": "gpt-4",
            "messages": [
                {"role": "system", "content": "You are helpful"},
                {"role": "user", "content": "Hello"},
            ],
            "temperature": 0.7,
        }
        universal = to_universal("openai", payload)
        assert universal.system == "You are helpful"
        assert len(universal.messages) == 1
        assert universal.messages[0].role == "user"
        assert universal.messages[0].text == "Hello"
        assert universal.temperature == 0.7

        result = from_universal("anthropic", universal)
        assert result["system"] == "You are helpful"
        assert result["messages"] == [{"role": "user", "content": [{"type": "text", "text": "Hello"}]}]
        assert result["temperature"] == 0.7

    @pytest.mark.parametrize("source", sorted(_SINGLE_TURN))
    @pytest.mark.parametrize("target", sorted(_SINGLE_TURN))
    def test_text_preserved_across_vendors(self, source: str, target: str) -> None:
        result = translate(source, target, _SINGLE_TURN[source])
        parsed = to_universal(target, result)
        assert len(parsed.messages) == 1
        assert parsed.messages[0].text == _TEXT

    def test_same_vendor_is_exact(self) -> None:
        payload = _RICH_PAYLOADS["anthropic"]
        assert translate("anthropic", "anthropic", payload) == payload

    def test_gemini_tool_flow_to_openai(self) -> None:
        payload = {
            "contents": [
                {"role": "user", "parts": [{"text": "Weather?"}]},
                {"role": "model", "parts": [{"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}}]},
                {"role": "user", "parts": [{"functionResponse": {"name": "get_weather", "response": {"temp": "18C"}}}]},
            ]
        }
        result = translate("gemini", "openai", payload)
        assert result["messages"] == [
            {"role": "user", "content": "Weather?"},
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": "call_get_weather",
                        "type": "function",
                        "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
                    }
                ],
            },
            {"role": "tool", "tool_call_id": "call_get_weather", "content": '{"temp": "18C"}'},
        ]

    def test_openai_tool_flow_to_gemini(self) -> None:
        payload = {
            "model": "gpt-4o",
            "messages": [
                {"role": "user", "content": "Weather?"},
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_9",
                            "type": "function",
                            "function": {"name": "get_weather", "arguments": '{"city":"Paris"}'},
                        }
                    ],
                },
                {"role": "tool", "tool_call_id": "call_9", "content": "18C"},
            ],
        }
        result = translate("openai", "google", payload)
        assert "model" not in result
        assert result["contents"] == [
            {"role": "user", "parts": [{"text": "Weather?"}]},
            {"role": "model", "parts": [{"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}}]},
            {
                "role": "user",
                "parts": [{"functionResponse": {"name": "get_weather", "response": {"content": "18C"}}}],
            },
        ]

    def test_anthropic_to_openai_drops_foreign_params(self) -> None:
        payload = copy.deepcopy(_RICH_PAYLOADS["anthropic"])
        payload["top_k"] = 4
        result = translate("anthropic", "openai", payload)
        assert "top_k" not in result
        assert result["messages"][0] == {"role": "system", "content": "Be terse."}
        assert result["max_tokens"] == 64

    def test_gemini_generation_config_not_leaked(self) -> None:
        result = translate("google", "anthropic", _RICH_PAYLOADS["google"])
        assert "generationConfig" not in result
        assert "cachedContent" not in result

    def test_unknown_content_becomes_text(self) -> None:
        payload = {
            "model": "claude-3-5-haiku",
            "max_tokens": 64,
            "messages": [
                {"role": "user", "content": [{"type": "search_result", "source": "x", "title": "t"}]}
            ],
        }
        result = translate("anthropic", "openai", payload)
        content = result["messages"][0]["content"]
        assert isinstance(content, list)
        assert content[0]["type"] == "text"
        assert "search_result" in content[0]["text"]

    def test_unsupported_target(self) -> None:
        with pytest.raises(UnsupportedProviderError):
            translate("openai", "cohere", _SINGLE_TURN["openai"])

    def test_strict_policy_through_settings(self) -> None:
        body = UniversalBody(
            provider="google",
            messages=[
                UniversalMessage.user(
                    [
                        TextContent(
                            text="hi",
                            original=OriginalPayload(provider="google", raw=["bad"], shape="generate_content"),
                        )
                    ]
                )
            ],
        )
        with pytest.raises(InvalidOriginalError):
            from_universal("google", body, settings=BridgeSettings(original_policy="strict"))


class TestMalformedInput:
    @pytest.mark.parametrize("provider", ["openai", "anthropic", "google"])
    @pytest.mark.parametrize("value", [None, "text", 12, {"a": 1}])
    def test_never_raises(self, provider: str, value: Any) -> None:
        key = "contents" if provider == "google" else "messages"
        body = to_universal(provider, {key: value})
        assert body.messages == []
        assert body.model == "unknown"

    @pytest.mark.parametrize("provider", ["openai", "anthropic", "google"])
    def test_missing_collection(self, provider: str) -> None:
        body = to_universal(provider, {})
        assert body.messages == []


class TestFromUniversalWithInfo:
    def test_exact(self) -> None:
        body = to_universal("anthropic", _RICH_PAYLOADS["anthropic"])
        info = from_universal_with_info("anthropic", body)
        assert info.result == _RICH_PAYLOADS["anthropic"]
        assert info.used_original_data
        assert info.reconstruction_quality == 100
        assert info.summary.original_provider == "anthropic"

    def test_cross_vendor(self) -> None:
        body = to_universal("anthropic", _RICH_PAYLOADS["anthropic"])
        info = from_universal_with_info("google", body)
        assert not info.used_original_data
        assert info.reconstruction_quality < 100
        assert info.result["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
