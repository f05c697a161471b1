"""Tests for the universal body models."""

import pytest
from pydantic import ValidationError

from llm_bridge.core.interface.models import (
    ImageContent,
    MediaSource,
    NamedToolChoice,
    OriginalPayload,
    SystemPrompt,
    TextContent,
    ToolCall,
    ToolCallContent,
    ToolResult,
    ToolResultContent,
    UniversalBody,
    UniversalMessage,
    UnknownContent,
)


class TestContentParts:
    def test_text_content(self) -> None:
        part = TextContent(text="hello")
        assert part.type == "text"
        assert part.original is None

    def test_original_alias(self) -> None:
        part = TextContent.model_validate(
            {"text": "hi", "_original": {"provider": "anthropic", "raw": {"type": "text", "text": "hi"}}}
        )
        assert part.original is not None
        assert part.original.provider == "anthropic"
        dumped = part.model_dump(by_alias=True)
        assert "_original" in dumped

    def test_unknown_content_is_text(self) -> None:
        part = UnknownContent(text='{"type": "thinking"}')
        assert isinstance(part, TextContent)
        assert part.type == "text"

    def test_image_content(self) -> None:
        part = ImageContent(media=MediaSource(url="https://example.com/cat.png", detail="low"))
        assert part.type == "image"
        assert part.media.detail == "low"

    def test_invalid_detail_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MediaSource(detail="ultra")  # type: ignore[arg-type]

    def test_original_provider_is_checked(self) -> None:
        with pytest.raises(ValidationError):
            OriginalPayload(provider="cohere")  # type: ignore[arg-type]


class TestToolCall:
    def test_auto_id(self) -> None:
        tc = ToolCall(name="calculator", arguments={"expression": "2+2"})
        assert tc.id.startswith("call_")
        assert tc.arguments == {"expression": "2+2"}

    def test_default_arguments(self) -> None:
        assert ToolCall(id="c1", name="noop").arguments == {}


class TestUniversalMessage:
    def test_factories(self) -> None:
        assert UniversalMessage.system("rules").role == "system"
        assert UniversalMessage.user("hi").text == "hi"
        assert UniversalMessage.assistant().content == []

    def test_text_joins_parts(self) -> None:
        msg = UniversalMessage.user([TextContent(text="a"), TextContent(text="b")])
        assert msg.text == "a b"

    def test_ids_are_unique(self) -> None:
        assert UniversalMessage.user("a").id != UniversalMessage.user("a").id

    def test_tool_calls_from_content_and_message(self) -> None:
        inline = ToolCall(id="c1", name="search")
        hoisted = ToolCall(id="c2", name="fetch")
        msg = UniversalMessage.assistant(
            [ToolCallContent(tool_call=inline)], tool_calls=[hoisted]
        )
        assert msg.has_tool_calls
        assert [c.id for c in msg.all_tool_calls()] == ["c1", "c2"]

    def test_no_tool_calls(self) -> None:
        assert not UniversalMessage.user("hi").has_tool_calls

    def test_multimodal(self) -> None:
        msg = UniversalMessage.user([TextContent(text="look"), ImageContent()])
        assert msg.has_multimodal_content
        assert not UniversalMessage.user("plain").has_multimodal_content

    def test_tool_result_factory(self) -> None:
        msg = UniversalMessage.tool_result(ToolResult(tool_call_id="c1", result="4"))
        assert msg.role == "tool"
        assert msg.metadata["tool_call_id"] == "c1"
        assert isinstance(msg.content[0], ToolResultContent)

    def test_add_and_replace_text(self) -> None:
        msg = UniversalMessage.user([TextContent(text="a"), ImageContent()])
        added = msg.add_text("b")
        assert added.text == "a b"
        assert msg.text == "a"

        replaced = msg.replace_text("z")
        assert replaced.text == "z"
        assert isinstance(replaced.content[1], ImageContent)

    def test_invalid_role(self) -> None:
        with pytest.raises(ValidationError):
            UniversalMessage(role="robot")  # type: ignore[arg-type]


class TestUniversalBody:
    def test_defaults(self) -> None:
        body = UniversalBody(provider="openai")
        assert body.model == "unknown"
        assert body.messages == []
        assert body.provider_params == {}
        assert body.tools is None

    def test_system_text(self) -> None:
        assert UniversalBody(provider="openai").system_text is None
        assert UniversalBody(provider="openai", system="rules").system_text == "rules"
        structured = UniversalBody(provider="anthropic", system=SystemPrompt(content="rules"))
        assert structured.system_text == "rules"

    def test_tool_choice_variants(self) -> None:
        assert UniversalBody(provider="openai", tool_choice="required").tool_choice == "required"
        named = UniversalBody(provider="openai", tool_choice=NamedToolChoice(name="search"))
        assert isinstance(named.tool_choice, NamedToolChoice)

    def test_fingerprint_ignores_provider(self) -> None:
        body = UniversalBody(provider="openai", messages=[UniversalMessage(id="m1", role="user")])
        relabelled = body.model_copy(update={"provider": "google"})
        assert body.fingerprint() == relabelled.fingerprint()

    def test_fingerprint_tracks_edits(self) -> None:
        body = UniversalBody(
            provider="openai",
            messages=[UniversalMessage(id="m1", role="user", content=[TextContent(text="a")])],
        )
        before = body.fingerprint()
        body.messages[0].content[0].text = "b"
        assert body.fingerprint() != before


class TestValidationErrors:
    def test_valid_body(self) -> None:
        body = UniversalBody(provider="openai", model="gpt-4o", messages=[UniversalMessage.user("hi")])
        assert body.validation_errors() == []

    def test_missing_messages(self) -> None:
        errors = UniversalBody(provider="openai", model="gpt-4o").validation_errors()
        assert "At least one message is required" in errors

    def test_missing_model(self) -> None:
        body = UniversalBody(provider="openai", model="", messages=[UniversalMessage.user("hi")])
        assert "Model is required" in body.validation_errors()

    def test_empty_message_and_text(self) -> None:
        body = UniversalBody(
            provider="openai",
            model="gpt-4o",
            messages=[
                UniversalMessage(role="user"),
                UniversalMessage(role="user", content=[TextContent(text="")]),
            ],
        )
        errors = body.validation_errors()
        assert "Message at index 0 is missing content" in errors
        assert "Text content at message 1, content 0 is missing text" in errors

    def test_unnamed_tool_call(self) -> None:
        body = UniversalBody(
            provider="openai",
            model="gpt-4o",
            messages=[
                UniversalMessage.assistant([ToolCallContent(tool_call=ToolCall(id="c", name=""))])
            ],
        )
        assert "Tool call at message 0, content 0 is missing a name" in body.validation_errors()
