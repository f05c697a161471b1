"""Universal Body Schema: the vendor-neutral request format for llm-bridge.

The universal body is a superset of the OpenAI, Anthropic and Gemini request
shapes. Codecs parse vendor payloads into these models and rebuild vendor
payloads from them; callers edit requests without touching wire formats.

Every entity parsed from a wire payload may carry ``_original`` (the vendor
tag plus the exact raw fragment), used only to rebuild that same vendor's
shape byte-for-byte.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

Provider = Literal["openai", "anthropic", "google"]
Role = Literal["system", "user", "assistant", "tool", "developer"]

PROVIDERS: tuple[str, ...] = ("openai", "anthropic", "google")

# ---------------------------------------------------------------------------
# Message metadata keys
# ---------------------------------------------------------------------------

META_PROVIDER = "provider"
META_ORIGINAL_INDEX = "original_index"
META_CONTEXT_INJECTION = "context_injection"
META_CACHE_CONTROL = "cache_control"
META_TOOL_CALL_ID = "tool_call_id"
META_NAME = "name"
META_EXTRA_FIELDS = "extra_fields"
META_ITEM_TYPE = "item_type"

MEDIA_TYPES = ("image", "audio", "video", "document")


def generate_id() -> str:
    """Return a fresh message id."""
    return f"msg_{uuid4().hex[:16]}"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OriginalPayload(_Model):
    """The exact raw fragment an entity was parsed from."""

    provider: Provider
    raw: Any = None
    shape: str | None = None
    fingerprint: str | None = None


# ---------------------------------------------------------------------------
# Content Parts
# ---------------------------------------------------------------------------


class MediaSource(_Model):
    """Any of the ways a vendor can reference media."""

    url: str | None = None
    detail: Literal["low", "high", "auto"] | None = None
    data: str | None = None
    mime_type: str | None = None
    file_uri: str | None = None
    file_name: str | None = None
    size: int | None = None
    duration: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TextContent(_Model):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str
    original: OriginalPayload | None = Field(default=None, alias="_original")


class UnknownContent(TextContent):
    """Fallback for wire content the codecs do not recognize.

    ``text`` holds a JSON rendering of the item so nothing is dropped when the
    body crosses to another vendor.
    """


class ImageContent(_Model):
    type: Literal["image"] = "image"
    media: MediaSource = Field(default_factory=MediaSource)
    original: OriginalPayload | None = Field(default=None, alias="_original")


class AudioContent(_Model):
    type: Literal["audio"] = "audio"
    media: MediaSource = Field(default_factory=MediaSource)
    original: OriginalPayload | None = Field(default=None, alias="_original")


class VideoContent(_Model):
    type: Literal["video"] = "video"
    media: MediaSource = Field(default_factory=MediaSource)
    original: OriginalPayload | None = Field(default=None, alias="_original")


class DocumentContent(_Model):
    type: Literal["document"] = "document"
    media: MediaSource = Field(default_factory=MediaSource)
    original: OriginalPayload | None = Field(default=None, alias="_original")


# ---------------------------------------------------------------------------
# Tool Calling
# ---------------------------------------------------------------------------


class ToolCall(_Model):
    """A tool invocation; ``arguments`` is always a parsed object."""

    id: str = Field(default_factory=lambda: f"call_{uuid4().hex[:12]}")
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ToolResult(_Model):
    """The outcome of a tool invocation, fed back to the model."""

    tool_call_id: str
    name: str = ""
    result: Any = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ToolCallContent(_Model):
    type: Literal["tool_call"] = "tool_call"
    tool_call: ToolCall
    original: OriginalPayload | None = Field(default=None, alias="_original")


class ToolResultContent(_Model):
    type: Literal["tool_result"] = "tool_result"
    tool_result: ToolResult
    original: OriginalPayload | None = Field(default=None, alias="_original")


ContentPart = (
    TextContent
    | ImageContent
    | AudioContent
    | VideoContent
    | DocumentContent
    | ToolCallContent
    | ToolResultContent
)

MediaContent = ImageContent | AudioContent | VideoContent | DocumentContent


# ---------------------------------------------------------------------------
# Universal Message
# ---------------------------------------------------------------------------


class UniversalMessage(_Model):
    """A single conversation turn.

    Roles:
    - system / developer: instruction messages
    - user: human input (may carry tool results for some vendors)
    - assistant: model output (may include tool calls)
    - tool: tool execution results
    """

    id: str = Field(default_factory=generate_id)
    role: Role
    content: list[ContentPart] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    tool_calls: list[ToolCall] | None = None

    @property
    def text(self) -> str:
        """Concatenated text of all text parts, space separated."""
        return " ".join(part.text for part in self.content if isinstance(part, TextContent))

    @property
    def has_tool_calls(self) -> bool:
        if self.tool_calls:
            return True
        return any(isinstance(part, ToolCallContent) for part in self.content)

    @property
    def has_multimodal_content(self) -> bool:
        return any(part.type in MEDIA_TYPES for part in self.content)

    def all_tool_calls(self) -> list[ToolCall]:
        """Tool calls from content blocks followed by message-level calls."""
        calls = [part.tool_call for part in self.content if isinstance(part, ToolCallContent)]
        if self.tool_calls:
            calls.extend(self.tool_calls)
        return calls

    def add_text(self, text: str) -> UniversalMessage:
        """Return a copy with a text part appended."""
        return self.model_copy(update={"content": [*self.content, TextContent(text=text)]})

    def replace_text(self, text: str) -> UniversalMessage:
        """Return a copy whose text parts are replaced by a single one."""
        kept = [part for part in self.content if not isinstance(part, TextContent)]
        return self.model_copy(update={"content": [TextContent(text=text), *kept]})

    @classmethod
    def system(cls, text: str, **metadata: Any) -> UniversalMessage:
        return cls(role="system", content=[TextContent(text=text)], metadata=metadata)

    @classmethod
    def user(cls, content: str | list[ContentPart], **metadata: Any) -> UniversalMessage:
        parts = [TextContent(text=content)] if isinstance(content, str) else list(content)
        return cls(role="user", content=parts, metadata=metadata)

    @classmethod
    def assistant(
        cls,
        content: str | list[ContentPart] = "",
        tool_calls: list[ToolCall] | None = None,
        **metadata: Any,
    ) -> UniversalMessage:
        if isinstance(content, str):
            parts: list[ContentPart] = [TextContent(text=content)] if content else []
        else:
            parts = list(content)
        return cls(role="assistant", content=parts, tool_calls=tool_calls, metadata=metadata)

    @classmethod
    def tool_result(cls, result: ToolResult, **metadata: Any) -> UniversalMessage:
        metadata.setdefault(META_TOOL_CALL_ID, result.tool_call_id)
        return cls(role="tool", content=[ToolResultContent(tool_result=result)], metadata=metadata)


# ---------------------------------------------------------------------------
# System prompt, tools, body
# ---------------------------------------------------------------------------


class SystemPart(_Model):
    type: Literal["text", "image"] = "text"
    text: str | None = None
    media: MediaSource | None = None


class SystemPrompt(_Model):
    """Structured system prompt (multi-part, cache directives)."""

    content: str
    parts: list[SystemPart] | None = None
    cache_control: dict[str, Any] | None = None
    original: OriginalPayload | None = Field(default=None, alias="_original")


class UniversalTool(_Model):
    """A tool definition; ``parameters`` is a JSON schema object."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    original: OriginalPayload | None = Field(default=None, alias="_original")


class NamedToolChoice(_Model):
    """Force the model to call one specific tool."""

    name: str


ToolChoice = Literal["auto", "required", "none"] | NamedToolChoice


class UniversalBody(_Model):
    """One request turn in vendor-neutral form."""

    provider: Provider
    model: str = "unknown"
    system: str | SystemPrompt | None = None
    messages: list[UniversalMessage] = Field(default_factory=list)

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    seed: int | None = None
    stream: bool | None = None

    tools: list[UniversalTool] | None = None
    tool_choice: ToolChoice | None = None

    provider_params: dict[str, Any] = Field(default_factory=dict)
    original: OriginalPayload | None = Field(default=None, alias="_original")

    @property
    def system_text(self) -> str | None:
        if self.system is None:
            return None
        if isinstance(self.system, str):
            return self.system
        return self.system.content

    def fingerprint(self) -> str:
        """Digest of everything a caller can edit.

        Excludes the provider tag (relabelled on translation) and the stored
        original payload.
        """
        data = self.model_dump(mode="json", exclude={"provider", "original"})
        encoded = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()

    def validation_errors(self) -> list[str]:
        """Return human-readable structural problems (empty when valid)."""
        errors: list[str] = []
        if not self.model:
            errors.append("Model is required")
        if not self.messages:
            errors.append("At least one message is required")
        for index, message in enumerate(self.messages):
            if not message.content and not message.tool_calls:
                errors.append(f"Message at index {index} is missing content")
            for content_index, part in enumerate(message.content):
                if isinstance(part, TextContent) and not part.text:
                    errors.append(
                        f"Text content at message {index}, content {content_index} is missing text"
                    )
                if isinstance(part, ToolCallContent) and not part.tool_call.name:
                    errors.append(
                        f"Tool call at message {index}, content {content_index} is missing a name"
                    )
        return errors
