"""Anthropic Messages codec: handles system extraction and role alternation.

Key differences from the universal body:
- System prompt is a separate top-level parameter (string or text blocks).
- Messages must strictly alternate between user and assistant roles.
- Consecutive same-role messages must be merged.
- Tool results are embedded as user messages with tool_result content blocks,
  and their content is always a string.
- ``max_tokens`` is required.
"""

from __future__ import annotations

import copy
from typing import Any

from llm_bridge.core.interface.models import (
    META_CACHE_CONTROL,
    META_EXTRA_FIELDS,
    META_ORIGINAL_INDEX,
    META_PROVIDER,
    ContentPart,
    DocumentContent,
    ImageContent,
    MediaSource,
    NamedToolChoice,
    SystemPart,
    SystemPrompt,
    TextContent,
    ToolCall,
    ToolCallContent,
    ToolResult,
    ToolResultContent,
    UniversalBody,
    UniversalMessage,
    UniversalTool,
)
from llm_bridge.core.interface.transpilers._common import (
    MISSING,
    BaseCodec,
    as_dict,
    drop_none,
    merged_system_text,
    parse_arguments,
    require_dict_with,
    str_or_none,
    stringify,
    take_scalars,
    text_of,
    unknown_content,
)

_SCALARS = {
    "temperature": "float",
    "max_tokens": "int",
    "top_p": "float",
    "stream": "bool",
}
_MODELED = frozenset({"model", "system", "messages", "tools", "tool_choice", *_SCALARS})
_MESSAGE_KEYS = frozenset({"role", "content"})

_CHOICE_TO_UNIVERSAL = {"auto": "auto", "any": "required", "none": "none"}
_CHOICE_FROM_UNIVERSAL = {"auto": "auto", "required": "any", "none": "none"}


def _is_system_blocks(raw: Any) -> str | None:
    if isinstance(raw, list) and all(isinstance(b, dict) and "type" in b for b in raw):
        return None
    return "expected a list of system content blocks"


def _first_cache_control(blocks: list[Any]) -> dict[str, Any] | None:
    for block in blocks:
        if isinstance(block, dict) and isinstance(block.get("cache_control"), dict):
            return block["cache_control"]
    return None


class AnthropicCodec(BaseCodec):
    """Converts between the universal body and Anthropic Messages requests."""

    provider = "anthropic"
    shape = "messages"
    known_params = frozenset(
        {
            "stop_sequences",
            "top_k",
            "metadata",
            "thinking",
            "service_tier",
            "container",
            "mcp_servers",
            "anthropic_version",
        }
    )

    # ------------------------------------------------------------------
    # wire -> universal
    # ------------------------------------------------------------------

    def to_universal(self, raw: Any) -> UniversalBody:
        payload: dict[str, Any] = copy.deepcopy(raw) if isinstance(raw, dict) else {}
        raw_messages = payload.get("messages")
        if not isinstance(raw_messages, list):
            raw_messages = []

        provider_params = {k: v for k, v in payload.items() if k not in _MODELED}
        scalars = take_scalars(payload, _SCALARS, provider_params)

        call_names: dict[str, str] = {}
        messages = [
            self._parse_message(m, index, call_names) for index, m in enumerate(raw_messages)
        ]

        body = UniversalBody(
            provider="anthropic",
            model=self._model_of(payload),
            system=self._parse_system(payload.get("system"), provider_params),
            messages=messages,
            tools=self._parse_tools(payload.get("tools"), provider_params),
            tool_choice=self._parse_tool_choice(payload.get("tool_choice"), provider_params),
            provider_params=provider_params,
            **scalars,
        )
        return self._stamp(body, payload)

    def _parse_system(
        self, raw: Any, provider_params: dict[str, Any]
    ) -> str | SystemPrompt | None:
        if raw is None:
            return None
        if isinstance(raw, str):
            return raw
        if not isinstance(raw, list):
            provider_params["system"] = raw
            return None
        texts = [
            b["text"] for b in raw if isinstance(b, dict) and isinstance(b.get("text"), str)
        ]
        return SystemPrompt(
            content=" ".join(texts),
            parts=[SystemPart(text=t) for t in texts],
            cache_control=_first_cache_control(raw),
            original=self._orig(raw),
        )

    def _parse_message(
        self, raw: Any, index: int, call_names: dict[str, str]
    ) -> UniversalMessage:
        metadata: dict[str, Any] = {META_PROVIDER: "anthropic", META_ORIGINAL_INDEX: index}
        if not isinstance(raw, dict):
            return UniversalMessage(
                role="user", content=[unknown_content(raw, "anthropic", self.shape)], metadata=metadata
            )

        role = raw.get("role")
        if role not in ("user", "assistant"):
            metadata["original_role"] = role
            role = "user"

        extra = {k: v for k, v in raw.items() if k not in _MESSAGE_KEYS}
        if extra:
            metadata[META_EXTRA_FIELDS] = extra

        content = raw.get("content")
        if isinstance(content, list):
            cache_control = _first_cache_control(content)
            if cache_control is not None:
                metadata[META_CACHE_CONTROL] = cache_control

        return UniversalMessage(
            role=role, content=self._parse_content(content, call_names), metadata=metadata
        )

    def _parse_content(self, content: Any, call_names: dict[str, str]) -> list[ContentPart]:
        if content is None:
            return []
        if isinstance(content, str):
            return [TextContent(text=content)]
        if not isinstance(content, list):
            return [unknown_content(content, "anthropic", self.shape)]
        return [self._guarded(self._parse_block, block, call_names) for block in content]

    def _parse_block(self, block: Any, call_names: dict[str, str]) -> ContentPart:
        kind = block.get("type") if isinstance(block, dict) else None

        if kind == "text" and isinstance(block.get("text"), str):
            return TextContent(text=block["text"], original=self._orig(block))

        if kind in ("image", "document"):
            source = as_dict(block.get("source"))
            media = MediaSource(
                mime_type=str_or_none(source.get("media_type")),
                url=str_or_none(source.get("url")),
                file_uri=str_or_none(source.get("file_id")),
                file_name=str_or_none(block.get("title")),
            )
            if source.get("type") in ("base64", "text"):
                media.data = str_or_none(source.get("data"))
            cls = ImageContent if kind == "image" else DocumentContent
            return cls(media=media, original=self._orig(block))

        if kind == "tool_use":
            call = ToolCall(
                id=str(block.get("id") or ""),
                name=str(block.get("name") or ""),
                arguments=parse_arguments(block.get("input")),
            )
            call_names[call.id] = call.name
            return ToolCallContent(tool_call=call, original=self._orig(block))

        if kind == "tool_result":
            call_id = str(block.get("tool_use_id") or "")
            result = ToolResult(
                tool_call_id=call_id,
                name=call_names.get(call_id, ""),
                result=block.get("content"),
                error=(text_of(block.get("content")) or "error") if block.get("is_error") else None,
            )
            return ToolResultContent(tool_result=result, original=self._orig(block))

        return unknown_content(block, "anthropic", self.shape)

    def _parse_tools(
        self, raw: Any, provider_params: dict[str, Any]
    ) -> list[UniversalTool] | None:
        if not isinstance(raw, list):
            return None
        tools: list[UniversalTool] = []
        builtin: list[Any] = []
        for tool in raw:
            # versioned server tools (web_search_20250305, bash_20250124, ...) carry a type
            if not isinstance(tool, dict) or tool.get("type") not in (None, "custom"):
                builtin.append(tool)
                continue
            tools.append(
                UniversalTool(
                    name=str(tool.get("name") or "unknown"),
                    description=str(tool.get("description") or ""),
                    parameters=as_dict(tool.get("input_schema")),
                    metadata=drop_none({"cache_control": tool.get("cache_control")}),
                    original=self._orig(tool),
                )
            )
        if builtin:
            provider_params["builtin_tools"] = builtin
        return tools or None

    def _parse_tool_choice(self, raw: Any, provider_params: dict[str, Any]) -> Any:
        if raw is None:
            return None
        if isinstance(raw, str) and raw in _CHOICE_TO_UNIVERSAL:
            return _CHOICE_TO_UNIVERSAL[raw]
        choice = as_dict(raw)
        if "disable_parallel_tool_use" in choice:
            provider_params["disable_parallel_tool_use"] = choice["disable_parallel_tool_use"]
        kind = choice.get("type")
        if isinstance(kind, str) and kind in _CHOICE_TO_UNIVERSAL:
            return _CHOICE_TO_UNIVERSAL[kind]
        if kind == "tool" and isinstance(choice.get("name"), str):
            return NamedToolChoice(name=choice["name"])
        provider_params["tool_choice"] = raw
        return None

    # ------------------------------------------------------------------
    # universal -> wire
    # ------------------------------------------------------------------

    def from_universal(self, body: UniversalBody) -> dict[str, Any]:
        exact = self._exact(body)
        if exact is not None:
            return exact

        result: dict[str, Any] = {"model": body.model}

        system = self._system_to_anthropic(body)
        if system is not None:
            result["system"] = system

        raw_messages: list[dict[str, Any]] = []
        for index, msg in enumerate(body.messages):
            if msg.role in ("system", "developer"):
                continue
            raw_messages.append(self._message_to_anthropic(msg, f"messages[{index}]"))
        result["messages"] = _merge_consecutive_roles(raw_messages)

        result["max_tokens"] = (
            body.max_tokens
            if body.max_tokens is not None
            else self.settings.anthropic_default_max_tokens
        )
        result.update(
            drop_none(
                {"temperature": body.temperature, "top_p": body.top_p, "stream": body.stream}
            )
        )

        same = self._same_origin(body)
        tools: list[Any] = [
            self._tool_to_anthropic(tool, f"tools[{i}]") for i, tool in enumerate(body.tools or [])
        ]
        if same:
            tools.extend(copy.deepcopy(body.provider_params.get("builtin_tools") or []))
        if tools:
            result["tools"] = tools

        tool_choice = self._tool_choice_to_anthropic(body, same)
        if tool_choice is not None:
            result["tool_choice"] = tool_choice

        for key, value in self._passthrough(body).items():
            result.setdefault(key, value)
        return result

    def _system_to_anthropic(self, body: UniversalBody) -> str | list[dict[str, Any]] | None:
        text = merged_system_text(body)
        if text is None:
            return None
        system = body.system
        if isinstance(system, SystemPrompt):
            raw = self._system_prompt_fragment(system, _is_system_blocks)
            if raw is not MISSING and text == system.content and text_of(raw) == text:
                return copy.deepcopy(raw)
            if system.cache_control:
                return [
                    {"type": "text", "text": text, "cache_control": copy.deepcopy(system.cache_control)}
                ]
        return text

    def _message_to_anthropic(self, msg: UniversalMessage, field: str) -> dict[str, Any]:
        role = "assistant" if msg.role == "assistant" else "user"
        blocks: list[dict[str, Any]] = []
        for i, part in enumerate(msg.content):
            part_field = f"{field}.content[{i}]"
            raw = self._fragment(part.original, part_field, require_dict_with("type"))
            if raw is not MISSING and self._reusable(raw, part):
                blocks.append(copy.deepcopy(raw))
            else:
                blocks.append(self._part_to_anthropic(part))

        for call in msg.tool_calls or []:
            blocks.append(
                {
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": copy.deepcopy(call.arguments),
                }
            )

        cache_control = msg.metadata.get(META_CACHE_CONTROL)
        if blocks and cache_control and not _first_cache_control(blocks):
            blocks[-1]["cache_control"] = copy.deepcopy(cache_control)

        entry: dict[str, Any] = {"role": role, "content": blocks}
        if msg.metadata.get(META_PROVIDER) == "anthropic":
            for key, value in as_dict(msg.metadata.get(META_EXTRA_FIELDS)).items():
                entry.setdefault(key, copy.deepcopy(value))
        return entry

    def _part_to_anthropic(self, part: ContentPart) -> dict[str, Any]:
        if isinstance(part, TextContent):
            return {"type": "text", "text": part.text}
        if isinstance(part, ToolCallContent):
            call = part.tool_call
            return {
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": copy.deepcopy(call.arguments),
            }
        if isinstance(part, ToolResultContent):
            result = part.tool_result
            block: dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": result.tool_call_id,
                "content": stringify(result.result if result.error is None else result.error),
            }
            if result.error is not None:
                block["is_error"] = True
            return block
        if isinstance(part, (ImageContent, DocumentContent)):
            media = part.media
            kind = "image" if isinstance(part, ImageContent) else "document"
            if media.data:
                default_mime = "image/png" if kind == "image" else "application/pdf"
                source = {
                    "type": "base64",
                    "media_type": media.mime_type or default_mime,
                    "data": media.data,
                }
            elif media.url:
                source = {"type": "url", "url": media.url}
            elif media.file_uri:
                source = {"type": "file", "file_id": media.file_uri}
            else:
                return {"type": "text", "text": f"[{kind}]"}
            return {"type": kind, "source": source}
        # audio / video: no native block
        return {"type": "text", "text": part.model_dump_json(exclude={"original"})}

    def _tool_to_anthropic(self, tool: UniversalTool, field: str) -> dict[str, Any]:
        raw = self._fragment(tool.original, field, require_dict_with("name"))
        if raw is not MISSING and self._same_tool(self._parse_tools([raw], {}), tool):
            return copy.deepcopy(raw)
        return drop_none(
            {
                "name": tool.name,
                "description": tool.description or None,
                "input_schema": {"type": "object", **copy.deepcopy(tool.parameters)},
                "cache_control": copy.deepcopy(tool.metadata.get("cache_control")),
            }
        )

    def _tool_choice_to_anthropic(self, body: UniversalBody, same: bool) -> dict[str, Any] | None:
        choice = body.tool_choice
        result: dict[str, Any] | None
        if isinstance(choice, NamedToolChoice):
            result = {"type": "tool", "name": choice.name}
        elif choice is not None:
            result = {"type": _CHOICE_FROM_UNIVERSAL[choice]}
        elif same and isinstance(body.provider_params.get("tool_choice"), dict):
            return copy.deepcopy(body.provider_params["tool_choice"])
        else:
            return None
        if same and body.provider_params.get("disable_parallel_tool_use") is not None:
            result["disable_parallel_tool_use"] = body.provider_params["disable_parallel_tool_use"]
        return result

    def _reparse(self, raw: Any, part: ContentPart) -> ContentPart | None:
        return self._parse_block(raw, {})


def _merge_consecutive_roles(
    messages: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge consecutive messages with the same role.

    Anthropic requires strict user/assistant alternation. When multiple
    consecutive messages share a role, their content blocks are merged into
    one message.
    """
    merged: list[dict[str, Any]] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            merged[-1]["content"] = [*merged[-1]["content"], *msg["content"]]
        else:
            merged.append(msg)
    return merged
