"""OpenAI Responses API codec (the stateful-turn shape).

The request carries ``instructions`` instead of a system message and an
``input`` that is either a bare string or a list of items. Besides message
items, the list holds ``function_call`` / ``function_call_output`` items and
model-side items (reasoning, built-in tool calls) that are kept opaque.
"""

from __future__ import annotations

import copy
from typing import Any

from llm_bridge.core.interface.models import (
    META_EXTRA_FIELDS,
    META_ITEM_TYPE,
    META_ORIGINAL_INDEX,
    META_PROVIDER,
    META_TOOL_CALL_ID,
    AudioContent,
    ContentPart,
    DocumentContent,
    ImageContent,
    MediaSource,
    NamedToolChoice,
    TextContent,
    ToolCall,
    ToolCallContent,
    ToolResult,
    ToolResultContent,
    UniversalBody,
    UniversalMessage,
    UniversalTool,
    UnknownContent,
)
from llm_bridge.core.interface.transpilers._common import (
    MISSING,
    BaseCodec,
    as_dict,
    drop_none,
    parse_arguments,
    parse_data_url,
    require_dict_with,
    serialize_arguments,
    str_or_none,
    stringify,
    take_scalars,
    unknown_content,
)

_SCALARS = {
    "temperature": "float",
    "top_p": "float",
    "stream": "bool",
    "max_output_tokens": "int",
}
_MODELED = frozenset({"model", "input", "instructions", "tools", "tool_choice", *_SCALARS})
_MESSAGE_KEYS = frozenset({"type", "role", "content"})
_ROLES = frozenset({"system", "developer", "user", "assistant"})
_TEXT_PARTS = frozenset({"input_text", "output_text", "text"})
# model-side items replayed as assistant turns
_OUTPUT_ITEMS = frozenset(
    {
        "reasoning",
        "web_search_call",
        "file_search_call",
        "computer_call",
        "code_interpreter_call",
        "image_generation_call",
        "local_shell_call",
        "mcp_call",
        "mcp_list_tools",
    }
)


def _function_tool_name(raw: dict[str, Any]) -> str | None:
    name = raw.get("name")
    if isinstance(name, str):
        return name
    name = as_dict(raw.get("function")).get("name")
    return name if isinstance(name, str) else None


class OpenAIResponsesCodec(BaseCodec):
    """Converts between the universal body and Responses API requests."""

    provider = "openai"
    shape = "responses"
    known_params = frozenset(
        {
            "previous_response_id",
            "store",
            "include",
            "text",
            "metadata",
            "parallel_tool_calls",
            "reasoning",
            "truncation",
            "user",
            "service_tier",
            "background",
            "max_tool_calls",
            "prompt",
            "prompt_cache_key",
            "safety_identifier",
            "top_logprobs",
            "stream_options",
        }
    )

    # ------------------------------------------------------------------
    # wire -> universal
    # ------------------------------------------------------------------

    def to_universal(self, raw: Any) -> UniversalBody:
        payload: dict[str, Any] = copy.deepcopy(raw) if isinstance(raw, dict) else {}

        provider_params = {k: v for k, v in payload.items() if k not in _MODELED}
        scalars = take_scalars(payload, _SCALARS, provider_params)
        if "max_output_tokens" in scalars:
            scalars["max_tokens"] = scalars.pop("max_output_tokens")

        instructions = payload.get("instructions")
        if instructions is not None and not isinstance(instructions, str):
            provider_params["instructions"] = instructions
            instructions = None

        body = UniversalBody(
            provider="openai",
            model=self._model_of(payload),
            system=instructions,
            messages=self._parse_input(payload.get("input")),
            tools=self._parse_tools(payload.get("tools"), provider_params),
            tool_choice=self._parse_tool_choice(payload.get("tool_choice"), provider_params),
            provider_params=provider_params,
            **scalars,
        )
        return self._stamp(body, payload)

    def _parse_input(self, raw: Any) -> list[UniversalMessage]:
        if isinstance(raw, str):
            return [
                UniversalMessage(
                    role="user",
                    content=[TextContent(text=raw)],
                    metadata={META_PROVIDER: "openai", META_ORIGINAL_INDEX: 0},
                )
            ]
        if not isinstance(raw, list):
            return []

        call_names: dict[str, str] = {}
        return [self._parse_item(item, i, call_names) for i, item in enumerate(raw)]

    def _parse_item(
        self, item: Any, index: int, call_names: dict[str, str]
    ) -> UniversalMessage:
        metadata: dict[str, Any] = {META_PROVIDER: "openai", META_ORIGINAL_INDEX: index}
        if not isinstance(item, dict):
            metadata[META_ITEM_TYPE] = "unknown"
            return UniversalMessage(
                role="user", content=[unknown_content(item, "openai", self.shape)], metadata=metadata
            )

        kind = item.get("type")
        if isinstance(kind, str):
            metadata[META_ITEM_TYPE] = kind

        if kind == "function_call":
            call = ToolCall(
                id=str(item.get("call_id") or item.get("id") or f"call_{index}"),
                name=str(item.get("name") or ""),
                arguments=parse_arguments(item.get("arguments")),
            )
            if item.get("id"):
                call.metadata["item_id"] = item["id"]
            call_names[call.id] = call.name
            return UniversalMessage(
                role="assistant",
                content=[ToolCallContent(tool_call=call, original=self._orig(item))],
                metadata=metadata,
            )

        if kind == "function_call_output":
            call_id = str(item.get("call_id") or "")
            metadata[META_TOOL_CALL_ID] = call_id
            result = ToolResult(
                tool_call_id=call_id, name=call_names.get(call_id, ""), result=item.get("output")
            )
            return UniversalMessage(
                role="tool",
                content=[ToolResultContent(tool_result=result, original=self._orig(item))],
                metadata=metadata,
            )

        role = item.get("role")
        if kind not in (None, "message") or not isinstance(role, str) or role not in _ROLES:
            role = "assistant" if isinstance(kind, str) and kind in _OUTPUT_ITEMS else "user"
            metadata.setdefault(META_ITEM_TYPE, "unknown")
            return UniversalMessage(
                role=role, content=[unknown_content(item, "openai", self.shape)], metadata=metadata
            )

        extra = {k: v for k, v in item.items() if k not in _MESSAGE_KEYS}
        if extra:
            metadata[META_EXTRA_FIELDS] = extra
        return UniversalMessage(
            role=role, content=self._parse_content(item.get("content")), metadata=metadata
        )

    def _parse_content(self, content: Any) -> list[ContentPart]:
        if content is None:
            return []
        if isinstance(content, str):
            return [TextContent(text=content)]
        if not isinstance(content, list):
            return [unknown_content(content, "openai", self.shape)]
        return [self._guarded(self._parse_part, part) for part in content]

    def _parse_part(self, part: Any) -> ContentPart:
        kind = part.get("type") if isinstance(part, dict) else None

        if isinstance(kind, str) and kind in _TEXT_PARTS and isinstance(part.get("text"), str):
            return TextContent(text=part["text"], original=self._orig(part))

        if kind == "input_image":
            url = part.get("image_url") if isinstance(part.get("image_url"), str) else None
            mime_type, data = parse_data_url(url)
            detail = part.get("detail") if part.get("detail") in ("low", "high", "auto") else None
            return ImageContent(
                media=MediaSource(
                    url=url, detail=detail, data=data, mime_type=mime_type,
                    file_uri=str_or_none(part.get("file_id")),
                ),
                original=self._orig(part),
            )

        if kind == "input_file":
            mime_type, data = parse_data_url(part.get("file_data"))
            return DocumentContent(
                media=MediaSource(
                    data=data or str_or_none(part.get("file_data")),
                    mime_type=mime_type,
                    file_uri=str_or_none(part.get("file_id")),
                    url=str_or_none(part.get("file_url")),
                    file_name=str_or_none(part.get("filename")),
                ),
                original=self._orig(part),
            )

        if kind == "input_audio":
            audio = as_dict(part.get("input_audio"))
            fmt = str_or_none(audio.get("format"))
            return AudioContent(
                media=MediaSource(
                    data=str_or_none(audio.get("data")),
                    mime_type=f"audio/{fmt}" if fmt else None,
                ),
                original=self._orig(part),
            )

        return unknown_content(part, "openai", self.shape)

    def _parse_tools(
        self, raw: Any, provider_params: dict[str, Any]
    ) -> list[UniversalTool] | None:
        if not isinstance(raw, list):
            return None
        tools: list[UniversalTool] = []
        builtin: list[Any] = []
        for tool in raw:
            if not isinstance(tool, dict) or tool.get("type") != "function":
                builtin.append(tool)
                continue
            # flat shape first, then the chat-style nested shape
            fn = tool if isinstance(tool.get("name"), str) else as_dict(tool.get("function"))
            tools.append(
                UniversalTool(
                    name=str(fn.get("name") or "unknown"),
                    description=str(fn.get("description") or ""),
                    parameters=as_dict(fn.get("parameters")),
                    metadata=drop_none({"type": "function", "strict": fn.get("strict")}),
                    original=self._orig(tool),
                )
            )
        if builtin:
            provider_params["builtin_tools"] = builtin
        return tools or None

    def _parse_tool_choice(self, raw: Any, provider_params: dict[str, Any]) -> Any:
        if raw in ("auto", "required", "none"):
            return raw
        if isinstance(raw, dict) and raw.get("type") == "function":
            name = _function_tool_name(raw)
            if name is not None:
                return NamedToolChoice(name=name)
        if raw is not None:
            provider_params["tool_choice"] = raw
        return None

    # ------------------------------------------------------------------
    # universal -> wire
    # ------------------------------------------------------------------

    def from_universal(self, body: UniversalBody) -> dict[str, Any]:
        exact = self._exact(body)
        if exact is not None:
            return exact

        result: dict[str, Any] = {"model": body.model, "input": self._input_from(body)}
        if body.system_text:
            result["instructions"] = body.system_text

        result.update(
            drop_none(
                {
                    "temperature": body.temperature,
                    "top_p": body.top_p,
                    "stream": body.stream,
                    "max_output_tokens": body.max_tokens,
                }
            )
        )

        tools: list[Any] = [
            self._tool_to_responses(tool, f"tools[{i}]") for i, tool in enumerate(body.tools or [])
        ]
        same = self._same_origin(body)
        if same:
            tools.extend(copy.deepcopy(body.provider_params.get("builtin_tools") or []))
        if tools:
            result["tools"] = tools

        choice = body.tool_choice
        if isinstance(choice, NamedToolChoice):
            result["tool_choice"] = {"type": "function", "name": choice.name}
        elif choice is not None:
            result["tool_choice"] = choice
        elif same and body.provider_params.get("tool_choice") is not None:
            result["tool_choice"] = copy.deepcopy(body.provider_params["tool_choice"])

        for key, value in self._passthrough(body).items():
            result.setdefault(key, value)
        return result

    def _input_from(self, body: UniversalBody) -> str | list[Any]:
        messages = body.messages
        if len(messages) == 1 and messages[0].role == "user" and len(messages[0].content) == 1:
            only = messages[0].content[0]
            if self._is_plain_text(only):
                return only.text

        items: list[Any] = []
        for index, msg in enumerate(messages):
            items.extend(self._items_from_message(msg, f"messages[{index}]"))
        return items

    def _items_from_message(self, msg: UniversalMessage, field: str) -> list[Any]:
        item_type = msg.metadata.get(META_ITEM_TYPE)
        if (
            item_type not in (None, "message")
            and len(msg.content) == 1
            and isinstance(msg.content[0], UnknownContent)
        ):
            raw = self._fragment(msg.content[0].original, f"{field}.content[0]")
            if raw is not MISSING and self._reusable(raw, msg.content[0]):
                return [copy.deepcopy(raw)]

        items: list[Any] = []
        parts: list[ContentPart] = []
        part_fields: list[str] = []
        for i, part in enumerate(msg.content):
            part_field = f"{field}.content[{i}]"
            if isinstance(part, ToolCallContent):
                items.append(self._call_item(part.tool_call, part, part_field))
            elif isinstance(part, ToolResultContent):
                items.append(self._output_item(part, part_field))
            else:
                parts.append(part)
                part_fields.append(part_field)

        for call in msg.tool_calls or []:
            items.append(self._call_item(call, None, field))

        if parts or not items:
            role = msg.role if msg.role in _ROLES else "user"
            message: dict[str, Any] = {"role": role, "content": self._content_from(parts, part_fields, role)}
            if item_type == "message":
                message = {"type": "message", **message}
            if msg.metadata.get(META_PROVIDER) == "openai":
                for key, value in as_dict(msg.metadata.get(META_EXTRA_FIELDS)).items():
                    message.setdefault(key, copy.deepcopy(value))
            items.insert(0, message)
        return items

    def _content_from(
        self, parts: list[ContentPart], fields: list[str], role: str
    ) -> str | list[dict[str, Any]]:
        if len(parts) == 1 and self._is_plain_text(parts[0]):
            return parts[0].text

        blocks: list[dict[str, Any]] = []
        for part, field in zip(parts, fields):
            raw = self._fragment(part.original, field, require_dict_with("type"))
            if raw is not MISSING and self._reusable(raw, part):
                blocks.append(copy.deepcopy(raw))
            else:
                blocks.append(self._part_to_responses(part, role))
        return blocks

    def _part_to_responses(self, part: ContentPart, role: str) -> dict[str, Any]:
        text_type = "output_text" if role == "assistant" else "input_text"
        if isinstance(part, TextContent):
            return {"type": text_type, "text": part.text}
        if isinstance(part, ImageContent):
            media = part.media
            url = media.url
            if not url and media.data:
                url = f"data:{media.mime_type or 'image/png'};base64,{media.data}"
            return drop_none(
                {
                    "type": "input_image",
                    "image_url": url,
                    "file_id": None if url else media.file_uri,
                    "detail": media.detail or "auto",
                }
            )
        if isinstance(part, DocumentContent):
            media = part.media
            file_data = None
            if media.data:
                file_data = f"data:{media.mime_type or 'application/pdf'};base64,{media.data}"
            return drop_none(
                {
                    "type": "input_file",
                    "file_id": media.file_uri,
                    "file_data": file_data,
                    "file_url": media.url,
                    "filename": media.file_name,
                }
            )
        if isinstance(part, AudioContent):
            subtype = (part.media.mime_type or "audio/wav").split("/")[-1]
            return {"type": "input_audio", "input_audio": {"data": part.media.data or "", "format": subtype}}
        return {"type": text_type, "text": part.model_dump_json(exclude={"original"})}

    def _call_item(
        self, call: ToolCall, part: ToolCallContent | None, field: str
    ) -> dict[str, Any]:
        if part is not None:
            raw = self._fragment(part.original, field, require_dict_with("call_id"))
            if raw is not MISSING and self._reusable(raw, part):
                return copy.deepcopy(raw)
        return drop_none(
            {
                "type": "function_call",
                "id": call.metadata.get("item_id"),
                "call_id": call.id,
                "name": call.name,
                "arguments": serialize_arguments(call.arguments),
            }
        )

    def _output_item(self, part: ToolResultContent, field: str) -> dict[str, Any]:
        result = part.tool_result
        raw = self._fragment(part.original, field, require_dict_with("call_id"))
        if raw is not MISSING and self._reusable(raw, part):
            return copy.deepcopy(raw)
        output = result.result if result.error is None else result.error
        return {
            "type": "function_call_output",
            "call_id": result.tool_call_id,
            "output": stringify(output),
        }

    def _tool_to_responses(self, tool: UniversalTool, field: str) -> dict[str, Any]:
        raw = self._fragment(tool.original, field, require_dict_with("name", "function"))
        if raw is not MISSING and self._same_tool(self._parse_tools([raw], {}), tool):
            return copy.deepcopy(raw)
        return drop_none(
            {
                "type": "function",
                "name": tool.name,
                "description": tool.description or None,
                "parameters": copy.deepcopy(tool.parameters) or {"type": "object", "properties": {}},
                "strict": tool.metadata.get("strict"),
            }
        )

    def _reparse(self, raw: Any, part: ContentPart) -> ContentPart | None:
        if isinstance(part, (ToolCallContent, ToolResultContent)):
            parsed = self._parse_item(raw, 0, {})
            return parsed.content[0] if len(parsed.content) == 1 else None
        return self._parse_part(raw)
