"""OpenAI Chat Completions codec: the universal body is closest to ChatML.

Key differences from the universal body:
- System prompts are ``role: "system"`` messages inside ``messages``.
- Tool calls are hoisted to ``message.tool_calls`` with JSON-string arguments.
- Tool results are ``role: "tool"`` messages keyed by ``tool_call_id``.
"""

from __future__ import annotations

import copy
from typing import Any

from llm_bridge.core.interface.models import (
    META_EXTRA_FIELDS,
    META_NAME,
    META_ORIGINAL_INDEX,
    META_PROVIDER,
    META_TOOL_CALL_ID,
    AudioContent,
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
    parse_arguments,
    parse_data_url,
    require_dict_with,
    serialize_arguments,
    str_or_none,
    stringify,
    take_scalars,
    text_of,
    tool_names_by_id,
    unknown_content,
)

_SCALARS = {
    "temperature": "float",
    "max_tokens": "int",
    "top_p": "float",
    "frequency_penalty": "float",
    "presence_penalty": "float",
    "seed": "int",
    "stream": "bool",
}
_MODELED = frozenset({"model", "messages", "tools", "tool_choice", *_SCALARS})
_MESSAGE_KEYS = frozenset({"role", "content", "tool_calls", "tool_call_id", "name"})
_ROLES = frozenset({"user", "assistant", "tool", "developer"})


def _audio_format(mime_type: str | None) -> str:
    if mime_type and "/" in mime_type:
        return mime_type.split("/")[1]
    return "wav"


def _is_system_messages(raw: Any) -> str | None:
    if isinstance(raw, list) and all(
        isinstance(m, dict) and m.get("role") == "system" for m in raw
    ):
        return None
    return "expected a list of system-role messages"


def _joined_text(system_messages: list[dict[str, Any]]) -> str:
    texts = (text_of(m.get("content")) for m in system_messages)
    return " ".join(t for t in texts if t)


def _is_message_content(raw: Any) -> str | None:
    if isinstance(raw, (str, list)):
        return None
    return f"expected a string or a list of content parts, got {type(raw).__name__}"


class OpenAIChatCodec(BaseCodec):
    """Converts between the universal body and Chat Completions requests."""

    provider = "openai"
    shape = "chat"
    known_params = frozenset(
        {
            "response_format",
            "logprobs",
            "top_logprobs",
            "n",
            "stop",
            "user",
            "stream_options",
            "parallel_tool_calls",
            "max_completion_tokens",
            "reasoning_effort",
            "modalities",
            "audio",
            "service_tier",
            "store",
            "logit_bias",
            "prediction",
            "web_search_options",
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
        if "max_tokens" not in scalars:
            completion = take_scalars(
                payload, {"max_completion_tokens": "int"}, {}
            ).get("max_completion_tokens")
            if completion is not None:
                scalars["max_tokens"] = completion

        system_messages = [
            m for m in raw_messages if isinstance(m, dict) and m.get("role") == "system"
        ]
        others = [
            m for m in raw_messages if not (isinstance(m, dict) and m.get("role") == "system")
        ]

        messages: list[UniversalMessage] = []
        call_names: dict[str, str] = {}
        for index, raw_message in enumerate(others):
            message = self._parse_message(raw_message, index, call_names)
            messages.append(message)

        body = UniversalBody(
            provider="openai",
            model=self._model_of(payload),
            system=self._parse_system(system_messages),
            messages=messages,
            tools=self._parse_tools(payload.get("tools")),
            tool_choice=self._parse_tool_choice(payload.get("tool_choice"), provider_params),
            provider_params=provider_params,
            **scalars,
        )
        return self._stamp(body, payload)

    def _parse_system(self, system_messages: list[dict[str, Any]]) -> str | SystemPrompt | None:
        if not system_messages:
            return None
        if len(system_messages) == 1 and isinstance(system_messages[0].get("content"), str):
            return system_messages[0]["content"]
        texts = [text_of(m.get("content")) for m in system_messages]
        return SystemPrompt(
            content=_joined_text(system_messages),
            parts=[SystemPart(text=t) for t in texts if t],
            original=self._orig(system_messages),
        )

    def _parse_message(
        self, raw: Any, index: int, call_names: dict[str, str]
    ) -> UniversalMessage:
        metadata: dict[str, Any] = {META_PROVIDER: "openai", META_ORIGINAL_INDEX: index}
        if not isinstance(raw, dict):
            return UniversalMessage(
                role="user", content=[unknown_content(raw, "openai", self.shape)], metadata=metadata
            )

        role = raw.get("role")
        if role == "function":
            role = "tool"
        if not isinstance(role, str) or role not in _ROLES:
            metadata["original_role"] = role
            role = "user"

        if raw.get("name") is not None:
            metadata[META_NAME] = raw["name"]
        extra = {k: v for k, v in raw.items() if k not in _MESSAGE_KEYS}
        if extra:
            metadata[META_EXTRA_FIELDS] = extra

        tool_calls = self._parse_tool_calls(raw.get("tool_calls"))
        for call in tool_calls or []:
            call_names[call.id] = call.name

        if role == "tool":
            call_id = str(raw.get("tool_call_id") or "")
            metadata[META_TOOL_CALL_ID] = call_id
            result = ToolResult(
                tool_call_id=call_id,
                name=str(raw.get("name") or call_names.get(call_id, "")),
                result=raw.get("content"),
            )
            content: list[ContentPart] = [
                ToolResultContent(tool_result=result, original=self._orig(raw.get("content")))
            ]
        else:
            content = self._parse_content(raw.get("content"))

        return UniversalMessage(
            role=role, content=content, metadata=metadata, tool_calls=tool_calls
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
        if kind == "text" and isinstance(part.get("text"), str):
            return TextContent(text=part["text"], original=self._orig(part))

        if kind == "image_url":
            image = part.get("image_url")
            image = image if isinstance(image, dict) else {"url": image}
            url = image.get("url") if isinstance(image.get("url"), str) else None
            mime_type, data = parse_data_url(url)
            detail = image.get("detail") if image.get("detail") in ("low", "high", "auto") else None
            return ImageContent(
                media=MediaSource(url=url, detail=detail, mime_type=mime_type, data=data),
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

        if kind == "file":
            file = as_dict(part.get("file"))
            mime_type, data = parse_data_url(file.get("file_data"))
            return DocumentContent(
                media=MediaSource(
                    data=data or str_or_none(file.get("file_data")),
                    mime_type=mime_type,
                    file_uri=str_or_none(file.get("file_id")),
                    file_name=str_or_none(file.get("filename")),
                ),
                original=self._orig(part),
            )

        return unknown_content(part, "openai", self.shape)

    def _parse_tool_calls(self, raw: Any) -> list[ToolCall] | None:
        if not isinstance(raw, list):
            return None
        calls: list[ToolCall] = []
        for index, tc in enumerate(raw):
            if not isinstance(tc, dict):
                continue
            function = as_dict(tc.get("function"))
            calls.append(
                ToolCall(
                    id=str(tc.get("id") or f"call_{index}"),
                    name=str(function.get("name") or ""),
                    arguments=parse_arguments(function.get("arguments")),
                    metadata={"type": tc.get("type", "function")},
                )
            )
        return calls or None

    def _parse_tools(self, raw: Any) -> list[UniversalTool] | None:
        if not isinstance(raw, list):
            return None
        tools: list[UniversalTool] = []
        for tool in raw:
            if not isinstance(tool, dict):
                continue
            function = as_dict(tool.get("function"))
            tools.append(
                UniversalTool(
                    name=str(function.get("name") or tool.get("name") or "unknown"),
                    description=str(function.get("description") or ""),
                    parameters=as_dict(function.get("parameters")),
                    metadata={"type": tool.get("type")},
                    original=self._orig(tool),
                )
            )
        return tools or None

    def _parse_tool_choice(self, raw: Any, provider_params: dict[str, Any]) -> Any:
        if raw in ("auto", "required", "none"):
            return raw
        name = as_dict(as_dict(raw).get("function")).get("name")
        if isinstance(name, str):
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

        messages: list[dict[str, Any]] = []
        system = self._system_prompt_fragment(body.system, _is_system_messages)
        if system is not MISSING and _joined_text(system) == body.system_text:
            messages.extend(copy.deepcopy(system))
        elif body.system_text:
            messages.append({"role": "system", "content": body.system_text})

        names = tool_names_by_id(body)
        for index, msg in enumerate(body.messages):
            messages.extend(self._message_to_openai(msg, index, names))

        result = drop_none(
            {
                "model": body.model,
                "messages": messages,
                "temperature": body.temperature,
                "max_tokens": body.max_tokens,
                "top_p": body.top_p,
                "frequency_penalty": body.frequency_penalty,
                "presence_penalty": body.presence_penalty,
                "seed": body.seed,
                "stream": body.stream,
            }
        )

        if body.tools:
            result["tools"] = [
                self._tool_to_openai(tool, f"tools[{i}]") for i, tool in enumerate(body.tools)
            ]

        tool_choice = self._tool_choice_to_openai(body)
        if tool_choice is not None:
            result["tool_choice"] = tool_choice

        for key, value in self._passthrough(body).items():
            result.setdefault(key, value)

        if "max_completion_tokens" in result:
            # newer models reject max_tokens alongside max_completion_tokens
            limit = result.pop("max_tokens", None)
            if limit is not None:
                result["max_completion_tokens"] = limit

        return result

    def _message_to_openai(
        self, msg: UniversalMessage, index: int, names: dict[str, str]
    ) -> list[dict[str, Any]]:
        field = f"messages[{index}]"
        results = [p for p in msg.content if isinstance(p, ToolResultContent)]
        others = [
            p
            for p in msg.content
            if not isinstance(p, (ToolResultContent, ToolCallContent))
        ]

        out: list[dict[str, Any]] = []
        for part_index, part in enumerate(msg.content):
            if isinstance(part, ToolResultContent):
                out.append(self._tool_result_to_openai(msg, part, f"{field}.content[{part_index}]", names))

        if results and not others and msg.role in ("tool", "user"):
            return out

        role = msg.role if msg.role != "tool" else "user"
        entry: dict[str, Any] = {"role": role}
        calls = msg.all_tool_calls()

        if not others:
            entry["content"] = None if calls else ""
        else:
            entry["content"] = self._content_to_openai(others, field)

        if calls:
            entry["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": serialize_arguments(tc.arguments)},
                }
                for tc in calls
            ]

        if msg.metadata.get(META_NAME) and role != "tool":
            entry["name"] = msg.metadata[META_NAME]
        if msg.metadata.get(META_PROVIDER) == "openai":
            for key, value in as_dict(msg.metadata.get(META_EXTRA_FIELDS)).items():
                entry.setdefault(key, copy.deepcopy(value))

        out.append(entry)
        return out

    def _tool_result_to_openai(
        self,
        msg: UniversalMessage,
        part: ToolResultContent,
        field: str,
        names: dict[str, str],
    ) -> dict[str, Any]:
        result = part.tool_result
        call_id = result.tool_call_id or str(msg.metadata.get(META_TOOL_CALL_ID) or "")
        raw = self._fragment(part.original, field, _is_message_content)
        if raw is not MISSING and result.error is None and raw == result.result:
            content = copy.deepcopy(raw)
        else:
            content = stringify(result.result if result.error is None else result.error)
        entry: dict[str, Any] = {"role": "tool", "tool_call_id": call_id, "content": content}
        name = msg.metadata.get(META_NAME)
        if name and msg.role == "tool":
            entry["name"] = name
        return entry

    def _content_to_openai(
        self, parts: list[ContentPart], field: str
    ) -> str | list[dict[str, Any]]:
        if len(parts) == 1 and self._is_plain_text(parts[0]):
            return parts[0].text

        blocks: list[dict[str, Any]] = []
        for i, part in enumerate(parts):
            raw = self._fragment(part.original, f"{field}.content[{i}]", require_dict_with("type"))
            if raw is not MISSING and self._reusable(raw, part):
                blocks.append(copy.deepcopy(raw))
            else:
                blocks.append(self._part_to_openai(part))
        return blocks

    def _part_to_openai(self, part: ContentPart) -> dict[str, Any]:
        if isinstance(part, TextContent):
            return {"type": "text", "text": part.text}
        if isinstance(part, ImageContent):
            media = part.media
            url = media.url
            if not url and media.data:
                url = f"data:{media.mime_type or 'image/png'};base64,{media.data}"
            return {
                "type": "image_url",
                "image_url": drop_none({"url": url or media.file_uri, "detail": media.detail}),
            }
        if isinstance(part, AudioContent):
            return {
                "type": "input_audio",
                "input_audio": {
                    "data": part.media.data or "",
                    "format": _audio_format(part.media.mime_type),
                },
            }
        if isinstance(part, DocumentContent):
            media = part.media
            file_data = None
            if media.data:
                file_data = f"data:{media.mime_type or 'application/pdf'};base64,{media.data}"
            return {
                "type": "file",
                "file": drop_none(
                    {"file_id": media.file_uri, "file_data": file_data, "filename": media.file_name}
                ),
            }
        return {"type": "text", "text": part.model_dump_json(exclude={"original"})}

    def _tool_to_openai(self, tool: UniversalTool, field: str) -> dict[str, Any]:
        raw = self._fragment(tool.original, field, require_dict_with("function", "type"))
        if raw is not MISSING and self._same_tool(self._parse_tools([raw]), tool):
            return copy.deepcopy(raw)
        return {
            "type": "function",
            "function": drop_none(
                {
                    "name": tool.name,
                    "description": tool.description or None,
                    "parameters": copy.deepcopy(tool.parameters) or None,
                }
            ),
        }

    def _tool_choice_to_openai(self, body: UniversalBody) -> Any:
        choice = body.tool_choice
        if isinstance(choice, NamedToolChoice):
            return {"type": "function", "function": {"name": choice.name}}
        if choice is not None:
            return choice
        if self._same_origin(body):
            return copy.deepcopy(body.provider_params.get("tool_choice"))
        return None

    def _reparse(self, raw: Any, part: ContentPart) -> ContentPart | None:
        return self._parse_part(raw)
