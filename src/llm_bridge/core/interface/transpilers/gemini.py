"""Gemini codec: maps assistant->model role and tool calls to FunctionCall.

Key differences from the universal body:
- Role "assistant" becomes "model".
- Tool calls use Gemini's functionCall/functionResponse parts, which carry no
  ids on most API versions; ids are synthesized per function name so each
  response stays linked to its call.
- System instructions are passed via a separate ``systemInstruction`` field.
- Generation knobs live under ``generationConfig``.
"""

from __future__ import annotations

import copy
import json
from typing import Any

from llm_bridge.core.interface.models import (
    META_EXTRA_FIELDS,
    META_ORIGINAL_INDEX,
    META_PROVIDER,
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
    VideoContent,
)
from llm_bridge.core.interface.transpilers._common import (
    MISSING,
    BaseCodec,
    CallIds,
    as_dict,
    drop_none,
    media_kind,
    merged_system_text,
    parse_arguments,
    require_dict_with,
    str_or_none,
    take_scalars,
    tool_names_by_id,
    unknown_content,
)

# generationConfig key -> (universal field, kind)
_GENERATION_FIELDS = {
    "temperature": ("temperature", "float"),
    "maxOutputTokens": ("max_tokens", "int"),
    "topP": ("top_p", "float"),
    "seed": ("seed", "int"),
    "frequencyPenalty": ("frequency_penalty", "float"),
    "presencePenalty": ("presence_penalty", "float"),
}
_MODELED = frozenset(
    {
        "model",
        "contents",
        "systemInstruction",
        "system_instruction",
        "generationConfig",
        "tools",
        "toolConfig",
    }
)
_CONTENT_KEYS = frozenset({"role", "parts"})
_MEDIA_CLASSES = {
    "image": ImageContent,
    "audio": AudioContent,
    "video": VideoContent,
    "document": DocumentContent,
}
_MODE_TO_UNIVERSAL = {"AUTO": "auto", "ANY": "required", "NONE": "none"}
_MODE_FROM_UNIVERSAL = {"auto": "AUTO", "required": "ANY", "none": "NONE"}

_require_part = require_dict_with()


def _is_system_instruction(raw: Any) -> str | None:
    if isinstance(raw, dict) and isinstance(raw.get("parts"), list):
        return None
    return "expected an object with a 'parts' list"


def _system_parts_text(raw: dict[str, Any]) -> str:
    return " ".join(
        p["text"] for p in raw["parts"] if isinstance(p, dict) and isinstance(p.get("text"), str)
    )


def _response_payload(result: ToolResult) -> dict[str, Any]:
    """functionResponse.response must be an object, never a string."""
    if result.error is not None:
        return {"error": result.error}
    value = result.result
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
    if isinstance(value, dict):
        return value
    return {"content": value}


class GeminiCodec(BaseCodec):
    """Converts between the universal body and generateContent requests."""

    provider = "google"
    shape = "generate_content"
    known_params = frozenset({"safetySettings", "cachedContent", "labels"})

    # ------------------------------------------------------------------
    # wire -> universal
    # ------------------------------------------------------------------

    def to_universal(self, raw: Any) -> UniversalBody:
        payload: dict[str, Any] = copy.deepcopy(raw) if isinstance(raw, dict) else {}
        contents = payload.get("contents")
        if not isinstance(contents, list):
            contents = []

        provider_params = {k: v for k, v in payload.items() if k not in _MODELED}
        scalars = self._parse_generation_config(payload.get("generationConfig"), provider_params)

        ids = CallIds()
        messages = [self._parse_content(c, index, ids) for index, c in enumerate(contents)]

        system_raw = payload.get("systemInstruction", payload.get("system_instruction"))

        body = UniversalBody(
            provider="google",
            model=self._model_of(payload),
            system=self._parse_system(system_raw, provider_params),
            messages=messages,
            tools=self._parse_tools(payload.get("tools"), provider_params),
            tool_choice=self._parse_tool_config(payload.get("toolConfig"), provider_params),
            provider_params=provider_params,
            **scalars,
        )
        return self._stamp(body, payload)

    def _parse_generation_config(
        self, raw: Any, provider_params: dict[str, Any]
    ) -> dict[str, Any]:
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            provider_params["generationConfig"] = raw
            return {}
        leftovers = {k: v for k, v in raw.items() if k not in _GENERATION_FIELDS}
        values = take_scalars(
            raw, {key: kind for key, (_, kind) in _GENERATION_FIELDS.items()}, leftovers
        )
        if leftovers:
            provider_params["generationConfig"] = leftovers
        return {_GENERATION_FIELDS[key][0]: value for key, value in values.items()}

    def _parse_system(
        self, raw: Any, provider_params: dict[str, Any]
    ) -> str | SystemPrompt | None:
        if raw is None:
            return None
        if isinstance(raw, str):
            return raw
        if _is_system_instruction(raw) is not None:
            provider_params["systemInstruction"] = raw
            return None
        texts = [
            p["text"] for p in raw["parts"] if isinstance(p, dict) and isinstance(p.get("text"), str)
        ]
        return SystemPrompt(
            content=" ".join(texts),
            parts=[SystemPart(text=t) for t in texts],
            original=self._orig(raw),
        )

    def _parse_content(self, raw: Any, index: int, ids: CallIds) -> UniversalMessage:
        metadata: dict[str, Any] = {META_PROVIDER: "google", META_ORIGINAL_INDEX: index}
        if not isinstance(raw, dict):
            return UniversalMessage(
                role="user", content=[unknown_content(raw, "google", self.shape)], metadata=metadata
            )

        role = raw.get("role")
        if role == "model":
            role = "assistant"
        elif role == "function":
            metadata["original_role"] = role
            role = "tool"
        elif role != "user":
            if role is not None:
                metadata["original_role"] = role
            role = "user"

        extra = {k: v for k, v in raw.items() if k not in _CONTENT_KEYS}
        if extra:
            metadata[META_EXTRA_FIELDS] = extra

        parts = raw.get("parts")
        if parts is None:
            content: list[ContentPart] = []
        elif not isinstance(parts, list):
            content = [unknown_content(parts, "google", self.shape)]
        else:
            content = [self._guarded(self._parse_part, part, ids) for part in parts]
        return UniversalMessage(role=role, content=content, metadata=metadata)

    def _parse_part(self, part: Any, ids: CallIds) -> ContentPart:
        if not isinstance(part, dict):
            return unknown_content(part, "google", self.shape)

        if isinstance(part.get("text"), str) and not part.get("thought"):
            return TextContent(text=part["text"], original=self._orig(part))

        inline = part.get("inlineData", part.get("inline_data"))
        if isinstance(inline, dict):
            mime_type = str_or_none(inline.get("mimeType", inline.get("mime_type")))
            cls = _MEDIA_CLASSES[media_kind(mime_type)]
            return cls(
                media=MediaSource(data=str_or_none(inline.get("data")), mime_type=mime_type),
                original=self._orig(part),
            )

        file_data = part.get("fileData", part.get("file_data"))
        if isinstance(file_data, dict):
            mime_type = str_or_none(file_data.get("mimeType", file_data.get("mime_type")))
            cls = _MEDIA_CLASSES[media_kind(mime_type)]
            return cls(
                media=MediaSource(
                    file_uri=str_or_none(file_data.get("fileUri", file_data.get("file_uri"))),
                    mime_type=mime_type,
                    file_name=str_or_none(file_data.get("displayName")),
                ),
                original=self._orig(part),
            )

        call = part.get("functionCall")
        if isinstance(call, dict):
            name = str(call.get("name") or "")
            call_id = call.get("id") or ids.for_call(name)
            return ToolCallContent(
                tool_call=ToolCall(
                    id=str(call_id), name=name, arguments=parse_arguments(call.get("args"))
                ),
                original=self._orig(part),
            )

        response = part.get("functionResponse")
        if isinstance(response, dict):
            name = str(response.get("name") or "")
            call_id = response.get("id") or ids.for_response(name)
            return ToolResultContent(
                tool_result=ToolResult(
                    tool_call_id=str(call_id), name=name, result=response.get("response")
                ),
                original=self._orig(part),
            )

        return unknown_content(part, "google", self.shape)

    def _parse_tools(
        self, raw: Any, provider_params: dict[str, Any]
    ) -> list[UniversalTool] | None:
        if not isinstance(raw, list):
            return None
        tools: list[UniversalTool] = []
        builtin: list[Any] = []
        for group in raw:
            declarations = as_dict(group).get(
                "functionDeclarations", as_dict(group).get("function_declarations")
            )
            if not isinstance(declarations, list):
                builtin.append(group)
                continue
            for declaration in declarations:
                if not isinstance(declaration, dict):
                    continue
                tools.append(
                    UniversalTool(
                        name=str(declaration.get("name") or "unknown"),
                        description=str(declaration.get("description") or ""),
                        parameters=as_dict(declaration.get("parameters")),
                        original=self._orig(declaration),
                    )
                )
        if builtin:
            provider_params["builtin_tools"] = builtin
        return tools or None

    def _parse_tool_config(self, raw: Any, provider_params: dict[str, Any]) -> Any:
        if raw is None:
            return None
        config = as_dict(as_dict(raw).get("functionCallingConfig"))
        mode = config.get("mode")
        allowed = config.get("allowedFunctionNames")
        if mode == "ANY" and isinstance(allowed, list) and len(allowed) == 1:
            return NamedToolChoice(name=str(allowed[0]))
        if isinstance(mode, str) and mode in _MODE_TO_UNIVERSAL and not allowed:
            return _MODE_TO_UNIVERSAL[mode]
        provider_params["tool_choice"] = raw
        return None

    # ------------------------------------------------------------------
    # universal -> wire
    # ------------------------------------------------------------------

    def from_universal(self, body: UniversalBody) -> dict[str, Any]:
        exact = self._exact(body)
        if exact is not None:
            return exact

        same = self._same_origin(body)
        result: dict[str, Any] = {}
        # the model travels in the URL; only echo a body-level model the caller sent
        if same and body.original is not None and "model" in as_dict(body.original.raw):
            result["model"] = body.model

        names = tool_names_by_id(body)
        contents: list[dict[str, Any]] = []
        for index, msg in enumerate(body.messages):
            if msg.role in ("system", "developer"):
                continue
            contents.append(self._message_to_gemini(msg, f"messages[{index}]", names))
        result["contents"] = contents

        system = self._system_to_gemini(body)
        if system is not None:
            result["systemInstruction"] = system

        generation_config = self._generation_config(body, same)
        if generation_config:
            result["generationConfig"] = generation_config

        tools: list[Any] = []
        if body.tools:
            tools.append(
                {
                    "functionDeclarations": [
                        self._tool_to_gemini(tool, f"tools[{i}]")
                        for i, tool in enumerate(body.tools)
                    ]
                }
            )
        if same:
            tools.extend(copy.deepcopy(body.provider_params.get("builtin_tools") or []))
        if tools:
            result["tools"] = tools

        tool_config = self._tool_config(body, same)
        if tool_config is not None:
            result["toolConfig"] = tool_config

        for key, value in self._passthrough(body).items():
            result.setdefault(key, value)
        return result

    def _system_to_gemini(self, body: UniversalBody) -> dict[str, Any] | None:
        text = merged_system_text(body)
        if text is None:
            return None
        if isinstance(body.system, SystemPrompt):
            raw = self._system_prompt_fragment(body.system, _is_system_instruction)
            if raw is not MISSING and text == body.system.content == _system_parts_text(raw):
                return copy.deepcopy(raw)
        return {"parts": [{"text": text}]}

    def _generation_config(self, body: UniversalBody, same: bool) -> dict[str, Any]:
        config: dict[str, Any] = {}
        leftovers = body.provider_params.get("generationConfig")
        if same and isinstance(leftovers, dict):
            config.update(copy.deepcopy(leftovers))
        for key, (field, _) in _GENERATION_FIELDS.items():
            value = getattr(body, field)
            if value is not None:
                config[key] = value
        return config

    def _message_to_gemini(
        self, msg: UniversalMessage, field: str, names: dict[str, str]
    ) -> dict[str, Any]:
        role = "model" if msg.role == "assistant" else "user"
        parts: list[dict[str, Any]] = []
        for i, part in enumerate(msg.content):
            raw = self._fragment(part.original, f"{field}.content[{i}]", _require_part)
            if raw is not MISSING and self._reusable(raw, part):
                parts.append(copy.deepcopy(raw))
            else:
                parts.append(self._part_to_gemini(part, names))
        for call in msg.tool_calls or []:
            args = copy.deepcopy(call.arguments)
            parts.append({"functionCall": {"name": call.name, "args": args}})

        entry: dict[str, Any] = {"role": role, "parts": parts}
        if msg.metadata.get(META_PROVIDER) == "google":
            for key, value in as_dict(msg.metadata.get(META_EXTRA_FIELDS)).items():
                entry.setdefault(key, copy.deepcopy(value))
        return entry

    def _part_to_gemini(self, part: ContentPart, names: dict[str, str]) -> dict[str, Any]:
        if isinstance(part, TextContent):
            return {"text": part.text}
        if isinstance(part, ToolCallContent):
            call = part.tool_call
            return {"functionCall": {"name": call.name, "args": copy.deepcopy(call.arguments)}}
        if isinstance(part, ToolResultContent):
            result = part.tool_result
            return {
                "functionResponse": {
                    "name": result.name or names.get(result.tool_call_id, ""),
                    "response": copy.deepcopy(_response_payload(result)),
                }
            }

        media = part.media
        defaults = {
            "image": "image/jpeg",
            "audio": "audio/mp3",
            "video": "video/mp4",
            "document": "application/pdf",
        }
        mime_type = media.mime_type or defaults[part.type]
        if media.data:
            return {"inlineData": {"mimeType": mime_type, "data": media.data}}
        if media.file_uri or media.url:
            return {"fileData": {"mimeType": mime_type, "fileUri": media.file_uri or media.url}}
        return {"text": f"[{part.type}]"}

    def _tool_to_gemini(self, tool: UniversalTool, field: str) -> dict[str, Any]:
        raw = self._fragment(tool.original, field, require_dict_with("name"))
        if raw is not MISSING and self._same_tool(
            self._parse_tools([{"functionDeclarations": [raw]}], {}), tool
        ):
            return copy.deepcopy(raw)
        return drop_none(
            {
                "name": tool.name,
                "description": tool.description or None,
                "parameters": copy.deepcopy(tool.parameters) or None,
            }
        )

    def _tool_config(self, body: UniversalBody, same: bool) -> dict[str, Any] | None:
        choice = body.tool_choice
        if isinstance(choice, NamedToolChoice):
            return {
                "functionCallingConfig": {"mode": "ANY", "allowedFunctionNames": [choice.name]}
            }
        if choice is not None:
            return {"functionCallingConfig": {"mode": _MODE_FROM_UNIVERSAL[choice]}}
        if same and body.provider_params.get("tool_choice") is not None:
            return copy.deepcopy(body.provider_params["tool_choice"])
        return None

    def _reparse(self, raw: Any, part: ContentPart) -> ContentPart | None:
        parsed = self._parse_part(raw, CallIds())
        # ids absent from the wire were synthesized from the call order
        if isinstance(parsed, ToolCallContent) and isinstance(part, ToolCallContent):
            if not as_dict(raw.get("functionCall")).get("id"):
                parsed.tool_call.id = part.tool_call.id
        elif isinstance(parsed, ToolResultContent) and isinstance(part, ToolResultContent):
            if not as_dict(raw.get("functionResponse")).get("id"):
                parsed.tool_result.tool_call_id = part.tool_result.tool_call_id
        return parsed
