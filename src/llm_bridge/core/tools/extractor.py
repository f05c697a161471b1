"""Tool-call extraction from vendor *response* bodies.

Each vendor reports tool invocations in a different place:

- Anthropic: ``content[]`` blocks of type ``tool_use``.
- OpenAI Chat Completions: ``choices[0].message.tool_calls[]``.
- OpenAI Responses: ``output[]`` items of type ``function_call``.
- Gemini: ``candidates[0].content.parts[]`` with a ``functionCall``.

Extraction never raises; malformed or absent fields yield no calls.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from llm_bridge.core.interface.registry import normalize_provider
from llm_bridge.core.interface.transpilers._common import CallIds, as_dict, parse_arguments

logger = logging.getLogger(__name__)


class NormalizedToolCall(BaseModel):
    """One tool invocation; ``input`` is always a parsed object."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolCallExtractionResult(BaseModel):
    all_tools: list[NormalizedToolCall] = Field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.all_tools)


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _first(value: Any) -> dict[str, Any]:
    items = _list(value)
    return as_dict(items[0]) if items else {}


def _anthropic_calls(response: dict[str, Any], ids: CallIds) -> list[NormalizedToolCall]:
    calls = []
    for block in _list(response.get("content")):
        block = as_dict(block)
        if block.get("type") != "tool_use":
            continue
        name = str(block.get("name") or "")
        calls.append(
            NormalizedToolCall(
                id=str(block.get("id") or ids.for_call(name)),
                name=name,
                input=parse_arguments(block.get("input")),
            )
        )
    return calls


def _openai_calls(response: dict[str, Any], ids: CallIds) -> list[NormalizedToolCall]:
    calls = []
    if "choices" in response:
        message = as_dict(_first(response.get("choices")).get("message"))
        for tc in _list(message.get("tool_calls")):
            function = as_dict(as_dict(tc).get("function"))
            name = str(function.get("name") or "")
            calls.append(
                NormalizedToolCall(
                    id=str(as_dict(tc).get("id") or ids.for_call(name)),
                    name=name,
                    input=parse_arguments(function.get("arguments")),
                )
            )
        return calls

    for item in _list(response.get("output")):
        item = as_dict(item)
        if item.get("type") != "function_call":
            continue
        name = str(item.get("name") or "")
        calls.append(
            NormalizedToolCall(
                id=str(item.get("call_id") or item.get("id") or ids.for_call(name)),
                name=name,
                input=parse_arguments(item.get("arguments")),
            )
        )
    return calls


def _google_calls(response: dict[str, Any], ids: CallIds) -> list[NormalizedToolCall]:
    content = as_dict(_first(response.get("candidates")).get("content"))
    calls = []
    for part in _list(content.get("parts")):
        call = as_dict(as_dict(part).get("functionCall"))
        if not call:
            continue
        name = str(call.get("name") or "")
        calls.append(
            NormalizedToolCall(
                id=str(call.get("id") or ids.for_call(name)),
                name=name,
                input=parse_arguments(call.get("args")),
            )
        )
    return calls


_EXTRACTORS = {
    "anthropic": _anthropic_calls,
    "openai": _openai_calls,
    "google": _google_calls,
}


def extract_tool_calls(response: Any, provider: str) -> ToolCallExtractionResult:
    """Normalize the tool invocations in a *provider* response body.

    Raises:
        UnsupportedProviderError: If no codec handles *provider*.
    """
    tag = normalize_provider(provider)
    if not isinstance(response, dict):
        logger.debug("Ignoring non-object %s response", tag)
        return ToolCallExtractionResult()
    return ToolCallExtractionResult(all_tools=_EXTRACTORS[tag](response, CallIds()))


def find_tool_call(tools: list[NormalizedToolCall], name: str) -> NormalizedToolCall | None:
    """Return the first call to the tool named *name*, if any."""
    return next((t for t in tools if t.name == name), None)


def has_non_prefixed_tools(tools: list[NormalizedToolCall], prefix: str) -> bool:
    """Whether any call targets a tool whose name lacks *prefix*."""
    return any(not t.name.startswith(prefix) for t in tools)
