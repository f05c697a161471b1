"""Build the follow-up request that hands a tool's result back to the model.

A continuation appends two turns to the prior conversation: the assistant
turn that issued the tool call and the turn carrying its result. Vendors
disagree on the result encoding: Anthropic and OpenAI want a string,
Gemini wants a structured object.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from llm_bridge.config import DEFAULT_SETTINGS, BridgeSettings
from llm_bridge.core.interface.detector import is_stateful_turn_shape
from llm_bridge.core.interface.models import (
    META_NAME,
    META_PROVIDER,
    META_TOOL_CALL_ID,
    ToolCall,
    ToolCallContent,
    ToolResult,
    ToolResultContent,
    UniversalBody,
    UniversalMessage,
)
from llm_bridge.core.interface.registry import (
    PROVIDER_ALIASES,
    from_universal,
    normalize_provider,
    to_universal,
)
from llm_bridge.core.interface.transpilers._common import (
    as_dict,
    parse_arguments,
    serialize_arguments,
    stringify,
)
from llm_bridge.core.tools.extractor import NormalizedToolCall

logger = logging.getLogger(__name__)

_BASE_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}

# provider -> (incoming header name, outgoing header name)
_AUTH_HEADERS = {
    "openai": (("authorization", "Authorization"), ("openai-organization", "OpenAI-Organization")),
    "anthropic": (("x-api-key", "x-api-key"), ("anthropic-version", "anthropic-version")),
    "google": (("x-goog-api-key", "x-goog-api-key"), ("authorization", "Authorization")),
}
_FALLBACK_AUTH = (("authorization", "Authorization"),)


def build_continuation_headers(provider: str, headers: dict[str, str]) -> dict[str, str]:
    """Keep only content headers and the vendor's auth headers.

    Hop-by-hop and request-specific headers (``host``, ``content-length``)
    from the original request must not be forwarded.
    """
    lowered = {key.lower(): value for key, value in headers.items()}
    tag = PROVIDER_ALIASES.get(provider, provider)
    result = dict(_BASE_HEADERS)
    for incoming, outgoing in _AUTH_HEADERS.get(tag, _FALLBACK_AUTH):
        if lowered.get(incoming):
            result[outgoing] = lowered[incoming]
    return result


def build_continuation_request(
    provider: str,
    original_body: dict[str, Any],
    original_universal: UniversalBody | None,
    tool_call: NormalizedToolCall,
    tool_result: Any,
    response: Any = None,
    settings: BridgeSettings | None = None,
) -> dict[str, Any]:
    """Return the next request for *provider* carrying *tool_result*.

    Args:
        provider: Vendor tag of the conversation.
        original_body: The raw request that produced *response*.
        original_universal: *original_body* already parsed; parsed here if None.
        tool_call: The call being answered.
        tool_result: The tool's output (any JSON-compatible value).
        response: The raw vendor response; Anthropic continuations replay
            every ``tool_use`` block it contains.
        settings: Codec settings.

    Raises:
        UnsupportedProviderError: If no codec handles *provider*.
    """
    tag = normalize_provider(provider)
    original_body = as_dict(original_body)
    if tag == "openai":
        if is_stateful_turn_shape(None, original_body):
            return _openai_responses_continuation(original_body, tool_call, tool_result)
        return _openai_chat_continuation(original_body, tool_call, tool_result)

    universal = original_universal or to_universal(tag, original_body, settings=settings)

    if tag == "anthropic":
        calls = _anthropic_response_calls(response) or [_to_call(tool_call)]
        result_value: Any = stringify(tool_result)
    else:
        calls = [_to_call(tool_call)]
        result_value = tool_result

    assistant = UniversalMessage(
        id=f"assistant_tool_{tool_call.id}",
        role="assistant",
        content=[ToolCallContent(tool_call=call) for call in calls],
        metadata={META_PROVIDER: tag},
    )
    result_message = UniversalMessage(
        id=f"tool_result_{tool_call.id}",
        role="user",
        content=[
            ToolResultContent(
                tool_result=ToolResult(
                    tool_call_id=tool_call.id, name=tool_call.name, result=result_value
                )
            )
        ],
        metadata={META_PROVIDER: tag, META_TOOL_CALL_ID: tool_call.id, META_NAME: tool_call.name},
    )

    model = universal.model
    if model == _unknown_model(settings) and original_body.get("model"):
        model = str(original_body["model"])
    continued = universal.model_copy(
        update={
            "provider": tag,
            "messages": [*universal.messages, assistant, result_message],
            "model": model,
        }
    )
    logger.debug("Built %s continuation for tool %s", tag, tool_call.name)
    return from_universal(tag, continued, settings=settings)


def _unknown_model(settings: BridgeSettings | None) -> str:
    return (settings or DEFAULT_SETTINGS).unknown_model


def _to_call(tool_call: NormalizedToolCall) -> ToolCall:
    return ToolCall(id=tool_call.id, name=tool_call.name, arguments=tool_call.input)


def _anthropic_response_calls(response: Any) -> list[ToolCall]:
    calls = []
    for block in as_dict(response).get("content") or []:
        block = as_dict(block)
        if block.get("type") == "tool_use":
            calls.append(
                ToolCall(
                    id=str(block.get("id") or ""),
                    name=str(block.get("name") or ""),
                    arguments=parse_arguments(block.get("input")),
                )
            )
    return calls


def _openai_chat_continuation(
    original_body: dict[str, Any], tool_call: NormalizedToolCall, tool_result: Any
) -> dict[str, Any]:
    body = copy.deepcopy(original_body)
    messages = body.get("messages")
    messages = list(messages) if isinstance(messages, list) else []
    messages.append(
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": tool_call.id,
                    "type": "function",
                    "function": {
                        "name": tool_call.name,
                        "arguments": serialize_arguments(tool_call.input),
                    },
                }
            ],
        }
    )
    messages.append({"role": "tool", "content": stringify(tool_result), "tool_call_id": tool_call.id})
    body["messages"] = messages

    cleaned = {key: value for key, value in body.items() if value is not None}
    # newer models only accept max_completion_tokens
    if cleaned.get("max_completion_tokens") is None and cleaned.get("max_tokens") is not None:
        cleaned["max_completion_tokens"] = cleaned.pop("max_tokens")
    return cleaned


def _openai_responses_continuation(
    original_body: dict[str, Any], tool_call: NormalizedToolCall, tool_result: Any
) -> dict[str, Any]:
    body = copy.deepcopy(original_body)
    items = body.get("input")
    if isinstance(items, str):
        items = [{"role": "user", "content": items}]
    elif not isinstance(items, list):
        items = []
    items.extend(
        [
            {
                "type": "function_call",
                "call_id": tool_call.id,
                "name": tool_call.name,
                "arguments": serialize_arguments(tool_call.input),
            },
            {
                "type": "function_call_output",
                "call_id": tool_call.id,
                "output": stringify(tool_result),
            },
        ]
    )
    body["input"] = items
    return {key: value for key, value in body.items() if value is not None}
