"""Token counting: protocol, implementations and request usage estimates.

Provides accurate counting via tiktoken (for OpenAI-family models) and a
character-based estimator as a universal fallback. Media parts, tool calls
and the output budget are estimated with fixed allowances.
"""

from __future__ import annotations

import json
import math
from typing import Protocol, runtime_checkable

import tiktoken
from pydantic import BaseModel

from llm_bridge.config import DEFAULT_SETTINGS, BridgeSettings
from llm_bridge.core.interface.models import (
    MEDIA_TYPES,
    TextContent,
    ToolCallContent,
    ToolResultContent,
    UniversalBody,
)
from llm_bridge.core.interface.transpilers._common import stringify


@runtime_checkable
class TokenCounter(Protocol):
    """Protocol for counting tokens in a piece of text."""

    def count_text(self, text: str) -> int:
        """Return the token count for *text*."""
        ...


# ---------------------------------------------------------------------------
# Tiktoken-based counter (accurate for OpenAI models)
# ---------------------------------------------------------------------------


class TiktokenCounter:
    """Token counter using tiktoken encodings.

    Falls back to ``cl100k_base`` when the model's encoding is unknown.
    """

    def __init__(self, model: str) -> None:
        try:
            self._enc = tiktoken.encoding_for_model(model)
        except KeyError:
            self._enc = tiktoken.get_encoding("cl100k_base")

    def count_text(self, text: str) -> int:
        return len(self._enc.encode(text))


# ---------------------------------------------------------------------------
# Estimating counter (universal fallback)
# ---------------------------------------------------------------------------

_CHARS_PER_TOKEN = 4


class EstimatingCounter:
    """Fallback token counter that estimates ~4 characters per token."""

    def count_text(self, text: str) -> int:
        return math.ceil(len(text) / _CHARS_PER_TOKEN)


# ---------------------------------------------------------------------------
# Request estimates
# ---------------------------------------------------------------------------

MEDIA_TOKENS = {"image": 85, "audio": 100, "video": 200, "document": 500}
TOOL_CALL_TOKENS = 50


class UsageEstimate(BaseModel):
    input_tokens: int
    estimated_output_tokens: int
    multimodal_content_count: int = 0
    tool_calls_count: int = 0


def count_universal_tokens(
    body: UniversalBody,
    counter: TokenCounter | None = None,
    settings: BridgeSettings | None = None,
) -> UsageEstimate:
    """Estimate the token usage of a universal request.

    Text (system prompt, text parts, tool results and tool definitions) goes
    through *counter*; media parts and tool calls add fixed allowances. The
    output estimate is ``max_tokens`` or the configured default.
    """
    counter = counter or EstimatingCounter()
    settings = settings or DEFAULT_SETTINGS

    input_tokens = 0
    media = 0
    calls = 0

    if body.system_text:
        input_tokens += counter.count_text(body.system_text)

    for message in body.messages:
        for part in message.content:
            if isinstance(part, TextContent):
                input_tokens += counter.count_text(part.text)
            elif isinstance(part, ToolResultContent):
                input_tokens += counter.count_text(stringify(part.tool_result.result))
            elif isinstance(part, ToolCallContent):
                calls += 1
                input_tokens += TOOL_CALL_TOKENS
            elif part.type in MEDIA_TYPES:
                media += 1
                input_tokens += MEDIA_TOKENS[part.type]
        if message.tool_calls:
            calls += len(message.tool_calls)
            input_tokens += TOOL_CALL_TOKENS * len(message.tool_calls)

    for tool in body.tools or []:
        definition = tool.model_dump(mode="json", exclude={"original"})
        input_tokens += counter.count_text(json.dumps(definition))

    return UsageEstimate(
        input_tokens=input_tokens,
        estimated_output_tokens=body.max_tokens or settings.default_output_tokens,
        multimodal_content_count=media,
        tool_calls_count=calls,
    )
