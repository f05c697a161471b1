"""Tool-call extraction and continuation requests."""

from llm_bridge.core.tools.continuation import (
    build_continuation_headers,
    build_continuation_request,
)
from llm_bridge.core.tools.extractor import (
    NormalizedToolCall,
    ToolCallExtractionResult,
    extract_tool_calls,
    find_tool_call,
    has_non_prefixed_tools,
)

__all__ = [
    "NormalizedToolCall",
    "ToolCallExtractionResult",
    "build_continuation_headers",
    "build_continuation_request",
    "extract_tool_calls",
    "find_tool_call",
    "has_non_prefixed_tools",
]
