"""Universal body, codecs and cross-provider translation."""

from llm_bridge.core.interface.detector import detect_provider, is_stateful_turn_shape
from llm_bridge.core.interface.models import (
    AudioContent,
    ContentPart,
    DocumentContent,
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
    UniversalTool,
    UnknownContent,
    VideoContent,
)
from llm_bridge.core.interface.reconstruction import (
    can_reconstruct_exactly,
    has_been_modified,
    original_data_summary,
    reconstruction_quality,
)
from llm_bridge.core.interface.registry import (
    from_universal,
    from_universal_with_info,
    get_codec,
    normalize_provider,
    to_universal,
    translate,
)
from llm_bridge.core.interface.transpiler import Codec

__all__ = [
    "AudioContent",
    "Codec",
    "ContentPart",
    "DocumentContent",
    "ImageContent",
    "MediaSource",
    "NamedToolChoice",
    "OriginalPayload",
    "SystemPrompt",
    "TextContent",
    "ToolCall",
    "ToolCallContent",
    "ToolResult",
    "ToolResultContent",
    "UniversalBody",
    "UniversalMessage",
    "UniversalTool",
    "UnknownContent",
    "VideoContent",
    "can_reconstruct_exactly",
    "detect_provider",
    "from_universal",
    "from_universal_with_info",
    "get_codec",
    "has_been_modified",
    "is_stateful_turn_shape",
    "normalize_provider",
    "original_data_summary",
    "reconstruction_quality",
    "to_universal",
    "translate",
]
