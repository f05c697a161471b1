"""Wire-shape codec implementations."""

from llm_bridge.core.interface.transpilers.anthropic import AnthropicCodec
from llm_bridge.core.interface.transpilers.gemini import GeminiCodec
from llm_bridge.core.interface.transpilers.openai import OpenAIChatCodec
from llm_bridge.core.interface.transpilers.openai_responses import OpenAIResponsesCodec

__all__ = ["AnthropicCodec", "GeminiCodec", "OpenAIChatCodec", "OpenAIResponsesCodec"]
