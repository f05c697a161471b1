"""Codec dispatch and cross-provider translation.

Entry points take a provider tag (``openai``, ``anthropic``, ``google`` and
the aliases ``gemini`` / ``vertex_ai``) and pick the codec; for OpenAI they
also pick between the Chat Completions and Responses shapes.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from llm_bridge.config import BridgeSettings
from llm_bridge.core.interface.detector import is_stateful_turn_shape, shape_from_url
from llm_bridge.core.interface.models import PROVIDERS, Provider, UniversalBody
from llm_bridge.core.interface.reconstruction import (
    OriginalDataSummary,
    can_reconstruct_exactly,
    original_data_summary,
    reconstruction_quality,
)
from llm_bridge.core.interface.transpiler import Codec
from llm_bridge.core.interface.transpilers import (
    AnthropicCodec,
    GeminiCodec,
    OpenAIChatCodec,
    OpenAIResponsesCodec,
)
from llm_bridge.errors import UnsupportedProviderError
from llm_bridge.utils.telemetry import (
    ATTR_MESSAGE_COUNT,
    ATTR_MODEL,
    ATTR_PERFECT_RECONSTRUCTION,
    ATTR_PROVIDER,
    ATTR_SHAPE,
    ATTR_SOURCE_PROVIDER,
    ATTR_TARGET_PROVIDER,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

PROVIDER_ALIASES = {"gemini": "google", "vertex_ai": "google"}

# provider_params keys only the Responses shape understands
_RESPONSES_ONLY_PARAMS = frozenset(
    {"previous_response_id", "include", "text", "truncation", "background", "max_tool_calls"}
)


class ReconstructionInfo(BaseModel):
    """A rebuilt payload plus how faithfully it was rebuilt."""

    result: dict[str, Any]
    reconstruction_quality: int
    used_original_data: bool
    summary: OriginalDataSummary


def normalize_provider(provider: object) -> Provider:
    """Resolve a provider tag or alias.

    Raises:
        UnsupportedProviderError: If no codec handles *provider*.
    """
    if isinstance(provider, str):
        tag = provider.strip().lower()
        tag = PROVIDER_ALIASES.get(tag, tag)
        if tag in PROVIDERS:
            return tag  # type: ignore[return-value]
    raise UnsupportedProviderError(provider)


def get_codec(
    provider: str, shape: str | None = None, settings: BridgeSettings | None = None
) -> Codec:
    """Return the codec for *provider*; *shape* selects the OpenAI variant."""
    tag = normalize_provider(provider)
    if tag == "anthropic":
        return AnthropicCodec(settings)
    if tag == "google":
        return GeminiCodec(settings)
    if shape == "responses":
        return OpenAIResponsesCodec(settings)
    return OpenAIChatCodec(settings)


def _inbound_shape(tag: Provider, body: Any, target_url: str | None) -> str | None:
    if tag != "openai":
        return None
    return "responses" if is_stateful_turn_shape(target_url, body) else "chat"


def _outbound_shape(tag: Provider, body: UniversalBody, target_url: str | None) -> str | None:
    if tag != "openai":
        return None
    shape = shape_from_url(target_url)
    if shape is not None:
        return shape
    if body.original is not None and body.original.provider == "openai" and body.original.shape:
        return body.original.shape
    if any(key in body.provider_params for key in _RESPONSES_ONLY_PARAMS):
        return "responses"
    return "chat"


def to_universal(
    provider: str,
    body: Any,
    target_url: str | None = None,
    settings: BridgeSettings | None = None,
) -> UniversalBody:
    """Parse a *provider* request payload into a universal body.

    Never raises for malformed payloads; an unknown *provider* raises
    :class:`~llm_bridge.errors.UnsupportedProviderError`.
    """
    tag = normalize_provider(provider)
    shape = _inbound_shape(tag, body, target_url)
    with _tracer.start_as_current_span("bridge.to_universal") as span:
        span.set_attribute(ATTR_PROVIDER, tag)
        if shape:
            span.set_attribute(ATTR_SHAPE, shape)
        universal = get_codec(tag, shape, settings).to_universal(body)
        span.set_attribute(ATTR_MODEL, universal.model)
        span.set_attribute(ATTR_MESSAGE_COUNT, len(universal.messages))
    logger.debug(
        "Parsed %s%s payload with %d messages",
        tag,
        f"/{shape}" if shape else "",
        len(universal.messages),
    )
    return universal


def from_universal(
    provider: str,
    body: UniversalBody,
    target_url: str | None = None,
    settings: BridgeSettings | None = None,
) -> dict[str, Any]:
    """Build a *provider* request payload from a universal body.

    Raises:
        UnsupportedProviderError: If no codec handles *provider*.
        InvalidOriginalError: Under the ``strict`` policy, when a stored
            ``_original`` fragment does not fit the target shape.
    """
    tag = normalize_provider(provider)
    shape = _outbound_shape(tag, body, target_url)
    codec = get_codec(tag, shape, settings)
    with _tracer.start_as_current_span("bridge.from_universal") as span:
        span.set_attribute(ATTR_PROVIDER, tag)
        span.set_attribute(ATTR_SHAPE, codec.shape)
        span.set_attribute(ATTR_MODEL, body.model)
        span.set_attribute(ATTR_MESSAGE_COUNT, len(body.messages))
        span.set_attribute(
            ATTR_PERFECT_RECONSTRUCTION, can_reconstruct_exactly(body, tag, codec.shape)
        )
        return codec.from_universal(body)


def from_universal_with_info(
    provider: str,
    body: UniversalBody,
    target_url: str | None = None,
    settings: BridgeSettings | None = None,
) -> ReconstructionInfo:
    """Like :func:`from_universal`, reporting reconstruction fidelity."""
    tag = normalize_provider(provider)
    shape = _outbound_shape(tag, body, target_url)
    return ReconstructionInfo(
        result=from_universal(tag, body, target_url, settings),
        reconstruction_quality=reconstruction_quality(body, tag, shape),
        used_original_data=can_reconstruct_exactly(body, tag, shape),
        summary=original_data_summary(body),
    )


def translate(
    from_provider: str,
    to_provider: str,
    body: Any,
    *,
    source_url: str | None = None,
    target_url: str | None = None,
    settings: BridgeSettings | None = None,
) -> dict[str, Any]:
    """Translate a request payload from one vendor shape to another."""
    source = normalize_provider(from_provider)
    target = normalize_provider(to_provider)
    with _tracer.start_as_current_span("bridge.translate") as span:
        span.set_attribute(ATTR_SOURCE_PROVIDER, source)
        span.set_attribute(ATTR_TARGET_PROVIDER, target)
        universal = to_universal(source, body, source_url, settings)
        relabelled = universal.model_copy(update={"provider": target})
        return from_universal(target, relabelled, target_url, settings)
