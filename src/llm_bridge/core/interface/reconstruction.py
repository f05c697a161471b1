"""Perfect reconstruction: decide when a stored original can be replayed.

A body parsed by a codec keeps the complete raw payload. Returning that raw
payload is only valid when the target is the same vendor (and wire shape) and
nothing was edited after parsing; otherwise codecs rebuild, and
:func:`reconstruction_quality` estimates how much original structure the
rebuild can reuse.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from llm_bridge.core.interface.models import (
    META_CONTEXT_INJECTION,
    META_ORIGINAL_INDEX,
    META_PROVIDER,
    SystemPrompt,
    UniversalBody,
)

_BASE_SCORE = 80
_MAX_INEXACT_SCORE = 99


class Preservation(BaseModel):
    total: int = 0
    with_original: int = 0
    percentage: int = 0


class OriginalDataSummary(BaseModel):
    """What original wire data a body still carries."""

    has_top_level_original: bool
    original_provider: str | None = None
    messages: Preservation
    content: Preservation
    tools: Preservation


def _original_message_count(body: UniversalBody) -> int | None:
    original = body.original
    if original is None or not isinstance(original.raw, dict):
        return None
    raw: dict[str, Any] = original.raw

    if original.provider == "google":
        contents = raw.get("contents")
        return len(contents) if isinstance(contents, list) else 0

    if original.provider == "openai" and original.shape == "responses":
        items = raw.get("input")
        if isinstance(items, str):
            return 1
        return len(items) if isinstance(items, list) else 0

    messages = raw.get("messages")
    if not isinstance(messages, list):
        return 0
    if original.provider == "openai":
        # system messages live in body.system, not body.messages
        return sum(
            1 for m in messages if not (isinstance(m, dict) and m.get("role") == "system")
        )
    return len(messages)


def has_been_modified(body: UniversalBody) -> bool:
    """Whether the body changed after parsing (or was never parsed)."""
    original = body.original
    if original is None or original.raw is None:
        return True

    if _original_message_count(body) != len(body.messages):
        return True

    for message in body.messages:
        if message.metadata.get(META_CONTEXT_INJECTION):
            return True
        if message.metadata.get(META_ORIGINAL_INDEX) is None:
            return True

    if original.fingerprint is not None and original.fingerprint != body.fingerprint():
        return True

    return False


def can_reconstruct_exactly(
    body: UniversalBody, target_provider: str, shape: str | None = None
) -> bool:
    """True iff the stored original is from *target_provider* and still valid."""
    original = body.original
    if original is None or original.provider != target_provider:
        return False
    if shape is not None and original.shape is not None and original.shape != shape:
        return False
    return not has_been_modified(body)


def reconstruction_quality(
    body: UniversalBody, target_provider: str, shape: str | None = None
) -> int:
    """Score 0-100 of how faithfully *body* can be rebuilt for the target."""
    if can_reconstruct_exactly(body, target_provider, shape):
        return 100

    total = 0
    preserved = 0

    for message in body.messages:
        total += 1
        if message.metadata.get(META_PROVIDER) == target_provider:
            preserved += 1
        for part in message.content:
            total += 1
            if part.original is not None and part.original.provider == target_provider:
                preserved += 1

    for tool in body.tools or []:
        total += 1
        if tool.original is not None and tool.original.provider == target_provider:
            preserved += 1

    if isinstance(body.system, SystemPrompt):
        total += 1
        if body.system.original is not None and body.system.original.provider == target_provider:
            preserved += 1

    ratio = preserved / total if total else 0.0
    return min(int(_BASE_SCORE + ratio * 20), _MAX_INEXACT_SCORE)


def _preservation(total: int, with_original: int) -> Preservation:
    percentage = round(with_original / total * 100) if total else 0
    return Preservation(total=total, with_original=with_original, percentage=percentage)


def original_data_summary(body: UniversalBody) -> OriginalDataSummary:
    messages_with_original = sum(
        1 for m in body.messages if m.metadata.get(META_ORIGINAL_INDEX) is not None
    )
    parts = [part for m in body.messages for part in m.content]
    tools = body.tools or []
    return OriginalDataSummary(
        has_top_level_original=body.original is not None,
        original_provider=body.original.provider if body.original else None,
        messages=_preservation(len(body.messages), messages_with_original),
        content=_preservation(len(parts), sum(1 for p in parts if p.original is not None)),
        tools=_preservation(len(tools), sum(1 for t in tools if t.original is not None)),
    )
