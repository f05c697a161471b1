"""Helpers shared by the wire-shape codecs."""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from llm_bridge.config import DEFAULT_SETTINGS, BridgeSettings
from llm_bridge.core.interface.models import (
    ContentPart,
    OriginalPayload,
    Provider,
    SystemPrompt,
    TextContent,
    ToolResultContent,
    UniversalBody,
    UniversalTool,
    UnknownContent,
)
from llm_bridge.core.interface.reconstruction import can_reconstruct_exactly
from llm_bridge.errors import InvalidOriginalError

logger = logging.getLogger(__name__)

# provider_params keys with codec-specific handling, never passed through blindly
RESERVED_PARAMS = frozenset(
    {"builtin_tools", "generationConfig", "disable_parallel_tool_use", "tool_choice"}
)

_DATA_URL = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

Validator = Callable[[Any], str | None]


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Parse tool-call arguments into an object; ``{}`` when that is impossible."""
    if isinstance(raw, dict):
        return raw
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Failed to parse tool arguments: %r", raw)
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


def take_scalars(
    source: dict[str, Any], kinds: dict[str, str], leftovers: dict[str, Any]
) -> dict[str, Any]:
    """Pick typed generation parameters out of *source*.

    *kinds* maps wire key to ``"float"``, ``"int"`` or ``"bool"``. Values of the
    wrong type are moved to *leftovers* unchanged instead of raising.
    """
    values: dict[str, Any] = {}
    for key, kind in kinds.items():
        if key not in source or source[key] is None:
            continue
        value = source[key]
        if kind == "bool":
            ok = isinstance(value, bool)
        elif isinstance(value, bool):
            ok = False
        elif kind == "int":
            ok = isinstance(value, int) or (isinstance(value, float) and value.is_integer())
            if ok:
                value = int(value)
        else:
            ok = isinstance(value, (int, float))
        if ok:
            values[key] = value
        else:
            leftovers[key] = value
    return values


def serialize_arguments(args: dict[str, Any]) -> str:
    return json.dumps(args)


def stringify(value: Any) -> str:
    """Render a tool result as the string some wire formats require."""
    if isinstance(value, str):
        return value
    return json.dumps(value if value is not None else {}, default=str)


def parse_data_url(url: str | None) -> tuple[str | None, str | None]:
    """Split a ``data:<mime>;base64,<data>`` URL into (mime, data)."""
    if not isinstance(url, str) or not url:
        return None, None
    match = _DATA_URL.match(url)
    if not match:
        return None, None
    return match.group(1), match.group(2)


def media_kind(mime_type: str | None) -> str:
    """Map a MIME type to a universal media content type."""
    mime = mime_type.lower() if isinstance(mime_type, str) else ""
    for prefix in ("image", "audio", "video"):
        if mime.startswith(prefix + "/"):
            return prefix
    return "document"


def unknown_content(raw: Any, provider: Provider, shape: str | None = None) -> UnknownContent:
    return UnknownContent(
        text=json.dumps(raw, default=str),
        original=OriginalPayload(provider=provider, raw=raw, shape=shape),
    )


def text_of(raw: Any) -> str:
    """Join the text parts of a string or a list of ``{"text": ...}`` blocks."""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        return " ".join(
            block["text"]
            for block in raw
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        )
    return ""


def merged_system_text(body: UniversalBody) -> str | None:
    """``body.system`` joined with any inline system/developer-role messages."""
    texts: list[str] = []
    if body.system_text:
        texts.append(body.system_text)
    for message in body.messages:
        if message.role in ("system", "developer") and message.text:
            texts.append(message.text)
    return "\n\n".join(texts) if texts else None


def tool_names_by_id(body: UniversalBody) -> dict[str, str]:
    names: dict[str, str] = {}
    for message in body.messages:
        for call in message.all_tool_calls():
            names[call.id] = call.name
    return names


def _meaning(part: ContentPart) -> dict[str, Any]:
    """What a part says on the wire; ids and names are compared, metadata is not."""
    return part.model_dump(
        exclude={"original": True, "tool_call": {"metadata"}, "tool_result": {"metadata"}}
    )


def require_dict_with(*keys: str) -> Validator:
    """Validator accepting a dict that has at least one of *keys*."""

    def check(raw: Any) -> str | None:
        if not isinstance(raw, dict):
            return f"expected an object, got {type(raw).__name__}"
        if keys and not any(key in raw for key in keys):
            return f"expected one of {', '.join(repr(k) for k in keys)}"
        return None

    return check


class CallIds:
    """Deterministic ids for tool calls whose wire format carries none.

    The n-th call to a function and the n-th response from it share an id:
    ``call_<name>`` for the first, ``call_<name>_<n>`` after that.
    """

    def __init__(self) -> None:
        self._calls: dict[str, int] = {}
        self._responses: dict[str, int] = {}

    @staticmethod
    def _format(name: str, n: int) -> str:
        return f"call_{name}" if n == 0 else f"call_{name}_{n}"

    def for_call(self, name: str) -> str:
        n = self._calls.get(name, 0)
        self._calls[name] = n + 1
        return self._format(name, n)

    def for_response(self, name: str) -> str:
        n = self._responses.get(name, 0)
        self._responses[name] = n + 1
        return self._format(name, n)


class BaseCodec:
    """Settings, exact-replay check and ``_original`` resolution."""

    provider: Provider
    shape: str
    # Top-level keys this shape writes itself; used across vendor boundaries
    known_params: frozenset[str] = frozenset()

    def __init__(self, settings: BridgeSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    # -- intake -------------------------------------------------------------

    def _orig(self, raw: Any) -> OriginalPayload:
        return OriginalPayload(provider=self.provider, raw=raw, shape=self.shape)

    def _stamp(self, body: UniversalBody, raw: Any) -> UniversalBody:
        body.original = OriginalPayload(provider=self.provider, raw=raw, shape=self.shape)
        body.original.fingerprint = body.fingerprint()
        return body

    def _model_of(self, raw: dict[str, Any]) -> str:
        model = raw.get("model")
        return str(model) if model else self.settings.unknown_model

    # -- output -------------------------------------------------------------

    def _exact(self, body: UniversalBody) -> dict[str, Any] | None:
        if can_reconstruct_exactly(body, self.provider, self.shape) and body.original:
            logger.debug("Replaying original %s/%s payload", self.provider, self.shape)
            return copy.deepcopy(body.original.raw)
        return None

    def _same_origin(self, body: UniversalBody) -> bool:
        original = body.original
        if original is None:
            return True
        if original.provider != self.provider:
            return False
        return original.shape is None or original.shape == self.shape

    def _fragment(
        self,
        original: OriginalPayload | None,
        field: str,
        validator: Validator | None = None,
    ) -> Any:
        """Return the raw fragment if it belongs to this vendor and fits.

        Returns :data:`MISSING` when there is no usable fragment. Under the
        ``strict`` policy an unfit fragment raises instead.
        """
        if original is None or original.provider != self.provider:
            return MISSING
        if original.shape is not None and original.shape != self.shape:
            return MISSING
        problem = validator(original.raw) if validator else None
        if problem is None:
            return original.raw
        if self.settings.original_policy == "strict":
            raise InvalidOriginalError(f"{field}._original", self.provider, problem)
        logger.debug("Ignoring %s._original for %s: %s", field, self.provider, problem)
        return MISSING

    def _passthrough(self, body: UniversalBody) -> dict[str, Any]:
        """provider_params this shape may write back verbatim."""
        same = self._same_origin(body)
        return {
            key: copy.deepcopy(value)
            for key, value in body.provider_params.items()
            if key not in RESERVED_PARAMS
            and value is not None
            and (same or key in self.known_params)
        }

    def _system_prompt_fragment(self, system: Any, validator: Validator | None = None) -> Any:
        if isinstance(system, SystemPrompt):
            return self._fragment(system.original, "system", validator)
        return MISSING

    def _is_plain_text(self, part: Any) -> bool:
        """A text part with no block fragment of this vendor to preserve."""
        if type(part) is not TextContent:
            return False
        original = part.original
        return (
            original is None
            or original.provider != self.provider
            or not isinstance(original.raw, dict)
        )

    def _reparse(self, raw: Any, part: ContentPart) -> ContentPart | None:
        """Parse a stored fragment of this codec back into a content part."""
        raise NotImplementedError

    def _reusable(self, raw: Any, part: ContentPart) -> bool:
        """Whether a stored fragment still says what the (possibly edited) part says."""
        if isinstance(part, UnknownContent):
            reparsed: ContentPart | None = unknown_content(raw, self.provider, self.shape)
        else:
            reparsed = self._reparse(raw, part)
        if reparsed is None or type(reparsed) is not type(part):
            return False
        # names some wire formats leave to the matching call
        if isinstance(reparsed, ToolResultContent) and not reparsed.tool_result.name:
            reparsed.tool_result.name = part.tool_result.name
        return _meaning(reparsed) == _meaning(part)

    @staticmethod
    def _same_tool(reparsed: list[UniversalTool] | None, tool: UniversalTool) -> bool:
        if not reparsed:
            return False
        return reparsed[0].model_dump(exclude={"original"}) == tool.model_dump(
            exclude={"original"}
        )

    def _guarded(self, parse: Callable[..., ContentPart], raw: Any, *args: Any) -> ContentPart:
        """Run a part parser; a part the model rejects is kept as unknown content."""
        try:
            return parse(raw, *args)
        except ValidationError as exc:
            logger.debug("Keeping unparsable %s part as unknown content: %s", self.provider, exc)
            return unknown_content(raw, self.provider, self.shape)
