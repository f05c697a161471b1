"""Codec protocol: converts between the universal body and one wire shape.

Each wire shape (OpenAI chat, OpenAI Responses, Anthropic, Gemini) has a
concrete codec implementing bidirectional conversion: vendor request payload
-> UniversalBody and UniversalBody -> vendor request payload.
"""

from typing import Any, Protocol

from llm_bridge.core.interface.models import Provider, UniversalBody


class Codec(Protocol):
    """Protocol for wire-shape codecs."""

    provider: Provider
    shape: str

    def to_universal(self, raw: Any) -> UniversalBody:
        """Parse a vendor request payload.

        Never raises for malformed input: missing or non-list message
        collections degrade to an empty-message body.
        """
        ...

    def from_universal(self, body: UniversalBody) -> dict[str, Any]:
        """Build a vendor request payload.

        Returns the stored original unchanged when the body was parsed from
        this shape and not modified since; otherwise rebuilds field by field.
        """
        ...
