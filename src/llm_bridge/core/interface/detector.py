"""Provider detection: pick a codec from a target URL and payload shape.

Resolution order: hostname, then payload structure, then the OpenAI shape
(used by OpenAI, Azure, Together, Groq, Fireworks, Mistral, OpenRouter and
most other OpenAI-compatible hosts). Detection never raises.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

from llm_bridge.core.interface.models import Provider

_ANTHROPIC_HOSTS = ("anthropic.com", "claude.ai")
_GOOGLE_HOSTS = (
    "generativelanguage.googleapis.com",
    "aiplatform.googleapis.com",
    "googleapis.com",
)


def _split(target_url: str | None) -> tuple[str, str]:
    """Return (hostname, path), both lowercased; empty on unparsable input."""
    if not target_url or not isinstance(target_url, str):
        return "", ""
    try:
        parts = urlsplit(target_url)
        hostname = parts.hostname or ""
    except ValueError:
        return "", ""
    return hostname.lower(), parts.path.lower()


def detect_provider(target_url: str | None, body: Any = None) -> Provider:
    """Return the provider whose wire format *body* (sent to *target_url*) uses."""
    hostname, path = _split(target_url)

    if any(host in hostname for host in _ANTHROPIC_HOSTS):
        return "anthropic"

    if any(host in hostname for host in _GOOGLE_HOSTS):
        # Vertex AI also serves Claude models in the Anthropic shape
        if "/publishers/anthropic/" in path:
            return "anthropic"
        return "google"

    if isinstance(body, dict):
        system = body.get("system")
        if (
            body.get("anthropic_version")
            or body.get("max_tokens_to_sample")
            or (
                isinstance(system, (str, list))
                and bool(body.get("messages"))
                and not body.get("contents")
            )
        ):
            return "anthropic"

        tools = body.get("tools")
        if (
            body.get("contents")
            or body.get("systemInstruction")
            or body.get("generationConfig")
            or (
                isinstance(tools, list)
                and tools
                and isinstance(tools[0], dict)
                and tools[0].get("functionDeclarations")
            )
        ):
            return "google"

    return "openai"


def is_stateful_turn_shape(target_url: str | None, body: Any = None) -> bool:
    """Whether an OpenAI request uses the Responses API rather than Chat Completions."""
    _, path = _split(target_url)
    if "/responses" in path:
        return True

    if isinstance(body, dict):
        if ("input" in body or "instructions" in body) and not body.get("messages"):
            return True
        if "previous_response_id" in body or "include" in body:
            return True

    return False


def shape_from_url(target_url: str | None) -> str | None:
    """The OpenAI wire shape named by the URL path, or None if the path is silent."""
    _, path = _split(target_url)
    if "/responses" in path:
        return "responses"
    if "/chat/completions" in path:
        return "chat"
    return None
