"""``llm-bridge detect``: name the vendor format of a request."""

from __future__ import annotations

import click

from llm_bridge.cli_commands._output import console, load_payload
from llm_bridge.core.interface.detector import detect_provider, is_stateful_turn_shape


@click.command("detect")
@click.argument("target_url")
@click.argument("payload_file", required=False, type=click.Path(exists=True))
def detect(target_url: str, payload_file: str | None) -> None:
    """Detect the provider for TARGET_URL (and optional PAYLOAD_FILE body)."""
    body = load_payload(payload_file) if payload_file else None
    provider = detect_provider(target_url, body)
    if provider == "openai":
        shape = "responses" if is_stateful_turn_shape(target_url, body) else "chat"
        console.print(f"{provider} ({shape})")
    else:
        console.print(provider)
