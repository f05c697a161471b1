"""``llm-bridge translate``: convert a request payload to another vendor."""

from __future__ import annotations

import sys

import click

from llm_bridge.cli_commands._output import console, load_payload, print_json
from llm_bridge.config import BridgeSettings
from llm_bridge.core.interface.registry import translate
from llm_bridge.errors import BridgeError


@click.command("translate")
@click.argument("payload_file", type=click.Path(exists=True))
@click.option("--from", "from_provider", required=True, help="Source provider.")
@click.option("--to", "to_provider", required=True, help="Target provider.")
@click.option("--source-url", default=None, help="URL the payload was sent to.")
@click.option("--target-url", default=None, help="URL the result will be sent to.")
@click.pass_obj
def translate_cmd(
    settings: BridgeSettings,
    payload_file: str,
    from_provider: str,
    to_provider: str,
    source_url: str | None,
    target_url: str | None,
) -> None:
    """Translate PAYLOAD_FILE from one provider's format to another's."""
    body = load_payload(payload_file)
    try:
        result = translate(
            from_provider,
            to_provider,
            body,
            source_url=source_url,
            target_url=target_url,
            settings=settings,
        )
    except BridgeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    print_json(result)
