"""``llm-bridge inspect``: show the universal form of a request payload."""

from __future__ import annotations

import sys

import click

from llm_bridge.cli_commands._output import (
    console,
    load_payload,
    print_reconstruction,
    print_universal,
)
from llm_bridge.config import BridgeSettings
from llm_bridge.core.interface.reconstruction import (
    can_reconstruct_exactly,
    original_data_summary,
    reconstruction_quality,
)
from llm_bridge.core.interface.registry import to_universal
from llm_bridge.errors import BridgeError


@click.command("inspect")
@click.argument("payload_file", type=click.Path(exists=True))
@click.option("--provider", required=True, help="Provider whose format the payload uses.")
@click.option("--target-url", default=None, help="URL the payload was sent to.")
@click.option("--json", "as_json", is_flag=True, help="Output the universal body as JSON.")
@click.pass_obj
def inspect_cmd(
    settings: BridgeSettings,
    payload_file: str,
    provider: str,
    target_url: str | None,
    as_json: bool,
) -> None:
    """Parse PAYLOAD_FILE and show its universal body.

    The reconstruction table reports how much original wire data the parsed
    body keeps for a round trip back to the same provider.
    """
    body = load_payload(payload_file)
    try:
        universal = to_universal(provider, body, target_url, settings)
    except BridgeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if as_json:
        console.print_json(universal.model_dump_json(by_alias=True, exclude_none=True))
        return

    print_universal(universal)
    print_reconstruction(
        original_data_summary(universal),
        reconstruction_quality(universal, universal.provider),
        can_reconstruct_exactly(universal, universal.provider),
    )
