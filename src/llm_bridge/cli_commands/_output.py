"""Shared CLI output formatters."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from llm_bridge.core.interface.models import UniversalBody  # noqa: TC001
from llm_bridge.core.interface.reconstruction import OriginalDataSummary  # noqa: TC001

console = Console()


def load_payload(payload_file: str) -> Any:
    """Read a JSON payload file, exiting with a red error on failure."""
    try:
        return json.loads(Path(payload_file).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        console.print(f"[red]Error reading payload:[/red] {exc}")
        sys.exit(1)


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def print_universal(body: UniversalBody) -> None:
    """Pretty-print a universal body as a summary plus a message table."""
    console.print("\n[bold]Universal Body[/bold]")
    console.print(f"  Provider: {body.provider}")
    console.print(f"  Model: {body.model}")
    if body.system_text:
        console.print(f"  System: {_truncate(body.system_text)}")
    console.print(f"  Tools: {len(body.tools or [])}")
    if body.provider_params:
        console.print(f"  Provider params: {', '.join(sorted(body.provider_params))}")

    table = Table(title="Messages")
    table.add_column("#", justify="right")
    table.add_column("Role", style="cyan")
    table.add_column("Parts")
    table.add_column("Text")

    for index, message in enumerate(body.messages):
        kinds = ", ".join(part.type for part in message.content) or "-"
        table.add_row(str(index), message.role, kinds, _truncate(message.text))

    console.print(table)


def print_reconstruction(
    summary: OriginalDataSummary, quality: int, exact: bool
) -> None:
    """Pretty-print how much original wire data a body carries."""
    table = Table(title="Reconstruction")
    table.add_column("Item", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("With original", justify="right")
    table.add_column("%", justify="right")

    for label, preservation in (
        ("messages", summary.messages),
        ("content", summary.content),
        ("tools", summary.tools),
    ):
        table.add_row(
            label,
            str(preservation.total),
            str(preservation.with_original),
            str(preservation.percentage),
        )

    console.print(table)
    console.print(f"  Original provider: {summary.original_provider or '-'}")
    console.print(f"  Quality: {quality}")
    console.print(f"  Exact replay: {'yes' if exact else 'no'}")


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
