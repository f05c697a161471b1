"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from llm_bridge.cli_commands.detect import detect
    from llm_bridge.cli_commands.inspect import inspect_cmd
    from llm_bridge.cli_commands.translate import translate_cmd

    cli.add_command(detect)
    cli.add_command(translate_cmd)
    cli.add_command(inspect_cmd)
