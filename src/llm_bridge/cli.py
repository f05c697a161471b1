"""llm-bridge CLI entrypoint."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from llm_bridge import __version__
from llm_bridge.config import DEFAULT_SETTINGS, SettingsLoader
from llm_bridge.errors import ConfigurationError


@click.group()
@click.version_option(version=__version__, prog_name="llm-bridge")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML file with bridge settings.",
)
@click.pass_context
def main(ctx: click.Context, config_file: str | None) -> None:
    """llm-bridge: translate LLM request payloads between vendors."""
    settings = DEFAULT_SETTINGS
    if config_file:
        try:
            settings = SettingsLoader(Path(config_file)).load()
        except ConfigurationError as exc:
            from llm_bridge.cli_commands._output import console

            console.print(f"[red]Error loading config:[/red] {exc}")
            sys.exit(1)
    ctx.obj = settings


# Register subcommands
from llm_bridge.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
