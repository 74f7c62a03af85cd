"""
Event assistant CLI — `narrate` command.

Commands:
  narrate play <script.json>     Replay an event timeline with a live view
  narrate state show|reset       Inspect or clear the onboarding flag
  narrate config show|set        Inspect or change configuration
"""

import asyncio
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install event-assistant[cli]")

from event_assistant.config import CONFIG_FILE, AssistantConfig, load_config

console = Console()


def _config_path() -> Path:
    ctx = click.get_current_context()
    return (ctx.find_root().obj or {}).get("config_path", CONFIG_FILE)


def _load_config() -> AssistantConfig:
    return load_config(_config_path())


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=CONFIG_FILE, show_default=True,
)
@click.option("-v", "--verbose", is_flag=True, help="Log engine activity.")
@click.pass_context
def main(ctx, config_path, verbose):
    """Event assistant — narrates map activity as typed-out messages."""
    ctx.obj = {"config_path": config_path}
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# Register subcommands from separate modules
from event_assistant.cli.config import config
from event_assistant.cli.play import play
from event_assistant.cli.state import state

main.add_command(play)
main.add_command(state)
main.add_command(config)


if __name__ == "__main__":
    main()
