"""CLI: narrate state show|reset"""

import click
from rich.console import Console

from event_assistant.errors import PersistenceError
from event_assistant.store import FlagStore

console = Console()


def _store() -> FlagStore:
    from event_assistant.cli.main import _load_config
    return FlagStore(_load_config().state_file)


@click.group()
def state():
    """Onboarding state."""


@state.command("show")
def state_show():
    """Show whether the welcome greeting has been seen."""
    store = _store()
    try:
        seen = store.read()
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    label = "[green]seen[/green]" if seen else "[yellow]not seen[/yellow]"
    console.print(f"Welcome: {label} [dim]({store.path})[/dim]")


@state.command("reset")
def state_reset():
    """Clear the flag so the greeting plays again."""
    store = _store()
    try:
        store.reset()
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    console.print("[green]Onboarding flag cleared.[/green]")
