"""CLI: narrate config show|set"""

import json

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from event_assistant.config import AssistantConfig, save_config

console = Console()


def _config_path():
    from event_assistant.cli.main import _config_path
    return _config_path()


def _load_config() -> AssistantConfig:
    from event_assistant.cli.main import _load_config
    return _load_config()


@click.group()
def config():
    """Configuration."""


@config.command("show")
@click.option("--json-output", "--json", is_flag=True)
def config_show(json_output):
    """Show the effective configuration."""
    cfg = _load_config()
    if json_output:
        click.echo(cfg.model_dump_json(indent=2))
        return
    table = Table(title=str(_config_path()))
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in cfg.model_dump().items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key, value):
    """Set KEY to VALUE. user_location takes "lon,lat"."""
    if key not in AssistantConfig.model_fields:
        console.print(f"[red]Unknown key: {key}[/red]")
        raise SystemExit(1)

    parsed = value
    if key == "user_location":
        try:
            parsed = [float(part) for part in value.split(",")]
        except ValueError:
            console.print("[red]user_location must be \"lon,lat\"[/red]")
            raise SystemExit(1)

    path = _config_path()
    try:
        current = json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        current = {}
    if not isinstance(current, dict):
        current = {}
    try:
        cfg = AssistantConfig.model_validate({**current, key: parsed})
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}: {e.errors(include_url=False)[0]['msg']}[/red]")
        raise SystemExit(1)
    save_config(cfg, path)
    console.print(f"[green]{key} = {getattr(cfg, key)}[/green]")
