"""CLI: narrate play <script.json>"""

import json

import click
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from event_assistant.assistant import Assistant
from event_assistant.errors import AssistantError
from event_assistant.models.message import AssistantView
from event_assistant.script import TranscriptRecorder, load_script, replay, settle

console = Console()


def _load_config():
    from event_assistant.cli.main import _load_config
    return _load_config()


def _run(coro):
    from event_assistant.cli.main import _run
    return _run(coro)


def _render(view: AssistantView) -> Panel:
    body = Text()
    if view.emoji:
        body.append(f"{view.emoji} ")
    body.append(view.current_text)
    if view.is_typing:
        body.append("▌", style="bold cyan")
    return Panel(
        body,
        title="Assistant",
        border_style="cyan" if view.visible else "dim",
        subtitle=None if view.visible else "hidden",
    )


@click.command("play")
@click.argument("script", type=click.Path(exists=True, dir_okay=False))
@click.option("--speed", default=1.0, type=float, show_default=True, help="Timeline speed multiplier.")
@click.option("--skip-welcome", is_flag=True, help="Do not play the first-run greeting.")
@click.option("--json-output", "--json", is_flag=True, help="Print the transcript as JSON.")
def play(script, speed, skip_welcome, json_output):
    """Replay an event timeline through the assistant."""
    try:
        steps = load_script(script)
    except AssistantError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if speed <= 0:
        console.print("[red]--speed must be positive[/red]")
        raise SystemExit(1)

    cfg = _load_config()

    async def _play():
        assistant = Assistant(cfg)
        recorder = TranscriptRecorder(assistant)
        try:
            if json_output:
                await assistant.start(welcome=not skip_welcome)
                await replay(assistant, steps, speed=speed)
                await settle(assistant)
            else:
                with Live(_render(assistant.view), console=console, refresh_per_second=30) as live:
                    assistant.add_view_listener(lambda view: live.update(_render(view)))
                    await assistant.start(welcome=not skip_welcome)
                    await replay(assistant, steps, speed=speed)
                    await settle(assistant)
        finally:
            recorder.close()
            await assistant.close()
        return recorder.lines

    lines = _run(_play())
    if json_output:
        click.echo(json.dumps([line.model_dump() for line in lines], indent=2, ensure_ascii=False))
    else:
        console.print(f"[dim]{len(steps)} event(s), {len(lines)} message(s)[/dim]")
