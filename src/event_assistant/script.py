"""
Event scripts — timed event timelines replayed through an Assistant.

A script is a JSON list (or {"events": [...]}) of steps:

    {"at": 0.5, "type": "map:item:selected", "payload": {"item": {...}}}

`at` is seconds from the start of the replay.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from event_assistant.assistant import Assistant
from event_assistant.errors import AssistantError, EventPayloadError
from event_assistant.welcome import WelcomeState

logger = logging.getLogger(__name__)


class ScriptStep(BaseModel):
    at: float = Field(default=0.0, ge=0)
    type: str
    payload: Optional[dict[str, Any]] = None


class TranscriptLine(BaseModel):
    text: str
    emoji: str = ""
    complete: bool = True


def load_script(path: Path) -> list[ScriptStep]:
    """Read and validate a script file. Steps come back sorted by `at`."""
    try:
        raw = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise AssistantError("script_error", f"Failed to read {path}: {e}")
    if isinstance(raw, dict):
        raw = raw.get("events", [])
    if not isinstance(raw, list):
        raise AssistantError("script_error", f"Expected a list of events in {path}")
    try:
        steps = [ScriptStep.model_validate(step) for step in raw]
    except ValidationError as e:
        raise AssistantError(
            "script_error", f"Invalid step in {path}",
            details={"errors": e.errors(include_url=False)},
        )
    return sorted(steps, key=lambda s: s.at)


class TranscriptRecorder:
    """Collects every reveal as it ends, including interrupted ones."""

    def __init__(self, assistant: Assistant):
        self._assistant = assistant
        self._was_typing = False
        self.lines: list[TranscriptLine] = []
        self._remove = assistant.streamer.add_listener(self._on_change)

    def close(self) -> None:
        self._remove()

    def _on_change(self, text: str, is_typing: bool) -> None:
        was_typing, self._was_typing = self._was_typing, is_typing
        if not was_typing or is_typing or not text:
            return
        session = self._assistant.streamer.session
        self.lines.append(TranscriptLine(
            text=text,
            emoji=self._assistant.emoji,
            complete=session is not None and session.finished,
        ))


async def settle(assistant: Assistant) -> None:
    """Wait until nothing is queued, streaming or about to be enqueued."""
    poll = max(assistant.config.tick_interval, 0.005)
    await asyncio.sleep(assistant.config.reentrancy_window + poll)
    while True:
        await assistant.welcome.wait()
        await assistant.queue.wait_drained()
        await assistant.streamer.wait_idle()
        if assistant.welcome.state != WelcomeState.ACTIVE and assistant.queue.is_idle and not assistant.is_typing:
            return
        await asyncio.sleep(poll)


async def replay(assistant: Assistant, steps: list[ScriptStep], *, speed: float = 1.0) -> int:
    """Emit each step at its offset. Returns how many steps were delivered."""
    loop = asyncio.get_running_loop()
    started = loop.time()
    delivered = 0
    for step in steps:
        delay = step.at / speed - (loop.time() - started)
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            assistant.emit(step.type, step.payload, source="script")
        except EventPayloadError as e:
            logger.warning("Skipping %s at %.2fs: %s", step.type, step.at, e)
            continue
        delivered += 1
    return delivered
