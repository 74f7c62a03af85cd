"""
Welcome flow — first-run greeting, interruptible by any user action.

    NOT_CHECKED -> SKIPPED    flag already set (returning user)
    NOT_CHECKED -> ACTIVE     flag absent; greeting starts
    ACTIVE      -> COMPLETED  greeting streamed to its end
    ACTIVE      -> SKIPPED    user action while the greeting runs

The greeting streams straight through the TextStreamer while the queue is
held, so a skip is a cancel() on the streamer followed by a release of the
queue; whatever the triggering action enqueued streams next.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from event_assistant.bus import EventBus
from event_assistant.errors import PersistenceError, WelcomeStateError
from event_assistant.flows import emoji_for, welcome_flow
from event_assistant.models.envelope import EventEnvelope
from event_assistant.models.events import AssistantEvent
from event_assistant.queue import MessageQueue
from event_assistant.store import FlagStore
from event_assistant.streaming import TextStreamer

logger = logging.getLogger(__name__)

DEFAULT_LINE_PAUSE_S = 1.0

# User-initiated events that end the greeting early
SKIP_EVENTS = (AssistantEvent.ACTION_PRESSED, AssistantEvent.SELECT_ITEM)


class WelcomeState(str, Enum):
    NOT_CHECKED = "not_checked"
    ACTIVE = "active"
    SKIPPED = "skipped"
    COMPLETED = "completed"


TRANSITIONS: dict[WelcomeState, set[WelcomeState]] = {
    WelcomeState.NOT_CHECKED: {WelcomeState.ACTIVE, WelcomeState.SKIPPED},
    WelcomeState.ACTIVE: {WelcomeState.COMPLETED, WelcomeState.SKIPPED},
    WelcomeState.SKIPPED: set(),
    WelcomeState.COMPLETED: set(),
}


class WelcomeFlow:
    def __init__(
        self,
        bus: EventBus,
        streamer: TextStreamer,
        queue: MessageQueue,
        store: FlagStore,
        *,
        user_name: Optional[str] = None,
        line_pause: float = DEFAULT_LINE_PAUSE_S,
    ):
        self._streamer = streamer
        self._queue = queue
        self._store = store
        self._lines = welcome_flow(user_name)
        self._line_pause = line_pause
        self._state = WelcomeState.NOT_CHECKED
        self._skip_requested = False
        self._persisted = False
        self._task: Optional[asyncio.Task[None]] = None
        self._line: Optional["asyncio.Future[None]"] = None
        self._unsubscribes: list[Callable[[], None]] = [
            bus.subscribe(event_type, self._on_user_action) for event_type in SKIP_EVENTS
        ]

    @property
    def state(self) -> WelcomeState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._state in (WelcomeState.SKIPPED, WelcomeState.COMPLETED)

    def start(self) -> None:
        """Check the flag and begin the greeting for first-time users."""
        if self._state != WelcomeState.NOT_CHECKED:
            raise WelcomeStateError("Welcome flow already started")
        try:
            seen = self._store.read()
        except PersistenceError as e:
            logger.warning("Could not read onboarding flag, showing welcome: %s", e)
            seen = False

        if seen:
            self._transition(WelcomeState.SKIPPED)
            self._detach()
            return

        self._transition(WelcomeState.ACTIVE)
        self._queue.hold()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def bypass(self) -> None:
        """Skip the greeting for this session without touching the stored flag."""
        if self._state != WelcomeState.NOT_CHECKED:
            raise WelcomeStateError("Welcome flow already started")
        self._transition(WelcomeState.SKIPPED)
        self._detach()

    async def wait(self) -> None:
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self.finished:
                    raise

    def skip(self) -> bool:
        """End the greeting now. Returns False if it was not running or already skipped."""
        if self._state != WelcomeState.ACTIVE or self._skip_requested:
            return False
        self._skip_requested = True
        if self._line is not None and not self._line.done():
            self._streamer.cancel()
        if self._task is not None:
            self._task.cancel()
        self._finish(WelcomeState.SKIPPED)
        return True

    async def close(self) -> None:
        self._detach()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        for index, line in enumerate(self._lines):
            if index:
                await asyncio.sleep(self._line_pause)
            self._streamer.emoji = emoji_for(line)
            completion = self._line = self._streamer.start(line)
            await asyncio.wait([completion])
            if completion.cancelled():
                # interrupted by something other than skip(); treat as a skip
                if self._state == WelcomeState.ACTIVE:
                    self._skip_requested = True
                    self._finish(WelcomeState.SKIPPED)
                return
        self._finish(WelcomeState.COMPLETED)

    def _finish(self, state: WelcomeState) -> None:
        self._transition(state)
        self._persist()
        self._detach()
        self._queue.release()

    def _persist(self) -> None:
        if self._persisted:
            return
        self._persisted = True
        try:
            self._store.write(True)
        except PersistenceError as e:
            logger.error("Could not persist onboarding flag: %s", e)

    def _on_user_action(self, envelope: EventEnvelope) -> None:
        if self._state == WelcomeState.ACTIVE:
            logger.debug("Welcome skipped by %s", envelope.type)
            self.skip()

    def _transition(self, new: WelcomeState) -> None:
        if new not in TRANSITIONS[self._state]:
            raise WelcomeStateError(f"Illegal welcome transition {self._state.value} -> {new.value}")
        self._state = new

    def _detach(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
