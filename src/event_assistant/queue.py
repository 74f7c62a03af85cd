"""
Priority message queue and its drain scheduler.

Pending messages are kept sorted by (priority desc, enqueue order asc).
A single drain task pops the head, hands it to the TextStreamer, awaits the
completion future, pauses, and repeats. The message being streamed is held
outside the pending list, so clear() can never discard it mid-reveal: the
reveal simply continues (resume contract).

Scheduler states:

    IDLE      -> STREAMING  head popped and reveal started
    IDLE      -> HELD       hold()
    STREAMING -> PAUSED     reveal finished or was interrupted
    STREAMING -> HELD       hold() while a reveal is running
    PAUSED    -> STREAMING  next head popped after the pause
    PAUSED    -> IDLE       nothing left to show
    PAUSED    -> HELD       hold() during the pause
    HELD      -> IDLE       release()

IMMEDIATE priority only reorders the pending list. It never preempts the
active reveal; TextStreamer.interrupt_and_show() is the sole bypass.
"""

import asyncio
import bisect
import itertools
import logging
import uuid
from enum import Enum
from typing import Callable, Optional

from event_assistant.errors import SchedulerStateError
from event_assistant.flows import emoji_for
from event_assistant.models.message import Priority, QueuedMessage
from event_assistant.streaming import TextStreamer

logger = logging.getLogger(__name__)

DEFAULT_INTER_MESSAGE_PAUSE_S = 0.3


class SchedulerState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    PAUSED = "paused"
    HELD = "held"


TRANSITIONS: dict[SchedulerState, set[SchedulerState]] = {
    SchedulerState.IDLE: {SchedulerState.STREAMING, SchedulerState.HELD},
    SchedulerState.STREAMING: {SchedulerState.PAUSED, SchedulerState.HELD},
    SchedulerState.PAUSED: {SchedulerState.STREAMING, SchedulerState.IDLE, SchedulerState.HELD},
    SchedulerState.HELD: {SchedulerState.IDLE},
}


class MessageQueue:
    def __init__(
        self,
        streamer: TextStreamer,
        inter_message_pause: float = DEFAULT_INTER_MESSAGE_PAUSE_S,
    ):
        self._streamer = streamer
        self._pause = inter_message_pause
        self._pending: list[QueuedMessage] = []
        self._keys: list[tuple[int, int]] = []
        self._counter = itertools.count()
        self._current: Optional[QueuedMessage] = None
        self._state = SchedulerState.IDLE
        self._task: Optional[asyncio.Task[None]] = None
        self._state_listeners: list[Callable[[SchedulerState], None]] = []
        self._activity_listeners: list[Callable[[], None]] = []

    # -- read model ---------------------------------------------------------

    @property
    def pending(self) -> tuple[QueuedMessage, ...]:
        return tuple(self._pending)

    @property
    def current(self) -> Optional[QueuedMessage]:
        return self._current

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return self._state == SchedulerState.IDLE and not self._pending

    def __len__(self) -> int:
        return len(self._pending)

    # -- listeners ----------------------------------------------------------

    def add_state_listener(self, listener: Callable[[SchedulerState], None]) -> Callable[[], None]:
        self._state_listeners.append(listener)

        def remove() -> None:
            try:
                self._state_listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def add_activity_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Called whenever a message is accepted. Returns a cleanup function."""
        self._activity_listeners.append(listener)

        def remove() -> None:
            try:
                self._activity_listeners.remove(listener)
            except ValueError:
                pass
        return remove

    # -- writers ------------------------------------------------------------

    def enqueue(
        self,
        text: str,
        priority: Priority = Priority.MEDIUM,
        *,
        source_event_type: Optional[str] = None,
        emoji: Optional[str] = None,
        survive_on_reselect: bool = False,
    ) -> Optional[QueuedMessage]:
        """Add a message. Returns None when it was dropped as empty or duplicate."""
        if not text or not text.strip():
            logger.debug("Dropping empty message")
            return None
        if any(m.text == text for m in self._pending) or (
            self._current is not None and self._current.text == text
        ):
            logger.debug("Dropping duplicate message: %r", text)
            return None

        message = QueuedMessage(
            id=uuid.uuid4().hex,
            text=text,
            priority=Priority(priority),
            enqueued_at=next(self._counter),
            source_event_type=source_event_type,
            emoji=emoji,
            survive_on_reselect=survive_on_reselect,
        )
        index = bisect.bisect_right(self._keys, message.sort_key)
        self._keys.insert(index, message.sort_key)
        self._pending.insert(index, message)

        self._notify_activity()
        self._kick()
        return message

    def clear(self, *, preserve_high_priority: bool = False, preserve_on_reselect: bool = False) -> int:
        """Drop pending messages. Returns how many were removed.

        The message currently streaming is never touched.
        """
        def keep(m: QueuedMessage) -> bool:
            if preserve_high_priority and m.priority >= Priority.HIGH:
                return True
            if preserve_on_reselect and m.survive_on_reselect:
                return True
            return False

        before = len(self._pending)
        self._pending = [m for m in self._pending if keep(m)]
        self._keys = [m.sort_key for m in self._pending]
        removed = before - len(self._pending)
        if removed:
            logger.debug("Cleared %d pending message(s)", removed)
        return removed

    def hold(self) -> None:
        """Stop dequeuing. The active reveal, if any, finishes on its own."""
        if self._state == SchedulerState.HELD:
            return
        self._transition(SchedulerState.HELD)

    def release(self) -> None:
        if self._state != SchedulerState.HELD:
            return
        self._transition(SchedulerState.IDLE)
        self._kick()

    async def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def wait_drained(self) -> None:
        """Wait until the drain task has emptied the queue."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    # -- drain loop ---------------------------------------------------------

    def _kick(self) -> None:
        if self._state != SchedulerState.IDLE or not self._pending:
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._drain())
        self._task.add_done_callback(self._on_drain_done)

    def _on_drain_done(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Drain task failed: %r", error)
        self._kick()

    async def _wait_streamer_idle(self) -> None:
        # an interrupt can start a new session right after waking us
        while self._streamer.active:
            await self._streamer.wait_idle()

    async def _drain(self) -> None:
        try:
            while self._pending and self._state in (SchedulerState.IDLE, SchedulerState.PAUSED):
                await self._wait_streamer_idle()
                if self._state not in (SchedulerState.IDLE, SchedulerState.PAUSED) or not self._pending:
                    break
                message = self._pending.pop(0)
                self._keys.pop(0)
                self._current = message
                self._transition(SchedulerState.STREAMING)
                self._streamer.emoji = message.emoji or emoji_for(message.text)

                completion = self._streamer.start(message.text)
                await asyncio.wait([completion])
                if completion.cancelled():
                    logger.debug("Reveal interrupted: %r", message.text)
                    await self._wait_streamer_idle()
                self._current = None

                # held (and maybe released) while streaming
                if self._state != SchedulerState.STREAMING:
                    break
                self._transition(SchedulerState.PAUSED)
                await asyncio.sleep(self._pause)
                if self._state != SchedulerState.PAUSED:
                    break
        finally:
            self._current = None
            if self._state in (SchedulerState.PAUSED, SchedulerState.STREAMING):
                self._state = SchedulerState.PAUSED
                self._transition(SchedulerState.IDLE)
            self._task = None

    def _transition(self, new: SchedulerState) -> None:
        if new not in TRANSITIONS[self._state]:
            raise SchedulerStateError(f"Illegal scheduler transition {self._state.value} -> {new.value}")
        self._state = new
        for listener in list(self._state_listeners):
            try:
                listener(new)
            except Exception:
                logger.exception("Scheduler state listener failed")

    def _notify_activity(self) -> None:
        for listener in list(self._activity_listeners):
            try:
                listener()
            except Exception:
                logger.exception("Queue activity listener failed")
