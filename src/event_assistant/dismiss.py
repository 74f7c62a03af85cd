"""
Auto-dismiss — hide the assistant after it has been idle for a while.
"""

import asyncio
import logging
from typing import Callable, Optional

from event_assistant.bus import EventBus
from event_assistant.models.envelope import EventEnvelope
from event_assistant.models.events import AssistantEvent
from event_assistant.queue import MessageQueue, SchedulerState
from event_assistant.streaming import TextStreamer

logger = logging.getLogger(__name__)

DEFAULT_AUTO_DISMISS_DELAY_S = 5.0

ACTIVITY_EVENTS = (
    AssistantEvent.SELECT_ITEM,
    AssistantEvent.ACTION_PRESSED,
    AssistantEvent.OPEN_VIEW,
)


class AutoDismissTimer:
    def __init__(
        self,
        bus: EventBus,
        queue: MessageQueue,
        streamer: TextStreamer,
        on_hide: Callable[[], None],
        delay: float = DEFAULT_AUTO_DISMISS_DELAY_S,
        on_activity: Optional[Callable[[], None]] = None,
    ):
        self._queue = queue
        self._streamer = streamer
        self._on_hide = on_hide
        self._on_activity = on_activity
        self._delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._was_typing = streamer.is_typing
        self._unsubscribes: list[Callable[[], None]] = [
            queue.add_state_listener(self._on_state),
            queue.add_activity_listener(self.activity),
            streamer.add_start_handler(self.activity),
            streamer.add_listener(self._on_stream_change),
        ]
        self._unsubscribes.extend(
            bus.subscribe(event_type, self._on_event) for event_type in ACTIVITY_EVENTS
        )

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def idle(self) -> bool:
        return self._queue.is_idle and not self._streamer.is_typing

    def activity(self) -> None:
        """Something happened: drop any pending hide."""
        self._cancel()
        if self._on_activity is not None:
            self._on_activity()

    def arm(self) -> None:
        """Schedule a hide if idle. Never more than one timer."""
        if self._handle is not None or not self.idle():
            return
        self._handle = asyncio.get_running_loop().call_later(self._delay, self._fire)

    def close(self) -> None:
        self._cancel()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    def _fire(self) -> None:
        self._handle = None
        if not self.idle():
            logger.debug("Auto-dismiss skipped: assistant became active")
            return
        try:
            self._on_hide()
        except Exception:
            logger.exception("Hide callback failed")

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_state(self, state: SchedulerState) -> None:
        if state == SchedulerState.IDLE:
            self.arm()
        else:
            self._cancel()

    def _on_stream_change(self, _text: str, is_typing: bool) -> None:
        # covers reveals that bypass the queue (welcome, interrupt_and_show)
        was_typing, self._was_typing = self._was_typing, is_typing
        if was_typing and not is_typing:
            self.arm()

    def _on_event(self, envelope: EventEnvelope) -> None:
        # restart the countdown even when the event enqueues nothing
        self.activity()
        asyncio.get_running_loop().call_soon(self.arm)
