"""
Assistant — wires the bus, queue, streamer and coordinators into one session.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Optional

from event_assistant.bus import EventBus, Handler
from event_assistant.config import AssistantConfig
from event_assistant.dismiss import AutoDismissTimer
from event_assistant.models.envelope import EventEnvelope
from event_assistant.models.message import AssistantView, Priority, QueuedMessage
from event_assistant.narration import ActivityNarrator
from event_assistant.queue import MessageQueue
from event_assistant.selection import SelectionCoordinator
from event_assistant.store import FlagStore
from event_assistant.streaming import TextStreamer
from event_assistant.welcome import WelcomeFlow

logger = logging.getLogger(__name__)

ViewListener = Callable[[AssistantView], None]


class Assistant:
    """One assistant session. Construct, `await start()`, and `await close()` when done."""

    def __init__(
        self,
        config: Optional[AssistantConfig] = None,
        bus: Optional[EventBus] = None,
        store: Optional[FlagStore] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or AssistantConfig()
        self.bus = bus or EventBus()
        self.store = store or FlagStore(self.config.state_file)

        self.streamer = TextStreamer(tick_interval=self.config.tick_interval)
        self.queue = MessageQueue(self.streamer, inter_message_pause=self.config.inter_message_pause)
        # welcome subscribes first so a user action skips it before anything else reacts
        self.welcome = WelcomeFlow(
            self.bus, self.streamer, self.queue, self.store,
            user_name=self.config.user_name,
            line_pause=self.config.welcome_line_pause,
        )
        self.selection = SelectionCoordinator(
            self.bus, self.queue,
            user_location=self.config.user_location,
            reentrancy_window=self.config.reentrancy_window,
            rng=rng,
        )
        self.narrator = ActivityNarrator(
            self.bus, self.queue, self.streamer,
            focused_item_id=lambda: self.selection.focused_item_id,
            user_location=self.config.user_location,
        )

        self._visible = False
        self._hide_count = 0
        self._view_listeners: list[ViewListener] = []
        self._dismiss: Optional[AutoDismissTimer] = None
        self._started = False
        self.streamer.add_listener(lambda _text, _typing: self._notify_view())

    async def __aenter__(self) -> "Assistant":
        await self.start()
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        await self.close()

    # -- render model -------------------------------------------------------

    @property
    def current_text(self) -> str:
        return self.streamer.current_text

    @property
    def is_typing(self) -> bool:
        return self.streamer.is_typing

    @property
    def emoji(self) -> str:
        return self.streamer.emoji

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def hide_count(self) -> int:
        return self._hide_count

    @property
    def view(self) -> AssistantView:
        return AssistantView(
            current_text=self.current_text,
            is_typing=self.is_typing,
            emoji=self.emoji,
            visible=self._visible,
        )

    def add_view_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Called with a fresh AssistantView on every change. Returns a cleanup function."""
        self._view_listeners.append(listener)

        def remove() -> None:
            try:
                self._view_listeners.remove(listener)
            except ValueError:
                pass
        return remove

    # -- lifecycle ----------------------------------------------------------

    async def start(self, *, welcome: bool = True) -> None:
        """Arm the coordinators. welcome=False skips the greeting without recording it."""
        if self._started:
            return
        self._started = True
        self._dismiss = AutoDismissTimer(
            self.bus, self.queue, self.streamer,
            on_hide=self.hide,
            delay=self.config.auto_dismiss_delay,
            on_activity=self.show,
        )
        if welcome:
            self.welcome.start()
        else:
            self.welcome.bypass()
        self._dismiss.arm()

    async def close(self) -> None:
        if self._dismiss is not None:
            self._dismiss.close()
            self._dismiss = None
        await self.welcome.close()
        self.selection.detach()
        self.narrator.detach()
        await self.queue.close()
        self.streamer.cancel()
        self.bus.clear()
        self._started = False

    # -- outbound API -------------------------------------------------------

    def enqueue(
        self,
        text: str,
        priority: Priority = Priority.MEDIUM,
        **opts: Any,
    ) -> Optional[QueuedMessage]:
        return self.queue.enqueue(text, priority, **opts)

    def clear(self, *, preserve_high_priority: bool = False, preserve_on_reselect: bool = False) -> int:
        return self.queue.clear(
            preserve_high_priority=preserve_high_priority,
            preserve_on_reselect=preserve_on_reselect,
        )

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        return self.bus.subscribe(event_type, handler)

    def emit(self, event_type: str, payload: Any = None, *, source: str = "") -> EventEnvelope:
        return self.bus.emit(event_type, payload, source=source)

    def show(self) -> None:
        if not self._visible:
            self._visible = True
            self._notify_view()

    def hide(self) -> None:
        self._hide_count += 1
        if self._visible:
            self._visible = False
            self._notify_view()
        logger.debug("Assistant hidden after idle period")

    def _notify_view(self) -> None:
        view = self.view
        for listener in list(self._view_listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("View listener failed")
