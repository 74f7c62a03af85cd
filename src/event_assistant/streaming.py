"""
Text streaming coordinator — simulated character-by-character reveal.

One session at a time. start() returns a completion future that resolves
when the reveal finishes naturally; cancel() cancels that future instead of
resolving it, so a cancelled flow is never mistaken for a completed one.
interrupt_and_show() is the only way to replace an active reveal.
"""

import asyncio
import logging
from typing import Callable, Optional

from event_assistant.errors import StreamingError
from event_assistant.models.message import StreamingSession

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_S = 0.02

Listener = Callable[[str, bool], None]


class TextStreamer:
    def __init__(self, tick_interval: float = DEFAULT_TICK_INTERVAL_S):
        self._tick_interval = tick_interval
        self._session: Optional[StreamingSession] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._completion: Optional[asyncio.Future[None]] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._current_text = ""
        self._is_typing = False
        self.emoji = ""
        self._listeners: list[Listener] = []
        self._start_handlers: list[Callable[[], None]] = []

    @property
    def current_text(self) -> str:
        return self._current_text

    @property
    def is_typing(self) -> bool:
        return self._is_typing

    @property
    def active(self) -> bool:
        return self._session is not None and self._session.active

    @property
    def session(self) -> Optional[StreamingSession]:
        return self._session.model_copy() if self._session else None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Called with (current_text, is_typing) on every change. Returns a cleanup function."""
        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def add_start_handler(self, handler: Callable[[], None]) -> Callable[[], None]:
        self._start_handlers.append(handler)

        def remove() -> None:
            try:
                self._start_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def start(self, text: str) -> "asyncio.Future[None]":
        """Begin revealing text. Raises StreamingError if a session is active."""
        if self.active:
            raise StreamingError("A streaming session is already active")
        loop = asyncio.get_running_loop()
        session = StreamingSession(full_text=text)
        self._session = session
        self._completion = loop.create_future()
        self._idle.clear()
        self._update(text="", typing=True)
        for handler in list(self._start_handlers):
            try:
                handler()
            except Exception:
                logger.exception("Stream start handler failed")
        self._task = loop.create_task(self._reveal(session, self._completion))
        return self._completion

    async def _reveal(self, session: StreamingSession, completion: "asyncio.Future[None]") -> None:
        while not session.finished:
            await asyncio.sleep(self._tick_interval)
            if not session.active or session is not self._session:
                return
            session.revealed_length += 1
            self._update(text=session.revealed_text)
        session.active = False
        self._task = None
        self._completion = None
        self._idle.set()
        self._update(typing=False)
        if not completion.done():
            completion.set_result(None)

    def cancel(self) -> bool:
        """End the active session abnormally. Returns False when nothing was active."""
        session = self._session
        if session is None or not session.active:
            return False
        session.active = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._completion is not None and not self._completion.done():
            self._completion.cancel()
        self._completion = None
        self._idle.set()
        self._update(typing=False)
        logger.debug("Streaming cancelled at %d/%d chars", session.revealed_length, len(session.full_text))
        return True

    def interrupt_and_show(self, text: str, emoji: str = "") -> "asyncio.Future[None]":
        """Cancel whatever is revealing and show text now. Clears no queue."""
        self.cancel()
        self.emoji = emoji
        return self.start(text)

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def reset(self) -> None:
        """Cancel any session and blank the text."""
        self.cancel()
        self.emoji = ""
        self._update(text="")

    def _update(self, text: Optional[str] = None, typing: Optional[bool] = None) -> None:
        changed = False
        if text is not None and text != self._current_text:
            self._current_text = text
            changed = True
        if typing is not None and typing != self._is_typing:
            self._is_typing = typing
            changed = True
        if not changed:
            return
        for listener in list(self._listeners):
            try:
                listener(self._current_text, self._is_typing)
            except Exception:
                logger.exception("Streaming listener failed")
