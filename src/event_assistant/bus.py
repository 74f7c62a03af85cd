"""
Event bus — typed publish/subscribe channel shared by the assistant components.

Construct one per session and inject it; there is no process-wide instance.
Delivery is synchronous, in registration order, over a snapshot of the
handler list. Handler errors are logged and never reach the emitter.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from event_assistant.errors import EventPayloadError
from event_assistant.models.envelope import EventEnvelope
from event_assistant.models.events import coerce_payload

logger = logging.getLogger(__name__)

Handler = Callable[[EventEnvelope], Union[None, Awaitable[None]]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register a handler. Returns a cleanup function."""
        self._handlers.setdefault(event_type, []).append(handler)

        def remove() -> None:
            try:
                self._handlers.get(event_type, []).remove(handler)
            except ValueError:
                pass
        return remove

    def once(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register a handler for the next delivery only."""
        remove: Optional[Callable[[], None]] = None

        def wrapper(envelope: EventEnvelope) -> Union[None, Awaitable[None]]:
            if remove is not None:
                remove()
            return handler(envelope)

        remove = self.subscribe(event_type, wrapper)
        return remove

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))

    def emit(self, event_type: str, payload: Any = None, *, source: str = "") -> EventEnvelope:
        """Validate the payload, wrap it and deliver it to current subscribers."""
        try:
            data = coerce_payload(event_type, payload)
        except ValidationError as e:
            raise EventPayloadError(
                f"Invalid payload for {event_type}: {e.error_count()} error(s)",
                details={"errors": e.errors(include_url=False)},
            )
        envelope = EventEnvelope(type=event_type, payload=data, timestamp=time.time(), source=source)

        for handler in list(self._handlers.get(event_type, [])):
            try:
                result = handler(envelope)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, event_type)
                continue
            if inspect.isawaitable(result):
                self._schedule(event_type, result)
        return envelope

    def _schedule(self, event_type: str, awaitable: Awaitable[None]) -> None:
        async def _run() -> None:
            try:
                await awaitable
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Async handler failed for %s", event_type)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.error("No running event loop for async handler on %s", event_type)
            return
        task = loop.create_task(_run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def clear(self) -> None:
        """Drop every handler and cancel in-flight async handlers."""
        self._handlers.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
