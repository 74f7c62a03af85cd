"""
Selection coordinator — turns item selection events into message sequences.

Owns the SelectionContext; nothing else writes it. A selection is enqueued
when its reentrancy window closes, so overlapping sources delivering the same
select collapse into one message set, and a deselect arriving inside the
window leaves only the goodbye.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Callable, Optional

from pydantic import BaseModel

from event_assistant.bus import EventBus
from event_assistant.flows import cluster_flow, goodbye_message, item_title, marker_flow
from event_assistant.models.envelope import EventEnvelope
from event_assistant.models.events import (
    AssistantEvent,
    DeselectItemPayload,
    MapItem,
    SelectItemPayload,
)
from event_assistant.models.message import Priority
from event_assistant.queue import MessageQueue

logger = logging.getLogger(__name__)

DEFAULT_REENTRANCY_WINDOW_S = 0.1


class SelectionContext(BaseModel):
    focused_item_id: Optional[str] = None
    item_type: Optional[str] = None
    item_title: Optional[str] = None
    last_message_at: Optional[float] = None


class SelectionCoordinator:
    def __init__(
        self,
        bus: EventBus,
        queue: MessageQueue,
        *,
        user_location: Optional[tuple[float, float]] = None,
        reentrancy_window: float = DEFAULT_REENTRANCY_WINDOW_S,
        rng: Optional[random.Random] = None,
    ):
        self._queue = queue
        self._user_location = user_location
        self._window = reentrancy_window
        self._rng = rng
        self._context = SelectionContext()
        self._pending_flush: Optional[asyncio.TimerHandle] = None
        self._unsubscribes: list[Callable[[], None]] = [
            bus.subscribe(AssistantEvent.SELECT_ITEM, self._on_select),
            bus.subscribe(AssistantEvent.DESELECT_ITEM, self._on_deselect),
        ]

    @property
    def context(self) -> SelectionContext:
        return self._context.model_copy()

    @property
    def focused_item_id(self) -> Optional[str]:
        return self._context.focused_item_id

    def set_user_location(self, location: Optional[tuple[float, float]]) -> None:
        self._user_location = location

    def detach(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
        self._cancel_flush()

    # -- handlers -----------------------------------------------------------

    def _on_select(self, envelope: EventEnvelope) -> None:
        payload: SelectItemPayload = envelope.payload
        item = payload.item

        # covers a duplicate arriving while its own flush is still pending
        if item.id == self._context.focused_item_id:
            logger.debug("Ignoring repeated select for %s", item.id)
            return

        switching = self._context.focused_item_id is not None
        if switching:
            self._queue.clear(preserve_on_reselect=True)
        self._cancel_flush()
        self._context = SelectionContext(
            focused_item_id=item.id,
            item_type=item.type,
            item_title=item_title(item),
            last_message_at=self._context.last_message_at,
        )
        priority = Priority.IMMEDIATE if switching else Priority.HIGH
        loop = asyncio.get_running_loop()
        self._pending_flush = loop.call_later(self._window, self._flush, item, priority)

    def _on_deselect(self, envelope: EventEnvelope) -> None:
        payload: DeselectItemPayload = envelope.payload
        if self._context.focused_item_id is None:
            logger.debug("Deselect with nothing focused")
            return

        self._cancel_flush()
        self._queue.clear(preserve_on_reselect=True)
        name = item_title(payload.item) or self._context.item_title
        self._queue.enqueue(
            goodbye_message(name, self._rng),
            Priority.MEDIUM,
            source_event_type=AssistantEvent.DESELECT_ITEM,
            emoji="👋",
        )
        self._context = SelectionContext(last_message_at=time.monotonic())

    # -- internals ----------------------------------------------------------

    def _flush(self, item: MapItem, priority: Priority) -> None:
        self._pending_flush = None
        if item.id != self._context.focused_item_id:
            return

        if item.is_cluster:
            headline, *rest = cluster_flow(item.count)
            self._queue.enqueue(
                headline, priority,
                source_event_type=AssistantEvent.SELECT_ITEM,
                survive_on_reselect=True,
            )
            messages = rest
        else:
            messages = marker_flow(item, self._user_location)

        emoji = item.data.emoji if item.data else None
        for index, text in enumerate(messages):
            self._queue.enqueue(
                text, priority,
                source_event_type=AssistantEvent.SELECT_ITEM,
                emoji=emoji if index == 0 else None,
            )
        self._context.last_message_at = time.monotonic()

    def _cancel_flush(self) -> None:
        if self._pending_flush is not None:
            self._pending_flush.cancel()
            self._pending_flush = None
