"""
Activity narrator — viewport, marker, view and action events to messages.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from event_assistant.bus import EventBus
from event_assistant.flows import (
    CLOSE_VIEW_MESSAGE,
    SELECT_FIRST_MESSAGE,
    VIEW_EMOJI,
    VIEW_MESSAGES,
    action_flow,
    markers_found_message,
)
from event_assistant.models.envelope import EventEnvelope
from event_assistant.models.events import (
    ITEM_ACTIONS,
    ActionPressedPayload,
    AssistantEvent,
    MarkersUpdatedPayload,
    OpenViewPayload,
    Viewport,
    ViewportChangedPayload,
)
from event_assistant.models.message import Priority
from event_assistant.queue import MessageQueue
from event_assistant.streaming import TextStreamer

logger = logging.getLogger(__name__)

SCANNING_DEBOUNCE_S = 3.0
SEARCHING_DEBOUNCE_S = 5.0
SIGNIFICANT_MOVE_DEG = 0.01  # ~1 km
MIN_COUNT_CHANGE = 2


class ActivityNarrator:
    def __init__(
        self,
        bus: EventBus,
        queue: MessageQueue,
        streamer: TextStreamer,
        focused_item_id: Callable[[], Optional[str]],
        *,
        user_location: Optional[tuple[float, float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._queue = queue
        self._streamer = streamer
        self._focused_item_id = focused_item_id
        self._user_location = user_location
        self._clock = clock
        self._last_message_at: Optional[float] = None
        self._searching = False
        self._last_marker_count = 0
        self._prev_viewport: Optional[Viewport] = None
        self._unsubscribes = [
            bus.subscribe(AssistantEvent.VIEWPORT_CHANGING, self._on_viewport_changing),
            bus.subscribe(AssistantEvent.VIEWPORT_CHANGED, self._on_viewport_changed),
            bus.subscribe(AssistantEvent.MARKERS_UPDATED, self._on_markers_updated),
            bus.subscribe(AssistantEvent.ACTION_PRESSED, self._on_action),
            bus.subscribe(AssistantEvent.OPEN_VIEW, self._on_open_view),
            bus.subscribe(AssistantEvent.CLOSE_VIEW, self._on_close_view),
            bus.subscribe(AssistantEvent.NEXT_ITEM, self._on_navigate),
            bus.subscribe(AssistantEvent.PREVIOUS_ITEM, self._on_navigate),
        ]
        self._unsubscribes.append(queue.add_activity_listener(self._on_queue_activity))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    def _say(self, text: str, priority: Priority, event_type: str, **opts) -> None:
        self._queue.enqueue(text, priority, source_event_type=event_type, **opts)

    def _on_queue_activity(self) -> None:
        # any accepted message counts, whoever enqueued it
        self._last_message_at = self._clock()

    def _quiet_for(self, seconds: float) -> bool:
        return self._last_message_at is None or self._clock() - self._last_message_at > seconds

    def _on_viewport_changing(self, envelope: EventEnvelope) -> None:
        if not self._quiet_for(SCANNING_DEBOUNCE_S):
            return
        self._queue.clear(preserve_high_priority=True, preserve_on_reselect=True)
        self._say("Scanning area...", Priority.HIGH, envelope.type, emoji="🔍")
        self._searching = True

    def _on_viewport_changed(self, envelope: EventEnvelope) -> None:
        payload: ViewportChangedPayload = envelope.payload
        if payload.markers or not payload.searching:
            return
        prev = self._prev_viewport
        if prev is None:
            self._prev_viewport = payload.viewport
            return
        lat_change = abs(prev.center[0] - payload.viewport.center[0])
        lon_change = abs(prev.center[1] - payload.viewport.center[1])
        if lat_change <= SIGNIFICANT_MOVE_DEG and lon_change <= SIGNIFICANT_MOVE_DEG:
            # small pans accumulate against the last significant position
            return
        self._prev_viewport = payload.viewport
        if self._searching or not self._quiet_for(SEARCHING_DEBOUNCE_S):
            return
        self._say(
            "Looking for events in this new area...", Priority.MEDIUM, envelope.type,
            emoji="🔍", survive_on_reselect=True,
        )
        self._searching = True

    def _on_markers_updated(self, envelope: EventEnvelope) -> None:
        payload: MarkersUpdatedPayload = envelope.payload
        if self._searching:
            self._queue.clear(preserve_high_priority=True, preserve_on_reselect=True)
            self._searching = False
        else:
            self._queue.clear(preserve_on_reselect=True)

        count = payload.total
        if count == 0:
            self._say(markers_found_message(0), Priority.HIGH, envelope.type, emoji="😔", survive_on_reselect=True)
            self._last_marker_count = 0
            return
        if self._last_marker_count == 0 or abs(count - self._last_marker_count) >= MIN_COUNT_CHANGE:
            self._say(markers_found_message(count), Priority.HIGH, envelope.type, emoji="📍", survive_on_reselect=True)
            self._last_marker_count = count

    def _on_action(self, envelope: EventEnvelope) -> None:
        payload: ActionPressedPayload = envelope.payload
        if payload.action in ITEM_ACTIONS and self._focused_item_id() is None:
            # Blocking prompt: the one place allowed to preempt a reveal
            self._streamer.interrupt_and_show(SELECT_FIRST_MESSAGE, emoji="☝️")
            self._last_message_at = self._clock()
            return
        for text in action_flow(payload.action, self._user_location):
            self._say(text, Priority.CRITICAL, envelope.type)

    def _on_open_view(self, envelope: EventEnvelope) -> None:
        payload: OpenViewPayload = envelope.payload
        text = VIEW_MESSAGES.get(payload.view_type)
        if text is None:
            logger.debug("No narration for view %s", payload.view_type)
            return
        self._queue.clear(preserve_high_priority=True)
        self._say(text, Priority.CRITICAL, envelope.type, emoji=VIEW_EMOJI.get(payload.view_type, "💬"))

    def _on_close_view(self, envelope: EventEnvelope) -> None:
        self._say(CLOSE_VIEW_MESSAGE, Priority.MEDIUM, envelope.type, emoji="👋")

    def _on_navigate(self, envelope: EventEnvelope) -> None:
        if envelope.type == AssistantEvent.NEXT_ITEM:
            self._say("Showing the next event.", Priority.LOW, envelope.type, emoji="➡️")
        else:
            self._say("Showing the previous event.", Priority.LOW, envelope.type, emoji="⬅️")
