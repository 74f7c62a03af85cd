import asyncio
from typing import Any, Optional

import pytest

from event_assistant.bus import EventBus
from event_assistant.config import AssistantConfig
from event_assistant.models.events import MapItem
from event_assistant.queue import MessageQueue, SchedulerState
from event_assistant.store import FlagStore
from event_assistant.streaming import TextStreamer

TICK = 0.001


@pytest.fixture
def fast_config(tmp_path) -> AssistantConfig:
    return AssistantConfig(
        tick_interval=TICK,
        inter_message_pause=TICK,
        auto_dismiss_delay=10.0,
        reentrancy_window=0.01,
        welcome_line_pause=TICK,
        state_file=tmp_path / "state.json",
    )


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def streamer() -> TextStreamer:
    return TextStreamer(tick_interval=TICK)


@pytest.fixture
def queue(streamer) -> MessageQueue:
    return MessageQueue(streamer, inter_message_pause=TICK)


@pytest.fixture
def store(tmp_path) -> FlagStore:
    return FlagStore(tmp_path / "state.json")


def make_marker(item_id: str = "m1", title: Optional[str] = "Jazz Night", **data: Any) -> MapItem:
    return MapItem.model_validate({
        "id": item_id,
        "type": "marker",
        "coordinates": data.pop("coordinates", None),
        "markerData": {"title": title, **data},
    })


def make_cluster(item_id: str = "c1", count: int = 12) -> MapItem:
    return MapItem(id=item_id, type="cluster", count=count)


def record_streamed(queue: MessageQueue) -> list[str]:
    """Texts in the order the scheduler starts them."""
    started: list[str] = []

    def on_state(state: SchedulerState) -> None:
        if state == SchedulerState.STREAMING and queue.current is not None:
            started.append(queue.current.text)

    queue.add_state_listener(on_state)
    return started


def spy_enqueue(queue: MessageQueue) -> list[str]:
    """Every text handed to enqueue(), accepted or not."""
    calls: list[str] = []
    original = queue.enqueue

    def enqueue(text, *args, **kwargs):
        calls.append(text)
        return original(text, *args, **kwargs)

    queue.enqueue = enqueue
    return calls


async def wait_until(predicate, timeout: float = 2.0, interval: float = TICK) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
