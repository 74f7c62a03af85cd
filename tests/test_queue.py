import asyncio
import random

import pytest

from event_assistant.errors import SchedulerStateError
from event_assistant.models.message import Priority
from event_assistant.queue import SchedulerState

from conftest import TICK, record_streamed, wait_until


class TestOrdering:
    def test_pending_stays_sorted(self, queue):
        queue.hold()
        rng = random.Random(7)
        for i in range(200):
            queue.enqueue(f"message {i}", Priority(rng.randint(0, 5)))
            keys = [(-m.priority, m.enqueued_at) for m in queue.pending]
            assert keys == sorted(keys)
        assert len(queue) == 200

    def test_equal_priority_is_fifo(self, queue):
        queue.hold()
        for text in ("one", "two", "three"):
            queue.enqueue(text, Priority.MEDIUM)
        assert [m.text for m in queue.pending] == ["one", "two", "three"]

    def test_duplicate_text_is_noop(self, queue):
        queue.hold()
        first = queue.enqueue("Hello", Priority.LOW)
        assert queue.enqueue("Hello", Priority.IMMEDIATE) is None
        assert queue.pending == (first,)

    def test_empty_text_is_dropped(self, queue):
        queue.hold()
        assert queue.enqueue("") is None
        assert queue.enqueue("   ") is None
        assert len(queue) == 0

    def test_message_fields(self, queue):
        queue.hold()
        message = queue.enqueue(
            "Scanning area...", Priority.HIGH,
            source_event_type="viewport:changing", emoji="🔍", survive_on_reselect=True,
        )
        assert message.id
        assert message.priority is Priority.HIGH
        assert message.source_event_type == "viewport:changing"
        assert message.emoji == "🔍"
        assert message.survive_on_reselect


class TestClear:
    def _fill(self, queue):
        queue.hold()
        queue.enqueue("background", Priority.BACKGROUND)
        queue.enqueue("medium", Priority.MEDIUM, survive_on_reselect=True)
        queue.enqueue("high", Priority.HIGH)
        queue.enqueue("critical", Priority.CRITICAL)

    def test_clear_all(self, queue):
        self._fill(queue)
        assert queue.clear() == 4
        assert queue.pending == ()

    def test_preserve_high_priority(self, queue):
        self._fill(queue)
        assert queue.clear(preserve_high_priority=True) == 2
        assert [m.text for m in queue.pending] == ["critical", "high"]
        assert all(m.priority >= Priority.HIGH for m in queue.pending)

    def test_preserve_on_reselect(self, queue):
        self._fill(queue)
        queue.clear(preserve_on_reselect=True)
        assert [m.text for m in queue.pending] == ["medium"]

    def test_both_flags_keep_union(self, queue):
        self._fill(queue)
        queue.clear(preserve_high_priority=True, preserve_on_reselect=True)
        assert [m.text for m in queue.pending] == ["critical", "high", "medium"]

    def test_ordering_survives_clear(self, queue):
        self._fill(queue)
        queue.clear(preserve_high_priority=True)
        queue.enqueue("immediate", Priority.IMMEDIATE)
        queue.enqueue("low", Priority.LOW)
        assert [m.text for m in queue.pending] == ["immediate", "critical", "high", "low"]


class TestDrain:
    @pytest.mark.asyncio
    async def test_drain_order(self, queue):
        started = record_streamed(queue)
        queue.enqueue("Hello", Priority.HIGH)
        queue.enqueue("World", Priority.MEDIUM)
        queue.enqueue("Urgent", Priority.IMMEDIATE)
        await asyncio.wait_for(queue.wait_drained(), 2)
        assert started == ["Urgent", "Hello", "World"]
        assert queue.state == SchedulerState.IDLE
        assert queue.is_idle

    @pytest.mark.asyncio
    async def test_states_during_drain(self, queue):
        states = []
        queue.add_state_listener(states.append)
        queue.enqueue("a")
        queue.enqueue("b")
        await asyncio.wait_for(queue.wait_drained(), 2)
        assert states == [
            SchedulerState.STREAMING, SchedulerState.PAUSED,
            SchedulerState.STREAMING, SchedulerState.PAUSED,
            SchedulerState.IDLE,
        ]

    @pytest.mark.asyncio
    async def test_immediate_never_preempts_active_reveal(self, queue, streamer):
        started = record_streamed(queue)
        long_text = "This message is long enough to still be revealing"
        queue.enqueue(long_text, Priority.LOW)
        await wait_until(lambda: len(streamer.current_text) > 2)
        queue.enqueue("Now!", Priority.IMMEDIATE)
        assert queue.current.text == long_text
        await asyncio.wait_for(queue.wait_drained(), 2)
        assert started == [long_text, "Now!"]

    @pytest.mark.asyncio
    async def test_clear_resumes_partial_reveal(self, queue, streamer):
        completed = []
        streamer.add_listener(lambda text, typing: completed.append(text) if not typing and text else None)
        long_text = "Partially revealed text keeps going after a clear"
        queue.enqueue(long_text)
        queue.enqueue("dropped")
        await wait_until(lambda: len(streamer.current_text) > 2)
        assert queue.clear() == 1
        await asyncio.wait_for(queue.wait_drained(), 2)
        assert completed == [long_text]

    @pytest.mark.asyncio
    async def test_duplicate_of_current_is_dropped(self, queue, streamer):
        queue.enqueue("Hello there")
        await wait_until(lambda: streamer.is_typing)
        assert queue.enqueue("Hello there") is None
        await asyncio.wait_for(queue.wait_drained(), 2)

    @pytest.mark.asyncio
    async def test_interrupted_reveal_moves_on(self, queue, streamer):
        started = record_streamed(queue)
        queue.enqueue("first message in line")
        queue.enqueue("second")
        await wait_until(lambda: streamer.is_typing)
        streamer.cancel()
        await asyncio.wait_for(queue.wait_drained(), 2)
        assert started == ["first message in line", "second"]
        assert streamer.current_text == "second"

    @pytest.mark.asyncio
    async def test_repeated_interrupt_does_not_lose_messages(self, queue, streamer):
        started = record_streamed(queue)
        streamer.interrupt_and_show("Please select a location first.")
        queue.enqueue("pending one")
        queue.enqueue("pending two", Priority.LOW)
        await asyncio.sleep(TICK * 3)
        streamer.interrupt_and_show("Please select a location first!")
        await wait_until(lambda: started == ["pending one", "pending two"] and queue.is_idle and not streamer.is_typing)
        assert streamer.current_text == "pending two"

    @pytest.mark.asyncio
    async def test_failed_drain_does_not_strand_queue(self, queue, streamer, caplog):
        original_start = streamer.start
        calls = []

        def flaky_start(text):
            calls.append(text)
            if len(calls) == 1:
                raise RuntimeError("renderer unavailable")
            return original_start(text)

        streamer.start = flaky_start
        queue.enqueue("lost to the failure")
        queue.enqueue("still delivered", Priority.LOW)
        await wait_until(lambda: queue.is_idle and streamer.current_text == "still delivered" and not streamer.is_typing)
        assert "Drain task failed" in caplog.text

    @pytest.mark.asyncio
    async def test_queue_sets_message_emoji(self, queue, streamer):
        queue.enqueue("Found 3 events here", emoji="📍")
        await asyncio.wait_for(queue.wait_drained(), 2)
        assert streamer.emoji == "📍"


class TestHold:
    @pytest.mark.asyncio
    async def test_hold_blocks_and_release_drains(self, queue, streamer):
        queue.hold()
        queue.enqueue("waiting")
        await asyncio.sleep(TICK * 10)
        assert queue.state == SchedulerState.HELD
        assert not streamer.is_typing
        assert len(queue) == 1

        queue.release()
        await wait_until(lambda: streamer.current_text == "waiting" and not streamer.is_typing)
        await asyncio.wait_for(queue.wait_drained(), 2)
        assert queue.is_idle

    @pytest.mark.asyncio
    async def test_hold_during_reveal_lets_it_finish(self, queue, streamer):
        queue.enqueue("in flight")
        queue.enqueue("held back")
        await wait_until(lambda: streamer.is_typing)
        queue.hold()
        await wait_until(lambda: not streamer.is_typing)
        await asyncio.sleep(TICK * 5)
        assert streamer.current_text == "in flight"
        assert [m.text for m in queue.pending] == ["held back"]
        queue.release()
        await wait_until(lambda: queue.is_idle and streamer.current_text == "held back" and not streamer.is_typing)

    def test_release_when_not_held_is_noop(self, queue):
        queue.release()
        assert queue.state == SchedulerState.IDLE

    def test_illegal_transition_raises(self, queue):
        with pytest.raises(SchedulerStateError):
            queue._transition(SchedulerState.PAUSED)

    @pytest.mark.asyncio
    async def test_close_cancels_drain(self, queue, streamer):
        queue.enqueue("never finishes in time")
        await wait_until(lambda: streamer.is_typing)
        await queue.close()
        streamer.cancel()
        assert queue.state == SchedulerState.IDLE
