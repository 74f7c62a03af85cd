import asyncio
import logging

import pytest

from event_assistant.bus import EventBus
from event_assistant.errors import EventPayloadError
from event_assistant.models.events import (
    ActionPressedPayload,
    AssistantEvent,
    EmptyPayload,
    SelectItemPayload,
)


class TestSubscribe:
    def test_unsubscribe_is_idempotent(self, bus):
        seen = []
        remove = bus.subscribe("custom", seen.append)
        assert bus.handler_count("custom") == 1
        remove()
        remove()
        assert bus.handler_count("custom") == 0
        bus.emit("custom", 1)
        assert seen == []

    def test_once_runs_for_first_delivery_only(self, bus):
        seen = []
        bus.once("custom", lambda env: seen.append(env.payload))
        bus.emit("custom", "a")
        bus.emit("custom", "b")
        assert seen == ["a"]
        assert bus.handler_count("custom") == 0

    def test_buses_are_independent(self):
        first, second = EventBus(), EventBus()
        seen = []
        first.subscribe("custom", seen.append)
        second.emit("custom")
        assert seen == []


class TestEmit:
    def test_delivers_in_registration_order(self, bus):
        order = []
        bus.subscribe("custom", lambda env: order.append("a"))
        bus.subscribe("custom", lambda env: order.append("b"))
        bus.subscribe("custom", lambda env: order.append("c"))
        bus.emit("custom")
        assert order == ["a", "b", "c"]

    def test_delivery_uses_handler_snapshot(self, bus):
        order = []

        def late(env):
            order.append("late")

        def first(env):
            order.append("first")
            bus.subscribe("custom", late)

        bus.subscribe("custom", first)
        bus.emit("custom")
        assert order == ["first"]
        bus.emit("custom")
        assert order == ["first", "first", "late"]

    def test_unsubscribe_during_delivery_keeps_current_round(self, bus):
        order = []
        removers = {}

        def first(env):
            order.append("first")
            removers["second"]()

        bus.subscribe("custom", first)
        removers["second"] = bus.subscribe("custom", lambda env: order.append("second"))
        bus.emit("custom")
        assert order == ["first", "second"]
        bus.emit("custom")
        assert order == ["first", "second", "first"]

    def test_handler_error_is_isolated(self, bus, caplog):
        seen = []

        def broken(env):
            raise RuntimeError("boom")

        bus.subscribe("custom", broken)
        bus.subscribe("custom", seen.append)
        with caplog.at_level(logging.ERROR, logger="event_assistant.bus"):
            envelope = bus.emit("custom", 42)
        assert seen == [envelope]
        assert "failed for custom" in caplog.text

    def test_payload_validated_into_model(self, bus):
        received = []
        bus.subscribe(AssistantEvent.SELECT_ITEM, received.append)
        envelope = bus.emit(
            AssistantEvent.SELECT_ITEM,
            {"item": {"id": "m1", "markerData": {"title": "Jazz Night", "isVerified": True}}},
            source="test",
        )
        assert received == [envelope]
        assert isinstance(envelope.payload, SelectItemPayload)
        assert envelope.payload.item.data.is_verified is True
        assert envelope.source == "test"
        assert envelope.timestamp > 0

    def test_model_instance_passes_through(self, bus):
        payload = ActionPressedPayload(action="search")
        assert bus.emit(AssistantEvent.ACTION_PRESSED, payload).payload is payload

    def test_empty_payload_events(self, bus):
        envelope = bus.emit(AssistantEvent.VIEWPORT_CHANGING)
        assert isinstance(envelope.payload, EmptyPayload)

    def test_unregistered_type_passes_payload_through(self, bus):
        assert bus.emit("custom", {"anything": 1}).payload == {"anything": 1}

    def test_invalid_payload_raises(self, bus):
        seen = []
        bus.subscribe(AssistantEvent.SELECT_ITEM, seen.append)
        with pytest.raises(EventPayloadError) as exc_info:
            bus.emit(AssistantEvent.SELECT_ITEM, {"item": {"title": "no id"}})
        assert exc_info.value.code == "event_payload_error"
        assert exc_info.value.details["errors"]
        assert seen == []


class TestAsyncHandlers:
    @pytest.mark.asyncio
    async def test_coroutine_handler_is_scheduled(self, bus):
        seen = []

        async def handler(env):
            await asyncio.sleep(0)
            seen.append(env.payload)

        bus.subscribe("custom", handler)
        bus.emit("custom", "x")
        assert seen == []
        await asyncio.sleep(0.01)
        assert seen == ["x"]

    @pytest.mark.asyncio
    async def test_coroutine_handler_error_is_logged(self, bus, caplog):
        async def handler(env):
            raise ValueError("bad")

        bus.subscribe("custom", handler)
        with caplog.at_level(logging.ERROR, logger="event_assistant.bus"):
            bus.emit("custom")
            await asyncio.sleep(0.01)
        assert "Async handler failed" in caplog.text

    @pytest.mark.asyncio
    async def test_clear_cancels_pending_handlers(self, bus):
        seen = []

        async def handler(env):
            await asyncio.sleep(0.05)
            seen.append(env)

        bus.subscribe("custom", handler)
        bus.emit("custom")
        bus.clear()
        await asyncio.sleep(0.08)
        assert seen == []
        assert bus.handler_count("custom") == 0
