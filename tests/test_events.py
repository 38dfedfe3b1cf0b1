"""Tests for fmshell.plugins.events - the event bus."""

from __future__ import annotations

import asyncio

import pytest

from fmshell.plugins.events import DEFAULT_HISTORY_SIZE, EventBus


class TestSubscriptions:
    """Tests for on/once/off bookkeeping."""

    def test_on_and_off(self, bus):
        def handler(event):
            return None

        bus.on("saved", handler)
        assert bus.listener_count("saved") == 1

        assert bus.off("saved", handler) is True
        assert bus.listener_count("saved") == 0
        assert bus.off("saved", handler) is False

    def test_duplicate_subscription_is_ignored(self, bus):
        def handler(event):
            return None

        bus.on("saved", handler)
        bus.on("saved", handler)

        assert bus.listener_count("saved") == 1

    def test_non_callable_rejected(self, bus):
        with pytest.raises(TypeError):
            bus.on("saved", "not a handler")

    def test_remove_all_listeners(self, bus):
        bus.on("a", lambda e: None)
        bus.on("b", lambda e: None)

        bus.remove_all_listeners("a")
        assert bus.event_names() == ["b"]

        bus.remove_all_listeners()
        assert bus.event_names() == []


class TestEmit:
    """Tests for event delivery."""

    @pytest.mark.asyncio
    async def test_emit_without_listeners_is_recorded(self, bus):
        event = await bus.emit("lonely", {"n": 1}, source="tester")

        assert event.name == "lonely"
        assert event.source == "tester"
        assert bus.get_history() == [event]

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers_receive_event(self, bus):
        received = []

        def sync_handler(event):
            received.append(("sync", event.data))

        async def async_handler(event):
            await asyncio.sleep(0)
            received.append(("async", event.data))

        bus.on("saved", sync_handler)
        bus.on("saved", async_handler)

        await bus.emit("saved", "notes.txt")

        assert sorted(received) == [("async", "notes.txt"), ("sync", "notes.txt")]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_affect_others(self, bus):
        received = []

        def bad(event):
            raise RuntimeError("boom")

        async def also_bad(event):
            raise ValueError("kaboom")

        def good(event):
            received.append(event.name)

        bus.on("saved", bad)
        bus.on("saved", also_bad)
        bus.on("saved", good)

        event = await bus.emit("saved")

        assert received == ["saved"]
        assert event.name == "saved"

    @pytest.mark.asyncio
    async def test_emit_waits_for_handlers(self, bus):
        done = []

        async def slow(event):
            await asyncio.sleep(0.01)
            done.append(True)

        bus.on("tick", slow)
        await bus.emit("tick")

        assert done == [True]

    @pytest.mark.asyncio
    async def test_once_handler_fires_once(self, bus):
        calls = []
        bus.once("ready", lambda e: calls.append(e.data))

        await bus.emit("ready", 1)
        await bus.emit("ready", 2)

        assert calls == [1]
        assert bus.listener_count("ready") == 0

    @pytest.mark.asyncio
    async def test_other_events_not_delivered(self, bus):
        calls = []
        bus.on("a", lambda e: calls.append(e.name))

        await bus.emit("b")

        assert calls == []


class TestHistory:
    """Tests for the bounded event history."""

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        bus = EventBus()
        for i in range(DEFAULT_HISTORY_SIZE + 20):
            await bus.emit("tick", i)

        history = bus.get_history()

        assert len(history) == DEFAULT_HISTORY_SIZE == 100
        assert history[0].data == 20
        assert history[-1].data == DEFAULT_HISTORY_SIZE + 19

    @pytest.mark.asyncio
    async def test_history_limit(self, bus):
        for i in range(5):
            await bus.emit("tick", i)

        assert [e.data for e in bus.get_history(limit=2)] == [3, 4]
        assert bus.get_history(limit=0) == []

    @pytest.mark.asyncio
    async def test_clear_history(self, bus):
        await bus.emit("tick")
        bus.clear_history()
        assert bus.get_history() == []

    @pytest.mark.asyncio
    async def test_custom_history_size(self):
        bus = EventBus(history_size=3)
        for i in range(5):
            await bus.emit("tick", i)
        assert [e.data for e in bus.get_history()] == [2, 3, 4]
