"""
Topic-based event bus shared by plugins and the core.

Handlers subscribe to free-form event names. ``emit`` records the event in a
bounded history and awaits every handler concurrently; a failing handler is
logged and never affects the other handlers or the emitter.

Synchronous plugin handlers run on executor threads and may subscribe or emit
from there, so the listener map and history are guarded by a lock.

Example:
    bus = EventBus()

    async def on_saved(event):
        print(f"{event.source} saved {event.data['path']}")

    bus.on("file:saved", on_saved)
    await bus.emit("file:saved", {"path": "notes.txt"}, source="autosave")
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

from fmshell.plugins.sdk import PluginEvent

logger = logging.getLogger(__name__)

# Type for event handlers; may return an awaitable
EventHandler = Callable[[PluginEvent], Any]

DEFAULT_HISTORY_SIZE = 100


@dataclass(eq=False)
class _Listener:
    handler: EventHandler
    once: bool = False


class EventBus:
    """Publish/subscribe hub with bounded history.

    Attributes:
        _listeners: Event name to ordered listeners.
        _history: Most recent events, oldest evicted first.
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        self._listeners: dict[str, list[_Listener]] = {}
        self._history: deque[PluginEvent] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def on(self, name: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event.

        Subscribing the same handler twice to one event has no effect.
        """
        self._add(name, handler, once=False)

    def once(self, name: str, handler: EventHandler) -> None:
        """Subscribe a handler that is removed after its first delivery."""
        self._add(name, handler, once=True)

    def _add(self, name: str, handler: EventHandler, once: bool) -> None:
        if not callable(handler):
            raise TypeError("Event handler must be callable")
        with self._lock:
            listeners = self._listeners.setdefault(name, [])
            if any(entry.handler == handler for entry in listeners):
                return
            listeners.append(_Listener(handler=handler, once=once))
        logger.debug(f"Subscribed {getattr(handler, '__name__', handler)!s} to '{name}'")

    def off(self, name: str, handler: EventHandler) -> bool:
        """Unsubscribe a handler.

        Returns:
            True if the handler was subscribed.
        """
        with self._lock:
            return self._remove(name, lambda entry: entry.handler == handler)

    def _remove(self, name: str, match: Callable[[_Listener], bool]) -> bool:
        # Caller holds the lock
        listeners = self._listeners.get(name)
        if not listeners:
            return False
        for entry in listeners:
            if match(entry):
                listeners.remove(entry)
                if not listeners:
                    del self._listeners[name]
                return True
        return False

    async def emit(self, name: str, data: Any = None, source: str | None = None) -> PluginEvent:
        """Publish an event and wait for every handler.

        Args:
            name: Event name.
            data: Event payload.
            source: Emitting plugin name.

        Returns:
            The recorded event.
        """
        event = PluginEvent(name=name, data=data, source=source)
        with self._lock:
            self._history.append(event)
            listeners = list(self._listeners.get(name, ()))
            for entry in listeners:
                if entry.once:
                    self._remove(name, lambda candidate, entry=entry: candidate is entry)

        if listeners:
            await asyncio.gather(*(self._deliver(entry.handler, event) for entry in listeners))
        return event

    async def _deliver(self, handler: EventHandler, event: PluginEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Event handler error for '{event.name}': {e}")
            logger.debug("Event handler traceback", exc_info=True)

    def get_history(self, limit: int | None = None) -> list[PluginEvent]:
        """Get recent events, oldest first.

        Args:
            limit: Maximum number of most recent events to return.
        """
        with self._lock:
            events = list(self._history)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, ()))

    def event_names(self) -> list[str]:
        with self._lock:
            return list(self._listeners)

    def remove_all_listeners(self, name: str | None = None) -> None:
        """Remove every listener, or only those of one event."""
        with self._lock:
            if name is None:
                self._listeners.clear()
            else:
                self._listeners.pop(name, None)

    def __repr__(self) -> str:
        total = sum(len(v) for v in self._listeners.values())
        return f"<EventBus events={len(self._listeners)} listeners={total} history={len(self._history)}>"
