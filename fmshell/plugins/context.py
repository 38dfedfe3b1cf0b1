"""
Per-invocation capability bundles for plugins.

A ``PluginContext`` is what a plugin receives next to its arguments. It
exposes the sandboxed filesystem, a logger prefixed with the plugin name,
a read-only view of the application configuration, the shared event bus
(emits are tagged with the plugin as source), per-plugin key-value state that
survives across invocations, per-plugin configuration, and interactive
prompts routed through the shell.

Synchronous handlers run on an executor thread and cannot await. They use
``emit_sync`` and ``ask_sync``, which hand the coroutine to the event loop the
context was created on and block until it completes.

The ``PluginContextFactory`` owns the per-plugin state and configuration maps
and is their only mutator.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable

from fmshell.plugins.events import EventBus, EventHandler
from fmshell.plugins.sdk import PluginEvent
from fmshell.security.filesystem import SandboxedFileSystem

logger = logging.getLogger(__name__)

# Reads one answer given a prompt
AskHandler = Callable[[str], Awaitable[str]]


class PluginLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the plugin name."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        return f"[{self.extra['plugin']}] {msg}", kwargs


@dataclass(frozen=True)
class PluginContext:
    """Capabilities handed to a plugin invocation.

    Attributes:
        plugin_name: The plugin this context was built for.
        fs: Sandboxed filesystem capability.
        logger: Logger prefixed with the plugin name.
        config: Read-only application configuration.
        loop: Event loop the context was created on, if any.
    """

    plugin_name: str
    fs: SandboxedFileSystem
    logger: logging.LoggerAdapter
    config: Mapping[str, Any]
    _factory: "PluginContextFactory"
    loop: asyncio.AbstractEventLoop | None = None

    async def emit(self, name: str, data: Any = None) -> PluginEvent:
        """Publish an event with this plugin as the source."""
        return await self._factory.event_bus.emit(name, data, source=self.plugin_name)

    def emit_sync(self, name: str, data: Any = None) -> PluginEvent:
        """``emit`` for synchronous handlers running off the event loop."""
        return self._run_on_loop(lambda: self.emit(name, data))

    def on(self, name: str, handler: EventHandler) -> None:
        self._factory.subscribe(self.plugin_name, name, handler)

    def once(self, name: str, handler: EventHandler) -> None:
        self._factory.subscribe(self.plugin_name, name, handler, once=True)

    def off(self, name: str, handler: EventHandler) -> bool:
        return self._factory.unsubscribe(self.plugin_name, name, handler)

    def get_state(self, key: str, default: Any = None) -> Any:
        return self._factory.state_for(self.plugin_name).get(key, default)

    def set_state(self, key: str, value: Any) -> None:
        self._factory.state_for(self.plugin_name)[key] = value

    def delete_state(self, key: str) -> None:
        self._factory.state_for(self.plugin_name).pop(key, None)

    def get_plugin_config(self) -> Mapping[str, Any]:
        return self._factory.get_plugin_config(self.plugin_name)

    def set_awaiting_answer(self, waiting: bool) -> None:
        """Tell the shell the plugin is (or is no longer) blocked on a prompt."""
        self._factory.set_awaiting_answer(waiting)

    async def ask(self, question: str) -> str:
        """Prompt the user and return the answer.

        The shell's awaiting-answer flag is set while the prompt is open.
        Without an interactive shell the answer is empty.
        """
        return await self._factory.ask(question)

    def ask_sync(self, question: str) -> str:
        return self._run_on_loop(lambda: self.ask(question))

    async def confirm(self, question: str) -> bool:
        """Ask a yes/no question; anything but y/yes is a no."""
        answer = await self.ask(f"{question} [y/N] ")
        return answer.strip().lower() in ("y", "yes")

    def _run_on_loop(self, make_coro: Callable[[], Awaitable[Any]]) -> Any:
        if self.loop is None:
            raise RuntimeError(f"Context of plugin {self.plugin_name} is not bound to an event loop")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            raise RuntimeError("Blocking call from the event loop thread; await the async variant")
        return asyncio.run_coroutine_threadsafe(make_coro(), self.loop).result()


class PluginContextFactory:
    """Builds ``PluginContext`` objects and owns per-plugin state.

    Sync handlers may still be running on executor threads after a timeout,
    so the state and subscription maps are guarded by a lock.

    Example:
        factory = PluginContextFactory(fs, EventBus(), {"root": "/srv"})
        ctx = factory.create_context("wordcount")
        ctx.set_state("runs", ctx.get_state("runs", 0) + 1)
    """

    def __init__(
        self,
        filesystem: SandboxedFileSystem,
        event_bus: EventBus,
        app_config: Mapping[str, Any] | None = None,
        awaiting_answer: Callable[[bool], None] | None = None,
        ask: AskHandler | None = None,
    ):
        """Initialize the factory.

        Args:
            filesystem: Shared sandboxed filesystem capability.
            event_bus: Shared event bus.
            app_config: Application configuration snapshot.
            awaiting_answer: Callback toggling the shell's prompt flag.
            ask: Coroutine function prompting the user for one answer.
        """
        self._fs = filesystem
        self._bus = event_bus
        self._config = MappingProxyType(dict(app_config or {}))
        self._awaiting_answer = awaiting_answer
        self._ask = ask
        self._lock = threading.Lock()
        self._state: dict[str, dict[str, Any]] = {}
        self._plugin_config: dict[str, dict[str, Any]] = {}
        self._subscriptions: dict[str, list[tuple[str, EventHandler]]] = {}

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def filesystem(self) -> SandboxedFileSystem:
        return self._fs

    def set_awaiting_answer_callback(self, callback: Callable[[bool], None] | None) -> None:
        self._awaiting_answer = callback

    def set_ask_callback(self, callback: AskHandler | None) -> None:
        self._ask = callback

    def create_context(self, plugin_name: str) -> PluginContext:
        """Build a fresh context for one plugin invocation."""
        plugin_logger = PluginLoggerAdapter(
            logging.getLogger(f"fmshell.plugins.{plugin_name}"),
            {"plugin": plugin_name},
        )
        return PluginContext(
            plugin_name=plugin_name,
            fs=self._fs,
            logger=plugin_logger,
            config=self._config,
            _factory=self,
            loop=_running_loop(),
        )

    def state_for(self, plugin_name: str) -> dict[str, Any]:
        """Get (creating lazily) the mutable state map of a plugin."""
        with self._lock:
            return self._state.setdefault(plugin_name, {})

    def get_plugin_state(self, plugin_name: str) -> Mapping[str, Any]:
        with self._lock:
            return MappingProxyType(dict(self._state.get(plugin_name, {})))

    def set_plugin_config(self, plugin_name: str, config: Mapping[str, Any]) -> None:
        self._plugin_config[plugin_name] = dict(config)

    def get_plugin_config(self, plugin_name: str) -> Mapping[str, Any]:
        return MappingProxyType(self._plugin_config.get(plugin_name, {}))

    def subscribe(
        self,
        plugin_name: str,
        name: str,
        handler: EventHandler,
        once: bool = False,
    ) -> None:
        if once:
            self._bus.once(name, handler)
        else:
            self._bus.on(name, handler)
        with self._lock:
            self._subscriptions.setdefault(plugin_name, []).append((name, handler))

    def unsubscribe(self, plugin_name: str, name: str, handler: EventHandler) -> bool:
        with self._lock:
            subs = self._subscriptions.get(plugin_name, [])
            if (name, handler) in subs:
                subs.remove((name, handler))
        return self._bus.off(name, handler)

    def set_awaiting_answer(self, waiting: bool) -> None:
        if self._awaiting_answer is not None:
            self._awaiting_answer(waiting)

    async def ask(self, question: str) -> str:
        if self._ask is None:
            logger.debug(f"No interactive prompt, empty answer to: {question}")
            return ""
        return await self._ask(question)

    def clear_plugin_state(self, plugin_name: str) -> None:
        """Drop a plugin's state and its event subscriptions."""
        with self._lock:
            self._state.pop(plugin_name, None)
            subscriptions = self._subscriptions.pop(plugin_name, [])
        for name, handler in subscriptions:
            self._bus.off(name, handler)
        logger.debug(f"Cleared state for plugin: {plugin_name}")


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
