"""
Plugin registry for fmshell.

This module provides the central registry for active plugins. Every plugin
is a command: the registry owns the name-to-plugin map and the per-plugin
metadata, drives the ``on_load``/``on_unload`` lifecycle, and routes command
invocations through the sandbox.

Registry Features:
    - Registration with duplicate, compatibility and dependency checks
    - Transactional ``on_load`` (a failing hook leaves no trace)
    - Batch loading in dependency order
    - Enable/disable without unloading
    - Call and error accounting

Example:
    from fmshell.plugins import EventBus, PluginContextFactory, PluginRegistry, PluginSandbox

    factory = PluginContextFactory(fs, EventBus())
    registry = PluginRegistry(PluginSandbox(), factory)

    await registry.load_from_directory("./plugins")
    await registry.execute_command("wordcount", ["notes.txt"])
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Sequence

from fmshell import __version__
from fmshell.plugins.context import PluginContextFactory
from fmshell.plugins.dependencies import DependencyResolver
from fmshell.plugins.errors import (
    DependencyError,
    DependentsExistError,
    DuplicateRegistrationError,
    IncompatiblePluginError,
    MissingDependencyError,
    PluginDisabledError,
    PluginLoadError,
    UnknownCommandError,
)
from fmshell.plugins.loader import PluginLoader
from fmshell.plugins.sandbox import PluginSandbox
from fmshell.plugins.sdk import Plugin, PluginMetadata, PluginType

logger = logging.getLogger(__name__)

# Lifecycle events published on the shared bus
PLUGIN_REGISTERED = "plugin:registered"
PLUGIN_UNREGISTERED = "plugin:unregistered"


async def _call_hook(hook: Callable[..., Any], context: Any) -> None:
    result = hook(context)
    if inspect.isawaitable(result):
        await result


class PluginRegistry:
    """Central registry for active plugins.

    Attributes:
        _plugins: Registered plugins by name, in registration order.
        _metadata: Metadata of each registered plugin.
        _sandbox: Executes command handlers.
        _contexts: Builds per-invocation contexts and owns plugin state.
        _loader: Imports plugins from files, directories and packages.
        _lock: Serialises registration and unregistration.
    """

    def __init__(
        self,
        sandbox: PluginSandbox,
        context_factory: PluginContextFactory,
        loader: PluginLoader | None = None,
        app_version: str = __version__,
    ):
        """Initialize the plugin registry.

        Args:
            sandbox: Sandbox used for every command invocation.
            context_factory: Factory for plugin contexts.
            loader: Plugin loader. Defaults to a fresh one.
            app_version: Version plugins are checked against.
        """
        self._sandbox = sandbox
        self._contexts = context_factory
        self._loader = loader or PluginLoader()
        self._resolver = DependencyResolver()
        self._app_version = app_version
        self._plugins: dict[str, Plugin] = {}
        self._metadata: dict[str, PluginMetadata] = {}
        self._lock = asyncio.Lock()

    @property
    def loader(self) -> PluginLoader:
        return self._loader

    @property
    def sandbox(self) -> PluginSandbox:
        return self._sandbox

    @property
    def context_factory(self) -> PluginContextFactory:
        return self._contexts

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def register(self, plugin: Plugin, *, skip_dependency_check: bool = False) -> None:
        """Register a plugin and run its ``on_load`` hook.

        Args:
            plugin: The plugin to register.
            skip_dependency_check: Skip the registered-dependency check; used
                by batch loading, which resolves the batch up front.

        Raises:
            DuplicateRegistrationError: If the name is already registered.
            IncompatiblePluginError: If the plugin does not support this
                fmshell version.
            MissingDependencyError: If a dependency is not registered.
            PluginLoadError: If ``on_load`` failed; nothing is left behind.
        """
        async with self._lock:
            name = plugin.name
            if name in self._plugins:
                raise DuplicateRegistrationError(name)

            if not plugin.is_compatible(self._app_version):
                bounds = f">={plugin.min_app_version or '*'}, <={plugin.max_app_version or '*'}"
                raise IncompatiblePluginError(name, self._app_version, f"requires {bounds}")

            if not skip_dependency_check:
                for dep in plugin.dependencies:
                    if dep not in self._plugins:
                        raise MissingDependencyError(name, dep)

            self._plugins[name] = plugin
            self._metadata[name] = PluginMetadata.for_plugin(plugin)

            if plugin.on_load is not None:
                try:
                    await _call_hook(plugin.on_load, self._contexts.create_context(name))
                except Exception as e:
                    self._purge(name)
                    logger.error(f"on_load failed for plugin {name}: {e}")
                    raise PluginLoadError(name, f"on_load failed: {e}", e) from e
                except BaseException:
                    # Cancelled or interrupted mid-hook
                    self._purge(name)
                    logger.warning(f"on_load interrupted for plugin {name}, registration rolled back")
                    raise

            logger.info(f"Registered plugin: {name} v{plugin.version} (type: {plugin.type.value})")

        await self._contexts.event_bus.emit(
            PLUGIN_REGISTERED, {"name": name, "version": plugin.version}
        )

    async def unregister(self, name: str) -> None:
        """Run a plugin's ``on_unload`` hook and remove it.

        Raises:
            UnknownCommandError: If no plugin has that name.
            DependentsExistError: If registered plugins depend on it.
        """
        async with self._lock:
            plugin = self._plugins.get(name)
            if plugin is None:
                raise UnknownCommandError(name)

            dependents = self.get_dependents(name)
            if dependents:
                raise DependentsExistError(name, dependents)

            if plugin.on_unload is not None:
                try:
                    await _call_hook(plugin.on_unload, self._contexts.create_context(name))
                except Exception as e:
                    logger.error(f"on_unload failed for plugin {name}: {e}")
                    logger.debug("on_unload traceback", exc_info=True)

            self._purge(name)
            self._loader.unload(name)
            logger.info(f"Unregistered plugin: {name}")

        await self._contexts.event_bus.emit(PLUGIN_UNREGISTERED, {"name": name})

    def _purge(self, name: str) -> None:
        self._plugins.pop(name, None)
        self._metadata.pop(name, None)
        self._contexts.clear_plugin_state(name)

    # =========================================================================
    # Loading
    # =========================================================================

    async def load_from_directory(self, dir_path: str | Path) -> list[Plugin]:
        """Load and register every plugin file in a directory.

        The batch is checked as a whole before anything is registered:
        names already registered and dependency defects abort the batch.
        Plugins are then registered in dependency order.

        Args:
            dir_path: Directory holding ``*.plugin.py`` files.

        Returns:
            The registered plugins, in registration order.

        Raises:
            DuplicateRegistrationError: If a plugin name is already registered.
            DependencyError: If the batch has missing or circular dependencies.
        """
        batch = self._loader.load_from_directory(dir_path)

        try:
            for plugin in batch:
                if plugin.name in self._plugins:
                    raise DuplicateRegistrationError(plugin.name)

            errors = self._resolver.validate_dependencies(batch, available=self._plugins)
            if errors:
                raise DependencyError("; ".join(errors))

            ordered = self._resolver.resolve_dependencies(batch, available=self._plugins)
            for plugin in ordered:
                await self.register(plugin, skip_dependency_check=True)
        except BaseException:
            self._discard(batch)
            raise

        logger.info(f"Registered {len(ordered)} plugins from {dir_path}")
        return ordered

    async def load_from_file(self, file_path: str | Path) -> Plugin:
        """Load a single plugin file and register it."""
        plugin = self._loader.load_from_file(file_path)
        await self._register_loaded(plugin)
        return plugin

    async def load_from_package(self, package_name: str) -> Plugin:
        """Load an installed ``fm_plugin_*`` package and register it."""
        plugin = self._loader.load_from_package(package_name)
        await self._register_loaded(plugin)
        return plugin

    async def _register_loaded(self, plugin: Plugin) -> None:
        try:
            await self.register(plugin)
        except BaseException:
            self._discard([plugin])
            raise

    def _discard(self, plugins: Sequence[Plugin]) -> None:
        """Evict loaded plugins that did not make it into the registry."""
        for plugin in plugins:
            if self._plugins.get(plugin.name) is plugin:
                continue
            if self._loader.get_cached(plugin.name) is plugin:
                self._loader.unload(plugin.name)

    # =========================================================================
    # Invocation
    # =========================================================================

    async def execute_command(
        self,
        name: str,
        args: Sequence[str],
        *,
        retries: int | None = None,
    ) -> Any:
        """Run a plugin command through the sandbox.

        Args:
            name: Plugin (command) name.
            args: Command arguments.
            retries: Total attempts; a single attempt when omitted.

        Raises:
            UnknownCommandError: If no plugin has that name.
            PluginDisabledError: If the plugin is disabled.
            ExecutionTimeoutError: If the handler timed out.
            ExecutionFailedError: If the handler raised.
        """
        plugin = self._plugins.get(name)
        if plugin is None:
            raise UnknownCommandError(name)

        metadata = self._metadata[name]
        if not metadata.enabled:
            raise PluginDisabledError(name)

        context = self._contexts.create_context(name)
        metadata.call_count += 1
        try:
            if retries is None:
                return await self._sandbox.execute(plugin, args, context)
            return await self._sandbox.execute_with_retry(
                plugin, args, context, max_retries=retries
            )
        except Exception:
            metadata.error_count += 1
            raise
        finally:
            # A plugin never leaves the shell blocked on a prompt it abandoned
            self._contexts.set_awaiting_answer(False)

    def enable_plugin(self, name: str) -> bool:
        """Enable a plugin.

        Returns:
            True if the plugin exists.
        """
        metadata = self._metadata.get(name)
        if metadata is None:
            return False
        metadata.enabled = True
        logger.info(f"Enabled plugin: {name}")
        return True

    def disable_plugin(self, name: str) -> bool:
        """Disable a plugin without unloading it.

        Returns:
            True if the plugin exists.
        """
        metadata = self._metadata.get(name)
        if metadata is None:
            return False
        metadata.enabled = False
        logger.info(f"Disabled plugin: {name}")
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def get_plugin(self, name: str) -> Plugin | None:
        return self._plugins.get(name)

    def get_metadata(self, name: str) -> PluginMetadata | None:
        return self._metadata.get(name)

    def get_all_plugins(self) -> list[Plugin]:
        return list(self._plugins.values())

    def get_plugins_by_type(self, plugin_type: PluginType | str) -> list[Plugin]:
        wanted = PluginType(plugin_type)
        return [p for p in self._plugins.values() if p.type is wanted]

    def has_plugin(self, name: str) -> bool:
        return name in self._plugins

    def get_dependents(self, name: str) -> list[str]:
        """Names of registered plugins that declare ``name`` as a dependency."""
        return [p.name for p in self._plugins.values() if name in p.dependencies]

    def get_statistics(self) -> dict[str, Any]:
        """Get registry statistics.

        Returns:
            Dictionary with plugin counts and sandbox statistics.
        """
        by_type = {t.value: 0 for t in PluginType}
        for plugin in self._plugins.values():
            by_type[plugin.type.value] += 1

        return {
            "total_plugins": len(self._plugins),
            "enabled": sum(1 for m in self._metadata.values() if m.enabled),
            "by_type": by_type,
            "total_calls": sum(m.call_count for m in self._metadata.values()),
            "total_errors": sum(m.error_count for m in self._metadata.values()),
            "sandbox": self._sandbox.get_execution_stats(),
        }

    def __repr__(self) -> str:
        return f"<PluginRegistry plugins={len(self._plugins)} app_version={self._app_version}>"
