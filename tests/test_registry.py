"""Tests for fmshell.plugins.registry."""

from __future__ import annotations

import asyncio

import pytest

from fmshell.plugins.context import PluginContextFactory
from fmshell.plugins.errors import (
    DependentsExistError,
    DuplicateRegistrationError,
    ExecutionFailedError,
    IncompatiblePluginError,
    MissingDependencyError,
    PluginDisabledError,
    PluginLoadError,
    UnknownCommandError,
)
from fmshell.plugins.registry import PLUGIN_REGISTERED, PLUGIN_UNREGISTERED, PluginRegistry
from fmshell.plugins.sdk import PluginType


# ===========================================================================
# Registration
# ===========================================================================

class TestRegister:
    """Tests for PluginRegistry.register."""

    @pytest.mark.asyncio
    async def test_register(self, registry, make_plugin):
        plugin = make_plugin("hello")

        await registry.register(plugin)

        assert registry.has_plugin("hello")
        assert registry.get_plugin("hello") is plugin
        metadata = registry.get_metadata("hello")
        assert metadata.enabled and metadata.loaded
        assert metadata.call_count == 0

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, registry, make_plugin):
        await registry.register(make_plugin("hello"))
        with pytest.raises(DuplicateRegistrationError):
            await registry.register(make_plugin("hello"))

    @pytest.mark.asyncio
    async def test_missing_dependency_rejected(self, registry, make_plugin):
        with pytest.raises(MissingDependencyError):
            await registry.register(make_plugin("child", dependencies=("parent",)))
        assert not registry.has_plugin("child")

    @pytest.mark.asyncio
    async def test_registered_dependency_satisfies(self, registry, make_plugin):
        await registry.register(make_plugin("parent"))
        await registry.register(make_plugin("child", dependencies=("parent",)))
        assert registry.get_dependents("parent") == ["child"]

    @pytest.mark.asyncio
    async def test_incompatible_rejected(self, factory, sandbox, make_plugin):
        registry = PluginRegistry(sandbox, factory, app_version="1.0.0")

        with pytest.raises(IncompatiblePluginError, match="requires >=2.0.0"):
            await registry.register(make_plugin("future", min_app_version="2.0.0"))
        with pytest.raises(IncompatiblePluginError):
            await registry.register(make_plugin("legacy", max_app_version="0.9"))

        await registry.register(make_plugin("current", min_app_version="0.5", max_app_version="1.0.0"))
        assert [p.name for p in registry.get_all_plugins()] == ["current"]

    @pytest.mark.asyncio
    async def test_on_load_receives_context(self, registry, make_plugin):
        seen = []

        async def on_load(context):
            seen.append(context.plugin_name)
            context.set_state("loaded", True)

        await registry.register(make_plugin("hooked", on_load=on_load))

        assert seen == ["hooked"]
        assert registry.context_factory.get_plugin_state("hooked") == {"loaded": True}

    @pytest.mark.asyncio
    async def test_failing_on_load_leaves_nothing_behind(self, registry, bus, make_plugin):
        def on_load(context):
            context.set_state("half", "done")
            context.on("tick", lambda e: None)
            raise RuntimeError("cannot start")

        with pytest.raises(PluginLoadError, match="on_load failed: cannot start"):
            await registry.register(make_plugin("fragile", on_load=on_load))

        assert not registry.has_plugin("fragile")
        assert registry.get_metadata("fragile") is None
        assert registry.context_factory.get_plugin_state("fragile") == {}
        assert bus.listener_count("tick") == 0
        assert all(e.name != PLUGIN_REGISTERED for e in bus.get_history())

        # The name is free again
        await registry.register(make_plugin("fragile"))

    @pytest.mark.asyncio
    async def test_cancelled_on_load_leaves_nothing_behind(self, registry, bus, make_plugin):
        started = asyncio.Event()

        async def on_load(context):
            context.set_state("half", "done")
            started.set()
            await asyncio.sleep(5)

        task = asyncio.create_task(registry.register(make_plugin("slow", on_load=on_load)))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert not registry.has_plugin("slow")
        assert registry.get_metadata("slow") is None
        assert registry.context_factory.get_plugin_state("slow") == {}
        assert all(e.name != PLUGIN_REGISTERED for e in bus.get_history())

        await registry.register(make_plugin("slow"))

    @pytest.mark.asyncio
    async def test_registration_emits_event(self, registry, bus, make_plugin):
        await registry.register(make_plugin("hello"))

        events = bus.get_history()
        assert [e.name for e in events] == [PLUGIN_REGISTERED]
        assert events[0].data == {"name": "hello", "version": "1.0.0"}

    @pytest.mark.asyncio
    async def test_concurrent_registration_of_same_name(self, registry, make_plugin):
        """Test that exactly one of two racing registrations wins."""
        async def slow_load(context):
            await asyncio.sleep(0.01)

        results = await asyncio.gather(
            registry.register(make_plugin("racer", on_load=slow_load)),
            registry.register(make_plugin("racer", on_load=slow_load)),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], DuplicateRegistrationError)
        assert len(registry.get_all_plugins()) == 1


# ===========================================================================
# Unregistration
# ===========================================================================

class TestUnregister:
    """Tests for PluginRegistry.unregister."""

    @pytest.mark.asyncio
    async def test_unregister(self, registry, bus, make_plugin):
        unloaded = []
        await registry.register(make_plugin("bye", on_unload=lambda ctx: unloaded.append(ctx.plugin_name)))

        await registry.unregister("bye")

        assert unloaded == ["bye"]
        assert not registry.has_plugin("bye")
        assert bus.get_history()[-1].name == PLUGIN_UNREGISTERED

    @pytest.mark.asyncio
    async def test_unknown_rejected(self, registry):
        with pytest.raises(UnknownCommandError):
            await registry.unregister("ghost")

    @pytest.mark.asyncio
    async def test_dependents_block_unregister(self, registry, make_plugin):
        await registry.register(make_plugin("base"))
        await registry.register(make_plugin("app", dependencies=("base",)))

        with pytest.raises(DependentsExistError, match="required by app"):
            await registry.unregister("base")

        assert registry.has_plugin("base")
        assert registry.has_plugin("app")

        await registry.unregister("app")
        await registry.unregister("base")
        assert registry.get_all_plugins() == []

    @pytest.mark.asyncio
    async def test_failing_on_unload_still_removes(self, registry, make_plugin):
        def on_unload(context):
            raise RuntimeError("cleanup failed")

        await registry.register(make_plugin("messy", on_unload=on_unload))
        await registry.unregister("messy")

        assert not registry.has_plugin("messy")

    @pytest.mark.asyncio
    async def test_unregister_clears_state_and_subscriptions(self, registry, bus, make_plugin):
        def on_load(context):
            context.set_state("k", "v")
            context.on("tick", lambda e: None)

        await registry.register(make_plugin("listener", on_load=on_load))
        assert bus.listener_count("tick") == 1

        await registry.unregister("listener")

        assert bus.listener_count("tick") == 0
        assert registry.context_factory.get_plugin_state("listener") == {}


# ===========================================================================
# Invocation
# ===========================================================================

class TestExecuteCommand:
    """Tests for routing commands to plugins."""

    @pytest.mark.asyncio
    async def test_execute_counts_calls(self, registry, make_plugin):
        async def run(args, context):
            return args

        await registry.register(make_plugin("echo-args", execute=run))

        assert await registry.execute_command("echo-args", ["x"]) == ["x"]
        assert registry.get_metadata("echo-args").call_count == 1
        assert registry.get_metadata("echo-args").error_count == 0

    @pytest.mark.asyncio
    async def test_execute_counts_errors(self, registry, make_plugin):
        def broken(args, context):
            raise ValueError("nope")

        await registry.register(make_plugin("broken", execute=broken))

        with pytest.raises(ExecutionFailedError):
            await registry.execute_command("broken", [])

        metadata = registry.get_metadata("broken")
        assert metadata.call_count == 1
        assert metadata.error_count == 1

    @pytest.mark.asyncio
    async def test_execute_with_retries(self, registry, make_plugin):
        attempts = []

        async def flaky(args, context):
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("first try")

        await registry.register(make_plugin("flaky", execute=flaky))
        await registry.execute_command("flaky", [], retries=2)

        assert len(attempts) == 2
        assert registry.get_metadata("flaky").error_count == 0

    @pytest.mark.asyncio
    async def test_unknown_command(self, registry):
        with pytest.raises(UnknownCommandError):
            await registry.execute_command("ghost", [])

    @pytest.mark.asyncio
    async def test_disabled_plugin_rejected(self, registry, make_plugin):
        await registry.register(make_plugin("sleeper"))

        assert registry.disable_plugin("sleeper") is True
        with pytest.raises(PluginDisabledError):
            await registry.execute_command("sleeper", [])
        assert registry.get_metadata("sleeper").call_count == 0

        assert registry.enable_plugin("sleeper") is True
        await registry.execute_command("sleeper", [])
        assert registry.get_metadata("sleeper").call_count == 1

    def test_enable_unknown_returns_false(self, registry):
        assert registry.enable_plugin("ghost") is False
        assert registry.disable_plugin("ghost") is False

    @pytest.mark.asyncio
    async def test_state_persists_between_calls(self, registry, make_plugin):
        def count(args, context):
            context.set_state("n", context.get_state("n", 0) + 1)
            return context.get_state("n")

        await registry.register(make_plugin("counter", execute=count))

        assert await registry.execute_command("counter", []) == 1
        assert await registry.execute_command("counter", []) == 2

    @pytest.mark.asyncio
    async def test_sync_plugin_emits_events(self, registry, bus, make_plugin):
        def publish(args, context):
            context.emit_sync("sync-event", {"x": 1})

        await registry.register(make_plugin("publisher", execute=publish))

        await registry.execute_command("publisher", [])

        event = bus.get_history()[-1]
        assert (event.name, event.data, event.source) == ("sync-event", {"x": 1}, "publisher")

    @pytest.mark.asyncio
    async def test_pending_prompt_flag_reset_after_failure(self, sandbox, fs, bus, make_plugin):
        flags = []
        registry = PluginRegistry(sandbox, PluginContextFactory(fs, bus, awaiting_answer=flags.append))

        def asks_then_fails(args, context):
            context.set_awaiting_answer(True)
            raise RuntimeError("gave up")

        await registry.register(make_plugin("asker", execute=asks_then_fails))

        with pytest.raises(ExecutionFailedError):
            await registry.execute_command("asker", [])

        assert flags == [True, False]


# ===========================================================================
# Queries
# ===========================================================================

class TestQueries:
    """Tests for lookup and statistics."""

    @pytest.mark.asyncio
    async def test_plugins_by_type(self, registry, make_plugin):
        await registry.register(make_plugin("lister", plugin_type=PluginType.DIRECTORY))
        await registry.register(make_plugin("reader", plugin_type=PluginType.FILE))

        assert [p.name for p in registry.get_plugins_by_type(PluginType.FILE)] == ["reader"]
        assert [p.name for p in registry.get_plugins_by_type("directory")] == ["lister"]
        assert registry.get_plugins_by_type("meta") == []

    @pytest.mark.asyncio
    async def test_statistics(self, registry, make_plugin):
        def broken(args, context):
            raise ValueError("nope")

        await registry.register(make_plugin("ok", plugin_type=PluginType.FILE))
        await registry.register(make_plugin("bad", execute=broken))
        registry.disable_plugin("ok")
        with pytest.raises(ExecutionFailedError):
            await registry.execute_command("bad", [])

        stats = registry.get_statistics()

        assert stats["total_plugins"] == 2
        assert stats["enabled"] == 1
        assert stats["by_type"]["file"] == 1
        assert stats["by_type"]["other"] == 1
        assert stats["total_calls"] == 1
        assert stats["total_errors"] == 1
        assert stats["sandbox"]["failure_count"] == 1
