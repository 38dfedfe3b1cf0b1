"""The ``plugin`` meta command: inspect and manage plugins from the shell."""

from __future__ import annotations

import json

from fmshell.cli.output import print_info, print_json, print_key_value, print_success, print_table
from fmshell.commands.base import ShellContext, register_command
from fmshell.errors import UsageError
from fmshell.plugins.errors import PluginError

DEFAULT_EVENT_COUNT = 10
JSON_FLAG = "--json"


def _one_name(rest: list[str], ctx: ShellContext) -> str:
    if len(rest) != 1:
        raise UsageError(ctx.usage("plugin"))
    return rest[0]


def _describe(name: str, ctx: ShellContext) -> dict:
    plugin = ctx.registry.get_plugin(name)
    metadata = ctx.registry.get_metadata(name)
    if plugin is None or metadata is None:
        raise PluginError(f"No such plugin: {name}")
    return {
        **plugin.to_dict(),
        "dependents": ctx.registry.get_dependents(name),
        "metadata": metadata.to_dict(),
    }


def _list(ctx: ShellContext, as_json: bool = False) -> None:
    plugins = ctx.registry.get_all_plugins()
    if as_json:
        print_json([_describe(p.name, ctx) for p in plugins], out=ctx.console)
        return
    if not plugins:
        print_info("No plugins registered.", out=ctx.console)
        return

    rows = []
    for plugin in plugins:
        metadata = ctx.registry.get_metadata(plugin.name)
        rows.append([
            plugin.name,
            plugin.version,
            plugin.type.value,
            "enabled" if metadata and metadata.enabled else "disabled",
            str(metadata.call_count if metadata else 0),
            str(metadata.error_count if metadata else 0),
        ])
    print_table(
        "Plugins",
        ["Name", "Version", "Type", "Status", "Calls", "Errors"],
        rows,
        styles=["cyan", None, None, None, "dim", "dim"],
        out=ctx.console,
    )


def _info(name: str, ctx: ShellContext, as_json: bool = False) -> None:
    if as_json:
        print_json(_describe(name, ctx), out=ctx.console)
        return

    plugin = ctx.registry.get_plugin(name)
    metadata = ctx.registry.get_metadata(name)
    if plugin is None or metadata is None:
        raise PluginError(f"No such plugin: {name}")

    print_key_value(
        [
            ("Version", plugin.version),
            ("Type", plugin.type.value),
            ("Description", plugin.description),
            ("Author", plugin.author or "-"),
            ("Dependencies", ", ".join(plugin.dependencies) or "-"),
            ("Dependents", ", ".join(ctx.registry.get_dependents(name)) or "-"),
            ("Status", "enabled" if metadata.enabled else "disabled"),
            ("Loaded at", metadata.loaded_at.isoformat(timespec="seconds")),
            ("Calls", metadata.call_count),
            ("Errors", metadata.error_count),
            ("Source", plugin.source or "-"),
        ],
        title=plugin.name,
        out=ctx.console,
    )


def _events(rest: list[str], ctx: ShellContext, as_json: bool = False) -> None:
    if len(rest) > 1:
        raise UsageError(ctx.usage("plugin"))
    try:
        limit = int(rest[0]) if rest else DEFAULT_EVENT_COUNT
    except ValueError:
        raise UsageError(ctx.usage("plugin")) from None

    events = ctx.registry.context_factory.event_bus.get_history(limit)
    if as_json:
        print_json([event.to_dict() for event in events], out=ctx.console)
        return
    if not events:
        print_info("No events recorded.", out=ctx.console)
        return

    rows = [
        [
            event.timestamp.astimezone().strftime("%H:%M:%S"),
            event.name,
            event.source or "-",
            json.dumps(event.data, default=str) if event.data is not None else "",
        ]
        for event in events
    ]
    print_table("Events", ["Time", "Name", "Source", "Data"], rows, out=ctx.console)


@register_command("plugin")
async def plugin_command(args: list[str], ctx: ShellContext) -> None:
    if not args:
        raise UsageError(ctx.usage("plugin"))

    action = args[0]
    rest = [arg for arg in args[1:] if arg != JSON_FLAG]
    as_json = JSON_FLAG in args[1:]
    registry = ctx.registry

    if action == "list":
        _list(ctx, as_json)
    elif action == "info":
        _info(_one_name(rest, ctx), ctx, as_json)
    elif action == "load":
        path = ctx.fs.resolve(_one_name(rest, ctx))
        plugin = await registry.load_from_file(path)
        print_success(f"Loaded plugin: {plugin.name} v{plugin.version}", out=ctx.console)
    elif action == "load-dir":
        path = ctx.fs.resolve(_one_name(rest, ctx))
        plugins = await registry.load_from_directory(path)
        names = ", ".join(p.name for p in plugins) or "none"
        print_success(f"Loaded {len(plugins)} plugins: {names}", out=ctx.console)
    elif action == "unload":
        name = _one_name(rest, ctx)
        await registry.unregister(name)
        print_success(f"Unloaded plugin: {name}", out=ctx.console)
    elif action in ("enable", "disable"):
        name = _one_name(rest, ctx)
        toggle = registry.enable_plugin if action == "enable" else registry.disable_plugin
        if not toggle(name):
            raise PluginError(f"No such plugin: {name}")
        print_success(f"Plugin {name} {action}d", out=ctx.console)
    elif action == "events":
        _events(rest, ctx, as_json)
    else:
        raise UsageError(ctx.usage("plugin"))
