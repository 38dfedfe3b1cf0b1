"""Meta commands: help and exit."""

from __future__ import annotations

from rich.markup import escape

from fmshell.commands.base import ShellContext, register_command
from fmshell.plugins.sdk import PluginType

TYPE_LABELS = {
    PluginType.META: "Meta",
    PluginType.NAVIGATION: "Navigation",
    PluginType.DIRECTORY: "Directory",
    PluginType.FILE: "File",
    PluginType.OTHER: "Other",
}


def collect_entries(ctx: ShellContext) -> dict[PluginType, list[tuple[str, str]]]:
    """Group built-ins and registered plugins by command type.

    Catalogue entries win over a plugin of the same name.
    """
    groups: dict[PluginType, list[tuple[str, str]]] = {t: [] for t in PluginType}
    seen: set[str] = set()

    for name, info in ctx.catalogue.items():
        groups[info.type].append((name, info.description))
        seen.add(name)

    for plugin in ctx.registry.get_all_plugins():
        if plugin.name in seen:
            continue
        description = plugin.description
        metadata = ctx.registry.get_metadata(plugin.name)
        if metadata is not None and not metadata.enabled:
            description = f"{description} (disabled)"
        groups[plugin.type].append((plugin.name, description))

    for entries in groups.values():
        entries.sort()
    return groups


@register_command("help")
def help_command(args: list[str], ctx: ShellContext) -> None:
    groups = collect_entries(ctx)
    width = max((len(name) for entries in groups.values() for name, _ in entries), default=0)
    out = ctx.console

    out.print()
    out.print("[bold cyan]File Manager - Help[/bold cyan]")
    out.print("[dim]Usage:[/dim] fm> <command> \\[args]")
    out.print()

    for plugin_type in PluginType:
        entries = groups[plugin_type]
        if not entries:
            continue
        out.print(f"[bold magenta]› {TYPE_LABELS[plugin_type]} commands[/bold magenta]")
        for name, description in entries:
            out.print(f"  [cyan]{escape(name.ljust(width))}[/cyan]  [dim]{escape(description or '-')}[/dim]")
        out.print()

    out.print("[dim]Tip: type[/dim] [yellow]help[/yellow] [dim]to show this menu again, or[/dim] "
              "[yellow]exit[/yellow] [dim]to quit.[/dim]")


@register_command("exit")
def exit_command(args: list[str], ctx: ShellContext) -> None:
    ctx.console.print("[green]Exiting the program...[/green]")
    if ctx.shell is not None:
        ctx.shell.stop()
