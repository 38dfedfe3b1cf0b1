"""Directory commands: ls, mkdir, rmdir and tree."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rich.markup import escape

from fmshell.cli.output import format_size, print_info, print_success, print_tree
from fmshell.commands.base import ShellContext, register_command
from fmshell.errors import UsageError

DEFAULT_TREE_DEPTH = 3


@register_command("ls")
def ls(args: list[str], ctx: ShellContext) -> None:
    if len(args) > 1:
        raise UsageError(ctx.usage("ls"))
    entries = ctx.fs.scandir(args[0] if args else ".")
    if not entries:
        print_info("Directory is empty.", out=ctx.console)
        return

    # Directories first, each group by name
    entries.sort(key=lambda e: (not e.is_dir, e.name))
    for index, entry in enumerate(entries, start=1):
        if entry.is_dir:
            label = f"[bold blue]{escape(entry.name)}/[/bold blue]"
        else:
            label = f"{escape(entry.name)} [dim]{format_size(entry.size)}[/dim]"
        ctx.console.print(f"[cyan]{index}.[/cyan] {label}")


@register_command("mkdir")
def mkdir(args: list[str], ctx: ShellContext) -> None:
    if len(args) != 1:
        raise UsageError(ctx.usage("mkdir"))
    ctx.fs.mkdir(args[0])
    print_success(f"Directory created: {args[0]}", out=ctx.console)


@register_command("rmdir")
async def rmdir(args: list[str], ctx: ShellContext) -> None:
    """Remove a directory. ``-r`` removes contents too, after confirmation
    unless ``-y`` is given."""
    recursive = False
    assume_yes = False
    target: str | None = None

    for arg in args:
        if arg in ("-r", "--recursive"):
            recursive = True
        elif arg in ("-y", "--yes"):
            assume_yes = True
        elif target is None:
            target = arg
        else:
            raise UsageError("Too many arguments provided to rmdir")

    if target is None:
        raise UsageError(ctx.usage("rmdir"))

    if not recursive:
        ctx.fs.rmdir(target)
        print_success(f"Directory removed: {target}", out=ctx.console)
        return

    # Fail on bad targets before asking anything
    resolved = ctx.fs.resolve(target)
    ctx.fs.listdir(resolved)
    ctx.fs.guard.ensure_not_protected_directory(resolved)

    if not assume_yes:
        question = f'This will recursively delete "{target}" and all its contents. Proceed?'
        if not await ctx.confirm(question):
            print_info("Recursive deletion cancelled.", out=ctx.console)
            return

    ctx.fs.rmdir(resolved, recursive=True)
    print_success(f"Directory removed recursively: {target}", out=ctx.console)


@register_command("tree")
def tree(args: list[str], ctx: ShellContext) -> None:
    if len(args) > 2:
        raise UsageError(ctx.usage("tree"))

    path = args[0] if args else "."
    depth = DEFAULT_TREE_DEPTH
    if len(args) == 2:
        try:
            depth = int(args[1])
        except ValueError:
            raise UsageError(ctx.usage("tree")) from None
        if depth < 1:
            raise UsageError("Depth must be at least 1")

    start = ctx.fs.resolve(path)
    nodes: dict[Path, dict[str, Any]] = {}
    data: dict[str, Any] = {}
    nodes[start] = data

    for _, parent, entry in ctx.fs.walk(start, max_depth=depth):
        branch = nodes.get(parent)
        if branch is None:
            continue
        if entry.is_dir:
            child: dict[str, Any] = {}
            branch[f"{entry.name}/"] = child
            nodes[parent / entry.name] = child
        else:
            branch[entry.name] = format_size(entry.size)

    print_tree(data, title=ctx.fs.relative(start), out=ctx.console)
