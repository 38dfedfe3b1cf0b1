"""File commands: cat, touch, rm, cp, mv, stat, write and echo."""

from __future__ import annotations

from fmshell.cli.output import format_size, print_key_value, print_success
from fmshell.commands.base import ShellContext, register_command
from fmshell.errors import UsageError


def _require(args: list[str], count: int, ctx: ShellContext, name: str) -> None:
    if len(args) != count:
        raise UsageError(ctx.usage(name))


@register_command("cat")
def cat(args: list[str], ctx: ShellContext) -> None:
    _require(args, 1, ctx, "cat")
    content = ctx.fs.read_file(args[0])
    ctx.console.print(content, markup=False, highlight=False, end="" if content.endswith("\n") else "\n")


@register_command("touch")
def touch(args: list[str], ctx: ShellContext) -> None:
    _require(args, 1, ctx, "touch")
    ctx.fs.touch(args[0])
    print_success(f"File created: {args[0]}", out=ctx.console)


@register_command("rm")
def rm(args: list[str], ctx: ShellContext) -> None:
    _require(args, 1, ctx, "rm")
    ctx.fs.delete_file(args[0])
    print_success(f"File deleted: {args[0]}", out=ctx.console)


@register_command("cp")
def cp(args: list[str], ctx: ShellContext) -> None:
    _require(args, 2, ctx, "cp")
    ctx.fs.copy_file(args[0], args[1])
    print_success(f"File copied: {args[0]} -> {args[1]}", out=ctx.console)


@register_command("mv")
def mv(args: list[str], ctx: ShellContext) -> None:
    _require(args, 2, ctx, "mv")
    ctx.fs.rename(args[0], args[1])
    print_success(f"Moved: {args[0]} -> {args[1]}", out=ctx.console)


@register_command("stat")
def stat(args: list[str], ctx: ShellContext) -> None:
    _require(args, 1, ctx, "stat")
    info = ctx.fs.stat(args[0])
    kind = "directory" if info.is_dir else "file" if info.is_file else "other"
    print_key_value(
        [
            ("Path", ctx.fs.relative(info.path)),
            ("Type", kind),
            ("Size", format_size(info.size)),
            ("Modified", info.modified.astimezone().strftime("%Y-%m-%d %H:%M:%S")),
        ],
        out=ctx.console,
    )


@register_command("write")
def write(args: list[str], ctx: ShellContext) -> None:
    """``write [-a] <file> <text...>``; the text gets a trailing newline."""
    append = bool(args) and args[0] in ("-a", "--append")
    if append:
        args = args[1:]
    if len(args) < 2:
        raise UsageError(ctx.usage("write"))

    text = " ".join(args[1:]) + "\n"
    ctx.fs.write_file(args[0], text, append=append)
    verb = "Appended" if append else "Wrote"
    print_success(f"{verb} {len(text.encode('utf-8'))} bytes to {args[0]}", out=ctx.console)


@register_command("echo")
def echo(args: list[str], ctx: ShellContext) -> None:
    ctx.console.print(" ".join(args), markup=False, highlight=False)
