"""Navigation commands: pwd and cd."""

from __future__ import annotations

from fmshell.commands.base import ShellContext, register_command
from fmshell.errors import UsageError


@register_command("pwd")
def pwd(args: list[str], ctx: ShellContext) -> None:
    ctx.console.print(ctx.fs.getcwd(), markup=False, highlight=False)


@register_command("cd")
def cd(args: list[str], ctx: ShellContext) -> None:
    """Change the working directory; without an argument, go to the root."""
    if len(args) > 1:
        raise UsageError(ctx.usage("cd"))
    ctx.fs.chdir(args[0] if args else ctx.fs.root)
    pwd([], ctx)
