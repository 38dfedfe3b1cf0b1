"""Built-in command registry and the context handed to every handler.

Handlers have the same contract as plugin commands: ``handler(args, ctx)``,
sync or async, return value ignored, failures raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from rich.console import Console

from fmshell.config.commands import CommandInfo
from fmshell.plugins.registry import PluginRegistry
from fmshell.security.filesystem import SandboxedFileSystem

if TYPE_CHECKING:
    from fmshell.shell.repl import Shell


@dataclass
class ShellContext:
    """What a built-in command can reach.

    Attributes:
        fs: Sandboxed filesystem (holds the working directory).
        registry: Plugin registry.
        console: Console all command output goes to.
        catalogue: Type, usage and description of each built-in.
        shell: The running shell, for prompts and exit.
    """

    fs: SandboxedFileSystem
    registry: PluginRegistry
    console: Console
    catalogue: dict[str, CommandInfo] = field(default_factory=dict)
    shell: "Shell | None" = None

    def usage(self, name: str) -> str:
        info = self.catalogue.get(name)
        return f"Usage: {info.usage}" if info and info.usage else f"Usage: {name}"

    async def confirm(self, question: str) -> bool:
        """Ask a yes/no question; anything but y/yes is a no."""
        if self.shell is None:
            return False
        answer = await self.shell.ask(f"{question} [y/N] ")
        return answer.strip().lower() in ("y", "yes")


CommandHandler = Callable[[list[str], ShellContext], "Awaitable[Any] | Any"]

# Registry of built-in commands
BUILTIN_COMMANDS: dict[str, CommandHandler] = {}


def register_command(name: str):
    """Decorator to register a built-in command."""
    def decorator(func: CommandHandler) -> CommandHandler:
        BUILTIN_COMMANDS[name] = func
        return func
    return decorator
