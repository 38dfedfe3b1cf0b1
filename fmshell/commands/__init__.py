"""Built-in shell commands.

Importing this package registers every built-in in ``BUILTIN_COMMANDS``.
"""

from fmshell.commands.base import (
    BUILTIN_COMMANDS,
    CommandHandler,
    ShellContext,
    register_command,
)
from fmshell.commands import directory, file, meta, navigation, plugin  # noqa: F401

__all__ = [
    "BUILTIN_COMMANDS",
    "CommandHandler",
    "ShellContext",
    "register_command",
]
