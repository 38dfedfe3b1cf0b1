"""fmshell configuration -- environment settings and the command catalogue."""

from .settings import Settings
from .commands import (
    DEFAULT_COMMANDS,
    CommandInfo,
    default_commands,
    load_commands,
)

__all__ = [
    "DEFAULT_COMMANDS",
    "CommandInfo",
    "Settings",
    "default_commands",
    "load_commands",
]
