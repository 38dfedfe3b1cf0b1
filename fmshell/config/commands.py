"""Command catalogue: the type, usage line and description of each built-in.

The catalogue feeds ``help``. Defaults ship with the package; a JSON file
(``COMMANDS_FILE``) may override or extend entries::

    {
      "ls": {"description": "List entries, directories first"},
      "wc": {"type": "file", "usage": "wc <file>", "description": "Word count"}
    }

Overrides are merged per field on top of the defaults.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from fmshell.plugins.sdk import PluginType

logger = logging.getLogger(__name__)


class CommandInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: PluginType = PluginType.OTHER
    usage: str = ""
    description: str = ""


DEFAULT_COMMANDS: dict[str, dict[str, Any]] = {
    # --- Meta ---
    "help": {"type": "meta", "usage": "help", "description": "Show this help menu"},
    "exit": {"type": "meta", "usage": "exit", "description": "Exit the file manager"},
    "plugin": {
        "type": "meta",
        "usage": "plugin <list|info|load|load-dir|unload|enable|disable|events> [args] [--json]",
        "description": "Manage plugins",
    },
    # --- Navigation ---
    "pwd": {"type": "navigation", "usage": "pwd", "description": "Print the current directory"},
    "cd": {"type": "navigation", "usage": "cd [dir]", "description": "Change directory"},
    # --- Directory ---
    "ls": {"type": "directory", "usage": "ls [dir]", "description": "List directory contents"},
    "mkdir": {"type": "directory", "usage": "mkdir <dir>", "description": "Create a directory"},
    "rmdir": {
        "type": "directory",
        "usage": "rmdir [-r] [-y] <dir>",
        "description": "Remove a directory (-r recursive, -y skip confirmation)",
    },
    "tree": {"type": "directory", "usage": "tree [dir] [depth]", "description": "Show a directory tree"},
    # --- File ---
    "cat": {"type": "file", "usage": "cat <file>", "description": "Print file contents"},
    "touch": {"type": "file", "usage": "touch <file>", "description": "Create an empty file"},
    "rm": {"type": "file", "usage": "rm <file>", "description": "Delete a file"},
    "cp": {"type": "file", "usage": "cp <src> <dest>", "description": "Copy a file"},
    "mv": {"type": "file", "usage": "mv <src> <dest>", "description": "Move or rename a file or directory"},
    "stat": {"type": "file", "usage": "stat <path>", "description": "Show file information"},
    "write": {
        "type": "file",
        "usage": "write [-a] <file> <text...>",
        "description": "Write text to a file (-a appends)",
    },
    "echo": {"type": "file", "usage": "echo <text...>", "description": "Print text"},
}


def default_commands() -> dict[str, CommandInfo]:
    return {name: CommandInfo.model_validate(raw) for name, raw in DEFAULT_COMMANDS.items()}


def load_commands(path: str | Path | None = None) -> dict[str, CommandInfo]:
    """Build the command catalogue, applying a JSON override file if given.

    Raises:
        FileNotFoundError: If *path* is given but does not exist.
        ValueError: If the file is not a JSON object of objects.
        pydantic.ValidationError: If an entry does not conform to ``CommandInfo``.
    """
    merged: dict[str, dict[str, Any]] = {name: dict(raw) for name, raw in DEFAULT_COMMANDS.items()}

    if path:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Commands file not found at {path}")
        overrides = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(overrides, dict) or not all(
            isinstance(v, dict) for v in overrides.values()
        ):
            raise ValueError(f"Commands file must map command names to objects: {path}")
        for name, fields in overrides.items():
            merged.setdefault(name, {}).update(fields)
        logger.info("Loaded %d command overrides from %s", len(overrides), path)

    return {name: CommandInfo.model_validate(raw) for name, raw in merged.items()}
