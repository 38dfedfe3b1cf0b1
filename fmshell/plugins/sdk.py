"""
Plugin SDK for fmshell.

This module defines the shape of a plugin and the records the plugin system
keeps about it.

A plugin is a named, versioned, typed command handler. It can be written as
a module, a class instance, or a plain mapping; the loader validates the
candidate and normalises it into an immutable ``Plugin`` descriptor.

Example - a plugin file ``wordcount.plugin.py``:
    name = "wordcount"
    version = "1.0.0"
    type = "file"
    description = "Count words in a file"

    def execute(args, context):
        text = context.fs.read_file(args[0])
        context.logger.info(f"{len(text.split())} words")

Example - an explicit descriptor:
    from fmshell.plugins.sdk import Plugin, PluginType

    async def greet(args, context):
        await context.emit("greeted", {"who": args[0] if args else "world"})

    plugin = Plugin(
        name="greet",
        version="0.1.0",
        type=PluginType.OTHER,
        description="Say hello",
        execute=greet,
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from packaging import version as pkg_version

# Handler signature: handler(args, context) -> None | Awaitable[None]
CommandHandler = Callable[..., Any]
LifecycleHook = Callable[..., Any]


class PluginType(str, Enum):
    """Command groups, in help display order."""

    META = "meta"
    NAVIGATION = "navigation"
    DIRECTORY = "directory"
    FILE = "file"
    OTHER = "other"


_MISSING = object()


def candidate_field(candidate: Any, name: str, default: Any = None) -> Any:
    """Read a field from a plugin candidate (module, object or mapping)."""
    if isinstance(candidate, Mapping):
        return candidate.get(name, default)
    return getattr(candidate, name, default)


def has_candidate_field(candidate: Any, name: str) -> bool:
    """Check whether a plugin candidate defines a field (even as None)."""
    return candidate_field(candidate, name, _MISSING) is not _MISSING


@dataclass(frozen=True)
class Plugin:
    """Immutable plugin descriptor.

    Attributes:
        name: Unique plugin identifier, also the command name.
        version: Semantic version string.
        type: Command group.
        description: Human-readable description.
        execute: Command handler ``execute(args, context)``.
        on_load: Optional hook called after registration.
        on_unload: Optional hook called before unregistration.
        dependencies: Names of plugins that must be registered first.
        schema: Declared argument/flag shape, informational.
        author: Plugin author.
        min_app_version: Minimum compatible fmshell version.
        max_app_version: Maximum compatible fmshell version.
        source: Where the plugin was loaded from, if anywhere.
    """

    name: str
    version: str
    type: PluginType
    description: str
    execute: CommandHandler
    on_load: LifecycleHook | None = None
    on_unload: LifecycleHook | None = None
    dependencies: tuple[str, ...] = ()
    schema: Mapping[str, Any] | None = None
    author: str | None = None
    min_app_version: str | None = None
    max_app_version: str | None = None
    source: str | None = field(default=None, compare=False)

    @classmethod
    def from_candidate(cls, candidate: Any, source: str | None = None) -> "Plugin":
        """Build a descriptor from an already validated candidate.

        Args:
            candidate: Module, object or mapping exposing the plugin fields.
            source: Optional origin (file path or package name).

        Returns:
            The normalised ``Plugin``.
        """
        if isinstance(candidate, Plugin):
            return candidate
        return cls(
            name=candidate_field(candidate, "name"),
            version=candidate_field(candidate, "version"),
            type=PluginType(candidate_field(candidate, "type")),
            description=candidate_field(candidate, "description"),
            execute=candidate_field(candidate, "execute"),
            on_load=candidate_field(candidate, "on_load"),
            on_unload=candidate_field(candidate, "on_unload"),
            dependencies=tuple(candidate_field(candidate, "dependencies") or ()),
            schema=candidate_field(candidate, "schema"),
            author=candidate_field(candidate, "author"),
            min_app_version=candidate_field(candidate, "min_app_version"),
            max_app_version=candidate_field(candidate, "max_app_version"),
            source=source,
        )

    def is_compatible(self, app_version: str) -> bool:
        """Check if the plugin supports an fmshell version.

        Args:
            app_version: The fmshell version to check against.

        Returns:
            True if the version lies within the declared bounds.
        """
        current = pkg_version.parse(app_version)
        if self.min_app_version and current < pkg_version.parse(self.min_app_version):
            return False
        if self.max_app_version and current > pkg_version.parse(self.max_app_version):
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "type": self.type.value,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "author": self.author,
            "min_app_version": self.min_app_version,
            "max_app_version": self.max_app_version,
            "source": self.source,
        }

    def __repr__(self) -> str:
        return f"<Plugin {self.name}@{self.version} ({self.type.value})>"


@dataclass
class PluginMetadata:
    """Mutable record kept by the registry for each registered plugin.

    Attributes:
        version: Copy of the plugin version.
        type: Copy of the plugin type.
        description: Copy of the plugin description.
        loaded: Whether the plugin finished registration.
        enabled: Whether the plugin accepts commands.
        loaded_at: When the plugin was registered.
        call_count: Number of times the plugin has been invoked.
        error_count: Number of failed invocations.
    """

    version: str
    type: PluginType
    description: str
    loaded: bool = True
    enabled: bool = True
    loaded_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    call_count: int = 0
    error_count: int = 0

    @classmethod
    def for_plugin(cls, plugin: Plugin) -> "PluginMetadata":
        return cls(
            version=plugin.version,
            type=plugin.type,
            description=plugin.description,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "type": self.type.value,
            "description": self.description,
            "loaded": self.loaded,
            "enabled": self.enabled,
            "loaded_at": self.loaded_at.isoformat(),
            "call_count": self.call_count,
            "error_count": self.error_count,
        }


@dataclass(frozen=True)
class PluginEvent:
    """An event published on the event bus.

    Attributes:
        name: Free-form event name.
        data: Event payload.
        timestamp: When the event was emitted.
        source: Name of the emitting plugin, if any.
    """

    name: str
    data: Any = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }
