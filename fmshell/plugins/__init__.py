"""
Plugin system for fmshell.

Plugins add commands to the shell. Each plugin is a named, versioned, typed
command handler that may depend on other plugins, react to events, and keep
state between invocations.

Plugin Architecture:
    - PluginLoader: Imports plugin files and packages
    - PluginValidator: Checks a candidate before it becomes a Plugin
    - DependencyResolver: Orders a batch so dependencies load first
    - PluginRegistry: Central registry and command router
    - PluginSandbox: Time-boxed execution with retries
    - PluginContextFactory: Per-invocation capabilities and plugin state
    - EventBus: Publish/subscribe between plugins

Security:
    Plugins only see the filesystem through the sandboxed capability in their
    context, which confines every path to the allowed root and refuses to
    touch protected application files. Execution is time-boxed but runs
    in-process; it is not an isolation boundary.

Example:
    from fmshell.plugins import (
        EventBus, PluginContextFactory, PluginRegistry, PluginSandbox,
    )

    factory = PluginContextFactory(fs, EventBus())
    registry = PluginRegistry(PluginSandbox(default_timeout=10.0), factory)

    await registry.load_from_directory("./plugins")
    await registry.execute_command("wordcount", ["notes.txt"])
"""

from fmshell.plugins.sdk import (
    Plugin,
    PluginEvent,
    PluginMetadata,
    PluginType,
)
from fmshell.plugins.errors import (
    CircularDependencyError,
    DependencyError,
    DependentsExistError,
    DuplicateRegistrationError,
    ExecutionFailedError,
    ExecutionTimeoutError,
    IncompatiblePluginError,
    InvalidPluginError,
    MissingDependencyError,
    PluginDisabledError,
    PluginError,
    PluginLoadError,
    UnknownCommandError,
)
from fmshell.plugins.validator import PluginValidator, ValidationResult
from fmshell.plugins.dependencies import DependencyResolver
from fmshell.plugins.loader import PluginLoader
from fmshell.plugins.events import EventBus
from fmshell.plugins.context import PluginContext, PluginContextFactory
from fmshell.plugins.sandbox import PluginSandbox
from fmshell.plugins.registry import PluginRegistry

__all__ = [
    # SDK
    "Plugin",
    "PluginEvent",
    "PluginMetadata",
    "PluginType",
    # Errors
    "PluginError",
    "InvalidPluginError",
    "PluginLoadError",
    "DependencyError",
    "CircularDependencyError",
    "MissingDependencyError",
    "DuplicateRegistrationError",
    "IncompatiblePluginError",
    "UnknownCommandError",
    "PluginDisabledError",
    "DependentsExistError",
    "ExecutionTimeoutError",
    "ExecutionFailedError",
    # Components
    "PluginValidator",
    "ValidationResult",
    "DependencyResolver",
    "PluginLoader",
    "EventBus",
    "PluginContext",
    "PluginContextFactory",
    "PluginSandbox",
    "PluginRegistry",
]
