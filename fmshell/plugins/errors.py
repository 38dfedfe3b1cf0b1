"""Plugin error types."""

from __future__ import annotations

from typing import Sequence

from fmshell.errors import FileManagerError


class PluginError(FileManagerError):
    """Base error for the plugin system."""


class InvalidPluginError(PluginError):
    """A plugin candidate failed validation.

    Attributes:
        errors: Every violated rule, in check order.
    """

    def __init__(self, errors: Sequence[str], source: str | None = None):
        self.errors = list(errors)
        self.source = source
        prefix = f"Invalid plugin {source}" if source else "Invalid plugin"
        super().__init__(f"{prefix}: {'; '.join(self.errors)}")


class PluginLoadError(PluginError):
    """Raised when a plugin fails to load.

    Attributes:
        plugin_name: Name (or source) of the plugin that failed.
        reason: Reason for the failure.
        original: Original exception if any.
    """

    def __init__(
        self,
        plugin_name: str,
        reason: str,
        original: Exception | None = None,
    ):
        self.plugin_name = plugin_name
        self.reason = reason
        self.original = original
        super().__init__(f"Failed to load plugin '{plugin_name}': {reason}")


class DependencyError(PluginError):
    """The plugin dependency graph is defective."""


class CircularDependencyError(DependencyError):
    """A dependency cycle was found.

    Attributes:
        cycle: Plugin names along the cycle, first name repeated at the end.
    """

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class MissingDependencyError(DependencyError):
    def __init__(self, plugin_name: str, dependency: str):
        self.plugin_name = plugin_name
        self.dependency = dependency
        super().__init__(
            f"Plugin '{plugin_name}' depends on '{dependency}', which is not available"
        )


class DuplicateRegistrationError(PluginError):
    def __init__(self, plugin_name: str):
        self.plugin_name = plugin_name
        super().__init__(f"Plugin '{plugin_name}' is already registered")


class IncompatiblePluginError(PluginError):
    def __init__(self, plugin_name: str, app_version: str, reason: str):
        self.plugin_name = plugin_name
        self.app_version = app_version
        super().__init__(
            f"Plugin '{plugin_name}' is not compatible with fmshell {app_version}: {reason}"
        )


class UnknownCommandError(PluginError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown command: {name}")


class PluginDisabledError(PluginError):
    def __init__(self, plugin_name: str):
        self.plugin_name = plugin_name
        super().__init__(f"Plugin '{plugin_name}' is disabled")


class DependentsExistError(PluginError):
    """Unregistration blocked because other plugins depend on this one."""

    def __init__(self, plugin_name: str, dependents: Sequence[str]):
        self.plugin_name = plugin_name
        self.dependents = list(dependents)
        super().__init__(
            f"Cannot unregister '{plugin_name}': required by {', '.join(self.dependents)}"
        )


class ExecutionTimeoutError(PluginError):
    def __init__(self, plugin_name: str, timeout: float, attempts: int = 1):
        self.plugin_name = plugin_name
        self.timeout = timeout
        self.attempts = attempts
        message = f"Plugin '{plugin_name}' timed out after {timeout}s"
        if attempts > 1:
            message = f"{message} (after {attempts} attempts)"
        super().__init__(message)


class ExecutionFailedError(PluginError):
    """A plugin handler raised.

    Attributes:
        plugin_name: The failing plugin.
        original: The exception raised by the plugin.
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, plugin_name: str, original: BaseException, attempts: int = 1):
        self.plugin_name = plugin_name
        self.original = original
        self.attempts = attempts
        message = f"Plugin '{plugin_name}' failed: {original}"
        if attempts > 1:
            message = f"{message} (after {attempts} attempts)"
        super().__init__(message)
