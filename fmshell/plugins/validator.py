"""Structural contract checks for plugin candidates.

The validator never stops at the first failure: every violated rule is
collected so a plugin author sees the full list in one pass.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from packaging.version import InvalidVersion, Version

from fmshell.plugins.errors import InvalidPluginError
from fmshell.plugins.sdk import PluginType, candidate_field, has_candidate_field

NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")
VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+")

_VALID_TYPES = [t.value for t in PluginType]


@dataclass
class ValidationResult:
    """Outcome of ``PluginValidator.validate``."""

    valid: bool
    errors: list[str] = field(default_factory=list)


class PluginValidator:
    """Checks that a candidate satisfies the plugin shape."""

    def validate(self, candidate: Any) -> ValidationResult:
        """Validate a plugin candidate.

        Args:
            candidate: Module, object or mapping to check.

        Returns:
            ValidationResult with every violation found.
        """
        if candidate is None or isinstance(candidate, (str, bytes, int, float, bool, list, tuple)):
            return ValidationResult(valid=False, errors=["Plugin must be an object"])

        errors: list[str] = []

        name = candidate_field(candidate, "name")
        if not isinstance(name, str):
            errors.append("Plugin name must be a string")
        elif not NAME_PATTERN.match(name):
            errors.append(
                f"Plugin name must contain only lowercase letters, digits and hyphens: {name!r}"
            )

        version = candidate_field(candidate, "version")
        if not isinstance(version, str):
            errors.append("Plugin version must be a string")
        elif not VERSION_PATTERN.match(version):
            errors.append(f"Plugin version must be semver format: {version!r}")

        plugin_type = candidate_field(candidate, "type")
        if isinstance(plugin_type, PluginType):
            plugin_type = plugin_type.value
        if plugin_type not in _VALID_TYPES:
            errors.append(
                f"Plugin type must be one of {', '.join(_VALID_TYPES)}: {plugin_type!r}"
            )

        description = candidate_field(candidate, "description")
        if not isinstance(description, str) or not description.strip():
            errors.append("Plugin description must be a non-empty string")

        if not callable(candidate_field(candidate, "execute")):
            errors.append("Plugin must provide a callable execute(args, context)")

        for hook in ("on_load", "on_unload"):
            value = candidate_field(candidate, hook)
            if value is not None and not callable(value):
                errors.append(f"Plugin {hook} must be callable")

        if has_candidate_field(candidate, "dependencies"):
            deps = candidate_field(candidate, "dependencies")
            if deps is not None and (
                not isinstance(deps, (list, tuple))
                or not all(isinstance(d, str) for d in deps)
            ):
                errors.append("Plugin dependencies must be a list of plugin names")

        schema = candidate_field(candidate, "schema")
        if schema is not None and not isinstance(schema, Mapping):
            errors.append("Plugin schema must be a mapping")

        author = candidate_field(candidate, "author")
        if author is not None and not isinstance(author, str):
            errors.append("Plugin author must be a string")

        for bound in ("min_app_version", "max_app_version"):
            value = candidate_field(candidate, bound)
            if value is not None and not self._is_version(value):
                errors.append(f"Plugin {bound} is not a valid version: {value!r}")

        return ValidationResult(valid=not errors, errors=errors)

    def assert_valid(self, candidate: Any, source: str | None = None) -> None:
        """Validate and raise on the first invalid candidate.

        Raises:
            InvalidPluginError: With all violation messages joined.
        """
        result = self.validate(candidate)
        if not result.valid:
            raise InvalidPluginError(result.errors, source=source)

    @staticmethod
    def _is_version(value: Any) -> bool:
        if not isinstance(value, str):
            return False
        try:
            Version(value)
        except InvalidVersion:
            return False
        return True
