"""Dependency ordering for plugin batches.

Plugins declare the names of the plugins they require. Before a batch is
registered, the dependency graph is checked for missing nodes and cycles and
flattened into a registration order in which every plugin follows all of its
transitive dependencies.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Sequence

from fmshell.plugins.errors import (
    CircularDependencyError,
    DependencyError,
    MissingDependencyError,
)
from fmshell.plugins.sdk import Plugin

logger = logging.getLogger(__name__)


class _Mark(Enum):
    UNVISITED = 0
    VISITING = 1
    VISITED = 2


class DependencyResolver:
    """Topological sort over plugin dependency graphs.

    Example:
        resolver = DependencyResolver()
        ordered = resolver.resolve_dependencies([app, base])
        # -> [base, app]
    """

    def resolve_dependencies(
        self,
        plugins: Sequence[Plugin],
        available: Iterable[str] = (),
    ) -> list[Plugin]:
        """Order plugins so dependencies come first.

        Depth-first visitation in input order; output is the post-order, so
        independent plugins keep their input order.

        Args:
            plugins: The batch to order.
            available: Names already satisfied outside the batch (for
                example, plugins that are already registered).

        Returns:
            The batch in registration order.

        Raises:
            CircularDependencyError: If the graph has a cycle.
            MissingDependencyError: If a dependency is neither in the batch
                nor available.
        """
        by_name = {p.name: p for p in plugins}
        satisfied = set(available)
        marks = {name: _Mark.UNVISITED for name in by_name}
        ordered: list[Plugin] = []
        path: list[str] = []

        def visit(plugin: Plugin) -> None:
            mark = marks[plugin.name]
            if mark is _Mark.VISITED:
                return
            if mark is _Mark.VISITING:
                start = path.index(plugin.name)
                raise CircularDependencyError(path[start:] + [plugin.name])

            marks[plugin.name] = _Mark.VISITING
            path.append(plugin.name)
            for dep in plugin.dependencies:
                if dep in by_name:
                    visit(by_name[dep])
                elif dep not in satisfied:
                    raise MissingDependencyError(plugin.name, dep)
            path.pop()
            marks[plugin.name] = _Mark.VISITED
            ordered.append(plugin)

        for plugin in plugins:
            visit(plugin)

        logger.debug(f"Resolved plugin order: {[p.name for p in ordered]}")
        return ordered

    def validate_dependencies(
        self,
        plugins: Sequence[Plugin],
        available: Iterable[str] = (),
    ) -> list[str]:
        """Collect dependency problems without raising.

        Every missing plugin/dependency pair is reported, then a full
        resolution is attempted so a cycle is reported in the same pass.

        Returns:
            List of error messages; empty if the batch can be registered.
        """
        errors: list[str] = []
        satisfied = set(available)
        seen: set[str] = set()

        for plugin in plugins:
            if plugin.name in seen:
                errors.append(f"Duplicate plugin name in batch: '{plugin.name}'")
            seen.add(plugin.name)

        names = seen | satisfied
        missing: set[str] = set()
        for plugin in plugins:
            for dep in plugin.dependencies:
                if dep not in names:
                    missing.add(dep)
                    errors.append(str(MissingDependencyError(plugin.name, dep)))

        # Missing names count as satisfied here so the cycle check covers the whole batch
        try:
            self.resolve_dependencies(plugins, available=satisfied | missing)
        except DependencyError as e:
            errors.append(str(e))

        return errors
