"""Shared fixtures for the fmshell test suite."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import pytest

from fmshell.plugins.context import PluginContextFactory
from fmshell.plugins.events import EventBus
from fmshell.plugins.registry import PluginRegistry
from fmshell.plugins.sandbox import PluginSandbox
from fmshell.plugins.sdk import Plugin, PluginType
from fmshell.security.filesystem import SandboxedFileSystem
from fmshell.security.pathguard import PathGuard


def _noop(args, context):
    return None


def build_plugin(
    name: str,
    dependencies: tuple[str, ...] = (),
    execute: Any = None,
    plugin_type: PluginType = PluginType.OTHER,
    **kwargs: Any,
) -> Plugin:
    """Build a minimal valid plugin descriptor."""
    return Plugin(
        name=name,
        version="1.0.0",
        type=plugin_type,
        description=f"{name} test plugin",
        execute=execute or _noop,
        dependencies=tuple(dependencies),
        **kwargs,
    )


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An empty sandbox root with symlinks collapsed."""
    sandbox_root = tmp_path / "sandbox"
    sandbox_root.mkdir()
    return Path(os.path.realpath(sandbox_root))


@pytest.fixture
def guard(root: Path) -> PathGuard:
    return PathGuard(root)


@pytest.fixture
def fs(guard: PathGuard) -> SandboxedFileSystem:
    return SandboxedFileSystem(guard)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def factory(fs: SandboxedFileSystem, bus: EventBus, root: Path) -> PluginContextFactory:
    return PluginContextFactory(fs, bus, {"root": str(root)})


@pytest.fixture
def sandbox() -> PluginSandbox:
    """A sandbox with a short timeout and no retry delay."""
    return PluginSandbox(default_timeout=2.0, backoff_base=0.0, backoff_max=0.0)


@pytest.fixture
def registry(sandbox: PluginSandbox, factory: PluginContextFactory) -> PluginRegistry:
    return PluginRegistry(sandbox, factory)


@pytest.fixture
def make_plugin():
    """Factory fixture for plugin descriptors."""
    return build_plugin


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo any ``setup_logging`` call made by a test."""
    logger = logging.getLogger("fmshell")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
