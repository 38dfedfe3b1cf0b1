"""
Plugin discovery and loading for fmshell.

This module imports plugin code and turns it into validated ``Plugin``
descriptors. It does not register anything; that is the registry's job.

Plugin Sources:
    - A single file: any Python file; the module attribute ``plugin`` is
      used when present, otherwise the module itself is the candidate.
    - A directory: every ``*.plugin.py`` file, loaded independently. A bad
      file is logged and skipped, it never aborts the batch.
    - A package: only names carrying the reserved ``fm_plugin_`` prefix
      (``fm-plugin-`` is accepted and normalised) are imported.

Example:
    from fmshell.plugins.loader import PluginLoader

    loader = PluginLoader()
    plugins = loader.load_from_directory("./plugins")
    for plugin in plugins:
        print(f"Found: {plugin.name} v{plugin.version}")
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import re
import sys
from pathlib import Path
from typing import Any

from fmshell.plugins.errors import InvalidPluginError, PluginLoadError
from fmshell.plugins.sdk import Plugin
from fmshell.plugins.validator import PluginValidator

logger = logging.getLogger(__name__)

PLUGIN_FILE_SUFFIX = ".plugin.py"
PACKAGE_PREFIX = "fm_plugin_"
EXPORT_NAME = "plugin"


class PluginLoader:
    """Imports, validates and caches plugins.

    Attributes:
        _validator: Validator every candidate goes through.
        _plugins: Loaded plugins by name.
        _modules: Module names imported for each plugin.
    """

    def __init__(self, validator: PluginValidator | None = None):
        """Initialize the plugin loader.

        Args:
            validator: Validator to use. Defaults to a fresh one.
        """
        self._validator = validator or PluginValidator()
        self._plugins: dict[str, Plugin] = {}
        self._modules: dict[str, str] = {}

    def load_from_file(self, file_path: str | Path) -> Plugin:
        """Load a plugin from a Python file.

        Args:
            file_path: Path to the plugin file.

        Returns:
            The validated plugin.

        Raises:
            PluginLoadError: If the file cannot be imported or the plugin
                is invalid.
        """
        path = Path(file_path).expanduser().resolve()
        source = str(path)

        if not path.is_file():
            raise PluginLoadError(source, "Plugin file not found")

        module_name = self._module_name_for(path)
        previous = sys.modules.get(module_name)
        logger.info(f"Loading plugin file: {path}")

        try:
            spec = importlib.util.spec_from_file_location(module_name, path)
            if spec is None or spec.loader is None:
                raise PluginLoadError(source, "Cannot create an import spec")
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)
        except PluginLoadError:
            raise
        except Exception as e:
            self._restore_module(module_name, previous)
            logger.debug(f"Import of {path} failed", exc_info=True)
            raise PluginLoadError(source, f"Import failed: {e}", e) from e

        try:
            plugin = self._accept(self._export_of(module), source)
        except PluginLoadError:
            self._restore_module(module_name, previous)
            raise
        self._modules[plugin.name] = module_name
        return plugin

    def load_from_directory(self, dir_path: str | Path) -> list[Plugin]:
        """Load every ``*.plugin.py`` file in a directory.

        Files are processed in name order. Failures are logged and skipped.

        Args:
            dir_path: Directory to scan.

        Returns:
            The plugins that loaded successfully.

        Raises:
            PluginLoadError: If the directory does not exist.
        """
        directory = Path(dir_path).expanduser().resolve()
        if not directory.is_dir():
            raise PluginLoadError(str(directory), "Plugin directory not found")

        logger.info(f"Scanning for plugins in: {directory}")
        plugins: list[Plugin] = []

        for item in sorted(directory.iterdir()):
            if not (item.is_file() and item.name.endswith(PLUGIN_FILE_SUFFIX)):
                continue
            try:
                plugins.append(self.load_from_file(item))
            except PluginLoadError as e:
                logger.warning(f"Skipping plugin {item.name}: {e}")

        logger.info(f"Loaded {len(plugins)} plugins from {directory}")
        return plugins

    def load_from_package(self, package_name: str) -> Plugin:
        """Load a plugin from an installed package.

        Raises:
            PluginLoadError: If the name lacks the reserved prefix or the
                import fails.
        """
        module_name = package_name.replace("-", "_")
        if not module_name.startswith(PACKAGE_PREFIX) or module_name == PACKAGE_PREFIX:
            raise PluginLoadError(
                package_name,
                f"Package plugins must be named '{PACKAGE_PREFIX}<name>'",
            )

        logger.info(f"Loading plugin package: {module_name}")
        try:
            module = importlib.import_module(module_name)
        except Exception as e:
            raise PluginLoadError(package_name, f"Import failed: {e}", e) from e

        plugin = self._accept(self._export_of(module), package_name)
        self._modules[plugin.name] = module_name
        return plugin

    def _accept(self, candidate: Any, source: str) -> Plugin:
        """Validate a candidate, normalise it and cache it.

        A name that is already cached is refused; the cached plugin stays.
        """
        try:
            self._validator.assert_valid(candidate, source=source)
        except InvalidPluginError as e:
            raise PluginLoadError(source, "; ".join(e.errors), e) from e

        plugin = Plugin.from_candidate(candidate, source=source)
        existing = self._plugins.get(plugin.name)
        if existing is not None:
            raise PluginLoadError(
                source,
                f"Plugin '{plugin.name}' is already loaded from {existing.source}",
            )
        self._plugins[plugin.name] = plugin
        logger.info(f"Successfully loaded plugin: {plugin.name} v{plugin.version}")
        return plugin

    @staticmethod
    def _restore_module(module_name: str, previous: Any) -> None:
        if previous is None:
            sys.modules.pop(module_name, None)
        else:
            sys.modules[module_name] = previous

    @staticmethod
    def _export_of(module: Any) -> Any:
        return getattr(module, EXPORT_NAME, module)

    @staticmethod
    def _module_name_for(path: Path) -> str:
        stem = path.name
        if stem.endswith(PLUGIN_FILE_SUFFIX):
            stem = stem[: -len(PLUGIN_FILE_SUFFIX)]
        elif stem.endswith(".py"):
            stem = stem[:-3]
        return "fmshell_loaded_" + re.sub(r"\W", "_", stem)

    def get_cached(self, plugin_name: str) -> Plugin | None:
        return self._plugins.get(plugin_name)

    def get_loaded(self) -> list[Plugin]:
        """Get all cached plugins, in load order."""
        return list(self._plugins.values())

    def unload(self, plugin_name: str) -> bool:
        """Evict a plugin from the cache.

        Returns:
            True if unloaded, False if not found.
        """
        if plugin_name not in self._plugins:
            return False

        del self._plugins[plugin_name]
        module_name = self._modules.pop(plugin_name, None)
        if module_name and not module_name.startswith(PACKAGE_PREFIX):
            sys.modules.pop(module_name, None)

        logger.info(f"Unloaded plugin: {plugin_name}")
        return True

    def clear_cache(self) -> None:
        for name in list(self._plugins):
            self.unload(name)

    def __repr__(self) -> str:
        return f"<PluginLoader loaded={len(self._plugins)}>"
