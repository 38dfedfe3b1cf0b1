"""
fmshell CLI - Plugin Commands

Inspect plugin files without starting the shell. Nothing is registered and
no plugin hook runs; files are only imported and validated.

Commands:
    validate - Validate a plugin file or every plugin file in a directory
    list     - List the plugins of a directory
    order    - Show the registration order of a plugin directory
"""

from __future__ import annotations

from pathlib import Path

import typer

from fmshell.cli import console, plugins_app
from fmshell.plugins.dependencies import DependencyResolver
from fmshell.plugins.errors import DependencyError, PluginLoadError
from fmshell.plugins.loader import PLUGIN_FILE_SUFFIX, PluginLoader
from fmshell.plugins.sdk import Plugin


def _plugin_files(path: Path) -> list[Path]:
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.is_file() and p.name.endswith(PLUGIN_FILE_SUFFIX))
    return [path]


def _load_directory(path: Path) -> list[Plugin]:
    from fmshell.cli.output import print_error

    if not path.is_dir():
        print_error(f"Not a directory: {path}")
        raise typer.Exit(1)
    return PluginLoader().load_from_directory(path)


@plugins_app.command("validate")
def validate_plugins(
    path: Path = typer.Argument(
        ...,
        help="Plugin file or directory of *.plugin.py files.",
    ),
) -> None:
    """
    Validate plugins.

    Checks each plugin file for:
    - Importability
    - Required fields and their formats
    - Dependencies available within the directory, without cycles
    """
    from fmshell.cli.output import print_error, print_success, print_table

    if not path.exists():
        print_error(f"Path not found: {path}")
        raise typer.Exit(1)

    files = _plugin_files(path)
    if not files:
        print_error(f"No {PLUGIN_FILE_SUFFIX} files in {path}")
        raise typer.Exit(1)

    loader = PluginLoader()
    loaded: list[Plugin] = []
    rows: list[list[str]] = []
    failed = False

    for file in files:
        try:
            plugin = loader.load_from_file(file)
        except PluginLoadError as e:
            failed = True
            rows.append([file.name, "FAIL", e.reason])
        else:
            loaded.append(plugin)
            rows.append([file.name, "PASS", f"{plugin.name} v{plugin.version}"])

    print_table(
        "Plugin validation",
        ["File", "Result", "Details"],
        rows,
        styles=["cyan", "bold", None],
    )

    dependency_errors = DependencyResolver().validate_dependencies(loaded)
    for message in dependency_errors:
        print_error(message)

    console.print()
    if failed or dependency_errors:
        print_error("Plugin validation failed")
        raise typer.Exit(1)
    print_success("Plugin validation passed!")


@plugins_app.command("list")
def list_plugins(
    directory: Path = typer.Argument(
        ...,
        help="Directory of *.plugin.py files.",
    ),
) -> None:
    """
    List the plugins found in a directory.
    """
    from fmshell.cli.output import print_info, print_table

    plugins = _load_directory(directory)
    if not plugins:
        print_info(f"No valid plugins in {directory}")
        return

    rows = [
        [p.name, p.version, p.type.value, ", ".join(p.dependencies) or "-", p.description]
        for p in plugins
    ]
    print_table(
        f"Plugins in {directory}",
        ["Name", "Version", "Type", "Depends on", "Description"],
        rows,
        styles=["cyan", None, None, "dim", None],
    )


@plugins_app.command("order")
def plugin_order(
    directory: Path = typer.Argument(
        ...,
        help="Directory of *.plugin.py files.",
    ),
) -> None:
    """
    Show the order in which a directory's plugins would be registered.
    """
    from fmshell.cli.output import print_error

    plugins = _load_directory(directory)
    try:
        ordered = DependencyResolver().resolve_dependencies(plugins)
    except DependencyError as e:
        print_error(str(e))
        raise typer.Exit(1)

    for index, plugin in enumerate(ordered, start=1):
        console.print(f"[cyan]{index}.[/cyan] {plugin.name}", highlight=False)
