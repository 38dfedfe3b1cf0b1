"""
fmshell - Command Line Interface

Entry point of the ``fm`` command. Without a subcommand it starts the
interactive shell. Built with Typer, output through Rich.

Usage:
    $ fm
    $ fm shell --root ~/sandbox --plugin-dir ./plugins
    $ fm plugins validate ./plugins
    $ fm plugins order ./plugins

Sub-command Groups:
    plugins - Inspect plugin files without starting the shell

For detailed help on any command:
    $ fm <command> --help
    $ fm <group> <command> --help
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from fmshell import __version__

logger = logging.getLogger(__name__)

# Create main console for output
console = Console()
err_console = Console(stderr=True)

# Create main application
app = typer.Typer(
    name="fm",
    help="fm - sandboxed file manager shell with plugins",
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

# Create sub-command groups
plugins_app = typer.Typer(
    name="plugins",
    help="Plugin inspection commands",
    no_args_is_help=True,
)

app.add_typer(plugins_app, name="plugins")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"fmshell version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """
    fm - sandboxed file manager shell

    Every path is confined to the allowed root (ALLOWED_ROOT_DIR, default:
    the current directory). Run without a command to start the shell.
    """
    if ctx.invoked_subcommand is None:
        shell(root=None, plugin_dir=None, log_level=None)


def _build_settings(**overrides: object):
    from fmshell.config.settings import Settings

    return Settings(**{k: v for k, v in overrides.items() if v is not None})


@app.command()
def shell(
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        "-r",
        help="Allowed root directory (overrides ALLOWED_ROOT_DIR).",
    ),
    plugin_dir: Optional[Path] = typer.Option(
        None,
        "--plugin-dir",
        "-p",
        help="Load plugins from this directory at startup.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level: debug, info, warn, error.",
    ),
) -> None:
    """
    Start the interactive file manager shell.
    """
    from fmshell.cli.output import print_error
    from fmshell.logging_setup import setup_logging
    from fmshell.shell import Shell

    settings = _build_settings(
        ALLOWED_ROOT_DIR=str(root) if root else None,
        PLUGIN_DIR=str(plugin_dir) if plugin_dir else None,
        LOG_LEVEL=log_level,
    )
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE if settings.LOG_TO_FILE else None)

    if not settings.root_dir.is_dir():
        print_error(f"Allowed root is not a directory: {settings.root_dir}")
        raise typer.Exit(1)

    session = Shell.from_settings(settings, console=console)

    async def _run() -> None:
        if settings.plugin_dir is not None:
            await session.load_plugins(settings.plugin_dir)
        await session.run()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print()
        logger.info("Interrupted")


@app.command()
def version() -> None:
    """
    Show the fmshell version.
    """
    console.print(f"fmshell version {__version__}")


# Import subcommand modules to register their commands
# These are imported at the end to avoid circular imports
def _register_subcommands() -> None:
    """Register all subcommand modules."""
    from fmshell.cli import plugins  # noqa: F401


_register_subcommands()

# Expose the apps for use in submodules
__all__ = [
    "app",
    "plugins_app",
    "console",
    "err_console",
    "__version__",
]


def cli() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except Exception as e:
        logger.exception("Unhandled error")
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    cli()
