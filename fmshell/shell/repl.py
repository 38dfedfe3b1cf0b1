"""
Interactive shell for fmshell.

The shell reads a line, tokenizes it and dispatches the first token to a
built-in command or, failing that, to a registered plugin. Each command is
awaited before the next line is read.

Error Reporting:
    - ``FileManagerError`` (path, plugin and usage errors): one
      ``Error: ...`` line
    - anything else: logged with traceback and reported as
      ``Command execution error: ...``

Example:
    settings = Settings()
    shell = Shell.from_settings(settings)
    asyncio.run(shell.run())
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from rich.console import Console

from fmshell.cli.output import print_error, print_info, print_warning
from fmshell.commands import BUILTIN_COMMANDS, ShellContext
from fmshell.config.commands import CommandInfo, default_commands, load_commands
from fmshell.config.settings import Settings
from fmshell.errors import FileManagerError
from fmshell.plugins.context import PluginContextFactory
from fmshell.plugins.events import EventBus
from fmshell.plugins.registry import PluginRegistry
from fmshell.plugins.sandbox import PluginSandbox
from fmshell.security.filesystem import SandboxedFileSystem
from fmshell.security.pathguard import PathGuard

logger = logging.getLogger(__name__)

PROMPT = "fm> "
QUOTES = ("'", '"')


def tokenize(line: str) -> list[str]:
    """Split a command line into tokens.

    Whitespace separates tokens; single or double quotes group text, and a
    backslash inside quotes takes the next character literally. An unclosed
    quote runs to the end of the line. Empty tokens are dropped.
    """
    tokens: list[str] = []
    current: list[str] = []
    quote: str | None = None
    i = 0

    while i < len(line):
        ch = line[i]
        if quote is not None:
            if ch == "\\" and i + 1 < len(line):
                current.append(line[i + 1])
                i += 1
            elif ch == quote:
                quote = None
            else:
                current.append(ch)
        elif ch in QUOTES:
            quote = ch
        elif ch.isspace():
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(ch)
        i += 1

    if current:
        tokens.append("".join(current))
    return tokens


class Shell:
    """The ``fm>`` read-eval loop.

    Attributes:
        context: What built-in commands receive.
        awaiting_answer: True while a prompt is waiting for the user;
            dispatch ignores input meanwhile.
        running: False once ``exit`` was issued or input ended.
    """

    def __init__(
        self,
        fs: SandboxedFileSystem,
        registry: PluginRegistry,
        console: Console | None = None,
        catalogue: dict[str, CommandInfo] | None = None,
        input_func: Callable[[str], str] = input,
        plugin_retries: int = 1,
    ):
        """Initialize the shell.

        Args:
            fs: Sandboxed filesystem capability.
            registry: Plugin registry.
            console: Output console.
            catalogue: Command catalogue used by ``help`` and usage messages.
            input_func: Reads one line given a prompt; raises ``EOFError``
                at end of input.
            plugin_retries: Total attempts for each plugin command.
        """
        self.console = console or Console()
        self.registry = registry
        self.awaiting_answer = False
        self.running = False
        self._input = input_func
        self._retries = plugin_retries if plugin_retries > 1 else None
        self.context = ShellContext(
            fs=fs,
            registry=registry,
            console=self.console,
            catalogue=catalogue if catalogue is not None else default_commands(),
            shell=self,
        )
        registry.context_factory.set_awaiting_answer_callback(self._set_awaiting_answer)
        registry.context_factory.set_ask_callback(self.ask)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        console: Console | None = None,
        input_func: Callable[[str], str] = input,
    ) -> "Shell":
        """Wire the guard, filesystem, plugin system and shell from settings."""
        guard = PathGuard(settings.root_dir, protected_base=settings.protected_base)
        fs = SandboxedFileSystem(guard)
        app_config = {
            "root": str(guard.root),
            "log_level": settings.LOG_LEVEL,
            "plugin_timeout": settings.PLUGIN_TIMEOUT,
        }
        factory = PluginContextFactory(fs, EventBus(), app_config)
        registry = PluginRegistry(PluginSandbox(default_timeout=settings.PLUGIN_TIMEOUT), factory)
        return cls(
            fs,
            registry,
            console=console,
            catalogue=load_commands(settings.COMMANDS_FILE or None),
            input_func=input_func,
            plugin_retries=settings.PLUGIN_MAX_RETRIES,
        )

    @property
    def fs(self) -> SandboxedFileSystem:
        return self.context.fs

    def _set_awaiting_answer(self, waiting: bool) -> None:
        self.awaiting_answer = waiting

    def stop(self) -> None:
        self.running = False

    async def read_line(self, prompt: str = PROMPT) -> str:
        """Read one line without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._input, prompt)

    async def ask(self, question: str) -> str:
        """Prompt for an answer; end of input counts as an empty answer."""
        self.awaiting_answer = True
        try:
            return await self.read_line(question)
        except EOFError:
            return ""
        finally:
            self.awaiting_answer = False

    async def dispatch(self, line: str) -> None:
        """Run one command line."""
        if self.awaiting_answer:
            logger.debug("Ignoring input while a prompt is pending")
            return

        tokens = tokenize(line.strip())
        if not tokens:
            return
        name, args = tokens[0], tokens[1:]
        logger.debug(f"Dispatching {name} {args}")

        try:
            handler = BUILTIN_COMMANDS.get(name)
            if handler is not None:
                result = handler(args, self.context)
                if inspect.isawaitable(result):
                    await result
            elif self.registry.has_plugin(name):
                await self.registry.execute_command(name, args, retries=self._retries)
            else:
                print_warning(
                    f'Unknown command: {name}. Type "help" to see available commands.',
                    out=self.console,
                )
        except FileManagerError as e:
            logger.debug(f"{name} failed: {e}")
            print_error(str(e), out=self.console)
        except Exception as e:
            logger.exception(f"Unexpected error in command {name}")
            print_error(f"Command execution error: {e}", out=self.console)

    async def load_plugins(self, directory: Any) -> None:
        """Register the plugins of a directory; failures are reported, not raised."""
        try:
            plugins = await self.registry.load_from_directory(directory)
        except FileManagerError as e:
            logger.error(f"Plugin autoload failed: {e}")
            print_error(f"Plugin autoload failed: {e}", out=self.console)
            return
        if plugins:
            print_info(f"Loaded {len(plugins)} plugins from {directory}", out=self.console)

    async def run(self) -> None:
        """Read and dispatch lines until ``exit`` or end of input."""
        self.running = True
        print_info("File manager started. Type help for assistance.", out=self.console)

        while self.running:
            try:
                line = await self.read_line(PROMPT)
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                break
            await self.dispatch(line)

        self.running = False
        print_info("Session ended.", out=self.console)
