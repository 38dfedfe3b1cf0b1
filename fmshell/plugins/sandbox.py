"""
Time-boxed plugin execution for fmshell.

The sandbox runs a plugin's command handler under a timeout and an optional
retry policy, and rewraps every failure so the caller always learns which
plugin failed.

Isolation Model:
    The sandbox is cooperative, not a security boundary. Coroutine handlers
    are cancelled when the timeout expires; synchronous handlers run in the
    default executor and a timed-out thread is abandoned, not killed.

Example:
    sandbox = PluginSandbox(default_timeout=10.0)

    await sandbox.execute(plugin, ["notes.txt"], context)
    await sandbox.execute_with_retry(plugin, [], context, max_retries=3)
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from typing import Any, Sequence

from fmshell.plugins.errors import ExecutionFailedError, ExecutionTimeoutError
from fmshell.plugins.sdk import Plugin

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class PluginSandbox:
    """Runs plugin handlers with a timeout and exponential-backoff retries.

    Attributes:
        _default_timeout: Timeout in seconds when none is given per call.
        _backoff_base: First retry delay in seconds.
        _backoff_max: Upper bound for a retry delay in seconds.
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        backoff_base: float = 1.0,
        backoff_max: float = 5.0,
    ):
        self._default_timeout = DEFAULT_TIMEOUT
        self.set_default_timeout(default_timeout)
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._execution_count = 0
        self._timeout_count = 0
        self._failure_count = 0

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    def set_default_timeout(self, timeout: float) -> None:
        """Set the timeout used when a call does not pass one.

        Raises:
            ValueError: If the timeout is not positive.
        """
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            raise ValueError(f"Timeout must be a positive number of seconds: {timeout!r}")
        self._default_timeout = float(timeout)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the retry that follows a failed ``attempt`` (0-based)."""
        return min(self._backoff_base * (2 ** attempt), self._backoff_max)

    async def execute(
        self,
        plugin: Plugin,
        args: Sequence[str],
        context: Any,
        timeout: float | None = None,
    ) -> Any:
        """Run ``plugin.execute(args, context)`` under a timeout.

        Args:
            plugin: The plugin to run.
            args: Command arguments.
            context: The plugin context.
            timeout: Seconds to wait; defaults to the sandbox timeout.

        Returns:
            Whatever the handler returned.

        Raises:
            ExecutionTimeoutError: If the handler did not finish in time.
            ExecutionFailedError: If the handler raised.
        """
        limit = self._default_timeout if timeout is None else timeout
        self._execution_count += 1
        start = time.monotonic()

        try:
            if inspect.iscoroutinefunction(plugin.execute):
                awaitable = plugin.execute(list(args), context)
            else:
                loop = asyncio.get_running_loop()
                awaitable = loop.run_in_executor(
                    None, functools.partial(plugin.execute, list(args), context)
                )
            result = await asyncio.wait_for(awaitable, timeout=limit)
            if inspect.isawaitable(result):
                # Sync wrappers may still hand back a coroutine; same time budget
                remaining = max(limit - (time.monotonic() - start), 0.0)
                result = await asyncio.wait_for(result, timeout=remaining)

        except asyncio.TimeoutError as e:
            self._timeout_count += 1
            logger.warning(f"Plugin {plugin.name} timed out after {limit}s")
            raise ExecutionTimeoutError(plugin.name, limit) from e

        except Exception as e:
            self._failure_count += 1
            logger.debug(f"Plugin {plugin.name} raised", exc_info=True)
            raise ExecutionFailedError(plugin.name, e) from e

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(f"Plugin {plugin.name} finished in {elapsed_ms:.1f}ms")
        return result

    async def execute_with_retry(
        self,
        plugin: Plugin,
        args: Sequence[str],
        context: Any,
        max_retries: int = 3,
        timeout: float | None = None,
    ) -> Any:
        """Run a plugin, retrying failed attempts with exponential backoff.

        Args:
            max_retries: Total number of attempts.

        Raises:
            ExecutionTimeoutError | ExecutionFailedError: The last failure,
                carrying the number of attempts made.
        """
        attempts = max(1, max_retries)
        last_error: ExecutionTimeoutError | ExecutionFailedError | None = None

        for attempt in range(attempts):
            try:
                return await self.execute(plugin, args, context, timeout=timeout)
            except (ExecutionTimeoutError, ExecutionFailedError) as e:
                last_error = e
                if attempt + 1 < attempts:
                    delay = self.backoff_delay(attempt)
                    logger.info(
                        f"Plugin {plugin.name} attempt {attempt + 1}/{attempts} failed, "
                        f"retrying in {delay}s"
                    )
                    await asyncio.sleep(delay)

        assert last_error is not None
        if isinstance(last_error, ExecutionTimeoutError):
            raise ExecutionTimeoutError(plugin.name, last_error.timeout, attempts) from last_error
        raise ExecutionFailedError(plugin.name, last_error.original, attempts) from last_error.original

    def get_execution_stats(self) -> dict[str, Any]:
        return {
            "execution_count": self._execution_count,
            "timeout_count": self._timeout_count,
            "failure_count": self._failure_count,
            "default_timeout": self._default_timeout,
        }

    def __repr__(self) -> str:
        return (
            f"<PluginSandbox timeout={self._default_timeout}s "
            f"executions={self._execution_count}>"
        )
