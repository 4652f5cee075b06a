"""Local asyncio-based execution engine implementation."""

from __future__ import annotations

import asyncio
import time

from duplicity_wrapper.errors import CommandTimeoutError, SpawnError
from duplicity_wrapper.execution.base import CommandExecutor, ProcessInvocation, ProcessOutcome
from duplicity_wrapper.execution.listeners import CommandListener
from duplicity_wrapper.util.logging import get_logger

_READ_CHUNK = 64 * 1024


class LocalExecutor(CommandExecutor):
    """Execute commands on the local host without blocking the event loop."""

    def __init__(self, kill_grace_s: float = 5.0) -> None:
        """Initialize the executor.

        Args:
            kill_grace_s: Seconds a timed-out process gets after SIGTERM before SIGKILL.
        """

        self._kill_grace_s = kill_grace_s
        self._logger = get_logger(self.__class__.__name__)

    async def run(
        self,
        invocation: ProcessInvocation,
        listener: CommandListener | None = None,
    ) -> ProcessOutcome:
        """Run a command locally and capture its output.

        Args:
            invocation: The process to launch.
            listener: Optional receiver for lifecycle notifications.

        Returns:
            ProcessOutcome with stdout, stderr, exit code, and duration.
        """

        listener = listener or CommandListener()
        command_line = invocation.command_line
        listener.on_command(command_line)

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *invocation.argv,
                cwd=str(invocation.cwd) if invocation.cwd is not None else None,
                env=invocation.env or None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SpawnError(f"Unable to launch {invocation.program}: {exc}") from exc

        timeout = invocation.timeout_s if invocation.timeout_s and invocation.timeout_s > 0 else None
        try:
            exit_code, stdout, stderr = await asyncio.wait_for(
                self._communicate(process), timeout=timeout
            )
        except asyncio.TimeoutError:
            self._logger.warning("Command timed out after %ss: %s", timeout, command_line)
            await self._terminate(process)
            listener.on_close(None)
            raise CommandTimeoutError(command_line, timeout or 0) from None
        duration = time.monotonic() - start
        self._logger.info(
            "Command finished with exit code %s in %.2fs.",
            exit_code,
            duration,
        )

        listener.on_stdout(stdout)
        listener.on_stderr(stderr)
        listener.on_close(exit_code)
        return ProcessOutcome(
            command=invocation.argv,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            duration_s=duration,
        )

    async def _communicate(self, process: asyncio.subprocess.Process) -> tuple[int, str, str]:
        assert process.stdout is not None and process.stderr is not None
        exit_code, stdout, stderr = await asyncio.gather(
            process.wait(),
            _drain(process.stdout),
            _drain(process.stderr),
        )
        return exit_code, stdout, stderr

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self._kill_grace_s)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            self._logger.warning("Process %s ignored SIGTERM; killing it.", process.pid)
            process.kill()
            await process.wait()


async def _drain(stream: asyncio.StreamReader) -> str:
    chunks: list[bytes] = []
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks).decode("utf-8", errors="replace")
