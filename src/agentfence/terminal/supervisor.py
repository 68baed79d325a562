"""Supervised shell execution with timeout and cancellation.

Each invocation spawns one shell in its own process group, streams output
to the caller as it arrives, and guarantees that on timeout or cancellation
the whole group (including forked descendants) is killed before returning.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import os
import signal
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from agentfence.logging import TRACE
from agentfence.terminal.backend import PassthroughBackend
from agentfence.terminal.errors import (
    DirectoryNotFound,
    ExecutionCancelled,
    ExecutionTimeout,
    SpawnFailure,
)
from agentfence.terminal.result import ExecutionResult, ExecutionStatus

if TYPE_CHECKING:
    from agentfence.terminal.backend import SandboxBackend
    from agentfence.terminal.cancellation import CancellationToken

_log = logging.getLogger("agentfence.terminal.supervisor")

OutputCallback = Callable[[bytes], "Awaitable[None] | None"]

READ_CHUNK_SIZE = 64 * 1024

# How long to wait for pipes to close after the process group was killed
KILL_GRACE_SECONDS = 2.0

# Upper bound on stderr kept for violation diagnostics
STDERR_CAPTURE_LIMIT = 1024 * 1024

ESCALATION_HINT = (
    "Retry with unsandboxed=true to run this command outside the sandbox. "
    "The user will be asked for permission."
)


class _Run:
    """Bookkeeping for one supervised invocation."""

    def __init__(self, command: str, sandboxed: bool) -> None:
        self.command = command
        self.sandboxed = sandboxed
        self.status = ExecutionStatus.CREATED
        self.stderr = bytearray()
        self.started = time.perf_counter()

    def transition(self, status: ExecutionStatus) -> None:
        if self.status.terminal:
            return
        _log.log(TRACE, "Execution %r: %s -> %s", self.command, self.status.value, status.value)
        self.status = status

    @property
    def duration_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000

    def capture_stderr(self, chunk: bytes) -> None:
        self.stderr.extend(chunk)
        overflow = len(self.stderr) - STDERR_CAPTURE_LIMIT
        if overflow > 0:
            del self.stderr[:overflow]


class ProcessSupervisor:
    """Spawn and supervise shell commands.

    The supervisor holds no per-invocation state, so one instance can run
    any number of concurrent executions.
    """

    def __init__(self, backend: SandboxBackend | None = None, shell: str = "bash") -> None:
        """Initialize the supervisor.

        Args:
            backend: Sandbox mechanism used for sandboxed executions.
            shell: Shell used to interpret the command line (``shell -c``).
        """
        self._backend: SandboxBackend = backend or PassthroughBackend()
        self._shell = shell

    @property
    def backend(self) -> SandboxBackend:
        return self._backend

    async def execute(
        self,
        command: str,
        cwd: str,
        *,
        on_output: OutputCallback | None = None,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
        sandboxed: bool = True,
        env: dict[str, str] | None = None,
    ) -> ExecutionResult:
        """Run a shell command to completion.

        Args:
            command: Command line to run with ``shell -c``.
            cwd: Working directory. Must exist.
            on_output: Called with each stdout/stderr chunk as it is read.
                May be a coroutine function; it is awaited before reading on.
            cancel: Token that aborts the execution when cancelled.
            timeout: Seconds before the process group is killed. None or
                a value <= 0 disables the timeout.
            sandboxed: Wrap the command with the sandbox backend.
            env: Additional environment variables.

        Returns:
            ExecutionResult with the exit code (None if killed by a signal).

        Raises:
            DirectoryNotFound: ``cwd`` does not exist.
            SpawnFailure: The shell could not be started.
            ExecutionTimeout: The timeout expired.
            ExecutionCancelled: ``cancel`` fired before the process finished.
            Exception: Whatever ``on_output`` raised; the process group is
                killed first.
        """
        if not os.path.isdir(cwd):
            raise DirectoryNotFound(path=cwd)

        run = _Run(command, sandboxed)
        command_line = await self._backend.wrap_command(command) if sandboxed else command

        process_env = None
        if env:
            process_env = os.environ.copy()
            process_env.update(env)

        try:
            process = await asyncio.create_subprocess_exec(
                self._shell,
                "-c",
                command_line,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=process_env,
                start_new_session=True,  # Own process group for group kill
            )
        except OSError as e:
            run.transition(ExecutionStatus.FAILED)
            _log.warning("Failed to spawn %r: %s", command, e)
            raise SpawnFailure(command=command, cause=e) from e

        run.transition(ExecutionStatus.RUNNING)
        _log.debug(
            "Spawned pid=%d (%s): %s",
            process.pid,
            "sandboxed" if sandboxed else "unsandboxed",
            command,
        )

        readers = [
            asyncio.create_task(self._pump(process.stdout, on_output, None)),
            asyncio.create_task(self._pump(process.stderr, on_output, run)),
        ]
        completion = asyncio.create_task(self._wait_closed(process, readers))
        cancel_waiter = asyncio.create_task(cancel.wait()) if cancel is not None else None

        waiters: set[asyncio.Task[None]] = {completion}
        if cancel_waiter is not None:
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=timeout if timeout is not None and timeout > 0 else None,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if cancel is not None and cancel.cancelled and completion not in done:
                run.transition(ExecutionStatus.CANCELLED)
                await self._terminate(process, completion, readers)
                _log.info("Cancelled after %.0fms: %s", run.duration_ms, command)
                raise ExecutionCancelled(command=command)

            if completion not in done:
                run.transition(ExecutionStatus.TIMED_OUT)
                await self._terminate(process, completion, readers)
                _log.warning("Timed out after %ss: %s", timeout, command)
                raise ExecutionTimeout(command=command, timeout=float(timeout or 0))

            # Surface reader errors (e.g. a failing output callback)
            try:
                completion.result()
            except Exception:
                run.transition(ExecutionStatus.FAILED)
                _log.warning("Output delivery failed after %.0fms: %s", run.duration_ms, command)
                raise
        except asyncio.CancelledError:
            run.transition(ExecutionStatus.CANCELLED)
            self.kill_group(process)
            for task in (completion, *readers):
                task.cancel()
            raise
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()

        run.transition(ExecutionStatus.COMPLETED)
        exit_code, signal_name = _exit_status(process.returncode)

        if sandboxed and exit_code != 0:
            await self._report_violations(run, on_output)

        _log.debug("Completed exit=%s in %.0fms: %s", exit_code, run.duration_ms, command)
        return ExecutionResult(
            command=command,
            exit_code=exit_code,
            signal=signal_name,
            duration_ms=run.duration_ms,
            sandboxed=sandboxed,
            status=run.status,
        )

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        on_output: OutputCallback | None,
        run: _Run | None,
    ) -> None:
        """Forward a pipe to the output callback until EOF."""
        if stream is None:
            return
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                return
            if run is not None:
                run.capture_stderr(chunk)
            await _deliver(on_output, chunk)

    async def _wait_closed(
        self, process: asyncio.subprocess.Process, readers: list[asyncio.Task[None]]
    ) -> None:
        """Wait for process exit and for both pipes to reach EOF.

        A reader that fails stops draining its pipe, which can leave the
        child blocked on a full pipe forever. In that case the group is
        killed, the remaining output is discarded and the reader's error is
        re-raised.
        """
        exited = asyncio.create_task(process.wait())
        try:
            done, _ = await asyncio.wait({exited, *readers}, return_when=asyncio.FIRST_EXCEPTION)
            failed = next(
                (t for t in readers if t in done and not t.cancelled() and t.exception() is not None),
                None,
            )
            if failed is None:
                await asyncio.gather(*readers)
                await exited
                return

            _log.debug("Output reader failed, killing pid=%d: %s", process.pid, failed.exception())
            self.kill_group(process)
            for task in readers:
                task.cancel()
            await asyncio.gather(*readers, return_exceptions=True)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(
                    asyncio.gather(_discard(process.stdout), _discard(process.stderr)),
                    KILL_GRACE_SECONDS,
                )
            await exited
            raise failed.exception()  # type: ignore[misc]
        finally:
            if not exited.done():
                exited.cancel()

    async def _terminate(
        self,
        process: asyncio.subprocess.Process,
        completion: asyncio.Task[None],
        readers: list[asyncio.Task[None]],
    ) -> None:
        """Kill the process group and reap the shell."""
        self.kill_group(process)
        try:
            await asyncio.wait_for(asyncio.shield(completion), KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            # Pipes held open by a process that escaped the group
            for task in readers:
                task.cancel()
            with contextlib.suppress(asyncio.TimeoutError, ProcessLookupError):
                await asyncio.wait_for(process.wait(), KILL_GRACE_SECONDS)
        except Exception as e:
            _log.debug("Ignoring error while reaping killed process: %s", e)
        if not completion.done():
            completion.cancel()

    @staticmethod
    def kill_group(process: asyncio.subprocess.Process) -> None:
        """Send SIGKILL to the process group, falling back to the child.

        Safe to call on a process that already exited.
        """
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError) as e:
            _log.debug("killpg(%d) failed: %s", process.pid, e)
        with contextlib.suppress(ProcessLookupError):
            process.kill()

    async def _report_violations(self, run: _Run, on_output: OutputCallback | None) -> None:
        """Emit sandbox violation diagnostics the backend adds to stderr."""
        stderr = run.stderr.decode("utf-8", errors="replace")
        annotated = self._backend.annotate_failure(run.command, stderr)
        if annotated == stderr:
            return
        extra = annotated.replace(stderr, "", 1).strip()
        if not extra:
            return
        _log.info("Sandbox violations reported for: %s", run.command)
        await _deliver(on_output, f"\n{extra}\n\n{ESCALATION_HINT}\n".encode())


async def _deliver(on_output: OutputCallback | None, chunk: bytes) -> None:
    if on_output is None:
        return
    result = on_output(chunk)
    if inspect.isawaitable(result):
        await result


async def _discard(stream: asyncio.StreamReader | None) -> None:
    if stream is None:
        return
    while await stream.read(READ_CHUNK_SIZE):
        pass


def _exit_status(returncode: int | None) -> tuple[int | None, str | None]:
    """Split asyncio's returncode into (exit_code, signal_name)."""
    if returncode is None or returncode >= 0:
        return returncode, None
    try:
        name = signal.Signals(-returncode).name
    except ValueError:
        name = f"SIG{-returncode}"
    return None, name
