"""Supervision of the single stdio child process.

Spawns the configured command through the shell, pumps its stdout to the
bridge as raw chunks, mirrors its stderr to the log and reports its exit.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress

import structlog

logger = structlog.get_logger(__name__)

READ_CHUNK_SIZE = 64 * 1024
STREAM_LIMIT = 1024 * 1024
STDOUT_DRAIN_TIMEOUT = 2.0
STOP_TIMEOUT = 5.0
SIGNALLED_EXIT_CODE = 1


class ProcessSupervisor:
    """Owns the child process for the bridge's whole lifetime.

    Args:
        on_stdout: Awaited with every stdout chunk, one at a time and in order.
            The supervisor never looks inside the bytes.
        on_exit: Called once with the exit code when the child is gone.
            A child killed by a signal reports ``SIGNALLED_EXIT_CODE``.
    """

    def __init__(
        self,
        on_stdout: Callable[[bytes], Awaitable[None]],
        on_exit: Callable[[int], None],
    ) -> None:
        self._on_stdout = on_stdout
        self._on_exit = on_exit
        self._proc: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task] = []
        self._stdout_task: asyncio.Task | None = None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc else None

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self, command: str) -> asyncio.subprocess.Process:
        """Launch ``command`` through the shell so its syntax is honored."""
        if self._proc is not None:
            raise RuntimeError("Subprocess already started")
        logger.info("Spawning stdio subprocess", command=command)
        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
        )
        self._proc = proc
        logger.info("Subprocess started", pid=proc.pid)

        self._stdout_task = asyncio.create_task(self._pump_stdout(proc))
        self._tasks = [
            self._stdout_task,
            asyncio.create_task(self._pump_stderr(proc)),
            asyncio.create_task(self._monitor(proc)),
        ]
        return proc

    def write(self, data: bytes) -> bool:
        """Queue bytes on the child's stdin.

        Returns False instead of raising when the child cannot take input.
        Call :meth:`drain` to wait for back-pressure to clear.
        """
        proc = self._proc
        if proc is None or proc.stdin is None or proc.returncode is not None:
            return False
        if proc.stdin.is_closing():
            return False
        try:
            proc.stdin.write(data)
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.warning("Write to subprocess stdin failed", error=str(exc))
            return False
        return True

    async def drain(self) -> bool:
        proc = self._proc
        if proc is None or proc.stdin is None:
            return False
        try:
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.warning("Subprocess stdin closed while draining", error=str(exc))
            return False
        return True

    def kill(self) -> None:
        """Terminate the child. Safe to call any number of times."""
        proc = self._proc
        if proc is None or proc.returncode is not None:
            return
        logger.info("Terminating subprocess", pid=proc.pid)
        with suppress(ProcessLookupError):
            proc.terminate()

    async def stop(self) -> None:
        """Terminate the child, escalate to SIGKILL if needed, and stop pumping."""
        proc = self._proc
        if proc is not None and proc.returncode is None:
            self.kill()
            try:
                await asyncio.wait_for(proc.wait(), timeout=STOP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Subprocess did not exit in time, killing", pid=proc.pid)
                with suppress(ProcessLookupError):
                    proc.kill()
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
        self._tasks = []

    # ------------------------------------------------------------------
    # Internal: stream pumps
    # ------------------------------------------------------------------

    async def _pump_stdout(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stdout is not None
        while True:
            chunk = await proc.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                logger.debug("Subprocess stdout EOF", pid=proc.pid)
                return
            try:
                await self._on_stdout(chunk)
            except Exception:
                logger.exception("Failed to handle subprocess output", pid=proc.pid)

    async def _pump_stderr(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stderr is not None
        while True:
            try:
                raw = await proc.stderr.readline()
            except ValueError:
                # Over the stream limit; the oversized fragment has been discarded.
                logger.warning("Child stderr line too long, skipped", pid=proc.pid)
                continue
            if not raw:
                return
            line = raw.decode(errors="replace").rstrip("\r\n")
            if line.strip():
                logger.warning("Child stderr", line=line)

    async def _monitor(self, proc: asyncio.subprocess.Process) -> None:
        returncode = await proc.wait()
        # Let already-written output reach clients before tearing down.
        if self._stdout_task is not None and not self._stdout_task.done():
            await asyncio.wait({self._stdout_task}, timeout=STDOUT_DRAIN_TIMEOUT)
        exit_code = returncode if returncode >= 0 else SIGNALLED_EXIT_CODE
        logger.error(
            "Child exited",
            pid=proc.pid,
            returncode=returncode,
            exit_code=exit_code,
        )
        self._on_exit(exit_code)
