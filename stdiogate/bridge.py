"""The bridge coordinator: one stdio child, many SSE clients.

Output of the child is framed into JSON messages and fanned out to every
registered session. Messages posted by any client are written to the child's
single stdin. The child sees one interleaved conversation; correlating
responses is left to the ids inside the protocol messages.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

import structlog

from stdiogate.framer import LineFramer
from stdiogate.idle import IdleController, IdleState, Scheduler, TimerHandle
from stdiogate.registry import Session, SessionRegistry
from stdiogate.supervisor import ProcessSupervisor

logger = structlog.get_logger(__name__)

LOGGED_LINE_LIMIT = 500


class Supervisor(Protocol):
    """What the bridge needs from whatever owns the child process."""

    @property
    def running(self) -> bool: ...

    async def start(self, command: str) -> Any: ...

    def write(self, data: bytes) -> bool: ...

    async def drain(self) -> bool: ...

    def kill(self) -> None: ...

    async def stop(self) -> None: ...


SupervisorFactory = Callable[
    [Callable[[bytes], Awaitable[None]], Callable[[int], None]], Supervisor
]


class SubmitResult(str, Enum):
    """Outcome of routing one client message to the child."""
    ACCEPTED = "ACCEPTED"
    NO_SESSION = "NO_SESSION"
    PROCESS_UNAVAILABLE = "PROCESS_UNAVAILABLE"


class BridgeStoppedError(RuntimeError):
    """Raised when a client tries to connect after shutdown began."""


class _LoopScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class Bridge:
    """Composes the supervisor, framer, session registry and idle controller.

    Args:
        command: Shell command line of the child.
        idle_seconds: Idle shutdown span; ``0`` disables it.
        scheduler: Timer source for the idle controller. Defaults to the
            running event loop.
        supervisor_factory: Builds the supervisor from the bridge's stdout
            and exit callbacks. Defaults to :class:`ProcessSupervisor`.
    """

    def __init__(
        self,
        command: str,
        *,
        idle_seconds: float = 0.0,
        scheduler: Scheduler | None = None,
        supervisor_factory: SupervisorFactory = ProcessSupervisor,
    ) -> None:
        self.command = command
        self.registry = SessionRegistry()
        self._framer = LineFramer()
        self._supervisor = supervisor_factory(self.handle_output, self._on_subprocess_exit)
        self._idle = IdleController(
            idle_seconds,
            scheduler or _LoopScheduler(),
            self._on_idle,
        )
        self._shutdown_hooks: list[Callable[[], None]] = []
        self._stopped = asyncio.Event()
        self._shutdown_reason: str | None = None
        self._exit_code: int | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def shutdown_reason(self) -> str | None:
        return self._shutdown_reason

    @property
    def idle_state(self) -> IdleState:
        return self._idle.state

    @property
    def session_count(self) -> int:
        return len(self.registry)

    def has_session(self, session_id: str) -> bool:
        return session_id in self.registry

    def add_shutdown_hook(self, hook: Callable[[], None]) -> None:
        self._shutdown_hooks.append(hook)

    async def wait_stopped(self) -> int:
        await self._stopped.wait()
        return self._exit_code or 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Spawn the child and arm the idle timer for the empty registry."""
        await self._supervisor.start(self.command)
        self._idle.on_registry_changed(len(self.registry))

    def shutdown(self, reason: str, exit_code: int = 0) -> None:
        """Tear the whole bridge down. Only the first call has any effect."""
        if self.stopped:
            return
        self._idle.cancel()
        self._shutdown_reason = reason
        self._exit_code = exit_code
        self._stopped.set()
        logger.info("Shutting down bridge", reason=reason, exit_code=exit_code)
        self._supervisor.kill()
        for session in self.registry.clear():
            session.close()
        for hook in self._shutdown_hooks:
            hook()

    async def close(self) -> None:
        """Final cleanup once nothing else runs: reap the child and its pumps."""
        self.shutdown("closed")
        await self._supervisor.stop()

    def _on_subprocess_exit(self, exit_code: int) -> None:
        self.shutdown("subprocess exited", exit_code)

    def _on_idle(self) -> None:
        self.shutdown("idle timeout", 0)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def connect(self, session: Session) -> None:
        if self.stopped:
            raise BridgeStoppedError("Bridge is shutting down")
        self.registry.add(session)
        logger.info("SSE session connected", session_id=session.id, active_sessions=len(self.registry))
        self._idle.on_registry_changed(len(self.registry))

    def disconnect(self, session_id: str, reason: str = "client closed") -> bool:
        """Forget a session. Returns False when it was already gone."""
        session = self.registry.remove(session_id)
        if session is None:
            return False
        session.close()
        logger.info(
            "SSE session disconnected",
            session_id=session_id,
            reason=reason,
            active_sessions=len(self.registry),
        )
        if not self.stopped:
            self._idle.on_registry_changed(len(self.registry))
        return True

    # ------------------------------------------------------------------
    # Inbound: client -> child
    # ------------------------------------------------------------------

    async def submit(self, session_id: str, message: Any) -> SubmitResult:
        """Write one client message to the child's stdin as a single JSON line."""
        if self.registry.get(session_id) is None:
            logger.warning("Message for unknown session", session_id=session_id)
            return SubmitResult.NO_SESSION
        # ASCII escapes keep lone surrogates from a valid JSON body encodable.
        line = json.dumps(message, separators=(",", ":")) + "\n"
        logger.debug("SSE → child", session_id=session_id, message=message)
        if not self._supervisor.write(line.encode("utf-8")):
            return SubmitResult.PROCESS_UNAVAILABLE
        if not await self._supervisor.drain():
            return SubmitResult.PROCESS_UNAVAILABLE
        return SubmitResult.ACCEPTED

    # ------------------------------------------------------------------
    # Outbound: child -> clients
    # ------------------------------------------------------------------

    async def handle_output(self, chunk: bytes) -> None:
        """Frame a stdout chunk and fan every decoded message out."""
        for frame in self._framer.decode(chunk):
            if not frame.ok:
                logger.error(
                    "Child non-JSON output dropped",
                    line=frame.line[:LOGGED_LINE_LIMIT],
                    length=len(frame.line),
                    error=frame.error,
                )
                continue
            logger.debug("Child → SSE", message=frame.message)
            await self.broadcast(frame.message)

    async def broadcast(self, message: Any) -> int:
        """Deliver to every registered session; returns how many accepted it.

        A failing session is disconnected without affecting the others.
        """
        delivered = 0
        for session in self.registry.sessions():
            if session.id not in self.registry:
                continue
            try:
                ok = await session.deliver(message)
            except Exception:
                logger.exception("Delivery raised", session_id=session.id)
                ok = False
            if ok:
                delivered += 1
                continue
            logger.error("Failed to send to session", session_id=session.id)
            self.disconnect(session.id, reason="delivery failed")
        return delivered
