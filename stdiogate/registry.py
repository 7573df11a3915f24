"""Registry of connected client sessions."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)


class Session(Protocol):
    """A connected client as seen by the bridge."""

    id: str

    async def deliver(self, message: Any) -> bool:
        """Push one decoded message to the client.

        Returns False when the connection is gone or cannot take more events.
        """
        ...

    def close(self) -> None:
        """Ask the transport to end the connection."""
        ...


class SessionRegistry:
    """Mapping of session id to session, in connection order.

    All calls happen on the event loop thread, so there is no locking.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(self.sessions())

    def add(self, session: Session) -> None:
        """Register a session.

        Raises:
            ValueError: If a live session already uses this id.
        """
        if session.id in self._sessions:
            raise ValueError(f"Session {session.id} is already registered")
        self._sessions[session.id] = session
        logger.debug("Session registered", session_id=session.id, total=len(self._sessions))

    def remove(self, session_id: str) -> Session | None:
        """Unregister a session. Unknown ids are ignored."""
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.debug("Session unregistered", session_id=session_id, total=len(self._sessions))
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def sessions(self) -> list[Session]:
        """Snapshot of the registered sessions, safe to iterate while mutating."""
        return list(self._sessions.values())

    def for_each(self, fn: Callable[[Session], None]) -> None:
        for session in self.sessions():
            fn(session)

    def clear(self) -> list[Session]:
        """Drop every session and return what was registered."""
        removed = self.sessions()
        self._sessions.clear()
        return removed
