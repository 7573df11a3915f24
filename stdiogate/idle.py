"""Idle shutdown: stop the bridge after a span with no connected clients."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; the running asyncio loop in production."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class IdleState(str, Enum):
    """Whether a shutdown timer is currently pending."""
    ARMED = "ARMED"
    DISARMED = "DISARMED"


class IdleController:
    """Two-state machine driven by registry size changes.

    The timer is armed exactly when the registry is empty and idle shutdown is
    enabled. Every transition cancels the previous timer before deciding the
    next state, so two timers never overlap.

    Args:
        idle_seconds: Span without clients before ``on_idle`` fires. ``0`` or
            ``None`` disables the controller for good.
        scheduler: Provides ``call_later``.
        on_idle: Invoked once when the timer fires.
    """

    def __init__(
        self,
        idle_seconds: float | None,
        scheduler: Scheduler,
        on_idle: Callable[[], None],
    ) -> None:
        self._idle_seconds = idle_seconds or 0.0
        self._scheduler = scheduler
        self._on_idle = on_idle
        self._timer: TimerHandle | None = None

    @property
    def enabled(self) -> bool:
        return self._idle_seconds > 0

    @property
    def state(self) -> IdleState:
        return IdleState.ARMED if self._timer is not None else IdleState.DISARMED

    def on_registry_changed(self, size: int) -> None:
        """Re-evaluate after a registry mutation (and once at startup with 0)."""
        if not self.enabled:
            return
        self.cancel()
        if size == 0:
            self._timer = self._scheduler.call_later(self._idle_seconds, self._fire)
            logger.info(
                "Idle timer started; no active SSE connections",
                idle_seconds=self._idle_seconds,
            )
        else:
            logger.info("Idle timer cleared", active_sessions=size)

    def cancel(self) -> None:
        """Disarm without scheduling a replacement."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        logger.info(
            "Bridge idle with no active SSE connections; shutting down",
            idle_seconds=self._idle_seconds,
        )
        self._on_idle()
