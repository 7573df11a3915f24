"""Tests for the idle shutdown state machine."""

from stdiogate.idle import IdleController, IdleState
from tests.conftest import FakeScheduler


def _controller(scheduler: FakeScheduler, idle_seconds: float | None = 60.0):
    fired: list[bool] = []
    controller = IdleController(idle_seconds, scheduler, lambda: fired.append(True))
    return controller, fired


class TestDisabled:
    def test_zero_span_never_arms(self, scheduler: FakeScheduler) -> None:
        controller, _ = _controller(scheduler, 0)
        controller.on_registry_changed(0)
        assert not controller.enabled
        assert controller.state == IdleState.DISARMED
        assert scheduler.timers == []

    def test_none_span_never_arms(self, scheduler: FakeScheduler) -> None:
        controller, _ = _controller(scheduler, None)
        controller.on_registry_changed(0)
        controller.on_registry_changed(3)
        controller.on_registry_changed(0)
        assert scheduler.timers == []


class TestTransitions:
    def test_startup_with_empty_registry_arms(self, scheduler: FakeScheduler) -> None:
        controller, fired = _controller(scheduler, 60.0)
        controller.on_registry_changed(0)
        assert controller.state == IdleState.ARMED
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay == 60.0
        scheduler.fire(scheduler.pending[0])
        assert fired == [True]
        assert controller.state == IdleState.DISARMED

    def test_zero_one_zero(self, scheduler: FakeScheduler) -> None:
        controller, fired = _controller(scheduler, 1.0)

        controller.on_registry_changed(0)
        first = scheduler.timers[0]
        assert controller.state == IdleState.ARMED

        controller.on_registry_changed(1)
        assert first.cancelled
        assert controller.state == IdleState.DISARMED
        assert scheduler.pending == []

        controller.on_registry_changed(0)
        assert controller.state == IdleState.ARMED
        second = scheduler.pending[0]
        assert second is not first

        scheduler.fire(first)
        assert fired == []
        scheduler.fire(second)
        assert fired == [True]

    def test_rearm_cancels_previous_timer(self, scheduler: FakeScheduler) -> None:
        controller, _ = _controller(scheduler, 5.0)
        controller.on_registry_changed(0)
        controller.on_registry_changed(0)
        assert len(scheduler.timers) == 2
        assert scheduler.timers[0].cancelled
        assert len(scheduler.pending) == 1

    def test_nonzero_stays_disarmed(self, scheduler: FakeScheduler) -> None:
        controller, _ = _controller(scheduler, 5.0)
        controller.on_registry_changed(2)
        controller.on_registry_changed(1)
        assert controller.state == IdleState.DISARMED
        assert scheduler.timers == []

    def test_cancel_disarms(self, scheduler: FakeScheduler) -> None:
        controller, fired = _controller(scheduler, 5.0)
        controller.on_registry_changed(0)
        timer = scheduler.timers[0]
        controller.cancel()
        assert timer.cancelled
        assert controller.state == IdleState.DISARMED
        scheduler.fire(timer)
        assert fired == []

    def test_cancel_when_disarmed_is_noop(self, scheduler: FakeScheduler) -> None:
        controller, _ = _controller(scheduler, 5.0)
        controller.cancel()
        assert controller.state == IdleState.DISARMED
