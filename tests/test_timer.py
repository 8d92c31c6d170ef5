"""
Tests for the deadline-based countdown.
"""
from interview_sim.timer import Countdown


class TestCountdown:
    """Test Countdown."""

    def test_not_started_reports_full_limit(self, clock):
        """An idle countdown shows its limit and never expires."""
        timer = Countdown(45, clock=clock)
        clock.advance(100)

        assert timer.remaining() == 45
        assert timer.expired is False
        assert timer.poll() is False

    def test_remaining_rounds_up(self, clock):
        """Partial seconds still count as a second left."""
        timer = Countdown(45, clock=clock)
        timer.restart()
        clock.advance(0.4)
        assert timer.remaining() == 45

        clock.advance(44.0)
        assert timer.remaining() == 1

    def test_poll_fires_once(self, clock):
        """The expiry callback fires exactly once per restart."""
        fired = []
        timer = Countdown(10, on_expire=lambda: fired.append(True), clock=clock)
        timer.restart()

        clock.advance(9.5)
        assert timer.poll() is False

        clock.advance(1)
        assert timer.poll() is True
        assert timer.poll() is False
        assert fired == [True]

    def test_restart_rearms_with_new_limit(self, clock):
        """restart() resets the deadline and can change the limit."""
        fired = []
        timer = Countdown(10, on_expire=lambda: fired.append(1), clock=clock)
        timer.restart()
        clock.advance(11)
        timer.poll()

        timer.restart(limit=30)
        assert timer.limit == 30
        assert timer.remaining() == 30
        clock.advance(31)
        assert timer.poll() is True
        assert len(fired) == 2

    def test_cancel_stops_expiry(self, clock):
        """A cancelled countdown does not fire."""
        timer = Countdown(5, on_expire=lambda: None, clock=clock)
        timer.restart()
        timer.cancel()
        clock.advance(10)

        assert timer.poll() is False
        assert timer.elapsed() == 0.0
