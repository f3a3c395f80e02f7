"""Tests for timed transitions."""

import numpy as np
import pytest

from py_ftm.core.transitions import (
    DEFAULT_DURATION_MS,
    Transition,
    TransitionManager,
    ease_cubic_in_out,
    interpolate_positions,
)


@pytest.fixture
def start():
    return np.array([[0.0, 0.0], [100.0, 50.0]])


@pytest.fixture
def end():
    return np.array([[40.0, 20.0], [100.0, 150.0]])


class TestEasing:
    """Test the cubic easing curve."""

    def test_endpoints_and_midpoint(self):
        assert ease_cubic_in_out(0.0) == 0.0
        assert ease_cubic_in_out(0.5) == pytest.approx(0.5)
        assert ease_cubic_in_out(1.0) == pytest.approx(1.0)

    def test_symmetric(self):
        for t in (0.1, 0.25, 0.4):
            assert ease_cubic_in_out(t) + ease_cubic_in_out(1 - t) == pytest.approx(1.0)

    def test_slow_start(self):
        assert ease_cubic_in_out(0.25) == pytest.approx(0.0625)

    def test_clipped(self):
        assert ease_cubic_in_out(-1.0) == 0.0
        assert ease_cubic_in_out(2.0) == pytest.approx(1.0)


class TestTransition:
    """Test a single transition."""

    def test_interpolate_positions(self, start, end):
        np.testing.assert_allclose(interpolate_positions(start, end, 0.5), (start + end) / 2)

    def test_interpolate_shape_mismatch(self, start, end):
        with pytest.raises(ValueError):
            interpolate_positions(start, end[:1], 0.5)

    def test_progress(self, start, end):
        transition = Transition(start=start, target=end, started_at=1000.0, duration=1000.0)
        assert transition.progress(500.0) == 0.0
        assert transition.progress(1250.0) == pytest.approx(0.25)
        assert transition.progress(5000.0) == 1.0
        assert transition.eased_progress(1250.0) == pytest.approx(0.0625)

    def test_positions_follow_easing(self, start, end):
        transition = Transition(start=start, target=end, started_at=0.0, duration=1000.0)
        np.testing.assert_allclose(transition.positions_at(0.0), start)
        np.testing.assert_allclose(transition.positions_at(500.0), (start + end) / 2)
        np.testing.assert_allclose(transition.positions_at(1000.0), end)

    def test_linear_transition(self, start, end):
        transition = Transition(start=start, target=end, started_at=0.0,
                                duration=1000.0, eased=False)
        np.testing.assert_allclose(transition.positions_at(250.0), start + (end - start) * 0.25)

    def test_zero_duration_is_instant(self, start, end):
        transition = Transition(start=start, target=end, started_at=0.0, duration=0.0)
        assert transition.is_finished(0.0)
        np.testing.assert_allclose(transition.positions_at(0.0), end)

    def test_cancel(self, start, end):
        transition = Transition(start=start, target=end, started_at=0.0)
        assert not transition.is_finished(10.0)
        transition.cancel()
        assert transition.is_finished(10.0)


class TestTransitionManager:
    """Test sequencing and interruption."""

    def test_default_duration(self, start):
        manager = TransitionManager(start)
        assert manager.duration == DEFAULT_DURATION_MS == 1500.0
        assert not manager.is_transitioning

    def test_settles_at_target(self, start, end):
        manager = TransitionManager(start, duration=1000.0)
        manager.begin(end, now=0.0)
        assert manager.is_transitioning

        np.testing.assert_allclose(manager.positions_at(1000.0), end)
        assert not manager.is_transitioning
        np.testing.assert_allclose(manager.positions, end)

    def test_interrupt_starts_from_current_positions(self, start, end):
        """A new target mid-transition starts from where the points are, not from the old start."""
        manager = TransitionManager(start, duration=1000.0)
        first = manager.begin(end, now=0.0)
        midway = first.positions_at(500.0)

        second = manager.begin(start, now=500.0)
        assert first.cancelled
        assert second.sequence == first.sequence + 1
        np.testing.assert_allclose(second.start, midway)
        np.testing.assert_allclose(manager.positions_at(1500.0), start)

    def test_only_latest_transition_runs(self, start, end):
        manager = TransitionManager(start, duration=1000.0)
        manager.begin(end, now=0.0)
        manager.begin(end * 2, now=100.0)
        last = manager.begin(end * 3, now=200.0)
        assert manager.current is last
        np.testing.assert_allclose(manager.positions_at(5000.0), end * 3)

    def test_explicit_interrupt(self, start, end):
        manager = TransitionManager(start, duration=1000.0)
        transition = manager.begin(end, now=0.0)
        manager.interrupt(now=500.0)

        assert transition.cancelled
        assert not manager.is_transitioning
        np.testing.assert_allclose(manager.positions_at(900.0), (start + end) / 2)

    def test_changed_point_count_jumps(self, start, end):
        manager = TransitionManager(start, duration=1000.0)
        target = np.vstack([end, [[5.0, 5.0]]])
        transition = manager.begin(target, now=0.0)
        np.testing.assert_allclose(transition.start, target)

    def test_set_positions_cancels(self, start, end):
        manager = TransitionManager(start, duration=1000.0)
        transition = manager.begin(end, now=0.0)
        manager.set_positions(start)
        assert transition.cancelled
        np.testing.assert_allclose(manager.positions_at(100.0), start)

    def test_custom_duration(self, start, end):
        manager = TransitionManager(start)
        transition = manager.begin(end, now=0.0, duration=200.0)
        assert transition.duration == 200.0
        assert transition.is_finished(200.0)
