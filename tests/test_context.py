"""test_context.py - Unit tests for DepthTracker and DepthGuard.

Covers:
    - Initial depth is 0
    - acquire() increments, release() restores the exact prior value
    - release() is idempotent
    - Guards restore depth when a with-block raises
    - Multiple DepthTracker instances share one counter
    - Thread isolation: each thread has its own depth counter
"""

import threading

import pytest

from calltree.context import DepthGuard, DepthTracker, get_depth


# ---------------------------------------------------------------------------
# Depth management
# ---------------------------------------------------------------------------


class TestDepthTracker:
    def setup_method(self):
        self.tracker = DepthTracker()
        self.tracker.reset()

    def test_depth_tracker_initial_depth_is_zero(self):
        """A fresh context starts at depth 0."""
        assert self.tracker.get_depth() == 0
        assert get_depth() == 0

    def test_depth_tracker_acquire_increments_by_one(self):
        """acquire() adds exactly 1 to the current depth."""
        guard = self.tracker.acquire()
        assert isinstance(guard, DepthGuard)
        assert self.tracker.get_depth() == 1
        guard.release()

    def test_depth_guard_reports_depth_before_increment(self):
        """current_depth() is the counter value seen when the guard was made."""
        outer = self.tracker.acquire()
        inner = self.tracker.acquire()
        assert outer.current_depth() == 0
        assert inner.current_depth() == 1
        inner.release()
        outer.release()

    def test_depth_guard_release_restores_prior_value(self):
        """After N nested acquires and N releases, depth is back to 0."""
        guards = [self.tracker.acquire() for _ in range(5)]
        assert self.tracker.get_depth() == 5
        for guard in reversed(guards):
            guard.release()
        assert self.tracker.get_depth() == 0

    def test_depth_guard_release_is_idempotent(self):
        """Releasing twice does not decrement a second time."""
        outer = self.tracker.acquire()
        inner = self.tracker.acquire()
        inner.release()
        inner.release()
        assert self.tracker.get_depth() == 1
        outer.release()

    def test_depth_guard_restores_depth_when_block_raises(self):
        """Leaving a with-block through an exception still releases."""
        with pytest.raises(ValueError):
            with self.tracker.acquire():
                with self.tracker.acquire():
                    raise ValueError("boom")
        assert self.tracker.get_depth() == 0

    def test_depth_tracker_instances_share_counter(self):
        """Two DepthTracker instances in the same context see the same depth."""
        other = DepthTracker()
        with self.tracker.acquire():
            assert other.get_depth() == 1

    def test_depth_tracker_reset_forces_zero(self):
        """reset() puts the counter back to 0."""
        self.tracker.acquire()
        self.tracker.acquire()
        self.tracker.reset()
        assert self.tracker.get_depth() == 0


# ---------------------------------------------------------------------------
# Thread isolation
# ---------------------------------------------------------------------------


class TestDepthTrackerThreadIsolation:
    def test_depth_tracker_depth_is_isolated_per_thread(self):
        """Each thread has its own independent depth counter."""
        results = {}
        ready = threading.Barrier(2)

        def worker(name: str, levels: int):
            tracker = DepthTracker()
            tracker.reset()
            guards = [tracker.acquire() for _ in range(levels)]
            ready.wait()
            results[name] = tracker.get_depth()
            for guard in reversed(guards):
                guard.release()

        t1 = threading.Thread(target=worker, args=("t1", 3))
        t2 = threading.Thread(target=worker, args=("t2", 7))
        t1.start()
        t2.start()
        t1.join()
        t2.join()

        assert results == {"t1": 3, "t2": 7}
        assert get_depth() == 0
