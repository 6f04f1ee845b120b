"""context.py - Call depth tracking for instrumented functions.

Every instrumented call acquires a DepthGuard on entry and releases it on
exit. The guard remembers the depth the call runs at, which is what the
renderer indents by and what ``recursion_limit`` is compared against.

The counter lives in a ``contextvars.ContextVar``. That isolates it across
threads and asyncio Tasks without explicit locking, and it lets mutually
recursive functions decorated independently share one depth, since
neither needs to know about the other.
"""

import contextvars


class DepthGuard:
    """Scope-bound hold on one level of call depth.

    Creating the guard increments the context's counter; ``release()``
    (or leaving the ``with`` block) puts back the exact value seen on
    creation, whichever way the block is left.

    Attributes:
        depth (int): Depth of the call holding this guard, i.e. the counter
            value *before* the increment. 0 for an outermost call.

    Example:
        >>> tracker = DepthTracker()
        >>> with tracker.acquire() as outer:
        ...     with tracker.acquire() as inner:
        ...         (outer.depth, inner.depth, tracker.get_depth())
        (0, 1, 2)
        >>> tracker.get_depth()
        0
    """

    __slots__ = ("depth", "_var", "_released")

    def __init__(self, var: contextvars.ContextVar) -> None:
        self._var = var
        self.depth = var.get()
        self._released = False
        var.set(self.depth + 1)

    def current_depth(self) -> int:
        return self.depth

    def release(self) -> None:
        """Restore the counter to its value before this guard was acquired.

        Safe to call more than once; only the first call has an effect.
        """
        if not self._released:
            self._released = True
            self._var.set(self.depth)

    def __enter__(self) -> "DepthGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False


class DepthTracker:
    """Facade over the module-level depth ContextVar.

    Instances hold no state, so any number of them (one per runtime frame,
    one in TreeLogHandler, ...) read and write the same counter.

    Attributes:
        _depth (ContextVar[int]): Number of instrumented calls active in the
            current context. Defaults to 0 (no active call).
    """

    _depth: contextvars.ContextVar[int] = contextvars.ContextVar(
        "calltree_depth", default=0
    )

    def get_depth(self) -> int:
        """Return how many instrumented calls are active in this context."""
        return self._depth.get()

    def acquire(self) -> DepthGuard:
        """Enter one level deeper and return the guard that undoes it."""
        return DepthGuard(self._depth)

    def reset(self) -> None:
        """Force the counter back to 0 in the current context.

        Only meant for test isolation; guards still alive in this context
        will restore their own values when released.
        """
        self._depth.set(0)


_tracker = DepthTracker()


def get_depth() -> int:
    """Number of instrumented calls currently active in this context."""
    return _tracker.get_depth()
