"""buffer.py - In-memory store of TraceLine records.

RingBuffer backs BufferSink, the sink used to capture a trace for
inspection (tests, notebooks, post-mortem dumps). With a capacity it keeps
only the most recent lines, which bounds memory during deep or long
recursions; without one it keeps everything.

Design decisions:
    - ``collections.deque(maxlen=N)`` gives O(1) append with automatic
      eviction of the oldest line once full.
    - ``flash()`` snapshots and clears in one call so a reader never sees a
      half-cleared buffer.
"""

from collections import deque
from typing import Deque, List, Optional

from .model import TraceLine


class RingBuffer:
    """Optionally bounded FIFO of TraceLine objects.

    Example:
        >>> from calltree.model import LineRole
        >>> buf = RingBuffer(capacity=2)
        >>> for text in ("a(n:1)", "├─a(n:0)", "│ └"):
        ...     buf.push(TraceLine(text, LineRole.ENTRY))
        >>> [line.text for line in buf.snapshot()]
        ['├─a(n:0)', '│ └']
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        """Initialise the buffer.

        Args:
            capacity: Maximum number of lines retained, or ``None`` for no
                limit.

        Raises:
            ValueError: If ``capacity`` is not positive.
        """
        if capacity is not None and capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self._buffer: Deque[TraceLine] = deque(maxlen=capacity)

    @property
    def capacity(self) -> Optional[int]:
        """Maximum number of lines retained, or None when unbounded."""
        return self._buffer.maxlen

    def push(self, line: TraceLine) -> None:
        """Append a line, evicting the oldest one if the buffer is full."""
        self._buffer.append(line)

    def flash(self) -> List[TraceLine]:
        """Return all lines (oldest first) and clear the buffer."""
        lines = list(self._buffer)
        self._buffer.clear()
        return lines

    def snapshot(self) -> List[TraceLine]:
        """Return all lines without clearing the buffer."""
        return list(self._buffer)

    def clear(self) -> None:
        """Remove all lines from the buffer."""
        self._buffer.clear()

    def __len__(self) -> int:
        """Return the number of lines currently held."""
        return len(self._buffer)
