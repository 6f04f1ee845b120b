"""test_buffer.py - Unit tests for RingBuffer.

Covers:
    - push, len, flash, snapshot, clear
    - Overflow: oldest line evicted when capacity exceeded
    - Unbounded buffer when no capacity is given
    - Invalid capacity raises ValueError
"""

import pytest

from calltree.buffer import RingBuffer
from calltree.model import LineRole, TraceLine


def _line(text: str) -> TraceLine:
    return TraceLine(text, LineRole.ENTRY)


# ---------------------------------------------------------------------------
# RingBuffer: basic operations
# ---------------------------------------------------------------------------


class TestRingBufferBasic:
    def test_ring_buffer_initial_length_is_zero(self):
        """A newly created RingBuffer has no lines."""
        assert len(RingBuffer(capacity=10)) == 0

    def test_ring_buffer_push_increments_length(self):
        """push() adds one line and len() reflects it."""
        buf = RingBuffer(capacity=10)
        buf.push(_line("f(n:1)"))
        assert len(buf) == 1

    def test_ring_buffer_snapshot_keeps_lines(self):
        """snapshot() returns lines oldest first and does not clear."""
        buf = RingBuffer()
        for text in ("a", "b", "c"):
            buf.push(_line(text))
        assert [line.text for line in buf.snapshot()] == ["a", "b", "c"]
        assert len(buf) == 3

    def test_ring_buffer_flash_returns_and_clears(self):
        """flash() returns every line and leaves the buffer empty."""
        buf = RingBuffer()
        buf.push(_line("a"))
        buf.push(_line("b"))
        lines = buf.flash()
        assert [line.text for line in lines] == ["a", "b"]
        assert len(buf) == 0

    def test_ring_buffer_clear_empties(self):
        """clear() removes every line."""
        buf = RingBuffer()
        buf.push(_line("a"))
        buf.clear()
        assert buf.snapshot() == []


# ---------------------------------------------------------------------------
# RingBuffer: capacity
# ---------------------------------------------------------------------------


class TestRingBufferCapacity:
    def test_ring_buffer_evicts_oldest_when_full(self):
        """Once full, each push drops the oldest line."""
        buf = RingBuffer(capacity=2)
        for text in ("a", "b", "c"):
            buf.push(_line(text))
        assert [line.text for line in buf.snapshot()] == ["b", "c"]

    def test_ring_buffer_capacity_property(self):
        """capacity reports the limit, or None when unbounded."""
        assert RingBuffer(capacity=3).capacity == 3
        assert RingBuffer().capacity is None

    def test_ring_buffer_unbounded_keeps_everything(self):
        """Without a capacity nothing is evicted."""
        buf = RingBuffer()
        for i in range(1000):
            buf.push(_line(str(i)))
        assert len(buf) == 1000

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_ring_buffer_rejects_non_positive_capacity(self, capacity):
        """A capacity of 0 or less is a ValueError."""
        with pytest.raises(ValueError):
            RingBuffer(capacity=capacity)
