"""sink.py - Destinations for rendered trace lines.

The runtime only ever asks a sink to write one line. Three sinks are
provided:

    StreamSink: writes each line to a text stream (default: ``sys.stderr``).
    BufferSink: keeps lines in memory for later inspection.
    LoggerSink: forwards each line to a ``logging.Logger``.

Which sink receives the lines is ambient configuration: ``set_sink()``
changes the process-wide default, and ``capture()`` overrides it for the
current context only::

    from calltree import capture

    with capture() as buf:
        fib(5)
    print("\\n".join(buf.texts()))
"""

import logging
import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, List, Optional

from .buffer import RingBuffer
from .model import TraceLine


class TraceSink(ABC):
    """Abstract base class for everything that receives trace lines.

    Example:
        >>> class PrefixSink(TraceSink):
        ...     def write_line(self, line: TraceLine) -> None:
        ...         print("trace:", line.text)
    """

    @abstractmethod
    def write_line(self, line: TraceLine) -> None:
        """Write one rendered line. Called synchronously, in program order."""


class StreamSink(TraceSink):
    """Write trace lines to a text stream.

    When no stream is given, ``sys.stderr`` is looked up on every write, so
    a redirected or captured stderr is honoured. Each line is flushed as it
    is written.
    """

    def __init__(self, stream=None) -> None:
        self._stream = stream

    @property
    def stream(self):
        return self._stream if self._stream is not None else sys.stderr

    def write_line(self, line: TraceLine) -> None:
        stream = self.stream
        if stream is None:
            return
        stream.write(line.text + "\n")
        stream.flush()


class BufferSink(TraceSink):
    """Keep trace lines in a RingBuffer.

    Attributes:
        buffer (RingBuffer): The underlying store.
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        self.buffer = RingBuffer(capacity=capacity)

    def write_line(self, line: TraceLine) -> None:
        self.buffer.push(line)

    def lines(self) -> List[TraceLine]:
        """Every captured line, oldest first, without clearing."""
        return self.buffer.snapshot()

    def texts(self) -> List[str]:
        """Text of every captured line, oldest first."""
        return [line.text for line in self.buffer.snapshot()]

    def flash(self) -> List[TraceLine]:
        """Return every captured line and clear the sink."""
        return self.buffer.flash()

    def clear(self) -> None:
        """Drop every captured line."""
        self.buffer.clear()

    def __len__(self) -> int:
        """Return the number of captured lines."""
        return len(self.buffer)


class LoggerSink(TraceSink):
    """Forward trace lines to a logger, one record per line.

    Args:
        logger: Logger instance or name. Defaults to ``"calltree.trace"``.
        level: Level of the emitted records. Defaults to DEBUG.
    """

    def __init__(self, logger=None, level: int = logging.DEBUG) -> None:
        if logger is None or isinstance(logger, str):
            logger = logging.getLogger(logger or "calltree.trace")
        self._logger = logger
        self._level = level

    def write_line(self, line: TraceLine) -> None:
        self._logger.log(self._level, "%s", line.text)


# ---------------------------------------------------------------------------
# Active sink
# ---------------------------------------------------------------------------

_default_sink: TraceSink = StreamSink()

_sink_var: ContextVar[Optional[TraceSink]] = ContextVar("calltree_sink", default=None)


def get_sink() -> TraceSink:
    """Return the sink trace lines are written to in the current context."""
    sink = _sink_var.get()
    return sink if sink is not None else _default_sink


def set_sink(sink: TraceSink) -> TraceSink:
    """Replace the process-wide default sink and return the previous one.

    Contexts inside ``capture()`` keep writing to their own buffer.
    """
    global _default_sink
    if not isinstance(sink, TraceSink):
        raise TypeError(f"expected a TraceSink, got {type(sink).__name__}")
    previous, _default_sink = _default_sink, sink
    return previous


@contextmanager
def capture(capacity: Optional[int] = None) -> Iterator[BufferSink]:
    """Collect trace lines written in this context into a BufferSink.

    The override is context-local: other threads keep using the default
    sink. The previous sink is restored on exit, even on error.
    """
    sink = BufferSink(capacity=capacity)
    token = _sink_var.set(sink)
    try:
        yield sink
    finally:
        _sink_var.reset(token)
