"""handler.py - Route ``logging`` records into the call tree.

TreeLogHandler is a logging.Handler that writes each record it receives to
the active trace sink, indented to the depth of the traced call that logged
it. Log output then reads as part of the tree instead of beside it::

    import logging
    from calltree import TreeLogHandler, trace

    log = logging.getLogger("app")
    log.addHandler(TreeLogHandler())
    log.setLevel(logging.INFO)

    @trace
    def visit(n: int) -> None:
        log.info("visiting %d", n)
        if n:
            visit(n - 1)

    visit(1)
    # visit(n:1)
    # │ visiting 1
    # ├─visit(n:0)
    # │ │ visiting 0
    # │ └
    # └

Records logged outside any traced call are written unindented.
"""

import logging

from . import render
from .context import DepthTracker
from .model import LineRole, TraceLine
from .sink import get_sink


class TreeLogHandler(logging.Handler):
    """A logging.Handler that writes records into the trace sink.

    The record is formatted with the handler's formatter (by default just
    the message), split into lines and written as ``USER_LOG`` lines
    indented by the number of active traced calls, which is where
    re-indented ``print`` output goes too.

    Thread-safety:
        ``logging.Handler`` serialises emit() with its own lock, and the
        depth is read from a ContextVar, so each thread indents by its own
        call depth.

    Example:
        >>> import logging
        >>> from calltree import TreeLogHandler, capture
        >>> log = logging.getLogger("demo")
        >>> log.addHandler(TreeLogHandler())
        >>> with capture() as buf:
        ...     log.warning("outside")
        >>> buf.texts()
        ['outside']
    """

    def __init__(self, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._tracker = DepthTracker()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            depth = self._tracker.get_depth()
            sink = get_sink()
            for text in render.render_continuation(depth, self.format(record)):
                sink.write_line(TraceLine(text, LineRole.USER_LOG, depth))
        except Exception:
            self.handleError(record)
