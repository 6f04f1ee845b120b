"""runtime.py - Helpers called by instrumented functions.

The code generator compiles every decorated function into roughly::

    def fib(n):
        with __calltree__.call() as __calltree_frame__:
            __calltree_frame__.enter(("n", __calltree__.show(n)))
            if n <= 1:
                return __calltree_frame__.leave(n)
            return __calltree_frame__.leave(fib(n - 1) + fib(n - 2))

``__calltree__`` is the function's Tracer (reached through a closure cell,
never through the module's globals) and ``__calltree_frame__`` is the Frame
of the current call. The Frame holds the call's depth guard, writes the
entry and exit lines, and re-indents ``print`` output.
"""

import logging
import sys
from typing import Any, Callable, Optional, Sequence, Tuple

from . import render
from .context import DepthTracker
from .errors import RecursionLimitExceeded
from .model import LineRole, MacroOptions, TraceLine
from .sink import get_sink

logger = logging.getLogger(__name__)

_tracker = DepthTracker()


def _write(text: str, role: LineRole, depth: int) -> None:
    sink = get_sink()
    first, *rest = text.split("\n")
    sink.write_line(TraceLine(first, role, depth))
    for line in rest:
        sink.write_line(TraceLine(line, LineRole.CONTINUATION, depth))


class Tracer:
    """Per-function runtime state, fixed when the function is decorated.

    Attributes:
        name (str): Function name printed on entry lines.
        recursion_limit (Optional[int]): Depth at which calls abort.
        shows_value (bool): Whether exit lines carry the return value.
        formatters (Tuple[Callable, ...]): Callables from ``fmt(callable)``
            annotations, addressed by index from the generated code.
    """

    def __init__(
        self,
        name: str,
        options: MacroOptions,
        returns_unit: bool,
        formatters: Sequence[Callable[[Any], Any]] = (),
    ) -> None:
        self.name = name
        self.options = options
        self.recursion_limit = options.recursion_limit
        self.shows_value = options.shows_value(returns_unit)
        self.formatters = tuple(formatters)

    def call(self) -> "Frame":
        return Frame(self)

    def abort(self) -> None:
        """Stop a call that would run at or beyond ``recursion_limit``."""
        logger.error(
            "%s exceeded its recursion limit of %d", self.name, self.recursion_limit
        )
        raise RecursionLimitExceeded(self.name, self.recursion_limit)

    # ------------------------------------------------------------------ #
    # Argument formatting
    # ------------------------------------------------------------------ #

    @staticmethod
    def show(value: Any) -> str:
        """Default formatting: the value's repr."""
        return repr(value)

    def show_with(self, index: int, value: Any) -> str:
        """Format ``value`` with the ``fmt(callable)`` formatter at ``index``."""
        return str(self.formatters[index](value))

    @staticmethod
    def text(value: Any) -> str:
        """Formatting for ``fmt("expression")`` results."""
        return str(value)

    def __repr__(self) -> str:  # pragma: no cover
        return f"Tracer({self.name!r}, {self.options!r})"


class Frame:
    """One active call of an instrumented function.

    Entering the frame acquires a DepthGuard; leaving it releases the guard
    on every path. If the call unwinds with an exception after its entry
    line was written and before any exit line, a ``!!`` line closes it.

    Attributes:
        depth (int): Depth this call runs at (0 for the outermost call).
        entered (bool): The entry line has been written.
        closed (bool): An exit line has been written.
    """

    __slots__ = ("tracer", "depth", "entered", "closed", "_guard")

    def __init__(self, tracer: Tracer) -> None:
        self.tracer = tracer
        self.depth = 0
        self.entered = False
        self.closed = False
        self._guard = None

    def __enter__(self) -> "Frame":
        self._guard = _tracker.acquire()
        self.depth = self._guard.current_depth()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc is not None and self.entered and not self.closed:
                self.closed = True
                line = render.render_raise(self.depth, exc)
                _write(line, LineRole.EXIT_RAISE, self.depth)
        finally:
            self._guard.release()
        return False

    # ------------------------------------------------------------------ #
    # Entry / exit
    # ------------------------------------------------------------------ #

    def enter(self, *args: Tuple[Optional[str], str]) -> None:
        """Write the entry line for this call."""
        self.entered = True
        line = render.render_entry(self.depth, self.tracer.name, args)
        _write(line, LineRole.ENTRY, self.depth)

    def leave(self, value: Any) -> Any:
        """Write this call's exit line and hand ``value`` back unchanged.

        Only the first exit of a frame is written, so a ``return`` inside
        ``finally`` that overrides an earlier one does not add a line.
        """
        if not self.closed:
            self.closed = True
            if self.tracer.shows_value:
                line = render.render_exit(self.depth, self.tracer.show(value))
                _write(line, LineRole.EXIT_VALUE, self.depth)
            else:
                _write(render.render_exit(self.depth), LineRole.EXIT_VOID, self.depth)
        return value

    # ------------------------------------------------------------------ #
    # Rewritten print() calls
    # ------------------------------------------------------------------ #

    def emit_line(
        self,
        values: Sequence[Any],
        sep: Optional[str] = None,
        file=None,
        flush: bool = False,
    ) -> None:
        """Replacement for ``print(*values, sep=sep, file=file, flush=flush)``."""
        stream = sys.stdout if file is None else file
        if stream is None:
            return
        text = _join(values, sep)
        for line in render.render_continuation(self.depth + 1, text):
            stream.write(line + "\n")
        if flush:
            stream.flush()

    def emit_partial(
        self,
        values: Sequence[Any],
        sep: Optional[str] = None,
        end: Optional[str] = None,
        file=None,
        flush: bool = False,
    ) -> None:
        """Replacement for ``print(...)`` with an ``end`` other than a newline."""
        stream = sys.stdout if file is None else file
        if stream is None:
            return
        if end is None:
            end = "\n"
        elif not isinstance(end, str):
            raise TypeError(f"end must be None or a string, not {type(end).__name__}")
        stream.write(render.render_partial(self.depth + 1, _join(values, sep) + end))
        if flush:
            stream.flush()


def _join(values: Sequence[Any], sep: Optional[str]) -> str:
    if sep is None:
        sep = " "
    elif not isinstance(sep, str):
        raise TypeError(f"sep must be None or a string, not {type(sep).__name__}")
    return sep.join(map(str, values))
