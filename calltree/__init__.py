"""calltree/__init__.py - Public API for the calltree package.

calltree instruments recursive functions so that each call draws itself
into an indented tree: entries branch off their caller, return values close
each branch, and anything the function prints is indented to match.

Quick start:
    from calltree import trace, capture

    @trace
    def generic_gcd(a: int, b: int) -> int:
        return a if b == 0 else generic_gcd(b, a % b)

    generic_gcd(48, 18)        # tree goes to stderr

    with capture() as buf:     # or collect it for inspection
        generic_gcd(48, 18)
    buf.texts()
    # ['generic_gcd(a:48, b:18)', '├─generic_gcd(a:18, b:12)', ...]

Exported names:
    trace:                  The decorator.
    show, hidden, no_name:  Parameter annotation markers.
    fmt:                    Custom formatter marker, ``fmt(callable)`` or
                            ``fmt("expression")``.
    ConfigError:            Raised at decoration time for bad options or
                            markers.
    RecursionLimitExceeded: Raised when ``recursion_limit`` is hit.
    TraceSink, StreamSink, BufferSink, LoggerSink:
                            Destinations for trace lines.
    get_sink, set_sink, capture:
                            Select the destination.
    TreeLogHandler:         Puts ``logging`` records into the tree.
    get_depth:              Number of traced calls active in this context.
    TraceLine, LineRole:    What sinks receive.
"""

from .context import get_depth
from .errors import ConfigError, RecursionLimitExceeded
from .handler import TreeLogHandler
from .instrument import trace
from .markers import fmt, hidden, no_name, show
from .model import LineRole, TraceLine
from .sink import (
    BufferSink,
    LoggerSink,
    StreamSink,
    TraceSink,
    capture,
    get_sink,
    set_sink,
)

__all__ = [
    "trace",
    "show",
    "hidden",
    "no_name",
    "fmt",
    "ConfigError",
    "RecursionLimitExceeded",
    "TraceSink",
    "StreamSink",
    "BufferSink",
    "LoggerSink",
    "get_sink",
    "set_sink",
    "capture",
    "TreeLogHandler",
    "get_depth",
    "TraceLine",
    "LineRole",
]
__version__ = "0.1.0"
