"""render.py - Turn depths and formatted values into tree-shaped text.

All functions here are pure. For a recursive countdown the output reads::

    countdown(count:2)
    │ count = 2
    ├─countdown(count:1)
    │ │ count = 1
    │ ├─countdown(count:0)
    │ │ │ Bang!
    │ │ └
    │ └
    └

A call at depth ``d`` owns the bar in column ``2*d``: its entry line
branches off the caller's bar, everything it prints sits at
``indent(d + 1)``, and its exit line closes the bar with a corner.
"""

import re
from typing import List, Optional, Sequence, Tuple

BAR = "│ "
BRANCH = "├─"
CORNER = "└"

# Only \n and \r\n end a line; other control characters are kept as text.
_LINE_BREAK = re.compile(r"\r?\n")


def indent(level: int) -> str:
    return BAR * level


def entry_prefix(depth: int) -> str:
    """Prefix of an entry line; the outermost call gets none."""
    if depth <= 0:
        return ""
    return indent(depth - 1) + BRANCH


def render_continuation(level: int, text: str) -> List[str]:
    """Split ``text`` into lines, each prefixed with ``indent(level)``.

    Lines end at ``\\n`` or ``\\r\\n`` only. An empty text yields a single
    prefix-only line, and a text ending in a line break yields one extra
    prefix-only line after its last line.

    Example:
        >>> render_continuation(1, "a\\nb\\n")
        ['│ a', '│ b', '│ ']
    """
    prefix = indent(level)
    return [prefix + line for line in _LINE_BREAK.split(text)]


def render_partial(level: int, text: str) -> str:
    """Like render_continuation, joined for a write without a final newline."""
    prefix = indent(level)
    return "\n".join(prefix + line for line in _LINE_BREAK.split(text))


def _hang(first: str, level: int) -> str:
    """Keep newlines inside a rendered value within the tree."""
    head, *rest = _LINE_BREAK.split(first)
    if not rest:
        return head
    return "\n".join([head, *render_continuation(level, "\n".join(rest))])


def format_args(args: Sequence[Tuple[Optional[str], str]]) -> str:
    return ", ".join(
        text if label is None else f"{label}:{text}" for label, text in args
    )


def render_entry(
    depth: int, name: str, args: Sequence[Tuple[Optional[str], str]]
) -> str:
    """Render the line announcing a call.

    Args:
        depth: Depth of the call being entered.
        name: Function name.
        args: ``(label, text)`` pairs of the shown parameters, in declaration
            order. A ``None`` label prints the value alone.

    Returns:
        The entry line. Multi-line argument text continues on further lines
        (joined with ``\\n``), each prefixed like the call's own output.
    """
    return _hang(f"{entry_prefix(depth)}{name}({format_args(args)})", depth + 1)


def render_exit(depth: int, value: Optional[str] = None) -> str:
    """Render the line closing a call, with or without its return value."""
    corner = indent(depth) + CORNER
    if value is None:
        return corner
    return _hang(f"{corner} return: {value}", depth + 1)


def render_raise(depth: int, exc: BaseException) -> str:
    """Render the line closing a call that is unwinding with ``exc``."""
    return _hang(f"{indent(depth)}{CORNER}!! {type(exc).__name__}: {exc}", depth + 1)
