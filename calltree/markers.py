"""markers.py - Parameter annotations understood by ``@trace``.

The markers are ordinary objects so that an annotated ``def`` evaluates
without errors. ``@trace`` reads them back from the function's source, not
from these objects, except for ``fmt(callable)`` whose callable is taken
from the evaluated annotation when one is available.

Usage::

    from typing import Annotated
    from calltree import trace, hidden, fmt, no_name

    @trace
    def walk(node: fmt("node.key"), seen: hidden, depth: Annotated[int, no_name]):
        ...
"""

import typing
from typing import Any, Optional

TAG_NAMES = ("show", "hidden", "no_name", "fmt")


class Marker:
    """A bare annotation tag such as ``hidden``.

    Calling a tag returns the tag itself. This keeps ``n: hidden()``
    evaluable so that ``@trace`` can report it as a ConfigError with a
    source location.
    """

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __call__(self, *args, **kwargs) -> "Marker":
        return self

    def __repr__(self) -> str:
        return f"calltree.{self.name}"


class Formatter:
    """Result of ``fmt(...)``: how to render one parameter."""

    __slots__ = ("payload",)

    def __init__(self, payload: Any = None) -> None:
        self.payload = payload

    def __repr__(self) -> str:
        return f"calltree.fmt({self.payload!r})"


show = Marker("show")
hidden = Marker("hidden")
no_name = Marker("no_name")


def fmt(payload: Any = None, *extra: Any, **kwargs: Any) -> Formatter:
    """Render a parameter with a custom formatter.

    ``payload`` is either a callable taking the value, or a string holding
    an expression over the function's parameters. Extra arguments are kept
    out of the way here and rejected by ``@trace``.
    """
    return Formatter(payload)


def is_marker(value: Any) -> bool:
    if value is fmt or isinstance(value, (Marker, Formatter)):
        return True
    return isinstance(value, tuple) and bool(value) and all(map(is_marker, value))


def find_formatter(value: Any) -> Optional[Formatter]:
    """Return the Formatter inside an evaluated annotation, if there is one."""
    if isinstance(value, Formatter):
        return value
    if isinstance(value, tuple):
        candidates = value
    elif typing.get_origin(value) is typing.Annotated:
        candidates = value.__metadata__
    else:
        return None
    for item in candidates:
        if isinstance(item, Formatter):
            return item
    return None


def strip(value: Any) -> Any:
    """Remove trace markers from an evaluated annotation.

    Returns ``None`` when nothing but markers was annotated, the bare type
    for ``Annotated[T, <markers>]``, and an ``Annotated`` with the remaining
    metadata otherwise.
    """
    if is_marker(value):
        return None
    if typing.get_origin(value) is typing.Annotated:
        rest = [m for m in value.__metadata__ if not is_marker(m)]
        base = value.__origin__
        if not rest:
            return base
        return typing.Annotated[(base, *rest)]
    return value
