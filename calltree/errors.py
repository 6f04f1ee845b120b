"""errors.py - Exceptions raised by calltree.

ConfigError is raised while ``@trace`` runs, and RecursionLimitExceeded
while an instrumented function runs. Neither is caught anywhere inside the
package.
"""

import ast
from typing import Optional, Sequence


class ConfigError(SyntaxError):
    """A decorator option or parameter annotation that cannot be honoured.

    Subclassing SyntaxError gives the standard ``filename``, ``lineno``,
    ``offset`` and ``text`` attributes, so tracebacks point at the offending
    token in the decorated source.
    """

    def __init__(
        self,
        msg: str,
        filename: Optional[str] = None,
        lineno: Optional[int] = None,
        offset: Optional[int] = None,
        text: Optional[str] = None,
    ) -> None:
        super().__init__(msg, (filename, lineno, offset, text))


class RecursionLimitExceeded(RecursionError):
    """Raised when a call would run at or beyond ``recursion_limit``."""

    def __init__(self, function: str, limit: int) -> None:
        super().__init__(
            f"Recursion limit exceeded: {function} reached maximum depth of {limit}"
        )
        self.function = function
        self.limit = limit


class SourceInfo:
    """Where a decorated function's source came from.

    Used to attach file and line information to ConfigError. Line numbers
    stored in AST nodes are already shifted to match ``filename``.
    """

    __slots__ = ("filename", "firstlineno", "lines")

    def __init__(self, filename: str, firstlineno: int, lines: Sequence[str]) -> None:
        self.filename = filename
        self.firstlineno = firstlineno
        self.lines = list(lines)

    def line_text(self, lineno: Optional[int]) -> Optional[str]:
        if lineno is None:
            return None
        index = lineno - self.firstlineno
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return None

    def error(self, msg: str, node: Optional[ast.AST] = None) -> ConfigError:
        """Build a ConfigError located at ``node`` (or at the decorator)."""
        lineno = getattr(node, "lineno", None) or self.firstlineno
        col = getattr(node, "col_offset", None)
        offset = col + 1 if col is not None else None
        return ConfigError(msg, self.filename, lineno, offset, self.line_text(lineno))
