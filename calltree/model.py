"""model.py - Plain data describing one instrumented function.

Everything here is built once, while ``@trace`` runs, and is read by the
code generator and the runtime afterwards. No object in this module does any
work of its own; they only carry the parsed configuration around.

    FunctionSignature   name, ordered parameters and return annotation of
                        the decorated function, plus its ``ast.FunctionDef``.
    ParameterSpec       one parameter and its TraceAnnotation.
    TraceAnnotation     whether/how a parameter appears on the entry line.
    MacroOptions        the decorator-level switches.
    TraceLine           one rendered line handed to a sink.
"""

import ast
import enum
import inspect
from typing import List, Optional


class Visibility(enum.Enum):
    """How a parameter is rendered on a call's entry line."""

    HIDDEN = "hidden"
    SHOWN = "shown"
    SHOWN_CUSTOM = "shown_custom"


class LineRole(enum.Enum):
    """What a TraceLine represents in the rendered tree."""

    ENTRY = "entry"
    CONTINUATION = "continuation"
    EXIT_VALUE = "exit_value"
    EXIT_VOID = "exit_void"
    EXIT_RAISE = "exit_raise"
    USER_LOG = "user_log"


class TraceAnnotation:
    """Parsed trace markers of a single parameter.

    Attributes:
        visibility (Visibility): Whether the parameter is printed and with
            which formatting.
        formatter (Optional[ast.expr]): Payload of ``fmt(...)`` when
            ``visibility`` is ``SHOWN_CUSTOM``.
        inline (bool): True when ``formatter`` is an expression over the
            function's parameters (the ``fmt("node.key")`` spelling) rather
            than a callable applied to the value.
        name_suppressed (bool): Print only the value, without ``name:``.
    """

    __slots__ = ("visibility", "formatter", "inline", "name_suppressed")

    def __init__(
        self,
        visibility: Visibility = Visibility.SHOWN,
        formatter: Optional[ast.expr] = None,
        inline: bool = False,
        name_suppressed: bool = False,
    ) -> None:
        self.visibility = visibility
        self.formatter = formatter
        self.inline = inline
        self.name_suppressed = name_suppressed

    @property
    def shown(self) -> bool:
        return self.visibility is not Visibility.HIDDEN

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"TraceAnnotation({self.visibility.name}, inline={self.inline}, "
            f"name_suppressed={self.name_suppressed})"
        )


class ParameterSpec:
    """A parameter of the decorated function.

    ``annotation`` is the type annotation with every trace marker removed
    (``None`` when nothing is left), and ``kind`` is one of the
    ``inspect.Parameter`` kinds.
    """

    __slots__ = ("name", "kind", "annotation", "trace")

    def __init__(
        self,
        name: str,
        kind=inspect.Parameter.POSITIONAL_OR_KEYWORD,
        annotation: Optional[ast.expr] = None,
        trace: Optional[TraceAnnotation] = None,
    ) -> None:
        self.name = name
        self.kind = kind
        self.annotation = annotation
        self.trace = trace if trace is not None else TraceAnnotation()

    def __repr__(self) -> str:  # pragma: no cover
        return f"ParameterSpec({self.name!r}, {self.trace!r})"


class FunctionSignature:
    """Signature and body of the function being instrumented.

    Attributes:
        name (str): ``__name__`` of the function.
        qualname (str): ``__qualname__``; used to find an owning class.
        params (List[ParameterSpec]): Parameters in declaration order.
        returns (Optional[ast.expr]): Return annotation, passed through.
        returns_unit (bool): True when the return annotation is ``None``.
        node (ast.FunctionDef): The parsed definition. The code generator
            takes its body, rewrites it and compiles the result.
    """

    __slots__ = ("name", "qualname", "params", "returns", "returns_unit", "node")

    def __init__(
        self,
        name: str,
        qualname: str,
        params: List[ParameterSpec],
        returns: Optional[ast.expr],
        node: ast.FunctionDef,
    ) -> None:
        self.name = name
        self.qualname = qualname
        self.params = params
        self.returns = returns
        self.returns_unit = is_unit_annotation(returns)
        self.node = node

    @property
    def shown_params(self) -> List[ParameterSpec]:
        return [p for p in self.params if p.trace.shown]

    @property
    def owner(self) -> Optional[str]:
        """Name of the class the function was defined in, if any."""
        parts = self.qualname.split(".")
        if len(parts) >= 2 and parts[-2] != "<locals>":
            return parts[-2]
        return None


class MacroOptions:
    """Decorator-level configuration.

    Attributes:
        no_return (bool): Never put the return value on the exit line.
        recursion_limit (Optional[int]): Abort when a call would run at this
            depth or deeper. Always ``None`` or a positive integer.
        show_return (bool): Show the return value even for ``-> None``.
    """

    __slots__ = ("no_return", "recursion_limit", "show_return")

    def __init__(
        self,
        no_return: bool = False,
        recursion_limit: Optional[int] = None,
        show_return: bool = False,
    ) -> None:
        self.no_return = no_return
        self.recursion_limit = recursion_limit
        self.show_return = show_return

    def shows_value(self, returns_unit: bool) -> bool:
        """Return whether exit lines should carry the returned value."""
        if self.no_return:
            return False
        if returns_unit:
            return self.show_return
        return True

    def __eq__(self, other) -> bool:
        if not isinstance(other, MacroOptions):
            return NotImplemented
        return (
            self.no_return == other.no_return
            and self.recursion_limit == other.recursion_limit
            and self.show_return == other.show_return
        )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"MacroOptions(no_return={self.no_return}, "
            f"recursion_limit={self.recursion_limit}, "
            f"show_return={self.show_return})"
        )


class TraceLine:
    """A rendered line of trace output.

    Attributes:
        text (str): The line, indentation included, without a newline.
        role (LineRole): What the line stands for.
        depth (int): Depth of the frame that wrote it.
    """

    __slots__ = ("text", "role", "depth")

    def __init__(self, text: str, role: LineRole, depth: int = 0) -> None:
        self.text = text
        self.role = role
        self.depth = depth

    def __repr__(self) -> str:  # pragma: no cover
        return f"TraceLine({self.text!r}, {self.role.name}, depth={self.depth})"


def is_unit_annotation(node: Optional[ast.expr]) -> bool:
    """True for ``-> None`` and its postponed spelling ``-> "None"``."""
    if isinstance(node, ast.Constant):
        return node.value is None or node.value == "None"
    return False
