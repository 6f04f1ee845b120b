"""transform.py - Rewrite the body of a function being instrumented.

BodyTransformer makes one pass over the body's statements and rewrites:

    print(...)      into ``__calltree_frame__.emit_line(...)`` or
                    ``__calltree_frame__.emit_partial(...)``, which re-indent
                    the output to the current call's depth.
    return X        into ``return __calltree_frame__.leave(X)``, which writes
                    the exit line before control leaves the function.

Recursive calls are left as they are: they reach the instrumented function
again and the shared depth counter sees the nested call. They are still
recorded so the generator can report them.

Children are transformed before their parent, so a print nested in the
argument of a returned call is rewritten as well. Nested ``def``,
``lambda`` and ``class`` bodies are not entered: their ``return``
statements belong to another function.
"""

import ast
import enum
from typing import Collection, List, Optional, Tuple

FRAME_NAME = "__calltree_frame__"

_PRINT_KEYWORDS = frozenset(("sep", "end", "file", "flush"))


class LogForm(enum.Enum):
    """The four output statements that get re-indented."""

    LINE = "print"
    LINE_TO_STREAM = "print(file=...)"
    PARTIAL = "print(end=...)"
    PARTIAL_TO_STREAM = "print(end=..., file=...)"

    @property
    def partial(self) -> bool:
        return self in (LogForm.PARTIAL, LogForm.PARTIAL_TO_STREAM)


class RewriteReport:
    """What a BodyTransformer changed, as ``(kind, lineno)`` records."""

    __slots__ = ("prints", "returns", "recursive_calls")

    def __init__(self) -> None:
        self.prints: List[Tuple[LogForm, int]] = []
        self.returns: List[int] = []
        self.recursive_calls: List[Tuple[str, int]] = []


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def classify_print(node: ast.Call) -> Optional[LogForm]:
    """Return the LogForm of a ``print(...)`` call, or None.

    None is returned for anything that is not a call to the name ``print``
    and for calls that cannot be classified statically: ``**kwargs``
    unpacking or keywords ``print`` does not accept.
    """
    if not (isinstance(node.func, ast.Name) and node.func.id == "print"):
        return None
    keywords = {}
    for kw in node.keywords:
        if kw.arg is None or kw.arg not in _PRINT_KEYWORDS:
            return None
        keywords[kw.arg] = kw.value

    to_stream = "file" in keywords and not _is_none(keywords["file"])
    end = keywords.get("end")
    partial = not (
        end is None
        or _is_none(end)
        or (isinstance(end, ast.Constant) and end.value == "\n")
    )
    if partial:
        return LogForm.PARTIAL_TO_STREAM if to_stream else LogForm.PARTIAL
    return LogForm.LINE_TO_STREAM if to_stream else LogForm.LINE


def _frame_attr(attr: str) -> ast.Attribute:
    return ast.Attribute(
        value=ast.Name(id=FRAME_NAME, ctx=ast.Load()), attr=attr, ctx=ast.Load()
    )


class BodyTransformer(ast.NodeTransformer):
    """Rewrite print calls and return statements of one function body.

    Args:
        recursive_names: Names whose calls are recorded as recursive call
            sites: the function's own name and any sibling instrumented
            functions.
        rewrite_prints: False when ``print`` does not refer to the builtin
            in this function; print calls are then left untouched.

    Example:
        >>> tree = ast.parse("def f(n):\\n    print(n)\\n    return n")
        >>> body = BodyTransformer({"f"}).transform(tree.body[0].body)
        >>> print(ast.unparse(ast.Module(body=body, type_ignores=[])))
        __calltree_frame__.emit_line((n,))
        return __calltree_frame__.leave(n)
    """

    def __init__(
        self, recursive_names: Collection[str] = (), rewrite_prints: bool = True
    ) -> None:
        self.recursive_names = frozenset(recursive_names)
        self.rewrite_prints = rewrite_prints
        self.report = RewriteReport()

    def transform(self, body: List[ast.stmt]) -> List[ast.stmt]:
        """Rewrite ``body`` in place and return it."""
        for index, stmt in enumerate(body):
            body[index] = self.visit(stmt)
        return body

    # Other scopes are left alone.

    def visit_FunctionDef(self, node):
        return node

    visit_AsyncFunctionDef = visit_FunctionDef
    visit_Lambda = visit_FunctionDef
    visit_ClassDef = visit_FunctionDef

    def visit_Call(self, node: ast.Call) -> ast.expr:
        self.generic_visit(node)

        if isinstance(node.func, ast.Name) and node.func.id in self.recursive_names:
            self.report.recursive_calls.append((node.func.id, node.lineno))

        form = classify_print(node) if self.rewrite_prints else None
        if form is None:
            return node
        self.report.prints.append((form, node.lineno))
        return ast.copy_location(self._emit(node, form), node)

    def visit_Return(self, node: ast.Return) -> ast.stmt:
        self.generic_visit(node)
        value = node.value
        if value is None:
            value = ast.copy_location(ast.Constant(value=None), node)
        self.report.returns.append(node.lineno)
        leave = ast.Call(func=_frame_attr("leave"), args=[value], keywords=[])
        return ast.copy_location(ast.Return(value=ast.copy_location(leave, node)), node)

    def _emit(self, node: ast.Call, form: LogForm) -> ast.Call:
        values = ast.Tuple(elts=list(node.args), ctx=ast.Load())
        keywords = [
            kw for kw in node.keywords if form.partial or kw.arg != "end"
        ]
        method = "emit_partial" if form.partial else "emit_line"
        return ast.Call(func=_frame_attr(method), args=[values], keywords=keywords)
