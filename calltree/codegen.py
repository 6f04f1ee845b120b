"""codegen.py - Build and compile the instrumented version of a function.

Given the parsed signature, the options and the original function object,
CodeGenerator produces a new function object that:

    - has the original name, parameters, defaults and docstring, with trace
      markers removed from its annotations and signature;
    - enters a Frame (and with it a DepthGuard) for the whole call;
    - checks ``recursion_limit`` before doing anything else;
    - writes the entry line from the shown parameters;
    - runs the transformed body, every exit of which writes one exit line.

The new code is compiled inside a throwaway factory function that declares
the original free variables, so the compiler gives the new function the
same closure layout and the original cells can be reused. Recursion through
a local name therefore reaches the instrumented function once the decorator
returns. Methods are additionally compiled inside a class of the same name
to keep private-name mangling and zero-argument ``super()`` working.
"""

import __future__

import ast
import builtins
import functools
import inspect
import logging
import textwrap
import types
from typing import Any, Dict, List, Optional, Tuple

from . import markers
from .config import iter_parameters
from .errors import ConfigError, SourceInfo
from .model import FunctionSignature, MacroOptions, ParameterSpec, Visibility
from .runtime import Tracer
from .transform import FRAME_NAME, BodyTransformer

logger = logging.getLogger(__name__)

RUNTIME_NAME = "__calltree__"
FACTORY_NAME = "__calltree_factory__"
RESERVED_NAMES = frozenset((RUNTIME_NAME, FRAME_NAME, FACTORY_NAME))

_FUTURE_FLAGS = functools.reduce(
    lambda flags, feature: flags | getattr(__future__, feature).compiler_flag,
    __future__.all_feature_names,
    0,
)
_UNSUPPORTED_FLAGS = (
    inspect.CO_GENERATOR | inspect.CO_COROUTINE | inspect.CO_ASYNC_GENERATOR
)


# ---------------------------------------------------------------------------
# Loading the target
# ---------------------------------------------------------------------------


def check_target(func: Any) -> None:
    """Reject objects ``@trace`` cannot rebuild from source.

    Raises:
        ConfigError: ``func`` is not a plain function, is a lambda, a
            generator or a coroutine, has already been wrapped by another
            decorator, or uses one of the names reserved for generated code.
    """
    if not isinstance(func, types.FunctionType):
        raise ConfigError(
            f"@trace expects a function, got {type(func).__name__}; "
            "apply it below @staticmethod, @classmethod and @property"
        )
    code = func.__code__
    where = (code.co_filename, code.co_firstlineno)
    if func.__name__ == "<lambda>":
        raise ConfigError("@trace cannot instrument a lambda", *where)
    if code.co_flags & _UNSUPPORTED_FLAGS:
        raise ConfigError(
            f"@trace cannot instrument generator or coroutine {func.__qualname__}",
            *where,
        )
    if hasattr(func, "__wrapped__"):
        raise ConfigError(
            f"{func.__qualname__} is already wrapped by another decorator; "
            "@trace must be the innermost decorator",
            *where,
        )
    used = set(code.co_varnames) | set(code.co_names) | set(code.co_freevars)
    clash = sorted(used & RESERVED_NAMES)
    if clash:
        raise ConfigError(
            f"{func.__qualname__} uses reserved name(s) {', '.join(clash)}", *where
        )


def load_source(func: types.FunctionType) -> Tuple[ast.FunctionDef, SourceInfo]:
    """Parse the ``def`` statement of ``func`` from its source file.

    Line numbers in the returned tree match the file, so tracebacks through
    the instrumented function point at the original lines.
    """
    code = func.__code__
    try:
        lines, firstlineno = inspect.getsourcelines(func)
    except (OSError, TypeError) as exc:
        raise ConfigError(
            f"cannot read the source of {func.__qualname__}: {exc}",
            code.co_filename,
            code.co_firstlineno,
        ) from exc

    source = SourceInfo(code.co_filename, firstlineno, lines)
    text = "".join(lines)
    try:
        node = ast.parse(textwrap.dedent(text)).body[0]
        shift = firstlineno - 1
    except SyntaxError:
        # dedent() gives up when a multi-line string starts at column 0.
        try:
            node = ast.parse("if True:\n" + text).body[0].body[0]
        except SyntaxError as exc:
            raise source.error(
                f"cannot parse the source of {func.__qualname__}: {exc.msg}"
            ) from exc
        shift = firstlineno - 2

    if not isinstance(node, ast.FunctionDef) or node.name != func.__name__:
        raise source.error(f"cannot locate the definition of {func.__qualname__}")
    ast.increment_lineno(node, shift)
    return node, source


# ---------------------------------------------------------------------------
# AST helpers
# ---------------------------------------------------------------------------


def _name(id: str) -> ast.Name:
    return ast.Name(id=id, ctx=ast.Load())


def _method_call(owner: str, method: str, args: List[ast.expr]) -> ast.Call:
    func = ast.Attribute(value=_name(owner), attr=method, ctx=ast.Load())
    return ast.Call(func=func, args=args, keywords=[])


def _relocate(tree: ast.AST, lineno: int) -> ast.AST:
    for node in ast.walk(tree):
        if "lineno" in node._attributes:
            node.lineno = node.end_lineno = lineno
    return tree


def _template(source: str, lineno: int) -> ast.stmt:
    return _relocate(ast.parse(source).body[0], lineno)


def _find_code(container: types.CodeType, name: str) -> types.CodeType:
    pending = [container]
    while pending:
        code = pending.pop(0)
        for const in code.co_consts:
            if not isinstance(const, types.CodeType):
                continue
            if const.co_name == name and const.co_flags & inspect.CO_OPTIMIZED:
                return const
            pending.append(const)
    raise LookupError(f"compiled code for {name!r} not found")


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class CodeGenerator:
    """Assemble the instrumented function for one decorated ``def``.

    Args:
        func: The original function object.
        signature: Its parsed signature; ``signature.node`` is consumed.
        options: Decorator options.
        source: Where the source came from, for error locations.
    """

    def __init__(
        self,
        func: types.FunctionType,
        signature: FunctionSignature,
        options: MacroOptions,
        source: SourceInfo,
    ) -> None:
        self.func = func
        self.signature = signature
        self.options = options
        self.source = source
        self._cells: Dict[str, types.CellType] = dict(
            zip(func.__code__.co_freevars, func.__closure__ or ())
        )
        self._raw_annotations = {
            arg.arg: arg.annotation for arg, _ in iter_parameters(signature.node.args)
        }

    def generate(self) -> types.FunctionType:
        """Compile and return the instrumented function."""
        func = self.func
        node = self.signature.node

        formatters, entry_args = self._entry_args()
        tracer = Tracer(
            self.signature.name, self.options, self.signature.returns_unit, formatters
        )
        annotations = self._stripped_annotations()

        transformer = BodyTransformer(
            self._recursive_names(), rewrite_prints=self._print_is_builtin()
        )
        body = transformer.transform(node.body)
        module = self._build_module(self._build_definition(body, entry_args))

        flags = func.__code__.co_flags & _FUTURE_FLAGS
        code = compile(
            module, self.source.filename, "exec", flags=flags, dont_inherit=True
        )
        function_code = _find_code(code, node.name)

        function = types.FunctionType(
            function_code,
            func.__globals__,
            func.__name__,
            func.__defaults__,
            self._closure(function_code, tracer),
        )
        if func.__kwdefaults__:
            function.__kwdefaults__ = dict(func.__kwdefaults__)
        functools.update_wrapper(function, func)
        if annotations is not None:
            function.__annotations__ = annotations
            signature = self._signature(annotations)
            if signature is not None:
                function.__signature__ = signature
        function.__calltree__ = tracer

        report = transformer.report
        logger.debug(
            "instrumented %s: %d print site(s), %d return site(s), "
            "%d recursive call site(s)",
            func.__qualname__,
            len(report.prints),
            len(report.returns),
            len(report.recursive_calls),
        )
        return function

    # ------------------------------------------------------------------ #
    # Entry line
    # ------------------------------------------------------------------ #

    def _entry_args(self) -> Tuple[List[Any], List[ast.expr]]:
        """Formatter callables and the ``(label, text)`` tuples for enter()."""
        formatters = []
        entry_args = []
        for param in self.signature.shown_params:
            trace = param.trace
            if trace.visibility is Visibility.SHOWN:
                value = _method_call(RUNTIME_NAME, "show", [_name(param.name)])
            elif trace.inline:
                value = _method_call(RUNTIME_NAME, "text", [trace.formatter])
            else:
                index = ast.Constant(value=len(formatters))
                formatters.append(self._resolve_formatter(param))
                value = _method_call(
                    RUNTIME_NAME, "show_with", [index, _name(param.name)]
                )
            label = ast.Constant(value=None if trace.name_suppressed else param.name)
            entry_args.append(ast.Tuple(elts=[label, value], ctx=ast.Load()))
        return formatters, entry_args

    def _runtime_annotations(self) -> Optional[Dict[str, Any]]:
        try:
            return dict(self.func.__annotations__)
        except NameError:
            # Lazily evaluated annotations referring to undefined names.
            return None

    def _resolve_formatter(self, param: ParameterSpec) -> Any:
        """The callable behind ``fmt(callable)`` on ``param``.

        Taken from the evaluated annotation when there is one; otherwise
        (postponed annotations) the payload is evaluated in the function's
        globals and closure.
        """
        expr = param.trace.formatter
        evaluated = (self._runtime_annotations() or {}).get(param.name)
        marker = markers.find_formatter(evaluated)
        if marker is not None and not isinstance(marker.payload, str):
            formatter = marker.payload
        else:
            namespace = dict(self.func.__globals__)
            for name, cell in self._cells.items():
                try:
                    namespace[name] = cell.cell_contents
                except ValueError:
                    continue  # not assigned yet
            try:
                code = compile(
                    ast.Expression(body=expr), self.source.filename, "eval"
                )
                formatter = eval(code, namespace)
            except Exception as exc:
                raise self.source.error(
                    f"cannot evaluate the formatter of {param.name!r}: {exc}", expr
                ) from exc
        if not callable(formatter):
            raise self.source.error(
                f"formatter of {param.name!r} is not callable: {formatter!r}", expr
            )
        return formatter

    # ------------------------------------------------------------------ #
    # Annotations and signature of the result
    # ------------------------------------------------------------------ #

    def _stripped_annotations(self) -> Optional[Dict[str, Any]]:
        raw = self._runtime_annotations()
        if raw is None:
            return None
        params = {p.name: p for p in self.signature.params}
        result = {}
        for name, value in raw.items():
            param = params.get(name)
            if isinstance(value, str):
                if param is None or param.annotation is self._raw_annotations[name]:
                    result[name] = value
                elif param.annotation is not None:
                    result[name] = ast.unparse(param.annotation)
            elif not markers.is_marker(value):
                result[name] = markers.strip(value)
        return result

    def _signature(self, annotations: Dict[str, Any]) -> Optional[inspect.Signature]:
        try:
            original = inspect.signature(self.func)
        except (TypeError, ValueError, NameError):
            return None
        empty = inspect.Parameter.empty
        parameters = [
            p.replace(annotation=annotations.get(p.name, empty))
            for p in original.parameters.values()
        ]
        return original.replace(
            parameters=parameters,
            return_annotation=annotations.get("return", inspect.Signature.empty),
        )

    # ------------------------------------------------------------------ #
    # Body analysis
    # ------------------------------------------------------------------ #

    def _recursive_names(self) -> set:
        names = {self.signature.name}
        scopes = [self.func.__globals__.items()]
        scopes.append(
            (name, cell.cell_contents)
            for name, cell in self._cells.items()
            if _cell_is_set(cell)
        )
        for scope in scopes:
            for name, value in scope:
                if isinstance(value, types.FunctionType) and isinstance(
                    getattr(value, RUNTIME_NAME, None), Tracer
                ):
                    names.add(name)
        return names

    def _print_is_builtin(self) -> bool:
        code = self.func.__code__
        local = set(code.co_varnames) | set(code.co_cellvars) | set(code.co_freevars)
        if "print" in local:
            return False
        return self.func.__globals__.get("print", builtins.print) is builtins.print

    # ------------------------------------------------------------------ #
    # Assembly
    # ------------------------------------------------------------------ #

    def _build_definition(
        self, body: List[ast.stmt], entry_args: List[ast.expr]
    ) -> ast.FunctionDef:
        node = self.signature.node
        header = []
        if body and ast.get_docstring(node, clean=False) is not None:
            header.append(body.pop(0))

        inner: List[ast.stmt] = []
        limit = self.options.recursion_limit
        if limit is not None:
            depth = ast.Attribute(value=_name(FRAME_NAME), attr="depth", ctx=ast.Load())
            inner.append(
                ast.If(
                    test=ast.Compare(
                        left=depth, ops=[ast.GtE()], comparators=[ast.Constant(limit)]
                    ),
                    body=[ast.Expr(value=_method_call(RUNTIME_NAME, "abort", []))],
                    orelse=[],
                )
            )
        inner.append(ast.Expr(value=_method_call(FRAME_NAME, "enter", entry_args)))
        inner.extend(body)
        if not body or not isinstance(body[-1], (ast.Return, ast.Raise)):
            leave = _method_call(FRAME_NAME, "leave", [ast.Constant(value=None)])
            inner.append(ast.Return(value=leave))

        frame = ast.withitem(
            context_expr=_method_call(RUNTIME_NAME, "call", []),
            optional_vars=ast.Name(id=FRAME_NAME, ctx=ast.Store()),
        )
        with_stmt = ast.With(items=[frame], body=inner)

        for arg, _ in iter_parameters(node.args):
            arg.annotation = None
        node.args.defaults = []
        node.args.kw_defaults = [None] * len(node.args.kwonlyargs)
        node.decorator_list = []
        node.returns = None
        node.body = header + [ast.copy_location(with_stmt, node)]
        return node

    def _build_module(self, definition: ast.FunctionDef) -> ast.Module:
        lineno = definition.lineno
        factory = _template(f"def {FACTORY_NAME}():\n    pass\n", lineno)

        declared = [RUNTIME_NAME]
        for name in self.func.__code__.co_freevars:
            # A class body supplies its own __class__ cell.
            if name != "__class__" or self.signature.owner is None:
                declared.append(name)
        factory.body = [
            _relocate(
                ast.Assign(
                    targets=[ast.Name(id=name, ctx=ast.Store())],
                    value=ast.Constant(value=None),
                ),
                lineno,
            )
            for name in declared
        ]

        owner = self.signature.owner
        # The factory binds the function (or its class); keep references to
        # that name resolving to the module, as they did originally.
        bound = owner if owner is not None else definition.name
        if bound not in declared:
            factory.body.insert(0, _relocate(ast.Global(names=[bound]), lineno))

        if owner is not None:
            holder = _template(f"class {owner}:\n    pass\n", lineno)
            holder.body = [definition]
            factory.body.append(holder)
        else:
            factory.body.append(definition)

        module = ast.Module(body=[factory], type_ignores=[])
        return ast.fix_missing_locations(module)

    def _closure(
        self, code: types.CodeType, tracer: Tracer
    ) -> Optional[Tuple[types.CellType, ...]]:
        cells = []
        for name in code.co_freevars:
            if name == RUNTIME_NAME:
                cells.append(types.CellType(tracer))
            elif name in self._cells:
                cells.append(self._cells[name])
            else:
                cells.append(types.CellType())
        return tuple(cells) or None


def _cell_is_set(cell: types.CellType) -> bool:
    try:
        cell.cell_contents
    except ValueError:
        return False
    return True
