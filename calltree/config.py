"""config.py - Turn decorator arguments and parameter annotations into a model.

Two inputs are parsed here:

    Decorator options   ``@trace("no_return", recursion_limit=5)``: a flat list
                        of identifiers, each optionally carrying a value.
    Parameter markers   ``n: fmt(hex)``, ``seen: hidden`` and so on, read
                        from the function's AST so they work the same with
                        ``from __future__ import annotations``.

Anything unrecognised or contradictory raises ConfigError. The one lenient
case is a ``fmt("...")`` string that does not parse: ``fmt`` takes an
optional payload, so that falls back to default formatting with a warning.
"""

import ast
import inspect
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import SourceInfo
from .markers import TAG_NAMES
from .model import (
    FunctionSignature,
    MacroOptions,
    ParameterSpec,
    TraceAnnotation,
    Visibility,
)

logger = logging.getLogger(__name__)


class _Flag:
    def __repr__(self) -> str:
        return "FLAG"


# Value of an option given as a bare identifier, e.g. ``@trace("no_return")``.
FLAG = _Flag()

OPTION_NAMES = ("no_return", "recursion_limit", "show_return")


# ---------------------------------------------------------------------------
# Decorator options
# ---------------------------------------------------------------------------


def option_items(
    flags: Sequence[Any], settings: Mapping[str, Any], source: SourceInfo
) -> List[Tuple[str, Any]]:
    """Flatten ``trace(*flags, **settings)`` into ``(name, value)`` pairs."""
    items = []
    for flag in flags:
        if not isinstance(flag, str):
            raise source.error(
                f"options must be given as names or name=value, got {flag!r}"
            )
        items.append((flag, FLAG))
    items.extend(settings.items())
    return items


def parse_options(items: Iterable[Tuple[str, Any]], source: SourceInfo) -> MacroOptions:
    """Build MacroOptions from ``(name, value)`` pairs.

    Args:
        items: Option names in the order given, each with its value or FLAG.
        source: Used to locate errors at the decorated function.

    Raises:
        ConfigError: Unknown option, repeated option, missing or invalid
            value, a non-positive ``recursion_limit``, or ``no_return``
            combined with ``show_return``.
    """
    options = MacroOptions()
    seen = set()

    for name, value in items:
        if name not in OPTION_NAMES:
            raise source.error(f"unknown argument {name!r}")
        if name in seen:
            raise source.error(f"argument {name!r} given more than once")
        seen.add(name)

        if name == "recursion_limit":
            if value is FLAG:
                raise source.error("recursion_limit requires a value")
            if isinstance(value, bool) or not isinstance(value, int):
                raise source.error(
                    f"recursion_limit must be an integer, got {value!r}"
                )
            if value <= 0:
                raise source.error("recursion_limit must be greater than 0")
            options.recursion_limit = value
        else:
            if value is not FLAG and not isinstance(value, bool):
                raise source.error(f"{name} takes no value other than True/False")
            setattr(options, name, value is FLAG or value)

    if options.no_return and options.show_return:
        raise source.error("no_return and show_return cannot be combined")
    return options


# ---------------------------------------------------------------------------
# Parameter markers
# ---------------------------------------------------------------------------


def _tag_name(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Name) and node.id in TAG_NAMES:
        return node.id
    if isinstance(node, ast.Attribute) and node.attr in TAG_NAMES:
        return node.attr
    return None


def _as_tag(node: ast.AST) -> Optional[Tuple[str, ast.expr]]:
    """``(tag, node)`` for ``hidden`` or ``fmt(...)``; None otherwise."""
    name = _tag_name(node)
    if name is None and isinstance(node, ast.Call):
        name = _tag_name(node.func)
    if name is None:
        return None
    return name, node


def _is_annotated(node: ast.AST) -> bool:
    value = node.value if isinstance(node, ast.Subscript) else None
    if isinstance(value, ast.Name):
        return value.id == "Annotated"
    return isinstance(value, ast.Attribute) and value.attr == "Annotated"


def split_annotation(
    node: Optional[ast.expr],
) -> Tuple[List[Tuple[str, ast.expr]], Optional[ast.expr]]:
    """Separate trace markers from the rest of a parameter annotation.

    Returns the markers found and the annotation left once they are removed
    (``None`` when the annotation consisted only of markers).
    """
    if node is None:
        return [], None

    tag = _as_tag(node)
    if tag is not None:
        return [tag], None

    if isinstance(node, ast.Tuple) and node.elts:
        tags = [_as_tag(elt) for elt in node.elts]
        if all(tags):
            return tags, None
        return [], node

    if _is_annotated(node) and isinstance(node.slice, ast.Tuple):
        base, *extras = node.slice.elts
        tags = []
        rest = []
        for extra in extras:
            tag = _as_tag(extra)
            if tag is None:
                rest.append(extra)
            else:
                tags.append(tag)
        if not tags:
            return [], node
        if not rest:
            return tags, base
        stripped = ast.Subscript(
            value=node.value,
            slice=ast.Tuple(elts=[base, *rest], ctx=ast.Load()),
            ctx=ast.Load(),
        )
        return tags, ast.copy_location(stripped, node)

    return [], node


def _parse_fmt(call: Optional[ast.Call], param: str, source: SourceInfo):
    """Payload of one ``fmt`` marker as ``(formatter, inline)``."""
    if call is None or (not call.args and not call.keywords):
        return None, False
    if call.keywords or len(call.args) != 1:
        raise source.error("fmt() takes a single formatter argument", call)

    payload = call.args[0]
    if isinstance(payload, ast.Constant) and isinstance(payload.value, str):
        try:
            expr = ast.parse(payload.value.strip(), mode="eval").body
        except SyntaxError:
            logger.warning(
                "fmt(%r) on parameter %r is not an expression; "
                "using default formatting",
                payload.value,
                param,
            )
            return None, False
        # Re-anchor the parsed expression on the string literal so that
        # errors raised inside it point at the annotation.
        for child in ast.walk(expr):
            if "lineno" in child._attributes:
                ast.copy_location(child, payload)
        return expr, True

    if isinstance(payload, ast.Starred):
        raise source.error("fmt() takes a single formatter argument", payload)
    return payload, False


def parse_annotation(
    tags: List[Tuple[str, ast.expr]], param: str, source: SourceInfo
) -> TraceAnnotation:
    """Fold the markers found on one parameter into a TraceAnnotation.

    Raises:
        ConfigError: A marker given twice, ``show``/``hidden``/``no_name``
            called with arguments, a malformed ``fmt(...)``, or ``hidden``
            combined with any other marker.
    """
    annotation = TraceAnnotation()
    seen = set()

    for name, node in tags:
        call = node if isinstance(node, ast.Call) else None
        if name in seen:
            raise source.error(f"{name} given more than once on {param!r}", node)
        seen.add(name)

        if name != "fmt" and call is not None and (call.args or call.keywords):
            raise source.error(f"{name} takes no arguments", node)

        if name == "hidden":
            annotation.visibility = Visibility.HIDDEN
        elif name == "no_name":
            annotation.name_suppressed = True
        elif name == "fmt":
            formatter, inline = _parse_fmt(call, param, source)
            if formatter is not None:
                annotation.visibility = Visibility.SHOWN_CUSTOM
                annotation.formatter = formatter
                annotation.inline = inline

    if "hidden" in seen and len(seen) > 1:
        others = ", ".join(sorted(seen - {"hidden"}))
        raise source.error(
            f"conflicting annotations on {param!r}: hidden with {others}",
            tags[0][1],
        )
    return annotation


def iter_parameters(args: ast.arguments):
    """Yield every ``ast.arg`` of a ``def`` with its ``inspect.Parameter`` kind."""
    P = inspect.Parameter
    for arg in getattr(args, "posonlyargs", []):
        yield arg, P.POSITIONAL_ONLY
    for arg in args.args:
        yield arg, P.POSITIONAL_OR_KEYWORD
    if args.vararg is not None:
        yield args.vararg, P.VAR_POSITIONAL
    for arg in args.kwonlyargs:
        yield arg, P.KEYWORD_ONLY
    if args.kwarg is not None:
        yield args.kwarg, P.VAR_KEYWORD


def parse_signature(
    node: ast.FunctionDef, qualname: str, source: SourceInfo
) -> FunctionSignature:
    """Build the FunctionSignature of a parsed ``def``."""
    params = []
    for arg, kind in iter_parameters(node.args):
        tags, stripped = split_annotation(arg.annotation)
        trace = parse_annotation(tags, arg.arg, source)
        params.append(ParameterSpec(arg.arg, kind, stripped, trace))
    return FunctionSignature(node.name, qualname, params, node.returns, node)
