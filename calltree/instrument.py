"""instrument.py - The @trace decorator.

@trace rewrites a function at definition time so that every call draws
itself into an indented call tree:

    ``name(args)``           entry of the outermost call
    ``├─name(args)``         entry of a nested call, hanging off its caller
    ``└ return: <value>``    exit with the returned value
    ``└``                    exit without a value (``-> None``, no_return)
    ``└!! Type: message``    exit through an exception

``print(...)`` calls in the body are re-indented so their output sits
inside the tree. Trace lines go to the active sink (see ``sink.py``);
user output still goes to the stream it names.

Usage:
    from calltree import trace, hidden

    @trace
    def gcd(a: int, b: int) -> int:
        return a if b == 0 else gcd(b, a % b)

    @trace("no_return", recursion_limit=50)
    def walk(node, seen: hidden):
        ...

Note:
    @trace must be the innermost decorator, and the function's source must
    be available to ``inspect``. Every configuration problem is reported as
    a ConfigError while the decorator runs, not when the function is called.
"""

import types
from typing import Any, Callable

from .codegen import CodeGenerator, check_target, load_source
from .config import option_items, parse_options, parse_signature


def trace(*flags: Any, **settings: Any) -> Callable:
    """Decorator that instruments a function to print its call tree.

    Can be applied bare (``@trace``) or with options. Options are names,
    given either as strings or as keywords:

        ``no_return``           never show the returned value
        ``show_return``         show it even for ``-> None`` functions
        ``recursion_limit=N``   abort calls that would run at depth N or deeper

    Args:
        *flags: The function to instrument (bare use) or option names.
        **settings: Options given as ``name=value``.

    Returns:
        The instrumented function, or a decorator producing it.

    Raises:
        ConfigError: Unknown or conflicting options, invalid parameter
            markers, or a target that cannot be instrumented.

    Example:
        >>> @trace
        ... def fact(n: int) -> int:
        ...     return 1 if n <= 1 else n * fact(n - 1)
        >>> fact(2)   # writes "fact(n:2)", "├─fact(n:1)", "│ └ return: 1",
        ...           # "└ return: 2" to the trace sink
        2
    """
    if len(flags) == 1 and not settings and not isinstance(flags[0], str):
        # Bare @trace; check_target rejects anything but a plain function.
        return _instrument(flags[0], (), {})

    def decorator(func: Callable) -> Callable:
        return _instrument(func, flags, settings)

    return decorator


def _instrument(func: Any, flags, settings) -> types.FunctionType:
    check_target(func)
    node, source = load_source(func)
    options = parse_options(option_items(flags, settings, source), source)
    signature = parse_signature(node, func.__qualname__, source)
    return CodeGenerator(func, signature, options, source).generate()
