"""test_codegen.py - Tests for the function objects @trace produces.

Covers:
    - Name, qualname, docstring, module, __dict__ and __wrapped__ carried over
    - Markers removed from __annotations__ and inspect.signature()
    - Defaults, keyword-only defaults and *args/**kwargs still work
    - Closures: captured variables keep working, including later rebinding
    - Methods: zero-argument super() and private name mangling
    - Line numbers in the instrumented code match the source file
    - Postponed annotations (from __future__ import annotations)
    - Tracer attached as __calltree__
"""

import inspect
from typing import Annotated

import pytest

from calltree import capture, fmt, hidden, no_name, trace
from calltree.context import DepthTracker
from calltree.runtime import Tracer

from postponed_sample import finish, label


class Base:
    def describe(self) -> str:
        return "base"


class Child(Base):
    __suffix = "+child"

    @trace
    def describe(self: hidden) -> str:
        return super().describe() + self.__suffix


class Tree:
    def __init__(self, *children):
        self.children = list(children)

    @trace
    def size(self: hidden) -> int:
        return 1 + sum(child.size() for child in self.children)

    @staticmethod
    @trace
    def leaves(tree: hidden) -> int:
        if not tree.children:
            return 1
        return sum(Tree.leaves(child) for child in tree.children)


def identity(x):
    return x


def make_adder(step):
    @trace
    def add(n: int) -> int:
        return n + step

    return add


# ---------------------------------------------------------------------------
# Function metadata
# ---------------------------------------------------------------------------


class TestMetadata:
    def setup_method(self):
        DepthTracker().reset()

    def test_metadata_is_carried_over(self):
        def original(n: int) -> int:
            """Add one."""
            return n + 1

        original.custom = "kept"
        traced = trace(original)

        assert traced is not original
        assert traced.__name__ == "original"
        assert traced.__qualname__ == original.__qualname__
        assert traced.__doc__ == "Add one."
        assert traced.__module__ == __name__
        assert traced.custom == "kept"
        assert traced.__wrapped__ is original

    def test_tracer_is_attached(self):
        traced = trace(identity)
        assert isinstance(traced.__calltree__, Tracer)
        assert traced.__calltree__.name == "identity"

    def test_markers_removed_from_annotations(self):
        @trace
        def f(a: fmt(hex), b: Annotated[int, no_name], c: hidden, d: str) -> int:
            return 0

        assert f.__annotations__ == {"b": int, "d": str, "return": int}
        params = inspect.signature(f).parameters
        assert params["a"].annotation is inspect.Parameter.empty
        assert params["b"].annotation is int
        assert params["c"].annotation is inspect.Parameter.empty
        assert inspect.signature(f).return_annotation is int

    def test_annotated_keeps_other_metadata(self):
        @trace
        def f(a: Annotated[int, "units", no_name]) -> None:
            pass

        assert f.__annotations__["a"] == Annotated[int, "units"]


# ---------------------------------------------------------------------------
# Calling convention
# ---------------------------------------------------------------------------


class TestCalling:
    def setup_method(self):
        DepthTracker().reset()

    def test_defaults_and_keyword_only_defaults(self):
        @trace
        def f(a: int, b: int = 2, *, c: int = 3) -> int:
            return a + b + c

        with capture() as buf:
            assert f(1) == 6
            assert f(1, c=10) == 13
        assert buf.texts()[0] == "f(a:1, b:2, c:3)"
        assert buf.texts()[2] == "f(a:1, b:2, c:10)"

    def test_var_args(self):
        @trace
        def total(*values: int, **named: int) -> int:
            return sum(values) + sum(named.values())

        with capture() as buf:
            assert total(1, 2, x=3) == 6
        assert buf.texts()[0] == "total(values:(1, 2), named:{'x': 3})"

    def test_positional_only(self):
        @trace
        def f(a, /, b) -> None:
            pass

        with capture() as buf:
            f(1, b=2)
        assert buf.texts()[0] == "f(a:1, b:2)"
        with pytest.raises(TypeError):
            f(a=1, b=2)

    def test_closure_variables(self):
        add = make_adder(10)
        with capture() as buf:
            assert add(1) == 11
        assert buf.texts() == ["add(n:1)", "└ return: 11"]

    def test_closure_sees_rebinding(self):
        """The traced function shares the original's closure cells."""
        factor = 2

        @trace
        def scale(n: int) -> int:
            return n * factor

        factor = 5
        with capture():
            assert scale(2) == 10

    def test_method_with_super_and_mangling(self):
        with capture() as buf:
            assert Child().describe() == "base+child"
        assert buf.texts() == ["describe()", "└ return: 'base+child'"]

    def test_recursive_method(self):
        tree = Tree(Tree(), Tree(Tree()))
        with capture() as buf:
            assert tree.size() == 4
        assert buf.texts()[:3] == ["size()", "├─size()", "│ └ return: 1"]
        assert buf.texts()[-1] == "└ return: 4"

    def test_static_method_referring_to_class(self):
        tree = Tree(Tree(), Tree(Tree(), Tree()))
        with capture() as buf:
            assert Tree.leaves(tree) == 3
        assert buf.texts()[0] == "leaves()"

    def test_line_numbers_match_source(self):
        @trace
        def where() -> int:
            return inspect.currentframe().f_lineno

        lines, start = inspect.getsourcelines(where.__wrapped__)
        expected = start + next(
            i for i, line in enumerate(lines) if "currentframe" in line
        )
        with capture():
            assert where() == expected


# ---------------------------------------------------------------------------
# Postponed annotations
# ---------------------------------------------------------------------------


class TestPostponedAnnotations:
    def setup_method(self):
        DepthTracker().reset()

    def test_markers_read_from_source(self):
        with capture() as buf:
            assert label(255, "x") == "x0xff"
        assert buf.texts() == ["label(n:0xff, 'x')", "└ return: 'x0xff'"]

    def test_annotations_stay_strings_without_markers(self):
        assert label.__annotations__ == {"tag": "str", "return": "str"}

    def test_string_none_return_is_void(self):
        with capture() as buf:
            finish(1)
        assert buf.texts() == ["finish(steps:1)", "├─finish(steps:0)", "│ └", "└"]
