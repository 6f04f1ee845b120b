"""test_transform.py - Unit tests for BodyTransformer and print classification.

Covers:
    - classify_print for all four LogForms and for calls left alone
    - print(...) rewritten into emit_line / emit_partial
    - return / bare return rewritten into leave(...)
    - Nested def, lambda and class bodies are not entered
    - Prints nested inside other expressions are rewritten
    - rewrite_prints=False leaves print calls untouched
    - Recursive call sites are recorded but not changed
"""

import ast

import pytest

from calltree.transform import BodyTransformer, LogForm, classify_print


def _call(text: str) -> ast.Call:
    return ast.parse(text, mode="eval").body


def _rewrite(source: str, **kwargs):
    """Transform the body of the first def in ``source``; return (code, report)."""
    node = ast.parse(source).body[0]
    transformer = BodyTransformer(**kwargs)
    body = transformer.transform(node.body)
    return ast.unparse(ast.Module(body=body, type_ignores=[])), transformer.report


# ---------------------------------------------------------------------------
# classify_print
# ---------------------------------------------------------------------------


class TestClassifyPrint:
    @pytest.mark.parametrize(
        "text, form",
        [
            ("print('x')", LogForm.LINE),
            ("print('x', end='\\n')", LogForm.LINE),
            ("print('x', end=None)", LogForm.LINE),
            ("print('x', file=sys.stderr)", LogForm.LINE_TO_STREAM),
            ("print('x', file=None)", LogForm.LINE),
            ("print('x', end='')", LogForm.PARTIAL),
            ("print('x', end=suffix)", LogForm.PARTIAL),
            ("print('x', end='', file=out)", LogForm.PARTIAL_TO_STREAM),
        ],
    )
    def test_classify_print_forms(self, text, form):
        assert classify_print(_call(text)) is form

    @pytest.mark.parametrize(
        "text", ["log('x')", "obj.print('x')", "print(**opts)", "print('x', color=1)"]
    )
    def test_classify_print_leaves_other_calls(self, text):
        """Non-print calls and unclassifiable prints give None."""
        assert classify_print(_call(text)) is None

    def test_log_form_partial(self):
        assert LogForm.PARTIAL.partial
        assert LogForm.PARTIAL_TO_STREAM.partial
        assert not LogForm.LINE.partial
        assert not LogForm.LINE_TO_STREAM.partial


# ---------------------------------------------------------------------------
# Rewrites
# ---------------------------------------------------------------------------


class TestBodyTransformer:
    def test_print_becomes_emit_line(self):
        code, report = _rewrite("def f(n):\n    print('n =', n, sep='')\n")
        assert code == "__calltree_frame__.emit_line(('n =', n), sep='')"
        assert report.prints == [(LogForm.LINE, 2)]

    def test_print_end_newline_is_dropped_for_line_form(self):
        code, _ = _rewrite("def f():\n    print('x', end='\\n', flush=True)\n")
        assert code == "__calltree_frame__.emit_line(('x',), flush=True)"

    def test_print_with_end_becomes_emit_partial(self):
        code, _ = _rewrite("def f(out):\n    print('x', end='', file=out)\n")
        assert code == "__calltree_frame__.emit_partial(('x',), end='', file=out)"

    def test_bare_print_has_empty_values(self):
        code, _ = _rewrite("def f():\n    print()\n")
        assert code == "__calltree_frame__.emit_line(())"

    def test_return_value_goes_through_leave(self):
        source = "def f(n):\n    if n:\n        return n\n    return 0\n"
        code, report = _rewrite(source)
        assert "return __calltree_frame__.leave(n)" in code
        assert "return __calltree_frame__.leave(0)" in code
        assert report.returns == [3, 4]

    def test_bare_return_leaves_with_none(self):
        code, _ = _rewrite("def f():\n    return\n")
        assert code == "return __calltree_frame__.leave(None)"

    def test_print_inside_returned_expression_is_rewritten(self):
        """Children are transformed before their parent."""
        code, _ = _rewrite("def f():\n    return print('x') or 1\n")
        assert code == (
            "return __calltree_frame__.leave("
            "__calltree_frame__.emit_line(('x',)) or 1)"
        )

    def test_nested_scopes_are_not_entered(self):
        """Returns and prints of nested functions and classes stay as written."""
        source = (
            "def f():\n"
            "    def g():\n"
            "        print('g')\n"
            "        return 1\n"
            "    h = lambda: print('h')\n"
            "    class C:\n"
            "        def m(self):\n"
            "            return 2\n"
            "    return g()\n"
        )
        code, report = _rewrite(source)
        assert "print('g')" in code
        assert "    return 1" in code
        assert "lambda: print('h')" in code
        assert "        return 2" in code
        assert code.count("__calltree_frame__") == 1
        assert code.endswith("return __calltree_frame__.leave(g())")
        assert report.returns == [9]

    def test_rewrite_prints_disabled(self):
        code, report = _rewrite("def f():\n    print('x')\n", rewrite_prints=False)
        assert code == "print('x')"
        assert report.prints == []

    def test_recursive_calls_are_recorded_not_changed(self):
        source = "def fib(n):\n    return fib(n - 1) + other(n - 2)\n"
        code, report = _rewrite(source, recursive_names={"fib", "other"})
        assert "fib(n - 1) + other(n - 2)" in code
        assert report.recursive_calls == [("fib", 2), ("other", 2)]
