"""examples/basic_usage.py - calltree demo.

Demonstrates:
    Scenario A: a void recursion drawn as a tree of bare corners
    Scenario B: return values, hidden parameters and custom formatters
    Scenario C: recursion_limit stopping a runaway recursion
    Scenario D: print() and logging output indented into the tree
"""

import logging

from calltree import RecursionLimitExceeded, TreeLogHandler, fmt, hidden, trace

logger = logging.getLogger("app")
logger.setLevel(logging.INFO)
logger.addHandler(TreeLogHandler())


# ===========================================================================
# Scenario A: void recursion
# ===========================================================================


@trace
def countdown(count: int) -> None:
    if count == 0:
        return
    countdown(count - 1)


# ===========================================================================
# Scenario B: return values and parameter markers
# ===========================================================================


@trace
def generic_gcd(a: int, b: int) -> int:
    if b == 0:
        return a
    return generic_gcd(b, a % b)


@trace
def depth_first(node: fmt("node[0]"), graph: hidden, seen: hidden) -> int:
    name, children = node
    seen.add(name)
    total = 1
    for child in children:
        if child not in seen:
            total += depth_first(graph[child], graph, seen)
    return total


# ===========================================================================
# Scenario C: recursion_limit
# ===========================================================================


@trace("no_return", recursion_limit=3)
def runaway(n: int) -> int:
    return runaway(n + 1)


# ===========================================================================
# Scenario D: output inside the tree
# ===========================================================================


@trace
def hanoi(n: int, src: str, dst: str, via: str) -> None:
    if n == 0:
        return
    hanoi(n - 1, src, via, dst)
    print(f"move disk {n}: {src} -> {dst}")
    logger.info("%d disk(s) left above", n - 1)
    hanoi(n - 1, via, dst, src)


if __name__ == "__main__":
    print("=== Scenario A ===")
    countdown(3)

    print("\n=== Scenario B ===")
    generic_gcd(48, 18)
    graph = {"a": ("a", "bc"), "b": ("b", "c"), "c": ("c", "")}
    depth_first(graph["a"], graph, set())

    print("\n=== Scenario C ===")
    try:
        runaway(0)
    except RecursionLimitExceeded as exc:
        print(f"stopped: {exc}")

    print("\n=== Scenario D ===")
    hanoi(2, "A", "C", "B")
