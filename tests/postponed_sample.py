"""Traced functions compiled with postponed annotation evaluation."""

from __future__ import annotations

from typing import Annotated

from calltree import fmt, hidden, no_name, trace


@trace
def label(n: fmt(hex), tag: Annotated[str, no_name], seen: hidden = None) -> str:
    return tag + hex(n)


@trace
def finish(steps: int) -> None:
    if steps:
        finish(steps - 1)
