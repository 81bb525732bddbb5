# aad_graph/core/session.py
from __future__ import annotations
import itertools
from contextlib import contextmanager
from typing import Optional


class GraphSession:
    """
    Graph-building context: owns the allocator of Variable display ids.

    Ids are unique and strictly increasing within one session and start at 1.
    `next(itertools.count)` is atomic, so several threads may build graphs in
    the same session.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name
        self._ids = itertools.count(1)

    def next_variable_id(self) -> int:
        return next(self._ids)

    def __repr__(self):
        return f"GraphSession(name={self.name!r})"


# Default session used when the caller does not pass one explicitly
global_session = GraphSession("global")


@contextmanager
def use_session(session: Optional[GraphSession] = None):
    """
    Context manager to temporarily build Variables in a fresh session:
        with use_session() as s:
            x = variable([3])      # x gets id 1 in s
    """
    from . import session as _session_mod  # local import so rebinding is visible
    prev = _session_mod.global_session
    try:
        _session_mod.global_session = session or GraphSession()
        yield _session_mod.global_session
    finally:
        _session_mod.global_session = prev
