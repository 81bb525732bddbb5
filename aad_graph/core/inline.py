# aad_graph/core/inline.py
from __future__ import annotations
from typing import Dict, Optional

from .errors import GraphContractError, RedefinedMapping, ShapeMismatch
from .node import Tensor


class VariableInlineContext:
    """
    Structural substitution: rebuild a graph with some Variables replaced.

        ctx = VariableInlineContext()
        ctx.define(x, sample)        # x: Variable, sample: any node of x.shape
        y_at_sample = ctx.get(y)

    Sub-graphs that do not reach a substituted Variable are returned as is, so
    the result shares every untouched node with the input graph.
    """

    def __init__(self):
        # node -> replacement, or None when the node is kept unchanged
        self._table: Dict[Tensor, Optional[Tensor]] = {}

    def define(self, variable: Tensor, replacement: Tensor) -> None:
        if not variable.is_variable():
            raise GraphContractError(f"only Variables can be substituted, got {variable.operator!r}")
        if replacement.shape != variable.shape:
            raise ShapeMismatch(
                "inline", f"replacement {list(replacement.shape)} for variable of shape {list(variable.shape)}")
        if variable in self._table:
            raise RedefinedMapping(f"the variable {variable} has already been defined")
        self._table[variable] = replacement

    def get(self, node: Tensor) -> Tensor:
        stack = [node]
        while stack:
            top = stack[-1]
            if top in self._table:
                stack.pop()
                continue
            pending = [c for c in top.children if c not in self._table]
            if pending:
                stack.extend(pending)
                continue
            stack.pop()
            self._rebuild(top)
        return self._resolve(node)

    def _resolve(self, node: Tensor) -> Tensor:
        r = self._table[node]
        return node if r is None else r

    def _rebuild(self, node: Tensor) -> None:
        # every child is resolved already
        children = [self._resolve(c) for c in node.children]
        if any(new is not old for new, old in zip(children, node.children)):
            self._table[node] = Tensor(node.shape, children, node.operator.clone())
        else:
            self._table[node] = None
