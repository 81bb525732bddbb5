# aad_graph/core/engine.py
"""
Forward- and reverse-mode differentiation over the tensor DAG.

Both engines are symbolic: they never look at numbers. Each pass returns new
graph nodes (tangents / cotangents) that are evaluated later by a backend
context like any other graph.
"""
from __future__ import annotations
import heapq
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ReentrantDerivation, ShapeMismatch
from .node import Tensor

logger = logging.getLogger(__name__)

_MISSING = object()
_IN_PROGRESS = object()


class BackwardGrad:
    """
    Reverse-mode accumulation table.

    Contributions are collected per source node and a node is finalized only
    when it is the pending node with the greatest `(level, id)`. Every parent
    of a node has a strictly greater level, so by the time a node is popped
    all of its contributions have arrived.
    """

    def __init__(self):
        self._pending: Dict[Tensor, List[Tensor]] = {}
        self._heap: List[Tuple[int, int, Tensor]] = []
        self._result: Dict[Tensor, Tensor] = {}

    def append(self, source: Tensor, grad: Tensor):
        """Queue `grad` as one cotangent contribution to `source`."""
        if grad.shape != source.shape:
            raise ShapeMismatch(
                "BackwardGrad", f"cotangent {list(grad.shape)} for node of shape {list(source.shape)}")
        if source in self._result:
            raise ReentrantDerivation(f"node {source.id} received a cotangent after it was finalized")
        grads = self._pending.get(source)
        if grads is None:
            self._pending[source] = [grad]
            # max-heap on (level, id); ids are unique so tensors are never compared
            heapq.heappush(self._heap, (-source.level, -source.id, source))
        else:
            grads.append(grad)

    def result(self) -> Dict[Tensor, Tensor]:
        """Drain the queue; returns {visited node: its gradient node}."""
        from ..ops.arithmetic import add_all
        from ..ops.control import assign
        while self._heap:
            _, _, node = heapq.heappop(self._heap)
            grad = add_all(node.shape, self._pending.pop(node))
            self._result[node] = assign(grad)
            node.operator.backward_grad(node, grad, self)
        logger.debug("reverse pass visited %d nodes", len(self._result))
        return self._result


class ForwardGrad:
    """
    Forward-mode tangent table.

    `seeds` is a list of (source, tangent) pairs. Every seeded source ends up
    with the sum of all of its seed tangents plus the tangent derived from the
    other seeds, so a node may be seeded and downstream of a seed at once.
    """

    def __init__(self, seeds: Iterable[Tuple[Tensor, Tensor]] = ()):
        from ..ops.arithmetic import add_all
        self._table: Dict[Tensor, object] = {}

        grouped: Dict[Tensor, List[Tensor]] = {}
        for source, tangent in seeds:
            if tangent.shape != source.shape:
                raise ShapeMismatch(
                    "ForwardGrad", f"tangent {list(tangent.shape)} for node of shape {list(source.shape)}")
            grouped.setdefault(source, []).append(tangent)

        # lower levels first: a seeded node below another one is final before it is used
        for source in sorted(grouped, key=lambda t: t.key):
            tangents = grouped[source]
            tangents.append(self.compute(source))
            self._table[source] = add_all(source.shape, tangents)
        logger.debug("forward pass seeded %d nodes", len(grouped))

    def compute(self, node: Tensor) -> Tensor:
        """Tangent of `node` along the seeded directions (memoized)."""
        r = self._table.get(node, _MISSING)
        if r is _IN_PROGRESS:
            raise ReentrantDerivation(f"node {node.id} depends on itself")
        if r is not _MISSING:
            return r
        # children first, from an explicit stack, so forward_grad only reads memoized tangents
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
            self._derive(top)
        return self._table[node]

    def _derive(self, node: Tensor) -> None:
        self._table[node] = _IN_PROGRESS
        r = node.operator.forward_grad(node, self)
        if r.shape != node.shape:
            raise ShapeMismatch(
                "ForwardGrad", f"{node.operator!r} produced tangent {list(r.shape)} for {list(node.shape)}")
        self._table[node] = r


def differentiate_reverse(root: Tensor, seed: Optional[Tensor] = None) -> Dict[Tensor, Tensor]:
    """
    Run one reverse pass from `root`.

    Args:
        root: node to differentiate.
        seed: cotangent of `root`; defaults to ones shaped like `root`.

    Returns:
        dict {node: gradient node} for every node reachable from `root`.
        Nodes not connected to `root` are absent, not zero.
    """
    from ..ops.shape import one
    ctx = BackwardGrad()
    ctx.append(root, seed if seed is not None else one(root.shape))
    return ctx.result()


def differentiate_forward(seeds: Iterable[Tuple[Tensor, Tensor]]) -> ForwardGrad:
    """Forward-mode context; call `.compute(node)` for any node's tangent."""
    return ForwardGrad(list(seeds))
