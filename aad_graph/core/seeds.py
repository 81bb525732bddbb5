# aad_graph/core/seeds.py

#-----------------------------------------------------------------------------
# We "plant" a seed (d root / d root = 1) at the root and let gradients grow
# backwards through the graph, or seed tangents at leaves and push forward.
#-----------------------------------------------------------------------------
from __future__ import annotations
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .engine import differentiate_forward, differentiate_reverse
from .node import Tensor


def compute(node: Tensor, bindings: Iterable[Tuple[Tensor, object]] = (), config=None) -> np.ndarray:
    """Evaluate `node` once in a fresh CPU context with the given Variable bindings."""
    from ..backend.cpu import CpuContext
    ctx = CpuContext(config)
    for var, data in bindings:
        ctx.bind(var, data)
    return ctx.evaluate(node)


def grad(root: Tensor, target: Tensor, seed: Optional[Tensor] = None) -> Tensor:
    """
    Gradient node of `root` w.r.t. `target` (reverse mode).
    A `target` that does not feed `root` gets the zero tensor.
    """
    from ..ops.shape import zero
    table = differentiate_reverse(root, seed)
    g = table.get(target)
    return g if g is not None else zero(target.shape)


def grads(root: Tensor, targets: Iterable[Tensor], seed: Optional[Tensor] = None) -> List[Tensor]:
    """Same as grad(), for several targets from ONE reverse pass."""
    from ..ops.shape import zero
    table = differentiate_reverse(root, seed)
    out = []
    for t in targets:
        g = table.get(t)
        out.append(g if g is not None else zero(t.shape))
    return out


def jvp(root: Tensor, seeds: Iterable[Tuple[Tensor, Tensor]]) -> Tensor:
    """Directional derivative of `root` along the seeded (source, tangent) pairs."""
    return differentiate_forward(seeds).compute(root)
