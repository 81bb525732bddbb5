# aad_graph/core/graph_utils.py
"""
Graph inspection helpers: dependency-ordered listing, structural summary and
pretty printing of evaluated buffers.
"""
from __future__ import annotations
from collections import Counter
from typing import Dict, List

import numpy as np

from .node import Tensor


def topological_order(root: Tensor) -> List[Tensor]:
    """Every node reachable from `root`, children before parents (iterative DFS)."""
    order: List[Tensor] = []
    seen = set()
    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            order.append(node)
            continue
        if node in seen:
            continue
        seen.add(node)
        stack.append((node, True))
        for c in reversed(node.children):
            if c not in seen:
                stack.append((c, False))
    return order


def debug_define(root: Tensor) -> str:
    """
    SSA-style listing of the graph under `root`:

        $1[] = Constant{}
        $2[2, 3] = ExtendScale{$1}
        $3[2, 3] = Add{$2, $2}
    """
    index: Dict[Tensor, int] = {}
    lines = []
    for node in topological_order(root):
        index[node] = len(index) + 1
        args = ", ".join(f"${index[c]}" for c in node.children)
        lines.append(f"${index[node]}{list(node.shape)} = {node.operator.label()}{{{args}}}")
    return "\n".join(lines)


def graph_summary(root: Tensor) -> Dict:
    nodes = topological_order(root)
    fan_ins = [len(n.children) for n in nodes]
    fan_outs = Counter(c for n in nodes for c in n.children)
    ops = Counter(n.operator.kind.value for n in nodes)
    return {
        "nodes": len(nodes),
        "edges": sum(fan_ins),
        "leaves": sum(1 for n in nodes if not n.children),
        "variables": ops.get("Variable", 0),
        "depth": root.level,
        "max_fan_in": max(fan_ins) if fan_ins else 0,
        "max_fan_out": max(fan_outs.values()) if fan_outs else 0,
        "operations": dict(ops),
    }


def print_graph_summary(root: Tensor, detailed: bool = False) -> Dict:
    """
    Print the graph summary of `root`.

    Args:
        root: graph to inspect
        detailed: also print the node listing (graphs up to 100 nodes)

    Returns:
        the dict from graph_summary()
    """
    s = graph_summary(root)
    print("\n" + "=" * 70)
    print("COMPUTATION GRAPH SUMMARY")
    print("=" * 70)
    print(f"Total nodes:        {s['nodes']:,}")
    print(f"Total edges:        {s['edges']:,}")
    print(f"Leaves:             {s['leaves']:,} ({s['variables']} variables)")
    print(f"Depth (root level): {s['depth']}")
    print(f"Max fan-in:         {s['max_fan_in']}")
    print(f"Max fan-out:        {s['max_fan_out']}")
    print()
    print("Operation breakdown:")
    for op, count in Counter(s["operations"]).most_common(10):
        pct = 100.0 * count / s["nodes"]
        print(f"  {op:12s}: {count:6,} ({pct:5.1f}%)")
    if detailed and s["nodes"] <= 100:
        print()
        print(debug_define(root))
    print("=" * 70 + "\n")
    return s


def format_values(shape, data, precision: int = 5) -> str:
    """
    Render a flat buffer by its shape: scalars and vectors on one line,
    matrices row by row, higher ranks as `# [i, j]:` blocks of matrices.
    """
    arr = np.asarray(data).reshape(tuple(shape))
    fmt = {"float_kind": lambda v: f"{v:10.{precision}f}"}
    if arr.ndim <= 2:
        return np.array2string(arr, formatter=fmt)
    blocks = []
    for idx in np.ndindex(*arr.shape[:-2]):
        blocks.append(f"# {list(idx)}:\n" + np.array2string(arr[idx], formatter=fmt))
    return "\n\n".join(blocks)
