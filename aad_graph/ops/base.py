# aad_graph/ops/base.py
"""
Operator capability set.

Every node carries exactly one operator. The set of operators is closed: each
concrete class below `Operator` declares one `OpKind`, and the backends key
their kernels by that tag (see `aad_graph.backend.cpu`).

An operator provides
    forward_grad(node, ctx)        -> Tensor   tangent of `node`; `ctx.compute(child)`
                                               supplies the tangent of any child.
    backward_grad(node, grad, ctx) -> None     push a cotangent contribution to each
                                               child with `ctx.append(child, g)`.
    display(node)                  -> str      structural text form.
Shape/arity validation happens in the module-level constructors, before the
node exists.
"""
from __future__ import annotations
from enum import Enum
from typing import Sequence

from ..core.errors import ShapeMismatch
from ..core.node import Tensor


class OpKind(Enum):
    ADD = "Add"
    MUL = "Mul"
    SUB = "Sub"
    DIV = "Div"
    FUNCTION = "Function"
    MATRIX_MUL = "MatrixMul"
    RESHAPE = "Reshape"
    SLICE = "Slice"
    MERGE = "Merge"
    EXTEND_SCALE = "ExtendScale"
    SUM_SCALE = "SumScale"
    SELECT = "Select"
    CONSTANT = "Constant"
    VARIABLE = "Variable"
    ASSIGN = "Assign"
    DEBUG_ASSIGN = "DebugAssign"


class Operator:
    """Base of all operator variants. Operators are immutable once built."""

    kind: OpKind

    def forward_grad(self, node: Tensor, ctx) -> Tensor:
        raise NotImplementedError(f"{self!r} has no forward derivative")

    def backward_grad(self, node: Tensor, grad: Tensor, ctx) -> None:
        raise NotImplementedError(f"{self!r} has no backward derivative")

    def label(self) -> str:
        return self.kind.value

    def display(self, node: Tensor) -> str:
        return f"{self.label()}({', '.join(str(c) for c in node.children)})"

    def clone(self) -> "Operator":
        """Operator used when a node is rebuilt over new children."""
        return self

    def __repr__(self):
        return self.label()


# ------------------------------ shared checks ------------------------------ #
def check_same_shape(op: str, tensors: Sequence[Tensor], shape=None):
    """All `tensors` must have `shape` (or the shape of the first one)."""
    for t in tensors:
        if not isinstance(t, Tensor):
            raise ShapeMismatch(op, f"operand is not a Tensor: {type(t).__name__}")
    if shape is None:
        if not tensors:
            raise ShapeMismatch(op, "needs at least one operand")
        shape = tensors[0].shape
    shape = tuple(shape)
    for t in tensors:
        if t.shape != shape:
            raise ShapeMismatch(op, f"shape {list(t.shape)} does not match {list(shape)}")
    return shape


def check_arity(op: str, node: Tensor, n: int):
    if len(node.children) != n:
        raise ShapeMismatch(op, f"expects {n} operands, got {len(node.children)}")
    return node.children


def as_shape(shape) -> tuple:
    if isinstance(shape, int):
        return (shape,)
    return tuple(int(d) for d in shape)
