# aad_graph/ops/matrix.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from ..core.errors import ShapeMismatch
from ..core.node import Tensor
from .base import Operator, OpKind, check_arity


class MatMulMode(Enum):
    """Which operands are read transposed: op(A) · op(B)."""
    NN = (False, False)
    NT = (False, True)
    TN = (True, False)
    TT = (True, True)

    @property
    def transpose_a(self) -> bool:
        return self.value[0]

    @property
    def transpose_b(self) -> bool:
        return self.value[1]

    def flip_a(self) -> "MatMulMode":
        return MatMulMode((not self.transpose_a, self.transpose_b))

    def flip_b(self) -> "MatMulMode":
        return MatMulMode((self.transpose_a, not self.transpose_b))


def output_shape(mode: MatMulMode, a_shape, b_shape) -> Tuple[int, int]:
    if len(a_shape) != 2 or len(b_shape) != 2:
        raise ShapeMismatch("MatrixMul", f"needs 2-D operands, got {list(a_shape)} and {list(b_shape)}")
    a1, a2 = a_shape
    b1, b2 = b_shape
    rows, inner_a = (a2, a1) if mode.transpose_a else (a1, a2)
    inner_b, cols = (b2, b1) if mode.transpose_b else (b1, b2)
    if inner_a != inner_b:
        raise ShapeMismatch(
            "MatrixMul",
            f"{mode.name}: contracted dims differ ({inner_a} vs {inner_b}) "
            f"for {list(a_shape)} and {list(b_shape)}")
    return rows, cols


@dataclass(frozen=True)
class MatrixMul(Operator):
    mode: MatMulMode = MatMulMode.NN

    kind = OpKind.MATRIX_MUL

    def label(self):
        return f"MatrixMul{self.mode.name}"

    def __repr__(self):
        return self.label()

    def forward_grad(self, node, ctx):
        a, b = check_arity(self.label(), node, 2)
        return matmul(a, ctx.compute(b), self.mode) + matmul(ctx.compute(a), b, self.mode)

    def backward_grad(self, node, grad, ctx):
        a, b = check_arity(self.label(), node, 2)
        ga, gb = self._grads(a, b, grad)
        ctx.append(a, ga)
        ctx.append(b, gb)

    def _grads(self, a, b, g):
        # C = op(A) op(B):  d op(A) = G op(B)^T,  d op(B) = op(A)^T G
        mode = self.mode
        if mode is MatMulMode.NN:
            return matmul(g, b, mode.flip_b()), matmul(a, g, mode.flip_a())
        if mode is MatMulMode.NT:
            return matmul(g, b, MatMulMode.NN), matmul(g, a, MatMulMode.TN)
        if mode is MatMulMode.TN:
            return matmul(b, g, MatMulMode.NT), matmul(a, g, MatMulMode.NN)
        return matmul(b, g, MatMulMode.TT), matmul(g, a, MatMulMode.TT)


def matmul(a: Tensor, b: Tensor, mode: MatMulMode = MatMulMode.NN) -> Tensor:
    if not isinstance(mode, MatMulMode):
        mode = MatMulMode[mode]
    return Tensor(output_shape(mode, a.shape, b.shape), (a, b), MatrixMul(mode))
