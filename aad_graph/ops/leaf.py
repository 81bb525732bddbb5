# aad_graph/ops/leaf.py
from __future__ import annotations
from functools import lru_cache
from typing import Optional

import numpy as np

from ..config import DEFAULT_CONFIG
from ..core import session as session_mod  # module access so use_session() rebinding is seen
from ..core.errors import ShapeMismatch, VariableCloneError
from ..core.node import Tensor, data_size
from .base import Operator, OpKind, as_shape


def freeze(data, dtype=None) -> np.ndarray:
    """Flat, read-only copy-if-needed of `data` in the engine dtype."""
    arr = np.asarray(data, dtype=dtype or DEFAULT_CONFIG.dtype).reshape(-1)
    if arr.flags.writeable:
        if arr.base is not None or arr is data:
            arr = arr.copy()
        arr.flags.writeable = False
    return arr


class Constant(Operator):
    """Leaf holding an immutable buffer shared by every evaluation context."""

    kind = OpKind.CONSTANT

    def __init__(self, data: np.ndarray):
        self.data = data

    def forward_grad(self, node, ctx):
        from .shape import zero
        return zero(node.shape)

    def backward_grad(self, node, grad, ctx):
        pass

    def display(self, node):
        head = ""
        if self.data.size > 0:
            head = repr(float(self.data[0]))
            if self.data.size > 1:
                head += ", ... "
        return f"Constant{list(node.shape)}{{{head}}}"


class Variable(Operator):
    """
    Leaf placeholder whose value is bound per evaluation context.

    `variable_id` is a display id handed out by the active GraphSession; it
    never decides identity. Two references are the same variable only if they
    are the same node.
    """

    kind = OpKind.VARIABLE

    def __init__(self, variable_id: int):
        self.variable_id = variable_id

    def clone(self):
        raise VariableCloneError(f"variable ${self.variable_id} cannot be cloned")

    def __copy__(self):
        return self.clone()

    def __deepcopy__(self, memo):
        return self.clone()

    def forward_grad(self, node, ctx):
        from .shape import zero
        return zero(node.shape)

    def backward_grad(self, node, grad, ctx):
        pass

    def label(self):
        return f"Variable(${self.variable_id})"

    def display(self, node):
        return f"${self.variable_id}"


# ------------------------------ constructors ------------------------------ #
def constant(shape, data) -> Tensor:
    shape = as_shape(shape)
    buf = freeze(data)
    if buf.size != data_size(shape):
        raise ShapeMismatch("Constant", f"{buf.size} values for shape {list(shape)}")
    return Tensor(shape, (), Constant(buf))


def scalar(value: float) -> Tensor:
    """Shape `()` constant."""
    return constant((), [value])


@lru_cache(maxsize=None)
def unit(value: float) -> Tensor:
    """Shared scalar constant, built once per value (used by zero/one)."""
    return scalar(value)


def variable(shape, session: Optional[session_mod.GraphSession] = None) -> Tensor:
    session = session or session_mod.global_session
    return Tensor(as_shape(shape), (), Variable(session.next_variable_id()))
