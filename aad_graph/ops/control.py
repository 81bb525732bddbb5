# aad_graph/ops/control.py
from ..core.errors import ShapeMismatch
from ..core.node import Tensor
from .base import Operator, OpKind, check_arity


class Select(Operator):
    """
    `pos` where the single value of `cond` is > 0, else `neg`.

    Derivatives do not capture the branch taken; they build new Select nodes
    over the same `cond`, so the branch is decided again when the derivative
    graph is evaluated.
    """
    kind = OpKind.SELECT

    def forward_grad(self, node, ctx):
        cond, pos, neg = check_arity("Select", node, 3)
        return select(cond, ctx.compute(pos), ctx.compute(neg))

    def backward_grad(self, node, grad, ctx):
        from .shape import zero
        cond, pos, neg = check_arity("Select", node, 3)
        z = zero(node.shape)
        ctx.append(pos, select(cond, grad, z))
        ctx.append(neg, select(cond, z, grad))

    def display(self, node):
        cond, pos, neg = node.children
        return f"if {cond} {{ {pos} }} else {{ {neg} }}"


class Assign(Operator):
    """Identity; marks a materialization point (e.g. a finished gradient)."""
    kind = OpKind.ASSIGN

    def forward_grad(self, node, ctx):
        (arg,) = check_arity("Assign", node, 1)
        return assign(ctx.compute(arg))

    def backward_grad(self, node, grad, ctx):
        (arg,) = check_arity("Assign", node, 1)
        ctx.append(arg, grad)

    def display(self, node):
        return str(node.children[0])


class DebugAssign(Assign):
    """Identity that logs `info` and the value whenever it is evaluated."""
    kind = OpKind.DEBUG_ASSIGN

    def __init__(self, info: str):
        self.info = info

    def label(self):
        return f"DebugAssign({self.info!r})"


# ------------------------------ constructors ------------------------------ #
def select(cond: Tensor, pos: Tensor, neg: Tensor) -> Tensor:
    if cond.size != 1:
        raise ShapeMismatch("Select", f"condition must hold one element, has shape {list(cond.shape)}")
    if pos.shape != neg.shape:
        raise ShapeMismatch("Select", f"branches differ: {list(pos.shape)} vs {list(neg.shape)}")
    return Tensor(pos.shape, (cond, pos, neg), Select())


def assign(tensor: Tensor) -> Tensor:
    return Tensor(tensor.shape, (tensor,), Assign())


def debug_assign(info: str, tensor: Tensor) -> Tensor:
    return Tensor(tensor.shape, (tensor,), DebugAssign(str(info)))
