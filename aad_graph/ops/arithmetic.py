# aad_graph/ops/arithmetic.py
import numbers
from typing import Iterable, Sequence

from ..core.node import Tensor
from .base import Operator, OpKind, as_shape, check_arity, check_same_shape


class Add(Operator):
    """n-ary elementwise sum."""
    kind = OpKind.ADD

    def forward_grad(self, node, ctx):
        return add_all(node.shape, [ctx.compute(c) for c in node.children])

    def backward_grad(self, node, grad, ctx):
        for c in node.children:
            ctx.append(c, grad)

    def display(self, node):
        if not node.children:
            return "0"
        return "(" + " + ".join(str(c) for c in node.children) + ")"


class Mul(Operator):
    """n-ary elementwise product."""
    kind = OpKind.MUL

    def forward_grad(self, node, ctx):
        # d(x1*...*xn) = sum_i x1*...*dxi*...*xn
        args = list(node.children)
        terms = []
        for i, x in enumerate(args):
            factors = args[:i] + [ctx.compute(x)] + args[i + 1:]
            terms.append(mul_all(node.shape, factors))
        return add_all(node.shape, terms)

    def backward_grad(self, node, grad, ctx):
        args = list(node.children)
        for i, x in enumerate(args):
            ctx.append(x, mul_all(node.shape, args[:i] + [grad] + args[i + 1:]))

    def display(self, node):
        if not node.children:
            return "1"
        return "(" + " * ".join(str(c) for c in node.children) + ")"


class Sub(Operator):
    kind = OpKind.SUB

    def forward_grad(self, node, ctx):
        a, b = check_arity("Sub", node, 2)
        return ctx.compute(a) - ctx.compute(b)

    def backward_grad(self, node, grad, ctx):
        a, b = check_arity("Sub", node, 2)
        ctx.append(a, grad)
        ctx.append(b, -grad)

    def display(self, node):
        a, b = node.children
        return f"({a} - {b})"


class Div(Operator):
    kind = OpKind.DIV

    def forward_grad(self, node, ctx):
        a, b = check_arity("Div", node, 2)
        return ctx.compute(a) / b + ctx.compute(b) * -(a / b.powf(2.0))

    def backward_grad(self, node, grad, ctx):
        a, b = check_arity("Div", node, 2)
        ctx.append(a, grad / b)
        ctx.append(b, grad * -(a / b.powf(2.0)))

    def display(self, node):
        a, b = node.children
        return f"({a} / {b})"


# ------------------------------ constructors ------------------------------ #
def add(*tensors: Tensor) -> Tensor:
    shape = check_same_shape("Add", tensors)
    return Tensor(shape, tensors, Add())


def add_all(shape, tensors: Iterable[Tensor]) -> Tensor:
    """Sum of `tensors`, all of `shape`; the zero tensor when the list is empty."""
    tensors = list(tensors)
    shape = as_shape(shape)
    if not tensors:
        from .shape import zero
        return zero(shape)
    check_same_shape("Add", tensors, shape)
    return Tensor(shape, tensors, Add())


def mul(*tensors: Tensor) -> Tensor:
    shape = check_same_shape("Mul", tensors)
    return Tensor(shape, tensors, Mul())


def mul_all(shape, tensors: Iterable[Tensor]) -> Tensor:
    """Product of `tensors`, all of `shape`; the all-ones tensor when empty."""
    tensors = list(tensors)
    shape = as_shape(shape)
    if not tensors:
        from .shape import one
        return one(shape)
    check_same_shape("Mul", tensors, shape)
    return Tensor(shape, tensors, Mul())


def sub(a: Tensor, b: Tensor) -> Tensor:
    shape = check_same_shape("Sub", (a, b))
    return Tensor(shape, (a, b), Sub())


def div(a: Tensor, b: Tensor) -> Tensor:
    shape = check_same_shape("Div", (a, b))
    return Tensor(shape, (a, b), Div())


def broadcast_pair(a: Tensor, b: Tensor) -> Sequence[Tensor]:
    """Extend a one-element side to the other side's shape; otherwise keep both."""
    from .shape import extend
    na, nb = a.size, b.size
    if na == 1 and nb != 1:
        return extend(a, b.shape), b
    if nb == 1 and na != 1:
        return a, extend(b, a.shape)
    return a, b


def _binary(fn, a, b):
    a, b = broadcast_pair(a, b)
    return fn(a, b)


def _is_scalar(x) -> bool:
    return isinstance(x, numbers.Real) and not isinstance(x, bool)


def _tensor_add(self, other):
    from .function import shift
    if isinstance(other, Tensor):
        return _binary(add, self, other)
    if _is_scalar(other):
        return shift(self, float(other))
    return NotImplemented


def _tensor_sub(self, other):
    from .function import shift
    if isinstance(other, Tensor):
        return _binary(sub, self, other)
    if _is_scalar(other):
        return shift(self, -float(other))
    return NotImplemented


def _tensor_rsub(self, other):
    from .function import neg, shift
    if _is_scalar(other):
        return shift(neg(self), float(other))
    return NotImplemented


def _tensor_mul(self, other):
    from .function import scale
    if isinstance(other, Tensor):
        return _binary(mul, self, other)
    if _is_scalar(other):
        return scale(self, float(other))
    return NotImplemented


def _tensor_truediv(self, other):
    from .function import scale
    if isinstance(other, Tensor):
        return _binary(div, self, other)
    if _is_scalar(other):
        return scale(self, 1.0 / float(other))
    return NotImplemented


def _tensor_rtruediv(self, other):
    from .function import powf, scale
    if _is_scalar(other):
        return scale(powf(self, -1.0), float(other))
    return NotImplemented


def _tensor_pow(self, other):
    from .function import powf
    if _is_scalar(other):
        return powf(self, float(other))
    return NotImplemented


def _tensor_neg(self):
    from .function import neg
    return neg(self)


def _tensor_matmul(self, other):
    from .matrix import matmul
    if isinstance(other, Tensor):
        return matmul(self, other)
    return NotImplemented


# Bind Python operators to Tensor
Tensor.__add__      = _tensor_add
Tensor.__radd__     = _tensor_add
Tensor.__sub__      = _tensor_sub
Tensor.__rsub__     = _tensor_rsub
Tensor.__mul__      = _tensor_mul
Tensor.__rmul__     = _tensor_mul
Tensor.__truediv__  = _tensor_truediv
Tensor.__rtruediv__ = _tensor_rtruediv
Tensor.__pow__      = _tensor_pow
Tensor.__neg__      = _tensor_neg
Tensor.__matmul__   = _tensor_matmul
