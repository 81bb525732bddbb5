# aad_graph/ops/function.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from ..core.node import Tensor
from .base import Operator, OpKind, check_arity


class Fn(Enum):
    SIN = "Sin"
    COS = "Cos"
    RELU = "ReLU"        # max(x, 0)
    STEP = "Step"        # 1 where the sign bit of x is clear, else 0
    ABS = "Abs"
    SIGN = "Sign"        # copysign(1, x)
    NEG = "Neg"
    MUL = "Mul"          # x * c
    ADD = "Add"          # x + c
    POW = "Pow"          # x ** p
    SIGMOID = "Sigmoid"


_PARAMETRIC = (Fn.MUL, Fn.ADD, Fn.POW)


@dataclass(frozen=True)
class Function(Operator):
    """Elementwise unary function, optionally carrying one constant."""

    fn: Fn
    param: float = 0.0

    kind = OpKind.FUNCTION

    def label(self):
        if self.fn in _PARAMETRIC:
            return f"{self.fn.value}({self.param!r})"
        return self.fn.value

    def __repr__(self):
        return self.label()

    def derivative(self, node: Tensor, arg: Tensor, g: Tensor) -> Tensor:
        """
        g · f'(arg), with `g` the tangent (forward) or cotangent (backward) of
        the argument side. Both modes use this same rule.
        """
        from .shape import zero
        fn, p = self.fn, self.param
        if fn is Fn.SIN:
            return g * apply(arg, COS)
        if fn is Fn.COS:
            return g * -apply(arg, SIN)
        if fn is Fn.RELU:
            return g * apply(arg, STEP)
        if fn is Fn.ABS:
            return g * apply(arg, SIGN)
        if fn in (Fn.STEP, Fn.SIGN):
            return zero(node.shape)
        if fn is Fn.NEG:
            return -g
        if fn is Fn.MUL:
            return g * p
        if fn is Fn.ADD:
            return g
        if fn is Fn.POW:
            if p == 0.0:
                return zero(node.shape)
            if p == 1.0:
                return g.assign()
            if p == 2.0:
                return g * arg * 2.0
            return g * arg.powf(p - 1.0) * p
        if fn is Fn.SIGMOID:
            return g * (node * (-node + 1.0))
        raise NotImplementedError(fn)

    def forward_grad(self, node, ctx):
        (arg,) = check_arity(self.label(), node, 1)
        return self.derivative(node, arg, ctx.compute(arg))

    def backward_grad(self, node, grad, ctx):
        (arg,) = check_arity(self.label(), node, 1)
        ctx.append(arg, self.derivative(node, arg, grad))


SIN = Function(Fn.SIN)
COS = Function(Fn.COS)
RELU = Function(Fn.RELU)
STEP = Function(Fn.STEP)
ABS = Function(Fn.ABS)
SIGN = Function(Fn.SIGN)
NEG = Function(Fn.NEG)
SIGMOID = Function(Fn.SIGMOID)


# ------------------------------ constructors ------------------------------ #
def apply(x: Tensor, fn: Function) -> Tensor:
    if not isinstance(fn, Function):
        fn = Function(Fn(fn))
    return Tensor(x.shape, (x,), fn)


def sin(x): return apply(x, SIN)
def cos(x): return apply(x, COS)
def relu(x): return apply(x, RELU)
def step(x): return apply(x, STEP)
def abs_(x): return apply(x, ABS)
def sign(x): return apply(x, SIGN)
def neg(x): return apply(x, NEG)
def sigmoid(x): return apply(x, SIGMOID)
def scale(x, c: float): return apply(x, Function(Fn.MUL, float(c)))
def shift(x, c: float): return apply(x, Function(Fn.ADD, float(c)))
def powf(x, p: float): return apply(x, Function(Fn.POW, float(p)))
