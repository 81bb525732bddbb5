# aad_graph/ops/__init__.py

# Ensure operator overloading is registered on Tensor
from . import arithmetic
from . import function
from . import matrix
from . import shape
from . import control
from . import leaf

# Convenience re-exports so users can do: from aad_graph.ops import matmul, relu, ...
from .base import Operator, OpKind
from .arithmetic import Add, Mul, Sub, Div, add, add_all, mul, mul_all, sub, div
from .function import (Fn, Function, apply, sin, cos, relu, step, abs_, sign, neg,
                       sigmoid, scale, shift, powf)
from .matrix import MatMulMode, MatrixMul, matmul
from .shape import (Reshape, Slice, Merge, ExtendScale, SumScale, reshape, slice_flat, slice_,
                    index, merge, merge_flat, extend, zero, one, sum_, sum_to_shape)
from .control import Select, Assign, DebugAssign, select, assign, debug_assign
from .leaf import Constant, Variable, constant, scalar, variable

__all__ = [
    "Operator", "OpKind",
    "Add", "Mul", "Sub", "Div", "add", "add_all", "mul", "mul_all", "sub", "div",
    "Fn", "Function", "apply", "sin", "cos", "relu", "step", "abs_", "sign", "neg",
    "sigmoid", "scale", "shift", "powf",
    "MatMulMode", "MatrixMul", "matmul",
    "Reshape", "Slice", "Merge", "ExtendScale", "SumScale", "reshape", "slice_flat", "slice_",
    "index", "merge", "merge_flat", "extend", "zero", "one", "sum_", "sum_to_shape",
    "Select", "Assign", "DebugAssign", "select", "assign", "debug_assign",
    "Constant", "Variable", "constant", "scalar", "variable",
]
