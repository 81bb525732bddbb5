# aad_graph/backend/kernels.py
"""
numpy kernels for the CPU backend, one per OpKind.

A kernel receives the node and the evaluating context, evaluates the children
it needs through `ctx.evaluate` (sharing the context cache) and returns a flat
buffer with `node.size` elements.
"""
import logging

import numpy as np
from scipy.special import expit

from ..core.errors import UnboundVariable, EvaluationError
from ..ops.base import OpKind
from ..ops.function import Fn
from ..ops.matrix import MatMulMode

logger = logging.getLogger(__name__)


def _dtype(ctx):
    return ctx.config.dtype


def add_kernel(node, ctx):
    if not node.children:
        return np.zeros(node.size, dtype=_dtype(ctx))
    out = np.array(ctx.evaluate(node.children[0]), dtype=_dtype(ctx))
    for c in node.children[1:]:
        out += ctx.evaluate(c)
    return out


def mul_kernel(node, ctx):
    if not node.children:
        return np.ones(node.size, dtype=_dtype(ctx))
    if len(node.children) == 1:
        return ctx.evaluate(node.children[0])
    out = np.array(ctx.evaluate(node.children[0]), dtype=_dtype(ctx))
    for c in node.children[1:]:
        out *= ctx.evaluate(c)
    return out


def sub_kernel(node, ctx):
    a, b = node.children
    return ctx.evaluate(a) - ctx.evaluate(b)


def div_kernel(node, ctx):
    a, b = node.children
    return ctx.evaluate(a) / ctx.evaluate(b)


def function_kernel(node, ctx):
    (arg,) = node.children
    x = ctx.evaluate(arg)
    fn, p = node.operator.fn, node.operator.param
    if fn is Fn.SIN:
        return np.sin(x)
    if fn is Fn.COS:
        return np.cos(x)
    if fn is Fn.RELU:
        return np.maximum(x, 0.0)
    if fn is Fn.STEP:
        return np.where(np.signbit(x), 0.0, 1.0)
    if fn is Fn.ABS:
        return np.abs(x)
    if fn is Fn.SIGN:
        return np.copysign(1.0, x)
    if fn is Fn.NEG:
        return -x
    if fn is Fn.MUL:
        if p == 1.0:
            return x
        if p == 0.0:
            return np.zeros_like(x)
        return x * p
    if fn is Fn.ADD:
        if p == 0.0:
            return x
        return x + p
    if fn is Fn.POW:
        if p == -1.0:
            return 1.0 / x
        if p == 0.0:
            return np.ones_like(x)
        if p == 1.0:
            return x
        if p == 2.0:
            return x * x
        return np.power(x, p)
    if fn is Fn.SIGMOID:
        return expit(x)
    raise NotImplementedError(fn)


def matrix_mul_kernel(node, ctx):
    a, b = node.children
    mode: MatMulMode = node.operator.mode
    x = ctx.evaluate(a).reshape(a.shape)
    y = ctx.evaluate(b).reshape(b.shape)
    if mode.transpose_a:
        x = x.T
    if mode.transpose_b:
        y = y.T
    return (x @ y).reshape(-1)


def passthrough_kernel(node, ctx):
    # Reshape and Assign share the child buffer
    return ctx.evaluate(node.children[0])


def debug_assign_kernel(node, ctx):
    info = node.operator.info
    level = ctx.config.debug_assign_level
    try:
        out = ctx.evaluate(node.children[0])
    except EvaluationError as err:
        logger.log(level, "%s %r", info, err)
        raise
    logger.log(level, "%s %s", info, np.array2string(out, precision=5))
    return out


def slice_kernel(node, ctx):
    start = node.operator.offset
    return ctx.evaluate(node.children[0])[start:start + node.size]


def merge_kernel(node, ctx):
    out = np.zeros(node.size, dtype=_dtype(ctx))
    offset = node.operator.fill
    for c in node.children:
        out[offset:offset + c.size] = ctx.evaluate(c)
        offset += c.size
    return out


def extend_scale_kernel(node, ctx):
    (value,) = ctx.evaluate(node.children[0])
    return np.full(node.size, value, dtype=_dtype(ctx))


def sum_scale_kernel(node, ctx):
    return np.array([ctx.evaluate(node.children[0]).sum()], dtype=_dtype(ctx))


def select_kernel(node, ctx):
    cond, pos, neg = node.children
    (value,) = ctx.evaluate(cond)
    # only the chosen branch is evaluated
    return ctx.evaluate(pos if value > 0.0 else neg)


def constant_kernel(node, ctx):
    return node.operator.data


def variable_kernel(node, ctx):
    # bound variables are answered from the cache before a kernel is looked up
    vid = node.operator.variable_id
    if ctx.config.log_unbound_variables:
        logger.warning("$%s = None", vid)
    raise UnboundVariable(vid)


KERNELS = {
    OpKind.ADD: add_kernel,
    OpKind.MUL: mul_kernel,
    OpKind.SUB: sub_kernel,
    OpKind.DIV: div_kernel,
    OpKind.FUNCTION: function_kernel,
    OpKind.MATRIX_MUL: matrix_mul_kernel,
    OpKind.RESHAPE: passthrough_kernel,
    OpKind.SLICE: slice_kernel,
    OpKind.MERGE: merge_kernel,
    OpKind.EXTEND_SCALE: extend_scale_kernel,
    OpKind.SUM_SCALE: sum_scale_kernel,
    OpKind.SELECT: select_kernel,
    OpKind.CONSTANT: constant_kernel,
    OpKind.VARIABLE: variable_kernel,
    OpKind.ASSIGN: passthrough_kernel,
    OpKind.DEBUG_ASSIGN: debug_assign_kernel,
}
