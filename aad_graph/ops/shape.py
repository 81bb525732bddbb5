# aad_graph/ops/shape.py
"""
Layout operators: Reshape, Slice, Merge, ExtendScale, SumScale.

Buffers are row-major, so Slice and Merge work on flat element offsets:
    Slice(from)  reads  buf[from : from + size(out)]
    Merge(fill)  writes zeros(fill) ++ child_0 ++ child_1 ++ ... ++ zeros(rest)
Merge at the offset of a Slice is the Slice's adjoint, and the other way round.
ExtendScale (scalar -> shape) and SumScale (shape -> scalar) are duals too.
"""
from __future__ import annotations
from typing import Sequence

from ..core.errors import ShapeMismatch
from ..core.node import Tensor, data_size
from .base import Operator, OpKind, as_shape, check_arity


class Reshape(Operator):
    kind = OpKind.RESHAPE

    def forward_grad(self, node, ctx):
        (arg,) = check_arity("Reshape", node, 1)
        return reshape(ctx.compute(arg), node.shape)

    def backward_grad(self, node, grad, ctx):
        (arg,) = check_arity("Reshape", node, 1)
        ctx.append(arg, reshape(grad, arg.shape))


class Slice(Operator):
    """Contiguous window of the child buffer starting at element `offset`."""
    kind = OpKind.SLICE

    def __init__(self, offset: int):
        self.offset = offset

    def label(self):
        return f"Slice({self.offset})"

    def forward_grad(self, node, ctx):
        (arg,) = check_arity("Slice", node, 1)
        return slice_flat(ctx.compute(arg), self.offset, node.shape)

    def backward_grad(self, node, grad, ctx):
        (arg,) = check_arity("Slice", node, 1)
        ctx.append(arg, merge_flat(self.offset, [grad], arg.shape))


class Merge(Operator):
    """Children laid end to end after `fill` zeros, zero padded to the output size."""
    kind = OpKind.MERGE

    def __init__(self, fill: int):
        self.fill = fill

    def label(self):
        return f"Merge({self.fill})"

    def forward_grad(self, node, ctx):
        return merge_flat(self.fill, [ctx.compute(c) for c in node.children], node.shape)

    def backward_grad(self, node, grad, ctx):
        offset = self.fill
        for c in node.children:
            ctx.append(c, slice_flat(grad, offset, c.shape))
            offset += c.size


class ExtendScale(Operator):
    """Broadcast a one-element child to every element of the output."""
    kind = OpKind.EXTEND_SCALE

    def forward_grad(self, node, ctx):
        (arg,) = check_arity("ExtendScale", node, 1)
        return extend(ctx.compute(arg), node.shape)

    def backward_grad(self, node, grad, ctx):
        (arg,) = check_arity("ExtendScale", node, 1)
        ctx.append(arg, sum_to_shape(grad, arg.shape))


class SumScale(Operator):
    """Sum of every element of the child into a one-element output."""
    kind = OpKind.SUM_SCALE

    def forward_grad(self, node, ctx):
        (arg,) = check_arity("SumScale", node, 1)
        return sum_to_shape(ctx.compute(arg), node.shape)

    def backward_grad(self, node, grad, ctx):
        (arg,) = check_arity("SumScale", node, 1)
        ctx.append(arg, extend(grad, arg.shape))


# ------------------------------ constructors ------------------------------ #
def reshape(source: Tensor, shape) -> Tensor:
    shape = as_shape(shape)
    if data_size(shape) != source.size:
        raise ShapeMismatch("Reshape", f"cannot view {list(source.shape)} as {list(shape)}")
    return Tensor(shape, (source,), Reshape())


def slice_flat(source: Tensor, offset: int, shape) -> Tensor:
    shape = as_shape(shape)
    offset = int(offset)
    if offset < 0 or offset + data_size(shape) > source.size:
        raise ShapeMismatch(
            "Slice", f"window [{offset}, {offset + data_size(shape)}) exceeds {source.size} elements")
    return Tensor(shape, (source,), Slice(offset))


def slice_(source: Tensor, from_: int, length: int) -> Tensor:
    """Rows `from_ .. from_ + length` along dimension 0."""
    if not source.shape:
        raise ShapeMismatch("Slice", "cannot slice rows of a scalar")
    if from_ < 0 or length < 0 or from_ + length > source.shape[0]:
        raise ShapeMismatch("Slice", f"rows [{from_}, {from_ + length}) out of {source.shape[0]}")
    row = data_size(source.shape[1:])
    return slice_flat(source, from_ * row, (length,) + source.shape[1:])


def index(source: Tensor, idx) -> Tensor:
    """Sub-tensor at the leading multi-index `idx`, e.g. `index(t, [1])` is row 1."""
    idx = as_shape(idx)
    if len(idx) > len(source.shape):
        raise ShapeMismatch("Slice", f"index {list(idx)} has more dims than {list(source.shape)}")
    offset = 0
    for i, (k, d) in enumerate(zip(idx, source.shape)):
        if not 0 <= k < d:
            raise ShapeMismatch("Slice", f"index {k} out of range for dim {i} of size {d}")
        offset = offset * d + k
    rest = source.shape[len(idx):]
    return slice_flat(source, offset * data_size(rest), rest)


def merge(tensors: Sequence[Tensor]) -> Tensor:
    """Concatenate along dimension 0; trailing dimensions must agree."""
    tensors = list(tensors)
    if not tensors:
        raise ShapeMismatch("Merge", "needs at least one operand")
    first = tensors[0].shape
    if not first:
        raise ShapeMismatch("Merge", "cannot concatenate scalars")
    rows = 0
    for t in tensors:
        if t.shape[1:] != first[1:] or not t.shape:
            raise ShapeMismatch("Merge", f"shape {list(t.shape)} does not stack with {list(first)}")
        rows += t.shape[0]
    return merge_flat(0, tensors, (rows,) + first[1:])


def merge_flat(fill: int, tensors: Sequence[Tensor], shape) -> Tensor:
    tensors = list(tensors)
    shape = as_shape(shape)
    fill = int(fill)
    used = fill + sum(t.size for t in tensors)
    if fill < 0 or used > data_size(shape):
        raise ShapeMismatch("Merge", f"{used} elements do not fit in shape {list(shape)}")
    return Tensor(shape, tensors, Merge(fill))


def extend(tensor: Tensor, shape) -> Tensor:
    if tensor.size != 1:
        raise ShapeMismatch("ExtendScale", f"source must hold one element, has shape {list(tensor.shape)}")
    return Tensor(as_shape(shape), (tensor,), ExtendScale())


def zero(shape) -> Tensor:
    from .leaf import unit
    return extend(unit(0.0), shape)


def one(shape) -> Tensor:
    from .leaf import unit
    return extend(unit(1.0), shape)


def sum_(tensor: Tensor) -> Tensor:
    return Tensor((), (tensor,), SumScale())


def sum_to_shape(tensor: Tensor, shape) -> Tensor:
    shape = as_shape(shape)
    if data_size(shape) != 1:
        raise ShapeMismatch("SumScale", f"target shape {list(shape)} must hold one element")
    return Tensor(shape, (tensor,), SumScale())
