# aad_graph/core/node.py
from __future__ import annotations
import itertools
from typing import Iterable, Sequence, Tuple

from .errors import GraphContractError

# Process-wide node counter; `next` on itertools.count is atomic under the GIL
_node_ids = itertools.count()


def data_size(shape: Sequence[int]) -> int:
    """Number of elements of a row-major buffer with this shape (1 for `()`)."""
    n = 1
    for d in shape:
        n *= d
    return n


class Tensor:
    """
    Immutable node of the computation DAG.

    Attributes
    ----------
    id       : int
        Process-unique construction index. Identity of a node is the object
        itself; `id` only makes that identity orderable and printable.
    shape    : Tuple[int, ...]
        Row-major dimension sizes. `()` is a scalar holding one element.
    children : Tuple[Tensor, ...]
        Ordered operands. The order is meaningful for every operator.
    operator : Operator
        The variant deciding how the node is evaluated and differentiated.
    level    : int
        0 for leaves, otherwise 1 + max(child.level). Children always have a
        strictly smaller level than their parents.

    Nodes are created by the operator constructors in `aad_graph.ops` and are
    never edited afterwards; transformations build new nodes.
    """

    __slots__ = ("id", "shape", "children", "operator", "level", "__weakref__")
    __array_ufunc__ = None  # numpy operands defer to Tensor.__r*__

    def __init__(self, shape: Iterable[int], children: Iterable["Tensor"], operator):
        shape = tuple(int(d) for d in shape)
        if any(d < 0 for d in shape):
            raise GraphContractError(f"negative dimension in shape {shape}")
        children = tuple(children)
        for c in children:
            if not isinstance(c, Tensor):
                raise GraphContractError(f"child of {operator!r} is not a Tensor: {type(c)}")
        level = max((c.level + 1 for c in children), default=0)

        set_ = object.__setattr__
        set_(self, "id", next(_node_ids))
        set_(self, "shape", shape)
        set_(self, "children", children)
        set_(self, "operator", operator)
        set_(self, "level", level)

    def __setattr__(self, name, value):
        raise AttributeError(f"Tensor nodes are immutable (tried to set {name!r})")

    def __delattr__(self, name):
        raise AttributeError(f"Tensor nodes are immutable (tried to delete {name!r})")

    # ------------------------------ identity ------------------------------ #
    @property
    def key(self) -> Tuple[int, int]:
        """Ordering key `(level, id)` used by the derivation engines."""
        return (self.level, self.id)

    def same(self, other: "Tensor") -> bool:
        return self is other

    # -------------------------------- info -------------------------------- #
    @property
    def size(self) -> int:
        return data_size(self.shape)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def kind(self):
        return self.operator.kind

    def is_variable(self) -> bool:
        from ..ops.base import OpKind
        return self.operator.kind is OpKind.VARIABLE

    def is_constant(self) -> bool:
        from ..ops.base import OpKind
        return self.operator.kind is OpKind.CONSTANT

    def constant_data(self):
        """The shared buffer of a Constant leaf, or None for any other node."""
        return self.operator.data if self.is_constant() else None

    def __repr__(self):
        return (f"Tensor(id={self.id}, level={self.level}, shape={list(self.shape)}, "
                f"operator={self.operator!r}, children={[c.id for c in self.children]})")

    def __str__(self):
        return self.operator.display(self)

    # Graph-building helpers (operator overloads are bound in ops.arithmetic)
    def apply(self, fn):
        from ..ops.function import apply
        return apply(self, fn)

    def powf(self, p: float):
        from ..ops.function import powf
        return powf(self, p)

    def reshape(self, shape):
        from ..ops.shape import reshape
        return reshape(self, shape)

    def matmul(self, other, mode=None):
        from ..ops.matrix import matmul
        return matmul(self, other) if mode is None else matmul(self, other, mode)

    def get(self, index):
        from ..ops.shape import index as _index
        return _index(self, index)

    def sum(self):
        from ..ops.shape import sum_
        return sum_(self)

    def select(self, pos, neg):
        from ..ops.control import select
        return select(self, pos, neg)

    def assign(self):
        from ..ops.control import assign
        return assign(self)

    def debug(self, info: str):
        from ..ops.control import debug_assign
        return debug_assign(info, self)
