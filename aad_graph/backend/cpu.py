# aad_graph/backend/cpu.py
"""
Memoized CPU evaluation of tensor graphs.

A `CpuContext` owns one private cache {node: buffer | EvaluationError}. The
graph itself is immutable, so any number of contexts (e.g. one per thread)
may evaluate the same graph concurrently.
"""
from __future__ import annotations
import logging
import threading
from typing import Callable, Dict, Iterable, Optional, Tuple

import numpy as np

from ..config import DEFAULT_CONFIG, EngineConfig
from ..core.errors import (DuplicateBinding, EvaluationError, GraphContractError,
                           ShapeMismatch, UnsupportedOperatorForBackend)
from ..core.node import Tensor
from ..ops.base import OpKind

logger = logging.getLogger(__name__)

Kernel = Callable[[Tensor, "CpuContext"], np.ndarray]

_MISSING = object()
_dispatch: Optional[Dict[OpKind, Kernel]] = None
_dispatch_lock = threading.Lock()


def dispatch_table() -> Dict[OpKind, Kernel]:
    """The OpKind -> kernel table, built on first use and then shared read-only."""
    global _dispatch
    if _dispatch is None:
        with _dispatch_lock:
            if _dispatch is None:
                from .kernels import KERNELS
                _dispatch = dict(KERNELS)
                logger.debug("cpu dispatch table ready: %d operator kinds", len(_dispatch))
    return _dispatch


def evaluator_for(kind: OpKind) -> Kernel:
    kernel = dispatch_table().get(kind)
    if kernel is None:
        raise UnsupportedOperatorForBackend(kind, "cpu")
    return kernel


class CpuContext:
    """
    Evaluation context.

    Attributes
    ----------
    config : EngineConfig
        dtype and diagnostics settings used by this context.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self._cache: Dict[Tensor, object] = {}

    # ------------------------------- inputs ------------------------------- #
    def bind(self, variable: Tensor, data) -> None:
        """Fix the value of a Variable leaf for this context."""
        if not variable.is_variable():
            raise GraphContractError(f"only Variable leaves can be bound, got {variable.operator!r}")
        buf = self._freeze(np.array(data, dtype=self.config.dtype).reshape(-1))
        if buf.size != variable.size:
            raise ShapeMismatch(
                "bind", f"{buf.size} values for variable ${variable.operator.variable_id} "
                        f"of shape {list(variable.shape)}")
        if variable in self._cache:
            raise DuplicateBinding(
                f"variable ${variable.operator.variable_id} is already bound or evaluated in this context")
        self._cache[variable] = buf

    def bind_constant_with(self, variable: Tensor, value: Tensor,
                           bindings: Iterable[Tuple[Tensor, object]] = ()) -> None:
        """Bind `variable` to the value of the graph `value`, evaluated in a fresh context."""
        other = CpuContext(self.config)
        for var, data in bindings:
            other.bind(var, data)
        self.bind(variable, other.evaluate(value))

    def get(self, node: Tensor):
        """Cached buffer (or cached failure) of `node`, None if not evaluated yet."""
        return self._cache.get(node)

    # ----------------------------- evaluation ----------------------------- #
    def evaluate(self, node: Tensor) -> np.ndarray:
        """
        Flat buffer of `node`.

        Raises the (cached) UnboundVariable of any Variable on the evaluation
        path; contract violations propagate without being cached.
        """
        cached = self._cache.get(node, _MISSING)
        if cached is _MISSING:
            self._fill(node)
            cached = self._cache[node]
        if isinstance(cached, EvaluationError):
            raise cached
        return cached

    def _fill(self, root: Tensor) -> None:
        # A node's kernel runs once every operand it reads is cached, so the
        # ctx.evaluate calls it makes are cache hits and graph depth stays off
        # the Python stack.
        stack = [root]
        while stack:
            node = stack[-1]
            if node in self._cache:
                stack.pop()
                continue
            pending = self._pending_operand(node)
            if pending is not None:
                stack.append(pending)
                continue
            stack.pop()
            self._run(node)

    def _pending_operand(self, node: Tensor) -> Optional[Tensor]:
        """First operand `node` still needs, or None when its kernel can run."""
        if node.operator.kind is OpKind.SELECT:
            # the condition first, then only the branch it picks
            cond, pos, neg = node.children
            value = self._cache.get(cond, _MISSING)
            if value is _MISSING:
                return cond
            if isinstance(value, EvaluationError):
                return None
            operands = (pos if value[0] > 0.0 else neg,)
        else:
            operands = node.children
        for c in operands:
            value = self._cache.get(c, _MISSING)
            if value is _MISSING:
                return c
            if isinstance(value, EvaluationError):
                # the kernel re-raises it; later operands are not needed
                return None
        return None

    def _run(self, node: Tensor) -> None:
        kernel = evaluator_for(node.operator.kind)
        try:
            out = kernel(node, self)
        except EvaluationError as err:
            self._cache[node] = err
            return
        buf = np.asarray(out, dtype=self.config.dtype)
        if buf.ndim != 1:
            buf = buf.reshape(-1)
        if buf.size != node.size:
            raise GraphContractError(
                f"{node.operator!r} kernel produced {buf.size} values for shape {list(node.shape)}")
        if not self.config.readonly_buffers and self._aliased(node, buf):
            buf = buf.copy()
        self._cache[node] = self._freeze(buf)

    def _aliased(self, node: Tensor, buf: np.ndarray) -> bool:
        """True if `buf` may share memory with a cached or Constant buffer."""
        if buf.base is not None or not buf.flags.writeable:
            return True
        return any(buf is self._cache.get(c) for c in node.children)

    def evaluate_as_constant(self, node: Tensor) -> Tensor:
        """Evaluate `node` and wrap the buffer into a Constant leaf."""
        from ..ops.leaf import constant
        return constant(node.shape, self.evaluate(node))

    def _freeze(self, buf: np.ndarray) -> np.ndarray:
        if self.config.readonly_buffers and buf.flags.writeable:
            buf.flags.writeable = False
        return buf
