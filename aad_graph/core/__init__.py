# aad_graph/core/__init__.py

"""
Core public API of the graph engine.

Exports:
    Tensor                 : immutable DAG node (shape, children, operator, level).
    GraphSession           : build context owning the Variable id allocator.
    use_session            : context manager to temporarily switch the active session.
    differentiate_reverse  : reverse pass -> {node: gradient node}.
    differentiate_forward  : forward context exposing compute(node) -> tangent node.
    grad / grads / jvp     : convenience wrappers around the two engines.
    compute                : one-shot evaluation with Variable bindings.
"""

from .errors import (
    AadGraphError, GraphContractError, ShapeMismatch, UnsupportedOperatorForBackend,
    DuplicateBinding, RedefinedMapping, VariableCloneError, ReentrantDerivation,
    EvaluationError, UnboundVariable,
)
from .node import Tensor, data_size
from .session import GraphSession, use_session
from .engine import BackwardGrad, ForwardGrad, differentiate_reverse, differentiate_forward
from .seeds import compute, grad, grads, jvp
from .inline import VariableInlineContext

__all__ = [
    "Tensor", "data_size",
    "GraphSession", "use_session",
    "BackwardGrad", "ForwardGrad", "differentiate_reverse", "differentiate_forward",
    "compute", "grad", "grads", "jvp",
    "VariableInlineContext",
    "AadGraphError", "GraphContractError", "ShapeMismatch", "UnsupportedOperatorForBackend",
    "DuplicateBinding", "RedefinedMapping", "VariableCloneError", "ReentrantDerivation",
    "EvaluationError", "UnboundVariable",
]
