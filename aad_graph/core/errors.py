# aad_graph/core/errors.py
"""
Error taxonomy of the graph engine.

Two families are kept apart:

    GraphContractError : a defect in the code that builds or drives the graph
                         (bad shapes, double binding, missing backend kernel).
                         Raised immediately, never cached, never recovered.
    EvaluationError    : an expected runtime condition (a Variable without a
                         bound value). Cached by the evaluation context and
                         re-raised for every dependent node; the caller can
                         retry with a different set of bindings.
"""
from __future__ import annotations
from typing import Optional


class AadGraphError(Exception):
    """Base class of every error raised by aad_graph."""


# ----------------------------- fatal: contract ------------------------------ #
class GraphContractError(AadGraphError):
    """The caller violated a precondition of the graph API."""


class ShapeMismatch(GraphContractError, ValueError):
    """Operand shapes or arity do not satisfy an operator's precondition."""

    def __init__(self, op: str, message: str):
        super().__init__(f"{op}: {message}")
        self.op = op


class UnsupportedOperatorForBackend(GraphContractError):
    """No kernel is registered for this operator kind on the active backend."""

    def __init__(self, kind, backend: str = "cpu"):
        super().__init__(f"the operator {kind} is not supported by the {backend} backend")
        self.kind = kind
        self.backend = backend


class DuplicateBinding(GraphContractError):
    """A value was bound to a Variable that already has one."""


class RedefinedMapping(GraphContractError):
    """A substitution was defined twice for the same node."""


class VariableCloneError(GraphContractError, TypeError):
    """Variable operators carry a unique identity and cannot be cloned."""


class ReentrantDerivation(GraphContractError):
    """A derivation pass re-entered a node it is still deriving (cycle)."""


# --------------------------- recoverable: runtime --------------------------- #
class EvaluationError(AadGraphError):
    """A node could not be evaluated with the current bindings."""


class UnboundVariable(EvaluationError):
    """A Variable leaf on the evaluation path has no bound value."""

    def __init__(self, variable_id: Optional[int]):
        super().__init__(f"${variable_id} = None")
        self.variable_id = variable_id
