# aad_graph/__init__.py
# Tensor computation graphs with forward/reverse automatic differentiation

from . import ops  # registers the Tensor operator overloads
from .config import EngineConfig, DEFAULT_CONFIG
from .core import (
    Tensor, data_size, GraphSession, use_session,
    BackwardGrad, ForwardGrad, differentiate_reverse, differentiate_forward,
    compute, grad, grads, jvp, VariableInlineContext,
    AadGraphError, GraphContractError, ShapeMismatch, UnsupportedOperatorForBackend,
    DuplicateBinding, RedefinedMapping, VariableCloneError, ReentrantDerivation,
    EvaluationError, UnboundVariable,
)
from .core.graph_utils import debug_define, graph_summary, print_graph_summary, format_values
from .backend import CpuContext
from .ops import (
    OpKind, Fn, MatMulMode,
    constant, scalar, variable, add, mul, sub, div, apply, matmul, reshape,
    slice_, slice_flat, index, merge, merge_flat, extend, zero, one, sum_, sum_to_shape,
    select, assign, debug_assign,
    sin, cos, relu, step, abs_, sign, neg, sigmoid, scale, shift, powf,
)

__all__ = [
    # Config
    'EngineConfig', 'DEFAULT_CONFIG',
    # Graph
    'Tensor', 'data_size', 'GraphSession', 'use_session',
    'OpKind', 'Fn', 'MatMulMode',
    'constant', 'scalar', 'variable', 'add', 'mul', 'sub', 'div', 'apply', 'matmul',
    'reshape', 'slice_', 'slice_flat', 'index', 'merge', 'merge_flat', 'extend', 'zero',
    'one', 'sum_', 'sum_to_shape', 'select', 'assign', 'debug_assign',
    'sin', 'cos', 'relu', 'step', 'abs_', 'sign', 'neg', 'sigmoid', 'scale', 'shift', 'powf',
    # Differentiation
    'BackwardGrad', 'ForwardGrad', 'differentiate_reverse', 'differentiate_forward',
    'grad', 'grads', 'jvp', 'VariableInlineContext',
    # Evaluation
    'CpuContext', 'compute',
    # Inspection
    'debug_define', 'graph_summary', 'print_graph_summary', 'format_values',
    # Errors
    'AadGraphError', 'GraphContractError', 'ShapeMismatch', 'UnsupportedOperatorForBackend',
    'DuplicateBinding', 'RedefinedMapping', 'VariableCloneError', 'ReentrantDerivation',
    'EvaluationError', 'UnboundVariable',
]
