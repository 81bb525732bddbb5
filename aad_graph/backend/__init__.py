# aad_graph/backend/__init__.py
from .cpu import CpuContext, dispatch_table, evaluator_for

__all__ = ["CpuContext", "dispatch_table", "evaluator_for"]
