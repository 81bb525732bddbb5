# aad_graph/config.py
import logging
from dataclasses import dataclass

import numpy as np


@dataclass
class EngineConfig:
    # ── Numerics ──────────────────────────────────────────────────────────────
    dtype: object = np.float64     # dtype of every evaluated buffer
    readonly_buffers: bool = True  # buffers are shared, never written in place

    # ── Diagnostics ───────────────────────────────────────────────────────────
    log_unbound_variables: bool = True     # WARNING "$<id> = None" on unbound leaves
    debug_assign_level: int = logging.INFO  # level used by DebugAssign nodes

    def __post_init__(self):
        self.dtype = np.dtype(self.dtype)
        if self.dtype.kind != "f":
            raise ValueError(f"EngineConfig.dtype must be a floating dtype, got {self.dtype}")


DEFAULT_CONFIG = EngineConfig()
