# -*- coding: utf-8 -*-
"""
config.py — 重建参数（默认值可被环境变量覆盖；函数参数 / CLI 优先级更高）

环境变量：
  PSR_PAD             网格四周的填充单元数（默认 8，至少 1）
  PSR_INTERIOR_CELLS  最长边内部单元数（默认 30）
  PSR_SOLVER          cg（默认）/ bicgstab
  PSR_RTOL            迭代求解相对残差（默认 1e-8）
  PSR_MAXITER         迭代上限（默认 5000）
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace as _dc_replace

SOLVERS = ("cg", "bicgstab")

# -------------------- 环境参数 --------------------
_PAD = float(os.getenv("PSR_PAD", "8"))
_INTERIOR_CELLS = float(os.getenv("PSR_INTERIOR_CELLS", "30"))
_SOLVER = os.getenv("PSR_SOLVER", "cg")
_RTOL = float(os.getenv("PSR_RTOL", "1e-8"))
_MAXITER = int(os.getenv("PSR_MAXITER", "5000"))
_MIN_DIM = 3


@dataclass(frozen=True)
class ReconConfig:
    pad: float = _PAD
    interior_cells: float = _INTERIOR_CELLS
    min_dim: int = _MIN_DIM
    solver: str = _SOLVER
    rtol: float = _RTOL
    maxiter: int = _MAXITER

    def validate(self) -> "ReconConfig":
        if not self.pad >= 1:
            raise ValueError(f"pad must be >= 1, got {self.pad}")
        if not self.interior_cells > 0:
            raise ValueError(f"interior_cells must be > 0, got {self.interior_cells}")
        if int(self.min_dim) < 3:
            raise ValueError("min_dim must be >= 3（有限差分模板至少需要 3 个节点）")
        if self.solver not in SOLVERS:
            raise ValueError(f"solver must be one of {SOLVERS}, got {self.solver!r}")
        if not self.rtol > 0:
            raise ValueError(f"rtol must be > 0, got {self.rtol}")
        if int(self.maxiter) <= 0:
            raise ValueError(f"maxiter must be > 0, got {self.maxiter}")
        return self

    def replace(self, **kw) -> "ReconConfig":
        # None 表示“沿用当前值”，方便 CLI 直接透传
        kw = {k: v for k, v in kw.items() if v is not None}
        return _dc_replace(self, **kw)

    @classmethod
    def from_env(cls) -> "ReconConfig":
        """每次调用重新读取环境变量（模块级默认值只在 import 时读取一次）。"""
        return cls(
            pad=float(os.getenv("PSR_PAD", "8")),
            interior_cells=float(os.getenv("PSR_INTERIOR_CELLS", "30")),
            solver=os.getenv("PSR_SOLVER", "cg"),
            rtol=float(os.getenv("PSR_RTOL", "1e-8")),
            maxiter=int(os.getenv("PSR_MAXITER", "5000")),
        )

    def to_dict(self) -> dict:
        return dict(pad=float(self.pad), interior_cells=float(self.interior_cells),
                    min_dim=int(self.min_dim), solver=self.solver,
                    rtol=float(self.rtol), maxiter=int(self.maxiter))


DEFAULT_CONFIG = ReconConfig()

__all__ = ["ReconConfig", "DEFAULT_CONFIG", "SOLVERS"]
