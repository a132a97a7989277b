# -*- coding: utf-8 -*-
"""
errors.py — 重建流程的异常类型
--------------------------------
- InvalidInputError：点云为空 / 形状不对 / P 与 N 行数不一致 / 含 NaN、Inf
- DegenerateGridError：包围盒最大边长为 0（例如只有一个点），无法确定网格步长
- SolverNonConvergenceError：迭代求解在 maxiter 内未达到 rtol（绝不返回半成品）
"""
from __future__ import annotations

from typing import Optional


class PoissonReconError(RuntimeError):
    """所有重建错误的基类。"""


class InvalidInputError(PoissonReconError, ValueError):
    pass


class DegenerateGridError(PoissonReconError, ValueError):
    pass


class SolverNonConvergenceError(PoissonReconError):
    def __init__(self, message: str, *, iterations: Optional[int] = None,
                 residual: Optional[float] = None, solver: Optional[str] = None):
        super().__init__(message)
        self.iterations = iterations
        self.residual = residual
        self.solver = solver


__all__ = [
    "PoissonReconError", "InvalidInputError",
    "DegenerateGridError", "SolverNonConvergenceError",
]
