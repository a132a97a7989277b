# -*- coding: utf-8 -*-
"""
poisson_recon.py — 网格泊松重建主流程
=====================================
P,N → 校验 → build_grid → project_normals (v) + fd_grad (G)
    → solve_potential: (GᵀG) g = Gᵀv
    → calibrate_iso_value: g ← g − mean(W g)
    → extract_zero_isosurface → (V, F)

- 所有矩阵/向量都只属于单次调用，不共享状态
- GᵀG 对常数场奇异：求解只确定到一个加性常数，由等值标定消除
- 迭代不收敛一律抛 SolverNonConvergenceError，不返回最后一次迭代值
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
from scipy import sparse
from scipy.sparse import linalg as spla

from .config import DEFAULT_CONFIG, SOLVERS, ReconConfig
from .errors import InvalidInputError, SolverNonConvergenceError
from .fd_grad import fd_grad
from .fd_interpolate import fd_interpolate
from .grid import GridSpec, build_grid
from .isosurface import extract_zero_isosurface

Array = np.ndarray

__all__ = [
    "SolveInfo", "ReconstructionResult",
    "validate_point_cloud", "project_normals", "solve_potential",
    "calibrate_iso_value", "reconstruct_field", "poisson_surface_reconstruction",
]


# ------------------------- 数据 -------------------------

@dataclass
class SolveInfo:
    solver: str
    iterations: int
    residual: float      # ‖Gᵀv − GᵀG g‖ / ‖Gᵀv‖


@dataclass
class ReconstructionResult:
    field: Array         # (nx*ny*nz,) 已标定，零等值面即重建表面
    spec: GridSpec
    sigma: float         # 标定时减去的平均值
    solve_info: SolveInfo
    config: ReconConfig
    timings: Dict[str, float] = field(default_factory=dict)

    def field_grid(self) -> Array:
        """(nx,ny,nz) 视图：线性编码 i + nx*(j + k*ny) 对应 Fortran 顺序。"""
        return self.field.reshape(self.spec.shape, order="F")


# ------------------------- 输入校验 -------------------------

def validate_point_cloud(P, N) -> Tuple[Array, Array]:
    try:
        P = np.asarray(P, dtype=np.float64)
        N = np.asarray(N, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"点/法向无法转换为浮点数组: {e}") from e
    if P.ndim != 2 or P.shape[1] != 3:
        raise InvalidInputError(f"P 形状必须是 (n,3)，got {P.shape}")
    if N.ndim != 2 or N.shape[1] != 3:
        raise InvalidInputError(f"N 形状必须是 (n,3)，got {N.shape}")
    if P.shape[0] == 0:
        raise InvalidInputError("点云为空")
    if P.shape[0] != N.shape[0]:
        raise InvalidInputError(f"P 与 N 行数不一致: {P.shape[0]} vs {N.shape[0]}")
    if not np.all(np.isfinite(P)):
        raise InvalidInputError("P 含 NaN/Inf")
    if not np.all(np.isfinite(N)):
        raise InvalidInputError("N 含 NaN/Inf")
    return P, N


# ------------------------- StaggeredNormalProjector -------------------------

def project_normals(spec: GridSpec, P: Array, N: Array) -> Array:
    """v = [W_xᵀ N_x; W_yᵀ N_y; W_zᵀ N_z]，W_a 为第 a 个交错网格上的三线性权重。"""
    parts = []
    for a in (0, 1, 2):
        Wa = fd_interpolate(spec.staggered(a), P)
        parts.append(np.asarray(Wa.T @ N[:, a], dtype=np.float64))
    return np.concatenate(parts)


# ------------------------- PotentialSolver -------------------------

def solve_potential(G: sparse.spmatrix, v: Array,
                    rtol: float = DEFAULT_CONFIG.rtol,
                    maxiter: int = DEFAULT_CONFIG.maxiter,
                    solver: str = DEFAULT_CONFIG.solver,
                    verbose: bool = False) -> Tuple[Array, SolveInfo]:
    if solver not in SOLVERS:
        raise ValueError(f"solver must be one of {SOLVERS}, got {solver!r}")
    A = (G.T @ G).tocsr()
    b = np.asarray(G.T @ v, dtype=np.float64)
    bnorm = float(np.linalg.norm(b))
    x0 = np.zeros(A.shape[0], dtype=np.float64)

    if bnorm == 0.0:
        # 法向在交错网格上全部抵消：零场就是精确解
        return x0, SolveInfo(solver=solver, iterations=0, residual=0.0)

    its = [0]

    def _count(_xk):
        its[0] += 1

    method = spla.cg if solver == "cg" else spla.bicgstab
    x, info = method(A, b, x0=x0, rtol=float(rtol), atol=0.0,
                     maxiter=int(maxiter), callback=_count)
    residual = float(np.linalg.norm(b - A @ x)) / bnorm

    if info != 0:
        if info > 0:
            msg = f"{solver} 未收敛：{its[0]} 次迭代后相对残差 {residual:.3e} > rtol={rtol:g}"
        else:
            msg = f"{solver} 求解失败（info={info}），相对残差 {residual:.3e}"
        raise SolverNonConvergenceError(msg, iterations=its[0], residual=residual, solver=solver)

    if verbose:
        print(f"[solve] {solver}: unknowns={A.shape[0]:,}, nnz={A.nnz:,}, "
              f"iters={its[0]}, rel_residual={residual:.3e}")
    return np.asarray(x, dtype=np.float64), SolveInfo(solver=solver, iterations=its[0], residual=residual)


# ------------------------- IsoValueCalibrator -------------------------

def calibrate_iso_value(spec: GridSpec, P: Array, g: Array) -> float:
    """原地平移 g，使其在输入点处的平均值为 0；返回被减去的 sigma。"""
    W = fd_interpolate(spec, P)
    sigma = float(np.mean(W @ g))
    g -= sigma
    return sigma


# ------------------------- 统一流程 -------------------------

def reconstruct_field(P, N,
                      config: Optional[ReconConfig] = None,
                      verbose: bool = False) -> ReconstructionResult:
    cfg = (config if config is not None else DEFAULT_CONFIG).validate()
    t0 = time.time()
    P, N = validate_point_cloud(P, N)

    spec = build_grid(P, pad=cfg.pad, interior_cells=cfg.interior_cells,
                      min_dim=cfg.min_dim, verbose=verbose)
    t_grid = time.time()

    v = project_normals(spec, P, N)
    t_proj = time.time()
    if verbose:
        print(f"[project] n={P.shape[0]:,}, staggered samples={v.shape[0]:,}")

    G = fd_grad(spec)
    t_grad = time.time()
    if verbose:
        print(f"[grad] G shape={G.shape}, nnz={G.nnz:,}")

    g, info = solve_potential(G, v, rtol=cfg.rtol, maxiter=cfg.maxiter,
                              solver=cfg.solver, verbose=verbose)
    t_solve = time.time()

    sigma = calibrate_iso_value(spec, P, g)
    t_iso = time.time()
    if verbose:
        print(f"[iso] sigma={sigma:.6g}, field range=[{g.min():.4g}, {g.max():.4g}]")

    timings = {
        "grid_setup": t_grid - t0,
        "project_normals": t_proj - t_grid,
        "gradient": t_grad - t_proj,
        "solve": t_solve - t_grad,
        "calibrate": t_iso - t_solve,
        "total": t_iso - t0,
    }
    return ReconstructionResult(field=g, spec=spec, sigma=sigma, solve_info=info,
                                config=cfg, timings=timings)


def poisson_surface_reconstruction(P, N,
                                   config: Optional[ReconConfig] = None,
                                   verbose: bool = False) -> Tuple[Array, Array]:
    """返回 (V, F)：V (m,3) float64，F (k,3) int64（0 基）。场无变号时返回空网格。"""
    res = reconstruct_field(P, N, config=config, verbose=verbose)
    return extract_zero_isosurface(res.field, res.spec, verbose=verbose)
