# -*- coding: utf-8 -*-
"""
cocopsr — 规则网格上的泊松表面重建
==================================
有向点云 (P, N) → 交错网格上的法向采样 v、前向差分梯度 G
→ 最小二乘 (GᵀG) g = Gᵀv → 等值标定 → marching cubes 零等值面 (V, F)

    >>> from cocopsr import poisson_surface_reconstruction
    >>> V, F = poisson_surface_reconstruction(P, N)
"""
from .config import DEFAULT_CONFIG, SOLVERS, ReconConfig
from .errors import (
    DegenerateGridError, InvalidInputError, PoissonReconError, SolverNonConvergenceError,
)
from .fd_grad import fd_grad, fd_partial_derivative
from .fd_interpolate import fd_interpolate, trilinear_query
from .grid import GridSpec, build_grid, node_index, node_subscripts
from .isosurface import extract_zero_isosurface
from .poisson_recon import (
    ReconstructionResult, SolveInfo, calibrate_iso_value, poisson_surface_reconstruction,
    project_normals, reconstruct_field, solve_potential, validate_point_cloud,
)
from .runtime import PoissonSurface

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ReconConfig", "DEFAULT_CONFIG", "SOLVERS",
    "PoissonReconError", "InvalidInputError", "DegenerateGridError", "SolverNonConvergenceError",
    "GridSpec", "build_grid", "node_index", "node_subscripts",
    "fd_interpolate", "trilinear_query", "fd_partial_derivative", "fd_grad",
    "validate_point_cloud", "project_normals", "solve_potential", "calibrate_iso_value",
    "SolveInfo", "ReconstructionResult", "reconstruct_field", "poisson_surface_reconstruction",
    "extract_zero_isosurface", "PoissonSurface",
]
