# -*- coding: utf-8 -*-
"""
fd_grad.py — 前向差分梯度算子 G
-------------------------------
- D_a：主网格 -> 第 a 个交错网格，行 = 交错节点，(-1/h, +1/h) 落在沿 a 相邻的两个主节点上
- G = [D_x; D_y; D_z]，行块顺序必须与 project_normals 拼接 v 的顺序一致（x, y, z）
- 常数场的差分恰为 0（每行两项系数互为相反数）
"""
from __future__ import annotations

import numpy as np
from scipy import sparse

from .grid import GridSpec, node_index, node_subscripts

__all__ = ["fd_partial_derivative", "fd_grad"]


def fd_partial_derivative(spec: GridSpec, axis: int) -> sparse.csr_matrix:
    stag = spec.staggered(axis)
    m = stag.num_nodes
    rows = np.arange(m, dtype=np.int64)
    i, j, k = node_subscripts(rows, stag.shape)   # 交错网格下标即“左侧”主节点下标
    step = [0, 0, 0]
    step[axis] = 1
    lo = node_index(i, j, k, spec.shape)
    hi = node_index(i + step[0], j + step[1], k + step[2], spec.shape)

    inv_h = 1.0 / spec.h
    vals = np.concatenate([np.full(m, -inv_h), np.full(m, inv_h)])
    D = sparse.coo_matrix(
        (vals, (np.concatenate([rows, rows]), np.concatenate([lo, hi]))),
        shape=(m, spec.num_nodes),
    )
    return D.tocsr()


def fd_grad(spec: GridSpec) -> sparse.csr_matrix:
    return sparse.vstack([fd_partial_derivative(spec, a) for a in (0, 1, 2)], format="csr")
