# -*- coding: utf-8 -*-
"""
fd_interpolate.py — 三线性插值算子 W（稀疏，n × num_nodes）
-----------------------------------------------------------
- 同一个函数服务主网格与三个交错网格：只依赖 GridSpec
- 每行最多 8 个非零：所在单元 8 个角点的张量积权重 (1-t, t)
- 越界约定（钳制）：单元下标钳到 [0, dim-2]，单元内偏移 t 钳到 [0,1]，
  等价于把网格外的点投影到最近的网格边界上；因此每行权重之和恒为 1，下标永不越界
- 组装方式：先收集 (row, col, weight) 三元组，最后一次性转 CSR
"""
from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy import sparse

from .grid import GridSpec, node_index

Array = np.ndarray

__all__ = ["fd_interpolate", "trilinear_query"]


def _cell_and_offsets(spec: GridSpec, P: Array) -> Tuple[Array, Array]:
    dims = np.asarray(spec.shape, dtype=np.int64)
    if np.any(dims < 2):
        raise ValueError(f"三线性插值要求每个维度至少 2 个节点，got shape={spec.shape}")
    U = (P - spec.corner[None, :]) / spec.h          # 连续下标
    base = np.floor(U).astype(np.int64)
    base = np.clip(base, 0, dims - 2)
    t = np.clip(U - base, 0.0, 1.0)
    return base, t


def fd_interpolate(spec: GridSpec, P: Array) -> sparse.csr_matrix:
    P = np.asarray(P, dtype=np.float64).reshape(-1, 3)
    n = P.shape[0]
    base, t = _cell_and_offsets(spec, P)
    w_lo = 1.0 - t
    w_hi = t

    prow = np.arange(n, dtype=np.int64)
    rows, cols, vals = [], [], []
    for di in (0, 1):
        wx = w_hi[:, 0] if di else w_lo[:, 0]
        for dj in (0, 1):
            wy = w_hi[:, 1] if dj else w_lo[:, 1]
            for dk in (0, 1):
                wz = w_hi[:, 2] if dk else w_lo[:, 2]
                rows.append(prow)
                cols.append(node_index(base[:, 0] + di, base[:, 1] + dj, base[:, 2] + dk, spec.shape))
                vals.append(wx * wy * wz)

    W = sparse.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(n, spec.num_nodes),
    ).tocsr()
    W.eliminate_zeros()
    return W


def trilinear_query(spec: GridSpec, g: Array, P: Array) -> Tuple[Array, Array]:
    """在任意点处插值节点场 g；返回 (values, inside)，inside 标记点是否落在网格盒内。"""
    P = np.asarray(P, dtype=np.float64).reshape(-1, 3)
    g = np.asarray(g, dtype=np.float64).reshape(-1)
    if g.shape[0] != spec.num_nodes:
        raise ValueError(f"场长度 {g.shape[0]} 与网格节点数 {spec.num_nodes} 不一致")
    W = fd_interpolate(spec, P)
    return np.asarray(W @ g, dtype=np.float64), spec.contains(P)
