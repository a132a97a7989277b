# -*- coding: utf-8 -*-
"""
grid.py — 规则有限差分网格（主网格 + 三个交错网格）
---------------------------------------------------
- GridSpec：corner（最小角节点坐标）/ h（步长）/ shape=(nx,ny,nz)
- 节点 (i,j,k) 的世界坐标 = corner + h*(i,j,k)
- 线性编码统一为 ind = i + nx*(j + k*ny)；全项目只通过 node_index / node_subscripts 换算
- 交错网格：沿 axis 方向少一个节点，corner 沿该轴平移 h/2（即主网格边的中点）
- build_grid：包围盒 + pad 个单元的填充，最长边约 interior_cells 个内部单元
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import DegenerateGridError

Array = np.ndarray
Shape3 = Tuple[int, int, int]

__all__ = ["GridSpec", "node_index", "node_subscripts", "build_grid"]


# ------------------------- 线性编码 -------------------------

def node_index(i, j, k, shape: Shape3):
    """(i,j,k) -> i + nx*(j + k*ny)；标量或整型数组均可。"""
    nx, ny = int(shape[0]), int(shape[1])
    return i + nx * (j + k * ny)


def node_subscripts(ind, shape: Shape3):
    """node_index 的逆映射，返回 (i, j, k)。"""
    nx, ny = int(shape[0]), int(shape[1])
    i = ind % nx
    j = (ind // nx) % ny
    k = ind // (nx * ny)
    return i, j, k


# ------------------------- 网格描述 -------------------------

@dataclass(frozen=True)
class GridSpec:
    corner: Array   # (3,)
    h: float
    shape: Shape3   # (nx,ny,nz)

    def __post_init__(self):
        corner = np.array(self.corner, dtype=np.float64).reshape(3)
        corner.setflags(write=False)
        object.__setattr__(self, "corner", corner)
        object.__setattr__(self, "h", float(self.h))
        object.__setattr__(self, "shape", tuple(int(s) for s in self.shape))
        if len(self.shape) != 3:
            raise ValueError("shape 必须是 (nx,ny,nz)")

    @property
    def nx(self) -> int: return self.shape[0]
    @property
    def ny(self) -> int: return self.shape[1]
    @property
    def nz(self) -> int: return self.shape[2]

    @property
    def num_nodes(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def bmin(self) -> Array:
        return self.corner.copy()

    @property
    def bmax(self) -> Array:
        return self.corner + self.h * (np.asarray(self.shape, dtype=np.float64) - 1.0)

    def staggered(self, axis: int) -> "GridSpec":
        """沿 axis 偏移半个单元的交错网格（存放该方向偏导数的采样）。"""
        axis = int(axis)
        if axis not in (0, 1, 2):
            raise ValueError(f"axis must be 0, 1 or 2, got {axis}")
        shape = list(self.shape)
        shape[axis] -= 1
        offset = np.zeros(3, dtype=np.float64)
        offset[axis] = 0.5 * self.h
        return GridSpec(corner=self.corner + offset, h=self.h, shape=tuple(shape))

    def node_positions(self) -> Array:
        """(num_nodes,3)，按线性编码顺序排列。"""
        ind = np.arange(self.num_nodes, dtype=np.int64)
        i, j, k = node_subscripts(ind, self.shape)
        ijk = np.stack([i, j, k], axis=1).astype(np.float64)
        return self.corner[None, :] + self.h * ijk

    def contains(self, P: Array) -> Array:
        P = np.asarray(P, dtype=np.float64).reshape(-1, 3)
        lo, hi = self.bmin, self.bmax
        return np.all((P >= lo[None, :]) & (P <= hi[None, :]), axis=1)


# ------------------------- GridBuilder -------------------------

def build_grid(P: Array,
               pad: float = 8,
               interior_cells: float = 30,
               min_dim: int = 3,
               verbose: bool = False) -> GridSpec:
    """
    h = max_extent / (interior_cells + 2*pad)
    corner = min(P) - pad*h
    dim_a = max(ceil((extent_a + 2*pad*h)/h), min_dim)

    pad < 1 时高端最后一个节点会落在点云之内，因此要求 pad >= 1。
    已知局限：某一轴零厚度（共面点）时该轴只剩填充单元，重建可能退化，但不报错。
    """
    if not pad >= 1:
        raise ValueError(f"pad must be >= 1, got {pad}")
    if not interior_cells > 0:
        raise ValueError(f"interior_cells must be > 0, got {interior_cells}")
    P = np.asarray(P, dtype=np.float64).reshape(-1, 3)
    pmin = P.min(axis=0)
    pmax = P.max(axis=0)
    extent = pmax - pmin
    max_extent = float(extent.max())
    if not math.isfinite(max_extent) or max_extent <= 0.0:
        raise DegenerateGridError(
            f"点云包围盒最大边长为 {max_extent}，无法确定网格步长（至少需要两个不重合的点）")

    h = max_extent / float(interior_cells + 2.0 * pad)
    corner = pmin - pad * h
    dims = np.maximum(np.ceil((extent + 2.0 * pad * h) / h), int(min_dim)).astype(np.int64)
    # 舍入误差可能让最后一个节点略小于 max(P)
    dims += (corner + (dims - 1) * h < pmax).astype(np.int64)
    spec = GridSpec(corner=corner, h=h, shape=(int(dims[0]), int(dims[1]), int(dims[2])))

    if verbose:
        print(f"[grid] shape={spec.shape}, h={h:.6g}, corner={spec.corner}")
        flat = np.where(extent <= 0.0)[0]
        if flat.size:
            axes = ",".join("xyz"[a] for a in flat)
            print(f"[grid] warning: zero extent along {axes}; reconstruction may be degenerate")
    return spec
