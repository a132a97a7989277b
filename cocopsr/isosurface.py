# -*- coding: utf-8 -*-
"""
isosurface.py — 零等值面提取与可视化
------------------------------------
- extract_zero_isosurface：skimage.measure.marching_cubes，level=0，间距 (h,h,h)，平移到 corner
- 场无变号（全正 / 全负 / 全零）时返回空网格：合法结果，不是错误
- visualize_zero_isosurface / save_timings_pie：matplotlib 静态预览
- pyvista_visualize_isosurface：PyVista 交互查看（可选依赖）
"""
from __future__ import annotations

import math
import os
from typing import Dict, Optional, Tuple

import numpy as np

from .grid import GridSpec

# -------------------- 依赖探测 --------------------
try:
    from skimage import measure as _measure
    _HAS_SKIMAGE = True
except Exception:
    _HAS_SKIMAGE = False

try:
    import matplotlib.pyplot as plt
    from mpl_toolkits.mplot3d.art3d import Poly3DCollection
    _HAS_MPL = True
except Exception:
    _HAS_MPL = False

Array = np.ndarray

__all__ = [
    "extract_zero_isosurface", "visualize_zero_isosurface",
    "save_timings_pie", "pyvista_visualize_isosurface",
]


def _ensure_dir_for(path_str: str):
    d = os.path.dirname(os.path.abspath(path_str))
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def _empty_mesh() -> Tuple[Array, Array]:
    return np.empty((0, 3), dtype=np.float64), np.empty((0, 3), dtype=np.int64)


def extract_zero_isosurface(g: Array, spec: GridSpec, verbose: bool = False) -> Tuple[Array, Array]:
    if not _HAS_SKIMAGE:
        raise RuntimeError("需要 scikit-image 才能进行 marching_cubes 网格化：pip install scikit-image")
    g = np.asarray(g, dtype=np.float64).reshape(-1)
    if g.shape[0] != spec.num_nodes:
        raise ValueError(f"场长度 {g.shape[0]} 与网格节点数 {spec.num_nodes} 不一致")

    gmin, gmax = float(g.min()), float(g.max())
    if not (gmin < 0.0 < gmax):
        if verbose:
            print(f"[mc] no sign change (range=[{gmin:.4g}, {gmax:.4g}]) -> empty mesh")
        return _empty_mesh()

    vol = g.reshape(spec.shape, order="F")
    verts, faces, _normals, _values = _measure.marching_cubes(vol, level=0.0, spacing=(spec.h, spec.h, spec.h))
    V = verts.astype(np.float64) + spec.corner[None, :]
    F = faces.astype(np.int64)
    if verbose:
        print(f"[mc] vertices={V.shape[0]:,}, faces={F.shape[0]:,}")
    return V, F


# -------------------- 可视化 --------------------

def visualize_zero_isosurface(g: Array,
                              spec: GridSpec,
                              out_path: Optional[str] = None,
                              max_tris: int = 500_000,
                              alpha: float = 0.6,
                              face_rgb: Optional[Tuple[float, float, float]] = (0.3, 0.5, 0.8),
                              points: Optional[Array] = None):
    if not _HAS_MPL:
        raise RuntimeError("matplotlib 不可用")
    V, F = extract_zero_isosurface(g, spec)
    if F.shape[0] > max_tris:
        step = int(math.ceil(F.shape[0] / max_tris))
        F = F[::step, :]

    fig = plt.figure(figsize=(8, 6))
    ax = fig.add_subplot(111, projection='3d')
    ax.set_axis_off()
    if F.shape[0]:
        coll = Poly3DCollection(V[F], linewidths=0.1, alpha=alpha)
        if face_rgb is not None:
            coll.set_facecolor(face_rgb)
        ax.add_collection3d(coll)
    if points is not None:
        P = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        ax.scatter(P[:, 0], P[:, 1], P[:, 2], s=1.0, c='k')

    bmin, bmax = spec.bmin, spec.bmax
    ax.set_xlim([bmin[0], bmax[0]])
    ax.set_ylim([bmin[1], bmax[1]])
    ax.set_zlim([bmin[2], bmax[2]])
    ax.set_title("Zero Isosurface")

    if out_path:
        _ensure_dir_for(out_path)
        fig.savefig(out_path, dpi=180, bbox_inches='tight', pad_inches=0.05)
        plt.close(fig)
    else:
        plt.show()
    return out_path


def save_timings_pie(timings: Dict[str, float], out_path: str):
    if not _HAS_MPL:
        raise RuntimeError("matplotlib 不可用")
    labels = [k for k in timings.keys() if k != 'total']
    sizes = [max(float(timings[k]), 0.0) for k in labels]
    total = sum(sizes) + 1e-18
    pct = [100.0 * s / total for s in sizes]
    fig, ax = plt.subplots(figsize=(6.0, 6.0))
    wedges, _texts = ax.pie(sizes, wedgeprops=dict(width=0.35), startangle=140)
    ax.axis('equal')
    legend_labels = [f"{labels[i]}: {pct[i]:.1f}%" for i in range(len(labels))]
    ax.legend(wedges, legend_labels, title="Timings", loc="center left", bbox_to_anchor=(1.0, 0.5))
    _ensure_dir_for(out_path)
    fig.savefig(out_path, dpi=180, bbox_inches='tight', pad_inches=0.1)
    plt.close(fig)
    return out_path


def pyvista_visualize_isosurface(g: Array,
                                 spec: GridSpec,
                                 show: bool = True,
                                 out_png: Optional[str] = None,
                                 points: Optional[Array] = None):
    """把节点场放进 ImageData（VTK 点序同样是 x 最快），contour(0) 显示。"""
    try:
        import pyvista as pv
    except Exception as e:
        raise RuntimeError("需要 pyvista 才能使用该函数") from e

    img = pv.ImageData()
    img.dimensions = spec.shape
    img.origin = tuple(float(c) for c in spec.corner)
    img.spacing = (spec.h, spec.h, spec.h)
    img.point_data['field'] = np.asarray(g, dtype=np.float64).reshape(-1)
    surf = img.contour(isosurfaces=[0.0], scalars='field')

    plotter = pv.Plotter(window_size=[900, 700], off_screen=not show)
    plotter.add_mesh(surf, color="lightsteelblue", opacity=0.85, smooth_shading=True)
    if points is not None:
        plotter.add_points(np.asarray(points, dtype=np.float64).reshape(-1, 3),
                           color="black", point_size=3.0)
    plotter.add_axes()
    plotter.show_bounds(grid='front', location='outer', all_edges=True)
    plotter.view_isometric()

    if out_png:
        _ensure_dir_for(out_png)
    if show:
        plotter.show(screenshot=out_png or False)
    else:
        if out_png:
            plotter.screenshot(out_png)
        plotter.close()
