# -*- coding: utf-8 -*-
"""
零等值面可视化（PyVista 交互版）
================================
- 读取 <prefix>_field.npy / <prefix>_meta.json（由 `python -m cocopsr build` 生成）
- 把节点场塞进 ImageData，contour(0) 交互显示；可叠加输入点云

依赖：numpy, pyvista  (若缺少: pip install pyvista)
"""
from __future__ import annotations

from pathlib import Path

from cocopsr import PoissonSurface
from cocopsr.io_utils import load_oriented_points
from cocopsr.isosurface import pyvista_visualize_isosurface

# ------------------------- 参数（无 CLI） -------------------------
PREFIX = Path("./psr_outputs/sphere")   # ← 改成你的前缀（不带 _field.npy）
POINTS_PATH = None                      # 可选：.pwn / .obj，叠加显示输入点
SCREENSHOT = None                       # 例如 "./psr_outputs/sphere_pv.png"；None 则交互显示


if __name__ == "__main__":
    surf = PoissonSurface.from_prefix(PREFIX)
    print(f"[iso] sigma={surf.sigma:.6e}, range=[{surf.field.min():.4g}, {surf.field.max():.4g}]")
    pts = None
    if POINTS_PATH is not None:
        pts, _ = load_oriented_points(POINTS_PATH)
    pyvista_visualize_isosurface(surf.field, surf.spec, show=SCREENSHOT is None,
                                 out_png=SCREENSHOT, points=pts)
