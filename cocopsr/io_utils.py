# -*- coding: utf-8 -*-
"""
io_utils.py — 点云 / 网格 / 稠密场的读写
----------------------------------------
- parse_pwn：每行 "x y z nx ny nz"（.pwn/.xyz/.txt；首行可为单个点数；# 注释）
- parse_obj_points：OBJ 中的 v / vn 按顺序配对
- parse_obj + oriented_points_from_mesh：三角网格顶点 + libigl 顶点法向
- write_obj：V + 1 基 f
- save_field_and_meta / load_field_by_prefix：<prefix>_field.npy + <prefix>_meta.json
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np

from .errors import InvalidInputError
from .grid import GridSpec
from .isosurface import _ensure_dir_for, save_timings_pie, visualize_zero_isosurface

try:
    import igl  # libigl
    _HAS_IGL = True
except Exception:
    _HAS_IGL = False

Array = np.ndarray
PathLike = Union[str, Path]

__all__ = [
    "parse_pwn", "parse_obj", "parse_obj_points", "oriented_points_from_mesh",
    "load_oriented_points", "write_obj", "save_field_and_meta", "load_field_by_prefix",
]


# -------------------- 点云 --------------------

def parse_pwn(path: PathLike) -> Tuple[Array, Array]:
    rows = []
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        for lineno, line in enumerate(f, 1):
            sp = line.split('#', 1)[0].split()
            if not sp:
                continue
            if len(sp) == 1 and not rows:
                continue  # 首行点数
            if len(sp) < 6:
                raise InvalidInputError(f"{path}:{lineno}: 需要 6 列 (x y z nx ny nz)，got {len(sp)}")
            try:
                rows.append([float(x) for x in sp[:6]])
            except ValueError as e:
                raise InvalidInputError(f"{path}:{lineno}: 无法解析为浮点数: {line.strip()!r}") from e
    A = np.asarray(rows, dtype=np.float64).reshape(-1, 6)
    return A[:, :3].copy(), A[:, 3:].copy()


def parse_obj(path: PathLike) -> Tuple[Array, Array]:
    vs, fs = [], []
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        for line in f:
            if not line or line.startswith('#'):
                continue
            sp = line.strip().split()
            if not sp:
                continue
            if sp[0] == 'v' and len(sp) >= 4:
                vs.append([float(sp[1]), float(sp[2]), float(sp[3])])
            elif sp[0] == 'f' and len(sp) >= 4:
                fs.append([int(t.split('/')[0]) - 1 for t in sp[1:4]])
    V = np.asarray(vs, dtype=np.float64).reshape(-1, 3)
    F = np.asarray(fs, dtype=np.int32).reshape(-1, 3)
    return V, F


def parse_obj_points(path: PathLike) -> Tuple[Array, Array]:
    vs, vns = [], []
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        for line in f:
            sp = line.strip().split()
            if len(sp) < 4:
                continue
            if sp[0] == 'v':
                vs.append([float(sp[1]), float(sp[2]), float(sp[3])])
            elif sp[0] == 'vn':
                vns.append([float(sp[1]), float(sp[2]), float(sp[3])])
    if len(vs) != len(vns):
        raise InvalidInputError(f"{path}: v 与 vn 数量不一致 ({len(vs)} vs {len(vns)})")
    return np.asarray(vs, dtype=np.float64).reshape(-1, 3), np.asarray(vns, dtype=np.float64).reshape(-1, 3)


def oriented_points_from_mesh(V: Array, F: Array) -> Tuple[Array, Array]:
    if not _HAS_IGL:
        raise RuntimeError("需要 libigl 计算顶点法向：pip install libigl")
    Vd = np.ascontiguousarray(V, dtype=np.float64)
    Fi = np.ascontiguousarray(F, dtype=np.int32)
    N = np.asarray(igl.per_vertex_normals(Vd, Fi), dtype=np.float64)
    return Vd, N


def load_oriented_points(path: PathLike) -> Tuple[Array, Array]:
    """按后缀分派；.obj 有 vn 时直接用，否则有面时用 libigl 顶点法向。"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    if path.suffix.lower() == ".obj":
        try:
            return parse_obj_points(path)
        except InvalidInputError:
            V, F = parse_obj(path)
            if F.shape[0] == 0:
                raise
            return oriented_points_from_mesh(V, F)
    return parse_pwn(path)


# -------------------- 网格 --------------------

def write_obj(path: PathLike, V: Array, F: Array) -> str:
    path = str(path)
    _ensure_dir_for(path)
    V = np.asarray(V, dtype=np.float64).reshape(-1, 3)
    F = np.asarray(F, dtype=np.int64).reshape(-1, 3)
    with open(path, 'w', encoding='utf-8') as f:
        for x, y, z in V:
            f.write(f"v {x:.9g} {y:.9g} {z:.9g}\n")
        for a, b, c in F + 1:
            f.write(f"f {a} {b} {c}\n")
    return path


# -------------------- 稠密场 --------------------

def save_field_and_meta(g: Array,
                        spec: GridSpec,
                        out_prefix: PathLike,
                        sigma: float = 0.0,
                        config: Optional[dict] = None,
                        timings: Optional[Dict[str, float]] = None,
                        source: Optional[str] = None,
                        png: bool = True) -> Tuple[str, str, str, str]:
    """
    写 <prefix>_field.npy（(nx,ny,nz) float64）与 <prefix>_meta.json；
    可选预览 <prefix>_isosurface.png / <prefix>_timings_pie.png（失败时写 *.skipped）。
    返回：(isosurface_png, timings_pie_png, field_npy, meta_json)
    """
    out_prefix = str(out_prefix)
    npy_path = f"{out_prefix}_field.npy"
    meta_path = f"{out_prefix}_meta.json"
    png_path = f"{out_prefix}_isosurface.png"
    pie_path = f"{out_prefix}_timings_pie.png"

    g = np.asarray(g, dtype=np.float64).reshape(-1)
    if g.shape[0] != spec.num_nodes:
        raise ValueError(f"场长度 {g.shape[0]} 与网格节点数 {spec.num_nodes} 不一致")
    _ensure_dir_for(npy_path)
    np.save(npy_path, g.reshape(spec.shape, order="F"))

    config = dict(config or {})
    timings = dict(timings or {})
    meta = dict(
        corner=spec.corner.tolist(),
        h=float(spec.h),
        shape=list(map(int, spec.shape)),
        sigma=float(sigma),
        pad=config.get("pad"),
        interior_cells=config.get("interior_cells"),
        solver=config.get("solver"),
        timings={k: float(v) for k, v in timings.items()},
    )
    if source is not None:
        meta["source"] = os.path.abspath(source)
    with open(meta_path, 'w', encoding='utf-8') as f:
        json.dump(meta, f, ensure_ascii=False, indent=2)

    if not png:
        return "", "", npy_path, meta_path
    try:
        visualize_zero_isosurface(g, spec, out_path=png_path)
    except Exception as e:
        png_path = f"{png_path}.skipped"
        with open(png_path, 'w', encoding='utf-8') as f:
            f.write(f"isosurface skipped: {e}")
    try:
        save_timings_pie(timings, pie_path)
    except Exception as e:
        pie_path = f"{pie_path}.skipped"
        with open(pie_path, 'w', encoding='utf-8') as f:
            f.write(f"pie skipped: {e}")
    return png_path, pie_path, npy_path, meta_path


def load_field_by_prefix(prefix: PathLike) -> Tuple[Array, GridSpec, dict]:
    prefix = Path(prefix)
    npy_path = prefix.with_name(prefix.name + "_field.npy")
    meta_path = prefix.with_name(prefix.name + "_meta.json")
    if not npy_path.exists() or not meta_path.exists():
        raise FileNotFoundError(f"缺少 field/meta 之一: {npy_path}, {meta_path}")
    with open(meta_path, "r", encoding="utf-8") as f:
        meta = json.load(f)
    for k in ("corner", "h", "shape"):
        if k not in meta:
            raise KeyError(f"meta.json 缺少键: {k}")
    spec = GridSpec(corner=meta["corner"], h=meta["h"], shape=tuple(meta["shape"]))
    grid = np.load(npy_path).astype(np.float64, copy=False)
    if tuple(grid.shape) != spec.shape:
        raise ValueError(f"field 形状 {grid.shape} 与 meta shape {spec.shape} 不一致")
    return grid.reshape(-1, order="F"), spec, meta
