# -*- coding: utf-8 -*-
"""
runtime.py — 统一外部 API 与 CLI
================================
- PoissonSurface：from_points / from_pwn / from_obj / from_prefix
                  query_points / query_point / extract_mesh / save_dense / save_obj
- CLI：python -m cocopsr build --input pts.pwn --out out/bunny [--obj_out out/bunny.obj]
       python -m cocopsr query --prefix out/bunny < points.txt
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from .config import SOLVERS, ReconConfig
from .errors import InvalidInputError
from .fd_interpolate import trilinear_query
from .grid import GridSpec
from .io_utils import load_field_by_prefix, load_oriented_points, save_field_and_meta, write_obj
from .isosurface import extract_zero_isosurface
from .poisson_recon import SolveInfo, reconstruct_field

Array = np.ndarray
PathLike = Union[str, Path]

__all__ = ["PoissonSurface"]


class PoissonSurface:
    def __init__(self, field: Array, spec: GridSpec, *,
                 sigma: float = 0.0,
                 config: Optional[ReconConfig] = None,
                 solve_info: Optional[SolveInfo] = None,
                 timings: Optional[Dict[str, float]] = None,
                 source: Optional[str] = None):
        self.field = np.asarray(field, dtype=np.float64).reshape(-1)
        if self.field.shape[0] != spec.num_nodes:
            raise ValueError(f"场长度 {self.field.shape[0]} 与网格节点数 {spec.num_nodes} 不一致")
        self.spec = spec
        self.sigma = float(sigma)
        self.config = config
        self.solve_info = solve_info
        self.timings: Dict[str, float] = dict(timings or {})
        self.source = source

    # ---- 构建 ----
    @classmethod
    def from_points(cls, P, N,
                    config: Optional[ReconConfig] = None,
                    *,
                    pad: Optional[float] = None,
                    interior_cells: Optional[float] = None,
                    solver: Optional[str] = None,
                    rtol: Optional[float] = None,
                    maxiter: Optional[int] = None,
                    source: Optional[str] = None,
                    verbose: bool = True) -> "PoissonSurface":
        cfg = (config if config is not None else ReconConfig.from_env()).replace(
            pad=pad, interior_cells=interior_cells, solver=solver, rtol=rtol, maxiter=maxiter)
        if verbose: print("[build] reconstruct implicit field ...")
        res = reconstruct_field(P, N, config=cfg, verbose=verbose)
        if verbose: print(f"[build] done ✓ ({res.timings['total']:.3f}s)")
        return cls(res.field, res.spec, sigma=res.sigma, config=res.config,
                   solve_info=res.solve_info, timings=res.timings, source=source)

    @classmethod
    def from_pwn(cls, path: PathLike, config: Optional[ReconConfig] = None,
                 verbose: bool = True, **kw) -> "PoissonSurface":
        if verbose: print(f"[io] load oriented points <- {path}")
        P, N = load_oriented_points(path)
        return cls.from_points(P, N, config=config, source=str(path), verbose=verbose, **kw)

    @classmethod
    def from_obj(cls, obj_path: PathLike, config: Optional[ReconConfig] = None,
                 verbose: bool = True, **kw) -> "PoissonSurface":
        """OBJ 含 vn 则直接使用；否则对三角网格用 libigl 顶点法向。"""
        if verbose: print(f"[io] parse OBJ <- {obj_path}")
        P, N = load_oriented_points(obj_path)
        return cls.from_points(P, N, config=config, source=str(obj_path), verbose=verbose, **kw)

    @classmethod
    def from_prefix(cls, prefix: PathLike, *, verbose: bool = True) -> "PoissonSurface":
        if verbose: print(f"[load] dense field <- {prefix}_{{field,meta}}.*")
        g, spec, meta = load_field_by_prefix(prefix)
        if verbose: print(f"[grid] shape={spec.shape}, h={spec.h:.6g}, corner={spec.corner}")
        cfg = ReconConfig.from_env().replace(
            pad=meta.get("pad"), interior_cells=meta.get("interior_cells"), solver=meta.get("solver"))
        return cls(g, spec, sigma=float(meta.get("sigma", 0.0)), config=cfg,
                   timings=meta.get("timings"), source=meta.get("source"))

    # ---- 查询 ----
    def query_points(self, P: Iterable[Iterable[float]]) -> Tuple[Array, Array]:
        return trilinear_query(self.spec, self.field, np.asarray(P, dtype=np.float64))

    def query_point(self, p: Iterable[float]) -> Tuple[float, bool]:
        d, inside = self.query_points(np.asarray(p, dtype=np.float64).reshape(1, 3))
        return float(d[0]), bool(inside[0])

    def extract_mesh(self, verbose: bool = False) -> Tuple[Array, Array]:
        return extract_zero_isosurface(self.field, self.spec, verbose=verbose)

    # ---- I/O ----
    def save_dense(self, prefix: PathLike, png: bool = True) -> Tuple[str, str, str, str]:
        return save_field_and_meta(self.field, self.spec, prefix, sigma=self.sigma,
                                   config=self.config.to_dict() if self.config is not None else None,
                                   timings=self.timings, source=self.source, png=png)

    def save_obj(self, path: PathLike) -> str:
        V, F = self.extract_mesh()
        return write_obj(path, V, F)

    # ---- 属性 ----
    @property
    def grid_spec(self) -> GridSpec:
        return self.spec

    def field_grid(self) -> Array:
        return self.field.reshape(self.spec.shape, order="F")


# ------------------------- CLI -------------------------

def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("cocopsr", description="Grid Poisson surface reconstruction")
    sub = ap.add_subparsers(dest="cmd", required=True)

    b = sub.add_parser("build", help="oriented points -> implicit field (+ mesh)")
    b.add_argument("--input", required=True, help=".pwn/.xyz（x y z nx ny nz）或 .obj")
    b.add_argument("--out", required=True, help="输出前缀，例如 out/bunny")
    b.add_argument("--obj_out", default=None, help="零等值面网格 .obj 路径")
    b.add_argument("--pad", type=float, default=None)
    b.add_argument("--interior_cells", type=float, default=None)
    b.add_argument("--solver", type=str, default=None, choices=list(SOLVERS))
    b.add_argument("--rtol", type=float, default=None)
    b.add_argument("--maxiter", type=int, default=None)
    b.add_argument("--no_png", action="store_true", default=False, help="不生成 png 预览")
    b.add_argument("--quiet", action="store_true", default=False)

    q = sub.add_parser("query", help="stdin 每行 x y z -> 场值")
    q.add_argument("--prefix", required=True)
    return ap


def _read_points(stream) -> List[List[float]]:
    """每行 "x y z"；空行与 # 注释跳过，其余格式错误的行抛 InvalidInputError。"""
    pts = []
    for lineno, line in enumerate(stream, 1):
        sp = line.split("#", 1)[0].split()
        if not sp:
            continue
        try:
            if len(sp) != 3:
                raise ValueError(f"需要 3 列，got {len(sp)}")
            pts.append([float(sp[0]), float(sp[1]), float(sp[2])])
        except ValueError as e:
            raise InvalidInputError(f"stdin:{lineno}: {line.strip()!r}: {e}") from e
    return pts


def _cli(argv: Optional[List[str]] = None, stdin=None) -> int:
    args = _build_parser().parse_args(argv)
    if args.cmd == "build":
        verbose = not args.quiet
        src = Path(args.input)
        kw = dict(pad=args.pad, interior_cells=args.interior_cells, solver=args.solver,
                  rtol=args.rtol, maxiter=args.maxiter)
        if src.suffix.lower() == ".obj":
            s = PoissonSurface.from_obj(src, verbose=verbose, **kw)
        else:
            s = PoissonSurface.from_pwn(src, verbose=verbose, **kw)
        png, pie, npy, meta = s.save_dense(args.out, png=not args.no_png)
        out = {"grid_shape": list(s.spec.shape), "h": s.spec.h, "sigma": s.sigma,
               "field_npy": npy, "meta_json": meta}
        if png:
            out.update(isosurface_png=png, timings_pie=pie)
        if args.obj_out:
            if verbose: print(f"[io] save mesh -> {args.obj_out}")
            V, F = s.extract_mesh(verbose=verbose)
            write_obj(args.obj_out, V, F)
            out.update(obj=args.obj_out, vertices=int(V.shape[0]), faces=int(F.shape[0]))
        print(json.dumps(out, ensure_ascii=False, indent=2))
    else:
        s = PoissonSurface.from_prefix(args.prefix, verbose=False)
        pts = _read_points(stdin if stdin is not None else sys.stdin)
        d, inside = s.query_points(np.asarray(pts, dtype=np.float64).reshape(-1, 3))
        print(json.dumps({"value": d.tolist(), "inside": [bool(x) for x in inside]}, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(_cli())
