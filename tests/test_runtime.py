from __future__ import annotations

import io
import json

import numpy as np
import pytest

from cocopsr import InvalidInputError, PoissonSurface, ReconConfig
from cocopsr.runtime import _cli, _read_points
from conftest import fibonacci_sphere


@pytest.fixture(scope="module")
def surface():
    P, N = fibonacci_sphere(1500, radius=0.5, center=(0.2, -0.1, 0.3))
    cfg = ReconConfig(pad=4, interior_cells=16, solver="cg", rtol=1e-8, maxiter=5000)
    return PoissonSurface.from_points(P, N, config=cfg, verbose=False)


def test_from_points_queries(surface):
    d, inside = surface.query_points([[0.2, -0.1, 0.3], [0.2, -0.1, 0.3 + 0.7]])
    assert d[0] < 0.0 and d[1] > 0.0
    assert inside.tolist() == [True, True]
    v, ins = surface.query_point([10.0, 10.0, 10.0])
    assert isinstance(v, float) and ins is False
    assert surface.grid_spec is surface.spec
    assert surface.field_grid().shape == surface.spec.shape
    assert set(surface.timings) >= {"solve", "total"}


def test_keyword_overrides_win(small_sphere_cloud):
    P, N = small_sphere_cloud
    s = PoissonSurface.from_points(P, N, config=ReconConfig(pad=4, interior_cells=16),
                                   interior_cells=10, verbose=False)
    assert s.config.interior_cells == 10 and s.config.pad == 4
    max_extent = float((P.max(axis=0) - P.min(axis=0)).max())
    assert s.spec.h == pytest.approx(max_extent / 18.0)


def test_save_dense_and_reload(surface, tmp_path):
    _, _, npy, meta = surface.save_dense(tmp_path / "sphere", png=False)
    with open(meta, encoding="utf-8") as f:
        m = json.load(f)
    assert m["pad"] == 4 and m["interior_cells"] == 16 and m["solver"] == "cg"
    back = PoissonSurface.from_prefix(tmp_path / "sphere", verbose=False)
    assert np.array_equal(back.field, surface.field)
    assert back.sigma == pytest.approx(surface.sigma)
    assert back.config.pad == 4 and back.config.interior_cells == 16 and back.config.solver == "cg"

    _, _, _, meta2 = back.save_dense(tmp_path / "again", png=False)
    with open(meta2, encoding="utf-8") as f:
        m2 = json.load(f)
    assert (m2["pad"], m2["interior_cells"], m2["solver"]) == (4, 16, "cg")
    p = [0.25, -0.05, 0.32]
    assert back.query_point(p)[0] == pytest.approx(surface.query_point(p)[0])


def test_save_obj(surface, tmp_path):
    path = surface.save_obj(tmp_path / "sphere.obj")
    lines = open(path, encoding="utf-8").read().splitlines()
    assert any(l.startswith("v ") for l in lines)
    assert any(l.startswith("f ") for l in lines)


def test_field_length_mismatch(surface):
    with pytest.raises(ValueError):
        PoissonSurface(np.zeros(5), surface.spec)


def test_cli_build_then_query(tmp_path, capsys):
    P, N = fibonacci_sphere(800, radius=1.0)
    pwn = tmp_path / "sphere.pwn"
    with open(pwn, "w", encoding="utf-8") as f:
        f.write(f"{len(P)}\n")
        for p, n in zip(P, N):
            f.write(" ".join(f"{x:.9g}" for x in (*p, *n)) + "\n")

    out = tmp_path / "out" / "sphere"
    rc = _cli(["build", "--input", str(pwn), "--out", str(out), "--obj_out", str(tmp_path / "sphere.obj"),
               "--pad", "4", "--interior_cells", "12", "--no_png", "--quiet"])
    assert rc == 0
    summary = json.loads(capsys.readouterr().out)
    assert max(summary["grid_shape"]) in (28, 29)
    assert summary["faces"] > 0
    assert "isosurface_png" not in summary

    rc = _cli(["query", "--prefix", str(out)], stdin=io.StringIO("0 0 0\n3 0 0\n\n"))
    assert rc == 0
    res = json.loads(capsys.readouterr().out)
    assert res["value"][0] < 0.0 < res["value"][1]
    assert res["inside"] == [True, False]


def test_cli_rejects_unknown_solver(tmp_path):
    with pytest.raises(SystemExit):
        _cli(["build", "--input", "x.pwn", "--out", str(tmp_path / "o"), "--solver", "lu"])


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("PSR_PAD", "2")
    monkeypatch.setenv("PSR_SOLVER", "bicgstab")
    monkeypatch.setenv("PSR_MAXITER", "77")
    cfg = ReconConfig.from_env()
    assert cfg.pad == 2.0 and cfg.solver == "bicgstab" and cfg.maxiter == 77


def test_config_replace_and_validate():
    cfg = ReconConfig(pad=4, interior_cells=16)
    assert cfg.replace(pad=None, solver=None) == cfg
    assert cfg.replace(pad=1).pad == 1
    assert cfg.validate() is cfg
    for bad in (dict(pad=-1), dict(pad=0), dict(pad=0.5), dict(interior_cells=0), dict(min_dim=2),
                dict(solver="lu"), dict(rtol=0.0), dict(maxiter=0)):
        with pytest.raises(ValueError):
            cfg.replace(**bad).validate()


def test_read_points_skips_blanks_and_rejects_malformed_lines():
    pts = _read_points(io.StringIO("0 0 0\n\n# comment\n1 2 3  # tail\n"))
    assert pts == [[0.0, 0.0, 0.0], [1.0, 2.0, 3.0]]
    with pytest.raises(InvalidInputError, match="stdin:2"):
        _read_points(io.StringIO("0 0 0\n1 2\n"))
    with pytest.raises(InvalidInputError, match="stdin:1"):
        _read_points(io.StringIO("1 two 3\n"))
