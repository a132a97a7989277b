from __future__ import annotations

import numpy as np

from cocopsr import GridSpec, extract_zero_isosurface
from cocopsr.isosurface import save_timings_pie, visualize_zero_isosurface


def test_plane_follows_node_index_order():
    spec = GridSpec(corner=[0.0, -0.5, 1.0], h=0.1, shape=(11, 6, 4))
    X = spec.node_positions()
    g = X[:, 0] - 0.55
    V, F = extract_zero_isosurface(g, spec)
    assert F.shape[0] > 0
    assert np.allclose(V[:, 0], 0.55, atol=1e-5)
    assert V[:, 1].min() >= spec.bmin[1] - 1e-5 and V[:, 1].max() <= spec.bmax[1] + 1e-5
    assert V[:, 2].min() >= spec.bmin[2] - 1e-5 and V[:, 2].max() <= spec.bmax[2] + 1e-5


def test_no_sign_change_gives_empty_mesh():
    spec = GridSpec(corner=[0.0, 0.0, 0.0], h=1.0, shape=(4, 4, 4))
    for g in (np.ones(spec.num_nodes), -np.ones(spec.num_nodes), np.zeros(spec.num_nodes)):
        V, F = extract_zero_isosurface(g, spec)
        assert V.shape == (0, 3) and F.shape == (0, 3)


def test_matplotlib_previews(tmp_path):
    spec = GridSpec(corner=[-1.0, -1.0, -1.0], h=0.25, shape=(9, 9, 9))
    X = spec.node_positions()
    g = np.linalg.norm(X, axis=1) - 0.6
    png = visualize_zero_isosurface(g, spec, out_path=str(tmp_path / "iso.png"))
    assert (tmp_path / "iso.png").exists() and png.endswith("iso.png")
    save_timings_pie({"a": 1.0, "b": 2.0, "total": 3.0}, str(tmp_path / "sub" / "pie.png"))
    assert (tmp_path / "sub" / "pie.png").exists()
