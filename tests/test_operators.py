from __future__ import annotations

import numpy as np
import pytest

from cocopsr import GridSpec, fd_grad, fd_interpolate, fd_partial_derivative, node_index, trilinear_query


@pytest.fixture
def spec():
    return GridSpec(corner=[-1.0, 0.5, 2.0], h=0.2, shape=(7, 5, 6))


def _random_inside(spec, n, seed=0):
    rng = np.random.default_rng(seed)
    return spec.bmin + rng.random((n, 3)) * (spec.bmax - spec.bmin)


def test_interpolation_rows_sum_to_one_inside(spec):
    P = _random_inside(spec, 300)
    W = fd_interpolate(spec, P)
    assert W.shape == (300, spec.num_nodes)
    assert np.allclose(np.asarray(W.sum(axis=1)).ravel(), 1.0, atol=1e-12)
    assert np.diff(W.indptr).max() <= 8
    assert W.data.min() >= 0.0


def test_interpolation_reproduces_linear_functions(spec):
    X = spec.node_positions()
    a = np.array([0.7, -1.3, 2.1])
    g = X @ a + 0.4
    P = _random_inside(spec, 100, seed=1)
    assert np.allclose(fd_interpolate(spec, P) @ g, P @ a + 0.4, atol=1e-10)


def test_interpolation_at_node_is_one_hot(spec):
    ind = node_index(3, 2, 4, spec.shape)
    p = spec.node_positions()[ind][None, :]
    W = fd_interpolate(spec, p).toarray()
    assert W[0, ind] == pytest.approx(1.0)
    assert np.count_nonzero(np.abs(W) > 1e-12) == 1


def test_interpolation_clamps_outside_points(spec):
    g = np.random.default_rng(2).standard_normal(spec.num_nodes)
    outside = np.array([[-5.0, 1.0, 2.5], [10.0, 10.0, 10.0], [0.0, -3.0, 2.9]])
    projected = np.clip(outside, spec.bmin, spec.bmax)
    W_out = fd_interpolate(spec, outside)
    assert np.allclose(np.asarray(W_out.sum(axis=1)).ravel(), 1.0)
    assert np.allclose(W_out @ g, fd_interpolate(spec, projected) @ g)
    values, inside = trilinear_query(spec, g, outside)
    assert not inside.any()
    assert np.allclose(values, W_out @ g)


def test_interpolation_works_on_staggered_grids(spec):
    P = _random_inside(spec, 50, seed=3)
    for axis in range(3):
        st = spec.staggered(axis)
        W = fd_interpolate(st, P)
        assert W.shape == (50, st.num_nodes)
        assert np.allclose(np.asarray(W.sum(axis=1)).ravel(), 1.0)


def test_interpolation_requires_two_nodes_per_axis():
    with pytest.raises(ValueError):
        fd_interpolate(GridSpec(corner=[0, 0, 0], h=1.0, shape=(1, 3, 3)), np.zeros((1, 3)))


def test_gradient_shape_and_stencil(spec):
    G = fd_grad(spec)
    nx, ny, nz = spec.shape
    rows = (nx - 1) * ny * nz + nx * (ny - 1) * nz + nx * ny * (nz - 1)
    assert G.shape == (rows, spec.num_nodes)
    assert np.all(np.diff(G.indptr) == 2)
    assert np.allclose(np.sort(np.unique(G.data)), [-1.0 / spec.h, 1.0 / spec.h])


def test_gradient_of_constant_is_exactly_zero(spec):
    G = fd_grad(spec)
    out = G @ np.full(spec.num_nodes, 3.75)
    assert np.array_equal(out, np.zeros(G.shape[0]))


def test_gradient_of_linear_field_matches_blocks(spec):
    a = np.array([2.0, -3.0, 0.5])
    g = spec.node_positions() @ a
    nx, ny, nz = spec.shape
    mx, my = (nx - 1) * ny * nz, nx * (ny - 1) * nz
    d = fd_grad(spec) @ g
    assert np.allclose(d[:mx], a[0])
    assert np.allclose(d[mx:mx + my], a[1])
    assert np.allclose(d[mx + my:], a[2])


def test_partial_derivative_row_order_matches_staggered_index(spec):
    D = fd_partial_derivative(spec, 1)
    st = spec.staggered(1)
    row = node_index(2, 1, 3, st.shape)
    cols = D[row].indices
    vals = D[row].data
    lo = node_index(2, 1, 3, spec.shape)
    hi = node_index(2, 2, 3, spec.shape)
    got = dict(zip(cols.tolist(), vals.tolist()))
    assert got == {lo: pytest.approx(-1.0 / spec.h), hi: pytest.approx(1.0 / spec.h)}
