from __future__ import annotations

import numpy as np
import pytest

from cocopsr import ReconConfig, reconstruct_field


def fibonacci_sphere(n: int, radius: float = 1.0, center=(0.0, 0.0, 0.0)):
    i = np.arange(n, dtype=np.float64) + 0.5
    phi = np.arccos(1.0 - 2.0 * i / n)
    theta = np.pi * (1.0 + 5.0 ** 0.5) * i
    N = np.stack([np.cos(theta) * np.sin(phi), np.sin(theta) * np.sin(phi), np.cos(phi)], axis=1)
    P = np.asarray(center, dtype=np.float64)[None, :] + radius * N
    return P, N


def cube_corners():
    P = np.array([[x, y, z] for z in (0.0, 1.0) for y in (0.0, 1.0) for x in (0.0, 1.0)])
    N = P - 0.5
    N /= np.linalg.norm(N, axis=1, keepdims=True)
    return P, N


@pytest.fixture(scope="session")
def sphere_cloud():
    return fibonacci_sphere(4000)


@pytest.fixture(scope="session")
def sphere_result(sphere_cloud):
    P, N = sphere_cloud
    return reconstruct_field(P, N, config=ReconConfig(solver="cg", rtol=1e-8, maxiter=5000))


@pytest.fixture(scope="session")
def small_sphere_cloud():
    return fibonacci_sphere(1500, radius=0.5, center=(0.2, -0.1, 0.3))


@pytest.fixture
def small_config():
    return ReconConfig(pad=4, interior_cells=16, solver="cg", rtol=1e-8, maxiter=5000)
