"""
Pytest configuration and shared fixtures for recovery tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from recoveryIGA.discretization.basis_function import BasisFunction
from recoveryIGA.discretization.knot_vector import KnotVector
from recoveryIGA.discretization.mesh import (
    SplineMesh, build_mesh_from_knot_vectors, make_rectangle_mesh, make_unit_square_mesh
)


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for results of linear solves."""
    return 1e-8


@pytest.fixture
def bilinear_element_mesh():
    """Single bilinear element on [0,1]² (4 basis functions)."""
    return make_unit_square_mesh(p=1, n_elem_xi=1, n_elem_eta=1)


@pytest.fixture
def quadratic_mesh():
    """Biquadratic 4x4 mesh of the unit square (identity geometry)."""
    return make_unit_square_mesh(p=2, n_elem_xi=4, n_elem_eta=4)


@pytest.fixture
def rectangle_mesh():
    """Biquadratic 3x2 mesh of [0,2]x[0,1] (affine geometry)."""
    return make_rectangle_mesh((0.0, 2.0), (0.0, 1.0), p=2, n_elem_xi=3, n_elem_eta=2)


@pytest.fixture
def distorted_mesh():
    """Biquadratic 2x2 mesh with a curved, non-affine geometry."""
    kv = KnotVector(np.array([0, 0, 0, 0.5, 1, 1, 1]), degree=2)
    g = kv.greville_abscissae()
    GX, GY = np.meshgrid(g, g)
    X = GX + 0.1 * GY * (1.0 - GY)
    Y = GY + 0.05 * GX
    return build_mesh_from_knot_vectors(kv, kv, np.column_stack([X.ravel(), Y.ravel()]))


@pytest.fixture
def refined_basis():
    """
    Biquadratic basis on [0,1]² refined in xi along the bottom row only.

    The bottom eta function (support eta in [0, 0.5]) carries the xi knots
    [0,0,0,0.5,1,1,1] (4 functions), the three upper eta functions carry
    [0,0,0,1,1,1] (3 functions each): 13 functions, ids row by row, each
    with its Greville point as control point (identity geometry).
    """
    kv_eta = kv_fine = KnotVector(np.array([0, 0, 0, 0.5, 1, 1, 1]), degree=2)
    kv_coarse = KnotVector(np.array([0, 0, 0, 1, 1, 1]), degree=2)

    basis = []
    for j in range(kv_eta.n_basis):
        kv_xi = kv_fine if j == 0 else kv_coarse
        for i in range(kv_xi.n_basis):
            knots_xi = kv_xi.local_knots(i)
            knots_eta = kv_eta.local_knots(j)
            anchor = [np.mean(knots_xi[1:-1]), np.mean(knots_eta[1:-1])]
            basis.append(BasisFunction(id=len(basis), knots_xi=knots_xi,
                                       knots_eta=knots_eta, coordinates=anchor,
                                       level=1 if j == 0 else 0))
    return basis


@pytest.fixture
def refined_mesh(refined_basis):
    """Locally refined mesh of the refined basis on the 2x2 knot-line grid."""
    return SplineMesh(refined_basis)
