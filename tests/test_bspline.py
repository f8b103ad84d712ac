"""
Unit tests for B-spline evaluation from local knot vectors.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_almost_equal

from recoveryIGA.discretization.knot_vector import make_open_knot_vector
from recoveryIGA.geometry.bspline import eval_local_basis_ders, eval_tensor_basis


def eval_all(kv, xi, n_ders=0):
    """Evaluate every basis function of a knot vector through its local knots."""
    closed = xi >= kv.domain[1]
    return np.column_stack([
        eval_local_basis_ders(kv.local_knots(i), xi, n_ders, closed)
        for i in range(kv.n_basis)
    ])


class TestBasisEvaluation1D:
    """Tests for 1D B-spline basis evaluation."""

    def test_partition_of_unity(self):
        """Test that basis functions sum to 1 (partition of unity)."""
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))

        # Test at multiple points, including both ends
        for xi in [0.0, 0.25, 0.5, 0.75, 1.0]:
            N = eval_all(kv, xi)[0]
            assert_almost_equal(np.sum(N), 1.0, decimal=14)

    def test_non_negativity(self):
        """Test that basis functions are non-negative."""
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))

        for xi in np.linspace(0, 1, 20):
            N = eval_all(kv, xi)[0]
            assert np.all(N >= -1e-14), f"Negative basis value at xi={xi}"

    def test_boundary_interpolation(self):
        """Test that open knot vector basis interpolates at boundaries."""
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))

        # At left boundary, only first basis function is 1
        N = eval_all(kv, 0.0)[0]
        assert_almost_equal(N[0], 1.0)
        assert_almost_equal(N[1:], 0.0)

        # At right boundary, only last basis function is 1
        N = eval_all(kv, 1.0)[0]
        assert_almost_equal(N[-1], 1.0)
        assert_almost_equal(N[:-1], 0.0)

    def test_local_support(self):
        """Test that exactly p+1 basis functions are non-zero."""
        for p in [1, 2, 3]:
            kv = make_open_knot_vector(n_basis=p + 3, degree=p, domain=(0.0, 1.0))

            for xi in [0.1, 0.4, 0.9]:
                N = eval_all(kv, xi)[0]
                n_nonzero = np.sum(np.abs(N) > 1e-14)
                assert n_nonzero == p + 1, f"Expected {p+1} non-zero, got {n_nonzero}"

    def test_half_open_support(self):
        """A function vanishes at its last knot unless it closes the domain."""
        knots = np.array([0.0, 0.5, 1.0])
        assert eval_local_basis_ders(knots, 1.0)[0] == 0.0
        assert_almost_equal(eval_local_basis_ders(knots, 0.5)[0], 1.0)
        assert eval_local_basis_ders(knots, 1.5)[0] == 0.0

        end_knots = np.array([0.5, 1.0, 1.0])
        assert eval_local_basis_ders(end_knots, 1.0)[0] == 0.0
        assert_almost_equal(eval_local_basis_ders(end_knots, 1.0, closed_end=True)[0], 1.0)

    def test_known_values_degree_1(self):
        """Test known values for linear (p=1) basis."""
        # Linear basis on [0,0,0.5,1,1]: hat functions
        kv = make_open_knot_vector(n_basis=3, degree=1, domain=(0.0, 1.0))

        # At midpoint of first span
        N = eval_all(kv, 0.25)[0]
        assert_array_almost_equal(N, [0.5, 0.5, 0.0])

    def test_known_values_degree_2(self):
        """Test known values for quadratic (p=2) basis."""
        # Quadratic basis on [0,0,0,1,1,1]: single Bezier element
        kv = make_open_knot_vector(n_basis=3, degree=2, domain=(0.0, 1.0))

        # At midpoint: Bernstein polynomials
        N = eval_all(kv, 0.5)[0]
        # B_0 = (1-t)^2 = 0.25, B_1 = 2t(1-t) = 0.5, B_2 = t^2 = 0.25
        assert_almost_equal(N, [0.25, 0.5, 0.25])

    def test_uniform_cubic_peak(self):
        """Uniform cubic B-spline peaks at 2/3 on its central knot."""
        assert_almost_equal(eval_local_basis_ders([0, 1, 2, 3, 4], 2.0)[0], 2.0 / 3.0)


class TestBasisDerivatives1D:
    """Tests for 1D B-spline basis derivatives."""

    def test_derivative_sum_zero(self):
        """Test that derivative of partition of unity is zero."""
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))

        for xi in [0.1, 0.5, 0.9]:
            dN = eval_all(kv, xi, n_ders=1)[1]
            assert_almost_equal(np.sum(dN), 0.0, decimal=12)

    def test_derivative_values(self):
        """Test derivative values against known results."""
        # Single Bezier element (Bernstein)
        kv = make_open_knot_vector(n_basis=3, degree=2, domain=(0.0, 1.0))

        Nders = eval_all(kv, 0.5, n_ders=1)

        # Values
        assert_almost_equal(Nders[0, :], [0.25, 0.5, 0.25])

        # First derivatives of Bernstein:
        # dB_0/dt = -2(1-t) = -1 at t=0.5
        # dB_1/dt = 2(1-2t) = 0 at t=0.5
        # dB_2/dt = 2t = 1 at t=0.5
        assert_almost_equal(Nders[1, :], [-1.0, 0.0, 1.0])

    def test_second_derivative(self):
        """Test second derivative values."""
        kv = make_open_knot_vector(n_basis=3, degree=2, domain=(0.0, 1.0))

        Nders = eval_all(kv, 0.5, n_ders=2)

        # Second derivatives of Bernstein:
        # d²B_0/dt² = 2
        # d²B_1/dt² = -4
        # d²B_2/dt² = 2
        assert_almost_equal(Nders[2, :], [2.0, -4.0, 2.0])

    def test_derivative_finite_difference(self):
        """First derivative agrees with a central difference."""
        knots = np.array([0.0, 0.2, 0.5, 0.6, 1.0])
        h = 1e-6
        for xi in [0.1, 0.3, 0.55, 0.8]:
            d = eval_local_basis_ders(knots, xi, n_ders=1)[1]
            fd = (eval_local_basis_ders(knots, xi + h)[0]
                  - eval_local_basis_ders(knots, xi - h)[0]) / (2 * h)
            assert_almost_equal(d, fd, decimal=6)

    def test_derivative_beyond_degree_is_zero(self):
        """Derivatives of order > p vanish."""
        ders = eval_local_basis_ders([0.0, 0.5, 1.0], 0.25, n_ders=3)
        assert_array_almost_equal(ders[2:], [0.0, 0.0])


class TestTensorProductBasis:
    """Tests for bivariate tensor-product evaluation."""

    def test_product_of_univariate(self):
        """N(xi, eta) = N(xi) N(eta) with matching derivatives."""
        kx = np.array([0.0, 0.5, 1.0, 1.0])
        ke = np.array([0.0, 0.0, 1.0])
        xi = (0.7, 0.4)

        vals = eval_tensor_basis(kx, ke, xi, n_ders=2)
        Nu = eval_local_basis_ders(kx, xi[0], 2)
        Nv = eval_local_basis_ders(ke, xi[1], 2)

        assert vals.shape == (6,)
        assert_array_almost_equal(vals, [Nu[0] * Nv[0], Nu[1] * Nv[0], Nu[0] * Nv[1],
                                         Nu[2] * Nv[0], Nu[1] * Nv[1], Nu[0] * Nv[2]])

    def test_output_sizes(self):
        """Rows for derivative orders 0, 1, 2."""
        k = np.array([0.0, 0.5, 1.0])
        assert eval_tensor_basis(k, k, (0.3, 0.3)).shape == (1,)
        assert eval_tensor_basis(k, k, (0.3, 0.3), n_ders=1).shape == (3,)
        assert eval_tensor_basis(k, k, (0.3, 0.3), n_ders=2).shape == (6,)

    def test_invalid_derivative_order(self):
        """Only derivative orders 0, 1 and 2 are supported."""
        k = np.array([0.0, 0.5, 1.0])
        with pytest.raises(ValueError):
            eval_tensor_basis(k, k, (0.3, 0.3), n_ders=3)
