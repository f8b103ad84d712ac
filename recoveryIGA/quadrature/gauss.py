"""
Gauss-Legendre quadrature for numerical integration and superconvergent sampling.

Gauss quadrature provides optimal polynomial integration:
n points integrate exactly polynomials up to degree 2n-1.

The same points serve two purposes in recovery:
- Integration points for the continuous L2 projection (with weights)
- Sampling points for discrete L2 and SPR, where the reduced rule with
  (order - m) points gives superconvergent derivative values

The reference domain is [0, 1]. Standard Gauss points on [-1, 1] are mapped
accordingly, so the weights sum to 1 and the element Jacobian is simply
its parametric area.

Usage:
    points, weights = gauss_legendre_1d(n)  # 1D quadrature on [0,1]
    points, weights = gauss_legendre_2d(n_xi, n_eta)  # 2D tensor-product
"""

import numpy as np
from typing import Tuple
from functools import lru_cache

from ..exceptions import QuadratureError


@lru_cache(maxsize=16)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre quadrature points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points

    Returns:
        (points, weights) where:
        - points: Array of n quadrature points in [0, 1], ascending
        - weights: Array of n quadrature weights (sum to 1)

    Raises:
        QuadratureError: If no rule exists for n
    """
    if int(n) != n or n < 1:
        raise QuadratureError(f"No Gauss rule with {n} points (need at least 1)")

    points_std, weights_std = np.polynomial.legendre.leggauss(int(n))

    # Map to [0, 1]: x = (xi + 1) / 2, dx = 1/2 * dxi
    points = 0.5 * (points_std + 1.0)
    weights = 0.5 * weights_std

    return points, weights


def expand_tensor_grid(u_values: np.ndarray, v_values: np.ndarray) -> np.ndarray:
    """
    Expand per-direction parameter values into a tensor grid.

    Returns:
        Array of shape (len(u) * len(v), 2), u running fastest
    """
    u_values = np.asarray(u_values, dtype=np.float64)
    v_values = np.asarray(v_values, dtype=np.float64)
    return np.column_stack([np.tile(u_values, len(v_values)),
                            np.repeat(v_values, len(u_values))])


def gauss_legendre_2d(n_xi: int, n_eta: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Tensor-product Gauss-Legendre rule on [0,1]^2, xi running fastest.

    Returns:
        (points, weights) of shapes (n_xi * n_eta, 2) and (n_xi * n_eta,)
    """
    xi_pts, xi_wts = gauss_legendre_1d(n_xi)
    eta_pts, eta_wts = gauss_legendre_1d(n_eta)

    points = expand_tensor_grid(xi_pts, eta_pts)
    weights = np.outer(eta_wts, xi_wts).ravel()
    return points, weights


class GaussQuadrature:
    """
    Tensor-product Gauss rule on the reference element [0,1]^2.

    Used both as an integration rule (continuous L2, error norms) and as a
    set of sampling points (discrete L2, SPR).
    """

    def __init__(self, n_points_per_dir: Tuple[int, int]):
        if len(n_points_per_dir) != 2:
            raise QuadratureError(
                f"Only bivariate rules are supported, got {len(n_points_per_dir)} directions")

        self.points, self.weights = gauss_legendre_2d(*n_points_per_dir)
        self.n_points_per_dir = tuple(int(n) for n in n_points_per_dir)

    @property
    def n_points(self) -> int:
        return len(self.weights)

    @classmethod
    def for_orders(cls, orders: Tuple[int, int], reduction: int = 0) -> 'GaussQuadrature':
        """
        Create a rule with (order - reduction) points per direction.

        reduction=0 integrates the mass matrix exactly; reduction=1 gives the
        discrete L2 sampling points; reduction=m gives the superconvergent
        points for a field consuming m derivatives.

        Parameters:
            orders: Spline orders (degree + 1) in each direction
            reduction: Number of points to drop per direction

        Returns:
            GaussQuadrature instance
        """
        n_pts = tuple(order - reduction for order in orders)
        if min(n_pts) < 1:
            raise QuadratureError(
                f"Orders {tuple(orders)} reduced by {reduction} leave no Gauss points")
        return cls(n_pts)
