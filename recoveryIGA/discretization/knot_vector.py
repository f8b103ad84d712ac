"""
Global knot vectors used to seed tensor-product spline meshes.

A locally refined mesh never stores a global knot vector: every basis
function owns its p+2 local knots per direction. A KnotVector is only the
source those local knots are cut from when a mesh starts out as a plain
tensor-product B-spline patch:

    basis function i  <->  knots[i], ..., knots[i + p + 1]

Its Greville abscissa (the anchor used by collocation and SPR) is the mean
of the p interior local knots.
"""

import numpy as np
from typing import Tuple
from dataclasses import dataclass


@dataclass
class KnotVector:
    """
    Univariate knot vector of degree p.

    Attributes:
        knots: Non-decreasing knot values, at least 2(p+1) of them
        degree: Polynomial degree p >= 1
    """
    knots: np.ndarray
    degree: int

    def __post_init__(self):
        self.knots = np.asarray(self.knots, dtype=np.float64)
        if self.degree < 1:
            raise ValueError(f"Degree must be at least 1, got {self.degree}.")
        if len(self.knots) < 2 * (self.degree + 1):
            raise ValueError(
                f"Need at least {2 * (self.degree + 1)} knots for degree "
                f"{self.degree}, got {len(self.knots)}.")
        if np.any(np.diff(self.knots) < 0):
            raise ValueError("Knot vector must be non-decreasing.")

    @property
    def order(self) -> int:
        return self.degree + 1

    @property
    def n_basis(self) -> int:
        """Number of basis functions cut from this vector."""
        return len(self.knots) - self.degree - 1

    @property
    def breakpoints(self) -> np.ndarray:
        """Distinct knot values, i.e. the element boundaries."""
        return np.unique(self.knots)

    @property
    def domain(self) -> Tuple[float, float]:
        return (float(self.knots[0]), float(self.knots[-1]))

    def local_knots(self, basis_idx: int) -> np.ndarray:
        """
        Local knot vector (p+2 knots) of basis function basis_idx, as a copy.

        Raises IndexError for an index outside [0, n_basis).
        """
        if not 0 <= basis_idx < self.n_basis:
            raise IndexError(f"Basis index {basis_idx} out of range [0, {self.n_basis})")
        return self.knots[basis_idx:basis_idx + self.degree + 2].copy()

    def greville_abscissae(self) -> np.ndarray:
        """Anchor parameter of every basis function, shape (n_basis,)."""
        return np.array([np.mean(self.local_knots(i)[1:-1])
                         for i in range(self.n_basis)])


def make_open_knot_vector(n_basis: int, degree: int,
                          domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """
    Open (clamped) knot vector with uniformly spaced interior knots.

    Parameters:
        n_basis: Number of basis functions, at least degree + 1
        degree: Polynomial degree p
        domain: Parametric interval (start, end)
    """
    n_interior = n_basis - degree - 1
    if n_interior < 0:
        raise ValueError(
            f"Cannot create knot vector: n_basis={n_basis} too small for degree={degree}")

    start, end = domain
    interior = np.linspace(start, end, n_interior + 2)[1:-1]
    knots = np.concatenate([np.full(degree + 1, start), interior,
                            np.full(degree + 1, end)])
    return KnotVector(knots, degree)
