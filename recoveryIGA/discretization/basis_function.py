"""
Basis function abstraction for locally refined splines.

In an unstructured (LR / hierarchical) spline space there is no global
knot vector. Each basis function carries:
- Its own local knot vectors, one per parametric direction
- A geometry control point (physical coordinates) and NURBS weight
- An LR scaling factor gamma, so that the scaled functions form a
  partition of unity after knot insertion
- A field coefficient vector (the control point value of a scalar/vector field)
- Knowledge of the elements it is non-zero on (bidirectional linking)

The anchor of a basis function is its Greville point: the average of its
interior local knots in each direction.

Key invariant (must always hold):
    basis_id in element.basis_ids  <=>  element.id in basis_function.supported_elements
"""

import numpy as np
from typing import Set, Tuple, Optional
from dataclasses import dataclass, field


@dataclass
class BasisFunction:
    """
    Tensor-product B-spline basis function with local knot vectors.

    Attributes:
        id: Unique identifier (index into the mesh's basis arena)
        knots_xi: Local knot vector in xi, length p_xi + 2
        knots_eta: Local knot vector in eta, length p_eta + 2
        coordinates: Physical coordinates of the geometry control point
        weight: NURBS weight (1.0 for polynomial B-splines)
        scaling: LR scaling factor gamma multiplying the B-spline
        coefficients: Field control point values, one per field component
        level: Refinement level (0 = coarsest)
        supported_elements: Ids of elements where this function is non-zero
    """
    id: int
    knots_xi: np.ndarray
    knots_eta: np.ndarray
    coordinates: np.ndarray
    weight: float = 1.0
    scaling: float = 1.0
    coefficients: Optional[np.ndarray] = None
    level: int = 0
    supported_elements: Set[int] = field(default_factory=set)

    def __post_init__(self):
        self.knots_xi = np.asarray(self.knots_xi, dtype=np.float64)
        self.knots_eta = np.asarray(self.knots_eta, dtype=np.float64)
        self.coordinates = np.asarray(self.coordinates, dtype=np.float64)
        if self.coefficients is None:
            self.coefficients = np.zeros(0)
        else:
            self.coefficients = np.atleast_1d(np.asarray(self.coefficients, dtype=np.float64))
        if not isinstance(self.supported_elements, set):
            self.supported_elements = set(self.supported_elements)

        for name, knots in (("xi", self.knots_xi), ("eta", self.knots_eta)):
            if len(knots) < 3:
                raise ValueError(
                    f"Basis function {self.id}: local {name} knot vector needs at least "
                    f"3 knots (degree >= 1), got {len(knots)}")
            if np.any(np.diff(knots) < 0):
                raise ValueError(
                    f"Basis function {self.id}: local {name} knot vector must be non-decreasing")
            if knots[-1] <= knots[0]:
                raise ValueError(
                    f"Basis function {self.id}: local {name} knot vector has empty support")
        if not self.scaling > 0.0:
            raise ValueError(
                f"Basis function {self.id}: scaling must be positive, got {self.scaling}")

    @property
    def degrees(self) -> Tuple[int, int]:
        """Polynomial degrees (p_xi, p_eta)."""
        return (len(self.knots_xi) - 2, len(self.knots_eta) - 2)

    @property
    def orders(self) -> Tuple[int, int]:
        """Spline orders (p_xi + 1, p_eta + 1)."""
        return (len(self.knots_xi) - 1, len(self.knots_eta) - 1)

    @property
    def greville(self) -> Tuple[float, float]:
        """Anchor (Greville) parameter point."""
        return (float(np.mean(self.knots_xi[1:-1])),
                float(np.mean(self.knots_eta[1:-1])))

    @property
    def support_bounds(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Parametric bounding box of the support."""
        return ((self.knots_xi[0], self.knots_xi[-1]),
                (self.knots_eta[0], self.knots_eta[-1]))

    @property
    def n_components(self) -> int:
        """Number of field components stored in coefficients."""
        return len(self.coefficients)

    def is_rational(self, tol: float = 1e-14) -> bool:
        """True if the NURBS weight differs from 1."""
        return abs(self.weight - 1.0) > tol

    def overlaps(self, bounds: Tuple[Tuple[float, float], ...]) -> bool:
        """
        Check if the support overlaps a parametric box.

        Non-degenerate boxes must overlap with positive measure; for a
        collapsed box (zero width in some direction) touching counts.
        """
        for (s_lo, s_hi), (b_lo, b_hi) in zip(self.support_bounds, bounds):
            if b_hi > b_lo:
                if not (s_lo < b_hi and s_hi > b_lo):
                    return False
            elif not (s_lo <= b_lo <= s_hi):
                return False
        return True

    def add_element(self, element_id: int) -> None:
        """Register that this basis function is non-zero on an element."""
        self.supported_elements.add(element_id)

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, BasisFunction):
            return self.id == other.id
        return False

    def __repr__(self) -> str:
        return (f"BasisFunction(id={self.id}, degrees={self.degrees}, "
                f"greville={self.greville}, w={self.weight}, gamma={self.scaling}, "
                f"level={self.level}, n_elements={len(self.supported_elements)})")
