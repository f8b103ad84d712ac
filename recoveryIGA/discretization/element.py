"""
Element abstraction for locally refined spline meshes.

An element is a non-zero measure cell of the mesh in parameter space.
Each element:
- Has a parametric domain [xi_min, xi_max] x [eta_min, eta_max]
- Knows the basis functions that are non-zero on it (local -> global map)
- Has a refinement level (for hierarchical/LR meshes)

Elements are immutable during recovery. They live in an arena owned by
the mesh and are referenced by index, never by pointer.

Bidirectional linking invariant:
    basis_id in element.basis_ids  <=>  element.id in basis_functions[basis_id].supported_elements
"""

import numpy as np
from typing import Tuple, List
from dataclasses import dataclass, field


@dataclass
class Element:
    """
    Mesh element with explicit basis function linking.

    Attributes:
        id: Unique element identifier (index into the mesh's element arena)
        parametric_bounds: ((xi_min, xi_max), (eta_min, eta_max))
        basis_ids: Global ids of the basis functions supported on this element,
                   in local ordering
        level: Refinement level (0 = coarsest)
    """
    id: int
    parametric_bounds: Tuple[Tuple[float, float], ...]
    basis_ids: List[int] = field(default_factory=list)
    level: int = 0

    def __post_init__(self):
        self.parametric_bounds = tuple(
            (float(lo), float(hi)) for lo, hi in self.parametric_bounds)

    @property
    def n_dim(self) -> int:
        """Number of parametric dimensions."""
        return len(self.parametric_bounds)

    @property
    def n_local_basis(self) -> int:
        """Number of basis functions supported on this element."""
        return len(self.basis_ids)

    @property
    def sizes(self) -> Tuple[float, ...]:
        """Parametric edge lengths (xi_max - xi_min, ...)."""
        return tuple(hi - lo for lo, hi in self.parametric_bounds)

    def det_jacobian_ref_to_param(self) -> float:
        """
        Determinant of the reference-to-parametric Jacobian.

        The mapping [0,1]^d -> element is affine, so this is the
        parametric area of the element. It is zero for collapsed elements
        and negative whenever any direction is inverted.
        """
        det = 1.0
        for size in self.sizes:
            det *= abs(size)
        return -det if self.is_inverted() else det

    @property
    def parametric_area(self) -> float:
        """Parametric measure of the element."""
        return self.det_jacobian_ref_to_param()

    def is_inverted(self) -> bool:
        """True if the upper bound lies below the lower one in some direction."""
        return any(size < 0.0 for size in self.sizes)

    def is_degenerate(self) -> bool:
        """True if the element has zero parametric measure."""
        return any(size == 0.0 for size in self.sizes)

    def reference_to_parametric(self, t: np.ndarray) -> np.ndarray:
        """
        Map reference coordinates [0,1]^d to parametric coordinates.

        Parameters:
            t: Reference coordinates, shape (d,) or (n, d)

        Returns:
            Parametric coordinates with the same shape
        """
        t = np.asarray(t, dtype=np.float64)
        lo = np.array([b[0] for b in self.parametric_bounds])
        hi = np.array([b[1] for b in self.parametric_bounds])
        return lo + t * (hi - lo)

    def contains(self, xi: Tuple[float, ...],
                 closed_end: Tuple[bool, ...] = None) -> bool:
        """
        Check if a parameter point lies in this element.

        Uses the half-open convention [min, max) per direction, closed on
        the directions flagged in closed_end (end of the parametric domain).
        """
        if closed_end is None:
            closed_end = (False,) * self.n_dim
        for d in range(self.n_dim):
            lo, hi = self.parametric_bounds[d]
            if xi[d] < lo or xi[d] > hi:
                return False
            if xi[d] == hi and not closed_end[d]:
                return False
        return True

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, Element):
            return self.id == other.id
        return False
