"""
Projected field: the output of every recovery strategy.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from ..discretization.mesh import SplineMesh
from ..exceptions import SizeMismatchError


@dataclass
class ProjectedField:
    """
    Recovered spline field on a mesh.

    Attributes:
        coefficients: Control point values, shape (n_components, n_basis)
        mesh: Mesh whose basis the coefficients refer to (not modified)
        method: Name of the strategy that produced the field
    """
    coefficients: np.ndarray
    mesh: SplineMesh
    method: Optional[str] = None

    def __post_init__(self):
        self.coefficients = np.atleast_2d(np.asarray(self.coefficients, dtype=np.float64))
        if self.coefficients.shape[1] != self.mesh.n_basis:
            raise SizeMismatchError("Coefficient table does not match mesh",
                                    {"columns": self.coefficients.shape[1],
                                     "nBasis": self.mesh.n_basis})

    @property
    def n_components(self) -> int:
        return self.coefficients.shape[0]

    @property
    def n_basis(self) -> int:
        return self.coefficients.shape[1]

    def evaluate(self, xi: Tuple[float, float],
                 element_id: Optional[int] = None) -> np.ndarray:
        """Field values at a parameter point, shape (n_components,)."""
        return self.mesh.eval_field(xi, self.coefficients, element_id)

    def evaluate_many(self, params: np.ndarray) -> np.ndarray:
        """Field values at many parameter points, shape (n_components, n)."""
        params = np.atleast_2d(params)
        return np.column_stack([self.evaluate(xi) for xi in params])

    def to_mesh(self) -> SplineMesh:
        """Copy of the mesh with the recovered values as control point values."""
        return self.mesh.copy_with_coefficients(self.coefficients)
