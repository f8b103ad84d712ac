"""
Parametric sampling: turn mesh topology into ordered batches of parameter points.

Two kinds of batches are produced:
- Anchor batches: one Greville point per basis function, no weights
  (input to exact collocation)
- Element batches: tensor Gauss points mapped into one element, with
  weights = Gauss weight * parametric area (input to L2 projection and SPR)

All tensor grids are ordered with the first parametric direction running
fastest.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from ..discretization.element import Element
from ..discretization.mesh import SplineMesh
from ..quadrature.gauss import GaussQuadrature


@dataclass
class SampleBatch:
    """
    Ordered parameter points, optionally with integration weights.

    Attributes:
        params: Parameter points, shape (n, 2)
        weights: Integration weights, shape (n,), None for interpolation points
        element_id: Element owning all points, None if mixed
    """
    params: np.ndarray
    weights: Optional[np.ndarray] = None
    element_id: Optional[int] = None

    def __post_init__(self):
        self.params = np.atleast_2d(np.asarray(self.params, dtype=np.float64))
        if self.weights is not None:
            self.weights = np.asarray(self.weights, dtype=np.float64)
            if self.weights.shape != (len(self.params),):
                raise ValueError(
                    f"Expected {len(self.params)} weights, got shape {self.weights.shape}")

    def __len__(self) -> int:
        return len(self.params)


def greville_sample_batch(mesh: SplineMesh) -> SampleBatch:
    """One anchor point per basis function, in basis id order."""
    return SampleBatch(params=mesh.greville_parameters())


def element_sample_batch(element: Element, quadrature: GaussQuadrature) -> SampleBatch:
    """
    Map a reference Gauss rule into an element.

    The weights include the reference-to-parametric Jacobian (the
    parametric area) but not the geometric Jacobian.
    """
    params = element.reference_to_parametric(quadrature.points)
    weights = quadrature.weights * element.det_jacobian_ref_to_param()
    return SampleBatch(params=params, weights=weights, element_id=element.id)
