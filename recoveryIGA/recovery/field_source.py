"""
Raw field sources: the single capability the recovery engine consumes.

A raw field source evaluates a (possibly discontinuous) secondary field at
arbitrary parameter points of a mesh and reports:
- n_components: number of field components
- derivative_order: number of derivatives of the primary solution the
  field consumes (drives the SPR patch size and superconvergent points)

Concrete sources:
- FunctionFieldSource: analytic function of physical coordinates
- SplineFieldSource: a spline field on the mesh itself (m = 0)
- GradientFieldSource: physical gradient of a primary spline solution (m = 1)

Any constitutive model or post-processed quantity can implement
RawFieldSource without the engine depending on its internals.
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..discretization.mesh import SplineMesh
from ..exceptions import FieldEvaluationError, RecoveryError, SizeMismatchError
from ..geometry.mapping import eval_geometry_from_basis, physical_derivatives
from .sampling import SampleBatch

logger = logging.getLogger(__name__)


class RawFieldSource(ABC):
    """Abstract raw field evaluator."""

    @property
    @abstractmethod
    def n_components(self) -> int:
        """Number of field components."""
        pass

    @property
    @abstractmethod
    def derivative_order(self) -> int:
        """Derivative order of the primary solution consumed by the field."""
        pass

    @abstractmethod
    def evaluate(self, mesh: SplineMesh, params: np.ndarray,
                 element_id: Optional[int] = None) -> np.ndarray:
        """
        Evaluate the raw field at parameter points.

        Parameters:
            mesh: Mesh the parameters refer to
            params: Parameter points, shape (n, 2)
            element_id: Element containing all points, searched if None

        Returns:
            Component-major values, shape (n_components, n)
        """
        pass


class FunctionFieldSource(RawFieldSource):
    """
    Raw field given by a function of physical coordinates.

    Example:
        source = FunctionFieldSource(lambda x, y: np.sin(x) * y)
        stress = FunctionFieldSource(lambda x, y: (x, y, x * y), n_components=3,
                                     derivative_order=1)
    """

    def __init__(self, func: Callable, n_components: int = 1,
                 derivative_order: int = 0):
        """
        Parameters:
            func: f(x, y) returning a scalar or a sequence of n_components values
            n_components: Number of field components
            derivative_order: Derivative order m reported to SPR
        """
        if n_components < 1:
            raise ValueError(f"n_components must be >= 1, got {n_components}")
        if derivative_order < 0:
            raise ValueError(f"derivative_order must be >= 0, got {derivative_order}")
        self.func = func
        self._n_components = n_components
        self._derivative_order = derivative_order

    @property
    def n_components(self) -> int:
        return self._n_components

    @property
    def derivative_order(self) -> int:
        return self._derivative_order

    def evaluate(self, mesh: SplineMesh, params: np.ndarray,
                 element_id: Optional[int] = None) -> np.ndarray:
        params = np.atleast_2d(params)
        values = np.zeros((self._n_components, len(params)))
        for k, xi in enumerate(params):
            x = mesh.eval_point(xi, element_id)
            values[:, k] = np.ravel(self.func(*x[:2]))
        return values


class SplineFieldSource(RawFieldSource):
    """
    Raw field given by spline coefficients on the mesh itself.

    Recovering this field reproduces it exactly, which makes it the natural
    input for round-trip checks.
    """

    def __init__(self, coefficients: np.ndarray):
        """
        Parameters:
            coefficients: Control point values, shape (n_components, n_basis)
                          or (n_basis,) for a scalar field
        """
        self.coefficients = np.atleast_2d(np.asarray(coefficients, dtype=np.float64))

    @property
    def n_components(self) -> int:
        return self.coefficients.shape[0]

    @property
    def derivative_order(self) -> int:
        return 0

    def evaluate(self, mesh: SplineMesh, params: np.ndarray,
                 element_id: Optional[int] = None) -> np.ndarray:
        if self.coefficients.shape[1] != mesh.n_basis:
            raise SizeMismatchError("Spline field does not match mesh",
                                    {"coefficients": self.coefficients.shape[1],
                                     "nBasis": mesh.n_basis})
        params = np.atleast_2d(params)
        return np.column_stack([
            mesh.eval_field(xi, self.coefficients, element_id) for xi in params
        ])


class GradientFieldSource(RawFieldSource):
    """
    Physical gradient of a primary spline solution u = sum_i u_i N_i.

    This is the canonical secondary field: C^(p-1) across element boundaries
    and superconvergent at the reduced Gauss points. With scale=-k it is the
    heat flux of a conduction problem.

    Components: [scale * du/dx, scale * du/dy]
    """

    def __init__(self, solution: np.ndarray, scale: float = 1.0):
        """
        Parameters:
            solution: Primary solution coefficients, shape (n_basis,)
            scale: Factor applied to the gradient (material coefficient)
        """
        self.solution = np.asarray(solution, dtype=np.float64).ravel()
        self.scale = scale

    @property
    def n_components(self) -> int:
        return 2

    @property
    def derivative_order(self) -> int:
        return 1

    def evaluate(self, mesh: SplineMesh, params: np.ndarray,
                 element_id: Optional[int] = None) -> np.ndarray:
        if len(self.solution) != mesh.n_basis:
            raise SizeMismatchError("Primary solution does not match mesh",
                                    {"solution": len(self.solution),
                                     "nBasis": mesh.n_basis})
        if mesh.n_dim_physical != 2:
            raise FieldEvaluationError(
                f"Gradient needs a planar geometry, got {mesh.n_dim_physical}D")

        control_points = mesh.control_points_array
        params = np.atleast_2d(params)
        values = np.zeros((2, len(params)))
        for k, xi in enumerate(params):
            basis_ids, N = mesh.eval_basis(xi, element_id, n_ders=1)
            _, jacobian, _ = eval_geometry_from_basis(N, control_points[basis_ids])
            dN_dx, dN_dy = physical_derivatives(N[1], N[2], jacobian)
            u_local = self.solution[basis_ids]
            values[:, k] = self.scale * np.array([dN_dx @ u_local, dN_dy @ u_local])
        return values


def evaluate_field(source: RawFieldSource, mesh: SplineMesh,
                   batch: SampleBatch) -> np.ndarray:
    """
    Evaluate a raw field source on a batch and validate the result.

    Returns:
        Values of shape (n_components, len(batch))

    Raises:
        FieldEvaluationError: The source failed, returned the wrong shape,
                              or produced non-finite values
    """
    try:
        values = source.evaluate(mesh, batch.params, batch.element_id)
    except RecoveryError:
        raise
    except (ValueError, TypeError, ArithmeticError, LookupError, RuntimeError) as exc:
        where = "" if batch.element_id is None else f" of element {batch.element_id}"
        raise FieldEvaluationError(
            f"Raw field evaluation failed on {len(batch)} points{where}: {exc}") from exc

    values = np.asarray(values, dtype=np.float64)
    expected = (source.n_components, len(batch))
    if values.shape != expected:
        raise FieldEvaluationError(
            f"Raw field returned shape {values.shape}, expected {expected}")
    if not np.all(np.isfinite(values)):
        bad = int(np.flatnonzero(~np.all(np.isfinite(values), axis=0))[0])
        raise FieldEvaluationError(
            f"Raw field is undefined at parameter point {tuple(batch.params[bad])}")
    return values
