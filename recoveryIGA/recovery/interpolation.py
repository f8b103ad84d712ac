"""
Exact collocation interpolation and Greville-point projection.

Collocation solves one dense square system

    A[i, j] = N_j(u_i, v_i),    A X = values^T

for all field components at once, so that the resulting spline passes
exactly through the given values at the given parameter points. It is the
last step of SPR and of Greville projection.

The number of points, the number of value columns and the number of basis
functions must agree. Mismatches fail with every size in the message.
"""

import logging
import numpy as np

from ..discretization.mesh import SplineMesh
from ..exceptions import SizeMismatchError
from .base import require_polynomial_basis, solve_dense
from .field import ProjectedField
from .field_source import RawFieldSource, evaluate_field
from .sampling import greville_sample_batch

logger = logging.getLogger(__name__)


def collocation_matrix(mesh: SplineMesh, params: np.ndarray) -> np.ndarray:
    """
    Dense collocation matrix A[i, j] = N_j(params[i]).

    Parameters:
        mesh: Spline mesh
        params: Parameter points, shape (n_points, 2)

    Returns:
        Array of shape (n_points, n_basis)
    """
    A = np.zeros((len(params), mesh.n_basis))
    for i, xi in enumerate(params):
        basis_ids, N = mesh.eval_basis(xi)
        A[i, basis_ids] = N[0]
    return A


def regular_interpolation(mesh: SplineMesh,
                          upar: np.ndarray,
                          vpar: np.ndarray,
                          values: np.ndarray) -> ProjectedField:
    """
    Interpolate values at parameter points exactly.

    Parameters:
        mesh: Spline mesh (polynomial basis)
        upar: First parameter of each point, shape (n,)
        vpar: Second parameter of each point, shape (n,)
        values: Component-major values, shape (n_components, n)

    Returns:
        ProjectedField with coefficients of shape (n_components, n_basis)

    Raises:
        UnsupportedBasisError: Rational mesh
        SizeMismatchError: Point, value and basis counts disagree
        SolverError: Singular collocation matrix
    """
    require_polynomial_basis(mesh)

    upar = np.ravel(np.asarray(upar, dtype=np.float64))
    vpar = np.ravel(np.asarray(vpar, dtype=np.float64))
    values = np.atleast_2d(np.asarray(values, dtype=np.float64))

    n = len(upar)
    if len(vpar) != n or values.shape[1] != n or mesh.n_basis != n:
        raise SizeMismatchError(
            "Collocation needs one point and one value column per basis function",
            {"upar": len(upar), "vpar": len(vpar), "points": values.shape[1],
             "nBasis": mesh.n_basis})

    params = np.column_stack([upar, vpar])
    A = collocation_matrix(mesh, params)
    X = solve_dense(A, values.T, stage="collocation")

    logger.debug("Collocation: %d points, %d components", n, values.shape[0])
    return ProjectedField(coefficients=X.T, mesh=mesh, method="collocation")


def project_greville(mesh: SplineMesh, source: RawFieldSource) -> ProjectedField:
    """
    Project a raw field by sampling it at the Greville points and interpolating.

    Raises:
        UnsupportedBasisError: Rational mesh (before any sampling)
        FieldEvaluationError: Raw field undefined at an anchor
    """
    require_polynomial_basis(mesh)

    batch = greville_sample_batch(mesh)
    values = evaluate_field(source, mesh, batch)
    field = regular_interpolation(mesh, batch.params[:, 0], batch.params[:, 1], values)
    field.method = "greville"

    logger.info("Greville projection: %d basis functions, %d components",
                mesh.n_basis, source.n_components)
    return field
