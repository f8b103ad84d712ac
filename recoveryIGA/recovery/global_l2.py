"""
Global least-squares (L2) projection of a raw field onto the spline space.

Solves one domain-wide sparse system

    A[i, j] = sum_q N_i(q) N_j(q) w_q
    B[i, c] = sum_q N_i(q) f_c(q) w_q

for all components c at once. Two modes:

- continuous: n_gauss points per direction (default: max spline order),
  w_q = Gauss weight * parametric area * |det J|, the true L2 projection
- discrete: (order - 1) points per direction, w_q = 1, a least-squares fit
  to the reduced Gauss point values

Zero-area elements are skipped in both modes and points with a zero
weight (singular geometric Jacobian) are skipped in continuous mode.
Negative parametric area is a topology error, and fewer contributing
samples than basis functions is a solver error.

The assembly follows the element-by-element triplet scheme:
    for element in mesh.elements:
        # 1. Map the reference Gauss rule into the element
        # 2. Evaluate the raw field on all points of the element
        # 3. Evaluate the local basis (and the Jacobian) per point
        # 4. Append N N^T w to the triplets, add N f^T w to B
"""

import logging
import numpy as np
from scipy import sparse
from typing import Optional

from ..discretization.mesh import SplineMesh
from ..exceptions import QuadratureError, SolverError, TopologyError
from ..quadrature.gauss import GaussQuadrature
from ..geometry.mapping import eval_geometry_from_basis
from .base import require_polynomial_basis, solve_sparse
from .field import ProjectedField
from .field_source import RawFieldSource, evaluate_field
from .sampling import element_sample_batch

logger = logging.getLogger(__name__)


def select_quadrature(mesh: SplineMesh, continuous: bool,
                      n_gauss: Optional[int] = None) -> GaussQuadrature:
    """
    Quadrature rule used by the global projection.

    Parameters:
        mesh: Spline mesh
        continuous: True for weighted L2, False for the discrete fit
        n_gauss: Points per direction in continuous mode, defaults to max order

    Raises:
        QuadratureError: No rule with the requested number of points
    """
    if not continuous:
        return GaussQuadrature.for_orders(mesh.orders, reduction=1)

    if n_gauss is None:
        n_gauss = max(mesh.orders)
    if isinstance(n_gauss, bool) or int(n_gauss) != n_gauss or n_gauss < 1:
        raise QuadratureError(f"No Gauss rule with {n_gauss} points per direction")
    return GaussQuadrature((n_gauss, n_gauss))


def global_l2_projection(mesh: SplineMesh,
                         source: RawFieldSource,
                         continuous: bool = True,
                         n_gauss: Optional[int] = None) -> ProjectedField:
    """
    Project a raw field onto the spline space by global least squares.

    Parameters:
        mesh: Spline mesh (polynomial basis)
        source: Raw field source
        continuous: Weighted (True) or discrete (False) projection
        n_gauss: Gauss points per direction in continuous mode

    Returns:
        ProjectedField with coefficients of shape (n_components, n_basis)

    Raises:
        UnsupportedBasisError: Rational mesh (before any sampling)
        TopologyError: Element with negative parametric area
        QuadratureError: Invalid quadrature order
        FieldEvaluationError: Raw field undefined at some point
        SolverError: Fewer samples than basis functions, or a singular or
                     ill-conditioned global system
    """
    require_polynomial_basis(mesh)
    quadrature = select_quadrature(mesh, continuous, n_gauss)

    n_basis = mesh.n_basis
    n_comp = source.n_components
    control_points = mesh.control_points_array
    n_ders = 1 if continuous else 0

    # Sparse triplets and dense right-hand sides
    row_indices = []
    col_indices = []
    values = []
    B = np.zeros((n_basis, n_comp))

    n_samples = 0
    n_skipped_elements = 0
    n_skipped_points = 0

    for element in mesh.elements:
        area = element.det_jacobian_ref_to_param()
        if element.is_inverted():
            raise TopologyError(
                f"Element {element.id} has negative parametric area {area}")
        if area == 0.0:
            n_skipped_elements += 1
            continue

        batch = element_sample_batch(element, quadrature)
        field_values = evaluate_field(source, mesh, batch)

        for q, xi in enumerate(batch.params):
            basis_ids, N = mesh.eval_basis(xi, element.id, n_ders=n_ders)

            if continuous:
                _, _, det_jac = eval_geometry_from_basis(N, control_points[basis_ids])
                dJw = batch.weights[q] * abs(det_jac)
                if dJw == 0.0:
                    n_skipped_points += 1
                    continue
            else:
                dJw = 1.0

            n_samples += 1
            phi = N[0]
            n_local = len(basis_ids)
            row_indices.append(np.repeat(basis_ids, n_local))
            col_indices.append(np.tile(basis_ids, n_local))
            values.append(np.outer(phi, phi).ravel() * dJw)
            B[basis_ids] += np.outer(phi, field_values[:, q]) * dJw

    if n_skipped_elements:
        logger.debug("Skipped %d zero-area elements", n_skipped_elements)
    if n_skipped_points:
        logger.warning("Skipped %d integration points with zero Jacobian", n_skipped_points)

    if n_samples < n_basis:
        raise SolverError(
            f"Global system is underdetermined: {n_samples} samples for "
            f"{n_basis} basis functions", stage="global")

    if row_indices:
        row_indices = np.concatenate(row_indices)
        col_indices = np.concatenate(col_indices)
        values = np.concatenate(values)

    # Build sparse matrix (duplicate triplets are summed)
    A = sparse.csr_matrix(
        (values, (row_indices, col_indices)),
        shape=(n_basis, n_basis)
    )
    logger.debug("Assembled global %s L2 system: n=%d, nnz=%d, components=%d",
                 "continuous" if continuous else "discrete", n_basis, A.nnz, n_comp)

    X = solve_sparse(A, B)

    method = "continuous_l2" if continuous else "discrete_l2"
    logger.info("Global %s projection: %d basis functions, %d components",
                "continuous" if continuous else "discrete", n_basis, n_comp)
    return ProjectedField(coefficients=X.T, mesh=mesh, method=method)
