"""
Superconvergent patch recovery (SPR) on locally refined spline meshes.

For every basis function b, a local polynomial

    f(x, y) ~ sum_{i<n1, j<n2} c_ij (dx)^i (dy)^j,    n_d = order_d - m + 1

centred at the physical image of b's Greville point is fitted by least
squares to the raw field sampled at the reduced Gauss points
(order_d - m per direction) of b's support, where m is the derivative
order consumed by the raw field. The constant coefficient c_00 is the
recovered value at the anchor. The anchor values are finally turned into
control point values by exact collocation at the Greville points.

Monomials are ordered with i running fastest: P[j * n1 + i] = dx^i dy^j.
Offsets are divided by the largest offset in the patch per direction,
which only rescales the non-constant coefficients.
"""

import logging
import numpy as np
from typing import Dict, List, Optional, Tuple

from ..discretization.mesh import SplineMesh
from ..quadrature.gauss import GaussQuadrature
from .base import require_polynomial_basis, solve_dense
from .field import ProjectedField
from .field_source import RawFieldSource, evaluate_field
from .interpolation import regular_interpolation
from .sampling import element_sample_batch

logger = logging.getLogger(__name__)

SUPPORT_POLICIES = ("extended", "auto")


def choose_support(mesh: SplineMesh, basis_id: int,
                   n_gauss: Tuple[int, int], n_pol: Tuple[int, int],
                   policy: str = "extended") -> List[int]:
    """
    Elements whose samples enter the local fit of a basis function.

    Policies:
        "extended": always the extended support
        "auto": the direct support if its non-degenerate elements provide at
                least n1 * n2 samples, and at least n_d distinct sample
                coordinates in each direction d; otherwise the extended
                support. These counts are necessary but not sufficient for a
                well-posed fit on non-rectangular supports, and the policy
                has not been validated for derivative orders m > 1.

    Parameters:
        mesh: Spline mesh
        basis_id: Basis function id
        n_gauss: Reduced Gauss points per direction
        n_pol: Monomial terms per direction (n1, n2)

    Returns:
        Sorted element ids
    """
    if policy == "extended":
        return mesh.extended_support(basis_id)
    if policy == "auto":
        direct = mesh.direct_support(basis_id)
        active = [mesh.get_element(eid) for eid in direct]
        active = [elem for elem in active if not elem.is_degenerate()]

        enough = len(active) * n_gauss[0] * n_gauss[1] >= n_pol[0] * n_pol[1]
        for d in range(2):
            n_spans = len({elem.parametric_bounds[d] for elem in active})
            enough = enough and n_spans * n_gauss[d] >= n_pol[d]

        if enough:
            return direct
        return mesh.extended_support(basis_id)
    raise ValueError(f"Unknown support policy: {policy!r}, expected one of {SUPPORT_POLICIES}")


def eval_monomials(dx: np.ndarray, dy: np.ndarray,
                   n_pol_per_dir: Tuple[int, int]) -> np.ndarray:
    """
    Tensor monomials (dx)^i (dy)^j, i running fastest.

    Parameters:
        dx, dy: Offsets from the expansion centre, shape (n,) or scalars
        n_pol_per_dir: (n1, n2) terms per direction

    Returns:
        Array of shape (n, n1 * n2)
    """
    dx = np.atleast_1d(np.asarray(dx, dtype=np.float64))
    dy = np.atleast_1d(np.asarray(dy, dtype=np.float64))
    n1, n2 = n_pol_per_dir

    px = dx[:, None] ** np.arange(n1)[None, :]  # (n, n1)
    py = dy[:, None] ** np.arange(n2)[None, :]  # (n, n2)
    return (py[:, :, None] * px[:, None, :]).reshape(len(dx), n1 * n2)


class SPRRecovery:
    """
    SPR engine: local fits per basis function followed by collocation.

    Element samples (physical points and raw values) are computed once and
    shared by all patches that contain the element.

    Example usage:
        mesh = make_unit_square_mesh(p=2, n_elem_xi=4, n_elem_eta=4)
        source = GradientFieldSource(u)
        field = SPRRecovery(mesh, source).run()
    """

    def __init__(self, mesh: SplineMesh, source: RawFieldSource,
                 policy: str = "extended", cond_limit: Optional[float] = None):
        """
        Parameters:
            mesh: Spline mesh (polynomial basis)
            source: Raw field source, its derivative_order sets the patch size
            policy: Support policy passed to choose_support
            cond_limit: Reject local systems with a larger condition number,
                        the solver default if None
        """
        if policy not in SUPPORT_POLICIES:
            raise ValueError(f"Unknown support policy: {policy!r}, expected one of {SUPPORT_POLICIES}")
        self.mesh = mesh
        self.source = source
        self.policy = policy
        self.cond_limit = cond_limit

        m = source.derivative_order
        self.n_pol_per_dir = tuple(order - m + 1 for order in mesh.orders)
        self.n_pol = self.n_pol_per_dir[0] * self.n_pol_per_dir[1]

        # Storage for element samples: element id -> (points (nq, 2), values (ncomp, nq))
        self._samples: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}
        self._quadrature: Optional[GaussQuadrature] = None

    def _element_samples(self, element_id: int) -> Tuple[np.ndarray, np.ndarray]:
        if element_id not in self._samples:
            element = self.mesh.get_element(element_id)
            batch = element_sample_batch(element, self._quadrature)
            values = evaluate_field(self.source, self.mesh, batch)
            points = np.array([self.mesh.eval_point(xi, element_id)[:2]
                               for xi in batch.params])
            self._samples[element_id] = (points, values)
        return self._samples[element_id]

    def local_value(self, basis_id: int, centre: np.ndarray) -> np.ndarray:
        """
        Recovered field value at the anchor of one basis function.

        Parameters:
            basis_id: Basis function id
            centre: Physical coordinates of the anchor

        Returns:
            Values of shape (n_components,)

        Raises:
            SolverError: Singular or ill-conditioned local system
        """
        support = choose_support(self.mesh, basis_id, self._quadrature.n_points_per_dir,
                                 self.n_pol_per_dir, self.policy)
        support = [eid for eid in support if not self.mesh.get_element(eid).is_degenerate()]

        points = []
        values = []
        for eid in support:
            X, F = self._element_samples(eid)
            points.append(X)
            values.append(F)
        points = np.vstack(points)
        values = np.hstack(values)

        offsets = points - centre[:2]
        scale = np.max(np.abs(offsets), axis=0)
        scale[scale == 0.0] = 1.0
        offsets = offsets / scale

        P = eval_monomials(offsets[:, 0], offsets[:, 1], self.n_pol_per_dir)

        # Normal equations: A = sum P P^T, B = sum P f^T
        A = P.T @ P
        B = P.T @ values.T

        c = solve_dense(A, B, stage="local", basis_id=basis_id,
                        cond_limit=self.cond_limit)
        return c[0, :]

    def run(self) -> ProjectedField:
        """
        Recover the field at all anchors and interpolate.

        Raises:
            UnsupportedBasisError: Rational mesh (before any sampling)
            QuadratureError: order - m < 1 in some direction
            FieldEvaluationError: Raw field undefined at some sample
            SolverError: Any local solve or the collocation solve failed
        """
        require_polynomial_basis(self.mesh)
        self._quadrature = GaussQuadrature.for_orders(
            self.mesh.orders, reduction=self.source.derivative_order)
        self._samples = {}

        greville = self.mesh.greville_parameters()
        anchor_values = np.zeros((self.source.n_components, self.mesh.n_basis))

        for basis in self.mesh.basis_functions:
            centre = self.mesh.eval_point(greville[basis.id])
            anchor_values[:, basis.id] = self.local_value(basis.id, centre)

        logger.debug("SPR local fits: %d patches, %d terms each, %d sampled elements",
                     self.mesh.n_basis, self.n_pol, len(self._samples))

        field = regular_interpolation(self.mesh, greville[:, 0], greville[:, 1],
                                      anchor_values)
        field.method = "spr"

        logger.info("SPR recovery (%s support, m=%d): %d basis functions, %d components",
                    self.policy, self.source.derivative_order,
                    self.mesh.n_basis, self.source.n_components)
        return field


def spr_recovery(mesh: SplineMesh, source: RawFieldSource,
                 policy: str = "extended",
                 cond_limit: Optional[float] = None) -> ProjectedField:
    """Convenience wrapper: SPRRecovery(mesh, source, policy, cond_limit).run()."""
    return SPRRecovery(mesh, source, policy, cond_limit).run()
