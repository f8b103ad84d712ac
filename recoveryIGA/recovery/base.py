"""
Shared numerical utilities for the recovery strategies.

- Dense and sparse linear solves that report failures as SolverError,
  including systems that are numerically singular without an exact zero pivot

The linear algebra is delegated to numpy/scipy; this module only adds the
checks and diagnostics every strategy needs.
"""

import logging
import numpy as np
from scipy import sparse
from scipy.sparse.linalg import LinearOperator, onenormest, splu
from typing import Optional

from ..discretization.mesh import SplineMesh
from ..exceptions import SolverError, UnsupportedBasisError

logger = logging.getLogger(__name__)

# Systems at or above this condition number are treated as singular
DEFAULT_COND_LIMIT = 1e14


def require_polynomial_basis(mesh: SplineMesh) -> None:
    """Reject rational (weighted) meshes before any sampling is done."""
    if mesh.is_rational:
        weighted = [b.id for b in mesh.basis_functions if b.is_rational()]
        raise UnsupportedBasisError(
            f"Rational basis functions are not supported for recovery "
            f"({len(weighted)} weighted, first id {weighted[0]})")


def solve_dense(A: np.ndarray, B: np.ndarray, stage: str,
                basis_id: Optional[int] = None,
                cond_limit: Optional[float] = None) -> np.ndarray:
    """
    Solve a dense system A X = B with multiple right-hand sides.

    Parameters:
        A: Square matrix (n, n)
        B: Right-hand sides (n, n_rhs)
        stage: "local" or "collocation", used in diagnostics
        basis_id: Basis function owning a local system
        cond_limit: Reject systems with a larger condition number,
                    DEFAULT_COND_LIMIT if None

    Raises:
        SolverError: Singular, ill-conditioned or non-finite solution
    """
    where = f" for basis function {basis_id}" if basis_id is not None else ""
    if cond_limit is None:
        cond_limit = DEFAULT_COND_LIMIT

    cond = np.linalg.cond(A)
    if not cond < cond_limit:
        raise SolverError(
            f"{stage.capitalize()} system{where} is ill-conditioned "
            f"(cond={cond:.3e}, limit={cond_limit:.1e})",
            stage=stage, basis_id=basis_id)

    try:
        X = np.linalg.solve(A, B)
    except np.linalg.LinAlgError as exc:
        raise SolverError(f"{stage.capitalize()} solve failed{where}: {exc}",
                          stage=stage, basis_id=basis_id) from exc

    if not np.all(np.isfinite(X)):
        raise SolverError(f"{stage.capitalize()} solve{where} produced non-finite values",
                          stage=stage, basis_id=basis_id)
    return X


def estimate_condition(A: sparse.spmatrix, lu) -> float:
    """
    1-norm condition number estimate of a factorized sparse matrix.

    ||A^-1||_1 is estimated with onenormest acting on the LU solves, so
    the inverse is never formed.
    """
    n = A.shape[0]

    def solve_transposed(x):
        return lu.solve(x, trans="T")

    inverse = LinearOperator((n, n), matvec=lu.solve, rmatvec=solve_transposed,
                             dtype=np.float64)
    norm_A = abs(A).sum(axis=0).max()
    return float(norm_A * onenormest(inverse))


def solve_sparse(A: sparse.spmatrix, B: np.ndarray,
                 cond_limit: float = DEFAULT_COND_LIMIT) -> np.ndarray:
    """
    Solve the global sparse system A X = B with one LU factorization.

    Parameters:
        A: Square sparse matrix (n, n)
        B: Right-hand sides (n, n_rhs)
        cond_limit: Reject systems whose estimated condition number is larger

    Raises:
        SolverError: Empty rows, singular or ill-conditioned factorization,
                     or non-finite solution
    """
    empty = np.flatnonzero(A.diagonal() == 0.0)
    if len(empty):
        raise SolverError(
            f"Global system is singular: {len(empty)} basis functions received no "
            f"contribution (first ids {empty[:5].tolist()})", stage="global")

    A = sparse.csc_matrix(A)
    try:
        lu = splu(A)
    except RuntimeError as exc:
        raise SolverError(f"Global factorization failed: {exc}", stage="global") from exc

    cond = estimate_condition(A, lu)
    if not cond < cond_limit:
        raise SolverError(
            f"Global system is ill-conditioned (cond1 estimate={cond:.3e}, "
            f"limit={cond_limit:.1e})", stage="global")

    X = lu.solve(np.asarray(B, dtype=np.float64))
    if not np.all(np.isfinite(X)):
        raise SolverError("Global solve produced non-finite values", stage="global")

    logger.debug("Global LU: n=%d, nnz(L+U)=%d, cond1~%.2e",
                 A.shape[0], lu.L.nnz + lu.U.nnz, cond)
    return X
