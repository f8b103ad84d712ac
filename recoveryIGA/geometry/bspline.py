"""
B-spline basis function evaluation from local knot vectors.

A single B-spline of degree p is fully defined by its p+2 local knots
t_0 <= t_1 <= ... <= t_{p+1}, using the Cox-de Boor recursion:

    N_{j,0}(xi) = 1 if t_j <= xi < t_{j+1}, else 0

    N_{j,k}(xi) = (xi - t_j)/(t_{j+k} - t_j) * N_{j,k-1}(xi)
                + (t_{j+k+1} - xi)/(t_{j+k+1} - t_{j+1}) * N_{j+1,k-1}(xi)

Evaluating per basis function (instead of per knot span) is what makes
unstructured, locally refined meshes possible: no global knot vector is
needed, so LR B-splines, T-splines and hierarchical bases are all
evaluated the same way.

Half-open convention: support is [t_0, t_{p+1}) except at the end of
the parametric domain, where the last non-empty interval is closed.
"""

import numpy as np
from typing import Tuple


def eval_local_basis_ders(knots: np.ndarray, xi: float, n_ders: int = 0,
                          closed_end: bool = False) -> np.ndarray:
    """
    Evaluate a single B-spline and its derivatives at a parameter value.

    Uses Piegl & Tiller "The NURBS Book" (Algorithm A2.5).

    Parameters:
        knots: Local knot vector of length p+2
        xi: Parameter value
        n_ders: Number of derivatives to compute (0 = just the value)
        closed_end: Treat the last knot as inside the support
                    (set when xi lies on the end of the parametric domain)

    Returns:
        Array of shape (n_ders+1,) where result[k] is the k-th derivative
    """
    t = np.asarray(knots, dtype=np.float64)
    p = len(t) - 2
    ders = np.zeros(n_ders + 1)

    if xi < t[0] or xi > t[-1]:
        return ders
    if xi == t[-1] and not closed_end:
        return ders

    # N[j, k] = N_{j,k}(xi), valid for j <= p - k
    N = np.zeros((p + 1, p + 1))
    for j in range(p + 1):
        a, b = t[j], t[j + 1]
        if a < b and (a <= xi < b or (closed_end and xi == b == t[-1])):
            N[j, 0] = 1.0

    for k in range(1, p + 1):
        for j in range(p - k + 1):
            value = 0.0
            denom = t[j + k] - t[j]
            if denom > 0.0:
                value += (xi - t[j]) / denom * N[j, k - 1]
            denom = t[j + k + 1] - t[j + 1]
            if denom > 0.0:
                value += (t[j + k + 1] - xi) / denom * N[j + 1, k - 1]
            N[j, k] = value

    ders[0] = N[0, p]

    # Derivative coefficients a[k, j]: d^k N_{0,p} = p!/(p-k)! sum_j a[k,j] N_{j,p-k}
    a = np.zeros((n_ders + 1, n_ders + 1))
    a[0, 0] = 1.0
    factor = 1.0
    for k in range(1, min(n_ders, p) + 1):
        denom = t[p - k + 1] - t[0]
        a[k, 0] = a[k - 1, 0] / denom if denom > 0.0 else 0.0
        for j in range(1, k):
            denom = t[j + p - k + 1] - t[j]
            a[k, j] = (a[k - 1, j] - a[k - 1, j - 1]) / denom if denom > 0.0 else 0.0
        denom = t[p + 1] - t[k]
        a[k, k] = -a[k - 1, k - 1] / denom if denom > 0.0 else 0.0

        factor *= (p - k + 1)
        ders[k] = factor * sum(a[k, j] * N[j, p - k] for j in range(k + 1))

    return ders


def eval_tensor_basis(knots_xi: np.ndarray, knots_eta: np.ndarray,
                      xi: Tuple[float, float], n_ders: int = 0,
                      closed_end: Tuple[bool, bool] = (False, False)) -> np.ndarray:
    """
    Evaluate a bivariate tensor-product B-spline N(xi, eta) = N(xi) * N(eta).

    Parameters:
        knots_xi, knots_eta: Local knot vectors in each direction
        xi: Parameter values (xi, eta)
        n_ders: Derivative order (0, 1 or 2)
        closed_end: Per-direction end-of-domain flags

    Returns:
        n_ders=0: [N]
        n_ders=1: [N, dN/dxi, dN/deta]
        n_ders=2: [N, dN/dxi, dN/deta, d2N/dxi2, d2N/dxideta, d2N/deta2]
    """
    if n_ders not in (0, 1, 2):
        raise ValueError(f"Unsupported derivative order: {n_ders}")

    Nu = eval_local_basis_ders(knots_xi, xi[0], n_ders, closed_end[0])
    Nv = eval_local_basis_ders(knots_eta, xi[1], n_ders, closed_end[1])

    values = [Nu[0] * Nv[0]]
    if n_ders >= 1:
        values += [Nu[1] * Nv[0], Nu[0] * Nv[1]]
    if n_ders == 2:
        values += [Nu[2] * Nv[0], Nu[1] * Nv[1], Nu[0] * Nv[2]]

    return np.array(values)
