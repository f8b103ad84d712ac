"""
Geometry mapping at a parameter point from local basis values.

The geometry is the polynomial spline map x(xi) = sum_i N_i(xi) P_i, so
the Jacobian columns are sums of basis derivatives times control points.
Physical derivatives follow from the inverse Jacobian:

    [dN/dx]   [dxi/dx  deta/dx] [dN/dxi ]
    [dN/dy] = [dxi/dy  deta/dy] [dN/deta]
"""

import numpy as np
from typing import Tuple


def eval_geometry_from_basis(values: np.ndarray,
                             control_points: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Evaluate geometry and Jacobian from local basis values.

    Parameters:
        values: Rows [N, dN/dxi, dN/deta] of the local basis, shape (3, n_local)
        control_points: Local control points, shape (n_local, n_dim_physical)

    Returns:
        (point, jacobian, det_jac) where:
        - point: Physical coordinates (n_dim_physical,)
        - jacobian: Jacobian matrix (n_dim_physical, 2)
        - det_jac: Determinant of Jacobian (surface measure for 3D)
    """
    point = values[0] @ control_points

    jacobian = np.zeros((control_points.shape[1], 2))
    jacobian[:, 0] = values[1] @ control_points  # dx/dxi, dy/dxi
    jacobian[:, 1] = values[2] @ control_points  # dx/deta, dy/deta

    if control_points.shape[1] == 2:
        det_jac = jacobian[0, 0] * jacobian[1, 1] - jacobian[0, 1] * jacobian[1, 0]
    else:
        # For surface in 3D, compute |J| from cross product of tangent vectors
        det_jac = np.linalg.norm(np.cross(jacobian[:, 0], jacobian[:, 1]))

    return point, jacobian, det_jac


def physical_derivatives(dN_dxi: np.ndarray, dN_deta: np.ndarray,
                         jacobian: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Map parametric derivatives to physical derivatives (planar geometry).

    A singular Jacobian yields non-finite values; callers validate them.

    Returns:
        (dN_dx, dN_dy) with the shape of the inputs
    """
    det_jac = jacobian[0, 0] * jacobian[1, 1] - jacobian[0, 1] * jacobian[1, 0]

    # Inverse Jacobian
    # [dxi/dx  dxi/dy ]   1   [ dy/deta  -dx/deta]
    # [deta/dx deta/dy] = --- [-dy/dxi   dx/dxi  ]
    #                     |J|
    with np.errstate(divide='ignore', invalid='ignore'):
        inv_jac = np.array([
            [ jacobian[1, 1], -jacobian[0, 1]],
            [-jacobian[1, 0],  jacobian[0, 0]]
        ]) / det_jac

    dN_dx = dN_dxi * inv_jac[0, 0] + dN_deta * inv_jac[1, 0]
    dN_dy = dN_dxi * inv_jac[0, 1] + dN_deta * inv_jac[1, 1]

    return dN_dx, dN_dy
