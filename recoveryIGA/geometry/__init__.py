"""
Geometry module: B-spline basis evaluation from local knots and the
polynomial geometry map.
"""

from .bspline import eval_local_basis_ders, eval_tensor_basis
from .mapping import eval_geometry_from_basis, physical_derivatives
