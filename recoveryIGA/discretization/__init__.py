"""
Discretization module for recovery.

Provides:
- KnotVector: Knot vector representation (source of local knots)
- BasisFunction: Basis function with local knot vectors and field coefficients
- Element: Mesh cell with local -> global basis map
- SplineMesh: Unstructured spline mesh with direct/extended supports
"""

from .knot_vector import KnotVector, make_open_knot_vector
from .basis_function import BasisFunction
from .element import Element
from .mesh import (
    SplineMesh,
    build_mesh_from_knot_vectors,
    make_rectangle_mesh,
    make_unit_square_mesh,
)
