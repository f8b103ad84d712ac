"""
Locally refined spline mesh (topology adapter) for recovery.

The SplineMesh class is the central data structure that:
1. Owns all elements and basis functions (arenas indexed by id)
2. Maintains bidirectional Element <-> BasisFunction linking
3. Provides direct and extended support sets as element index sets
4. Evaluates basis functions, geometry and fields at parameter points

Key design principles:
- Basis functions carry local knot vectors (LR B-spline style), so the mesh
  is unstructured: tensor-product, hierarchical and LR spaces are all the same
- Elements are the non-degenerate cells of the knot-line grid unless given
  explicitly
- Supports are index sets into the element arena, never linked pointers
- Read-only during recovery: results are written into a copy

Bidirectional linking invariant:
    basis_id in element.basis_ids  <=>  element.id in basis_functions[basis_id].supported_elements
"""

import logging
import numpy as np
from dataclasses import replace
from typing import List, Optional, Tuple

from .knot_vector import KnotVector, make_open_knot_vector
from .element import Element
from .basis_function import BasisFunction
from ..geometry.bspline import eval_tensor_basis
from ..geometry.mapping import eval_geometry_from_basis
from ..exceptions import TopologyError, UnsupportedBasisError

logger = logging.getLogger(__name__)


class SplineMesh:
    """
    Unstructured spline mesh with explicit element/basis linking.

    Attributes:
        basis_functions: List of BasisFunction, position == id
        elements: List of Element, position == id
        domain: ((xi_min, xi_max), (eta_min, eta_max))
        n_dim_physical: Number of physical dimensions of the geometry

    Key invariant:
        The bidirectional linking between elements and basis functions
        is always consistent.
    """

    def __init__(self,
                 basis_functions: List[BasisFunction],
                 elements: Optional[List[Element]] = None):
        """
        Initialize mesh with basis functions and (optionally) elements.

        Parameters:
            basis_functions: Basis functions, ids must be 0..n-1 in order
            elements: Explicit elements. If None, elements are the non-empty
                      cells of the grid spanned by all local knot lines.
                      Elements given without basis_ids are linked by overlap.
        """
        if not basis_functions:
            raise TopologyError("Empty patch: mesh has no basis functions")

        for index, basis in enumerate(basis_functions):
            if basis.id != index:
                raise TopologyError(
                    f"Basis function at position {index} has id {basis.id}")

        degrees = {b.degrees for b in basis_functions}
        if len(degrees) != 1:
            raise ValueError(f"Mixed polynomial degrees are not supported: {sorted(degrees)}")
        self._degrees = degrees.pop()

        dims = {b.coordinates.shape for b in basis_functions}
        if len(dims) != 1:
            raise ValueError("All control points must have the same physical dimension")

        self._basis_functions = list(basis_functions)
        for basis in self._basis_functions:
            basis.supported_elements = set()
        self._control_points = np.array([b.coordinates for b in self._basis_functions])

        self._domain = (
            (min(b.knots_xi[0] for b in basis_functions),
             max(b.knots_xi[-1] for b in basis_functions)),
            (min(b.knots_eta[0] for b in basis_functions),
             max(b.knots_eta[-1] for b in basis_functions)),
        )

        if elements is None:
            elements = self._build_grid_elements()
        else:
            for index, elem in enumerate(elements):
                if elem.id != index:
                    raise TopologyError(f"Element at position {index} has id {elem.id}")
                if elem.is_inverted():
                    raise TopologyError(
                        f"Element {elem.id} has negative parametric area "
                        f"(bounds {elem.parametric_bounds})")
        self._elements = list(elements)

        self._link()
        self._verify_linking_invariant()

        logger.debug("Built spline mesh: %d basis functions, %d elements, degrees %s",
                     self.n_basis, self.n_elements, self._degrees)

    def _build_grid_elements(self) -> List[Element]:
        """Create one element per non-empty cell of the knot-line grid."""
        xs = np.unique(np.concatenate([b.knots_xi for b in self._basis_functions]))
        ys = np.unique(np.concatenate([b.knots_eta for b in self._basis_functions]))

        elements = []
        for j in range(len(ys) - 1):
            for i in range(len(xs) - 1):
                bounds = ((xs[i], xs[i + 1]), (ys[j], ys[j + 1]))
                levels = [b.level for b in self._basis_functions if b.overlaps(bounds)]
                if levels:
                    elements.append(Element(id=len(elements), parametric_bounds=bounds,
                                            level=max(levels)))
        return elements

    def _link(self) -> None:
        """Populate both sides of the element <-> basis function links."""
        for elem in self._elements:
            if not elem.basis_ids:
                elem.basis_ids = [b.id for b in self._basis_functions
                                  if b.overlaps(elem.parametric_bounds)]
            for basis_id in elem.basis_ids:
                if not 0 <= basis_id < self.n_basis:
                    raise TopologyError(
                        f"Element {elem.id} references non-existent basis function {basis_id}")
                self._basis_functions[basis_id].add_element(elem.id)

    def _verify_linking_invariant(self) -> None:
        """
        Verify the bidirectional linking invariant and non-empty supports.

        Raises TopologyError if the invariant is violated.
        """
        for elem in self._elements:
            for basis_id in elem.basis_ids:
                if elem.id not in self._basis_functions[basis_id].supported_elements:
                    raise TopologyError(
                        f"Bidirectional linking violated: "
                        f"basis {basis_id} not linked back to element {elem.id}")

        for basis in self._basis_functions:
            for eid in basis.supported_elements:
                if basis.id not in self._elements[eid].basis_ids:
                    raise TopologyError(
                        f"Bidirectional linking violated: "
                        f"element {eid} not linked back to basis {basis.id}")
            if not any(not self._elements[eid].is_degenerate()
                       for eid in basis.supported_elements):
                raise TopologyError(f"Basis function {basis.id} has no non-degenerate element")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def basis_functions(self) -> List[BasisFunction]:
        """All basis functions, position == id."""
        return self._basis_functions

    @property
    def elements(self) -> List[Element]:
        """All elements, position == id."""
        return self._elements

    @property
    def n_basis(self) -> int:
        """Number of basis functions (= number of control points)."""
        return len(self._basis_functions)

    @property
    def n_elements(self) -> int:
        """Number of elements."""
        return len(self._elements)

    @property
    def degrees(self) -> Tuple[int, int]:
        """Polynomial degrees in each direction."""
        return self._degrees

    @property
    def orders(self) -> Tuple[int, int]:
        """Spline orders (degree + 1) in each direction."""
        return (self._degrees[0] + 1, self._degrees[1] + 1)

    @property
    def domain(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Parametric domain."""
        return self._domain

    @property
    def n_dim_physical(self) -> int:
        """Number of physical dimensions."""
        return self._basis_functions[0].coordinates.shape[0]

    @property
    def max_level(self) -> int:
        """Maximum refinement level in the mesh."""
        return max(b.level for b in self._basis_functions)

    @property
    def is_rational(self) -> bool:
        """True if any basis function carries a non-unit weight."""
        return any(b.is_rational() for b in self._basis_functions)

    @property
    def control_points_array(self) -> np.ndarray:
        """Geometry control points, shape (n_basis, n_dim_physical)."""
        return self._control_points

    @property
    def field_coefficients(self) -> np.ndarray:
        """
        Field control point values, shape (n_components, n_basis).

        Raises ValueError if the basis functions hold different numbers
        of components.
        """
        counts = {b.n_components for b in self._basis_functions}
        if len(counts) != 1:
            raise ValueError(f"Inconsistent field component counts: {sorted(counts)}")
        return np.array([b.coefficients for b in self._basis_functions]).T

    # -------------------------------------------------------------------------
    # Topology queries
    # -------------------------------------------------------------------------

    def get_basis_function(self, basis_id: int) -> BasisFunction:
        """Get basis function by id."""
        return self._basis_functions[basis_id]

    def get_element(self, element_id: int) -> Element:
        """Get element by id."""
        return self._elements[element_id]

    def greville_parameters(self) -> np.ndarray:
        """
        Anchor (Greville) parameters of all basis functions.

        Returns:
            Array of shape (n_basis, 2), row i is the anchor of basis i
        """
        return np.array([b.greville for b in self._basis_functions])

    def direct_support(self, basis_id: int) -> List[int]:
        """Sorted ids of the elements where basis function basis_id is non-zero."""
        return sorted(self._basis_functions[basis_id].supported_elements)

    def extended_support(self, basis_id: int) -> List[int]:
        """
        Extended support of a basis function.

        The union of the direct supports of every basis function that is
        non-zero on some element of the direct support of basis_id. It is
        always a superset of the direct support.
        """
        neighbours = set()
        for eid in self._basis_functions[basis_id].supported_elements:
            neighbours.update(self._elements[eid].basis_ids)

        support = set()
        for other in neighbours:
            support.update(self._basis_functions[other].supported_elements)
        return sorted(support)

    def closed_end(self, xi: Tuple[float, float]) -> Tuple[bool, bool]:
        """Per-direction flag: parameter lies on the upper end of the domain."""
        return (xi[0] >= self._domain[0][1], xi[1] >= self._domain[1][1])

    def find_element(self, xi: Tuple[float, float]) -> int:
        """
        Find the (non-degenerate) element containing a parameter point.

        Raises:
            ValueError: If the point lies outside the mesh
        """
        closed = self.closed_end(xi)
        for elem in self._elements:
            if not elem.is_degenerate() and elem.contains(xi, closed):
                return elem.id
        raise ValueError(f"Parameter point {tuple(xi)} outside mesh domain {self._domain}")

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def eval_basis(self, xi: Tuple[float, float],
                   element_id: Optional[int] = None,
                   n_ders: int = 0) -> Tuple[np.ndarray, np.ndarray]:
        """
        Evaluate the basis functions supported on an element at a point.

        Parameters:
            xi: Parameter point (xi, eta)
            element_id: Element to evaluate on. Found by search if None.
            n_ders: 0, 1 or 2 parametric derivatives

        Returns:
            (basis_ids, values) where values has shape (n_rows, n_local):
            rows are [N, dN/dxi, dN/deta, d2N/dxi2, d2N/dxideta, d2N/deta2]
            truncated to the requested derivative order, each column
            multiplied by the scaling factor of its basis function
        """
        if element_id is None:
            element_id = self.find_element(xi)
        elem = self._elements[element_id]
        closed = self.closed_end(xi)

        n_rows = (1, 3, 6)[n_ders]
        basis_ids = np.array(elem.basis_ids, dtype=int)
        values = np.zeros((n_rows, len(basis_ids)))
        for k, bid in enumerate(basis_ids):
            basis = self._basis_functions[bid]
            values[:, k] = eval_tensor_basis(basis.knots_xi, basis.knots_eta,
                                             xi, n_ders, closed)
            values[:, k] *= basis.scaling

        return basis_ids, values

    def _require_polynomial(self) -> None:
        if self.is_rational:
            raise UnsupportedBasisError(
                "Rational (weighted) spline bases are not supported")

    def eval_point(self, xi: Tuple[float, float],
                   element_id: Optional[int] = None) -> np.ndarray:
        """Physical coordinates of a parameter point."""
        self._require_polynomial()
        basis_ids, values = self.eval_basis(xi, element_id)
        return values[0] @ self.control_points_array[basis_ids]

    def eval_geometry(self, xi: Tuple[float, float],
                      element_id: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray, float]:
        """
        Evaluate geometry and Jacobian at a parameter point.

        Returns:
            (point, jacobian, det_jac) where:
            - point: Physical coordinates (n_dim_physical,)
            - jacobian: Jacobian matrix (n_dim_physical, 2), columns dx/dxi, dx/deta
            - det_jac: Determinant of Jacobian (surface measure for 3D)
        """
        self._require_polynomial()
        basis_ids, values = self.eval_basis(xi, element_id, n_ders=1)
        return eval_geometry_from_basis(values, self._control_points[basis_ids])

    def eval_jacobian(self, xi: Tuple[float, float],
                      element_id: Optional[int] = None) -> Tuple[np.ndarray, float]:
        """Geometry Jacobian (n_dim_physical, 2) and its determinant."""
        _, jacobian, det_jac = self.eval_geometry(xi, element_id)
        return jacobian, det_jac

    def eval_field(self, xi: Tuple[float, float],
                   coefficients: Optional[np.ndarray] = None,
                   element_id: Optional[int] = None) -> np.ndarray:
        """
        Evaluate a spline field at a parameter point.

        Parameters:
            xi: Parameter point
            coefficients: (n_components, n_basis) control point values,
                          defaults to the coefficients stored in the mesh

        Returns:
            Field values, shape (n_components,)
        """
        if coefficients is None:
            coefficients = self.field_coefficients
        coefficients = np.atleast_2d(coefficients)
        basis_ids, values = self.eval_basis(xi, element_id)
        return coefficients[:, basis_ids] @ values[0]

    def copy_with_coefficients(self, coefficients: np.ndarray) -> 'SplineMesh':
        """
        Copy the mesh and write new field control point values into the copy.

        Parameters:
            coefficients: Array of shape (n_components, n_basis)

        Returns:
            New SplineMesh sharing no mutable state with this one
        """
        coefficients = np.atleast_2d(coefficients)
        if coefficients.shape[1] != self.n_basis:
            raise ValueError(
                f"Coefficient table has {coefficients.shape[1]} columns, "
                f"mesh has {self.n_basis} basis functions")

        basis_functions = [
            replace(b, knots_xi=b.knots_xi.copy(), knots_eta=b.knots_eta.copy(),
                    coordinates=b.coordinates.copy(),
                    coefficients=coefficients[:, b.id].copy(),
                    supported_elements=set())
            for b in self._basis_functions
        ]
        elements = [replace(e, basis_ids=list(e.basis_ids)) for e in self._elements]
        return SplineMesh(basis_functions, elements)


def build_mesh_from_knot_vectors(kv_xi: KnotVector,
                                 kv_eta: KnotVector,
                                 control_points: np.ndarray,
                                 weights: Optional[np.ndarray] = None) -> SplineMesh:
    """
    Build a mesh from a tensor-product B-spline (or NURBS) surface.

    Control points are ordered x-fastest: P[i, j] -> index j * n_xi + i.

    Parameters:
        kv_xi, kv_eta: Knot vectors in each direction
        control_points: Array of shape (n_xi * n_eta, n_dim_physical)
        weights: Optional NURBS weights, shape (n_xi * n_eta,)

    Returns:
        SplineMesh whose basis functions carry the local knots of the tensor basis
    """
    n_xi, n_eta = kv_xi.n_basis, kv_eta.n_basis
    control_points = np.asarray(control_points, dtype=np.float64)
    if control_points.shape[0] != n_xi * n_eta:
        raise ValueError(
            f"Number of control points ({control_points.shape[0]}) "
            f"must equal n_xi * n_eta ({n_xi * n_eta})")
    if weights is None:
        weights = np.ones(n_xi * n_eta)

    basis_functions = []
    for j in range(n_eta):
        for i in range(n_xi):
            idx = j * n_xi + i
            basis_functions.append(BasisFunction(
                id=idx,
                knots_xi=kv_xi.local_knots(i),
                knots_eta=kv_eta.local_knots(j),
                coordinates=control_points[idx],
                weight=float(weights[idx]),
            ))

    return SplineMesh(basis_functions)


def make_rectangle_mesh(x_range: Tuple[float, float] = (0.0, 1.0),
                        y_range: Tuple[float, float] = (0.0, 1.0),
                        p: int = 2,
                        n_elem_xi: int = 4,
                        n_elem_eta: int = 4) -> SplineMesh:
    """
    Create a B-spline mesh of a rectangle on the unit parameter square.

    Control points are placed at the scaled Greville points, so the
    geometry map is affine.

    Parameters:
        x_range: (x_min, x_max)
        y_range: (y_min, y_max)
        p: Polynomial degree in both directions
        n_elem_xi: Number of elements in xi direction
        n_elem_eta: Number of elements in eta direction

    Returns:
        SplineMesh of the rectangle
    """
    kv_xi = make_open_knot_vector(n_elem_xi + p, p)
    kv_eta = make_open_knot_vector(n_elem_eta + p, p)

    gx = x_range[0] + (x_range[1] - x_range[0]) * kv_xi.greville_abscissae()
    gy = y_range[0] + (y_range[1] - y_range[0]) * kv_eta.greville_abscissae()
    GX, GY = np.meshgrid(gx, gy)
    control_points = np.column_stack([GX.ravel(), GY.ravel()])

    return build_mesh_from_knot_vectors(kv_xi, kv_eta, control_points)


def make_unit_square_mesh(p: int = 2, n_elem_xi: int = 4,
                          n_elem_eta: int = 4) -> SplineMesh:
    """
    Create a B-spline mesh of the unit square [0,1]².

    Identity mapping: parametric coordinates equal physical coordinates.
    """
    return make_rectangle_mesh((0.0, 1.0), (0.0, 1.0), p, n_elem_xi, n_elem_eta)
