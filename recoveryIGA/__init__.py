"""
recoveryIGA - Recovery and projection of secondary fields for IGA

Recovers smooth, continuous spline fields (stresses, fluxes, gradients)
from raw, discontinuous finite element results on unstructured, locally
refined spline meshes.

Key modules:
- discretization: Local knot vectors, basis functions, elements, SplineMesh
- geometry: B-spline basis evaluation from local knots
- quadrature: Gauss-Legendre rules (full and reduced)
- recovery: Global L2 projection, SPR, exact collocation
- postprocess: Field sampling and L2 error

Quick start:
    from recoveryIGA import make_unit_square_mesh, GradientFieldSource, recover_field

    mesh = make_unit_square_mesh(p=2, n_elem_xi=4, n_elem_eta=4)
    source = GradientFieldSource(u)  # u: primary solution coefficients

    field = recover_field(mesh, source, method="spr")
    recovered_mesh = field.to_mesh()
"""

__version__ = "0.1.0"

# Core imports for convenience
from .config import RecoveryConfig
from .discretization.mesh import (
    SplineMesh,
    build_mesh_from_knot_vectors,
    make_rectangle_mesh,
    make_unit_square_mesh,
)
from .recovery import (
    ProjectionMethod,
    ProjectedField,
    RawFieldSource,
    FunctionFieldSource,
    SplineFieldSource,
    GradientFieldSource,
    recover_field,
    global_l2_projection,
    spr_recovery,
    regular_interpolation,
    project_greville,
)
from .postprocess.sampling import sample_field_2d, compute_l2_error
