"""
Recovery module: projection of raw secondary fields onto the spline space.

Provides:
- global_l2_projection: continuous or discrete global least squares
- spr_recovery / SPRRecovery: superconvergent patch recovery
- regular_interpolation / project_greville: exact collocation
- recover_field: select a strategy by ProjectionMethod or RecoveryConfig
"""

import logging
from enum import Enum
from typing import Optional, Union

from ..config import RecoveryConfig
from ..discretization.mesh import SplineMesh
from .field import ProjectedField
from .field_source import (
    RawFieldSource,
    FunctionFieldSource,
    SplineFieldSource,
    GradientFieldSource,
    evaluate_field,
)
from .global_l2 import global_l2_projection
from .interpolation import regular_interpolation, project_greville
from .sampling import SampleBatch
from .spr import SPRRecovery, choose_support, eval_monomials, spr_recovery

logger = logging.getLogger(__name__)


class ProjectionMethod(Enum):
    """Available recovery strategies."""
    GREVILLE = "greville"
    DISCRETE_L2 = "discrete_l2"
    CONTINUOUS_L2 = "continuous_l2"
    SPR = "spr"


def recover_field(mesh: SplineMesh,
                  source: RawFieldSource,
                  method: Optional[Union[ProjectionMethod, str]] = None,
                  config: Optional[RecoveryConfig] = None) -> ProjectedField:
    """
    Recover a smooth spline field from a raw field source.

    Parameters:
        mesh: Spline mesh (not modified)
        source: Raw field source
        method: Strategy, overrides config.method when given
        config: Recovery parameters, defaults to RecoveryConfig()

    Returns:
        ProjectedField on the mesh; use field.to_mesh() for a mesh copy
        carrying the recovered control point values
    """
    if config is None:
        config = RecoveryConfig()
    method = ProjectionMethod(str(getattr(method, "value", method) or config.method).lower())

    logger.debug("Recovering %d-component field with %s", source.n_components, method.value)

    if method is ProjectionMethod.GREVILLE:
        return project_greville(mesh, source)
    if method is ProjectionMethod.DISCRETE_L2:
        return global_l2_projection(mesh, source, continuous=False)
    if method is ProjectionMethod.CONTINUOUS_L2:
        return global_l2_projection(mesh, source, continuous=True, n_gauss=config.n_gauss)
    return spr_recovery(mesh, source, policy=config.support_policy,
                        cond_limit=config.spr_cond_limit)
