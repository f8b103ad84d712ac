"""
Tests for the recovery dispatcher, configuration and post-processing.
"""

import pytest
import numpy as np
from numpy.testing import assert_almost_equal, assert_array_almost_equal

from recoveryIGA import (
    ProjectionMethod, RecoveryConfig, FunctionFieldSource, GradientFieldSource,
    make_unit_square_mesh, recover_field, project_greville, sample_field_2d, compute_l2_error
)
from recoveryIGA.discretization.element import Element
from recoveryIGA.discretization.mesh import SplineMesh
from recoveryIGA.exceptions import SizeMismatchError, SolverError
from recoveryIGA.recovery.field import ProjectedField
from recoveryIGA.recovery.spr import choose_support, spr_recovery


class TestRecoveryConfig:
    """Tests for RecoveryConfig."""

    def test_defaults(self):
        """Default is the continuous L2 projection with extended SPR support."""
        config = RecoveryConfig()
        assert config.method == "continuous_l2"
        assert config.n_gauss is None
        assert config.support_policy == "extended"
        assert config.spr_cond_limit is None

    def test_from_dict(self):
        """Plain dictionaries are accepted."""
        config = RecoveryConfig.from_dict({"method": "SPR", "spr_cond_limit": 1e10})
        assert config.method == "spr"
        assert config.spr_cond_limit == 1e10
        assert RecoveryConfig.from_dict(config.to_dict()) == config

    def test_enum_method(self):
        """ProjectionMethod members are accepted as method."""
        assert RecoveryConfig(method=ProjectionMethod.DISCRETE_L2).method == "discrete_l2"

    def test_unknown_key(self):
        """Unknown keys are reported."""
        with pytest.raises(ValueError, match="n_points"):
            RecoveryConfig.from_dict({"n_points": 3})

    def test_invalid_values(self):
        """Invalid parameters are rejected."""
        with pytest.raises(ValueError):
            RecoveryConfig(method="average")
        with pytest.raises(ValueError):
            RecoveryConfig(n_gauss=0)
        with pytest.raises(ValueError):
            RecoveryConfig(support_policy="direct")
        with pytest.raises(ValueError):
            RecoveryConfig(spr_cond_limit=0.5)


class TestRecoverField:
    """Tests for the strategy dispatcher."""

    @pytest.mark.parametrize("method", list(ProjectionMethod))
    def test_constant_all_methods(self, quadratic_mesh, method):
        """Every strategy reproduces a constant field."""
        source = FunctionFieldSource(lambda x, y: 3.0, derivative_order=1)
        field = recover_field(quadratic_mesh, source, method=method)

        assert isinstance(field, ProjectedField)
        assert field.method == method.value
        assert np.max(np.abs(field.coefficients - 3.0)) < 1e-8

    def test_method_from_config(self, quadratic_mesh):
        """Without an explicit method the configuration decides."""
        source = FunctionFieldSource(lambda x, y: 1.0, derivative_order=1)
        field = recover_field(quadratic_mesh, source, config=RecoveryConfig(method="greville"))
        assert field.method == "greville"

    def test_method_string(self, quadratic_mesh):
        """Method names are case-insensitive strings."""
        source = FunctionFieldSource(lambda x, y: 1.0, derivative_order=1)
        assert recover_field(quadratic_mesh, source, method="SPR").method == "spr"

    def test_unknown_method(self, quadratic_mesh):
        """Unknown method names are rejected."""
        with pytest.raises(ValueError):
            recover_field(quadratic_mesh, FunctionFieldSource(lambda x, y: 0.0), method="mean")

    def test_flux_recovery_convergence(self):
        """SPR of a sin-based gradient improves under refinement."""
        u_exact = lambda x, y: np.sin(np.pi * x) * np.sin(np.pi * y)
        grad_exact = lambda x, y: (np.pi * np.cos(np.pi * x) * np.sin(np.pi * y),
                                   np.pi * np.sin(np.pi * x) * np.cos(np.pi * y))
        errors = []
        for n in (2, 4):
            mesh = make_unit_square_mesh(p=2, n_elem_xi=n, n_elem_eta=n)
            u = project_greville(mesh, FunctionFieldSource(u_exact)).coefficients[0]
            field = recover_field(mesh, GradientFieldSource(u), method=ProjectionMethod.SPR)
            errors.append(compute_l2_error(field, grad_exact))

        assert errors[1] < errors[0]


class TestRefinedMeshRecovery:
    """All strategies on a locally refined, non tensor-product basis."""

    @staticmethod
    def biquadratic(x, y):
        return 1.0 + 2.0 * x - y + 0.5 * x * y + x ** 2

    @pytest.mark.parametrize("method", list(ProjectionMethod))
    def test_constant_all_methods(self, refined_mesh, method):
        """Every strategy reproduces a constant on the refined basis."""
        source = FunctionFieldSource(lambda x, y: -2.0, derivative_order=1)
        field = recover_field(refined_mesh, source, method=method)
        assert field.coefficients.shape == (1, 13)
        assert np.max(np.abs(field.coefficients + 2.0)) < 1e-8

    @pytest.mark.parametrize("method", [ProjectionMethod.GREVILLE,
                                        ProjectionMethod.CONTINUOUS_L2, ProjectionMethod.SPR])
    def test_spline_space_field_exact(self, refined_mesh, method):
        """Biquadratics lie in the refined space and are recovered exactly (SPR with m=1)."""
        source = FunctionFieldSource(self.biquadratic, derivative_order=1)
        field = recover_field(refined_mesh, source, method=method)
        for xi in [(0.1, 0.1), (0.7, 0.3), (0.45, 0.8), (1.0, 1.0), (0.0, 0.6)]:
            assert_almost_equal(field.evaluate(xi)[0], self.biquadratic(*xi), decimal=8)

    def test_auto_support_falls_back(self, refined_mesh):
        """Refined functions with too few direct samples use the extended support."""
        assert refined_mesh.direct_support(0) == [0]
        assert choose_support(refined_mesh, 0, (2, 2), (3, 3), "auto") == [0, 1, 2, 3]
        assert refined_mesh.direct_support(10) == [2, 3]
        assert choose_support(refined_mesh, 10, (2, 2), (3, 3), "auto") == [0, 1, 2, 3]

    def test_auto_policy_exact(self, refined_mesh):
        """The auto policy keeps polynomial exactness on the refined basis."""
        source = FunctionFieldSource(self.biquadratic, derivative_order=1)
        field = spr_recovery(refined_mesh, source, policy="auto")
        for xi in [(0.2, 0.2), (0.9, 0.6)]:
            assert_almost_equal(field.evaluate(xi)[0], self.biquadratic(*xi), decimal=8)

    def test_lr_elements(self, refined_basis):
        """
        With elements following the refinement the discrete fit has 12 samples
        for 13 functions and fails, the continuous projection still works.
        """
        elements = [
            Element(id=0, parametric_bounds=((0.0, 0.5), (0.0, 0.5)), level=1),
            Element(id=1, parametric_bounds=((0.5, 1.0), (0.0, 0.5)), level=1),
            Element(id=2, parametric_bounds=((0.0, 1.0), (0.5, 1.0))),
        ]
        mesh = SplineMesh(refined_basis, elements)
        source = FunctionFieldSource(lambda x, y: 3.0)

        with pytest.raises(SolverError, match="12 samples for 13 basis functions"):
            recover_field(mesh, source, method=ProjectionMethod.DISCRETE_L2)

        field = recover_field(mesh, source, method=ProjectionMethod.CONTINUOUS_L2)
        assert np.max(np.abs(field.coefficients - 3.0)) < 1e-8

    @pytest.mark.parametrize("method", [ProjectionMethod.GREVILLE, ProjectionMethod.CONTINUOUS_L2])
    def test_scaled_basis_function(self, bilinear_element_mesh, method):
        """A function scaled by gamma = 2 gets half the control value."""
        # Function 0 has its control point at the origin, the geometry is unchanged
        bilinear_element_mesh.get_basis_function(0).scaling = 2.0
        field = recover_field(bilinear_element_mesh, FunctionFieldSource(lambda x, y: 3.0),
                              method=method)

        assert_array_almost_equal(field.coefficients[0], [1.5, 3.0, 3.0, 3.0])
        assert_almost_equal(field.evaluate((0.3, 0.7))[0], 3.0)


class TestProjectedField:
    """Tests for ProjectedField."""

    def test_shape_check(self, quadratic_mesh):
        """Coefficient columns must match the basis count."""
        with pytest.raises(SizeMismatchError):
            ProjectedField(coefficients=np.zeros((1, 10)), mesh=quadratic_mesh)

    def test_to_mesh(self, quadratic_mesh):
        """to_mesh writes into a copy."""
        field = ProjectedField(coefficients=np.full((2, 36), 4.0), mesh=quadratic_mesh)
        recovered = field.to_mesh()
        assert recovered is not quadratic_mesh
        assert_array_almost_equal(recovered.field_coefficients, np.full((2, 36), 4.0))
        assert_array_almost_equal(recovered.eval_field((0.3, 0.3)), [4.0, 4.0])

    def test_evaluate_many(self, quadratic_mesh):
        """Evaluation at many points is component-major."""
        field = ProjectedField(coefficients=np.vstack([np.ones(36), 2 * np.ones(36)]),
                               mesh=quadratic_mesh)
        values = field.evaluate_many(np.array([[0.1, 0.1], [0.5, 0.9], [1.0, 1.0]]))
        assert values.shape == (2, 3)
        assert_array_almost_equal(values, [[1, 1, 1], [2, 2, 2]])


class TestPostprocess:
    """Tests for sampling and error norms."""

    def test_sample_field_2d(self, rectangle_mesh):
        """Grid covers the physical rectangle."""
        field = ProjectedField(coefficients=np.full((1, rectangle_mesh.n_basis), 1.5),
                               mesh=rectangle_mesh)
        X, Y, U = sample_field_2d(field, n_xi=5, n_eta=3)

        assert X.shape == (5, 3)
        assert U.shape == (1, 5, 3)
        assert_almost_equal(X[0, 0], 0.0)
        assert_almost_equal(X[-1, 0], 2.0)
        assert_almost_equal(Y[0, -1], 1.0)
        assert_array_almost_equal(U, 1.5)

    def test_l2_error_of_constant_offset(self, rectangle_mesh):
        """||3 - 2|| on a 2x1 rectangle is sqrt(2)."""
        field = ProjectedField(coefficients=np.full((1, rectangle_mesh.n_basis), 3.0),
                               mesh=rectangle_mesh)
        assert_almost_equal(compute_l2_error(field, lambda x, y: 2.0), np.sqrt(2.0))
        assert_almost_equal(compute_l2_error(field, lambda x, y: 2.0, relative=True), 0.5)

    def test_l2_error_exact_field(self, rectangle_mesh):
        """Reproduced fields have zero error."""
        f = lambda x, y: x * y
        field = project_greville(rectangle_mesh, FunctionFieldSource(f))
        assert compute_l2_error(field, f) < 1e-10
