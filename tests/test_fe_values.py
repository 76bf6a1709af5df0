"""
Tests for per-cell shape values, gradients and JxW.
"""

import pytest
import numpy as np
from numpy.testing import assert_almost_equal, assert_array_almost_equal

from watfFEM.discretization.mesh import Mesh
from watfFEM.discretization.fe_system import FESystem
from watfFEM.discretization.fe_values import FEValues
from watfFEM.quadrature.gauss import GaussQuadrature
from watfFEM.errors import ConfigurationError


@pytest.fixture
def fe_values():
    mesh = Mesh.hyper_rectangle([0.0, 1.0], [2.0, 2.0])
    mesh.refine_global(1)
    fe = FESystem.lagrange(2, 2)
    return FEValues(mesh, fe, GaussQuadrature.for_degree(fe.base.degrees))


class TestFEValues:
    """Tests for FEValues.reinit."""

    def test_jxw_sums_to_cell_measure(self, fe_values):
        for cell in fe_values.mesh.active_cells():
            cv = fe_values.reinit(cell)
            assert_almost_equal(cv.JxW.sum(), cell.measure, decimal=14)
            assert cv.n_quadrature_points == 9

    def test_quadrature_points_inside_cell(self, fe_values):
        for cell in fe_values.mesh.active_cells():
            cv = fe_values.reinit(cell)
            assert np.all(cell.contains(cv.quadrature_points))

    def test_shapes(self, fe_values):
        cell = fe_values.mesh.active_cells_list()[0]
        cv = fe_values.reinit(cell)
        assert cv.values.shape == (9, 18)
        assert cv.gradients.shape == (9, 18, 2)
        assert cv.shape_grad(0, 0).shape == (2,)

    def test_gradient_of_linear_function(self, fe_values):
        """Interpolating f = 3x - 2y gives ∇f = (3, -2) at every point."""
        fe = fe_values.fe
        ref = fe.base.support_points()
        for cell in fe_values.mesh.active_cells():
            cv = fe_values.reinit(cell)
            x = cell.reference_to_physical(ref)
            coeffs = 3.0 * x[:, 0] - 2.0 * x[:, 1]
            grads = cv.gradients[:, :9, :]
            g = np.einsum("qid,i->qd", grads, coeffs)
            assert_array_almost_equal(g, np.tile([3.0, -2.0], (9, 1)), decimal=12)

    def test_partition_of_unity_per_component(self, fe_values):
        cell = fe_values.mesh.active_cells_list()[0]
        cv = fe_values.reinit(cell)
        comps = fe_values.fe.components
        for c in range(2):
            assert_array_almost_equal(cv.values[:, comps == c].sum(axis=1), np.ones(9))
            assert_array_almost_equal(cv.gradients[:, comps == c, :].sum(axis=1),
                                      np.zeros((9, 2)))

    def test_quadrature_dimension_mismatch(self):
        mesh = Mesh.hyper_cube()
        with pytest.raises(ConfigurationError):
            FEValues(mesh, FESystem.lagrange(2, 2), GaussQuadrature((3, 3, 3)))
