"""
Tests for DOF numbering, renumbering and the DoF tools.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_array_equal

from watfFEM.discretization.mesh import Mesh
from watfFEM.discretization.fe_system import FESystem
from watfFEM.discretization.dof_handler import DoFHandler
from watfFEM.discretization.dof_tools import (
    make_hanging_node_constraints, interpolate_boundary_values, make_sparsity_pattern
)
from watfFEM.linalg.constraints import AffineConstraints
from watfFEM.errors import ConfigurationError, DimensionMismatchError


def graph_bandwidth(dof_handler):
    graph = dof_handler.coupling_graph().tocoo()
    return int(np.max(np.abs(graph.row - graph.col)))


class TestDistributeDoFs:
    """Tests for the initial numbering."""

    def test_q2_counts(self, q2_dof_handler):
        """4 x 4 cells of Q2: 9 x 9 nodes, 2 components each."""
        assert q2_dof_handler.n_nodes == 81
        assert q2_dof_handler.n_dofs == 162
        assert q2_dof_handler.dofs_per_cell == 18

    def test_reference_problem_size(self):
        """16 x 16 cells of Q2: 33 x 33 nodes."""
        mesh = Mesh.hyper_cube(-1.0, 1.0)
        mesh.refine_global(4)
        dof_handler = DoFHandler(mesh)
        dof_handler.distribute_dofs(FESystem.lagrange(2, 2))
        assert dof_handler.n_dofs == 2 * 33 * 33

    def test_component_layout(self, q2_dof_handler):
        """DOF index = node * n_components + component."""
        assert_array_equal(q2_dof_handler.dof_components[:4], [0, 1, 0, 1])
        assert_array_equal(q2_dof_handler.dof_nodes[:4], [0, 0, 1, 1])

    def test_cell_dofs_match_support_points(self, q2_dof_handler):
        fe = q2_dof_handler.fe
        ref = fe.base.support_points()
        for cell, dofs in q2_dof_handler.active_cells():
            expected = cell.reference_to_physical(ref)[fe.base_indices]
            assert_array_almost_equal(q2_dof_handler.support_points[dofs], expected)
            assert_array_equal(q2_dof_handler.dof_components[dofs], fe.components)

    def test_not_distributed(self, square_mesh):
        with pytest.raises(RuntimeError):
            DoFHandler(square_mesh).n_dofs

    def test_dimension_mismatch(self, square_mesh):
        with pytest.raises(ConfigurationError):
            DoFHandler(square_mesh).distribute_dofs(FESystem.lagrange(2, 3))


class TestRenumbering:
    """Tests for DOF permutations."""

    def test_cuthill_mckee_is_permutation(self, q2_dof_handler):
        before = {c.id: q2_dof_handler.support_points[d].copy()
                  for c, d in q2_dof_handler.active_cells()}
        q2_dof_handler.renumber_cuthill_mckee()
        all_dofs = np.concatenate([d for _, d in q2_dof_handler.active_cells()])
        assert_array_equal(np.unique(all_dofs), np.arange(q2_dof_handler.n_dofs))
        # Geometry attached to the cell DOFs is unchanged
        for cell, dofs in q2_dof_handler.active_cells():
            assert_array_almost_equal(q2_dof_handler.support_points[dofs], before[cell.id])

    def test_cuthill_mckee_reduces_bandwidth(self, q2_dof_handler):
        rng = np.random.default_rng(42)
        q2_dof_handler.renumber(rng.permutation(q2_dof_handler.n_dofs))
        scrambled = graph_bandwidth(q2_dof_handler)
        q2_dof_handler.renumber_cuthill_mckee()
        assert graph_bandwidth(q2_dof_handler) < scrambled

    def test_invalid_permutation(self, q2_dof_handler):
        with pytest.raises(ConfigurationError):
            q2_dof_handler.renumber(np.zeros(q2_dof_handler.n_dofs, dtype=int))


class TestBoundaryValues:
    """Tests for boundary DOFs and Dirichlet constraints."""

    def test_boundary_dofs(self, q2_dof_handler):
        # 32 boundary nodes on a 9 x 9 grid, 2 components each
        assert len(q2_dof_handler.boundary_dofs()) == 64
        assert len(q2_dof_handler.boundary_dofs([True, False])) == 32

    def test_homogeneous(self, q2_dof_handler):
        constraints = AffineConstraints()
        n = interpolate_boundary_values(q2_dof_handler, constraints)
        constraints.close()
        assert n == 64
        assert not any(constraints.is_inhomogeneously_constrained(g)
                       for g in constraints.constrained_dofs())

    def test_function_values(self, q2_dof_handler):
        constraints = AffineConstraints()
        interpolate_boundary_values(q2_dof_handler, constraints,
                                    lambda p: np.column_stack([p[:, 0], 2.0 * p[:, 1]]))
        constraints.close()
        u = np.zeros(q2_dof_handler.n_dofs)
        constraints.distribute(u)
        pts = q2_dof_handler.support_points
        comps = q2_dof_handler.dof_components
        for g in constraints.constrained_dofs():
            assert u[g] == pytest.approx(pts[g, 0] if comps[g] == 0 else 2.0 * pts[g, 1])

    def test_wrong_function_output(self, q2_dof_handler):
        with pytest.raises(DimensionMismatchError):
            interpolate_boundary_values(q2_dof_handler, AffineConstraints(),
                                        lambda p: np.zeros((3, 2)))


class TestHangingNodes:
    """Tests for constraints on non-conforming interfaces."""

    def test_uniform_mesh_has_none(self, q2_dof_handler):
        assert make_hanging_node_constraints(q2_dof_handler, AffineConstraints()) == 0

    def test_locally_refined_mesh(self, hanging_mesh):
        dof_handler = DoFHandler(hanging_mesh)
        dof_handler.distribute_dofs(FESystem.lagrange(2, 2))
        constraints = AffineConstraints()
        n = make_hanging_node_constraints(dof_handler, constraints)
        # Two interior interfaces, two hanging quarter points each, 2 components
        assert n == 8
        constraints.close()

        # A constrained function that is quadratic on the coarse side is
        # reproduced exactly at the hanging points
        pts = dof_handler.support_points
        u = 1.0 + pts[:, 0] ** 2 - 3.0 * pts[:, 0] * pts[:, 1]
        exact = u.copy()
        u[constraints.constrained_dofs()] = 0.0
        constraints.distribute(u)
        assert_array_almost_equal(u, exact, decimal=12)

    def test_interior_refined_cell(self):
        mesh = Mesh.hyper_cube(-1.0, 1.0)
        mesh.refine_global(3)
        target = [c for c in mesh.active_cells_list()
                  if np.allclose(c.lower, [0.0, 0.0])]
        mesh.refine_cells([target[0].id])

        dof_handler = DoFHandler(mesh)
        dof_handler.distribute_dofs(FESystem.lagrange(2, 2))
        constraints = AffineConstraints()
        n = make_hanging_node_constraints(dof_handler, constraints)
        # Four coarse neighbors, two quarter points per interface, 2 components
        assert n == 16

        # Same hanging DOFs as scanning every support point against every cell
        pts = dof_handler.support_points
        expected = set()
        for cell, dofs in dof_handler.active_cells():
            inside = np.flatnonzero(cell.contains(pts, tol=1e-10 * cell.diameter))
            expected.update(np.setdiff1d(inside, dofs).tolist())
        assert_array_equal(constraints.constrained_dofs(), sorted(expected))

        constraints.close()
        u = 2.0 - pts[:, 1] ** 2 + 0.5 * pts[:, 0] * pts[:, 1]
        exact = u.copy()
        u[constraints.constrained_dofs()] = 0.0
        constraints.distribute(u)
        assert_array_almost_equal(u, exact, decimal=12)


class TestSparsityPattern:
    """Tests for make_sparsity_pattern."""

    def test_unconstrained(self, q2_dof_handler):
        pattern = make_sparsity_pattern(q2_dof_handler)
        for cell, dofs in q2_dof_handler.active_cells():
            for i in dofs[::5]:
                for j in dofs[::4]:
                    assert pattern.exists(i, j)

    def test_constrained_rows_keep_only_diagonal(self, q2_dof_handler):
        constraints = AffineConstraints()
        interpolate_boundary_values(q2_dof_handler, constraints)
        constraints.close()
        pattern = make_sparsity_pattern(q2_dof_handler, constraints)
        for g in constraints.constrained_dofs():
            assert_array_equal(pattern.row(g), [g])
