"""
Integration tests for the linear elasticity solver.
"""

import pytest
import numpy as np
from numpy.testing import assert_almost_equal, assert_array_almost_equal, assert_array_equal

from watfFEM.discretization.mesh import Mesh
from watfFEM.discretization.fe_system import FESystem
from watfFEM.discretization.fe_values import FEValues
from watfFEM.quadrature.gauss import GaussQuadrature
from watfFEM.solver.base import DirichletBC
from watfFEM.solver.coefficients import (LameParameters, TwoDiskBodyForce,
                                         FunctionBodyForce, ZeroBodyForce)
from watfFEM.solver.elasticity import (ElasticitySolver, displacement_names,
                                       elasticity_cell_matrix, elasticity_cell_rhs)
from watfFEM.postprocess.fields import compute_l2_error, compute_h1_seminorm_error
from watfFEM.errors import (DimensionMismatchError, NotImplementedDimensionError,
                            IterativeSolverDidNotConverge)


@pytest.fixture
def cell_values():
    """CellValues of a Q2 vector element on a 0.5 x 0.25 cell."""
    mesh = Mesh.hyper_rectangle([0.0, 0.0], [0.5, 0.25])
    fe = FESystem.lagrange(2, 2)
    fe_values = FEValues(mesh, fe, GaussQuadrature.for_degree(fe.base.degrees))
    cell = mesh.active_cells_list()[0]
    return fe, cell, fe_values.reinit(cell)


def cell_matrix_by_loops(cv, components, mu, lam):
    """Direct evaluation of the Lamé bilinear form, entry by entry."""
    n = len(components)
    K = np.zeros((n, n))
    for i in range(n):
        ci = components[i]
        for j in range(n):
            cj = components[j]
            for q in range(cv.n_quadrature_points):
                gi = cv.shape_grad(i, q)
                gj = cv.shape_grad(j, q)
                value = mu * gi[cj] * gj[ci] + lam * gi[ci] * gj[cj]
                if ci == cj:
                    value += mu * gi @ gj
                K[i, j] += value * cv.JxW[q]
    return K


class TestCellMatrix:
    """Tests for the local bilinear and linear forms."""

    def test_matches_direct_evaluation(self, cell_values):
        fe, _, cv = cell_values
        n_q = cv.n_quadrature_points
        K = elasticity_cell_matrix(cv.gradients, fe.components,
                                   np.full(n_q, 1.3), np.full(n_q, 2.7), cv.JxW)
        assert_array_almost_equal(K, cell_matrix_by_loops(cv, fe.components, 1.3, 2.7),
                                  decimal=12)

    def test_symmetric(self, cell_values):
        fe, _, cv = cell_values
        n_q = cv.n_quadrature_points
        K = elasticity_cell_matrix(cv.gradients, fe.components,
                                   np.ones(n_q), np.full(n_q, 1e7), cv.JxW)
        assert_array_almost_equal(K / 1e7, K.T / 1e7, decimal=12)

    def test_rigid_body_modes_in_kernel(self, cell_values):
        """Translations and the infinitesimal rotation carry no energy."""
        fe, cell, cv = cell_values
        n_q = cv.n_quadrature_points
        K = elasticity_cell_matrix(cv.gradients, fe.components,
                                   np.ones(n_q), np.full(n_q, 10.0), cv.JxW)

        x = cell.reference_to_physical(fe.base.support_points())[fe.base_indices]
        comps = fe.components
        modes = [
            (comps == 0).astype(float),
            (comps == 1).astype(float),
            np.where(comps == 0, -x[:, 1], x[:, 0]),
        ]
        for mode in modes:
            assert_array_almost_equal(K @ mode, np.zeros(len(mode)), decimal=10)

        # A pure stretch is not a rigid motion
        stretch = np.where(comps == 0, x[:, 0], 0.0)
        assert stretch @ K @ stretch > 0.0

    def test_rhs_constant_force(self, cell_values):
        fe, cell, cv = cell_values
        force = np.tile([2.0, -1.0], (cv.n_quadrature_points, 1))
        f = elasticity_cell_rhs(cv.values, fe.components, force, cv.JxW)
        assert_almost_equal(f[fe.components == 0].sum(), 2.0 * cell.measure)
        assert_almost_equal(f[fe.components == 1].sum(), -1.0 * cell.measure)

    def test_length_mismatch(self, cell_values):
        fe, _, cv = cell_values
        with pytest.raises(DimensionMismatchError):
            elasticity_cell_matrix(cv.gradients, fe.components,
                                   np.ones(3), np.ones(9), cv.JxW)
        with pytest.raises(DimensionMismatchError):
            elasticity_cell_rhs(cv.values, fe.components, np.ones((4, 2)), cv.JxW)


class TestElasticitySolverSetup:
    """Tests for system setup and assembly."""

    def test_names(self):
        assert displacement_names(1) == ["displacement"]
        assert displacement_names(2) == ["x_displacement", "y_displacement"]
        assert displacement_names(3)[-1] == "z_displacement"

    def test_setup(self, square_mesh):
        solver = ElasticitySolver(square_mesh)
        solver.setup_system()
        assert solver.n_dofs == 162
        assert solver.constraints.n_constraints == 64
        assert solver.K.shape == (162, 162)
        assert solver.solution_names == ["x_displacement", "y_displacement"]

    def test_solve_before_assemble(self, square_mesh):
        solver = ElasticitySolver(square_mesh)
        solver.setup_system()
        with pytest.raises(RuntimeError):
            solver.solve()

    def test_bc_after_setup(self, square_mesh):
        solver = ElasticitySolver(square_mesh)
        solver.setup_system()
        with pytest.raises(RuntimeError):
            solver.add_dirichlet_bc(DirichletBC.homogeneous())

    def test_global_matrix_symmetric_positive_definite(self, square_mesh):
        solver = ElasticitySolver(square_mesh, lame=LameParameters(mu=1.0, lam=1e7))
        solver.setup_system()
        solver.assemble()
        assert solver.K.is_symmetric(rtol=1e-12)

        free = np.setdiff1d(np.arange(solver.n_dofs), solver.constraints.constrained_dofs())
        K = solver.K.to_csr().toarray()
        eigenvalues = np.linalg.eigvalsh(K[np.ix_(free, free)] / 1e7)
        assert np.all(eigenvalues > 0.0)

    def test_reassembly_bit_identical(self, square_mesh):
        solver = ElasticitySolver(square_mesh)
        solver.setup_system()
        solver.assemble()
        K1, f1 = solver.K.data.copy(), solver.f.copy()
        solver.assemble()
        assert_array_equal(solver.K.data, K1)
        assert_array_equal(solver.f, f1)

    def test_threaded_assembly_identical(self, square_mesh):
        serial = ElasticitySolver(square_mesh, n_workers=1)
        serial.setup_system()
        serial.assemble()

        threaded = ElasticitySolver(square_mesh, n_workers=2)
        threaded.setup_system()
        threaded.assemble()
        assert_array_equal(threaded.K.data, serial.K.data)
        assert_array_equal(threaded.f, serial.f)

    def test_one_dimension_rejected(self):
        with pytest.raises(NotImplementedDimensionError):
            ElasticitySolver(Mesh.hyper_cube(dim=1))


class TestElasticitySolve:
    """Tests of complete solves."""

    def test_zero_force_zero_solution(self, square_mesh):
        solver = ElasticitySolver(square_mesh, body_force=ZeroBodyForce())
        u = solver.run()
        assert not solver.f.any()
        assert not u.any()
        assert solver.solver_control.last_step == 0

    def test_clamped_boundary(self, square_mesh):
        solver = ElasticitySolver(square_mesh, lame=LameParameters(mu=1.0, lam=1.0),
                                  body_force=TwoDiskBodyForce())
        u = solver.run()
        assert np.all(np.isfinite(u))
        assert not u[solver.dof_handler.boundary_dofs()].any()
        assert np.abs(u).max() > 0.0

    def test_quadratic_solution_exact(self, hanging_mesh):
        """
        u = (x², 0) lies in the Q2 space, so the discrete solution is
        exact, including at the hanging nodes.

        With μ = λ = 1: -div σ = (-(4μ + 2λ), 0) = (-6, 0).
        """
        def exact(p):
            return np.column_stack([p[:, 0] ** 2, np.zeros(len(p))])

        force = FunctionBodyForce(lambda p: np.tile([-6.0, 0.0], (len(p), 1)))
        solver = ElasticitySolver(hanging_mesh, lame=LameParameters(mu=1.0, lam=1.0),
                                  body_force=force, clamped=False)
        solver.add_dirichlet_bc(DirichletBC(function=exact))
        solver.setup_system()
        assert solver.constraints.n_constraints > len(solver.dof_handler.boundary_dofs())

        u = solver.run(tolerance=1e-13)
        pts = solver.dof_handler.support_points
        expected = exact(pts)[np.arange(solver.n_dofs), solver.dof_handler.dof_components]
        assert_array_almost_equal(u, expected, decimal=9)

    def test_component_mask(self, square_mesh):
        """Each component gets its own boundary condition."""
        solver = ElasticitySolver(square_mesh, lame=LameParameters(mu=1.0, lam=1.0),
                                  body_force=TwoDiskBodyForce(radius=0.4), clamped=False)
        solver.add_dirichlet_bc(DirichletBC.homogeneous(component_mask=[True, False]))
        solver.add_dirichlet_bc(DirichletBC(
            function=lambda p: np.full((len(p), 2), 0.01), component_mask=[False, True]))
        u = solver.run()
        x_boundary = solver.dof_handler.boundary_dofs([True, False])
        y_boundary = solver.dof_handler.boundary_dofs([False, True])
        assert not u[x_boundary].any()
        assert_array_almost_equal(u[y_boundary], np.full(len(y_boundary), 0.01), decimal=14)

    def test_iteration_budget(self, square_mesh):
        solver = ElasticitySolver(square_mesh)
        with pytest.raises(IterativeSolverDidNotConverge) as info:
            solver.run(max_iterations=2)
        assert info.value.iterations == 2

    def test_manufactured_convergence(self):
        """L2 error of Q2 decreases as h^3, H1 seminorm error as h^2."""
        pi = np.pi
        mu, lam = 1.0, 1.0

        def u_exact(p):
            phi = np.sin(pi * p[:, 0]) * np.sin(pi * p[:, 1])
            return np.column_stack([phi, phi])

        def grad_exact(p):
            x, y = p[:, 0], p[:, 1]
            dphi = np.column_stack([pi * np.cos(pi * x) * np.sin(pi * y),
                                    pi * np.sin(pi * x) * np.cos(pi * y)])
            return np.stack([dphi, dphi], axis=1)

        def force(p):
            x, y = p[:, 0], p[:, 1]
            phi = np.sin(pi * x) * np.sin(pi * y)
            f = 2 * mu * pi**2 * phi + (mu + lam) * pi**2 * (phi - np.cos(pi * x) * np.cos(pi * y))
            return np.column_stack([f, f])

        l2, h1 = [], []
        for k in [2, 3, 4]:
            mesh = Mesh.hyper_cube(-1.0, 1.0)
            mesh.refine_global(k)
            solver = ElasticitySolver(mesh, lame=LameParameters(mu=mu, lam=lam),
                                      body_force=FunctionBodyForce(force))
            u = solver.run()
            l2.append(compute_l2_error(solver.dof_handler, u, u_exact))
            h1.append(compute_h1_seminorm_error(solver.dof_handler, u, grad_exact))

        l2_rates = np.log2(np.array(l2[:-1]) / np.array(l2[1:]))
        h1_rates = np.log2(np.array(h1[:-1]) / np.array(h1[1:]))
        assert l2_rates[-1] > 2.7
        assert h1_rates[-1] > 1.8
        assert l2[0] > l2[1] > l2[2]


@pytest.mark.slow
class TestReferenceProblem:
    """The full-size run: 16 x 16 Q2 cells, μ = 1, λ = 1e7, SSOR-CG."""

    def test_reference_run(self):
        mesh = Mesh.hyper_cube(-1.0, 1.0)
        mesh.refine_global(4)
        solver = ElasticitySolver(mesh, degree=2, lame=LameParameters(mu=1.0, lam=1e7))
        u = solver.run(tolerance=1e-12, preconditioner="ssor", relaxation=1.2)

        assert mesh.n_active_cells == 256
        assert len(u) == 2178
        assert np.all(np.isfinite(u))
        assert solver.solver_control.last_value <= 1e-12
        assert not u[solver.dof_handler.boundary_dofs()].any()

        # The true residual drifts from the recursive one by round-off,
        # which scales with |A| |u| (about 5e6 for lambda = 1e7)
        A = solver.K.to_csr()
        residual = solver.f - A @ u
        free = np.setdiff1d(np.arange(len(u)), solver.constraints.constrained_dofs())
        scale = abs(A).max() * np.linalg.norm(u)
        assert np.linalg.norm(residual[free]) <= 1e-12 * scale
