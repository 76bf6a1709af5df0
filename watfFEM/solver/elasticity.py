"""
Linear elasticity (Lamé) solver.

Solves the linear elastostatic equations:
    -div(σ(u)) = f    in Ω
             u = 0    on ∂Ω (clamped)

with
    σ(u) = μ (∇u + ∇u^T) + λ (div u) I

Weak form:
    ∫_Ω μ (∇u : ∇v + ∇u^T : ∇v) + λ div u div v dΩ = ∫_Ω f · v dΩ

With shape functions φ_i = N_i e_{c_i} (scalar N_i in component c_i)
the cell matrix is

    K_ij = Σ_q [ μ ∂_{c_j} N_i ∂_{c_i} N_j
               + δ_{c_i c_j} μ ∇N_i · ∇N_j
               + λ ∂_{c_i} N_i ∂_{c_j} N_j ] JxW_q

and the cell right-hand side

    f_i = Σ_q N_i f_{c_i} JxW_q

All three terms are summed over the same quadrature points.
"""

import logging
import numpy as np
from typing import List, Optional, Tuple

from .base import Solver, DirichletBC
from .coefficients import LameParameters, TwoDiskBodyForce
from ..discretization.mesh import Mesh
from ..discretization.fe_system import FESystem
from ..discretization.fe_values import CellValues
from ..errors import DimensionMismatchError, NotImplementedDimensionError

logger = logging.getLogger(__name__)


def displacement_names(dim: int) -> List[str]:
    """Per-component names of the displacement field."""
    if dim == 1:
        return ["displacement"]
    elif dim == 2:
        return ["x_displacement", "y_displacement"]
    elif dim == 3:
        return ["x_displacement", "y_displacement", "z_displacement"]
    raise NotImplementedDimensionError(dim, minimum=1)


def elasticity_cell_matrix(gradients: np.ndarray,
                           components: np.ndarray,
                           mu: np.ndarray,
                           lam: np.ndarray,
                           JxW: np.ndarray) -> np.ndarray:
    """
    Lamé cell stiffness matrix.

    Parameters:
        gradients: ∇N_i at each quadrature point, shape (n_q, n, dim)
        components: Vector component of each local DOF, shape (n,)
        mu, lam: Lamé parameters at the quadrature points, shape (n_q,)
        JxW: Integration weights, shape (n_q,)

    Returns:
        Matrix of shape (n, n)
    """
    n_q = len(JxW)
    if not (len(gradients) == len(mu) == len(lam) == n_q):
        raise DimensionMismatchError(n_q, min(len(gradients), len(mu), len(lam)),
                                     "quadrature point values")

    mu_w = mu * JxW
    lam_w = lam * JxW
    n = len(components)

    # G_c[q, i, j] = ∂_{c_j} N_i(q)
    G_c = gradients[:, :, components]
    # G_own[q, i] = ∂_{c_i} N_i(q)
    G_own = gradients[:, np.arange(n), components]
    same = components[:, None] == components[None, :]

    K = np.einsum("q,qij,qji->ij", mu_w, G_c, G_c)
    K += np.where(same, np.einsum("q,qid,qjd->ij", mu_w, gradients, gradients), 0.0)
    K += np.einsum("q,qi,qj->ij", lam_w, G_own, G_own)
    return K


def elasticity_cell_rhs(values: np.ndarray,
                        components: np.ndarray,
                        force: np.ndarray,
                        JxW: np.ndarray) -> np.ndarray:
    """
    Body force cell vector.

    Parameters:
        values: N_i at each quadrature point, shape (n_q, n)
        components: Vector component of each local DOF, shape (n,)
        force: Body force at the quadrature points, shape (n_q, dim)
        JxW: Integration weights, shape (n_q,)
    """
    if len(force) != len(JxW):
        raise DimensionMismatchError(len(JxW), len(force), "body force values")
    return np.einsum("qi,qi,q->i", values, force[:, components], JxW)


class ElasticitySolver(Solver):
    """
    Solver for the Lamé equations with a vector Q_p element.

    Example usage:
        mesh = Mesh.hyper_cube(-1.0, 1.0)
        mesh.refine_global(4)

        solver = ElasticitySolver(mesh, degree=2,
                                  lame=LameParameters(mu=1.0, lam=1e7))
        u = solver.run()                # clamped boundary by default
        solver.solution_names           # ["x_displacement", "y_displacement"]
    """

    def __init__(self, mesh: Mesh,
                 degree: int = 2,
                 lame: Optional[LameParameters] = None,
                 body_force=None,
                 clamped: bool = True,
                 **solver_options):
        """
        Initialize elasticity solver.

        Parameters:
            mesh: Mesh of the domain
            degree: Polynomial degree of the Lagrange element
            lame: Lamé parameters (default μ=1, λ=1e7)
            body_force: Object with value_list(points); default two-disk force
            clamped: Add the homogeneous Dirichlet condition on the boundary
            **solver_options: Passed to Solver (quadrature_rule, renumbering, n_workers)
        """
        if mesh.dim < 2:
            raise NotImplementedDimensionError(mesh.dim)
        super().__init__(mesh, FESystem.lagrange(degree, mesh.dim), **solver_options)

        self.lame = lame if lame is not None else LameParameters(mu=1.0, lam=1e7)
        self.body_force = body_force if body_force is not None else TwoDiskBodyForce()

        if clamped:
            self.add_dirichlet_bc(DirichletBC.homogeneous())

    @property
    def solution_names(self) -> List[str]:
        return displacement_names(self.mesh.dim)

    def compute_cell_matrices(self, cell_values: CellValues) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute cell stiffness matrix and load vector for the Lamé operator.

        Parameters:
            cell_values: Values on one cell

        Returns:
            (K_cell, f_cell)
        """
        points = cell_values.quadrature_points
        mu = self.lame.mu_values(points)
        lam = self.lame.lambda_values(points)
        force = self.body_force.value_list(points)

        components = self.fe.components
        K = elasticity_cell_matrix(cell_values.gradients, components, mu, lam, cell_values.JxW)
        f = elasticity_cell_rhs(cell_values.values, components, force, cell_values.JxW)
        return K, f
