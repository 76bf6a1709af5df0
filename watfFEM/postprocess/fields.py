"""
Solution fields for output and verification.

Key functions:
- nodal_field: reshape a solution vector into (n_nodes, n_components)
  values at the shared support points
- evaluate_on_cell: displacement and gradient at quadrature points
- compute_l2_error: ||u_h - u||_{L2} by Gauss quadrature

The output sink receives the nodal field together with the
per-component names; no file I/O happens here.
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..discretization.dof_handler import DoFHandler
from ..discretization.fe_values import FEValues, CellValues
from ..quadrature.gauss import GaussQuadrature
from ..errors import DimensionMismatchError


@dataclass
class NodalField:
    """
    Vector field sampled at the support points.

    Attributes:
        points: Node coordinates, shape (n_nodes, dim)
        values: Field values, shape (n_nodes, n_components)
        names: One name per component
    """
    points: np.ndarray
    values: np.ndarray
    names: List[str]

    @property
    def magnitude(self) -> np.ndarray:
        return np.linalg.norm(self.values, axis=1)


def nodal_field(dof_handler: DoFHandler, u: np.ndarray,
                names: Optional[List[str]] = None) -> NodalField:
    """
    Collect a solution vector per node and component.

    Parameters:
        dof_handler: DOF numbering used to compute u
        u: Solution vector of length n_dofs
        names: Component names (default: u_0, u_1, ...)
    """
    n_dofs = dof_handler.n_dofs
    if len(u) != n_dofs:
        raise DimensionMismatchError(n_dofs, len(u), "solution vector")

    n_comp = dof_handler.fe.n_components
    nodes = dof_handler.dof_nodes
    comps = dof_handler.dof_components

    values = np.zeros((dof_handler.n_nodes, n_comp))
    values[nodes, comps] = u
    points = np.zeros((dof_handler.n_nodes, dof_handler.mesh.dim))
    points[nodes] = dof_handler.support_points

    if names is None:
        names = [f"u_{c}" for c in range(n_comp)]
    if len(names) != n_comp:
        raise DimensionMismatchError(n_comp, len(names), "component names")
    return NodalField(points=points, values=values, names=list(names))


def evaluate_on_cell(cell_values: CellValues, components: np.ndarray,
                     u_local: np.ndarray, n_components: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Field values and gradients at the quadrature points of a cell.

    Returns:
        (u_q, grad_u_q) with shapes (n_q, n_components) and
        (n_q, n_components, dim)
    """
    n_q = cell_values.n_quadrature_points
    dim = cell_values.gradients.shape[2]
    u_q = np.zeros((n_q, n_components))
    grad_q = np.zeros((n_q, n_components, dim))
    for c in range(n_components):
        sel = components == c
        u_q[:, c] = cell_values.values[:, sel] @ u_local[sel]
        grad_q[:, c, :] = np.einsum("qid,i->qd", cell_values.gradients[:, sel, :], u_local[sel])
    return u_q, grad_q


def compute_l2_error(dof_handler: DoFHandler, u: np.ndarray,
                     u_exact: Callable[[np.ndarray], np.ndarray],
                     extra_points: int = 2) -> float:
    """
    L2 norm of u_h - u_exact, integrated cell by cell.

    Parameters:
        dof_handler: DOF numbering used to compute u
        u: Solution vector
        u_exact: Vectorized exact solution f(points) -> (n_points, n_components)
        extra_points: Quadrature points beyond p+1 per direction

    Returns:
        L2 error
    """
    fe = dof_handler.fe
    quadrature = GaussQuadrature(tuple(p + 1 + extra_points for p in fe.base.degrees))
    fe_values = FEValues(dof_handler.mesh, fe, quadrature)

    error_sq = 0.0
    for cell, dofs in dof_handler.active_cells():
        cv = fe_values.reinit(cell)
        u_h, _ = evaluate_on_cell(cv, fe.components, u[dofs], fe.n_components)
        exact = np.asarray(u_exact(cv.quadrature_points), dtype=float)
        diff = u_h - exact.reshape(u_h.shape)
        error_sq += np.sum(np.sum(diff ** 2, axis=1) * cv.JxW)

    return float(np.sqrt(error_sq))


def compute_h1_seminorm_error(dof_handler: DoFHandler, u: np.ndarray,
                              grad_exact: Callable[[np.ndarray], np.ndarray],
                              extra_points: int = 2) -> float:
    """
    H1 seminorm of u_h - u_exact.

    Parameters:
        grad_exact: Vectorized f(points) -> (n_points, n_components, dim)
    """
    fe = dof_handler.fe
    quadrature = GaussQuadrature(tuple(p + 1 + extra_points for p in fe.base.degrees))
    fe_values = FEValues(dof_handler.mesh, fe, quadrature)

    error_sq = 0.0
    for cell, dofs in dof_handler.active_cells():
        cv = fe_values.reinit(cell)
        _, grad_h = evaluate_on_cell(cv, fe.components, u[dofs], fe.n_components)
        diff = grad_h - np.asarray(grad_exact(cv.quadrature_points)).reshape(grad_h.shape)
        error_sq += np.sum(np.sum(diff ** 2, axis=(1, 2)) * cv.JxW)

    return float(np.sqrt(error_sq))
