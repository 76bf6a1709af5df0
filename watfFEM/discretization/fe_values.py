"""
Shape function values, gradients and integration weights per cell.

FEValues combines a finite element with a quadrature rule. Reference
quantities (shape values and reference gradients at the quadrature
points) are computed once. For every cell, reinit() applies the
geometric mapping and returns a CellValues snapshot with:

1. Physical quadrature points x(q)
2. Shape values N_i(q) of every local DOF
3. Physical gradients ∇N_i(q) = J^{-T} ∇_ref N_i(q)
4. JxW(q) = w_q * |det J(q)|

The mapping is the multilinear (Q1) interpolation of the cell
vertices. CellValues is immutable, so one FEValues object can be
shared by worker threads.
"""

import numpy as np
from dataclasses import dataclass
from typing import Tuple

from .cell import Cell
from .fe_system import FESystem
from .lagrange import LagrangeBasis
from .mesh import Mesh
from ..quadrature.gauss import GaussQuadrature
from ..errors import ConfigurationError, DimensionMismatchError


@dataclass(frozen=True)
class CellValues:
    """
    Finite element values on one cell.

    Attributes:
        cell_id: ID of the cell these values belong to
        quadrature_points: Physical points, shape (n_q, dim)
        values: Shape values of each local DOF, shape (n_q, dofs_per_cell)
        gradients: Physical gradients, shape (n_q, dofs_per_cell, dim)
        JxW: Jacobian-weighted quadrature weights, shape (n_q,)
    """
    cell_id: int
    quadrature_points: np.ndarray
    values: np.ndarray
    gradients: np.ndarray
    JxW: np.ndarray

    @property
    def n_quadrature_points(self) -> int:
        return len(self.JxW)

    def shape_value(self, i: int, q: int) -> float:
        """Value of the nonzero component of shape function i at point q."""
        return self.values[q, i]

    def shape_grad(self, i: int, q: int) -> np.ndarray:
        """Gradient of the nonzero component of shape function i at point q."""
        return self.gradients[q, i]


class FEValues:
    """
    Evaluates an FESystem on mesh cells with a given quadrature rule.

    Example:
        fe_values = FEValues(mesh, fe, GaussQuadrature.for_degree((2, 2)))
        cv = fe_values.reinit(cell)
        cv.JxW.sum()   # cell area
    """

    def __init__(self, mesh: Mesh, fe: FESystem, quadrature: GaussQuadrature):
        if quadrature.n_dim != fe.n_dim:
            raise ConfigurationError(
                f"Quadrature dimension {quadrature.n_dim} does not match "
                f"element dimension {fe.n_dim}")
        if len(quadrature.weights) != len(quadrature.points):
            raise DimensionMismatchError(len(quadrature.points), len(quadrature.weights),
                                         "quadrature weights")

        self.mesh = mesh
        self.fe = fe
        self.quadrature = quadrature
        self.mapping = LagrangeBasis(1, fe.n_dim)

        # Reference data, shared by every cell
        base_values, base_grads = fe.base.eval_ders(quadrature.points)
        self._ref_values = base_values[:, fe.base_indices]
        self._ref_grads = base_grads[:, fe.base_indices, :]
        self._map_values, self._map_grads = self.mapping.eval_ders(quadrature.points)

    @property
    def n_quadrature_points(self) -> int:
        return self.quadrature.n_points

    @property
    def dofs_per_cell(self) -> int:
        return self.fe.dofs_per_cell

    def mapping_jacobians(self, cell: Cell) -> Tuple[np.ndarray, np.ndarray]:
        """
        Physical quadrature points and mapping Jacobians on a cell.

        Returns:
            (points, J) with points of shape (n_q, dim) and J of shape
            (n_q, dim, dim), J[q, a, b] = dx_a / dt_b
        """
        X = self.mesh.cell_vertices(cell)                 # (n_v, dim)
        points = self._map_values @ X                      # (n_q, dim)
        J = np.einsum("qvb,va->qab", self._map_grads, X)
        return points, J

    def reinit(self, cell: Cell) -> CellValues:
        """Compute the physical values on `cell`."""
        points, J = self.mapping_jacobians(cell)
        det_J = np.linalg.det(J)
        if np.any(det_J <= 0.0):
            raise ConfigurationError(f"Cell {cell.id} has a degenerate or inverted mapping")

        inv_J = np.linalg.inv(J)
        # ∇N = J^{-T} ∇_ref N, i.e. dN/dx_a = sum_b dN/dt_b * dt_b/dx_a
        grads = np.einsum("qib,qba->qia", self._ref_grads, inv_J)

        return CellValues(
            cell_id=cell.id,
            quadrature_points=points,
            values=self._ref_values,
            gradients=grads,
            JxW=self.quadrature.weights * np.abs(det_J),
        )
