"""
Base solver class for constrained finite element problems.

This module defines the abstract interface for solvers and the
common machinery for cell-by-cell assembly into a constrained
sparse system.

Design principles:
1. Solver operates cell-by-cell, receiving CellValues snapshots
2. Subclasses only implement the local weak form
3. Constraints (hanging nodes, Dirichlet) are eliminated during
   assembly by AffineConstraints.distribute_local_to_global
4. The matrix structure is fixed before numeric assembly

The pipeline is:
    setup_system():
        # 1. Number DOFs, renumber (Cuthill-McKee)
        # 2. Hanging-node constraints, then boundary values; close
        # 3. Sparsity pattern from cells + constraints; allocate A, b, u
    assemble():
        # 4. For every active cell: CellValues -> (K_cell, f_cell)
        #    (optionally on worker threads)
        # 5. Serially, in cell order: distribute_local_to_global
    solve():
        # 6. Preconditioned CG on the condensed system
        # 7. constraints.distribute(u)
"""

import logging
import time
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ..discretization.mesh import Mesh
from ..discretization.cell import Cell
from ..discretization.fe_system import FESystem
from ..discretization.dof_handler import DoFHandler
from ..discretization.fe_values import FEValues, CellValues
from ..discretization.dof_tools import (make_hanging_node_constraints,
                                        interpolate_boundary_values,
                                        make_sparsity_pattern)
from ..linalg.constraints import AffineConstraints
from ..linalg.sparsity import SparsityPattern, SparseMatrix
from ..linalg.solvers import SolverControl, SolverCG, make_preconditioner
from ..quadrature.gauss import GaussQuadrature
from ..utils.parallel import run_parallel
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

_ASSEMBLY_CHUNK = 512


@dataclass
class DirichletBC:
    """
    Dirichlet boundary condition on the whole domain boundary.

    Attributes:
        function: Vectorized g(points) -> (n_points, n_components);
                  None for homogeneous conditions
        component_mask: Components the condition applies to (None = all)
    """
    function: Optional[Callable[[np.ndarray], np.ndarray]] = None
    component_mask: Optional[Sequence[bool]] = None

    @classmethod
    def homogeneous(cls, component_mask: Optional[Sequence[bool]] = None) -> 'DirichletBC':
        """Clamped boundary: u = 0."""
        return cls(None, component_mask)


class AssemblyContext:
    """
    Shared accumulation target of one assembly pass.

    Holds the global matrix and right-hand side together with the
    constraints used to condense cell contributions. Only the thread
    running the accumulation loop writes to it.
    """

    def __init__(self, constraints: AffineConstraints,
                 matrix: SparseMatrix, rhs: np.ndarray):
        self.constraints = constraints
        self.matrix = matrix
        self.rhs = rhs
        self.n_cells = 0

    def reset(self) -> None:
        self.matrix.set_zero()
        self.rhs[:] = 0.0
        self.n_cells = 0

    def add_cell_contribution(self, cell_matrix: np.ndarray, cell_rhs: np.ndarray,
                              local_dof_indices: np.ndarray) -> None:
        self.constraints.distribute_local_to_global(
            cell_matrix, cell_rhs, local_dof_indices, self.matrix, self.rhs)
        self.n_cells += 1


class Solver(ABC):
    """
    Abstract base class for constrained FE solvers.

    Subclasses implement specific PDEs by overriding:
    - compute_cell_matrices: builds cell matrix and right-hand side
    """

    def __init__(self, mesh: Mesh, fe: FESystem,
                 quadrature_rule: str = "full",
                 renumbering: Optional[str] = "cuthill_mckee",
                 n_workers: int = 1):
        """
        Initialize solver with mesh and element.

        Parameters:
            mesh: Mesh with active cells
            fe: Finite element
            quadrature_rule: "full" (p+1 points) or "reduced" (p points)
            renumbering: "cuthill_mckee", "reverse_cuthill_mckee" or None
            n_workers: Threads for cell-local assembly (1 = serial, 0 = all CPUs)
        """
        if renumbering not in (None, "none", "cuthill_mckee", "reverse_cuthill_mckee"):
            raise ConfigurationError(f"Unknown renumbering: {renumbering}")

        self.mesh = mesh
        self.fe = fe
        self.quadrature = GaussQuadrature.for_degree(fe.base.degrees, rule=quadrature_rule)
        self.renumbering = renumbering
        self.n_workers = n_workers

        self.dof_handler = DoFHandler(mesh)
        self.constraints: Optional[AffineConstraints] = None
        self.sparsity_pattern: Optional[SparsityPattern] = None

        # Storage for the assembled system
        self.K: Optional[SparseMatrix] = None   # Global stiffness matrix
        self.f: Optional[np.ndarray] = None     # Global load vector
        self.u: Optional[np.ndarray] = None     # Solution vector

        self.solver_control: Optional[SolverControl] = None
        self._dirichlet_bcs: List[DirichletBC] = []
        self._assembled = False

    def add_dirichlet_bc(self, bc: DirichletBC) -> None:
        """Add a Dirichlet boundary condition (before setup_system)."""
        if self.constraints is not None:
            raise RuntimeError("Boundary conditions must be added before setup_system()")
        self._dirichlet_bcs.append(bc)

    @property
    def n_dofs(self) -> int:
        return self.dof_handler.n_dofs

    @property
    def is_setup(self) -> bool:
        return self.constraints is not None

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def setup_system(self) -> None:
        """Number DOFs, build constraints and sparsity, allocate storage."""
        self.dof_handler.distribute_dofs(self.fe)
        if self.renumbering == "cuthill_mckee":
            self.dof_handler.renumber_cuthill_mckee()
        elif self.renumbering == "reverse_cuthill_mckee":
            self.dof_handler.renumber_cuthill_mckee(reverse=True)

        constraints = AffineConstraints()
        make_hanging_node_constraints(self.dof_handler, constraints)
        for bc in self._dirichlet_bcs:
            interpolate_boundary_values(self.dof_handler, constraints,
                                        bc.function, bc.component_mask)
        constraints.close()
        self.constraints = constraints

        self.sparsity_pattern = make_sparsity_pattern(self.dof_handler, constraints)
        self.K = SparseMatrix(self.sparsity_pattern)
        self.f = np.zeros(self.n_dofs)
        self.u = np.zeros(self.n_dofs)
        self._assembled = False

        logger.info("Number of active cells: %d", self.mesh.n_active_cells)
        logger.info("Number of degrees of freedom: %d", self.n_dofs)

    # -------------------------------------------------------------------------
    # Assembly
    # -------------------------------------------------------------------------

    @abstractmethod
    def compute_cell_matrices(self, cell_values: CellValues) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute cell matrix and right-hand side.

        Parameters:
            cell_values: Shape values, gradients and JxW on one cell

        Returns:
            (K_cell, f_cell) with shapes (dofs_per_cell, dofs_per_cell)
            and (dofs_per_cell,)
        """

    def make_fe_values(self) -> FEValues:
        return FEValues(self.mesh, self.fe, self.quadrature)

    def assemble(self) -> None:
        """
        Assemble the condensed global matrix and right-hand side.

        Cell matrices are computed (in parallel if n_workers != 1) in
        chunks; each chunk is then accumulated serially in cell order,
        so the result does not depend on the number of workers.
        """
        if not self.is_setup:
            raise RuntimeError("System not set up. Call setup_system() first.")

        start = time.perf_counter()
        fe_values = self.make_fe_values()
        context = AssemblyContext(self.constraints, self.K, self.f)
        context.reset()

        def local_work(cell: Cell):
            return self.compute_cell_matrices(fe_values.reinit(cell))

        cells = self.mesh.active_cells_list()
        for begin in range(0, len(cells), _ASSEMBLY_CHUNK):
            chunk = cells[begin:begin + _ASSEMBLY_CHUNK]
            results = run_parallel(chunk, self.n_workers, local_work)
            for cell, (cell_matrix, cell_rhs) in zip(chunk, results):
                context.add_cell_contribution(cell_matrix, cell_rhs,
                                              self.dof_handler.cell_dofs(cell))

        self._assembled = True
        logger.debug("Assembled %d cells in %.3f s", context.n_cells,
                     time.perf_counter() - start)

    # -------------------------------------------------------------------------
    # Solve
    # -------------------------------------------------------------------------

    def solve(self, tolerance: float = 1e-12,
              max_iterations: int = 1_000_000,
              preconditioner: str = "ssor",
              relaxation: float = 1.2) -> np.ndarray:
        """
        Solve the assembled system with preconditioned CG.

        Parameters:
            tolerance: Absolute residual tolerance
            max_iterations: Iteration budget
            preconditioner: "ssor", "jacobi" or "identity"
            relaxation: Relaxation parameter of the preconditioner

        Returns:
            Solution vector u (constrained entries filled in)

        Raises:
            IterativeSolverDidNotConverge: if the budget is exhausted
        """
        if not self._assembled:
            raise RuntimeError("System not assembled. Call assemble() first.")

        A = self.K.to_csr()
        self.u[:] = 0.0
        self.solver_control = SolverControl(max_steps=max_iterations, tolerance=tolerance)
        cg = SolverCG(self.solver_control)

        if not self.f.any():
            logger.warning("Right-hand side is zero; solution is zero")
        cg.solve(A, self.u, self.f, make_preconditioner(preconditioner, A, relaxation))

        self.constraints.distribute(self.u)
        return self.u

    def run(self, **solve_options) -> np.ndarray:
        """
        Convenience method to set up, assemble and solve.

        Returns:
            Solution vector
        """
        if not self.is_setup:
            self.setup_system()
        self.assemble()
        return self.solve(**solve_options)
