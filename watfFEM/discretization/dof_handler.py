"""
Global degree-of-freedom numbering.

The DoFHandler enumerates the unknowns of a finite element on the
active cells of a mesh:

- Scalar support points are shared between neighboring cells
  (identified by their physical coordinates), giving "nodes"
- Each node carries one DOF per vector component
- Every active cell gets a local-to-global index array with
  fe.dofs_per_cell entries, in the FESystem's local order

After distribute_dofs() the numbering can be permuted, e.g. by
Cuthill-McKee to reduce the bandwidth of the system matrix.

Example:
    dof_handler = DoFHandler(mesh)
    dof_handler.distribute_dofs(FESystem.lagrange(2, 2))
    dof_handler.renumber_cuthill_mckee()
    dofs = dof_handler.cell_dofs(cell)   # shape (18,)
"""

import logging
import numpy as np
from scipy import sparse
from scipy.sparse.csgraph import reverse_cuthill_mckee
from typing import Dict, Iterator, Optional, Sequence, Tuple

from .cell import Cell
from .fe_system import FESystem
from .mesh import Mesh, _COORD_DECIMALS
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class DoFHandler:
    """
    Maps (active cell, local DOF) pairs to global DOF indices.

    Attributes:
        mesh: The mesh whose active cells are numbered
        fe: The finite element (set by distribute_dofs)
    """

    def __init__(self, mesh: Mesh):
        self.mesh = mesh
        self.fe: Optional[FESystem] = None

        self._cell_dofs: Dict[int, np.ndarray] = {}
        self._dof_support_points: Optional[np.ndarray] = None
        self._dof_components: Optional[np.ndarray] = None
        self._dof_nodes: Optional[np.ndarray] = None
        self._n_nodes = 0

    def distribute_dofs(self, fe: FESystem) -> None:
        """
        Enumerate all DOFs for the given element.

        Nodes are numbered in order of first appearance while looping
        over active cells; DOF index = node * n_components + component.
        """
        if fe.n_dim != self.mesh.dim:
            raise ConfigurationError(
                f"Element dimension {fe.n_dim} does not match mesh dimension {self.mesh.dim}")

        self.fe = fe
        ref_points = fe.base.support_points()

        node_index: Dict[Tuple[float, ...], int] = {}
        node_points = []
        cell_nodes: Dict[int, np.ndarray] = {}

        for cell in self.mesh.active_cells():
            phys = cell.reference_to_physical(ref_points)
            nodes = np.empty(len(phys), dtype=int)
            for k, x in enumerate(phys):
                key = tuple(np.round(x, _COORD_DECIMALS) + 0.0)
                nid = node_index.get(key)
                if nid is None:
                    nid = len(node_points)
                    node_index[key] = nid
                    node_points.append(x)
                nodes[k] = nid
            cell_nodes[cell.id] = nodes

        n_comp = fe.n_components
        self._n_nodes = len(node_points)
        node_points = np.array(node_points)

        self._cell_dofs = {
            cid: nodes[fe.base_indices] * n_comp + fe.components
            for cid, nodes in cell_nodes.items()
        }
        self._dof_nodes = np.repeat(np.arange(self._n_nodes), n_comp)
        self._dof_components = np.tile(np.arange(n_comp), self._n_nodes)
        self._dof_support_points = node_points[self._dof_nodes]

        logger.info("Distributed %d DOFs on %d active cells (%s)",
                    self.n_dofs, self.mesh.n_active_cells, fe)

    def _check_distributed(self) -> None:
        if self.fe is None:
            raise RuntimeError("DOFs not distributed. Call distribute_dofs() first.")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def n_dofs(self) -> int:
        """Total number of global DOFs."""
        self._check_distributed()
        return self._n_nodes * self.fe.n_components

    @property
    def n_nodes(self) -> int:
        """Number of distinct scalar support points."""
        return self._n_nodes

    @property
    def dofs_per_cell(self) -> int:
        self._check_distributed()
        return self.fe.dofs_per_cell

    @property
    def support_points(self) -> np.ndarray:
        """Physical support point of every DOF, shape (n_dofs, dim)."""
        self._check_distributed()
        return self._dof_support_points

    @property
    def dof_components(self) -> np.ndarray:
        """Vector component of every DOF, shape (n_dofs,)."""
        self._check_distributed()
        return self._dof_components

    @property
    def dof_nodes(self) -> np.ndarray:
        """Node (shared support point) of every DOF, shape (n_dofs,)."""
        self._check_distributed()
        return self._dof_nodes

    def cell_dofs(self, cell: Cell) -> np.ndarray:
        """Local-to-global DOF indices of an active cell."""
        self._check_distributed()
        return self._cell_dofs[cell.id]

    def active_cells(self) -> Iterator[Tuple[Cell, np.ndarray]]:
        """Iterate over (cell, local-to-global indices) for active cells."""
        self._check_distributed()
        for cell in self.mesh.active_cells():
            yield cell, self._cell_dofs[cell.id]

    def boundary_dofs(self, component_mask: Optional[Sequence[bool]] = None) -> np.ndarray:
        """
        DOFs whose support point lies on the domain boundary.

        Parameters:
            component_mask: Per-component selection, defaults to all components

        Returns:
            Sorted array of global DOF indices
        """
        self._check_distributed()
        selected = self.mesh.on_boundary(self._dof_support_points)
        if component_mask is not None:
            mask = np.asarray(component_mask, dtype=bool)
            if len(mask) != self.fe.n_components:
                raise ConfigurationError(
                    f"Component mask has {len(mask)} entries, element has "
                    f"{self.fe.n_components} components")
            selected &= mask[self._dof_components]
        return np.flatnonzero(selected)

    # -------------------------------------------------------------------------
    # Renumbering
    # -------------------------------------------------------------------------

    def coupling_graph(self) -> sparse.csr_matrix:
        """Symmetric DOF-DOF coupling graph induced by shared cells."""
        self._check_distributed()
        rows, cols = [], []
        for dofs in self._cell_dofs.values():
            r, c = np.meshgrid(dofs, dofs, indexing="ij")
            rows.append(r.ravel())
            cols.append(c.ravel())
        rows = np.concatenate(rows)
        cols = np.concatenate(cols)
        data = np.ones(len(rows), dtype=np.int8)
        graph = sparse.csr_matrix((data, (rows, cols)), shape=(self.n_dofs, self.n_dofs))
        graph.sum_duplicates()
        return graph

    def renumber(self, new_numbers: np.ndarray) -> None:
        """
        Apply a permutation: old DOF i becomes new_numbers[i].
        """
        self._check_distributed()
        new_numbers = np.asarray(new_numbers, dtype=int)
        if sorted(new_numbers.tolist()) != list(range(self.n_dofs)):
            raise ConfigurationError("Renumbering is not a permutation of the DOF indices")

        self._cell_dofs = {cid: new_numbers[dofs] for cid, dofs in self._cell_dofs.items()}

        old_of_new = np.empty_like(new_numbers)
        old_of_new[new_numbers] = np.arange(self.n_dofs)
        self._dof_nodes = self._dof_nodes[old_of_new]
        self._dof_components = self._dof_components[old_of_new]
        self._dof_support_points = self._dof_support_points[old_of_new]

    def renumber_cuthill_mckee(self, reverse: bool = False) -> None:
        """
        Renumber DOFs with the Cuthill-McKee algorithm.

        Parameters:
            reverse: Use the reverse Cuthill-McKee ordering instead
        """
        graph = self.coupling_graph()
        order = reverse_cuthill_mckee(graph, symmetric_mode=True)
        if not reverse:
            order = order[::-1]

        new_numbers = np.empty(self.n_dofs, dtype=int)
        new_numbers[order] = np.arange(self.n_dofs)
        self.renumber(new_numbers)
        logger.debug("Cuthill-McKee renumbering applied (reverse=%s)", reverse)
