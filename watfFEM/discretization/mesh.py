"""
Structured box mesh with hierarchical refinement.

The Mesh class is the geometric/topological collaborator of the
solver:
1. Owns all cells and vertices
2. Tracks the active subset (leaves of the refinement tree)
3. Provides the active-cell iterator used by assembly
4. Answers boundary queries for Dirichlet constraints

Key design principles:
- Cells stored in a dictionary by ID, created in deterministic order
- Vertices are shared between neighboring cells (deduplicated by
  coordinate), so the mesh is conforming after uniform refinement
- Refining a subset of cells is allowed and produces hanging nodes;
  the DoF tools turn those into affine constraints

Example:
    mesh = Mesh.hyper_cube(-1.0, 1.0, dim=2)
    mesh.refine_global(4)
    mesh.n_active_cells   # 256
"""

import itertools
import logging
import numpy as np
from typing import List, Dict, Set, Tuple, Iterator, Iterable, Sequence

from .cell import Cell
from ..errors import ConfigurationError, NotImplementedDimensionError

logger = logging.getLogger(__name__)

_COORD_DECIMALS = 12


class Mesh:
    """
    Box-shaped mesh of axis-aligned cells with explicit active tracking.

    Attributes:
        lower: Lower corner of the domain
        upper: Upper corner of the domain
        dim: Spatial dimension
        cells: Dictionary mapping cell ID -> Cell
    """

    def __init__(self, lower: Sequence[float], upper: Sequence[float]):
        """
        Initialize a mesh consisting of a single coarse cell.

        Parameters:
            lower: Lower corner of the domain box
            upper: Upper corner of the domain box
        """
        lower = np.asarray(lower, dtype=float)
        upper = np.asarray(upper, dtype=float)

        if lower.shape != upper.shape or lower.ndim != 1:
            raise ConfigurationError("Domain corners must be 1D arrays of equal length")
        dim = len(lower)
        if dim < 2:
            raise NotImplementedDimensionError(dim)
        if dim > 3:
            raise ConfigurationError(f"Unsupported spatial dimension: {dim}")
        if np.any(upper <= lower):
            raise ConfigurationError(f"Empty domain: lower={lower}, upper={upper}")

        self.lower = lower
        self.upper = upper
        self.dim = dim

        self._cells: Dict[int, Cell] = {}
        self._active_cells: Set[int] = set()
        self._vertices: List[np.ndarray] = []
        self._vertex_index: Dict[Tuple[float, ...], int] = {}

        bounds = tuple((float(lo), float(hi)) for lo, hi in zip(lower, upper))
        self._create_cell(bounds, level=0, parent_id=None)

    @classmethod
    def hyper_cube(cls, left: float = -1.0, right: float = 1.0, dim: int = 2) -> 'Mesh':
        """Mesh of the cube [left, right]^dim with one cell."""
        if dim < 2:
            raise NotImplementedDimensionError(dim)
        return cls([left] * dim, [right] * dim)

    @classmethod
    def hyper_rectangle(cls, lower: Sequence[float], upper: Sequence[float]) -> 'Mesh':
        """Mesh of the box [lower, upper] with one cell."""
        return cls(lower, upper)

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    def _vertex_id(self, coord: np.ndarray) -> int:
        key = tuple(np.round(coord, _COORD_DECIMALS) + 0.0)
        vid = self._vertex_index.get(key)
        if vid is None:
            vid = len(self._vertices)
            self._vertices.append(np.array(coord, dtype=float))
            self._vertex_index[key] = vid
        return vid

    def _create_cell(self, bounds: Tuple[Tuple[float, float], ...],
                     level: int, parent_id) -> Cell:
        corners = []
        # Tensor order with x fastest
        for multi in itertools.product(*([(0, 1)] * self.dim)):
            corners.append([bounds[d][multi[self.dim - 1 - d]] for d in range(self.dim)])

        vertex_ids = [self._vertex_id(np.array(c)) for c in corners]
        cell = Cell(id=len(self._cells), level=level, bounds=bounds,
                    vertex_ids=vertex_ids, active=True, parent_id=parent_id)
        self._cells[cell.id] = cell
        self._active_cells.add(cell.id)
        return cell

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def cells(self) -> Dict[int, Cell]:
        """All cells (active and inactive)."""
        return self._cells

    @property
    def vertices(self) -> np.ndarray:
        """Vertex coordinates, shape (n_vertices, dim)."""
        return np.array(self._vertices)

    @property
    def n_vertices(self) -> int:
        return len(self._vertices)

    @property
    def n_cells(self) -> int:
        """Total number of cells (active and inactive)."""
        return len(self._cells)

    @property
    def n_active_cells(self) -> int:
        """Number of active cells."""
        return len(self._active_cells)

    @property
    def max_level(self) -> int:
        """Maximum refinement level among active cells."""
        return max(self._cells[cid].level for cid in self._active_cells)

    # -------------------------------------------------------------------------
    # Accessors for assembly
    # -------------------------------------------------------------------------

    def active_cells(self) -> Iterator[Cell]:
        """
        Iterate over active cells in ascending ID order.

        This is the primary method for assembly. The order is
        deterministic so repeated assembly is bit-identical.
        """
        for cid in sorted(self._active_cells):
            yield self._cells[cid]

    def active_cells_list(self) -> List[Cell]:
        return list(self.active_cells())

    def cell_vertices(self, cell: Cell) -> np.ndarray:
        """Vertex coordinates of a cell, shape (2^dim, dim)."""
        return np.array([self._vertices[v] for v in cell.vertex_ids])

    # -------------------------------------------------------------------------
    # Refinement
    # -------------------------------------------------------------------------

    def refine_cells(self, cell_ids: Iterable[int]) -> List[int]:
        """
        Bisect the given active cells in every direction.

        Refining only some cells creates hanging nodes on the interfaces
        to unrefined neighbors.

        Parameters:
            cell_ids: IDs of active cells to refine

        Returns:
            IDs of the newly created child cells
        """
        new_ids = []
        for cid in sorted(set(cell_ids)):
            if cid not in self._active_cells:
                raise ConfigurationError(f"Cell {cid} is not active and cannot be refined")
            parent = self._cells[cid]
            mids = [(lo + hi) / 2.0 for lo, hi in parent.bounds]

            for multi in itertools.product(*([(0, 1)] * self.dim)):
                bounds = []
                for d in range(self.dim):
                    lo, hi = parent.bounds[d]
                    half = multi[self.dim - 1 - d]
                    bounds.append((lo, mids[d]) if half == 0 else (mids[d], hi))
                child = self._create_cell(tuple(bounds), parent.level + 1, parent.id)
                parent.children_ids.append(child.id)
                new_ids.append(child.id)

            parent.active = False
            self._active_cells.discard(cid)

        return new_ids

    def refine_global(self, times: int = 1) -> None:
        """Uniformly refine all active cells `times` times."""
        if times < 0:
            raise ConfigurationError(f"Number of refinements must be >= 0, got {times}")
        for _ in range(times):
            self.refine_cells(list(self._active_cells))
        logger.info("Mesh refined %d times: %d active cells", times, self.n_active_cells)

    # -------------------------------------------------------------------------
    # Boundary queries
    # -------------------------------------------------------------------------

    def on_boundary(self, points: np.ndarray, tol: float = 1e-10) -> np.ndarray:
        """
        Test which points lie on the boundary of the domain box.

        Parameters:
            points: Physical coordinates, shape (n, dim)

        Returns:
            Boolean array of shape (n,)
        """
        points = np.atleast_2d(points)
        scale = np.max(self.upper - self.lower)
        at_lower = np.abs(points - self.lower) <= tol * scale
        at_upper = np.abs(points - self.upper) <= tol * scale
        return np.any(at_lower | at_upper, axis=1)

    def summary(self) -> str:
        """Human-readable one-line description."""
        return (f"Mesh(dim={self.dim}, domain={self.lower.tolist()}..{self.upper.tolist()}, "
                f"active cells={self.n_active_cells}, max level={self.max_level})")
