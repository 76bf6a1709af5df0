"""
Cell abstraction for axis-aligned hexahedral/quadrilateral meshes.

Each cell:
- Covers a box [x_min, x_max] x [y_min, y_max] (x [z_min, z_max])
- Knows its vertices by global vertex ID, in tensor order (x fastest)
- Has a refinement level and parent/children links
- Can be active or inactive (refined cells are inactive)

Key design principles:
1. Only active cells take part in assembly
2. Cells carry no DOF information; numbering lives in the DoFHandler
3. The geometric mapping is the multilinear interpolation of the
   vertices (see FEValues), the box bounds are kept for fast
   point location and refinement
"""

import numpy as np
from typing import Tuple, List, Optional
from dataclasses import dataclass, field


@dataclass
class Cell:
    """
    Mesh cell with explicit vertex linking.

    Attributes:
        id: Unique cell identifier
        level: Refinement level (0 = coarsest)
        bounds: ((x_min, x_max), ...) bounds in each direction
        vertex_ids: Global vertex IDs, 2^dim entries in tensor order
        active: Whether this cell is active in the analysis
        parent_id: ID of the parent cell (None for coarse cells)
        children_ids: IDs of the 2^dim children after refinement
    """
    id: int
    level: int
    bounds: Tuple[Tuple[float, float], ...]
    vertex_ids: List[int]
    active: bool = True
    parent_id: Optional[int] = None
    children_ids: List[int] = field(default_factory=list)

    @property
    def n_dim(self) -> int:
        """Number of spatial dimensions."""
        return len(self.bounds)

    @property
    def lower(self) -> np.ndarray:
        return np.array([b[0] for b in self.bounds])

    @property
    def upper(self) -> np.ndarray:
        return np.array([b[1] for b in self.bounds])

    @property
    def size(self) -> np.ndarray:
        """Edge length in each direction."""
        return self.upper - self.lower

    @property
    def measure(self) -> float:
        """Area (2D) or volume (3D) of the cell."""
        return float(np.prod(self.size))

    @property
    def diameter(self) -> float:
        return float(np.linalg.norm(self.size))

    def reference_to_physical(self, t: np.ndarray) -> np.ndarray:
        """
        Map reference coordinates [0,1]^d to physical coordinates.

        Parameters:
            t: Reference coordinates, shape (n, d) or (d,)

        Returns:
            Physical coordinates with the same shape
        """
        return self.lower + np.asarray(t) * self.size

    def contains(self, points: np.ndarray, tol: float = 1e-10) -> np.ndarray:
        """
        Test which points lie in the closed box of this cell.

        Parameters:
            points: Physical coordinates, shape (n, d)
            tol: Tolerance for boundary comparison

        Returns:
            Boolean array of shape (n,)
        """
        points = np.atleast_2d(points)
        return np.all((points >= self.lower - tol) & (points <= self.upper + tol), axis=1)

    def is_leaf(self) -> bool:
        """Check if this cell has no children."""
        return len(self.children_ids) == 0

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, Cell):
            return self.id == other.id
        return False
