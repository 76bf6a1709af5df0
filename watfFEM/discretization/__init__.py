"""
Discretization module for Lagrange finite elements.

Provides:
- LagrangeBasis: Tensor-product Lagrange basis Q_p on [0,1]^d
- FESystem: Vector-valued element built from copies of a scalar basis
- Cell: Axis-aligned cell with refinement tree links
- Mesh: Hyper-rectangle mesh with global and local refinement
- DoFHandler: Global DOF numbering and Cuthill-McKee renumbering
- FEValues: Shape values, gradients and JxW on a cell
"""

from .lagrange import LagrangeBasis, lagrange_nodes_1d, lagrange_basis_ders_1d
from .fe_system import FESystem
from .cell import Cell
from .mesh import Mesh
from .dof_handler import DoFHandler
from .fe_values import FEValues, CellValues

# DoF tools depend on linalg; import them directly:
# from watfFEM.discretization.dof_tools import make_sparsity_pattern, ...
