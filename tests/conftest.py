"""
Pytest configuration and shared fixtures for FEM tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from watfFEM.discretization.mesh import Mesh
from watfFEM.discretization.fe_system import FESystem
from watfFEM.discretization.dof_handler import DoFHandler


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for numerical integration tests."""
    return 1e-8


@pytest.fixture
def square_mesh():
    """[-1, 1]^2 refined twice (4 x 4 cells)."""
    mesh = Mesh.hyper_cube(-1.0, 1.0)
    mesh.refine_global(2)
    return mesh


@pytest.fixture
def hanging_mesh():
    """[-1, 1]^2 refined twice, then the lower-left cell once more."""
    mesh = Mesh.hyper_cube(-1.0, 1.0)
    mesh.refine_global(2)
    corner = min(mesh.active_cells_list(), key=lambda c: tuple(c.lower))
    mesh.refine_cells([corner.id])
    return mesh


@pytest.fixture
def q2_dof_handler(square_mesh):
    """Q2 vector DOFs on the 4 x 4 mesh, natural numbering."""
    dof_handler = DoFHandler(square_mesh)
    dof_handler.distribute_dofs(FESystem.lagrange(2, 2))
    return dof_handler
