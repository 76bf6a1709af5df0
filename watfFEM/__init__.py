"""
watfFEM - Finite Element Library

A research-grade implementation of the finite element method for
vector-valued problems, starting with 2D linear elasticity (Lamé)
on Q_p Lagrange elements.

Key modules:
- discretization: Lagrange basis, vector element, mesh, DOF numbering
- linalg: Affine constraints, sparsity pattern, CG with SSOR
- solver: Lamé parameters, body forces, elasticity solver
- quadrature: Gauss-Legendre integration
- postprocess: Nodal fields, error norms, VTK export, plots

Quick start:
    from watfFEM.discretization.mesh import Mesh
    from watfFEM.solver.elasticity import ElasticitySolver
    from watfFEM.solver.coefficients import LameParameters
    from watfFEM.postprocess.vtk import export_vtk_displacement

    # Square [-1, 1]^2, 16 x 16 cells
    mesh = Mesh.hyper_cube(-1.0, 1.0)
    mesh.refine_global(4)

    # Clamped body loaded by two disks
    solver = ElasticitySolver(mesh, degree=2, lame=LameParameters(mu=1.0, lam=1e7))
    u = solver.run()

    export_vtk_displacement("solution.vtk", solver.dof_handler, u,
                            solver.solution_names)

Hanging nodes:
    mesh = Mesh.hyper_cube(-1.0, 1.0)
    mesh.refine_global(2)
    mesh.refine_cells([mesh.active_cells_list()[0].id])
    # Constraints for the hanging support points are built in setup_system()
"""

__version__ = "0.1.0"
__author__ = "Wataru Fukuda"

# Core imports for convenience
from .errors import (WatfFEMError, ConfigurationError, DimensionMismatchError,
                     NotImplementedDimensionError, StructuralError,
                     ConvergenceError, IterativeSolverDidNotConverge)
from .discretization.mesh import Mesh
from .discretization.fe_system import FESystem
from .discretization.dof_handler import DoFHandler
from .linalg.constraints import AffineConstraints
from .linalg.sparsity import SparsityPattern, SparseMatrix
from .linalg.solvers import SolverControl, SolverCG, PreconditionSSOR
from .solver.base import DirichletBC
from .solver.coefficients import LameParameters, TwoDiskBodyForce
from .solver.elasticity import ElasticitySolver
from .postprocess.vtk import export_vtk_displacement
