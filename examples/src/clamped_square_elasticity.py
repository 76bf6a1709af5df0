#!/usr/bin/env python3
"""
Example: 2D linear elasticity on a clamped square.

This example runs the reference elasticity problem end to end:
1. Create the square [-1, 1]^2 and refine it globally
2. Number Q2 vector DOFs (Cuthill-McKee)
3. Clamp the boundary, assemble with constraints
4. Solve with SSOR-preconditioned CG and export the displacement

Problem:
    -div(μ (∇u + ∇u^T) + λ (div u) I) = f    in Ω = [-1,1]²
                                     u = 0    on ∂Ω

    μ = 1, λ = 1e7 (nearly incompressible)
    f_x = 1 inside the two disks of radius 0.2 centered at (±0.5, 0)
    f_y = 1 inside the disk of radius 0.2 at the origin, zero elsewhere

Usage:
    ./examples/src/clamped_square_elasticity.py
    ./examples/src/clamped_square_elasticity.py --refinements 3 --plot
"""

import numpy as np
import sys
from pathlib import Path

# Add project root to path (two levels up from examples/src/)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from watfFEM.discretization.mesh import Mesh
from watfFEM.solver.coefficients import LameParameters, TwoDiskBodyForce
from watfFEM.solver.elasticity import ElasticitySolver
from watfFEM.postprocess.fields import nodal_field
from watfFEM.postprocess.vtk import export_vtk_displacement


def run(n_refinements: int = 4,
        degree: int = 2,
        lam: float = 1e7,
        n_workers: int = 1,
        export_vtk: bool = True,
        plot: bool = False,
        verbose: bool = True):
    """
    Run the clamped square example.

    Parameters:
        n_refinements: Number of global refinements of [-1, 1]^2
        degree: Polynomial degree of the Lagrange element
        lam: Lamé parameter λ
        n_workers: Threads for cell assembly
        export_vtk: Whether to export VTK file
        plot: Save a PNG plot of the displacement
        verbose: Print progress information

    Returns:
        Dictionary with results (solution, iterations, mesh info)
    """
    if verbose:
        print("=" * 60)
        print("FEM 2D Elasticity Example")
        print("=" * 60)
        print(f"Degree: {degree}")
        print(f"Refinements: {n_refinements} ({2**n_refinements} x {2**n_refinements} cells)")
        print(f"Lamé: μ = 1.0, λ = {lam:g}")
        print()

    # ==========================================================================
    # 1. Create mesh
    # ==========================================================================
    mesh = Mesh.hyper_cube(-1.0, 1.0)
    mesh.refine_global(n_refinements)

    # ==========================================================================
    # 2. Set up solver (clamped boundary, two-disk load)
    # ==========================================================================
    solver = ElasticitySolver(mesh,
                              degree=degree,
                              lame=LameParameters(mu=1.0, lam=lam),
                              body_force=TwoDiskBodyForce(radius=0.2),
                              n_workers=n_workers)
    solver.setup_system()

    if verbose:
        print(f"   Number of active cells:       {mesh.n_active_cells}")
        print(f"   Number of degrees of freedom: {solver.n_dofs}")
        print(f"   Constrained DOFs:             {solver.constraints.n_constraints}")
        print(f"   Matrix nonzeros:              {solver.K.nnz}")
        print()

    # ==========================================================================
    # 3. Assemble and solve
    # ==========================================================================
    if verbose:
        print("Assembling system...")
    solver.assemble()

    if verbose:
        print("Solving linear system (CG + SSOR)...")
    u = solver.solve(tolerance=1e-12, preconditioner="ssor", relaxation=1.2)
    iterations = solver.solver_control.last_step

    field = nodal_field(solver.dof_handler, u, solver.solution_names)
    if verbose:
        print(f"   {iterations} CG iterations needed to obtain convergence.")
        for c, name in enumerate(field.names):
            print(f"   {name:>15}: [{field.values[:, c].min():.6e}, "
                  f"{field.values[:, c].max():.6e}]")
        print()

    # ==========================================================================
    # 4. Export visualization
    # ==========================================================================
    if export_vtk:
        output_file = Path(__file__).parent / "elasticity_solution.vtk"
        export_vtk_displacement(str(output_file), solver.dof_handler, u,
                                solver.solution_names)
        if verbose:
            print(f"Exported VTK file: {output_file}")

    if plot:
        from watfFEM.postprocess.plot import plot_displacement
        png = Path(__file__).parent / "elasticity_solution.png"
        plot_displacement(solver.dof_handler, u, solver.solution_names, save_path=str(png))
        if verbose:
            print(f"Saved plot: {png}")

    if verbose:
        print("=" * 60)
        print(f"  Max |u_h|: {field.magnitude.max():.6e}")
        print("=" * 60)

    return {
        'u': u,
        'iterations': iterations,
        'n_dofs': solver.n_dofs,
        'n_active_cells': mesh.n_active_cells,
        'max_displacement': float(np.max(field.magnitude)),
    }


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="2D Elasticity FEM Example")
    parser.add_argument("--refinements", "-r", type=int, default=4,
                        help="Number of global refinements (default: 4)")
    parser.add_argument("--degree", "-p", type=int, default=2,
                        help="Polynomial degree (default: 2)")
    parser.add_argument("--lam", type=float, default=1e7,
                        help="Lamé parameter λ (default: 1e7)")
    parser.add_argument("--workers", "-j", type=int, default=1,
                        help="Assembly threads (default: 1)")
    parser.add_argument("--no-vtk", action="store_true",
                        help="Skip VTK export")
    parser.add_argument("--plot", action="store_true",
                        help="Save a PNG plot")

    args = parser.parse_args()
    run(n_refinements=args.refinements, degree=args.degree, lam=args.lam,
        n_workers=args.workers, export_vtk=not args.no_vtk, plot=args.plot)
