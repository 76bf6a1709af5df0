#!/usr/bin/env python3
"""
Example: convergence study with a manufactured solution.

Problem:
    -div(μ (∇u + ∇u^T) + λ (div u) I) = f    in Ω = [-1,1]²
                                     u = 0    on ∂Ω

Manufactured solution:
    u_exact = (φ, φ),  φ = sin(πx) sin(πy)
    f_x = f_y = 2μπ² φ + (μ + λ) π² (φ - cos(πx) cos(πy))

For Q_p elements the L2 error decreases as h^(p+1) and the H1
seminorm error as h^p.

Usage:
    ./examples/src/elasticity_convergence.py
    ./examples/src/elasticity_convergence.py --degree 1 --max-refinements 5
"""

import numpy as np
import sys
from pathlib import Path

# Add project root to path (two levels up from examples/src/)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from watfFEM.discretization.mesh import Mesh
from watfFEM.solver.coefficients import LameParameters, FunctionBodyForce
from watfFEM.solver.elasticity import ElasticitySolver
from watfFEM.postprocess.fields import compute_l2_error, compute_h1_seminorm_error


def manufactured_problem(mu: float = 1.0, lam: float = 1.0):
    """
    Exact solution, its gradient and the matching body force.

    Returns:
        (u_exact, grad_exact, force), each vectorized over points (n, 2)
    """
    pi = np.pi

    def u_exact(points):
        phi = np.sin(pi * points[:, 0]) * np.sin(pi * points[:, 1])
        return np.column_stack([phi, phi])

    def grad_exact(points):
        x, y = points[:, 0], points[:, 1]
        dphi = np.column_stack([pi * np.cos(pi * x) * np.sin(pi * y),
                                pi * np.sin(pi * x) * np.cos(pi * y)])
        return np.stack([dphi, dphi], axis=1)

    def force(points):
        x, y = points[:, 0], points[:, 1]
        phi = np.sin(pi * x) * np.sin(pi * y)
        cc = np.cos(pi * x) * np.cos(pi * y)
        f = 2.0 * mu * pi**2 * phi + (mu + lam) * pi**2 * (phi - cc)
        return np.column_stack([f, f])

    return u_exact, grad_exact, force


def solve_manufactured(n_refinements: int, degree: int = 2,
                       mu: float = 1.0, lam: float = 1.0):
    """Solve on [-1,1]² and return (h, n_dofs, L2 error, H1 error)."""
    u_exact, grad_exact, force = manufactured_problem(mu, lam)

    mesh = Mesh.hyper_cube(-1.0, 1.0)
    mesh.refine_global(n_refinements)
    solver = ElasticitySolver(mesh, degree=degree,
                              lame=LameParameters(mu=mu, lam=lam),
                              body_force=FunctionBodyForce(force))
    u = solver.run(tolerance=1e-12)

    h = 2.0 / 2**n_refinements
    l2 = compute_l2_error(solver.dof_handler, u, u_exact)
    h1 = compute_h1_seminorm_error(solver.dof_handler, u, grad_exact)
    return h, solver.n_dofs, l2, h1


def convergence_study(degree: int = 2, max_refinements: int = 4,
                      mu: float = 1.0, lam: float = 1.0):
    """
    Run a convergence study over global refinements 1..max_refinements.

    Returns:
        Dictionary with h values and error lists
    """
    print("=" * 60)
    print(f"Elasticity convergence study (Q{degree}, μ = {mu:g}, λ = {lam:g})")
    print("=" * 60)
    print(f"{'h':>10} {'DOFs':>8} {'L2 error':>14} {'rate':>6} {'H1 error':>14} {'rate':>6}")
    print("-" * 64)

    hs, l2s, h1s = [], [], []
    for k in range(1, max_refinements + 1):
        h, n_dofs, l2, h1 = solve_manufactured(k, degree, mu, lam)
        if hs:
            r_l2 = np.log(l2s[-1] / l2) / np.log(hs[-1] / h)
            r_h1 = np.log(h1s[-1] / h1) / np.log(hs[-1] / h)
            print(f"{h:>10.4f} {n_dofs:>8} {l2:>14.6e} {r_l2:>6.2f} {h1:>14.6e} {r_h1:>6.2f}")
        else:
            print(f"{h:>10.4f} {n_dofs:>8} {l2:>14.6e} {'--':>6} {h1:>14.6e} {'--':>6}")
        hs.append(h)
        l2s.append(l2)
        h1s.append(h1)

    print()
    print(f"Expected rates: L2 {degree + 1}, H1 {degree}")
    return {'h': hs, 'l2': l2s, 'h1': h1s}


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Elasticity convergence study")
    parser.add_argument("--degree", "-p", type=int, default=2,
                        help="Polynomial degree (default: 2)")
    parser.add_argument("--max-refinements", "-r", type=int, default=4,
                        help="Finest global refinement (default: 4)")
    parser.add_argument("--lam", type=float, default=1.0,
                        help="Lamé parameter λ (default: 1.0)")

    args = parser.parse_args()
    convergence_study(degree=args.degree, max_refinements=args.max_refinements, lam=args.lam)
