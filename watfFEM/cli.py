"""
Command-line driver for the elasticity solver.

Runs the clamped square problem: builds the mesh, sets up the Q_p
vector element, assembles with constraints, solves with preconditioned
CG and writes the displacement field to VTK.

Usage:
    python -m watfFEM
    python -m watfFEM --config run.json --refinements 5 --output out.vtu
    watffem --lam 1.0 --preconditioner jacobi --no-output -v

Exit codes:
    0  success
    1  any error (a framed diagnostic is printed to stderr)
"""

import argparse
import logging
import sys
import time
from typing import Any, Dict, List, Optional

from .discretization.mesh import Mesh
from .solver.coefficients import LameParameters, TwoDiskBodyForce
from .solver.elasticity import ElasticitySolver
from .postprocess.vtk import export_displacement
from .io.config import (ElasticityConfig, load_config, PRECONDITIONERS,
                        RENUMBERINGS, QUADRATURE_RULES)

logger = logging.getLogger(__name__)

_RULE = "-" * 50


def run_from_config(config: ElasticityConfig, plot: bool = False) -> Dict[str, Any]:
    """
    Run one elasticity problem.

    Parameters:
        config: Validated configuration
        plot: Also save a matplotlib plot next to the output file

    Returns:
        Dictionary with solver, u, n_active_cells, n_dofs, iterations,
        residual and output path
    """
    config.validate()
    start = time.perf_counter()

    mesh = Mesh.hyper_cube(config.domain[0], config.domain[1], dim=config.dim)
    mesh.refine_global(config.n_global_refinements)

    solver = ElasticitySolver(
        mesh,
        degree=config.degree,
        lame=LameParameters(mu=config.mu, lam=config.lam),
        body_force=TwoDiskBodyForce(radius=config.source_radius),
        quadrature_rule=config.quadrature_rule,
        renumbering=config.renumber,
        n_workers=config.n_workers,
    )
    solver.setup_system()
    print(f"   Number of active cells:       {mesh.n_active_cells}")
    print(f"   Number of degrees of freedom: {solver.n_dofs}")

    solver.assemble()
    u = solver.solve(tolerance=config.solver_tolerance,
                     max_iterations=config.max_iterations,
                     preconditioner=config.preconditioner,
                     relaxation=config.relaxation)
    control = solver.solver_control
    print(f"   {control.last_step} CG iterations needed to obtain convergence.")

    output = None
    if config.output:
        output = export_displacement(config.output, solver.dof_handler, u,
                                     solver.solution_names)
        print(f"   Solution written to {output}")
        if plot and config.dim == 2:
            from .postprocess.plot import plot_displacement
            plot_displacement(solver.dof_handler, u, solver.solution_names,
                              save_path=str(output.with_suffix('.png')))

    logger.info("Run finished in %.2f s", time.perf_counter() - start)
    return {
        "solver": solver,
        "u": u,
        "n_active_cells": mesh.n_active_cells,
        "n_dofs": solver.n_dofs,
        "iterations": control.last_step,
        "residual": control.last_value,
        "output": output,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watffem",
        description="2D linear elasticity (Lamé) with Q_p vector elements")
    parser.add_argument("--config", "-c", type=str, default=None,
                        help="JSON configuration file")
    parser.add_argument("--refinements", "-r", type=int, default=None,
                        help="Number of global refinements (default: 4)")
    parser.add_argument("--degree", "-p", type=int, default=None,
                        help="Polynomial degree (default: 2)")
    parser.add_argument("--mu", type=float, default=None,
                        help="Lamé parameter μ (default: 1.0)")
    parser.add_argument("--lam", type=float, default=None,
                        help="Lamé parameter λ (default: 1e7)")
    parser.add_argument("--quadrature", choices=QUADRATURE_RULES, default=None,
                        help="Quadrature rule (default: full)")
    parser.add_argument("--tolerance", type=float, default=None,
                        help="CG residual tolerance (default: 1e-12)")
    parser.add_argument("--max-iterations", type=int, default=None,
                        help="CG iteration budget (default: 1000000)")
    parser.add_argument("--preconditioner", choices=PRECONDITIONERS, default=None,
                        help="Preconditioner (default: ssor)")
    parser.add_argument("--relaxation", type=float, default=None,
                        help="Preconditioner relaxation (default: 1.2)")
    parser.add_argument("--renumber", choices=RENUMBERINGS, default=None,
                        help="DOF renumbering (default: cuthill_mckee)")
    parser.add_argument("--workers", "-j", type=int, default=None,
                        help="Assembly threads, 0 = all CPUs (default: 1)")
    parser.add_argument("--output", "-o", type=str, default=None,
                        help="Output file, .vtk or .vtu (default: solution.vtk)")
    parser.add_argument("--no-output", action="store_true",
                        help="Skip VTK export")
    parser.add_argument("--plot", action="store_true",
                        help="Save a PNG plot of the displacement")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true",
                           help="Debug logging")
    verbosity.add_argument("--quiet", "-q", action="store_true",
                           help="Only log warnings and errors")
    return parser


def config_from_args(args: argparse.Namespace) -> ElasticityConfig:
    """File values first, then command-line overrides."""
    config = load_config(args.config) if args.config else ElasticityConfig()
    config = config.updated(
        n_global_refinements=args.refinements,
        degree=args.degree,
        mu=args.mu,
        lam=args.lam,
        quadrature_rule=args.quadrature,
        solver_tolerance=args.tolerance,
        max_iterations=args.max_iterations,
        preconditioner=args.preconditioner,
        relaxation=args.relaxation,
        renumber=args.renumber,
        n_workers=args.workers,
        output=args.output,
    )
    if args.no_output:
        config.output = None
    return config.validate()


def _print_exception(exc: BaseException) -> None:
    print(file=sys.stderr)
    print(_RULE, file=sys.stderr)
    print("Exception on processing:", file=sys.stderr)
    print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
    print("Aborting!", file=sys.stderr)
    print(_RULE, file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = config_from_args(args)
        run_from_config(config, plot=args.plot)
    except Exception as exc:
        logger.debug("Run failed", exc_info=True)
        _print_exception(exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
