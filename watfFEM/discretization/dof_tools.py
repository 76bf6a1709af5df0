"""
Tools connecting DOF numbering, constraints and sparsity.

- make_hanging_node_constraints: constrain DOFs on non-conforming
  interfaces to the interpolant of the coarse neighbor
- interpolate_boundary_values: Dirichlet constraints from a function
- make_sparsity_pattern: matrix structure after constraint elimination

Constraint construction order follows the usual convention: hanging
node constraints first, then boundary values for DOFs that are not
constrained yet.
"""

import logging
import numpy as np
from typing import Callable, Optional, Sequence

from .dof_handler import DoFHandler
from ..linalg.constraints import AffineConstraints
from ..linalg.sparsity import SparsityPattern
from ..errors import DimensionMismatchError

logger = logging.getLogger(__name__)

BoundaryFunction = Callable[[np.ndarray], np.ndarray]


def make_hanging_node_constraints(dof_handler: DoFHandler,
                                  constraints: AffineConstraints,
                                  tol: float = 1e-10) -> int:
    """
    Add hanging-node constraints for non-conforming interfaces.

    A support point lying on the closed box of an active cell without
    being one of that cell's own support points belongs to a finer
    neighbor. Its value must match the cell's interpolant there:

        x_hanging = sum_k N_k(t) x_k,   t = reference coordinates in the cell

    On a uniformly refined mesh no such points exist.

    Returns:
        Number of constraint lines added
    """
    fe = dof_handler.fe
    mesh = dof_handler.mesh
    points = dof_handler.support_points
    components = dof_handler.dof_components
    n_added = 0

    # Support points sorted along x; each cell only tests its x-strip
    order = np.argsort(points[:, 0], kind="stable")
    xs = points[order, 0]

    for cell, dofs in dof_handler.active_cells():
        pad = tol * cell.diameter
        lo = np.searchsorted(xs, cell.lower[0] - pad, side="left")
        hi = np.searchsorted(xs, cell.upper[0] + pad, side="right")
        window = order[lo:hi]
        inside = window[cell.contains(points[window], tol=pad)]
        candidates = np.setdiff1d(inside, dofs)
        if len(candidates) == 0:
            continue

        t = (points[candidates] - cell.lower) / cell.size
        values = fe.base.eval(t)

        for row, g in enumerate(candidates):
            if constraints.is_constrained(g):
                continue
            comp = components[g]
            local = np.flatnonzero(fe.components == comp)
            coef = values[row, fe.base_indices[local]]
            keep = np.abs(coef) > constraints.zero_tolerance

            constraints.add_line(g)
            constraints.add_entries(g, zip(dofs[local][keep].tolist(), coef[keep].tolist()))
            n_added += 1

    if n_added:
        logger.info("Added %d hanging node constraints (mesh max level %d)",
                    n_added, mesh.max_level)
    return n_added


def interpolate_boundary_values(dof_handler: DoFHandler,
                                constraints: AffineConstraints,
                                function: Optional[BoundaryFunction] = None,
                                component_mask: Optional[Sequence[bool]] = None) -> int:
    """
    Constrain boundary DOFs to the values of a function.

    Parameters:
        dof_handler: DOF numbering
        constraints: Target constraints (must still be open)
        function: Vectorized f(points) -> (n_points, n_components);
                  None means homogeneous (clamped) conditions
        component_mask: Components to constrain, defaults to all

    Returns:
        Number of constraint lines added
    """
    boundary = dof_handler.boundary_dofs(component_mask)
    boundary = np.array([g for g in boundary if not constraints.is_constrained(g)], dtype=int)

    if function is None:
        values = np.zeros(len(boundary))
    else:
        points = dof_handler.support_points[boundary]
        result = np.atleast_2d(np.asarray(function(points), dtype=float))
        if result.shape[0] != len(boundary):
            raise DimensionMismatchError(len(boundary), result.shape[0], "boundary values")
        values = result[np.arange(len(boundary)), dof_handler.dof_components[boundary]]

    for g, value in zip(boundary, values):
        constraints.add_line(g)
        if value != 0.0:
            constraints.set_inhomogeneity(g, value)

    logger.info("Constrained %d boundary DOFs", len(boundary))
    return len(boundary)


def make_sparsity_pattern(dof_handler: DoFHandler,
                          constraints: Optional[AffineConstraints] = None,
                          keep_constrained_dofs: bool = False) -> SparsityPattern:
    """
    Build the compressed sparsity pattern of the condensed system.

    For every cell, each local DOF is replaced by the free DOFs it
    resolves to and all pairs among them are marked. Constrained DOFs
    keep their diagonal entry (and, with keep_constrained_dofs, their
    unresolved couplings as well).

    Parameters:
        dof_handler: DOF numbering
        constraints: Closed constraints, or None for an unconstrained pattern
        keep_constrained_dofs: Also keep the couplings of constrained DOFs

    Returns:
        Compressed SparsityPattern of size n_dofs x n_dofs
    """
    n = dof_handler.n_dofs
    pattern = SparsityPattern(n)

    for _, dofs in dof_handler.active_cells():
        if constraints is None:
            pattern.add_entries(dofs, dofs)
            continue

        resolved = [constraints.resolve(g)[0] for g in dofs]
        targets = np.unique(np.concatenate(resolved))
        pattern.add_entries(targets, targets)
        if keep_constrained_dofs:
            pattern.add_entries(dofs, dofs)

    pattern.add_diagonal(np.arange(n))
    pattern.compress()
    logger.info("Sparsity pattern: %d x %d, %d nonzeros, bandwidth %d",
                n, n, pattern.n_nonzero_elements, pattern.bandwidth())
    return pattern
