"""
Affine constraints on global degrees of freedom.

A constrained DOF x_i is tied to other DOFs by

    x_i = sum_j c_ij x_j + h_i

- Dirichlet: no entries, h_i = prescribed value
- Hanging node: entries interpolate the coarse-side DOFs, h_i = 0

Constraints may refer to other constrained DOFs (chains), as long as
the dependencies form a directed acyclic graph. close() orders the
lines topologically and substitutes each line's masters in a single
pass, so that every resolved line refers to free DOFs only. The
resolved (index, coefficient) lists are cached and used by

- distribute_local_to_global(): condense a cell matrix/vector into
  the global system while assembling
- distribute(): recover constrained values after the solve

Usage:
    constraints = AffineConstraints()
    constraints.add_line(7)                          # x_7 = 0
    constraints.add_line(12)
    constraints.add_entries(12, [(3, 0.5), (4, 0.5)])  # x_12 = (x_3 + x_4) / 2
    constraints.close()
"""

import logging
import numpy as np
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .sparsity import SparseMatrix
from ..errors import StructuralError, DimensionMismatchError

logger = logging.getLogger(__name__)

Entries = List[Tuple[int, float]]


@dataclass
class ConstraintLine:
    """
    One constrained DOF.

    Attributes:
        index: Global index of the constrained DOF
        entries: (master index, coefficient) pairs
        inhomogeneity: Constant part h
    """
    index: int
    entries: Entries = field(default_factory=list)
    inhomogeneity: float = 0.0


class AffineConstraints:
    """
    Collection of affine constraints with DAG resolution.

    Lines can be added until close() is called; afterwards the object
    is read-only and provides the condensation operations.
    """

    def __init__(self, zero_tolerance: float = 1e-13):
        self.zero_tolerance = zero_tolerance
        self._lines: Dict[int, ConstraintLine] = {}
        self._resolved: Dict[int, Tuple[np.ndarray, np.ndarray, float]] = {}
        self._closed = False

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise StructuralError("Constraints are closed; no further lines can be added")

    def add_line(self, index: int) -> None:
        """Declare DOF `index` constrained (to zero until entries are added)."""
        self._check_open()
        index = int(index)
        if index not in self._lines:
            self._lines[index] = ConstraintLine(index)

    def add_lines(self, indices: Iterable[int]) -> None:
        for index in indices:
            self.add_line(index)

    def add_entry(self, line: int, column: int, value: float) -> None:
        """Add c * x_column to the right-hand side of line `line`."""
        self._check_open()
        if line not in self._lines:
            raise StructuralError(f"Line {line} has not been added")
        if line == column:
            raise StructuralError(f"DOF {line} cannot be constrained to itself")
        self._lines[line].entries.append((int(column), float(value)))

    def add_entries(self, line: int, entries: Iterable[Tuple[int, float]]) -> None:
        for column, value in entries:
            self.add_entry(line, column, value)

    def set_inhomogeneity(self, line: int, value: float) -> None:
        self._check_open()
        if line not in self._lines:
            raise StructuralError(f"Line {line} has not been added")
        self._lines[line].inhomogeneity = float(value)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def n_constraints(self) -> int:
        return len(self._lines)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def is_constrained(self, index: int) -> bool:
        return int(index) in self._lines

    def __contains__(self, index) -> bool:
        return self.is_constrained(index)

    def constrained_dofs(self) -> np.ndarray:
        """Sorted indices of all constrained DOFs."""
        return np.array(sorted(self._lines), dtype=int)

    def is_inhomogeneously_constrained(self, index: int) -> bool:
        line = self._lines.get(int(index))
        return line is not None and line.inhomogeneity != 0.0

    def get_line(self, index: int) -> Optional[ConstraintLine]:
        return self._lines.get(int(index))

    # -------------------------------------------------------------------------
    # Closing: topological resolution of chains
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """
        Resolve all lines so that they refer to unconstrained DOFs only.

        Lines are processed in topological order of the dependency
        graph (Kahn's algorithm): when a line is resolved, all of its
        constrained masters have already been resolved, so one
        substitution per master suffices.

        Raises:
            StructuralError: if the constraints contain a cycle
        """
        if self._closed:
            return

        # dependents[m] = lines that have constrained DOF m as a master
        dependents: Dict[int, List[int]] = {i: [] for i in self._lines}
        n_pending = {}
        for i, line in self._lines.items():
            masters = {j for j, _ in line.entries if j in self._lines}
            n_pending[i] = len(masters)
            for j in masters:
                dependents[j].append(i)

        ready = deque(sorted(i for i, n in n_pending.items() if n == 0))
        order = []
        while ready:
            i = ready.popleft()
            order.append(i)
            for k in dependents[i]:
                n_pending[k] -= 1
                if n_pending[k] == 0:
                    ready.append(k)

        if len(order) != len(self._lines):
            cyclic = sorted(set(self._lines) - set(order))
            raise StructuralError(
                f"Constraints contain a cycle involving DOFs {cyclic[:10]}")

        for i in order:
            line = self._lines[i]
            combined: Dict[int, float] = {}
            inhomogeneity = line.inhomogeneity
            for j, c in line.entries:
                if j in self._resolved:
                    m_idx, m_coef, m_inhom = self._resolved[j]
                    for mj, mc in zip(m_idx, m_coef):
                        combined[int(mj)] = combined.get(int(mj), 0.0) + c * mc
                    inhomogeneity += c * m_inhom
                else:
                    combined[j] = combined.get(j, 0.0) + c

            kept = sorted((j, c) for j, c in combined.items()
                          if abs(c) > self.zero_tolerance)
            idx = np.array([j for j, _ in kept], dtype=np.int64)
            coef = np.array([c for _, c in kept], dtype=float)
            self._resolved[i] = (idx, coef, inhomogeneity)

        self._closed = True
        logger.info("Closed %d constraints (%d inhomogeneous)",
                    self.n_constraints,
                    sum(1 for r in self._resolved.values() if r[2] != 0.0))

    def _check_closed(self) -> None:
        if not self._closed:
            raise StructuralError("Constraints are not closed. Call close() first.")

    def resolve(self, index: int) -> Tuple[np.ndarray, np.ndarray, float]:
        """
        Canonical form of DOF `index`.

        Returns:
            (indices, coefficients, inhomogeneity); a free DOF resolves to
            ([index], [1.0], 0.0)
        """
        self._check_closed()
        index = int(index)
        resolved = self._resolved.get(index)
        if resolved is None:
            return np.array([index], dtype=np.int64), np.ones(1), 0.0
        return resolved

    # -------------------------------------------------------------------------
    # Condensation
    # -------------------------------------------------------------------------

    def expansion(self, local_dof_indices: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Local expansion of a cell's DOFs in terms of free global DOFs.

        Returns:
            (targets, P, h, constrained) where
            - targets: sorted free global indices touched by the cell
            - P: matrix (n_local, len(targets)) with x_local = P x_targets + h
            - h: local inhomogeneities, shape (n_local,)
            - constrained: boolean mask of constrained local DOFs
        """
        self._check_closed()
        n_local = len(local_dof_indices)
        constrained = np.array([int(g) in self._resolved for g in local_dof_indices], dtype=bool)

        if not constrained.any():
            order = np.argsort(local_dof_indices, kind="stable")
            targets = np.asarray(local_dof_indices, dtype=np.int64)[order]
            P = np.zeros((n_local, n_local))
            P[order, np.arange(n_local)] = 1.0
            return targets, P, np.zeros(n_local), constrained

        resolved = [self.resolve(g) for g in local_dof_indices]
        targets = np.unique(np.concatenate([r[0] for r in resolved]))
        P = np.zeros((n_local, len(targets)))
        h = np.zeros(n_local)
        for i, (idx, coef, inhom) in enumerate(resolved):
            cols = np.searchsorted(targets, idx)
            P[i, cols] += coef
            h[i] = inhom
        return targets, P, h, constrained

    def distribute_local_to_global(self,
                                   cell_matrix: np.ndarray,
                                   cell_rhs: np.ndarray,
                                   local_dof_indices: np.ndarray,
                                   global_matrix: SparseMatrix,
                                   global_rhs: np.ndarray) -> None:
        """
        Condense a cell contribution into the global system.

        With x_local = P x_free + h the cell energy contributes

            P^T K P        to the matrix
            P^T (f - K h)  to the right-hand side

        Constrained rows/columns are eliminated. Each constrained DOF
        of the cell gets a positive diagonal entry (mean absolute
        diagonal of K) and the matching right-hand side, keeping the
        global matrix nonsingular with the constrained value as the
        solution of its own row.

        Parameters:
            cell_matrix: Local matrix, shape (n_local, n_local)
            cell_rhs: Local vector, shape (n_local,)
            local_dof_indices: Global indices of the local DOFs
            global_matrix: Target matrix (its pattern must cover the writes)
            global_rhs: Target vector, modified in place
        """
        local_dof_indices = np.asarray(local_dof_indices, dtype=np.int64)
        n_local = len(local_dof_indices)
        if cell_matrix.shape != (n_local, n_local):
            raise DimensionMismatchError(n_local * n_local, cell_matrix.size, "cell matrix")
        if len(cell_rhs) != n_local:
            raise DimensionMismatchError(n_local, len(cell_rhs), "cell right-hand side")

        targets, P, h, constrained = self.expansion(local_dof_indices)

        if len(targets):
            global_matrix.add(targets, targets, P.T @ cell_matrix @ P)
            np.add.at(global_rhs, targets, P.T @ (cell_rhs - cell_matrix @ h))

        if constrained.any():
            diag = np.abs(np.diag(cell_matrix))
            nonzero = diag[diag != 0.0]
            scale = nonzero.mean() if len(nonzero) else 1.0
            for g, hi in zip(local_dof_indices[constrained], h[constrained]):
                global_matrix.add_entry(g, g, scale)
                global_rhs[g] += scale * hi

    def condense_vector(self, vector: np.ndarray) -> None:
        """
        Move the entries of constrained rows onto their masters and
        zero the constrained rows.
        """
        self._check_closed()
        for i, (idx, coef, _) in self._resolved.items():
            if len(idx):
                np.add.at(vector, idx, coef * vector[i])
            vector[i] = 0.0

    def distribute(self, vector: np.ndarray) -> None:
        """
        Set every constrained entry from its affine relation.

        Since resolved lines refer to free DOFs only, one pass is enough.
        """
        self._check_closed()
        for i, (idx, coef, inhom) in self._resolved.items():
            vector[i] = inhom + (coef @ vector[idx] if len(idx) else 0.0)

    def set_zero(self, vector: np.ndarray) -> None:
        """Zero all constrained entries of a vector."""
        for i in self._lines:
            vector[i] = 0.0
