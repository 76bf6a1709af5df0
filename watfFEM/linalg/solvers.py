"""
Preconditioned conjugate gradient solver.

The condensed elasticity system is symmetric positive definite, but
for λ >> μ it is badly conditioned, so the choice of preconditioner
matters. Available preconditioners:

- PreconditionIdentity: plain CG
- PreconditionJacobi: diagonal scaling
- PreconditionSSOR: symmetric successive over-relaxation

Convergence is monitored by a SolverControl on the (unpreconditioned)
residual norm |b - A x|, as an absolute tolerance. If the iteration
budget is exhausted, IterativeSolverDidNotConverge is raised with the
last residual and step count; it is never swallowed.

Example:
    control = SolverControl(max_steps=1000000, tolerance=1e-12)
    preconditioner = PreconditionSSOR(A, relaxation=1.2)
    SolverCG(control).solve(A, x, b, preconditioner)
"""

import logging
import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu
from dataclasses import dataclass, field
from typing import List

from ..errors import ConfigurationError, ConvergenceError, IterativeSolverDidNotConverge

logger = logging.getLogger(__name__)


@dataclass
class SolverControl:
    """
    Stopping criterion for iterative solvers.

    Attributes:
        max_steps: Maximum number of iterations
        tolerance: Absolute tolerance on the residual norm
        log_every: Log the residual every this many steps (DEBUG level)
        log_history: Keep every residual in `history`
    """
    max_steps: int = 1_000_000
    tolerance: float = 1e-12
    log_every: int = 1000
    log_history: bool = False

    last_step: int = field(default=0, init=False)
    last_value: float = field(default=np.inf, init=False)
    history: List[float] = field(default_factory=list, init=False)

    def __post_init__(self):
        if self.max_steps < 0:
            raise ConfigurationError(f"max_steps must be >= 0, got {self.max_steps}")
        if self.tolerance <= 0.0:
            raise ConfigurationError(f"tolerance must be positive, got {self.tolerance}")

    def reset(self) -> None:
        self.last_step = 0
        self.last_value = np.inf
        self.history = []

    def check(self, step: int, value: float) -> bool:
        """
        Record a residual and decide whether to stop.

        Returns:
            True if converged

        Raises:
            IterativeSolverDidNotConverge: if step exceeds max_steps, or
            the residual is not finite
        """
        self.last_step = step
        self.last_value = value
        if self.log_history:
            self.history.append(value)
        if self.log_every and step % self.log_every == 0:
            logger.debug("cg step %d residual %.6e", step, value)

        if not np.isfinite(value):
            raise IterativeSolverDidNotConverge(step, value, self.tolerance)
        if value <= self.tolerance:
            return True
        if step >= self.max_steps:
            raise IterativeSolverDidNotConverge(step, value, self.tolerance)
        return False


class PreconditionIdentity:
    """No preconditioning: z = r."""

    def vmult(self, r: np.ndarray) -> np.ndarray:
        return r.copy()


class PreconditionJacobi:
    """Diagonal scaling z = ω r / diag(A)."""

    def __init__(self, A: sparse.spmatrix, relaxation: float = 1.0):
        diag = A.diagonal()
        if np.any(diag <= 0.0):
            raise ConfigurationError("Jacobi preconditioner needs a positive diagonal")
        self.relaxation = relaxation
        self._inv_diag = relaxation / diag

    def vmult(self, r: np.ndarray) -> np.ndarray:
        return self._inv_diag * r


class PreconditionSSOR:
    """
    Symmetric SOR preconditioner for A = L + D + L^T.

        M = ω/(2-ω) (D/ω + L) (D/ω)^{-1} (D/ω + L^T)

    Applying M^{-1} costs one forward and one backward triangular solve.
    M is symmetric positive definite for 0 < ω < 2 and SPD A.
    """

    def __init__(self, A: sparse.spmatrix, relaxation: float = 1.2):
        if not 0.0 < relaxation < 2.0:
            raise ConfigurationError(
                f"SSOR relaxation must lie in (0, 2), got {relaxation}")
        A = sparse.csr_matrix(A)
        diag = A.diagonal()
        if np.any(diag <= 0.0):
            raise ConfigurationError("SSOR preconditioner needs a positive diagonal")

        self.relaxation = relaxation
        scaled_diag = sparse.diags(diag / relaxation)
        # Natural ordering without pivoting: factoring a triangular matrix
        # creates no fill, so each sweep is a single compiled solve
        self._lower = splu(sparse.csc_matrix(sparse.tril(A, k=-1) + scaled_diag),
                           permc_spec="NATURAL", diag_pivot_thresh=0.0)
        self._upper = splu(sparse.csc_matrix(sparse.triu(A, k=1) + scaled_diag),
                           permc_spec="NATURAL", diag_pivot_thresh=0.0)
        self._scaled_diag = diag / relaxation
        self._factor = (2.0 - relaxation) / relaxation

    def vmult(self, r: np.ndarray) -> np.ndarray:
        y = self._lower.solve(r)
        y *= self._scaled_diag
        z = self._upper.solve(y)
        z *= self._factor
        return z


def make_preconditioner(name: str, A: sparse.spmatrix, relaxation: float = 1.2):
    """
    Construct a preconditioner by name.

    Parameters:
        name: "ssor", "jacobi" or "identity"
        A: System matrix
        relaxation: Relaxation parameter (SSOR/Jacobi)
    """
    if name == "ssor":
        return PreconditionSSOR(A, relaxation)
    elif name == "jacobi":
        return PreconditionJacobi(A, relaxation)
    elif name == "identity":
        return PreconditionIdentity()
    else:
        raise ConfigurationError(f"Unknown preconditioner: {name}")


class SolverCG:
    """
    Preconditioned conjugate gradient method.

    Attributes:
        control: SolverControl deciding convergence
    """

    def __init__(self, control: SolverControl):
        self.control = control

    def solve(self, A, x: np.ndarray, b: np.ndarray, preconditioner=None) -> np.ndarray:
        """
        Solve A x = b in place, starting from the given x.

        Parameters:
            A: Matrix supporting A @ v
            x: Initial guess, overwritten with the solution
            b: Right-hand side
            preconditioner: Object with vmult(r) -> M^{-1} r

        Returns:
            x

        Raises:
            IterativeSolverDidNotConverge: on exhausted iteration budget
            ConvergenceError: on breakdown (A not positive definite)
        """
        if preconditioner is None:
            preconditioner = PreconditionIdentity()
        control = self.control
        control.reset()

        r = b - A @ x
        res = np.linalg.norm(r)
        if control.check(0, res):
            logger.info("CG converged in 0 iterations, residual %.3e", res)
            return x

        z = preconditioner.vmult(r)
        p = z.copy()
        rz = r @ z

        step = 0
        while True:
            step += 1
            q = A @ p
            pq = p @ q
            if pq <= 0.0:
                raise ConvergenceError(
                    f"CG breakdown in step {step}: p^T A p = {pq:.3e}, "
                    f"matrix is not positive definite")

            alpha = rz / pq
            x += alpha * p
            r -= alpha * q
            res = np.linalg.norm(r)
            if control.check(step, res):
                break

            z = preconditioner.vmult(r)
            rz_new = r @ z
            beta = rz_new / rz
            rz = rz_new
            p *= beta
            p += z

        logger.info("CG converged in %d iterations, residual %.3e", step, res)
        return x
