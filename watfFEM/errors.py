"""
Exception hierarchy for watfFEM.

Three families of failure are distinguished:

- ConfigurationError: the problem cannot be set up (bad dimension,
  degree, quadrature or point arrays). Raised before any computation.
- StructuralError: a programming error in assembly, e.g. a write
  outside the sparsity pattern or a cyclic constraint set.
- ConvergenceError: the iterative solver ran out of iterations.
  Recoverable in principle (different preconditioner or tolerance).
"""


class WatfFEMError(Exception):
    """Base class for all watfFEM errors."""


class ConfigurationError(WatfFEMError, ValueError):
    """Invalid problem setup, detected before computation starts."""


class DimensionMismatchError(ConfigurationError):
    """Two arrays that must have matching lengths do not."""

    def __init__(self, expected: int, actual: int, what: str = "values"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch for {what}: expected {expected}, got {actual}")


class NotImplementedDimensionError(ConfigurationError, NotImplementedError):
    """Spatial dimension is not supported."""

    def __init__(self, dim: int, minimum: int = 2):
        self.dim = dim
        super().__init__(
            f"Spatial dimension {dim} is not implemented (need dim >= {minimum})")


class StructuralError(WatfFEMError, AssertionError):
    """Assembly touched an entry outside the declared structure."""


class ConvergenceError(WatfFEMError, RuntimeError):
    """An iterative method failed to reach its tolerance."""


class IterativeSolverDidNotConverge(ConvergenceError):
    """
    Iteration budget exhausted before the residual reached tolerance.

    Attributes:
        iterations: Number of iterations performed
        residual: Residual norm at the last iteration
        tolerance: Requested tolerance
    """

    def __init__(self, iterations: int, residual: float, tolerance: float):
        self.iterations = iterations
        self.residual = residual
        self.tolerance = tolerance
        super().__init__(
            f"Iterative method reported convergence failure in step "
            f"{iterations}. The residual in the last step was {residual:.6e} "
            f"(tolerance {tolerance:.1e}).")
