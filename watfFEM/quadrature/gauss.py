"""
Gauss-Legendre quadrature for numerical integration.

Gauss quadrature provides optimal polynomial integration:
n points integrate exactly polynomials up to degree 2n-1.

For Lagrange elements of degree p the standard choice is n = p+1
points per direction ("full" integration). The Lamé operator is
also integrated with this rule by default; "reduced" (p points) is
available for experiments with volumetric locking.

The reference domain is [0, 1] for consistency with the reference
cell of the Lagrange basis. Standard Gauss points on [-1, 1] are
mapped accordingly.

Usage:
    points, weights = gauss_legendre_1d(n)            # 1D quadrature on [0,1]
    points, weights = gauss_legendre_nd((n, n))       # tensor product on [0,1]^2
    quad = GaussQuadrature.for_degree((2, 2))         # (3, 3) points
"""

import itertools
import numpy as np
from typing import Tuple
from functools import lru_cache

from ..errors import ConfigurationError


@lru_cache(maxsize=16)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre quadrature points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points

    Returns:
        (points, weights) where:
        - points: Array of n quadrature points in [0, 1]
        - weights: Array of n quadrature weights (sum to 1)
    """
    if n < 1:
        raise ConfigurationError("Need at least 1 quadrature point")

    points_std, weights_std = np.polynomial.legendre.leggauss(n)

    # Map to [0, 1]: x = (xi + 1) / 2, dx = 1/2 * dxi
    points = 0.5 * (points_std + 1.0)
    weights = 0.5 * weights_std

    return points.copy(), weights.copy()


def gauss_legendre_nd(n_points_per_dir: Tuple[int, ...]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Tensor-product Gauss-Legendre quadrature on [0,1]^d.

    Points are ordered with the first coordinate running fastest, which
    matches the ordering of the tensor-product Lagrange basis.

    Parameters:
        n_points_per_dir: Number of points in each direction

    Returns:
        (points, weights) where:
        - points: Array of shape (prod(n), d)
        - weights: Array of shape (prod(n),)
    """
    rules = [gauss_legendre_1d(n) for n in n_points_per_dir]
    n_dim = len(rules)

    n_total = int(np.prod([len(w) for _, w in rules]))
    points = np.zeros((n_total, n_dim))
    weights = np.ones(n_total)

    # itertools.product varies the last index fastest, so iterate reversed
    ranges = [range(len(w)) for _, w in reversed(rules)]
    for idx, multi in enumerate(itertools.product(*ranges)):
        for d, k in enumerate(reversed(multi)):
            points[idx, d] = rules[d][0][k]
            weights[idx] *= rules[d][1][k]

    return points, weights


def gauss_legendre_2d(n_xi: int, n_eta: int) -> Tuple[np.ndarray, np.ndarray]:
    """Tensor-product Gauss-Legendre quadrature on [0,1]²."""
    return gauss_legendre_nd((n_xi, n_eta))


class GaussQuadrature:
    """
    Encapsulates Gauss quadrature for cell integration.

    Attributes:
        n_points_per_dir: Number of quadrature points per reference direction
        n_dim: Dimension of the reference cell
    """

    def __init__(self, n_points_per_dir: Tuple[int, ...]):
        """
        Initialize Gauss quadrature.

        Parameters:
            n_points_per_dir: Number of points in each direction
        """
        n_points_per_dir = tuple(int(n) for n in n_points_per_dir)
        if len(n_points_per_dir) < 1 or len(n_points_per_dir) > 3:
            raise ConfigurationError(f"Unsupported dimension: {len(n_points_per_dir)}")

        self.n_points_per_dir = n_points_per_dir
        self.n_dim = len(n_points_per_dir)
        self._points, self._weights = gauss_legendre_nd(n_points_per_dir)

    @property
    def n_points(self) -> int:
        """Total number of quadrature points."""
        return len(self._weights)

    @property
    def points(self) -> np.ndarray:
        """
        Quadrature points on reference cell [0,1]^d.

        Returns:
            Array of shape (n_points, n_dim)
        """
        return self._points

    @property
    def weights(self) -> np.ndarray:
        """Quadrature weights, shape (n_points,)."""
        return self._weights

    @classmethod
    def for_degree(cls, degrees: Tuple[int, ...],
                   rule: str = "full") -> 'GaussQuadrature':
        """
        Create quadrature rule appropriate for given polynomial degrees.

        Parameters:
            degrees: Polynomial degrees in each direction
            rule: "full" for (p+1) points, "reduced" for p points

        Returns:
            GaussQuadrature instance
        """
        if rule == "full":
            n_pts = tuple(p + 1 for p in degrees)
        elif rule == "reduced":
            n_pts = tuple(max(p, 1) for p in degrees)
        else:
            raise ConfigurationError(f"Unknown rule: {rule}")

        return cls(n_pts)

    def __repr__(self) -> str:
        return f"GaussQuadrature({self.n_points_per_dir})"
