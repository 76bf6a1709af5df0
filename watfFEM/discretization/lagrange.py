"""
Tensor-product Lagrange basis on the reference cell [0,1]^d.

The scalar finite element Q_p uses equispaced support points
t_k = k/p in each direction. The 1D basis functions satisfy
L_k(t_m) = delta_km, and the d-dimensional basis is the tensor
product with the first coordinate running fastest:

    N_{i + (p+1) j}(xi, eta) = L_i(xi) * L_j(eta)

This ordering is shared with the reference vertices of the cell
(for p = 1 the support points are exactly the cell vertices), so the
same class doubles as the multilinear geometric mapping.
"""

import itertools
import numpy as np
from typing import Tuple
from functools import lru_cache

from ..errors import ConfigurationError


@lru_cache(maxsize=8)
def lagrange_nodes_1d(p: int) -> np.ndarray:
    """Equispaced support points k/p on [0, 1]."""
    if p < 1:
        raise ConfigurationError(f"Lagrange degree must be >= 1, got {p}")
    return np.linspace(0.0, 1.0, p + 1)


def lagrange_basis_ders_1d(p: int, t: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Evaluate 1D Lagrange polynomials and their first derivatives.

    Parameters:
        p: Polynomial degree
        t: Evaluation points, shape (n,)

    Returns:
        (L, dL) each of shape (n, p+1)
    """
    nodes = lagrange_nodes_1d(p)
    t = np.atleast_1d(np.asarray(t, dtype=float))
    n = len(t)

    L = np.ones((n, p + 1))
    dL = np.zeros((n, p + 1))

    for k in range(p + 1):
        others = [m for m in range(p + 1) if m != k]
        denom = np.prod([nodes[k] - nodes[m] for m in others])

        for m in others:
            L[:, k] *= (t - nodes[m])
        L[:, k] /= denom

        # Product rule: sum over the factor that gets differentiated
        for l in others:
            term = np.ones(n)
            for m in others:
                if m != l:
                    term *= (t - nodes[m])
            dL[:, k] += term
        dL[:, k] /= denom

    return L, dL


class LagrangeBasis:
    """
    Scalar tensor-product Lagrange basis Q_p on [0,1]^d.

    Attributes:
        degree: Polynomial degree p (same in every direction)
        n_dim: Dimension of the reference cell
    """

    def __init__(self, degree: int, n_dim: int):
        if n_dim < 1:
            raise ConfigurationError(f"Reference dimension must be >= 1, got {n_dim}")
        lagrange_nodes_1d(degree)
        self.degree = degree
        self.n_dim = n_dim

    @property
    def n_basis(self) -> int:
        """Total number of tensor-product basis functions."""
        return (self.degree + 1) ** self.n_dim

    @property
    def degrees(self) -> Tuple[int, ...]:
        """Polynomial degree per direction."""
        return (self.degree,) * self.n_dim

    def multi_indices(self) -> np.ndarray:
        """
        Per-direction indices of every basis function.

        Returns:
            Integer array of shape (n_basis, n_dim); row i holds the 1D
            indices (i_0, i_1, ...) with i_0 running fastest.
        """
        ranges = [range(self.degree + 1)] * self.n_dim
        return np.array([tuple(reversed(m)) for m in itertools.product(*ranges)],
                        dtype=int).reshape(-1, self.n_dim)

    def support_points(self) -> np.ndarray:
        """Reference support points, shape (n_basis, n_dim)."""
        nodes = lagrange_nodes_1d(self.degree)
        return nodes[self.multi_indices()]

    def eval(self, points: np.ndarray) -> np.ndarray:
        """
        Evaluate all basis functions at reference points.

        Parameters:
            points: Reference coordinates, shape (n_points, n_dim)

        Returns:
            Array of shape (n_points, n_basis)
        """
        values, _ = self.eval_ders(points)
        return values

    def eval_ders(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Evaluate basis functions and reference gradients.

        Parameters:
            points: Reference coordinates, shape (n_points, n_dim)

        Returns:
            (N, dN) with N of shape (n_points, n_basis) and dN of shape
            (n_points, n_basis, n_dim)
        """
        points = np.atleast_2d(np.asarray(points, dtype=float))
        if points.shape[1] != self.n_dim:
            raise ConfigurationError(
                f"Expected points of dimension {self.n_dim}, got {points.shape[1]}")

        ders_1d = [lagrange_basis_ders_1d(self.degree, points[:, d])
                   for d in range(self.n_dim)]
        idx = self.multi_indices()

        n_points = points.shape[0]
        N = np.ones((n_points, self.n_basis))
        dN = np.ones((n_points, self.n_basis, self.n_dim))

        for d in range(self.n_dim):
            L, dL = ders_1d[d]
            N *= L[:, idx[:, d]]
            for g in range(self.n_dim):
                if g == d:
                    dN[:, :, g] *= dL[:, idx[:, d]]
                else:
                    dN[:, :, g] *= L[:, idx[:, d]]

        return N, dN
