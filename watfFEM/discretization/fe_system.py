"""
Vector-valued finite element built from copies of a scalar basis.

A displacement field in d dimensions uses d copies of the scalar
Lagrange element Q_p, one per vector component. Local DOFs are laid
out in blocks: the first n_base local indices belong to component 0,
the next n_base to component 1, and so on.

    local index i  ->  (component, base index) = divmod(i, n_base)

The shape function of local DOF i is N_{base(i)} placed in
component(i), zero in all other components.
"""

import numpy as np
from typing import Tuple

from .lagrange import LagrangeBasis
from ..errors import ConfigurationError


class FESystem:
    """
    Vector-valued element: n_components copies of one scalar basis.

    Example:
        fe = FESystem(LagrangeBasis(2, 2), 2)   # Q2^2, 18 DOFs per cell
        fe.component(10)                        # -> 1
    """

    def __init__(self, base: LagrangeBasis, n_components: int):
        if n_components < 1:
            raise ConfigurationError(
                f"Number of components must be >= 1, got {n_components}")
        self.base = base
        self.n_components = n_components

        self._components = np.repeat(np.arange(n_components), base.n_basis)
        self._base_indices = np.tile(np.arange(base.n_basis), n_components)

    @classmethod
    def lagrange(cls, degree: int, dim: int) -> 'FESystem':
        """Q_degree^dim displacement element."""
        return cls(LagrangeBasis(degree, dim), dim)

    @property
    def degree(self) -> int:
        return self.base.degree

    @property
    def n_dim(self) -> int:
        return self.base.n_dim

    @property
    def dofs_per_cell(self) -> int:
        return self.n_components * self.base.n_basis

    def component(self, i: int) -> int:
        """Vector component of local DOF i."""
        return int(self._components[i])

    def system_to_component_index(self, i: int) -> Tuple[int, int]:
        """(component, base index) of local DOF i."""
        return int(self._components[i]), int(self._base_indices[i])

    @property
    def components(self) -> np.ndarray:
        """Component of every local DOF, shape (dofs_per_cell,)."""
        return self._components

    @property
    def base_indices(self) -> np.ndarray:
        """Scalar base index of every local DOF, shape (dofs_per_cell,)."""
        return self._base_indices

    def __repr__(self) -> str:
        return f"FESystem[FE_Q({self.degree})^{self.n_components}]"
