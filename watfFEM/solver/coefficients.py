"""
Material coefficients and body forces for linear elasticity.

All coefficient objects evaluate in batches: value_list(points)
takes an array of physical points of shape (n_points, dim) and
returns one value (or vector) per point. Passing a preallocated
output whose length differs from the number of points is an error,
as is a spatial dimension below 2.

The reference problem uses
    μ = 1, λ = 1e7 (nearly incompressible)
and a body force made of indicator functions of three disks of
radius 0.2:
    f_x = 1 inside the disks around (±0.5, 0)
    f_y = 1 inside the disk around the origin
"""

import numpy as np
from typing import Callable, Optional, Sequence

from ..errors import DimensionMismatchError, NotImplementedDimensionError, ConfigurationError


def _check_points(points: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=float)
    if points.ndim != 2:
        raise ConfigurationError(
            f"Points must be an array of shape (n_points, dim), got shape {points.shape}")
    if points.shape[1] < 2:
        raise NotImplementedDimensionError(points.shape[1])
    return points


def _check_output(values: Optional[np.ndarray], n_points: int) -> None:
    if values is not None and len(values) != n_points:
        raise DimensionMismatchError(n_points, len(values), "coefficient values")


class ConstantCoefficient:
    """Scalar coefficient with the same value everywhere."""

    def __init__(self, value: float):
        self.value = float(value)

    def value_list(self, points: np.ndarray, values: Optional[np.ndarray] = None) -> np.ndarray:
        points = _check_points(points)
        _check_output(values, len(points))
        if values is None:
            values = np.empty(len(points))
        values[:] = self.value
        return values

    def __repr__(self) -> str:
        return f"ConstantCoefficient({self.value})"


class FunctionCoefficient:
    """Scalar coefficient from a vectorized function f(points) -> (n_points,)."""

    def __init__(self, func: Callable[[np.ndarray], np.ndarray]):
        self.func = func

    def value_list(self, points: np.ndarray, values: Optional[np.ndarray] = None) -> np.ndarray:
        points = _check_points(points)
        _check_output(values, len(points))
        result = np.asarray(self.func(points), dtype=float).reshape(-1)
        if len(result) != len(points):
            raise DimensionMismatchError(len(points), len(result), "coefficient values")
        if values is None:
            return result
        values[:] = result
        return values


class LameParameters:
    """
    Lamé parameters μ (shear modulus) and λ (first Lamé parameter).

    Attributes:
        mu: Coefficient object for μ
        lam: Coefficient object for λ
    """

    def __init__(self, mu=1.0, lam=1e7):
        self.mu = mu if hasattr(mu, "value_list") else ConstantCoefficient(mu)
        self.lam = lam if hasattr(lam, "value_list") else ConstantCoefficient(lam)

    def mu_values(self, points: np.ndarray) -> np.ndarray:
        return self.mu.value_list(points)

    def lambda_values(self, points: np.ndarray) -> np.ndarray:
        return self.lam.value_list(points)

    @classmethod
    def from_young_poisson(cls, E: float, nu: float) -> 'LameParameters':
        """Lamé parameters for Young's modulus E and Poisson ratio nu."""
        if not -1.0 < nu < 0.5:
            raise ConfigurationError(f"Poisson ratio must lie in (-1, 0.5), got {nu}")
        mu = E / (2.0 * (1.0 + nu))
        lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
        return cls(mu, lam)

    def __repr__(self) -> str:
        return f"LameParameters(mu={self.mu!r}, lam={self.lam!r})"


class TwoDiskBodyForce:
    """
    Piecewise constant body force of the reference problem.

    The x-component is `magnitude` inside the two disks centered at
    (±offset, 0, ...), the y-component inside the disk at the origin.
    Further components (3D) are zero.
    """

    def __init__(self, radius: float = 0.2, offset: float = 0.5, magnitude: float = 1.0):
        if radius <= 0.0:
            raise ConfigurationError(f"Radius must be positive, got {radius}")
        self.radius = radius
        self.offset = offset
        self.magnitude = magnitude

    def value_list(self, points: np.ndarray, values: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Evaluate the force at many points.

        Parameters:
            points: Physical points, shape (n_points, dim), dim >= 2
            values: Optional output array, shape (n_points, dim)

        Returns:
            Array of shape (n_points, dim)
        """
        points = _check_points(points)
        _check_output(values, len(points))
        n_points, dim = points.shape

        center_1 = np.zeros(dim)
        center_2 = np.zeros(dim)
        center_1[0] = self.offset
        center_2[0] = -self.offset
        r2 = self.radius * self.radius

        in_1 = np.sum((points - center_1) ** 2, axis=1) < r2
        in_2 = np.sum((points - center_2) ** 2, axis=1) < r2
        in_0 = np.sum(points ** 2, axis=1) < r2

        if values is None:
            values = np.zeros((n_points, dim))
        else:
            values[:] = 0.0
        values[:, 0] = np.where(in_1 | in_2, self.magnitude, 0.0)
        values[:, 1] = np.where(in_0, self.magnitude, 0.0)
        return values


class FunctionBodyForce:
    """Body force from a vectorized function f(points) -> (n_points, dim)."""

    def __init__(self, func: Callable[[np.ndarray], np.ndarray]):
        self.func = func

    def value_list(self, points: np.ndarray, values: Optional[np.ndarray] = None) -> np.ndarray:
        points = _check_points(points)
        _check_output(values, len(points))
        result = np.asarray(self.func(points), dtype=float)
        if result.shape != points.shape:
            raise DimensionMismatchError(points.size, result.size, "body force values")
        if values is None:
            return result
        values[:] = result
        return values


class ZeroBodyForce:
    """f = 0."""

    def value_list(self, points: np.ndarray, values: Optional[np.ndarray] = None) -> np.ndarray:
        points = _check_points(points)
        _check_output(values, len(points))
        if values is None:
            return np.zeros(points.shape)
        values[:] = 0.0
        return values


def right_hand_side(points: Sequence, values: Optional[np.ndarray] = None) -> np.ndarray:
    """Reference two-disk body force evaluated at `points`."""
    return TwoDiskBodyForce().value_list(np.asarray(points, dtype=float), values)
