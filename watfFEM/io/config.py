"""
Configuration and problem setup.

Utilities for loading an elasticity run from a JSON file:
- Mesh (dimension, domain, number of global refinements)
- Element degree
- Material (Lamé parameters) and body force
- Solver parameters
- Output file

Example JSON format:
    {
      "n_global_refinements": 4,
      "degree": 2,
      "mu": 1.0,
      "lam": 1e7,
      "solver_tolerance": 1e-12,
      "preconditioner": "ssor",
      "relaxation": 1.2,
      "output": "solution.vtk"
    }

Keys that are left out take the defaults of ElasticityConfig.
"""

import json
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import ConfigurationError

PRECONDITIONERS = ("ssor", "jacobi", "identity")
RENUMBERINGS = ("cuthill_mckee", "reverse_cuthill_mckee", "none")
QUADRATURE_RULES = ("full", "reduced")


@dataclass
class ElasticityConfig:
    """
    Parameters of one elasticity run.

    The defaults reproduce the reference problem: the square [-1, 1]^2
    refined four times, Q2 elements, μ = 1, λ = 1e7, two disks of
    radius 0.2 loading the body, and SSOR-preconditioned CG to 1e-12.
    """
    dim: int = 2
    degree: int = 2
    domain: Tuple[float, float] = (-1.0, 1.0)
    n_global_refinements: int = 4
    mu: float = 1.0
    lam: float = 1e7
    source_radius: float = 0.2
    quadrature_rule: str = "full"
    solver_tolerance: float = 1e-12
    max_iterations: int = 1_000_000
    preconditioner: str = "ssor"
    relaxation: float = 1.2
    renumber: str = "cuthill_mckee"
    n_workers: int = 1
    output: Optional[str] = "solution.vtk"

    def validate(self) -> 'ElasticityConfig':
        """
        Check parameter ranges.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: on the first invalid value
        """
        if self.dim < 2 or self.dim > 3:
            raise ConfigurationError(f"dim must be 2 or 3, got {self.dim}")
        if self.degree < 1:
            raise ConfigurationError(f"degree must be >= 1, got {self.degree}")
        if len(self.domain) != 2 or not self.domain[0] < self.domain[1]:
            raise ConfigurationError(f"domain must be (left, right) with left < right, got {self.domain}")
        if self.n_global_refinements < 0:
            raise ConfigurationError("n_global_refinements must be >= 0")
        if self.mu <= 0:
            raise ConfigurationError(f"mu must be positive, got {self.mu}")
        if self.lam < 0:
            raise ConfigurationError(f"lam must be non-negative, got {self.lam}")
        if self.source_radius <= 0:
            raise ConfigurationError("source_radius must be positive")
        if self.quadrature_rule not in QUADRATURE_RULES:
            raise ConfigurationError(f"quadrature_rule must be one of {QUADRATURE_RULES}")
        if self.solver_tolerance <= 0:
            raise ConfigurationError("solver_tolerance must be positive")
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be >= 1")
        if self.preconditioner not in PRECONDITIONERS:
            raise ConfigurationError(f"preconditioner must be one of {PRECONDITIONERS}, "
                                     f"got {self.preconditioner!r}")
        if not 0.0 < self.relaxation < 2.0:
            raise ConfigurationError(f"relaxation must be in (0, 2), got {self.relaxation}")
        if self.renumber not in RENUMBERINGS:
            raise ConfigurationError(f"renumber must be one of {RENUMBERINGS}")
        return self

    def updated(self, **overrides) -> 'ElasticityConfig':
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _coerce(name: str, annotation: Any, value: Any) -> Any:
    """Convert a file value to the type annotated on the field."""
    if annotation == Optional[str]:
        if value is None:
            return None
        annotation = str
    try:
        if annotation is str:
            if not isinstance(value, str):
                raise TypeError("expected a string")
            return value
        if isinstance(value, bool):
            raise TypeError("booleans are not numbers")
        if annotation is int:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError("expected an integer")
            return int(value)
        if annotation is float:
            return float(value)
        if annotation == Tuple[float, float]:
            return tuple(float(v) for v in value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {name!r}: {value!r} ({e})") from e
    return value


def config_from_dict(data: Dict[str, Any]) -> ElasticityConfig:
    """
    Build a validated configuration from a plain dictionary.

    Raises:
        ConfigurationError: on unknown keys or invalid values
    """
    types = {f.name: f.type for f in fields(ElasticityConfig)}
    unknown = sorted(set(data) - set(types))
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

    data = {k: _coerce(k, types[k], v) for k, v in data.items()}
    return ElasticityConfig(**data).validate()


def load_config(filename: Union[str, Path]) -> ElasticityConfig:
    """
    Load an elasticity configuration from a JSON file.

    Parameters:
        filename: Path to the JSON file

    Returns:
        Validated ElasticityConfig
    """
    path = Path(filename)
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be an object")
    return config_from_dict(data)


def config_to_dict(config: ElasticityConfig) -> Dict[str, Any]:
    data = asdict(config)
    data["domain"] = list(config.domain)
    return data


def save_config(config: ElasticityConfig, filename: Union[str, Path]) -> Path:
    """Write a configuration as JSON."""
    path = Path(filename)
    with open(path, 'w') as f:
        json.dump(config_to_dict(config), f, indent=2)
    return path
