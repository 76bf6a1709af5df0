"""
Tests for configuration loading and validation.
"""

import json
import pytest

from watfFEM.io.config import (ElasticityConfig, load_config, save_config,
                               config_to_dict, config_from_dict)
from watfFEM.errors import ConfigurationError


class TestElasticityConfig:
    """Tests for defaults and validation."""

    def test_reference_defaults(self):
        config = ElasticityConfig().validate()
        assert config.dim == 2
        assert config.degree == 2
        assert config.domain == (-1.0, 1.0)
        assert config.n_global_refinements == 4
        assert config.mu == 1.0
        assert config.lam == 1e7
        assert config.solver_tolerance == 1e-12
        assert config.preconditioner == "ssor"
        assert config.relaxation == 1.2

    @pytest.mark.parametrize("field, value", [
        ("dim", 1),
        ("degree", 0),
        ("domain", (1.0, -1.0)),
        ("mu", 0.0),
        ("lam", -1.0),
        ("relaxation", 2.0),
        ("preconditioner", "amg"),
        ("renumber", "random"),
        ("quadrature_rule", "exact"),
        ("solver_tolerance", 0.0),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ConfigurationError):
            ElasticityConfig(**{field: value}).validate()

    def test_updated_ignores_none(self):
        config = ElasticityConfig().updated(degree=1, lam=None)
        assert config.degree == 1
        assert config.lam == 1e7


class TestConfigFiles:
    """Tests for JSON round trips."""

    def test_round_trip(self, tmp_path):
        config = ElasticityConfig(n_global_refinements=2, lam=5.0, output=None)
        path = save_config(config, tmp_path / "run.json")
        assert load_config(path) == config

    def test_partial_file(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text(json.dumps({"degree": 1, "domain": [0, 2]}))
        config = load_config(path)
        assert config.degree == 1
        assert config.domain == (0.0, 2.0)
        assert config.mu == 1.0

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            config_from_dict({"lamda": 1.0})

    def test_numeric_strings_converted(self):
        config = config_from_dict({"degree": "2", "lam": "1e3", "max_iterations": 50.0})
        assert config.degree == 2 and isinstance(config.degree, int)
        assert config.lam == 1e3
        assert config.max_iterations == 50 and isinstance(config.max_iterations, int)

    @pytest.mark.parametrize("data", [
        {"degree": "two"},
        {"degree": 2.5},
        {"degree": True},
        {"mu": [1.0]},
        {"domain": 1.0},
        {"domain": ["a", 1]},
        {"preconditioner": 3},
        {"output": 42},
    ])
    def test_wrong_value_types(self, data):
        with pytest.raises(ConfigurationError):
            config_from_dict(data)

    def test_wrong_value_type_in_file(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text(json.dumps({"n_global_refinements": "many"}))
        with pytest.raises(ConfigurationError, match="n_global_refinements"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{degree: 2")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_to_dict(self):
        data = config_to_dict(ElasticityConfig())
        assert data["domain"] == [-1.0, 1.0]
        assert json.loads(json.dumps(data)) == data
