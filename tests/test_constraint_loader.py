"""
Tests for YAML constraint files and model/state context files.
"""

import json

import pytest

from constraint_dsl import ConstraintConfigError, ConstraintGenerator, load_constraint_file
from constraint_dsl.core.constraint_loader import (
    load_context_file,
    parse_constraint_config,
)


class TestConstraintLoader:
    """Test class for constraint file loading."""

    @pytest.fixture
    def constraint_file(self, tmp_path):
        """Write a constraint file with settings and mixed constraint items."""
        path = tmp_path / "rules.yaml"
        path.write_text(
            """
settings:
  max_iterations: 200
constraints:
  - name: non_negative_balance
    assertion: "ALWAYS: $account.balance >= 0"
    message: "balance $account.balance is negative"
  - "WHEN(#mode == 'strict'): $account.balance > 10"
""",
            encoding="utf-8",
        )
        return path

    def test_load_constraint_file(self, constraint_file):
        config = load_constraint_file(constraint_file)

        assert config.settings.max_iterations == 200
        assert len(config.constraints) == 2
        assert config.constraints[0].name == "non_negative_balance"
        assert config.constraints[0].message == "balance $account.balance is negative"

    def test_bare_strings_become_assertions(self, constraint_file):
        config = load_constraint_file(str(constraint_file))

        bare = config.constraints[1]
        assert bare.assertion == "WHEN(#mode == 'strict'): $account.balance > 10"
        assert bare.name is None
        assert bare.message is None

    def test_loaded_constraints_compile(self, constraint_file):
        config = load_constraint_file(constraint_file)
        generator = ConstraintGenerator.from_config(config)

        assert generator.settings.max_iterations == 200
        constraints = generator.compile_all(config.constraints)
        results = generator.check(
            constraints, {"account": {"balance": 5}}, {"mode": "strict"}
        )
        assert [result.passed for result in results] == [True, False]

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        config = load_constraint_file(path)
        assert config.constraints == []
        assert config.settings.max_iterations == 1000

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConstraintConfigError, match="not found"):
            load_constraint_file(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("constraints: [", encoding="utf-8")

        with pytest.raises(ConstraintConfigError, match="Failed to parse"):
            load_constraint_file(path)

    @pytest.mark.parametrize(
        "data",
        [
            {"constraints": [{"name": "no assertion"}]},
            {"constraints": [{"assertion": "ALWAYS: 1 == 1", "severity": "high"}]},
            {"settings": {"max_iterations": 0}},
            {"settings": {"unknown": 1}},
            {"constraints": "ALWAYS: 1 == 1"},
        ],
    )
    def test_invalid_config(self, data):
        with pytest.raises(ConstraintConfigError, match="Invalid constraint config"):
            parse_constraint_config(data)


class TestContextFiles:
    """Test loading of model and state objects."""

    def test_json_context(self, tmp_path):
        path = tmp_path / "model.json"
        path.write_text(json.dumps({"account": {"balance": -5}}), encoding="utf-8")

        assert load_context_file(path) == {"account": {"balance": -5}}

    def test_yaml_context(self, tmp_path):
        path = tmp_path / "state.yml"
        path.write_text("mode: strict\nlimits:\n  - 1\n  - 2\n", encoding="utf-8")

        assert load_context_file(path) == {"mode": "strict", "limits": [1, 2]}

    def test_empty_context(self, tmp_path):
        path = tmp_path / "state.yaml"
        path.write_text("", encoding="utf-8")

        assert load_context_file(path) == {}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "model.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConstraintConfigError):
            load_context_file(path)

    def test_missing_context(self, tmp_path):
        with pytest.raises(ConstraintConfigError):
            load_context_file(tmp_path / "nope.json")
