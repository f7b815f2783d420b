"""
Constraint file loading - YAML-based constraint definitions.

A constraint file holds an optional ``settings`` section and a list of
constraints:

    settings:
      max_iterations: 500
    constraints:
      - name: non_negative_balance
        assertion: "ALWAYS: $account.balance >= 0"
        message: "balance $account.balance is negative"

Plain strings are accepted as list items and treated as bare assertions.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..models.ast_schema import ConstraintData
from ..models.parser_models import CompilerSettings
from .exceptions import ConstraintConfigError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}


class ConstraintSetConfig(BaseModel):
    """Validated content of a constraint file."""

    settings: CompilerSettings = Field(default_factory=CompilerSettings)
    constraints: List[ConstraintData] = Field(default_factory=list)

    @field_validator("constraints", mode="before")
    @classmethod
    def _wrap_bare_assertions(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                {"assertion": item} if isinstance(item, str) else item
                for item in value
            ]
        return value


def parse_constraint_config(data: Any) -> ConstraintSetConfig:
    """Validate already-loaded constraint file content."""
    if data is None:
        logger.warning("Empty constraint config, using defaults")
        return ConstraintSetConfig()

    try:
        return ConstraintSetConfig.model_validate(data)
    except ValidationError as e:
        raise ConstraintConfigError(f"Invalid constraint config: {e}") from e


def load_constraint_file(path: Union[str, Path]) -> ConstraintSetConfig:
    """Load and validate a YAML constraint file.

    Raises:
        ConstraintConfigError: If the file is missing, unreadable or invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConstraintConfigError(f"Constraint file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConstraintConfigError(
            f"Failed to parse constraint file {config_path}: {e}"
        ) from e

    config = parse_constraint_config(data)
    logger.info(
        f"Loaded {len(config.constraints)} constraints from {config_path}"
    )
    return config


def load_context_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a model or state object from a JSON or YAML file."""
    context_path = Path(path)
    if not context_path.exists():
        raise ConstraintConfigError(f"Context file not found: {context_path}")

    try:
        with open(context_path, "r", encoding="utf-8") as f:
            if context_path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConstraintConfigError(
            f"Failed to parse context file {context_path}: {e}"
        ) from e

    return data if data is not None else {}


__all__ = [
    "ConstraintSetConfig",
    "parse_constraint_config",
    "load_constraint_file",
    "load_context_file",
]
