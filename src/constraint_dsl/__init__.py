"""Constraint DSL Library.

This library compiles `<activation>:<condition>` assertions over a model
and a state into immutable Constraint objects, evaluates them, and renders
constraint messages with interpolated values.
"""

from constraint_dsl.core.constraint_generator import ConstraintGenerator
from constraint_dsl.core.constraint_loader import (
    ConstraintSetConfig,
    load_constraint_file,
)
from constraint_dsl.core.data_access import MISSING
from constraint_dsl.core.exceptions import (
    ConstraintConfigError,
    ConstraintError,
    ConstraintSyntaxError,
    DuplicateFunctionError,
    UnknownFunctionError,
)
from constraint_dsl.models.ast_schema import (
    ASTNode,
    Constraint,
    ConstraintData,
    ConstraintResult,
)
from constraint_dsl.models.parser_models import CompilerSettings

# Version
__version__ = "0.1.0"

# Public API
__all__ = [
    # Core components
    "ConstraintGenerator",
    "ConstraintSetConfig",
    "load_constraint_file",
    "CompilerSettings",
    "MISSING",
    # Models
    "ASTNode",
    "Constraint",
    "ConstraintData",
    "ConstraintResult",
    # Errors
    "ConstraintError",
    "ConstraintSyntaxError",
    "UnknownFunctionError",
    "DuplicateFunctionError",
    "ConstraintConfigError",
    # Version
    "__version__",
]
