from .exceptions import (
    ConstraintConfigError,
    ConstraintError,
    ConstraintSyntaxError,
    DuplicateFunctionError,
    UnknownFunctionError,
)

__all__ = [
    "ConstraintError",
    "ConstraintSyntaxError",
    "UnknownFunctionError",
    "DuplicateFunctionError",
    "ConstraintConfigError",
]
