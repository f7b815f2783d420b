"""
Pydantic models for expression tokenization and function registration.
Separated from lexer/parser logic for better organization.
"""

import logging
import re
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import DuplicateFunctionError
from .grammar import DEFAULT_MAX_DEPTH, DEFAULT_MAX_ITERATIONS

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_]\w*")


class TokenKind(str, Enum):
    """Token kinds produced by the expression lexer."""

    # Data access
    MODEL_REF = "model_ref"  # $a.b.c
    STATE_REF = "state_ref"  # #a.b.c

    # Literals
    STRING_LITERAL = "string_literal"  # 'text'
    NUMBER_LITERAL = "number_literal"  # 12, 1.5, .5

    # Registered names
    FUNCTION_CALL = "function_call"  # name(arg, ...)
    STATEMENT_REF = "statement_ref"  # name

    # Operators and grouping
    OPERATOR = "operator"
    OPEN_BRACKET = "open_bracket"
    CLOSE_BRACKET = "close_bracket"

    # Special
    EOF = "eof"


class Token(BaseModel):
    """Token with kind, source text and position information."""

    kind: TokenKind
    value: str
    position: int
    end: int

    # Only set for FUNCTION_CALL / STATEMENT_REF tokens
    name: Optional[str] = None
    raw_args: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RegisteredFunction(BaseModel):
    """A name known to the DSL, optionally bound to its implementation."""

    name: str
    func: Optional[Callable[..., Any]] = None


class FunctionRegistry(BaseModel):
    """Registry of the names that may be called as functions or statements."""

    functions: Dict[str, RegisteredFunction] = Field(default_factory=dict)

    def add_function(self, name: str, func: Optional[Callable[..., Any]] = None):
        """Register a name. Fails if it is already present.

        Raises:
            ValueError: If the name is not a valid identifier
            DuplicateFunctionError: If the name is already registered
        """
        if not isinstance(name, str) or not IDENTIFIER_PATTERN.fullmatch(name):
            raise ValueError(f"Invalid function name: {name!r}")
        if name in self.functions:
            raise DuplicateFunctionError(name)

        self.functions[name] = RegisteredFunction(name=name, func=func)
        logger.info(f"Registered function: {name}")

    def get_function(self, name: str) -> Optional[RegisteredFunction]:
        """Get registration info by name."""
        return self.functions.get(name)

    def is_registered(self, name: str) -> bool:
        """Check if a name is registered."""
        return name in self.functions

    def callables(self) -> Dict[str, Callable[..., Any]]:
        """Return the name -> callable table for all names bound to an implementation."""
        return {
            name: entry.func
            for name, entry in self.functions.items()
            if entry.func is not None
        }

    def __contains__(self, name: str) -> bool:
        return self.is_registered(name)


class CompilerSettings(BaseModel):
    """Tunable limits for the expression compiler."""

    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"examples": [{"max_iterations": 1000, "max_depth": 50}]},
    )


# Export all models
__all__ = [
    "TokenKind",
    "Token",
    "RegisteredFunction",
    "FunctionRegistry",
    "CompilerSettings",
    "IDENTIFIER_PATTERN",
]
