from typing import Optional


class ConstraintError(Exception):
    """Base class for all errors raised by the constraint DSL."""

    pass


class ConstraintSyntaxError(ConstraintError):
    """Raised when an assertion, expression or message cannot be tokenized or parsed.

    Attributes:
        position: Index of the offending character in ``source``, if known
        source: The text that was being scanned. For expressions this is the
            whitespace-free condition or WHEN(...) body, not the whole assertion.
    """

    def __init__(
        self, message: str, position: Optional[int] = None, source: str = ""
    ):
        super().__init__(message)
        self.position = position
        self.source = source


class UnknownFunctionError(ConstraintError):
    """Raised when a function or statement name is not registered or has no callable."""

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"Unknown function: {name}")
        self.name = name


class DuplicateFunctionError(ConstraintError):
    """Raised when a function name is registered twice."""

    def __init__(self, name: str):
        super().__init__(f"Function with name {name} is already registered")
        self.name = name


class ConstraintConfigError(ConstraintError):
    """Raised when a constraint file cannot be read or validated."""

    pass
