"""
Tolerant lookup of dotted paths in caller-supplied model/state objects.

Missing keys, out-of-range indices and type mismatches resolve to the
``MISSING`` sentinel instead of raising, so assertions stay robust to
absent fields.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from ..models.grammar import KEY_SEPARATOR, UNDEFINED_TEXT

_PRIMITIVES = (str, bytes, bytearray, int, float, complex, bool)


class _Missing:
    """Sentinel for a value that could not be resolved. Falsy and only equal to itself."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"

    def __str__(self) -> str:
        return UNDEFINED_TEXT

    def __reduce__(self):
        return (_Missing, ())


MISSING = _Missing()


def get_value(context: Any, segment: str) -> Any:
    """Resolve one path segment on ``context``."""
    if context is None or context is MISSING:
        return MISSING

    if isinstance(context, Mapping):
        return context[segment] if segment in context else MISSING

    if isinstance(context, Sequence) and not isinstance(context, _PRIMITIVES):
        if not segment.isdigit():
            return MISSING
        index = int(segment)
        return context[index] if index < len(context) else MISSING

    if isinstance(context, _PRIMITIVES) or segment.startswith("_"):
        return MISSING

    return getattr(context, segment, MISSING)


def resolve_path(context: Any, path: str) -> Any:
    """Return the value at a dotted ``path`` such as 'order.items.0.price'.

    An empty path returns the context itself.
    """
    if not path:
        return context

    value = context
    for segment in path.split(KEY_SEPARATOR):
        value = get_value(value, segment)
        if value is MISSING:
            break
    return value


__all__ = ["MISSING", "get_value", "resolve_path"]
