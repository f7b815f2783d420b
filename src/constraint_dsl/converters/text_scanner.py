"""
Low-level text scanning helpers shared by the expression lexer and the
message tokenizer: string/function containment checks, bracket matching
and argument splitting.
"""

import re
from typing import Container, List, Optional, Tuple

from ..core.exceptions import ConstraintSyntaxError
from ..models.grammar import (
    ARG_SEPARATOR,
    BRACKET_CLOSE,
    BRACKET_OPEN,
    STRING_SYMBOL,
)

WORD_RUN = re.compile(r"\w+$")


def is_within_string(text: str, index: int) -> bool:
    """Check if the character at ``index`` lies inside a string literal.

    "some 'cust<o>m' message" is inside, "some 'custom' m<e>ssage" is not.
    The delimiter itself and the first/last characters are never inside.
    """
    if index <= 0 or index >= len(text) - 1 or text[index] == STRING_SYMBOL:
        return False
    return text.count(STRING_SYMBOL, index + 1) % 2 == 1


def find_closing_bracket(text: str, open_index: int) -> int:
    """Return the index of the bracket closing the one at ``open_index``, or -1.

    Brackets inside string literals are ignored.
    """
    depth = 0
    in_string = False
    for i in range(open_index, len(text)):
        char = text[i]
        if char == STRING_SYMBOL:
            in_string = not in_string
        elif in_string:
            continue
        elif char == BRACKET_OPEN:
            depth += 1
        elif char == BRACKET_CLOSE:
            depth -= 1
            if depth == 0:
                return i
    return -1


def function_spans(
    text: str, names: Optional[Container[str]] = None
) -> List[Tuple[int, int]]:
    """Return (open, close) index pairs of every function-call bracket in ``text``.

    A call bracket is an opening bracket immediately preceded by a word character.
    With ``names`` only brackets after one of those names count, so free text
    such as "note(it's fine)" is not taken for a call.

    Raises:
        ConstraintSyntaxError: If a call bracket is never closed
    """
    spans = []
    for i, char in enumerate(text):
        if char != BRACKET_OPEN or i == 0:
            continue
        name = WORD_RUN.search(text, 0, i)
        if not name or (names is not None and name.group() not in names):
            continue
        close = find_closing_bracket(text, i)
        if close == -1:
            raise ConstraintSyntaxError(
                f"Unterminated function call at index {i}: {text}",
                position=i,
                source=text,
            )
        spans.append((i, close))
    return spans


def is_within_function(
    text: str, index: int, names: Optional[Container[str]] = None
) -> bool:
    """Check if the character at ``index`` lies inside a function call's arguments.

    "SOME_FUNCTION(a, t<e>st)" is inside, "SOME_FUNCTI<O>N(a, test)" is not.
    ``names`` restricts the calls considered, as in function_spans.
    """
    if index <= 0 or index >= len(text) - 1 or text[index] in "()":
        return False
    return any(start < index < end for start, end in function_spans(text, names))


def split_arguments(arg_string: str) -> List[str]:
    """Split a call's argument string on top-level commas.

    Commas nested in brackets or string literals do not split.
    An empty argument string yields no arguments.
    """
    if not arg_string.strip():
        return []

    args = []
    depth = 0
    in_string = False
    start = 0
    for i, char in enumerate(arg_string):
        if char == STRING_SYMBOL:
            in_string = not in_string
        elif in_string:
            continue
        elif char == BRACKET_OPEN:
            depth += 1
        elif char == BRACKET_CLOSE:
            depth -= 1
        elif char == ARG_SEPARATOR and depth == 0:
            args.append(arg_string[start:i])
            start = i + 1
    args.append(arg_string[start:])
    return args


def strip_whitespace(text: str) -> str:
    """Remove all whitespace that is not inside a string literal."""
    parts = []
    in_string = False
    for char in text:
        if char == STRING_SYMBOL:
            in_string = not in_string
        if in_string or not char.isspace():
            parts.append(char)
    return "".join(parts)


__all__ = [
    "is_within_string",
    "find_closing_bracket",
    "function_spans",
    "is_within_function",
    "split_arguments",
    "strip_whitespace",
]
