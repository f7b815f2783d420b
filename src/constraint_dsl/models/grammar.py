"""
Grammar constants for the constraint DSL.
All symbols, prefixes and operator spellings live here so that the lexer,
parser and message renderer agree on a single vocabulary.
"""

# General
COND_SEPARATOR = ":"
KEY_SEPARATOR = "."
ARG_SEPARATOR = ","

# Activation keywords
ALWAYS = "ALWAYS"
WHEN = "WHEN"

# Data access
MODEL_PREFIX = "$"
STATE_PREFIX = "#"
STRING_SYMBOL = "'"
FORBIDDEN_STRING_CHAR = "`"

# Comparison
LESS = "<"
LESS_EQUAL = "<="
EQUAL = "=="
NOT_EQUAL = "!="
GREATER_EQUAL = ">="
GREATER = ">"

# Arithmetic
PLUS = "+"
MINUS = "-"
TIMES = "*"
DIV = "/"
MOD = "%"

# Grouping
BRACKET_OPEN = "("
BRACKET_CLOSE = ")"

# Logic
AND = "&&"
OR = "||"

# Two-character operators are checked before single-character ones
TWO_CHAR_OPERATORS = (LESS_EQUAL, EQUAL, NOT_EQUAL, GREATER_EQUAL, AND, OR)
ONE_CHAR_OPERATORS = (LESS, GREATER, PLUS, MINUS, TIMES, DIV, MOD)

# Text used when a message references a value that could not be resolved
UNDEFINED_TEXT = "undefined"

# Default cap on tokenizer iterations per expression
DEFAULT_MAX_ITERATIONS = 1000

# Default cap on bracket and call nesting per expression
DEFAULT_MAX_DEPTH = 50

__all__ = [
    "COND_SEPARATOR",
    "KEY_SEPARATOR",
    "ARG_SEPARATOR",
    "ALWAYS",
    "WHEN",
    "MODEL_PREFIX",
    "STATE_PREFIX",
    "STRING_SYMBOL",
    "FORBIDDEN_STRING_CHAR",
    "LESS",
    "LESS_EQUAL",
    "EQUAL",
    "NOT_EQUAL",
    "GREATER_EQUAL",
    "GREATER",
    "PLUS",
    "MINUS",
    "TIMES",
    "DIV",
    "MOD",
    "BRACKET_OPEN",
    "BRACKET_CLOSE",
    "AND",
    "OR",
    "TWO_CHAR_OPERATORS",
    "ONE_CHAR_OPERATORS",
    "UNDEFINED_TEXT",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_MAX_DEPTH",
]
