"""
Message Renderer - interpolate model/state values and function results
into free-text constraint messages such as "balance $account.balance is low".
"""

import logging
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..converters.expression_parser import ExpressionParser
from ..converters.text_scanner import find_closing_bracket, is_within_function
from ..models.grammar import (
    BRACKET_OPEN,
    MODEL_PREFIX,
    STATE_PREFIX,
    UNDEFINED_TEXT,
)
from ..models.parser_models import CompilerSettings, FunctionRegistry
from .data_access import MISSING, resolve_path
from .evaluator import ExpressionEvaluator
from .exceptions import ConstraintSyntaxError

logger = logging.getLogger(__name__)


class MessageTokenKind(str, Enum):
    """Kinds of references found in a message template."""

    MODEL_REF = "model_ref"
    STATE_REF = "state_ref"
    STATEMENT_REF = "statement_ref"
    FUNCTION_CALL = "function_call"


class MessageToken(BaseModel):
    """A reference inside a message template with its absolute span."""

    kind: MessageTokenKind
    text: str
    start: int
    end: int

    model_config = ConfigDict(frozen=True)


def format_value(value: Any) -> str:
    """Render a resolved value as message text."""
    if value is MISSING:
        return UNDEFINED_TEXT
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class MessageTokenizer:
    """Splits a message template into references.

    Tokens are delimited by whitespace, except whitespace inside the argument
    list of a registered function call, so "max($a, #b)" stays one token.
    """

    IDENTIFIER = re.compile(r"[A-Za-z_]\w*")
    REFERENCE_BODY = re.compile(r"[\w.]*")

    def __init__(self, function_registry: FunctionRegistry):
        self.function_registry = function_registry

    def split(self, template: str) -> List[Tuple[int, str]]:
        """Return (start, text) pairs of the raw whitespace-delimited words.

        Only calls to registered names keep their whitespace, so ordinary text
        in brackets ("see note(it's fine)") splits like any other text.
        """
        words = []
        word_start = None
        for i, char in enumerate(template):
            if char.isspace() and not is_within_function(
                template, i, self.function_registry
            ):
                if word_start is not None:
                    words.append((word_start, template[word_start:i]))
                    word_start = None
            elif word_start is None:
                word_start = i

        if word_start is not None:
            words.append((word_start, template[word_start:]))

        return words

    def tokenize(self, template: str) -> List[MessageToken]:
        """Return every reference in ``template`` in template order."""
        tokens = []
        for start, word in self.split(template):
            token = self.classify(word, start)
            if token:
                tokens.append(token)
        return tokens

    def classify(self, word: str, start: int) -> Optional[MessageToken]:
        """Trim a raw word down to the reference it contains, if any."""
        match = self.IDENTIFIER.match(word)
        if match and self.function_registry.is_registered(match.group()):
            name_end = match.end()

            # Statement: keep only the name
            if name_end >= len(word) or word[name_end] != BRACKET_OPEN:
                return MessageToken(
                    kind=MessageTokenKind.STATEMENT_REF,
                    text=word[:name_end],
                    start=start,
                    end=start + name_end,
                )

            # Function call: keep everything up to the matching bracket
            close = find_closing_bracket(word, name_end)
            if close == -1:
                raise ConstraintSyntaxError(
                    f"Unterminated function call in message at index {start}: {word}",
                    position=start,
                    source=word,
                )
            return MessageToken(
                kind=MessageTokenKind.FUNCTION_CALL,
                text=word[: close + 1],
                start=start,
                end=start + close + 1,
            )

        for prefix, kind in (
            (MODEL_PREFIX, MessageTokenKind.MODEL_REF),
            (STATE_PREFIX, MessageTokenKind.STATE_REF),
        ):
            index = word.find(prefix)
            if index == -1:
                continue

            body_end = self.REFERENCE_BODY.match(word, index + 1).end()
            path = word[index + 1 : body_end].rstrip(".")
            if not path:
                # A lone prefix is ordinary text
                return None
            return MessageToken(
                kind=kind,
                text=prefix + path,
                start=start + index,
                end=start + index + 1 + len(path),
            )

        return None


class MessageRenderer:
    """Replaces every reference in a message template with its current value."""

    def __init__(
        self,
        function_registry: FunctionRegistry,
        settings: Optional[CompilerSettings] = None,
    ):
        self.function_registry = function_registry
        self.settings = settings or CompilerSettings()
        self.tokenizer = MessageTokenizer(function_registry)

    def render(
        self,
        template: str,
        model: Any,
        state: Any,
        functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> str:
        """Render ``template`` against the given model, state and functions.

        Raises:
            ConstraintSyntaxError: If a call in the template is malformed
            UnknownFunctionError: If a referenced name has no implementation
        """
        tokens = self.tokenizer.tokenize(template)
        if not tokens:
            return template

        table = self.function_registry.callables()
        if functions:
            table.update(functions)
        evaluator = ExpressionEvaluator(model, state, table)

        values: Dict[int, Any] = {}

        # Data references first, each distinct path resolved once
        for kind, context in (
            (MessageTokenKind.MODEL_REF, model),
            (MessageTokenKind.STATE_REF, state),
        ):
            resolved: Dict[str, Any] = {}
            for index, token in enumerate(tokens):
                if token.kind != kind:
                    continue
                path = token.text[1:]
                if path not in resolved:
                    resolved[path] = resolve_path(context, path)
                values[index] = resolved[path]

        # Then statements and calls in template order
        for index, token in enumerate(tokens):
            if token.kind in (
                MessageTokenKind.STATEMENT_REF,
                MessageTokenKind.FUNCTION_CALL,
            ):
                parser = ExpressionParser(self.function_registry, self.settings)
                values[index] = evaluator.evaluate(parser.parse(token.text))

        parts = []
        cursor = 0
        for index, token in enumerate(tokens):
            parts.append(template[cursor : token.start])
            parts.append(format_value(values[index]))
            cursor = token.end
        parts.append(template[cursor:])

        message = "".join(parts)
        logger.debug(f"Rendered message '{template}' -> '{message}'")
        return message
