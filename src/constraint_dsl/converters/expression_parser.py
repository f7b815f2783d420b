"""
Constraint Expression Parser - Convert DSL expressions to AST.
Handles tokenization and precedence parsing; raises typed errors on bad input.
"""

import re
import logging
from typing import List, Optional

from ..core.exceptions import ConstraintSyntaxError, UnknownFunctionError
from ..models.ast_schema import ASTNode, NodeType
from ..models.grammar import (
    AND,
    BRACKET_CLOSE,
    BRACKET_OPEN,
    DIV,
    EQUAL,
    FORBIDDEN_STRING_CHAR,
    GREATER,
    GREATER_EQUAL,
    LESS,
    LESS_EQUAL,
    MINUS,
    MOD,
    MODEL_PREFIX,
    NOT_EQUAL,
    ONE_CHAR_OPERATORS,
    OR,
    PLUS,
    STATE_PREFIX,
    STRING_SYMBOL,
    TIMES,
    TWO_CHAR_OPERATORS,
)
from ..models.parser_models import (
    CompilerSettings,
    FunctionRegistry,
    Token,
    TokenKind,
)
from .text_scanner import find_closing_bracket, split_arguments, strip_whitespace

logger = logging.getLogger(__name__)


class ExpressionLexer:
    """Tokenizer for constraint expressions.

    Works on whitespace-free input (whitespace inside string literals is kept).
    """

    DATA_ACCESS_BODY = re.compile(r"[\w.]*")
    NUMBER_BODY = re.compile(r"[0-9.]+")
    VALID_NUMBER = re.compile(r"[+-]?\d*\.?\d+")
    SIGNS = (PLUS, MINUS)
    IDENTIFIER_START = re.compile(r"[A-Za-z_]")
    IDENTIFIER = re.compile(r"\w+")

    def __init__(
        self,
        function_registry: FunctionRegistry,
        settings: Optional[CompilerSettings] = None,
    ):
        self.function_registry = function_registry
        self.settings = settings or CompilerSettings()
        self.base_offset = 0

    def tokenize(self, expression: str, base_offset: int = 0) -> List[Token]:
        """Tokenize a whitespace-free expression string.

        Args:
            expression: Expression text
            base_offset: Added to every reported position (used for call arguments)

        Returns:
            List of tokens terminated by an EOF token
        """
        self.base_offset = base_offset
        tokens = []
        position = 0
        iterations = 0

        while position < len(expression):
            iterations += 1
            if iterations > self.settings.max_iterations:
                raise self._error(
                    "Maximum parsing iterations reached, there is a syntax error here",
                    expression,
                    position,
                )

            # A sign is part of a number where an operand is expected
            expects_operand = not tokens or tokens[-1].kind in (
                TokenKind.OPERATOR,
                TokenKind.OPEN_BRACKET,
            )
            token = self.next_token(expression, position, expects_operand)
            tokens.append(token)
            position = token.end - self.base_offset

        tokens.append(
            Token(
                kind=TokenKind.EOF,
                value="",
                position=self.base_offset + position,
                end=self.base_offset + position,
            )
        )
        return tokens

    def next_token(
        self, expression: str, offset: int, expects_operand: bool = False
    ) -> Token:
        """Classify the token starting at ``offset`` and compute where it ends.

        With ``expects_operand`` a '+' or '-' followed by a digit starts a
        signed number instead of an operator.
        """
        if offset >= len(expression):
            raise self._error("Unexpected end of expression", expression, offset)

        start_char = expression[offset]

        # Data access: $path / #path
        if start_char in (MODEL_PREFIX, STATE_PREFIX):
            return self._data_access_token(expression, offset)

        # String literal: look for the closing quotation
        if start_char == STRING_SYMBOL:
            return self._string_token(expression, offset)

        # Number: optional sign, digits and dots
        if self._starts_number(expression, offset, expects_operand):
            return self._number_token(expression, offset)

        # Function call or statement
        if self.IDENTIFIER_START.match(start_char):
            return self._identifier_token(expression, offset)

        # Operators and brackets
        return self._operator_token(expression, offset)

    def _data_access_token(self, expression: str, offset: int) -> Token:
        match = self.DATA_ACCESS_BODY.match(expression, offset + 1)
        end = match.end()
        path = expression[offset + 1 : end]

        if path and "" in path.split("."):
            raise self._error(
                f"Invalid data access path '{expression[offset:end]}'",
                expression,
                offset,
            )

        kind = (
            TokenKind.MODEL_REF
            if expression[offset] == MODEL_PREFIX
            else TokenKind.STATE_REF
        )
        return self._token(kind, expression, offset, end)

    def _string_token(self, expression: str, offset: int) -> Token:
        close = expression.find(STRING_SYMBOL, offset + 1)
        if close == -1:
            raise self._error("Unterminated string literal", expression, offset)

        if FORBIDDEN_STRING_CHAR in expression[offset + 1 : close]:
            raise self._error(
                f"String literal must not contain '{FORBIDDEN_STRING_CHAR}'",
                expression,
                offset,
            )
        return self._token(TokenKind.STRING_LITERAL, expression, offset, close + 1)

    def _starts_number(
        self, expression: str, offset: int, expects_operand: bool
    ) -> bool:
        if expects_operand and expression[offset] in self.SIGNS:
            offset += 1
        if expression[offset : offset + 1] == ".":
            offset += 1
        return offset < len(expression) and expression[offset] in "0123456789"

    def _number_token(self, expression: str, offset: int) -> Token:
        body_start = offset + 1 if expression[offset] in self.SIGNS else offset
        end = self.NUMBER_BODY.match(expression, body_start).end()
        if not self.VALID_NUMBER.fullmatch(expression[offset:end]):
            raise self._error(
                f"Invalid number '{expression[offset:end]}'", expression, offset
            )
        return self._token(TokenKind.NUMBER_LITERAL, expression, offset, end)

    def _identifier_token(self, expression: str, offset: int) -> Token:
        name_end = self.IDENTIFIER.match(expression, offset).end()
        name = expression[offset:name_end]

        if not self.function_registry.is_registered(name):
            raise UnknownFunctionError(
                name,
                f"Unknown function or statement '{name}' at index "
                f"{self.base_offset + offset}: {expression}",
            )

        # No brackets, so this is a statement
        if name_end >= len(expression) or expression[name_end] != BRACKET_OPEN:
            return self._token(
                TokenKind.STATEMENT_REF, expression, offset, name_end, name=name
            )

        close = find_closing_bracket(expression, name_end)
        if close == -1:
            raise self._error(
                f"Unterminated bracket in call to '{name}'", expression, name_end
            )
        return self._token(
            TokenKind.FUNCTION_CALL,
            expression,
            offset,
            close + 1,
            name=name,
            raw_args=expression[name_end + 1 : close],
        )

    def _operator_token(self, expression: str, offset: int) -> Token:
        pair = expression[offset : offset + 2]
        if pair in TWO_CHAR_OPERATORS:
            return self._token(TokenKind.OPERATOR, expression, offset, offset + 2)

        start_char = expression[offset]
        if start_char == BRACKET_OPEN:
            return self._token(TokenKind.OPEN_BRACKET, expression, offset, offset + 1)
        if start_char == BRACKET_CLOSE:
            return self._token(TokenKind.CLOSE_BRACKET, expression, offset, offset + 1)
        if start_char in ONE_CHAR_OPERATORS:
            return self._token(TokenKind.OPERATOR, expression, offset, offset + 1)

        raise self._error(
            f"Unable to parse statement, char: '{start_char}'", expression, offset
        )

    def _token(
        self,
        kind: TokenKind,
        expression: str,
        start: int,
        end: int,
        name: Optional[str] = None,
        raw_args: Optional[str] = None,
    ) -> Token:
        return Token(
            kind=kind,
            value=expression[start:end],
            position=self.base_offset + start,
            end=self.base_offset + end,
            name=name,
            raw_args=raw_args,
        )

    def _error(self, message: str, expression: str, index: int) -> ConstraintSyntaxError:
        position = self.base_offset + index
        return ConstraintSyntaxError(
            f"{message} at index {position}: {expression}",
            position=position,
            source=expression,
        )


class ExpressionParser:
    """Recursive descent parser for constraint expressions.

    Precedence, loosest first: || , && , == != , < <= > >= , + - , * / %

    Brackets and call arguments nest at most ``settings.max_depth`` levels.
    ``depth`` is the nesting level the parsed text starts at.
    """

    def __init__(
        self,
        function_registry: FunctionRegistry,
        settings: Optional[CompilerSettings] = None,
        depth: int = 0,
    ):
        self.function_registry = function_registry
        self.settings = settings or CompilerSettings()
        self.lexer = ExpressionLexer(function_registry, self.settings)
        self.tokens: List[Token] = []
        self.current = 0
        self.source = ""
        self.base_depth = depth
        self.depth = depth

    def parse(self, expression: str, base_offset: int = 0) -> ASTNode:
        """Parse an expression string into an AST.

        Raises:
            ConstraintSyntaxError: If the expression is malformed
            UnknownFunctionError: If it references an unregistered name
        """
        stripped = strip_whitespace(expression)
        if not stripped:
            raise ConstraintSyntaxError(
                f"Empty expression: '{expression}'",
                position=base_offset,
                source=expression,
            )

        # Reset state
        self.source = stripped
        self.tokens = self.lexer.tokenize(stripped, base_offset)
        self.current = 0
        self.depth = self.base_depth

        logger.debug(f"Parsing expression: {stripped}")

        try:
            node = self.parse_expression()
        except RecursionError as e:
            raise ConstraintSyntaxError(
                f"Expression is nested too deeply: {stripped}",
                position=base_offset,
                source=stripped,
            ) from e

        if not self.is_at_end():
            token = self.peek()
            raise self._error(f"Unexpected token '{token.value}'", token)

        return node

    def parse_expression(self) -> ASTNode:
        """Parse a complete expression."""
        return self.parse_or_expression()

    def parse_or_expression(self) -> ASTNode:
        """Parse || expressions."""
        left = self.parse_and_expression()

        while self.match_operator(OR):
            operator = self.previous()
            right = self.parse_and_expression()
            left = self._binary(operator, left, right)

        return left

    def parse_and_expression(self) -> ASTNode:
        """Parse && expressions."""
        left = self.parse_equality()

        while self.match_operator(AND):
            operator = self.previous()
            right = self.parse_equality()
            left = self._binary(operator, left, right)

        return left

    def parse_equality(self) -> ASTNode:
        """Parse == and != expressions."""
        left = self.parse_comparison()

        while self.match_operator(EQUAL, NOT_EQUAL):
            operator = self.previous()
            right = self.parse_comparison()
            left = self._binary(operator, left, right)

        return left

    def parse_comparison(self) -> ASTNode:
        """Parse ordering comparisons."""
        left = self.parse_term()

        while self.match_operator(LESS, LESS_EQUAL, GREATER, GREATER_EQUAL):
            operator = self.previous()
            right = self.parse_term()
            left = self._binary(operator, left, right)

        return left

    def parse_term(self) -> ASTNode:
        """Parse addition and subtraction."""
        left = self.parse_factor()

        while self.match_operator(PLUS, MINUS):
            operator = self.previous()
            right = self.parse_factor()
            left = self._binary(operator, left, right)

        return left

    def parse_factor(self) -> ASTNode:
        """Parse multiplication, division, and modulo."""
        left = self.parse_primary()

        while self.match_operator(TIMES, DIV, MOD):
            operator = self.previous()
            right = self.parse_primary()
            left = self._binary(operator, left, right)

        return left

    def parse_primary(self) -> ASTNode:
        """Parse primary expressions."""
        token = self.peek()

        # Parenthesized expression
        if self.match(TokenKind.OPEN_BRACKET):
            self._descend(token)
            inner = self.parse_expression()
            self.consume(TokenKind.CLOSE_BRACKET, "Expected ')' after expression")
            self.depth -= 1
            return ASTNode(
                node_type=NodeType.GROUP, inner=inner, source_location=token.position
            )

        # Data access
        if self.match(TokenKind.MODEL_REF):
            return ASTNode(
                node_type=NodeType.MODEL_REF,
                path=token.value[1:],
                source_location=token.position,
            )

        if self.match(TokenKind.STATE_REF):
            return ASTNode(
                node_type=NodeType.STATE_REF,
                path=token.value[1:],
                source_location=token.position,
            )

        # Literals
        if self.match(TokenKind.STRING_LITERAL):
            return ASTNode(
                node_type=NodeType.STRING_LITERAL,
                value=token.value[1:-1],
                source_location=token.position,
            )

        if self.match(TokenKind.NUMBER_LITERAL):
            value = float(token.value) if "." in token.value else int(token.value)
            return ASTNode(
                node_type=NodeType.NUMBER_LITERAL,
                value=value,
                source_location=token.position,
            )

        # Registered names
        if self.match(TokenKind.STATEMENT_REF):
            return ASTNode(
                node_type=NodeType.STATEMENT_REF,
                function_name=token.name,
                source_location=token.position,
            )

        if self.match(TokenKind.FUNCTION_CALL):
            return self.parse_function_call(token)

        # Error case
        if token.kind == TokenKind.EOF:
            raise self._error("Unexpected end of expression", token)
        raise self._error(f"Expected operand but got '{token.value}'", token)

    def parse_function_call(self, token: Token) -> ASTNode:
        """Parse a call token; each argument is compiled as its own expression."""
        self._descend(token)
        arguments = []
        offset = token.position + len(token.name) + 1

        for arg in split_arguments(token.raw_args):
            if not arg:
                raise ConstraintSyntaxError(
                    f"Empty argument in call to '{token.name}' at index {offset}: "
                    f"{self.source}",
                    position=offset,
                    source=self.source,
                )
            sub_parser = ExpressionParser(
                self.function_registry, self.settings, depth=self.depth
            )
            arguments.append(sub_parser.parse(arg, base_offset=offset))
            offset += len(arg) + 1

        self.depth -= 1
        return ASTNode(
            node_type=NodeType.FUNCTION_CALL,
            function_name=token.name,
            arguments=arguments,
            source_location=token.position,
        )

    # Helper methods
    def match(self, *kinds: TokenKind) -> bool:
        """Check if current token matches any of the given kinds."""
        for kind in kinds:
            if self.check(kind):
                self.advance()
                return True
        return False

    def match_operator(self, *symbols: str) -> bool:
        """Check if current token is one of the given operators."""
        if self.check(TokenKind.OPERATOR) and self.peek().value in symbols:
            self.advance()
            return True
        return False

    def check(self, kind: TokenKind) -> bool:
        """Check if current token is of given kind."""
        if self.is_at_end():
            return False
        return self.peek().kind == kind

    def advance(self) -> Token:
        """Consume and return current token."""
        if not self.is_at_end():
            self.current += 1
        return self.previous()

    def is_at_end(self) -> bool:
        """Check if we've reached the end."""
        return self.peek().kind == TokenKind.EOF

    def peek(self) -> Token:
        """Return current token without consuming it."""
        return self.tokens[self.current]

    def previous(self) -> Token:
        """Return previous token."""
        return self.tokens[self.current - 1]

    def consume(self, kind: TokenKind, message: str) -> Token:
        """Consume token of expected kind or raise."""
        if self.check(kind):
            return self.advance()

        current_token = self.peek()
        got = current_token.value or "end of expression"
        raise self._error(f"{message}. Got {got}", current_token)

    def _descend(self, token: Token) -> None:
        self.depth += 1
        if self.depth > self.settings.max_depth:
            raise self._error(
                f"Maximum nesting depth of {self.settings.max_depth} exceeded", token
            )

    def _binary(self, operator: Token, left: ASTNode, right: ASTNode) -> ASTNode:
        return ASTNode(
            node_type=NodeType.BINARY_OP,
            operator=operator.value,
            left=left,
            right=right,
            source_location=operator.position,
        )

    def _error(self, message: str, token: Token) -> ConstraintSyntaxError:
        return ConstraintSyntaxError(
            f"{message} at index {token.position}: {self.source}",
            position=token.position,
            source=self.source,
        )
