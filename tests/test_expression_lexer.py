"""
Tests for expression tokenization.

Covers token classification, absolute positions and lexer errors.
"""

import pytest

from constraint_dsl.converters.expression_parser import ExpressionLexer
from constraint_dsl.core.exceptions import ConstraintSyntaxError, UnknownFunctionError
from constraint_dsl.models.parser_models import (
    CompilerSettings,
    FunctionRegistry,
    TokenKind,
)


class TestExpressionLexer:
    """Test class for the expression lexer."""

    @pytest.fixture
    def registry(self):
        """Create a registry with a call and a statement name."""
        registry = FunctionRegistry()
        registry.add_function("add")
        registry.add_function("isOpen")
        return registry

    @pytest.fixture
    def lexer(self, registry):
        """Create a lexer with default settings."""
        return ExpressionLexer(registry)

    def kinds_and_values(self, tokens):
        return [(token.kind, token.value) for token in tokens]

    # ============================================================================
    # TOKEN CLASSIFICATION
    # ============================================================================

    def test_data_access_and_operator(self, lexer):
        """Test model/state references around a two-char operator."""
        tokens = lexer.tokenize("$a.b<=#c")
        assert self.kinds_and_values(tokens) == [
            (TokenKind.MODEL_REF, "$a.b"),
            (TokenKind.OPERATOR, "<="),
            (TokenKind.STATE_REF, "#c"),
            (TokenKind.EOF, ""),
        ]
        assert [(t.position, t.end) for t in tokens] == [
            (0, 4),
            (4, 6),
            (6, 8),
            (8, 8),
        ]

    def test_bare_prefixes_reference_whole_objects(self, lexer):
        """Test that a lone prefix is a reference with an empty path."""
        tokens = lexer.tokenize("$==#")
        assert self.kinds_and_values(tokens)[:3] == [
            (TokenKind.MODEL_REF, "$"),
            (TokenKind.OPERATOR, "=="),
            (TokenKind.STATE_REF, "#"),
        ]

    def test_string_literal_keeps_separator(self, lexer):
        """Test that a string literal swallows ':' and spaces."""
        tokens = lexer.tokenize("'a: b'=='x'")
        assert tokens[0].kind == TokenKind.STRING_LITERAL
        assert tokens[0].value == "'a: b'"
        assert tokens[2].value == "'x'"

    def test_numbers(self, lexer):
        """Test integer and decimal numbers."""
        tokens = lexer.tokenize("12.5+3")
        assert self.kinds_and_values(tokens) == [
            (TokenKind.NUMBER_LITERAL, "12.5"),
            (TokenKind.OPERATOR, "+"),
            (TokenKind.NUMBER_LITERAL, "3"),
            (TokenKind.EOF, ""),
        ]

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("-1", ["-1"]),
            ("+2.5", ["+2.5"]),
            ("$a>=-1", ["$a", ">=", "-1"]),
            ("1--2", ["1", "-", "-2"]),
            ("(-3)", ["(", "-3", ")"]),
            ("2*-.5", ["2", "*", "-.5"]),
        ],
    )
    def test_signed_numbers_where_operand_expected(self, lexer, expression, expected):
        """Test that a sign before digits belongs to the number in operand position."""
        tokens = lexer.tokenize(expression)
        assert [token.value for token in tokens[:-1]] == expected

        signed = [t for t in tokens if t.value[:1] in "+-" and len(t.value) > 1]
        assert all(t.kind == TokenKind.NUMBER_LITERAL for t in signed)

    def test_sign_after_operand_is_an_operator(self, lexer):
        """Test that '-' between two operands stays binary."""
        tokens = lexer.tokenize("$a-1")
        assert self.kinds_and_values(tokens)[:3] == [
            (TokenKind.MODEL_REF, "$a"),
            (TokenKind.OPERATOR, "-"),
            (TokenKind.NUMBER_LITERAL, "1"),
        ]
        assert lexer.next_token("-1", 0).kind == TokenKind.OPERATOR
        assert lexer.next_token("-1", 0, expects_operand=True).value == "-1"

    def test_nested_function_call_is_one_token(self, lexer):
        """Test that a call spans up to its matching bracket."""
        tokens = lexer.tokenize("add(add(1,2),3)==6")
        call = tokens[0]
        assert call.kind == TokenKind.FUNCTION_CALL
        assert call.value == "add(add(1,2),3)"
        assert call.name == "add"
        assert call.raw_args == "add(1,2),3"
        assert self.kinds_and_values(tokens)[1:3] == [
            (TokenKind.OPERATOR, "=="),
            (TokenKind.NUMBER_LITERAL, "6"),
        ]

    def test_statement_without_brackets(self, lexer):
        """Test that a registered name without '(' is a statement."""
        tokens = lexer.tokenize("isOpen&&$a")
        assert tokens[0].kind == TokenKind.STATEMENT_REF
        assert tokens[0].name == "isOpen"
        assert tokens[1].value == "&&"

    def test_next_token_prefers_two_char_operators(self, lexer):
        """Test single token scanning from an offset."""
        assert lexer.next_token("1<2", 1).value == "<"
        token = lexer.next_token("1<=2", 1)
        assert token.value == "<="
        assert token.end == 3

    def test_base_offset_shifts_positions(self, lexer):
        """Test that positions are reported relative to the enclosing text."""
        tokens = lexer.tokenize("$a+1", base_offset=10)
        assert [t.position for t in tokens] == [10, 12, 13, 14]

    # ============================================================================
    # ERRORS
    # ============================================================================

    @pytest.mark.parametrize(
        ("expression", "position"),
        [
            ("1&2", 1),
            ("1|2", 1),
            ("1=2", 1),
            ("!1", 0),
            ("'abc", 0),
            ("1.2.3", 0),
            ("$a..b", 0),
            ("$a.", 0),
            ("'a`b'", 0),
            ("add(1,2", 3),
        ],
    )
    def test_syntax_errors_report_position(self, lexer, expression, position):
        """Test that malformed input fails with the offending index."""
        with pytest.raises(ConstraintSyntaxError) as excinfo:
            lexer.tokenize(expression)
        assert excinfo.value.position == position

    def test_unknown_identifier(self, lexer):
        """Test that an unregistered name is rejected."""
        with pytest.raises(UnknownFunctionError) as excinfo:
            lexer.tokenize("unknown(1)")
        assert excinfo.value.name == "unknown"

    def test_identifier_must_match_exactly(self, lexer):
        """Test that a registered name does not match a longer identifier."""
        with pytest.raises(UnknownFunctionError) as excinfo:
            lexer.tokenize("addition(1,2)")
        assert excinfo.value.name == "addition"

    def test_iteration_cap(self, registry):
        """Test that tokenizing stops after the configured number of tokens."""
        lexer = ExpressionLexer(registry, CompilerSettings(max_iterations=3))
        with pytest.raises(ConstraintSyntaxError, match="Maximum parsing iterations"):
            lexer.tokenize("1+2+3")

        assert len(lexer.tokenize("1+2")) == 4
