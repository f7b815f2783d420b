"""
Tree-walking evaluator for compiled constraint expressions.
"""

import logging
import operator
from typing import Any, Callable, Dict, Mapping

from ..models.ast_schema import ASTNode, NodeType
from ..models.grammar import (
    AND,
    DIV,
    EQUAL,
    GREATER,
    GREATER_EQUAL,
    LESS,
    LESS_EQUAL,
    MINUS,
    MOD,
    NOT_EQUAL,
    OR,
    PLUS,
    TIMES,
)
from .data_access import MISSING, resolve_path
from .exceptions import UnknownFunctionError

logger = logging.getLogger(__name__)

ARITHMETIC_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    PLUS: operator.add,
    MINUS: operator.sub,
    TIMES: operator.mul,
    DIV: operator.truediv,
    MOD: operator.mod,
}

ORDERING_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    LESS: operator.lt,
    LESS_EQUAL: operator.le,
    GREATER: operator.gt,
    GREATER_EQUAL: operator.ge,
}


def is_truthy(value: Any) -> bool:
    """Truthiness of a DSL value; MISSING is always false."""
    if value is MISSING:
        return False
    return bool(value)


class ExpressionEvaluator:
    """Evaluates AST nodes against a model, a state and a function table.

    Args:
        model: Model context ($ references)
        state: State context (# references)
        functions: Name -> callable table for calls and statements
    """

    def __init__(
        self,
        model: Any,
        state: Any,
        functions: Mapping[str, Callable[..., Any]],
    ):
        self.model = model
        self.state = state
        self.functions = functions

    def evaluate(self, node: ASTNode) -> Any:
        """Return the value of ``node``."""
        node_type = node.node_type

        if node_type == NodeType.MODEL_REF:
            return resolve_path(self.model, node.path)

        if node_type == NodeType.STATE_REF:
            return resolve_path(self.state, node.path)

        if node_type in (NodeType.STRING_LITERAL, NodeType.NUMBER_LITERAL):
            return node.value

        if node_type == NodeType.GROUP:
            return self.evaluate(node.inner)

        if node_type == NodeType.STATEMENT_REF:
            return self.lookup(node.function_name)(self.model, self.state)

        if node_type == NodeType.FUNCTION_CALL:
            func = self.lookup(node.function_name)
            args = [self.evaluate(arg) for arg in node.arguments]
            return func(*args)

        if node_type == NodeType.BINARY_OP:
            return self.evaluate_binary(node)

        raise ValueError(f"Unsupported node type: {node_type}")

    def evaluate_condition(self, node: ASTNode) -> bool:
        """Evaluate ``node`` and coerce the result to a boolean."""
        return is_truthy(self.evaluate(node))

    def evaluate_binary(self, node: ASTNode) -> Any:
        symbol = node.operator

        # Short-circuit logic returns the deciding operand
        if symbol == AND:
            left = self.evaluate(node.left)
            return self.evaluate(node.right) if is_truthy(left) else left
        if symbol == OR:
            left = self.evaluate(node.left)
            return left if is_truthy(left) else self.evaluate(node.right)

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)

        if symbol == EQUAL:
            return left == right
        if symbol == NOT_EQUAL:
            return left != right

        if symbol in ORDERING_OPERATORS:
            if left is MISSING or right is MISSING:
                return False
            try:
                return ORDERING_OPERATORS[symbol](left, right)
            except TypeError:
                return False

        if symbol in ARITHMETIC_OPERATORS:
            if left is MISSING or right is MISSING:
                return MISSING
            try:
                return ARITHMETIC_OPERATORS[symbol](left, right)
            except (TypeError, ArithmeticError) as e:
                logger.debug(f"Arithmetic '{symbol}' on {left!r}, {right!r} failed: {e}")
                return MISSING

        raise ValueError(f"Unsupported operator: {symbol}")

    def lookup(self, name: str) -> Callable[..., Any]:
        """Return the callable registered as ``name``."""
        func = self.functions.get(name)
        if func is None:
            raise UnknownFunctionError(name, f"No implementation for function '{name}'")
        return func
