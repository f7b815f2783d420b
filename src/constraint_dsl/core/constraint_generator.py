"""
Constraint Generator - compiles `<activation>:<condition>` assertions into
Constraint objects and evaluates them against a model and a state.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ..converters.expression_parser import ExpressionParser
from ..converters.text_scanner import find_closing_bracket, is_within_string
from ..models.ast_schema import (
    ASTNode,
    ASTValidator,
    Activation,
    ActivationType,
    Constraint,
    ConstraintData,
    ConstraintResult,
    NodeType,
)
from ..models.grammar import ALWAYS, BRACKET_OPEN, COND_SEPARATOR, WHEN
from ..models.parser_models import (
    IDENTIFIER_PATTERN,
    CompilerSettings,
    FunctionRegistry,
)
from .evaluator import ExpressionEvaluator, is_truthy
from .exceptions import ConstraintSyntaxError, UnknownFunctionError
from .message_renderer import MessageRenderer

logger = logging.getLogger(__name__)

# Called at trace points ("split", "tokenize", "compile") with a payload
Observer = Callable[[str, Any], None]


class ConstraintGenerator:
    """Manages function registration, constraint compilation and evaluation.

    Args:
        settings: Compiler limits (defaults to CompilerSettings())
        observer: Optional callback invoked at trace points
    """

    def __init__(
        self,
        settings: Optional[CompilerSettings] = None,
        observer: Optional[Observer] = None,
    ):
        self.settings = settings or CompilerSettings()
        self.observer = observer
        self.function_registry = FunctionRegistry()
        self.message_renderer = MessageRenderer(self.function_registry, self.settings)

    @classmethod
    def from_config(
        cls, config: Any, observer: Optional[Observer] = None
    ) -> "ConstraintGenerator":
        """Create a generator using the settings section of a loaded constraint file."""
        return cls(settings=config.settings, observer=observer)

    def register_function(
        self, name: str, func: Optional[Callable[..., Any]] = None
    ) -> None:
        """Register a custom function or statement.

        Statements are invoked as ``func(model, state)``, calls as
        ``func(*args)``. ``func`` may be omitted and supplied per evaluation.

        Raises:
            DuplicateFunctionError: If the name is already registered
        """
        self.function_registry.add_function(name, func)

    def compile_constraint(
        self, assertion: Union[str, ConstraintData]
    ) -> Constraint:
        """Compile an assertion string (or ConstraintData) into a Constraint.

        Raises:
            ConstraintSyntaxError: If the assertion is malformed
            UnknownFunctionError: If it references an unregistered name
        """
        data = (
            assertion
            if isinstance(assertion, ConstraintData)
            else ConstraintData(assertion=assertion)
        )

        logger.debug(f"Starting constraint generation with data: {data}")

        activation_token, condition_token = self.split_assertion(data.assertion)
        self._trace(
            "split", {"activation": activation_token, "condition": condition_token}
        )

        activation = self.compile_activation(activation_token)
        condition = self.compile_expression(condition_token)

        constraint = Constraint(
            assertion=data.assertion,
            activation=activation,
            condition=condition,
            name=data.name,
            message=data.message,
        )
        self._trace("compile", constraint)
        return constraint

    def compile_all(
        self, assertions: Iterable[Union[str, ConstraintData]]
    ) -> List[Constraint]:
        """Compile several assertions, stopping at the first error."""
        return [self.compile_constraint(assertion) for assertion in assertions]

    def split_assertion(self, assertion: str) -> List[str]:
        """Split an assertion into its trimmed activation and condition parts.

        The separator is the first ':' that is not inside a string literal.
        """
        for index, char in enumerate(assertion):
            if char == COND_SEPARATOR and not is_within_string(assertion, index):
                activation = assertion[:index].strip()
                condition = assertion[index + 1 :].strip()
                logger.debug(f"Activation token: {activation}")
                logger.debug(f"Condition token: {condition}")
                return [activation, condition]

        raise ConstraintSyntaxError(
            f"Invalid syntax for token, missing '{COND_SEPARATOR}': {assertion}",
            source=assertion,
        )

    def compile_activation(self, token: str) -> Activation:
        """Compile the activation part of an assertion."""
        if token == ALWAYS:
            return Activation(activation_type=ActivationType.ALWAYS)

        if token.startswith(WHEN) and token[len(WHEN) :].lstrip().startswith(
            BRACKET_OPEN
        ):
            return Activation(
                activation_type=ActivationType.CONDITIONAL,
                condition=self.compile_expression(self._when_body(token)),
            )

        if IDENTIFIER_PATTERN.fullmatch(token):
            if not self.function_registry.is_registered(token):
                raise UnknownFunctionError(
                    token, f"Unknown activation statement '{token}'"
                )
            return Activation(
                activation_type=ActivationType.STATEMENT_GATE, statement=token
            )

        raise ConstraintSyntaxError(
            f"Unrecognized activation '{token}', expected {ALWAYS}, "
            f"{WHEN}(...) or a registered statement",
            source=token,
        )

    def compile_expression(self, expression: str) -> ASTNode:
        """Compile a single expression into an AST.

        Error positions index into the whitespace-free expression, which is
        the ``source`` of the raised ConstraintSyntaxError.
        """
        parser = ExpressionParser(self.function_registry, self.settings)
        node = parser.parse(expression)
        self._trace("tokenize", [token.value for token in parser.tokens[:-1]])

        # Validate AST structure
        validation_errors = ASTValidator.validate_ast(node)
        if validation_errors:
            raise ConstraintSyntaxError(
                f"Invalid expression tree for '{expression}': "
                + "; ".join(validation_errors),
                source=parser.source,
            )
        return node

    def evaluate(
        self,
        constraint: Constraint,
        model: Any,
        state: Any = None,
        functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> bool:
        """Evaluate a compiled constraint.

        Returns True when the activation does not hold (vacuous pass),
        otherwise the truthiness of the condition.
        """
        evaluator = ExpressionEvaluator(model, state, self._function_table(functions))
        if not self._is_active(constraint.activation, evaluator):
            return True
        return evaluator.evaluate_condition(constraint.condition)

    def render_message(
        self,
        template: str,
        model: Any,
        state: Any = None,
        functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> str:
        """Replace model/state references and function calls in a message."""
        return self.message_renderer.render(template, model, state, functions)

    def check(
        self,
        constraints: Iterable[Constraint],
        model: Any,
        state: Any = None,
        functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> List[ConstraintResult]:
        """Evaluate several constraints, rendering the message of each failure."""
        results = []
        for constraint in constraints:
            passed = self.evaluate(constraint, model, state, functions)
            message = None
            if not passed:
                message = (
                    self.render_message(constraint.message, model, state, functions)
                    if constraint.message
                    else None
                )
                logger.warning(
                    f"Constraint failed: {constraint.name or constraint.assertion}"
                )
            results.append(
                ConstraintResult(
                    assertion=constraint.assertion,
                    passed=passed,
                    name=constraint.name,
                    message=message,
                )
            )
        return results

    @staticmethod
    def collect_references(target: Union[Constraint, ASTNode]) -> Dict[str, List[str]]:
        """Return the model paths, state paths and functions a tree depends on."""
        references = {"model": set(), "state": set(), "functions": set()}

        def visit(node: ASTNode):
            if node.node_type == NodeType.MODEL_REF:
                references["model"].add(node.path)
            elif node.node_type == NodeType.STATE_REF:
                references["state"].add(node.path)
            elif node.node_type in (NodeType.FUNCTION_CALL, NodeType.STATEMENT_REF):
                references["functions"].add(node.function_name)

            for child in node.children():
                visit(child)

        if isinstance(target, Constraint):
            activation = target.activation
            if activation.condition:
                visit(activation.condition)
            if activation.statement:
                references["functions"].add(activation.statement)
            visit(target.condition)
        else:
            visit(target)

        return {key: sorted(values) for key, values in references.items()}

    def _is_active(self, activation: Activation, evaluator: ExpressionEvaluator) -> bool:
        if activation.activation_type == ActivationType.ALWAYS:
            return True
        if activation.activation_type == ActivationType.CONDITIONAL:
            return evaluator.evaluate_condition(activation.condition)
        statement = evaluator.lookup(activation.statement)
        return is_truthy(statement(evaluator.model, evaluator.state))

    def _function_table(
        self, functions: Optional[Mapping[str, Callable[..., Any]]]
    ) -> Dict[str, Callable[..., Any]]:
        table = self.function_registry.callables()
        if functions:
            table.update(functions)
        return table

    def _when_body(self, token: str) -> str:
        open_index = token.index(BRACKET_OPEN)
        close_index = find_closing_bracket(token, open_index)
        if close_index == -1:
            raise ConstraintSyntaxError(
                f"Unterminated bracket in activation at index {open_index}: {token}",
                position=open_index,
                source=token,
            )
        if token[close_index + 1 :].strip():
            raise ConstraintSyntaxError(
                f"Unexpected text after {WHEN}(...) at index {close_index + 1}: {token}",
                position=close_index + 1,
                source=token,
            )
        return token[open_index + 1 : close_index]

    def _trace(self, event: str, payload: Any) -> None:
        logger.debug(f"{event}: {payload}")
        if self.observer:
            self.observer(event, payload)
