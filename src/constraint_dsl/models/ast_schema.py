"""
AST schema for compiled constraint expressions.
Nodes are immutable so compiled constraints can be shared freely.
"""

from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class NodeType(str, Enum):
    """AST node types."""

    # Data access
    MODEL_REF = "model_ref"  # $a.b
    STATE_REF = "state_ref"  # #a.b

    # Literals
    STRING_LITERAL = "string_literal"  # 'text'
    NUMBER_LITERAL = "number_literal"  # 42, 1.5

    # Registered names
    FUNCTION_CALL = "function_call"  # add(1, 2)
    STATEMENT_REF = "statement_ref"  # isOpen

    # Composite
    BINARY_OP = "binary_op"  # + - * / % < <= > >= == != && ||
    GROUP = "group"  # ( ... )


class ASTNode(BaseModel):
    """
    Single AST node type covering every expression construct.
    Only the fields relevant to ``node_type`` are populated.
    """

    node_type: NodeType

    # Data access fields ("" means the whole model/state object)
    path: Optional[str] = None

    # Literal value
    value: Optional[Union[int, float, str]] = None

    # Function call / statement fields
    function_name: Optional[str] = None
    arguments: List["ASTNode"] = Field(default_factory=list)

    # Binary operation fields
    operator: Optional[str] = None
    left: Optional["ASTNode"] = None
    right: Optional["ASTNode"] = None

    # Group field
    inner: Optional["ASTNode"] = None

    # Offset of the node in the compiled expression text
    source_location: Optional[int] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "examples": [
                {"node_type": "model_ref", "path": "account.balance"},
                {"node_type": "number_literal", "value": 0},
                {
                    "node_type": "binary_op",
                    "operator": ">=",
                    "left": {"node_type": "model_ref", "path": "account.balance"},
                    "right": {"node_type": "number_literal", "value": 0},
                },
                {
                    "node_type": "function_call",
                    "function_name": "add",
                    "arguments": [
                        {"node_type": "number_literal", "value": 1},
                        {"node_type": "state_ref", "path": "count"},
                    ],
                },
            ]
        },
    )

    def children(self) -> List["ASTNode"]:
        """Return the direct child nodes in evaluation order."""
        nodes = [child for child in (self.left, self.right, self.inner) if child]
        nodes.extend(self.arguments)
        return nodes


class ActivationType(str, Enum):
    """How a constraint decides whether its condition applies."""

    ALWAYS = "always"
    CONDITIONAL = "conditional"  # WHEN(<condition>)
    STATEMENT_GATE = "statement_gate"  # bare registered statement name


class Activation(BaseModel):
    """Activation part of an assertion (left of the separator)."""

    activation_type: ActivationType
    condition: Optional[ASTNode] = None
    statement: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ConstraintData(BaseModel):
    """Raw source of a constraint as written by the user."""

    assertion: str
    name: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "examples": [
                {
                    "name": "non_negative_balance",
                    "assertion": "ALWAYS: $account.balance >= 0",
                    "message": "balance $account.balance is negative",
                }
            ]
        },
    )


class Constraint(BaseModel):
    """A compiled constraint: if the activation holds, the condition must hold."""

    assertion: str
    activation: Activation
    condition: ASTNode

    name: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ConstraintResult(BaseModel):
    """Result of checking one constraint against a model and state."""

    assertion: str
    passed: bool
    name: Optional[str] = None
    message: Optional[str] = None  # Rendered message, only set on failure


class ASTValidator:
    """Validator for AST structure integrity."""

    @staticmethod
    def validate_node(node: ASTNode) -> List[str]:
        """Validate AST node structure and return any errors."""
        errors = []

        if node.node_type == NodeType.BINARY_OP:
            if not (node.operator and node.left and node.right):
                errors.append("Binary node missing operator or operands")

        elif node.node_type in (NodeType.MODEL_REF, NodeType.STATE_REF):
            if node.path is None:
                errors.append("Data reference missing path")

        elif node.node_type in (NodeType.STRING_LITERAL, NodeType.NUMBER_LITERAL):
            if node.value is None:
                errors.append("Literal node missing value")

        elif node.node_type in (NodeType.FUNCTION_CALL, NodeType.STATEMENT_REF):
            if not node.function_name:
                errors.append("Function node missing function_name")

        elif node.node_type == NodeType.GROUP:
            if not node.inner:
                errors.append("Group node missing inner expression")

        return errors

    @staticmethod
    def validate_ast(root: ASTNode) -> List[str]:
        """Recursively validate entire AST."""
        errors = []

        def visit(node: ASTNode):
            errors.extend(ASTValidator.validate_node(node))
            for child in node.children():
                visit(child)

        visit(root)
        return errors


# Forward reference resolution
ASTNode.model_rebuild()


# Export main classes
__all__ = [
    "NodeType",
    "ASTNode",
    "ActivationType",
    "Activation",
    "ConstraintData",
    "Constraint",
    "ConstraintResult",
    "ASTValidator",
]
