"""
BVExpr expression model
Typed AST for boolean and fixed-width bit-vector formulas
"""

from typing import Dict, Tuple, Union
from dataclasses import dataclass
from enum import Enum


# ============================================================================
# TYPE TABLES
# ============================================================================

SIGNED_WIDTHS: Dict[str, int] = {'i8': 8, 'i16': 16, 'i32': 32, 'i64': 64}
UNSIGNED_WIDTHS: Dict[str, int] = {'u8': 8, 'u16': 16, 'u32': 32, 'u64': 64}

# Declared types of a variable mapping; literal suffixes are the sized subset
VARIABLE_TYPES: Tuple[str, ...] = ('bool',) + tuple(SIGNED_WIDTHS) + tuple(UNSIGNED_WIDTHS)

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
UINT64_MAX = (1 << 64) - 1


def is_signed_type(type_name: str) -> bool:
    """True for the signed bit-vector types i8..i64"""
    return type_name in SIGNED_WIDTHS


def type_width(type_name: str) -> int:
    """Bit width of a declared type; bool counts as a single bit"""
    if type_name == 'bool':
        return 1
    if type_name in SIGNED_WIDTHS:
        return SIGNED_WIDTHS[type_name]
    if type_name in UNSIGNED_WIDTHS:
        return UNSIGNED_WIDTHS[type_name]
    raise ValueError(f"Unknown type: {type_name!r}")


# ============================================================================
# OPERATORS
# ============================================================================

class UnaryOperator(Enum):
    NEGATION = '-'
    BITWISE_NOT = '!'
    NOT = 'NOT'


class BinaryOperator(Enum):
    AND = 'And'
    OR = 'Or'
    XOR = 'Xor'
    IMPLICATION = 'Implication'
    BI_IMPLICATION = 'BiImplication'
    BITWISE_AND = 'BitwiseAnd'
    BITWISE_OR = 'BitwiseOr'
    BITWISE_XOR = 'BitwiseXor'
    BITWISE_LEFT_SHIFT = 'BitwiseLeftShift'
    BITWISE_RIGHT_SHIFT = 'BitwiseRightShift'
    ADDITION = 'Addition'
    SUBTRACTION = 'Subtraction'
    LESS_THAN = 'LessThan'
    LESS_THAN_OR_EQUAL = 'LessThanOrEqual'
    GREATER_THAN = 'GreaterThan'
    GREATER_THAN_OR_EQUAL = 'GreaterThanOrEqual'
    EQUAL = 'Equal'
    NOT_EQUAL = 'NotEqual'


# Surface spelling -> operator tag, one table per precedence tier.
# Tier 1 binds loosest, tier 5 tightest.
TIER1_OPERATORS: Dict[str, BinaryOperator] = {
    'AND': BinaryOperator.AND,
    'OR': BinaryOperator.OR,
    'XOR': BinaryOperator.XOR,
    'IMPLIES': BinaryOperator.IMPLICATION,
    'EQUIV': BinaryOperator.BI_IMPLICATION,
}

TIER2_OPERATORS: Dict[str, BinaryOperator] = {
    '&&': BinaryOperator.AND,
    '||': BinaryOperator.OR,
}

TIER3_OPERATORS: Dict[str, BinaryOperator] = {
    '&': BinaryOperator.BITWISE_AND,
    '|': BinaryOperator.BITWISE_OR,
    '^': BinaryOperator.BITWISE_XOR,
    '<<': BinaryOperator.BITWISE_LEFT_SHIFT,
    '>>': BinaryOperator.BITWISE_RIGHT_SHIFT,
}

TIER4_OPERATORS: Dict[str, BinaryOperator] = {
    '+': BinaryOperator.ADDITION,
    '-': BinaryOperator.SUBTRACTION,
}

TIER5_OPERATORS: Dict[str, BinaryOperator] = {
    '<': BinaryOperator.LESS_THAN,
    '<=': BinaryOperator.LESS_THAN_OR_EQUAL,
    '>': BinaryOperator.GREATER_THAN,
    '>=': BinaryOperator.GREATER_THAN_OR_EQUAL,
    '==': BinaryOperator.EQUAL,
    '!=': BinaryOperator.NOT_EQUAL,
}

BINARY_OPERATOR_TIERS = (
    TIER1_OPERATORS,
    TIER2_OPERATORS,
    TIER3_OPERATORS,
    TIER4_OPERATORS,
    TIER5_OPERATORS,
)

UNARY_OPERATORS: Dict[str, UnaryOperator] = {op.value: op for op in UnaryOperator}

# Spelling used when rendering; And/Or come out in their symbolic form
BINARY_SYMBOLS: Dict[BinaryOperator, str] = {}
for _table in reversed(BINARY_OPERATOR_TIERS):
    for _spelling, _op in _table.items():
        BINARY_SYMBOLS.setdefault(_op, _spelling)


# ============================================================================
# AST NODES
# ============================================================================

@dataclass(frozen=True)
class BooleanLiteral:
    """`true` / `false`"""
    value: bool

    def __str__(self) -> str:
        return format_expression(self)


@dataclass(frozen=True)
class SignedBitVector:
    """Signed literal such as `-5:i8`. The value is not checked against size."""
    size: int
    value: int

    def __str__(self) -> str:
        return format_expression(self)


@dataclass(frozen=True)
class UnsignedBitVector:
    """Unsigned literal such as `42:u32`. The value is not checked against size."""
    size: int
    value: int

    def __str__(self) -> str:
        return format_expression(self)


@dataclass(frozen=True)
class VariableMapping:
    """A free variable annotated with its declared type, e.g. `x:u64`"""
    name: str
    var_type: str

    def __str__(self) -> str:
        return format_expression(self)


@dataclass(frozen=True)
class UnaryExpression:
    op: UnaryOperator
    e: 'Expression'

    def __str__(self) -> str:
        return format_expression(self)


@dataclass(frozen=True)
class BinaryExpression:
    op: BinaryOperator
    left: 'Expression'
    right: 'Expression'

    def __str__(self) -> str:
        return format_expression(self)


Expression = Union[
    BooleanLiteral,
    SignedBitVector,
    UnsignedBitVector,
    VariableMapping,
    UnaryExpression,
    BinaryExpression,
]

LEAF_TYPES = (BooleanLiteral, SignedBitVector, UnsignedBitVector, VariableMapping)


# ============================================================================
# RENDERING
# ============================================================================

def format_expression(expr: Expression) -> str:
    """Render an expression as fully parenthesized source text.

    The output parses back to an equal tree: every binary node gets its own
    parentheses, so the tier an operator spelling belongs to never matters.
    """
    if isinstance(expr, BooleanLiteral):
        return 'true' if expr.value else 'false'
    if isinstance(expr, SignedBitVector):
        return f"{expr.value}:i{expr.size}"
    if isinstance(expr, UnsignedBitVector):
        return f"{expr.value}:u{expr.size}"
    if isinstance(expr, VariableMapping):
        return f"{expr.name}:{expr.var_type}"
    if isinstance(expr, UnaryExpression):
        operand = format_expression(expr.e)
        if expr.op is UnaryOperator.NOT:
            return f"NOT {operand}"
        # `-5:i8` would read back as a negative literal, not a negation
        if expr.op is UnaryOperator.NEGATION and isinstance(expr.e, (SignedBitVector, UnsignedBitVector)):
            operand = f"({operand})"
        return f"{expr.op.value}{operand}"
    if isinstance(expr, BinaryExpression):
        left = format_expression(expr.left)
        right = format_expression(expr.right)
        return f"({left} {BINARY_SYMBOLS[expr.op]} {right})"
    raise TypeError(f"Not an expression node: {expr!r}")
