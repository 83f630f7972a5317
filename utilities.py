"""
Utilities module for the BVExpr parser
Input guards run before the grammar, and tree helpers for consumers of the AST
"""

import sys
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Type

from expression import (
  Expression, SignedBitVector, UnsignedBitVector,
  VariableMapping, UnaryExpression, BinaryExpression, UNARY_OPERATORS,
  BINARY_OPERATOR_TIERS, VARIABLE_TYPES,
)
from error_handling import BVExprLimitError


# Command line defaults; the library parser has no limits unless given some
DEFAULT_MAX_LENGTH = 4096
DEFAULT_MAX_DEPTH = 100

# Python frames the grammar cascade spends per nesting level, with slack
FRAMES_PER_LEVEL = 60

_BINARY_SPELLINGS = {spelling for table in BINARY_OPERATOR_TIERS for spelling in table}
_LEAF_ENDINGS = set(VARIABLE_TYPES) | {'true', 'false'}


# ==================== INPUT GUARDS ====================

def _is_operator(token) -> bool:
  return token.value in _BINARY_SPELLINGS or token.value in UNARY_OPERATORS


def nesting_depth(tokens: Sequence) -> int:
  """
  Deepest grammar nesting a token stream will drive the parser into

  Each open parenthesis counts one level, and so does each prefix operator
  still waiting for its operand to finish.

  Examples:
    nesting_depth(tokenize("x:bool")) -> 0
    nesting_depth(tokenize("!(!x:bool)")) -> 3
  """
  # pending prefix operators, one counter per open parenthesis
  pending = [0]
  deepest = 0
  previous = None

  for token in tokens:
    value = token.value
    prefix_position = previous is None or previous.value == '(' or _is_operator(previous)

    if value == '(':
      pending.append(0)
    elif value == ')':
      if len(pending) > 1:
        pending.pop()
      pending[-1] = 0
    elif prefix_position and value in UNARY_OPERATORS:
      pending[-1] += 1
    elif token.type == 'KEYWORD' and value in _LEAF_ENDINGS:
      pending[-1] = 0

    deepest = max(deepest, len(pending) - 1 + sum(pending))
    previous = token

  return deepest


def check_input_limits(
  text: str,
  tokens: Sequence,
  max_length: Optional[int] = None,
  max_depth: Optional[int] = None
) -> None:
  """
  Reject input that would exhaust the recursive grammar

  A limit of None or 0 disables that check.

  Raises:
    BVExprLimitError: when the text is too long or nested too deeply
  """
  if max_length and len(text) > max_length:
    raise BVExprLimitError("Expression text is too long", max_length, len(text))

  if max_depth:
    depth = nesting_depth(tokens)
    if depth > max_depth:
      raise BVExprLimitError("Expression is nested too deeply", max_depth, depth)


_recursion_lock = threading.Lock()
_recursion_users = 0
_saved_recursion_limit = 0


@contextmanager
def recursion_headroom(levels: int) -> Iterator[None]:
  """
  Raise the interpreter recursion limit while a parse `levels` deep runs

  The limit only grows while any caller is inside; the original value is
  put back when the last one leaves, so overlapping parses on other
  threads never see it shrink under them.
  """
  global _recursion_users, _saved_recursion_limit
  with _recursion_lock:
    if _recursion_users == 0:
      _saved_recursion_limit = sys.getrecursionlimit()
    _recursion_users += 1
    needed = _saved_recursion_limit + (levels + 1) * FRAMES_PER_LEVEL
    if needed > sys.getrecursionlimit():
      sys.setrecursionlimit(needed)
  try:
    yield
  finally:
    with _recursion_lock:
      _recursion_users -= 1
      if _recursion_users == 0:
        sys.setrecursionlimit(_saved_recursion_limit)


# ==================== TREE TRAVERSAL ====================

def iter_nodes(expr: Expression) -> Iterator[Expression]:
  """Yield every node of the tree in pre-order, left to right"""
  stack = [expr]
  while stack:
    node = stack.pop()
    yield node
    if isinstance(node, BinaryExpression):
      stack.append(node.right)
      stack.append(node.left)
    elif isinstance(node, UnaryExpression):
      stack.append(node.e)


def find_nodes_by_type(expr: Expression, node_type: Type) -> List[Expression]:
  """Find all nodes of a specific type in the tree"""
  return [node for node in iter_nodes(expr) if isinstance(node, node_type)]


def find_variables(expr: Expression) -> List[VariableMapping]:
  """
  Distinct variable mappings in order of first appearance

  The same name with two different declared types yields two entries;
  reconciling them is left to the caller.
  """
  seen = []
  for node in find_nodes_by_type(expr, VariableMapping):
    if node not in seen:
      seen.append(node)
  return seen


# ==================== WIDTH CHECKS ====================

def literal_fits_width(node: Expression) -> bool:
  """
  Check a bit-vector literal against its declared size

  The parser accepts `300:i8` as written; this is for consumers that want
  to reject or truncate such literals. Non-literal nodes always fit.
  """
  if isinstance(node, SignedBitVector):
    bound = 1 << (node.size - 1)
    return -bound <= node.value < bound
  if isinstance(node, UnsignedBitVector):
    return 0 <= node.value < (1 << node.size)
  return True


def find_width_violations(expr: Expression) -> List[Expression]:
  """Literals in the tree whose value does not fit their declared size"""
  return [
    node for node in iter_nodes(expr)
    if isinstance(node, (SignedBitVector, UnsignedBitVector)) and not literal_fits_width(node)
  ]
