"""
Utilities module for the Rey interpreter
Contains common helper functions for runtime values and operator checks
"""

from typing import Any, Callable, Dict, List, Optional
import sys

from error_handling import ReyRuntimeError


# A Rey call costs about a dozen Python frames, one parenthesis level about ten
RECURSION_LIMIT = 10000


def ensure_recursion_limit(limit: int = RECURSION_LIMIT) -> None:
  """Raise the interpreter recursion limit to at least limit, never lower it"""
  if sys.getrecursionlimit() < limit:
    sys.setrecursionlimit(limit)


# ==================== VALUE UTILITIES ====================

def make_value(value: Any, type_name: str) -> Dict:
  """Create an immutable runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def is_truthy(value: Dict) -> bool:
  """
  Convert a runtime value to a boolean for conditionals

  false, null and the number 0 are falsy; every other value,
  including every string and function, is truthy.
  """
  value_type = value['type']
  if value_type == "Bool":
    return value['value']
  if value_type == "Null":
    return False
  if value_type == "Number":
    return value['value'] != 0.0
  return True


def dispatch_by_type(
  value: Dict,
  handlers: Dict[str, Callable],
  default_handler: Optional[Callable] = None
) -> Any:
  """
  Generic type-based dispatch

  Args:
    value: Value dict with 'type' field
    handlers: Map of type names to handler functions
    default_handler: Fallback handler

  Returns:
    Result of calling the appropriate handler

  Raises:
    ValueError if no handler found and no default

  Examples:
    dispatch_by_type(
      {"type": "Number", "value": 42.0},
      {"Number": lambda v: v['value'] * 2}
    ) -> 84.0
  """
  value_type = value.get('type', 'Unknown')
  handler = handlers.get(value_type, default_handler)
  if handler is None:
    raise ValueError(f"No handler for type: {value_type}")
  return handler(value)


# ==================== ERROR MESSAGE BUILDERS ====================

def arity_error(expected: int, got: int) -> ReyRuntimeError:
  """
  Generate arity mismatch error

  Args:
    expected: Number of declared parameters
    got: Number of arguments supplied

  Returns:
    ReyRuntimeError with formatted message
  """
  return ReyRuntimeError(f"Expected {expected} arguments but got {got}")


def operation_error(op: str, left_type: str, right_type: str) -> ReyRuntimeError:
  """
  Generate binary operation error

  Args:
    op: Operator symbol
    left_type: Left operand type
    right_type: Right operand type

  Returns:
    ReyRuntimeError with formatted message
  """
  return ReyRuntimeError(f"Invalid binary operation: {left_type} {op} {right_type}")


def unary_operation_error(op: str, operand_type: str) -> ReyRuntimeError:
  """Generate unary operation error"""
  return ReyRuntimeError(f"Invalid unary operation: {op}{operand_type}")


# ==================== BINARY OPERATION FACTORIES ====================

def check_operands(op: str, x: Dict, y: Dict, allowed_types: List[str]) -> None:
  """Both operands must share one type from allowed_types"""
  if x['type'] != y['type'] or x['type'] not in allowed_types:
    raise operation_error(op, x['type'], y['type'])


def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  op_symbol: str,
  allowed_types: Optional[List[str]] = None
) -> Callable[[Dict, Dict], Dict]:
  """
  Factory for binary operations producing a Bool

  Args:
    op: Python operator function (e.g., operator.lt)
    op_symbol: Operator symbol for error messages
    allowed_types: Types that support this operation

  Returns:
    Function that performs the comparison

  Examples:
    rey_lt = binary_comparison_op(operator.lt, "<")
    rey_lt({"type": "Number", "value": 1.0}, {"type": "Number", "value": 2.0})
  """
  if allowed_types is None:
    allowed_types = ["Number"]

  def comparison(x: Dict, y: Dict) -> Dict:
    check_operands(op_symbol, x, y, allowed_types)
    return make_value(op(x['value'], y['value']), "Bool")

  return comparison


def binary_arithmetic_op(
  op: Callable[[Any, Any], Any],
  op_symbol: str,
  allowed_types: Optional[List[str]] = None
) -> Callable[[Dict, Dict], Dict]:
  """
  Factory for binary arithmetic operations

  The result has the same type as the operands.

  Args:
    op: Python operator function (e.g., operator.add)
    op_symbol: Operator symbol for error messages
    allowed_types: Types that support this operation

  Returns:
    Function that performs the arithmetic operation
  """
  if allowed_types is None:
    allowed_types = ["Number"]

  def arithmetic(x: Dict, y: Dict) -> Dict:
    check_operands(op_symbol, x, y, allowed_types)
    return make_value(op(x['value'], y['value']), x['type'])

  return arithmetic
