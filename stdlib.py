"""
Rey Standard Library
Built-in functions and the operator implementations used by the interpreter
"""

from typing import Callable, Dict, List, Optional, TextIO
from decimal import Decimal
import math
import operator
import sys

from error_handling import ReyRuntimeError
from utilities import (
  make_value,
  dispatch_by_type,
  check_operands,
  binary_arithmetic_op,
  binary_comparison_op,
  unary_operation_error
)


NULL = make_value(None, "Null")


# ============================================================================
# FORMATTING
# ============================================================================

def format_number(n: float) -> str:
  """Integral numbers print without a fractional part, others in positional notation"""
  if not math.isfinite(n):
    return repr(n)
  if n.is_integer():
    return str(int(n))
  # Shortest round-trip digits, laid out without an exponent
  return format(Decimal(repr(n)), "f")


def rey_show(value: Dict) -> str:
  """Convert value to its printed text"""
  return dispatch_by_type(value, {
      "String": lambda v: v['value'],
      "Number": lambda v: format_number(v['value']),
      "Bool": lambda v: "true" if v['value'] else "false",
      "Null": lambda v: "null",
      "Function": lambda v: "<function>",
  })


# ============================================================================
# PRINT FUNCTIONS
# ============================================================================

def rey_print(args: List[Dict], output: Optional[TextIO] = None) -> Dict:
  """Print any number of values separated by spaces, then a newline"""
  out = output if output is not None else sys.stdout
  out.write(" ".join(rey_show(arg) for arg in args) + "\n")
  out.flush()
  return NULL


# ============================================================================
# ARITHMETIC
# ============================================================================

rey_add = binary_arithmetic_op(operator.add, "+", ["Number", "String"])
rey_sub = binary_arithmetic_op(operator.sub, "-")
rey_mul = binary_arithmetic_op(operator.mul, "*")


def rey_div(x: Dict, y: Dict) -> Dict:
  """Numeric division; a zero divisor is its own error"""
  check_operands("/", x, y, ["Number"])
  if y['value'] == 0.0:
    raise ReyRuntimeError("Division by zero")
  return make_value(x['value'] / y['value'], "Number")


# ============================================================================
# COMPARISON AND LOGIC
# ============================================================================

EQUATABLE = ["Number", "String", "Bool"]

rey_eq = binary_comparison_op(operator.eq, "==", EQUATABLE)
rey_ne = binary_comparison_op(operator.ne, "!=", EQUATABLE)
rey_lt = binary_comparison_op(operator.lt, "<")
rey_le = binary_comparison_op(operator.le, "<=")
rey_gt = binary_comparison_op(operator.gt, ">")
rey_ge = binary_comparison_op(operator.ge, ">=")

# Both operands are already evaluated; there is no short-circuiting
rey_and = binary_comparison_op(lambda a, b: a and b, "&&", ["Bool"])
rey_or = binary_comparison_op(lambda a, b: a or b, "||", ["Bool"])


# ============================================================================
# UNARY OPERATIONS
# ============================================================================

def rey_negate(x: Dict) -> Dict:
  if x['type'] != "Number":
    raise unary_operation_error("-", x['type'])
  return make_value(-x['value'], "Number")


def rey_not(x: Dict) -> Dict:
  if x['type'] != "Bool":
    raise unary_operation_error("!", x['type'])
  return make_value(not x['value'], "Bool")


# ============================================================================
# BUILT-IN FUNCTION TABLE
# ============================================================================

def create_builtin_table() -> Dict[str, Callable[[List[Dict], Optional[TextIO]], Dict]]:
  """Native functions available to every program, keyed by name"""
  return {
      'print': rey_print,
      'println': rey_print,
  }
