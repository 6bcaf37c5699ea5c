"""
Rey Interpreter - Tree Walking Evaluator
Statements produce control-flow signals, expressions produce values.
Scopes are immutable records threaded through every evaluation step
"""

from typing import Callable, Dict, List, Optional, TextIO, Tuple
from dataclasses import dataclass
from enum import Enum
import math

from syntax_tree import (
  TokenKind, Span, Parameter,
  Literal, Variable, Binary, Unary, Assign, Call, Get,
  VarDecl, FuncDecl, If, While, For, Break, Continue, Return, ExprStmt,
)
from error_handling import ReyRuntimeError
from utilities import (
  make_value, is_truthy, arity_error, operation_error, unary_operation_error,
  ensure_recursion_limit
)

# Import stdlib functions
from stdlib import (
  NULL,
  create_builtin_table,
  # Arithmetic
  rey_add as stdlib_add_impl,
  rey_sub as stdlib_sub_impl,
  rey_mul as stdlib_mul_impl,
  rey_div as stdlib_div_impl,
  # Comparison
  rey_eq as stdlib_eq_impl,
  rey_ne as stdlib_ne_impl,
  rey_lt as stdlib_lt_impl,
  rey_le as stdlib_le_impl,
  rey_gt as stdlib_gt_impl,
  rey_ge as stdlib_ge_impl,
  # Logic
  rey_and as stdlib_and_impl,
  rey_or as stdlib_or_impl,
  # Unary
  rey_negate as stdlib_negate_impl,
  rey_not as stdlib_not_impl,
)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create an immutable runtime environment"""
  return {
      'parent': parent,
      'bindings': bindings or {}
  }


def make_function(name: str, params: Tuple[Parameter, ...], body: tuple, span: Optional[Span] = None) -> Dict:
  """Create a function value; parameters and body are carried by value, no scope is captured"""
  return make_value({
      'name': name,
      'params': params,
      'body': body,
      'span': span
  }, "Function")


def make_execution_context(builtins: Optional[Dict[str, Callable]] = None,
                           output: Optional[TextIO] = None) -> Dict:
  """Create an execution context holding the built-in table and the print target"""
  return {
      'builtins': builtins if builtins is not None else create_builtin_table(),
      'output': output
  }


class FlowKind(Enum):
  NORMAL = "normal"
  RETURN = "return"
  BREAK = "break"
  CONTINUE = "continue"


@dataclass(frozen=True)
class ControlFlow:
  """Outcome of executing a statement or block"""
  kind: FlowKind
  value: Optional[Dict] = None


def normal(value: Dict = NULL) -> ControlFlow:
  return ControlFlow(FlowKind.NORMAL, value)


def return_value(value: Dict) -> ControlFlow:
  return ControlFlow(FlowKind.RETURN, value)


BREAK = ControlFlow(FlowKind.BREAK)
CONTINUE = ControlFlow(FlowKind.CONTINUE)


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_define(env: Dict, name: str, value: Dict) -> Dict:
  """Return new environment with name bound in the innermost scope, shadowing any outer binding"""
  return {
      **env,
      'bindings': {**env['bindings'], name: value}
  }


def env_get(env: Optional[Dict], name: str) -> Optional[Dict]:
  """Look up a value in the environment chain, innermost scope first"""
  while env is not None:
    if name in env['bindings']:
      return env['bindings'][name]
    env = env['parent']
  return None


def env_assign(env: Dict, name: str, value: Dict) -> Optional[Dict]:
  """
  Return new environment with an existing binding replaced, or None

  Only the innermost scope is searched: a name bound solely in an
  enclosing scope cannot be assigned even though it can be read.
  """
  if name not in env['bindings']:
    return None
  return env_define(env, name, value)


# ============================================================================
# BUILT-IN OPERATIONS
# ============================================================================

BUILTIN_OPERATORS = {
    TokenKind.PLUS: stdlib_add_impl,
    TokenKind.MINUS: stdlib_sub_impl,
    TokenKind.STAR: stdlib_mul_impl,
    TokenKind.SLASH: stdlib_div_impl,
    TokenKind.EQUAL_EQUAL: stdlib_eq_impl,
    TokenKind.BANG_EQUAL: stdlib_ne_impl,
    TokenKind.LESS: stdlib_lt_impl,
    TokenKind.LESS_EQUAL: stdlib_le_impl,
    TokenKind.GREATER: stdlib_gt_impl,
    TokenKind.GREATER_EQUAL: stdlib_ge_impl,
    TokenKind.AND_AND: stdlib_and_impl,
    TokenKind.OR_OR: stdlib_or_impl,
}

UNARY_OPERATORS = {
    TokenKind.MINUS: stdlib_negate_impl,
    TokenKind.BANG: stdlib_not_impl,
}


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_expr(expr, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """
  Evaluate an expression and return (value, updated_environment).
  Assignments are the only expressions that change the environment.
  """
  if context is None:
    context = make_execution_context()

  if debug:
    print(f"Evaluating: {type(expr).__name__}")

  if isinstance(expr, Literal):
    return eval_literal(expr, env, debug, context)
  elif isinstance(expr, Variable):
    return eval_variable(expr, env, debug, context)
  elif isinstance(expr, Binary):
    return eval_binary(expr, env, debug, context)
  elif isinstance(expr, Unary):
    return eval_unary(expr, env, debug, context)
  elif isinstance(expr, Assign):
    return eval_assign(expr, env, debug, context)
  elif isinstance(expr, Call):
    return eval_call(expr, env, debug, context)
  elif isinstance(expr, Get):
    raise ReyRuntimeError("Property access not implemented yet")
  raise ReyRuntimeError(f"Unknown expression: {type(expr).__name__}")


def eval_literal(expr: Literal, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate literal"""
  value = expr.value
  if value is None:
    return NULL, env
  if isinstance(value, bool):
    return make_value(value, "Bool"), env
  if isinstance(value, str):
    return make_value(value, "String"), env
  return make_value(float(value), "Number"), env


def eval_variable(expr: Variable, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate variable by looking it up through the scope chain"""
  value = env_get(env, expr.name)

  if value is None:
    raise ReyRuntimeError(f"Undefined variable '{expr.name}'")

  return value, env


def eval_binary(expr: Binary, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate both operands left to right, then combine them"""
  left, env = eval_expr(expr.left, env, debug, context)
  right, env = eval_expr(expr.right, env, debug, context)

  impl = BUILTIN_OPERATORS.get(expr.op)
  if impl is None:
    raise operation_error(expr.op.value, left['type'], right['type'])

  return impl(left, right), env


def eval_unary(expr: Unary, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  operand, env = eval_expr(expr.operand, env, debug, context)

  impl = UNARY_OPERATORS.get(expr.op)
  if impl is None:
    raise unary_operation_error(expr.op.value, operand['type'])

  return impl(operand), env


def eval_assign(expr: Assign, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate the right-hand side, then rebind the name in the innermost scope"""
  value, env = eval_expr(expr.value, env, debug, context)

  updated_env = env_assign(env, expr.name, value)
  if updated_env is None:
    raise ReyRuntimeError(f"Undefined variable '{expr.name}'")

  return value, updated_env


def eval_call(expr: Call, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Evaluate function application"""
  if context is None:
    context = make_execution_context()

  args = []
  for arg in expr.args:
    arg_value, env = eval_expr(arg, env, debug, context)
    args.append(arg_value)

  # A bare name is checked against the built-in table before user functions
  if isinstance(expr.callee, Variable):
    builtin = context['builtins'].get(expr.callee.name)
    if builtin is not None:
      if debug:
        print(f"Calling builtin: {expr.callee.name}")
      return builtin(args, context['output']), env

  function, env = eval_expr(expr.callee, env, debug, context)
  if function['type'] != "Function":
    raise ReyRuntimeError(f"Can only call functions, got {function['type']}")

  return call_function(function, args, env, debug, context), env


def call_function(function: Dict, args: List[Dict], env: Dict, debug: bool = False,
                  context: Optional[Dict] = None) -> Dict:
  """
  Run a user function in a fresh scope whose parent is the caller's
  environment at call time. The caller's environment is never changed.
  """
  params = function['value']['params']
  if len(args) != len(params):
    raise arity_error(len(params), len(args))

  if debug:
    print(f"Calling function: {function['value']['name']}")

  frame = make_runtime_env(parent=env)
  for param, arg_value in zip(params, args):
    frame = env_define(frame, param.name, arg_value)

  result, _ = execute_block(function['value']['body'], frame, debug, context)
  return result


# ============================================================================
# EXECUTION FUNCTIONS
# ============================================================================

def execute_stmt(stmt, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[ControlFlow, Dict]:
  """Execute a statement and return (control_flow, updated_environment)"""
  if context is None:
    context = make_execution_context()

  if debug:
    print(f"Executing: {type(stmt).__name__}")

  if isinstance(stmt, VarDecl):
    value, env = eval_expr(stmt.initializer, env, debug, context)
    return normal(), env_define(env, stmt.name, value)
  elif isinstance(stmt, FuncDecl):
    function = make_function(stmt.name, stmt.params, stmt.body, stmt.span)
    return normal(), env_define(env, stmt.name, function)
  elif isinstance(stmt, ExprStmt):
    value, env = eval_expr(stmt.expr, env, debug, context)
    return normal(value), env
  elif isinstance(stmt, If):
    return exec_if(stmt, env, debug, context)
  elif isinstance(stmt, While):
    return exec_while(stmt, env, debug, context)
  elif isinstance(stmt, For):
    return exec_for(stmt, env, debug, context)
  elif isinstance(stmt, Break):
    return BREAK, env
  elif isinstance(stmt, Continue):
    return CONTINUE, env
  elif isinstance(stmt, Return):
    value, env = eval_expr(stmt.value, env, debug, context)
    return return_value(value), env
  raise ReyRuntimeError(f"Unknown statement: {type(stmt).__name__}")


def exec_if(stmt: If, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[ControlFlow, Dict]:
  condition, env = eval_expr(stmt.condition, env, debug, context)
  branch = stmt.then_branch if is_truthy(condition) else stmt.else_branch

  if branch is None:
    return normal(), env

  flow, env = execute_block_with_control_flow(branch, env, debug, context)
  if flow.kind in (FlowKind.BREAK, FlowKind.CONTINUE):
    raise ReyRuntimeError("Break/continue not allowed in if statement")
  if flow.kind == FlowKind.RETURN:
    return flow, env
  return normal(), env


def exec_while(stmt: While, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[ControlFlow, Dict]:
  while True:
    condition, env = eval_expr(stmt.condition, env, debug, context)
    if not is_truthy(condition):
      break

    flow, env = execute_block_with_control_flow(stmt.body, env, debug, context)
    if flow.kind == FlowKind.BREAK:
      break
    if flow.kind == FlowKind.RETURN:
      return flow, env

  return normal(), env


def exec_for(stmt: For, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[ControlFlow, Dict]:
  """Run the body once per integer in [start, end), redefining the loop variable each time"""
  start, env = eval_expr(stmt.start, env, debug, context)
  end, env = eval_expr(stmt.end, env, debug, context)

  for i in range(_range_bound(start, "start"), _range_bound(end, "end")):
    env = env_define(env, stmt.variable, make_value(float(i), "Number"))

    flow, env = execute_block_with_control_flow(stmt.body, env, debug, context)
    if flow.kind == FlowKind.BREAK:
      break
    if flow.kind == FlowKind.RETURN:
      return flow, env

  return normal(), env


def _range_bound(value: Dict, which: str) -> int:
  """Truncate a numeric range bound toward zero"""
  if value['type'] != "Number":
    raise ReyRuntimeError(f"Range {which} must be a number")
  if not math.isfinite(value['value']):
    raise ReyRuntimeError(f"Range {which} must be finite")
  return int(value['value'])


def execute_block_with_control_flow(statements, env: Dict, debug: bool = False,
                                    context: Optional[Dict] = None) -> Tuple[ControlFlow, Dict]:
  """Execute statements in order, stopping at the first non-normal signal"""
  for stmt in statements:
    flow, env = execute_stmt(stmt, env, debug, context)
    if flow.kind != FlowKind.NORMAL:
      return flow, env
  return normal(), env


def execute_block(statements, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Tuple[Dict, Dict]:
  """Execute a function body or program; break/continue may not escape it"""
  flow, env = execute_block_with_control_flow(statements, env, debug, context)
  if flow.kind in (FlowKind.BREAK, FlowKind.CONTINUE):
    raise ReyRuntimeError("Break/continue outside of loop")
  return flow.value, env


# ============================================================================
# INTERPRETER
# ============================================================================

class ReyInterpreter:
  """
  Interpreter instance owning the global scope and the built-in table.

  The global scope persists across interpret/execute/evaluate calls,
  which is what the REPL relies on.
  """

  def __init__(self, builtins: Optional[Dict[str, Callable]] = None, debug: bool = False,
               output: Optional[TextIO] = None):
    self.debug = debug
    self.context = make_execution_context(builtins, output)
    self.global_env = make_runtime_env()
    ensure_recursion_limit()

  def interpret(self, statements: List) -> None:
    """Run a program against the global scope"""
    for stmt in statements:
      flow = self.execute(stmt)
      if flow.kind in (FlowKind.BREAK, FlowKind.CONTINUE):
        raise ReyRuntimeError("Break/continue outside of loop")
      if flow.kind == FlowKind.RETURN:
        return

  def execute(self, stmt) -> ControlFlow:
    """Execute one statement against the global scope and keep its effects"""
    try:
      flow, self.global_env = execute_stmt(stmt, self.global_env, self.debug, self.context)
    except RecursionError:
      raise ReyRuntimeError("Maximum recursion depth exceeded") from None
    return flow

  def evaluate(self, expr) -> Dict:
    """Evaluate one expression against the global scope"""
    try:
      value, self.global_env = eval_expr(expr, self.global_env, self.debug, self.context)
    except RecursionError:
      raise ReyRuntimeError("Maximum recursion depth exceeded") from None
    return value

  def lookup(self, name: str) -> Optional[Dict]:
    return env_get(self.global_env, name)

  @property
  def bindings(self) -> Dict[str, Dict]:
    return dict(self.global_env['bindings'])


# ============================================================================
# FACTORY FUNCTIONS (for compatibility with main.py)
# ============================================================================

def create_interpreter(debug: bool = False, builtins: Optional[Dict[str, Callable]] = None,
                       output: Optional[TextIO] = None) -> ReyInterpreter:
  """Factory function returning an interpreter"""
  return ReyInterpreter(builtins=builtins, debug=debug, output=output)


def create_debug_interpreter() -> ReyInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
