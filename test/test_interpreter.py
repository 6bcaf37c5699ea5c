"""
Interpreter tests for the Rey language
Covers environments, values, operators, control flow and calls
"""

import pytest
from parsing import create_parser
from syntax_tree import Variable, Get, Assign, Literal
from error_handling import ReyRuntimeError
from utilities import make_value, is_truthy
from stdlib import NULL, rey_show
from interpreter import (
  ReyInterpreter, ControlFlow, FlowKind, BREAK, CONTINUE,
  create_interpreter, create_debug_interpreter,
  make_runtime_env, env_define, env_get, env_assign,
)


def number(n):
  return make_value(float(n), "Number")


def string(s):
  return make_value(s, "String")


def boolean(b):
  return make_value(b, "Bool")


class RunHelper:
  """Parse and execute source text statement by statement"""

  def __init__(self, output):
    self.parser = create_parser()
    self.output = output
    self.interpreter = create_interpreter(output=output)

  def run(self, source):
    """Run a whole program and return everything it printed"""
    self.interpreter.interpret(self.parser.parse_string(source))
    return self.output.getvalue()

  def last_value(self, source):
    """Execute each statement and return the value of the last one"""
    flow = None
    for stmt in self.parser.parse_string(source):
      flow = self.interpreter.execute(stmt)
    return flow.value


@pytest.fixture
def rey(output):
  return RunHelper(output)


class TestEnvironment:
  """Test scope chain invariants"""

  def test_define_and_get(self):
    env = env_define(make_runtime_env(), "x", number(1))
    assert env_get(env, "x") == number(1)
    assert env_get(env, "y") is None

  def test_define_does_not_mutate(self):
    env = make_runtime_env()
    updated = env_define(env, "x", number(1))
    assert env_get(env, "x") is None
    assert env_get(updated, "x") == number(1)

  def test_lookup_walks_outward(self):
    outer = env_define(make_runtime_env(), "x", number(1))
    inner = make_runtime_env(parent=outer)
    assert env_get(inner, "x") == number(1)

  def test_define_shadows_outer(self):
    outer = env_define(make_runtime_env(), "x", number(1))
    inner = env_define(make_runtime_env(parent=outer), "x", number(2))
    assert env_get(inner, "x") == number(2)
    assert env_get(outer, "x") == number(1)

  def test_define_redeclares_in_same_scope(self):
    env = env_define(env_define(make_runtime_env(), "x", number(1)), "x", string("a"))
    assert env_get(env, "x") == string("a")

  def test_assign_only_reaches_innermost_scope(self):
    outer = env_define(make_runtime_env(), "x", number(1))
    inner = make_runtime_env(parent=outer)
    assert env_assign(inner, "x", number(2)) is None
    assert env_get(inner, "x") == number(1)

  def test_assign_existing(self):
    env = env_define(make_runtime_env(), "x", number(1))
    updated = env_assign(env, "x", number(2))
    assert env_get(updated, "x") == number(2)
    assert env_get(env, "x") == number(1)


class TestValues:
  """Test truthiness and printing rules"""

  @pytest.mark.parametrize("value,expected", [
      (boolean(True), True),
      (boolean(False), False),
      (NULL, False),
      (number(0), False),
      (number(-0.5), True),
      (string(""), True),
      (string("false"), True),
  ])
  def test_truthiness(self, value, expected):
    assert is_truthy(value) is expected

  def test_show(self):
    assert rey_show(number(3)) == "3"
    assert rey_show(number(2.5)) == "2.5"
    assert rey_show(number(-1)) == "-1"
    assert rey_show(number(0.0000001)) == "0.0000001"
    assert rey_show(number(-123456.5e-12)) == "-0.0000001234565"
    assert rey_show(number(float("inf"))) == "inf"
    assert rey_show(string("hi")) == "hi"
    assert rey_show(boolean(False)) == "false"
    assert rey_show(NULL) == "null"

  def test_print_joins_with_spaces(self, rey):
    assert rey.run('print(1, 2.5, "s", true, null);') == "1 2.5 s true null\n"

  def test_print_without_arguments(self, rey):
    assert rey.run("print();") == "\n"

  def test_print_function_placeholder(self, rey):
    assert rey.run("func f() { } println(f);") == "<function>\n"

  def test_function_values_compare_structurally(self, rey):
    rey.run("func f(a) { return a; } var g = f;")
    interpreter = rey.interpreter
    assert interpreter.lookup("g") == interpreter.lookup("f")
    assert interpreter.lookup("g")['type'] == "Function"


class TestOperators:
  """Test binary and unary operator semantics"""

  @pytest.mark.parametrize("source,expected", [
      ("1 + 2 * 3;", number(7)),
      ("10 - 4 - 3;", number(3)),
      ("7 / 2;", number(3.5)),
      ("-4 + 1;", number(-3)),
      ('"ab" + "cd";', string("abcd")),
      ("1 == 1;", boolean(True)),
      ('"a" != "b";', boolean(True)),
      ("true == false;", boolean(False)),
      ("2 <= 2;", boolean(True)),
      ("3 > 4;", boolean(False)),
      ("true && false;", boolean(False)),
      ("false || true;", boolean(True)),
      ("!false;", boolean(True)),
  ])
  def test_evaluates(self, rey, source, expected):
    assert rey.last_value(source) == expected

  def test_division_by_zero(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value("1 / 0;")
    assert exc_info.value.message == "Division by zero"

  @pytest.mark.parametrize("source,message", [
      ('1 + "a";', "Invalid binary operation: Number + String"),
      ('"a" < "b";', "Invalid binary operation: String < String"),
      ("true + true;", "Invalid binary operation: Bool + Bool"),
      ("1 && true;", "Invalid binary operation: Number && Bool"),
      ("null == null;", "Invalid binary operation: Null == Null"),
      ('"a" / 0;', "Invalid binary operation: String / Number"),
      ('-"a";', "Invalid binary operation: Number - String"),
      ("!1;", "Invalid unary operation: !Number"),
  ])
  def test_type_mismatch(self, rey, source, message):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value(source)
    assert exc_info.value.message == message

  def test_logical_operators_evaluate_both_sides(self, rey):
    source = 'func mark() { print("evaluated"); return true; } false && mark();'
    assert rey.run(source) == "evaluated\n"


class TestVariables:
  """Test declarations, reads and assignments"""

  def test_assignment_updates_variable(self, rey):
    assert rey.last_value("var x = 5; x = x + 1; x;") == number(6)

  def test_assignment_returns_value(self, rey):
    assert rey.last_value("var x = 1; x = 9;") == number(9)

  def test_undefined_variable(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value("missing;")
    assert exc_info.value.message == "Undefined variable 'missing'"

  def test_assign_undeclared(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value("y = 1;")
    assert exc_info.value.message == "Undefined variable 'y'"

  def test_enclosing_scope_readable_but_not_assignable(self, rey):
    rey.run("var x = 1; func read() { return x; } func write() { x = 2; }")
    assert rey.last_value("read();") == number(1)

    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value("write();")
    assert exc_info.value.message == "Undefined variable 'x'"
    assert rey.interpreter.lookup("x") == number(1)

  def test_evaluate_and_execute_share_global_scope(self):
    interpreter = ReyInterpreter()
    interpreter.interpret(create_parser().parse_string("var x = 1;"))
    assert interpreter.evaluate(Assign("x", Literal(2.0))) == number(2)
    assert interpreter.evaluate(Variable("x")) == number(2)
    assert interpreter.bindings == {"x": number(2)}

  def test_property_access_not_implemented(self):
    interpreter = create_interpreter()
    with pytest.raises(ReyRuntimeError) as exc_info:
      interpreter.evaluate(Get(Variable("x"), "y"))
    assert exc_info.value.message == "Property access not implemented yet"


class TestControlFlow:
  """Test if, while, for, break and continue"""

  def test_if_else(self, rey):
    assert rey.run('if (0) { print("then"); } else { print("else"); }') == "else\n"

  def test_if_string_condition_is_truthy(self, rey):
    assert rey.run('if ("") { print("yes"); }') == "yes\n"

  def test_if_shares_enclosing_scope(self, rey):
    assert rey.last_value("var x = 1; if (true) { x = 2; var y = 3; } x + y;") == number(5)

  def test_for_range_prints_each_value(self, rey):
    assert rey.run("for i in range(0, 3) { print(i); }") == "0\n1\n2\n"

  def test_for_empty_range(self, rey):
    assert rey.run("for i in range(3, 0) { print(i); }") == ""

  def test_for_truncates_bounds(self, rey):
    assert rey.run("for i in range(0.5, 2.9) { print(i); }") == "0\n1\n"
    assert rey.run("for i in range(-1.5, 1) { print(i); }") == "0\n1\n-1\n0\n"

  def test_for_bounds_evaluated_once(self, rey):
    source = "var n = 3; for i in range(0, n) { n = 10; print(i); }"
    assert rey.run(source) == "0\n1\n2\n"

  @pytest.mark.parametrize("source,message", [
      ('for i in range("a", 3) { }', "Range start must be a number"),
      ("for i in range(0, null) { }", "Range end must be a number"),
  ])
  def test_for_bounds_must_be_numbers(self, rey, source, message):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.run(source)
    assert exc_info.value.message == message

  @pytest.mark.parametrize("source,message", [
      ("var huge = 1E; for i in range(0, huge * huge) { }", "Range end must be finite"),
      ("var huge = 1E; for i in range(-(huge * huge), 3) { }", "Range start must be finite"),
  ])
  def test_for_bounds_must_be_finite(self, rey, source, message):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.run(source.replace("1E", "1" + "0" * 300))
    assert exc_info.value.message == message

  def test_continue_in_for_body(self, rey):
    source = "for i in range(0, 3) { continue; print(i); } print(\"after\");"
    assert rey.run(source) == "after\n"

  def test_continue_in_for_moves_to_next_value(self, rey):
    source = "var s = 0; for i in range(0, 4) { s = s + i; continue; s = 1000; } s;"
    assert rey.last_value(source) == number(6)

  def test_while(self, rey):
    assert rey.last_value("var i = 0; while (i < 5) { i = i + 1; } i;") == number(5)

  def test_continue_skips_rest_of_body(self, rey):
    source = "var i = 0; var s = 0; while (i < 5) { i = i + 1; s = s + i; continue; s = 1000; } s;"
    assert rey.last_value(source) == number(15)

  def test_break_leaves_loop(self, rey):
    assert rey.run("for i in range(0, 10) { print(i); break; }") == "0\n"

  def test_break_only_leaves_innermost_loop(self, rey):
    source = "for i in range(0, 2) { for j in range(0, 5) { break; } print(i); }"
    assert rey.run(source) == "0\n1\n"

  def test_break_at_top_level(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.run("break;")
    assert exc_info.value.message == "Break/continue outside of loop"

  def test_continue_in_function_body(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.run("func f() { continue; } f();")
    assert exc_info.value.message == "Break/continue outside of loop"

  def test_break_directly_inside_if(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.run("if (true) { break; }")
    assert exc_info.value.message == "Break/continue not allowed in if statement"

  def test_break_inside_if_inside_loop(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.run("while (true) { if (true) { break; } }")
    assert exc_info.value.message == "Break/continue not allowed in if statement"

  def test_top_level_return_stops_program(self, rey):
    assert rey.run("print(1); return 0; print(2);") == "1\n"

  def test_execute_returns_control_flow(self, rey):
    interpreter = rey.interpreter
    stmts = create_parser().parse_string("break; continue; return 4; 5;")
    assert interpreter.execute(stmts[0]) == BREAK
    assert interpreter.execute(stmts[1]) == CONTINUE
    assert interpreter.execute(stmts[2]) == ControlFlow(FlowKind.RETURN, number(4))
    assert interpreter.execute(stmts[3]) == ControlFlow(FlowKind.NORMAL, number(5))


class TestFunctions:
  """Test function declaration and calls"""

  def test_call_returns_value(self, rey):
    assert rey.last_value("func f(a, b) { return a + b; } f(1, 2);") == number(3)

  def test_arity_mismatch(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value("func f(a, b) { return a + b; } f(1);")
    assert exc_info.value.message == "Expected 2 arguments but got 1"

  def test_missing_return_yields_null(self, rey):
    assert rey.last_value("func f() { 1; } f();") == NULL

  def test_return_from_inside_loop(self, rey):
    source = "func first() { for i in range(5, 10) { if (i > 6) { return i; } } return -1; } first();"
    assert rey.last_value(source) == number(7)

  def test_recursion(self, rey):
    source = "func fact(n) { if (n <= 1) { return 1; } return n * fact(n - 1); } fact(5);"
    assert rey.last_value(source) == number(120)

  def test_deep_recursion_completes(self, rey):
    source = "func sum(n) { if (n == 0) { return 0; } return n + sum(n - 1); } print(sum(500));"
    assert rey.run(source) == "125250\n"

  def test_arguments_evaluated_left_to_right(self, rey):
    source = 'func id(x) { print(x); return x; } func pair(a, b) { } pair(id("a"), id("b"));'
    assert rey.run(source) == "a\nb\n"

  def test_call_sees_caller_scope_at_call_time(self, rey):
    source = """
    func inner() { return a; }
    func outer() { var a = 10; return inner(); }
    outer();
    """
    assert rey.last_value(source) == number(10)

  def test_function_sees_later_globals(self, rey):
    assert rey.last_value("func f() { return y; } var y = 3; f();") == number(3)

  def test_callee_changes_not_visible_to_caller(self, rey):
    source = "var x = 1; func f(x) { x = 99; return x; } f(5); x;"
    assert rey.last_value(source) == number(1)

  def test_calling_non_function(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value("var x = 1; x();")
    assert exc_info.value.message == "Can only call functions, got Number"

  def test_calling_undefined_function(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.last_value("nope();")
    assert exc_info.value.message == "Undefined variable 'nope'"

  def test_builtins_take_precedence(self, rey):
    assert rey.run('func print(x) { return 1; } print("builtin");') == "builtin\n"

  def test_runaway_recursion(self, rey):
    with pytest.raises(ReyRuntimeError) as exc_info:
      rey.run("func f(n) { return f(n + 1); } f(0);")
    assert exc_info.value.message == "Maximum recursion depth exceeded"


class TestInterpreterConfiguration:
  """Test builtin tables and debug tracing"""

  def test_custom_builtin_table(self):
    def twice(args, output):
      return make_value(args[0]['value'] * 2, "Number")

    interpreter = ReyInterpreter(builtins={'twice': twice})
    stmts = create_parser().parse_string("twice(21);")
    assert interpreter.execute(stmts[0]).value == number(42)

    with pytest.raises(ReyRuntimeError) as exc_info:
      interpreter.interpret(create_parser().parse_string("print(1);"))
    assert exc_info.value.message == "Undefined variable 'print'"

  def test_builtins_are_not_global_bindings(self):
    assert create_interpreter().lookup("print") is None

  def test_print_defaults_to_stdout(self, capsys):
    create_interpreter().interpret(create_parser().parse_string('print("out");'))
    assert capsys.readouterr().out == "out\n"

  def test_debug_interpreter_traces(self, capsys):
    interpreter = create_debug_interpreter()
    interpreter.interpret(create_parser().parse_string("1 + 2;"))
    out = capsys.readouterr().out
    assert "Executing: ExprStmt" in out
    assert "Evaluating: Binary" in out
