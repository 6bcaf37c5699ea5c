"""
Rey Programming Language - Main Entry Point
A small imperative scripting language with a tree-walking interpreter
"""

import sys
import argparse
from pathlib import Path
from typing import List
import atexit
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from syntax_tree import ExprStmt, KEYWORDS
from parsing import create_parser, create_debug_parser, pretty_print_ast
from interpreter import create_interpreter, create_debug_interpreter, FlowKind
from error_handling import ReyError, ReyRuntimeError, format_error
from stdlib import rey_show

VERSION = "Rey v0.1.0"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Rey Programming Language - Tree-walking interpreter',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.rey             # Run a Rey script
  %(prog)s -i                     # Interactive mode
  %(prog)s --tokens script.rey    # Show the token stream
  %(prog)s --parse script.rey     # Parse and show AST
  %(prog)s --debug script.rey     # Run with debug output
  %(prog)s -i --debug             # Interactive mode with debug
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Rey script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Tokenize file and show tokens (for debugging)'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show AST (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def read_source(script_path: str) -> str:
  """Read a script, exiting with a message when the file cannot be read"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
    sys.exit(1)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'")
    print(f"  Hint: Make sure you have read permissions for this file")
    sys.exit(1)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
    sys.exit(1)


def report_error(error: ReyError, source: str, script_path: str) -> None:
  print(format_error(error, source, script_path).rstrip('\n'))


def tokenize_file(script_path: str, debug: bool = False) -> None:
  """Tokenize a Rey script file and show the tokens"""
  source = read_source(script_path)
  parser = create_debug_parser() if debug else create_parser()

  try:
    tokens = parser.tokenize(source)
  except ReyError as e:
    report_error(e, source, script_path)
    sys.exit(1)

  print(f"Tokenized {script_path}: {len(tokens)} tokens")
  print("=" * 50)
  for token in tokens:
    print(f"{str(token.span):>12}  {token}")


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a Rey script file and show the AST"""
  source = read_source(script_path)
  parser = create_debug_parser() if debug else create_parser()

  try:
    print(f"Parsing {script_path}...")
    statements = parser.parse_string(source)
  except ReyError as e:
    report_error(e, source, script_path)
    sys.exit(1)

  print(f"\nParsed {len(statements)} top-level statements:")
  print("=" * 50)

  for i, stmt in enumerate(statements, 1):
    print(f"\nStatement {i}:")
    print(pretty_print_ast(stmt), end="")


def run_script_file(script_path: str, debug: bool = False) -> None:
  """Run a Rey script file with full interpretation"""
  source = read_source(script_path)
  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()

  try:
    statements = parser.parse_string(source)
    print("Program parsed successfully.")
    if debug:
      print(f"Parsed {len(statements)} statements")

    interpreter.interpret(statements)
    print("Program executed successfully!")

  except ReyError as e:
    report_error(e, source, script_path)
    sys.exit(1)


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.rey_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + ["range", "print", "println", ":env", ":help", "exit"]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  atexit.register(readline.write_history_file, history_file)


def brace_depth(code: str) -> int:
  """Count unclosed braces, ignoring those inside string literals and comments"""
  depth = 0
  in_string = False
  i = 0
  while i < len(code):
    ch = code[i]
    if in_string:
      if ch == '\\':
        i += 1
      elif ch == '"':
        in_string = False
    elif ch == '"':
      in_string = True
    elif code.startswith('//', i):
      newline = code.find('\n', i)
      if newline == -1:
        break
      i = newline
    elif ch == '{':
      depth += 1
    elif ch == '}':
      depth -= 1
    i += 1
  return depth


def read_statement() -> str:
  """Read one line, continuing with more lines while braces are unbalanced"""
  lines: List[str] = [input("rey> ")]
  while brace_depth("\n".join(lines)) > 0:
    lines.append(input("...  "))
  return "\n".join(lines)


def show_env(interpreter) -> None:
  print("Current environment:")
  bindings = interpreter.bindings
  if not bindings:
    print("  (no user-defined bindings)")
    return
  for name, value in bindings.items():
    val_str = rey_show(value)
    if len(val_str) > 60:
      val_str = val_str[:57] + "..."
    print(f"  {name} = {val_str} : {value['type']}")


def show_help() -> None:
  print("REPL Commands:")
  print("  :env              - Show current environment")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language features:")
  print("  var x = 5;                      - Variable declaration")
  print("  x = x + 1;                      - Assignment")
  print("  func add(a, b) { return a + b; } - Function definition")
  print("  for i in range(0, 3) { print(i); }")
  print("  while (x > 0) { x = x - 1; }")


def run_interactive_mode(debug: bool = False) -> None:
  """Run Rey in interactive mode against one persistent interpreter"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()

  while True:
    try:
      code = read_statement()
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    command = code.strip()
    if command == "exit":
      break
    if not command:
      continue
    if command == ":env":
      show_env(interpreter)
      continue
    if command == ":help":
      show_help()
      continue

    try:
      for stmt in parser.parse_string(code):
        flow = interpreter.execute(stmt)
        if flow.kind in (FlowKind.BREAK, FlowKind.CONTINUE):
          raise ReyRuntimeError("Break/continue outside of loop")
        if isinstance(stmt, ExprStmt) and flow.value['type'] != "Null":
          print(f"=> {rey_show(flow.value)}")
    except ReyError as e:
      report_error(e, code, "<repl>")


def main() -> None:
  """Main entry point for Rey"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args()

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      sys.exit(1)

    if args.tokens:
      tokenize_file(args.script, debug=args.debug)
    elif args.parse:
      parse_file(args.script, debug=args.debug)
    else:
      run_script_file(args.script, debug=args.debug)

  elif args.interactive:
    run_interactive_mode(debug=args.debug)

  else:
    arg_parser.print_help()


if __name__ == "__main__":
  main()
