"""
BVExpr - Main Entry Point
Parse boolean and bit-vector formulas and show the resulting AST
"""

import sys
import argparse
import json
import os
from typing import List, Optional

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from expression import Expression, format_expression
from error_handling import BVExprParseError, BVExprLiteralOverflowError, BVExprLimitError
from parsing import (
  BVExprParser, create_parser, pretty_print_expression, expression_to_dict, KEYWORDS,
)
from utilities import DEFAULT_MAX_DEPTH, DEFAULT_MAX_LENGTH, find_width_violations


VERSION = '0.1.0'


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='bvexpr',
      description='Parse boolean and bit-vector formulas into a typed AST',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s "x:u8 + 1:u8 < 10:u8"     # Parse and show the tree
  %(prog)s --json "a:bool AND b:bool"  # Show the tree as JSON
  %(prog)s --format "1:u8 - 2:u8 - 3:u8"   # Fully parenthesized form
  %(prog)s -f constraints.txt         # One expression per line
  %(prog)s -i                         # Interactive mode
        """
  )

  parser.add_argument(
      'expression',
      nargs='?',
      help='Expression text to parse'
  )

  parser.add_argument(
      '-f', '--file',
      help='Parse a file holding one expression per line (# and // start comments)'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  output = parser.add_mutually_exclusive_group()
  output.add_argument(
      '--tree',
      action='store_true',
      help='Show the AST as an indented tree (default)'
  )
  output.add_argument(
      '--json',
      action='store_true',
      help='Show the AST as JSON'
  )
  output.add_argument(
      '--format',
      action='store_true',
      help='Show the fully parenthesized expression'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Also show the token stream'
  )

  parser.add_argument(
      '--check-widths',
      action='store_true',
      help='Warn about literals whose value does not fit their declared width'
  )

  parser.add_argument(
      '--max-depth',
      type=int,
      default=DEFAULT_MAX_DEPTH,
      help='Maximum nesting depth, 0 to disable (default: %(default)s)'
  )

  parser.add_argument(
      '--max-length',
      type=int,
      default=DEFAULT_MAX_LENGTH,
      help='Maximum expression length in characters, 0 to disable (default: %(default)s)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for tokenizing and parsing'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=f'BVExpr v{VERSION}'
  )

  return parser


def render_expression(expr: Expression, mode: str = 'tree') -> str:
  """Render an expression for display"""
  if mode == 'json':
    return json.dumps(expression_to_dict(expr), indent=2)
  if mode == 'format':
    return format_expression(expr)
  return pretty_print_expression(expr).rstrip('\n')


def output_mode(args: argparse.Namespace) -> str:
  if args.json:
    return 'json'
  if args.format:
    return 'format'
  return 'tree'


def show_width_warnings(expr: Expression, where: str = '') -> None:
  for literal in find_width_violations(expr):
    print(f"Warning{where}: {format_expression(literal)} does not fit in {literal.size} bits")


def parse_text(parser: BVExprParser, text: str, args: argparse.Namespace) -> None:
  """Parse expression text from the command line and show it"""
  if args.tokens:
    for token in parser.tokenize(text, "<command line>"):
      print(f"  {token.span.start_col:3d}: {token}")

  expr = parser.parse_expression(text, "<command line>")
  print(render_expression(expr, output_mode(args)))

  if args.check_widths:
    show_width_warnings(expr)


def parse_file(parser: BVExprParser, script_path: str, args: argparse.Namespace) -> None:
  """Parse a constraint file and show every expression"""
  expressions = parser.parse_file(script_path)
  mode = output_mode(args)

  if mode == 'json':
    print(json.dumps([expression_to_dict(expr) for expr in expressions], indent=2))
  else:
    for i, expr in enumerate(expressions, 1):
      if mode == 'tree':
        print(f"\nExpression {i}:")
      print(render_expression(expr, mode))

  if args.check_widths:
    for i, expr in enumerate(expressions, 1):
      show_width_warnings(expr, f" (expression {i})")


def report_error(error: Exception) -> None:
  """Print an error the way the command line shows it"""
  if isinstance(error, BVExprParseError):
    print(str(error).rstrip('\n'))
  elif isinstance(error, BVExprLiteralOverflowError):
    print(f"Literal error: {error}")
  else:
    print(f"Limit exceeded: {error}")
    print("  Hint: raise --max-depth / --max-length, or pass 0 to disable the check")


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.bvexpr_history")
  try:
    readline.read_history_file(history_file)
  except (FileNotFoundError, PermissionError, OSError):
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + [":tokens", ":tree", ":json", ":format", ":help", "exit"]

  def completer(text, state):
    options = [word for word in completions if word.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(readline.write_history_file, history_file)


def print_help() -> None:
  print("REPL Commands:")
  print("  <expr>            - Parse and show the tree")
  print("  :tokens <expr>    - Show the token stream")
  print("  :tree <expr>      - Show the tree")
  print("  :json <expr>      - Show the tree as JSON")
  print("  :format <expr>    - Show the fully parenthesized form")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Precedence, loosest first:")
  print("  AND OR XOR IMPLIES EQUIV  <  && ||  <  & | ^ << >>  <  + -  <  < <= > >= == !=  <  - ! NOT")
  print("Literals: true, false, 42:u8, -7:i32   Variables: x:bool, count:u64")


def run_interactive_mode(parser: BVExprParser, debug: bool = False) -> None:
  """Read expressions until exit, showing each parse"""
  print(f"BVExpr v{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  while True:
    try:
      code = input("bvexpr> ").strip()
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    if code == "exit":
      break
    if not code:
      continue
    if code == ":help":
      print_help()
      continue

    mode = 'tree'
    if code.startswith(":"):
      command, _, code = code.partition(" ")
      mode = command[1:]
      if mode not in ('tokens', 'tree', 'json', 'format'):
        print(f"Unknown command '{command}', try :help")
        continue

    try:
      if mode == 'tokens':
        for token in parser.tokenize(code, "<repl>"):
          print(f"  {token.span.start_col:3d}: {token}")
      else:
        print(render_expression(parser.parse_expression(code, "<repl>"), mode))
    except (BVExprParseError, BVExprLiteralOverflowError, BVExprLimitError) as e:
      report_error(e)


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for BVExpr"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  parser = create_parser(debug=args.debug, max_depth=args.max_depth, max_length=args.max_length)

  if args.interactive:
    run_interactive_mode(parser, debug=args.debug)
    return

  if not args.file and args.expression is None:
    arg_parser.print_help()
    return

  try:
    if args.file:
      parse_file(parser, args.file, args)
    else:
      parse_text(parser, args.expression, args)
  except FileNotFoundError:
    print(f"Error: File '{args.file}' not found")
    print("  Hint: Check the file path and make sure the file exists")
    sys.exit(1)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{args.file}': {e}")
    print("  Hint: Make sure the file is a text file with UTF-8 encoding")
    sys.exit(1)
  except (BVExprParseError, BVExprLiteralOverflowError, BVExprLimitError) as e:
    report_error(e)
    sys.exit(1)


if __name__ == "__main__":
  main()
