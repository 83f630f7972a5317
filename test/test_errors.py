"""
Error reporting tests for BVExpr
Positions, expected/got details, suggestions, input limits and file parsing
"""

import sys
import pytest
from pyparsing import ParseException
from expression import (
  BooleanLiteral, UnsignedBitVector, VariableMapping, UnaryExpression,
  UnaryOperator, BinaryOperator,
)
from error_handling import (
  BVExprError, BVExprParseError, BVExprTokenizerError, BVExprLiteralOverflowError,
  BVExprLimitError, BVExprErrorHandler, make_parse_error, format_parse_error,
  get_context_lines, lexeme_width, extract_expected, extract_got, generate_suggestions,
)
from parsing import BVExprTokenizer, create_parser, parse_expression


class TestSyntaxErrors:
  """The grammar rejects input at a precise position"""

  def test_two_atoms_in_a_row(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("true false")
    error = info.value
    assert error.line == 1
    assert error.column == 6
    assert error.got == "'false'"
    assert error.filename == "<input>"

  def test_unclosed_parenthesis(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("(true")
    assert info.value.got == "end of input"
    assert any("incomplete" in s for s in info.value.suggestions)

  def test_unspaced_binary_minus(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("1:u8 -2:u8")
    error = info.value
    assert error.column == 6
    assert error.got == "'-2'"
    assert any("Put a space" in s for s in error.suggestions)

  def test_dangling_operator_is_reported_at_the_operator(self, parser):
    # the additive tier backs off, so the leftover `+` is what fails
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("x:u8 + 42")
    assert info.value.column == 6
    assert info.value.got == "'+'"

  def test_lowercase_keyword_suggestion(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("a:bool and b:bool")
    assert info.value.got == "'and'"
    assert any("case-sensitive" in s for s in info.value.suggestions)

  def test_empty_input(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("")
    assert info.value.got == "end of input"

  def test_filename_is_reported(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("true true", "constraints.txt")
    assert info.value.filename == "constraints.txt"
    assert str(info.value).startswith("Syntax error in constraints.txt at line 1, column 6:")

  def test_not_a_pyparsing_exception(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("true false")
    assert not isinstance(info.value, ParseException)
    assert isinstance(info.value, BVExprError)


class TestTokenizerErrors:
  """Characters outside the language fail before the grammar runs"""

  def test_unknown_character_position(self, parser):
    with pytest.raises(BVExprTokenizerError) as info:
      parser.parse_expression("true @")
    error = info.value
    assert error.line == 1
    assert error.column == 6
    assert error.location == 5
    assert error.got == "'@'"
    assert error.message == "Unknown character '@'"

  def test_tokenizer_error_is_a_parse_error(self, parser):
    with pytest.raises(BVExprParseError):
      parser.parse_expression("1:u8 + @")

  def test_single_equals_suggests_double(self, parser):
    with pytest.raises(BVExprTokenizerError) as info:
      parser.parse_expression("a:u8 = b:u8")
    assert info.value.column == 6
    assert "Use '==' for equality" in info.value.suggestions

  def test_second_line_position(self):
    tokenizer = BVExprTokenizer("multi.txt")
    with pytest.raises(BVExprTokenizerError) as info:
      tokenizer.tokenize("a:bool\n  && $")
    error = info.value
    assert (error.line, error.column) == (2, 6)
    assert error.location == len("a:bool\n") + 5
    assert error.filename == "multi.txt"


class TestErrorFormatting:
  """Error records and their text form"""

  def test_context_marks_the_character(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("true @")
    assert info.value.context == "  1 | true @\n    | " + " " * 5 + "^"

  def test_context_underlines_the_whole_lexeme(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("true false")
    assert info.value.context.split("\n")[1] == "    | " + " " * 5 + "^^^^^"

  def test_context_at_end_of_input(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("(true")
    assert info.value.context.endswith("^")
    assert not info.value.context.endswith("^^")

  def test_str_sections(self, parser):
    with pytest.raises(BVExprParseError) as info:
      parser.parse_expression("1:u8 -2:u8")
    text = str(info.value)
    assert "Syntax error in <input> at line 1, column 6:" in text
    assert "  Expected: " in text
    assert "  Got: '-2'" in text
    assert "  Context:" in text
    assert "  Suggestions:" in text

  def test_make_parse_error_defaults(self):
    error = make_parse_error("Boom", 3, 1, 4)
    assert error['expected'] == []
    assert error['suggestions'] == []
    assert error['got'] is None
    assert error['filename'] == "<input>"

  def test_format_parse_error_skips_empty_sections(self):
    text = format_parse_error(make_parse_error("Boom", 0, 2, 1, filename="f.txt"))
    assert text == "Syntax error in f.txt at line 2, column 1:\n  Boom\n"

  def test_from_dict_round_trip(self):
    error = make_parse_error("Boom", 0, 1, 1, expected=["atom"], got="'x'")
    exc = BVExprParseError.from_dict(error)
    assert exc.expected == ["atom"]
    assert str(exc) == format_parse_error(error)

  def test_get_context_lines_window(self):
    source = "\n".join(f"line{i}" for i in range(1, 8))
    context = get_context_lines(source, 4, 2)
    lines = context.split("\n")
    assert lines[0] == "  2 | line2"
    assert lines[-1] == "  6 | line6"
    assert lines[3] == "    |  ^"

  def test_get_context_lines_gutter_grows(self):
    source = "\n".join(f"line{i}" for i in range(1, 13))
    lines = get_context_lines(source, 10, 1, width=3).split("\n")
    assert lines[0] == "   8 | line8"
    assert lines[3] == "     | ^^^"
    assert lines[-1] == "  12 | line12"

  def test_lexeme_width(self):
    assert lexeme_width("'<='") == 2
    assert lexeme_width("'@'") == 1
    assert lexeme_width("end of input") == 1
    assert lexeme_width(None) == 1

  def test_extract_expected_default(self):
    assert extract_expected(ParseException("abc", 0, "something odd")) == ["valid syntax"]

  def test_extract_expected_from_message(self):
    assert extract_expected(ParseException("abc", 0, "Expected ')'")) == ["')'"]

  def test_extract_got(self):
    tokens = BVExprTokenizer().tokenize("x:u8 <= 5:u8")
    assert extract_got(tokens, 1, 6) == "'<='"
    assert extract_got(tokens, 1, 7) == "'<='"
    assert extract_got(tokens, 1, 13) == "end of input"

  def test_generate_suggestions(self):
    assert generate_suggestions("'42'", ["atom"]) == [
      "Integer literals need a width suffix such as ':i32' or ':u8'"
    ]
    assert generate_suggestions("'u8'", []) == ["Type names follow a ':' after a literal or a variable name"]
    assert generate_suggestions("'x'", ["atom"]) == []

  def test_handler_wraps_pyparsing_errors(self, grammar):
    source = "true false"
    with pytest.raises(ParseException) as info:
      grammar.parse(source)
    tokens = BVExprTokenizer().tokenize(source)
    error = BVExprErrorHandler(source, "demo", tokens).enhance_parse_exception(info.value)
    assert isinstance(error, BVExprParseError)
    assert error.filename == "demo"
    assert error.got == "'false'"


class TestLiteralOverflow:
  """Out-of-range integer literals raise their own error"""

  def test_message(self):
    error = BVExprLiteralOverflowError("99999999999999999999", False, 1, 1)
    assert str(error) == (
      "Integer literal 99999999999999999999 at line 1, column 1 "
      "does not fit in a 64-bit unsigned integer"
    )

  def test_reaches_the_caller_unwrapped(self, parser):
    with pytest.raises(BVExprLiteralOverflowError) as info:
      parser.parse_expression("(1:u8 + 18446744073709551616:u64)")
    assert not isinstance(info.value, BVExprParseError)
    assert info.value.column == 9

  def test_overflow_inside_unary(self, parser):
    with pytest.raises(BVExprLiteralOverflowError):
      parser.parse_expression("!9223372036854775808:i32")


class TestInputLimits:
  """Length and depth guards run before the grammar"""

  def test_depth_at_limit(self):
    parser = create_parser(max_depth=16)
    text = "(" * 16 + "true" + ")" * 16
    assert parser.parse_expression(text) == BooleanLiteral(True)

  def test_depth_over_limit(self):
    parser = create_parser(max_depth=16)
    with pytest.raises(BVExprLimitError) as info:
      parser.parse_expression("(" * 17 + "true" + ")" * 17)
    assert info.value.limit == 16
    assert info.value.actual == 17
    assert str(info.value) == "Expression is nested too deeply (limit 16, got 17)"

  def test_prefix_operators_count_toward_depth(self):
    parser = create_parser(max_depth=4)
    assert parser.parse_expression("!!!!x:bool") is not None
    with pytest.raises(BVExprLimitError):
      parser.parse_expression("!!!!!x:bool")

  def test_long_flat_chain_is_not_deep(self):
    parser = create_parser(max_depth=2)
    result = parser.parse_expression(" + ".join(["1:u8"] * 40))
    assert result.op is BinaryOperator.ADDITION

  def test_disabled_depth_limit(self):
    parser = create_parser(max_depth=0)
    text = "(" * 20 + "5:u8" + ")" * 20
    assert parser.parse_expression(text) == UnsignedBitVector(8, 5)

  def test_recursion_error_becomes_a_limit_error(self, monkeypatch):
    parser = create_parser()

    def exhausted(text):
      raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(parser.grammar, "parse", exhausted)
    with pytest.raises(BVExprLimitError) as info:
      parser.parse_expression("((true))")
    assert info.value.actual == 2

  def test_length_limit(self):
    parser = create_parser(max_length=20)
    with pytest.raises(BVExprLimitError) as info:
      parser.parse_expression("a:u8 + b:u8 + c:u8 + d:u8")
    assert info.value.limit == 20
    assert info.value.actual == 25

  def test_length_ignores_surrounding_whitespace(self):
    parser = create_parser(max_length=6)
    assert parser.parse_expression("   x:bool   ") is not None

  def test_disabled_length_limit(self):
    parser = create_parser(max_length=None)
    text = " + ".join(f"v{i}:u32" for i in range(800))
    assert len(text) > 4096
    assert parser.parse_expression(text).op is BinaryOperator.ADDITION


class TestParseFile:
  """One expression per line, with comments and blank lines"""

  def test_parse_file(self, parser, tmp_path):
    path = tmp_path / "constraints.txt"
    path.write_text(
      "# bounds\n"
      "x:u8 < 10:u8\n"
      "\n"
      "a:bool AND b:bool // both\n"
      "   \n"
      "!flag:bool\n"
    )
    expressions = parser.parse_file(str(path))
    assert len(expressions) == 3
    assert expressions[0].op is BinaryOperator.LESS_THAN
    assert expressions[1].op is BinaryOperator.AND
    assert str(expressions[2]) == "!flag:bool"

  def test_error_uses_the_file_line_number(self, parser, tmp_path):
    path = tmp_path / "broken.txt"
    path.write_text("# header\ntrue\n\nx:u8 +\n")
    with pytest.raises(BVExprParseError) as info:
      parser.parse_file(str(path))
    error = info.value
    assert error.line == 4
    assert error.filename == str(path)
    assert "  4 | x:u8 +" in error.context

  def test_tokenizer_error_uses_the_file_line_number(self, parser, tmp_path):
    path = tmp_path / "broken.txt"
    path.write_text("true\nfalse\nx:u8 @ 1:u8\n")
    with pytest.raises(BVExprTokenizerError) as info:
      parser.parse_file(str(path))
    assert (info.value.line, info.value.column) == (3, 6)
    assert "  1 | true" in info.value.context

  def test_empty_file(self, parser, tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("# nothing here\n")
    assert parser.parse_file(str(path)) == []

  def test_missing_file(self, parser, tmp_path):
    with pytest.raises(FileNotFoundError):
      parser.parse_file(str(tmp_path / "missing.txt"))


class TestUnlimitedDefaults:
  """Without configured limits any well-formed input parses"""

  def test_factory_defaults(self, parser):
    assert parser.max_depth is None
    assert parser.max_length is None

  def test_deep_parentheses(self, parser):
    text = "(" * 100 + "true" + ")" * 100
    assert parser.parse_expression(text) == BooleanLiteral(True)

  def test_deep_parentheses_around_operators(self, parser):
    text = "(" * 100 + "a:u8 + 1:u8" + ")" * 100
    assert parser.parse_expression(text).op is BinaryOperator.ADDITION

  def test_long_prefix_chain(self, parser):
    result = parser.parse_expression("NOT " * 100 + "x:bool")
    count = 0
    while isinstance(result, UnaryExpression):
      assert result.op is UnaryOperator.NOT
      result = result.e
      count += 1
    assert count == 100
    assert result == VariableMapping("x", "bool")

  def test_long_text(self, parser):
    text = " AND ".join(f"flag_{i}:bool" for i in range(400))
    assert len(text) > 4096
    result = parser.parse_expression(text)
    assert result.op is BinaryOperator.AND
    assert result.right == VariableMapping("flag_399", "bool")

  def test_module_level_parse_is_unlimited(self):
    text = "(" * 40 + "x:u8" + ")" * 40
    assert parse_expression(text) == VariableMapping("x", "u8")

  def test_recursion_limit_is_restored(self, parser):
    before = sys.getrecursionlimit()
    parser.parse_expression("(" * 60 + "true" + ")" * 60)
    assert sys.getrecursionlimit() == before
    with pytest.raises(BVExprParseError):
      parser.parse_expression("(" * 60 + "true")
    assert sys.getrecursionlimit() == before
