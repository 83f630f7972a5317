"""
Error handling for the BVExpr parser with detailed error messages
Error records are plain dictionaries built by pure functions; the exception
classes at the bottom are what callers catch
"""

from typing import List, Optional, Dict, Sequence
from pyparsing import ParseException


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_parse_error(
    message: str,
    location: int,
    line: int,
    column: int,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None,
    suggestions: Optional[List[str]] = None,
    filename: str = "<input>"
) -> Dict:
    """Create an immutable parse error structure"""
    return {
        'message': message,
        'location': location,
        'line': line,
        'column': column,
        'expected': expected or [],
        'got': got,
        'context': context,
        'suggestions': suggestions or [],
        'filename': filename
    }


def format_parse_error(error: Dict) -> str:
    """Format parse error as string"""
    error_msg = f"Syntax error in {error['filename']} at line {error['line']}, column {error['column']}:\n"
    error_msg += f"  {error['message']}\n"

    if error['expected']:
        error_msg += f"  Expected: {', '.join(error['expected'])}\n"

    if error['got']:
        error_msg += f"  Got: {error['got']}\n"

    if error['context']:
        error_msg += f"  Context:\n{error['context']}\n"

    if error['suggestions']:
        error_msg += "  Suggestions:\n"
        for suggestion in error['suggestions']:
            error_msg += f"    - {suggestion}\n"

    return error_msg


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int,
                      width: int = 1, context_lines: int = 2) -> str:
    """Source lines around an error, with the offending lexeme underlined

      1 | true false
        |      ^^^^^
    """
    lines = source_text.split('\n')
    first = max(1, line_num - context_lines)
    last = min(len(lines), line_num + context_lines)
    gutter = len(str(last))

    rendered = []
    for number in range(first, last + 1):
        rendered.append(f"  {number:>{gutter}} | {lines[number - 1]}")
        if number == line_num:
            rendered.append(f"  {'':>{gutter}} | {' ' * (col_num - 1)}{'^' * max(width, 1)}")
    return '\n'.join(rendered)


def lexeme_width(got: Optional[str]) -> int:
    """Columns to underline for a `got` value; a single column at end of input"""
    if got and len(got) > 2 and got[0] == got[-1] == "'":
        return len(got) - 2
    return 1


def extract_expected(exc: ParseException) -> List[str]:
    """What the grammar wanted at the failure point, from pyparsing's message"""
    msg = exc.msg or ""
    if msg.startswith("Expected "):
        # newer pyparsing releases may fold the found text into msg
        return [msg[len("Expected "):].split(", found")[0]]
    return ["valid syntax"]


def extract_got(tokens: Sequence, line_num: int, col_num: int) -> str:
    """Find the lexeme at (or first after) the error location"""
    for token in tokens:
        span = token.span
        if (span.start_line, span.start_col) >= (line_num, col_num):
            return f"'{span.text}'"
        # error position fell inside a multi-character lexeme
        if span.start_line == line_num and span.start_col <= col_num < span.end_col:
            return f"'{span.text}'"
    return "end of input"


def generate_suggestions(got: str, expected: List[str]) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []
    lexeme = got.strip("'")

    if lexeme.isdigit() or (lexeme.startswith('-') and lexeme[1:].isdigit()):
        suggestions.append("Integer literals need a width suffix such as ':i32' or ':u8'")

    if lexeme in ('and', 'or', 'xor', 'not', 'implies', 'equiv', 'True', 'False'):
        suggestions.append("Keywords are case-sensitive: use AND, OR, XOR, NOT, IMPLIES, EQUIV, true, false")

    if lexeme in ('i8', 'i16', 'i32', 'i64', 'u8', 'u16', 'u32', 'u64', 'bool'):
        suggestions.append("Type names follow a ':' after a literal or a variable name")

    if lexeme == '=':
        suggestions.append("Use '==' for equality")

    if lexeme.startswith('-') and 'end of text' in str(expected):
        suggestions.append("Put a space after a binary '-': '-2' reads as a negative literal")

    if got == "end of input":
        suggestions.append("The expression is incomplete; check for a missing operand or ')'")

    return suggestions


def enhance_parse_exception_dict(exc: ParseException, source_text: str,
                                 tokens: Sequence = (), filename: str = "<input>") -> Dict:
    """Convert pyparsing exception to enhanced BVExpr error dict"""
    line_num = exc.lineno
    col_num = exc.column

    got = extract_got(tokens, line_num, col_num)
    context = get_context_lines(source_text, line_num, col_num, lexeme_width(got))
    expected = extract_expected(exc)
    suggestions = generate_suggestions(got, expected)

    return make_parse_error(
        message=exc.msg,
        location=exc.loc,
        line=line_num,
        column=col_num,
        expected=expected,
        got=got,
        context=context,
        suggestions=suggestions,
        filename=filename
    )


# ============================================================================
# EXCEPTIONS
# ============================================================================

class BVExprError(Exception):
    """Base class for every error raised by the BVExpr parser"""
    pass


class BVExprParseError(BVExprError):
    """The input does not match the grammar at some position"""
    def __init__(self, message: str, location: int = 0, line: int = 0, column: int = 0,
                 expected: Optional[List[str]] = None, got: Optional[str] = None,
                 context: Optional[str] = None, suggestions: Optional[List[str]] = None,
                 filename: str = "<input>"):
        self.message = message
        self.location = location
        self.line = line
        self.column = column
        self.expected = expected or []
        self.got = got
        self.context = context
        self.suggestions = suggestions or []
        self.filename = filename
        super().__init__(message)

    @classmethod
    def from_dict(cls, error: Dict) -> 'BVExprParseError':
        return cls(**error)

    def __str__(self) -> str:
        error_dict = make_parse_error(
            self.message, self.location, self.line, self.column,
            self.expected, self.got, self.context, self.suggestions, self.filename
        )
        return format_parse_error(error_dict)


class BVExprTokenizerError(BVExprParseError):
    """A character that starts no lexeme of the language"""
    pass


class BVExprLiteralOverflowError(BVExprError):
    """An integer literal does not fit the 64-bit signed or unsigned range"""
    def __init__(self, literal: str, signed: bool, line: int = 0, column: int = 0):
        self.literal = literal
        self.signed = signed
        self.line = line
        self.column = column
        kind = "signed" if signed else "unsigned"
        super().__init__(
            f"Integer literal {literal} at line {line}, column {column} "
            f"does not fit in a 64-bit {kind} integer"
        )


class BVExprLimitError(BVExprError):
    """The input exceeds a configured length or nesting limit"""
    def __init__(self, message: str, limit: int, actual: int):
        self.limit = limit
        self.actual = actual
        super().__init__(f"{message} (limit {limit}, got {actual})")


class BVExprErrorHandler:
    """Turns pyparsing exceptions for one source text into BVExprParseError"""
    def __init__(self, source_text: str, filename: str = "<input>", tokens: Sequence = ()):
        self.source_text = source_text
        self.filename = filename
        self.tokens = tokens

    def enhance_parse_exception(self, exc: ParseException) -> BVExprParseError:
        """Convert pyparsing exception to enhanced BVExpr error"""
        error_dict = enhance_parse_exception_dict(exc, self.source_text, self.tokens, self.filename)
        return BVExprParseError.from_dict(error_dict)
