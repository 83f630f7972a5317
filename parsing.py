"""
BVExpr Expression Parser
Precedence-cascade grammar for boolean and bit-vector formulas, with source spans
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, fields
from enum import Enum
import re

# Import pyparsing with error handling
try:
    from pyparsing import (
        Forward, Keyword, MatchFirst, ParseException, ParserElement,
        Regex, Suppress, ZeroOrMore, col, lineno
    )
    # Enable packrat parsing for performance
    ParserElement.enable_packrat()
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from expression import (
    Expression, BooleanLiteral, SignedBitVector, UnsignedBitVector,
    VariableMapping, UnaryExpression, BinaryExpression, LEAF_TYPES,
    SIGNED_WIDTHS, UNSIGNED_WIDTHS, VARIABLE_TYPES, INT64_MIN, INT64_MAX,
    UINT64_MAX, UNARY_OPERATORS, TIER1_OPERATORS, TIER2_OPERATORS,
    TIER3_OPERATORS, TIER4_OPERATORS, TIER5_OPERATORS, BINARY_OPERATOR_TIERS,
    format_expression,
)
from error_handling import (
    BVExprErrorHandler, BVExprTokenizerError, BVExprLimitError,
    BVExprLiteralOverflowError, make_parse_error, get_context_lines,
    generate_suggestions,
)
from utilities import check_input_limits, nesting_depth, recursion_headroom


# ============================================================================
# LEXICAL TABLES
# ============================================================================

IDENTIFIER_PATTERN = r'_[A-Za-z0-9_]+|[A-Za-z][A-Za-z0-9_]*'

KEYWORDS = frozenset(
    ['true', 'false', 'NOT'] + list(TIER1_OPERATORS) + list(VARIABLE_TYPES)
)

SYMBOLS = frozenset(
    [spelling for table in BINARY_OPERATOR_TIERS for spelling in table if not spelling.isalpha()]
    + [spelling for spelling in UNARY_OPERATORS if not spelling.isalpha()]
    + ['(', ')', ':']
)


@dataclass(frozen=True)
class SourceSpan:
    """Source location information, 1-based with an exclusive end column"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


@dataclass(frozen=True)
class Token:
    """BVExpr token with source information"""
    type: str
    value: Any
    span: SourceSpan

    def __str__(self) -> str:
        return f"{self.type}({self.value})"


class BVExprTokenizer:
    """Splits expression text into lexemes, longest match first"""

    def __init__(self, filename: str = "<input>", context_text: Optional[str] = None):
        self.filename = filename
        self.context_text = context_text
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for BVExpr"""

        # Integer lexeme; a leading '-' belongs to the number when a digit follows
        self.number_pattern = re.compile(r'-?[0-9]+')

        # Identifiers and keywords share one pattern; keywords are looked up after
        self.identifier_pattern = re.compile(IDENTIFIER_PATTERN)

        # Create symbol pattern (sorted by length to match longest first)
        symbols_sorted = sorted(SYMBOLS, key=len, reverse=True)
        self.symbol_pattern = re.compile('|'.join(re.escape(s) for s in symbols_sorted))

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize expression text, failing on the first unknown character"""
        tokens = []
        line_start = 0

        for line_num, line in enumerate(text.split('\n'), 1):
            pos = 0
            while pos < len(line):
                if line[pos].isspace():
                    pos += 1
                    continue

                token = self._match_token_at_position(line, pos, line_num)
                if token:
                    tokens.append(token)
                    pos += len(token.span.text)
                else:
                    self._raise_unknown_character(text, line, pos, line_num, line_start)

            line_start += len(line) + 1

        return tokens

    def _match_token_at_position(self, line: str, pos: int, line_num: int) -> Optional[Token]:
        """Match a token at a specific position using priority order"""

        # Priority 1: Numbers (including negative numbers)
        num_match = self.number_pattern.match(line, pos)
        if num_match:
            return self._make_token("NUMBER", num_match.group(0), pos, line_num)

        # Priority 2: Symbols (longest match first)
        sym_match = self.symbol_pattern.match(line, pos)
        if sym_match:
            return self._make_token("SYMBOL", sym_match.group(0), pos, line_num)

        # Priority 3: Identifiers and keywords
        id_match = self.identifier_pattern.match(line, pos)
        if id_match:
            value = id_match.group(0)
            token_type = "KEYWORD" if value in KEYWORDS else "IDENTIFIER"
            return self._make_token(token_type, value, pos, line_num)

        return None

    def _make_token(self, token_type: str, value: str, pos: int, line_num: int) -> Token:
        span = SourceSpan(
            self.filename, line_num, pos + 1, line_num, pos + len(value) + 1, value
        )
        return Token(token_type, value, span)

    def _raise_unknown_character(self, text: str, line: str, pos: int, line_num: int, line_start: int):
        char = line[pos]
        expected = ["operator, literal, variable or parenthesis"]
        context_source = self.context_text if self.context_text is not None else text
        error = make_parse_error(
            message=f"Unknown character '{char}'",
            location=line_start + pos,
            line=line_num,
            column=pos + 1,
            expected=expected,
            got=f"'{char}'",
            context=get_context_lines(context_source, line_num, pos + 1),
            suggestions=generate_suggestions(f"'{char}'", expected),
            filename=self.filename
        )
        raise BVExprTokenizerError.from_dict(error)


# ============================================================================
# GRAMMAR
# ============================================================================

def _symbol(text: str) -> Regex:
    """Exact symbol that refuses to match the front of a longer symbol"""
    longer = sorted(s[len(text):] for s in SYMBOLS if s != text and s.startswith(text))
    pattern = re.escape(text)
    if longer:
        pattern += "(?!" + "|".join(re.escape(rest) for rest in longer) + ")"
    if text == "-":
        # '-' directly before a digit is part of a signed literal
        pattern += "(?![0-9])"
    return Regex(pattern).set_name(f"'{text}'")


def _keywords(words) -> MatchFirst:
    return MatchFirst([Keyword(word) for word in words])


def _operator(table: Dict[str, Enum]) -> MatchFirst:
    """Match any spelling in an operator table and produce its tag"""
    alternatives = [Keyword(s) if s.isalpha() else _symbol(s) for s in table]
    return MatchFirst(alternatives).set_parse_action(lambda t: table[t[0]])


def _fold_left(tokens):
    """operand (op operand)* -> left-nested BinaryExpression"""
    items = list(tokens)
    result = items[0]
    for i in range(1, len(items), 2):
        result = BinaryExpression(items[i], result, items[i + 1])
    return result


def _tier(operand, table: Dict[str, Enum], name: str):
    level = operand + ZeroOrMore(_operator(table) + operand)
    return level.set_parse_action(_fold_left).set_name(name)


def make_signed_literal(s: str, loc: int, tokens) -> SignedBitVector:
    literal, suffix = tokens[0], tokens[1]
    value = int(literal)
    if not INT64_MIN <= value <= INT64_MAX:
        raise BVExprLiteralOverflowError(literal, True, lineno(loc, s), col(loc, s))
    return SignedBitVector(SIGNED_WIDTHS[suffix], value)


def make_unsigned_literal(s: str, loc: int, tokens) -> UnsignedBitVector:
    literal, suffix = tokens[0], tokens[1]
    value = int(literal)
    if value > UINT64_MAX:
        raise BVExprLiteralOverflowError(literal, False, lineno(loc, s), col(loc, s))
    return UnsignedBitVector(UNSIGNED_WIDTHS[suffix], value)


class BVExprGrammar:
    """BVExpr grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_grammar()

    def _setup_grammar(self):
        """Build the cascade from the loosest tier down to atoms"""

        # Forward declarations for recursive structures
        expression = Forward().set_name("expression")
        unary_expr = Forward().set_name("unary expression")

        colon = Suppress(_symbol(":"))
        lparen = Suppress(_symbol("("))
        rparen = Suppress(_symbol(")"))

        # A keyword is never an identifier: `true:bool` and `AND:bool` are errors
        reserved = _keywords(sorted(KEYWORDS))
        identifier = (~reserved + Regex(IDENTIFIER_PATTERN)).set_name("identifier")

        type_keyword = _keywords(VARIABLE_TYPES).set_name("type")
        signed_suffix = _keywords(SIGNED_WIDTHS).set_name("signed width")
        unsigned_suffix = _keywords(UNSIGNED_WIDTHS).set_name("unsigned width")

        # Atoms (E7), first match wins
        boolean_literal = (Keyword("true") | Keyword("false")).set_parse_action(
            lambda t: BooleanLiteral(t[0] == "true")
        )
        signed_literal = (
            Regex(r'-?[0-9]+') + colon + signed_suffix
        ).set_parse_action(make_signed_literal)
        unsigned_literal = (
            Regex(r'[0-9]+') + colon + unsigned_suffix
        ).set_parse_action(make_unsigned_literal)
        variable = (identifier + colon + type_keyword).set_parse_action(
            lambda t: VariableMapping(t[0], t[1])
        )
        # Parentheses only group; no node is produced for them
        parenthesized = lparen + expression + rparen

        atom = (
            boolean_literal |
            signed_literal |
            unsigned_literal |
            variable |
            parenthesized
        ).set_name("atom")

        # Unary (E6), right-recursive so `- - x` nests
        prefixed = (_operator(UNARY_OPERATORS) + unary_expr).set_parse_action(
            lambda t: UnaryExpression(t[0], t[1])
        )
        unary_expr <<= prefixed | atom

        # Binary tiers, tightest first: E5 relational ... E1 word logical
        relational = _tier(unary_expr, TIER5_OPERATORS, "relational expression")
        additive = _tier(relational, TIER4_OPERATORS, "additive expression")
        bitwise = _tier(additive, TIER3_OPERATORS, "bitwise expression")
        symbolic_logical = _tier(bitwise, TIER2_OPERATORS, "symbolic logical expression")
        expression <<= _tier(symbolic_logical, TIER1_OPERATORS, "logical expression")

        # Columns must line up with the tokenizer's
        expression.parse_with_tabs()

        if self.debug:
            for element in (atom, unary_expr, relational, additive, bitwise, symbolic_logical):
                element.set_debug()

        # Store the main parsers
        self.expression = expression
        self.unary_expr = unary_expr
        self.atom = atom
        self.identifier = identifier
        self.tiers = (expression, symbolic_logical, bitwise, additive, relational)

    def parse(self, text: str) -> Expression:
        """Run the grammar over the whole text; pyparsing errors propagate"""
        result = self.expression.parse_string(text, parse_all=True)
        return result[0]


# ============================================================================
# PARSER
# ============================================================================

def _strip_comment(line: str) -> str:
    """Drop a trailing `#` or `//` comment"""
    cut = len(line)
    for marker in ('#', '//'):
        index = line.find(marker)
        if index != -1:
            cut = min(cut, index)
    return line[:cut]


class BVExprParser:
    """Main BVExpr parser combining tokenizer, input guards and grammar"""

    def __init__(self, debug: bool = False, max_depth: Optional[int] = None,
                 max_length: Optional[int] = None):
        self.debug = debug
        self.max_depth = max_depth
        self.max_length = max_length
        self.grammar = BVExprGrammar(debug)

    def parse_expression(self, text: str, filename: str = "<input>") -> Expression:
        """Parse a single expression"""
        return self._parse(text, filename)

    def parse_file(self, filepath: str) -> List[Expression]:
        """Parse a constraint file holding one expression per non-blank line"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()

        expressions = []
        for line_num, line in enumerate(content.split('\n'), 1):
            code = _strip_comment(line)
            if not code.strip():
                continue
            # Pad with newlines so every reported line number is the file's own
            padded = '\n' * (line_num - 1) + code
            expressions.append(self._parse(padded, str(filepath), context_text=content))

        if self.debug:
            print(f"Parsed {len(expressions)} expressions from {filepath}")
        return expressions

    def tokenize(self, text: str, filename: str = "<input>") -> List[Token]:
        """Tokenize expression text"""
        return BVExprTokenizer(filename).tokenize(text)

    def _parse(self, text: str, filename: str, context_text: Optional[str] = None) -> Expression:
        tokens = BVExprTokenizer(filename, context_text).tokenize(text)
        if self.debug:
            print(f"Tokenized {filename}: {' '.join(str(token) for token in tokens)}")

        check_input_limits(text.strip(), tokens, self.max_length, self.max_depth)
        depth = nesting_depth(tokens)

        try:
            with recursion_headroom(depth):
                expr = self.grammar.parse(text)
        except ParseException as e:
            handler = BVExprErrorHandler(
                context_text if context_text is not None else text, filename, tokens
            )
            raise handler.enhance_parse_exception(e) from None
        except RecursionError:
            raise BVExprLimitError(
                "Expression is nested too deeply for the interpreter stack",
                self.max_depth or 0, depth
            ) from None

        if self.debug:
            print(f"Parsed {filename}: {format_expression(expr)}")
        return expr


# Factory functions for creating parsers
def create_parser(debug: bool = False, max_depth: Optional[int] = None,
                  max_length: Optional[int] = None) -> BVExprParser:
    """Create a BVExpr parser; limits are off unless given"""
    return BVExprParser(debug=debug, max_depth=max_depth, max_length=max_length)


def create_debug_parser() -> BVExprParser:
    """Create a BVExpr parser with debug enabled"""
    return BVExprParser(debug=True)


_default_parser: Optional[BVExprParser] = None


def parse_expression(text: str, filename: str = "<input>") -> Expression:
    """Parse one expression with a shared default parser"""
    global _default_parser
    if _default_parser is None:
        _default_parser = create_parser()
    return _default_parser.parse_expression(text, filename)


# Utility functions for working with the AST
def pretty_print_expression(expr: Expression, indent: int = 0) -> str:
    """Pretty print an expression tree for debugging"""
    result = "  " * indent
    if isinstance(expr, BinaryExpression):
        result += f"BinaryExpression({expr.op.name})\n"
        result += pretty_print_expression(expr.left, indent + 1)
        result += pretty_print_expression(expr.right, indent + 1)
    elif isinstance(expr, UnaryExpression):
        result += f"UnaryExpression({expr.op.name})\n"
        result += pretty_print_expression(expr.e, indent + 1)
    elif isinstance(expr, LEAF_TYPES):
        result += f"{type(expr).__name__}({format_expression(expr)})\n"
    else:
        raise TypeError(f"Not an expression node: {expr!r}")
    return result


def expression_to_dict(expr: Expression) -> Dict[str, Any]:
    """Convert an expression tree to plain dictionaries (JSON-ready)"""
    result: Dict[str, Any] = {"type": type(expr).__name__}
    for f in fields(expr):
        value = getattr(expr, f.name)
        if isinstance(value, Enum):
            result[f.name] = value.name
        elif isinstance(value, LEAF_TYPES + (UnaryExpression, BinaryExpression)):
            result[f.name] = expression_to_dict(value)
        else:
            result[f.name] = value
    return result
