import re
from dataclasses import dataclass
from typing import Optional

from prereq_ast import MAX_DEPTH, NONE, AndNode, CourseNode, NoneNode, OrNode, PrereqAst

# Token kinds
ID = "ID"
AND = "AND"
OR = "OR"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
NONE_KW = "NONE"
EOF = "EOF"

KEYWORDS = {"AND": AND, "OR": OR, "NONE": NONE_KW}

# Maximal run of id characters starting at a given offset
WORD_RE = re.compile(r'[A-Za-z0-9_-]+')
WHITESPACE = " \t\n\r\f\v"

# Operator precedence used by the stringifier: leaves bind tightest.
PRECEDENCE_OR = 1
PRECEDENCE_AND = 2
PRECEDENCE_LEAF = 3


class PrereqParserError(ValueError):
    """Syntax error with the 0-based offset of the offending character or token."""

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at position {position}")
        self.message = message
        self.position = position


@dataclass(frozen=True)
class Token:
    kind: str
    lexeme: Optional[str]
    start: int
    end: int


class Lexer:
    """
    Single forward scan over the expression. next_token() keeps returning
    EOF once the input is exhausted.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def next_token(self) -> Token:
        text = self.text
        n = len(text)
        while self.pos < n and text[self.pos] in WHITESPACE:
            self.pos += 1
        if self.pos >= n:
            return Token(EOF, None, n, n)

        start = self.pos
        ch = text[start]
        if ch == "(":
            self.pos += 1
            return Token(LPAREN, ch, start, self.pos)
        if ch == ")":
            self.pos += 1
            return Token(RPAREN, ch, start, self.pos)

        m = WORD_RE.match(text, start)
        if not m:
            raise PrereqParserError(f'Unexpected character "{ch}"', start)
        self.pos = m.end()
        word = m.group(0)
        kind = KEYWORDS.get(word.upper(), ID)
        return Token(kind, word, start, self.pos)


class _Parser:
    """
    Productions return (node, depth). Leaves have depth 0; both the
    operator depth and the parenthesis nesting are capped at MAX_DEPTH.
    """

    def __init__(self, text: str):
        self.lexer = Lexer(text)
        self.current = self.lexer.next_token()
        self.nesting = 0

    def _advance(self) -> Token:
        tok = self.current
        self.current = self.lexer.next_token()
        return tok

    def _expect(self, kind: str) -> Token:
        if self.current.kind != kind:
            raise self._unexpected()
        return self._advance()

    def _unexpected(self) -> PrereqParserError:
        return PrereqParserError(f"Unexpected token {self.current.kind}", self.current.start)

    def parse(self) -> PrereqAst:
        node, _ = self._parse_or()
        self._expect(EOF)
        return node

    @staticmethod
    def _combine(node_cls, left, right, op: Token):
        depth = max(left[1], right[1]) + 1
        if depth > MAX_DEPTH:
            raise PrereqParserError("Expression nested too deeply", op.start)
        return node_cls(left[0], right[0]), depth

    def _parse_or(self):
        node = self._parse_and()
        while self.current.kind == OR:
            op = self._advance()
            node = self._combine(OrNode, node, self._parse_and(), op)
        return node

    def _parse_and(self):
        node = self._parse_primary()
        while self.current.kind == AND:
            op = self._advance()
            node = self._combine(AndNode, node, self._parse_primary(), op)
        return node

    def _parse_primary(self):
        kind = self.current.kind
        if kind == NONE_KW:
            self._advance()
            return NONE, 0
        if kind == ID:
            return CourseNode(self._advance().lexeme), 0
        if kind == LPAREN:
            paren = self._advance()
            self.nesting += 1
            if self.nesting > MAX_DEPTH:
                raise PrereqParserError("Expression nested too deeply", paren.start)
            node = self._parse_or()
            self._expect(RPAREN)
            self.nesting -= 1
            return node
        raise self._unexpected()


def parse_expression(expression: str) -> PrereqAst:
    """
    Parses a prerequisite expression into an AST.

    Grammar (AND binds tighter than OR, both left-associative):
      or      := and (OR and)*
      and     := primary (AND primary)*
      primary := NONE | ID | '(' or ')'

    Keywords are case-insensitive; course ids keep their case.
    Empty or whitespace-only input is NONE.
    Raises PrereqParserError on malformed input, including operator or
    parenthesis nesting deeper than MAX_DEPTH.
    """
    if expression is None or not str(expression).strip(WHITESPACE):
        return NONE
    return _Parser(str(expression)).parse()


def _precedence(ast: PrereqAst) -> int:
    if isinstance(ast, OrNode):
        return PRECEDENCE_OR
    if isinstance(ast, AndNode):
        return PRECEDENCE_AND
    return PRECEDENCE_LEAF


def _stringify(ast: PrereqAst, context: int) -> str:
    if isinstance(ast, NoneNode):
        text = "NONE"
    elif isinstance(ast, CourseNode):
        text = ast.id
    # Right operands of the same operator keep their parentheses so the
    # left-associative parser rebuilds the same tree.
    elif isinstance(ast, AndNode):
        text = f"{_stringify(ast.left, PRECEDENCE_AND)} AND {_stringify(ast.right, PRECEDENCE_AND + 1)}"
    elif isinstance(ast, OrNode):
        text = f"{_stringify(ast.left, PRECEDENCE_OR)} OR {_stringify(ast.right, PRECEDENCE_OR + 1)}"
    else:
        raise TypeError(f"Not a prerequisite AST node: {ast!r}")
    if _precedence(ast) < context:
        return f"({text})"
    return text


def stringify_ast(ast: PrereqAst) -> str:
    """
    Canonical text for an AST, parenthesized only where precedence demands:
      "(CS100 OR CS101) AND CS200", "CS100 OR CS101 AND CS200".
    """
    return _stringify(ast, PRECEDENCE_OR)
