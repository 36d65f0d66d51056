"""
amlang - Recursive Descent Parser
Converts a token stream into an immutable expression tree.

Precedence, lowest first:

    Expr    := Case | Pipe
    Case    := '[' Arm {';' Arm} ']'
    Arm     := ('_' | Or) ('?' Expr ['|' Expr] | '->' Expr)
    Pipe    := Or {'>>' Or}
    Or      := And {'||' And}
    And     := Cmp {'&&' Cmp}
    Cmp     := Add [('==' | '=' | '!=' | '<=' | '>=' | '<' | '>') Add]
    Add     := Mul {('+' | '-') Mul}
    Mul     := Pow {('*' | '/' | '%') Pow}
    Pow     := Unary ['^' Pow]
    Unary   := ('-' | '!') Unary | Postfix
    Postfix := Primary {'(' [Expr {',' Expr}] ')'}
    Primary := Number | Bool | Ident | '@' Ident | '(' Expr ')'
    AlgDef  := '@' Ident '(' [Ident {',' Ident}] ')' '=' Expr

The first grammar violation aborts the parse with a ParseError whose
text is a caret diagnostic pointing into the source.
"""

from typing import List, Optional, Tuple
from .lexer import Token, TokenType
from .ast_nodes import (
    ASTNode, NumberNode, BoolNode, IdentifierNode, CallNode,
    UnaryOpNode, BinaryOpNode, CaseNode, PipeNode, AlgorithmDef
)

DEFAULT_MAX_PARSE_DEPTH = 48


def locate(source: str, offset: int) -> Tuple[int, int]:
    """1-based (line, column) of a source offset."""
    line = source.count('\n', 0, offset) + 1
    line_start = source.rfind('\n', 0, offset) + 1
    return line, offset - line_start + 1


def format_diagnostic(source: str, offset: int, message: str) -> str:
    line, col = locate(source, offset)
    line_start = source.rfind('\n', 0, offset) + 1
    line_end = source.find('\n', line_start)
    if line_end < 0:
        line_end = len(source)
    line_text = source[line_start:line_end].rstrip('\r')

    gutter = f"{line:>3} | "
    # The caret line opens with " | " and pads out to the source column.
    caret_pad = ' ' * (len(gutter) - 3 + col - 1)
    return (
        f"error: {message} \n"
        f" --> input:{line}:{col}\n"
        f"{gutter}{line_text}\n"
        f" | {caret_pad}^ here"
    )


class ParseError(Exception):
    def __init__(self, message: str, offset: int, source: str = ""):
        super().__init__(format_diagnostic(source, offset, message))
        self.message = message
        self.offset = offset
        self.line, self.column = locate(source, offset)


_COMPARISONS = {
    TokenType.EQ:    '==',
    TokenType.EQUAL: '==',
    TokenType.NEQ:   '!=',
    TokenType.LTE:   '<=',
    TokenType.GTE:   '>=',
    TokenType.LT:    '<',
    TokenType.GT:    '>',
}

_ADDITIVE = {TokenType.PLUS: '+', TokenType.MINUS: '-'}
_MULTIPLICATIVE = {TokenType.STAR: '*', TokenType.SLASH: '/', TokenType.PERCENT: '%'}
_PREFIX = {TokenType.MINUS: '-', TokenType.BANG: '!'}


class Parser:
    def __init__(self, tokens: List[Token], source: str = "",
                 max_depth: int = DEFAULT_MAX_PARSE_DEPTH):
        if not tokens or tokens[-1].type != TokenType.EOF:
            end = tokens[-1].end if tokens else 0
            tokens = list(tokens) + [Token(TokenType.EOF, '', end, end)]
        self._tokens = tokens
        self._source = source
        self._pos = 0
        self._depth = 0
        self._max_depth = max_depth

    # ------------------------------------------------------------------ helpers

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _type_at(self, index: int) -> TokenType:
        if index < len(self._tokens):
            return self._tokens[index].type
        return TokenType.EOF

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.type != TokenType.EOF:
            self._pos += 1
        return tok

    def _match(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _error(self, message: str, tok: Token) -> ParseError:
        return ParseError(message, tok.start, self._source)

    def _unexpected(self, what: str) -> ParseError:
        tok = self._peek()
        if tok.type == TokenType.ERROR:
            return self._error(tok.value, tok)
        return self._error(f"expected {what} but got {_describe(tok)}", tok)

    def _expect(self, ttype: TokenType, what: str) -> Token:
        if self._peek().type != ttype:
            raise self._unexpected(what)
        return self._advance()

    def _expect_end(self) -> None:
        if not self._match(TokenType.EOF):
            raise self._unexpected("end of input")

    def _nested(self, parse_fn):
        self._depth += 1
        try:
            if self._depth > self._max_depth:
                raise self._error("expression nested too deeply", self._peek())
            return parse_fn()
        finally:
            self._depth -= 1

    def _guard(self, parse_fn):
        try:
            return parse_fn()
        except RecursionError:
            raise self._error("expression nested too deeply", self._peek()) from None

    # ------------------------------------------------------------------ public

    def parse_expression(self) -> ASTNode:
        def run():
            expr = self._parse_expression()
            self._expect_end()
            return expr
        return self._guard(run)

    def parse_algorithm_definition(self) -> AlgorithmDef:
        def run():
            defn = self._parse_definition()
            self._expect_end()
            return defn
        return self._guard(run)

    def parse_program(self) -> Tuple[List[AlgorithmDef], Optional[ASTNode]]:
        """Definitions first, then at most one free-standing expression."""
        def run():
            defs = []
            while self._at_definition():
                defs.append(self._parse_definition())
            expr = None
            if not self._match(TokenType.EOF):
                expr = self._parse_expression()
                self._expect_end()
            return defs, expr
        return self._guard(run)

    # ------------------------------------------------------------------ definitions

    def _at_definition(self) -> bool:
        """'@' Ident '(' ... ')' '=' ahead, with the parentheses balanced."""
        i = self._pos
        if (self._type_at(i) != TokenType.AT
                or self._type_at(i + 1) != TokenType.IDENTIFIER
                or self._type_at(i + 2) != TokenType.LPAREN):
            return False
        depth = 0
        i += 2
        while self._type_at(i) != TokenType.EOF:
            ttype = self._type_at(i)
            if ttype == TokenType.LPAREN:
                depth += 1
            elif ttype == TokenType.RPAREN:
                depth -= 1
                if depth == 0:
                    return self._type_at(i + 1) == TokenType.EQUAL
            i += 1
        return False

    def _parse_definition(self) -> AlgorithmDef:
        self._expect(TokenType.AT, "'@' to start an algorithm definition")
        name = self._expect(TokenType.IDENTIFIER, "algorithm name after '@'").value
        self._expect(TokenType.LPAREN, "'(' to open the parameter list")

        params: List[str] = []
        if self._match(TokenType.IDENTIFIER):
            while True:
                tok = self._expect(TokenType.IDENTIFIER, "parameter name")
                if tok.value in params:
                    raise self._error(
                        f"duplicate parameter '{tok.value}' in definition of {name}", tok
                    )
                params.append(tok.value)
                if not self._match(TokenType.COMMA):
                    break
                self._advance()

        self._expect(TokenType.RPAREN, "')' to close the parameter list")
        self._expect(TokenType.EQUAL, "'=' after the parameter list")
        body = self._parse_expression()
        return AlgorithmDef(name=name, params=tuple(params), body=body)

    # ------------------------------------------------------------------ expressions

    def _parse_expression(self) -> ASTNode:
        return self._nested(self._parse_case_or_pipe)

    def _parse_case_or_pipe(self) -> ASTNode:
        if self._match(TokenType.LBRACKET):
            return self._parse_case()
        return self._parse_pipe()

    def _parse_case(self) -> CaseNode:
        self._expect(TokenType.LBRACKET, "'[' to open a case block")
        arms = []
        default = None

        while True:
            if self._match(TokenType.UNDERSCORE):
                self._advance()
                if not self._match(TokenType.QMARK, TokenType.ARROW):
                    raise self._unexpected("'?' or '->' after '_' in case arm")
                self._advance()
                default = self._parse_expression()
            else:
                cond = self._parse_or()
                if self._match(TokenType.QMARK):
                    self._advance()
                    then_expr = self._parse_expression()
                    arms.append((cond, then_expr))
                    # cond ? then | else  ==>  cond -> then; !cond -> else
                    if self._match(TokenType.BAR):
                        self._advance()
                        else_expr = self._parse_expression()
                        arms.append((UnaryOpNode(op='!', operand=cond), else_expr))
                elif self._match(TokenType.ARROW):
                    self._advance()
                    arms.append((cond, self._parse_expression()))
                else:
                    raise self._unexpected("'?' or '->' after condition in case arm")

            if not self._match(TokenType.SEMICOLON):
                break
            self._advance()

        close_tok = self._expect(TokenType.RBRACKET, "']' to close the case block")
        if default is None:
            raise self._error("case block missing default '_' arm", close_tok)
        return CaseNode(arms=tuple(arms), default=default)

    def _parse_pipe(self) -> ASTNode:
        head = self._parse_or()
        steps = []
        while self._match(TokenType.PIPE):
            self._advance()
            steps.append(self._parse_or())
        if not steps:
            return head
        return PipeNode(head=head, steps=tuple(steps))

    def _parse_or(self) -> ASTNode:
        left = self._parse_and()
        while self._match(TokenType.OR):
            self._advance()
            left = BinaryOpNode(left=left, op='||', right=self._parse_and())
        return left

    def _parse_and(self) -> ASTNode:
        left = self._parse_comparison()
        while self._match(TokenType.AND):
            self._advance()
            left = BinaryOpNode(left=left, op='&&', right=self._parse_comparison())
        return left

    def _parse_comparison(self) -> ASTNode:
        left = self._parse_additive()
        # At most one comparison: a < b < c is rejected by the caller.
        if self._peek().type in _COMPARISONS:
            op_tok = self._advance()
            right = self._parse_additive()
            left = BinaryOpNode(left=left, op=_COMPARISONS[op_tok.type], right=right)
        return left

    def _parse_additive(self) -> ASTNode:
        left = self._parse_multiplicative()
        while self._peek().type in _ADDITIVE:
            op_tok = self._advance()
            right = self._parse_multiplicative()
            left = BinaryOpNode(left=left, op=_ADDITIVE[op_tok.type], right=right)
        return left

    def _parse_multiplicative(self) -> ASTNode:
        left = self._parse_power()
        while self._peek().type in _MULTIPLICATIVE:
            op_tok = self._advance()
            right = self._parse_power()
            left = BinaryOpNode(left=left, op=_MULTIPLICATIVE[op_tok.type], right=right)
        return left

    def _parse_power(self) -> ASTNode:
        # Right-associative. The left operand is a full Unary, so -2^2 is (-2)^2.
        base = self._parse_unary()
        if self._match(TokenType.CARET):
            self._advance()
            exponent = self._nested(self._parse_power)
            return BinaryOpNode(left=base, op='^', right=exponent)
        return base

    def _parse_unary(self) -> ASTNode:
        if self._peek().type in _PREFIX:
            op_tok = self._advance()
            operand = self._nested(self._parse_unary)
            return UnaryOpNode(op=_PREFIX[op_tok.type], operand=operand)
        return self._parse_postfix()

    def _parse_postfix(self) -> ASTNode:
        node = self._parse_primary()

        while self._match(TokenType.LPAREN):
            lparen = self._peek()
            if not (isinstance(node, IdentifierNode)
                    or (isinstance(node, CallNode) and node.is_alg)):
                raise self._error("cannot call non-name expression", lparen)
            self._advance()

            args = []
            if not self._match(TokenType.RPAREN):
                args.append(self._parse_expression())
                while self._match(TokenType.COMMA):
                    self._advance()
                    args.append(self._parse_expression())
            self._expect(TokenType.RPAREN, "')' to close the argument list")

            node = CallNode(name=node.name, args=tuple(args), is_alg=not isinstance(node, IdentifierNode))

        return node

    def _parse_primary(self) -> ASTNode:
        tok = self._peek()

        if tok.type == TokenType.NUMBER:
            self._advance()
            try:
                return NumberNode(value=float(tok.value))
            except ValueError:
                raise self._error(f"bad number literal: {tok.value}", tok) from None

        if tok.type == TokenType.BOOL:
            self._advance()
            return BoolNode(value=tok.value == 'true')

        if tok.type == TokenType.IDENTIFIER:
            self._advance()
            return IdentifierNode(name=tok.value)

        if tok.type == TokenType.AT:
            self._advance()
            name_tok = self._expect(TokenType.IDENTIFIER, "identifier after '@'")
            return CallNode(name=name_tok.value, args=(), is_alg=True)

        if tok.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "')'")
            return expr

        raise self._unexpected("an expression")


def _describe(tok: Token) -> str:
    if tok.type == TokenType.EOF:
        return "end of input"
    return f"'{tok.value}'"


# ── Module-level entry points ─────────────────────────────────────────────────

def parse_expression(tokens: List[Token], source: str = "",
                     max_depth: int = DEFAULT_MAX_PARSE_DEPTH) -> ASTNode:
    return Parser(tokens, source, max_depth).parse_expression()


def parse_algorithm_definition(tokens: List[Token], source: str = "",
                               max_depth: int = DEFAULT_MAX_PARSE_DEPTH) -> AlgorithmDef:
    return Parser(tokens, source, max_depth).parse_algorithm_definition()


def parse_program(tokens: List[Token], source: str = "",
                  max_depth: int = DEFAULT_MAX_PARSE_DEPTH):
    return Parser(tokens, source, max_depth).parse_program()
