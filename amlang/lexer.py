"""
amlang - Lexer
Tokenizes normalized amlang source into a flat token stream.

The lexer never raises: input it cannot make sense of becomes an
ERROR token carrying the message, and the parser reports it once it
needs a real token at that position.
"""

from dataclasses import dataclass
from typing import List
from enum import Enum, auto


class TokenType(Enum):
    # Literals
    NUMBER     = auto()
    IDENTIFIER = auto()
    BOOL       = auto()   # true / false
    STRING     = auto()
    # Structure
    AT         = auto()   # @
    LPAREN     = auto()   # (
    RPAREN     = auto()   # )
    LBRACKET   = auto()   # [
    RBRACKET   = auto()   # ]
    COMMA      = auto()   # ,
    SEMICOLON  = auto()   # ;
    UNDERSCORE = auto()   # _
    EQUAL      = auto()   # =
    ARROW      = auto()   # ->
    BAR        = auto()   # |
    QMARK      = auto()   # ?
    PIPE       = auto()   # >>
    # Logical
    OR         = auto()   # ||
    AND        = auto()   # &&
    BANG       = auto()   # !
    # Arithmetic
    PLUS       = auto()   # +
    MINUS      = auto()   # -
    STAR       = auto()   # *
    SLASH      = auto()   # /
    PERCENT    = auto()   # %
    CARET      = auto()   # ^
    # Comparisons
    EQ         = auto()   # ==
    NEQ        = auto()   # !=
    LTE        = auto()   # <=
    GTE        = auto()   # >=
    LT         = auto()   # <
    GT         = auto()   # >
    # In-band lexical error
    ERROR      = auto()
    # Sentinel
    EOF        = auto()


@dataclass(frozen=True)
class Token:
    """
    A token and its half-open span [start, end) in the source.

    Offsets are str indices (code points), not UTF-8 byte offsets. They only
    differ for non-ASCII text that survives normalization, such as an accented
    letter in a comment, and there a code point index is what puts the caret
    under the right character.
    """
    type: TokenType
    value: str
    start: int
    end: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, {self.start}..{self.end})"


_TWO_CHAR = {
    '->': TokenType.ARROW,
    '>>': TokenType.PIPE,
    '||': TokenType.OR,
    '&&': TokenType.AND,
    '==': TokenType.EQ,
    '!=': TokenType.NEQ,
    '<=': TokenType.LTE,
    '>=': TokenType.GTE,
}

_SINGLE_CHAR = {
    '@': TokenType.AT,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    ',': TokenType.COMMA,
    ';': TokenType.SEMICOLON,
    '_': TokenType.UNDERSCORE,
    '=': TokenType.EQUAL,
    '|': TokenType.BAR,
    '?': TokenType.QMARK,
    '!': TokenType.BANG,
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.STAR,
    '/': TokenType.SLASH,
    '%': TokenType.PERCENT,
    '<': TokenType.LT,
    '>': TokenType.GT,
    '^': TokenType.CARET,
}

_ESCAPES = {'\\': '\\', '"': '"', 'n': '\n', 't': '\t', 'r': '\r'}

_WHITESPACE = ' \t\n\r\x0c'
_DIGITS = '0123456789'


def _is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == '_')


def _is_ident_continue(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == '_')


def _skip_block_comment(source: str, pos: int) -> int:
    """Return the position just past a (possibly nested) /* */ comment."""
    depth = 0
    length = len(source)
    while pos < length:
        pair = source[pos:pos + 2]
        if pair == '/*':
            depth += 1
            pos += 2
        elif pair == '*/':
            depth -= 1
            pos += 2
            if depth == 0:
                return pos
        else:
            pos += 1
    return length


def _scan_string(source: str, pos: int):
    """Scan a string literal starting at the opening quote.

    Returns (token, next_pos). An unterminated literal comes back as an
    ERROR token spanning to the end of input.
    """
    start = pos
    pos += 1
    length = len(source)
    chars = []
    while pos < length:
        ch = source[pos]
        pos += 1
        if ch == '"':
            return Token(TokenType.STRING, ''.join(chars), start, pos), pos
        if ch == '\\' and pos < length:
            esc = source[pos]
            pos += 1
            chars.append(_ESCAPES.get(esc, esc))
        else:
            chars.append(ch)
    return Token(TokenType.ERROR, "unterminated string literal", start, length), length


def tokenize(source: str) -> List[Token]:
    """
    Convert normalized amlang source into a list of Tokens.

    The list always ends with an EOF token positioned at the end of the
    last real token, which is where end-of-input diagnostics point.
    """
    tokens: List[Token] = []
    pos = 0
    length = len(source)

    while pos < length:
        ch = source[pos]

        if ch in _WHITESPACE:
            pos += 1
            continue

        pair = source[pos:pos + 2]
        if pair in _TWO_CHAR:
            tokens.append(Token(_TWO_CHAR[pair], pair, pos, pos + 2))
            pos += 2
            continue

        # Comments
        if pair == '//':
            newline = source.find('\n', pos)
            pos = length if newline < 0 else newline + 1
            continue
        if pair == '/*':
            pos = _skip_block_comment(source, pos)
            continue

        if ch in _SINGLE_CHAR:
            tokens.append(Token(_SINGLE_CHAR[ch], ch, pos, pos + 1))
            pos += 1
            continue

        if ch == '"':
            tok, pos = _scan_string(source, pos)
            tokens.append(tok)
            continue

        if _is_ident_start(ch):
            start = pos
            pos += 1
            while pos < length and _is_ident_continue(source[pos]):
                pos += 1
            text = source[start:pos]
            tok_type = TokenType.BOOL if text in ('true', 'false') else TokenType.IDENTIFIER
            tokens.append(Token(tok_type, text, start, pos))
            continue

        if ch in _DIGITS:
            start = pos
            while pos < length and source[pos] in _DIGITS:
                pos += 1
            if pos < length and source[pos] == '.':
                pos += 1
                while pos < length and source[pos] in _DIGITS:
                    pos += 1
            tokens.append(Token(TokenType.NUMBER, source[start:pos], start, pos))
            continue

        tokens.append(Token(TokenType.ERROR, f"unexpected character '{ch}'", pos, pos + 1))
        pos += 1

    end = tokens[-1].end if tokens else 0
    tokens.append(Token(TokenType.EOF, '', end, end))
    return tokens
