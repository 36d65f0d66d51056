"""
amlang - Source normalization
Rewrites the Unicode math symbols people paste into programs to the ASCII
operators the lexer understands.
"""

_REPLACEMENTS = {
    '\u00a0': ' ', # no-break space
    '∧': '&&',     # logical and
    '∨': '||',     # logical or
    '¬': '!',      # not sign
    '≠': '!=',     # not equal to
    '≤': '<=',
    '≥': '>=',
    '→': '->',     # rightwards arrow
    '⇒': '->',     # rightwards double arrow
    '−': '-',      # minus sign
    '×': '*',      # multiplication sign
    '∗': '*',      # asterisk operator
    '÷': '/',      # division sign
    '∞': 'inf',
    '≡': '==',     # identical to
}

_TABLE = str.maketrans(_REPLACEMENTS)


def normalize_unicode_to_ascii(text: str) -> str:
    return text.translate(_TABLE)
