"""
amlang - a small language of named algorithms over numbers and booleans,
with case expressions and `>>` pipelines.
"""

from .lexer import Token, TokenType, tokenize
from .parser import (
    Parser, ParseError, parse_expression, parse_algorithm_definition, parse_program
)
from .ast_nodes import AlgorithmDef
from .evaluator import Env, EvalError, Registry, evaluate, format_value
from .normalize import normalize_unicode_to_ascii
from .interpreter import ExecutionResult, InterpreterError, Session

__version__ = "0.1.0"
