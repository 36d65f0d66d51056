"""
amlang - Interpreter front end
Runs the phases (normalize, lex, parse, evaluate) in sequence and provides
the Session object that hosts (CLI, REPL) talk to.
"""

import json
import sys
from dataclasses import dataclass, field
from typing import List, Literal, Optional

from .normalize import normalize_unicode_to_ascii
from .lexer import tokenize
from .parser import Parser, ParseError, DEFAULT_MAX_PARSE_DEPTH
from .ast_nodes import ASTNode, AlgorithmDef
from .evaluator import (
    Env, EvalError, Evaluator, Registry, Value, format_value,
    DEFAULT_MAX_EVAL_DEPTH
)


class InterpreterError(Exception):
    """Unified error wrapper for the batch entry points."""
    pass


@dataclass
class Program:
    """Everything parsed out of one source text."""
    definitions: List[AlgorithmDef] = field(default_factory=list)
    expression: Optional[ASTNode] = None
    source: str = ""


def _make_logger(debug: bool):
    def log(msg):
        if debug:
            print(f"[amlang] {msg}", file=sys.stderr)
    return log


def _front_end(source: str, log, max_parse_depth: int) -> Parser:
    log("Phase 1: Normalization")
    text = normalize_unicode_to_ascii(source)

    log("Phase 2: Lexical analysis")
    tokens = tokenize(text)
    log(f"  {len(tokens)-1} tokens produced")

    log("Phase 3: Parsing")
    return Parser(tokens, text, max_parse_depth)


def parse_source(
    source: str,
    debug: bool = False,
    max_parse_depth: int = DEFAULT_MAX_PARSE_DEPTH,
) -> Program:
    """
    Parse amlang source text into its definitions and optional trailing
    expression.

    Raises
    ------
    InterpreterError carrying the caret diagnostic on any parse failure
    """
    log = _make_logger(debug)
    parser = _front_end(source, log, max_parse_depth)
    try:
        defs, expr = parser.parse_program()
    except ParseError as e:
        raise InterpreterError(str(e)) from e

    log(f"  {len(defs)} algorithm definition(s)"
        + (", 1 expression" if expr is not None else ""))
    return Program(definitions=defs, expression=expr, source=source)


def parse_file(
    path: str,
    debug: bool = False,
    max_parse_depth: int = DEFAULT_MAX_PARSE_DEPTH,
) -> Program:
    """Read an amlang file and parse it."""
    with open(path, "r", encoding="utf-8") as f:
        source = f.read()
    return parse_source(source, debug=debug, max_parse_depth=max_parse_depth)


def run_source(
    source: str,
    call: Optional[str] = None,
    debug: bool = False,
    max_parse_depth: int = DEFAULT_MAX_PARSE_DEPTH,
    max_eval_depth: int = DEFAULT_MAX_EVAL_DEPTH,
) -> Optional[Value]:
    """
    Parse `source`, register its definitions and evaluate either `call`
    (an expression string) or the source's trailing expression.

    Returns None when there is nothing to evaluate.

    Raises
    ------
    InterpreterError on any parse or runtime failure
    """
    program = parse_source(source, debug=debug, max_parse_depth=max_parse_depth)
    session = Session(Registry(program.definitions), debug=debug,
                      max_parse_depth=max_parse_depth, max_eval_depth=max_eval_depth)
    if call is not None:
        result = session.evaluate(call)
    elif program.expression is not None:
        result = session.evaluate_ast(program.expression)
    else:
        return None
    if result.status == 'error':
        raise InterpreterError(result.format_error())
    return result.value


# ── Host-facing session ───────────────────────────────────────────────────────

@dataclass
class ExecutionResult:
    """The structured outcome of one define / evaluate / execute request."""
    status: Literal['success', 'error']
    value: Optional[Value] = None
    definitions: List[AlgorithmDef] = field(default_factory=list)
    error_message: Optional[str] = None
    phase: Optional[Literal['parse', 'runtime']] = None

    @property
    def has_value(self) -> bool:
        return self.status == 'success' and self.value is not None

    def format_value(self) -> str:
        return f"= {format_value(self.value)}" if self.has_value else ""

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        if self.phase == 'runtime':
            return f"runtime error: {self.error_message}"
        return str(self.error_message)


class Session:
    """
    Owns a Registry across many requests (REPL turns, a batch run).

    Every request returns an ExecutionResult; parse and runtime failures
    never escape as exceptions. The registry only changes between
    evaluations, and each evaluation sees a snapshot of it.
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        debug: bool = False,
        max_parse_depth: int = DEFAULT_MAX_PARSE_DEPTH,
        max_eval_depth: int = DEFAULT_MAX_EVAL_DEPTH,
    ):
        self.registry = registry if registry is not None else Registry()
        self.max_parse_depth = max_parse_depth
        self.max_eval_depth = max_eval_depth
        self._log = _make_logger(debug)

    # ------------------------------------------------------------------ requests

    def define(self, source: str) -> ExecutionResult:
        """Parse exactly one `@Name(params) = body` and register it."""
        parser = _front_end(source, self._log, self.max_parse_depth)
        try:
            defn = parser.parse_algorithm_definition()
        except ParseError as e:
            return ExecutionResult('error', error_message=str(e), phase='parse')
        self._upsert(defn)
        return ExecutionResult('success', definitions=[defn])

    def evaluate(self, source: str) -> ExecutionResult:
        """Parse and evaluate one free-standing expression."""
        parser = _front_end(source, self._log, self.max_parse_depth)
        try:
            expr = parser.parse_expression()
        except ParseError as e:
            return ExecutionResult('error', error_message=str(e), phase='parse')
        return self.evaluate_ast(expr)

    def execute(self, source: str) -> ExecutionResult:
        """Register any definitions in `source`, then evaluate its expression."""
        parser = _front_end(source, self._log, self.max_parse_depth)
        try:
            defs, expr = parser.parse_program()
        except ParseError as e:
            return ExecutionResult('error', error_message=str(e), phase='parse')

        for defn in defs:
            self._upsert(defn)
        if expr is None:
            return ExecutionResult('success', definitions=defs)

        result = self.evaluate_ast(expr)
        result.definitions = defs
        return result

    def evaluate_ast(self, expr: ASTNode, env: Optional[Env] = None) -> ExecutionResult:
        self._log(f"Phase 4: Evaluation (registry v{self.registry.version}, "
                  f"{len(self.registry)} algorithm(s))")
        evaluator = Evaluator(self.registry.snapshot(), self.max_eval_depth)
        try:
            value = evaluator.evaluate(expr, env if env is not None else Env.base())
        except EvalError as e:
            return ExecutionResult('error', error_message=e.message, phase='runtime')
        self._log(f"  result: {format_value(value)}")
        return ExecutionResult('success', value=value)

    # ------------------------------------------------------------------ registry

    def list(self) -> List[AlgorithmDef]:
        return self.registry.list()

    def clear(self) -> None:
        self.registry.clear()

    def _upsert(self, defn: AlgorithmDef) -> None:
        replaced = self.registry.upsert(defn)
        self._log(f"  {'redefined' if replaced else 'defined'} {defn.signature}")


# ── AST serialization (for --ast-format json) ────────────────────────────────

def program_to_json(program: Program) -> str:
    payload = {
        "definitions": [_node_to_dict(d) for d in program.definitions],
        "expression": _node_to_dict(program.expression),
    }
    return json.dumps(payload, indent=2)


def _node_to_dict(node):
    if node is None:
        return None
    if isinstance(node, (list, tuple)):
        return [_node_to_dict(n) for n in node]
    if not hasattr(node, '__dataclass_fields__'):
        return node  # primitive
    d = {"_type": type(node).__name__}
    for field_name in node.__dataclass_fields__:
        val = getattr(node, field_name)
        d[field_name] = _node_to_dict(val)
    return d
