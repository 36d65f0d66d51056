"""
amlang - Evaluator
Tree-walking interpreter over an immutable AST.

Values are plain Python floats (numbers) and bools. Every operator
checks the kind of its operands; there is no coercion between the two.

An evaluation reads a snapshot of the algorithm registry and a single
environment frame. Calling an algorithm builds a fresh frame from its
parameters, so a callee never sees its caller's bindings.
"""

import math
import sys
from collections import OrderedDict
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .ast_nodes import (
    ASTNode, NumberNode, BoolNode, IdentifierNode, CallNode,
    UnaryOpNode, BinaryOpNode, CaseNode, PipeNode, AlgorithmDef,
    format_number
)

Value = Union[float, bool]

DEFAULT_MAX_EVAL_DEPTH = 1000

# Enough Python stack for DEFAULT_MAX_EVAL_DEPTH nested algorithm calls;
# each one costs several frames (call, case arm, operator).
_STACK_FRAMES = 20000

if sys.getrecursionlimit() < _STACK_FRAMES:
    sys.setrecursionlimit(_STACK_FRAMES)

CONSTANTS = {
    'inf': math.inf,
    'NaN': math.nan,
}


class EvalError(Exception):
    """A runtime failure of the current evaluation."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ── Values ────────────────────────────────────────────────────────────────────

def kind_of(value: Value) -> str:
    return "bool" if isinstance(value, bool) else "number"


def format_value(value: Value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return format_number(value)


def _as_number(value: Value) -> float:
    if isinstance(value, bool) or not isinstance(value, float):
        raise EvalError(f"expected number, got {kind_of(value)} {format_value(value)}")
    return value


def _as_bool(value: Value) -> bool:
    if not isinstance(value, bool):
        raise EvalError(f"expected bool, got {kind_of(value)} {format_value(value)}")
    return value


def _num_eq(a: float, b: float) -> bool:
    # NaN compares equal to NaN so that NaN checks in case arms behave.
    if math.isnan(a) and math.isnan(b):
        return True
    return a == b


def _div(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _mod(a: float, b: float) -> float:
    if b == 0.0 or math.isinf(a):
        return math.nan
    return math.fmod(a, b)


def _is_odd_integer(x: float) -> bool:
    return math.isfinite(x) and x.is_integer() and int(x) % 2 == 1


def _pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        if a < 0 and _is_odd_integer(b):
            return -math.inf
        return math.inf
    except ValueError:
        # 0 ** negative is a pole; anything else here is a domain error.
        if a == 0.0 and b < 0:
            return math.copysign(math.inf, a) if _is_odd_integer(b) else math.inf
        return math.nan


def _sqrt(x: float) -> float:
    return math.sqrt(x) if x >= 0 else math.nan


BUILTINS = {
    'sqrt': _sqrt,
    'abs': abs,
}

_ARITHMETIC = {
    '+': lambda a, b: a + b,
    '-': lambda a, b: a - b,
    '*': lambda a, b: a * b,
    '/': _div,
    '%': _mod,
    '^': _pow,
}

_COMPARISONS = {
    '==': _num_eq,
    '!=': lambda a, b: not _num_eq(a, b),
    '<':  lambda a, b: a < b,
    '<=': lambda a, b: a <= b,
    '>':  lambda a, b: a > b,
    '>=': lambda a, b: a >= b,
}

_LOGICAL = {
    '&&': lambda a, b: a and b,
    '||': lambda a, b: a or b,
}


# ── Environment ───────────────────────────────────────────────────────────────

class Env:
    """Read-only bindings for one evaluation frame."""

    def __init__(self, bindings: Optional[Mapping[str, Value]] = None):
        vars_ = dict(bindings or {})
        vars_.update(CONSTANTS)
        self._vars = MappingProxyType(vars_)

    @classmethod
    def base(cls) -> "Env":
        return cls()

    @classmethod
    def with_params(cls, params: Sequence[str], args: Sequence[Value]) -> "Env":
        if len(params) != len(args):
            raise EvalError(
                f"argument count mismatch: expected {len(params)}, got {len(args)}"
            )
        return cls(dict(zip(params, args)))

    def get(self, name: str) -> Optional[Value]:
        return self._vars.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._vars

    def __repr__(self):
        return f"Env({dict(self._vars)!r})"


# ── Registry ──────────────────────────────────────────────────────────────────

class Registry:
    """
    The set of known algorithms, keyed by name.

    A later definition replaces an earlier one with the same name and keeps
    its position. `version` increases with every mutation so a host can
    tell whether a snapshot it holds is still current.
    """

    def __init__(self, definitions: Iterable[AlgorithmDef] = ()):
        self._algs: Dict[str, AlgorithmDef] = OrderedDict()
        self.version = 0
        for defn in definitions:
            self.upsert(defn)

    def upsert(self, defn: AlgorithmDef) -> bool:
        """Add or replace a definition. Returns True if it replaced one."""
        replaced = defn.name in self._algs
        self._algs[defn.name] = defn
        self.version += 1
        return replaced

    def clear(self) -> None:
        self._algs.clear()
        self.version += 1

    def get(self, name: str) -> Optional[AlgorithmDef]:
        return self._algs.get(name)

    def names(self) -> List[str]:
        return list(self._algs)

    def list(self) -> List[AlgorithmDef]:
        return list(self._algs.values())

    def snapshot(self) -> Mapping[str, AlgorithmDef]:
        return MappingProxyType(dict(self._algs))

    def __contains__(self, name: str) -> bool:
        return name in self._algs

    def __len__(self) -> int:
        return len(self._algs)

    def __iter__(self):
        return iter(self._algs.values())


# ── Evaluator ─────────────────────────────────────────────────────────────────

class Evaluator:
    def __init__(self, algorithms: Mapping[str, AlgorithmDef],
                 max_depth: int = DEFAULT_MAX_EVAL_DEPTH):
        self._algs = algorithms
        self._max_depth = max_depth
        self._depth = 0

    def evaluate(self, expr: ASTNode, env: Env) -> Value:
        try:
            return self._eval(expr, env)
        except RecursionError:
            raise EvalError("maximum evaluation depth exceeded") from None

    # ------------------------------------------------------------------ visitor

    def _eval(self, node: ASTNode, env: Env) -> Value:
        method = getattr(self, f"_eval_{type(node).__name__}", None)
        if method is None:
            raise EvalError(f"cannot evaluate {type(node).__name__}")
        return method(node, env)

    def _eval_NumberNode(self, node: NumberNode, env: Env) -> Value:
        return float(node.value)

    def _eval_BoolNode(self, node: BoolNode, env: Env) -> Value:
        return bool(node.value)

    def _eval_IdentifierNode(self, node: IdentifierNode, env: Env) -> Value:
        value = env.get(node.name)
        if value is None:
            raise EvalError(f"unknown identifier: {node.name}")
        return value

    def _eval_UnaryOpNode(self, node: UnaryOpNode, env: Env) -> Value:
        value = self._eval(node.operand, env)
        if node.op == '-':
            return -_as_number(value)
        if node.op == '!':
            return not _as_bool(value)
        raise EvalError(f"unknown unary operator '{node.op}'")

    def _eval_BinaryOpNode(self, node: BinaryOpNode, env: Env) -> Value:
        # Both sides are always evaluated, left first.
        left = self._eval(node.left, env)
        right = self._eval(node.right, env)
        op = node.op
        if op in _ARITHMETIC:
            return _ARITHMETIC[op](_as_number(left), _as_number(right))
        if op in _COMPARISONS:
            return _COMPARISONS[op](_as_number(left), _as_number(right))
        if op in _LOGICAL:
            return _LOGICAL[op](_as_bool(left), _as_bool(right))
        raise EvalError(f"unknown binary operator '{op}'")

    def _eval_CaseNode(self, node: CaseNode, env: Env) -> Value:
        for cond, result in node.arms:
            if _as_bool(self._eval(cond, env)):
                return self._eval(result, env)
        return self._eval(node.default, env)

    def _eval_CallNode(self, node: CallNode, env: Env) -> Value:
        args = [self._eval(arg, env) for arg in node.args]
        return self._call(node.name, node.is_alg, args)

    def _eval_PipeNode(self, node: PipeNode, env: Env) -> Value:
        value = self._eval(node.head, env)
        for step in node.steps:
            value = self._apply_step(step, value, env)
        return value

    # ------------------------------------------------------------------ calls

    def _apply_step(self, step: ASTNode, value: Value, env: Env) -> Value:
        """Feed `value` into a pipeline step as its first argument."""
        if isinstance(step, IdentifierNode):
            return self._call(step.name, False, [value])
        if isinstance(step, CallNode):
            args = [value] + [self._eval(arg, env) for arg in step.args]
            return self._call(step.name, step.is_alg, args)
        raise EvalError(
            f"pipeline step must be a call or name, got {type(step).__name__}"
        )

    def _call(self, name: str, is_alg: bool, args: List[Value]) -> Value:
        if is_alg or name in self._algs:
            alg = self._algs.get(name)
            if alg is None:
                raise EvalError(f"unknown algorithm: {name}")
            frame = Env.with_params(alg.params, args)
            self._depth += 1
            try:
                if self._depth > self._max_depth:
                    raise EvalError("maximum evaluation depth exceeded")
                return self._eval(alg.body, frame)
            finally:
                self._depth -= 1

        fn = BUILTINS.get(name)
        if fn is None:
            raise EvalError(f"unknown function: {name}")
        if len(args) != 1:
            raise EvalError(f"{name} expects 1 arg, got {len(args)}")
        return fn(_as_number(args[0]))


def evaluate(expr: ASTNode, registry: Union[Registry, Mapping[str, AlgorithmDef]],
             env: Optional[Env] = None,
             max_depth: int = DEFAULT_MAX_EVAL_DEPTH) -> Value:
    """Evaluate `expr` against a registry (or a name -> AlgorithmDef mapping)."""
    algs = registry.snapshot() if isinstance(registry, Registry) else registry
    return Evaluator(algs, max_depth).evaluate(expr, env if env is not None else Env.base())


def run_algorithm(registry: Union[Registry, Mapping[str, AlgorithmDef]], name: str,
                  args: Sequence[float],
                  max_depth: int = DEFAULT_MAX_EVAL_DEPTH) -> Value:
    """Call a registered algorithm directly with numeric arguments."""
    algs = registry.snapshot() if isinstance(registry, Registry) else registry
    if name not in algs:
        raise EvalError(f"no algorithm named {name}")
    call = CallNode(name=name, args=tuple(NumberNode(value=float(a)) for a in args), is_alg=True)
    return Evaluator(algs, max_depth).evaluate(call, Env.base())
