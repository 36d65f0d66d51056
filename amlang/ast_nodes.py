"""
amlang - AST Node Definitions
Immutable expression tree produced by the parser and walked by the evaluator.
"""

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class ASTNode:
    """Base class for all expression nodes."""


@dataclass(frozen=True)
class NumberNode(ASTNode):
    """A numeric literal."""
    value: float = 0.0


@dataclass(frozen=True)
class BoolNode(ASTNode):
    """true / false"""
    value: bool = False


@dataclass(frozen=True)
class IdentifierNode(ASTNode):
    """A parameter or constant reference."""
    name: str = ""


@dataclass(frozen=True)
class CallNode(ASTNode):
    """name(args) or @Name(args)"""
    name: str = ""
    args: Tuple[ASTNode, ...] = ()
    is_alg: bool = False


@dataclass(frozen=True)
class UnaryOpNode(ASTNode):
    """-operand or !operand"""
    op: str = ""
    operand: ASTNode = None


@dataclass(frozen=True)
class BinaryOpNode(ASTNode):
    """left op right"""
    left: ASTNode = None
    op: str = ""
    right: ASTNode = None


@dataclass(frozen=True)
class CaseNode(ASTNode):
    """[cond -> result; ...; _ -> default]"""
    arms: Tuple[Tuple[ASTNode, ASTNode], ...] = ()
    default: ASTNode = None


@dataclass(frozen=True)
class PipeNode(ASTNode):
    """head >> step >> step ..."""
    head: ASTNode = None
    steps: Tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class AlgorithmDef:
    """@Name(params) = body"""
    name: str = ""
    params: Tuple[str, ...] = ()
    body: ASTNode = field(default=None)

    @property
    def signature(self) -> str:
        return f"{self.name}({', '.join(self.params)})"


# ── Text rendering ────────────────────────────────────────────────────────────

_UNARY_NAMES = {'-': 'Neg', '!': 'Not'}

_BINARY_NAMES = {
    '+': 'Add', '-': 'Sub', '*': 'Mul', '/': 'Div', '%': 'Mod', '^': 'Pow',
    '==': 'Eq', '!=': 'Ne', '<': 'Lt', '<=': 'Le', '>': 'Gt', '>=': 'Ge',
    '&&': 'And', '||': 'Or',
}


def format_number(value: float) -> str:
    if value != value:
        return "NaN"
    if value in (float('inf'), float('-inf')):
        return "inf" if value > 0 else "-inf"
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _render(node: ASTNode, indent: int, out: List[str]) -> None:
    pad = "  " * indent
    if isinstance(node, NumberNode):
        out.append(f"{pad}Number({format_number(node.value)})")
    elif isinstance(node, BoolNode):
        out.append(f"{pad}Bool({'true' if node.value else 'false'})")
    elif isinstance(node, IdentifierNode):
        out.append(f"{pad}Ident({node.name})")
    elif isinstance(node, CallNode):
        out.append(f"{pad}Call(is_alg={'true' if node.is_alg else 'false'}, name={node.name})")
        for arg in node.args:
            _render(arg, indent + 1, out)
    elif isinstance(node, UnaryOpNode):
        out.append(f"{pad}Unary({_UNARY_NAMES[node.op]})")
        _render(node.operand, indent + 1, out)
    elif isinstance(node, BinaryOpNode):
        out.append(f"{pad}Bin({_BINARY_NAMES[node.op]})")
        _render(node.left, indent + 1, out)
        _render(node.right, indent + 1, out)
    elif isinstance(node, CaseNode):
        out.append(f"{pad}Case")
        for cond, result in node.arms:
            out.append(f"{pad}  Arm:")
            _render(cond, indent + 2, out)
            out.append(f"{pad}  =>")
            _render(result, indent + 2, out)
        out.append(f"{pad}  Default:")
        _render(node.default, indent + 2, out)
    elif isinstance(node, PipeNode):
        out.append(f"{pad}Pipe")
        out.append(f"{pad}  Head:")
        _render(node.head, indent + 2, out)
        for step in node.steps:
            out.append(f"{pad}  >> Step:")
            _render(step, indent + 2, out)
    else:
        raise TypeError(f"not an expression node: {node!r}")


def format_tree(node: ASTNode, indent: int = 0) -> str:
    """Render an expression as an indented, one-node-per-line tree."""
    out: List[str] = []
    _render(node, indent, out)
    return "\n".join(out)


def format_definition(defn: AlgorithmDef) -> str:
    return "\n".join([
        f"AlgorithmDef {defn.name}({','.join(defn.params)})",
        "body:",
        format_tree(defn.body, 1),
    ])
