# tipis_ast.py — Span-annotated AST for Tipis templates
#
# Declarations (Req, Let, Dir, File) live in the symbol table; expressions
# (Ref, Lit) make up template bodies and are resolved lazily at execution.
#
# Design: Node is NOT a @dataclass to avoid the Python dataclass
# inheritance problem (non-default field after default field).
# Each concrete @dataclass declares `span` as its LAST field, excluded
# from comparison so parsed trees compare equal to hand-built ones.

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from tipis_token import Span
from tipis_types import Ty


def _span() -> Optional[Span]:
    return field(default=None, compare=False, repr=False)


class AstKind(Enum):
    LET  = "let"
    REQ  = "req"
    DIR  = "dir"
    FILE = "file"
    ANY  = "any"    # `@name` in a directory body: dir or file

    def __str__(self) -> str:
        return self.value

    @property
    def target(self) -> Ty:
        """Type requested when a reference of this kind is resolved."""
        return _KIND_TARGET[self]


_KIND_TARGET = {
    AstKind.LET:  Ty.STRING,
    AstKind.REQ:  Ty.UNKNOWN,
    AstKind.DIR:  Ty.DIR,
    AstKind.FILE: Ty.FILE,
    AstKind.ANY:  Ty.UNKNOWN,
}


# ── Base class (NOT @dataclass) ───────────────────────────────────────────────

class Node:
    """Base for all AST nodes."""
    def accept(self, visitor: "Visitor", *args):
        return visitor.visit(self, *args)


# ── Expressions ───────────────────────────────────────────────────────────────

@dataclass
class Lit(Node):
    value: str
    span:  Optional[Span] = _span()

    def __repr__(self) -> str:
        return f"Lit({self.value!r})"


@dataclass
class Ref(Node):
    name: str
    kind: AstKind = AstKind.LET
    args: List[Tuple[str, "Expr"]] = field(default_factory=list)
    span: Optional[Span] = _span()

    def __repr__(self) -> str:
        if self.args:
            return f"Ref({self.name!r}, {self.kind}, {self.args!r})"
        return f"Ref({self.name!r}, {self.kind})"


Expr = Union[Ref, Lit]


# ── Declarations ──────────────────────────────────────────────────────────────

@dataclass
class Param(Node):
    name: str
    ty:   Ty
    span: Optional[Span] = _span()


@dataclass
class Req(Node):
    name: str
    ty:   Ty
    expr: Optional[str] = None    # supplied value, filled from program args
    span: Optional[Span] = _span()


@dataclass
class Let(Node):
    name:   str
    params: List[Param]
    body:   List[Expr]
    ty:     Ty = Ty.STRING
    span:   Optional[Span] = _span()


@dataclass
class File(Node):
    alias:   str
    path:    str
    params:  List[Param] = field(default_factory=list)
    content: List[Expr]  = field(default_factory=list)
    main:    bool = False
    span:    Optional[Span] = _span()


@dataclass
class Dir(Node):
    alias:    str
    path:     str
    params:   List[Param] = field(default_factory=list)
    children: List[Union["Dir", File, Ref]] = field(default_factory=list)
    main:     bool = False
    span:     Optional[Span] = _span()


Ast = Union[Ref, Req, Let, Dir, File]


def ast_name(node: Node) -> str:
    """Symbol-table name of a declaration."""
    if isinstance(node, (Let, Req, Ref)):
        return node.name
    if isinstance(node, (Dir, File)):
        return node.alias
    raise TypeError(f"{type(node).__name__} has no symbol name")


def ast_ty(node: Node) -> Ty:
    if isinstance(node, (Let, Req)):
        return node.ty
    if isinstance(node, Dir):
        return Ty.DIR
    if isinstance(node, File):
        return Ty.FILE
    if isinstance(node, Lit):
        return Ty.STRING
    return Ty.UNKNOWN


def ast_kind(node: Node) -> AstKind:
    if isinstance(node, Let):
        return AstKind.LET
    if isinstance(node, Req):
        return AstKind.REQ
    if isinstance(node, Dir):
        return AstKind.DIR
    if isinstance(node, File):
        return AstKind.FILE
    if isinstance(node, Ref):
        return node.kind
    raise TypeError(f"{type(node).__name__} has no declaration kind")


def ast_params(node: Node) -> List[Param]:
    if isinstance(node, (Let, Dir, File)):
        return node.params
    return []


def is_main(node: Node) -> bool:
    return isinstance(node, (Dir, File)) and node.main


# ── Visitor Pattern ────────────────────────────────────────────────────────────

class Visitor:
    """
    Extensible visitor base. Override visit_* methods; extra positional
    arguments are passed through to the handler.
    """

    def visit(self, node: Node, *args):
        method = f"visit_{type(node).__name__}"
        handler = getattr(self, method, self.generic_visit)
        return handler(node, *args)

    def generic_visit(self, node: Node, *args):
        raise TypeError(f"{type(self).__name__} cannot visit {type(node).__name__}")
