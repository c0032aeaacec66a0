# tipis_symbols.py — Symbol table for Tipis declarations
#
# Every top-level declaration is registered under Key(name, Scope.GLOBAL):
# `let`/`req` by name, `dir`/`file` by alias. Parameters are never
# registered; they only exist as argument bindings during resolution.

from __future__ import annotations
import dataclasses
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from tipis_ast import (
    Ast, AstKind, Expr, Lit, Param, Ref, Req,
    ast_kind, ast_name, ast_params, ast_ty, is_main,
)
from tipis_errors import ExecError, ExecErrorKind
from tipis_types import Ty

logger = logging.getLogger(__name__)

ArgValue = Union[str, Expr]
ArgsLike = Union[Mapping[str, ArgValue], Sequence[Tuple[str, ArgValue]]]


# ── Scopes & keys ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Scope:
    owner: Optional[str] = None   # None means global

    @staticmethod
    def local(owner: str) -> "Scope":
        return Scope(owner)

    @property
    def is_global(self) -> bool:
        return self.owner is None

    def __repr__(self) -> str:
        return "global" if self.owner is None else f"local({self.owner})"


Scope.GLOBAL = Scope()


@dataclass(frozen=True)
class Key:
    name:  str
    scope: Scope = Scope.GLOBAL

    def __repr__(self) -> str:
        if self.scope.is_global:
            return self.name
        return f"{self.scope.owner}.{self.name}"


# ── Symbols ───────────────────────────────────────────────────────────────────

@dataclass
class Sym:
    scope: Scope
    val:   Ast

    @property
    def key(self) -> Key:
        return Key(self.name, self.scope)

    @property
    def name(self) -> str:
        return ast_name(self.val)

    @property
    def ty(self) -> Ty:
        return ast_ty(self.val)

    @property
    def kind(self) -> AstKind:
        return ast_kind(self.val)

    @property
    def params(self) -> List[Param]:
        return ast_params(self.val)

    @property
    def main(self) -> bool:
        return is_main(self.val)


def normalize_args(args: Optional[ArgsLike]) -> Dict[str, Expr]:
    """Accept a mapping or pair sequence of str/Expr values."""
    if args is None:
        return {}
    pairs = args.items() if isinstance(args, Mapping) else args
    out: Dict[str, Expr] = {}
    for name, value in pairs:
        out[name] = Lit(value) if isinstance(value, str) else value
    return out


class Syms:
    """Symbol table plus the program-level argument bindings."""

    def __init__(self, args: Optional[ArgsLike] = None):
        self.args: Dict[str, Expr] = normalize_args(args)
        self._symbols: Dict[Key, Sym] = {}
        self._main: Optional[Sym] = None

    def add(self, sym: Sym) -> None:
        if isinstance(sym.val, Ref):
            raise ExecError(ExecErrorKind.EXPECTED,
                            f"Expected a declaration, found reference `{sym.val.name}`",
                            sym.val.span, name=sym.val.name)

        key = sym.key
        if sym.main and self._main is not None:
            raise ExecError(ExecErrorKind.MULTIPLE_MAIN,
                            f"Multiple main declarations: `{self._main.name}` and `{sym.name}`",
                            sym.val.span, name=sym.name,
                            hint="only one `dir` or `file` may be marked `main`")
        if key in self._symbols:
            raise ExecError(ExecErrorKind.ALREADY_EXISTS,
                            f"`{sym.name}` is already declared", sym.val.span,
                            name=sym.name)

        if isinstance(sym.val, Req) and sym.val.expr is None:
            bound = self.args.get(sym.name)
            if isinstance(bound, Lit):
                sym = Sym(sym.scope, dataclasses.replace(sym.val, expr=bound.value))

        if sym.main:
            self._main = sym
        self._symbols[key] = sym
        logger.debug("added %s %r", sym.kind, key)

    def add_ast(self, ast: Ast, scope: Scope = Scope.GLOBAL) -> None:
        self.add(Sym(scope, ast))

    def add_all_ast(self, asts: Iterable[Ast]) -> None:
        """Add in order; symbols added before a failure stay."""
        for ast in asts:
            self.add_ast(ast)

    def get(self, key: Union[Key, str]) -> Optional[Sym]:
        if isinstance(key, str):
            key = Key(key)
        return self._symbols.get(key)

    def has(self, key: Union[Key, str]) -> bool:
        return self.get(key) is not None

    def main(self) -> Optional[Ast]:
        return self._main.val if self._main is not None else None

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[Sym]:
        return iter(self._symbols.values())

    def __repr__(self) -> str:
        return f"Syms({list(self._symbols)!r}, args={sorted(self.args)!r})"
