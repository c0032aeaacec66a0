# tipis_resolve.py — Lazy resolution of Tipis expressions
#
# Turns a Ref or Lit into a string, or into the Dir/File declaration a
# reference names. Lookup is global first, then the argument bindings in
# force at the reference site. Resolution has no side effects; the chain
# of keys being resolved (the executor pushes the declarations it is
# inside onto the same chain) is the only state and is unwound on exit.

from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Union

from tipis_ast import AstKind, Dir, Expr, File, Let, Lit, Node, Ref, Req, Visitor, ast_name, ast_params
from tipis_errors import ExecError, ExecErrorKind
from tipis_symbols import ArgsLike, Key, Scope, Syms, normalize_args
from tipis_token import Span
from tipis_types import Ty

logger = logging.getLogger(__name__)

Resolved = Union[str, Dir, File]
Bindings = Dict[str, Expr]

_ARGS = Scope.local("args")


class Resolver(Visitor):
    def __init__(self, syms: Syms, max_depth: int = 64):
        self.syms = syms
        self.max_depth = max_depth
        self._chain: List[Key] = []

    # ── Public API ────────────────────────────────────────────────────────────

    def resolve(self, expr: Expr, target: Ty = Ty.UNKNOWN,
                args: Optional[ArgsLike] = None) -> Resolved:
        """Resolve one expression; `args=None` uses the program arguments."""
        bindings = self.syms.args if args is None else normalize_args(args)
        return self.visit(expr, target, bindings)

    def resolve_str(self, exprs: List[Expr], args: Optional[ArgsLike] = None) -> str:
        """Concatenate a string body, every fragment resolved as `str`."""
        bindings = self.syms.args if args is None else normalize_args(args)
        return "".join(self.visit(expr, Ty.STRING, bindings) for expr in exprs)

    def bind(self, ref: Ref, decl: Node, args: Optional[ArgsLike] = None) -> Bindings:
        """
        Bindings seen inside `decl` when reached through `ref`: the caller's
        bindings overlaid with the reference's own arguments, each resolved
        now under the caller's bindings.
        """
        caller = self.syms.args if args is None else normalize_args(args)
        params = {p.name: p for p in ast_params(decl)}
        bound: Bindings = dict(caller)
        for name, expr in ref.args:
            param = params.get(name)
            if param is None:
                raise ExecError(ExecErrorKind.INVALID_ARGUMENT,
                                f"`{ast_name(decl)}` has no parameter `{name}`",
                                expr.span or ref.span, name=name)
            value = self.visit(expr, Ty.UNKNOWN, caller)
            bound[name] = self._binding(name, param.ty, value, expr)
        return bound

    # ── Visitor ───────────────────────────────────────────────────────────────

    def visit_Lit(self, lit: Lit, target: Ty, args: Bindings) -> str:
        if target in (Ty.DIR, Ty.FILE):
            raise ExecError(ExecErrorKind.INVALID_TYPE,
                            f"Expected {target}, found string {lit.value!r}",
                            lit.span)
        return lit.value

    def visit_Ref(self, ref: Ref, target: Ty, args: Bindings) -> Resolved:
        sym = self.syms.get(Key(ref.name))
        if sym is None:
            if ref.name not in args:
                raise ExecError(ExecErrorKind.NOT_FOUND, f"`{ref.name}` not found",
                                ref.span, name=ref.name)
            with self.tracking(Key(ref.name, _ARGS), ref.span):
                return self.visit(args[ref.name], target, args)

        if not Ty.accepts(target, sym.ty):
            raise ExecError(ExecErrorKind.INVALID_TYPE,
                            f"`{ref.name}` is `{sym.ty}`, expected `{target}`",
                            ref.span, name=ref.name)

        decl = sym.val
        with self.tracking(sym.key, ref.span):
            if isinstance(decl, Req):
                return self._resolve_req(decl, ref, target, args)
            if isinstance(decl, Let):
                return self.resolve_str(decl.body, self.bind(ref, decl, args))
            return decl

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _resolve_req(self, req: Req, ref: Ref, target: Ty, args: Bindings) -> str:
        if req.expr is not None:
            return req.expr
        if req.name in args:
            value = self.visit(args[req.name], target, args)
            if not isinstance(value, str):
                raise ExecError(ExecErrorKind.INVALID_TYPE,
                                f"`{req.name}` must be a string value", ref.span,
                                name=req.name)
            return value
        raise ExecError(ExecErrorKind.INVALID_ARGUMENT,
                        f"`{req.name}` not supplied", ref.span, name=req.name,
                        hint=f"pass a value for `{req.name}` when running the template")

    def _binding(self, name: str, ty: Ty, value: Resolved, expr: Expr) -> Expr:
        if ty in (Ty.DIR, Ty.FILE):
            expected = Dir if ty is Ty.DIR else File
            if not isinstance(value, expected):
                raise ExecError(ExecErrorKind.INVALID_TYPE,
                                f"Argument `{name}` must be a `{ty}`", expr.span,
                                name=name)
            # Dir/File values always come from a global declaration
            kind = AstKind.DIR if ty is Ty.DIR else AstKind.FILE
            return Ref(value.alias, kind, span=expr.span)
        if not isinstance(value, str):
            raise ExecError(ExecErrorKind.INVALID_TYPE,
                            f"Argument `{name}` must be a `{ty}`, found `{type(value).__name__.lower()}`",
                            expr.span, name=name)
        return Lit(value, span=expr.span)

    @contextmanager
    def tracking(self, key: Key, span: Optional[Span] = None) -> Iterator[None]:
        """Hold `key` on the reference chain while the block runs."""
        if key in self._chain:
            cycle = " -> ".join(repr(k) for k in self._chain[self._chain.index(key):] + [key])
            raise ExecError(ExecErrorKind.CYCLE_DETECTED,
                            f"Reference cycle: {cycle}", span, name=key.name)
        if len(self._chain) >= self.max_depth:
            raise ExecError(ExecErrorKind.DEPTH_EXCEEDED,
                            f"Resolution deeper than {self.max_depth} references at `{key.name}`",
                            span, name=key.name)
        self._chain.append(key)
        logger.debug("entering %r", key)
        try:
            yield
        finally:
            self._chain.pop()
