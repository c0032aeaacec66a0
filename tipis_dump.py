# tipis_dump.py — Render Tipis declarations back to source text
#
# Output is canonical rather than a copy of the input: one declaration per
# line, `: path` only when it differs from the alias, every literal fragment
# in its own quoted segment. Parsing the output yields an equal AST.

from __future__ import annotations
import re
from typing import Iterable, List, Tuple

from tipis_ast import AstKind, Dir, Expr, File, Let, Lit, Node, Param, Ref, Req, Visitor
from tipis_token import KEYWORDS

_SEGMENT = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*\Z")

_SIGIL = {
    AstKind.ANY:  "@",
    AstKind.LET:  "@",
    AstKind.REQ:  "@",
    AstKind.DIR:  "#",
    AstKind.FILE: "!",
}


def _is_ident_path(name: str) -> bool:
    parts = name.split("/")
    if not all(_SEGMENT.match(p) for p in parts):
        return False
    return parts[0] not in KEYWORDS


def _rawstr(text: str) -> str:
    if '"' in text or "{$" in text:
        raise ValueError(f"{text!r} cannot be written as a literal string")
    return f'"{text}"'


def _segment(text: str) -> str:
    if "{$" in text:
        raise ValueError(f"{text!r} contains an insertion opener")
    if '"' not in text:
        return f'"{text}"'
    if '"}' not in text:
        return '{"' + text + '"}'
    raise ValueError(f"{text!r} cannot be quoted")


def _name(name: str) -> str:
    return name if _is_ident_path(name) else _rawstr(name)


class Dumper(Visitor):
    # ── Expressions ───────────────────────────────────────────────────────────

    def visit_Lit(self, lit: Lit, nested: bool = False) -> str:
        return _segment(lit.value)

    def visit_Ref(self, ref: Ref, nested: bool = False) -> str:
        if nested:
            return f"{_SIGIL[ref.kind]}{ref.name}{self._args(ref.args)}"
        return f"{{${ref.name}{self._args(ref.args)}$}}"

    # ── Declarations ──────────────────────────────────────────────────────────

    def visit_Req(self, req: Req, nested: bool = False) -> str:
        return f"req {req.name}: {req.ty};"

    def visit_Let(self, let: Let, nested: bool = False) -> str:
        return f"let {let.name}{self._params(let.params)} = {self._string(let.body)};"

    def visit_Dir(self, d: Dir, nested: bool = False) -> str:
        out = self._head("dir", d.alias, d.path, d.params, d.main)
        if d.children:
            children = ", ".join(self.visit(c, True) for c in d.children)
            out += f" {{ {children} }}"
        return out if nested else out + ";"

    def visit_File(self, f: File, nested: bool = False) -> str:
        out = self._head("file", f.alias, f.path, f.params, f.main)
        if f.content:
            out += " " + self._string(f.content)
        return out if nested else out + ";"

    # ── Pieces ────────────────────────────────────────────────────────────────

    def _head(self, keyword: str, alias: str, path: str,
              params: List[Param], main: bool) -> str:
        out = f"{'main ' if main else ''}{keyword} {_name(alias)}{self._params(params)}"
        if path != alias:
            out += f": {_name(path)}"
        return out

    def _params(self, params: List[Param]) -> str:
        if not params:
            return ""
        return "(" + ", ".join(f"{p.name}: {p.ty}" for p in params) + ")"

    def _args(self, args: List[Tuple[str, Expr]]) -> str:
        if not args:
            return ""
        parts = []
        for name, value in args:
            if isinstance(value, Lit):
                parts.append(f"{name}: {_rawstr(value.value)}")
            else:
                parts.append(f"{name}: {value.name}{self._args(value.args)}")
        return "(" + ", ".join(parts) + ")"

    def _string(self, exprs: List[Expr]) -> str:
        if not exprs:
            return '""'
        return "".join(self.visit(e) for e in exprs)


def dump(node: Node) -> str:
    """Render one declaration or expression as Tipis source."""
    return Dumper().visit(node)


def dump_all(nodes: Iterable[Node]) -> str:
    return "\n".join(dump(n) for n in nodes) + "\n"
