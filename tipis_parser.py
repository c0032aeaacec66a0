# tipis_parser.py — Recursive-descent parser for Tipis templates
#
# Pulls tokens on demand from the Lexer (one-token look-ahead, no token
# list) and builds span-annotated declarations from tipis_ast.
# There is no error recovery: the first problem raises SynError, wrapping
# the LexError when lexing failed.

from __future__ import annotations
import logging
from typing import List, Optional, Tuple, Union

from tipis_ast import AstKind, Ast, Dir, Expr, File, Let, Lit, Param, Ref, Req
from tipis_errors import LexError, SynError, SynErrorKind
from tipis_lexer import Lexer
from tipis_token import Span, Token, TokenType, describe
from tipis_types import Ty, resolve_type, type_names

logger = logging.getLogger(__name__)

MAX_NESTING = 16

_STRING_OPENERS = frozenset({
    TokenType.DQUOTE_OPEN, TokenType.LBRACE_DQUOTE, TokenType.LBRACE_DOLLAR,
})

_SIGILS = {
    TokenType.AT:    AstKind.ANY,
    TokenType.POUND: AstKind.DIR,
    TokenType.BANG:  AstKind.FILE,
}

_CONTENT_START = _STRING_OPENERS | {TokenType.LBRACE, TokenType.IDENTIFIER, TokenType.AT}


class OpenerStack:
    """Bounded stack of open delimiters; closers must match the innermost one."""

    def __init__(self, limit: int = MAX_NESTING):
        self.limit = limit
        self._items: List[Token] = []

    def push(self, tok: Token) -> None:
        if len(self._items) >= self.limit:
            raise SynError(SynErrorKind.NESTING_TOO_DEEP,
                           f"Nesting deeper than {self.limit} levels", tok.span)
        self._items.append(tok)

    def pop(self, tok: Token) -> Token:
        found = describe(tok.kind)
        if not self._items:
            raise SynError(SynErrorKind.UNMATCHED_CLOSER,
                           f"Unmatched {found}", tok.span, found=found)
        expected = describe(self._items[-1].closer())
        if tok.kind != self._items[-1].closer():
            raise SynError(SynErrorKind.UNMATCHED_CLOSER,
                           f"Expected {expected}, found {found}", tok.span,
                           expected=expected, found=found)
        return self._items.pop()

    @property
    def top(self) -> Optional[Token]:
        return self._items[-1] if self._items else None

    def __len__(self) -> int:
        return len(self._items)


class Syntax:
    def __init__(self, source: Union[bytes, str], filename: str = "<source>",
                 encoding: str = "utf-8"):
        self.lexer    = Lexer(source, filename, encoding)
        self.filename = filename
        self._last: Optional[Token] = None

    @property
    def source(self) -> bytes:
        return self.lexer.source

    # ── Navigation ────────────────────────────────────────────────────────────

    def _peek(self) -> Token:
        try:
            return self.lexer.look_ahead()
        except LexError as e:
            raise SynError.wrap(e) from e

    def _advance(self) -> Token:
        try:
            tok = self.lexer.next_token()
        except LexError as e:
            raise SynError.wrap(e) from e
        self._last = tok
        return tok

    def _check(self, kind: TokenType) -> bool:
        return self._peek().kind == kind

    def _match(self, kind: TokenType) -> Optional[Token]:
        if self._check(kind):
            return self._advance()
        return None

    def _expect(self, kind: TokenType, what: str = "") -> Token:
        tok = self._peek()
        if tok.kind != kind:
            raise self._unexpected(tok, what or describe(kind))
        return self._advance()

    def _unexpected(self, tok: Token, what: str) -> SynError:
        if tok.kind == TokenType.EOF:
            return SynError(SynErrorKind.UNEXPECTED_EOF,
                            f"Unexpected end of input, expected {what}",
                            tok.span, expected=what, found=describe(tok.kind))
        found = describe(tok.kind)
        if tok.kind in (TokenType.IDENTIFIER, TokenType.INT, TokenType.INVALID):
            found = f"{found} `{tok.span.text}`"
        return SynError(SynErrorKind.EXPECTED, f"Expected {what}, found {found}",
                        tok.span, expected=what, found=found)

    def _close(self, stack: OpenerStack, what: str) -> Token:
        tok = self._peek()
        if not tok.is_closer:
            raise self._unexpected(tok, what)
        self._advance()
        stack.pop(tok)
        return tok

    def _node_span(self, start: Span) -> Span:
        return start.merge(self._last.span) if self._last else start

    # ── Programme ─────────────────────────────────────────────────────────────

    def parse_all(self) -> List[Ast]:
        """Parse declarations until end of input."""
        asts: List[Ast] = []
        while not self._check(TokenType.EOF):
            asts.append(self.parse())
        return asts

    def parse(self) -> Ast:
        """Parse exactly one top-level declaration."""
        main = self._match(TokenType.MAIN)
        tok  = self._peek()
        if tok.kind == TokenType.DIR:
            node = self._parse_dir(top=True)
        elif tok.kind == TokenType.FILE:
            node = self._parse_file(top=True)
        elif main is not None:
            raise self._unexpected(tok, "`dir` or `file` after `main`")
        elif tok.kind == TokenType.LET:
            node = self._parse_let()
        elif tok.kind == TokenType.REQ:
            node = self._parse_req()
        else:
            raise self._unexpected(tok, "declaration")

        if main is not None:
            node.main = True
            node.span = main.span.merge(node.span)
        logger.debug("parsed %s", node)
        return node

    # ── Declarations ──────────────────────────────────────────────────────────

    def _parse_let(self) -> Let:
        start  = self._expect(TokenType.LET).span
        name   = self._expect(TokenType.IDENTIFIER, "`let` name")
        params = self._parse_params()
        self._expect(TokenType.EQUAL)
        body   = self.parse_string()
        self._expect(TokenType.SEMI)
        return Let(name.value, params, body, Ty.STRING, span=self._node_span(start))

    def _parse_req(self) -> Req:
        start = self._expect(TokenType.REQ).span
        name  = self._expect(TokenType.IDENTIFIER, "`req` name")
        self._expect(TokenType.COLON)
        ty    = self._parse_type()
        self._expect(TokenType.SEMI)
        return Req(name.value, ty, span=self._node_span(start))

    def _parse_dir(self, top: bool = False) -> Dir:
        start  = self._expect(TokenType.DIR).span
        alias  = self._parse_name()
        params = self._parse_params()
        path   = self._parse_path() if self._match(TokenType.COLON) else alias
        if self._check(TokenType.LBRACE):
            children = self._parse_children()
            if top:
                self._match(TokenType.SEMI)
        else:
            children = []
            if top:
                self._expect(TokenType.SEMI, "`;` or `{`")
        return Dir(alias, path, params, children, span=self._node_span(start))

    def _parse_file(self, top: bool = False) -> File:
        start  = self._expect(TokenType.FILE).span
        alias  = self._parse_name()
        params = self._parse_params()
        path   = self._parse_path() if self._match(TokenType.COLON) else alias
        if self._peek().kind in _CONTENT_START:
            content = self._parse_content()
            if top:
                self._match(TokenType.SEMI)
        else:
            content = []
            if top:
                self._expect(TokenType.SEMI, "`;` or file content")
        return File(alias, path, params, content, span=self._node_span(start))

    def _parse_children(self) -> List[Union[Dir, File, Ref]]:
        stack = OpenerStack()
        stack.push(self._expect(TokenType.LBRACE))
        children: List[Union[Dir, File, Ref]] = []
        while not self._check(TokenType.RBRACE):
            children.append(self._parse_child())
            if not (self._match(TokenType.COMMA) or self._match(TokenType.SEMI)):
                break
        self._close(stack, "`,` or `}`")
        return children

    def _parse_child(self) -> Union[Dir, File, Ref]:
        tok = self._peek()
        if tok.kind == TokenType.DIR:
            return self._parse_dir()
        if tok.kind == TokenType.FILE:
            return self._parse_file()
        if tok.kind in _SIGILS:
            self._advance()
            ref = self._parse_ref(_SIGILS[tok.kind])
            ref.span = tok.span.merge(ref.span)
            return ref
        if tok.kind == TokenType.DQUOTE_OPEN:
            name = self._parse_rawstr()
            content = self._parse_content() if self._match(TokenType.COLON) else []
            return File(name, name, [], content, span=self._node_span(tok.span))
        if tok.kind == TokenType.IDENTIFIER:
            name = self._parse_ident_path()
            if self._match(TokenType.COLON):
                content = self._parse_content()
                return File(name, name, [], content, span=self._node_span(tok.span))
            children = self._parse_children() if self._check(TokenType.LBRACE) else []
            return Dir(name, name, [], children, span=self._node_span(tok.span))
        raise self._unexpected(tok, "directory entry")

    def _parse_content(self) -> List[Expr]:
        tok = self._peek()
        if tok.kind in _STRING_OPENERS:
            return self.parse_string()
        if tok.kind == TokenType.LBRACE:
            stack = OpenerStack()
            stack.push(self._advance())
            body = self.parse_string()
            self._close(stack, "`}`")
            return body
        if tok.kind == TokenType.AT:
            self._advance()
            ref = self._parse_ref(AstKind.LET)
            ref.span = tok.span.merge(ref.span)
            return [ref]
        if tok.kind == TokenType.IDENTIFIER:
            return [self._parse_ref(AstKind.LET)]
        raise self._unexpected(tok, "file content")

    # ── Names, paths, types ───────────────────────────────────────────────────

    def _parse_name(self) -> str:
        tok = self._peek()
        if tok.kind == TokenType.IDENTIFIER:
            return self._parse_ident_path()
        if tok.kind == TokenType.DQUOTE_OPEN:
            name = self._parse_rawstr()
            if not name:
                raise SynError(SynErrorKind.EXPECTED, "Expected a non-empty name",
                               self._node_span(tok.span), expected="name", found="`\"\"`")
            return name
        raise self._unexpected(tok, "name")

    def _parse_path(self) -> str:
        return self._parse_name()

    def _parse_ident_path(self) -> str:
        parts = [self._expect(TokenType.IDENTIFIER).value]
        while self._match(TokenType.SLASH):
            tok = self._peek()
            if tok.kind != TokenType.IDENTIFIER and not tok.is_keyword:
                raise self._unexpected(tok, "path segment")
            parts.append(self._advance().value)
        return "/".join(parts)

    def _parse_rawstr(self) -> str:
        """A quoted string without insertions."""
        self._expect(TokenType.DQUOTE_OPEN)
        text = ""
        tok = self._match(TokenType.STRING)
        if tok is not None:
            text = tok.value
        if self._check(TokenType.LBRACE_DOLLAR):
            raise SynError(SynErrorKind.EXPECTED,
                           "Insertions are not allowed in a literal string",
                           self._peek().span, expected="closing `\"`",
                           found=describe(TokenType.LBRACE_DOLLAR))
        self._expect(TokenType.DQUOTE_CLOSE)
        return text

    def _parse_type(self) -> Ty:
        tok = self._peek()
        if tok.kind not in (TokenType.IDENTIFIER, TokenType.DIR, TokenType.FILE):
            raise self._unexpected(tok, "type")
        self._advance()
        ty = resolve_type(tok.value)
        if ty is None:
            raise SynError(SynErrorKind.INVALID_TYPE,
                           f"Invalid type `{tok.value}`, expected one of {type_names()}",
                           tok.span, expected="type", found=tok.value)
        return ty

    def _parse_params(self) -> List[Param]:
        if not self._check(TokenType.LPAREN):
            return []
        stack = OpenerStack()
        stack.push(self._advance())
        params: List[Param] = []
        while not self._check(TokenType.RPAREN):
            name = self._expect(TokenType.IDENTIFIER, "parameter name")
            self._expect(TokenType.COLON)
            ty = self._parse_type()
            params.append(Param(name.value, ty, span=self._node_span(name.span)))
            if not self._match(TokenType.COMMA):
                break
        self._close(stack, "`,` or `)`")
        return params

    # ── References & arguments ────────────────────────────────────────────────

    def _parse_ref(self, kind: AstKind, stack: Optional[OpenerStack] = None) -> Ref:
        name = self._expect(TokenType.IDENTIFIER, "reference name")
        args = self._parse_args(stack)
        return Ref(name.value, kind, args, span=self._node_span(name.span))

    def _parse_args(self, stack: Optional[OpenerStack] = None) -> List[Tuple[str, Expr]]:
        if not self._check(TokenType.LPAREN):
            return []
        if stack is None:
            stack = OpenerStack()
        stack.push(self._advance())
        args: List[Tuple[str, Expr]] = []
        while not self._check(TokenType.RPAREN):
            name = self._expect(TokenType.IDENTIFIER, "argument name")
            self._expect(TokenType.COLON)
            args.append((name.value, self._parse_argval(stack)))
            if not self._match(TokenType.COMMA):
                break
        self._close(stack, "`,` or `)`")
        return args

    def _parse_argval(self, stack: OpenerStack) -> Expr:
        tok = self._peek()
        if tok.kind == TokenType.DQUOTE_OPEN:
            text = self._parse_rawstr()
            return Lit(text, span=self._node_span(tok.span))
        if tok.kind == TokenType.INT:
            self._advance()
            return Lit(tok.value, span=tok.span)
        if tok.kind == TokenType.IDENTIFIER:
            return self._parse_ref(AstKind.LET, stack)
        if tok.kind == TokenType.AT:
            self._advance()
            ref = self._parse_ref(AstKind.LET, stack)
            ref.span = tok.span.merge(ref.span)
            return ref
        raise self._unexpected(tok, "argument value")

    # ── Strings ───────────────────────────────────────────────────────────────

    def parse_string(self) -> List[Expr]:
        """
        One or more adjacent string segments: "..." / {"..."} / {$ref$},
        where quoted bodies may contain {$ref$} insertions.
        """
        tok = self._peek()
        if tok.kind not in _STRING_OPENERS:
            raise self._unexpected(tok, "string")

        stack = OpenerStack()
        out: List[Expr] = []
        while True:
            tok = self._peek()
            if tok.kind in _STRING_OPENERS:
                stack.push(self._advance())
                if tok.kind == TokenType.LBRACE_DOLLAR:
                    out.append(self._parse_ref(AstKind.LET, stack))
                    self._close(stack, describe(TokenType.RBRACE_DOLLAR))
            elif tok.kind == TokenType.STRING:
                self._advance()
                out.append(Lit(tok.value, span=tok.span))
            elif tok.is_closer:
                self._advance()
                stack.pop(tok)
            else:
                raise self._unexpected(tok, describe(stack.top.closer()))

            if not stack and self._peek().kind not in _STRING_OPENERS:
                return out
