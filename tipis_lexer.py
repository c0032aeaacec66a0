# tipis_lexer.py — Lexer for Tipis templates
#
# Works on raw bytes, one token per call:
#   - Tokens carry Span windows into the source buffer (no copying)
#   - `look_ahead()` snapshots the cursor and rolls back; a following
#     `next_token()` replays the snapshot taken after the peeked token
#   - Quoted strings are lexed eagerly: the opener is returned, the string
#     content (and the closer, when reached) wait in the pending FIFO
#   - `{$ ... $}` insertions suspend the enclosing string; the mode stack
#     remembers which string to resume when `$}` is reached

from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Deque, List, Optional, Tuple, Union

from tipis_errors import LexError, LexErrorKind
from tipis_token import KEYWORDS, SINGLE, Span, Token, TokenType

logger = logging.getLogger(__name__)

_WS = frozenset(b" \t\r\n")
_IDENT_START = frozenset(b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_DIGITS = frozenset(b"0123456789")
_IDENT_CONT = _IDENT_START | _DIGITS | frozenset(b".")

_QUOTE  = ord('"')
_LBRACE = ord("{")
_RBRACE = ord("}")
_DOLLAR = ord("$")
_NUL    = 0


class Mode(Enum):
    PLAIN     = auto()   # "..."
    COMPOSITE = auto()   # {"..."}
    INSERTION = auto()   # {$ ... $}


@dataclass
class Cursor:
    """Everything look-ahead has to restore."""
    pos:     int = 0
    line:    int = 1
    col:     int = 1
    pending: Deque[Token] = field(default_factory=deque)
    modes:   Tuple[Tuple[Mode, Span], ...] = ()

    def copy(self) -> "Cursor":
        return Cursor(self.pos, self.line, self.col, deque(self.pending), self.modes)


class Lexer:
    def __init__(self, source: Union[bytes, str], filename: str = "<source>",
                 encoding: str = "utf-8"):
        if isinstance(source, str):
            source = source.encode(encoding)
        self.source   = source
        self.filename = filename
        self.cx       = Cursor()
        self._peeked: Optional[Tuple[Token, Cursor]] = None

    # ── Public API ────────────────────────────────────────────────────────────

    def next_token(self) -> Token:
        """Advance past the next token and return it."""
        if self._peeked is not None:
            tok, after = self._peeked
            self._peeked = None
            self.cx = after
        else:
            tok = self._lex()
        logger.debug("next token %r", tok)
        return tok

    def look_ahead(self) -> Token:
        """Return the next token without consuming it."""
        if self._peeked is not None:
            return self._peeked[0]
        snapshot = self.cx.copy()
        try:
            tok = self._lex()
            self._peeked = (tok, self.cx)
        finally:
            self.cx = snapshot
        return tok

    def tokenize(self) -> List[Token]:
        """Lex the whole source; the last token is EOF."""
        tokens: List[Token] = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.kind == TokenType.EOF:
                return tokens

    # ── Low-level helpers ─────────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> Optional[int]:
        idx = self.cx.pos + offset
        return self.source[idx] if idx < len(self.source) else None

    def _take(self) -> int:
        ch = self.source[self.cx.pos]
        self.cx.pos += 1
        if ch == 0x0A:
            self.cx.line += 1
            self.cx.col   = 1
        else:
            self.cx.col  += 1
        return ch

    def _mark(self) -> Tuple[int, int, int]:
        return self.cx.pos, self.cx.line, self.cx.col

    def _span(self, mark: Tuple[int, int, int]) -> Span:
        pos, line, col = mark
        return Span(self.source, pos, line, col, self.cx.pos - pos, self.filename)

    def _token(self, kind: TokenType, mark: Tuple[int, int, int]) -> Token:
        return Token(kind, self._span(mark))

    def _error(self, kind: LexErrorKind, message: str, span: Span) -> LexError:
        return LexError(kind, message, span)

    def _skip_ws(self) -> None:
        while self._peek() in _WS:
            self._take()

    # ── Tokens ────────────────────────────────────────────────────────────────

    def _lex(self) -> Token:
        if self.cx.pending:
            return self.cx.pending.popleft()

        self._skip_ws()
        mark = self._mark()
        ch   = self._peek()

        if ch is None:
            return self._lex_eof(mark)
        if ch in _IDENT_START:
            return self._lex_word(mark)
        if ch in _DIGITS:
            return self._lex_number(mark)

        nxt = self._peek(1)
        if ch == _QUOTE:
            self._take()
            tok = self._token(TokenType.DQUOTE_OPEN, mark)
            self._lex_content(Mode.PLAIN, tok.span)
            return tok
        if ch == _LBRACE and nxt == _QUOTE:
            self._take(); self._take()
            tok = self._token(TokenType.LBRACE_DQUOTE, mark)
            self._lex_content(Mode.COMPOSITE, tok.span)
            return tok
        if ch == _LBRACE and nxt == _DOLLAR:
            self._take(); self._take()
            tok = self._token(TokenType.LBRACE_DOLLAR, mark)
            self.cx.modes += ((Mode.INSERTION, tok.span),)
            return tok
        if ch == _DOLLAR and nxt == _RBRACE:
            self._take(); self._take()
            tok = self._token(TokenType.RBRACE_DOLLAR, mark)
            self._close_insertion()
            return tok

        if ch == _NUL:
            self._take()
            raise self._error(LexErrorKind.UNEXPECTED_EOF,
                              "Unexpected end of input (NUL byte)", self._span(mark))
        if ch in SINGLE:
            self._take()
            return self._token(SINGLE[ch], mark)
        if ch < 0x20 or ch == 0x7F:
            self._take()
            raise self._error(LexErrorKind.INVALID_CHARACTER,
                              f"Invalid character: {chr(ch)!r}", self._span(mark))
        return self._lex_invalid(mark)

    def _lex_eof(self, mark: Tuple[int, int, int]) -> Token:
        for mode, span in reversed(self.cx.modes):
            if mode is Mode.INSERTION:
                raise self._error(LexErrorKind.UNTERMINATED_INSERTION,
                                  "Unterminated insertion", span)
        return self._token(TokenType.EOF, mark)

    def _lex_word(self, mark: Tuple[int, int, int]) -> Token:
        while self._peek() in _IDENT_CONT:
            self._take()
        span = self._span(mark)
        word = span.raw.decode("ascii")
        return Token(KEYWORDS.get(word, TokenType.IDENTIFIER), span)

    def _lex_number(self, mark: Tuple[int, int, int]) -> Token:
        while self._peek() in _DIGITS:
            self._take()
        if self._peek() in _IDENT_CONT:
            while self._peek() in _IDENT_CONT:
                self._take()
            span = self._span(mark)
            raise self._error(LexErrorKind.INVALID_TOKEN,
                              f"Invalid number literal: {span.text!r}", span)
        return self._token(TokenType.INT, mark)

    def _lex_invalid(self, mark: Tuple[int, int, int]) -> Token:
        """Consume one (possibly multi-byte) character as an INVALID token."""
        lead  = self._take()
        width = 1
        if lead >= 0xF0:
            width = 4
        elif lead >= 0xE0:
            width = 3
        elif lead >= 0xC0:
            width = 2
        for _ in range(width - 1):
            if self._peek() is None:
                break
            self._take()
        span = self._span(mark)
        try:
            span.raw.decode("utf-8")
        except UnicodeDecodeError:
            raise self._error(LexErrorKind.INVALID_UTF8,
                              "Invalid UTF-8 in source", span) from None
        return Token(TokenType.INVALID, span)

    # ── Strings ───────────────────────────────────────────────────────────────

    def _lex_content(self, mode: Mode, opener: Span) -> None:
        """
        Pre-lex string content after an opener (or after the `$}` that
        resumes a string). Queues the STRING token when non-empty and the
        closer when reached; otherwise leaves the string on the mode stack.
        """
        mark   = self._mark()
        closed = False
        while True:
            ch = self._peek()
            if ch is None:
                span = Span(self.source, opener.offset, opener.line, opener.col,
                            len(self.source) - opener.offset, self.filename)
                raise self._error(LexErrorKind.UNTERMINATED_STRING,
                                  "Unterminated string", span)
            if ch == _LBRACE and self._peek(1) == _DOLLAR:
                break
            if ch == _QUOTE and mode is Mode.PLAIN:
                closed = True
                break
            if ch == _QUOTE and mode is Mode.COMPOSITE and self._peek(1) == _RBRACE:
                closed = True
                break
            self._take()

        content = self._span(mark)
        if content.length:
            try:
                content.raw.decode("utf-8")
            except UnicodeDecodeError:
                raise self._error(LexErrorKind.INVALID_UTF8,
                                  "Invalid UTF-8 in string", content) from None
            self.cx.pending.append(Token(TokenType.STRING, content))

        if not closed:
            self.cx.modes += ((mode, opener),)
            return

        close_mark = self._mark()
        if mode is Mode.PLAIN:
            self._take()
            self.cx.pending.append(self._token(TokenType.DQUOTE_CLOSE, close_mark))
        else:
            self._take(); self._take()
            self.cx.pending.append(self._token(TokenType.RBRACE_DQUOTE, close_mark))

    def _close_insertion(self) -> None:
        modes = self.cx.modes
        if not modes or modes[-1][0] is not Mode.INSERTION:
            return  # stray `$}`; the parser reports it
        modes = modes[:-1]
        self.cx.modes = modes
        if modes and modes[-1][0] is not Mode.INSERTION:
            mode, opener = modes[-1]
            self.cx.modes = modes[:-1]
            self._lex_content(mode, opener)
