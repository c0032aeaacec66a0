# tipis_token.py — Tokens & Spans for the Tipis scaffolding language
#
# A Span is a window onto the original source buffer: it keeps a reference
# to the buffer plus offset/length and only slices when asked.

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Optional


class TokenType(Enum):
    # Keywords
    MAIN          = auto()
    LET           = auto()
    DIR           = auto()
    FILE          = auto()
    REQ           = auto()
    FOR           = auto()
    IN            = auto()

    # Symbols
    AT            = auto()   # @
    BANG          = auto()   # !
    DOLLAR        = auto()   # $
    POUND         = auto()   # #
    SLASH         = auto()   # /
    BACKSLASH     = auto()   # \
    COLON         = auto()   # :
    SEMI          = auto()   # ;
    EQUAL         = auto()   # =
    COMMA         = auto()   # ,
    DOT           = auto()   # .

    # Openers
    DQUOTE_OPEN   = auto()   # "
    LBRACE        = auto()   # {
    LBRACE_DQUOTE = auto()   # {"
    LBRACE_DOLLAR = auto()   # {$
    LBRACKET      = auto()   # [
    LPAREN        = auto()   # (

    # Closers
    DQUOTE_CLOSE  = auto()   # "
    RBRACE        = auto()   # }
    RBRACE_DQUOTE = auto()   # "}
    RBRACE_DOLLAR = auto()   # $}
    RBRACKET      = auto()   # ]
    RPAREN        = auto()   # )

    # Literals
    STRING        = auto()
    INT           = auto()

    # Meta
    IDENTIFIER    = auto()
    EOF           = auto()
    INVALID       = auto()


KEYWORDS: Dict[str, TokenType] = {
    "main": TokenType.MAIN,
    "let":  TokenType.LET,
    "dir":  TokenType.DIR,
    "file": TokenType.FILE,
    "req":  TokenType.REQ,
    "for":  TokenType.FOR,
    "in":   TokenType.IN,
}


# Single-byte symbols, openers and closers. Compound forms ({" {$ "} $})
# need two-byte lookahead and are handled by the lexer directly.
SINGLE: Dict[int, TokenType] = {
    ord("@"):  TokenType.AT,
    ord("!"):  TokenType.BANG,
    ord("$"):  TokenType.DOLLAR,
    ord("#"):  TokenType.POUND,
    ord("/"):  TokenType.SLASH,
    ord("\\"): TokenType.BACKSLASH,
    ord(":"):  TokenType.COLON,
    ord(";"):  TokenType.SEMI,
    ord("="):  TokenType.EQUAL,
    ord(","):  TokenType.COMMA,
    ord("."):  TokenType.DOT,
    ord("{"):  TokenType.LBRACE,
    ord("["):  TokenType.LBRACKET,
    ord("("):  TokenType.LPAREN,
    ord("}"):  TokenType.RBRACE,
    ord("]"):  TokenType.RBRACKET,
    ord(")"):  TokenType.RPAREN,
}

OPENER_CLOSER: Dict[TokenType, TokenType] = {
    TokenType.DQUOTE_OPEN:   TokenType.DQUOTE_CLOSE,
    TokenType.LBRACE:        TokenType.RBRACE,
    TokenType.LBRACE_DQUOTE: TokenType.RBRACE_DQUOTE,
    TokenType.LBRACE_DOLLAR: TokenType.RBRACE_DOLLAR,
    TokenType.LBRACKET:      TokenType.RBRACKET,
    TokenType.LPAREN:        TokenType.RPAREN,
}

CLOSERS = frozenset(OPENER_CLOSER.values())

_DISPLAY: Dict[TokenType, str] = {
    TokenType.AT: "`@`", TokenType.BANG: "`!`", TokenType.DOLLAR: "`$`",
    TokenType.POUND: "`#`", TokenType.SLASH: "`/`", TokenType.BACKSLASH: "`\\`",
    TokenType.COLON: "`:`", TokenType.SEMI: "`;`", TokenType.EQUAL: "`=`",
    TokenType.COMMA: "`,`", TokenType.DOT: "`.`",
    TokenType.DQUOTE_OPEN: "`\"`", TokenType.DQUOTE_CLOSE: "closing `\"`",
    TokenType.LBRACE: "`{`", TokenType.RBRACE: "`}`",
    TokenType.LBRACE_DQUOTE: "`{\"`", TokenType.RBRACE_DQUOTE: "`\"}`",
    TokenType.LBRACE_DOLLAR: "`{$`", TokenType.RBRACE_DOLLAR: "`$}`",
    TokenType.LBRACKET: "`[`", TokenType.RBRACKET: "`]`",
    TokenType.LPAREN: "`(`", TokenType.RPAREN: "`)`",
    TokenType.STRING: "string", TokenType.INT: "integer",
    TokenType.IDENTIFIER: "identifier", TokenType.EOF: "end of input",
    TokenType.INVALID: "invalid token",
}


def describe(kind: TokenType) -> str:
    """Human-readable name of a token kind, for error messages."""
    if kind in _DISPLAY:
        return _DISPLAY[kind]
    return f"keyword `{kind.name.lower()}`"


@dataclass(frozen=True)
class Span:
    """Byte range [offset, offset + length) of a source buffer."""
    source: bytes = field(repr=False, compare=False)
    offset: int
    line:   int    # 1-indexed
    col:    int    # 1-indexed
    length: int
    file:   str = "<source>"

    def __repr__(self) -> str:
        return f"{self.file}:{self.line}:{self.col}+{self.length}"

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def raw(self) -> bytes:
        return self.source[self.offset:self.end]

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")

    def merge(self, other: "Span") -> "Span":
        """Return the smallest span that covers both self and other."""
        first = self if self.offset <= other.offset else other
        end = max(self.end, other.end)
        return Span(self.source, first.offset, first.line, first.col,
                    end - first.offset, self.file)

    @staticmethod
    def dummy() -> "Span":
        return Span(b"", 0, 0, 0, 0, "<dummy>")


@dataclass(frozen=True)
class Token:
    """A lexed token: its kind and where it came from."""
    kind: TokenType
    span: Span

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.value!r}, {self.span!r})"

    @property
    def value(self) -> str:
        return self.span.raw.decode("utf-8")

    @property
    def is_opener(self) -> bool:
        return self.kind in OPENER_CLOSER

    @property
    def is_closer(self) -> bool:
        return self.kind in CLOSERS

    @property
    def is_keyword(self) -> bool:
        return self.kind in KEYWORDS.values()

    def closer(self) -> Optional[TokenType]:
        return OPENER_CLOSER.get(self.kind)
