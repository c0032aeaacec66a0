# tipis_errors.py — Error taxonomy for the Tipis pipeline
#
# Three tiers, one per stage: LexError -> SynError -> ExecError. A later tier
# wraps an earlier one through `cause` (and `__cause__`), keeping the
# originating span so the caller can render a caret excerpt.

from __future__ import annotations
from enum import Enum
from typing import Optional, Union

from tipis_token import Span


class LexErrorKind(Enum):
    INVALID_CHARACTER      = "E0001"
    INVALID_TOKEN          = "E0002"
    INVALID_UTF8           = "E0003"
    UNTERMINATED_STRING    = "E0004"
    UNTERMINATED_INSERTION = "E0005"
    UNEXPECTED_EOF         = "E0006"


class SynErrorKind(Enum):
    EXPECTED          = "E0010"
    UNEXPECTED_EOF    = "E0011"
    UNMATCHED_CLOSER  = "E0012"
    INVALID_TYPE      = "E0013"
    NESTING_TOO_DEEP  = "E0014"
    LEXICAL           = "E0015"


class ExecErrorKind(Enum):
    EXPECTED          = "E0020"
    ALREADY_EXISTS    = "E0021"
    MULTIPLE_MAIN     = "E0022"
    NOT_FOUND         = "E0023"
    INVALID_TYPE      = "E0024"
    INVALID_ARGUMENT  = "E0025"
    CYCLE_DETECTED    = "E0026"
    DEPTH_EXCEEDED    = "E0027"
    IO                = "E0028"
    SYNTAX            = "E0029"


ErrorKind = Union[LexErrorKind, SynErrorKind, ExecErrorKind]


class TipisError(Exception):
    """Base class for every error the pipeline surfaces to callers."""

    def __init__(self, kind: ErrorKind, message: str,
                 span: Optional[Span] = None,
                 cause: Optional["TipisError"] = None,
                 hint: Optional[str] = None):
        super().__init__(message)
        self.kind    = kind
        self.message = message
        self.span    = span
        self.cause   = cause
        self.hint    = hint
        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> str:
        return self.kind.value

    def to_diagnostic(self, source: Union[bytes, str, None] = None):
        from tipis_diagnostic import Diagnostic
        return Diagnostic.from_error(self, source)

    def render(self, source: Union[bytes, str, None] = None,
               color: bool = False) -> str:
        return self.to_diagnostic(source).render(color=color)

    def __str__(self) -> str:
        if self.span is not None and self.span.line:
            return f"{self.span.file}:{self.span.line}:{self.span.col}: {self.message}"
        return self.message


class LexError(TipisError):
    """Raised by the lexer."""

    def __init__(self, kind: LexErrorKind, message: str, span: Span):
        super().__init__(kind, message, span)


class SynError(TipisError):
    """Raised by the parser; lexical failures are wrapped as LEXICAL."""

    def __init__(self, kind: SynErrorKind, message: str,
                 span: Optional[Span] = None,
                 cause: Optional[TipisError] = None,
                 expected: Optional[str] = None,
                 found: Optional[str] = None):
        super().__init__(kind, message, span, cause)
        self.expected = expected
        self.found    = found

    @classmethod
    def wrap(cls, err: LexError) -> "SynError":
        return cls(SynErrorKind.LEXICAL, err.message, err.span, cause=err)


class ExecError(TipisError):
    """Raised while building the symbol table, resolving or executing."""

    def __init__(self, kind: ExecErrorKind, message: str,
                 span: Optional[Span] = None,
                 cause: Optional[BaseException] = None,
                 name: Optional[str] = None,
                 hint: Optional[str] = None):
        wrapped = cause if isinstance(cause, TipisError) else None
        super().__init__(kind, message, span, wrapped, hint)
        self.name = name
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def wrap(cls, err: TipisError) -> "ExecError":
        return cls(ExecErrorKind.SYNTAX, err.message, err.span, cause=err)

    @classmethod
    def io(cls, err: OSError, span: Optional[Span] = None) -> "ExecError":
        target = err.filename if err.filename is not None else "?"
        return cls(ExecErrorKind.IO, f"{err.strerror or err}: {target}",
                   span, cause=err)
