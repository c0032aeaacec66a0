# tipis_diagnostic.py — Diagnostic rendering for Tipis errors
#
# Turns a TipisError (and its span) into a caret-annotated excerpt of the
# template source. The pipeline itself aborts on the first error; the bag
# is for orchestration layers that collect and print them.

from __future__ import annotations
import sys
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, List, Optional, Union

from tipis_token import Span

if TYPE_CHECKING:
    from tipis_errors import TipisError


class Severity(Enum):
    ERROR   = auto()
    WARNING = auto()
    NOTE    = auto()


# ANSI colour codes (gracefully no-op on Windows without VT support)
_RESET  = "\033[0m"
_BOLD   = "\033[1m"
_RED    = "\033[31m"
_YELLOW = "\033[33m"
_CYAN   = "\033[36m"
_GREEN  = "\033[32m"

_SEV_COLOR = {
    Severity.ERROR:   _RED,
    Severity.WARNING: _YELLOW,
    Severity.NOTE:    _CYAN,
}

_SEV_LABEL = {
    Severity.ERROR:   "error",
    Severity.WARNING: "warning",
    Severity.NOTE:    "note",
}


@dataclass
class Label:
    """An annotated source region inside a diagnostic."""
    span: Span
    message: str
    primary: bool = True   # True → ^^^ underlining; False → --- underlining


@dataclass
class Diagnostic:
    """
    A single rendered-on-demand error report.

    Example output:
        error[E0023]: `name` not found
          --> app.tp:3:14
           |
         3 |     file a {"{$name$}"};
           |               ^^^^ `name` not found
           |
    """
    severity: Severity
    code: str
    message: str
    labels: List[Label] = field(default_factory=list)
    notes: List[str]   = field(default_factory=list)
    hints: List[str]   = field(default_factory=list)

    _source_lines: Optional[List[bytes]] = field(default=None, repr=False)

    @classmethod
    def from_error(cls, err: "TipisError",
                   source: Union[bytes, str, None] = None) -> "Diagnostic":
        d = cls(Severity.ERROR, err.code, err.message)
        if err.span is not None and err.span.line:
            d.labels.append(Label(err.span, err.message, primary=True))
        inner = err.cause
        while inner is not None:
            if inner.span is not None and inner.span != err.span and inner.span.line:
                d.labels.append(Label(inner.span, inner.message, primary=False))
            else:
                d.notes.append(f"caused by: {inner.message}")
            inner = inner.cause
        if err.hint:
            d.hints.append(err.hint)
        if source is None and err.span is not None:
            source = err.span.source
        if source:
            d.with_source(source)
        return d

    def with_source(self, source: Union[bytes, str]) -> "Diagnostic":
        if isinstance(source, str):
            source = source.encode("utf-8")
        self._source_lines = source.split(b"\n")
        return self

    def render(self, color: bool = True) -> str:
        lines: List[str] = []
        sev_col = _SEV_COLOR[self.severity] if color else ""
        reset   = _RESET if color else ""
        bold    = _BOLD  if color else ""

        # --- Header line ---
        sev_label = _SEV_LABEL[self.severity]
        lines.append(
            f"{bold}{sev_col}{sev_label}[{self.code}]{reset}{bold}: {self.message}{reset}"
        )

        # --- Source snippets for each label ---
        for label in self.labels:
            sp = label.span
            arrow_col = _CYAN if color else ""
            lines.append(f"  {arrow_col}-->{reset} {sp.file}:{sp.line}:{sp.col}")

            if self._source_lines and 0 < sp.line <= len(self._source_lines):
                raw_line = self._source_lines[sp.line - 1]
                src_line = raw_line.decode("utf-8", errors="replace").rstrip("\r")
                line_num = str(sp.line)
                gutter   = " " * len(line_num)
                lines.append(f"   {arrow_col}{gutter} |{reset}")
                lines.append(f"   {arrow_col}{line_num} |{reset} {src_line}")

                # Underline; a multi-line span stops at the end of its first line
                lead   = raw_line[:max(0, sp.col - 1)].decode("utf-8", errors="replace")
                body   = raw_line[max(0, sp.col - 1):sp.col - 1 + sp.length]
                length = max(1, len(body.decode("utf-8", errors="replace")))
                under_char = "^" if label.primary else "-"
                under_col  = sev_col if label.primary else _CYAN if color else ""
                underline  = " " * len(lead) + under_char * length
                lines.append(
                    f"   {arrow_col}{gutter} |{reset} "
                    f"{under_col}{underline} {label.message}{reset}"
                )
                lines.append(f"   {arrow_col}{gutter} |{reset}")

        # --- Notes & Hints ---
        for note in self.notes:
            note_col = _CYAN if color else ""
            lines.append(f"   {note_col}= note:{reset} {note}")
        for hint in self.hints:
            hint_col = _GREEN if color else ""
            lines.append(f"   {hint_col}= hint:{reset} {hint}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render(color=False)


class DiagnosticBag:
    """
    Collects the diagnostics of a check or make run. Errors are added as
    they are caught; the caller decides when to flush.
    """

    def __init__(self, source: Union[bytes, str] = b""):
        self._diags: List[Diagnostic] = []
        self._source = source

    def report(self, err: "TipisError") -> Diagnostic:
        d = Diagnostic.from_error(err, self._source or None)
        self._diags.append(d)
        return d

    def warning(self, code: str, message: str,
                span: Optional[Span] = None) -> Diagnostic:
        d = Diagnostic(severity=Severity.WARNING, code=code, message=message)
        if span:
            d.labels.append(Label(span, message, primary=True))
        if self._source:
            d.with_source(self._source)
        self._diags.append(d)
        return d

    @property
    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self._diags)

    @property
    def all(self) -> List[Diagnostic]:
        return list(self._diags)

    @property
    def codes(self) -> List[str]:
        return [d.code for d in self._diags]

    def flush(self, color: bool = True, stream=None) -> None:
        """Print all diagnostics (stderr by default) and clear the bag."""
        out = stream if stream is not None else sys.stderr
        for d in self._diags:
            print(d.render(color=color), file=out)
        self._diags.clear()

    def __len__(self) -> int:
        return len(self._diags)


# ── Error Code Registry ────────────────────────────────────────────────────────
# Centralised so tooling (LSP, docs) can enumerate all codes.

ERROR_CODES = {
    # Lexer
    "E0001": "Invalid character",
    "E0002": "Invalid token",
    "E0003": "Invalid UTF-8",
    "E0004": "Unterminated string",
    "E0005": "Unterminated insertion",
    "E0006": "Unexpected end of input",
    # Parser
    "E0010": "Unexpected token",
    "E0011": "Unexpected end of input",
    "E0012": "Unmatched closer",
    "E0013": "Invalid type",
    "E0014": "String nesting too deep",
    "E0015": "Lexical error",
    # Symbols, resolution & execution
    "E0020": "Unexpected declaration",
    "E0021": "Already exists",
    "E0022": "Multiple main declarations",
    "E0023": "Not found",
    "E0024": "Invalid type",
    "E0025": "Invalid argument",
    "E0026": "Reference cycle",
    "E0027": "Resolution depth exceeded",
    "E0028": "I/O error",
    "E0029": "Syntax error",
    # Warnings
    "W0001": "No main declaration",
}
