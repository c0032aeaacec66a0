# tipis_driver.py — Pipeline entry points for Tipis front ends
#
# Glue for whatever sits on top (a CLI, a REPL, an editor plugin): each
# helper runs a prefix of the pipeline on in-memory source and either
# returns the result or raises the first TipisError.
#
#   source ─▶ Syntax.parse_all ─▶ Syms.add_all_ast ─▶ Syms.main ─▶ exec.run

from __future__ import annotations
import logging
from pathlib import Path
from typing import List, Optional, TextIO, Union

from tipis_ast import Ast, Dir, File
from tipis_config import TipisConfig, load_config
from tipis_diagnostic import DiagnosticBag
from tipis_errors import ExecError, ExecErrorKind, SynError, TipisError
from tipis_exec import PathLike, run
from tipis_parser import Syntax
from tipis_symbols import ArgsLike, Syms

logger = logging.getLogger(__name__)

Source = Union[bytes, str]


def read_source(path: PathLike) -> bytes:
    """Read a template file as raw bytes."""
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ExecError.io(e) from e


def parse_source(source: Source, filename: Optional[str] = None,
                 config: Optional[TipisConfig] = None) -> List[Ast]:
    if config is None:
        config = load_config()
    syntax = Syntax(source, filename or config.filename)
    asts = syntax.parse_all()
    logger.debug("parsed %d declaration(s) from %s", len(asts), syntax.filename)
    return asts


def load_program(source: Source, args: Optional[ArgsLike] = None,
                 filename: Optional[str] = None,
                 config: Optional[TipisConfig] = None) -> Syms:
    """Parse `source` and register every declaration; syntax errors become SYNTAX."""
    try:
        asts = parse_source(source, filename, config)
    except SynError as e:
        raise ExecError.wrap(e) from e
    syms = Syms(args)
    syms.add_all_ast(asts)
    logger.debug("loaded %d symbol(s)", len(syms))
    return syms


def check(source: Source, filename: Optional[str] = None,
          config: Optional[TipisConfig] = None) -> DiagnosticBag:
    """Parse and build the symbol table, collecting problems instead of raising."""
    if config is None:
        config = load_config()
    filename = filename or config.filename
    bag = DiagnosticBag(source)
    try:
        syms = Syms()
        syms.add_all_ast(parse_source(source, filename, config))
    except TipisError as e:
        bag.report(e)
        return bag
    if syms.main() is None:
        bag.warning("W0001", "No `main` declaration; nothing will be made")
    return bag


def make(source: Source, args: Optional[ArgsLike] = None,
         root: Optional[PathLike] = None,
         config: Optional[TipisConfig] = None,
         out: Optional[TextIO] = None) -> Union[Dir, File]:
    """Run the whole pipeline and return the `main` declaration that was executed."""
    if config is None:
        config = load_config()
    syms = load_program(source, args, config=config)
    main = syms.main()
    if main is None:
        raise ExecError(ExecErrorKind.NOT_FOUND, "No `main` declaration found",
                        name="main", hint="mark one `dir` or `file` with `main`")
    logger.debug("making %s under %s", main.alias, root or ".")
    run(syms, main, root=root, config=config, out=out)
    return main
