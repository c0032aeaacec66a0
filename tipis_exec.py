# tipis_exec.py — Materialize Tipis declarations onto the filesystem
#
# A Dir becomes a directory (ancestors included) and its children are
# executed beneath it; a File has its content resolved and is then written,
# replacing any previous contents. A reference in a directory body that
# resolves to a string is printed to the output stream. Runs are not
# transactional: whatever was written before a failure stays on disk.
#
# Every declaration being executed stays on the resolver's reference chain,
# so a dir that reaches itself again fails with CYCLE_DETECTED.

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO, Union

from tipis_ast import AstKind, Dir, File, Node, Ref, Visitor
from tipis_config import DEFAULT_CONFIG, TipisConfig
from tipis_errors import ExecError, ExecErrorKind
from tipis_resolve import Bindings, Resolver
from tipis_symbols import ArgsLike, Key, Syms, normalize_args
from tipis_types import Ty

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Executor(Visitor):
    def __init__(self, syms: Syms, resolver: Optional[Resolver] = None,
                 encoding: str = "utf-8", out: Optional[TextIO] = None):
        self.syms     = syms
        self.resolver = resolver if resolver is not None else Resolver(syms)
        self.encoding = encoding
        self.out      = out

    def execute(self, node: Node, parent: PathLike = ".",
                args: Optional[ArgsLike] = None) -> None:
        if not isinstance(node, (Dir, File)):
            self.generic_visit(node)
        bindings = self.syms.args if args is None else normalize_args(args)
        with self.resolver.tracking(Key(node.alias), node.span):
            self.visit(node, Path(parent), bindings)

    def generic_visit(self, node: Node, *args):
        raise ExecError(ExecErrorKind.EXPECTED,
                        f"Expected `dir` or `file`, found {type(node).__name__.lower()}",
                        getattr(node, "span", None))

    # ── Nodes ─────────────────────────────────────────────────────────────────

    def visit_Dir(self, d: Dir, parent: Path, args: Bindings) -> None:
        path = parent / d.path
        if path.exists() and not path.is_dir():
            raise ExecError(ExecErrorKind.ALREADY_EXISTS,
                            f"`{path}` exists and is not a directory", d.span,
                            name=d.alias)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExecError.io(e, d.span) from e
        logger.info("dir  %s", path)
        for child in d.children:
            self.visit(child, path, args)

    def visit_File(self, f: File, parent: Path, args: Bindings) -> None:
        body = self.resolver.resolve_str(f.content, args)
        path = parent / f.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body.encode(self.encoding))
        except OSError as e:
            raise ExecError.io(e, f.span) from e
        logger.info("file %s (%d bytes)", path, len(body))

    def visit_Ref(self, ref: Ref, parent: Path, args: Bindings) -> None:
        target = Ty.UNKNOWN if ref.kind in (AstKind.ANY, AstKind.LET) else ref.kind.target
        node = self.resolver.resolve(ref, target, args)
        if isinstance(node, str):
            print(node, file=self.out if self.out is not None else sys.stdout)
            return
        with self.resolver.tracking(Key(node.alias), ref.span):
            self.visit(node, parent, self.resolver.bind(ref, node, args))


def run(syms: Syms, ast: Node, args: Optional[ArgsLike] = None,
        root: Optional[PathLike] = None,
        config: Optional[TipisConfig] = None,
        out: Optional[TextIO] = None) -> None:
    """Execute a `dir` or `file` declaration under `root` (default: cwd)."""
    if config is None:
        config = DEFAULT_CONFIG
    if not isinstance(ast, (Dir, File)):
        raise ExecError(ExecErrorKind.EXPECTED,
                        f"Expected `dir` or `file`, found {type(ast).__name__.lower()}",
                        getattr(ast, "span", None))
    resolver = Resolver(syms, max_depth=config.max_depth)
    executor = Executor(syms, resolver, encoding=config.encoding, out=out)
    executor.execute(ast, Path(root) if root is not None else Path("."), args)
