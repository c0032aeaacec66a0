# tipis_config.py — Runtime configuration for the Tipis pipeline
#
# Defaults live on a frozen dataclass; `load_config` layers the environment
# (TIPIS_ENCODING, TIPIS_MAX_DEPTH, NO_COLOR) and keyword overrides on top.

from __future__ import annotations
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class TipisConfig:
    """Settings shared by the parser, resolver and executor."""

    # Encoding of materialized files; template source is always UTF-8
    encoding: str = "utf-8"
    # Longest chain of references the resolver follows before giving up
    max_depth: int = 64
    color: bool = True
    filename: str = "<source>"


DEFAULT_CONFIG = TipisConfig()


def _parse_depth(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"TIPIS_MAX_DEPTH must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"TIPIS_MAX_DEPTH must be positive, got {value}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None, **overrides: Any) -> TipisConfig:
    """Build a config from the environment; keyword overrides take precedence."""
    if env is None:
        env = os.environ
    values: dict = {}
    if env.get("TIPIS_ENCODING"):
        values["encoding"] = env["TIPIS_ENCODING"]
    if env.get("TIPIS_MAX_DEPTH"):
        values["max_depth"] = _parse_depth(env["TIPIS_MAX_DEPTH"])
    if "NO_COLOR" in env:
        values["color"] = False

    known = {f.name for f in fields(TipisConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise TypeError(f"Unknown config option(s): {', '.join(unknown)}")
    values.update({k: v for k, v in overrides.items() if v is not None})
    return replace(DEFAULT_CONFIG, **values)
