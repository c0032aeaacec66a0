# tipis_types.py — Declared types for Tipis parameters and symbols

from __future__ import annotations
from enum import Enum
from typing import Optional


class Ty(Enum):
    STRING  = "str"
    INT     = "int"
    LIST    = "list"
    DIR     = "dir"
    FILE    = "file"
    UNKNOWN = "unknown"   # wildcard; never written in source

    def __repr__(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value

    @staticmethod
    def accepts(target: "Ty", declared: "Ty") -> bool:
        """Can a symbol declared as `declared` resolve where `target` is wanted?"""
        return target is Ty.UNKNOWN or target is declared


_SURFACE = {ty.value: ty for ty in Ty if ty is not Ty.UNKNOWN}


def resolve_type(name: str) -> Optional[Ty]:
    """Map a source type name to a Ty. Returns None if unrecognised."""
    return _SURFACE.get(name)


def type_names() -> str:
    return ", ".join(f"`{n}`" for n in _SURFACE)
