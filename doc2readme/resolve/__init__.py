"""Symbol resolution over a read-only module arena."""

from __future__ import annotations

from .context import ModuleNode, ResolutionContext
from .paths import PathQuery, is_path_like, parse_query
from .resolver import SymbolResolver, resolve_references

__all__ = [
    "ModuleNode",
    "PathQuery",
    "ResolutionContext",
    "SymbolResolver",
    "is_path_like",
    "parse_query",
    "resolve_references",
]
