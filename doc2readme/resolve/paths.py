"""Parsing of bracketed reference text into a path query."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_PATH_PATTERN = re.compile(rf"^(?P<absolute>::)?(?P<path>{_IDENT}(?:::{_IDENT})*)$")

TYPE_KINDS = frozenset({"mod", "struct", "enum", "union", "trait", "type"})
VALUE_KINDS = frozenset({"fn", "const", "static"})
MACRO_KINDS = frozenset({"macro", "attr", "derive"})

# rustdoc disambiguator prefix -> item kinds it accepts
DISAMBIGUATORS = {
    "struct": frozenset({"struct"}),
    "enum": frozenset({"enum"}),
    "union": frozenset({"union"}),
    "trait": frozenset({"trait"}),
    "mod": frozenset({"mod"}),
    "module": frozenset({"mod"}),
    "type": TYPE_KINDS,
    "tyalias": frozenset({"type"}),
    "typealias": frozenset({"type"}),
    "const": frozenset({"const"}),
    "constant": frozenset({"const"}),
    "static": frozenset({"static"}),
    "fn": frozenset({"fn"}),
    "function": frozenset({"fn"}),
    "method": frozenset({"fn"}),
    "value": VALUE_KINDS,
    "macro": MACRO_KINDS,
    "derive": frozenset({"derive"}),
    "attr": frozenset({"attr"}),
}
PRIMITIVE_DISAMBIGUATORS = frozenset({"prim", "primitive"})


@dataclass(frozen=True)
class PathQuery:
    """A symbol path extracted from reference text, plus kind constraints."""

    segments: Tuple[str, ...]
    absolute: bool = False
    kinds: Optional[FrozenSet[str]] = None
    primitive_only: bool = False

    @property
    def text(self) -> str:
        return ("::" if self.absolute else "") + "::".join(self.segments)


def parse_query(text: str) -> Optional[PathQuery]:
    """Return the path query for ``text``, or ``None`` when it does not name a symbol."""
    cleaned = text.strip()
    if len(cleaned) >= 2 and cleaned.startswith("`") and cleaned.endswith("`"):
        cleaned = cleaned[1:-1].strip()
    if not cleaned:
        return None

    kinds: Optional[FrozenSet[str]] = None
    primitive_only = False
    if "@" in cleaned:
        prefix, _, rest = cleaned.partition("@")
        if prefix in PRIMITIVE_DISAMBIGUATORS:
            primitive_only = True
        elif prefix in DISAMBIGUATORS:
            kinds = DISAMBIGUATORS[prefix]
        else:
            return None
        cleaned = rest.strip()

    if cleaned.endswith("!"):
        cleaned = cleaned[:-1]
        kinds = (kinds or MACRO_KINDS) & MACRO_KINDS
    elif cleaned.endswith("()"):
        cleaned = cleaned[:-2]
        kinds = (kinds or VALUE_KINDS) & frozenset({"fn"})

    cleaned = _strip_generics(cleaned)
    if cleaned is None:
        return None

    match = _PATH_PATTERN.match(cleaned)
    if match is None:
        return None
    segments = tuple(match.group("path").split("::"))
    return PathQuery(
        segments=segments,
        absolute=bool(match.group("absolute")),
        kinds=kinds,
        primitive_only=primitive_only,
    )


def is_path_like(text: str) -> bool:
    return parse_query(text) is not None


def _strip_generics(text: str) -> Optional[str]:
    depth = 0
    kept = []
    for char in text:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
            if depth < 0:
                return None
        elif depth == 0:
            kept.append(char)
    if depth != 0:
        return None
    return "".join(kept).strip()


__all__ = ["PathQuery", "is_path_like", "parse_query"]
