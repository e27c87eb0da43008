"""Core data models shared across doc2readme components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union


@dataclass(frozen=True, order=True)
class Span:
    """Byte range inside a named source file."""

    file: str
    start: int
    end: int


@dataclass(frozen=True)
class DocLine:
    """One line of doc comment text and the source span it came from.

    ``exact`` is false when the text was decoded from a string literal, so
    columns in ``text`` do not map onto bytes of ``span``.
    """

    text: str
    span: Span
    exact: bool = True


@dataclass(frozen=True)
class DocComment:
    """Crate-level documentation, one entry per markdown line."""

    lines: Tuple[DocLine, ...]
    span: Span

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)

    def line_span(self, index: int) -> Span:
        """Return the source span of a markdown line, or the whole comment."""
        if 0 <= index < len(self.lines):
            return self.lines[index].span
        return self.span


@dataclass(frozen=True)
class SymbolReference:
    """A bracketed symbol citation found in a doc comment."""

    id: int
    raw: str
    target: Optional[str]
    span: Span
    module_path: Tuple[str, ...] = ("crate",)

    @property
    def query(self) -> str:
        """The text that names the symbol: the explicit target, else the label."""
        return self.target if self.target is not None else self.raw


class UnresolvedReason(str, Enum):
    NOT_FOUND = "no such name visible"
    AMBIGUOUS = "ambiguous"
    CYCLE = "cyclic re-export"
    INCOMPATIBLE_KIND = "incompatible kind"


@dataclass(frozen=True)
class LocalAnchor:
    """Item defined in the documented crate, addressed by its item path.

    ``kind`` is the defining item's kind when ``path`` names the item itself;
    associated items (``Enum::Variant``) carry ``None``. ``public`` is False
    when a module on the path is private, so the path has no rustdoc page.
    """

    path: Tuple[str, ...]
    kind: Optional[str] = None
    public: bool = True


@dataclass(frozen=True)
class ExternalUrl:
    """Item in a dependency; ``item_path`` is relative to the dependency root."""

    crate: str
    version: str
    item_path: Tuple[str, ...]
    lib_name: str = ""
    doc_url: Optional[str] = None


@dataclass(frozen=True)
class Primitive:
    """Primitive type or standard library item, e.g. ``u8`` or ``std::vec::Vec``."""

    path: str


@dataclass(frozen=True)
class Unresolved:
    reason: UnresolvedReason
    candidates: Tuple[str, ...] = ()
    detail: Optional[str] = None

    @property
    def message(self) -> str:
        if self.reason is UnresolvedReason.AMBIGUOUS:
            return f"ambiguous between {len(self.candidates)} candidates: " + ", ".join(
                self.candidates
            )
        if self.detail:
            return f"{self.reason.value}: {self.detail}"
        return self.reason.value


ResolvedLink = Union[LocalAnchor, ExternalUrl, Primitive, Unresolved]


@dataclass(frozen=True, order=True)
class DependencyRecord:
    """A crate the documented package depends on (or the package itself)."""

    name: str
    lib_name: str
    version: str
    doc_url: Optional[str] = None

    def sort_key(self) -> Tuple[str, str, str, str]:
        return (self.name, self.lib_name, self.version, self.doc_url or "")


class Namespace(str, Enum):
    TYPE = "type"
    VALUE = "value"
    MACRO = "macro"


# item kind -> namespace it lives in
ITEM_NAMESPACES = {
    "mod": Namespace.TYPE,
    "struct": Namespace.TYPE,
    "enum": Namespace.TYPE,
    "union": Namespace.TYPE,
    "trait": Namespace.TYPE,
    "type": Namespace.TYPE,
    "fn": Namespace.VALUE,
    "const": Namespace.VALUE,
    "static": Namespace.VALUE,
    "macro": Namespace.MACRO,
    "attr": Namespace.MACRO,
    "derive": Namespace.MACRO,
}


@dataclass(frozen=True)
class ItemRecord:
    """A locally defined item as seen by the extractor."""

    name: str
    kind: str
    visibility: str = "private"
    span: Optional[Span] = None
    exported_at_root: bool = False


@dataclass(frozen=True)
class ImportRecord:
    """A ``use`` binding: ``name`` made visible as an alias for ``target``.

    ``glob`` imports carry the module path in ``target`` and an empty name.
    """

    name: str
    target: Tuple[str, ...]
    visibility: str = "private"
    glob: bool = False
    span: Optional[Span] = None


@dataclass(frozen=True)
class ModuleRecord:
    """Module contents; ``path`` starts with ``crate``."""

    path: Tuple[str, ...]
    visibility: str = "pub"
    items: Tuple[ItemRecord, ...] = ()
    imports: Tuple[ImportRecord, ...] = ()


@dataclass(frozen=True)
class TargetInfo:
    name: str
    kind: str
    src_path: str
    edition: str = "2021"


@dataclass
class CrateMetadata:
    """Package-level facts supplied by the metadata provider."""

    name: str
    version: str
    target: TargetInfo
    license: Optional[str] = None
    repository: Optional[str] = None
    rust_version: Optional[str] = None
    description: Optional[str] = None
    manifest_path: Optional[str] = None
    dependencies: Tuple[DependencyRecord, ...] = field(default_factory=tuple)

    @property
    def lib_name(self) -> str:
        return self.target.name.replace("-", "_")

    def root_record(self) -> DependencyRecord:
        for record in self.dependencies:
            if record.name == self.name and record.lib_name == self.lib_name:
                return record
        return DependencyRecord(self.name, self.lib_name, self.version)
