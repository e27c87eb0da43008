"""Turn resolved links into documentation URLs."""

from __future__ import annotations

from typing import Mapping, Optional
from urllib.parse import quote

from ..config import RenderOptions
from ..models import DependencyRecord, ExternalUrl, LocalAnchor, Primitive, ResolvedLink, Unresolved
from ..resolve.context import PRIMITIVES, STD_CRATES

# item kind -> rustdoc page prefix
_PAGE_PREFIXES = {
    "struct": "struct",
    "enum": "enum",
    "union": "union",
    "trait": "trait",
    "type": "type",
    "const": "constant",
    "static": "static",
    "fn": "fn",
    "macro": "macro",
    "attr": "attr",
    "derive": "derive",
}


class LinkBuilder:
    """Builds rustdoc URLs for each :data:`ResolvedLink` variant."""

    def __init__(
        self,
        root: DependencyRecord,
        options: Optional[RenderOptions] = None,
        dependency_docs: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.root = root
        self.options = options or RenderOptions()
        self.dependency_docs = dict(dependency_docs or {})

    def __call__(self, link: ResolvedLink) -> Optional[str]:
        return self.url_for(link)

    def url_for(self, link: ResolvedLink) -> Optional[str]:
        if isinstance(link, Unresolved):
            return None
        if isinstance(link, ExternalUrl):
            return self._external(link)
        if isinstance(link, LocalAnchor):
            return self._local(link)
        if isinstance(link, Primitive):
            return self._primitive(link)
        raise TypeError(f"Unsupported link variant: {type(link).__name__}")

    def _base_for(self, crate: str, lib_name: str, doc_url: Optional[str]) -> str:
        return (
            self.dependency_docs.get(crate)
            or self.dependency_docs.get(lib_name)
            or doc_url
            or self.options.doc_base_url
        )

    def _external(self, link: ExternalUrl) -> str:
        lib = link.lib_name or link.crate.replace("-", "_")
        base = self._base_for(link.crate, lib, link.doc_url)
        root = f"{base}{link.crate}/{link.version}/{lib}/"
        if not link.item_path:
            return root
        return root + "?search=" + _query("::".join((lib,) + link.item_path))

    def _local(self, link: LocalAnchor) -> str:
        lib = self.root.lib_name
        base = self._base_for(self.root.name, lib, self.root.doc_url)
        root = f"{base}{self.root.name}/{self.root.version}/{lib}/"
        segments = tuple(segment for segment in link.path if segment != "crate")
        if not segments:
            return root
        if link.public and link.kind == "mod":
            return root + "/".join(segments) + "/index.html"
        prefix = _PAGE_PREFIXES.get(link.kind or "")
        if link.public and prefix:
            modules = "".join(f"{segment}/" for segment in segments[:-1])
            return f"{root}{modules}{prefix}.{segments[-1]}.html"
        query = "::".join((lib,) + segments) if link.public else segments[-1]
        return root + "?search=" + _query(query)

    def _primitive(self, link: Primitive) -> str:
        base = self.options.std_doc_url
        segments = link.path.split("::")
        if segments[0] in PRIMITIVES:
            return f"{base}std/primitive.{segments[0]}.html"
        if link.path.endswith("!"):
            crate = segments[0] if segments[0] in STD_CRATES else "std"
            return f"{base}{crate}/macro.{segments[-1][:-1]}.html"
        crate = segments[0] if segments[0] in STD_CRATES else "std"
        if len(segments) == 1:
            return f"{base}{crate}/"
        return f"{base}{crate}/?search=" + _query(link.path)


def _query(text: str) -> str:
    return quote(text, safe=":")


__all__ = ["LinkBuilder"]
