"""Resolve symbol references against the crate's module tree and dependencies."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import (
    ITEM_NAMESPACES,
    DependencyRecord,
    ExternalUrl,
    ImportRecord,
    ItemRecord,
    LocalAnchor,
    Primitive,
    ResolvedLink,
    SymbolReference,
    Unresolved,
    UnresolvedReason,
)
from .context import PRIMITIVES, ROOT, STD_CRATES, ResolutionContext
from .paths import MACRO_KINDS, TYPE_KINDS, PathQuery, parse_query

Chain = FrozenSet[Tuple[int, str]]

# import hops followed for one name before giving up
MAX_IMPORT_HOPS = 128


@dataclass(frozen=True)
class _Binding:
    """What a name denotes once imports are followed."""

    kind: str  # "item" | "module" | "external" | "primitive"
    path: Tuple[str, ...]
    item_kind: Optional[str] = None
    module: Optional[int] = None
    dependency: Optional[DependencyRecord] = None
    associated: bool = False
    public: bool = True

    @property
    def identity(self) -> Tuple[object, ...]:
        namespace = ITEM_NAMESPACES.get(self.item_kind or "", self.item_kind)
        dep = self.dependency.lib_name if self.dependency else None
        return (self.kind, dep, self.path, namespace)

    def describe(self) -> str:
        if self.kind == "external" and self.dependency is not None:
            return "::".join((self.dependency.lib_name,) + self.path)
        text = "::".join(self.path)
        if self.item_kind and not self.associated:
            return f"{self.item_kind} {text}"
        return text


@dataclass
class _Lookup:
    bindings: List[_Binding] = field(default_factory=list)
    cycle: bool = False
    too_deep: bool = False

    def add(self, binding: _Binding) -> None:
        if all(existing.identity != binding.identity for existing in self.bindings):
            self.bindings.append(binding)

    def merge(self, other: "_Lookup") -> None:
        for binding in other.bindings:
            self.add(binding)
        self.cycle = self.cycle or other.cycle
        self.too_deep = self.too_deep or other.too_deep


class SymbolResolver:
    """Maps each :class:`SymbolReference` to a :data:`ResolvedLink`.

    Resolution order: dependency-qualified paths first, then the crate's own
    module tree (definitions, re-exports, globs), then primitives and the std
    prelude. A crate name that is also bound locally is ambiguous. Anything
    left is reported as :class:`Unresolved`.
    """

    def __init__(self, context: ResolutionContext) -> None:
        self.context = context
        self.logger = get_logger("resolver")

    def resolve_all(
        self, references: Sequence[SymbolReference], workers: int = 1
    ) -> List[ResolvedLink]:
        """Resolve every reference; output order always matches input order."""
        if workers <= 1 or len(references) <= 1:
            return [self.resolve(reference) for reference in references]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.resolve, references))

    def resolve(self, reference: SymbolReference) -> ResolvedLink:
        query = parse_query(reference.query)
        if query is None:
            return Unresolved(UnresolvedReason.NOT_FOUND, detail="not a symbol path")
        accessor = self.context.module_index(reference.module_path)
        if accessor is None:
            accessor = ROOT
        link = self._resolve_query(query, accessor)
        if isinstance(link, Unresolved):
            self.logger.debug("Unresolved `%s`: %s", reference.query, link.message)
        return link

    def _resolve_query(self, query: PathQuery, accessor: int) -> ResolvedLink:
        if query.primitive_only:
            return self._primitive(query) or Unresolved(
                UnresolvedReason.NOT_FOUND, detail="not a primitive type"
            )

        segments = query.segments
        first = segments[0]
        if not query.absolute and first == self.context.crate_lib_name:
            segments = ("crate",) + segments[1:]
        elif query.absolute or first in self.context.dependencies or first in STD_CRATES:
            external = self._extern_path(segments)
            if external is None:
                return Unresolved(UnresolvedReason.NOT_FOUND, detail=f"no crate named `{first}`")
            if not query.absolute:
                local = self._local_crate_clash(query, accessor)
                if local:
                    names = {binding.describe() for binding in local} | {external.describe()}
                    return Unresolved(UnresolvedReason.AMBIGUOUS, tuple(sorted(names)))
            return self._link_for(external)

        lookup = self._resolve_path(accessor, accessor, segments, query.kinds, frozenset())
        if len(lookup.bindings) == 1:
            return self._link_for(lookup.bindings[0])
        if len(lookup.bindings) > 1:
            candidates = tuple(sorted(binding.describe() for binding in lookup.bindings))
            return Unresolved(UnresolvedReason.AMBIGUOUS, candidates)

        primitive = self._primitive(query)
        if primitive is not None:
            return primitive
        if lookup.too_deep:
            return Unresolved(
                UnresolvedReason.CYCLE,
                detail=f"import chain longer than {MAX_IMPORT_HOPS} hops",
            )
        if lookup.cycle:
            return Unresolved(UnresolvedReason.CYCLE, detail=query.text)
        if query.kinds is not None:
            untyped = self._resolve_path(accessor, accessor, segments, None, frozenset())
            if untyped.bindings:
                found = ", ".join(sorted(binding.describe() for binding in untyped.bindings))
                return Unresolved(UnresolvedReason.INCOMPATIBLE_KIND, detail=f"found {found}")
        return Unresolved(UnresolvedReason.NOT_FOUND, detail=query.text)

    def _local_crate_clash(self, query: PathQuery, accessor: int) -> List[_Binding]:
        """Local bindings of a first segment that also names a crate."""
        first = query.segments[0]
        kinds = query.kinds if len(query.segments) == 1 else TYPE_KINDS
        lookup = self._lookup_name(accessor, accessor, first, kinds, frozenset())
        # `extern crate log;` and `use log;` bind the crate itself
        return [
            binding
            for binding in lookup.bindings
            if not (binding.kind == "external" and binding.path == ()
                    and binding.dependency is not None and binding.dependency.lib_name == first)
            and not (binding.kind == "primitive" and binding.path == (first,))
        ]

    def _primitive(self, query: PathQuery) -> Optional[Primitive]:
        segments = query.segments
        name = segments[0]
        if name in PRIMITIVES and (query.kinds is None or query.primitive_only):
            return Primitive("::".join(segments))
        if query.primitive_only:
            return None
        if query.kinds is not None and query.kinds <= MACRO_KINDS:
            canonical = self.context.prelude.get(name + "!") if len(segments) == 1 else None
            return Primitive(canonical) if canonical else None
        canonical = self.context.prelude.get(name)
        if canonical is None:
            return None
        return Primitive("::".join((canonical,) + tuple(segments[1:])))

    def _extern_path(self, segments: Sequence[str]) -> Optional[_Binding]:
        if not segments:
            return None
        first, rest = segments[0], tuple(segments[1:])
        if first in STD_CRATES:
            return _Binding("primitive", (first,) + rest)
        dependency = self.context.dependency(first)
        if dependency is None:
            return None
        return _Binding("external", rest, dependency=dependency)

    def _link_for(self, binding: _Binding) -> ResolvedLink:
        if binding.kind == "external" and binding.dependency is not None:
            dep = binding.dependency
            return ExternalUrl(dep.name, dep.version, binding.path, dep.lib_name, dep.doc_url)
        if binding.kind == "primitive":
            return Primitive("::".join(binding.path))
        public = binding.public and self._is_public_path(binding.path)
        return LocalAnchor(binding.path, None if binding.associated else binding.item_kind, public)

    def _is_public_path(self, path: Tuple[str, ...]) -> bool:
        for depth in range(len(path), 0, -1):
            index = self.context.module_index(path[:depth])
            if index is not None:
                return self.context.is_public_path(index)
        return True

    def _resolve_path(
        self,
        start: int,
        accessor: int,
        segments: Sequence[str],
        kinds: Optional[FrozenSet[str]],
        chain: Chain,
    ) -> _Lookup:
        """Walk ``segments`` from module ``start``; the last segment honours ``kinds``."""
        if not segments:
            return _Lookup()
        if segments[0] == "":
            binding = self._extern_path(segments[1:])
            return _Lookup([binding] if binding else [])

        current = start
        index = 0
        if segments[0] == "crate":
            current, index = ROOT, 1
        elif segments[0] == "self":
            index = 1
        while index < len(segments) and segments[index] == "super":
            parent = self.context.module(current).parent
            if parent is None:
                return _Lookup()
            current, index = parent, index + 1

        if index == len(segments):
            node = self.context.module(current)
            return _Lookup([_Binding("module", node.path, "mod", module=current)])

        for position in range(index, len(segments)):
            segment = segments[position]
            last = position == len(segments) - 1
            lookup = self._lookup_name(
                current, accessor, segment, kinds if last else TYPE_KINDS, chain
            )
            if position == 0 and not lookup.bindings:
                lookup.merge(self._extern_fallback(segments))
                if lookup.bindings:
                    return lookup
            if last or len(lookup.bindings) != 1:
                return lookup

            binding = lookup.bindings[0]
            rest = tuple(segments[position + 1:])
            if binding.kind == "module" and binding.module is not None:
                current = binding.module
                continue
            if binding.kind == "item":
                return _Lookup(
                    [_Binding("item", binding.path + rest, binding.item_kind,
                              associated=True, public=binding.public)]
                )
            if binding.kind == "external":
                return _Lookup([_Binding("external", binding.path + rest, dependency=binding.dependency)])
            return _Lookup([_Binding("primitive", binding.path + rest)])
        return _Lookup()

    def _extern_fallback(self, segments: Sequence[str]) -> _Lookup:
        binding = self._extern_path(segments)
        return _Lookup([binding] if binding else [])

    def _lookup_name(
        self,
        module: int,
        accessor: int,
        name: str,
        kinds: Optional[FrozenSet[str]],
        chain: Chain,
    ) -> _Lookup:
        """Collect every binding of ``name`` visible in ``module``.

        Import chains are followed with a worklist; each (module, name) pair
        may appear once per chain, so a revisit means a re-export cycle. Each
        hop checks visibility from the module that holds the import, and a
        chain stops after ``MAX_IMPORT_HOPS`` hops so that import prefixes
        never recurse deeper than that.
        """
        result = _Lookup()
        pending: List[Tuple[int, str, int, Chain]] = [(module, name, accessor, chain)]
        while pending:
            current, wanted, viewer, seen = pending.pop()
            key = (current, wanted)
            if key in seen:
                result.cycle = True
                continue
            if len(seen) >= MAX_IMPORT_HOPS:
                result.too_deep = True
                continue
            seen = seen | {key}
            node = self.context.module(current)

            for item in node.items.get(wanted, ()):
                if self._accepts(item, kinds) and self.context.is_visible(
                    current, item.visibility, viewer
                ):
                    result.add(self._item_binding(current, item))
            child = node.children.get(wanted)
            if child is not None and (kinds is None or "mod" in kinds):
                child_node = self.context.module(child)
                if self.context.is_visible(current, child_node.visibility, viewer):
                    result.add(_Binding("module", child_node.path, "mod", module=child))

            for imp in node.imports.get(wanted, ()):
                if not self.context.is_visible(current, imp.visibility, viewer):
                    continue
                found, follow = self._follow_import(current, imp, kinds, seen)
                result.merge(found)
                if follow is not None:
                    pending.append((follow[0], follow[1], current, seen))

            # explicit names shadow glob imports
            if node.declares(wanted):
                continue
            for glob in node.globs:
                if not self.context.is_visible(current, glob.visibility, viewer):
                    continue
                target = self._resolve_path(current, current, glob.target, TYPE_KINDS, seen)
                result.cycle = result.cycle or target.cycle
                result.too_deep = result.too_deep or target.too_deep
                for binding in target.bindings:
                    if binding.kind == "module" and binding.module is not None:
                        pending.append((binding.module, wanted, current, seen))
        return result

    def _follow_import(
        self,
        module: int,
        imp: ImportRecord,
        kinds: Optional[FrozenSet[str]],
        chain: Chain,
    ) -> Tuple[_Lookup, Optional[Tuple[int, str]]]:
        """Return terminal bindings of ``imp``, or the (module, name) to continue in."""
        target = imp.target
        if len(target) == 1:
            return self._single_segment_import(module, target[0], kinds), None

        last = target[-1]
        prefix = self._resolve_path(module, module, target[:-1], TYPE_KINDS, chain)
        if len(prefix.bindings) != 1:
            return _Lookup(cycle=prefix.cycle, too_deep=prefix.too_deep), None

        base = prefix.bindings[0]
        if base.kind == "module" and base.module is not None:
            return _Lookup(), (base.module, last)
        if base.kind == "external":
            return _Lookup([_Binding("external", base.path + (last,), dependency=base.dependency)]), None
        if base.kind == "primitive":
            return _Lookup([_Binding("primitive", base.path + (last,))]), None
        associated = _Binding("item", base.path + (last,), base.item_kind, associated=True, public=base.public)
        return _Lookup([associated]), None

    def _single_segment_import(
        self, module: int, name: str, kinds: Optional[FrozenSet[str]]
    ) -> _Lookup:
        if name in ("crate", "self"):
            index = ROOT if name == "crate" else module
            return _Lookup([_Binding("module", self.context.module(index).path, "mod", module=index)])
        result = _Lookup()
        for item in self.context.module(module).items.get(name, ()):
            if self._accepts(item, kinds):
                result.add(self._item_binding(module, item))
        if not result.bindings:
            result.merge(self._extern_fallback((name,)))
        return result

    def _accepts(self, item: ItemRecord, kinds: Optional[FrozenSet[str]]) -> bool:
        return kinds is None or item.kind in kinds

    def _item_binding(self, owner: int, item: ItemRecord) -> _Binding:
        node = self.context.module(owner)
        public = item.visibility.replace(" ", "") == "pub" or item.exported_at_root
        if item.kind == "mod":
            child = node.children.get(item.name)
            if child is not None:
                return _Binding("module", node.path + (item.name,), "mod", module=child, public=public)
        if item.exported_at_root:
            return _Binding("item", ("crate", item.name), item.kind, public=True)
        return _Binding("item", node.path + (item.name,), item.kind, public=public)


def resolve_references(
    context: ResolutionContext, references: Iterable[SymbolReference], workers: int = 1
) -> List[ResolvedLink]:
    """Resolve ``references`` in order with a fresh resolver."""
    return SymbolResolver(context).resolve_all(list(references), workers)


__all__ = ["SymbolResolver", "resolve_references"]
