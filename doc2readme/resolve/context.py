"""Read-only resolution context: an arena of modules addressed by index."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models import DependencyRecord, ImportRecord, ItemRecord, ModuleRecord

ROOT = 0
STD_CRATES = frozenset({"std", "core", "alloc"})

PRIMITIVES = frozenset(
    {
        "bool", "char", "str", "f32", "f64",
        "i8", "i16", "i32", "i64", "i128", "isize",
        "u8", "u16", "u32", "u64", "u128", "usize",
        "array", "slice", "tuple", "unit", "never", "pointer", "reference", "fn",
    }
)

# https://doc.rust-lang.org/stable/std/prelude/index.html#prelude-contents
_PRELUDE = (
    ("Copy", "marker"), ("Send", "marker"), ("Sized", "marker"), ("Sync", "marker"),
    ("Unpin", "marker"), ("Drop", "ops"), ("Fn", "ops"), ("FnMut", "ops"),
    ("FnOnce", "ops"), ("drop", "mem"), ("Box", "boxed"), ("ToOwned", "borrow"),
    ("Clone", "clone"), ("PartialEq", "cmp"), ("PartialOrd", "cmp"), ("Eq", "cmp"),
    ("Ord", "cmp"), ("AsRef", "convert"), ("AsMut", "convert"), ("Into", "convert"),
    ("From", "convert"), ("Default", "default"), ("Iterator", "iter"),
    ("Extend", "iter"), ("IntoIterator", "iter"), ("DoubleEndedIterator", "iter"),
    ("ExactSizeIterator", "iter"), ("Option", "option"), ("Some", "option::Option"),
    ("None", "option::Option"), ("Result", "result"), ("Ok", "result::Result"),
    ("Err", "result::Result"), ("String", "string"), ("ToString", "string"),
    ("Vec", "vec"),
)
_PRELUDE_2021 = (("TryFrom", "convert"), ("TryInto", "convert"), ("FromIterator", "iter"))

_STD_MACROS = (
    "assert", "assert_eq", "assert_ne", "cfg", "column", "compile_error", "concat",
    "dbg", "debug_assert", "debug_assert_eq", "debug_assert_ne", "env", "eprint",
    "eprintln", "file", "format", "format_args", "include", "include_bytes",
    "include_str", "line", "matches", "module_path", "option_env", "panic", "print",
    "println", "stringify", "thread_local", "todo", "unimplemented", "unreachable",
    "vec", "write", "writeln",
)


def prelude(edition: str) -> Dict[str, str]:
    """Map prelude names to canonical ``std`` paths for the given edition."""
    entries = list(_PRELUDE)
    if _edition_year(edition) >= 2021:
        entries.extend(_PRELUDE_2021)
    scope = {name: f"std::{module}::{name}" for name, module in entries}
    for name in _STD_MACROS:
        scope[f"{name}!"] = f"std::{name}!"
    return scope


def _edition_year(edition: str) -> int:
    try:
        return int(edition)
    except (TypeError, ValueError):
        return 2015


@dataclass(frozen=True)
class ModuleNode:
    """One module of the crate; ``parent`` and children are arena indices."""

    index: int
    path: Tuple[str, ...]
    parent: Optional[int]
    visibility: str
    items: Mapping[str, Tuple[ItemRecord, ...]]
    imports: Mapping[str, Tuple[ImportRecord, ...]]
    globs: Tuple[ImportRecord, ...]
    children: Mapping[str, int]

    def declares(self, name: str) -> bool:
        return name in self.items or name in self.imports


class ResolutionContext:
    """Names visible in the crate plus dependency records; never mutated after build."""

    def __init__(
        self,
        modules: Sequence[ModuleNode],
        dependencies: Mapping[str, DependencyRecord],
        crate_lib_name: str,
        prelude_names: Mapping[str, str],
    ) -> None:
        self._modules = tuple(modules)
        self._by_path = MappingProxyType({node.path: node.index for node in self._modules})
        self.dependencies = MappingProxyType(dict(dependencies))
        self.crate_lib_name = crate_lib_name
        self.prelude = MappingProxyType(dict(prelude_names))

    @classmethod
    def build(
        cls,
        modules: Iterable[ModuleRecord],
        dependencies: Iterable[DependencyRecord],
        crate_lib_name: str,
        edition: str = "2021",
    ) -> "ResolutionContext":
        records: Dict[Tuple[str, ...], List[ModuleRecord]] = defaultdict(list)
        for record in modules:
            records[record.path].append(record)
        records.setdefault(("crate",), [])

        # every ancestor of a known module must exist in the arena
        for path in list(records):
            for depth in range(1, len(path)):
                records.setdefault(path[:depth], [])

        ordered = sorted(records, key=lambda path: (len(path), path))
        index_of = {path: index for index, path in enumerate(ordered)}

        items: Dict[int, Dict[str, List[ItemRecord]]] = defaultdict(lambda: defaultdict(list))
        imports: Dict[int, Dict[str, List[ImportRecord]]] = defaultdict(lambda: defaultdict(list))
        globs: Dict[int, List[ImportRecord]] = defaultdict(list)
        visibility: Dict[int, str] = {}
        for path, group in records.items():
            index = index_of[path]
            visibility[index] = group[0].visibility if group else "pub"
            for record in group:
                for item in record.items:
                    items[index][item.name].append(item)
                    if item.exported_at_root and index != ROOT:
                        items[ROOT][item.name].append(item)
                for imp in record.imports:
                    if imp.glob:
                        globs[index].append(imp)
                    else:
                        imports[index][imp.name].append(imp)

        nodes: List[ModuleNode] = []
        for path in ordered:
            index = index_of[path]
            children = {
                child[-1]: index_of[child]
                for child in ordered
                if len(child) == len(path) + 1 and child[: len(path)] == path
            }
            nodes.append(
                ModuleNode(
                    index=index,
                    path=path,
                    parent=index_of.get(path[:-1]) if len(path) > 1 else None,
                    visibility=visibility[index],
                    items=MappingProxyType({k: tuple(v) for k, v in items[index].items()}),
                    imports=MappingProxyType({k: tuple(v) for k, v in imports[index].items()}),
                    globs=tuple(globs[index]),
                    children=MappingProxyType(children),
                )
            )

        by_lib: Dict[str, DependencyRecord] = {}
        for dep in sorted(dependencies, key=DependencyRecord.sort_key):
            by_lib[dep.lib_name] = dep
        return cls(nodes, by_lib, crate_lib_name, prelude(edition))

    @property
    def modules(self) -> Tuple[ModuleNode, ...]:
        return self._modules

    def module(self, index: int) -> ModuleNode:
        return self._modules[index]

    def module_index(self, path: Sequence[str]) -> Optional[int]:
        return self._by_path.get(tuple(path))

    def dependency(self, lib_name: str) -> Optional[DependencyRecord]:
        return self.dependencies.get(lib_name)

    def is_ancestor(self, ancestor: int, index: Optional[int]) -> bool:
        """True when ``index`` is ``ancestor`` or nested inside it."""
        while index is not None:
            if index == ancestor:
                return True
            index = self._modules[index].parent
        return False

    def is_visible(self, owner: int, visibility: str, accessor: int) -> bool:
        """Apply Rust visibility rules for an item declared in module ``owner``."""
        vis = visibility.replace(" ", "")
        if vis in ("pub", "pub(crate)", "crate"):
            return True
        if vis in ("private", "pub(self)", ""):
            return self.is_ancestor(owner, accessor)
        if vis == "pub(super)":
            parent = self._modules[owner].parent
            return self.is_ancestor(parent if parent is not None else owner, accessor)
        if vis.startswith("pub(in"):
            target = tuple(vis[len("pub(in"):-1].split("::"))
            if target and target[0] == "self":
                target = self._modules[owner].path + target[1:]
            scope = self._by_path.get(target)
            return scope is None or self.is_ancestor(scope, accessor)
        return True

    def is_public_path(self, index: int) -> bool:
        """True when every module from the root to ``index`` is ``pub``."""
        node: Optional[ModuleNode] = self._modules[index]
        while node is not None and node.parent is not None:
            if node.visibility.replace(" ", "") != "pub":
                return False
            node = self._modules[node.parent]
        return True


__all__ = ["ModuleNode", "PRIMITIVES", "ROOT", "ResolutionContext", "STD_CRATES", "prelude"]
