"""Resolution context construction and visibility tests."""

from __future__ import annotations

from doc2readme.models import DependencyRecord, ItemRecord, ModuleRecord
from doc2readme.resolve.context import ROOT, ResolutionContext, prelude


def _context() -> ResolutionContext:
    modules = [
        ModuleRecord(("crate",), items=(ItemRecord("outer", "mod", "pub"),)),
        ModuleRecord(("crate", "outer", "inner"), "pub(crate)", (ItemRecord("Deep", "struct", "pub"),)),
        ModuleRecord(
            ("crate", "macros"),
            "private",
            (ItemRecord("shout", "macro", "pub", exported_at_root=True),),
        ),
    ]
    deps = [
        DependencyRecord("serde", "serde", "1.0.1"),
        DependencyRecord("demo", "demo", "0.1.0"),
    ]
    return ResolutionContext.build(modules, deps, "demo")


def test_missing_ancestors_are_created() -> None:
    context = _context()
    outer = context.module_index(("crate", "outer"))
    inner = context.module_index(("crate", "outer", "inner"))
    assert context.module_index(("crate",)) == ROOT
    assert outer is not None and inner is not None
    assert context.module(inner).parent == outer
    assert context.module(outer).children["inner"] == inner


def test_exported_macros_are_visible_at_root() -> None:
    context = _context()
    assert "shout" in context.module(ROOT).items


def test_dependencies_are_keyed_by_lib_name() -> None:
    context = _context()
    serde = context.dependency("serde")
    assert serde is not None and serde.version == "1.0.1"
    assert context.dependency("missing") is None


def test_visibility_rules() -> None:
    context = _context()
    outer = context.module_index(("crate", "outer"))
    inner = context.module_index(("crate", "outer", "inner"))
    assert outer is not None and inner is not None

    assert context.is_visible(inner, "pub", ROOT)
    assert context.is_visible(inner, "pub(crate)", ROOT)
    assert not context.is_visible(inner, "private", ROOT)
    assert context.is_visible(outer, "private", inner)
    assert context.is_visible(inner, "pub(super)", outer)
    assert not context.is_visible(inner, "pub(super)", ROOT)
    assert context.is_visible(inner, "pub(in crate::outer)", outer)
    assert not context.is_visible(inner, "pub(in crate::outer)", ROOT)


def test_public_path_requires_every_module_public() -> None:
    context = _context()
    inner = context.module_index(("crate", "outer", "inner"))
    outer = context.module_index(("crate", "outer"))
    assert inner is not None and outer is not None
    assert context.is_public_path(outer)
    assert not context.is_public_path(inner)
    assert context.is_public_path(ROOT)


def test_prelude_depends_on_edition() -> None:
    assert prelude("2021")["TryFrom"] == "std::convert::TryFrom"
    assert "TryFrom" not in prelude("2018")
    assert prelude("2015")["vec!"] == "std::vec!"
    assert prelude("2021")["Some"] == "std::option::Option::Some"
