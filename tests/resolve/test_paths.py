"""Reference text parsing tests."""

from __future__ import annotations

import pytest

from doc2readme.resolve.paths import MACRO_KINDS, is_path_like, parse_query


def test_plain_and_qualified_paths() -> None:
    query = parse_query("widgets::Widget")
    assert query is not None
    assert query.segments == ("widgets", "Widget")
    assert query.name == "Widget"
    assert query.kinds is None
    assert not query.absolute


def test_backticks_and_generics_are_stripped() -> None:
    query = parse_query("`Vec<Option<u8>>`")
    assert query is not None
    assert query.segments == ("Vec",)


def test_leading_colons_mark_absolute_path() -> None:
    query = parse_query("::serde::Serialize")
    assert query is not None
    assert query.absolute
    assert query.text == "::serde::Serialize"


def test_disambiguators_restrict_kinds() -> None:
    query = parse_query("struct@Widget")
    assert query is not None
    assert query.kinds == frozenset({"struct"})


def test_macro_and_function_suffixes() -> None:
    macro = parse_query("vec!")
    assert macro is not None
    assert macro.segments == ("vec",)
    assert macro.kinds == MACRO_KINDS

    function = parse_query("Widget::new()")
    assert function is not None
    assert function.segments == ("Widget", "new")
    assert function.kinds == frozenset({"fn"})


def test_primitive_disambiguator() -> None:
    query = parse_query("prim@u8")
    assert query is not None
    assert query.primitive_only
    assert query.segments == ("u8",)


@pytest.mark.parametrize(
    "text",
    ["", "   ", "x y", "https://example.com", "foo@bar", "a::", "Vec<u8", "1abc", "see below"],
)
def test_non_paths_are_rejected(text: str) -> None:
    assert parse_query(text) is None
    assert not is_path_like(text)
