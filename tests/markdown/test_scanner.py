"""Reference scanning tests."""

from __future__ import annotations

from doc2readme.markdown.scanner import scan_references
from tests._fixtures.crate_builder import make_doc


def _refs(text: str):
    return scan_references(make_doc(text)).references


def test_shortcut_collapsed_and_full_references() -> None:
    refs = _refs("Use [Widget], [Gadget][] and [the frame][render::Frame].")
    assert [(ref.raw, ref.target) for ref in refs] == [
        ("Widget", None),
        ("Gadget", None),
        ("the frame", "render::Frame"),
    ]
    assert [ref.query for ref in refs] == ["Widget", "Gadget", "render::Frame"]
    assert [ref.id for ref in refs] == [0, 1, 2]


def test_inline_links_with_paths_are_references() -> None:
    refs = _refs("See [the type](crate::Widget) or [the site](https://example.com).")
    assert [(ref.raw, ref.target) for ref in refs] == [("the type", "crate::Widget")]


def test_code_spans_keep_their_backticks() -> None:
    refs = _refs("Call [`Widget::new`] to start.")
    assert len(refs) == 1
    assert refs[0].raw == "`Widget::new`"
    assert refs[0].target is None


def test_defined_labels_and_prose_are_not_references() -> None:
    text = """
    Read [the guide] and [docs].

    [docs]: https://example.com/docs
    """
    assert _refs(text) == ()


def test_code_is_ignored() -> None:
    text = """
    ```
    let x = v[Widget];
    ```

    Inline `[Widget]` too.
    """
    assert _refs(text) == ()


def test_task_markers_are_not_references() -> None:
    refs = _refs("- [x] done with [Widget]")
    assert [ref.raw for ref in refs] == ["Widget"]


def test_spans_point_at_the_label() -> None:
    doc = make_doc("Intro line.\nSee [Widget] and [Widget].")
    refs = scan_references(doc).references
    source = "Intro line.\nSee [Widget] and [Widget]."
    assert [source[ref.span.start:ref.span.end] for ref in refs] == ["Widget", "Widget"]
    assert refs[0].span.start < refs[1].span.start


def test_positions_map_back_to_references() -> None:
    scanned = scan_references(make_doc("A [Widget] b [Gadget]"))
    assert sorted(scanned.positions.values()) == [0, 1]
    block, child = next(key for key, value in scanned.positions.items() if value == 1)
    reference = scanned.reference_at(block, child)
    assert reference is not None and reference.raw == "Gadget"
    assert scanned.reference_at(block, 99) is None
