"""Markdown rewriting tests."""

from __future__ import annotations

from typing import Optional, Sequence

import pytest

from doc2readme.config import RenderOptions
from doc2readme.markdown.rewriter import MarkdownRewriter
from doc2readme.markdown.scanner import scan_references
from doc2readme.models import (
    LocalAnchor,
    ResolvedLink,
    Unresolved,
    UnresolvedReason,
)
from tests._fixtures.crate_builder import make_doc


def _url(link: ResolvedLink) -> Optional[str]:
    if isinstance(link, LocalAnchor):
        return "https://docs.example/" + "/".join(link.path[1:])
    return None


def _render(
    text: str,
    links: Optional[Sequence[ResolvedLink]] = None,
    options: Optional[RenderOptions] = None,
) -> str:
    scanned = scan_references(make_doc(text))
    if links is None:
        links = [LocalAnchor(("crate", ref.query.strip("`"))) for ref in scanned.references]
    return MarkdownRewriter(options).rewrite(scanned, links, _url)


def test_references_become_reference_style_links() -> None:
    assert _render("See [Widget] for details.") == (
        "See [Widget][__link0] for details.\n\n[__link0]: https://docs.example/Widget"
    )


def test_same_url_is_defined_once() -> None:
    rendered = _render("[Widget] and [again][Widget] and [`Widget`].")
    assert rendered.count("https://docs.example/Widget") == 1
    assert "[Widget][__link0] and [again][__link0] and [`Widget`][__link0]." in rendered


def test_ordinary_links_and_images_are_kept() -> None:
    rendered = _render("Visit [site](https://example.com \"Home\") ![logo](logo.png) [top](#top)")
    assert '[site][__link0]' in rendered
    assert '![logo][__link1]' in rendered
    assert "[top](#top)" in rendered
    assert '[__link0]: https://example.com "Home"' in rendered
    assert "[__link1]: logo.png" in rendered


def test_unresolved_links_use_emphasis_or_plain_text() -> None:
    missing = [Unresolved(UnresolvedReason.NOT_FOUND)]
    assert _render("A [Gadget] here.", missing) == "A *Gadget* here."
    plain = RenderOptions(unresolved="plain")
    assert _render("A [Gadget] here.", missing, plain) == "A Gadget here."


def test_link_count_must_match_references() -> None:
    scanned = scan_references(make_doc("[Widget]"))
    with pytest.raises(ValueError):
        MarkdownRewriter().rewrite(scanned, [], _url)


def test_headings_are_shifted_and_clamped() -> None:
    assert _render("# Title\n\n###### Deep") == "## Title\n\n###### Deep"
    assert _render("## Title", options=RenderOptions(heading_offset=0)) == "## Title"
    assert _render("# Title", options=RenderOptions(heading_offset=-3)) == "# Title"


def test_rust_code_blocks_drop_hidden_lines() -> None:
    text = """
    ```
    # use demo::Widget;
    let w = Widget::new();
    ## not hidden
    ```
    """
    assert _render(text) == "```rust\nlet w = Widget::new();\n# not hidden\n```"


def test_rust_attributes_collapse_to_rust() -> None:
    text = "```no_run,edition2021\n# fn main() {}\nrun();\n```"
    assert _render(text) == "```rust\nrun();\n```"


def test_ignore_blocks_keep_hidden_lines() -> None:
    text = "```ignore\n# hidden\nvisible();\n```"
    assert _render(text) == "```rust\n# hidden\nvisible();\n```"


def test_other_languages_are_untouched() -> None:
    text = "```toml\n# comment\n[dependencies]\n```"
    assert _render(text) == "```toml\n# comment\n[dependencies]\n```"


def test_indented_code_uses_default_language() -> None:
    text = "Example:\n\n    let x = 1;"
    options = RenderOptions(default_code_language="text")
    assert _render(text, options=options) == "Example:\n\n```text\nlet x = 1;\n```"


def test_fence_is_longer_than_inner_backticks() -> None:
    text = "````text\n```\n````"
    assert _render(text) == "````text\n```\n````"


def test_lists_quotes_and_rules() -> None:
    text = """
    - one
    - two [Widget]

    1. first
    2. second

    > quoted
    > text

    ---
    """
    rendered = _render(text)
    assert "- one\n- two [Widget][__link0]" in rendered
    assert "1. first\n2. second" in rendered
    assert "> quoted\n> text" in rendered
    assert "***" in rendered


def test_tables_keep_alignment() -> None:
    text = "| a | b |\n|:--|--:|\n| 1 | [Widget] |"
    rendered = _render(text)
    assert rendered.startswith("| a | b |\n| :--- | ---: |\n| 1 | [Widget][__link0] |")


def test_text_is_escaped() -> None:
    assert _render(r"Use \*stars\* and snake_case.") == r"Use \*stars\* and snake_case."
    assert _render("*em* and **strong** and ~~gone~~") == "*em* and **strong** and ~~gone~~"
