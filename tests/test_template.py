"""Tests for README template rendering."""

from __future__ import annotations

import pytest

from doc2readme.errors import TemplateFailure
from doc2readme.template import DEFAULT_TEMPLATE, TemplateRenderer, template_variables


def _variables(**overrides: object) -> dict:
    values = template_variables(crate="demo", version="0.1.0", readme="Body text.")
    values.update(overrides)
    return values


def test_default_template_renders_title_badges_and_body() -> None:
    badges = [
        {"alt": "crates.io", "image": "https://img/crates.svg", "link": "https://crates.io/crates/demo"},
        {"alt": "rustc", "image": "https://img/rustc.svg", "link": None},
    ]
    rendered = TemplateRenderer().render(DEFAULT_TEMPLATE, _variables(badges=badges))
    assert rendered.startswith("# demo\n")
    assert "[![crates.io](https://img/crates.svg)](https://crates.io/crates/demo)\n" in rendered
    assert "![rustc](https://img/rustc.svg)\n" in rendered
    assert rendered.endswith("Body text.\n")


def test_custom_template_sees_package_fields() -> None:
    source = "{{ crate }} {{ version }} {{ license or 'unlicensed' }}\n\n{{ readme }}"
    rendered = TemplateRenderer().render(source, _variables(license="MIT"))
    assert rendered == "demo 0.1.0 MIT\n\nBody text."


def test_output_is_not_html_escaped() -> None:
    rendered = TemplateRenderer().render("{{ readme }}", _variables(readme="a < b & `c`"))
    assert rendered == "a < b & `c`"


def test_undefined_variable_is_a_template_failure() -> None:
    with pytest.raises(TemplateFailure, match="undefined"):
        TemplateRenderer().render("{{ missing }}", _variables(), name="README.j2")


def test_syntax_error_is_a_template_failure() -> None:
    with pytest.raises(TemplateFailure, match="README.j2"):
        TemplateRenderer().render("{% if %}", _variables(), name="README.j2")
