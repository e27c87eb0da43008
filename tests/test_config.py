"""Tests for doc2readme.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from doc2readme.config import Doc2ReadmeConfig, RenderOptions, load_config, with_overrides
from doc2readme.errors import ConfigError


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, Doc2ReadmeConfig)
    assert config.root == tmp_path.resolve()
    assert config.output == "README.md"
    assert config.template == "README.j2"
    assert config.prefer_bin is False
    assert config.allow_unresolved is False
    assert config.workers == 1
    assert config.render == RenderOptions()
    assert config.dependency_docs == {}
    assert config.output_path == tmp_path.resolve() / "README.md"


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".doc2readme.yml"
    config_file.write_text(
        """
output: docs/README.md
template: templates/readme.j2
prefer_bin: yes
allow_unresolved: true
workers: 4
heading_offset: 2
unresolved: plain
default_code_language: text
doc_base_url: https://docs.example
dependency_docs:
  widgets: https://widgets.example/docs
  empty: ""
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.output == "docs/README.md"
    assert config.template_path == tmp_path.resolve() / "templates" / "readme.j2"
    assert config.prefer_bin is True
    assert config.allow_unresolved is True
    assert config.workers == 4
    assert config.render.heading_offset == 2
    assert config.render.unresolved == "plain"
    assert config.render.default_code_language == "text"
    assert config.render.doc_base_url == "https://docs.example/"
    assert config.dependency_docs == {"widgets": "https://widgets.example/docs/"}


def test_load_config_rejects_unknown_policy(tmp_path: Path) -> None:
    (tmp_path / ".doc2readme.yml").write_text("unresolved: loud\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="loud"):
        load_config(tmp_path)


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".doc2readme.yml").write_text("output: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path)


def test_load_config_requires_mapping(tmp_path: Path) -> None:
    (tmp_path / ".doc2readme.yml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path)


def test_with_overrides_skips_unset_values(tmp_path: Path) -> None:
    config = load_config(tmp_path)
    updated = with_overrides(
        config,
        output=None,
        workers=3,
        heading_offset=0,
        unresolved=None,
        default_code_language="console",
    )
    assert updated.output == "README.md"
    assert updated.workers == 3
    assert updated.render.heading_offset == 0
    assert updated.render.unresolved == "emphasis"
    assert updated.render.default_code_language == "console"
    assert config.workers == 1


def test_with_overrides_validates_policy(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        with_overrides(load_config(tmp_path), unresolved="loud")


def test_render_options_fingerprint_items_are_strings() -> None:
    items = RenderOptions(heading_offset=3).fingerprint_items()
    assert items["heading_offset"] == "3"
    assert all(isinstance(value, str) for value in items.values())


def test_load_config_rejects_undecodable_file(tmp_path: Path) -> None:
    (tmp_path / ".doc2readme.yml").write_bytes(b"output: \xff\xfe\n")
    with pytest.raises(ConfigError, match="Failed to read"):
        load_config(tmp_path)


def test_load_config_rejects_unreadable_path(tmp_path: Path) -> None:
    (tmp_path / ".doc2readme.yml").mkdir()
    with pytest.raises(ConfigError, match="Failed to read"):
        load_config(tmp_path)
