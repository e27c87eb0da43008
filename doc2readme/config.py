"""Configuration loading for doc2readme (.doc2readme.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".doc2readme.yml"

UNRESOLVED_POLICIES = ("emphasis", "plain")


@dataclass(frozen=True)
class RenderOptions:
    """Settings that change the bytes of the rendered README."""

    heading_offset: int = 1
    unresolved: str = "emphasis"
    default_code_language: str = "rust"
    doc_base_url: str = "https://docs.rs/"
    std_doc_url: str = "https://doc.rust-lang.org/stable/"

    def fingerprint_items(self) -> Dict[str, str]:
        return {
            "default_code_language": self.default_code_language,
            "doc_base_url": self.doc_base_url,
            "heading_offset": str(self.heading_offset),
            "std_doc_url": self.std_doc_url,
            "unresolved": self.unresolved,
        }


@dataclass
class Doc2ReadmeConfig:
    """Represents the settings defined in .doc2readme.yml."""

    root: Path
    output: str = "README.md"
    template: str = "README.j2"
    prefer_bin: bool = False
    allow_unresolved: bool = False
    workers: int = 1
    render: RenderOptions = field(default_factory=RenderOptions)
    dependency_docs: Dict[str, str] = field(default_factory=dict)

    @property
    def output_path(self) -> Path:
        return self.root / self.output

    @property
    def template_path(self) -> Path:
        return self.root / self.template


def load_config(config_path: Path) -> Doc2ReadmeConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return Doc2ReadmeConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    defaults = RenderOptions()
    unresolved = _as_str(data.get("unresolved")) or defaults.unresolved
    if unresolved not in UNRESOLVED_POLICIES:
        raise ConfigError(
            f"Unsupported unresolved policy {unresolved!r}; expected one of "
            + ", ".join(UNRESOLVED_POLICIES)
        )
    render = RenderOptions(
        heading_offset=_as_int(data.get("heading_offset"), defaults.heading_offset),
        unresolved=unresolved,
        default_code_language=_as_str(data.get("default_code_language"))
        or defaults.default_code_language,
        doc_base_url=_with_slash(_as_str(data.get("doc_base_url")) or defaults.doc_base_url),
        std_doc_url=_with_slash(_as_str(data.get("std_doc_url")) or defaults.std_doc_url),
    )

    dependency_docs = {
        str(name): _with_slash(str(url))
        for name, url in _as_dict(data.get("dependency_docs")).items()
        if isinstance(url, str) and url.strip()
    }

    return Doc2ReadmeConfig(
        root=root,
        output=_as_str(data.get("output")) or "README.md",
        template=_as_str(data.get("template")) or "README.j2",
        prefer_bin=_as_bool(data.get("prefer_bin")) or False,
        allow_unresolved=_as_bool(data.get("allow_unresolved")) or False,
        workers=max(1, _as_int(data.get("workers"), 1)),
        render=render,
        dependency_docs=dependency_docs,
    )


def with_overrides(config: Doc2ReadmeConfig, **overrides: Any) -> Doc2ReadmeConfig:
    """Return a copy of ``config`` with CLI overrides applied (``None`` means unset)."""
    render_keys = {"heading_offset", "unresolved", "default_code_language"}
    top: Dict[str, Any] = {}
    render: Dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in render_keys:
            render[key] = value
        else:
            top[key] = value
    if render.get("unresolved") not in (None, *UNRESOLVED_POLICIES):
        raise ConfigError(f"Unsupported unresolved policy {render['unresolved']!r}")
    updated = replace(config, **top)
    if render:
        updated = replace(updated, render=replace(updated.render, **render))
    return updated


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


__all__ = [
    "CONFIG_FILENAME",
    "Doc2ReadmeConfig",
    "RenderOptions",
    "load_config",
    "with_overrides",
]
