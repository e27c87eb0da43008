"""Adapters over the Rust parser and the cargo metadata provider."""

from __future__ import annotations

from .metadata import CargoMetadataProvider
from .rust_source import ExtractedCrate, RustSourceExtractor, parse_use_tree

__all__ = ["CargoMetadataProvider", "ExtractedCrate", "RustSourceExtractor", "parse_use_tree"]
