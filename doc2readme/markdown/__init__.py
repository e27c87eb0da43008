"""Markdown scanning and re-serialization built on markdown-it-py."""

from __future__ import annotations

from .rewriter import MarkdownRewriter, UrlFor
from .scanner import ScannedDocument, markdown_parser, scan_references

__all__ = [
    "MarkdownRewriter",
    "ScannedDocument",
    "markdown_parser",
    "scan_references",
    "UrlFor",
]
