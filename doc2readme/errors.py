"""Exception types for fatal doc2readme failures."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .models import Span


class Doc2ReadmeError(RuntimeError):
    """Base class for errors that abort a run."""


class ParseFailure(Doc2ReadmeError):
    """Raised when source code cannot be interpreted."""

    def __init__(self, message: str, span: Optional[Span] = None) -> None:
        super().__init__(message)
        self.span = span


class TemplateFailure(Doc2ReadmeError):
    """Raised when the README template is invalid or references a missing variable."""


class IOFailure(Doc2ReadmeError):
    """Raised when a file cannot be read or written."""

    def __init__(self, message: str, path: Path | str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = Path(path)


class MetadataError(Doc2ReadmeError):
    """Raised when package metadata cannot be obtained."""


class ConfigError(Doc2ReadmeError):
    """Raised when the configuration file cannot be parsed."""


__all__ = [
    "ConfigError",
    "Doc2ReadmeError",
    "IOFailure",
    "MetadataError",
    "ParseFailure",
    "TemplateFailure",
]
