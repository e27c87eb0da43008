"""Source-anchored diagnostics collected over a run and reported together."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, TextIO, Tuple

from .errors import ParseFailure
from .models import Span, SymbolReference, Unresolved

_SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}


@dataclass(frozen=True)
class Diagnostic:
    """A single reported problem, optionally anchored to a source span."""

    severity: str
    code: str
    message: str
    span: Optional[Span] = None
    label: Optional[str] = None
    help: Optional[str] = None

    def sort_key(self) -> Tuple[int, str, int, int, int, str]:
        if self.span is None:
            return (0, "", 0, 0, _SEVERITY_ORDER.get(self.severity, 3), self.message)
        return (
            1,
            self.span.file,
            self.span.start,
            self.span.end,
            _SEVERITY_ORDER.get(self.severity, 3),
            self.message,
        )


class Diagnostics:
    """Aggregates diagnostics; one failing reference never stops the others."""

    def __init__(self) -> None:
        self._sources: Dict[str, bytes] = {}
        self._records: List[Diagnostic] = []

    def add_source(self, name: str, text: str) -> None:
        self._sources[name] = text.encode("utf-8")

    @property
    def records(self) -> List[Diagnostic]:
        """Diagnostics ordered by source position, independent of insertion order."""
        return sorted(self._records, key=Diagnostic.sort_key)

    def is_fail(self) -> bool:
        return any(record.severity == "error" for record in self._records)

    def count(self, code: str) -> int:
        return sum(1 for record in self._records if record.code == code)

    def extend(self, records: Iterable[Diagnostic]) -> None:
        self._records.extend(records)

    def error(
        self,
        message: str,
        *,
        span: Optional[Span] = None,
        label: Optional[str] = None,
        help: Optional[str] = None,
        code: str = "error",
    ) -> None:
        self._records.append(Diagnostic("error", code, message, span, label, help))

    def warn(
        self,
        message: str,
        *,
        span: Optional[Span] = None,
        label: Optional[str] = None,
        help: Optional[str] = None,
        code: str = "warning",
    ) -> None:
        self._records.append(Diagnostic("warning", code, message, span, label, help))

    def info(self, message: str, *, code: str = "info") -> None:
        self._records.append(Diagnostic("info", code, message))

    def unresolved(
        self, reference: SymbolReference, link: Unresolved, *, as_error: bool = True
    ) -> None:
        """Record a ``ReferenceUnresolved`` diagnostic for one reference."""
        self._records.append(
            Diagnostic(
                "error" if as_error else "warning",
                "unresolved-link",
                f"unresolved link to `{reference.query}`",
                reference.span,
                link.message,
                _unresolved_help(link),
            )
        )

    def parse_failure(self, exc: ParseFailure) -> None:
        self.error(str(exc), span=exc.span, label="syntax error here" if exc.span else None, code="parse-failure")

    def print(self) -> None:
        self.print_to(sys.stderr)

    def print_to(self, stream: TextIO) -> None:
        for record in self.records:
            stream.write(self.render(record))

    def render(self, record: Diagnostic) -> str:
        lines = [f"{record.severity}[{record.code}]: {record.message}"]
        source = self._sources.get(record.span.file) if record.span else None
        if record.span is not None and source is None:
            lines.append(f"  --> {record.span.file}")
        elif record.span is not None and source is not None:
            lines.extend(self._snippet(record, source))
        if record.help:
            lines.append(f"  = help: {record.help}")
        return "\n".join(lines) + "\n"

    def _snippet(self, record: Diagnostic, source: bytes) -> List[str]:
        span = record.span
        assert span is not None
        start = min(max(span.start, 0), len(source))
        end = min(max(span.end, start), len(source))
        line_no = source.count(b"\n", 0, start) + 1
        line_start = source.rfind(b"\n", 0, start) + 1
        line_end = source.find(b"\n", start)
        if line_end == -1:
            line_end = len(source)
        line_text = source[line_start:line_end].decode("utf-8", errors="replace")
        column = len(source[line_start:start].decode("utf-8", errors="replace"))
        width = len(source[start:min(end, line_end)].decode("utf-8", errors="replace"))
        gutter = " " * len(str(line_no))
        underline = " " * column + "^" * max(width, 1)
        if record.label:
            underline += f" {record.label}"
        return [
            f"{gutter}--> {span.file}:{line_no}:{column + 1}",
            f"{gutter} |",
            f"{line_no} | {line_text}",
            f"{gutter} | {underline}",
        ]


def _unresolved_help(link: Unresolved) -> Optional[str]:
    if link.candidates:
        return "use a path or a disambiguator such as `struct@` or `fn@` to pick one"
    return None


__all__ = ["Diagnostic", "Diagnostics"]
