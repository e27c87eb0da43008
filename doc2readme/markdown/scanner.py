"""Find bracketed symbol references in a doc comment's markdown event stream."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import unquote

from markdown_it import MarkdownIt
from markdown_it.common.utils import normalizeReference
from markdown_it.token import Token

from ..logging import get_logger
from ..models import DocComment, Span, SymbolReference
from ..resolve.paths import is_path_like

SENTINEL_SCHEME = "doc2readme-ref:"

_LABEL_PATTERN = re.compile(r"\[([^\[\]\n]+)\]")
_TASK_PREFIX = re.compile(r"[ \t]*(?:[-*+]|\d+[.)])[ \t]+")

_LOGGER = get_logger("markdown.scanner")

# (index of the inline block token, index of the link_open child)
LinkPosition = Tuple[int, int]


def markdown_parser() -> MarkdownIt:
    """CommonMark plus GitHub tables and strikethrough."""
    return MarkdownIt("commonmark", {"html": True}).enable(["table", "strikethrough"])


@dataclass
class ScannedDocument:
    """Parsed doc comment plus the references found in it."""

    doc: DocComment
    tokens: List[Token]
    references: Tuple[SymbolReference, ...] = ()
    positions: Dict[LinkPosition, int] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.doc.text

    def reference_at(self, block: int, child: int) -> Optional[SymbolReference]:
        ref_id = self.positions.get((block, child))
        return None if ref_id is None else self.references[ref_id]


def scan_references(
    doc: DocComment, module_path: Tuple[str, ...] = ("crate",)
) -> ScannedDocument:
    """Parse ``doc`` and return every link that names a symbol.

    Undefined bracket labels that look like paths are registered as
    references before the real parse, so shortcut, collapsed and full
    reference links surface as ordinary link tokens.
    """
    text = doc.text
    parser = markdown_parser()

    first_pass: Dict[str, object] = {}
    parser.parse(text, first_pass)
    defined = dict(first_pass.get("references", {}))  # type: ignore[arg-type]

    env_refs: Dict[str, Dict[str, str]] = {}
    sentinels: Dict[str, str] = {}
    for match in _LABEL_PATTERN.finditer(text):
        label = match.group(1)
        key = normalizeReference(label)
        if not key or key in defined or key in env_refs or not is_path_like(label):
            continue
        if label in ("x", "X") and _is_task_marker(text, match.start()):
            continue
        href = f"{SENTINEL_SCHEME}{len(sentinels)}"
        sentinels[href] = label
        env_refs[key] = {"href": href, "title": ""}

    env: Dict[str, object] = {"references": env_refs}
    tokens = parser.parse(text, env)

    references: List[SymbolReference] = []
    positions: Dict[LinkPosition, int] = {}
    locator = _Locator(doc)
    for block_index, token in enumerate(tokens):
        if token.type != "inline" or not token.children:
            continue
        for child_index, child in enumerate(token.children):
            if child.type != "link_open":
                continue
            found = _reference_for(token.children, child_index, sentinels)
            if found is None:
                continue
            raw, target = found
            span = locator.locate(token.map, target if target is not None else raw)
            reference = SymbolReference(
                id=len(references), raw=raw, target=target, span=span, module_path=module_path
            )
            positions[(block_index, child_index)] = reference.id
            references.append(reference)

    _LOGGER.debug("Found %d symbol reference(s) in %d line(s)", len(references), len(doc.lines))
    return ScannedDocument(doc=doc, tokens=tokens, references=tuple(references), positions=positions)


def link_text(children: Sequence[Token], start: int) -> str:
    """Text of the link opened at ``children[start]``, with code spans re-fenced."""
    parts: List[str] = []
    depth = 0
    for child in children[start + 1:]:
        if child.type == "link_open":
            depth += 1
        elif child.type == "link_close":
            if depth == 0:
                break
            depth -= 1
        elif child.type == "code_inline":
            parts.append(f"{child.markup}{child.content}{child.markup}")
        elif child.type in ("text", "html_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append(" ")
    return "".join(parts)


def _is_task_marker(text: str, position: int) -> bool:
    line_start = text.rfind("\n", 0, position) + 1
    return _TASK_PREFIX.fullmatch(text, line_start, position) is not None


def _reference_for(
    children: Sequence[Token], index: int, sentinels: Dict[str, str]
) -> Optional[Tuple[str, Optional[str]]]:
    href = str(children[index].attrGet("href") or "")
    raw = link_text(children, index)
    label = sentinels.get(href)
    if label is not None:
        if normalizeReference(raw) == normalizeReference(label):
            return raw, None
        return raw, label
    target = unquote(href)
    if target and is_path_like(target):
        return raw, target
    return None


class _Locator:
    """Maps a label inside a markdown block back to a source span."""

    def __init__(self, doc: DocComment) -> None:
        self.doc = doc
        self._cursors: Dict[Tuple[int, int], Tuple[int, int]] = {}

    def locate(self, block_map: Optional[List[int]], needle: str) -> Span:
        if not self.doc.lines:
            return self.doc.span
        begin, end = (block_map or [0, len(self.doc.lines)])[:2]
        end = min(max(end, begin + 1), len(self.doc.lines))
        cursor_key = (begin, end)
        line_no, column = self._cursors.get(cursor_key, (begin, 0))
        while line_no < end:
            line = self.doc.lines[line_no]
            found = line.text.find(needle, column) if needle else -1
            if found != -1:
                self._cursors[cursor_key] = (line_no, found + len(needle))
                if not line.exact:
                    return line.span
                return _sub_span(line.span, line.text, found, len(needle))
            line_no, column = line_no + 1, 0
        return self.doc.line_span(begin)


def _sub_span(line_span: Span, text: str, column: int, length: int) -> Span:
    start = line_span.start + len(text[:column].encode("utf-8"))
    stop = start + len(text[column:column + length].encode("utf-8"))
    start = min(start, line_span.end)
    return Span(line_span.file, start, min(stop, line_span.end))


__all__ = ["ScannedDocument", "link_text", "markdown_parser", "scan_references"]
