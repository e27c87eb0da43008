"""Serialize a parsed doc comment back to markdown with symbol links substituted.

The rewriter makes one pass over the markdown-it token stream. Block tokens
drive a stack of frames (document, blockquote, list, list item, table); each
frame collects rendered child blocks and joins them with its own prefixing
rules when it closes. Inline children are rendered the same way on a small
stack of buffers so nested links and emphasis never overlap.

Every link is written in reference style (``[text][__link0]``) and the
definitions are appended after the body, one per distinct URL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from markdown_it.token import Token

from ..config import RenderOptions
from ..logging import get_logger
from ..models import ResolvedLink, Unresolved
from .scanner import ScannedDocument, link_text

UrlFor = Callable[[ResolvedLink], Optional[str]]

LINK_LABEL_PREFIX = "__link"

_RUST_TAGS = frozenset(
    {
        "rust", "ignore", "should_panic", "no_run", "compile_fail", "test_harness",
        "allow_fail", "standalone_crate", "edition2015", "edition2018", "edition2021",
        "edition2024",
    }
)
_TASK_PATTERN = re.compile(r"^\[[ xX]\] ")
_ENTITY_PATTERN = re.compile(r"&(#?\w+;)")
_LINE_START_PATTERN = re.compile(r"^(\s*)([#>+\-=]|\d+[.)])(?=\s|$)")
_ALIGN_ROWS = {"left": ":---", "center": ":---:", "right": "---:"}

_LOGGER = get_logger("markdown.rewriter")


@dataclass
class _Frame:
    kind: str
    token: Optional[Token] = None
    blocks: List[str] = field(default_factory=list)
    items: List[List[str]] = field(default_factory=list)
    loose: bool = False
    rows: List[List[str]] = field(default_factory=list)
    aligns: List[str] = field(default_factory=list)


@dataclass
class _Inline:
    kind: str
    parts: List[str] = field(default_factory=list)
    url: Optional[str] = None
    title: Optional[str] = None


class MarkdownRewriter:
    """Rewrites doc comment markdown, replacing references with real links."""

    def __init__(self, options: Optional[RenderOptions] = None) -> None:
        self.options = options or RenderOptions()

    def rewrite(
        self,
        scanned: ScannedDocument,
        links: Sequence[ResolvedLink],
        link_builder: UrlFor,
    ) -> str:
        """Return the markdown body followed by its link definitions."""
        if len(links) != len(scanned.references):
            raise ValueError(
                f"expected {len(scanned.references)} resolved link(s), got {len(links)}"
            )
        writer = _Writer(self.options, scanned, links, link_builder)
        return writer.render()


class _Writer:
    def __init__(
        self,
        options: RenderOptions,
        scanned: ScannedDocument,
        links: Sequence[ResolvedLink],
        link_builder: UrlFor,
    ) -> None:
        self.options = options
        self.scanned = scanned
        self.links = links
        self.link_builder = link_builder
        self.stack: List[_Frame] = [_Frame("document")]
        self.inline_text = ""
        self.definitions: Dict[Tuple[str, str], str] = {}

    def render(self) -> str:
        for index, token in enumerate(self.scanned.tokens):
            self._block(index, token)
        body = "\n\n".join(block for block in self.stack[0].blocks if block)
        if not self.definitions:
            return body
        lines = []
        for (url, title), label in self.definitions.items():
            line = f"[{label}]: {_destination(url)}"
            if title:
                line += ' "' + title.replace('"', '\\"') + '"'
            lines.append(line)
        return (body + "\n\n" if body else "") + "\n".join(lines)

    @property
    def top(self) -> _Frame:
        return self.stack[-1]

    def _emit(self, block: str) -> None:
        self.top.blocks.append(block)

    def _block(self, index: int, token: Token) -> None:
        kind = token.type
        if kind == "inline":
            self.inline_text = self._inline(index, token.children or [])
        elif kind == "paragraph_open":
            if not token.hidden and self.top.kind == "item" and len(self.stack) >= 2:
                self.stack[-2].loose = True
        elif kind == "paragraph_close":
            self._emit(self.inline_text)
            self.inline_text = ""
        elif kind == "heading_close":
            level = min(6, max(1, int(token.tag[1:]) + self.options.heading_offset))
            self._emit("#" * level + " " + self.inline_text.replace("\n", " ").strip())
            self.inline_text = ""
        elif kind in ("blockquote_open", "bullet_list_open", "ordered_list_open", "table_open"):
            self.stack.append(_Frame(kind[: -len("_open")], token))
        elif kind == "list_item_open":
            self.stack.append(_Frame("item", token))
        elif kind == "list_item_close":
            item = self.stack.pop()
            self.top.items.append(item.blocks)
        elif kind == "blockquote_close":
            frame = self.stack.pop()
            self._emit(_prefix_lines("\n\n".join(frame.blocks), "> ", ">"))
        elif kind in ("bullet_list_close", "ordered_list_close"):
            self._emit(self._list(self.stack.pop()))
        elif kind == "tr_open":
            self.top.rows.append([])
        elif kind in ("th_open", "td_open"):
            if kind == "th_open":
                self.top.aligns.append(_alignment(token))
        elif kind in ("th_close", "td_close"):
            self.top.rows[-1].append(self.inline_text.replace("|", "\\|").strip())
            self.inline_text = ""
        elif kind == "table_close":
            self._emit(self._table(self.stack.pop()))
        elif kind == "fence":
            self._emit(self._code(token.content, token.info))
        elif kind == "code_block":
            self._emit(self._code(token.content, None))
        elif kind == "hr":
            self._emit("***")
        elif kind == "html_block":
            self._emit(token.content.rstrip("\n"))

    def _list(self, frame: _Frame) -> str:
        token = frame.token
        ordered = frame.kind == "ordered_list"
        start = int(token.attrGet("start") or 1) if token is not None and ordered else 1
        bullet = (token.markup if token is not None and token.markup else ("." if ordered else "-"))
        separator = "\n\n" if frame.loose else "\n"
        rendered = []
        for offset, blocks in enumerate(frame.items):
            marker = f"{start + offset}{bullet} " if ordered else f"{bullet} "
            body = separator.join(blocks)
            if not body:
                rendered.append(marker.rstrip())
                continue
            indent = " " * len(marker)
            lines = body.split("\n")
            head = marker + lines[0]
            tail = [indent + line if line else "" for line in lines[1:]]
            rendered.append("\n".join([head] + tail))
        return separator.join(rendered)

    def _table(self, frame: _Frame) -> str:
        if not frame.rows:
            return ""
        width = max(len(row) for row in frame.rows)
        aligns = frame.aligns + [""] * (width - len(frame.aligns))
        lines = []
        for number, row in enumerate(frame.rows):
            cells = row + [""] * (width - len(row))
            lines.append("| " + " | ".join(cells) + " |")
            if number == 0:
                lines.append("| " + " | ".join(_ALIGN_ROWS.get(a, "---") for a in aligns) + " |")
        return "\n".join(lines)

    def _code(self, content: str, info: Optional[str]) -> str:
        tags = [tag for tag in re.split(r"[,\s]+", (info or "").strip()) if tag]
        is_rust = all(tag in _RUST_TAGS or tag.startswith(("ignore-", "edition")) for tag in tags)
        if info is None:
            language = self.options.default_code_language
            is_rust = language == "rust"
        elif not tags:
            language = self.options.default_code_language
        elif is_rust:
            language = "rust"
        else:
            language = tags[0]

        lines = content.rstrip("\n").split("\n") if content.strip("\n") else []
        if is_rust and "ignore" not in tags:
            lines = _strip_hidden_lines(lines)

        body = "\n".join(lines)
        longest = max((len(run) for run in re.findall(r"`+", body)), default=0)
        fence = "`" * max(3, longest + 1)
        return f"{fence}{language}\n{body}\n{fence}" if lines else f"{fence}{language}\n{fence}"

    def _inline(self, block: int, children: Sequence[Token]) -> str:
        stack: List[_Inline] = [_Inline("root")]
        line_start = True
        task_ok = self.top.kind == "item" and not self.top.blocks
        skip_until_close = 0
        for index, child in enumerate(children):
            kind = child.type
            if skip_until_close:
                if kind == "link_open":
                    skip_until_close += 1
                elif kind == "link_close":
                    skip_until_close -= 1
                continue
            out = stack[-1].parts
            if kind == "text":
                content = child.content
                if task_ok and line_start and _TASK_PATTERN.match(content):
                    out.append(content[:4] + _escape(content[4:], False))
                else:
                    content = _escape(content, line_start)
                    following = children[index + 1].type if index + 1 < len(children) else ""
                    if content.endswith("!") and following in ("link_open", "image"):
                        content = content[:-1] + "\\!"
                    out.append(content)
            elif kind == "code_inline":
                out.append(_code_span(child.content))
            elif kind == "softbreak":
                out.append("\n")
                line_start = True
                continue
            elif kind == "hardbreak":
                out.append("\\\n")
                line_start = True
                continue
            elif kind in ("em_open", "em_close"):
                out.append("*")
            elif kind in ("strong_open", "strong_close"):
                out.append("**")
            elif kind in ("s_open", "s_close"):
                out.append("~~")
            elif kind == "html_inline":
                out.append(child.content)
            elif kind == "image":
                alt = _escape(child.content, False)
                url = str(child.attrGet("src") or "")
                label = self._define(url, str(child.attrGet("title") or ""))
                out.append(f"![{alt}][{label}]")
            elif kind == "link_open":
                href = str(child.attrGet("href") or "")
                if child.markup == "autolink":
                    out.append(f"<{link_text(children, index)}>")
                    skip_until_close = 1
                    continue
                stack.append(self._open_link(block, index, child, href))
            elif kind == "link_close":
                frame = stack.pop()
                stack[-1].parts.append(self._close_link(frame))
            line_start = False
        while len(stack) > 1:
            frame = stack.pop()
            stack[-1].parts.append(self._close_link(frame))
        return "".join(stack[0].parts)

    def _open_link(self, block: int, index: int, token: Token, href: str) -> _Inline:
        reference = self.scanned.reference_at(block, index)
        title = str(token.attrGet("title") or "")
        if reference is None:
            kind = "anchor" if href.startswith("#") else "link"
            return _Inline(kind, url=href, title=title)
        link = self.links[reference.id]
        url = None if isinstance(link, Unresolved) else self.link_builder(link)
        if url is None:
            _LOGGER.debug("Rendering unresolved `%s` as %s", reference.query, self.options.unresolved)
            return _Inline("unresolved")
        return _Inline("link", url=url, title=title)

    def _close_link(self, frame: _Inline) -> str:
        text = "".join(frame.parts)
        if frame.kind == "unresolved":
            if self.options.unresolved == "emphasis" and text.strip():
                return f"*{text}*"
            return text
        if frame.kind == "anchor":
            return f"[{text}]({frame.url})"
        label = self._define(frame.url or "", frame.title or "")
        return f"[{text}][{label}]"

    def _define(self, url: str, title: str) -> str:
        key = (url, title)
        label = self.definitions.get(key)
        if label is None:
            label = f"{LINK_LABEL_PREFIX}{len(self.definitions)}"
            self.definitions[key] = label
        return label


def _strip_hidden_lines(lines: List[str]) -> List[str]:
    kept = []
    for line in lines:
        stripped = line.lstrip()
        if stripped == "#" or stripped.startswith("# "):
            continue
        if stripped.startswith("##"):
            line = line.replace("##", "#", 1)
        kept.append(line)
    return kept


def _escape(text: str, line_start: bool) -> str:
    out = []
    for position, char in enumerate(text):
        if char in "\\*[]`<":
            out.append("\\" + char)
        elif char == "_" and not _intraword(text, position):
            out.append("\\_")
        elif char == "&" and _ENTITY_PATTERN.match(text, position):
            out.append("\\&")
        else:
            out.append(char)
    escaped = "".join(out)
    if line_start:
        escaped = _LINE_START_PATTERN.sub(lambda m: m.group(1) + _escape_marker(m.group(2)), escaped, count=1)
    return escaped


def _escape_marker(marker: str) -> str:
    if marker[0].isdigit():
        return marker[:-1] + "\\" + marker[-1]
    return "\\" + marker


def _intraword(text: str, position: int) -> bool:
    before = text[position - 1] if position > 0 else ""
    after = text[position + 1] if position + 1 < len(text) else ""
    return before.isalnum() and after.isalnum()


def _code_span(content: str) -> str:
    longest = max((len(run) for run in re.findall(r"`+", content)), default=0)
    fence = "`" * (longest + 1)
    if content.startswith(("`", " ")) or content.endswith(("`", " ")):
        content = f" {content} "
    return f"{fence}{content}{fence}"


def _alignment(token: Token) -> str:
    style = str(token.attrGet("style") or "")
    match = re.search(r"text-align:\s*(\w+)", style)
    return match.group(1) if match else ""


def _destination(url: str) -> str:
    if not url or any(char in url for char in " <>()"):
        return "<" + url.replace("<", "%3C").replace(">", "%3E") + ">"
    return url


def _prefix_lines(text: str, prefix: str, empty: str) -> str:
    return "\n".join(prefix + line if line else empty for line in text.split("\n"))


__all__ = ["LINK_LABEL_PREFIX", "MarkdownRewriter", "UrlFor"]
