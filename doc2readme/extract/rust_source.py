"""Crate doc comment and item scope extraction with tree-sitter."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import tree_sitter_rust
from tree_sitter import Language, Node, Parser, Tree

from ..diagnostics import Diagnostic
from ..errors import IOFailure, ParseFailure
from ..logging import get_logger
from ..models import DocComment, DocLine, ImportRecord, ItemRecord, ModuleRecord, Span

RUST_LANGUAGE = Language(tree_sitter_rust.language())

_ITEM_KINDS = {
    "function_item": "fn",
    "struct_item": "struct",
    "enum_item": "enum",
    "union_item": "union",
    "trait_item": "trait",
    "type_item": "type",
    "const_item": "const",
    "static_item": "static",
}
_COMMENT_NODES = frozenset({"line_comment", "block_comment"})
_DOC_ATTRIBUTE = re.compile(r"^#!\[\s*doc\s*=\s*(?P<value>.*?)\s*\]$", re.DOTALL)
_PATH_ATTRIBUTE = re.compile(r'^#\[\s*path\s*=\s*"(?P<path>[^"]*)"\s*\]$')
_DERIVE_ATTRIBUTE = re.compile(r"^#\[\s*proc_macro_derive\s*\(\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)")
_USE_TOKEN = re.compile(r"\s*(::|[{},*]|(?:r#)?[A-Za-z_][A-Za-z0-9_]*)")
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", "0": "\0", "'": "'", '"': '"'}


@dataclass
class ExtractedCrate:
    """Everything the resolver and rewriter need from the source tree."""

    doc: DocComment
    modules: List[ModuleRecord] = field(default_factory=list)
    sources: Dict[str, str] = field(default_factory=dict)
    warnings: List[Diagnostic] = field(default_factory=list)


class RustSourceExtractor:
    """Parses the crate root (and out-of-line modules) of a Rust target."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root
        self.logger = get_logger("extract")
        self._parser = Parser(RUST_LANGUAGE)

    def extract(self, path: Path) -> ExtractedCrate:
        """Extract the crate-level doc comment and module scopes rooted at ``path``."""
        result = ExtractedCrate(doc=DocComment((), Span(self._label(path), 0, 0)))
        tree, source = self._parse_file(path, result)
        label = self._label(path)
        result.doc = self._crate_doc(tree.root_node, source, label, result)
        self.logger.info("Read %d doc line(s) from %s", len(result.doc.lines), label)
        self._collect(tree.root_node, source, path, ("crate",), "pub", path.parent, result, set())
        return result

    # ------------------------------------------------------------------
    # Files

    def _label(self, path: Path) -> str:
        if self.root is not None:
            try:
                return path.resolve().relative_to(self.root.resolve()).as_posix()
            except ValueError:
                pass
        return path.as_posix()

    def _parse_file(self, path: Path, result: ExtractedCrate) -> Tuple[Tree, bytes]:
        label = self._label(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise IOFailure(f"Failed to read source file ({exc.strerror or exc})", path) from exc
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseFailure(
                f"{label} is not valid UTF-8", Span(label, exc.start, exc.end)
            ) from exc
        result.sources[label] = text
        tree = self._parser.parse(data)
        if tree.root_node.has_error:
            bad = _first_error(tree.root_node)
            span = Span(label, bad.start_byte, max(bad.end_byte, bad.start_byte + 1)) if bad else None
            raise ParseFailure(f"Failed to parse {label}: syntax error", span)
        return tree, data

    # ------------------------------------------------------------------
    # Doc comment

    def _crate_doc(self, root: Node, source: bytes, label: str, result: ExtractedCrate) -> DocComment:
        raw: List[Tuple[str, Span, bool]] = []
        first: Optional[int] = None
        last = 0
        for node in root.children:
            text = _node_text(node, source)
            if node.type == "line_comment":
                if not text.startswith("//!"):
                    continue
                content = text[3:].rstrip("\r\n")
                start = node.start_byte + 3
                raw.append((content, Span(label, start, start + len(content.encode("utf-8"))), True))
            elif node.type == "block_comment":
                if not text.startswith("/*!"):
                    continue
                raw.extend((line, span, True) for line, span in _block_lines(text, node.start_byte, label))
            elif node.type == "inner_attribute_item":
                match = _DOC_ATTRIBUTE.match(text)
                if match is None:
                    continue
                span = Span(label, node.start_byte, node.end_byte)
                value = _string_literal(match.group("value"))
                if value is None:
                    result.warnings.append(
                        Diagnostic(
                            "warning",
                            "macro-not-expanded",
                            "macro not expanded: the doc attribute value is not a string literal",
                            span,
                            "this value is skipped",
                        )
                    )
                else:
                    literal = Span(
                        label,
                        node.start_byte + len(text[:match.start("value")].encode("utf-8")),
                        node.start_byte + len(text[:match.end("value")].encode("utf-8")),
                    )
                    raw.extend((line, literal, False) for line in value.split("\n"))
            else:
                break
            if first is None:
                first = node.start_byte
            last = node.end_byte

        if first is None:
            return DocComment((), Span(label, 0, 0))
        return DocComment(tuple(_unindent(raw)), Span(label, first, last))

    # ------------------------------------------------------------------
    # Scopes

    def _collect(
        self,
        container: Node,
        source: bytes,
        path: Path,
        module_path: Tuple[str, ...],
        visibility: str,
        child_dir: Path,
        result: ExtractedCrate,
        seen_files: set,
    ) -> None:
        label = self._label(path)
        items: List[ItemRecord] = []
        imports: List[ImportRecord] = []
        attributes: List[str] = []
        for node in container.named_children:
            if node.type == "attribute_item":
                attributes.append(_node_text(node, source))
                continue
            if node.type in _COMMENT_NODES:
                continue
            pending, attributes = attributes, []
            span = Span(label, node.start_byte, node.end_byte)
            vis = _visibility(node, source)

            if node.type in _ITEM_KINDS:
                name = _field_text(node, "name", source)
                if name is None:
                    continue
                kind = _ITEM_KINDS[node.type]
                if kind == "fn":
                    macro = _proc_macro(pending, name)
                    if macro is not None:
                        items.append(ItemRecord(macro[0], macro[1], "pub", span))
                        continue
                items.append(ItemRecord(name, kind, vis, span))
            elif node.type == "macro_definition":
                name = _field_text(node, "name", source)
                if name is None:
                    continue
                exported = any(_is_attr(attr, "macro_export") for attr in pending)
                items.append(
                    ItemRecord(name, "macro", "pub" if exported else "pub(crate)", span, exported)
                )
            elif node.type == "mod_item":
                name = _field_text(node, "name", source)
                if name is None:
                    continue
                items.append(ItemRecord(name, "mod", vis, span))
                self._module(node, name, vis, pending, source, path, module_path, child_dir, result, seen_files)
            elif node.type == "use_declaration":
                argument = node.child_by_field_name("argument")
                if argument is None:
                    continue
                try:
                    bindings = parse_use_tree(_node_text(argument, source))
                except ValueError as exc:
                    result.warnings.append(Diagnostic("warning", "unsupported-use", str(exc), span))
                    continue
                for name, target, glob in bindings:
                    imports.append(ImportRecord(name, target, vis, glob, span))
            elif node.type == "extern_crate_declaration":
                crate = _field_text(node, "name", source)
                if crate is None:
                    continue
                alias = _field_text(node, "alias", source) or crate
                if alias != "_":
                    imports.append(ImportRecord(alias, (crate,), vis, False, span))

        result.modules.append(ModuleRecord(module_path, visibility, tuple(items), tuple(imports)))

    def _module(
        self,
        node: Node,
        name: str,
        vis: str,
        attributes: Sequence[str],
        source: bytes,
        path: Path,
        parent_path: Tuple[str, ...],
        child_dir: Path,
        result: ExtractedCrate,
        seen_files: set,
    ) -> None:
        module_path = parent_path + (name,)
        body = node.child_by_field_name("body")
        if body is not None:
            self._collect(body, source, path, module_path, vis, child_dir / name, result, seen_files)
            return

        module_file = self._module_file(name, attributes, path, child_dir)
        if module_file is None:
            result.warnings.append(
                Diagnostic(
                    "warning",
                    "module-not-found",
                    f"source file for module `{name}` not found",
                    Span(self._label(path), node.start_byte, node.end_byte),
                )
            )
            result.modules.append(ModuleRecord(module_path, vis))
            return
        resolved = module_file.resolve()
        if resolved in seen_files:
            return
        seen_files.add(resolved)
        tree, module_source = self._parse_file(module_file, result)
        nested_dir = module_file.parent if module_file.name == "mod.rs" else module_file.parent / name
        self._collect(tree.root_node, module_source, module_file, module_path, vis, nested_dir, result, seen_files)

    def _module_file(
        self, name: str, attributes: Sequence[str], path: Path, child_dir: Path
    ) -> Optional[Path]:
        for attr in attributes:
            match = _PATH_ATTRIBUTE.match(attr)
            if match:
                candidate = path.parent / match.group("path")
                return candidate if candidate.is_file() else None
        for candidate in (child_dir / f"{name}.rs", child_dir / name / "mod.rs"):
            if candidate.is_file():
                return candidate
        return None


def parse_use_tree(text: str) -> List[Tuple[str, Tuple[str, ...], bool]]:
    """Flatten a ``use`` argument into ``(name, target, glob)`` bindings.

    A leading ``::`` is kept as an empty first segment. Anonymous imports
    (``as _``) bind nothing and are dropped.
    """
    tokens = _use_tokens(text)
    bindings: List[Tuple[str, Tuple[str, ...], bool]] = []
    position = _parse_tree(tokens, 0, (), bindings)
    if position != len(tokens):
        raise ValueError(f"Unexpected token in use declaration: {text!r}")
    return [binding for binding in bindings if binding[0] != "_"]


def _use_tokens(text: str) -> List[str]:
    tokens: List[str] = []
    position = 0
    text = text.strip()
    while position < len(text):
        match = _USE_TOKEN.match(text, position)
        if match is None:
            raise ValueError(f"Unexpected character in use declaration: {text!r}")
        token = match.group(1)
        tokens.append(token[2:] if token.startswith("r#") else token)
        position = match.end()
        while position < len(text) and text[position].isspace():
            position += 1
    return tokens


def _parse_tree(
    tokens: List[str],
    position: int,
    prefix: Tuple[str, ...],
    out: List[Tuple[str, Tuple[str, ...], bool]],
) -> int:
    segments = list(prefix)
    if position < len(tokens) and tokens[position] == "::":
        if not segments:
            segments.append("")
        position += 1
    while position < len(tokens):
        token = tokens[position]
        if token == "{":
            position += 1
            while position < len(tokens) and tokens[position] != "}":
                position = _parse_tree(tokens, position, tuple(segments), out)
                if position < len(tokens) and tokens[position] == ",":
                    position += 1
            return position + 1
        if token == "*":
            out.append(("", tuple(segments), True))
            return position + 1
        if token in ("::", ",", "}", "as"):
            raise ValueError(f"Unexpected {token!r} in use declaration")
        position += 1
        if position < len(tokens) and tokens[position] == "::":
            segments.append(token)
            position += 1
            continue
        alias: Optional[str] = None
        if position + 1 < len(tokens) and tokens[position] == "as":
            alias = tokens[position + 1]
            position += 2
        if token == "self":
            if segments and segments[-1] != "":
                out.append((alias or segments[-1], tuple(segments), False))
            elif not segments:
                out.append((alias or "self", ("self",), False))
        else:
            out.append((alias or token, tuple(segments) + (token,), False))
        return position
    return position


def _node_text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _field_text(node: Node, name: str, source: bytes) -> Optional[str]:
    child = node.child_by_field_name(name)
    if child is None:
        return None
    text = _node_text(child, source)
    return text[2:] if text.startswith("r#") else text


def _visibility(node: Node, source: bytes) -> str:
    for child in node.children:
        if child.type == "visibility_modifier":
            return re.sub(r"\s+", "", _node_text(child, source))
    return "private"


def _is_attr(attribute: str, name: str) -> bool:
    return re.match(rf"^#\[\s*{re.escape(name)}\s*(?:\]|\()", attribute) is not None


def _proc_macro(attributes: Sequence[str], name: str) -> Optional[Tuple[str, str]]:
    for attribute in attributes:
        if _is_attr(attribute, "proc_macro"):
            return name, "macro"
        if _is_attr(attribute, "proc_macro_attribute"):
            return name, "attr"
        match = _DERIVE_ATTRIBUTE.match(attribute)
        if match:
            return match.group("name"), "derive"
    return None


def _first_error(node: Node) -> Optional[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.is_error or current.is_missing:
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


def _block_lines(text: str, start: int, label: str) -> Iterator[Tuple[str, Span]]:
    """Lines of a ``/*! ... */`` comment with their byte spans.

    When every body line starts with ``*``, the star and one following space
    are removed.
    """
    inner = text[3:-2] if text.endswith("*/") else text[3:]
    offset = start + 3
    lines = inner.split("\n")
    first_is_body = True
    if len(lines) > 1 and not lines[0].strip():
        offset += len(lines[0].encode("utf-8")) + 1
        lines = lines[1:]
        first_is_body = False
    if len(lines) > 1 and not lines[-1].strip():
        lines = lines[:-1]
    body = [line for line in (lines[1:] if first_is_body else lines) if line.strip()]
    starred = bool(body) and all(line.lstrip().startswith("*") for line in body)
    for index, original in enumerate(lines):
        line = original.rstrip("\r")
        cut = 0
        if starred and (index > 0 or not first_is_body) and line.lstrip().startswith("*"):
            cut = len(line) - len(line.lstrip()) + 1
            if line[cut:cut + 1] == " ":
                cut += 1
        content = line[cut:]
        content_start = offset + len(line[:cut].encode("utf-8"))
        yield content, Span(label, content_start, content_start + len(content.encode("utf-8")))
        offset += len(original.encode("utf-8")) + 1


def _unindent(lines: Sequence[Tuple[str, Span, bool]]) -> List[DocLine]:
    indents = [len(text) - len(text.lstrip(" \t")) for text, _, _ in lines if text.strip()]
    width = min(indents) if indents else 0
    result = []
    for text, span, exact in lines:
        if not text.strip():
            result.append(DocLine("", Span(span.file, span.start, span.start), exact))
            continue
        cut = min(width, len(text))
        # trailing spaces stay: two of them make a hard line break
        body = text[cut:].rstrip("\r")
        if not exact:
            result.append(DocLine(body, span, False))
            continue
        start = span.start + len(text[:cut].encode("utf-8"))
        result.append(DocLine(body, Span(span.file, min(start, span.end), span.end)))
    return result


def _string_literal(value: str) -> Optional[str]:
    """Decode a Rust string or raw string literal; ``None`` for anything else."""
    raw = re.match(r'^r(?P<hashes>#*)"(?P<body>.*)"(?P=hashes)$', value, re.DOTALL)
    if raw:
        return raw.group("body")
    if not (len(value) >= 2 and value.startswith('"') and value.endswith('"')):
        return None
    body = value[1:-1]
    out: List[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char != "\\":
            out.append(char)
            index += 1
            continue
        code = body[index + 1 : index + 2]
        if code in _ESCAPES:
            out.append(_ESCAPES[code])
            index += 2
        elif code == "\n":
            # line continuation skips the newline and leading whitespace
            index += 2
            while index < len(body) and body[index] in " \t\n\r":
                index += 1
        elif code == "x":
            out.append(chr(int(body[index + 2 : index + 4], 16)))
            index += 4
        elif code == "u":
            end = body.index("}", index)
            out.append(chr(int(body[index + 3 : end], 16)))
            index = end + 1
        else:
            return None
    return "".join(out)


__all__ = ["ExtractedCrate", "RUST_LANGUAGE", "RustSourceExtractor", "parse_use_tree"]
