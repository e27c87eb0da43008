"""Whitespace normalisation for rendered markdown."""

from __future__ import annotations

import re
from typing import List, Optional

_FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})")


class MarkdownLinter:
    """Normalises line endings, trailing whitespace and blank-line runs outside code fences."""

    def lint(self, markdown: str) -> str:
        normalized = markdown.replace("\r\n", "\n").replace("\r", "\n")
        lines = normalized.split("\n")
        cleaned: List[str] = []
        fence: Optional[str] = None
        previous_blank = False

        for line in lines:
            match = _FENCE_PATTERN.match(line)
            if fence is None and match:
                fence = match.group(1)
                cleaned.append(line.rstrip())
                previous_blank = False
                continue
            if fence is not None:
                if match and match.group(1)[0] == fence[0] and len(match.group(1)) >= len(fence) \
                        and not line.strip()[len(match.group(1)):].strip():
                    fence = None
                    cleaned.append(line.rstrip())
                else:
                    cleaned.append(line)
                previous_blank = False
                continue

            stripped = line.rstrip()
            if not stripped:
                if previous_blank:
                    continue
                previous_blank = True
                cleaned.append("")
                continue

            cleaned.append(stripped)
            previous_blank = False

        while cleaned and cleaned[-1] == "":
            cleaned.pop()

        return "\n".join(cleaned) + "\n"


__all__ = ["MarkdownLinter"]
