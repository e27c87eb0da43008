"""Fingerprint marker embedded at the end of a rendered README."""

from __future__ import annotations

import re
from typing import Optional

MARKER_LABEL = "__doc2readme_fingerprint"


class MarkerManager:
    """Writes and reads the fingerprint as a markdown link reference definition.

    The definition is never referenced, so renderers show nothing for it.
    """

    LINE_FMT = "[" + MARKER_LABEL + "]: {fingerprint}"
    _PATTERN = re.compile(
        r"^ {0,3}\[" + re.escape(MARKER_LABEL) + r"\]:[ \t]*(\S*)[ \t]*$", re.MULTILINE
    )

    def embed(self, markdown: str, fingerprint: str) -> str:
        """Return ``markdown`` with exactly one marker, after a blank line at the end."""
        body = self.strip(markdown).rstrip()
        marker = self.LINE_FMT.format(fingerprint=fingerprint)
        if not body:
            return marker + "\n"
        return f"{body}\n\n{marker}\n"

    def extract(self, markdown: str) -> Optional[str]:
        """Return the value of the last marker line, or ``None`` when there is none."""
        matches = self._PATTERN.findall(markdown)
        if not matches:
            return None
        return matches[-1]

    def strip(self, markdown: str) -> str:
        return self._PATTERN.sub("", markdown)


__all__ = ["MARKER_LABEL", "MarkerManager"]
