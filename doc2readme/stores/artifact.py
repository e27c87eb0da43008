"""Reading and writing the rendered README."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
from typing import Optional

from ..errors import IOFailure
from ..logging import get_logger


class ArtifactStore:
    """Persists rendered artifacts; a write replaces the file atomically."""

    def __init__(self) -> None:
        self.logger = get_logger("artifact")

    def read(self, path: Path) -> Optional[str]:
        """Return the artifact text, or ``None`` when there is no artifact yet."""
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise IOFailure(f"Failed to read existing artifact ({exc})", path) from exc

    def write(self, path: Path, text: str) -> None:
        directory = path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            handle, temp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(directory)
            )
            try:
                with os.fdopen(handle, "w", encoding="utf-8", newline="\n") as stream:
                    stream.write(text)
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise IOFailure(f"Failed to write artifact ({exc})", path) from exc
        self.logger.info("Wrote %s", path)


__all__ = ["ArtifactStore"]
