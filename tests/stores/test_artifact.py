"""Tests for the artifact store."""

from __future__ import annotations

from pathlib import Path

import pytest

from doc2readme.errors import IOFailure
from doc2readme.stores.artifact import ArtifactStore


def test_read_missing_artifact_returns_none(tmp_path: Path) -> None:
    assert ArtifactStore().read(tmp_path / "README.md") is None


def test_write_then_read(tmp_path: Path) -> None:
    store = ArtifactStore()
    target = tmp_path / "docs" / "README.md"
    store.write(target, "# Demo\n")
    assert store.read(target) == "# Demo\n"
    assert target.read_bytes() == b"# Demo\n"
    assert [path.name for path in target.parent.iterdir()] == ["README.md"]


def test_write_replaces_existing_file(tmp_path: Path) -> None:
    store = ArtifactStore()
    target = tmp_path / "README.md"
    target.write_text("old", encoding="utf-8")
    store.write(target, "new\n")
    assert target.read_text(encoding="utf-8") == "new\n"


def test_read_failure_raises_io_failure(tmp_path: Path) -> None:
    target = tmp_path / "README.md"
    target.write_bytes(b"\xff\xfe broken")
    with pytest.raises(IOFailure) as excinfo:
        ArtifactStore().read(target)
    assert excinfo.value.path == target


def test_write_failure_raises_io_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(IOFailure):
        ArtifactStore().write(blocker / "README.md", "text")
