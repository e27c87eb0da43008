"""Cargo metadata provider tests using recorded metadata documents."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Sequence

import pytest

from doc2readme.errors import MetadataError
from doc2readme.extract.metadata import CargoMetadataProvider, version_key
from doc2readme.models import DependencyRecord
from tests._fixtures.crate_builder import CrateBuilder


def test_load_runs_cargo_metadata_with_manifest(crate_builder: CrateBuilder) -> None:
    crate_builder.add_dependency("widgets", "2.3.1")
    crate_builder.package.update({"license": "MIT", "repository": "https://example.com/demo"})
    manifest = crate_builder.path() / "Cargo.toml"

    metadata = crate_builder.provider().load(manifest, cwd=crate_builder.path())

    assert crate_builder.calls == [
        ["cargo", "metadata", "--format-version", "1", "--all-features", "--manifest-path", str(manifest)]
    ]
    assert metadata.name == "demo"
    assert metadata.version == "0.1.0"
    assert metadata.license == "MIT"
    assert metadata.repository == "https://example.com/demo"
    assert metadata.target.kind == "lib"
    assert metadata.target.edition == "2021"
    assert metadata.lib_name == "demo"
    assert DependencyRecord("widgets", "widgets", "2.3.1") in metadata.dependencies
    assert metadata.root_record() == DependencyRecord("demo", "demo", "0.1.0")


def test_renamed_dependency_uses_lib_identifier(crate_builder: CrateBuilder) -> None:
    crate_builder.add_dependency("serde-json-core", "0.5.0", lib_name="json")
    metadata = CargoMetadataProvider().from_json(crate_builder.metadata())
    assert DependencyRecord("serde-json-core", "json", "0.5.0") in metadata.dependencies


def test_library_target_is_preferred_over_binary(crate_builder: CrateBuilder) -> None:
    root = crate_builder.path()
    targets = [
        {"name": "demo", "kind": ["bin"], "src_path": str(root / "src/main.rs")},
        {"name": "demo-core", "kind": ["lib"], "src_path": str(root / "src/lib.rs")},
    ]
    data = crate_builder.metadata(targets)
    provider = CargoMetadataProvider()

    lib = provider.from_json(data)
    assert lib.target.kind == "lib"
    assert lib.lib_name == "demo_core"
    assert lib.target.edition == "2021"

    binary = provider.from_json(data, prefer_bin=True)
    assert binary.target.kind == "bin"
    assert binary.target.src_path.endswith("main.rs")


def test_proc_macro_target_kind(crate_builder: CrateBuilder) -> None:
    targets = [{"name": "demo", "kind": ["proc-macro"], "src_path": "src/lib.rs", "edition": "2018"}]
    metadata = CargoMetadataProvider().from_json(crate_builder.metadata(targets))
    assert metadata.target.kind == "proc-macro"
    assert metadata.target.edition == "2018"


def test_package_without_targets_is_an_error(crate_builder: CrateBuilder) -> None:
    with pytest.raises(MetadataError, match="no library or binary target"):
        CargoMetadataProvider().from_json(crate_builder.metadata([]))


def test_named_package_must_exist(crate_builder: CrateBuilder) -> None:
    with pytest.raises(MetadataError, match="not found"):
        CargoMetadataProvider().from_json(crate_builder.metadata(), package="other")


def test_declared_dependencies_without_resolve_graph(crate_builder: CrateBuilder) -> None:
    crate_builder.add_dependency("widgets", "2.3.1")
    data = crate_builder.metadata()
    data.pop("resolve")
    metadata = CargoMetadataProvider().from_json(data)
    assert DependencyRecord("widgets", "widgets", "latest") in metadata.dependencies


def test_duplicate_lib_names_keep_highest_version(crate_builder: CrateBuilder) -> None:
    crate_builder.add_dependency("rand", "0.7.3")
    crate_builder.add_dependency("rand", "0.8.5")
    metadata = CargoMetadataProvider().from_json(crate_builder.metadata())
    rand = [record for record in metadata.dependencies if record.lib_name == "rand"]
    assert rand == [DependencyRecord("rand", "rand", "0.8.5")]


def test_runner_failures_become_metadata_errors(tmp_path: Path) -> None:
    def missing(args: Sequence[str], *, cwd: Path) -> str:
        raise FileNotFoundError("cargo")

    def failing(args: Sequence[str], *, cwd: Path) -> str:
        raise subprocess.CalledProcessError(101, list(args), stderr="error: no Cargo.toml")

    def garbage(args: Sequence[str], *, cwd: Path) -> str:
        return "not json"

    with pytest.raises(MetadataError, match="executable not found"):
        CargoMetadataProvider(runner=missing).load(cwd=tmp_path)
    with pytest.raises(MetadataError, match="no Cargo.toml"):
        CargoMetadataProvider(runner=failing).load(cwd=tmp_path)
    with pytest.raises(MetadataError, match="invalid JSON"):
        CargoMetadataProvider(runner=garbage).load(cwd=tmp_path)


def test_version_key_orders_prereleases_first() -> None:
    versions = ["1.0.0", "1.0.0-alpha", "0.9.12", "1.10.0", "latest"]
    assert sorted(versions, key=version_key) == ["latest", "0.9.12", "1.0.0-alpha", "1.0.0", "1.10.0"]
