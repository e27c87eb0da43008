"""Package metadata from ``cargo metadata``."""

from __future__ import annotations

import json
from pathlib import Path
import re
import subprocess
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import MetadataError
from ..logging import get_logger
from ..models import CrateMetadata, DependencyRecord, TargetInfo

LIB_KINDS = frozenset({"lib", "rlib", "dylib", "cdylib", "staticlib", "proc-macro"})

Runner = Callable[..., str]


class CargoMetadataProvider:
    """Loads the package, its documented target and its direct dependencies."""

    def __init__(self, runner: Runner | None = None) -> None:
        self._runner = runner or self._default_runner
        self.logger = get_logger("metadata")

    def load(
        self,
        manifest_path: Path | None = None,
        package: Optional[str] = None,
        prefer_bin: bool = False,
        *,
        cwd: Path | None = None,
    ) -> CrateMetadata:
        args = ["cargo", "metadata", "--format-version", "1", "--all-features"]
        if manifest_path is not None:
            args.extend(["--manifest-path", str(manifest_path)])
        try:
            output = self._runner(args, cwd=cwd or Path.cwd())
        except FileNotFoundError as exc:
            raise MetadataError("Failed to run cargo: executable not found") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise MetadataError(f"cargo metadata failed: {detail}") from exc
        try:
            data = json.loads(output)
        except json.JSONDecodeError as exc:
            raise MetadataError(f"cargo metadata produced invalid JSON: {exc}") from exc
        return self.from_json(data, package=package, prefer_bin=prefer_bin)

    def from_json(
        self, data: Any, *, package: Optional[str] = None, prefer_bin: bool = False
    ) -> CrateMetadata:
        if not isinstance(data, dict) or not isinstance(data.get("packages"), list):
            raise MetadataError("cargo metadata output has no package list")
        packages: Dict[str, Dict[str, Any]] = {
            pkg["id"]: pkg for pkg in data["packages"] if isinstance(pkg, dict) and "id" in pkg
        }
        root = self._select_package(data, packages, package)
        target = self._select_target(root, prefer_bin)
        self.logger.info("Using %s target %s of %s %s", target.kind, target.name, root["name"], root["version"])

        dependencies = self._dependencies(data, packages, root)
        own = DependencyRecord(root["name"], target.name.replace("-", "_"), root["version"])
        return CrateMetadata(
            name=root["name"],
            version=root["version"],
            target=target,
            license=root.get("license"),
            repository=root.get("repository"),
            rust_version=root.get("rust_version"),
            description=root.get("description"),
            manifest_path=root.get("manifest_path"),
            dependencies=tuple(_dedupe([own] + dependencies)),
        )

    def _select_package(
        self, data: Dict[str, Any], packages: Dict[str, Dict[str, Any]], name: Optional[str]
    ) -> Dict[str, Any]:
        members = [packages[pkg_id] for pkg_id in data.get("workspace_members") or [] if pkg_id in packages]
        if name is not None:
            for pkg in members or list(packages.values()):
                if pkg.get("name") == name:
                    return pkg
            raise MetadataError(f"Package {name!r} not found in the workspace")
        resolve = data.get("resolve") or {}
        root_id = resolve.get("root")
        if root_id in packages:
            return packages[root_id]
        if len(members) == 1:
            return members[0]
        if not members:
            raise MetadataError("cargo metadata reported no workspace members")
        names = ", ".join(sorted(pkg.get("name", "?") for pkg in members))
        raise MetadataError(f"Workspace has several packages ({names}); select one with --package")

    def _select_target(self, pkg: Dict[str, Any], prefer_bin: bool) -> TargetInfo:
        targets: List[Dict[str, Any]] = [t for t in pkg.get("targets") or [] if isinstance(t, dict)]
        lib = next((t for t in targets if LIB_KINDS.intersection(t.get("kind") or [])), None)
        bins = [t for t in targets if "bin" in (t.get("kind") or [])]
        named_bin = next((t for t in bins if t.get("name") == pkg.get("name")), None)
        first_bin = bins[0] if bins else None

        order = [named_bin, lib, first_bin] if prefer_bin else [lib, named_bin, first_bin]
        chosen = next((t for t in order if t is not None), None)
        if chosen is None:
            raise MetadataError(f"Package {pkg.get('name')!r} has no library or binary target")
        kinds = chosen.get("kind") or []
        kind = "proc-macro" if "proc-macro" in kinds else ("bin" if "bin" in kinds else "lib")
        return TargetInfo(
            name=chosen["name"],
            kind=kind,
            src_path=chosen["src_path"],
            edition=str(chosen.get("edition") or pkg.get("edition") or "2015"),
        )

    def _dependencies(
        self,
        data: Dict[str, Any],
        packages: Dict[str, Dict[str, Any]],
        root: Dict[str, Any],
    ) -> List[DependencyRecord]:
        resolve = data.get("resolve") or {}
        node = next(
            (n for n in resolve.get("nodes") or [] if isinstance(n, dict) and n.get("id") == root["id"]),
            None,
        )
        records: List[DependencyRecord] = []
        if node is not None:
            for dep in node.get("deps") or []:
                pkg = packages.get(dep.get("pkg"))
                if pkg is None:
                    continue
                records.append(DependencyRecord(pkg["name"], dep["name"], pkg["version"]))
            return records

        # no resolved graph (e.g. offline metadata): use declared dependencies
        for dep in root.get("dependencies") or []:
            lib_name = (dep.get("rename") or dep["name"]).replace("-", "_")
            records.append(DependencyRecord(dep["name"], lib_name, "latest"))
        return records

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
        )
        return completed.stdout


def _dedupe(records: Iterable[DependencyRecord]) -> List[DependencyRecord]:
    """Keep one record per Rust identifier, preferring the highest version."""
    best: Dict[str, DependencyRecord] = {}
    for record in records:
        current = best.get(record.lib_name)
        if current is None or version_key(record.version) > version_key(current.version):
            best[record.lib_name] = record
    return sorted(best.values(), key=DependencyRecord.sort_key)


def version_key(version: str) -> Tuple[Tuple[int, ...], int, str]:
    """Sort key for semver strings; releases sort after their pre-releases."""
    core = version.partition("+")[0]
    core, dash, prerelease = core.partition("-")
    numbers = tuple(int(part) if part.isdigit() else 0 for part in re.split(r"\.", core) if part)
    return (numbers, 0 if dash else 1, prerelease)


__all__ = ["CargoMetadataProvider", "LIB_KINDS", "version_key"]
