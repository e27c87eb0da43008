"""Pipeline orchestration for the render and check flows."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .config import Doc2ReadmeConfig, load_config, with_overrides
from .diagnostics import Diagnostics
from .errors import (
    ConfigError,
    Doc2ReadmeError,
    IOFailure,
    MetadataError,
    ParseFailure,
    TemplateFailure,
)
from .extract.metadata import CargoMetadataProvider
from .extract.rust_source import ExtractedCrate, RustSourceExtractor
from .logging import get_logger
from .markdown.rewriter import MarkdownRewriter
from .markdown.scanner import ScannedDocument, scan_references
from .models import CrateMetadata, DependencyRecord, ResolvedLink, Unresolved
from .postproc.badges import BadgeManager
from .postproc.links import LinkBuilder
from .postproc.lint import MarkdownLinter
from .postproc.markers import MarkerManager
from .resolve.context import ResolutionContext
from .resolve.resolver import SymbolResolver
from .stores.artifact import ArtifactStore
from .stores.fingerprint import FreshnessVerdict, Verdict, compute_fingerprint, evaluate_freshness
from .template import DEFAULT_TEMPLATE, TemplateRenderer, template_variables

STDOUT = "-"

_ERROR_CODES = {
    ConfigError: "config-error",
    IOFailure: "io-failure",
    MetadataError: "metadata-error",
    TemplateFailure: "template-failure",
}


@dataclass
class RunOutcome:
    """Result of a render or check run."""

    command: str
    verdict: Optional[FreshnessVerdict]
    path: Optional[Path]
    written: bool
    diagnostics: Diagnostics
    success: bool
    text: Optional[str] = None


@dataclass
class _Inputs:
    """Everything read before any rendering happens."""

    config: Doc2ReadmeConfig
    metadata: CrateMetadata
    crate: ExtractedCrate
    template_source: str
    template_name: str
    records: Tuple[DependencyRecord, ...]
    fingerprint: str
    output_path: Optional[Path]
    existing: Optional[str]
    verdict: FreshnessVerdict


class Orchestrator:
    """Coordinates extraction, resolution, rendering and freshness checks."""

    def __init__(
        self,
        metadata_provider: CargoMetadataProvider | None = None,
        extractor: RustSourceExtractor | None = None,
        renderer: TemplateRenderer | None = None,
        store: ArtifactStore | None = None,
        marker_manager: MarkerManager | None = None,
        linter: MarkdownLinter | None = None,
        badge_manager: BadgeManager | None = None,
    ) -> None:
        self.metadata_provider = metadata_provider or CargoMetadataProvider()
        self.extractor = extractor
        self.renderer = renderer or TemplateRenderer()
        self.store = store or ArtifactStore()
        self.marker_manager = marker_manager or MarkerManager()
        self.linter = linter or MarkdownLinter()
        self.badge_manager = badge_manager
        self.logger = get_logger("orchestrator")

    def run_render(
        self,
        path: str | Path = ".",
        *,
        output: Optional[str] = None,
        force: bool = False,
        **overrides: object,
    ) -> RunOutcome:
        """Render the README, writing it unless the stored fingerprint is current."""
        diagnostics = Diagnostics()
        crate_dir = _crate_dir(path)
        self.logger.info("Starting render run for %s", crate_dir)
        try:
            inputs = self._prepare(crate_dir, output, diagnostics, overrides)
            scanned, links = self._resolve(inputs, diagnostics)
            if inputs.output_path is None:
                text = self._render_text(inputs, scanned, links)
                return self._outcome("render", inputs, diagnostics, written=False, text=text)
            if inputs.verdict.is_fresh and not force:
                self.logger.info("README is up to date: %s", inputs.output_path)
                return self._outcome("render", inputs, diagnostics, written=False)
            text = self._render_text(inputs, scanned, links)
            if text == inputs.existing:
                self.logger.info("Rendered README is unchanged: %s", inputs.output_path)
                return self._outcome("render", inputs, diagnostics, written=False, text=text)
            self.store.write(inputs.output_path, text)
            return self._outcome("render", inputs, diagnostics, written=True, text=text)
        except Doc2ReadmeError as exc:
            return self._failed("render", exc, crate_dir, diagnostics)

    def run_check(
        self,
        path: str | Path = ".",
        *,
        output: Optional[str] = None,
        strict: bool = False,
        **overrides: object,
    ) -> RunOutcome:
        """Verify the README without writing; fails when Stale, Missing or unresolved."""
        diagnostics = Diagnostics()
        crate_dir = _crate_dir(path)
        self.logger.info("Starting check run for %s", crate_dir)
        try:
            inputs = self._prepare(crate_dir, output, diagnostics, overrides)
            if inputs.output_path is None:
                raise IOFailure("check needs an output file, not stdout", STDOUT)
            scanned, links = self._resolve(inputs, diagnostics)
            text: Optional[str] = None
            if strict and inputs.existing is not None:
                text = self._render_text(inputs, scanned, links)
                if text != inputs.existing and inputs.verdict.is_fresh:
                    inputs.verdict = FreshnessVerdict(
                        Verdict.STALE,
                        inputs.fingerprint,
                        inputs.verdict.found,
                        reason="rendered output differs",
                    )
            self._report_verdict(inputs.verdict, inputs.output_path, diagnostics)
            return self._outcome("check", inputs, diagnostics, written=False, text=text)
        except Doc2ReadmeError as exc:
            return self._failed("check", exc, crate_dir, diagnostics)

    # ------------------------------------------------------------------
    # Pipeline stages

    def _prepare(
        self,
        crate_dir: Path,
        output: Optional[str],
        diagnostics: Diagnostics,
        overrides: Dict[str, object],
    ) -> _Inputs:
        manifest_path = overrides.pop("manifest_path", None)
        package = overrides.pop("package", None)
        config = with_overrides(load_config(crate_dir), output=output, **overrides)

        if manifest_path is None and (crate_dir / "Cargo.toml").is_file():
            manifest_path = crate_dir / "Cargo.toml"
        metadata = self.metadata_provider.load(
            Path(str(manifest_path)) if manifest_path is not None else None,
            str(package) if package is not None else None,
            config.prefer_bin,
            cwd=crate_dir,
        )

        template_source, template_name = self._template(config)

        extractor = self.extractor or RustSourceExtractor(root=crate_dir)
        crate = extractor.extract(Path(metadata.target.src_path))
        for name, text in crate.sources.items():
            diagnostics.add_source(name, text)
        diagnostics.extend(crate.warnings)

        records = tuple(_with_doc_urls(metadata.dependencies, config.dependency_docs))
        fingerprint = compute_fingerprint(
            crate.doc.text,
            template_source,
            records,
            _fingerprint_options(config, metadata),
        )
        self.logger.debug("Fingerprint %s", fingerprint)

        output_path = None if config.output == STDOUT else config.output_path
        existing = self.store.read(output_path) if output_path is not None else None
        verdict = evaluate_freshness(existing, fingerprint, self.marker_manager)
        if output_path is not None:
            self.logger.info("Verdict for %s: %s (%s)", output_path, verdict.verdict.value, verdict.reason)
        return _Inputs(
            config=config,
            metadata=metadata,
            crate=crate,
            template_source=template_source,
            template_name=template_name,
            records=records,
            fingerprint=fingerprint,
            output_path=output_path,
            existing=existing,
            verdict=verdict,
        )

    def _template(self, config: Doc2ReadmeConfig) -> Tuple[str, str]:
        template_path = config.template_path
        try:
            source = template_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self.logger.debug("No template at %s; using the built-in template", template_path)
            return DEFAULT_TEMPLATE, "<default template>"
        except (OSError, UnicodeDecodeError) as exc:
            raise IOFailure(f"Failed to read template ({exc})", template_path) from exc
        self.logger.info("Using template %s", template_path)
        return source, template_path.name

    def _resolve(
        self, inputs: _Inputs, diagnostics: Diagnostics
    ) -> Tuple[ScannedDocument, List[ResolvedLink]]:
        scanned = scan_references(inputs.crate.doc)
        context = ResolutionContext.build(
            inputs.crate.modules,
            inputs.records,
            inputs.metadata.lib_name,
            inputs.metadata.target.edition,
        )
        links = SymbolResolver(context).resolve_all(scanned.references, inputs.config.workers)
        unresolved = 0
        for reference, link in zip(scanned.references, links):
            if isinstance(link, Unresolved):
                unresolved += 1
                diagnostics.unresolved(reference, link, as_error=not inputs.config.allow_unresolved)
        self.logger.info(
            "Resolved %d of %d reference(s)", len(links) - unresolved, len(links)
        )
        return scanned, links

    def _render_text(
        self, inputs: _Inputs, scanned: ScannedDocument, links: Sequence[ResolvedLink]
    ) -> str:
        config = inputs.config
        metadata = inputs.metadata
        root = next(
            (r for r in inputs.records if r.name == metadata.name and r.lib_name == metadata.lib_name),
            metadata.root_record(),
        )
        link_builder = LinkBuilder(root, config.render, config.dependency_docs)
        body = MarkdownRewriter(config.render).rewrite(scanned, links, link_builder)
        badges = self.badge_manager or BadgeManager(options=config.render)
        variables = template_variables(
            crate=metadata.name,
            version=metadata.version,
            readme=body,
            license=metadata.license,
            repository=metadata.repository,
            rust_version=metadata.rust_version,
            description=metadata.description,
            badges=badges.as_template_values(metadata),
        )
        text = self.renderer.render(inputs.template_source, variables, name=inputs.template_name)
        return self.marker_manager.embed(self.linter.lint(text), inputs.fingerprint)

    # ------------------------------------------------------------------
    # Outcomes

    def _report_verdict(
        self, verdict: FreshnessVerdict, path: Path, diagnostics: Diagnostics
    ) -> None:
        if verdict.is_fresh:
            return
        diagnostics.error(
            f"{path.name} is {verdict.verdict.value}: {verdict.reason}",
            help="run `doc2readme render` to update it",
            code=f"readme-{verdict.verdict.value}",
        )

    def _outcome(
        self,
        command: str,
        inputs: _Inputs,
        diagnostics: Diagnostics,
        *,
        written: bool,
        text: Optional[str] = None,
    ) -> RunOutcome:
        success = not diagnostics.is_fail()
        if command == "check":
            success = success and inputs.verdict.is_fresh
        return RunOutcome(
            command=command,
            verdict=inputs.verdict,
            path=inputs.output_path,
            written=written,
            diagnostics=diagnostics,
            success=success,
            text=text,
        )

    def _failed(
        self, command: str, exc: Doc2ReadmeError, crate_dir: Path, diagnostics: Diagnostics
    ) -> RunOutcome:
        self.logger.debug("%s run aborted: %s", command, exc)
        if isinstance(exc, ParseFailure):
            if exc.span is not None:
                _add_source(diagnostics, crate_dir, exc.span.file)
            diagnostics.parse_failure(exc)
        else:
            code = next(
                (value for kind, value in _ERROR_CODES.items() if isinstance(exc, kind)), "error"
            )
            diagnostics.error(str(exc), code=code)
        return RunOutcome(
            command=command,
            verdict=None,
            path=None,
            written=False,
            diagnostics=diagnostics,
            success=False,
        )


def _crate_dir(path: str | Path) -> Path:
    resolved = Path(path).expanduser().resolve()
    if resolved.is_file():
        return resolved.parent
    return resolved


def _with_doc_urls(
    records: Sequence[DependencyRecord], overrides: Dict[str, str]
) -> List[DependencyRecord]:
    updated = []
    for record in records:
        doc_url = overrides.get(record.name) or overrides.get(record.lib_name) or record.doc_url
        updated.append(replace(record, doc_url=doc_url))
    return updated


def _fingerprint_options(config: Doc2ReadmeConfig, metadata: CrateMetadata) -> Dict[str, str]:
    options = dict(config.render.fingerprint_items())
    options.update(
        {
            "package.description": metadata.description or "",
            "package.license": metadata.license or "",
            "package.repository": metadata.repository or "",
            "package.rust_version": metadata.rust_version or "",
        }
    )
    return options


def _add_source(diagnostics: Diagnostics, crate_dir: Path, name: str) -> None:
    candidate = Path(name)
    if not candidate.is_absolute():
        candidate = crate_dir / candidate
    try:
        diagnostics.add_source(name, candidate.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError):
        return


__all__ = ["Orchestrator", "RunOutcome", "STDOUT"]
