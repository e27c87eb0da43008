"""CLI parser behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

import doc2readme.cli as cli
from doc2readme.cli import _build_parser
from doc2readme.diagnostics import Diagnostics
from doc2readme.orchestrator import RunOutcome


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "render"])
    assert args.verbose is True
    assert args.command == "render"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["check", "--verbose"])
    assert args.verbose is True
    assert args.command == "check"


def test_cli_accepts_render_flags() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["render", "crates/demo", "--force", "--out", "-", "--bin", "--unresolved", "plain"]
    )
    assert args.path == "crates/demo"
    assert args.force is True
    assert args.output == "-"
    assert args.prefer_bin is True
    assert args.unresolved == "plain"
    assert args.allow_unresolved is None


def test_cli_accepts_check_flags() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["check", "--strict", "--lib", "--allow-unresolved", "--workers", "4", "--heading-offset", "1"]
    )
    assert args.strict is True
    assert args.prefer_bin is False
    assert args.allow_unresolved is True
    assert args.workers == 4
    assert args.heading_offset == 1


def test_cli_rejects_bin_and_lib_together() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["render", "--bin", "--lib"])


def test_cli_rejects_unknown_policy() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["render", "--unresolved", "loud"])


class _FakeOrchestrator:
    def __init__(self, outcome: RunOutcome) -> None:
        self.outcome = outcome
        self.calls: list[tuple[str, str, dict]] = []

    def run_render(self, path, **kwargs):
        self.calls.append(("render", path, kwargs))
        return self.outcome

    def run_check(self, path, **kwargs):
        self.calls.append(("check", path, kwargs))
        return self.outcome


def _install(monkeypatch: pytest.MonkeyPatch, outcome: RunOutcome) -> _FakeOrchestrator:
    fake = _FakeOrchestrator(outcome)
    monkeypatch.setattr(cli, "Orchestrator", lambda: fake)
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    return fake


def test_main_render_reports_written_file(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    target = tmp_path / "README.md"
    fake = _install(
        monkeypatch, RunOutcome("render", None, target, True, Diagnostics(), True)
    )

    cli.main(["render", str(tmp_path), "--workers", "2"])

    command, path, kwargs = fake.calls[0]
    assert command == "render"
    assert path == str(tmp_path)
    assert kwargs["workers"] == 2
    assert kwargs["force"] is False
    assert kwargs["prefer_bin"] is None
    assert f"README written to {target}" in capsys.readouterr().out


def test_main_render_to_stdout(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _install(
        monkeypatch,
        RunOutcome("render", None, None, False, Diagnostics(), True, text="# demo\n"),
    )

    cli.main(["render", "--out", "-"])

    assert capsys.readouterr().out == "# demo\n"


def test_main_check_failure_exits_non_zero(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    diagnostics = Diagnostics()
    diagnostics.error("README is stale", code="readme-stale")
    fake = _install(
        monkeypatch,
        RunOutcome("check", None, tmp_path / "README.md", False, diagnostics, False),
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["check", "--strict"])

    assert excinfo.value.code == 1
    assert fake.calls[0][2]["strict"] is True
    err = capsys.readouterr().err
    assert "error[readme-stale]: README is stale" in err
    assert "doc2readme check failed" in err
