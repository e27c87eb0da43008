"""CLI entrypoints for doc2readme commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import UNRESOLVED_POLICIES
from .logging import configure_logging
from .orchestrator import STDOUT, Orchestrator, RunOutcome


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_input_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Crate directory or Cargo.toml (defaults to current directory).",
    )
    parser.add_argument(
        "--out",
        dest="output",
        help=f"Output file relative to the crate directory, or {STDOUT!r} for stdout.",
    )
    parser.add_argument("--template", help="Template file relative to the crate directory.")
    parser.add_argument("--manifest-path", help="Path to Cargo.toml passed to cargo metadata.")
    parser.add_argument("-p", "--package", help="Package to document in a workspace.")
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--bin",
        dest="prefer_bin",
        action="store_const",
        const=True,
        default=None,
        help="Prefer the binary target over the library target.",
    )
    target.add_argument(
        "--lib",
        dest="prefer_bin",
        action="store_const",
        const=False,
        help="Prefer the library target (the default).",
    )
    parser.add_argument(
        "--allow-unresolved",
        action="store_const",
        const=True,
        default=None,
        help="Do not fail because of links that cannot be resolved.",
    )
    parser.add_argument(
        "--unresolved",
        choices=UNRESOLVED_POLICIES,
        help="How unresolved links are rendered.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of threads used to resolve links.",
    )
    parser.add_argument(
        "--heading-offset",
        type=int,
        help="Levels added to every heading of the crate documentation.",
    )
    parser.add_argument(
        "--default-code-language",
        help="Info string for code blocks that declare no language.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors.",
    )
    parser.add_argument("--log-file", type=Path, help="Also write DEBUG logs to this file.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doc2readme",
        description="Generate a crate README from its crate-level documentation.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser(
        "render",
        help="Render the README, writing it when it is stale or missing.",
    )
    _add_verbose_option(render_parser, suppress_default=True)
    _add_input_options(render_parser)
    render_parser.add_argument(
        "--force",
        action="store_true",
        help="Render and write even when the README is up to date.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Exit non-zero when the README is stale, missing or has unresolved links.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_input_options(check_parser)
    check_parser.add_argument(
        "--strict",
        action="store_true",
        help="Render the README and compare it byte for byte.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for doc2readme commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose), quiet=bool(args.quiet), log_file=args.log_file
    )

    orchestrator = Orchestrator()
    overrides = {
        "template": args.template,
        "manifest_path": args.manifest_path,
        "package": args.package,
        "prefer_bin": args.prefer_bin,
        "allow_unresolved": args.allow_unresolved,
        "unresolved": args.unresolved,
        "workers": args.workers,
        "heading_offset": args.heading_offset,
        "default_code_language": args.default_code_language,
    }

    if args.command == "render":
        outcome = orchestrator.run_render(
            args.path, output=args.output, force=bool(args.force), **overrides
        )
        outcome.diagnostics.print()
        if outcome.text is not None and outcome.path is None:
            sys.stdout.write(outcome.text)
        elif outcome.written and outcome.path is not None:
            print(f"README written to {_relativize(outcome.path)}")
        elif outcome.path is not None:
            print(f"README already up to date at {_relativize(outcome.path)}")
        _exit_on_failure(parser, outcome)
    elif args.command == "check":
        outcome = orchestrator.run_check(
            args.path, output=args.output, strict=bool(args.strict), **overrides
        )
        outcome.diagnostics.print()
        if outcome.success and outcome.path is not None:
            print(f"README is up to date at {_relativize(outcome.path)}")
        _exit_on_failure(parser, outcome)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _exit_on_failure(parser: argparse.ArgumentParser, outcome: RunOutcome) -> None:
    if outcome.success:
        return
    parser.exit(1, f"doc2readme {outcome.command} failed\nRun with --verbose for more details.\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
