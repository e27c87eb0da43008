"""Tests for fingerprints and freshness verdicts."""

from __future__ import annotations

import pytest

import doc2readme.stores.fingerprint as fingerprint_module
from doc2readme.models import DependencyRecord
from doc2readme.postproc.markers import MarkerManager
from doc2readme.stores.fingerprint import Verdict, compute_fingerprint, evaluate_freshness

RECORDS = [
    DependencyRecord("demo", "demo", "0.1.0"),
    DependencyRecord("widgets", "widgets", "2.3.1"),
]
OPTIONS = {"heading_offset": "1", "unresolved": "emphasis"}


def _fingerprint(**changes: object) -> str:
    inputs = {"doc_text": "Docs", "template": "{{ readme }}", "dependencies": RECORDS, "options": OPTIONS}
    inputs.update(changes)
    return compute_fingerprint(**inputs)  # type: ignore[arg-type]


def test_fingerprint_is_stable_hex() -> None:
    first = _fingerprint()
    assert first == _fingerprint()
    assert len(first) == 64
    assert all(char in "0123456789abcdef" for char in first)


def test_fingerprint_ignores_record_and_option_order() -> None:
    shuffled = _fingerprint(
        dependencies=list(reversed(RECORDS)) + [RECORDS[0]],
        options=dict(reversed(list(OPTIONS.items()))),
    )
    assert shuffled == _fingerprint()


def test_every_input_changes_the_fingerprint() -> None:
    base = _fingerprint()
    variants = [
        _fingerprint(doc_text="Docs!"),
        _fingerprint(template="{{ readme }}\n"),
        _fingerprint(dependencies=RECORDS[:1]),
        _fingerprint(dependencies=[RECORDS[0], DependencyRecord("widgets", "widgets", "2.3.2")]),
        _fingerprint(dependencies=[RECORDS[0], DependencyRecord("widgets", "widgets", "2.3.1", "https://x/")]),
        _fingerprint(options={**OPTIONS, "heading_offset": "2"}),
        _fingerprint(options=None),
    ]
    assert base not in variants
    assert len(set(variants)) == len(variants)


def test_field_boundaries_matter() -> None:
    assert _fingerprint(doc_text="ab", template="c") != _fingerprint(doc_text="a", template="bc")


def test_freshness_verdicts() -> None:
    markers = MarkerManager()
    fingerprint = _fingerprint()

    missing = evaluate_freshness(None, fingerprint)
    assert missing.verdict is Verdict.MISSING
    assert missing.reason == "no prior artifact"

    unmarked = evaluate_freshness("# Hand written\n", fingerprint)
    assert unmarked.verdict is Verdict.MISSING
    assert unmarked.reason == "no fingerprint marker"

    garbled = evaluate_freshness(markers.embed("Body", "not-a-hash"), fingerprint)
    assert garbled.verdict is Verdict.STALE
    assert garbled.found == "not-a-hash"

    stale = evaluate_freshness(markers.embed("Body", "0" * 64), fingerprint)
    assert stale.verdict is Verdict.STALE
    assert stale.reason == "input changed"

    fresh = evaluate_freshness(markers.embed("Body", fingerprint), fingerprint, markers)
    assert fresh.is_fresh
    assert fresh.found == fingerprint


def test_format_tag_change_makes_old_readmes_stale(monkeypatch: pytest.MonkeyPatch) -> None:
    old = _fingerprint()
    readme = MarkerManager().embed("Body", old)

    monkeypatch.setattr(fingerprint_module, "FINGERPRINT_TAG", "doc2readme-fingerprint-v2")
    new = _fingerprint()

    assert new != old
    verdict = evaluate_freshness(readme, new)
    assert verdict.verdict is Verdict.STALE
    assert verdict.reason == "input changed"
