"""Content fingerprints and Fresh/Stale/Missing verdicts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import hashlib
import re
from typing import Iterable, Mapping, Optional

from ..models import DependencyRecord
from ..postproc.markers import MarkerManager

FINGERPRINT_TAG = "doc2readme-fingerprint-v1"

_HEX_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class Verdict(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


@dataclass(frozen=True)
class FreshnessVerdict:
    """Outcome of comparing a stored marker with the current fingerprint."""

    verdict: Verdict
    expected: str
    found: Optional[str] = None
    reason: str = ""

    @property
    def is_fresh(self) -> bool:
        return self.verdict is Verdict.FRESH


def compute_fingerprint(
    doc_text: str,
    template: str,
    dependencies: Iterable[DependencyRecord],
    options: Optional[Mapping[str, str]] = None,
) -> str:
    """Hash every input that can change the rendered README.

    Fields are length-prefixed so that moving text between fields always
    changes the digest. Dependency records and options are sorted first, so
    the caller's ordering never matters.
    """
    digest = hashlib.sha256()

    def field(value: str) -> None:
        encoded = value.encode("utf-8")
        digest.update(str(len(encoded)).encode("ascii"))
        digest.update(b":")
        digest.update(encoded)

    field(FINGERPRINT_TAG)
    field(doc_text)
    field(template)

    records = sorted(set(dependencies), key=DependencyRecord.sort_key)
    field(str(len(records)))
    for record in records:
        for value in record.sort_key():
            field(value)

    items = sorted((options or {}).items())
    field(str(len(items)))
    for key, value in items:
        field(key)
        field(value)
    return digest.hexdigest()


def evaluate_freshness(
    existing_text: Optional[str],
    fingerprint: str,
    markers: Optional[MarkerManager] = None,
) -> FreshnessVerdict:
    """Compare the marker stored in ``existing_text`` against ``fingerprint``."""
    if existing_text is None:
        return FreshnessVerdict(Verdict.MISSING, fingerprint, reason="no prior artifact")
    found = (markers or MarkerManager()).extract(existing_text)
    if found is None:
        return FreshnessVerdict(Verdict.MISSING, fingerprint, reason="no fingerprint marker")
    if not _HEX_PATTERN.match(found):
        return FreshnessVerdict(
            Verdict.STALE, fingerprint, found, reason="invalid fingerprint marker"
        )
    if found != fingerprint:
        return FreshnessVerdict(Verdict.STALE, fingerprint, found, reason="input changed")
    return FreshnessVerdict(Verdict.FRESH, fingerprint, found, reason="up to date")


__all__ = [
    "FINGERPRINT_TAG",
    "FreshnessVerdict",
    "Verdict",
    "compute_fingerprint",
    "evaluate_freshness",
]
