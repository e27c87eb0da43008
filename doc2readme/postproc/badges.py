"""Badge definitions handed to the README template."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional
from urllib.parse import quote

from ..config import RenderOptions
from ..models import CrateMetadata


@dataclass(frozen=True)
class Badge:
    alt: str
    image: str
    link: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass
class BadgeManager:
    """Builds the standard crates.io, docs and license badges for a crate."""

    options: RenderOptions = field(default_factory=RenderOptions)

    def badges(self, metadata: CrateMetadata) -> List[Badge]:
        name = quote(metadata.name, safe="")
        badges = [
            Badge(
                alt="crates.io",
                image=f"https://img.shields.io/crates/v/{name}.svg",
                link=f"https://crates.io/crates/{name}",
            ),
            Badge(
                alt="docs",
                image=f"https://img.shields.io/docsrs/{name}",
                link=f"{self.options.doc_base_url}{name}/{quote(metadata.version, safe='')}/{metadata.lib_name}/",
            ),
        ]
        if metadata.license:
            badges.append(
                Badge(
                    alt=f"License: {metadata.license}",
                    image="https://img.shields.io/badge/license-"
                    + _shield_text(metadata.license)
                    + "-blue.svg",
                    link=metadata.repository,
                )
            )
        if metadata.rust_version:
            badges.append(
                Badge(
                    alt=f"rustc {metadata.rust_version}+",
                    image="https://img.shields.io/badge/rustc-"
                    + _shield_text(metadata.rust_version + "+")
                    + "-lightgray.svg",
                )
            )
        return badges

    def as_template_values(self, metadata: CrateMetadata) -> List[Dict[str, Optional[str]]]:
        return [badge.to_dict() for badge in self.badges(metadata)]


def _shield_text(text: str) -> str:
    # shields.io static badges use "--" for a literal dash and "__" for underscore
    escaped = text.replace("-", "--").replace("_", "__").replace(" ", "_")
    return quote(escaped, safe="_-.")


__all__ = ["Badge", "BadgeManager"]
