"""README template rendering with Jinja2."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError, TemplateSyntaxError, UndefinedError

from .errors import TemplateFailure

DEFAULT_TEMPLATE = """\
# {{ crate }}

{% for badge in badges -%}
{% if badge.link %}[![{{ badge.alt }}]({{ badge.image }})]({{ badge.link }}){% else %}![{{ badge.alt }}]({{ badge.image }}){% endif %}
{% endfor %}
{{ readme }}
"""


class TemplateRenderer:
    """Renders a template source against the README variables.

    Undefined variables are errors rather than empty strings.
    """

    def __init__(self) -> None:
        self._env = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=False,
            lstrip_blocks=False,
        )

    def render(self, template_source: str, variables: Mapping[str, Any], *, name: str = "template") -> str:
        try:
            template = self._env.from_string(template_source)
        except TemplateSyntaxError as exc:
            raise TemplateFailure(f"Invalid template syntax in {name} (line {exc.lineno}): {exc.message}") from exc
        try:
            return template.render(**dict(variables))
        except UndefinedError as exc:
            raise TemplateFailure(f"Template {name} uses an undefined variable: {exc.message}") from exc
        except TemplateError as exc:
            raise TemplateFailure(f"Failed to render {name}: {exc}") from exc


def template_variables(
    *,
    crate: str,
    version: str,
    readme: str,
    license: str | None = None,
    repository: str | None = None,
    rust_version: str | None = None,
    description: str | None = None,
    badges: Any = (),
) -> Dict[str, Any]:
    """Variables available to every template."""
    return {
        "crate": crate,
        "version": version,
        "license": license,
        "repository": repository,
        "rust_version": rust_version,
        "description": description,
        "readme": readme,
        "badges": list(badges),
    }


__all__ = ["DEFAULT_TEMPLATE", "TemplateRenderer", "template_variables"]
